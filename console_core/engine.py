from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple

from console_core import config
from console_core.assignment import AssignmentResolver
from console_core.canonical import (
    extract_pagination,
    normalize_brand,
    normalize_groupement,
    normalize_many,
    normalize_objective,
    normalize_period,
    normalize_site,
    normalize_user,
    normalize_user_site,
)
from console_core.client import error_detail
from console_core.filters import DashboardMode, scope_collections
from console_core.metrics import build_dashboard_stats
from console_core.models import (
    DashboardPeriodKpis,
    DashboardStats,
    Period,
    SiteAssignment,
    SiteType,
    UserIdentity,
)
from console_core.periods import compute_month_bounds, period_label, pick_latest
from console_core.repositories import Repositories

logger = logging.getLogger(__name__)

NO_ASSIGNMENT_MESSAGE = "No active site assignment was found for this user."
GENERIC_ERROR_MESSAGE = "Failed to load dashboard statistics."


@dataclass(frozen=True)
class DashboardState:
    stats: DashboardStats = field(default_factory=DashboardStats.empty)
    period_kpis: DashboardPeriodKpis = field(default_factory=DashboardPeriodKpis.empty)
    loading: bool = False
    error: Optional[str] = None
    assignment: Optional[SiteAssignment] = None
    generation: int = 0


def describe_error(exc: BaseException) -> str:
    """User-facing message: backend ``error`` string, else the exception text."""
    detail = error_detail(getattr(exc, "payload", None))
    if detail:
        return detail
    message = str(exc).strip()
    return message or GENERIC_ERROR_MESSAGE


async def gather_all(*aws: Any) -> List[Any]:
    """All-or-nothing join: on the first failure the remaining fetches are
    cancelled and drained before the error propagates."""
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


async def _fetch_collections(repos: Repositories, page_size: int) -> Dict[str, List[Any]]:
    (
        users,
        active_users,
        groupements,
        branches,
        agencies,
        brands,
        user_site_links,
        periods,
    ) = await gather_all(
        repos.users.list_users(False),
        repos.users.list_users(True),
        repos.groupements.list(),
        repos.branches.list(1, page_size),
        repos.agencies.list(1, page_size),
        repos.brands.list(False, 1, page_size),
        repos.user_sites.list_all(),
        repos.periods.list_active(1, page_size),
    )
    return {
        "users": normalize_many(users, normalize_user),
        "active_users": normalize_many(active_users, normalize_user),
        "groupements": normalize_many(groupements, normalize_groupement),
        "branches": normalize_many(branches, normalize_site),
        "agencies": normalize_many(agencies, normalize_site),
        "brands": normalize_many(brands, normalize_brand),
        "user_site_links": normalize_many(user_site_links, normalize_user_site),
        "periods": normalize_many(periods, normalize_period),
    }


async def compute_period_kpis(
    repos: Repositories,
    periods: List[Period],
    assignment: Optional[SiteAssignment],
) -> DashboardPeriodKpis:
    latest = pick_latest(periods)
    if latest is None:
        return DashboardPeriodKpis.empty()

    bounds = compute_month_bounds(latest)
    site_id: Optional[int] = None
    branch_id: Optional[int] = None
    agency_id: Optional[int] = None
    if assignment is not None:
        site_id = assignment.site_id
        if assignment.site_type == SiteType.BRANCH:
            branch_id = assignment.site_id
        else:
            agency_id = assignment.site_id

    objectives, sales = await gather_all(
        repos.objectives.list_view(latest.id, site_id),
        repos.sales.list(1, 1, bounds, branch_id=branch_id, agency_id=agency_id),
    )
    return DashboardPeriodKpis(
        period_label=period_label(latest),
        objective_count=len(normalize_many(objectives, normalize_objective)),
        sale_count=extract_pagination(sales).get("total_records", 0),
    )


async def aggregate(
    repos: Repositories,
    assignment: Optional[SiteAssignment] = None,
    *,
    page_size: int = config.LIST_PAGE_SIZE,
) -> Tuple[DashboardStats, DashboardPeriodKpis]:
    """Fetch, canonicalize, scope and roll up. ``assignment=None`` means global."""
    collections = await _fetch_collections(repos, page_size)
    if assignment is not None:
        collections = scope_collections(collections, assignment)
    stats = build_dashboard_stats(collections)
    kpis = await compute_period_kpis(repos, collections["periods"], assignment)
    return stats, kpis


class AggregationEngine:
    """Dashboard state holder for one mode.

    Call :meth:`issue_generation` when a load starts and pass the token to
    :meth:`load`; only the most recently issued token may commit.
    """

    def __init__(
        self,
        repos: Repositories,
        mode: DashboardMode = "global",
        *,
        resolver: Optional[AssignmentResolver] = None,
        page_size: Optional[int] = None,
    ):
        self.repos = repos
        self.mode = mode
        self.resolver = resolver or AssignmentResolver(repos.user_sites)
        self.page_size = page_size or config.LIST_PAGE_SIZE
        self._generation = 0
        self._state = DashboardState()

    def use_repositories(self, repos: Repositories) -> None:
        """Point the engine (and its resolver) at a fresh repository set; state is kept."""
        self.repos = repos
        self.resolver.user_sites = repos.user_sites

    @property
    def state(self) -> DashboardState:
        return self._state

    @property
    def latest_generation(self) -> int:
        return self._generation

    def issue_generation(self) -> int:
        self._generation += 1
        self._state = replace(self._state, loading=True)
        return self._generation

    async def load(self, generation: int, identity: Optional[UserIdentity] = None) -> DashboardState:
        identity = identity or UserIdentity()
        assignment: Optional[SiteAssignment] = None
        try:
            if self.mode == "scoped":
                assignment = await self.resolver.resolve(identity)
                if assignment is None:
                    return self._commit(generation, DashboardState(error=NO_ASSIGNMENT_MESSAGE))
            stats, kpis = await aggregate(self.repos, assignment, page_size=self.page_size)
        except Exception as exc:
            logger.exception("Dashboard load failed (mode=%s, generation=%s)", self.mode, generation)
            return self._commit(generation, DashboardState(error=describe_error(exc), assignment=assignment))
        return self._commit(generation, DashboardState(stats=stats, period_kpis=kpis, assignment=assignment))

    async def reload(self, identity: Optional[UserIdentity] = None) -> DashboardState:
        return await self.load(self.issue_generation(), identity)

    def clear_error(self) -> DashboardState:
        self._state = replace(self._state, error=None)
        return self._state

    def _commit(self, generation: int, state: DashboardState) -> DashboardState:
        if generation != self._generation:
            logger.info("Discarding generation %s (latest is %s)", generation, self._generation)
            return self._state
        self._state = replace(state, loading=False, generation=generation)
        logger.info("Committed %s dashboard generation %s", self.mode, generation)
        return self._state
