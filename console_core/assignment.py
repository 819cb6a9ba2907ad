from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from enum import Enum
from typing import Any, Hashable, Iterable, List, Optional, Tuple

from console_core.canonical import as_flag, as_int, normalize_many, normalize_user_site
from console_core.models import SiteAssignment, UserIdentity, UserSiteLink, site_type_for

logger = logging.getLogger(__name__)

# (source, key) pairs probed in order; source is "details", "raw" or "user".
SITE_ID_KEYS = (
    ("details", "siteId"),
    ("raw", "SiteId"),
    ("raw", "siteId"),
    ("user", "siteId"),
    ("user", "SiteId"),
)
GROUPEMENT_NAME_KEYS = (
    ("details", "groupementType"),
    ("raw", "GroupementType"),
    ("user", "groupement_type"),
    ("user", "GroupementType"),
)
ASSIGNMENT_ID_KEYS = (
    ("details", "userSiteId"),
    ("raw", "UserSiteId"),
    ("user", "idUserSite"),
    ("user", "userSiteId"),
)
GROUPEMENT_ID_KEYS = (
    ("details", "groupementId"),
    ("raw", "IdGroupement"),
    ("raw", "GroupementId"),
    ("user", "idGroupement"),
)
SITE_NAME_KEYS = (
    ("details", "siteName"),
    ("raw", "SiteName"),
    ("user", "site_name"),
    ("user", "SiteName"),
)
ACTIVE_KEYS = (
    ("details", "userSiteActive"),
    ("raw", "UserSiteActive"),
    ("user", "UserSiteActive"),
)


class ResolutionState(str, Enum):
    UNRESOLVED = "unresolved"
    RESOLVING = "resolving"
    RESOLVED = "resolved"


def _lookup(identity: UserIdentity, keys: Iterable[Tuple[str, str]]) -> Any:
    sources = {"details": identity.details, "raw": identity.raw, "user": identity.user}
    for source, key in keys:
        value = sources[source].get(key)
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return None


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def fallback_assignment(identity: UserIdentity) -> Optional[SiteAssignment]:
    """Build an assignment from what the session already knows, without I/O."""
    site_id = as_int(_lookup(identity, SITE_ID_KEYS))
    groupement_name = _text(_lookup(identity, GROUPEMENT_NAME_KEYS))
    if site_id <= 0 or not groupement_name:
        return None
    return SiteAssignment(
        assignment_id=max(0, as_int(_lookup(identity, ASSIGNMENT_ID_KEYS))),
        groupement_id=max(0, as_int(_lookup(identity, GROUPEMENT_ID_KEYS))),
        groupement_name=groupement_name,
        site_id=site_id,
        site_name=_text(_lookup(identity, SITE_NAME_KEYS)),
        site_type=site_type_for(groupement_name),
        active=as_flag(_lookup(identity, ACTIVE_KEYS), True),
    )


def _merge(candidate: SiteAssignment, link: UserSiteLink) -> SiteAssignment:
    # fetched values only fill what the candidate is missing
    return replace(
        candidate,
        assignment_id=candidate.assignment_id or max(0, link.id),
        groupement_id=candidate.groupement_id if candidate.groupement_id > 0 else max(0, link.groupement_id),
        groupement_name=candidate.groupement_name or link.groupement_name.strip(),
        site_name=candidate.site_name or link.site_name.strip(),
    )


def _choose(links: List[UserSiteLink], candidate: SiteAssignment) -> Optional[UserSiteLink]:
    if not links:
        return None
    if candidate.assignment_id > 0:
        for link in links:
            if link.id == candidate.assignment_id:
                return link
    if candidate.groupement_id > 0:
        for link in links:
            if link.groupement_id == candidate.groupement_id:
                return link
    return links[0]


async def resolve_assignment(identity: UserIdentity, user_sites: Any) -> Optional[SiteAssignment]:
    """Fallback, then hydrate by id, then search by site.

    Lookup failures are logged and the best candidate so far is kept.
    """
    candidate = fallback_assignment(identity)
    if candidate is None:
        logger.info("No site assignment for user %s", identity.user_id)
        return None

    if not candidate.is_complete and candidate.assignment_id > 0:
        try:
            raw = await user_sites.get_by_id(candidate.assignment_id)
        except Exception as exc:
            logger.warning("User-site %s lookup failed: %s", candidate.assignment_id, exc)
        else:
            link = normalize_user_site(raw)
            if link.id > 0 or link.site_id > 0:
                candidate = _merge(candidate, link)

    if not candidate.is_complete and candidate.site_id > 0:
        try:
            raw = await user_sites.search({"idSite": candidate.site_id, "onlyActive": True})
        except Exception as exc:
            logger.warning("User-site search for site %s failed: %s", candidate.site_id, exc)
        else:
            chosen = _choose(normalize_many(raw, normalize_user_site), candidate)
            if chosen is not None:
                candidate = _merge(candidate, chosen)

    return replace(candidate, site_type=site_type_for(candidate.groupement_name))


class AssignmentResolver:
    """Resolves the site assignment once per identity.

    Concurrent callers for the same identity share one in-flight resolution.
    """

    def __init__(self, user_sites: Any):
        self.user_sites = user_sites
        self._key: Optional[Hashable] = None
        self._state = ResolutionState.UNRESOLVED
        self._assignment: Optional[SiteAssignment] = None
        self._task: Optional[asyncio.Future] = None

    @property
    def state(self) -> ResolutionState:
        return self._state

    @property
    def assignment(self) -> Optional[SiteAssignment]:
        return self._assignment

    def invalidate(self) -> None:
        self._state = ResolutionState.UNRESOLVED
        self._assignment = None
        self._task = None

    async def resolve(self, identity: UserIdentity) -> Optional[SiteAssignment]:
        key = identity.key
        if key != self._key:
            self.invalidate()
            self._key = key
        if self._state is ResolutionState.RESOLVED:
            return self._assignment

        if self._task is None:
            self._state = ResolutionState.RESOLVING
            self._task = asyncio.ensure_future(resolve_assignment(identity, self.user_sites))
        task = self._task
        try:
            assignment = await task
        except Exception:
            if task is self._task:
                self._task = None
                self._state = ResolutionState.UNRESOLVED
            raise

        # a newer identity or an invalidate() while waiting wins
        if task is self._task:
            self._assignment = assignment
            self._state = ResolutionState.RESOLVED
            self._task = None
        return assignment
