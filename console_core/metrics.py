from __future__ import annotations

from dataclasses import asdict
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional, Sequence

import pandas as pd

from console_core.charts import stats_bar_chart, to_vega_spec
from console_core.models import CountStat, DashboardStats, SiteAssignment

if TYPE_CHECKING:
    from console_core.engine import DashboardState

STAT_LABELS = {
    "users": "Users",
    "groupements": "Groupements",
    "branches": "Branches",
    "agencies": "Agencies",
    "brands": "Brands",
    "sites": "Sites",
    "user_site_links": "User-site links",
}


def count_stat(items: Sequence[Any]) -> CountStat:
    if not isinstance(items, (list, tuple)):
        return CountStat()
    return CountStat(total=len(items), active=sum(1 for item in items if getattr(item, "active", False)))


def build_dashboard_stats(collections: Mapping[str, Sequence[Any]]) -> DashboardStats:
    """Roll canonical collections up into the fixed dashboard categories.

    Users count ``active`` from the active-only fetch rather than the flag on
    each row; sites are branches plus agencies.
    """
    users = list(collections.get("users", []) or [])
    active_users = list(collections.get("active_users", []) or [])
    branches = count_stat(list(collections.get("branches", []) or []))
    agencies = count_stat(list(collections.get("agencies", []) or []))
    return DashboardStats(
        users=CountStat(total=len(users), active=len(active_users)),
        groupements=count_stat(list(collections.get("groupements", []) or [])),
        branches=branches,
        agencies=agencies,
        brands=count_stat(list(collections.get("brands", []) or [])),
        sites=branches + agencies,
        user_site_links=count_stat(list(collections.get("user_site_links", []) or [])),
    )


def stats_frame(stats: DashboardStats) -> pd.DataFrame:
    rows = [
        {
            "category": STAT_LABELS.get(name, name),
            "total": stat.total,
            "active": stat.active,
            "inactive": stat.total - stat.active,
        }
        for name, stat in stats.items()
    ]
    return pd.DataFrame(rows, columns=["category", "total", "active", "inactive"])


def stats_to_csv(stats: DashboardStats) -> str:
    return stats_frame(stats).to_csv(index=False)


def _assignment_payload(assignment: Optional[SiteAssignment]) -> Optional[Dict[str, Any]]:
    if assignment is None:
        return None
    out = asdict(assignment)
    out["site_type"] = assignment.site_type.value
    return out


def compute_dashboard_payload(state: "DashboardState", mode: str) -> Dict[str, Any]:
    frame = stats_frame(state.stats)
    return {
        "mode": mode,
        "generation": state.generation,
        "stats": state.stats.as_dict(),
        "period_kpis": asdict(state.period_kpis),
        "loading": state.loading,
        "error": state.error,
        "assignment": _assignment_payload(state.assignment),
        "charts": {
            "stats_bar": to_vega_spec(stats_bar_chart(frame)),
        },
    }
