from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Literal, Mapping, Optional, Sequence, TypeVar

from console_core.models import Brand, SiteAssignment, SiteType, UserIdentity

T = TypeVar("T")

DashboardMode = Literal["global", "scoped"]


def _as_list(collection: Any) -> List[Any]:
    if not isinstance(collection, (list, tuple)) or not collection:
        return []
    return list(collection)


def by_positive_id(collection: Sequence[T], target_id: Any, accessor: Callable[[T], Any]) -> List[T]:
    items = _as_list(collection)
    try:
        target = int(target_id)
    except Exception:
        return []
    if target <= 0:
        return []
    out: List[T] = []
    for item in items:
        try:
            value = accessor(item)
        except Exception:
            continue
        if value is not None and value == target:
            out.append(item)
    return out


def _clean_name(value: Any) -> str:
    return value.strip().lower() if isinstance(value, str) else ""


def by_groupement(collection: Sequence[T], groupement_id: Any, name_fallback: Optional[str]) -> List[T]:
    items = _as_list(collection)
    try:
        target_id = int(groupement_id or 0)
    except Exception:
        target_id = 0
    if target_id > 0:
        return [g for g in items if getattr(g, "id", None) == target_id]
    wanted = _clean_name(name_fallback)
    return [g for g in items if _clean_name(getattr(g, "name", None)) == wanted]


def brands_by_site_type(brands: Sequence[Brand], site_type: SiteType, site_id: Any) -> List[Brand]:
    if site_type == SiteType.BRANCH:
        return by_positive_id(brands, site_id, lambda b: b.branch_id)
    return by_positive_id(brands, site_id, lambda b: b.agency_id)


def scope_collections(collections: Mapping[str, Sequence[Any]], assignment: SiteAssignment) -> Dict[str, List[Any]]:
    """Restrict every dashboard collection to the assigned site and groupement."""
    site_id = assignment.site_id
    is_branch = assignment.site_type == SiteType.BRANCH
    scoped: Dict[str, List[Any]] = {
        "users": by_positive_id(collections.get("users", []), site_id, lambda u: u.site_id),
        "active_users": by_positive_id(collections.get("active_users", []), site_id, lambda u: u.site_id),
        "groupements": by_groupement(
            collections.get("groupements", []),
            assignment.groupement_id,
            assignment.groupement_name,
        ),
        "branches": by_positive_id(collections.get("branches", []), site_id, lambda s: s.id) if is_branch else [],
        "agencies": [] if is_branch else by_positive_id(collections.get("agencies", []), site_id, lambda s: s.id),
        "brands": brands_by_site_type(collections.get("brands", []), assignment.site_type, site_id),
        "user_site_links": by_positive_id(collections.get("user_site_links", []), site_id, lambda l: l.site_id),
    }
    scoped["periods"] = _as_list(collections.get("periods", []))
    return scoped


@dataclass(frozen=True)
class DashboardScope:
    mode: DashboardMode = "global"
    identity: UserIdentity = field(default_factory=UserIdentity)

    @property
    def scoped(self) -> bool:
        return self.mode == "scoped"


def _as_mapping(value: Any) -> Dict[str, Any]:
    return dict(value) if isinstance(value, Mapping) else {}


def normalize_scope(raw: Mapping[str, Any], *, mode: str = "global") -> DashboardScope:
    mode = "scoped" if str(raw.get("mode") or mode).strip().lower() in ("scoped", "site") else "global"
    user_id = raw.get("user_id", 0)
    try:
        user_id = int(user_id or 0)
    except Exception:
        user_id = 0
    identity = UserIdentity(
        user_id=max(0, user_id),
        user=_as_mapping(raw.get("user")),
        details=_as_mapping(raw.get("details")),
    )
    return DashboardScope(mode=mode, identity=identity)
