from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple


class SiteType(str, Enum):
    BRANCH = "Branch"
    AGENCY = "Agency"


AGENCY_GROUPEMENT_NAME = "succursale"


def site_type_for(groupement_name: Optional[str]) -> SiteType:
    """Agencies belong to the "Succursale" groupement, every other name is a branch."""
    normalized = (groupement_name or "").strip().lower()
    return SiteType.AGENCY if normalized == AGENCY_GROUPEMENT_NAME else SiteType.BRANCH


@dataclass(frozen=True)
class CanonicalSaleRecord:
    id: int
    type_sale_id: int
    user_id: int
    branch_id: Optional[int]
    agency_id: Optional[int]
    brand_id: Optional[int]
    model_id: Optional[int]
    version_id: Optional[int]
    unit_price: float
    revenue: float
    margin: Optional[float]
    margin_percentage: Optional[float]
    volume: float
    year: int
    month: int
    period_label: Optional[str] = None
    month_name: Optional[str] = None
    type_sale_name: Optional[str] = None
    user_name: Optional[str] = None
    branch_name: Optional[str] = None
    agency_name: Optional[str] = None
    brand_name: Optional[str] = None
    model_name: Optional[str] = None
    version_name: Optional[str] = None
    active: bool = True
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    total_records: int = 0


@dataclass(frozen=True)
class PaginationState:
    page: int = 1
    page_size: int = 25
    total_records: int = 0
    total_pages: int = 1

    def merged(self, patch: Mapping[str, Any]) -> "PaginationState":
        """Apply a partial pagination patch; missing keys keep their current value."""
        known = {f.name for f in fields(self)}
        updates = {k: int(v) for k, v in patch.items() if k in known and v is not None}
        return replace(self, **updates)


@dataclass(frozen=True)
class SiteAssignment:
    assignment_id: int = 0
    groupement_id: int = 0
    groupement_name: str = ""
    site_id: int = 0
    site_name: str = ""
    site_type: SiteType = SiteType.BRANCH
    active: bool = True

    @property
    def is_usable(self) -> bool:
        return self.site_id > 0 and bool(self.groupement_name.strip())

    @property
    def is_complete(self) -> bool:
        return bool(self.site_name) and bool(self.groupement_name) and self.groupement_id > 0


@dataclass(frozen=True)
class Period:
    id: int
    year: int
    month: int
    week: int = 0
    name: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    type_period_id: int = 0
    active: bool = True

    @property
    def sort_key(self) -> Tuple[int, int, int, int]:
        return (self.year, self.month, self.week, self.id)


@dataclass(frozen=True)
class Groupement:
    id: int
    name: str = ""
    active: bool = False


@dataclass(frozen=True)
class Site:
    id: int
    name: str = ""
    active: bool = False
    # agencies may report the branch they hang off
    parent_branch_id: Optional[int] = None


@dataclass(frozen=True)
class Brand:
    id: int
    name: str = ""
    branch_id: Optional[int] = None
    agency_id: Optional[int] = None
    active: bool = False
    average_sale_price: float = 0.0
    tm_direct: float = 0.0
    tm_inter_group: float = 0.0


@dataclass(frozen=True)
class UserRecord:
    id: int
    full_name: str = ""
    username: str = ""
    email: str = ""
    site_id: Optional[int] = None
    site_name: str = ""
    groupement_type: str = ""
    active: bool = False


@dataclass(frozen=True)
class UserSiteLink:
    id: int
    groupement_id: int = 0
    groupement_name: str = ""
    site_id: int = 0
    site_name: str = ""
    active: bool = True

    @property
    def site_type(self) -> SiteType:
        return site_type_for(self.groupement_name)


@dataclass(frozen=True)
class Objective:
    id: int
    period_id: int = 0
    site_id: int = 0
    groupement_id: int = 0
    type_sale_id: int = 0
    type_objective_id: int = 0
    brand_id: Optional[int] = None
    model_id: Optional[int] = None
    version_id: Optional[int] = None
    volume: float = 0.0
    price: float = 0.0
    revenue: float = 0.0
    margin: float = 0.0
    period_name: Optional[str] = None
    site_name: Optional[str] = None


@dataclass(frozen=True)
class CountStat:
    total: int = 0
    active: int = 0

    def __post_init__(self) -> None:
        # active can never exceed total
        if self.active > self.total:
            object.__setattr__(self, "active", self.total)

    def __add__(self, other: "CountStat") -> "CountStat":
        return CountStat(total=self.total + other.total, active=self.active + other.active)


STAT_CATEGORIES = (
    "users",
    "groupements",
    "branches",
    "agencies",
    "brands",
    "sites",
    "user_site_links",
)


@dataclass(frozen=True)
class DashboardStats:
    users: CountStat = field(default_factory=CountStat)
    groupements: CountStat = field(default_factory=CountStat)
    branches: CountStat = field(default_factory=CountStat)
    agencies: CountStat = field(default_factory=CountStat)
    brands: CountStat = field(default_factory=CountStat)
    sites: CountStat = field(default_factory=CountStat)
    user_site_links: CountStat = field(default_factory=CountStat)

    @classmethod
    def empty(cls) -> "DashboardStats":
        return cls()

    def as_dict(self) -> Dict[str, Dict[str, int]]:
        return {name: {"total": stat.total, "active": stat.active} for name, stat in self.items()}

    def items(self) -> Tuple[Tuple[str, CountStat], ...]:
        return tuple((name, getattr(self, name)) for name in STAT_CATEGORIES)


NO_ACTIVE_PERIOD_LABEL = "no active period"


@dataclass(frozen=True)
class DashboardPeriodKpis:
    period_label: str = NO_ACTIVE_PERIOD_LABEL
    objective_count: int = 0
    sale_count: int = 0

    @classmethod
    def empty(cls) -> "DashboardPeriodKpis":
        return cls()


@dataclass(frozen=True)
class UserIdentity:
    """Who the dashboard is computed for.

    ``user`` holds the session user fields, ``details`` the richer profile
    (which may nest the untouched backend row under ``raw``).
    """

    user_id: int = 0
    user: Mapping[str, Any] = field(default_factory=dict)
    details: Mapping[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> Tuple[int, Tuple[Tuple[str, str], ...]]:
        sources = (self.user, self.details, self.raw)
        flat = sorted((str(k), repr(v)) for src in sources for k, v in src.items() if k != "raw")
        return (self.user_id, tuple(flat))

    @property
    def raw(self) -> Mapping[str, Any]:
        raw = self.details.get("raw") if isinstance(self.details, Mapping) else None
        return raw if isinstance(raw, Mapping) else {}
