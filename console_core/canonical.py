from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, TypeVar

import pandas as pd

from console_core.models import (
    Brand,
    CanonicalSaleRecord,
    Groupement,
    Objective,
    Period,
    Site,
    UserRecord,
    UserSiteLink,
)

T = TypeVar("T")

# Wire aliases per canonical field, probed left to right.
SALE_ALIASES: Dict[str, Tuple[str, ...]] = {
    "id": ("id", "Id", "venteId", "VenteId"),
    "type_sale_id": ("idTypeVente", "typeVenteId", "TypeVenteId"),
    "user_id": ("idUser", "userId", "UserId"),
    "branch_id": ("idFiliale", "filialeId", "IdFiliale"),
    "agency_id": ("idSuccursale", "succursaleId", "IdSuccursale"),
    "brand_id": ("idMarque", "marqueId", "IdMarque"),
    "model_id": ("idModele", "modeleId", "IdModele"),
    "version_id": ("idVersion", "versionId", "IdVersion"),
    "unit_price": ("prixVente", "price", "Price"),
    "revenue": ("chiffreAffaires", "chiffreAffaire", "revenue"),
    "margin": ("marge", "margin", "Marge"),
    "margin_percentage": ("margePercentage", "tmDirect", "tmInterGroupe"),
    "volume": ("volume", "Volume"),
    "year": ("venteYear", "year", "Year"),
    "month": ("venteMonth", "month", "Month"),
    "total_records": ("totalRecords", "totalrecords", "TotalRecords"),
    "active": ("active", "Active"),
    "created_at": ("createdAt", "CreatedAt"),
    "updated_at": ("updatedAt", "UpdatedAt"),
}

SALE_TEXT_ALIASES: Dict[str, Tuple[str, ...]] = {
    "period_label": ("ventePeriod", "period"),
    "month_name": ("venteMonthName", "monthName"),
    "type_sale_name": ("typeVenteName", "type_vente_name", "TypeVenteName"),
    "user_name": ("userName", "UserName"),
    "branch_name": ("filialeName", "FilialeName"),
    "agency_name": ("succursaleName", "SuccursaleName"),
    "brand_name": ("marqueName", "MarqueName", "nom"),
    "model_name": ("modeleName", "ModeleName"),
    "version_name": ("versionName", "VersionName"),
}

ARRAY_PATHS: Tuple[Tuple[str, ...], ...] = (
    (),
    ("data",),
    ("data", "data"),
    ("data", "items"),
    ("data", "results"),
    ("items",),
    ("results",),
)

PAGINATION_PATHS: Tuple[Tuple[str, ...], ...] = (
    ("pagination",),
    ("data", "pagination"),
    ("data", "data", "pagination"),
    ("meta",),
    ("data", "meta"),
)

DEFAULT_PAGE_SIZE = 25

_FALSE_TOKENS = {"false", "0", "no", "off", ""}


@dataclass(frozen=True)
class Probe:
    """Outcome of one extraction attempt: ``found`` tells a hit from a miss."""

    found: bool
    value: Any = None


MISS = Probe(False)


def probe(raw: Any, aliases: Iterable[str]) -> Probe:
    if not isinstance(raw, Mapping):
        return MISS
    for alias in aliases:
        value = raw.get(alias)
        if value is not None:
            return Probe(True, value)
    return MISS


def dig(payload: Any, path: Sequence[str]) -> Probe:
    current = payload
    for key in path:
        if not isinstance(current, Mapping) or key not in current:
            return MISS
        current = current[key]
    if current is None:
        return MISS
    return Probe(True, current)


def first_match(payload: Any, paths: Iterable[Sequence[str]], accept: Callable[[Any], bool]) -> Probe:
    for path in paths:
        hit = dig(payload, path)
        if hit.found and accept(hit.value):
            return hit
    return MISS


# ---------------- Scalar coercion ----------------
def as_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, (Mapping, list, tuple, set)):
        return None
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        out = pd.to_numeric(value, errors="coerce")
        if out is None or pd.isna(out):
            return None
        out = float(out)
    except (TypeError, ValueError, OverflowError):
        # ints beyond float range come back from pandas untouched
        return None
    if math.isinf(out):
        return None
    return out


def as_number(value: Any, default: float = 0.0) -> float:
    out = as_float(value)
    return default if out is None else out


def as_int(value: Any, default: int = 0) -> int:
    out = as_float(value)
    return default if out is None else int(out)


def as_foreign_key(value: Any) -> Optional[int]:
    out = as_float(value)
    if out is None or out <= 0:
        return None
    return int(out)


def as_flag(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() not in _FALSE_TOKENS
    if isinstance(value, (int, float)):
        return value != 0
    return bool(value)


def first_text(raw: Any, aliases: Iterable[str]) -> Optional[str]:
    if not isinstance(raw, Mapping):
        return None
    for alias in aliases:
        value = raw.get(alias)
        if isinstance(value, str) and value.strip():
            return value
    return None


def _number_field(raw: Any, aliases: Iterable[str], default: float = 0.0) -> float:
    return as_number(probe(raw, aliases).value, default)


def _int_field(raw: Any, aliases: Iterable[str], default: int = 0) -> int:
    return as_int(probe(raw, aliases).value, default)


def _key_field(raw: Any, aliases: Iterable[str]) -> Optional[int]:
    return as_foreign_key(probe(raw, aliases).value)


def _optional_number(raw: Any, aliases: Iterable[str]) -> Optional[float]:
    hit = probe(raw, aliases)
    return as_float(hit.value) if hit.found else None


def _flag_field(raw: Any, aliases: Iterable[str], default: bool) -> bool:
    return as_flag(probe(raw, aliases).value, default)


def _stamp(raw: Any, aliases: Iterable[str]) -> Optional[str]:
    hit = probe(raw, aliases)
    return str(hit.value) if hit.found else None


# ---------------- Envelope extraction ----------------
def extract_array(payload: Any) -> List[Any]:
    hit = first_match(payload, ARRAY_PATHS, lambda v: isinstance(v, list))
    return list(hit.value) if hit.found else []


def extract_pagination(payload: Any, row_count_hint: int = 0) -> Dict[str, int]:
    hint = as_int(row_count_hint, 0)
    hit = first_match(payload, PAGINATION_PATHS, lambda v: isinstance(v, Mapping))
    if not hit.found:
        return {"total_records": hint, "total_pages": 1} if hint > 0 else {}

    source: Mapping[str, Any] = hit.value
    total_records = as_int(probe(source, ("totalRecords", "totalCount", "itemsOnPage")).value, hint)
    page_size = as_int(probe(source, ("pageSize", "limit")).value, hint)
    if page_size <= 0:
        page_size = DEFAULT_PAGE_SIZE
    page = max(1, as_int(source.get("page"), 1))
    total_pages = as_int(source.get("totalPages"), 0)
    if total_pages <= 0:
        total_pages = max(1, math.ceil(total_records / page_size))
    return {
        "page": page,
        "page_size": page_size,
        "total_records": max(0, total_records),
        "total_pages": total_pages,
    }


def normalize_many(payload: Any, normalizer: Callable[[Any], T]) -> List[T]:
    return [normalizer(row) for row in extract_array(payload)]


# ---------------- Entity normalizers ----------------
def normalize_sale_record(raw: Any, *, today: Optional[date] = None) -> CanonicalSaleRecord:
    today = today or date.today()
    if not isinstance(raw, Mapping):
        raw = {}
    a = SALE_ALIASES
    texts = {name: first_text(raw, aliases) for name, aliases in SALE_TEXT_ALIASES.items()}
    return CanonicalSaleRecord(
        id=_int_field(raw, a["id"]),
        type_sale_id=_int_field(raw, a["type_sale_id"]),
        user_id=_int_field(raw, a["user_id"]),
        branch_id=_key_field(raw, a["branch_id"]),
        agency_id=_key_field(raw, a["agency_id"]),
        brand_id=_key_field(raw, a["brand_id"]),
        model_id=_key_field(raw, a["model_id"]),
        version_id=_key_field(raw, a["version_id"]),
        unit_price=_number_field(raw, a["unit_price"]),
        revenue=_number_field(raw, a["revenue"]),
        margin=_optional_number(raw, a["margin"]),
        margin_percentage=_optional_number(raw, a["margin_percentage"]),
        volume=_number_field(raw, a["volume"]),
        year=_int_field(raw, a["year"], today.year),
        month=_int_field(raw, a["month"], today.month),
        active=_flag_field(raw, a["active"], True),
        created_at=_stamp(raw, a["created_at"]),
        updated_at=_stamp(raw, a["updated_at"]),
        total_records=_int_field(raw, a["total_records"]),
        **texts,
    )


def normalize_groupement(raw: Any) -> Groupement:
    return Groupement(
        id=_int_field(raw, ("id", "Id", "idGroupement", "IdGroupement")),
        name=first_text(raw, ("name", "Name", "groupement_name", "GroupementName")) or "",
        active=_flag_field(raw, ("active", "Active"), False),
    )


def normalize_site(raw: Any) -> Site:
    return Site(
        id=_int_field(raw, ("id", "Id", "idSite", "SiteId")),
        name=first_text(raw, ("name", "Name", "site_name", "SiteName")) or "",
        active=_flag_field(raw, ("active", "Active"), False),
        parent_branch_id=_key_field(raw, ("idFiliale", "filialeId", "IdFiliale")),
    )


def normalize_brand(raw: Any) -> Brand:
    return Brand(
        id=_int_field(raw, ("id", "Id", "idMarque", "IdMarque")),
        name=first_text(raw, ("name", "Name", "nom", "marqueName")) or "",
        branch_id=_key_field(raw, ("idFiliale", "filialeId", "IdFiliale")),
        agency_id=_key_field(raw, ("idSuccursale", "succursaleId", "IdSuccursale")),
        active=_flag_field(raw, ("active", "Active"), False),
        average_sale_price=_number_field(raw, ("averageSalePrice", "AverageSalePrice")),
        tm_direct=_number_field(raw, ("tmDirect", "TmDirect")),
        tm_inter_group=_number_field(raw, ("tmInterGroupe", "TmInterGroupe")),
    )


def normalize_user(raw: Any) -> UserRecord:
    return UserRecord(
        id=_int_field(raw, ("UserId", "userId", "id", "Id")),
        full_name=first_text(raw, ("FullName", "full_name", "fullName")) or "",
        username=first_text(raw, ("Username", "username", "userName")) or "",
        email=first_text(raw, ("Email", "email")) or "",
        site_id=_key_field(raw, ("SiteId", "siteId", "site_id")),
        site_name=first_text(raw, ("SiteName", "site_name", "siteName")) or "",
        groupement_type=first_text(raw, ("GroupementType", "groupement_type", "groupementType")) or "",
        active=_flag_field(raw, ("UserActive", "active", "Active"), False),
    )


def normalize_user_site(raw: Any) -> UserSiteLink:
    return UserSiteLink(
        id=_int_field(raw, ("id", "Id", "UserSiteId", "userSiteId")),
        groupement_id=_int_field(raw, ("idGroupement", "groupementId", "IdGroupement", "GroupementId")),
        groupement_name=first_text(raw, ("groupement_name", "groupementName", "GroupementName", "GroupementType")) or "",
        site_id=_int_field(raw, ("idSite", "siteId", "IdSite", "SiteId")),
        site_name=first_text(raw, ("site_name", "siteName", "SiteName")) or "",
        active=_flag_field(raw, ("active", "Active", "UserSiteActive"), True),
    )


def normalize_period(raw: Any, *, today: Optional[date] = None) -> Period:
    today = today or date.today()
    return Period(
        id=_int_field(raw, ("id", "Id", "periodeId", "PeriodeId")),
        name=first_text(raw, ("name", "Name", "periodeName")),
        year=_int_field(raw, ("year", "Year"), today.year),
        month=_int_field(raw, ("month", "Month"), today.month),
        week=_int_field(raw, ("week", "Week")),
        start_date=first_text(raw, ("startedDate", "startDate", "StartedDate", "start_date")),
        end_date=first_text(raw, ("endDate", "EndDate", "end_date")),
        type_period_id=_int_field(raw, ("typePeriodeId", "typePeriodId", "TypePeriodeId")),
        active=_flag_field(raw, ("active", "Active"), True),
    )


def normalize_objective(raw: Any) -> Objective:
    return Objective(
        id=_int_field(raw, ("id", "Id", "objectifId")),
        period_id=_int_field(raw, ("periodeID", "periodeId", "PeriodeId", "periodId")),
        site_id=_int_field(raw, ("SiteID", "siteId", "SiteId")),
        groupement_id=_int_field(raw, ("groupementID", "groupementId", "GroupementId")),
        type_sale_id=_int_field(raw, ("typeVenteID", "typeVenteId")),
        type_objective_id=_int_field(raw, ("typeObjectifId", "typeObjectifID")),
        brand_id=_key_field(raw, ("marqueID", "marqueId")),
        model_id=_key_field(raw, ("modeleID", "modeleId")),
        version_id=_key_field(raw, ("versionID", "versionId")),
        volume=_number_field(raw, ("volume", "Volume")),
        price=_number_field(raw, ("price", "salePrice")),
        revenue=_number_field(raw, ("ChiffreDaffaire", "chiffreAffaires", "revenue")),
        margin=_number_field(raw, ("Marge", "marge", "margin")),
        period_name=first_text(raw, ("periodeName", "periodName")),
        site_name=first_text(raw, ("SiteName", "siteName")),
    )
