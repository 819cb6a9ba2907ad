from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from typing import Any, Dict, Literal, Mapping, Optional, Tuple

from console_core.canonical import as_float
from console_core.models import CanonicalSaleRecord

TargetGranularity = Literal["brand", "model", "version"]

# canonical name -> (wire key, coercion kind)
SALE_WIRE_FIELDS: Dict[str, Tuple[str, str]] = {
    "type_sale_id": ("idTypeVente", "int"),
    "unit_price": ("prixVente", "number"),
    "revenue": ("chiffreAffaires", "number"),
    "volume": ("volume", "number"),
    "year": ("venteYear", "int"),
    "month": ("venteMonth", "int"),
    "branch_id": ("idFiliale", "key"),
    "agency_id": ("idSuccursale", "key"),
    "brand_id": ("idMarque", "key"),
    "model_id": ("idModele", "key"),
    "version_id": ("idVersion", "key"),
    "margin": ("marge", "key"),
    "margin_percentage": ("margePercentage", "key"),
}
_BY_WIRE_KEY = {wire: (wire, kind) for wire, kind in SALE_WIRE_FIELDS.values()}


def _today_year() -> str:
    return str(date.today().year)


def _today_month() -> str:
    return str(date.today().month)


@dataclass(frozen=True)
class SaleFormState:
    """Text state of the sale editor, one string per input."""

    target_type: TargetGranularity = "brand"
    type_sale_id: str = ""
    unit_price: str = "0"
    revenue: str = "0"
    volume: str = "0"
    year: str = field(default_factory=_today_year)
    month: str = field(default_factory=_today_month)
    branch_id: str = ""
    agency_id: str = ""
    brand_id: str = ""
    model_id: str = ""
    version_id: str = ""
    margin: str = ""
    margin_percentage: str = ""


@dataclass(frozen=True)
class PriceRef:
    """Catalog pricing of the selected brand, model or version."""

    unit_price: float = 0.0
    tm_direct: float = 0.0
    tm_inter_group: float = 0.0


def number_or(value: Any, fallback: float = 0) -> float:
    out = as_float(value)
    return fallback if out is None else out


def int_or(value: Any, fallback: int = 0) -> int:
    out = as_float(value)
    return fallback if out is None else int(out)


def nullable_key(value: Any) -> Optional[int]:
    """Outbound optional id: empty or non-positive means "no value"."""
    out = as_float(value)
    if out is None or out <= 0:
        return None
    return int(out) if out.is_integer() else out


def build_create_payload(form: SaleFormState) -> Dict[str, Any]:
    today = date.today()
    deep_model = form.target_type in ("model", "version")
    deep_version = form.target_type == "version"
    return {
        "idTypeVente": int_or(form.type_sale_id),
        "prixVente": number_or(form.unit_price),
        "chiffreAffaires": number_or(form.revenue),
        "volume": number_or(form.volume),
        "venteYear": int_or(form.year, today.year),
        "venteMonth": int_or(form.month, today.month),
        "idFiliale": nullable_key(form.branch_id),
        "idSuccursale": nullable_key(form.agency_id),
        "idMarque": nullable_key(form.brand_id),
        "idModele": nullable_key(form.model_id) if deep_model else None,
        "idVersion": nullable_key(form.version_id) if deep_version else None,
        "marge": nullable_key(form.margin),
        "margePercentage": nullable_key(form.margin_percentage),
    }


def _coerce_update(value: Any, kind: str) -> Any:
    if value is None:
        return None
    if kind == "key":
        return nullable_key(value)
    out = as_float(value)
    if out is None:
        return None
    return int(out) if kind == "int" else out


def build_update_payload(patch: Mapping[str, Any]) -> Dict[str, Any]:
    """Partial update body.

    Only keys present in ``patch`` are sent. A key mapped to ``None`` is sent
    as an explicit ``null`` (clear the field); a missing key leaves the stored
    value untouched.
    """
    payload: Dict[str, Any] = {}
    for key, value in patch.items():
        wire, kind = SALE_WIRE_FIELDS.get(key) or _BY_WIRE_KEY.get(key) or (key, "raw")
        payload[wire] = value if kind == "raw" else _coerce_update(value, kind)
    return payload


def _format_number(value: Optional[float]) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def sale_to_form_state(record: Optional[CanonicalSaleRecord]) -> SaleFormState:
    if record is None:
        return SaleFormState()
    if record.version_id:
        target: TargetGranularity = "version"
    elif record.model_id:
        target = "model"
    else:
        target = "brand"
    return SaleFormState(
        target_type=target,
        type_sale_id=_format_number(record.type_sale_id),
        unit_price=_format_number(record.unit_price) or "0",
        revenue=_format_number(record.revenue) or "0",
        volume=_format_number(record.volume) or "0",
        year=_format_number(record.year),
        month=_format_number(record.month),
        branch_id=_format_number(record.branch_id),
        agency_id=_format_number(record.agency_id),
        brand_id=_format_number(record.brand_id),
        model_id=_format_number(record.model_id),
        version_id=_format_number(record.version_id),
        margin=_format_number(record.margin),
        margin_percentage=_format_number(record.margin_percentage),
    )


def compute_pricing(form: SaleFormState, price_ref: Optional[PriceRef], *, inter_group: bool = False) -> SaleFormState:
    """Derive price, revenue and margin inputs from the catalog entry and the volume."""
    ref = price_ref or PriceRef()
    unit_price = ref.unit_price if ref.unit_price > 0 else 0.0
    volume = number_or(form.volume)
    ratio = ref.tm_inter_group if inter_group else ref.tm_direct

    revenue = unit_price * volume if unit_price > 0 and volume > 0 else 0.0
    margin = unit_price * ratio * volume if unit_price > 0 and ratio > 0 and volume > 0 else 0.0
    return replace(
        form,
        unit_price=f"{unit_price:.2f}" if unit_price > 0 else "0",
        revenue=f"{revenue:.2f}" if revenue > 0 else "0",
        margin=f"{margin:.2f}" if margin > 0 else "0",
        margin_percentage=f"{ratio * 100:.2f}" if ratio > 0 else "0",
    )
