from __future__ import annotations

from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field


class IdentityModel(BaseModel):
    user_id: int = 0
    user: Dict[str, Any] = Field(default_factory=dict)
    details: Dict[str, Any] = Field(default_factory=dict)


class SaleFormModel(BaseModel):
    target_type: Literal["brand", "model", "version"] = "brand"
    type_sale_id: str = ""
    unit_price: str = "0"
    revenue: str = "0"
    volume: str = "0"
    year: Optional[str] = None
    month: Optional[str] = None
    branch_id: str = ""
    agency_id: str = ""
    brand_id: str = ""
    model_id: str = ""
    version_id: str = ""
    margin: str = ""
    margin_percentage: str = ""

