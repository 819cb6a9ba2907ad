from __future__ import annotations

from dataclasses import asdict
import logging
import math
from typing import Any, Dict, Literal, Optional

import numpy as np
import pandas as pd
from fastapi import Body, Depends, FastAPI, Query
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.responses import Response

from console_api.schemas import IdentityModel, SaleFormModel
from console_core import config
from console_core.canonical import extract_pagination, normalize_many, normalize_sale_record
from console_core.client import ApiClient
from console_core.engine import AggregationEngine, DashboardState
from console_core.filters import normalize_scope
from console_core.metrics import compute_dashboard_payload, stats_to_csv
from console_core.models import PaginationState
from console_core.payloads import SaleFormState, build_create_payload, build_update_payload
from console_core.repositories import Repositories, build_repositories

config.configure_logging()

app = FastAPI(title="Sales Console API", version="0.1.0")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

Mode = Literal["global", "scoped"]


class EngineRegistry:
    """The global engine, one scoped engine per user, and the sales list pagination.

    Scoped dashboards never share state: each user id owns its engine.
    """

    def __init__(self, repos: Repositories):
        self.repos = repos
        self.global_engine = AggregationEngine(repos, "global")
        self.scoped_engines: Dict[int, AggregationEngine] = {}
        self.sales_pagination = PaginationState()

    def engine(self, mode: str, user_id: int = 0, *, create: bool = False) -> Optional[AggregationEngine]:
        if mode == "global":
            return self.global_engine
        engine = self.scoped_engines.get(user_id)
        if engine is None and create:
            engine = self.scoped_engines[user_id] = AggregationEngine(self.repos, "scoped")
        return engine

    def state(self, mode: str, user_id: int = 0) -> DashboardState:
        engine = self.engine(mode, user_id)
        return engine.state if engine is not None else DashboardState()


_registry: Optional[EngineRegistry] = None


def get_registry() -> EngineRegistry:
    global _registry
    if _registry is None:
        _registry = EngineRegistry(build_repositories(ApiClient()))
    return _registry


def _json(data: object) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except Exception:
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(
        content=jsonable_encoder(
            data,
            custom_encoder={
                type(pd.NA): lambda _: None,
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                pd.Timestamp: lambda ts: ts.isoformat(),
            },
        )
    )


def _error(exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=500, content={"error": str(exc), "type": type(exc).__name__})


def _missing_user(mode: str, user_id: int) -> Optional[JSONResponse]:
    if mode == "scoped" and user_id <= 0:
        return JSONResponse(
            status_code=422,
            content={"error": "A positive user_id is required for the scoped dashboard.", "type": "ValueError"},
        )
    return None


@app.get("/dashboard/{mode}")
def dashboard_state(
    mode: Mode,
    user_id: int = Query(default=0),
    registry: EngineRegistry = Depends(get_registry),
):
    rejected = _missing_user(mode, user_id)
    if rejected is not None:
        return rejected
    try:
        return _json(compute_dashboard_payload(registry.state(mode, user_id), mode))
    except Exception as exc:
        logger.exception("dashboard_state failed")
        return _error(exc)


@app.post("/dashboard/{mode}/reload")
async def dashboard_reload(
    mode: Mode,
    identity: Optional[IdentityModel] = None,
    registry: EngineRegistry = Depends(get_registry),
):
    raw = identity.model_dump() if identity is not None else {}
    scope = normalize_scope(raw, mode=mode)
    rejected = _missing_user(mode, scope.identity.user_id)
    if rejected is not None:
        return rejected
    try:
        engine = registry.engine(mode, scope.identity.user_id, create=True)
        state = await engine.reload(scope.identity if scope.scoped else None)
        return _json(compute_dashboard_payload(state, mode))
    except Exception as exc:
        logger.exception("dashboard_reload failed")
        return _error(exc)


@app.post("/dashboard/{mode}/clear-error")
def dashboard_clear_error(
    mode: Mode,
    user_id: int = Query(default=0),
    registry: EngineRegistry = Depends(get_registry),
):
    rejected = _missing_user(mode, user_id)
    if rejected is not None:
        return rejected
    try:
        engine = registry.engine(mode, user_id)
        state = engine.clear_error() if engine is not None else DashboardState()
        return _json(compute_dashboard_payload(state, mode))
    except Exception as exc:
        logger.exception("dashboard_clear_error failed")
        return _error(exc)


@app.get("/dashboard/{mode}/export")
def dashboard_export(
    mode: Mode,
    user_id: int = Query(default=0),
    registry: EngineRegistry = Depends(get_registry),
):
    rejected = _missing_user(mode, user_id)
    if rejected is not None:
        return rejected
    csv_bytes = stats_to_csv(registry.state(mode, user_id).stats).encode("utf-8")
    filename = f"dashboard-{mode}.csv" if mode == "global" else f"dashboard-{mode}-{user_id}.csv"
    return Response(content=csv_bytes, media_type="text/csv", headers={"Content-Disposition": f"attachment; filename={filename}"})


@app.get("/sales")
async def sales_list(
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=25, ge=1),
    registry: EngineRegistry = Depends(get_registry),
):
    try:
        raw = await registry.repos.sales.list(page, page_size)
        records = normalize_many(raw, normalize_sale_record)
        hint = records[0].total_records if records else 0
        patch = extract_pagination(raw, hint)
        registry.sales_pagination = registry.sales_pagination.merged({"page": page, "page_size": page_size, **patch})
        return _json({
            "items": [asdict(r) for r in records],
            "pagination": asdict(registry.sales_pagination),
        })
    except Exception as exc:
        logger.exception("sales_list failed")
        return _error(exc)


@app.post("/sales")
async def sales_create(form: SaleFormModel, registry: EngineRegistry = Depends(get_registry)):
    try:
        values: Dict[str, Any] = {k: v for k, v in form.model_dump().items() if v is not None}
        payload = build_create_payload(SaleFormState(**values))
        result = await registry.repos.sales.create(payload)
        return _json({"payload": payload, "result": result})
    except Exception as exc:
        logger.exception("sales_create failed")
        return _error(exc)


@app.patch("/sales/{sale_id}")
async def sales_update(
    sale_id: int,
    patch: Dict[str, Any] = Body(...),
    registry: EngineRegistry = Depends(get_registry),
):
    try:
        payload = build_update_payload(patch)
        result = await registry.repos.sales.update(sale_id, payload)
        return _json({"payload": payload, "result": result})
    except Exception as exc:
        logger.exception("sales_update failed")
        return _error(exc)
