from __future__ import annotations

import logging
import math
from contextlib import asynccontextmanager
from typing import Literal

import numpy as np
import pandas as pd
from fastapi import Depends, FastAPI, Query
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from api.schemas import DashboardFiltersModel, GoalModel, SelectionModel, SellerModel, StateResponse
from core.config import configure_logging, get_config
from core.data import prepare_context
from core.errors import LoadFailure, ValidationFailure
from core.filters import DashboardFilters, normalize_filters
from core.metrics_overview import compute_overview
from core.metrics_performance import compute_performance, compute_seller_performance
from core.state import DashboardState

logger = logging.getLogger(__name__)

_state = DashboardState()


def get_state() -> DashboardState:
    return _state


@asynccontextmanager
async def lifespan(_app: FastAPI):
    configure_logging()
    try:
        _state.reload()
    except LoadFailure as exc:
        logger.error("Initial load failed: %s", exc)
    yield


app = FastAPI(title="Vendas Dashboard API", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_config().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


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
                np.ndarray: lambda arr: arr.tolist(),
            },
        )
    )


def _error(exc: Exception, status_code: int = 500) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": str(exc), "type": type(exc).__name__})


def _filters_and_ctx(model: DashboardFiltersModel | None, state: DashboardState) -> tuple[DashboardFilters, dict]:
    snap = state.snapshot()
    raw = model.model_dump() if model is not None else {}
    if raw.get("selected_sellers") is None:
        raw["selected_sellers"] = snap.selected_sellers
    filters = normalize_filters(raw, available_sellers=snap.sellers)
    return filters, prepare_context(filters, snap.as_data_ctx())


def _state_payload(state: DashboardState) -> dict:
    snap = state.snapshot()
    return StateResponse(
        sellers=snap.sellers,
        goal_sellers=snap.goal_sellers,
        selected_sellers=snap.selected_sellers,
        goals=snap.goals,
        loading=snap.loading,
        error=snap.error,
        rows=int(len(snap.records)),
    ).model_dump()


@app.get("/state")
def get_dashboard_state(state: DashboardState = Depends(get_state)):
    return _json(_state_payload(state))


@app.post("/reload")
def reload_data(state: DashboardState = Depends(get_state)):
    try:
        state.reload()
        return _json(_state_payload(state))
    except LoadFailure as exc:
        logger.warning("reload failed: %s", exc)
        return _error(exc, status_code=502)
    except Exception as exc:
        logger.exception("reload failed")
        return _error(exc)


@app.post("/selection")
def set_selection(body: SelectionModel, state: DashboardState = Depends(get_state)):
    selection = state.select_sellers(body.selected_sellers)
    return _json({"selected_sellers": selection})


@app.put("/goals/{seller}")
def set_goal(seller: str, body: GoalModel, state: DashboardState = Depends(get_state)):
    try:
        value = state.set_goal(seller, body.value)
        return _json({"seller": seller, "goal": value})
    except ValidationFailure as exc:
        return _error(exc, status_code=422)


@app.post("/sellers")
def add_seller(body: SellerModel, state: DashboardState = Depends(get_state)):
    try:
        name = state.add_seller(body.name)
        return _json({"added": name, **_state_payload(state)})
    except ValidationFailure as exc:
        return _error(exc, status_code=422)


@app.delete("/sellers/{seller}")
def remove_seller(seller: str, confirm: bool = Query(default=False), state: DashboardState = Depends(get_state)):
    try:
        removed = state.remove_seller(seller, confirm=lambda _prompt: confirm)
        return _json({"removed": removed, **_state_payload(state)})
    except ValidationFailure as exc:
        return _error(exc, status_code=422)


@app.post("/overview")
def overview(filters: DashboardFiltersModel | None = None, state: DashboardState = Depends(get_state)):
    try:
        f, ctx = _filters_and_ctx(filters, state)
        return _json(compute_overview(f, ctx))
    except Exception as exc:
        logger.exception("overview failed")
        return _error(exc)


@app.post("/performance")
def performance(filters: DashboardFiltersModel | None = None, state: DashboardState = Depends(get_state)):
    try:
        f, ctx = _filters_and_ctx(filters, state)
        return _json(compute_performance(f, ctx))
    except Exception as exc:
        logger.exception("performance failed")
        return _error(exc)


@app.post("/export/{page}")
def export_page(
    page: Literal["records", "performance"],
    filters: DashboardFiltersModel | None = None,
    state: DashboardState = Depends(get_state),
):
    f, ctx = _filters_and_ctx(filters, state)
    if page == "records":
        export_df = ctx.get("filtered_records", pd.DataFrame())
    else:
        export_df = compute_seller_performance(ctx["filtered_records"], f.selected_sellers, ctx.get("goals", {}))
    csv_bytes = export_df.to_csv(index=False).encode("utf-8")
    return Response(
        content=csv_bytes,
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={page}.csv"},
    )
