from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict

import pandas as pd

from core.data import REPASSE, empty_records, round_half_up
from core.filters import DashboardFilters

NO_SELLER = "-"


def compute_top_seller(filtered: pd.DataFrame) -> Dict[str, Any]:
    """Seller with the most sales, Repasse excluded.

    Ties go to the seller that appears first in record order.
    """
    if filtered.empty or "vendedor" not in filtered.columns:
        return {"name": NO_SELLER, "count": 0}
    base = filtered.dropna(subset=["vendedor"])
    base = base[base["vendedor"] != REPASSE]
    if base.empty:
        return {"name": NO_SELLER, "count": 0}

    # sort=False keeps first-encounter order, and idxmax returns the first maximum.
    counts = base.groupby("vendedor", sort=False).size()
    return {"name": str(counts.idxmax()), "count": int(counts.max())}


def compute_avg_stock_time(filtered: pd.DataFrame) -> str:
    """Mean days in stock over rows with dias > 0, one decimal place; "0" when none qualify."""
    if filtered.empty or "dias" not in filtered.columns:
        return "0"
    dias = pd.to_numeric(filtered["dias"], errors="coerce")
    valid = dias[dias > 0]
    if valid.empty:
        return "0"
    return f"{round_half_up(valid.mean(), 1):.1f}"


def compute_repasse(records: pd.DataFrame) -> Dict[str, Any]:
    """Repasse units and revenue over the whole store, ignoring any selection."""
    if records.empty or "vendedor" not in records.columns:
        return {"units": 0, "revenue": 0.0, "avg_revenue": 0.0}
    repasse = records[records["vendedor"] == REPASSE]
    units = int(len(repasse))
    revenue = float(pd.to_numeric(repasse["valor_venda"], errors="coerce").sum()) if units else 0.0
    avg_revenue = revenue / units if units > 0 else 0.0
    return {"units": units, "revenue": revenue, "avg_revenue": avg_revenue}


def compute_overview(filters: DashboardFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    records: pd.DataFrame = ctx.get("records", empty_records())
    filtered: pd.DataFrame = ctx.get("filtered_records", empty_records())
    goals: Dict[str, float] = ctx.get("goals", {}) or {}

    top = compute_top_seller(filtered)
    return {
        "filters": asdict(filters),
        "kpis": {
            "top_seller_name": top["name"],
            "top_seller_count": top["count"],
            "avg_stock_time": compute_avg_stock_time(filtered),
        },
        "repasse": compute_repasse(records),
        "sellers": list(ctx.get("sellers", []) or []),
        "goal_sellers": list(ctx.get("goal_sellers", []) or []),
        "goals": {k: float(v) for k, v in goals.items()},
        "row_counts": {"records": int(len(records)), "filtered": int(len(filtered))},
    }
