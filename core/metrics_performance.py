from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, Iterable, Optional

import numpy as np
import pandas as pd

from core.charts import model_year_chart, revenue_profit_chart, to_vega_spec, units_vs_goal_chart
from core.data import REPASSE, empty_records
from core.filters import DashboardFilters

PERFORMANCE_COLUMNS = ["vendedor", "units", "revenue", "net_profit", "avg_stock_time", "goal", "goal_attainment"]


def compute_seller_performance(
    filtered: pd.DataFrame,
    sellers: Iterable[str],
    goals: Optional[Dict[str, float]] = None,
) -> pd.DataFrame:
    """One row per seller (in the given order, Repasse excluded) with sales against goal.

    Sellers with no sales get zeros; goal_attainment is NaN when the goal is 0.
    """
    goals = goals or {}
    order = [s for s in dict.fromkeys(sellers) if s != REPASSE]
    if not order:
        return pd.DataFrame(columns=PERFORMANCE_COLUMNS)

    base = filtered[filtered["vendedor"].isin(order)].copy() if not filtered.empty else empty_records()
    base["dias_valid"] = pd.to_numeric(base["dias"], errors="coerce").where(lambda s: s > 0)
    agg = (
        base.groupby("vendedor", sort=False)
        .agg(
            units=("valor_venda", "size"),
            revenue=("valor_venda", "sum"),
            net_profit=("lucro_liquido", "sum"),
            avg_stock_time=("dias_valid", "mean"),
        )
        .reindex(order)
    )
    perf = agg.rename_axis("vendedor").reset_index()
    perf["units"] = perf["units"].fillna(0).astype(int)
    perf["revenue"] = perf["revenue"].fillna(0.0).astype(float)
    perf["net_profit"] = perf["net_profit"].fillna(0.0).astype(float)
    perf["avg_stock_time"] = perf["avg_stock_time"].astype(float).round(1)
    perf["goal"] = perf["vendedor"].map(lambda s: float(goals.get(s, 0) or 0))
    perf["goal_attainment"] = np.where(perf["goal"] > 0, perf["units"] / perf["goal"].where(perf["goal"] > 0), np.nan)
    return perf[PERFORMANCE_COLUMNS]


def compute_sales_by_model_year(filtered: pd.DataFrame) -> pd.DataFrame:
    if filtered.empty:
        return pd.DataFrame(columns=["ano_mod", "vendedor", "units"])
    base = filtered.assign(ano_mod=filtered["ano_mod"].astype("string").fillna("N/D"))
    return (
        base.groupby(["ano_mod", "vendedor"])
        .size()
        .reset_index(name="units")
        .sort_values(["ano_mod", "vendedor"])
        .reset_index(drop=True)
    )


def compute_performance(filters: DashboardFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    filtered: pd.DataFrame = ctx.get("filtered_records", empty_records())
    goals: Dict[str, float] = ctx.get("goals", {}) or {}

    perf = compute_seller_performance(filtered, filters.selected_sellers, goals)
    if perf.empty:
        return {"filters": asdict(filters), "sellers": [], "totals": {}, "by_model_year": [], "charts": {}}

    total_goal = float(perf["goal"].sum())
    totals = {
        "units": int(perf["units"].sum()),
        "revenue": float(perf["revenue"].sum()),
        "net_profit": float(perf["net_profit"].sum()),
        "goal": total_goal,
        "goal_attainment": (float(perf["units"].sum()) / total_goal) if total_goal > 0 else None,
    }

    ranked = perf.sort_values("units", ascending=False, kind="stable").reset_index(drop=True)
    ranked.insert(0, "rank", ranked.index + 1)

    by_year = compute_sales_by_model_year(filtered)
    charts: Dict[str, Any] = {
        "units_vs_goal": to_vega_spec(units_vs_goal_chart(perf)),
        "revenue_profit": to_vega_spec(revenue_profit_chart(perf)),
    }
    if not by_year.empty:
        charts["model_year"] = to_vega_spec(model_year_chart(by_year))

    return {
        "filters": asdict(filters),
        "sellers": ranked.head(filters.top_n).to_dict(orient="records"),
        "totals": totals,
        "by_model_year": by_year.to_dict(orient="records"),
        "charts": charts,
    }
