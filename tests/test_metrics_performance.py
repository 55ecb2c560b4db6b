"""
Per-seller performance against goals.
"""
import pandas as pd
import pytest

from core.data import filter_records, prepare_context
from core.filters import normalize_filters
from core.metrics_performance import compute_performance, compute_sales_by_model_year, compute_seller_performance


def test_seller_performance_follows_selection_order(sample_records: pd.DataFrame) -> None:
    filtered = filter_records(sample_records, ["B", "A", "Repasse", "Carla"])
    perf = compute_seller_performance(filtered, ["B", "A", "Repasse", "Carla"], {"A": 4, "B": 0})
    assert perf["vendedor"].tolist() == ["B", "A", "Carla"]

    rows = perf.set_index("vendedor")
    assert rows.loc["A", "units"] == 2
    assert rows.loc["A", "revenue"] == pytest.approx(3000.0)
    assert rows.loc["A", "net_profit"] == pytest.approx(250.0)
    assert rows.loc["A", "avg_stock_time"] == pytest.approx(10.0)
    assert rows.loc["A", "goal_attainment"] == pytest.approx(0.5)
    assert pd.isna(rows.loc["B", "goal_attainment"])
    assert rows.loc["Carla", "units"] == 0
    assert pd.isna(rows.loc["Carla", "avg_stock_time"])


def test_seller_performance_empty_selection(sample_records: pd.DataFrame) -> None:
    perf = compute_seller_performance(sample_records, [], {})
    assert perf.empty


def test_sales_by_model_year(sample_records: pd.DataFrame) -> None:
    by_year = compute_sales_by_model_year(sample_records)
    counts = {(r.ano_mod, r.vendedor): r.units for r in by_year.itertuples()}
    assert counts[("2019/2020", "A")] == 1
    assert counts[("2019/2020", "B")] == 1
    assert sum(counts.values()) == 4


def test_compute_performance_payload(sample_records: pd.DataFrame) -> None:
    data_ctx = {"records": sample_records, "sellers": ["A", "B", "Repasse"], "goals": {"A": 2.0, "B": 2.0}}
    f = normalize_filters({"selected_sellers": ["A", "B"]}, available_sellers=data_ctx["sellers"])
    payload = compute_performance(f, prepare_context(f, data_ctx))

    assert [r["vendedor"] for r in payload["sellers"]] == ["A", "B"]
    assert payload["sellers"][0]["rank"] == 1
    assert payload["totals"]["units"] == 3
    assert payload["totals"]["goal_attainment"] == pytest.approx(0.75)
    assert set(payload["charts"]) == {"units_vs_goal", "revenue_profit", "model_year"}
    assert "$schema" in payload["charts"]["units_vs_goal"]


def test_compute_performance_nothing_selected(sample_records: pd.DataFrame) -> None:
    data_ctx = {"records": sample_records, "sellers": ["A", "B", "Repasse"], "goals": {}}
    f = normalize_filters({"selected_sellers": []}, available_sellers=data_ctx["sellers"])
    payload = compute_performance(f, prepare_context(f, data_ctx))
    assert payload["sellers"] == []
    assert payload["charts"] == {}
