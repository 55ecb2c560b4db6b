from __future__ import annotations

from typing import Any, Dict

import altair as alt
import pandas as pd

alt.data_transformers.disable_max_rows()


def to_vega_spec(chart: alt.TopLevelMixin) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def units_vs_goal_chart(perf: pd.DataFrame) -> alt.LayerChart:
    """Bars for units sold per seller with a tick at the goal."""
    hover = alt.selection_point(fields=["vendedor"], on="mouseover", empty="all")
    base = alt.Chart(perf).encode(
        x=alt.X("vendedor:N", title="Vendedor", sort=None, axis=alt.Axis(grid=False, labelAngle=0)),
    )
    bars = (
        base.mark_bar()
        .encode(
            y=alt.Y("units:Q", title="Vendas", axis=alt.Axis(format="d", gridDash=[4, 4], domain=False, ticks=False)),
            color=alt.Color("vendedor:N", legend=None),
            opacity=alt.condition(hover, alt.value(1), alt.value(0.6)),
            tooltip=[
                alt.Tooltip("vendedor:N", title="Vendedor"),
                alt.Tooltip("units:Q", title="Vendas"),
                alt.Tooltip("goal:Q", title="Meta"),
                alt.Tooltip("goal_attainment:Q", title="Atingimento", format=".0%"),
            ],
        )
        .add_params(hover)
    )
    goal_tick = base.mark_tick(color="#dc2626", thickness=3, size=40).encode(y=alt.Y("goal:Q"))
    return alt.layer(bars, goal_tick).properties(height=280)


def revenue_profit_chart(perf: pd.DataFrame) -> alt.Chart:
    long_df = perf.melt(
        id_vars="vendedor",
        value_vars=["revenue", "net_profit"],
        var_name="metric",
        value_name="value",
    )
    long_df["metric"] = long_df["metric"].map({"revenue": "Faturamento", "net_profit": "Lucro líquido"})
    return (
        alt.Chart(long_df)
        .mark_bar()
        .encode(
            x=alt.X("vendedor:N", title="Vendedor", sort=None, axis=alt.Axis(grid=False, labelAngle=0)),
            xOffset="metric:N",
            y=alt.Y("value:Q", title="R$", axis=alt.Axis(format="~s", gridDash=[4, 4], domain=False, ticks=False)),
            color=alt.Color("metric:N", title="Métrica"),
            tooltip=[
                alt.Tooltip("vendedor:N", title="Vendedor"),
                alt.Tooltip("metric:N", title="Métrica"),
                alt.Tooltip("value:Q", title="Valor", format=",.2f"),
            ],
        )
        .properties(height=280)
    )


def model_year_chart(by_year: pd.DataFrame) -> alt.Chart:
    return (
        alt.Chart(by_year)
        .mark_bar()
        .encode(
            x=alt.X("ano_mod:N", title="Ano/Modelo", sort=None, axis=alt.Axis(grid=False)),
            y=alt.Y("units:Q", title="Vendas", stack="zero", axis=alt.Axis(format="d", gridDash=[4, 4], domain=False, ticks=False)),
            color=alt.Color("vendedor:N", title="Vendedor"),
            tooltip=[
                alt.Tooltip("ano_mod:N", title="Ano/Modelo"),
                alt.Tooltip("vendedor:N", title="Vendedor"),
                alt.Tooltip("units:Q", title="Vendas"),
            ],
        )
        .properties(height=260)
    )
