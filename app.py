import logging
from contextlib import contextmanager
from typing import List, Optional

import streamlit as st

from core.config import configure_logging, get_config, resolve_source
from core.data import format_brl, format_currency_columns, format_percent_columns, load_sales_data, prepare_context
from core.errors import LoadFailure, ValidationFailure
from core.filters import normalize_filters
from core.metrics_overview import compute_overview
from core.metrics_performance import compute_performance, compute_seller_performance
from core.state import DashboardState

configure_logging()
logger = logging.getLogger(__name__)


# ---------- UI / layout helpers ----------
def inject_base_styles():
    if st.session_state.get("_base_css_injected"):
        return
    st.markdown(
        """
        <style>
        .card {border: 1px solid #374151;border-radius: 12px;padding: 16px;
               box-shadow: 0 1px 2px rgba(0,0,0,0.04); margin-bottom: 12px;}
        .card-title {font-weight: 600;font-size: 1.0rem;margin-bottom: 8px;}
        .chip-row {display: flex;flex-wrap: wrap;gap: 6px;margin-top: 6px;}
        .chip {background: #1f2937;border: 1px solid #374151;border-radius: 14px;padding: 4px 10px;font-size: 0.85rem;color: #d1d5db;}
        </style>
        """,
        unsafe_allow_html=True,
    )
    st.session_state["_base_css_injected"] = True


@contextmanager
def card(title: str):
    container = st.container()
    container.markdown(f"<div class='card'><div class='card-title'>{title}</div>", unsafe_allow_html=True)
    body = container.container()
    with body:
        yield body
    container.markdown("</div>", unsafe_allow_html=True)


def format_filter_summary(selected: List[str], sellers: List[str]) -> str:
    if not selected:
        chip = "Vendedores: nenhum"
    elif set(selected) >= set(sellers):
        chip = "Vendedores: todos"
    else:
        chip = f"Vendedores: {', '.join(selected)}"
    return f"<span class='chip'>{chip}</span>"


def get_dashboard_state() -> DashboardState:
    if "dashboard_state" not in st.session_state:
        st.session_state["dashboard_state"] = DashboardState()
        st.session_state["needs_load"] = True
    return st.session_state["dashboard_state"]


def load_data(state: DashboardState, source: Optional[str] = None) -> None:
    source = resolve_source(st.session_state, source)
    try:
        with st.spinner("Carregando dados..."):
            state.reload(lambda: load_sales_data(source))
        st.session_state["sync_seller_filter"] = True
    except LoadFailure as exc:
        logger.warning("load failed: %s", exc)
    st.session_state["needs_load"] = False


# ---------- Page sections ----------
def render_header(state: DashboardState):
    c1, c2 = st.columns([8, 2])
    with c1:
        st.title("Dashboard de Desempenho de Vendas")
        st.caption("Métricas e indicadores de performance da equipe comercial")
    with c2:
        if st.button("Atualizar", use_container_width=True):
            load_data(state)
            st.rerun()


def render_loader(state: DashboardState) -> bool:
    """Show loading/error states; returns True when the dashboard can render."""
    snap = state.snapshot()
    if snap.loading:
        st.info("Carregando dados...")
        return False
    if snap.error:
        st.error(snap.error)
        if st.button("Tentar novamente"):
            load_data(state)
            st.rerun()
        return False
    return True


def render_filter_bar(state: DashboardState):
    snap = state.snapshot()
    if st.session_state.pop("sync_seller_filter", False) or "seller_filter" not in st.session_state:
        st.session_state["seller_filter"] = [s for s in snap.selected_sellers if s in snap.sellers]
    selected = st.multiselect("Filtrar por vendedor", options=snap.sellers, key="seller_filter")
    if selected != snap.selected_sellers:
        state.select_sellers(selected)
    st.markdown(f"<div class='chip-row'>{format_filter_summary(selected, snap.sellers)}</div>", unsafe_allow_html=True)


def render_kpi_cards(overview: dict):
    kpis = overview["kpis"]
    cols = st.columns(2)
    cols[0].metric(
        "Top vendedor",
        kpis["top_seller_name"],
        delta=f"{kpis['top_seller_count']} vendas" if kpis["top_seller_count"] else None,
        help="Vendedor com mais vendas na seleção atual (Repasse não entra na disputa).",
    )
    cols[1].metric(
        "Tempo médio em estoque",
        f"{kpis['avg_stock_time']} dias",
        help="Média de dias em estoque considerando apenas registros com dias > 0.",
    )


def render_repasse_cards(overview: dict):
    rep = overview["repasse"]
    cols = st.columns(3)
    cols[0].metric("Repasse: unidades", f"{rep['units']:,}".replace(",", "."))
    cols[1].metric("Repasse: faturamento", format_brl(rep["revenue"]))
    cols[2].metric("Repasse: média por unidade", format_brl(rep["avg_revenue"]))


def render_goal_setter(state: DashboardState):
    snap = state.snapshot()
    for seller in snap.goal_sellers:
        c1, c2, c3 = st.columns([4, 3, 2])
        c1.markdown(f"**{seller}**")
        value = c2.number_input(
            "Meta",
            min_value=0.0,
            step=1.0,
            value=float(snap.goals.get(seller, 0.0)),
            key=f"goal_{seller}",
            label_visibility="collapsed",
        )
        if value != snap.goals.get(seller, 0.0):
            state.set_goal(seller, value)
        if c3.button("Remover", key=f"remove_{seller}"):
            st.session_state["pending_removal"] = seller

    pending = st.session_state.get("pending_removal")
    if pending:
        st.warning(f"Tem certeza que deseja remover {pending}?")
        y, n = st.columns(2)
        if y.button("Sim, remover"):
            state.remove_seller(pending, confirm=lambda _prompt: True)
            st.session_state.pop("pending_removal", None)
            st.session_state["sync_seller_filter"] = True
            st.rerun()
        if n.button("Cancelar"):
            st.session_state.pop("pending_removal", None)
            st.rerun()

    with st.form("add_seller", clear_on_submit=True):
        name = st.text_input("Novo vendedor")
        if st.form_submit_button("Adicionar"):
            try:
                state.add_seller(name)
                st.session_state["sync_seller_filter"] = True
                st.rerun()
            except ValidationFailure as exc:
                st.warning(str(exc))


def render_charts(performance: dict):
    charts = performance.get("charts", {})
    if not charts:
        st.info("Nenhum vendedor selecionado.")
        return
    c1, c2 = st.columns(2)
    with c1:
        st.markdown("**Vendas x Meta**")
        st.vega_lite_chart(charts["units_vs_goal"], use_container_width=True)
    with c2:
        st.markdown("**Faturamento e lucro por vendedor**")
        st.vega_lite_chart(charts["revenue_profit"], use_container_width=True)
    if "model_year" in charts:
        st.markdown("**Vendas por ano/modelo**")
        st.vega_lite_chart(charts["model_year"], use_container_width=True)


def render_performance_table(filters, ctx):
    perf = compute_seller_performance(ctx["filtered_records"], filters.selected_sellers, ctx["goals"])
    if perf.empty:
        return
    display = format_currency_columns(perf, ["revenue", "net_profit"])
    display = format_percent_columns(display, ["goal_attainment"])
    st.dataframe(display, hide_index=True, use_container_width=True)
    st.download_button(
        "Exportar CSV",
        data=perf.to_csv(index=False).encode("utf-8"),
        file_name="performance.csv",
        mime="text/csv",
    )


# ---------- UI setup ----------
st.set_page_config(page_title="Dashboard de Desempenho de Vendas", layout="wide")
inject_base_styles()

state = get_dashboard_state()
with st.sidebar:
    st.markdown("### Fonte de dados")
    source = st.text_input("Planilha (caminho ou URL)", value=get_config().data_source)
    if st.button("Carregar"):
        load_data(state, source)
        st.rerun()

if st.session_state.get("needs_load"):
    load_data(state)

render_header(state)
if not render_loader(state):
    st.stop()

with card("Filtros"):
    render_filter_bar(state)

snap = state.snapshot()
filters = normalize_filters({"selected_sellers": snap.selected_sellers}, available_sellers=snap.sellers)
ctx = prepare_context(filters, snap.as_data_ctx())
overview = compute_overview(filters, ctx)
performance = compute_performance(filters, ctx)

with card("Indicadores"):
    render_kpi_cards(overview)
with card("Repasse"):
    render_repasse_cards(overview)
with card("Metas por vendedor"):
    render_goal_setter(state)
with card("Gráficos"):
    render_charts(performance)
with card("Desempenho por vendedor"):
    render_performance_table(filters, ctx)
    attainment = performance.get("totals", {}).get("goal_attainment")
    if attainment is not None:
        st.caption(f"Atingimento geral da meta: {attainment:.0%}")
