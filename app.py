import logging
from contextlib import contextmanager
from datetime import date, datetime
from typing import Dict, List, Optional

import pandas as pd
import streamlit as st

from utmdash.columns import categorical_columns
from utmdash.config import load_settings
from utmdash.costs import SessionStore, apply_group_edits, set_frozen_balance, set_general_investment
from utmdash.data import format_brl, prepare_context
from utmdash.filters import (
    FilterState,
    ViewFilters,
    clear_filters,
    set_date_preset,
    set_search,
    switch_view,
    toggle_filter,
)
from utmdash.history import HistoryStore
from utmdash.insights import analyze_table
from utmdash.metrics_graphs import compute_graphs
from utmdash.metrics_overview import compute_overview
from utmdash.metrics_utm import compute_utm
from utmdash.parser import Table
from utmdash.sources import FILE_ERROR_MESSAGE, URL_SOURCE_NAME, SourceError, load_table_from_bytes, load_table_from_url
from utmdash.storage import JsonFileStorage

settings = load_settings()
logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger("utmdash.app")

st.set_page_config(page_title="utmdash", layout="wide")

VIEW_LABELS = {
    "central": "Análise Central",
    "utmdash": "UTM Dash",
    "graphs": "Gráficos",
    "history": "Histórico",
}
PRESET_LABELS = {
    "all": "Tudo",
    "today": "Hoje",
    "7days": "7 dias",
    "15days": "15 dias",
    "30days": "30 dias",
    "custom": "Personalizado",
}
OUTCOME_LABELS = {"pending": "Pendente", "profit": "Lucro", "loss": "Prejuízo"}


# ---------- UI / layout helpers ----------
def inject_base_styles():
    st.markdown(
        """
        <style>
        .app-top-bar {border-left: 4px solid #6366f1;padding: 2px 0 2px 12px;margin-bottom: 14px;}
        .breadcrumb {color: #64748b;font-size: 0.75rem;text-transform: uppercase;letter-spacing: 0.08em;}
        .page-title {font-size: 1.6rem;font-weight: 800;color: #0f172a;}
        .card {border-radius: 16px;padding: 14px 18px;margin-bottom: 14px;background: #f8fafc;}
        .card-header {display: flex;align-items: baseline;gap: 10px;margin-bottom: 6px;}
        .card-title {font-weight: 700;color: #1e293b;}
        .card-actions {margin-left: auto;font-size: 0.8rem;color: #6366f1;}
        .chip-row {display: flex;flex-wrap: wrap;gap: 4px;}
        .chip {border-radius: 999px;padding: 2px 10px;font-size: 0.8rem;background: #eef2ff;color: #4338ca;}
        </style>
        """,
        unsafe_allow_html=True,
    )


@contextmanager
def card(title: str, actions: Optional[str] = None):
    container = st.container()
    container.markdown(
        f"""
        <div class="card">
          <div class="card-header">
            <div class="card-title">{title}</div>
            <div class="card-actions">{actions or ""}</div>
          </div>
        """,
        unsafe_allow_html=True,
    )
    body = container.container()
    with body:
        yield body
    container.markdown("</div>", unsafe_allow_html=True)


def format_filter_summary(state: FilterState) -> str:
    period_chip = f"Período: {PRESET_LABELS.get(state.date_preset, state.date_preset)}"
    if state.date_preset == "custom" and state.custom_start and state.custom_end:
        period_chip = f"Período: {state.custom_start:%d/%m/%Y}–{state.custom_end:%d/%m/%Y}"
    chips = [period_chip]
    for col, vals in state.columns.items():
        if vals:
            chips.append(f"{col}: {', '.join(vals)}")
    if state.search:
        chips.append(f"Busca: {state.search}")
    return "".join([f"<span class='chip'>{txt}</span>" for txt in chips])


def render_page_header(title: str, breadcrumb: str, filter_summary_html: str, export_df: Optional[pd.DataFrame] = None, export_name: str = "export.csv"):
    top = st.container()
    c1, c2 = top.columns([8, 2])
    with c1:
        st.markdown(
            f"<div class='app-top-bar'><div class='breadcrumb'>{breadcrumb}</div><div class='page-title'>{title}</div></div>",
            unsafe_allow_html=True,
        )
    with c2:
        if export_df is not None and not export_df.empty:
            st.download_button(
                "Exportar CSV",
                data=export_df.to_csv(index=False).encode("utf-8"),
                file_name=export_name,
                mime="text/csv",
            )
    st.markdown(f"<div class='chip-row'>{filter_summary_html}</div>", unsafe_allow_html=True)


# ---------- State ----------
@st.cache_resource
def get_storage(path: str) -> JsonFileStorage:
    return JsonFileStorage(path)


storage = get_storage(str(settings.state_path))
session_store = SessionStore(storage)
history = HistoryStore(storage, limit=settings.history_limit)


def init_state():
    ss = st.session_state
    if ss.get("_initialized"):
        return
    ss["table"] = None
    ss["filters"] = FilterState()
    ss["views"] = ViewFilters()
    ss["costs"] = session_store.load_costs()
    ss["linked"] = session_store.load_linked_filters()
    ss["insights"] = None
    ss["widget_gen"] = 0
    ss["_initialized"] = True


def update_filters(new_state: FilterState):
    st.session_state["filters"] = new_state


def reset_filter_widgets():
    st.session_state["widget_gen"] += 1


def update_costs(new_costs):
    st.session_state["costs"] = new_costs
    session_store.save_costs(new_costs)


def activate_table(table: Table, source_name: Optional[str] = None):
    st.session_state["table"] = table
    st.session_state["filters"] = FilterState()
    st.session_state["views"] = ViewFilters()
    st.session_state["insights"] = None
    st.session_state.pop("nav_view", None)
    reset_filter_widgets()
    if source_name is not None:
        history.record(table, source_name)


def on_upload():
    uploaded = st.session_state.get("csv_upload")
    if uploaded is None:
        return
    table = load_table_from_bytes(uploaded.getvalue())
    if table is None:
        st.session_state["import_error"] = FILE_ERROR_MESSAGE
        return
    activate_table(table, uploaded.name)


def import_from_url(url: str):
    with st.spinner("Sincronizando..."):
        try:
            table = load_table_from_url(url, timeout=settings.request_timeout)
        except SourceError as exc:
            st.session_state["import_error"] = exc.message
            return
    activate_table(table, URL_SOURCE_NAME)


def load_history_entry(entry_id: str):
    table = history.load(entry_id)
    if table is None:
        st.session_state["import_error"] = "Registro não encontrado no histórico."
        return
    activate_table(table)


def on_toggle_filter(column: str, key: str):
    state: FilterState = st.session_state["filters"]
    selected = set(st.session_state.get(key) or [])
    current = set(state.accepted(column))
    for value in sorted(selected ^ current):
        state = toggle_filter(state, column, value)
    update_filters(state)


def on_view_change():
    views, state = switch_view(
        st.session_state["views"],
        st.session_state["filters"],
        st.session_state["nav_view"],
        linked=st.session_state["linked"],
    )
    st.session_state["views"] = views
    update_filters(state)
    reset_filter_widgets()


def on_linked_change():
    linked = bool(st.session_state["linked_toggle"])
    st.session_state["linked"] = linked
    session_store.save_linked_filters(linked)


def on_clear_filters():
    update_filters(clear_filters(st.session_state["filters"]))
    reset_filter_widgets()


def render_import_errors():
    message = st.session_state.pop("import_error", None)
    if message:
        st.error(message)


# ---------- Widgets ----------
def render_filter_multiselects(ctx: Dict[str, object], columns: List[str], *, prefix: str):
    state: FilterState = st.session_state["filters"]
    options: Dict[str, List[str]] = ctx["filter_options"]
    counts: Dict[str, Dict[str, int]] = ctx["filter_counts"]
    gen = st.session_state["widget_gen"]
    grid = st.columns(max(1, min(5, len(columns))))
    for i, col in enumerate(columns):
        key = f"{prefix}_{col}_{gen}"
        col_counts = counts.get(col, {})
        choices = list(options.get(col, []))
        for v in state.accepted(col):
            if v not in choices:
                choices.append(v)
        with grid[i % len(grid)]:
            st.multiselect(
                col,
                options=choices,
                default=list(state.accepted(col)),
                format_func=lambda v, c=col_counts: f"{v} ({c.get(v, 0)})",
                key=key,
                on_change=on_toggle_filter,
                args=(col, key),
            )


def render_period_picker(*, prefix: str):
    state: FilterState = st.session_state["filters"]
    gen = st.session_state["widget_gen"]
    presets = list(PRESET_LABELS)
    preset = st.selectbox(
        "Período",
        options=presets,
        index=presets.index(state.date_preset),
        format_func=lambda p: PRESET_LABELS[p],
        key=f"{prefix}_preset_{gen}",
    )
    if preset != "custom":
        if preset != state.date_preset:
            update_filters(set_date_preset(state, preset))
            st.rerun()
        return
    today = date.today()
    picked = st.date_input(
        "Intervalo",
        value=(state.custom_start or today, state.custom_end or today),
        format="DD/MM/YYYY",
        key=f"{prefix}_range_{gen}",
    )
    start, end = (picked[0], picked[1]) if isinstance(picked, (list, tuple)) and len(picked) == 2 else (None, None)
    new_state = set_date_preset(state, "custom", custom_start=start, custom_end=end)
    if new_state != state:
        update_filters(new_state)
        st.rerun()


def render_amount_input(label: str, value: float, key: str) -> float:
    return st.number_input(label, value=float(value), step=100.0, format="%.2f", key=key)


# ---------- Pages ----------
def render_central_page(ctx: Dict[str, object]):
    state: FilterState = st.session_state["filters"]
    overview = compute_overview(state, ctx)
    kpis = overview["kpis"]
    render_page_header("Análise Central", "utmdash / Análise Central", format_filter_summary(state), export_df=ctx["filtered_rows"], export_name="vendas_filtradas.csv")

    costs = st.session_state["costs"]
    with card("Resultado", actions="Impostos 6%"):
        cols = st.columns(5)
        cols[0].metric("Faturamento", format_brl(kpis["revenue"]))
        with cols[1]:
            invest = render_amount_input("Investido Geral (R$)", costs.general_investment, "general_investment")
            if invest != costs.general_investment:
                update_costs(set_general_investment(costs, invest))
                st.rerun()
        cols[2].metric("Impostos", format_brl(kpis["tax"]))
        cols[3].metric("ROI / ROAS", f"{kpis['roas']:.2f}x")
        cols[4].metric("Lucro Estimado", format_brl(kpis["profit"]), delta=f"Margem: {kpis['margin_pct']:.1f}%", delta_color="off")

        cols = st.columns(4)
        cols[0].metric("Vendas Totais", f"{kpis['sales']:,}".replace(",", "."))
        with cols[1]:
            frozen = render_amount_input("Saldo Preso (R$)", costs.frozen_balance, "frozen_balance")
            if frozen != costs.frozen_balance:
                update_costs(set_frozen_balance(costs, frozen))
                st.rerun()
        cols[2].metric("CPA Médio", format_brl(kpis["cpa"]), help="(Investido Geral + Impostos) / Vendas")
        cols[3].metric("Ticket Médio", format_brl(kpis["ticket"]))

    with card("Filtros Avançados"):
        columns = categorical_columns(ctx["roles"])
        if not columns:
            st.info("Nenhuma coluna de status, produto ou UTM reconhecida nesta planilha.")
        else:
            render_filter_multiselects(ctx, columns, prefix="central")
        st.button("Limpar filtros", on_click=on_clear_filters, key="central_clear")


def render_utm_page(ctx: Dict[str, object]):
    state: FilterState = st.session_state["filters"]
    utm = compute_utm(state, ctx)
    groups = utm["groups"]
    table = pd.DataFrame(
        [
            {
                "key": g["key"],
                "Período": g["min_date"] if g["min_date"] == g["max_date"] else f"{g['min_date']} – {g['max_date']}",
                "Status": ", ".join(f"{s}: {n}" for s, n in g["statuses"].items()),
                "Produto": g["product_label"],
                "UTM Source": g["source"],
                "UTM Campaign": g["campaign"],
                "UTM Content": ", ".join(g["contents"]),
                "Vendas": g["sales"],
                "Faturamento": g["revenue"],
                "Invest. Total": g["investment"],
                "Impostos (6%)": g["tax"],
                "CPA Real": g["cpa"],
                "ROI": g["roi_label"],
                "Resultado": OUTCOME_LABELS[g["outcome"]],
            }
            for g in groups
        ]
    )
    render_page_header(
        f"UTM Performance Agrupado ({utm['group_count']} clusters)",
        "utmdash / Agrupado por Source + Campaign",
        format_filter_summary(state),
        export_df=table.drop(columns=["key"], errors="ignore") if not table.empty else None,
        export_name="utm_performance.csv",
    )

    with card("Filtros"):
        c1, c2 = st.columns([2, 8])
        with c1:
            render_period_picker(prefix="utm")
            st.button("Resetar", on_click=on_clear_filters, key="utm_clear")
        with c2:
            roles = ctx["roles"]
            columns = [c for c in [roles.status, roles.source, roles.campaign, roles.content] if c]
            if columns:
                render_filter_multiselects(ctx, columns, prefix="utm")

    with card("Clusters", actions="Lucro positivo / Prejuízo"):
        if table.empty:
            st.info("Nenhuma venda para os filtros selecionados.")
            return
        # Rows are indexed by group key so saved edits follow the group, not the position.
        keyed = table.set_index("key")
        edited = st.data_editor(
            keyed,
            hide_index=True,
            use_container_width=True,
            disabled=[c for c in keyed.columns if c != "Invest. Total"],
            column_config={
                "Faturamento": st.column_config.NumberColumn(format="R$ %.2f"),
                "Invest. Total": st.column_config.NumberColumn(format="R$ %.2f", min_value=0.0, step=10.0),
                "Impostos (6%)": st.column_config.NumberColumn(format="R$ %.2f"),
                "CPA Real": st.column_config.NumberColumn(format="R$ %.2f"),
            },
            key=f"utm_editor_{st.session_state['widget_gen']}_{hash(tuple(keyed.index))}",
        )
        costs = st.session_state["costs"]
        updated = apply_group_edits(costs, edited["Invest. Total"].to_dict())
        if updated != costs:
            update_costs(updated)
            st.rerun()

        with st.expander("Produtos por cluster"):
            for g in groups:
                if len(g["products"]) > 1:
                    st.markdown(f"**{g['key']}**")
                    st.dataframe(
                        pd.DataFrame([{"Produto": p, "Vendas": n} for p, n in g["products"].items()]),
                        hide_index=True,
                    )


def render_graphs_page(ctx: Dict[str, object]):
    state: FilterState = st.session_state["filters"]
    graphs = compute_graphs(state, ctx)
    render_page_header("Gráficos", "utmdash / Gráficos", format_filter_summary(state))

    period = graphs["period_counts"]
    cols = st.columns(3)
    cols[0].metric("Hoje", period["today"])
    cols[1].metric("7 dias", period["d7"])
    cols[2].metric("30 dias", period["d30"])

    charts = graphs["charts"]
    with card("Evolução de Vendas"):
        if "evolution" in charts:
            st.vega_lite_chart(charts["evolution"], use_container_width=True)
        else:
            st.info("Coluna de data não encontrada ou sem vendas no período.")

    cols = st.columns(3)
    for col, (name, title) in zip(cols, [("campaigns", "Campanhas (Top 5)"), ("sources", "Sources (Top 5)"), ("products", "Produtos (Top 5)")]):
        with col:
            with card(title):
                if name in charts:
                    st.vega_lite_chart(charts[name], use_container_width=True)
                else:
                    st.info("Sem dados.")


def render_history_list(*, compact: bool = False):
    entries = history.list()
    if not entries:
        st.caption("Nenhum registro encontrado")
        return
    if compact:
        for entry in entries:
            c1, c2, c3 = st.columns([6, 2, 1])
            c1.markdown(f"**{entry.name}**  \n{entry.created_at:%d/%m/%Y} • {entry.stats.vendas} vendas")
            c2.button("Carregar", key=f"load_{entry.id}", on_click=load_history_entry, args=(entry.id,))
            c3.button("✕", key=f"del_{entry.id}", on_click=history.remove, args=(entry.id,))
        return
    grid = st.columns(3)
    for i, entry in enumerate(entries):
        with grid[i % 3]:
            with card(entry.name, actions=f"{entry.created_at:%d/%m/%Y %H:%M}"):
                c1, c2 = st.columns(2)
                c1.metric("Vendas", entry.stats.vendas)
                c2.metric("Total", format_brl(entry.stats.faturamento))
                st.button("Visualizar Dados", key=f"view_{entry.id}", on_click=load_history_entry, args=(entry.id,), use_container_width=True)
                st.button("Excluir", key=f"delete_{entry.id}", on_click=history.remove, args=(entry.id,), use_container_width=True)


def render_history_page():
    render_page_header("Histórico de Importações", "utmdash / Gerencie os dados salvos localmente", "")
    render_history_list()


def render_landing_page():
    st.title("utmdash & Perfect Pay")
    st.caption("Análise de ROI e Gestão de Tráfego nativa para relatórios Perfect Pay.")
    render_import_errors()
    with card("Importar vendas"):
        url = st.text_input("Link CSV da Perfect Pay / Google Sheets", key="sheet_url")
        if st.button("Conectar vendas", disabled=not url, type="primary"):
            import_from_url(url)
            st.rerun()
        st.markdown("**ou**")
        st.file_uploader("Importar arquivo .csv", type=["csv"], key="csv_upload", on_change=on_upload)
    with card("Últimos importados"):
        render_history_list(compact=True)


# ---------- UI setup ----------
inject_base_styles()
init_state()

with st.sidebar:
    st.markdown("### utmdash")
    st.toggle(
        "Filtros vinculados",
        value=st.session_state["linked"],
        key="linked_toggle",
        on_change=on_linked_change,
        help="Desvinculados: cada aba guarda os próprios filtros.",
    )
    table: Optional[Table] = st.session_state["table"]
    if table is not None:
        views = list(VIEW_LABELS)
        st.radio(
            "Navegar",
            views,
            index=views.index(st.session_state["views"].view),
            format_func=lambda v: VIEW_LABELS[v],
            key="nav_view",
            on_change=on_view_change,
        )
        st.markdown("---")
        search = st.text_input("Buscar em todas as colunas", value=st.session_state["filters"].search)
        if search != st.session_state["filters"].search:
            update_filters(set_search(st.session_state["filters"], search))
        st.markdown("---")
        if st.button("Insights", type="primary", use_container_width=True):
            with st.spinner("Analisando..."):
                st.session_state["insights"] = analyze_table(table, settings)
        if st.button("Nova importação", use_container_width=True):
            st.session_state["table"] = None
            st.session_state["insights"] = None
            st.rerun()

table = st.session_state["table"]
if table is None:
    render_landing_page()
    st.stop()

render_import_errors()
if st.session_state["insights"]:
    with card("Estratégia IA"):
        st.markdown(st.session_state["insights"])

ctx = prepare_context(st.session_state["filters"], table, st.session_state["costs"], settings=settings, now=datetime.now())
current_view = st.session_state["views"].view

if current_view == "central":
    render_central_page(ctx)
elif current_view == "utmdash":
    render_utm_page(ctx)
elif current_view == "graphs":
    render_graphs_page(ctx)
else:
    render_history_page()
