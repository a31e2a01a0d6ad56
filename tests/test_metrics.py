"""
test_metrics.py: KPIs, grouped UTM performance and chart payloads.

Run with:
    pytest tests/ -v
"""

import pytest

from utmdash.costs import CostInputs, set_group_investment
from utmdash.data import format_brl, prepare_context, revenue_series, round_half_up, table_to_frame
from utmdash.filters import FilterState, set_date_preset, toggle_filter
from utmdash.metrics_graphs import compute_evolution, compute_graphs, compute_period_counts, compute_top_n
from utmdash.metrics_overview import compute_kpis, compute_overview
from utmdash.metrics_utm import compute_groups, compute_utm, group_outcome
from utmdash.parser import parse_csv


# =============================================================================
# Shared helpers
# =============================================================================

class TestDataHelpers:
    def test_format_brl(self):
        assert format_brl(1234.56) == "R$ 1.234,56"
        assert format_brl(None) == "R$ 0,00"

    def test_round_half_up(self):
        assert round_half_up(2.5) == 3.0
        assert round_half_up(1.005, 2) == 1.01
        assert round_half_up(None) is None

    def test_revenue_ignores_non_numeric(self):
        frame = table_to_frame(parse_csv("id,valor\n1,10\n2,abc\n3,"))
        assert revenue_series(frame, "valor").tolist() == [10.0, 0.0, 0.0]
        assert revenue_series(frame, None).sum() == 0.0

    def test_empty_table_frame(self):
        frame = table_to_frame(parse_csv("a,b"))
        assert list(frame.columns) == ["a", "b"]
        assert frame.empty

    def test_context_accepts_raw_filter_dicts(self, sales_table, now):
        ctx = prepare_context({"search": "tiktok"}, sales_table, now=now)
        assert isinstance(ctx["filters"], FilterState)
        assert len(ctx["rows"]) == 5
        assert len(ctx["filtered_rows"]) == 1


# =============================================================================
# KPIs
# =============================================================================

class TestOverview:
    def test_three_sales_scenario(self):
        ctx = prepare_context({}, parse_csv("id,valor\n1,10\n2,20\n3,30"))
        kpis = compute_overview(ctx["filters"], ctx)["kpis"]
        assert kpis["revenue"] == pytest.approx(60)
        assert kpis["sales"] == 3
        assert kpis["tax"] == pytest.approx(3.6)
        assert kpis["profit"] == pytest.approx(56.4)
        assert round(kpis["roas"], 2) == 16.67
        assert kpis["cpa"] == pytest.approx(1.2)
        assert kpis["ticket"] == pytest.approx(20)

    def test_manual_costs_enter_total_cost(self, sales_frame, sales_roles):
        costs = CostInputs(general_investment=100.0, frozen_balance=20.0)
        kpis = compute_kpis(sales_frame, sales_roles, costs, 0.06)
        assert kpis["revenue"] == pytest.approx(270)
        assert kpis["total_cost"] == pytest.approx(100 + 20 + 16.2)
        assert kpis["cpa"] == pytest.approx((100 + 16.2) / 5)
        assert kpis["margin_pct"] == pytest.approx((270 - 136.2) / 270 * 100)

    def test_empty_selection_is_all_zero(self, sales_frame, sales_roles):
        kpis = compute_kpis(sales_frame.iloc[0:0], sales_roles, CostInputs(), 0.06)
        assert kpis["sales"] == 0
        assert kpis["roas"] == 0.0
        assert kpis["cpa"] == 0.0
        assert kpis["ticket"] == 0.0

    def test_unresolved_revenue_counts_as_zero(self):
        ctx = prepare_context({}, parse_csv("a,b\nx,y"))
        kpis = compute_overview(ctx["filters"], ctx)["kpis"]
        assert kpis["revenue"] == 0.0
        assert kpis["sales"] == 1


# =============================================================================
# Grouped UTM performance
# =============================================================================

class TestGroups:
    def test_groups_are_ordered_by_sales(self, sales_frame, sales_roles):
        groups = compute_groups(sales_frame, sales_roles, CostInputs(), 0.06)
        assert [g["key"] for g in groups] == ["facebook|BF", "tiktok|BF", "organic|Lancamento", "google|n/a"]

    def test_group_accumulators(self, sales_frame, sales_roles):
        fb = compute_groups(sales_frame, sales_roles, CostInputs(), 0.06)[0]
        assert fb["sales"] == 2
        assert fb["revenue"] == pytest.approx(170)
        assert fb["min_date"] == "17/10/2026"
        assert fb["max_date"] == "19/10/2026"
        assert fb["products"] == {"Curso A": 1, "Curso B": 1}
        assert fb["product_label"] == "2 produtos diferentes"
        assert fb["statuses"] == {"Aprovada": 2}
        assert fb["contents"] == ["video1"]

    def test_unparseable_dates_still_count(self, sales_frame, sales_roles):
        google = compute_groups(sales_frame, sales_roles, CostInputs(), 0.06)[-1]
        assert google["sales"] == 1
        assert google["min_date"] == google["max_date"] == "xx"

    def test_investment_drives_outcome(self, sales_frame, sales_roles):
        costs = set_group_investment(CostInputs(), "facebook|BF", 100)
        costs = set_group_investment(costs, "tiktok|BF", 60)
        by_key = {g["key"]: g for g in compute_groups(sales_frame, sales_roles, costs, 0.06)}

        fb = by_key["facebook|BF"]
        assert fb["tax"] == pytest.approx(10.2)
        assert fb["total_cost"] == pytest.approx(110.2)
        assert fb["cpa"] == pytest.approx(55.1)
        assert fb["outcome"] == "profit"
        assert fb["roi_label"] == "1.54x"

        assert by_key["tiktok|BF"]["outcome"] == "loss"
        assert by_key["organic|Lancamento"]["outcome"] == "pending"
        assert by_key["organic|Lancamento"]["roi_label"] == "pending"

    def test_group_outcome(self):
        assert group_outcome(0, 100, 6) == "pending"
        assert group_outcome(10, 100, 16) == "profit"
        assert group_outcome(10, 16, 16) == "loss"

    def test_compute_utm_uses_filtered_rows(self, sales_table, now):
        filters = toggle_filter(FilterState(), "utm_source", "facebook")
        table = parse_csv(sales_table_csv_with_hints(sales_table))
        ctx = prepare_context(filters, table, now=now)
        utm = compute_utm(filters, ctx)
        assert utm["group_count"] == 1
        assert utm["totals"]["sales"] == 2
        assert utm["filters"]["columns"] == {"utm_source": ["facebook"]}


def sales_table_csv_with_hints(table):
    """Re-lay the fixture table in Perfect Pay column positions so hints resolve."""
    positions = {"data": 1, "status": 5, "produto": 8, "valor": 12, "utm_source": 29, "utm_campaign": 31, "utm_content": 33}
    headers = [f"col{i}" for i in range(34)]
    for name, pos in positions.items():
        headers[pos] = name
    lines = [",".join(headers)]
    for row in table.rows:
        cells = [""] * 34
        for name, pos in positions.items():
            cells[pos] = str(row[name])
        lines.append(",".join(cells))
    return "\n".join(lines)


# =============================================================================
# Graphs
# =============================================================================

class TestGraphs:
    def test_period_counts(self, sales_frame, sales_roles, now):
        assert compute_period_counts(sales_frame, sales_roles, now) == {"today": 1, "d7": 3, "d30": 4}

    def test_evolution_is_chronological(self, sales_frame, sales_roles):
        evolution = compute_evolution(sales_frame, sales_roles)
        assert [e["date"] for e in evolution] == ["xx", "11/10/2026", "17/10/2026", "18/10/2026", "19/10/2026"]
        assert all(e["count"] == 1 for e in evolution)

    def test_top_n_ties_keep_first_seen_order(self, sales_frame, sales_roles):
        top = compute_top_n(sales_frame, sales_roles, "utm_source", n=2)
        assert top == [{"name": "facebook", "value": 2}, {"name": "tiktok", "value": 1}]

    def test_top_n_without_column(self, sales_frame, sales_roles):
        assert compute_top_n(sales_frame, sales_roles, None) == []

    def test_graph_payload(self, sales_table, now):
        table = parse_csv(sales_table_csv_with_hints(sales_table))
        ctx = prepare_context(set_date_preset(FilterState(), "7days"), table, now=now)
        graphs = compute_graphs(ctx["filters"], ctx)
        assert graphs["period_counts"] == {"today": 1, "d7": 3, "d30": 4}
        assert graphs["top"]["campaigns"] == [{"name": "BF", "value": 3}]
        assert set(graphs["charts"]) == {"evolution", "campaigns", "sources", "products"}
        assert "mark" in graphs["charts"]["evolution"]

    def test_empty_selection_has_no_charts(self, sales_table, now):
        table = parse_csv(sales_table_csv_with_hints(sales_table))
        ctx = prepare_context({"search": "nada disso"}, table, now=now)
        graphs = compute_graphs(ctx["filters"], ctx)
        assert graphs["evolution"] == []
        assert graphs["charts"] == {}
