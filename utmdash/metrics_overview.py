from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict

import pandas as pd

from utmdash.columns import ColumnRoles
from utmdash.config import Settings
from utmdash.costs import CostInputs
from utmdash.data import revenue_series
from utmdash.filters import FilterState, filters_to_dict


def compute_kpis(df: pd.DataFrame, roles: ColumnRoles, costs: CostInputs, tax_rate: float) -> Dict[str, float]:
    revenue = float(revenue_series(df, roles.revenue).sum())
    sales = int(len(df))
    tax = revenue * tax_rate
    investment = costs.general_investment
    frozen = costs.frozen_balance
    total_cost = investment + frozen + tax
    profit = revenue - total_cost

    return {
        "revenue": revenue,
        "sales": sales,
        "general_investment": investment,
        "frozen_balance": frozen,
        "tax": tax,
        "total_cost": total_cost,
        "profit": profit,
        "roas": revenue / total_cost if total_cost > 0 else 0.0,
        "cpa": (investment + tax) / sales if sales else 0.0,
        "ticket": revenue / sales if sales else 0.0,
        "margin_pct": profit / revenue * 100 if revenue > 0 else 0.0,
    }


def compute_overview(filters: FilterState, ctx: Dict[str, Any]) -> Dict[str, Any]:
    df: pd.DataFrame = ctx.get("filtered_rows", pd.DataFrame())
    rows: pd.DataFrame = ctx.get("rows", pd.DataFrame())
    roles: ColumnRoles = ctx.get("roles") or ColumnRoles()
    costs: CostInputs = ctx.get("costs") or CostInputs()
    settings: Settings = ctx.get("settings") or Settings()

    return {
        "filters": filters_to_dict(filters),
        "roles": asdict(roles),
        "row_count": int(len(rows)),
        "kpis": compute_kpis(df, roles, costs, settings.tax_rate),
        "filter_options": ctx.get("filter_options", {}),
        "filter_counts": ctx.get("filter_counts", {}),
    }
