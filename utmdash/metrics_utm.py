from __future__ import annotations

from typing import Any, Dict, List, Optional

import pandas as pd

from utmdash.columns import MISSING_VALUE, ColumnRoles, clean_campaign, clean_source
from utmdash.config import Settings
from utmdash.costs import CostInputs, group_key
from utmdash.data import revenue_series
from utmdash.filters import FilterState, filters_to_dict, parse_sale_date
from utmdash.parser import format_cell


def _cells(df: pd.DataFrame, col: Optional[str]) -> List[object]:
    if not col or col not in df.columns:
        return [None] * len(df)
    return df[col].tolist()


def _text(value: object) -> str:
    return "" if value is None else format_cell(value)


def _group_frame(df: pd.DataFrame, roles: ColumnRoles) -> pd.DataFrame:
    date_strs = [_text(v).split(" ")[0] for v in _cells(df, roles.date)]
    return pd.DataFrame(
        {
            "source": [clean_source(_text(v)) for v in _cells(df, roles.source)],
            "campaign": [clean_campaign(_text(v)) for v in _cells(df, roles.campaign)],
            "product": [_text(v) or MISSING_VALUE for v in _cells(df, roles.product)],
            "status": [_text(v) or MISSING_VALUE for v in _cells(df, roles.status)],
            "content": [_text(v) or MISSING_VALUE for v in _cells(df, roles.content)],
            "date_str": date_strs,
            "sale_date": pd.Series([parse_sale_date(s) for s in date_strs], index=df.index, dtype=object),
            "revenue": revenue_series(df, roles.revenue),
        },
        index=df.index,
    )


def _date_span(g: pd.DataFrame) -> tuple[str, str]:
    dated = [(d, s) for d, s in zip(g["sale_date"].tolist(), g["date_str"].tolist()) if d is not None]
    if not dated:
        first = str(g["date_str"].iloc[0])
        return first, first
    return min(dated, key=lambda t: t[0])[1], max(dated, key=lambda t: t[0])[1]


def _first_seen_counts(series: pd.Series) -> Dict[str, int]:
    return {str(k): int(v) for k, v in series.groupby(series, sort=False).size().items()}


def group_outcome(investment: float, revenue: float, total_cost: float) -> str:
    if investment <= 0:
        return "pending"
    return "profit" if revenue > total_cost else "loss"


def compute_groups(df: pd.DataFrame, roles: ColumnRoles, costs: CostInputs, tax_rate: float) -> List[Dict[str, Any]]:
    """Source+campaign clusters over the given rows, most sales first."""
    if df.empty:
        return []
    work = _group_frame(df, roles)

    groups: List[Dict[str, Any]] = []
    for (source, campaign), g in work.groupby(["source", "campaign"], sort=False):
        key = group_key(source, campaign)
        sales = int(len(g))
        revenue = float(g["revenue"].sum())
        min_date, max_date = _date_span(g)
        products = _first_seen_counts(g["product"])
        statuses = _first_seen_counts(g["status"])

        investment = costs.group_investment(key)
        tax = revenue * tax_rate
        total_cost = investment + tax
        roi = revenue / total_cost if total_cost > 0 else 0.0
        outcome = group_outcome(investment, revenue, total_cost)

        groups.append(
            {
                "key": key,
                "source": source,
                "campaign": campaign,
                "sales": sales,
                "revenue": revenue,
                "min_date": min_date,
                "max_date": max_date,
                "products": products,
                "product_label": next(iter(products)) if len(products) == 1 else f"{len(products)} produtos diferentes",
                "statuses": statuses,
                "contents": list(dict.fromkeys(g["content"].tolist())),
                "investment": investment,
                "tax": tax,
                "total_cost": total_cost,
                "cpa": total_cost / sales if sales else 0.0,
                "roi": roi,
                "roi_label": "pending" if outcome == "pending" else f"{roi:.2f}x",
                "outcome": outcome,
            }
        )

    groups.sort(key=lambda item: item["sales"], reverse=True)
    return groups


def compute_utm(filters: FilterState, ctx: Dict[str, Any]) -> Dict[str, Any]:
    df: pd.DataFrame = ctx.get("filtered_rows", pd.DataFrame())
    roles: ColumnRoles = ctx.get("roles") or ColumnRoles()
    costs: CostInputs = ctx.get("costs") or CostInputs()
    settings: Settings = ctx.get("settings") or Settings()

    groups = compute_groups(df, roles, costs, settings.tax_rate)
    totals = {
        "sales": sum(g["sales"] for g in groups),
        "revenue": sum(g["revenue"] for g in groups),
        "investment": sum(g["investment"] for g in groups),
        "tax": sum(g["tax"] for g in groups),
    }
    return {
        "filters": filters_to_dict(filters),
        "group_count": len(groups),
        "groups": groups,
        "totals": totals,
        "filter_options": ctx.get("filter_options", {}),
        "filter_counts": ctx.get("filter_counts", {}),
    }
