from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

import pandas as pd

from utmdash.charts import donut_chart, evolution_chart
from utmdash.columns import ColumnRoles, display_value
from utmdash.config import Settings
from utmdash.filters import FilterState, filters_to_dict, parse_sale_date
from utmdash.parser import format_cell

EPOCH = datetime(1970, 1, 1)


def compute_period_counts(rows: pd.DataFrame, roles: ColumnRoles, now: datetime) -> Dict[str, int]:
    """Sales today / last 7 / last 30 days over the whole dataset, ignoring filters."""
    counts = {"today": 0, "d7": 0, "d30": 0}
    if rows.empty or not roles.date or roles.date not in rows.columns:
        return counts
    d7 = now - timedelta(days=7)
    d30 = now - timedelta(days=30)
    for value in rows[roles.date].tolist():
        d = parse_sale_date(value)
        if d is None:
            continue
        if d.date() == now.date():
            counts["today"] += 1
        if d >= d7:
            counts["d7"] += 1
        if d >= d30:
            counts["d30"] += 1
    return counts


def compute_evolution(df: pd.DataFrame, roles: ColumnRoles) -> List[Dict[str, Any]]:
    if df.empty or not roles.date or roles.date not in df.columns:
        return []
    day = pd.Series([format_cell(v).split(" ")[0] for v in df[roles.date].tolist()], index=df.index, dtype=object)
    daily = [{"date": str(k), "count": int(v)} for k, v in day.groupby(day, sort=False).size().items()]
    # Unparseable days sort as the epoch, i.e. first.
    daily.sort(key=lambda item: parse_sale_date(item["date"]) or EPOCH)
    return daily


def compute_top_n(df: pd.DataFrame, roles: ColumnRoles, col: Optional[str], n: int = 5) -> List[Dict[str, Any]]:
    """Most frequent values of a column; ties keep first-seen order."""
    if df.empty or not col or col not in df.columns:
        return []
    labels = pd.Series([display_value(roles, col, v) for v in df[col].tolist()], index=df.index, dtype=object)
    counts = labels.groupby(labels, sort=False).size().sort_values(ascending=False, kind="stable").head(n)
    return [{"name": str(k), "value": int(v)} for k, v in counts.items()]


def compute_graphs(filters: FilterState, ctx: Dict[str, Any]) -> Dict[str, Any]:
    rows: pd.DataFrame = ctx.get("rows", pd.DataFrame())
    df: pd.DataFrame = ctx.get("filtered_rows", pd.DataFrame())
    roles: ColumnRoles = ctx.get("roles") or ColumnRoles()
    settings: Settings = ctx.get("settings") or Settings()
    now: datetime = ctx.get("now") or datetime.now()

    evolution = compute_evolution(df, roles)
    top = {
        "campaigns": compute_top_n(df, roles, roles.campaign, settings.top_n),
        "sources": compute_top_n(df, roles, roles.source, settings.top_n),
        "products": compute_top_n(df, roles, roles.product, settings.top_n),
    }

    charts: Dict[str, Any] = {}
    if evolution:
        charts["evolution"] = evolution_chart(evolution)
    for name, items in top.items():
        if items:
            charts[name] = donut_chart(items)

    return {
        "filters": filters_to_dict(filters),
        "period_counts": compute_period_counts(rows, roles, now),
        "evolution": evolution,
        "top": top,
        "charts": charts,
    }
