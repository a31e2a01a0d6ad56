from __future__ import annotations

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Optional

import pandas as pd

from utmdash.columns import resolve_columns
from utmdash.config import Settings
from utmdash.costs import CostInputs
from utmdash.filters import FilterState, apply_filters, filter_counts, filter_options, normalize_filters
from utmdash.parser import Table


def table_to_frame(table: Table) -> pd.DataFrame:
    """Object-dtype frame, one column per header, row order preserved."""
    if not table.rows:
        return pd.DataFrame(columns=list(table.headers), dtype=object)
    return pd.DataFrame(table.rows, columns=list(table.headers), dtype=object)


def revenue_series(df: pd.DataFrame, col: Optional[str]) -> pd.Series:
    """Numeric revenue per row; unresolved column, missing and non-numeric cells count as 0."""
    if not col or col not in df.columns:
        return pd.Series(0.0, index=df.index, dtype=float)
    return pd.to_numeric(df[col], errors="coerce").fillna(0.0).astype(float)


def round_half_up(value: object, ndigits: int = 0) -> Optional[float]:
    if value is None or pd.isna(value):
        return None
    q = Decimal(10) ** -ndigits
    return float(Decimal(str(value)).quantize(q, rounding=ROUND_HALF_UP))


def format_brl(value: object) -> str:
    if value is None or pd.isna(value):
        return "R$ 0,00"
    s = f"{round_half_up(value, 2):,.2f}"
    return "R$ " + s.replace(",", "_").replace(".", ",").replace("_", ".")


def prepare_context(
    filters: dict | FilterState,
    table: Table,
    costs: Optional[CostInputs] = None,
    *,
    settings: Optional[Settings] = None,
    now: Optional[datetime] = None,
) -> Dict[str, object]:
    rows = table_to_frame(table)
    roles = resolve_columns(table.headers)
    filt = filters if isinstance(filters, FilterState) else normalize_filters(filters)
    now = now or datetime.now()

    filtered_rows = apply_filters(rows, filt, roles, now=now)

    return {
        "filters": filt,
        "table": table,
        "rows": rows,
        "filtered_rows": filtered_rows,
        "roles": roles,
        "costs": costs or CostInputs(),
        "settings": settings or Settings(),
        "now": now,
        "filter_options": filter_options(rows, roles),
        "filter_counts": filter_counts(filtered_rows, roles),
    }
