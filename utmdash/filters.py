from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime, time, timedelta
from typing import Dict, Iterable, List, Literal, Optional, Tuple, get_args

import pandas as pd

from utmdash.columns import MISSING_VALUE, ColumnRoles, categorical_columns, normalized_value
from utmdash.parser import format_cell

DatePreset = Literal["all", "today", "7days", "15days", "30days", "custom"]
ViewMode = Literal["central", "utmdash", "graphs", "history"]

DATE_PRESETS: Tuple[str, ...] = get_args(DatePreset)
VIEW_MODES: Tuple[str, ...] = get_args(ViewMode)
ROLLING_WINDOW_DAYS: Dict[str, int] = {"7days": 7, "15days": 15, "30days": 30}


@dataclass(frozen=True)
class FilterState:
    columns: Dict[str, Tuple[str, ...]] = field(default_factory=dict)
    search: str = ""
    date_preset: DatePreset = "all"
    custom_start: Optional[date] = None
    custom_end: Optional[date] = None

    def accepted(self, column: str) -> Tuple[str, ...]:
        return self.columns.get(column, ())

    @property
    def is_active(self) -> bool:
        return bool(self.search) or self.date_preset != "all" or any(self.columns.values())


@dataclass(frozen=True)
class ViewFilters:
    """Categorical filters remembered per view while filters are unlinked."""

    view: ViewMode = "central"
    saved: Dict[str, Dict[str, Tuple[str, ...]]] = field(default_factory=dict)


# ---------------- Reducers ----------------
def toggle_filter(state: FilterState, column: str, value: str) -> FilterState:
    current = list(state.accepted(column))
    if value in current:
        current.remove(value)
    else:
        current.append(value)
    return replace(state, columns={**state.columns, column: tuple(current)})


def set_search(state: FilterState, term: str) -> FilterState:
    return replace(state, search=term or "")


def set_date_preset(
    state: FilterState,
    preset: str,
    *,
    custom_start: Optional[date] = None,
    custom_end: Optional[date] = None,
) -> FilterState:
    if preset not in DATE_PRESETS:
        raise ValueError(f"Unknown date preset: {preset!r}")
    if preset != "custom":
        return replace(state, date_preset=preset)
    return replace(state, date_preset=preset, custom_start=_as_date(custom_start), custom_end=_as_date(custom_end))


def clear_filters(state: FilterState) -> FilterState:
    return FilterState()


def switch_view(
    views: ViewFilters,
    state: FilterState,
    new_view: str,
    *,
    linked: bool,
) -> Tuple[ViewFilters, FilterState]:
    if new_view not in VIEW_MODES:
        raise ValueError(f"Unknown view: {new_view!r}")
    if linked or new_view == views.view:
        return replace(views, view=new_view), state
    saved = {**views.saved, views.view: dict(state.columns)}
    restored = dict(saved.get(new_view, {}))
    return ViewFilters(view=new_view, saved=saved), replace(state, columns=restored)


def _as_date(value: object) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except Exception:
        return None


def _as_str_tuple(values: Optional[Iterable[object]]) -> Tuple[str, ...]:
    if not values:
        return ()
    out: List[str] = []
    for v in values:
        if v is None:
            continue
        s = str(v)
        if s not in out:
            out.append(s)
    return tuple(out)


def normalize_filters(raw: dict) -> FilterState:
    raw = raw or {}
    columns = {str(col): _as_str_tuple(vals) for col, vals in (raw.get("columns") or {}).items()}

    preset = raw.get("date_preset") or "all"
    if preset not in DATE_PRESETS:
        preset = "all"

    return FilterState(
        columns=columns,
        search=str(raw.get("search") or ""),
        date_preset=preset,
        custom_start=_as_date(raw.get("custom_start")),
        custom_end=_as_date(raw.get("custom_end")),
    )


# ---------------- Predicates ----------------
def parse_sale_date(value: object) -> Optional[datetime]:
    """Parse "dd/mm/yyyy[ hh:mm:ss]" (time ignored), falling back to a generic parse."""
    if not isinstance(value, str) or not value.strip():
        return None
    value = value.strip()
    parts = value.split(" ")[0].split("/")
    if len(parts) == 3:
        try:
            return datetime(int(parts[2]), int(parts[1]), int(parts[0]))
        except ValueError:
            return None
    try:
        ts = pd.to_datetime(value, errors="coerce")
    except (ValueError, TypeError, OverflowError):
        return None
    if pd.isna(ts):
        return None
    if ts.tzinfo is not None:
        ts = ts.tz_convert(None)
    return ts.to_pydatetime()


def date_in_preset(row_date: Optional[datetime], state: FilterState, now: datetime) -> bool:
    preset = state.date_preset
    if preset == "all":
        return True
    if row_date is None:
        return False
    if preset == "today":
        return row_date.date() == now.date()
    if preset in ROLLING_WINDOW_DAYS:
        return row_date >= now - timedelta(days=ROLLING_WINDOW_DAYS[preset])
    if state.custom_start is None or state.custom_end is None:
        return True
    start = datetime.combine(state.custom_start, time.min)
    end = datetime.combine(state.custom_end, time.max)
    return start <= row_date <= end


def normalized_column(frame: pd.DataFrame, roles: ColumnRoles, column: str) -> pd.Series:
    if column not in frame.columns:
        return pd.Series(MISSING_VALUE, index=frame.index, dtype=object)
    return frame[column].map(lambda v: normalized_value(roles, column, v))


def apply_filters(
    frame: pd.DataFrame,
    state: FilterState,
    roles: ColumnRoles,
    *,
    now: Optional[datetime] = None,
) -> pd.DataFrame:
    if frame.empty:
        return frame.copy()
    now = now or datetime.now()
    mask = pd.Series(True, index=frame.index)

    if roles.date and state.date_preset != "all" and roles.date in frame.columns:
        in_range = [date_in_preset(parse_sale_date(v), state, now) for v in frame[roles.date].tolist()]
        mask &= pd.Series(in_range, index=frame.index, dtype=bool)

    for col, accepted in state.columns.items():
        if not accepted:
            continue
        mask &= normalized_column(frame, roles, col).isin(set(accepted))

    if state.search:
        q = state.search.lower()
        hits = pd.Series(False, index=frame.index)
        for col in frame.columns:
            hits |= pd.Series([q in format_cell(v).lower() for v in frame[col].tolist()], index=frame.index, dtype=bool)
        mask &= hits

    return frame[mask]


def filter_options(frame: pd.DataFrame, roles: ColumnRoles) -> Dict[str, List[str]]:
    """Sorted distinct normalized values per categorical column over the whole dataset."""
    options: Dict[str, List[str]] = {}
    for col in categorical_columns(roles):
        values = normalized_column(frame, roles, col) if not frame.empty else pd.Series(dtype=object)
        options[col] = sorted({v for v in values.tolist() if v != ""})
    return options


def filter_counts(filtered: pd.DataFrame, roles: ColumnRoles) -> Dict[str, Dict[str, int]]:
    counts: Dict[str, Dict[str, int]] = {}
    for col in categorical_columns(roles):
        if filtered.empty:
            counts[col] = {}
            continue
        vc = normalized_column(filtered, roles, col).value_counts(sort=False)
        counts[col] = {str(k): int(v) for k, v in vc.items()}
    return counts


def filters_to_dict(state: FilterState) -> Dict[str, object]:
    """JSON-serializable form of a filter state (inverse of normalize_filters)."""
    return {
        "columns": {col: list(vals) for col, vals in state.columns.items()},
        "search": state.search,
        "date_preset": state.date_preset,
        "custom_start": state.custom_start.isoformat() if state.custom_start else None,
        "custom_end": state.custom_end.isoformat() if state.custom_end else None,
    }
