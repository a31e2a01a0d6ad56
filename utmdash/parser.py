from __future__ import annotations

import copy
import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, Sequence, Tuple, Union

Cell = Union[int, float, str]
ColumnKind = Literal["number", "string"]

LINE_BREAK_RE = re.compile(r"\r\n|\n|\r")
# Commas followed by an even number of quotes up to end of line (i.e. not inside a quoted span).
FIELD_SPLIT_RE = re.compile(r',(?=(?:(?:[^"]*"){2})*[^"]*$)')
BR_DECIMAL_RE = re.compile(r"^-?[\d.]+,\d+$")
NUMBER_RE = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$")
CURRENCY_MARKER = "R$"


@dataclass(frozen=True)
class Table:
    """Typed tabular snapshot of an imported CSV.

    `types` is a per-column hint: a column declared "number" may still hold
    strings in some rows.
    """

    headers: Tuple[str, ...]
    rows: List[Dict[str, Cell]] = field(default_factory=list)
    types: Dict[str, ColumnKind] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.rows)

    def copy(self) -> "Table":
        return Table(headers=tuple(self.headers), rows=copy.deepcopy(self.rows), types=dict(self.types))

    def to_dict(self) -> Dict[str, Any]:
        return {"headers": list(self.headers), "rows": copy.deepcopy(self.rows), "types": dict(self.types)}

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Table":
        headers = tuple(str(h) for h in (raw.get("headers") or []))
        rows: List[Dict[str, Cell]] = []
        for r in raw.get("rows") or []:
            r = r or {}
            rows.append({h: _restore_cell(r.get(h, "")) for h in headers})
        types = raw.get("types") or {}
        return cls(
            headers=headers,
            rows=rows,
            types={h: ("number" if types.get(h) == "number" else "string") for h in headers},
        )


def _restore_cell(value: object) -> Cell:
    if isinstance(value, bool) or value is None:
        return ""
    if isinstance(value, (int, float)):
        return value if math.isfinite(value) else ""
    return str(value)


def is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def format_cell(value: object) -> str:
    """Render a cell the way it reads in the sheet: 10.0 -> "10", 10.5 -> "10.5"."""
    if value is None:
        return ""
    if is_number(value):
        if isinstance(value, float) and value.is_integer():
            return str(int(value))
        return str(value)
    return str(value)


def _strip_quotes(value: str) -> str:
    if value.startswith('"'):
        value = value[1:]
    if value.endswith('"'):
        value = value[:-1]
    return value


def clean_cell(raw: Optional[str]) -> Cell:
    """Clean one raw field and coerce it to a number when it looks numeric.

    Handles "R$ 1.234,56" (BRL currency), "45,5%" and bare Brazilian decimals.
    """
    if raw is None or not str(raw).strip():
        return ""

    cleaned = _strip_quotes(str(raw).strip())

    if CURRENCY_MARKER in cleaned or "%" in cleaned or BR_DECIMAL_RE.match(cleaned):
        cleaned = cleaned.replace(CURRENCY_MARKER, "", 1).replace("%", "", 1)
        cleaned = re.sub(r"\s", "", cleaned)
        if "," in cleaned and "." in cleaned:
            cleaned = cleaned.replace(".", "").replace(",", ".", 1)
        elif "," in cleaned:
            cleaned = cleaned.replace(",", ".", 1)

    if cleaned and NUMBER_RE.match(cleaned):
        num = float(cleaned)
        if math.isfinite(num):
            return int(num) if num.is_integer() else num
    return cleaned


def split_csv_line(line: str) -> List[str]:
    return [v.strip() for v in FIELD_SPLIT_RE.split(line)]


def _dedupe_headers(headers: Sequence[str]) -> Tuple[str, ...]:
    seen: Dict[str, int] = {}
    out: List[str] = []
    for h in headers:
        if h not in seen:
            seen[h] = 1
            out.append(h)
            continue
        seen[h] += 1
        candidate = f"{h}_{seen[h]}"
        while candidate in seen:
            seen[h] += 1
            candidate = f"{h}_{seen[h]}"
        seen[candidate] = 1
        out.append(candidate)
    return tuple(out)


def infer_types(headers: Sequence[str], rows: Sequence[Dict[str, Cell]]) -> Dict[str, ColumnKind]:
    types: Dict[str, ColumnKind] = {}
    for h in headers:
        types[h] = "number" if any(is_number(r.get(h)) for r in rows) else "string"
    return types


def parse_csv(text: Optional[str]) -> Optional[Table]:
    """Parse CSV text into a Table; None when there is no non-empty line at all.

    Quote-aware on a single level only: quoted fields may contain commas but not
    line breaks.
    """
    lines = [line for line in LINE_BREAK_RE.split(text or "") if line.strip()]
    if not lines:
        return None

    headers = _dedupe_headers([_strip_quotes(h.strip()).strip() for h in split_csv_line(lines[0])])

    rows: List[Dict[str, Cell]] = []
    for line in lines[1:]:
        values = split_csv_line(line)
        rows.append({h: clean_cell(values[i] if i < len(values) else "") for i, h in enumerate(headers)})

    return Table(headers=headers, rows=rows, types=infer_types(headers, rows))
