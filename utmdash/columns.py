from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Dict, List, Optional, Sequence, Tuple

from utmdash.parser import format_cell


@dataclass(frozen=True)
class RoleSpec:
    keywords: Tuple[str, ...]
    index_hint: Optional[int] = None


# Index hints follow the column order of the Perfect Pay sales export.
ROLE_SPECS: Dict[str, RoleSpec] = {
    "date": RoleSpec(("data venda", "data"), 1),
    "status": RoleSpec(("status",), 5),
    "product": RoleSpec(("produto",), 8),
    "revenue": RoleSpec(("valor da venda", "valor"), 12),
    "source": RoleSpec(("utm_source", "source"), 29),
    "campaign": RoleSpec(("utm_campaign", "campanha"), 31),
    "content": RoleSpec(("utm_content", "conteúdo"), 33),
}

REVENUE_KEYWORDS: Tuple[str, ...] = ("valor", "faturamento")


@dataclass(frozen=True)
class ColumnRoles:
    date: Optional[str] = None
    status: Optional[str] = None
    product: Optional[str] = None
    revenue: Optional[str] = None
    source: Optional[str] = None
    campaign: Optional[str] = None
    content: Optional[str] = None


def _matches(header: str, keywords: Sequence[str]) -> bool:
    h = header.lower()
    return any(h == k.lower() or k.lower() in h for k in keywords)


def resolve_role(headers: Sequence[str], spec: RoleSpec) -> Optional[str]:
    """Best-effort header lookup for a role. Returns None when nothing matches."""
    hint = spec.index_hint
    if hint is not None and 0 <= hint < len(headers) and headers[hint]:
        return headers[hint]
    for h in headers:
        if h and _matches(h, spec.keywords):
            return h
    return None


@lru_cache(maxsize=32)
def _resolve_cached(headers: Tuple[str, ...]) -> ColumnRoles:
    return ColumnRoles(**{role: resolve_role(headers, spec) for role, spec in ROLE_SPECS.items()})


def resolve_columns(headers: Sequence[str]) -> ColumnRoles:
    return _resolve_cached(tuple(headers))


def categorical_columns(roles: ColumnRoles) -> List[str]:
    """Columns offered as multi-select filters, unresolved roles dropped."""
    cols: List[str] = []
    for col in [roles.status, roles.product, roles.source, roles.campaign, roles.content]:
        if col and col not in cols:
            cols.append(col)
    return cols


def detect_revenue_column(headers: Sequence[str]) -> Optional[str]:
    for h in headers:
        if _matches(h, REVENUE_KEYWORDS):
            return h
    return None


# Substring -> bucket, checked in order against the lowercased source.
SOURCE_BUCKETS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("tiktok", ("tiktok",)),
    ("facebook", ("facebook", "fb")),
    ("instagram", ("instagram", "ig")),
    ("google", ("google",)),
    ("kwai", ("kwai",)),
)
ORGANIC_SOURCE = "organic"
MISSING_CAMPAIGN = "n/a"
MISSING_VALUE = "N/A"


def clean_source(value: str) -> str:
    if not value:
        return ORGANIC_SOURCE
    low = value.lower()
    for bucket, needles in SOURCE_BUCKETS:
        if any(n in low for n in needles):
            return bucket
    return value


def clean_campaign(value: str) -> str:
    if not value:
        return MISSING_CAMPAIGN
    return value.split("|")[0].strip() or MISSING_CAMPAIGN


def normalized_value(roles: ColumnRoles, column: str, value: object) -> str:
    """Comparable string form of a cell, with UTM source/campaign bucketing applied."""
    s = MISSING_VALUE if value is None else format_cell(value)
    if column == roles.source:
        s = clean_source(s)
    if column == roles.campaign:
        s = clean_campaign(s)
    return s


def display_value(roles: ColumnRoles, column: Optional[str], value: object) -> str:
    """Label used when counting/grouping: blank plain cells become "N/A"."""
    s = "" if value is None else format_cell(value).strip()
    if column is not None and column in (roles.source, roles.campaign):
        return normalized_value(roles, column, s)
    return s or MISSING_VALUE
