"""Shared fixtures: a small Perfect Pay style export and a fixed clock."""

from datetime import datetime

import pytest

from utmdash.columns import ColumnRoles
from utmdash.data import table_to_frame
from utmdash.parser import parse_csv

SALES_CSV = "\n".join(
    [
        "data,status,produto,utm_source,utm_campaign,utm_content,valor",
        "19/10/2026 10:00:00,Aprovada,Curso A,facebook_ads,BF|conj1,video1,100",
        "18/10/2026,Aprovada,Curso A,tiktok,BF|conj2,video2,50",
        "11/10/2026,Cancelada,Curso B,,Lancamento,,30",
        "xx,Aprovada,Curso A,google,,,20",
        "17/10/2026,Aprovada,Curso B,fb,BF | conj3,video1,70",
    ]
)


@pytest.fixture
def now() -> datetime:
    return datetime(2026, 10, 19, 12, 0, 0)


@pytest.fixture
def sales_table():
    return parse_csv(SALES_CSV)


@pytest.fixture
def sales_roles() -> ColumnRoles:
    return ColumnRoles(
        date="data",
        status="status",
        product="produto",
        revenue="valor",
        source="utm_source",
        campaign="utm_campaign",
        content="utm_content",
    )


@pytest.fixture
def sales_frame(sales_table):
    return table_to_frame(sales_table)
