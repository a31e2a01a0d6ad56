from __future__ import annotations

import logging
import re
from typing import Any, Optional

import requests

from utmdash.parser import Table, parse_csv

logger = logging.getLogger(__name__)

EDIT_SUFFIX_RE = re.compile(r"/edit.*$")
CSV_EXPORT_SUFFIX = "/export?format=csv"
URL_SOURCE_NAME = "Planilha via Link"
URL_ERROR_MESSAGE = "Erro ao carregar link. Certifique-se de que a planilha está 'Publicada na Web' como CSV."
FILE_ERROR_MESSAGE = "Não foi possível ler o arquivo. Envie um .csv com cabeçalho na primeira linha."


class SourceError(Exception):
    """Import failed; `message` is safe to show to the user as-is."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


def to_csv_export_url(url: str) -> str:
    url = (url or "").strip()
    if "/edit" in url:
        return EDIT_SUFFIX_RE.sub(CSV_EXPORT_SUFFIX, url)
    return url


def _looks_like_html(content_type: str, body: str) -> bool:
    return "text/html" in content_type.lower() or body.lstrip()[:15].lower().startswith(("<!doctype", "<html"))


def fetch_csv(url: str, *, session: Optional[Any] = None, timeout: float = 30.0) -> str:
    target = to_csv_export_url(url)
    if not target:
        raise SourceError(URL_ERROR_MESSAGE)
    http = session or requests
    try:
        resp = http.get(target, timeout=timeout)
        resp.raise_for_status()
    except requests.RequestException as exc:
        logger.warning("CSV fetch failed for %s: %s", target, exc)
        raise SourceError(URL_ERROR_MESSAGE) from exc

    if resp.encoding is None:
        resp.encoding = "utf-8"
    body = resp.text
    if _looks_like_html(resp.headers.get("Content-Type", ""), body):
        logger.warning("CSV fetch for %s returned HTML instead of CSV", target)
        raise SourceError(URL_ERROR_MESSAGE)
    return body


def read_uploaded(data: bytes) -> str:
    return data.decode("utf-8-sig", errors="replace")


def load_table_from_url(url: str, *, session: Optional[Any] = None, timeout: float = 30.0) -> Table:
    table = parse_csv(fetch_csv(url, session=session, timeout=timeout))
    if table is None:
        raise SourceError(URL_ERROR_MESSAGE)
    return table


def load_table_from_bytes(data: bytes) -> Optional[Table]:
    """None for an empty upload, so the caller keeps whatever is loaded."""
    return parse_csv(read_uploaded(data))
