from __future__ import annotations

import json
import logging
from typing import Any, Optional

from google import genai
from google.genai import types

from utmdash.config import Settings
from utmdash.parser import Table

logger = logging.getLogger(__name__)

SAMPLE_ROWS = 10

INSIGHT_EMPTY_MESSAGE = "Não foi possível gerar insights no momento."
INSIGHT_ERROR_MESSAGE = "Erro ao processar análise inteligente. Verifique sua conexão ou volume de dados."

PROMPT_TEMPLATE = """
Analyze the following data summary from a user's spreadsheet.
Columns: {columns}
Row count: {row_count}
Sample Data (first {sample_size} rows): {sample}

Provide a concise analysis in Portuguese focusing on:
1. Key trends or anomalies discovered.
2. A brief business summary.
3. Three actionable recommendations based on the numbers.

Format the output in professional Markdown.
"""


def build_prompt(table: Table) -> str:
    columns = ", ".join(f"{h} ({table.types.get(h, 'string')})" for h in table.headers)
    sample = table.rows[:SAMPLE_ROWS]
    return PROMPT_TEMPLATE.format(
        columns=columns,
        row_count=len(table),
        sample_size=SAMPLE_ROWS,
        sample=json.dumps(sample, ensure_ascii=False),
    )


def make_client(settings: Settings) -> genai.Client:
    # HttpOptions.timeout is in milliseconds.
    return genai.Client(
        api_key=settings.gemini_api_key,
        http_options=types.HttpOptions(timeout=int(settings.request_timeout * 1000)),
    )


def analyze_table(table: Table, settings: Settings, *, client: Optional[Any] = None) -> str:
    """Ask Gemini for a written summary of the table.

    Never raises: any failure comes back as a fixed apology message.
    """
    if not settings.gemini_api_key:
        logger.warning("Insight requested without an API key configured")
        return INSIGHT_ERROR_MESSAGE

    try:
        ai = client or make_client(settings)
        response = ai.models.generate_content(
            model=settings.gemini_model,
            contents=build_prompt(table),
            config=types.GenerateContentConfig(temperature=0.7, top_p=0.95),
        )
        text = (response.text or "").strip()
    except Exception:
        logger.exception("Insight generation failed")
        return INSIGHT_ERROR_MESSAGE

    return text or INSIGHT_EMPTY_MESSAGE
