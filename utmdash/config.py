from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional


DEFAULT_STATE_PATH = Path.home() / ".utmdash" / "state.json"
DEFAULT_GEMINI_MODEL = "gemini-3-flash-preview"


@dataclass(frozen=True)
class Settings:
    tax_rate: float = 0.06
    history_limit: int = 10
    top_n: int = 5
    state_path: Path = DEFAULT_STATE_PATH
    gemini_api_key: Optional[str] = None
    gemini_model: str = DEFAULT_GEMINI_MODEL
    request_timeout: float = 30.0
    log_level: str = "INFO"


def _as_float(value: Optional[str], default: float) -> float:
    if value is None or not str(value).strip():
        return default
    try:
        out = float(value)
    except Exception:
        return default
    return out if out > 0 else default


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    env = os.environ if environ is None else environ

    state_path = env.get("UTMDASH_STATE_PATH")
    api_key = (env.get("GEMINI_API_KEY") or env.get("API_KEY") or "").strip() or None
    log_level = (env.get("UTMDASH_LOG_LEVEL") or "INFO").strip().upper() or "INFO"

    return Settings(
        state_path=Path(state_path).expanduser() if state_path else DEFAULT_STATE_PATH,
        gemini_api_key=api_key,
        gemini_model=(env.get("UTMDASH_GEMINI_MODEL") or DEFAULT_GEMINI_MODEL).strip(),
        request_timeout=_as_float(env.get("UTMDASH_HTTP_TIMEOUT"), 30.0),
        log_level=log_level,
    )
