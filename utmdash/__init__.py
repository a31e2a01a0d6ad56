"""Core (UI-agnostic) utmdash logic.

This package contains:
- CSV import (text -> typed table) and column role resolution
- filter state reducers and row filtering
- page compute functions (JSON-serializable payloads)
- history / manual cost persistence behind a storage port
- chart helpers (Altair -> Vega-Lite spec dict)
"""
