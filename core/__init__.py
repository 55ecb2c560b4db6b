"""Core (UI-agnostic) sales dashboard logic.

This package contains:
- data loading (CSV/XLSX/URL -> pandas) and header/number normalization
- the owned dashboard state (records, sellers, selection, goals)
- filter normalization
- page compute functions (JSON-serializable payloads)
- chart helpers (Altair -> Vega-Lite spec dict)
"""
