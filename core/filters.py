from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Optional


@dataclass(frozen=True)
class DashboardFilters:
    selected_sellers: List[str] = field(default_factory=list)
    top_n: int = 15


def _as_str_list(values: Optional[Iterable[object]]) -> List[str]:
    if values is None:
        return []
    if isinstance(values, str):
        values = [values]
    out: List[str] = []
    for v in values:
        if v is None:
            continue
        s = str(v)
        if s not in out:
            out.append(s)
    return out


def normalize_filters(raw: Optional[dict], *, available_sellers: Optional[List[str]] = None) -> DashboardFilters:
    """Build filters from a loose dict.

    A missing or null `selected_sellers` means "all sellers"; an explicit empty
    list selects nothing.
    """
    raw = raw or {}
    if raw.get("selected_sellers") is None:
        selected_sellers = list(available_sellers or [])
    else:
        selected_sellers = _as_str_list(raw.get("selected_sellers"))

    top_n = raw.get("top_n", 15)
    try:
        top_n = int(top_n)
    except (TypeError, ValueError):
        top_n = 15
    top_n = max(1, min(200, top_n))

    return DashboardFilters(selected_sellers=selected_sellers, top_n=top_n)
