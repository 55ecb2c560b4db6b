from __future__ import annotations

import io
import logging
import re
import unicodedata
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from functools import lru_cache
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

import pandas as pd
import requests

from core.config import get_config
from core.errors import LoadFailure
from core.filters import DashboardFilters, normalize_filters

logger = logging.getLogger(__name__)

REPASSE = "Repasse"
RECORD_COLUMNS = ["dias", "valor_venda", "lucro_liquido", "vendedor", "ano_mod"]
NUMERIC_COLUMNS = ["dias", "valor_venda", "lucro_liquido"]
REQUIRED_COLUMNS = {"dias", "valor_venda", "vendedor"}

# Keys are normalized headers (see normalize_header).
SALES_COLUMNS = {
    "dias": "dias",
    "dias em estoque": "dias",
    "dias estoque": "dias",
    "valor venda": "valor_venda",
    "valor de venda": "valor_venda",
    "valorvenda": "valor_venda",
    "lucro liquido": "lucro_liquido",
    "lucro": "lucro_liquido",
    "lucroliquido": "lucro_liquido",
    "vendedor": "vendedor",
    "vendedora": "vendedor",
    "ano/mod": "ano_mod",
    "ano mod": "ano_mod",
    "ano modelo": "ano_mod",
    "anomod": "ano_mod",
}

NA_TOKENS = {"", "nan", "none", "null", "<na>", "na", "n/a", "-"}


@dataclass(frozen=True)
class LoadResult:
    records: pd.DataFrame
    sellers: List[str] = field(default_factory=list)


def empty_records() -> pd.DataFrame:
    df = pd.DataFrame({c: pd.Series(dtype="float64") for c in NUMERIC_COLUMNS})
    df["vendedor"] = pd.Series(dtype="string")
    df["ano_mod"] = pd.Series(dtype="string")
    return df[RECORD_COLUMNS]


def normalize_header(text: object) -> str:
    if text is None or (isinstance(text, float) and pd.isna(text)):
        return ""
    s = unicodedata.normalize("NFKD", str(text))
    s = "".join(ch for ch in s if not unicodedata.combining(ch))
    s = re.sub(r"[_\s]+", " ", s.strip().lower())
    return s


def parse_number_any(v: object) -> Optional[float]:
    """Parse numbers like 1234.5, "1.234,56" or "R$ 1.234,56" into floats."""
    if v is None or (isinstance(v, float) and pd.isna(v)):
        return None
    if isinstance(v, (int, float)) and not isinstance(v, bool):
        return float(v)

    s = str(v).strip()
    if s.lower() in NA_TOKENS:
        return None

    had_currency = "R$" in s
    s = s.replace("\u00a0", " ").replace("R$", "").replace(" ", "")
    s = re.sub(r"[^0-9\.\,\-]", "", s)
    if s in {"", "-", "-.", "-,"}:
        return None

    neg = s.startswith("-")
    s = s.lstrip("-")

    if "." in s and "," in s:
        if s.rfind(",") > s.rfind("."):
            s = s.replace(".", "").replace(",", ".")
        else:
            s = s.replace(",", "")
    elif "," in s:
        s = s.replace(",", ".")
    elif s.count(".") > 1:
        s = s.replace(".", "")
    elif "." in s and (had_currency or re.fullmatch(r"\d{1,3}\.\d{3}", s)):
        # BRL amounts use "." only as a thousands separator.
        s = s.replace(".", "")

    try:
        out = float(s)
    except ValueError:
        return None
    return -out if neg else out


def numericize(df: pd.DataFrame, cols: Iterable[str]) -> pd.DataFrame:
    for col in cols:
        if col in df.columns:
            df[col] = pd.to_numeric(df[col].apply(parse_number_any), errors="coerce").astype("float64")
    return df


def coerce_str_safe(df: pd.DataFrame, cols: Iterable[str]) -> pd.DataFrame:
    for col in cols:
        if col in df.columns:
            series = df[col].astype("string").str.strip()
            series = series.mask(series.str.lower().isin(NA_TOKENS), pd.NA)
            df[col] = series
    return df


def find_header_row(df: pd.DataFrame, keywords: Iterable[str], search_rows: int = 25) -> Optional[int]:
    lowered = [k.lower() for k in keywords]
    for idx in range(min(search_rows, len(df))):
        row = [normalize_header(v) for v in df.iloc[idx].tolist()]
        if any(k in row for k in lowered):
            return idx
    return None


def round_half_up(value: object, ndigits: int = 0) -> Optional[float]:
    if value is None or pd.isna(value):
        return None
    q = Decimal(10) ** -ndigits
    return float(Decimal(float(value)).quantize(q, rounding=ROUND_HALF_UP))


def format_brl(value: object, decimals: int = 2) -> str:
    if value is None or pd.isna(value):
        return "N/A"
    s = f"{float(value):,.{decimals}f}"
    return "R$ " + s.replace(",", "X").replace(".", ",").replace("X", ".")


def format_currency_columns(df: pd.DataFrame, cols: Iterable[str], decimals: int = 2) -> pd.DataFrame:
    formatted = df.copy()
    for c in cols:
        if c in formatted.columns:
            formatted[c] = formatted[c].apply(lambda v: format_brl(v, decimals) if pd.notna(v) else "")
    return formatted


def format_percent_columns(df: pd.DataFrame, cols: Iterable[str], decimals: int = 0) -> pd.DataFrame:
    formatted = df.copy()
    for c in cols:
        if c in formatted.columns:
            formatted[c] = formatted[c].apply(lambda v: f"{float(v)*100:.{decimals}f}%" if pd.notna(v) else "")
    return formatted


def is_url(source: str) -> bool:
    return bool(re.match(r"^https?://", str(source).strip(), flags=re.IGNORECASE))


def source_signature(source: str) -> Tuple[str, Optional[float]]:
    if is_url(source):
        return source, None
    path = Path(source)
    mtime = path.stat().st_mtime if path.exists() else None
    return str(path), mtime


def _fetch_url(url: str, timeout: float) -> pd.DataFrame:
    try:
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
    except requests.exceptions.Timeout as exc:
        raise LoadFailure(f"Tempo esgotado ao buscar os dados ({timeout:.0f}s).") from exc
    except requests.exceptions.RequestException as exc:
        raise LoadFailure(f"Falha ao buscar os dados: {exc}") from exc

    content_type = (response.headers.get("content-type") or "").lower()
    if "spreadsheetml" in content_type or url.lower().split("?")[0].endswith(".xlsx"):
        return pd.read_excel(io.BytesIO(response.content), header=None)
    response.encoding = response.encoding or "utf-8"
    return pd.read_csv(io.StringIO(response.text), header=None, dtype=str, keep_default_na=False)


def read_source_frame(source: str, *, timeout: float = 15.0) -> pd.DataFrame:
    """Read the raw sheet (no header applied) from a local file or an http(s) URL."""
    if is_url(source):
        return _fetch_url(source, timeout)

    path = Path(source)
    if not path.exists():
        raise LoadFailure(f"Arquivo de dados não encontrado: {path}")
    try:
        if path.suffix.lower() in {".xlsx", ".xls"}:
            return pd.read_excel(path, header=None)
        return pd.read_csv(path, header=None, dtype=str, keep_default_na=False, sep=None, engine="python")
    except (OSError, ValueError, pd.errors.ParserError) as exc:
        raise LoadFailure(f"Falha ao ler {path.name}: {exc}") from exc


def parse_sales_frame(raw: pd.DataFrame) -> pd.DataFrame:
    """Map a raw sheet onto the canonical record columns.

    The header row is located by searching for the seller column, so sheets
    with title rows above the table are accepted. Rows without a seller are
    dropped; unparsable numbers become NaN.
    """
    if raw is None or raw.empty:
        return empty_records()

    header_idx = find_header_row(raw, ["vendedor"])
    if header_idx is None:
        raise LoadFailure("Coluna 'Vendedor' não encontrada na planilha.")

    headers = [normalize_header(v) for v in raw.iloc[header_idx].tolist()]
    df = raw.iloc[header_idx + 1 :].copy()
    df.columns = [SALES_COLUMNS.get(h, h) for h in headers]
    df = df.loc[:, ~df.columns.duplicated()].copy()

    missing = REQUIRED_COLUMNS - set(df.columns)
    if missing:
        raise LoadFailure(f"Colunas obrigatórias ausentes: {', '.join(sorted(missing))}")

    for col in RECORD_COLUMNS:
        if col not in df.columns:
            df[col] = pd.NA

    df = df[RECORD_COLUMNS].copy()
    df = numericize(df, NUMERIC_COLUMNS)
    df = coerce_str_safe(df, ["vendedor", "ano_mod"])

    before = len(df)
    df = df.dropna(subset=["vendedor"]).reset_index(drop=True)
    dropped = before - len(df)
    if dropped:
        logger.warning("Dropped %d rows without a seller", dropped)
    return df


def unique_sellers(records: pd.DataFrame) -> List[str]:
    """Distinct sellers in first-encounter order."""
    if records.empty or "vendedor" not in records.columns:
        return []
    return [str(s) for s in records["vendedor"].dropna().drop_duplicates().tolist()]


@lru_cache(maxsize=4)
def _load_sales_data_cached(signature: Tuple[str, Optional[float]], timeout: float) -> LoadResult:
    source, _ = signature
    records = parse_sales_frame(read_source_frame(source, timeout=timeout))
    return LoadResult(records=records, sellers=unique_sellers(records))


def load_sales_data(source: Optional[str] = None) -> LoadResult:
    """Fetch and parse the sales sheet.

    Local files are cached per (path, mtime); URLs are fetched on every call.
    Raises LoadFailure on any fetch or parse problem.
    """
    cfg = get_config()
    source = source or cfg.data_source
    signature = source_signature(source)
    try:
        if signature[1] is None:
            records = parse_sales_frame(read_source_frame(source, timeout=cfg.http_timeout))
            result = LoadResult(records=records, sellers=unique_sellers(records))
        else:
            result = _load_sales_data_cached(signature, cfg.http_timeout)
    except LoadFailure:
        raise
    except Exception as exc:
        logger.exception("Unexpected error parsing %s", source)
        raise LoadFailure(str(exc)) from exc

    return LoadResult(records=result.records.copy(), sellers=list(result.sellers))


def filter_records(records: pd.DataFrame, selected_sellers: Iterable[str]) -> pd.DataFrame:
    """Rows whose seller is in the selection."""
    if records.empty or "vendedor" not in records.columns:
        return records.copy()
    selected = set(selected_sellers)
    return records[records["vendedor"].isin(selected)].copy()


def prepare_context(filters: dict | DashboardFilters | None, data_ctx: Dict[str, object]) -> Dict[str, object]:
    records: pd.DataFrame = data_ctx.get("records", empty_records())
    sellers: List[str] = list(data_ctx.get("sellers", []) or [])
    goals: Dict[str, float] = dict(data_ctx.get("goals", {}) or {})

    if isinstance(filters, DashboardFilters):
        filt = filters
    else:
        raw = dict(filters or {})
        if raw.get("selected_sellers") is None and data_ctx.get("selected_sellers") is not None:
            raw["selected_sellers"] = data_ctx.get("selected_sellers")
        filt = normalize_filters(raw, available_sellers=sellers)

    return {
        "filters": filt,
        "records": records,
        "filtered_records": filter_records(records, filt.selected_sellers),
        "sellers": sellers,
        "goal_sellers": [s for s in sellers if s != REPASSE],
        "goals": goals,
    }
