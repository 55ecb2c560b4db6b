"""Runtime configuration for the dashboard.

Values come from environment variables, optionally loaded from a `.env` file
in the working directory or next to the project root.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import List, MutableMapping, Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

PROJECT_DIR = Path(__file__).resolve().parents[1]
DEFAULT_DATA_SOURCE = str(PROJECT_DIR / "vendas.csv")
DEFAULT_CORS_ORIGINS = ["http://localhost:3000", "http://127.0.0.1:3000"]


@dataclass(frozen=True)
class DashboardConfig:
    data_source: str = DEFAULT_DATA_SOURCE
    http_timeout: float = 15.0
    cors_origins: List[str] = field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))
    log_level: str = "INFO"


def _load_env_file() -> None:
    for env_path in (Path.cwd() / ".env", PROJECT_DIR / ".env"):
        if env_path.exists():
            load_dotenv(env_path)
            logger.info("Loaded .env from: %s", env_path)
            break


def _split_origins(raw: str) -> List[str]:
    return [o.strip() for o in raw.split(",") if o.strip()]


@lru_cache(maxsize=1)
def get_config() -> DashboardConfig:
    _load_env_file()

    timeout_raw = os.getenv("VENDAS_HTTP_TIMEOUT", "15")
    try:
        http_timeout = float(timeout_raw)
    except ValueError:
        logger.warning("Invalid VENDAS_HTTP_TIMEOUT=%r, using 15s", timeout_raw)
        http_timeout = 15.0

    origins = _split_origins(os.getenv("VENDAS_CORS_ORIGINS", "")) or list(DEFAULT_CORS_ORIGINS)

    return DashboardConfig(
        data_source=os.getenv("VENDAS_DATA_SOURCE", DEFAULT_DATA_SOURCE),
        http_timeout=max(1.0, http_timeout),
        cors_origins=origins,
        log_level=os.getenv("VENDAS_LOG_LEVEL", "INFO").upper(),
    )


def configure_logging(level: str | None = None) -> None:
    """Set up root logging once; later calls are no-ops (basicConfig semantics)."""
    logging.basicConfig(
        level=(level or get_config().log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def resolve_source(session: MutableMapping, source: Optional[str] = None) -> Optional[str]:
    """Remember an explicitly requested source in `session`; otherwise reuse the last one."""
    if source:
        session["data_source"] = source
        return source
    return session.get("data_source")
