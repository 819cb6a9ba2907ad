from __future__ import annotations

import logging
import os
from typing import List


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.environ.get(name, default))
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, default))
    except ValueError:
        return default


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.environ.get(name)
    if not raw:
        return list(default)
    return [part.strip() for part in raw.split(",") if part.strip()]


API_BASE_URL = os.environ.get("CONSOLE_API_BASE_URL", "http://localhost:5000").rstrip("/")
API_TIMEOUT = _env_float("CONSOLE_API_TIMEOUT", 15.0)
# catalog lists are pulled in one page for counting
LIST_PAGE_SIZE = _env_int("CONSOLE_LIST_PAGE_SIZE", 1000)
LOG_LEVEL = os.environ.get("CONSOLE_LOG_LEVEL", "INFO").upper()
CORS_ORIGINS = _env_list("CONSOLE_CORS_ORIGINS", ["http://localhost:3000", "http://127.0.0.1:3000"])

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(level=(level or LOG_LEVEL), format=LOG_FORMAT)
