"""Configuration utilities for the ordered collections service.

This module loads application configuration with the following rules:
- Primary source: `ordering_config.json` at the project root.
- Overrides: environment variables, then optional text files under `config/`.
- Validation: Pydantic models enforce required fields and value constraints.
"""

from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, field_validator


CONFIG_DIR = Path("config")
ROOT_ORDERING_CONFIG = Path("ordering_config.json")
COLLECTION_NAME_RE = re.compile(r"^[a-z][a-z0-9_-]{0,63}$")
logger = logging.getLogger(__name__)


def _read_config_file(rel_path: str) -> Optional[str]:
    path = CONFIG_DIR / rel_path
    try:
        if path.exists():
            return path.read_text(encoding="utf-8").strip()
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Failed to read override %s: %s", path, e)
        return None
    return None


def _env(key: str, default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(key, default)


class DatabaseConfig(BaseModel):
    dsn: str

    @field_validator("dsn")
    @classmethod
    def dsn_must_be_non_empty(cls, v: str) -> str:
        if not isinstance(v, str) or not v.strip():
            raise ValueError("database.dsn must be a non-empty string")
        return v


class OrderingConfig(BaseModel):
    allowed_collections: List[str] = Field(default_factory=list)
    require_if_match: bool = False
    notice_seconds: float = Field(default=3.0, gt=0)

    @field_validator("allowed_collections")
    @classmethod
    def collection_names_must_be_valid(cls, v: List[str]) -> List[str]:
        bad = [name for name in v if not COLLECTION_NAME_RE.fullmatch(name)]
        if bad:
            raise ValueError(f"ordering.allowed_collections has invalid names: {bad}")
        return v


class AppConfig(BaseModel):
    database: DatabaseConfig
    ordering: OrderingConfig


def _read_json_file(path: Path) -> dict:
    try:
        if path.exists():
            return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.error("Failed to read JSON config %s: %s", path, e)
    return {}


def _split_names(text: Optional[str]) -> List[str]:
    if not text:
        return []
    return [part.strip() for part in str(text).split(",") if part.strip()]


def load_config() -> AppConfig:
    """Load configuration with validation.

    Precedence (highest first):
    1) Environment variables
    2) Text files in `config/` (optional)
    3) ordering_config.json at project root (primary base)
    4) Safe defaults for development
    """

    base = _read_json_file(ROOT_ORDERING_CONFIG)

    def _base(path: str, default: Optional[str] = None) -> Optional[str]:
        cur: object = base
        for key in path.split("."):
            if not isinstance(cur, dict) or key not in cur:
                return default
            cur = cur[key]
        if isinstance(cur, list):
            return ",".join(str(x) for x in cur)
        return str(cur) if cur is not None else default

    dsn = (
        _env("TEST_DATABASE_URL")
        or _env("DATABASE_URL")
        or _read_config_file("database.url")
        or _base("database.dsn")
        or "sqlite+pysqlite:///:memory:"
    )

    allowed_text = (
        _env("ORDERING_ALLOWED_COLLECTIONS")
        or _read_config_file("ordering.allowed_collections")
        or _base("ordering.allowed_collections", "")
    )
    require_text = (
        _env("ORDERING_REQUIRE_IF_MATCH")
        or _read_config_file("ordering.require_if_match")
        or _base("ordering.require_if_match", "false")
    )
    notice_text = (
        _env("ORDERING_NOTICE_SECONDS")
        or _read_config_file("ordering.notice_seconds")
        or _base("ordering.notice_seconds", "3.0")
    )

    try:
        ordering_cfg = OrderingConfig(
            allowed_collections=_split_names(allowed_text),
            require_if_match=str(require_text).strip().lower() in {"1", "true", "yes", "on"},
            notice_seconds=float(str(notice_text).strip()),
        )
        return AppConfig(database=DatabaseConfig(dsn=dsn), ordering=ordering_cfg)
    except PydanticValidationError as e:
        logger.error("Invalid application configuration: %s", e)
        raise
    except ValueError as e:
        # float() on a malformed notice interval
        logger.error("Invalid application configuration: %s", e)
        raise


__all__ = [
    "AppConfig",
    "DatabaseConfig",
    "OrderingConfig",
    "COLLECTION_NAME_RE",
    "load_config",
]
