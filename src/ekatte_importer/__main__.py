from __future__ import annotations

import asyncio
import json
import logging
import os
import sys
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler

from .errors import ConfigError, FetchError, ShapeError
from .ingest import run_import
from .models import (DEFAULT_BATCH_SIZE, DEFAULT_DB_CONNECT_TIMEOUT,
                     DEFAULT_HTTP_TIMEOUT, DEFAULT_URL_SUFFIX, KINDS,
                     MISSING_NAME_POLICIES, POLICY_FALLBACK, ApiConfig,
                     DatabaseConfig, ImportConfig, SourceConfig)

console = Console()
LOGGER = logging.getLogger("ekatte.importer")


def configure_logging() -> None:
    """Configure root logging to use Rich's styled output."""
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    handler = RichHandler(
        console=console, rich_tracebacks=False, show_path=False, markup=False
    )
    logging.basicConfig(
        level=log_level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[handler],
        force=True,
    )


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from exc


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc


def load_sources(path: Optional[Path]) -> SourceConfig:
    """Read source URLs from a JSON object keyed by kind; missing kinds keep their defaults."""
    if path is None:
        return SourceConfig()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise ConfigError(f"Cannot read sources file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Sources file {path} must contain a JSON object")

    urls = {}
    for kind in KINDS:
        if kind not in data:
            continue
        value = data[kind]
        if not isinstance(value, str) or not value.strip():
            raise ConfigError(f"Sources file {path}: {kind} must be a non-empty URL")
        urls[kind] = value.strip()
    return SourceConfig(**urls)


def _database_url() -> str:
    explicit = os.getenv("DATABASE_URL")
    if explicit:
        return explicit

    pg_user = os.getenv("POSTGRES_USER")
    pg_password = os.getenv("POSTGRES_PASSWORD")
    pg_db = os.getenv("POSTGRES_DB")
    pg_host = os.getenv("POSTGRES_HOST", "localhost")
    pg_port = os.getenv("POSTGRES_PORT", "5432")
    if not (pg_user and pg_password and pg_db):
        raise ConfigError(
            "DATABASE_URL or POSTGRES_USER, POSTGRES_PASSWORD, and POSTGRES_DB "
            "environment variables are required"
        )
    return f"postgresql+asyncpg://{pg_user}:{pg_password}@{pg_host}:{pg_port}/{pg_db}"


def load_config() -> ImportConfig:
    """Load import configuration from environment variables."""
    load_dotenv()

    sources_file = os.getenv("EKATTE_SOURCES_FILE")
    sources = load_sources(Path(sources_file) if sources_file else None)

    batch_size = _int_env("EKATTE_BATCH_SIZE", DEFAULT_BATCH_SIZE)
    if batch_size < 1:
        raise ConfigError("EKATTE_BATCH_SIZE must be at least 1")

    policy = os.getenv("EKATTE_MISSING_TOWN_HALL_POLICY", POLICY_FALLBACK).strip().lower()
    if policy not in MISSING_NAME_POLICIES:
        raise ConfigError(
            f"EKATTE_MISSING_TOWN_HALL_POLICY must be one of {', '.join(MISSING_NAME_POLICIES)}"
        )

    apply_schema = os.getenv("DATABASE_APPLY_SCHEMA", "false").strip().lower() in {
        "1",
        "true",
        "yes",
        "on",
    }

    return ImportConfig(
        database=DatabaseConfig(
            url=_database_url(),
            connect_timeout=_float_env(
                "DATABASE_CONNECT_TIMEOUT", DEFAULT_DB_CONNECT_TIMEOUT
            ),
            apply_schema=apply_schema,
        ),
        sources=sources,
        api=ApiConfig(
            timeout=_float_env("EKATTE_HTTP_TIMEOUT", DEFAULT_HTTP_TIMEOUT),
            url_suffix=os.getenv("EKATTE_URL_SUFFIX", DEFAULT_URL_SUFFIX),
        ),
        batch_size=batch_size,
        missing_name_policy=policy,
    )


def main() -> None:
    configure_logging()
    try:
        config = load_config()
    except ConfigError as exc:
        LOGGER.error("Configuration error: %s", exc)
        print(f"Configuration error: {exc}", file=sys.stderr)
        sys.exit(1)

    try:
        asyncio.run(run_import(config, console=console))
    except (FetchError, ShapeError) as exc:
        print(f"Source error: {exc}", file=sys.stderr)
        sys.exit(2)
    except Exception as exc:  # pragma: no cover - guard for CLI usage
        LOGGER.exception("Import failed")
        print(f"Import failed: {exc}", file=sys.stderr)
        sys.exit(3)


if __name__ == "__main__":
    main()
