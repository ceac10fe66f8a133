from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from rich.console import Console
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncTransaction

from .api_client import EkatteApiClient, RawDatasets
from .db_connector import DatabaseSession
from .errors import StoreError
from .models import (DEFAULT_BATCH_SIZE, KINDS, MUNICIPALITIES,
                     POLICY_FALLBACK, REGIONS, TERRITORIAL_UNITS, TOWN_HALLS,
                     ImportConfig, SourceConfig)
from .normalize import dedupe, normalize_records
from .persistence import upsert
from .reconcile import reconcile_town_halls
from .schema import NATURAL_KEYS, TABLES, columns_for
from .validation import filter_valid

LOGGER = logging.getLogger("ekatte.importer")


@dataclass
class ImportBatch:
    """Reconciled, deduplicated record sets ready to be written."""

    regions: list[dict[str, Any]] = field(default_factory=list)
    municipalities: list[dict[str, Any]] = field(default_factory=list)
    town_halls: list[dict[str, Any]] = field(default_factory=list)
    territorial_units: list[dict[str, Any]] = field(default_factory=list)
    synthesized_town_halls: int = 0


@dataclass
class ImportSummary:
    counts: dict[str, int] = field(default_factory=dict)
    synthesized_town_halls: int = 0
    statements: int = 0

    def describe(self) -> str:
        parts = [f"{self.counts.get(kind, 0)} {kind}" for kind in KINDS]
        return (
            f"{', '.join(parts)} "
            f"({self.synthesized_town_halls} synthesized town halls, "
            f"{self.statements} statements)"
        )


def prepare_records(
    raw: RawDatasets, missing_name_policy: str = POLICY_FALLBACK
) -> ImportBatch:
    """Normalize, validate, reconcile and deduplicate the raw datasets.

    Town halls must be reconciled against the complete validated unit set
    before any deduplication; only the reconciled set is deduplicated.
    """
    validated = {
        kind: filter_valid(normalize_records(kind, getattr(raw, kind)), kind)
        for kind in KINDS
    }

    fetched_town_halls = validated[TOWN_HALLS]
    town_halls = reconcile_town_halls(
        fetched_town_halls,
        validated[TERRITORIAL_UNITS],
        validated[MUNICIPALITIES],
        missing_name_policy=missing_name_policy,
    )
    synthesized = len(
        {town_hall["code"] for town_hall in town_halls[len(fetched_town_halls) :]}
    )

    return ImportBatch(
        regions=validated[REGIONS],
        municipalities=validated[MUNICIPALITIES],
        town_halls=dedupe(town_halls, NATURAL_KEYS[TOWN_HALLS]),
        territorial_units=dedupe(
            validated[TERRITORIAL_UNITS], NATURAL_KEYS[TERRITORIAL_UNITS]
        ),
        synthesized_town_halls=synthesized,
    )


async def _rollback(transaction: AsyncTransaction) -> None:
    try:
        await transaction.rollback()
    except SQLAlchemyError:
        LOGGER.exception("Rollback failed")
    else:
        LOGGER.warning("Transaction rolled back")


async def import_datasets(
    conn: AsyncConnection,
    client: EkatteApiClient,
    sources: SourceConfig,
    *,
    batch_size: int = DEFAULT_BATCH_SIZE,
    missing_name_policy: str = POLICY_FALLBACK,
) -> ImportSummary:
    """Fetch, reconcile and upsert all four kinds inside one transaction on ``conn``.

    Either every batch is committed or the transaction is rolled back and
    the original error re-raised.
    """
    try:
        transaction = await conn.begin()
    except SQLAlchemyError as exc:
        raise StoreError(f"Failed to begin transaction: {exc}") from exc

    summary = ImportSummary()
    try:
        raw = await client.fetch_all(sources)
        batch = prepare_records(raw, missing_name_policy)
        summary.synthesized_town_halls = batch.synthesized_town_halls

        for kind in KINDS:
            records = getattr(batch, kind)
            summary.statements += await upsert(
                conn,
                TABLES[kind],
                columns_for(kind),
                records,
                NATURAL_KEYS[kind],
                batch_size=batch_size,
            )
            summary.counts[kind] = len(records)
            LOGGER.info("Upserted %s %s records", len(records), kind)

        try:
            await transaction.commit()
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to commit: {exc}") from exc
    except Exception:
        await _rollback(transaction)
        raise

    return summary


async def run_import(
    config: ImportConfig, console: Optional[Console] = None
) -> ImportSummary:
    active_console = console or Console()
    session = DatabaseSession(config.database)
    try:
        engine = await session.open()
        if config.database.apply_schema:
            LOGGER.info("Applying database schema as requested by configuration")
            await session.ensure_schema()

        async with EkatteApiClient(config.api) as api_client:
            async with engine.connect() as conn:
                with active_console.status("Importing EKATTE datasets..."):
                    summary = await import_datasets(
                        conn,
                        api_client,
                        config.sources,
                        batch_size=config.batch_size,
                        missing_name_policy=config.missing_name_policy,
                    )
    except SQLAlchemyError as exc:
        raise StoreError(str(exc)) from exc
    finally:
        await session.dispose()

    LOGGER.info("Import completed successfully: %s", summary.describe())
    return summary
