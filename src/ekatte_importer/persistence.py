from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from typing import Any, Mapping

from sqlalchemy import Table
from sqlalchemy.dialects.postgresql import Insert
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection

from .errors import StoreError
from .models import DEFAULT_BATCH_SIZE

LOGGER = logging.getLogger("ekatte.importer.persistence")


def build_rows(
    columns: Sequence[str], records: Sequence[Mapping[str, Any]]
) -> list[dict[str, Any]]:
    """Project ``records`` onto ``columns``; absent values become explicit ``None``."""
    return [{column: record.get(column) for column in columns} for record in records]


def build_upsert(
    table: Table,
    columns: Sequence[str],
    rows: list[dict[str, Any]],
    conflict_key: str,
) -> Insert:
    """Multi-row INSERT that overwrites every non-key column on key conflict."""
    stmt = pg_insert(table).values(rows)
    update_columns = [column for column in columns if column != conflict_key]
    if not update_columns:
        return stmt.on_conflict_do_nothing(index_elements=[table.c[conflict_key]])
    return stmt.on_conflict_do_update(
        index_elements=[table.c[conflict_key]],
        set_={column: stmt.excluded[column] for column in update_columns},
    )


async def upsert(
    conn: AsyncConnection,
    table: Table,
    columns: Sequence[str],
    records: Sequence[Mapping[str, Any]],
    conflict_key: str,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> int:
    """Write ``records`` in chunks of at most ``batch_size`` rows.

    Chunks run one after another on ``conn``; nothing is committed here.
    Returns the number of statements issued, ``ceil(len(records) / batch_size)``.
    """
    if batch_size < 1:
        raise ValueError("batch_size must be at least 1")

    n_batches = math.ceil(len(records) / batch_size)
    for batch_idx in range(n_batches):
        start = batch_idx * batch_size
        chunk = records[start : start + batch_size]
        stmt = build_upsert(table, columns, build_rows(columns, chunk), conflict_key)
        try:
            await conn.execute(stmt)
        except SQLAlchemyError as exc:
            raise StoreError(
                f"Upsert into {table.name} failed on batch {batch_idx + 1}/{n_batches}: {exc}"
            ) from exc
        LOGGER.debug(
            "Upserted batch %s/%s into %s (%s rows)",
            batch_idx + 1,
            n_batches,
            table.name,
            len(chunk),
        )
    return n_batches
