from __future__ import annotations

import asyncio
import logging
import time
from typing import Optional

from sqlalchemy import text
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from .errors import StoreError
from .models import DatabaseConfig
from .schema import metadata

LOGGER = logging.getLogger("ekatte.importer.db")


class DatabaseSession:
    """Own the SQLAlchemy engine for one import run."""

    def __init__(self, config: DatabaseConfig) -> None:
        self._config = config
        self._engine: Optional[AsyncEngine] = None

    async def open(self) -> AsyncEngine:
        if self._engine is not None:
            return self._engine

        deadline = time.time() + self._config.connect_timeout
        attempts = 0
        while True:
            attempts += 1
            LOGGER.info("Creating SQLAlchemy engine (attempt %s)", attempts)
            async_engine = create_async_engine(self._config.url)
            try:
                async with async_engine.connect() as connection:
                    await connection.execute(text("SELECT 1"))
            except OperationalError as exc:
                await async_engine.dispose()
                if time.time() >= deadline:
                    raise StoreError("Database connection timed out") from exc
                LOGGER.warning("Database not ready yet (%s), retrying...", exc)
                await asyncio.sleep(min(2 * attempts, 10))
                continue
            except BaseException:
                await async_engine.dispose()
                raise
            self._engine = async_engine
            LOGGER.info("Connected to database")
            return self._engine

    async def ensure_schema(self) -> None:
        """Create any of the four tables that do not exist yet."""
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(metadata.create_all)
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to create tables: {exc}") from exc

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise RuntimeError("Engine not initialised; call open()")
        return self._engine

    async def dispose(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
        self._engine = None
