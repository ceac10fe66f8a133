from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import OperationalError

from ekatte_importer.errors import StoreError
from ekatte_importer.models import REGIONS, TERRITORIAL_UNITS
from ekatte_importer.persistence import build_rows, build_upsert, upsert
from ekatte_importer.schema import columns_for, regions, territorial_units


def _compile(stmt):
    return stmt.compile(dialect=postgresql.dialect())


@pytest.fixture
def conn() -> MagicMock:
    conn = MagicMock()
    conn.execute = AsyncMock()
    return conn


def _regions(n):
    return [{"code": f"{i:03d}", "name": f"Region {i}"} for i in range(n)]


class TestBuildUpsert:
    def test_single_row_sql(self):
        rows = build_rows(["code", "name"], [{"code": "01", "name": "София"}])
        compiled = _compile(build_upsert(regions, ["code", "name"], rows, "code"))
        sql = str(compiled)

        assert "INSERT INTO regions" in sql
        assert "ON CONFLICT (code) DO UPDATE SET name = excluded.name" in sql
        assert sorted(compiled.params.values()) == ["01", "София"]

    def test_multi_row_parameters(self):
        rows = build_rows(
            ["code", "name"],
            [{"code": "01", "name": "София"}, {"code": "02", "name": "Пловдив"}],
        )
        compiled = _compile(build_upsert(regions, ["code", "name"], rows, "code"))

        assert len(compiled.params) == 4
        assert set(compiled.params.values()) == {"01", "София", "02", "Пловдив"}

    def test_every_non_key_column_is_updated(self):
        columns = columns_for(TERRITORIAL_UNITS)
        rows = build_rows(columns, [{"ekatte": "68134", "name": "София", "town_hall_code": "SOF46-00"}])
        sql = str(_compile(build_upsert(territorial_units, columns, rows, "ekatte"))).replace('"', "")

        assert "ON CONFLICT (ekatte) DO UPDATE SET" in sql
        for column in ("name", "type", "town_hall_code"):
            assert f"excluded.{column}" in sql
        assert "excluded.ekatte" not in sql

    def test_missing_optional_value_is_explicit_null(self):
        columns = columns_for(TERRITORIAL_UNITS)
        rows = build_rows(columns, [{"ekatte": "68134", "name": "София", "town_hall_code": "SOF46-00"}])

        assert rows == [
            {"ekatte": "68134", "name": "София", "type": None, "town_hall_code": "SOF46-00"}
        ]
        compiled = _compile(build_upsert(territorial_units, columns, rows, "ekatte"))
        assert len(compiled.params) == 4
        assert None in compiled.params.values()

    def test_key_only_columns_do_nothing_on_conflict(self):
        rows = build_rows(["code"], [{"code": "01"}])
        sql = str(_compile(build_upsert(regions, ["code"], rows, "code")))
        assert "ON CONFLICT (code) DO NOTHING" in sql


class TestUpsert:
    @pytest.mark.asyncio
    async def test_empty_input_issues_no_statement(self, conn):
        assert await upsert(conn, regions, ["code", "name"], [], "code") == 0
        conn.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_single_record_single_statement(self, conn):
        assert await upsert(conn, regions, ["code", "name"], _regions(1), "code") == 1
        assert conn.execute.await_count == 1

    @pytest.mark.asyncio
    async def test_1500_records_in_batches_of_500(self, conn):
        statements = await upsert(conn, regions, ["code", "name"], _regions(1500), "code", batch_size=500)
        assert statements == 3
        assert conn.execute.await_count == 3

    @pytest.mark.asyncio
    async def test_partial_last_batch(self, conn):
        statements = await upsert(conn, regions, ["code", "name"], _regions(3), "code", batch_size=2)
        assert statements == 2
        last_stmt = conn.execute.await_args_list[-1].args[0]
        assert len(_compile(last_stmt).params) == 2

    @pytest.mark.asyncio
    async def test_batch_size_must_be_positive(self, conn):
        with pytest.raises(ValueError):
            await upsert(conn, regions, ["code", "name"], _regions(1), "code", batch_size=0)

    @pytest.mark.asyncio
    async def test_store_failure_wrapped(self, conn):
        conn.execute.side_effect = OperationalError("INSERT", {}, Exception("connection lost"))
        with pytest.raises(StoreError, match=REGIONS):
            await upsert(conn, regions, ["code", "name"], _regions(3), "code", batch_size=2)
        assert conn.execute.await_count == 1
