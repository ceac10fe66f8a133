"""Shared fixtures: sample NSI payloads and a mocked SQLAlchemy connection."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from ekatte_importer.api_client import RawDatasets


@pytest.fixture
def raw_datasets() -> RawDatasets:
    return RawDatasets(
        regions=[
            {"oblast": "SOF", "name": "София (столица)"},
            {"oblast": "PDV", "name": "Пловдив"},
            {"oblast": "BLG"},
        ],
        municipalities=[
            {"obshtina": "SOF46", "name": "Столична"},
            {"obshtina": "PDV22", "name": "Пловдив"},
            {"obshtina": "PDV01"},
        ],
        town_halls=[
            {"kmetstvo": "SOF46-00", "name": "София"},
            {"kmetstvo": "SOF46-00", "name": "София дубликат"},
        ],
        territorial_units=[
            {"ekatte": "68134", "name": "София", "kind": 1, "kmetstvo": "SOF46-00"},
            {"ekatte": "56784", "name": "Пловдив", "kind": 1, "kmetstvo": "PDV22-00"},
            {"ekatte": "00014", "name": "Абланица", "kind": 3, "kmetstvo": "BLG01-01"},
            {"ekatte": "68134", "name": "София повторно", "kmetstvo": "SOF46-00"},
        ],
    )


@pytest.fixture
def mock_conn() -> MagicMock:
    """AsyncConnection stand-in; ``conn.transaction`` is what ``begin()`` returns."""
    conn = MagicMock()
    transaction = MagicMock()
    transaction.commit = AsyncMock()
    transaction.rollback = AsyncMock()
    conn.begin = AsyncMock(return_value=transaction)
    conn.execute = AsyncMock()
    conn.transaction = transaction
    return conn


@pytest.fixture
def mock_client(raw_datasets: RawDatasets) -> MagicMock:
    client = MagicMock()
    client.fetch_all = AsyncMock(return_value=raw_datasets)
    return client
