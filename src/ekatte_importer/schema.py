"""SQLAlchemy table definitions for the four EKATTE tables."""

from __future__ import annotations

from sqlalchemy import Column, ForeignKey, MetaData, Table, Text

from .models import MUNICIPALITIES, REGIONS, TERRITORIAL_UNITS, TOWN_HALLS

metadata = MetaData()

regions = Table(
    REGIONS,
    metadata,
    Column("code", Text, primary_key=True),
    Column("name", Text, nullable=False),
)

municipalities = Table(
    MUNICIPALITIES,
    metadata,
    Column("code", Text, primary_key=True),
    Column("name", Text, nullable=False),
    # Derived from the municipality code; the region may be absent from the source.
    Column("region_code", Text, nullable=False),
)

town_halls = Table(
    TOWN_HALLS,
    metadata,
    Column("code", Text, primary_key=True),
    Column("name", Text, nullable=False),
    # Placeholder town halls may name a municipality the source does not carry.
    Column("municipality_code", Text, nullable=False),
)

territorial_units = Table(
    TERRITORIAL_UNITS,
    metadata,
    Column("ekatte", Text, primary_key=True),
    Column("name", Text, nullable=False),
    Column("type", Text, nullable=True),
    Column("town_hall_code", Text, ForeignKey("town_halls.code"), nullable=False),
)

TABLES = {
    REGIONS: regions,
    MUNICIPALITIES: municipalities,
    TOWN_HALLS: town_halls,
    TERRITORIAL_UNITS: territorial_units,
}

# Natural key per kind, used as the ON CONFLICT target.
NATURAL_KEYS = {
    REGIONS: "code",
    MUNICIPALITIES: "code",
    TOWN_HALLS: "code",
    TERRITORIAL_UNITS: "ekatte",
}


def columns_for(kind: str) -> list[str]:
    """Column names of ``kind``'s table in declaration order."""
    return [column.name for column in TABLES[kind].columns]
