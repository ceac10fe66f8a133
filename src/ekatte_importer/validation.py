"""Structural validation of normalized records."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any, Optional

from pydantic import BaseModel, StrictStr, ValidationError

from .models import MUNICIPALITIES, REGIONS, TERRITORIAL_UNITS, TOWN_HALLS

LOGGER = logging.getLogger("ekatte.importer.validation")


class RegionModel(BaseModel):
    code: StrictStr
    name: StrictStr


class MunicipalityModel(BaseModel):
    code: StrictStr
    name: StrictStr
    region_code: StrictStr


class TownHallModel(BaseModel):
    code: StrictStr
    name: StrictStr
    municipality_code: StrictStr


class TerritorialUnitModel(BaseModel):
    ekatte: StrictStr
    name: StrictStr
    type: Optional[StrictStr] = None
    town_hall_code: StrictStr


RECORD_MODELS: dict[str, type[BaseModel]] = {
    REGIONS: RegionModel,
    MUNICIPALITIES: MunicipalityModel,
    TOWN_HALLS: TownHallModel,
    TERRITORIAL_UNITS: TerritorialUnitModel,
}


def is_valid(record: Any, kind: str) -> bool:
    """Return True if ``record`` structurally conforms to ``kind``'s model."""
    if not isinstance(record, dict):
        return False
    try:
        RECORD_MODELS[kind].model_validate(record)
    except ValidationError as exc:
        LOGGER.debug("Rejected %s record %s: %s", kind, record, exc)
        return False
    return True


def filter_valid(records: Iterable[dict[str, Any]], kind: str) -> list[dict[str, Any]]:
    """Keep the records that pass ``is_valid``; rejections are not errors."""
    records = list(records)
    kept = [record for record in records if is_valid(record, kind)]
    rejected = len(records) - len(kept)
    if rejected:
        LOGGER.info("Dropped %s invalid %s records", rejected, kind)
    return kept
