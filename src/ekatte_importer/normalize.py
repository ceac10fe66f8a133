"""Map raw NSI records onto the internal table shapes."""

from __future__ import annotations

from collections.abc import Callable, Hashable, Iterable
from typing import Any, Dict, Optional

from .models import (MUNICIPALITIES, MUNICIPALITY_CODE_LENGTH,
                     REGION_CODE_LENGTH, REGIONS, TERRITORIAL_UNITS,
                     TOWN_HALLS)

Record = Dict[str, Any]


def scalar(obj: Optional[Dict[str, Any]], key: str, default: Any = None) -> Any:
    if not isinstance(obj, dict):
        return default
    value = obj.get(key, default)
    return (
        value
        if isinstance(value, (str, int, float, bool)) or value is None
        else default
    )


def _has(raw: Dict[str, Any], *keys: str) -> bool:
    return all(raw.get(key) for key in keys)


def normalize_region(raw: Dict[str, Any]) -> Optional[Record]:
    return {"code": scalar(raw, "oblast"), "name": scalar(raw, "name")}


def normalize_municipality(raw: Dict[str, Any]) -> Optional[Record]:
    if not _has(raw, "obshtina", "name"):
        return None
    code = raw["obshtina"]
    return {
        "code": code,
        "name": raw["name"],
        "region_code": code[:REGION_CODE_LENGTH] if isinstance(code, str) else None,
    }


def normalize_town_hall(raw: Dict[str, Any]) -> Optional[Record]:
    if not _has(raw, "kmetstvo", "name"):
        return None
    code = raw["kmetstvo"]
    return {
        "code": code,
        "name": raw["name"],
        "municipality_code": (
            code[:MUNICIPALITY_CODE_LENGTH] if isinstance(code, str) else None
        ),
    }


def normalize_territorial_unit(raw: Dict[str, Any]) -> Optional[Record]:
    if not _has(raw, "ekatte", "name", "kmetstvo"):
        return None
    kind = raw.get("kind")
    return {
        "ekatte": raw["ekatte"],
        "name": raw["name"],
        "type": str(kind) if kind is not None and str(kind) else None,
        "town_hall_code": raw["kmetstvo"],
    }


NORMALIZERS: Dict[str, Callable[[Dict[str, Any]], Optional[Record]]] = {
    REGIONS: normalize_region,
    MUNICIPALITIES: normalize_municipality,
    TOWN_HALLS: normalize_town_hall,
    TERRITORIAL_UNITS: normalize_territorial_unit,
}


def normalize_records(kind: str, raws: Iterable[Dict[str, Any]]) -> list[Record]:
    normalizer = NORMALIZERS[kind]
    records = []
    for raw in raws:
        record = normalizer(raw)
        if record is not None:
            records.append(record)
    return records


def dedupe(records: Iterable[Record], key: str) -> list[Record]:
    """Keep the first record for every value of ``key``, preserving order."""
    seen: set[Hashable] = set()
    unique = []
    for record in records:
        value = record.get(key)
        if value in seen:
            continue
        seen.add(value)
        unique.append(record)
    return unique
