"""Synthesize town halls referenced by territorial units but absent from the source."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from .errors import ReconciliationError
from .models import MUNICIPALITY_CODE_LENGTH, POLICY_FAIL, POLICY_FALLBACK

LOGGER = logging.getLogger("ekatte.importer.reconcile")


def synthesize_town_hall(
    unit: dict[str, Any],
    municipality_names: dict[str, str],
    missing_name_policy: str = POLICY_FALLBACK,
) -> dict[str, Any]:
    town_hall_code = unit["town_hall_code"]
    municipality_code = town_hall_code[:MUNICIPALITY_CODE_LENGTH]
    name = municipality_names.get(municipality_code)
    if not name:
        if missing_name_policy == POLICY_FAIL:
            raise ReconciliationError(
                f"Territorial unit {unit['ekatte']} references town hall "
                f"{town_hall_code}, but no municipality {municipality_code} exists"
            )
        LOGGER.debug(
            "No municipality %s for town hall %s; using unit name %r",
            municipality_code,
            town_hall_code,
            unit["name"],
        )
        name = unit["name"]
    return {
        "code": town_hall_code,
        "name": name,
        "municipality_code": municipality_code,
    }


def reconcile_town_halls(
    town_halls: Sequence[dict[str, Any]],
    territorial_units: Sequence[dict[str, Any]],
    municipalities: Sequence[dict[str, Any]],
    missing_name_policy: str = POLICY_FALLBACK,
) -> list[dict[str, Any]]:
    """Return ``town_halls`` extended with one placeholder per dangling unit reference.

    Placeholders are appended after the fetched town halls and are not
    deduplicated here; two units pointing at the same missing code both
    contribute a candidate.
    """
    known_codes = {town_hall["code"] for town_hall in town_halls}
    municipality_names: dict[str, str] = {}
    for municipality in municipalities:
        municipality_names.setdefault(municipality["code"], municipality["name"])

    synthesized = [
        synthesize_town_hall(unit, municipality_names, missing_name_policy)
        for unit in territorial_units
        if unit["town_hall_code"] not in known_codes
    ]
    if synthesized:
        LOGGER.info(
            "Synthesized %s town hall records for dangling references",
            len(synthesized),
        )
    return [*town_halls, *synthesized]
