"""
Requested-field handling: parsing, satisfaction checks and projection.

Field specifiers are either a top-level record field (``name``) or a
``geometry/<subfield>`` reference into the geometry container.
"""

from copy import deepcopy
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .records import (
    CANONICAL_FIELDS,
    GEOMETRY_FIELD,
    GEOMETRY_SUBFIELDS,
    PlaceRecord,
)

SUBFIELD_SEPARATOR = "/"


def parse_requested_fields(raw: Optional[str]) -> List[str]:
    """Split a comma-separated ``fields`` parameter, defaulting to the canonical set."""
    if raw is None:
        return list(CANONICAL_FIELDS)

    fields = [part.strip() for part in raw.split(",")]
    fields = [part for part in fields if part]
    if not fields:
        return list(CANONICAL_FIELDS)
    return fields


def split_specifier(specifier: str) -> Tuple[str, Optional[str]]:
    """Return ``(field, subfield)``; subfield is None for plain specifiers."""
    if specifier.startswith(GEOMETRY_FIELD + SUBFIELD_SEPARATOR):
        return GEOMETRY_FIELD, specifier[len(GEOMETRY_FIELD) + 1:]
    return specifier, None


def is_satisfied(record: PlaceRecord, specifier: str) -> bool:
    """Whether ``record`` holds the data ``specifier`` asks for."""
    field, subfield = split_specifier(specifier)

    if field == GEOMETRY_FIELD:
        geometry = record.geometry if record.has(GEOMETRY_FIELD) else None
        if geometry is None:
            return False
        if subfield is None:
            # An empty container does not count; one populated sub-field does
            return bool(geometry.populated())
        return geometry.has(subfield)

    return record.has(field)


def find_missing_fields(record: Optional[PlaceRecord], requested: Sequence[str]) -> List[str]:
    """Requested specifiers the cached record cannot answer, in request order."""
    if record is None:
        return list(requested)
    return [specifier for specifier in requested if not is_satisfied(record, specifier)]


def project_fields(record: PlaceRecord, requested: Sequence[str]) -> Dict[str, Any]:
    """
    Build the response body holding only the requested fields.

    Absent fields are omitted rather than emitted as null. A bare ``geometry``
    request copies whatever sub-fields the record has; ``geometry/<sub>``
    requests merge into the same output object.
    """
    projected: Dict[str, Any] = {}

    for specifier in requested:
        field, subfield = split_specifier(specifier)

        if field == GEOMETRY_FIELD:
            if not record.has(GEOMETRY_FIELD) or record.geometry is None:
                continue
            if subfield is None:
                target = projected.setdefault(GEOMETRY_FIELD, {})
                target.update(deepcopy(record.geometry.to_dict()))
            elif record.geometry.has(subfield):
                target = projected.setdefault(GEOMETRY_FIELD, {})
                target[subfield] = deepcopy(getattr(record.geometry, subfield))
            continue

        if record.has(field):
            projected[field] = deepcopy(getattr(record, field))

    return projected


def unknown_specifiers(requested: Sequence[str]) -> List[str]:
    """Specifiers that can never be served from cache."""
    unknown = []
    for specifier in requested:
        field, subfield = split_specifier(specifier)
        if field not in CANONICAL_FIELDS:
            unknown.append(specifier)
        elif subfield is not None and subfield not in GEOMETRY_SUBFIELDS:
            unknown.append(specifier)
    return unknown
