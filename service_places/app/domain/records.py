"""
Cache record model and upstream normalization.

A field is "present" on a record when it was explicitly set, which pydantic
tracks in ``model_fields_set``. Absent fields are never emitted, so a record
round-trips through ``to_cache_dict`` / ``from_cache_dict`` without gaining
nulls.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel


GEOMETRY_FIELD = "geometry"
GEOMETRY_SUBFIELDS = ("location", "viewport")

# Top-level fields copied verbatim from upstream results
PASSTHROUGH_FIELDS = (
    "formatted_address",
    "place_id",
    "name",
    "address_components",
    "types",
)

CANONICAL_FIELDS: List[str] = [
    "formatted_address",
    GEOMETRY_FIELD,
    "place_id",
    "name",
    "address_components",
    "types",
]


def cache_key_for(place_id: str) -> str:
    """Cache key for a place; independent of the fields requested."""
    return f"place:{place_id}"


class Geometry(BaseModel):
    """Geometry container; sub-fields are opaque upstream payloads."""

    location: Optional[Any] = None
    viewport: Optional[Any] = None

    def has(self, subfield: str) -> bool:
        return subfield in GEOMETRY_SUBFIELDS and subfield in self.model_fields_set

    def populated(self) -> List[str]:
        return [name for name in GEOMETRY_SUBFIELDS if self.has(name)]

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class PlaceRecord(BaseModel):
    """Canonical cached shape of one place."""

    # Upstream values are kept as sent; only geometry has a fixed inner shape
    formatted_address: Optional[Any] = None
    geometry: Optional[Geometry] = None
    place_id: Optional[Any] = None
    name: Optional[Any] = None
    address_components: Optional[Any] = None
    types: Optional[Any] = None

    def has(self, field: str) -> bool:
        return field in type(self).model_fields and field in self.model_fields_set

    def to_cache_dict(self) -> Dict[str, Any]:
        """Plain-dict form suitable for storage or JSON serialization."""
        return self.model_dump(exclude_unset=True)

    @classmethod
    def from_cache_dict(cls, data: Dict[str, Any]) -> "PlaceRecord":
        """Rebuild a record previously produced by ``to_cache_dict``."""
        return cls.model_validate(data)


def normalize_place(payload: Dict[str, Any]) -> PlaceRecord:
    """
    Project a raw upstream ``result`` object onto the cache record shape.

    Unknown fields are dropped and missing fields stay absent. The geometry
    container is always created, even when the source has no geometry, so
    satisfaction checks must look at its populated sub-fields.
    """
    values: Dict[str, Any] = {
        field: payload[field]
        for field in PASSTHROUGH_FIELDS
        if field in payload
    }

    source_geometry = payload.get(GEOMETRY_FIELD)
    if not isinstance(source_geometry, dict):
        source_geometry = {}
    values[GEOMETRY_FIELD] = Geometry(**{
        name: source_geometry[name]
        for name in GEOMETRY_SUBFIELDS
        if name in source_geometry
    })

    return PlaceRecord(**values)
