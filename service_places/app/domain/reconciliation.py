"""
Place details reconciliation.

Answers a details request from cache when the cached record covers every
requested field, otherwise refreshes the record from upstream, replaces the
cache entry and answers from the new record.
"""

from typing import Any, Dict, List, Optional

from shared.errors import UpstreamRejection, ValidationError
from shared.logging import get_logger, set_place_context
from shared.metrics import MetricsCollector
from ..adapters.places_client import PlacesApiClient
from ..caching.backends import CacheBackend
from .fields import find_missing_fields, parse_requested_fields, project_fields, unknown_specifiers
from .records import PlaceRecord, cache_key_for, normalize_place


UPSTREAM_OK = "OK"


class PlaceDetailsService:
    """Read-check-fetch-store-project pipeline for one details request."""

    def __init__(
        self,
        cache: CacheBackend,
        places_client: PlacesApiClient,
        *,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.cache = cache
        self.places_client = places_client
        self.metrics = metrics
        self.logger = get_logger("places.reconciliation")

    async def get_place_details(
        self,
        place_id: Optional[str],
        key: Optional[str],
        fields: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Resolve a details request.

        Raises ``ValidationError`` before touching cache or upstream when
        ``place_id`` or ``key`` is missing, ``UpstreamRejection`` when upstream
        reports a non-OK status and ``TransportFailure`` when upstream cannot
        be reached. Cache failures never escape.
        """
        if not place_id or not key:
            self.logger.info("Missing place_id or key in request")
            raise ValidationError("place_id and key are required")

        set_place_context(place_id)
        requested = parse_requested_fields(fields)
        cache_key = cache_key_for(place_id)

        unknown = unknown_specifiers(requested)
        if unknown:
            self.logger.warning("Requested fields are not cacheable", fields=unknown)

        cached = await self._read_cache(cache_key)
        missing = find_missing_fields(cached, requested)

        if not missing:
            self.logger.info("All requested fields found in cache", fields=requested)
            self._record_lookup(hit=True)
            return project_fields(cached, requested)

        if cached is None:
            self.logger.info("Cache miss", key=cache_key)
        else:
            self.logger.info("Cache miss due to missing fields", missing=missing)
        self._record_lookup(hit=False)

        record = await self._refresh(place_id, key, requested)
        await self._write_cache(cache_key, record)
        return project_fields(record, requested)

    async def _refresh(self, place_id: str, key: str, requested: List[str]) -> PlaceRecord:
        payload = await self.places_client.get_place_details(place_id, requested, key)

        status = payload.get("status")
        if status != UPSTREAM_OK:
            self.logger.warning("Upstream returned error status", status=status)
            raise UpstreamRejection(payload)

        result = payload.get("result")
        return normalize_place(result if isinstance(result, dict) else {})

    async def _read_cache(self, cache_key: str) -> Optional[PlaceRecord]:
        try:
            return await self.cache.get(cache_key)
        except Exception as exc:
            self.logger.error("Error retrieving data from cache", error=str(exc))
            self._record_cache_error("get")
            return None

    async def _write_cache(self, cache_key: str, record: PlaceRecord) -> None:
        # Full replacement; nothing from a previous record survives
        try:
            await self.cache.set(cache_key, record)
        except Exception as exc:
            self.logger.error("Error writing data to cache", error=str(exc))
            self._record_cache_error("set")

    def _record_lookup(self, hit: bool) -> None:
        if self.metrics:
            self.metrics.record_cache_lookup(hit)

    def _record_cache_error(self, operation: str) -> None:
        if self.metrics:
            self.metrics.record_cache_error(operation)
