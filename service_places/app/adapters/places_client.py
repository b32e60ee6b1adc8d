"""
HTTP client for the upstream Places API.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Sequence

import httpx

from shared.errors import TransportFailure
from shared.logging import get_logger
from shared.metrics import MetricsCollector


DETAILS_PATH = "/place/details/json"

# Hop-by-hop and host-specific headers that must not be relayed verbatim
EXCLUDED_RESPONSE_HEADERS = {
    "connection",
    "content-encoding",
    "content-length",
    "date",
    "keep-alive",
    "server",
    "transfer-encoding",
}


@dataclass
class ForwardedResponse:
    """Upstream response relayed by the passthrough route."""

    status_code: int
    content: bytes
    headers: Dict[str, str] = field(default_factory=dict)


class PlacesApiClient:
    """Client for the place details endpoint and generic passthrough calls."""

    def __init__(
        self,
        base_url: str,
        api_prefix: str = "/maps/api",
        timeout: float = 10.0,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.base_url = base_url.rstrip('/')
        self.api_prefix = api_prefix.rstrip('/')
        self.timeout = timeout
        self.metrics = metrics
        self.logger = get_logger("places.upstream")
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    @property
    def details_url(self) -> str:
        return f"{self.base_url}{self.api_prefix}{DETAILS_PATH}"

    async def get_place_details(self, place_id: str, fields: Sequence[str], key: str) -> Dict[str, Any]:
        """
        Fetch place details for exactly ``fields``.

        Returns the decoded payload whatever its ``status`` value; judging the
        status is the caller's job. Raises ``TransportFailure`` when no JSON
        object comes back.
        """
        params = {
            "place_id": place_id,
            "fields": ",".join(fields),
            "key": key,
        }
        self.logger.info("Fetching place details from upstream", fields=params["fields"])

        start = time.perf_counter()
        try:
            response = await self._client.get(self.details_url, params=params)
        except httpx.HTTPError as exc:
            self._record("details", "transport_error", start)
            self.logger.error("Upstream place details request failed", error=str(exc))
            raise TransportFailure("places_api", str(exc) or exc.__class__.__name__) from exc

        try:
            payload = response.json()
        except ValueError as exc:
            self._record("details", "invalid_payload", start)
            self.logger.error(
                "Upstream returned a non-JSON body",
                status_code=response.status_code,
                response=response.text[:500],
            )
            raise TransportFailure(
                "places_api",
                f"Invalid response body (status {response.status_code})",
                {"status_code": response.status_code},
            ) from exc

        if not isinstance(payload, dict):
            self._record("details", "invalid_payload", start)
            raise TransportFailure(
                "places_api",
                "Response body is not a JSON object",
                {"status_code": response.status_code},
            )

        self._record("details", str(payload.get("status", "unknown")).lower(), start)
        self.logger.debug(
            "Upstream place details received",
            status_code=response.status_code,
            status=payload.get("status"),
        )
        return payload

    async def forward(
        self,
        method: str,
        path: str,
        query: str = "",
        *,
        body: Optional[bytes] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> ForwardedResponse:
        """Relay a request to the upstream host without touching path or query."""
        url = f"{self.base_url}{path}"
        if query:
            url = f"{url}?{query}"

        self.logger.info("Proxying request to upstream", method=method, path=path)

        start = time.perf_counter()
        try:
            response = await self._client.request(method, url, content=body or None, headers=headers)
        except httpx.HTTPError as exc:
            self._record("passthrough", "transport_error", start)
            self.logger.error("Passthrough request failed", path=path, error=str(exc))
            raise TransportFailure("places_api", str(exc) or exc.__class__.__name__) from exc

        self._record("passthrough", str(response.status_code), start)
        relayed_headers = {
            name.lower(): value
            for name, value in response.headers.items()
            if name.lower() not in EXCLUDED_RESPONSE_HEADERS
        }
        return ForwardedResponse(
            status_code=response.status_code,
            content=response.content,
            headers=relayed_headers,
        )

    def _record(self, endpoint: str, outcome: str, start: float) -> None:
        if not self.metrics:
            return
        self.metrics.record_upstream_request(endpoint, outcome, time.perf_counter() - start)

    async def close(self) -> None:
        await self._client.aclose()
