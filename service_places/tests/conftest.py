"""
Shared fixtures for Places proxy tests.
"""

from typing import Any, Callable, Dict, List

import httpx
import pytest

from shared.config import ProxyConfig
from shared.metrics import MetricsCollector
from service_places.app.adapters.places_client import PlacesApiClient
from service_places.app.caching.backends import MemoryCacheBackend
from service_places.app.domain.records import PlaceRecord


UPSTREAM_BASE_URL = "https://maps.googleapis.com"


class RecordingCacheBackend(MemoryCacheBackend):
    """In-process backend that remembers every call made to it."""

    def __init__(self):
        super().__init__(ttl_seconds=60, max_entries=100)
        self.get_calls: List[str] = []
        self.set_calls: List[tuple] = []

    async def get(self, key: str):
        self.get_calls.append(key)
        return await super().get(key)

    async def set(self, key: str, record: PlaceRecord) -> bool:
        self.set_calls.append((key, record))
        return await super().set(key, record)


class UpstreamStub:
    """httpx MockTransport handler serving canned upstream responses."""

    def __init__(self, responder: Callable[[httpx.Request], httpx.Response]):
        self.responder = responder
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responder(request)


def ok_payload(result: Dict[str, Any]) -> Dict[str, Any]:
    return {"status": "OK", "result": result}


def make_places_client(stub: UpstreamStub, metrics: MetricsCollector = None) -> PlacesApiClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(stub))
    return PlacesApiClient(UPSTREAM_BASE_URL, http_client=http_client, metrics=metrics)


@pytest.fixture
def config():
    """Proxy configuration isolated from the process environment."""
    return ProxyConfig(
        _env_file=None,
        redis_url=None,
        upstream_base_url=UPSTREAM_BASE_URL,
        log_level="warning",
    )


@pytest.fixture
def cache_backend():
    return RecordingCacheBackend()


@pytest.fixture
def metrics():
    return MetricsCollector("places")


@pytest.fixture
def full_place_result():
    """Upstream result carrying every cacheable field plus noise."""
    return {
        "formatted_address": "1600 Amphitheatre Pkwy, Mountain View, CA 94043, USA",
        "geometry": {
            "location": {"lat": 37.4220, "lng": -122.0841},
            "viewport": {
                "northeast": {"lat": 37.4233, "lng": -122.0827},
                "southwest": {"lat": 37.4206, "lng": -122.0854},
            },
            "bounds": {"northeast": {"lat": 1, "lng": 1}},
        },
        "place_id": "ChIJ2eUgeAK6j4ARbn5u_wAGqWA",
        "name": "Googleplex",
        "address_components": [
            {"long_name": "1600", "short_name": "1600", "types": ["street_number"]},
        ],
        "types": ["point_of_interest", "establishment"],
        "rating": 4.5,
        "opening_hours": {"open_now": True},
    }
