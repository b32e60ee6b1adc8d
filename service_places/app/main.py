"""
Places caching proxy service.
"""

from typing import Dict, Optional

from fastapi import Query, Request, Response
from fastapi.responses import JSONResponse

from shared.base_service import BaseService
from shared.config import ProxyConfig
from shared.errors import ServiceError, TransportFailure, UpstreamRejection, ValidationError
from service_places.app.adapters.places_client import DETAILS_PATH, PlacesApiClient
from service_places.app.caching.backends import CacheBackend, describe_backend, select_cache_backend
from service_places.app.domain.reconciliation import PlaceDetailsService


PASSTHROUGH_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE"]
FORWARDED_REQUEST_HEADERS = ("accept", "accept-language", "content-type")


class PlacesProxyService(BaseService):
    """Caching reverse proxy in front of the Places API."""

    def __init__(
        self,
        config: Optional[ProxyConfig] = None,
        *,
        cache_backend: Optional[CacheBackend] = None,
        places_client: Optional[PlacesApiClient] = None,
    ):
        super().__init__("places", config)
        self.places_client = places_client or PlacesApiClient(
            self.config.upstream_base_url,
            api_prefix=self.config.api_prefix,
            timeout=self.config.upstream_timeout_seconds,
            metrics=self.metrics,
        )
        # Chosen once at startup unless injected
        self.cache_backend = cache_backend
        self.place_details: Optional[PlaceDetailsService] = None

        self._setup_proxy_routes()

        self.app.state.places_service = self

    async def startup(self) -> None:
        if self.cache_backend is None:
            self.cache_backend = await select_cache_backend(self.config)
        self.place_details = PlaceDetailsService(
            self.cache_backend,
            self.places_client,
            metrics=self.metrics,
        )
        self.logger.info("Places proxy ready", **describe_backend(self.cache_backend))

    async def shutdown(self) -> None:
        self.logger.info("Cleaning up before exiting")
        self.place_details = None
        if self.cache_backend is not None:
            await self.cache_backend.close()
        await self.places_client.close()

    def _get_place_details_service(self) -> PlaceDetailsService:
        if self.place_details is None:
            raise ServiceError("Cache backend not initialised")
        return self.place_details

    def _setup_proxy_routes(self):
        """Register the cached details route ahead of the catch-all passthrough."""
        prefix = self.config.api_prefix.rstrip("/")

        @self.app.get(f"{prefix}{DETAILS_PATH}")
        async def place_details(
            place_id: Optional[str] = Query(None, description="Place identifier"),
            key: Optional[str] = Query(None, description="Upstream API key"),
            fields: Optional[str] = Query(None, description="Comma-separated field list"),
        ):
            """Place details, answered from cache whenever it covers the requested fields."""
            service = self._get_place_details_service()
            try:
                return await service.get_place_details(place_id, key, fields)
            except ValidationError as exc:
                return JSONResponse(status_code=400, content={"error": exc.message})
            except UpstreamRejection as exc:
                return JSONResponse(status_code=400, content=exc.payload)
            except TransportFailure as exc:
                self.metrics.record_error(exc.code)
                return JSONResponse(
                    status_code=500,
                    content={
                        "error": "Failed to fetch data from upstream",
                        "details": exc.message,
                    },
                )

        @self.app.api_route(prefix, methods=PASSTHROUGH_METHODS)
        @self.app.api_route(f"{prefix}/{{path:path}}", methods=PASSTHROUGH_METHODS)
        async def passthrough(request: Request):
            """Forward any other API request to upstream unchanged."""
            body = await request.body()
            headers = {
                name: request.headers[name]
                for name in FORWARDED_REQUEST_HEADERS
                if name in request.headers
            }
            try:
                forwarded = await self.places_client.forward(
                    request.method,
                    request.url.path,
                    request.url.query,
                    body=body,
                    headers=headers,
                )
            except TransportFailure as exc:
                self.metrics.record_error(exc.code)
                return JSONResponse(status_code=500, content={"error": "Internal server error"})

            return Response(
                content=forwarded.content,
                status_code=forwarded.status_code,
                headers=forwarded.headers,
            )

    async def _check_dependencies(self) -> Dict[str, str]:
        """Report the selected cache backend and whether it answers."""
        if self.place_details is None or self.cache_backend is None:
            return {"cache": "not_initialised"}
        healthy = await self.cache_backend.ping()
        return {"cache": f"{self.cache_backend.name}:{'ok' if healthy else 'unavailable'}"}


def create_app(
    config: Optional[ProxyConfig] = None,
    *,
    cache_backend: Optional[CacheBackend] = None,
    places_client: Optional[PlacesApiClient] = None,
):
    """Create FastAPI application."""
    service = PlacesProxyService(config, cache_backend=cache_backend, places_client=places_client)
    return service.app


def main():
    """Console entry point: serve the proxy on the configured host and port."""
    service = PlacesProxyService()
    service.run()


if __name__ == "__main__":
    main()
