"""
Adapters for external HTTP services used by the proxy.
"""

from .places_client import PlacesApiClient, ForwardedResponse

__all__ = ["PlacesApiClient", "ForwardedResponse"]
