"""
External Services - outbound HTTP API client.
"""

from .client import EXTERNAL_SERVICE, ExternalApiClient

__all__ = [
    "EXTERNAL_SERVICE",
    "ExternalApiClient",
]
