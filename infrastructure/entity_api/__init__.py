"""
Entity API Infrastructure
=========================
HTTP client and store implementations for the hosted entity API, plus
in-memory stores with the same contracts.
"""

from infrastructure.entity_api.client import EntityApiClient
from infrastructure.entity_api.memory import InMemoryDeviceAppStore, InMemoryEntityStore
from infrastructure.entity_api.stores import HttpDeviceAppStore, HttpEntityStore

__all__ = [
    "EntityApiClient",
    "HttpDeviceAppStore",
    "HttpEntityStore",
    "InMemoryDeviceAppStore",
    "InMemoryEntityStore",
]
