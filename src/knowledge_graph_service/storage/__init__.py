"""Key-value store backends and whole-document graph access."""

from .base import KeyValueStore
from .document import GraphDocumentStore
from .memory_store import InMemoryKeyValueStore
from .redis_store import RedisKeyValueStore

__all__ = ["GraphDocumentStore", "InMemoryKeyValueStore", "KeyValueStore", "RedisKeyValueStore"]
