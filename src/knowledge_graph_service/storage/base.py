# Copyright 2026 Knowledge Graph Service Contributors
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Key-value store interface.

The service treats its backing store as a plain key-value service with
per-key time-to-live: one key holds the whole graph document, the rest are
short-lived rate-limit counters. Implementations must raise
``StoreUnavailableError`` on backend failure rather than returning ``None``.
"""

from abc import ABC, abstractmethod


class KeyValueStore(ABC):
    """Abstract async key-value store with optional TTL."""

    async def initialize(self) -> None:
        """Open connections. Idempotent."""

    async def close(self) -> None:
        """Release connections. Safe to call more than once."""

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Return the value at ``key``, or ``None`` if absent or expired."""

    @abstractmethod
    async def put(
        self,
        key: str,
        value: str,
        ttl_seconds: int | None = None,
        keep_ttl: bool = False,
    ) -> None:
        """
        Write ``value`` at ``key``.

        Args:
            key: Key (without prefix)
            value: Serialized value
            ttl_seconds: Expire the key this many seconds from now
            keep_ttl: Keep whatever expiry the key already has. If the key
                has none (absent, or expired since it was read), ``ttl_seconds``
                still applies, so a counter written back is never left without
                an expiry.
        """

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove ``key`` if present."""

    @abstractmethod
    async def ping(self) -> bool:
        """Health probe. Returns True when the backend answers."""
