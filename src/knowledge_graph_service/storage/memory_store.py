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
In-process key-value store.

Used for single-process deployments and tests. Expiry is evaluated lazily
against an injectable clock so TTL behaviour can be exercised without sleeping.
"""

import time
from collections.abc import Callable

from .base import KeyValueStore


class InMemoryKeyValueStore(KeyValueStore):
    """Dictionary-backed store with per-key expiry."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._data: dict[str, tuple[str, float | None]] = {}

    def _live(self, key: str) -> tuple[str, float | None] | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        _, expires_at = entry
        if expires_at is not None and expires_at <= self._clock():
            del self._data[key]
            return None
        return entry

    async def get(self, key: str) -> str | None:
        entry = self._live(key)
        return entry[0] if entry else None

    async def put(
        self,
        key: str,
        value: str,
        ttl_seconds: int | None = None,
        keep_ttl: bool = False,
    ) -> None:
        expires_at = None
        if keep_ttl:
            existing = self._live(key)
            expires_at = existing[1] if existing else None
        if expires_at is None and ttl_seconds is not None:
            expires_at = self._clock() + ttl_seconds
        self._data[key] = (value, expires_at)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def ping(self) -> bool:
        return True

    def ttl(self, key: str) -> float | None:
        """Seconds until ``key`` expires, ``None`` if it has no expiry or is absent."""
        entry = self._live(key)
        if entry is None or entry[1] is None:
            return None
        return entry[1] - self._clock()
