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
Whole-document access to the graph.

Every read loads the entire ``{entities, relations}`` document from one key
and every write replaces it. ``load()`` also returns a version token (a digest
of the stored bytes) that ``store()`` can check.

Consistency modes:
- ``last_write_wins`` (default): plain read-modify-write. Two concurrent
  writers that load the same version both succeed and the later write
  silently drops the other's changes.
- ``optimistic``: ``store()`` re-reads the current version and raises
  ``ConflictError`` if it moved. On a plain key-value store the re-read and
  the write are still two round-trips, so this narrows the lost-update
  window without closing it.
"""

import hashlib
import logging
from typing import Literal

from pydantic import ValidationError

from ..errors import ConflictError, StoreUnavailableError
from ..models.graph import GraphDocument
from .base import KeyValueStore

logger = logging.getLogger(__name__)

ConsistencyMode = Literal["last_write_wins", "optimistic"]


def document_version(raw: str | None) -> str | None:
    """Version token for a stored document; ``None`` when nothing is stored."""
    if raw is None:
        return None
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()[:16]


class GraphDocumentStore:
    """Load and replace the graph document held under a single key."""

    def __init__(
        self,
        kv: KeyValueStore,
        key: str = "knowledge_graph",
        consistency: ConsistencyMode = "last_write_wins",
    ):
        self.kv = kv
        self.key = key
        self.consistency = consistency

    async def load(self) -> tuple[GraphDocument, str | None]:
        """
        Load the whole graph document.

        Returns:
            Tuple of (document, version). An absent key yields an empty
            document and version ``None``.

        Raises:
            StoreUnavailableError: if the store fails or holds a malformed document
        """
        raw = await self.kv.get(self.key)
        if raw is None:
            return GraphDocument(), None

        try:
            document = GraphDocument.model_validate_json(raw)
        except ValidationError as e:
            logger.error(f"Stored graph document at '{self.key}' is malformed: {e}")
            raise StoreUnavailableError("Stored graph document is malformed") from e

        return document, document_version(raw)

    async def store(self, document: GraphDocument, expected_version: str | None) -> str:
        """
        Replace the whole graph document.

        Args:
            document: The full, updated document
            expected_version: Version returned by the ``load()`` this write is based on

        Returns:
            The new version token

        Raises:
            ConflictError: in optimistic mode, if the stored version changed
            StoreUnavailableError: if the store fails
        """
        if self.consistency == "optimistic":
            current = document_version(await self.kv.get(self.key))
            if current != expected_version:
                logger.warning(f"Graph document version moved ({expected_version} -> {current}); rejecting write")
                raise ConflictError("Graph document was modified concurrently; reload and retry")

        raw = document.to_json()
        await self.kv.put(self.key, raw)
        return document_version(raw)
