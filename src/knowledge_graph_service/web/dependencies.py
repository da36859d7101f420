# Copyright 2024 Heinrich Krupp
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
FastAPI dependencies for the HTTP interface.
"""

import logging

from fastapi import Depends, HTTPException, Request

from ..config import settings
from ..services.graph_service import GraphService
from ..services.rate_limiter import RateLimiter
from ..storage.base import KeyValueStore
from ..storage.document import GraphDocumentStore

logger = logging.getLogger(__name__)

# Global store instance
_store: KeyValueStore | None = None
# Global rate limiter instance
_rate_limiter: RateLimiter | None = None


def set_store(store: KeyValueStore | None) -> None:
    """Set the global store instance and initialize the rate limiter if enabled."""
    global _store, _rate_limiter
    _store = store

    if store is not None and settings.rate_limit.enabled:
        logger.info("Initializing RateLimiter (rate limiting enabled)")
        _rate_limiter = RateLimiter(store=store, settings=settings.rate_limit)
    else:
        logger.info("RateLimiter disabled")
        _rate_limiter = None


def get_store() -> KeyValueStore:
    """Get the global store instance."""
    if _store is None:
        raise HTTPException(status_code=503, detail="Store not initialized")
    return _store


def get_graph_service(store: KeyValueStore = Depends(get_store)) -> GraphService:
    """Get a GraphService bound to the configured store and rate limiter."""
    documents = GraphDocumentStore(
        store,
        key=settings.store.graph_key,
        consistency=settings.store.consistency,
    )
    return GraphService(documents, rate_limiter=_rate_limiter, decay=settings.decay)


def get_client_identity(request: Request) -> str:
    """
    Derive the rate-limit identity from the caller's network origin.

    Order: ``CF-Connecting-IP``, first hop of ``X-Forwarded-For``, socket peer.
    """
    connecting_ip = request.headers.get("CF-Connecting-IP")
    if connecting_ip:
        return connecting_ip.strip()

    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop

    if request.client and request.client.host:
        return request.client.host
    return "unknown"
