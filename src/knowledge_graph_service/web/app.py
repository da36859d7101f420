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
FastAPI application for the Knowledge Graph Service.

Owns the store lifecycle and renders every service error kind as a JSON
payload ``{error, kind}`` with the matching HTTP status.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__
from ..config import settings
from ..errors import GraphServiceError, InvalidArgumentError, RateLimitExceededError
from ..storage.factory import create_store_instance
from .api.graph import router as graph_router
from .dependencies import get_store, set_store

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create the key-value store on startup and release it on shutdown."""
    logger.info("Starting Knowledge Graph Service HTTP interface...")
    store = await create_store_instance()
    set_store(store)
    try:
        yield
    finally:
        logger.info("Shutting down Knowledge Graph Service HTTP interface...")
        set_store(None)
        await store.close()


def create_app(use_lifespan: bool = True) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        use_lifespan: Manage the store lifecycle; tests that inject their own
            store via ``set_store`` pass False.
    """
    app = FastAPI(
        title="Knowledge Graph Service",
        version=__version__,
        lifespan=lifespan if use_lifespan else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.http.cors_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
        expose_headers=["X-RateLimit-Limit", "X-RateLimit-Remaining", "Retry-After"],
    )

    @app.exception_handler(RateLimitExceededError)
    async def rate_limited_handler(request: Request, exc: RateLimitExceededError) -> JSONResponse:
        return JSONResponse(
            exc.to_dict(),
            status_code=exc.status_code,
            headers={"Retry-After": str(exc.retry_after)},
        )

    @app.exception_handler(GraphServiceError)
    async def service_error_handler(request: Request, exc: GraphServiceError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(exc.to_dict(), status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        # Malformed JSON bodies and missing query parameters
        error = InvalidArgumentError("; ".join(str(e.get("msg", "invalid request")) for e in exc.errors()))
        return JSONResponse(error.to_dict(), status_code=error.status_code)

    @app.get("/health", tags=["health"])
    async def health() -> JSONResponse:
        """Store connectivity probe."""
        try:
            healthy = await get_store().ping()
        except HTTPException as e:
            logger.warning(f"Health check failed: {e.detail}")
            healthy = False
        return JSONResponse(
            {"healthy": healthy, "version": __version__},
            status_code=200 if healthy else 503,
        )

    app.include_router(graph_router)
    return app


app = create_app()
