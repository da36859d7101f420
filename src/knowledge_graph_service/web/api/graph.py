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
Graph read/write endpoints for the HTTP interface.

Service errors propagate to the exception handlers registered in
``web/app.py``; routes only translate results to JSON and attach the
rate-limit headers of the operation class they consumed.
"""

from typing import Any

from fastapi import APIRouter, Body, Depends, Query
from fastapi.responses import JSONResponse

from ...models.responses import OperationResult, to_wire
from ...services.graph_service import GraphService
from ..dependencies import get_client_identity, get_graph_service

router = APIRouter()


def rate_limit_headers(result: OperationResult) -> dict[str, str]:
    """X-RateLimit-* headers for a rate-limited result (empty when limits are off)."""
    if result.rate_limit is None:
        return {}
    return {
        "X-RateLimit-Limit": str(result.rate_limit.limit),
        "X-RateLimit-Remaining": str(result.rate_limit.remaining),
    }


def limited_response(result: OperationResult, status_code: int = 200) -> JSONResponse:
    return JSONResponse(to_wire(result.value), status_code=status_code, headers=rate_limit_headers(result))


@router.get("/search", tags=["graph"])
async def search_nodes(
    q: str = Query(..., description="Keyword matched against names, types and observations"),
    identity: str = Depends(get_client_identity),
    graph_service: GraphService = Depends(get_graph_service),
):
    """Search entities by keyword, ranked by mean decay score."""
    result = await graph_service.search({"query": q}, identity=identity)
    return limited_response(result)


@router.get("/entity/{name:path}", tags=["graph"])
async def read_entity(
    name: str,
    include_expired: bool = Query(False, description="Also return expired observations and relations"),
    identity: str = Depends(get_client_identity),
    graph_service: GraphService = Depends(get_graph_service),
):
    """Read one entity with scored observations and its relations."""
    result = await graph_service.get_entity({"name": name, "include_expired": include_expired}, identity=identity)
    return limited_response(result)


@router.get("/graph", tags=["graph"])
async def read_graph(graph_service: GraphService = Depends(get_graph_service)):
    """Full graph dump: every entity view and all active relations."""
    return to_wire(await graph_service.read_graph())


@router.get("/stats", tags=["graph"])
async def graph_stats(graph_service: GraphService = Depends(get_graph_service)):
    """Entity, relation and observation counts plus the mean decay score."""
    return to_wire(await graph_service.stats())


@router.post("/entity", tags=["graph"])
async def create_entity(
    body: Any = Body(...),
    identity: str = Depends(get_client_identity),
    graph_service: GraphService = Depends(get_graph_service),
):
    """Create an entity. Body: ``{name, entityType, observations?}``."""
    result = await graph_service.create_entity(body, identity=identity)
    return limited_response(result, status_code=201)


@router.post("/observation", tags=["graph"])
async def add_observation(
    body: Any = Body(...),
    identity: str = Depends(get_client_identity),
    graph_service: GraphService = Depends(get_graph_service),
):
    """Add an observation to an entity. Body: ``{name, observation, expires_at?}``."""
    result = await graph_service.add_observation(body, identity=identity)
    return limited_response(result)


@router.post("/relation", tags=["graph"])
async def create_relation(
    body: Any = Body(...),
    identity: str = Depends(get_client_identity),
    graph_service: GraphService = Depends(get_graph_service),
):
    """Create a directed relation. Body: ``{source, relation, target, expires_at?}``."""
    result = await graph_service.create_relation(body, identity=identity)
    return limited_response(result, status_code=201)
