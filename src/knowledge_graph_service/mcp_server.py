#!/usr/bin/env python3
"""FastMCP server for the Knowledge Graph Service.

Exposes the graph operations as MCP tools. Every tool goes through the same
GraphService as the HTTP routes, so validation, rate limiting and decay
scoring are identical; tools render the results as compact plain text.
MCP callers share one configured rate-limit identity.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from fastmcp import Context, FastMCP

from .config import settings
from .errors import GraphServiceError
from .models.responses import EntityView
from .services.graph_service import GraphService
from .services.rate_limiter import RateLimiter
from .storage.base import KeyValueStore
from .storage.document import GraphDocumentStore

logger = logging.getLogger(__name__)


@dataclass
class MCPServerContext:
    """Application context for the MCP server."""

    store: KeyValueStore
    graph_service: GraphService


def build_graph_service(store: KeyValueStore) -> GraphService:
    """Wire a GraphService to ``store`` using the global settings."""
    rate_limiter = RateLimiter(store, settings.rate_limit) if settings.rate_limit.enabled else None
    documents = GraphDocumentStore(store, key=settings.store.graph_key, consistency=settings.store.consistency)
    return GraphService(documents, rate_limiter=rate_limiter, decay=settings.decay)


@asynccontextmanager
async def mcp_server_lifespan(server: FastMCP) -> AsyncIterator[MCPServerContext]:
    """Create the store on startup and close it on shutdown."""
    from .storage.factory import create_store_instance

    store = await create_store_instance()
    try:
        yield MCPServerContext(store=store, graph_service=build_graph_service(store))
    finally:
        logger.info("Shutting down Knowledge Graph MCP server...")
        await store.close()


# Create FastMCP server instance
mcp = FastMCP("Knowledge Graph", lifespan=mcp_server_lifespan)


def _service(ctx: Context) -> GraphService:
    return ctx.request_context.lifespan_context.graph_service


def _error_text(error: GraphServiceError) -> str:
    return f"Error ({error.kind}): {error.message}"


def _format_when(value: datetime | None) -> str:
    return value.strftime("%Y-%m-%d") if value else "?"


def format_entity(view: EntityView, score: float | None = None) -> str:
    """Render an entity view as an indented text block."""
    header = f"[{view.entity_type}] {view.name}"
    if score is not None:
        header += f" (score: {score:.3f})"
    lines = [header]
    for o in view.observations:
        suffix = f" (expires {_format_when(o.expires_at)})" if o.expires_at else ""
        lines.append(f"  • {o.text} [score: {o.score:.3f}]{suffix}")
    if view.relations:
        lines.append("Relations:")
        for r in view.relations:
            if r.direction == "outgoing":
                lines.append(f"  → {r.relation} → {r.entity}")
            else:
                lines.append(f"  ← {r.relation} ← {r.entity}")
    return "\n".join(lines)


# =============================================================================
# READ TOOLS
# =============================================================================


@mcp.tool()
async def search_nodes(query: str, ctx: Context) -> str:
    """Search the knowledge graph by keyword.

    Matches entity names, types and active observations (case-insensitive).
    Results are ranked by decay score: recently observed and frequently
    accessed knowledge ranks higher.

    Args:
        query: Keyword to search for
    """
    try:
        result = await _service(ctx).search({"query": query}, identity=settings.mcp.identity)
    except GraphServiceError as e:
        return _error_text(e)

    hits = result.value.results
    if not hits:
        return f'No results for "{query}"'
    return "\n\n".join(format_entity(hit, score=hit.score) for hit in hits)


@mcp.tool()
async def read_entity(name: str, ctx: Context, include_expired: bool = False) -> str:
    """Read one entity by exact (case-sensitive) name.

    Returns its active observations, each with a decay score, and its relations.

    Args:
        name: Exact entity name
        include_expired: Also show expired observations and relations
    """
    try:
        result = await _service(ctx).get_entity(
            {"name": name, "include_expired": include_expired}, identity=settings.mcp.identity
        )
    except GraphServiceError as e:
        return _error_text(e)
    return format_entity(result.value)


@mcp.tool()
async def read_graph(ctx: Context) -> str:
    """Summarise the whole graph: each entity with its first two active observations."""
    try:
        graph = await _service(ctx).read_graph()
    except GraphServiceError as e:
        return _error_text(e)

    lines = [f"{len(graph.entities)} entities, {len(graph.relations)} relations", ""]
    for view in graph.entities:
        preview = "; ".join(o.text for o in view.observations[:2])
        lines.append(f"[{view.entity_type}] {view.name}: {preview}")
    return "\n".join(lines)


@mcp.tool()
async def graph_stats(ctx: Context) -> str:
    """Entity, relation and observation counts, mean decay score and type distribution."""
    try:
        stats = await _service(ctx).stats()
    except GraphServiceError as e:
        return _error_text(e)

    types = ", ".join(f"{t}:{c}" for t, c in stats.types.items())
    return (
        f"Entities: {stats.entities}, Relations: {stats.relations}, "
        f"Active Observations: {stats.observations.active}, Expired: {stats.observations.expired}\n"
        f"Avg decay score: {stats.decay.avg_score:.3f}, Half-life: {stats.decay.half_life_days:g} days\n"
        f"Types: {types}"
    )


# =============================================================================
# WRITE TOOLS
# =============================================================================


@mcp.tool()
async def create_entity(
    name: str,
    entityType: str,
    ctx: Context,
    observations: list[str] | None = None,
) -> str:
    """Create a new entity.

    Args:
        name: Unique entity name
        entityType: Free-form type, e.g. agent, person, platform, protocol, tool, concept
        observations: Initial facts about the entity
    """
    data: dict[str, Any] = {"name": name, "entityType": entityType, "observations": observations}
    try:
        result = await _service(ctx).create_entity(data, identity=settings.mcp.identity)
    except GraphServiceError as e:
        return _error_text(e)
    return f"Created: {result.value.created} ({result.value.entity_type})"


@mcp.tool()
async def add_observation(
    name: str,
    observation: str,
    ctx: Context,
    expires_at: str | None = None,
) -> str:
    """Add a fact to an existing entity.

    Args:
        name: Exact name of the entity
        observation: The fact to record
        expires_at: Optional ISO 8601 time after which the fact is stale
    """
    data = {"name": name, "observation": observation, "expires_at": expires_at}
    try:
        result = await _service(ctx).add_observation(data, identity=settings.mcp.identity)
    except GraphServiceError as e:
        return _error_text(e)

    text = f'Added to "{result.value.to}": {result.value.added}'
    if expires_at:
        text += f" (expires: {expires_at})"
    return text


@mcp.tool()
async def create_relation(
    source: str,
    relation: str,
    target: str,
    ctx: Context,
    expires_at: str | None = None,
) -> str:
    """Create a directed relation between two existing entities.

    Args:
        source: Source entity name (the subject)
        relation: Relation type in active voice, e.g. uses, built, depends_on
        target: Target entity name (the object)
        expires_at: Optional ISO 8601 time after which the relation is stale
    """
    data = {"source": source, "relation": relation, "target": target, "expires_at": expires_at}
    try:
        result = await _service(ctx).create_relation(data, identity=settings.mcp.identity)
    except GraphServiceError as e:
        return _error_text(e)
    return f"Created: {result.value.created}"


def main() -> None:
    """Run the MCP server over stdio."""
    logging.basicConfig(level=settings.mcp.log_level)
    mcp.run()


if __name__ == "__main__":
    main()
