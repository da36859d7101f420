"""
Graph Service - shared business logic for the knowledge graph.

Every operation follows the same shape:

    rate limiter -> load whole document -> pure in-memory work -> (store whole document) -> response

Both the HTTP interface and the MCP server call into this class, so the
validation, error taxonomy and response shaping live here only once.

Concurrency: there is no lock around the document. Two concurrent mutations
that load the same version race and, in ``last_write_wins`` mode, the later
write drops the earlier one's changes. See ``storage/document.py``.
"""

import logging
from collections import Counter
from collections.abc import Callable
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ValidationError

from ..config import DecaySettings
from ..errors import ConflictError, InvalidArgumentError, NotFoundError
from ..models.graph import Entity, GraphDocument, Observation, Relation
from ..models.inputs import (
    AddObservationParams,
    CreateEntityParams,
    CreateRelationParams,
    GetEntityParams,
    SearchParams,
)
from ..models.responses import (
    DecaySummary,
    EntityCreated,
    EntityView,
    GraphView,
    ObservationAdded,
    ObservationCounts,
    ObservationView,
    OperationResult,
    RelationCreated,
    RelationEdge,
    RelationView,
    SearchHit,
    SearchResult,
    StatsResult,
)
from ..models.validators import validation_message
from ..storage.document import GraphDocumentStore
from ..utils.decay import decay_score, is_expired, mean_score
from ..utils.timestamps import utc_now
from .rate_limiter import RateLimiter, RateLimitStatus

logger = logging.getLogger(__name__)

SCORE_DECIMALS = 3


def _parse(model: type[BaseModel], data: Any) -> Any:
    """Validate ``data`` into ``model``, mapping failures to InvalidArgumentError."""
    if not isinstance(data, dict):
        raise InvalidArgumentError("Request body must be a JSON object")
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise InvalidArgumentError(validation_message(e)) from e


class GraphService:
    """
    Entity, observation and relation operations over the graph document.

    Args:
        documents: Whole-document store for the graph
        rate_limiter: Limiter consulted before each counted operation; None disables limits
        decay: Decay parameters used for scoring
        clock: Returns the current instant; called once per operation
    """

    def __init__(
        self,
        documents: GraphDocumentStore,
        rate_limiter: RateLimiter | None = None,
        decay: DecaySettings | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.documents = documents
        self.rate_limiter = rate_limiter
        self.decay = decay or DecaySettings()
        self.clock = clock

    async def _consume(self, identity: str, operation_class: str) -> RateLimitStatus | None:
        if self.rate_limiter is None:
            return None
        return await self.rate_limiter.enforce(identity, operation_class)

    # ── Scoring and filtering ───────────────────────────────────────────

    def score(self, observation: Observation, now: datetime) -> float:
        return decay_score(
            observation,
            now,
            half_life_days=self.decay.half_life_days,
            access_boost=self.decay.access_boost,
            recency_window_days=self.decay.recency_window_days,
            min_relevance=self.decay.min_relevance,
        )

    @staticmethod
    def active_observations(entity: Entity, now: datetime, include_expired: bool = False) -> list[Observation]:
        return [o for o in entity.observations if include_expired or not is_expired(o.expires_at, now)]

    @staticmethod
    def active_relations(
        document: GraphDocument, name: str, now: datetime, include_expired: bool = False
    ) -> list[Relation]:
        return [r for r in document.relations_touching(name) if include_expired or not is_expired(r.expires_at, now)]

    def entity_view(
        self,
        entity: Entity,
        document: GraphDocument,
        now: datetime,
        include_expired: bool = False,
    ) -> EntityView:
        """Shape an entity for readers: scored observations, relations from its side."""
        observations = []
        for o in self.active_observations(entity, now, include_expired):
            observations.append(
                ObservationView(
                    text=o.text,
                    score=round(self.score(o, now), SCORE_DECIMALS),
                    observed_at=o.observed_at,
                    expires_at=o.expires_at,
                    expired=is_expired(o.expires_at, now) if o.expires_at else None,
                    access_count=o.access_count or None,
                )
            )

        relations = []
        for r in self.active_relations(document, entity.name, now, include_expired):
            outgoing = r.source == entity.name
            relations.append(
                RelationView(
                    direction="outgoing" if outgoing else "incoming",
                    relation=r.relation,
                    entity=r.target if outgoing else r.source,
                    expires_at=r.expires_at,
                )
            )

        return EntityView(
            name=entity.name,
            entity_type=entity.entity_type,
            observations=observations,
            relations=relations,
            created=entity.created,
            updated=entity.updated,
        )

    # ── Mutations ───────────────────────────────────────────────────────

    async def create_entity(self, data: dict[str, Any], identity: str) -> OperationResult[EntityCreated]:
        """
        Create an entity with optional initial observations.

        Raises:
            RateLimitExceededError, InvalidArgumentError, ConflictError, StoreUnavailableError
        """
        limit = await self._consume(identity, "entities")
        params: CreateEntityParams = _parse(CreateEntityParams, data)

        document, version = await self.documents.load()
        if document.find_entity(params.name) is not None:
            logger.warning(f"Entity '{params.name}' already exists")
            raise ConflictError(f'Entity "{params.name}" already exists')

        now = self.clock()
        observations = [
            Observation(
                text=o.text,
                observed_at=o.observed_at or now,
                expires_at=o.expires_at,
            )
            for o in params.observations
        ]
        document.entities.append(
            Entity(
                name=params.name,
                entity_type=params.entity_type,
                observations=observations,
                created=now,
                updated=now,
            )
        )
        await self.documents.store(document, version)

        logger.info(f"Created entity '{params.name}' ({params.entity_type}) with {len(observations)} observations")
        return OperationResult(EntityCreated(created=params.name, entity_type=params.entity_type), limit)

    async def add_observation(self, data: dict[str, Any], identity: str) -> OperationResult[ObservationAdded]:
        """
        Append an observation to an existing entity.

        Raises:
            RateLimitExceededError, InvalidArgumentError, NotFoundError, StoreUnavailableError
        """
        limit = await self._consume(identity, "observations")
        params: AddObservationParams = _parse(AddObservationParams, data)

        document, version = await self.documents.load()
        entity = document.find_entity(params.name)
        if entity is None:
            raise NotFoundError(f'Entity "{params.name}" not found')

        now = self.clock()
        entity.observations.append(
            Observation(text=params.observation, observed_at=now, expires_at=params.expires_at)
        )
        entity.updated = now
        await self.documents.store(document, version)

        logger.info(f"Added observation to '{params.name}'")
        return OperationResult(
            ObservationAdded(added=params.observation, to=params.name, expires_at=params.expires_at),
            limit,
        )

    async def create_relation(self, data: dict[str, Any], identity: str) -> OperationResult[RelationCreated]:
        """
        Create a directed relation between two existing entities.

        Raises:
            RateLimitExceededError, InvalidArgumentError, NotFoundError, ConflictError,
            StoreUnavailableError
        """
        limit = await self._consume(identity, "relations")
        params: CreateRelationParams = _parse(CreateRelationParams, data)

        document, version = await self.documents.load()
        if document.find_entity(params.source) is None:
            raise NotFoundError(f'Source "{params.source}" not found')
        if document.find_entity(params.target) is None:
            raise NotFoundError(f'Target "{params.target}" not found')
        if document.has_relation(params.source, params.relation, params.target):
            logger.warning(f"Relation {params.source} --[{params.relation}]--> {params.target} already exists")
            raise ConflictError("Relation already exists")

        relation = Relation(
            source=params.source,
            relation=params.relation,
            target=params.target,
            created=self.clock(),
            expires_at=params.expires_at,
        )
        document.relations.append(relation)
        await self.documents.store(document, version)

        logger.info(f"Created relation {relation.describe()}")
        return OperationResult(RelationCreated(created=relation.describe()), limit)

    # ── Reads ───────────────────────────────────────────────────────────

    async def get_entity(self, data: dict[str, Any], identity: str) -> OperationResult[EntityView]:
        """
        Read one entity by exact name.

        Expired observations and relations are omitted unless ``include_expired``.

        Raises:
            RateLimitExceededError, InvalidArgumentError, NotFoundError, StoreUnavailableError
        """
        limit = await self._consume(identity, "reads")
        params: GetEntityParams = _parse(GetEntityParams, data)

        document, _ = await self.documents.load()
        now = self.clock()
        entity = document.find_entity(params.name)
        if entity is None:
            raise NotFoundError(f'Entity "{params.name}" not found')

        return OperationResult(self.entity_view(entity, document, now, params.include_expired), limit)

    async def search(self, data: dict[str, Any], identity: str) -> OperationResult[SearchResult]:
        """
        Case-insensitive substring search over name, type and active observation text.

        Results are ordered by the mean decay score of each entity's active
        observations (0 when it has none), highest first; ties keep document order.
        """
        limit = await self._consume(identity, "reads")
        params: SearchParams = _parse(SearchParams, data)

        document, _ = await self.documents.load()
        now = self.clock()
        needle = params.query.lower()

        ranked: list[tuple[Entity, float]] = []
        for entity in document.entities:
            active = self.active_observations(entity, now)
            haystack = " ".join([entity.name, entity.entity_type, *(o.text for o in active)]).lower()
            if needle in haystack:
                ranked.append((entity, mean_score([self.score(o, now) for o in active])))

        # sorted() is stable, so equal scores keep document order
        ranked = sorted(ranked, key=lambda pair: pair[1], reverse=True)

        hits = [
            SearchHit(
                **self.entity_view(entity, document, now).model_dump(),
                score=round(score, SCORE_DECIMALS),
            )
            for entity, score in ranked
        ]
        return OperationResult(SearchResult(query=params.query, count=len(hits), results=hits), limit)

    async def read_graph(self) -> GraphView:
        """Every entity view and every active relation. Not rate-limited."""
        document, _ = await self.documents.load()
        now = self.clock()
        return GraphView(
            entities=[self.entity_view(e, document, now) for e in document.entities],
            relations=[
                RelationEdge(source=r.source, relation=r.relation, target=r.target)
                for r in document.relations
                if not is_expired(r.expires_at, now)
            ],
        )

    async def stats(self) -> StatsResult:
        """Aggregate counts and the mean decay score of active observations. Not rate-limited."""
        document, _ = await self.documents.load()
        now = self.clock()

        all_observations = [o for e in document.entities for o in e.observations]
        active = [o for o in all_observations if not is_expired(o.expires_at, now)]
        active_relations = [r for r in document.relations if not is_expired(r.expires_at, now)]
        types = Counter(e.entity_type for e in document.entities)

        return StatsResult(
            entities=len(document.entities),
            relations=len(active_relations),
            observations=ObservationCounts(active=len(active), expired=len(all_observations) - len(active)),
            decay=DecaySummary(
                avg_score=round(mean_score([self.score(o, now) for o in active]), SCORE_DECIMALS),
                half_life_days=self.decay.half_life_days,
            ),
            types=dict(types),
        )
