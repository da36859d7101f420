"""Service-layer response models.

Typed Pydantic models for everything the graph service returns. These are
the *response* shapes (what the caller sees), not the stored document
models: observations carry a computed ``score``, relations are seen from one
entity's side. Optional fields left as ``None`` are dropped on the wire, so
dump with ``exclude_none=True``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from ..services.rate_limiter import RateLimitStatus
from .validators import OptionalUtcDatetime

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Envelope
# ---------------------------------------------------------------------------


@dataclass
class OperationResult(Generic[T]):
    """A response payload plus the rate-limit state of the class it consumed."""

    value: T
    rate_limit: RateLimitStatus | None = None


def to_wire(model: BaseModel) -> dict:
    """Serialise a response model with wire field names, optional fields omitted."""
    return model.model_dump(mode="json", by_alias=True, exclude_none=True)


# ---------------------------------------------------------------------------
# Entity view
# ---------------------------------------------------------------------------


class ObservationView(BaseModel):
    """One observation as seen by a reader, with its decay score."""

    text: str
    score: float
    observed_at: OptionalUtcDatetime = None
    expires_at: OptionalUtcDatetime = None
    expired: bool | None = None
    access_count: int | None = None


class RelationView(BaseModel):
    """A relation seen from one endpoint."""

    direction: Literal["outgoing", "incoming"]
    relation: str
    entity: str
    expires_at: OptionalUtcDatetime = None


class EntityView(BaseModel):
    """An entity with its active observations and relations."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    entity_type: str = Field(serialization_alias="type")
    observations: list[ObservationView] = Field(default_factory=list)
    relations: list[RelationView] = Field(default_factory=list)
    created: OptionalUtcDatetime = None
    updated: OptionalUtcDatetime = None


class SearchHit(EntityView):
    """An entity view ranked by the mean score of its active observations."""

    score: float


class SearchResult(BaseModel):
    query: str
    count: int
    results: list[SearchHit] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Graph dump
# ---------------------------------------------------------------------------


class RelationEdge(BaseModel):
    source: str
    relation: str
    target: str


class GraphView(BaseModel):
    entities: list[EntityView] = Field(default_factory=list)
    relations: list[RelationEdge] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Stats
# ---------------------------------------------------------------------------


class ObservationCounts(BaseModel):
    active: int = 0
    expired: int = 0


class DecaySummary(BaseModel):
    avg_score: float = 0.0
    half_life_days: float

    @field_serializer("half_life_days")
    def _whole_days(self, value: float) -> float | int:
        return int(value) if value.is_integer() else value


class StatsResult(BaseModel):
    """Aggregate counts over the whole graph."""

    entities: int = 0
    relations: int = 0
    observations: ObservationCounts = Field(default_factory=ObservationCounts)
    decay: DecaySummary
    types: dict[str, int] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------


class EntityCreated(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    created: str
    entity_type: str = Field(serialization_alias="entityType")


class ObservationAdded(BaseModel):
    added: str
    to: str
    expires_at: OptionalUtcDatetime = None


class RelationCreated(BaseModel):
    created: str
