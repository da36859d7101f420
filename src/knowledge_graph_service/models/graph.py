"""Graph document models.

The whole graph (entities and relations) is one document, loaded and written
as a unit. Field names match the persisted JSON layout, so ``entityType`` is
kept as an alias of ``entity_type``. Unknown fields are preserved so that a
full-document rewrite does not drop data another writer added.
"""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

from .validators import NonNegativeInt, OptionalUtcDatetime, coerce_list, coerce_observation


class Observation(BaseModel):
    """A timestamped, optionally-expiring fact owned by one entity."""

    model_config = ConfigDict(extra="allow")

    text: str = ""
    observed_at: OptionalUtcDatetime = None
    expires_at: OptionalUtcDatetime = None
    last_accessed: OptionalUtcDatetime = None
    access_count: NonNegativeInt = 0
    relevance: float = 1.0


StoredObservation = Annotated[Observation, BeforeValidator(coerce_observation)]
"""Observation as found in a stored document: full object or bare string."""


class Entity(BaseModel):
    """A named node in the graph."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    type: Literal["entity"] = "entity"
    name: str
    entity_type: str = Field(alias="entityType")
    observations: Annotated[list[StoredObservation], BeforeValidator(coerce_list)] = Field(default_factory=list)
    created: OptionalUtcDatetime = None
    updated: OptionalUtcDatetime = None


class Relation(BaseModel):
    """A directed, labelled edge ``source --[relation]--> target``."""

    model_config = ConfigDict(extra="allow")

    type: Literal["relation"] = "relation"
    source: str
    relation: str
    target: str
    created: OptionalUtcDatetime = None
    expires_at: OptionalUtcDatetime = None

    @property
    def triple(self) -> tuple[str, str, str]:
        return (self.source, self.relation, self.target)

    def describe(self) -> str:
        return f"{self.source} --[{self.relation}]--> {self.target}"


class GraphDocument(BaseModel):
    """The aggregate ``{entities, relations}`` stored under a single key."""

    model_config = ConfigDict(extra="allow")

    entities: Annotated[list[Entity], BeforeValidator(coerce_list)] = Field(default_factory=list)
    relations: Annotated[list[Relation], BeforeValidator(coerce_list)] = Field(default_factory=list)

    def find_entity(self, name: str) -> Entity | None:
        """Exact, case-sensitive lookup by name."""
        for entity in self.entities:
            if entity.name == name:
                return entity
        return None

    def has_relation(self, source: str, relation: str, target: str) -> bool:
        return any(r.triple == (source, relation, target) for r in self.relations)

    def relations_touching(self, name: str) -> list[Relation]:
        return [r for r in self.relations if r.source == name or r.target == name]

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)
