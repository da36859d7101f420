"""Operation input models.

Pydantic models that validate every request body before it touches the
graph. Both the HTTP routes and the MCP tools construct these, so required
fields, timestamp parsing and the observation string shorthand are handled in
one place.
"""

from __future__ import annotations

from typing import Annotated

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

from .validators import NonEmptyStr, OptionalUtcDatetime, coerce_list, coerce_observation


class ObservationInput(BaseModel):
    """An observation supplied at entity creation."""

    text: NonEmptyStr
    observed_at: OptionalUtcDatetime = None
    expires_at: OptionalUtcDatetime = None


class CreateEntityParams(BaseModel):
    """Validated input for creating an entity."""

    model_config = ConfigDict(populate_by_name=True)

    name: NonEmptyStr
    entity_type: NonEmptyStr = Field(alias="entityType")
    observations: Annotated[
        list[Annotated[ObservationInput, BeforeValidator(coerce_observation)]],
        BeforeValidator(coerce_list),
    ] = Field(default_factory=list)


class AddObservationParams(BaseModel):
    """Validated input for appending an observation to an entity."""

    name: NonEmptyStr
    observation: NonEmptyStr
    expires_at: OptionalUtcDatetime = None


class CreateRelationParams(BaseModel):
    """Validated input for creating a relation."""

    source: NonEmptyStr
    relation: NonEmptyStr
    target: NonEmptyStr
    expires_at: OptionalUtcDatetime = None


class GetEntityParams(BaseModel):
    """Validated input for reading one entity."""

    name: NonEmptyStr
    include_expired: bool = False


class SearchParams(BaseModel):
    """Validated input for keyword search."""

    query: NonEmptyStr
