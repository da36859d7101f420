"""
Configuration for the Knowledge Graph Service.

Each concern gets its own ``BaseSettings`` group with an environment prefix,
e.g. ``KG_RATE_ENTITIES=25`` or ``KG_STORE_BACKEND=redis``. The module-level
``settings`` object aggregates them and is what the rest of the package imports.
"""

from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class StoreSettings(BaseSettings):
    """Key-value store and graph document configuration."""

    model_config = SettingsConfigDict(env_prefix="KG_STORE_", extra="ignore")

    backend: Literal["redis", "memory"] = Field(
        default="memory", description="Key-value backend: 'redis' for deployments, 'memory' for a single process"
    )
    redis_url: str = Field(default="redis://localhost:6379", description="Redis connection URL")
    redis_password: SecretStr | None = Field(default=None, description="Redis password (overrides URL credentials)")
    key_prefix: str = Field(default="kg:", description="Prefix applied to every key the service writes")
    graph_key: str = Field(default="knowledge_graph", min_length=1, description="Key holding the whole graph document")
    max_connections: int = Field(default=10, ge=1, description="Maximum Redis connections in the pool")
    consistency: Literal["last_write_wins", "optimistic"] = Field(
        default="last_write_wins",
        description="'optimistic' rejects a write when the document changed since it was loaded",
    )
    retry_attempts: int = Field(default=3, ge=1, le=10, description="Attempts for transient Redis failures")


class RateLimitSettings(BaseSettings):
    """Per-identity fixed-window rate limits."""

    model_config = SettingsConfigDict(env_prefix="KG_RATE_", extra="ignore")

    enabled: bool = True
    window_seconds: int = Field(default=3600, ge=1)
    entities: int = Field(default=10, ge=1)
    observations: int = Field(default=50, ge=1)
    relations: int = Field(default=20, ge=1)
    reads: int = Field(default=1000, ge=1)
    default_limit: int = Field(default=100, ge=1)
    exempt_identity: str | None = Field(default=None, description="Single identity that bypasses all limits")

    def limits(self) -> dict[str, int]:
        """Limit per operation class."""
        return {
            "entities": self.entities,
            "observations": self.observations,
            "relations": self.relations,
            "reads": self.reads,
        }


class DecaySettings(BaseSettings):
    """Relevance decay parameters."""

    model_config = SettingsConfigDict(env_prefix="KG_DECAY_", extra="ignore")

    half_life_days: float = Field(default=30.0, gt=0.0)
    access_boost: float = Field(default=0.1, ge=0.0)
    recency_window_days: float = Field(default=7.0, gt=0.0)
    min_relevance: float = Field(default=0.01, gt=0.0)


class HttpSettings(BaseSettings):
    """HTTP interface configuration."""

    model_config = SettingsConfigDict(env_prefix="KG_HTTP_", extra="ignore")

    host: str = "127.0.0.1"
    port: int = Field(default=8000, ge=1, le=65535)
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])
    log_level: str = "INFO"


class McpSettings(BaseSettings):
    """MCP server configuration."""

    model_config = SettingsConfigDict(env_prefix="KG_MCP_", extra="ignore")

    identity: str = Field(default="mcp", min_length=1, description="Rate-limit identity for MCP callers")
    log_level: str = "INFO"


class Settings(BaseSettings):
    """Aggregate settings for the whole service."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    store: StoreSettings = Field(default_factory=StoreSettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    decay: DecaySettings = Field(default_factory=DecaySettings)
    http: HttpSettings = Field(default_factory=HttpSettings)
    mcp: McpSettings = Field(default_factory=McpSettings)


# Global settings instance
settings = Settings()
