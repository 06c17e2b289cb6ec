"""Application settings — Pydantic-based configuration with YAML and env var support.

Configuration is loaded from (in order of precedence):
  1. YAML config file (if specified)
  2. Environment variables (SCOUTSYNC_ prefix)
  3. Default values
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings


class ChunkSettings(BaseModel):
    """Batch sizes used when dispatching sync jobs."""

    searchable: int = Field(default=500, ge=1, description="Records per upsert job")
    unsearchable: int = Field(default=500, ge=1, description="Records per removal job")


class MeilisearchSettings(BaseModel):
    """Meilisearch connection configuration."""

    host: str = Field(default="http://localhost:7700", description="Meilisearch instance URL")
    key: str | None = Field(default=None, description="Master key or API key")
    timeout: float = Field(default=30.0, gt=0, description="HTTP request timeout in seconds")
    index_settings: dict[str, dict[str, Any]] = Field(
        default_factory=dict,
        description="Per-index settings pushed by sync_index_settings(), keyed by index name",
    )


class AlgoliaSettings(BaseModel):
    """Algolia connection configuration."""

    app_id: str = Field(default="", description="Algolia application ID")
    secret: str = Field(default="", description="Algolia admin API key")
    timeout: float = Field(default=30.0, gt=0, description="HTTP request timeout in seconds")

    @field_validator("app_id", "secret", mode="before")
    @classmethod
    def _strip(cls, v: Any) -> str:
        return str(v).strip() if v is not None else ""


class QueueSettings(BaseModel):
    """In-process queue runtime configuration."""

    max_attempts: int = Field(default=3, ge=1, description="Deliveries per job before it is dead-lettered")
    retry_delay: float = Field(default=0.5, ge=0, description="Seconds to wait between redeliveries")


class ObservabilitySettings(BaseModel):
    """Observability configuration."""

    log_level: str = Field(default="info", description="Log level: debug, info, warning, error")
    log_format: str = Field(default="json", description="Log format: json, console")


class Settings(BaseSettings):
    """Root settings.

    Configuration is loaded from environment variables with the SCOUTSYNC_ prefix.
    Nested settings use double underscores: SCOUTSYNC_MEILISEARCH__HOST=http://search:7700

    Example:
        SCOUTSYNC_DRIVER=meilisearch
        SCOUTSYNC_SOFT_DELETE=true
        SCOUTSYNC_ALGOLIA__APP_ID=ABC123
    """

    model_config = {
        "env_prefix": "SCOUTSYNC_",
        "env_nested_delimiter": "__",
        "case_sensitive": False,
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }

    driver: str = Field(default="collection", description="Default search engine driver name")
    prefix: str = Field(default="", description="Prefix prepended to every index name")
    after_commit: bool = Field(default=False, description="Hold sync jobs until the enclosing transaction commits")
    soft_delete: bool = Field(default=False, description="Keep soft-deleted records searchable")

    chunk: ChunkSettings = Field(default_factory=ChunkSettings)
    meilisearch: MeilisearchSettings = Field(default_factory=MeilisearchSettings)
    algolia: AlgoliaSettings = Field(default_factory=AlgoliaSettings)
    queue: QueueSettings = Field(default_factory=QueueSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)

    @classmethod
    def from_yaml(cls, path: str | Path) -> Settings:
        """Load settings from a YAML configuration file.

        Keys present in the YAML file win over environment variables; keys it
        omits still fall back to the environment and then to defaults.

        Args:
            path: Path to the YAML config file.

        Returns:
            Populated Settings instance.
        """
        import yaml  # type: ignore[import-untyped]

        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path) as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)
