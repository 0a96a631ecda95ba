"""Application configuration using Pydantic Settings.

All configuration is loaded from environment variables.
No secrets are hardcoded.
"""

from enum import Enum
from functools import lru_cache

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Application environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class DiscoverySettings(BaseSettings):
    """Discovery pipeline configuration.

    The publish/retire pair forms a hysteresis band: links are created at
    or above the publish threshold and only retired below the retire one.
    """

    model_config = SettingsConfigDict(env_prefix="DISCOVERY_")

    publish_threshold: float = Field(
        default=0.55,
        ge=0.0,
        le=1.0,
        description="Minimum overall score to create a link",
    )
    retire_threshold: float = Field(
        default=0.40,
        ge=0.0,
        le=1.0,
        description="Existing links below this score are retired",
    )
    max_workers: int = Field(
        default=4,
        ge=1,
        description="Concurrent discovery runs (distinct photos)",
    )
    debounce_seconds: float = Field(
        default=0.25,
        ge=0.0,
        description="Quiet period before a photo's run starts",
    )
    prefilter_min_corpus: int = Field(
        default=200,
        ge=0,
        description="Opposite-collection size at or below which every photo is scored",
    )
    index_top_k: int = Field(
        default=50,
        ge=1,
        description="Nearest neighbours pulled from the vector index",
    )
    material_change_delta: float = Field(
        default=0.05,
        ge=0.0,
        description="Overall score change that regenerates a link description",
    )
    recent_discoveries_limit: int = Field(
        default=100,
        ge=1,
        description="Discovery notifications kept for polling clients",
    )

    @model_validator(mode="after")
    def _check_band(self) -> "DiscoverySettings":
        if self.retire_threshold > self.publish_threshold:
            raise ValueError(
                f"retire_threshold ({self.retire_threshold}) must not exceed "
                f"publish_threshold ({self.publish_threshold})"
            )
        return self


class ScoringSettings(BaseSettings):
    """Pairwise scoring configuration."""

    model_config = SettingsConfigDict(env_prefix="SCORING_")

    subject_weight: float = Field(default=0.6, gt=0.0, description="Embedding similarity weight")
    color_weight: float = Field(default=0.25, ge=0.0, description="Color overlap weight")
    composition_weight: float = Field(
        default=0.15,
        ge=0.0,
        description="Composition similarity weight",
    )
    strong_band: float = Field(
        default=0.75,
        description="Sub-score at which a signal is described as strong",
    )
    moderate_band: float = Field(
        default=0.5,
        description="Sub-score at which a signal is described as moderate",
    )


class QdrantSettings(BaseSettings):
    """Qdrant vector index configuration."""

    model_config = SettingsConfigDict(env_prefix="QDRANT_")

    enabled: bool = Field(
        default=False,
        description="Augment candidate generation with a Qdrant index",
    )
    url: str = Field(
        default="http://localhost:6333",
        description="Qdrant server URL",
    )
    api_key: SecretStr | None = Field(
        default=None,
        description="Qdrant API key (optional for local)",
    )
    collection_name: str = Field(
        default="photo_features",
        description="Collection holding photo embeddings",
    )


class Settings(BaseSettings):
    """Main application settings.

    Aggregates all configuration sections.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application settings
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Application environment",
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )

    # API settings
    api_host: str = Field(
        default="0.0.0.0",
        description="API server host",
    )
    api_port: int = Field(
        default=8000,
        description="API server port",
    )

    # Nested settings
    discovery: DiscoverySettings = Field(default_factory=DiscoverySettings)
    scoring: ScoringSettings = Field(default_factory=ScoringSettings)
    qdrant: QdrantSettings = Field(default_factory=QdrantSettings)


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()
