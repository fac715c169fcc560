"""
fraudlink configuration management using pydantic-settings.

Store connection settings plus the bounds that keep detection and
traversal from running away on dense graphs.
"""

import warnings

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    environment: str = Field(
        default="development",
        description="Environment: development, staging, production",
    )
    log_level: str = Field(default="INFO", description="Logging level")

    # Graph store
    graph_backend: str = Field(
        default="networkx",
        description="Graph backend: networkx (in-memory) or neo4j",
    )
    neo4j_uri: str = Field(
        default="bolt://localhost:7687",
        description="Neo4j bolt URI",
    )
    neo4j_user: str = Field(default="neo4j", description="Neo4j user")
    neo4j_password: str = Field(default="password123", description="Neo4j password")
    neo4j_database: str = Field(default="neo4j", description="Neo4j database name")
    neo4j_max_connection_pool_size: int = Field(
        default=50, description="Neo4j driver connection pool size"
    )

    # Detection caps (pairs materialized per run)
    same_ip_pair_cap: int = Field(default=50_000, description="Max SAME_IP pairs per run")
    same_device_pair_cap: int = Field(
        default=50_000, description="Max SAME_DEVICE pairs per run"
    )
    temporal_pair_cap: int = Field(default=30_000, description="Max TEMPORAL_LINK pairs per run")
    amount_pattern_pair_cap: int = Field(
        default=20_000, description="Max AMOUNT_PATTERN pairs per run"
    )

    # Detection thresholds
    temporal_window_seconds: int = Field(
        default=3600, description="Window for TEMPORAL_LINK detection"
    )
    amount_pattern_min_amount: float = Field(
        default=1000.0, description="Minimum amount for AMOUNT_PATTERN candidates"
    )
    amount_pattern_max_ratio: float = Field(
        default=0.1, gt=0.0, lt=1.0, description="Maximum relative difference for AMOUNT_PATTERN"
    )
    business_partner_min_transfers: int = Field(
        default=5, description="Completed transfers needed for BUSINESS_PARTNER"
    )
    family_member_confidence: float = Field(
        default=0.8, ge=0.0, le=1.0, description="Confidence of FAMILY_MEMBER links"
    )
    parallel_detection: bool = Field(
        default=False, description="Run independent detection rules concurrently"
    )

    # Traversal
    path_max_hops: int = Field(default=6, description="Shortest path hop bound")

    @field_validator(
        "same_ip_pair_cap",
        "same_device_pair_cap",
        "temporal_pair_cap",
        "amount_pattern_pair_cap",
        "temporal_window_seconds",
        "business_partner_min_transfers",
    )
    @classmethod
    def validate_positive(cls, v: int) -> int:
        """Caps and windows must be positive."""
        if v <= 0:
            raise ValueError("must be a positive integer")
        return v

    @field_validator("path_max_hops")
    @classmethod
    def validate_path_bound(cls, v: int) -> int:
        """Keep shortest path searches bounded."""
        if not 1 <= v <= 15:
            raise ValueError("PATH_MAX_HOPS must be between 1 and 15")
        return v

    @field_validator("graph_backend")
    @classmethod
    def validate_backend(cls, v: str) -> str:
        v = v.lower()
        if v not in ("networkx", "neo4j"):
            raise ValueError("GRAPH_BACKEND must be 'networkx' or 'neo4j'")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        v = v.upper()
        if v not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return v

    @model_validator(mode="after")
    def validate_production_settings(self) -> "Settings":
        """Ensure critical settings are configured in production."""
        if self.environment == "production":
            if self.neo4j_password in ("", "password", "password123"):
                raise ValueError("NEO4J_PASSWORD must be set in production")
            if "localhost" in self.neo4j_uri:
                warnings.warn(
                    "NEO4J_URI contains 'localhost' in production",
                    UserWarning,
                    stacklevel=2,
                )
        return self

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"


# Global settings instance
settings = Settings()
