"""
Configuration for the reasoning bank analytics engine.

Settings are grouped by concern and loaded from environment variables via
pydantic-settings. Each group has its own prefix:

    RB_FALKORDB_*  - FalkorDB repository connection
    RB_GRAPH_*     - similarity graph, mincut, novelty and PageRank tuning
    RB_SPIKING_*   - LIF neuron parameters, CAS retry budget, anomaly windows
    RB_LOG_*       - logging

The module-level ``settings`` instance is read once at import time. Tests
construct the individual groups directly to exercise defaults and overrides.
"""

from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class FalkorDBSettings(BaseSettings):
    """FalkorDB-backed pattern repository."""

    model_config = SettingsConfigDict(env_prefix="RB_FALKORDB_", extra="ignore")

    enabled: bool = False
    host: str = "localhost"
    port: int = Field(default=6379, ge=1, le=65535)
    password: SecretStr | None = None
    graph_name: str = "reasoning_bank"
    max_connections: int = Field(default=16, ge=1)


class GraphAnalyticsSettings(BaseSettings):
    """Similarity graph, clustering and ranking defaults."""

    model_config = SettingsConfigDict(env_prefix="RB_GRAPH_", extra="ignore")

    similarity_threshold: float = Field(default=0.3, ge=-1.0, le=1.0)
    min_cut_threshold: float = Field(default=0.5, ge=0.0)
    novelty_threshold: float = Field(default=0.5, ge=-1.0, le=1.0)
    # Fallback linkage when a domain has no successful trajectories
    linkage_threshold: float = Field(default=0.3, ge=-1.0, le=1.0)

    pagerank_damping: float = Field(default=0.85, gt=0.0, lt=1.0)
    pagerank_tolerance: float = Field(default=1e-6, gt=0.0)
    pagerank_max_iterations: int = Field(default=100, ge=1)


class SpikingSettings(BaseSettings):
    """Leaky integrate-and-fire network and anomaly detection defaults."""

    model_config = SettingsConfigDict(env_prefix="RB_SPIKING_", extra="ignore")

    threshold: float = Field(default=1.0, gt=0.0)
    decay: float = Field(default=0.9, gt=0.0, le=1.0)
    dt: float = Field(default=0.001, gt=0.0)

    cas_max_retries: int = Field(default=5, ge=1, le=100)
    stdp_enabled: bool = True

    recent_window_seconds: int = Field(default=3600, ge=1)
    top_n: int = Field(default=10, ge=1)
    anomaly_window_seconds: int = Field(default=3600, ge=1)
    anomaly_z_threshold: float = 2.0
    baseline_windows: int = Field(default=24, ge=1)


class LoggingSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="RB_LOG_", extra="ignore")

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"


class Settings(BaseSettings):
    """Top-level settings aggregate."""

    model_config = SettingsConfigDict(extra="ignore")

    falkordb: FalkorDBSettings = Field(default_factory=FalkorDBSettings)
    graph: GraphAnalyticsSettings = Field(default_factory=GraphAnalyticsSettings)
    spiking: SpikingSettings = Field(default_factory=SpikingSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


settings = Settings()
