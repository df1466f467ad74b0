"""Configuration management for the Solr bridge.

This module centralizes environment-driven configuration for everything that
talks to the local Solr instance (the client library, the entropy dump
script). It builds on ``pydantic_settings.BaseSettings`` so configuration can
be provided via environment variables, ``.env`` files, or defaults.

Highlights
- Strongly-typed settings with sensible defaults
- One place to discover commonly used environment variables
- A small Solr-specific subclass to keep concerns clear

Usage
- Inject the config in your entrypoint: ``config = SolrConfig()``
- Or select dynamically: ``config = get_config("solr")``
"""

from typing import Dict, Type

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from libs.solr.transport import PoolConfig


class BaseConfig(BaseSettings):
    """Base configuration shared by every entrypoint.

    Parameters are read from the process environment with the given names.
    Defaults keep local development convenient while still being explicit.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    yz_env: str = Field(default="local")

    # Logging
    yz_log_level: str = Field(default="INFO")
    yz_log_format: str = Field(default="json")


class SolrConfig(BaseConfig):
    """Configuration for the Solr bridge.

    Solr listens on the local host only; every node runs its own instance
    under the same context path, which is why remote shards are addressed as
    ``host:port`` plus the context.
    """

    yz_solr_host: str = Field(default="localhost")
    yz_solr_port: int = Field(default=8093)
    yz_solr_context: str = Field(default="/internal_solr")

    # Timeouts are milliseconds, matching the rest of the cluster settings.
    yz_solr_request_timeout_ms: int = Field(default=60000)
    yz_solr_ed_request_timeout_ms: int = Field(default=60000)

    # Connection pool
    yz_solr_max_sessions: int = Field(default=10, gt=0)
    yz_solr_max_pipeline_size: int = Field(default=10, gt=0)

    @property
    def base_url(self) -> str:
        """URL of the local Solr instance including the context path."""
        return f"http://{self.yz_solr_host}:{self.yz_solr_port}{self.yz_solr_context}"

    def pool_config(self) -> PoolConfig:
        """Connection pool settings as the transport expects them."""
        return PoolConfig(
            max_sessions=self.yz_solr_max_sessions,
            max_pipeline_size=self.yz_solr_max_pipeline_size,
        )


def get_config(name: str) -> BaseConfig:
    """Get configuration by name.

    Parameters
    - name: ``solr`` or anything else for the shared ``BaseConfig``
    """
    config_map: Dict[str, Type[BaseConfig]] = {
        "solr": SolrConfig,
    }

    # Default to ``BaseConfig`` to avoid surprising crashes for unknown names.
    config_class = config_map.get(name, BaseConfig)
    return config_class()
