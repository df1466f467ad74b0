"""Common utilities shared across the Solr bridge.

Includes:
- ``config``: Pydantic-based configuration from environment variables.
- ``logging``: structured logging setup with structlog.
- ``metrics``: Prometheus request metrics for the Solr transport.

Import pattern:
- from libs.common.config import SolrConfig
- from libs.common.logging import configure_logging
"""
