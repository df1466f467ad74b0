"""Metrics collection for Solr requests.

Provides a thin convenience wrapper around ``prometheus_client`` so every
request the bridge issues is counted and timed with a consistent label set.

Design notes
- Metrics and labels are predeclared to avoid cardinality explosions
- A registry is kept per collector (inject one in tests)
- Labels use the logical operation name, never the URL
"""

from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest


class SolrMetrics:
    """Request metrics for the Solr transport.

    Parameters
    - registry: Optional custom ``CollectorRegistry`` (e.g. for testing)
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or CollectorRegistry()

        self.request_count = Counter(
            'solr_requests_total',
            'Total requests sent to Solr',
            ['operation', 'status'],
            registry=self.registry
        )

        self.request_duration = Histogram(
            'solr_request_duration_seconds',
            'Solr request duration',
            ['operation'],
            registry=self.registry
        )

    def record_request(self, operation: str, status: str, duration: float) -> None:
        """Record one finished request.

        ``status`` is the HTTP status code as text, or ``error`` when the
        request never produced a response.
        """
        self.request_count.labels(operation=operation, status=status).inc()
        self.request_duration.labels(operation=operation).observe(duration)

    def get_metrics(self) -> str:
        """Render the registry in the Prometheus exposition format."""
        return generate_latest(self.registry).decode("utf-8")
