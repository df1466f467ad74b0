"""HTTP transport to the local Solr instance.

Wraps one ``httpx.AsyncClient`` whose connection limits come from a
``PoolConfig``. The pool settings are the only mutable state shared by all
requests of a client; changing them rebuilds the underlying HTTP client so
the new limits apply to every request issued afterwards. In-flight requests
finish on the client they started on.
"""

import time
from dataclasses import asdict, dataclass, replace
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import httpx
import structlog

from libs.common.metrics import SolrMetrics

from .errors import TransportError
from .fields import MAX_PIPELINE_SIZE, MAX_SESSIONS

logger = structlog.get_logger("solr.transport")

DEFAULT_TIMEOUT_MS = 60000

Params = Union[Mapping[str, Any], Sequence[Tuple[str, Any]]]


@dataclass(frozen=True)
class PoolConfig:
    """Connection pool sizing for one Solr endpoint.

    - max_sessions: concurrent connections opened to Solr
    - max_pipeline_size: idle connections kept around for reuse
    """

    max_sessions: int = 10
    max_pipeline_size: int = 10

    def __post_init__(self):
        for key, value in asdict(self).items():
            _check_pool_value(key, value)

    def limits(self) -> httpx.Limits:
        return httpx.Limits(
            max_connections=self.max_sessions,
            max_keepalive_connections=self.max_pipeline_size,
        )


def _check_pool_value(key: str, value: Any) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValueError(f"{key} must be a positive integer, got {value!r}")


class SolrTransport:
    """Issues single requests against Solr and records their outcome."""

    def __init__(
        self,
        base_url: str,
        pool: Optional[PoolConfig] = None,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        metrics: Optional[SolrMetrics] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Create a transport.

        Parameters
        - base_url: Solr URL including the context path
        - pool: Connection pool sizing (defaults to ``PoolConfig()``)
        - timeout_ms: Default per-request timeout in milliseconds
        - metrics: Optional ``SolrMetrics`` collector
        - transport: Optional httpx transport (``httpx.MockTransport`` in tests)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout_ms = timeout_ms
        self.metrics = metrics
        self._pool = pool or PoolConfig()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._retired: List[httpx.AsyncClient] = []
        self._in_flight: Dict[httpx.AsyncClient, int] = {}

    def _build_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            limits=self._pool.limits(),
            timeout=self.timeout_ms / 1000.0,
            transport=self._transport,
        )

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = self._build_client()
        return self._client

    def get_pool_config(self) -> Dict[str, int]:
        """Current pool settings keyed by ``max_sessions``/``max_pipeline_size``."""
        return asdict(self._pool)

    def set_pool_config(self, **settings: int) -> None:
        """Change pool settings for all requests issued from now on.

        Unknown keys and non-positive values raise ``ValueError`` and leave
        the current settings untouched.
        """
        unknown = set(settings) - {MAX_SESSIONS, MAX_PIPELINE_SIZE}
        if unknown:
            raise ValueError(f"Unknown pool settings: {sorted(unknown)}")

        self._pool = replace(self._pool, **settings)
        if self._client is not None:
            # Closed once the requests already running on it finish.
            self._retired.append(self._client)
            self._client = None
        logger.info("Solr pool configuration changed", **asdict(self._pool))

    async def request(
        self,
        operation: str,
        method: str,
        path: str,
        params: Optional[Params] = None,
        content: Optional[Union[str, bytes]] = None,
        headers: Optional[Mapping[str, str]] = None,
        timeout_ms: Optional[int] = None,
    ) -> httpx.Response:
        """Send one request; never retries.

        Connection errors and timeouts are raised as ``TransportError``. Any
        HTTP status is returned to the caller, which owns its meaning.
        """
        timeout = (timeout_ms if timeout_ms is not None else self.timeout_ms) / 1000.0
        url = f"{self.base_url}{path}"
        started = time.perf_counter()
        client = self.client
        self._in_flight[client] = self._in_flight.get(client, 0) + 1

        try:
            response = await client.request(
                method,
                path,
                params=params,
                content=content,
                headers=headers,
                timeout=timeout,
            )
        except httpx.TimeoutException as e:
            self._record(operation, "error", started)
            logger.error("Solr request timed out", operation=operation, url=url, timeout=timeout)
            raise TransportError(f"Timed out after {timeout}s", operation=operation, url=url) from e
        except httpx.TransportError as e:
            self._record(operation, "error", started)
            logger.error("Solr request failed", operation=operation, url=url, error=str(e))
            raise TransportError(str(e) or type(e).__name__, operation=operation, url=url) from e
        finally:
            self._in_flight[client] -= 1
            if not self._in_flight[client]:
                del self._in_flight[client]
            await self._close_idle_retired()

        self._record(operation, str(response.status_code), started)
        return response

    async def _close_idle_retired(self) -> None:
        idle = [c for c in self._retired if c not in self._in_flight]
        if not idle:
            return
        self._retired = [c for c in self._retired if c in self._in_flight]
        for client in idle:
            await client.aclose()

    def _record(self, operation: str, status: str, started: float) -> None:
        if self.metrics is not None:
            self.metrics.record_request(operation, status, time.perf_counter() - started)

    async def aclose(self) -> None:
        """Close the HTTP client and any replaced by pool changes."""
        clients = self._retired + ([self._client] if self._client is not None else [])
        self._retired = []
        self._client = None
        for client in clients:
            await client.aclose()

    async def __aenter__(self) -> "SolrTransport":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
