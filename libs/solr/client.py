"""Solr client used by the key-value store.

All interaction with the local Solr instance goes through ``SolrClient``.
Each method sends exactly one request; there is no caching and no retry.
Failures are raised as ``libs.solr.errors`` exceptions carrying the
operation, URL and, when Solr answered, its status and body.
"""

import json
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union
from urllib.parse import urlencode

import httpx
import structlog

from libs.common.metrics import SolrMetrics

from .cover import CoverPlanner, build_distributed_params
from .delete import DeleteIntent, encode_delete_body
from .documents import UpdateOp, encode_batch
from .entropy import EntropyFilter, EntropyPage, parse_entropy_response
from .errors import BadRequestError, ConflictError, ProtocolError, SolrError
from .fields import PN_FIELD
from .transport import DEFAULT_TIMEOUT_MS, PoolConfig, SolrTransport

if TYPE_CHECKING:
    from libs.common.config import SolrConfig

logger = structlog.get_logger("solr.client")

JSON_HEADERS = {"Content-Type": "application/json"}
FORM_HEADERS = {"Content-Type": "application/x-www-form-urlencoded"}

CORE_ACTIONS = {
    "create": "CREATE",
    "status": "STATUS",
    "remove": "UNLOAD",
    "reload": "RELOAD",
}

CORE_ALIASES = {
    "index_dir": "instanceDir",
    "cfg_file": "config",
    "schema_file": "schema",
    "delete_instance": "deleteInstanceDir",
    "delete_index": "deleteIndex",
    "delete_data_dir": "deleteDataDir",
}

Params = Union[Mapping[str, Any], Sequence[Tuple[str, Any]]]


class DeleteOutcome(Enum):
    DELETED = "deleted"
    NOTHING_TO_DELETE = "nothing_to_delete"


@dataclass(frozen=True)
class SolrResponse:
    """Headers and raw body of a successful response."""

    headers: httpx.Headers
    body: bytes

    def json(self) -> Any:
        return json.loads(self.body)


def _param_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return str(value)


def _pairs(params: Optional[Params]) -> List[Tuple[str, str]]:
    if not params:
        return []
    items = params.items() if isinstance(params, Mapping) else params
    return [(str(key), _param_value(value)) for key, value in items]


def get_response(decoded: Mapping[str, Any]) -> Any:
    """The ``response`` section of a decoded Solr answer."""
    return decoded["response"]


def get_doc_pairs(response: Mapping[str, Any]) -> List[List[Tuple[str, Any]]]:
    """Each document of a ``response`` section as ``(field, value)`` pairs."""
    return [list(doc.items()) for doc in response["docs"]]


class SolrClient:
    """Client for the Solr instance co-located with this node."""

    def __init__(
        self,
        base_url: str,
        pool: Optional[PoolConfig] = None,
        request_timeout_ms: int = DEFAULT_TIMEOUT_MS,
        entropy_timeout_ms: int = DEFAULT_TIMEOUT_MS,
        metrics: Optional[SolrMetrics] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Create a client.

        Parameters
        - base_url: Solr URL including the context path
        - pool: Connection pool sizing shared by every request of this client
        - request_timeout_ms: Default timeout for regular requests
        - entropy_timeout_ms: Timeout for entropy data pages
        - metrics: Optional ``SolrMetrics`` collector
        - transport: Optional httpx transport, mainly for tests
        """
        self.entropy_timeout_ms = entropy_timeout_ms
        self.transport = SolrTransport(
            base_url,
            pool=pool,
            timeout_ms=request_timeout_ms,
            metrics=metrics,
            transport=transport,
        )

    @classmethod
    def from_config(
        cls,
        config: "SolrConfig",
        metrics: Optional[SolrMetrics] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "SolrClient":
        return cls(
            config.base_url,
            pool=config.pool_config(),
            request_timeout_ms=config.yz_solr_request_timeout_ms,
            entropy_timeout_ms=config.yz_solr_ed_request_timeout_ms,
            metrics=metrics,
            transport=transport,
        )

    @property
    def base_url(self) -> str:
        return self.transport.base_url

    def get_pool_config(self) -> Dict[str, int]:
        return self.transport.get_pool_config()

    def set_pool_config(self, **settings: int) -> None:
        self.transport.set_pool_config(**settings)

    async def aclose(self) -> None:
        await self.transport.aclose()

    async def __aenter__(self) -> "SolrClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    def _unexpected(self, operation: str, response: httpx.Response, message: str) -> ProtocolError:
        return ProtocolError(
            message,
            operation=operation,
            url=str(response.request.url),
            status_code=response.status_code,
            body=response.content,
        )

    async def commit(self, core: str, timeout_ms: Optional[int] = None) -> None:
        """Commit pending updates and wait for a new searcher."""
        params = [("commit", "true"), ("waitFlush", "true"), ("waitSearcher", "true")]
        response = await self.transport.request(
            "commit", "POST", f"/{core}/update",
            params=params, content="{}", headers=JSON_HEADERS, timeout_ms=timeout_ms,
        )
        if response.status_code != 200:
            logger.error("Solr commit failed", core=core, status=response.status_code)
            raise self._unexpected("commit", response, "Failed to commit")

    async def delete(
        self,
        core: str,
        intents: Iterable[DeleteIntent],
        timeout_ms: Optional[int] = None,
    ) -> DeleteOutcome:
        """Send every delete intent in one update request.

        A 404 from Solr means there was nothing to delete and is returned as
        ``DeleteOutcome.NOTHING_TO_DELETE``.
        """
        body = encode_delete_body(intents)
        response = await self.transport.request(
            "delete", "POST", f"/{core}/update",
            content=body, headers=JSON_HEADERS, timeout_ms=timeout_ms,
        )
        if response.status_code == 200:
            return DeleteOutcome.DELETED
        if response.status_code == 404:
            logger.info("Nothing to delete", core=core)
            return DeleteOutcome.NOTHING_TO_DELETE
        logger.error("Solr delete failed", core=core, status=response.status_code)
        raise self._unexpected("delete", response, "Failed to delete")

    async def search(
        self,
        core: str,
        params: Params,
        headers: Optional[Mapping[str, str]] = None,
        timeout_ms: Optional[int] = None,
    ) -> SolrResponse:
        """Run a query against ``core``; parameters are sent form-encoded."""
        body = urlencode(_pairs(params))
        request_headers = {**FORM_HEADERS, **(headers or {})}
        response = await self.transport.request(
            "search", "POST", f"/{core}/select",
            content=body, headers=request_headers, timeout_ms=timeout_ms,
        )
        if response.status_code != 200:
            logger.error(
                "Solr search failed",
                url=str(response.request.url),
                status=response.status_code,
                body=response.text,
            )
            raise self._unexpected("search", response, "Solr search failed")
        return SolrResponse(headers=response.headers, body=response.content)

    async def dist_search(
        self,
        core: str,
        params: Params,
        planner: CoverPlanner,
        headers: Optional[Mapping[str, str]] = None,
        timeout_ms: Optional[int] = None,
    ) -> SolrResponse:
        """Search every partition of ``core`` across the cluster.

        The cover plan is turned into a ``shards`` parameter and one filter
        query per node; Solr runs the per-shard requests itself. Planning
        errors propagate before any request is sent.
        """
        plan = await planner.plan(core)
        params2 = _pairs(params) + build_distributed_params(core, plan)
        return await self.search(core, params2, headers=headers, timeout_ms=timeout_ms)

    async def entropy_data(self, core: str, entropy_filter: EntropyFilter) -> EntropyPage:
        """Fetch one page of entropy data for ``core``."""
        response = await self.transport.request(
            "entropy_data", "GET", f"/{core}/entropy_data",
            params=entropy_filter.to_params(), timeout_ms=self.entropy_timeout_ms,
        )
        if response.status_code != 200:
            logger.error("Solr entropy data request failed", core=core, status=response.status_code)
            raise self._unexpected("entropy_data", response, "Failed to get entropy data")
        return parse_entropy_response(response.content, url=str(response.request.url))

    async def index_batch(
        self,
        core: str,
        ops: Iterable[UpdateOp],
        timeout_ms: Optional[int] = None,
    ) -> None:
        """Send a batch of update commands, usually ``("add", encode_doc(...))``.

        Raises ``MalformedDataError`` without sending anything when the batch
        cannot be encoded, ``BadRequestError`` when Solr rejects it.
        """
        body = encode_batch(ops)
        response = await self.transport.request(
            "index_batch", "POST", f"/{core}/update",
            content=body, headers=JSON_HEADERS, timeout_ms=timeout_ms,
        )
        if response.status_code == 200:
            return
        if response.status_code == 400:
            logger.warning("Solr rejected update batch", core=core, body=response.text)
            raise BadRequestError(
                "Bad request",
                operation="index_batch",
                url=str(response.request.url),
                status_code=400,
                body=response.content,
            )
        raise self._unexpected("index_batch", response, "Failed to index batch")

    async def core(
        self,
        action: str,
        props: Optional[Params] = None,
        timeout_ms: Optional[int] = None,
    ) -> SolrResponse:
        """Run a core admin action: ``create``, ``status``, ``remove`` or ``reload``.

        Property names such as ``index_dir`` or ``schema_file`` are translated
        to Solr's. Creating a core that exists raises ``ConflictError``.
        """
        try:
            solr_action = CORE_ACTIONS[action]
        except KeyError:
            raise ValueError(f"Unknown core action: {action}") from None

        params = [("action", solr_action)]
        params += [(CORE_ALIASES.get(key, key), value) for key, value in _pairs(props)]

        response = await self.transport.request(
            f"core_{action}", "GET", "/admin/cores", params=params, timeout_ms=timeout_ms,
        )
        if response.status_code == 200:
            return SolrResponse(headers=response.headers, body=response.content)
        if response.status_code == 400 and "already exists" in response.text:
            raise ConflictError(
                "Core already exists",
                operation=f"core_{action}",
                url=str(response.request.url),
                status_code=400,
                body=response.content,
            )
        raise self._unexpected(f"core_{action}", response, f"Core {action} failed")

    async def cores(self) -> List[str]:
        """Names of the cores Solr currently hosts, sorted."""
        result = await self.core("status", {"wt": "json"})
        try:
            return sorted(result.json()["status"])
        except (ValueError, KeyError, TypeError) as e:
            raise ProtocolError(
                f"Unexpected core status response: {e}", operation="core_status", body=result.body,
            ) from e

    async def is_up(self) -> bool:
        """Whether Solr answers core status requests."""
        try:
            await self.cores()
        except SolrError as e:
            logger.debug("Solr is not up", error=str(e))
            return False
        return True

    async def ping(self, core: str) -> bool:
        """``True`` if the core answers its ping handler, ``False`` on 404."""
        response = await self.transport.request("ping", "HEAD", f"/{core}/admin/ping")
        if response.status_code == 200:
            return True
        if response.status_code == 404:
            return False
        raise self._unexpected("ping", response, "Unexpected ping response")

    async def partition_list(self, core: str) -> bytes:
        """Raw facet response listing the partitions that have docs in ``core``."""
        params = [
            ("q", "*:*"),
            ("facet", "on"),
            ("facet.mincount", "1"),
            ("facet.field", PN_FIELD),
            ("wt", "json"),
        ]
        response = await self.transport.request(
            "partition_list", "GET", f"/{core}/select", params=params,
        )
        if response.status_code != 200:
            raise self._unexpected("partition_list", response, "Failed to list partitions")
        return response.content
