"""Entropy data paging for active anti-entropy.

Solr exposes, per core, the content hash of every indexed object through an
``entropy_data`` handler. Anti-entropy reads it page by page to build its
hash trees. A page says whether ``more`` data follows and, if so, carries an
opaque continuation that must be sent back to get the next page.

``EntropyPager`` holds that continuation between calls. It fetches exactly
one page per call; looping is up to the caller.
"""

import base64
import binascii
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, List, Optional, Tuple, Union

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ProtocolError
from .fields import DEFAULT_TYPE

if TYPE_CHECKING:
    from .client import SolrClient

logger = structlog.get_logger("solr.entropy")

DocKey = Union[Tuple[str, str], Tuple[Tuple[str, str], str]]
EntropyPair = Tuple[DocKey, bytes]


@dataclass(frozen=True)
class EntropyFilter:
    """Constraints for one entropy data request.

    - before: only docs written at or before this moment (ISO-8601)
    - continuation: token from the previous page; ``None`` starts over
    - limit: maximum number of entries to return
    - partition: only entries of this logical partition
    """

    before: Optional[Union[str, datetime]] = None
    continuation: Optional[str] = None
    limit: Optional[int] = None
    partition: Optional[int] = None

    def to_params(self) -> List[Tuple[str, str]]:
        params = [("wt", "json")]
        if self.before is not None:
            before = self.before.isoformat() if isinstance(self.before, datetime) else self.before
            params.append(("before", before))
        # Solr calls these ``continue`` and ``n``.
        if self.continuation is not None:
            params.append(("continue", self.continuation))
        if self.limit is not None:
            params.append(("n", str(self.limit)))
        if self.partition is not None:
            params.append(("partition", str(self.partition)))
        return params


@dataclass(frozen=True)
class EntropyPage:
    more: bool
    continuation: Optional[str] = None
    pairs: List[EntropyPair] = field(default_factory=list)

    def __post_init__(self):
        if self.more != (self.continuation is not None):
            raise ValueError("continuation must be present exactly when more is true")


class EntropyDoc(BaseModel):
    """One entry of the ``response.docs`` list."""

    model_config = ConfigDict(extra="ignore")

    vsn: Optional[str] = None
    bucket_type: str = Field(DEFAULT_TYPE, alias="riak_bucket_type")
    bucket_name: str = Field(..., alias="riak_bucket_name")
    key: str = Field(..., alias="riak_key")
    base64_hash: str

    def to_pair(self) -> EntropyPair:
        """Key and decoded hash; default-type keys drop the type to match KV trees."""
        digest = base64.b64decode(self.base64_hash, validate=True)
        if self.bucket_type == DEFAULT_TYPE:
            return (self.bucket_name, self.key), digest
        return ((self.bucket_type, self.bucket_name), self.key), digest


class EntropyDocs(BaseModel):
    docs: List[EntropyDoc] = Field(default_factory=list)


class EntropyResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    more: bool
    continuation: Optional[str] = None
    response: EntropyDocs


def parse_entropy_response(body: Union[str, bytes], url: Optional[str] = None) -> EntropyPage:
    """Decode a 200 response of the entropy handler into a page.

    Raises ``ProtocolError`` when the body does not have the expected shape.
    """
    try:
        decoded = EntropyResponse.model_validate_json(body)
        pairs = [doc.to_pair() for doc in decoded.response.docs]
    except (ValidationError, binascii.Error, ValueError) as e:
        raise ProtocolError(
            f"Unparseable entropy data: {e}", operation="entropy_data", url=url, status_code=200,
            body=body if isinstance(body, bytes) else body.encode("utf-8"),
        ) from e

    continuation = decoded.continuation if decoded.more else None
    if decoded.more and continuation is None:
        raise ProtocolError(
            "Entropy data reports more entries but no continuation",
            operation="entropy_data", url=url, status_code=200,
        )
    return EntropyPage(more=decoded.more, continuation=continuation, pairs=pairs)


class PagerState(Enum):
    IDLE = "idle"
    PAGING = "paging"


class EntropyPager:
    """Fetches entropy data one page at a time, replaying the continuation.

    Usage::

        pager = EntropyPager(client, "my_index", partition=42)
        while not pager.exhausted:
            page = await pager.fetch_page()
            consume(page.pairs)

    On any failure the pager goes back to ``IDLE`` without a continuation and
    re-raises. Consumers that want to resume rather than start over must
    keep the last good ``page.continuation`` and pass it to ``resume``.
    """

    def __init__(
        self,
        client: "SolrClient",
        core: str,
        before: Optional[Union[str, datetime]] = None,
        limit: Optional[int] = None,
        partition: Optional[int] = None,
    ):
        self.client = client
        self.core = core
        self.base_filter = EntropyFilter(before=before, limit=limit, partition=partition)
        self.state = PagerState.IDLE
        self.continuation: Optional[str] = None
        self.exhausted = False
        self.pages_fetched = 0

    def resume(self, continuation: str) -> None:
        """Continue from a token kept by the consumer."""
        self.state = PagerState.PAGING
        self.continuation = continuation
        self.exhausted = False

    def _reset(self) -> None:
        self.state = PagerState.IDLE
        self.continuation = None

    def current_filter(self) -> EntropyFilter:
        return EntropyFilter(
            before=self.base_filter.before,
            continuation=self.continuation if self.state is PagerState.PAGING else None,
            limit=self.base_filter.limit,
            partition=self.base_filter.partition,
        )

    async def fetch_page(self) -> EntropyPage:
        """Issue exactly one entropy data request and advance the state."""
        try:
            page = await self.client.entropy_data(self.core, self.current_filter())
        except Exception:
            self._reset()
            raise

        self.pages_fetched += 1
        if page.more:
            self.state = PagerState.PAGING
            self.continuation = page.continuation
        else:
            self._reset()
            self.exhausted = True
            logger.debug("Entropy data exhausted", core=self.core, pages=self.pages_fetched)
        return page
