"""Exceptions raised by the Solr bridge.

Every failure carries the logical operation and, where one was built, the
request URL so callers can decide whether a retry makes sense. Nothing in
this package retries on its own.
"""

from typing import Optional


class SolrError(Exception):
    """Base class for Solr bridge failures."""

    def __init__(self, message: str, operation: Optional[str] = None, url: Optional[str] = None):
        super().__init__(message)
        self.operation = operation
        self.url = url


class PlanningError(SolrError):
    """Cover plan unavailable or a node's Solr endpoint cannot be resolved."""


class TransportError(SolrError):
    """Connection failure or timeout talking to Solr."""


class MalformedDataError(SolrError):
    """Payload could not be encoded; no request was sent."""


class ProtocolError(SolrError):
    """Solr answered with an unexpected status or an unparseable body."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
        body: Optional[bytes] = None,
    ):
        super().__init__(message, operation=operation, url=url)
        self.status_code = status_code
        self.body = body

    def __str__(self) -> str:
        base = super().__str__()
        if self.status_code is None:
            return base
        return f"{base} (status={self.status_code}, url={self.url})"


class BadRequestError(ProtocolError):
    """Solr rejected an update batch with 400."""


class ConflictError(ProtocolError):
    """The resource being created already exists."""
