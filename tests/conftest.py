"""Shared fixtures: a Solr client backed by a recording mock transport."""

import json
from typing import Callable, List

import httpx
import pytest
from prometheus_client import CollectorRegistry

from libs.common.metrics import SolrMetrics
from libs.solr.client import SolrClient

BASE_URL = "http://localhost:8093/internal_solr"


class RecordingHandler:
    """Answers requests with ``respond`` and keeps every request it saw."""

    def __init__(self, respond: Callable[[httpx.Request], httpx.Response]):
        self.respond = respond
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.respond(request)


def entropy_body(more, continuation=None, docs=()):
    body = {"more": more, "response": {"docs": list(docs)}}
    if continuation is not None:
        body["continuation"] = continuation
    return json.dumps(body)


@pytest.fixture
def metrics():
    return SolrMetrics(registry=CollectorRegistry())


@pytest.fixture
def make_client(metrics):
    """Build a client whose requests are answered by ``respond``."""
    def factory(respond):
        handler = RecordingHandler(respond)
        client = SolrClient(BASE_URL, metrics=metrics, transport=httpx.MockTransport(handler))
        return client, handler
    return factory
