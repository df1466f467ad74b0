"""Tests for the Solr bridge.

Solr itself is never contacted: HTTP is served by ``httpx.MockTransport``
handlers so every request the client builds can be inspected.
"""
