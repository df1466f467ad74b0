"""Shared libraries for the Solr bridge.

Subpackages:
- ``libs.common``: configuration, logging, and metrics.
- ``libs.solr``: cover plans, delete encoding, entropy paging, and the client.

Usage:
- Import stable, reusable functionality from here to keep node code lean.
"""
