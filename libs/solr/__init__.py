"""Bridge between the key-value store and its local Solr instances.

Primary components:
- ``cover``: cover plans, shard fragments and per-node filter queries.
- ``delete``: delete intents and their Solr query encoding.
- ``entropy``: entropy data pages and the continuation-driven pager.
- ``documents``: add-document and batch update encoding.
- ``transport``: connection pool settings and the HTTP transport.
- ``client``: ``SolrClient``, the single entry point for Solr requests.

Guidance:
- Build a client via ``SolrClient.from_config(SolrConfig())`` so callers stay
  decoupled from URLs and pool sizing.
"""
