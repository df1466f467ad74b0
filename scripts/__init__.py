"""Utility scripts for operating the Solr bridge.

Scripts include:
- ``dump_entropy.py``: page through a core's entropy data and print it.
"""
