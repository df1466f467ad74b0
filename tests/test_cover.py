"""Tests for cover plan handling and distributed search parameters."""

import pytest

from libs.solr.cover import (
    ALL,
    CoverEntry,
    CoverPlan,
    build_distributed_params,
    build_mapping,
    build_shard_filters,
    build_shard_fragments,
    group_by_owner,
    partition_filters_to_query,
)
from libs.solr.errors import PlanningError

MAPPING = {
    "dev1@127.0.0.1": ("host1", "10014"),
    "dev2@127.0.0.1": ("host2", "10024"),
    "dev3@127.0.0.1": ("host3", "10034"),
}


def test_whole_partition_filter():
    """A partition without sub-filter is a single term."""
    assert partition_filters_to_query([(1, ALL)]) == "_yz_pn:1"


def test_sub_partition_filter():
    """Sub-partitions are AND'd with the partition and OR'd in the order given."""
    query = partition_filters_to_query([(1, ALL), (5, [3, 2])])
    assert query == "_yz_pn:1 OR (_yz_pn:5 AND (_yz_fpn:3 OR _yz_fpn:2))"


def test_sub_partition_filter_accepts_sets():
    """Sets render in ascending order so the query is deterministic."""
    query = partition_filters_to_query([(7, frozenset({9, 8}))])
    assert query == "(_yz_pn:7 AND (_yz_fpn:8 OR _yz_fpn:9))"


def test_one_fragment_per_node_in_order():
    """N nodes produce N fragments in node-list order."""
    nodes = ["dev3@127.0.0.1", "dev1@127.0.0.1", "dev2@127.0.0.1"]
    plan = CoverPlan(nodes=nodes, entries=[], mapping=MAPPING)

    assert build_shard_fragments("fruit", plan) == [
        "host3:10034/internal_solr/fruit",
        "host1:10014/internal_solr/fruit",
        "host2:10024/internal_solr/fruit",
    ]


def test_fragments_are_not_deduplicated():
    """Nodes sharing an endpoint still get one fragment each."""
    mapping = {"a": ("host1", "10014"), "b": ("host1", "10014")}
    plan = CoverPlan(nodes=["a", "b"], entries=[], mapping=mapping)

    assert build_shard_fragments("fruit", plan) == [
        "host1:10014/internal_solr/fruit",
        "host1:10014/internal_solr/fruit",
    ]


def test_unresolvable_node_aborts():
    """A node missing from the mapping is a planning error."""
    plan = CoverPlan(nodes=["dev1@127.0.0.1", "dev9@127.0.0.1"], entries=[], mapping=MAPPING)

    with pytest.raises(PlanningError):
        build_distributed_params("fruit", plan)


def test_filters_grouped_by_owner():
    """Partitions of one owner share a clause, owners never share one."""
    entries = [
        CoverEntry(1, "dev1@127.0.0.1"),
        CoverEntry(2, "dev2@127.0.0.1", [1]),
        CoverEntry(3, "dev1@127.0.0.1"),
    ]
    plan = CoverPlan(nodes=["dev1@127.0.0.1", "dev2@127.0.0.1"], entries=entries, mapping=MAPPING)

    assert build_shard_filters(plan) == [
        ("host1:10014", "_yz_pn:1 OR _yz_pn:3"),
        ("host2:10024", "(_yz_pn:2 AND (_yz_fpn:1))"),
    ]


def test_group_by_owner_keeps_first_seen_order():
    """Owners appear in the order they are first seen."""
    entries = [CoverEntry(4, "b"), CoverEntry(1, "a"), CoverEntry(2, "b")]
    assert list(group_by_owner(entries).items()) == [
        ("b", [(4, ALL), (2, ALL)]),
        ("a", [(1, ALL)]),
    ]


def test_distributed_params():
    """Shards come first, then one filter per node."""
    entries = [CoverEntry(1, "dev1@127.0.0.1"), CoverEntry(2, "dev2@127.0.0.1")]
    plan = CoverPlan(nodes=["dev1@127.0.0.1", "dev2@127.0.0.1"], entries=entries, mapping=MAPPING)

    assert build_distributed_params("fruit", plan) == [
        ("shards", "host1:10014/internal_solr/fruit,host2:10024/internal_solr/fruit"),
        ("host1:10014", "_yz_pn:1"),
        ("host2:10024", "_yz_pn:2"),
    ]


def test_build_mapping_drops_unknown_ports():
    """Nodes without a known port are left out."""
    def resolve(node):
        if node == "down":
            raise LookupError("rpc failed")
        if node == "noport":
            return ("host2", None)
        return ("host1", 10014)

    assert build_mapping(["up", "down", "noport"], resolve) == {"up": ("host1", "10014")}
