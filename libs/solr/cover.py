"""Cover plans and the distributed search parameters built from them.

A cover plan names the nodes that must be queried so that every logical
partition is seen exactly once, plus the filter each owning node applies so
its Solr core only answers for the partitions it was picked for. Solr does
the actual fan-out: the bridge only sends one request with a ``shards``
parameter and one filter query per node, keyed by ``host:port``.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import (
    Callable,
    Collection,
    Dict,
    Hashable,
    Iterable,
    List,
    Mapping,
    Optional,
    Protocol,
    Sequence,
    Tuple,
    Union,
)

import structlog

from .errors import PlanningError
from .fields import FPN_FIELD, PN_FIELD, SOLR_HOST_CONTEXT

logger = structlog.get_logger("solr.cover")

Node = Hashable
HostPort = Tuple[str, Union[str, int]]


class _All(Enum):
    ALL = "all"

    def __repr__(self) -> str:
        return "ALL"


#: Sub-filter meaning "the whole partition".
ALL = _All.ALL

SubFilter = Union[_All, Collection[int]]


@dataclass(frozen=True)
class CoverEntry:
    """One logical partition, the node chosen to answer for it, and its filter."""

    partition: int
    owner: Node
    sub_filter: SubFilter = ALL


@dataclass(frozen=True)
class CoverPlan:
    """Nodes to query, the partitions they cover and where their Solr listens."""

    nodes: Sequence[Node]
    entries: Sequence[CoverEntry]
    mapping: Mapping[Node, HostPort] = field(default_factory=dict)

    def endpoint(self, node: Node) -> HostPort:
        """Return ``(host, port)`` for ``node`` or raise ``PlanningError``."""
        try:
            return self.mapping[node]
        except KeyError:
            raise PlanningError(f"No Solr endpoint known for node {node!r}") from None


class CoverPlanner(Protocol):
    """Source of cover plans (the cluster's coverage oracle)."""

    async def plan(self, index: str) -> CoverPlan:
        """Return the current plan for ``index`` or raise ``PlanningError``."""
        ...


def _pn_clause(partition: int) -> str:
    return f"{PN_FIELD}:{int(partition)}"


def _fpn_clause(fpn: int) -> str:
    return f"{FPN_FIELD}:{int(fpn)}"


def partition_filters_to_query(entries: Iterable[Tuple[int, SubFilter]]) -> str:
    """Build the boolean filter query for one owning node.

    Each ``(partition, sub_filter)`` entry becomes ``_yz_pn:P`` when the whole
    partition is wanted, or ``(_yz_pn:P AND (_yz_fpn:F1 OR _yz_fpn:F2))``
    when only some sub-partitions are. Entries are OR'd in input order.
    """
    clauses = []
    for partition, sub_filter in entries:
        if sub_filter is ALL:
            clauses.append(_pn_clause(partition))
        else:
            # Sets carry no order of their own; render them ascending.
            fpns = sorted(sub_filter) if isinstance(sub_filter, (set, frozenset)) else sub_filter
            fpq = " OR ".join(_fpn_clause(fpn) for fpn in fpns)
            clauses.append(f"({_pn_clause(partition)} AND ({fpq}))")
    return " OR ".join(clauses)


def shard_fragment(core: str, host: str, port: Union[str, int]) -> str:
    """Address of ``core`` on a remote node, as Solr's ``shards`` expects."""
    return f"{host}:{port}{SOLR_HOST_CONTEXT}/{core}"


def shard_key(host: str, port: Union[str, int]) -> str:
    return f"{host}:{port}"


def build_shard_fragments(core: str, plan: CoverPlan) -> List[str]:
    """One fragment per node of the plan, in node order.

    Nodes sharing a host and port still get one fragment each.
    """
    host_ports = [plan.endpoint(node) for node in plan.nodes]
    return [shard_fragment(core, host, port) for host, port in host_ports]


def group_by_owner(entries: Iterable[CoverEntry]) -> Dict[Node, List[Tuple[int, SubFilter]]]:
    """Group cover entries by owning node, keeping first-seen node order."""
    grouped: Dict[Node, List[Tuple[int, SubFilter]]] = {}
    for entry in entries:
        grouped.setdefault(entry.owner, []).append((entry.partition, entry.sub_filter))
    return grouped


def build_shard_filters(plan: CoverPlan) -> List[Tuple[str, str]]:
    """Per-node filter queries keyed by ``host:port``."""
    filters = []
    for node, partition_filters in group_by_owner(plan.entries).items():
        host, port = plan.endpoint(node)
        filters.append((shard_key(host, port), partition_filters_to_query(partition_filters)))
    return filters


def build_distributed_params(core: str, plan: CoverPlan) -> List[Tuple[str, str]]:
    """Parameters to append to a search so Solr fans it out per ``plan``.

    Raises ``PlanningError`` before producing anything if any node of the
    plan cannot be resolved.
    """
    fragments = build_shard_fragments(core, plan)
    shard_filters = build_shard_filters(plan)
    logger.debug(
        "Built distributed search parameters",
        core=core,
        shards=len(fragments),
        filtered_nodes=len(shard_filters),
    )
    return [("shards", ",".join(fragments))] + shard_filters


def build_mapping(
    nodes: Iterable[Node],
    resolve: Callable[[Node], Tuple[str, Optional[Union[str, int]]]],
) -> Dict[Node, Tuple[str, str]]:
    """Map each node to the host and port its Solr listens on.

    ``resolve`` returns ``(host, port)``, with ``port`` set to ``None`` when
    it cannot be determined, or raises ``LookupError``. Such nodes are left
    out, so the mapping can be smaller than ``nodes``.
    """
    mapping: Dict[Node, Tuple[str, str]] = {}
    for node in nodes:
        try:
            host, port = resolve(node)
        except LookupError as e:
            logger.debug("Could not resolve Solr port", node=str(node), error=str(e))
            continue
        if port is None:
            logger.debug("Solr port unknown", node=str(node))
            continue
        mapping[node] = (host, str(port))
    return mapping
