import logging
import math
from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from enrichment_network.config import DEFAULT_MIN_SIZE
from enrichment_network.exceptions import EmptyGraph, InvalidInput
from enrichment_network.network import SimilarityGraph
from enrichment_network.partitioners import GraphPartitioner, PartitionKind, get_partitioner

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Cluster:
    """
    A group of gene-sets found in the similarity network.

    Members are sorted by id. ``kind`` records whether the clustering that
    produced this cluster was a hard partition or allowed overlaps.
    """

    members: Tuple[str, ...]
    aggregate_statistic: float
    kind: PartitionKind = PartitionKind.HARD

    @property
    def size(self) -> int:
        return len(self.members)

    def __contains__(self, node: str) -> bool:
        return node in self.members

    def __iter__(self):
        return iter(self.members)

    def __len__(self) -> int:
        return self.size


def _check_statistics(stats: Mapping[str, float]) -> Dict[str, float]:
    """Coerce statistics to float; None means absent."""
    checked: Dict[str, float] = {}
    for node, value in stats.items():
        if value is None:
            continue
        try:
            value = float(value)
        except (TypeError, ValueError):
            raise InvalidInput(f"Statistic for {node} is not numeric: {value!r}") from None
        if not math.isfinite(value):
            raise InvalidInput(f"Statistic for {node} is not finite: {value}")
        checked[node] = value
    return checked


def _aggregate(members: Sequence[str], stats: Mapping[str, float]) -> float:
    """Mean statistic over the members that have one, 0 if none has."""
    values = [stats[m] for m in members if m in stats]
    if not values:
        return 0.0
    return float(np.mean(values))


def _check_disjoint(groups: List[FrozenSet[str]], algorithm: GraphPartitioner) -> None:
    seen: Dict[str, int] = {}
    for position, group in enumerate(groups):
        for node in group:
            if node in seen:
                logger.error(f"{algorithm!r} declared a hard partition but {node} is in two groups")
                raise InvalidInput(
                    f"Partitioner {algorithm.name or type(algorithm).__name__} returned overlapping groups "
                    f"({node} in groups {seen[node]} and {position}) but declares a hard partition"
                )
            seen[node] = position


def find_clusters(
    graph: SimilarityGraph,
    algorithm: Union[GraphPartitioner, str],
    min_size: int = DEFAULT_MIN_SIZE,
    stat_key: Optional[Mapping[str, float]] = None,
) -> List[Cluster]:
    """
    Partition the network and order the resulting clusters.

    Groups smaller than min_size are dropped. The remaining clusters are
    sorted by size, then by mean member statistic, both descending; the sorted
    member tuple breaks any remaining tie so the order is fully determined by
    the partitioner's output.

    Args:
        graph: The similarity network
        algorithm: A GraphPartitioner, or the name of a registered one
        min_size: Minimum number of members per cluster
        stat_key: Gene-set id -> statistic; defaults to the statistics attached to the graph

    Returns:
        Clusters, index 0 being the largest / highest-priority one
    """
    if graph.number_of_nodes == 0:
        raise EmptyGraph("The similarity network has no nodes")
    if min_size < 1:
        raise InvalidInput(f"min_size must be at least 1, got {min_size}")
    if isinstance(algorithm, str):
        algorithm = get_partitioner(algorithm)
    stats = _check_statistics(stat_key) if stat_key is not None else graph.statistics()

    groups = algorithm.partition(graph)
    unknown = sorted({node for group in groups for node in group if node not in graph})
    if unknown:
        raise InvalidInput(f"Partitioner returned nodes outside the network: {unknown[:10]}")
    if algorithm.kind == PartitionKind.HARD:
        _check_disjoint(groups, algorithm)

    kept = [sorted(group) for group in groups if len(group) >= min_size]
    logger.info(
        f"{algorithm.name or type(algorithm).__name__} found {len(groups)} groups, "
        f"{len(kept)} with at least {min_size} members"
    )

    clusters = [Cluster(tuple(members), _aggregate(members, stats), algorithm.kind) for members in kept]
    clusters.sort(key=lambda c: (-c.size, -c.aggregate_statistic, c.members))
    return clusters


def clusters_to_dataframe(clusters: Sequence[Cluster]) -> pd.DataFrame:
    """Return one row per cluster, in cluster order."""
    return pd.DataFrame(
        {
            "Cluster": list(range(len(clusters))),
            "Size": [c.size for c in clusters],
            "Aggregate statistic": [c.aggregate_statistic for c in clusters],
            "Kind": [c.kind.value for c in clusters],
            "Members": [", ".join(c.members) for c in clusters],
        },
        columns=["Cluster", "Size", "Aggregate statistic", "Kind", "Members"],
    )
