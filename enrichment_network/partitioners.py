"""
Community detection algorithms for the gene-set similarity network.

Every partitioner turns a SimilarityGraph into raw groups of node ids and
declares whether those groups form a hard partition (each node in at most one
group) or may overlap. Randomised partitioners take their own seed.
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Dict, FrozenSet, Iterable, List, Optional, Type

import networkx as nx

from enrichment_network.config import DEFAULT_SEED
from enrichment_network.exceptions import InvalidInput, UnknownField
from enrichment_network.network import SimilarityGraph

logger = logging.getLogger(__name__)


class PartitionKind(str, Enum):
    HARD = "hard"
    OVERLAPPING = "overlapping"


class GraphPartitioner(ABC):
    """Capability interface: split a similarity network into groups of gene-sets."""

    name: str = ""
    kind: PartitionKind = PartitionKind.HARD
    # modularity is undefined when the total edge weight is 0
    needs_edge_weight: bool = False

    @abstractmethod
    def _communities(self, graph: nx.Graph) -> Iterable[Iterable[str]]:
        """Run the algorithm on the networkx graph."""

    def partition(self, graph: SimilarityGraph) -> List[FrozenSet[str]]:
        """
        Group the nodes of the network.

        Args:
            graph: The similarity network

        Returns:
            Raw groups of node ids, in the order the algorithm produced them
        """
        if self.needs_edge_weight and graph.graph.size(weight="weight") == 0:
            logger.warning(
                f"{self.name}: total edge weight is 0, falling back to one group per connected component"
            )
            communities = nx.connected_components(graph.graph)
        else:
            communities = self._communities(graph.graph)
        groups = [frozenset(group) for group in communities]
        groups = [group for group in groups if group]
        logger.debug(f"{self.name} produced {len(groups)} groups from {graph.number_of_nodes} nodes")
        return groups

    def __repr__(self) -> str:
        params = ", ".join(f"{key}={value!r}" for key, value in vars(self).items())
        return f"{type(self).__name__}({params})"


class LouvainPartitioner(GraphPartitioner):
    """Louvain modularity optimisation on edge weights."""

    name = "louvain"
    needs_edge_weight = True

    def __init__(self, resolution: float = 1.0, seed: Optional[int] = DEFAULT_SEED) -> None:
        self.resolution = resolution
        self.seed = seed

    def _communities(self, graph: nx.Graph) -> Iterable[Iterable[str]]:
        return nx.community.louvain_communities(
            graph, weight="weight", resolution=self.resolution, seed=self.seed
        )


class GreedyModularityPartitioner(GraphPartitioner):
    """Clauset-Newman-Moore greedy modularity maximisation."""

    name = "greedy_modularity"
    needs_edge_weight = True

    def __init__(self, resolution: float = 1.0) -> None:
        self.resolution = resolution

    def _communities(self, graph: nx.Graph) -> Iterable[Iterable[str]]:
        return nx.community.greedy_modularity_communities(
            graph, weight="weight", resolution=self.resolution
        )


class LabelPropagationPartitioner(GraphPartitioner):
    """Asynchronous weighted label propagation."""

    name = "label_propagation"

    def __init__(self, seed: Optional[int] = DEFAULT_SEED) -> None:
        self.seed = seed

    def _communities(self, graph: nx.Graph) -> Iterable[Iterable[str]]:
        return nx.community.asyn_lpa_communities(graph, weight="weight", seed=self.seed)


class ConnectedComponentsPartitioner(GraphPartitioner):
    """Every connected component is one group."""

    name = "connected_components"

    def _communities(self, graph: nx.Graph) -> Iterable[Iterable[str]]:
        return nx.connected_components(graph)


class KCliquePartitioner(GraphPartitioner):
    """
    Clique percolation. Groups may share nodes, and nodes that belong to no
    k-clique are left out.
    """

    name = "k_clique"
    kind = PartitionKind.OVERLAPPING

    def __init__(self, k: int = 3) -> None:
        if k < 2:
            raise InvalidInput(f"k must be at least 2, got {k}")
        self.k = k

    def _communities(self, graph: nx.Graph) -> Iterable[Iterable[str]]:
        return nx.community.k_clique_communities(graph, self.k)


PARTITIONERS: Dict[str, Type[GraphPartitioner]] = {
    cls.name: cls
    for cls in (
        LouvainPartitioner,
        GreedyModularityPartitioner,
        LabelPropagationPartitioner,
        ConnectedComponentsPartitioner,
        KCliquePartitioner,
    )
}


def get_partitioner(name: str, **params) -> GraphPartitioner:
    """
    Instantiate a registered partitioner by name.

    Args:
        name: A key of PARTITIONERS
        **params: Keyword arguments for the partitioner

    Returns:
        The configured partitioner
    """
    try:
        cls = PARTITIONERS[name]
    except KeyError:
        logger.error(f"Unsupported clustering algorithm: {name}")
        raise UnknownField(
            f"Unsupported clustering algorithm: {name!r} (expected one of {sorted(PARTITIONERS)})"
        ) from None
    try:
        return cls(**params)
    except TypeError as e:
        raise InvalidInput(f"Invalid parameters for {name}: {e}") from None
