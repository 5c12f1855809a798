import logging
import math
import re
from typing import Dict, Iterator, List, Mapping, Optional, Sequence, Set

import networkx as nx
import pandas as pd

from enrichment_network.exceptions import InvalidInput, MissingMetadata
from enrichment_network.gene_set import GeneSet
from enrichment_network.similarity import SimilarityEdge

logger = logging.getLogger(__name__)

STATISTIC = "statistic"


class SimilarityGraph:
    """
    Read-only network of gene-sets connected by similarity edges.

    Wraps a frozen networkx graph. Nodes carry "category" and "description"
    attributes and, once a statistic has been attached, a "statistic"
    attribute for the nodes that have one.
    """

    def __init__(self, graph: nx.Graph) -> None:
        self._graph = graph if nx.is_frozen(graph) else nx.freeze(graph)

    @property
    def graph(self) -> nx.Graph:
        """The underlying frozen networkx graph."""
        return self._graph

    @property
    def nodes(self) -> List[str]:
        return list(self._graph.nodes)

    @property
    def edges(self) -> List[SimilarityEdge]:
        return [SimilarityEdge(u, v, w) for u, v, w in self._graph.edges(data="weight")]

    @property
    def number_of_nodes(self) -> int:
        return self._graph.number_of_nodes()

    @property
    def number_of_edges(self) -> int:
        return self._graph.number_of_edges()

    def __len__(self) -> int:
        return self.number_of_nodes

    def __contains__(self, node: str) -> bool:
        return node in self._graph

    def __iter__(self) -> Iterator[str]:
        return iter(self._graph.nodes)

    def node_attributes(self, node: str) -> Dict:
        return dict(self._graph.nodes[node])

    def statistic(self, node: str) -> Optional[float]:
        """Return the node statistic, or None when the node has none."""
        return self._graph.nodes[node].get(STATISTIC)

    def statistics(self) -> Dict[str, float]:
        """Return the statistic of every node that has one."""
        return {node: value for node, value in self._graph.nodes(data=STATISTIC) if value is not None}

    def weight(self, u: str, v: str) -> float:
        return self._graph.edges[u, v]["weight"]

    def adjacency(self) -> Dict[str, Dict[str, float]]:
        """Return node -> {neighbour: weight}."""
        return {
            node: {nbr: data["weight"] for nbr, data in nbrs.items()}
            for node, nbrs in self._graph.adjacency()
        }

    def to_dataframe(self) -> pd.DataFrame:
        """Return the edge list as a pandas dataframe."""
        rows = []
        for u, v, w in self._graph.edges(data="weight"):
            rows.append(
                {
                    "source": u,
                    "target": v,
                    "weight": w,
                    "source_category": self._graph.nodes[u].get("category", ""),
                    "target_category": self._graph.nodes[v].get("category", ""),
                }
            )
        return pd.DataFrame(rows, columns=["source", "target", "weight", "source_category", "target_category"])

    def nodes_to_dataframe(self) -> pd.DataFrame:
        """Return one row per node with its attributes and degree."""
        rows = []
        for node, data in self._graph.nodes(data=True):
            rows.append(
                {
                    "id": node,
                    "category": data.get("category", ""),
                    "description": data.get("description", ""),
                    STATISTIC: data.get(STATISTIC),
                    "degree": self._graph.degree(node),
                }
            )
        return pd.DataFrame(rows, columns=["id", "category", "description", STATISTIC, "degree"])

    def to_tsv(self) -> str:
        """Return the edge list as a TSV spreadsheet."""
        return self.to_dataframe().to_csv(sep="\t", index=False)

    def to_dot(self) -> str:
        """
        Generate a valid Graphviz DOT for the similarity network,
        with sanitized, quoted IDs, semicolons, and no duplicates.
        """

        def _sanitize_id(raw: str) -> str:
            """
            Convert raw label into a valid DOT node ID: replace non-alphanumeric with underscores.
            Collapse multiple underscores and strip leading/trailing underscores.
            """
            s = re.sub(r"\W+", "_", raw)
            s = re.sub(r"_+", "_", s)
            return s.strip("_")

        def _escape(label: str) -> str:
            return label.replace("\\", "\\\\").replace('"', '\\"')

        # distinct gene-set ids can sanitize to the same DOT id; suffix the later ones
        node_ids: Dict[str, str] = {}
        used: Set[str] = set()
        for node in sorted(self._graph.nodes):
            base = _sanitize_id(f"gs_{node}")
            dot_id, suffix = base, 1
            while dot_id in used:
                suffix += 1
                dot_id = f"{base}_{suffix}"
            used.add(dot_id)
            node_ids[node] = dot_id
        nodes = []
        for node, data in self._graph.nodes(data=True):
            attributes = [f'label="{_escape(node.replace("_", " "))}"']
            if data.get("category"):
                attributes.append(f'category="{_escape(data["category"])}"')
            if data.get(STATISTIC) is not None:
                attributes.append(f'statistic="{data[STATISTIC]:.6g}"')
            nodes.append(f'"{node_ids[node]}" [{", ".join(attributes)}];')
        edges = [
            f'"{node_ids[u]}" -- "{node_ids[v]}" [weight="{w:.6g}"];'
            for u, v, w in self._graph.edges(data="weight")
        ]

        lines: List[str] = []
        lines.append("graph gene_set_network {")
        lines.append("  graph [layout=neato];")
        lines.append("  node [shape=ellipse];")
        for node in sorted(nodes):
            lines.append(f"  {node}")
        for edge in sorted(edges):
            lines.append(f"  {edge}")
        lines.append("}")
        return "\n".join(lines)


def build_network(edges: Sequence[SimilarityEdge], metadata: Mapping[str, GeneSet]) -> SimilarityGraph:
    """
    Build the similarity network from retained edges.

    Only edge endpoints become nodes; gene-sets without a retained edge are
    not part of the network.

    Args:
        edges: Edges from compute_overlap
        metadata: Gene-set id -> GeneSet, used for node attributes

    Returns:
        A read-only SimilarityGraph

    Raises:
        MissingMetadata: if an edge endpoint is not in metadata
    """
    endpoints = set()
    for edge in edges:
        if edge.source == edge.target:
            raise InvalidInput(f"Self-edge on {edge.source}")
        endpoints.add(edge.source)
        endpoints.add(edge.target)

    missing = sorted(node for node in endpoints if node not in metadata)
    if missing:
        logger.error(f"{len(missing)} edge endpoints have no metadata: {missing[:10]}")
        raise MissingMetadata(
            f"No metadata for gene-sets: {missing[:10]}{'...' if len(missing) > 10 else ''}"
        )

    graph = nx.Graph()
    for node in sorted(endpoints):
        gene_set = metadata[node]
        graph.add_node(node, category=gene_set.category, description=gene_set.description)
    for source, target, weight in sorted((min(e.source, e.target), max(e.source, e.target), e.weight) for e in edges):
        if graph.has_edge(source, target):
            raise InvalidInput(f"Duplicate edge {source} -- {target}")
        graph.add_edge(source, target, weight=float(weight))

    logger.info(f"Built network with {graph.number_of_nodes()} nodes and {graph.number_of_edges()} edges")
    return SimilarityGraph(graph)


def attach_statistic(graph: SimilarityGraph, stats: Mapping[str, float]) -> SimilarityGraph:
    """
    Overlay a per-node statistic on a copy of the graph.

    Nodes absent from stats carry no statistic. Edges are left untouched and
    the input graph is not modified.

    Args:
        graph: The network to annotate
        stats: Gene-set id -> numeric statistic

    Returns:
        A new SimilarityGraph with the same edges
    """
    annotated = graph.graph.copy()
    attached = 0
    for node, data in annotated.nodes(data=True):
        data.pop(STATISTIC, None)
        if node not in stats:
            continue
        value = stats[node]
        if value is None:
            continue
        try:
            value = float(value)
        except (TypeError, ValueError):
            raise InvalidInput(f"Statistic for {node} is not numeric: {value!r}") from None
        if not math.isfinite(value):
            raise InvalidInput(f"Statistic for {node} is not finite: {value}")
        data[STATISTIC] = value
        attached += 1

    unused = len([key for key in stats if key not in annotated])
    if unused:
        logger.debug(f"{unused} statistics refer to gene-sets outside the network")
    logger.info(f"Attached statistics to {attached} of {annotated.number_of_nodes()} nodes")
    return SimilarityGraph(annotated)
