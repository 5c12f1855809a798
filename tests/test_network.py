"""
Tests for building the similarity network and overlaying statistics.
"""

import math

import networkx as nx
import pytest

from enrichment_network.exceptions import InvalidInput, MissingMetadata
from enrichment_network.gene_set import GeneSet
from enrichment_network.network import attach_statistic, build_network
from enrichment_network.similarity import SimilarityEdge, compute_overlap


def test_scenario_graph_has_two_nodes_one_edge(abc_gene_sets):
    graph = build_network(compute_overlap(abc_gene_sets, threshold=0.25), abc_gene_sets)
    assert sorted(graph.nodes) == ["A", "B"]
    assert graph.number_of_edges == 1
    assert "C" not in graph
    assert graph.weight("A", "B") == 0.5


def test_nodes_come_only_from_edges(module_gene_sets):
    edges = compute_overlap(module_gene_sets, threshold=0.25)
    graph = build_network(edges, module_gene_sets)
    endpoints = {e.source for e in edges} | {e.target for e in edges}
    assert set(graph.nodes) == endpoints
    assert "GOBP_AXON_GUIDANCE" not in graph


def test_node_metadata(abc_gene_sets):
    graph = build_network([SimilarityEdge("A", "B", 0.5)], abc_gene_sets)
    attributes = graph.node_attributes("A")
    assert attributes == {"category": "LIB", "description": "alpha process"}
    assert graph.statistic("A") is None


def test_missing_metadata(abc_gene_sets):
    del abc_gene_sets["B"]
    with pytest.raises(MissingMetadata) as excinfo:
        build_network([SimilarityEdge("A", "B", 0.5)], abc_gene_sets)
    assert "B" in str(excinfo.value)
    assert isinstance(excinfo.value, KeyError)


def test_self_edge_rejected(abc_gene_sets):
    with pytest.raises(InvalidInput):
        build_network([SimilarityEdge("A", "A", 1.0)], abc_gene_sets)


def test_duplicate_edge_rejected(abc_gene_sets):
    with pytest.raises(InvalidInput):
        build_network([SimilarityEdge("A", "B", 0.5), SimilarityEdge("B", "A", 0.5)], abc_gene_sets)


def test_graph_is_read_only(abc_gene_sets):
    graph = build_network([SimilarityEdge("A", "B", 0.5)], abc_gene_sets)
    with pytest.raises(nx.NetworkXError):
        graph.graph.add_edge("A", "C")


def test_attach_statistic_keeps_edges(module_gene_sets):
    graph = build_network(compute_overlap(module_gene_sets), module_gene_sets)
    stats = {"GOBP_IMMUNE_RESPONSE": 5.0, "GOBP_DNA_REPAIR": 2.5, "NOT_IN_GRAPH": 1.0}
    annotated = attach_statistic(graph, stats)

    assert annotated is not graph
    assert annotated.edges == graph.edges
    assert annotated.number_of_edges == graph.number_of_edges
    assert annotated.statistic("GOBP_IMMUNE_RESPONSE") == 5.0
    assert annotated.statistics() == {"GOBP_IMMUNE_RESPONSE": 5.0, "GOBP_DNA_REPAIR": 2.5}
    # absent, not zero
    assert annotated.statistic("GOBP_DNA_REPLICATION") is None
    assert "statistic" not in annotated.node_attributes("GOBP_DNA_REPLICATION")
    # the input graph is untouched
    assert graph.statistics() == {}


def test_attach_statistic_replaces_previous_overlay(abc_gene_sets):
    graph = build_network([SimilarityEdge("A", "B", 0.5)], abc_gene_sets)
    first = attach_statistic(graph, {"A": 1.0, "B": 2.0})
    second = attach_statistic(first, {"B": 3.0})
    assert second.statistics() == {"B": 3.0}
    assert first.statistics() == {"A": 1.0, "B": 2.0}


@pytest.mark.parametrize("value", [math.nan, math.inf, "high"])
def test_attach_statistic_rejects_bad_values(abc_gene_sets, value):
    graph = build_network([SimilarityEdge("A", "B", 0.5)], abc_gene_sets)
    with pytest.raises(InvalidInput):
        attach_statistic(graph, {"A": value})


def test_adjacency_is_symmetric(module_gene_sets):
    graph = build_network(compute_overlap(module_gene_sets), module_gene_sets)
    adjacency = graph.adjacency()
    for node, neighbours in adjacency.items():
        for neighbour, weight in neighbours.items():
            assert adjacency[neighbour][node] == weight


def test_empty_network():
    graph = build_network([], {})
    assert graph.number_of_nodes == 0
    assert graph.to_dataframe().empty


def test_tables_and_dot(abc_gene_sets):
    graph = attach_statistic(build_network([SimilarityEdge("A", "B", 0.5)], abc_gene_sets), {"A": 2.0})
    edges_df = graph.to_dataframe()
    assert edges_df.to_dict("records") == [
        {"source": "A", "target": "B", "weight": 0.5, "source_category": "LIB", "target_category": "LIB"}
    ]
    nodes_df = graph.nodes_to_dataframe()
    assert list(nodes_df["id"]) == ["A", "B"]
    assert list(nodes_df["degree"]) == [1, 1]
    assert graph.to_tsv().splitlines()[0] == "source\ttarget\tweight\tsource_category\ttarget_category"

    dot = graph.to_dot()
    assert dot.startswith("graph gene_set_network {")
    assert '"gs_A" -- "gs_B" [weight="0.5"];' in dot
    assert 'statistic="2"' in dot
    assert dot.rstrip().endswith("}")


def test_dot_ids_stay_distinct_after_sanitizing():
    gene_sets = {
        "A-B": GeneSet("A-B", {"g1", "g2"}, "LIB", "dash"),
        "A_B": GeneSet("A_B", {"g1", "g2", "g3"}, "LIB", "underscore"),
    }
    graph = build_network(compute_overlap(gene_sets, threshold=0.1), gene_sets)
    dot = graph.to_dot()
    node_lines = [line.strip() for line in dot.splitlines() if "label=" in line]
    node_ids = {line.split('"')[1] for line in node_lines}
    assert node_ids == {"gs_A_B", "gs_A_B_2"}
    assert '"gs_A_B" -- "gs_A_B_2"' in dot or '"gs_A_B_2" -- "gs_A_B"' in dot
    assert graph.to_dot() == dot
