"""
Summarise gene-set enrichment results as a similarity network of gene-sets,
clustered into themes and characterised by text mining of gene-set names.
"""

from enrichment_network.clustering import Cluster, find_clusters
from enrichment_network.exceptions import (
    EmptyCluster,
    EmptyGraph,
    EnrichmentNetworkError,
    InvalidInput,
    MissingMetadata,
    UnknownField,
)
from enrichment_network.gene_set import GeneSet
from enrichment_network.network import SimilarityGraph, attach_statistic, build_network
from enrichment_network.partitioners import GraphPartitioner, PartitionKind, get_partitioner
from enrichment_network.similarity import SimilarityEdge, compute_overlap
from enrichment_network.text_mining import TermScore, TextCharacteriser, characterise

__all__ = [
    "Cluster",
    "EmptyCluster",
    "EmptyGraph",
    "EnrichmentNetworkError",
    "GeneSet",
    "GraphPartitioner",
    "InvalidInput",
    "MissingMetadata",
    "PartitionKind",
    "SimilarityEdge",
    "SimilarityGraph",
    "TermScore",
    "TextCharacteriser",
    "UnknownField",
    "attach_statistic",
    "build_network",
    "characterise",
    "compute_overlap",
    "find_clusters",
    "get_partitioner",
]
