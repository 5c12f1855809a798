import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import pandas as pd

from enrichment_network.clustering import Cluster, clusters_to_dataframe, find_clusters
from enrichment_network.config import NetworkConfig
from enrichment_network.exceptions import InvalidInput
from enrichment_network.gene_set import GeneSet
from enrichment_network.network import SimilarityGraph, attach_statistic, build_network
from enrichment_network.partitioners import GraphPartitioner, get_partitioner
from enrichment_network.similarity import SimilarityEdge, compute_overlap
from enrichment_network.text_mining import TermScore, TextCharacteriser, terms_to_dataframe

logger = logging.getLogger(__name__)


class EnrichmentNetwork:
    """
    Summarise significant gene-sets as a clustered similarity network.

    The network is built on construction. Clustering and characterisation run
    on demand; if one of them fails, the stages before it stay valid and can
    be re-run with corrected parameters.
    """

    def __init__(
        self,
        gene_sets: Mapping[str, GeneSet],
        significant: Optional[List[str]] = None,
        statistics: Optional[Mapping[str, float]] = None,
        gene_statistics: Optional[Mapping[str, float]] = None,
        config: Optional[NetworkConfig] = None,
        text_characteriser: Optional[TextCharacteriser] = None,
        name: str = None,
    ):
        """
        Initialize the network and compute its edges.

        Args:
            gene_sets: Candidate gene-sets (id -> GeneSet); the text mining corpus
            significant: Ids of the gene-sets to put in the network. Defaults to all of gene_sets.
            statistics: Optional gene-set id -> statistic (e.g. -log10 p-value)
            gene_statistics: Optional gene -> statistic, kept for downstream visualisation only
            config: Pipeline options
            text_characteriser: Custom stop words / lemmatizer
            name: Name for the analysis
        """
        self.config = (config or NetworkConfig()).validate()
        self.gene_sets: Dict[str, GeneSet] = dict(gene_sets)
        if significant is None:
            significant = list(self.gene_sets)
        unknown = [gs_id for gs_id in significant if gs_id not in self.gene_sets]
        if unknown:
            raise InvalidInput(f"Significant gene-sets missing from the collection: {unknown[:10]}")
        self.significant: List[str] = list(dict.fromkeys(significant))
        self.statistics: Dict[str, float] = dict(statistics or {})
        self.gene_statistics: Dict[str, float] = dict(gene_statistics or {})
        self.text_characteriser = text_characteriser or TextCharacteriser()
        self.name = name if name else f"enrichment_network_{datetime.now().strftime('%Y-%m-%d %H:%M:%S')}"

        self.edges: List[SimilarityEdge] = compute_overlap(
            [self.gene_sets[gs_id] for gs_id in self.significant],
            threshold=self.config.threshold,
            method=self.config.method,
            processes=self.config.processes,
        )
        graph = build_network(self.edges, self.gene_sets)
        self.graph: SimilarityGraph = attach_statistic(graph, self.statistics) if self.statistics else graph
        self._clusters: Optional[List[Cluster]] = None
        self._terms: Optional[Dict[int, List[TermScore]]] = None

    @property
    def partitioner(self) -> GraphPartitioner:
        if isinstance(self.config.algorithm, GraphPartitioner):
            return self.config.algorithm
        return get_partitioner(self.config.algorithm, **self.config.algorithm_params)

    @property
    def clusters(self) -> List[Cluster]:
        """Ordered clusters; computed on first access."""
        if self._clusters is None:
            self.cluster()
        return self._clusters

    @property
    def terms(self) -> Dict[int, List[TermScore]]:
        """Top terms per cluster index; computed on first access."""
        if self._terms is None:
            self.characterise()
        return self._terms

    def cluster(
        self,
        algorithm: Union[GraphPartitioner, str, None] = None,
        min_size: Optional[int] = None,
    ) -> List[Cluster]:
        """
        (Re-)run clustering, replacing earlier clusters and terms.

        Args:
            algorithm: Overrides the configured partitioner
            min_size: Overrides the configured minimum cluster size

        Returns:
            The ordered clusters
        """
        algorithm = algorithm if algorithm is not None else self.partitioner
        min_size = min_size if min_size is not None else self.config.min_size
        self._terms = None
        self._clusters = find_clusters(self.graph, algorithm, min_size=min_size)
        logger.info(f"{self.name}: {len(self._clusters)} clusters")
        return self._clusters

    def characterise(self, field: Optional[str] = None, top_n: Optional[int] = None) -> Dict[int, List[TermScore]]:
        """
        (Re-)run text characterisation of the current clusters.

        Args:
            field: Overrides the configured text field
            top_n: Overrides the configured number of terms

        Returns:
            Top terms per cluster index
        """
        self._terms = self.text_characteriser.characterise(
            self.gene_sets,
            self.clusters,
            field=field if field is not None else self.config.text_field,
            top_n=top_n if top_n is not None else self.config.top_n,
        )
        return self._terms

    def run(self) -> "EnrichmentNetwork":
        """Run clustering and characterisation with the configured options."""
        self.cluster()
        self.characterise()
        return self

    def to_dataframe(self) -> pd.DataFrame:
        """Return one row per clustered gene-set with its cluster and cluster label."""
        rows = []
        for index, cluster in enumerate(self.clusters):
            label = ", ".join(score.term for score in self.terms.get(index, [])[:3])
            for member in cluster.members:
                gene_set = self.gene_sets[member]
                rows.append(
                    {
                        "Cluster": index,
                        "Cluster terms": label,
                        "Term": member,
                        "Library": gene_set.category,
                        "Description": gene_set.description,
                        "Statistic": self.graph.statistic(member),
                        "Size": gene_set.size,
                    }
                )
        column_order = ["Cluster", "Cluster terms", "Term", "Library", "Description", "Statistic", "Size"]
        return pd.DataFrame(rows, columns=column_order)

    def to_tsv(self) -> str:
        """Return the clustered gene-sets as a TSV spreadsheet."""
        return self.to_dataframe().to_csv(sep="\t", index=False)

    def to_snapshot(self) -> Dict[str, Any]:
        """Return the input parameters and the results as a JSON-friendly dictionary."""
        return {
            "name": self.name,
            "parameters": self.config.to_dict(),
            "candidate_gene_sets": len(self.gene_sets),
            "significant_gene_sets": len(self.significant),
            "nodes": self.graph.number_of_nodes,
            "edges": self.graph.number_of_edges,
            "clusters": [
                {
                    "index": index,
                    "size": cluster.size,
                    "aggregate_statistic": cluster.aggregate_statistic,
                    "kind": cluster.kind.value,
                    "members": list(cluster.members),
                    "terms": [{"term": s.term, "weight": s.weight} for s in self.terms.get(index, [])],
                }
                for index, cluster in enumerate(self.clusters)
            ],
            "gene_statistics": self.gene_statistics,
        }

    def to_json(self) -> str:
        """Return the snapshot as a JSON string."""
        return json.dumps(self.to_snapshot(), indent=4, separators=(",", ": "))

    def save_to_results_folder(self, output_dir: Path) -> List[Path]:
        """
        Write edges, clusters, terms, DOT network and snapshot to output_dir.

        Returns:
            Paths of the written files
        """
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        written = []

        edges_file = output_dir / "edges.tsv"
        self.graph.to_dataframe().to_csv(edges_file, sep="\t", index=False)
        written.append(edges_file)

        clusters_file = output_dir / "clusters.tsv"
        self.to_dataframe().to_csv(clusters_file, sep="\t", index=False)
        written.append(clusters_file)

        summary_file = output_dir / "cluster_summary.tsv"
        clusters_to_dataframe(self.clusters).to_csv(summary_file, sep="\t", index=False)
        written.append(summary_file)

        terms_file = output_dir / "cluster_terms.tsv"
        terms_to_dataframe(self.terms).to_csv(terms_file, sep="\t", index=False)
        written.append(terms_file)

        dot_file = output_dir / "network.dot"
        with open(dot_file, "w") as f:
            f.write(self.graph.to_dot())
        written.append(dot_file)

        snapshot_file = output_dir / "snapshot.json"
        with open(snapshot_file, "w") as f:
            f.write(self.to_json())
        written.append(snapshot_file)

        logger.info(f"Saved {len(written)} result files to {output_dir}")
        return written
