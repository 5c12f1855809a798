import logging
import multiprocessing as mp
from collections import defaultdict
from typing import Dict, FrozenSet, Iterable, List, Mapping, NamedTuple, Optional, Sequence, Tuple, Union

import pandas as pd

from enrichment_network.config import DEFAULT_METHOD, DEFAULT_THRESHOLD, SIMILARITY_METHODS
from enrichment_network.exceptions import InvalidInput, UnknownField
from enrichment_network.gene_set import GeneSet

logger = logging.getLogger(__name__)


class SimilarityEdge(NamedTuple):
    """Undirected weighted edge between two gene-sets, with source < target."""

    source: str
    target: str
    weight: float


def jaccard_index(a: FrozenSet[str], b: FrozenSet[str]) -> float:
    """Jaccard index: |A ∩ B| / |A ∪ B|."""
    union = len(a | b)
    return len(a & b) / union if union else 0.0


def overlap_coefficient(a: FrozenSet[str], b: FrozenSet[str]) -> float:
    """Overlap coefficient: |A ∩ B| / min(|A|, |B|)."""
    smallest = min(len(a), len(b))
    return len(a & b) / smallest if smallest else 0.0


def _weight(n_shared: int, size_a: int, size_b: int, method: str) -> float:
    if method == "jaccard":
        return n_shared / (size_a + size_b - n_shared)
    return n_shared / min(size_a, size_b)


def _scan_rows(
    args: Tuple[Sequence[int], List[Tuple[str, int]], Dict[str, List[int]], List[FrozenSet[str]], float, str],
) -> List[Tuple[int, int, float]]:
    """
    Computes the retained pairs (i, j), i < j, for a block of rows.
    This function is intended to be used with multiprocessing.Pool.map(),
    which requires functions to take a single argument. Therefore, the
    inputs are passed as a single tuple.

    Args:
        args: A tuple containing the following elements:
            - rows (Sequence[int]): Row indices to scan
            - members (List[Tuple[str, int]]): (id, size) per gene-set, sorted by id
            - index (Dict[str, List[int]]): Inverted gene -> ascending gene-set indices
            - genes (List[FrozenSet[str]]): Gene identifiers per gene-set
            - threshold (float): Inclusive weight cutoff
            - method (str): "jaccard" or "overlap"

    Returns:
        A list of (i, j, weight) triples sorted by (i, j)
    """
    rows, members, index, genes, threshold, method = args
    n = len(members)
    retained = []
    for i in rows:
        size_i = members[i][1]
        shared: Dict[int, int] = defaultdict(int)
        for gene in genes[i]:
            for j in index[gene]:
                if j > i:
                    shared[j] += 1
        # pairs without a shared gene have weight 0
        candidates = range(i + 1, n) if threshold <= 0 else sorted(shared)
        for j in candidates:
            weight = _weight(shared.get(j, 0), size_i, members[j][1], method)
            if weight >= threshold:
                retained.append((i, j, weight))
    return retained


def _as_gene_set_list(gene_sets: Union[Mapping[str, GeneSet], Iterable[GeneSet]]) -> List[GeneSet]:
    if isinstance(gene_sets, Mapping):
        items = []
        for key, gene_set in gene_sets.items():
            if key != gene_set.id:
                raise InvalidInput(f"Mapping key {key} does not match gene-set id {gene_set.id}")
            items.append(gene_set)
        return items
    return list(gene_sets)


def compute_overlap(
    gene_sets: Union[Mapping[str, GeneSet], Iterable[GeneSet]],
    threshold: float = DEFAULT_THRESHOLD,
    method: str = DEFAULT_METHOD,
    processes: Optional[int] = None,
) -> List[SimilarityEdge]:
    """
    Computes pairwise gene-set similarity and keeps the pairs at or above threshold.

    Intersections are counted through an inverted gene -> gene-set index, so
    only pairs sharing at least one gene are visited; the result is the same
    as evaluating every unordered pair.

    Args:
        gene_sets: Gene-sets as a sequence or an id -> GeneSet mapping
        threshold: Inclusive cutoff in [0, 1]
        method: "jaccard" or "overlap"
        processes: Number of worker processes; None or 1 runs serially

    Returns:
        Retained edges sorted by (source, target)
    """
    if method not in SIMILARITY_METHODS:
        logger.error(f"Unsupported similarity method: {method}")
        raise UnknownField(f"Unsupported similarity method: {method!r} (expected one of {SIMILARITY_METHODS})")
    if not 0.0 <= threshold <= 1.0:
        raise InvalidInput(f"threshold must lie in [0, 1], got {threshold}")

    items = _as_gene_set_list(gene_sets)
    if len(items) < 2:
        raise InvalidInput(f"At least 2 gene-sets are required, got {len(items)}")
    empty = [gs.id for gs in items if not gs.genes]
    if empty:
        raise InvalidInput(f"Gene-sets without genes: {empty[:10]}{'...' if len(empty) > 10 else ''}")
    ids = [gs.id for gs in items]
    if len(set(ids)) != len(ids):
        raise InvalidInput("Gene-set identifiers must be unique")

    items.sort(key=lambda gs: gs.id)
    members = [(gs.id, gs.size) for gs in items]
    genes = [gs.genes for gs in items]
    index: Dict[str, List[int]] = defaultdict(list)
    for position, gene_set in enumerate(items):
        for gene in gene_set.genes:
            index[gene].append(position)
    index = dict(index)
    logger.info(
        f"Computing {method} similarity for {len(items)} gene-sets "
        f"({len(items) * (len(items) - 1) // 2} pairs, {len(index)} distinct genes)"
    )

    rows = list(range(len(items)))
    if processes is not None and processes > 1:
        # interleave rows so that every block gets a similar share of the long early rows
        blocks = [rows[k::processes] for k in range(processes) if rows[k::processes]]
        with mp.Pool(processes) as pool:
            logger.info(f"Initializing the MP pool with {processes} CPUs")
            try:
                block_results = pool.map(
                    _scan_rows,
                    [(block, members, index, genes, threshold, method) for block in blocks],
                )
            finally:
                pool.close()
                pool.join()
                logger.info(f"Releasing {processes} CPUs from the MP pool")
        triples = sorted(t for block in block_results for t in block)
    else:
        triples = _scan_rows((rows, members, index, genes, threshold, method))

    edges = [SimilarityEdge(members[i][0], members[j][0], weight) for i, j, weight in triples]
    logger.info(f"Retained {len(edges)} edges with {method} >= {threshold}")
    return edges


def edges_to_dataframe(edges: Sequence[SimilarityEdge]) -> pd.DataFrame:
    """Return the edges as a pandas dataframe with source, target and weight columns."""
    return pd.DataFrame(list(edges), columns=["source", "target", "weight"])
