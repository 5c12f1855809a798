import logging
import math
import re
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Set, Tuple

import pandas as pd

from enrichment_network.exceptions import InvalidInput
from enrichment_network.gene_set import GeneSet

logger = logging.getLogger(__name__)


def term_key(term_name: str) -> str:
    """
    Normalise a term name so that library identifiers and display names compare equal.

    Enrichment tables often show "GOBP: CELLULAR RESPONSE TO STRESS" for the
    library term "GOBP_CELLULAR_RESPONSE_TO_STRESS"; both map to the same key.
    """
    return re.sub(r"[\s:_]+", "_", term_name.strip()).strip("_").upper()


class GeneSetLibrary:
    """
    A gene-set library loaded from a GMT file.
    """

    def __init__(self, library_file_path: str, name: str = "") -> None:
        """
        Initialize the library from a GMT file.

        Args:
            library_file_path: Path to the GMT file (term<TAB>description<TAB>gene1<TAB>gene2...)
            name: Library name, used as the gene-set category. Defaults to the file stem.
        """
        self.file_path = Path(library_file_path)
        self.name = name if name else self.file_path.stem
        self.gene_sets: Dict[str, GeneSet] = self._load_from_file(self.file_path)
        self.num_terms: int = len(self.gene_sets)
        self.unique_genes: Set[str] = self.compute_unique_genes()
        self.size: int = len(self.unique_genes)

    def _load_from_file(self, gmt_path: Path) -> Dict[str, GeneSet]:
        """
        Parse a GMT file into gene-sets.

        Args:
            gmt_path: Path to the GMT file

        Returns:
            Mapping of term name to GeneSet, in file order
        """
        if not gmt_path.exists():
            raise FileNotFoundError(f"GMT file not found: {gmt_path}")

        gene_sets: Dict[str, GeneSet] = {}
        with open(gmt_path, "r", encoding="utf-8") as f:
            for line_num, line in enumerate(f, 1):
                line = line.rstrip("\n\r")
                if not line.strip():
                    continue

                # Parse GMT line: term_name\tdescription\tgene1\tgene2\t...
                parts = line.split("\t")
                if len(parts) < 3:
                    logger.warning(f"{gmt_path.name} line {line_num}: Invalid GMT format, skipping")
                    continue

                term_name = parts[0].strip()
                description = parts[1].strip()
                gene_set = GeneSet.from_genes(
                    term_name,
                    parts[2:],
                    category=self.name,
                    description="" if description in ("", "na", "NA") else description,
                )
                if not gene_set.genes:
                    logger.warning(f"{gmt_path.name} line {line_num}: term {term_name} has no genes, skipping")
                    continue
                if term_name in gene_sets:
                    logger.warning(f"{gmt_path.name} line {line_num}: duplicate term {term_name}, keeping the first")
                    continue
                gene_sets[term_name] = gene_set

        logger.info(f"Loaded library {self.name}: {len(gene_sets)} terms")
        return gene_sets

    def compute_unique_genes(self) -> Set[str]:
        """Return the union of genes over all terms."""
        genes: Set[str] = set()
        for gene_set in self.gene_sets.values():
            genes.update(gene_set.genes)
        return genes

    def subset(self, ids: Iterable[str]) -> Dict[str, GeneSet]:
        """
        Select the gene-sets matching the given identifiers.

        Identifiers are matched exactly first and then by term_key, so display
        names copied from enrichment tables resolve to library terms.

        Args:
            ids: Term identifiers or display names

        Returns:
            Mapping of library term name to GeneSet for every resolved identifier
        """
        by_key = {term_key(name): name for name in self.gene_sets}
        selected: Dict[str, GeneSet] = {}
        missing: List[str] = []
        for raw_id in ids:
            name = raw_id if raw_id in self.gene_sets else by_key.get(term_key(raw_id))
            if name is None:
                missing.append(raw_id)
                continue
            selected[name] = self.gene_sets[name]
        if missing:
            logger.warning(
                f"{len(missing)} terms not found in library {self.name}: {missing[:10]}{'...' if len(missing) > 10 else ''}"
            )
        return selected

    def __len__(self) -> int:
        return self.num_terms

    def __contains__(self, term_name: str) -> bool:
        return term_name in self.gene_sets


def merge_libraries(libraries: Iterable[GeneSetLibrary]) -> Dict[str, GeneSet]:
    """
    Combine several libraries into one id -> GeneSet mapping.

    Raises:
        InvalidInput: if two libraries define the same term name
    """
    merged: Dict[str, GeneSet] = {}
    for library in libraries:
        for name, gene_set in library.gene_sets.items():
            if name in merged:
                raise InvalidInput(
                    f"Term {name} is defined in both {merged[name].category} and {library.name}"
                )
            merged[name] = gene_set
    return merged


def load_enrichment_results(
    results_path: str, p_threshold: Optional[float] = None
) -> Tuple[List[str], Dict[str, float]]:
    """
    Read significant terms from an enrichment result table or a plain list.

    A tab-separated table needs a "Term" column; if it also has a "p-value"
    column, terms are filtered by p_threshold and the statistic is
    -log10(p-value) (or the "-log(p-value)" column when present). A file
    without a "Term" header is read as one identifier per line, without
    statistics.

    Args:
        results_path: Path to the TSV or list file
        p_threshold: Optional raw p-value cutoff

    Returns:
        Tuple of (term identifiers in file order, statistic per identifier)
    """
    path = Path(results_path)
    with open(path, "r", encoding="utf-8") as f:
        header = f.readline().rstrip("\n\r").split("\t")

    if "Term" not in header:
        with open(path, "r", encoding="utf-8") as f:
            ids = [line.strip() for line in f if line.strip()]
        logger.info(f"Read {len(ids)} term identifiers from {path.name}")
        return ids, {}

    df = pd.read_csv(path, sep="\t")
    df = df[df["Term"].notna()]
    if "p-value" in df.columns:
        df = df[df["p-value"].notna()]
        if p_threshold is not None:
            df = df[df["p-value"] <= p_threshold]

    ids: List[str] = []
    seen: Set[str] = set()
    stats: Dict[str, float] = {}
    for _, row in df.iterrows():
        term = str(row["Term"])
        if term in seen:
            continue
        seen.add(term)
        ids.append(term)
        if "-log(p-value)" in df.columns and pd.notna(row["-log(p-value)"]):
            stats[term] = float(row["-log(p-value)"])
        elif "p-value" in df.columns:
            p_value = float(row["p-value"])
            stats[term] = -math.log10(p_value) if p_value > 0 else 0.0
    logger.info(f"Read {len(ids)} significant terms from {path.name}")
    return ids, stats


def rekey_statistics(
    stats: Mapping[str, float], gene_sets: Mapping[str, GeneSet]
) -> Dict[str, float]:
    """Translate statistics keyed by display names onto library term names."""
    by_key = {term_key(name): name for name in gene_sets}
    rekeyed: Dict[str, float] = {}
    for raw_id, value in stats.items():
        name = raw_id if raw_id in gene_sets else by_key.get(term_key(raw_id))
        if name is not None:
            rekeyed[name] = value
    return rekeyed
