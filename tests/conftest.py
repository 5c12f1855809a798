import os
import sys

import pytest

# Ensure the project root is on sys.path so tests can import
# ``enrichment_network`` without installing the package.
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from enrichment_network.gene_set import GeneSet  # noqa: E402
from enrichment_network.text_mining import TextCharacteriser  # noqa: E402

STOP_WORDS = {"of", "the", "to", "and", "in", "by", "via"}


@pytest.fixture
def abc_gene_sets():
    """Two overlapping gene-sets and one unrelated gene-set."""
    return {
        "A": GeneSet("A", {"g1", "g2", "g3"}, "LIB", "alpha process"),
        "B": GeneSet("B", {"g2", "g3", "g4"}, "LIB", "beta process"),
        "C": GeneSet("C", {"g10", "g11"}, "LIB", "gamma process"),
    }


@pytest.fixture
def module_gene_sets():
    """
    Two separate modules plus one isolated gene-set.

    The four X gene-sets share 3 of 4 genes pairwise (Jaccard 0.6), the three
    Y gene-sets share 2 of 3 genes pairwise (Jaccard 0.5).
    """
    x_sets = {
        "GOBP_IMMUNE_RESPONSE": {"x1", "x2", "x3", "x4"},
        "GOBP_INNATE_IMMUNE_RESPONSE": {"x1", "x2", "x3", "x5"},
        "GOBP_IMMUNE_SYSTEM_PROCESS": {"x1", "x2", "x4", "x5"},
        "GOBP_REGULATION_OF_IMMUNE_RESPONSE": {"x1", "x3", "x4", "x5"},
    }
    y_sets = {
        "GOBP_DNA_REPAIR": {"y1", "y2", "y3"},
        "GOBP_DNA_REPLICATION": {"y1", "y2", "y4"},
        "GOBP_DOUBLE_STRAND_BREAK_REPAIR": {"y1", "y3", "y4"},
    }
    gene_sets = {}
    for name, genes in {**x_sets, **y_sets}.items():
        gene_sets[name] = GeneSet(name, genes, "GOBP", name.replace("GOBP_", "").replace("_", " ").lower())
    gene_sets["GOBP_AXON_GUIDANCE"] = GeneSet("GOBP_AXON_GUIDANCE", {"z1", "z2"}, "GOBP", "axon guidance")
    return gene_sets


@pytest.fixture
def characteriser():
    """Characteriser with a small stop-word list and no lemmatisation."""
    return TextCharacteriser(stop_words=STOP_WORDS, lemmatizer=lambda token: token)


@pytest.fixture(scope="session")
def nltk_characteriser():
    """Characteriser with the NLTK defaults; skips when the corpora cannot be loaded."""
    characteriser = TextCharacteriser()
    try:
        characteriser.tokenize("responses of cells")
    except LookupError:
        pytest.skip("NLTK corpora are not available")
    return characteriser
