"""
Characterise gene-set clusters by the words in their names or descriptions.

Each cluster becomes one document (the chosen text field of all its members
concatenated). Terms are scored by their frequency in that document times
their inverse document frequency over the whole candidate collection, where
every gene-set counts as one document.
"""

import logging
import math
import re
from collections import Counter
from typing import Callable, Dict, Iterable, List, Mapping, NamedTuple, Optional, Sequence, Set, Union

import nltk
import pandas as pd

from enrichment_network.clustering import Cluster
from enrichment_network.config import DEFAULT_TEXT_FIELD, DEFAULT_TOP_N, resolve_text_field
from enrichment_network.exceptions import EmptyCluster, InvalidInput
from enrichment_network.gene_set import GeneSet

logger = logging.getLogger(__name__)

# alphanumeric runs; "_" separates words in gene-set identifiers
TOKEN_RE = re.compile(r"[^\W_]+")

# (resource path, download package) pairs needed by the default text processing
NLTK_RESOURCES = {
    "stopwords": ("corpora/stopwords", "stopwords"),
    "wordnet": ("corpora/wordnet", "wordnet"),
    "omw": ("corpora/omw-1.4", "omw-1.4"),
}


class TermScore(NamedTuple):
    term: str
    weight: float


def ensure_nltk_resource(key: str) -> None:
    """Download an NLTK corpus on first use if it is not installed."""
    resource, package = NLTK_RESOURCES[key]
    try:
        nltk.data.find(resource)
    except LookupError:
        logger.info(f"Downloading NLTK resource {package}")
        nltk.download(package, quiet=True)


def default_stop_words() -> Set[str]:
    """The NLTK English stop-word list."""
    ensure_nltk_resource("stopwords")
    from nltk.corpus import stopwords

    return set(stopwords.words("english"))


def default_lemmatizer() -> Callable[[str], str]:
    """The NLTK WordNet lemmatizer's lemmatize method."""
    ensure_nltk_resource("wordnet")
    ensure_nltk_resource("omw")
    from nltk.stem import WordNetLemmatizer

    return WordNetLemmatizer().lemmatize


def idf(n_documents: int, document_frequency: int) -> float:
    """Smoothed inverse document frequency: log(1 + N / (1 + df))."""
    return math.log(1 + n_documents / (1 + document_frequency))


class TextCharacteriser:
    """
    Ranks the most descriptive terms of gene-set clusters.
    """

    def __init__(
        self,
        stop_words: Optional[Iterable[str]] = None,
        lemmatizer: Optional[Callable[[str], str]] = None,
    ) -> None:
        """
        Args:
            stop_words: Words to discard (lower case). Defaults to the NLTK English list.
            lemmatizer: Function mapping a lower-case token to its lemma.
                Defaults to the NLTK WordNet lemmatizer.
        """
        self._stop_words = {w.lower() for w in stop_words} if stop_words is not None else None
        self._lemmatizer = lemmatizer
        self._lemma_cache: Dict[str, str] = {}

    @property
    def stop_words(self) -> Set[str]:
        if self._stop_words is None:
            self._stop_words = default_stop_words()
        return self._stop_words

    @property
    def lemmatizer(self) -> Callable[[str], str]:
        if self._lemmatizer is None:
            self._lemmatizer = default_lemmatizer()
        return self._lemmatizer

    def lemma(self, token: str) -> str:
        if token not in self._lemma_cache:
            self._lemma_cache[token] = self.lemmatizer(token)
        return self._lemma_cache[token]

    def tokenize(self, text: str) -> List[str]:
        """
        Split text into lemmas.

        Tokens are lower-cased; digit-only tokens and stop words are removed
        before lemmatisation.

        Args:
            text: Free text or a gene-set identifier

        Returns:
            Lemmas in text order
        """
        lemmas = []
        for token in TOKEN_RE.findall(text.lower()):
            if token.isdigit() or token in self.stop_words:
                continue
            lemmas.append(self.lemma(token))
        return lemmas

    def characterise(
        self,
        gene_sets: Union[Mapping[str, GeneSet], Iterable[GeneSet]],
        clusters: Sequence[Union[Cluster, Iterable[str]]],
        field: str = DEFAULT_TEXT_FIELD,
        top_n: int = DEFAULT_TOP_N,
    ) -> Dict[int, List[TermScore]]:
        """
        Score the terms of every cluster.

        Args:
            gene_sets: The full candidate collection; it defines the IDF corpus
            clusters: Clusters (or plain collections of gene-set ids)
            field: "name" or "short_description"
            top_n: Number of terms to return per cluster

        Returns:
            Mapping cluster index -> at most top_n TermScores, by weight
            descending then term ascending
        """
        field = resolve_text_field(field)
        if top_n <= 0:
            raise InvalidInput(f"top_n must be positive, got {top_n}")

        if isinstance(gene_sets, Mapping):
            collection = dict(gene_sets)
        else:
            collection = {gs.id: gs for gs in gene_sets}

        documents = {gs_id: self.tokenize(gs.text(field)) for gs_id, gs in collection.items()}
        n_documents = len(documents)
        document_frequency: Counter = Counter()
        for lemmas in documents.values():
            document_frequency.update(set(lemmas))
        logger.info(
            f"Built {field} corpus of {n_documents} gene-sets with {len(document_frequency)} distinct terms"
        )

        results: Dict[int, List[TermScore]] = {}
        for index, cluster in enumerate(clusters):
            members = cluster.members if isinstance(cluster, Cluster) else list(cluster)
            found = [m for m in members if m in documents]
            if len(found) < len(members):
                missing = [m for m in members if m not in documents]
                logger.warning(f"Cluster {index}: {len(missing)} members not in the gene-set collection: {missing[:10]}")
            if not found:
                raise EmptyCluster(f"Cluster {index} has no members in the gene-set collection")

            term_frequency: Counter = Counter()
            for member in found:
                term_frequency.update(documents[member])

            scores = [
                TermScore(term, count * idf(n_documents, document_frequency[term]))
                for term, count in term_frequency.items()
            ]
            scores.sort(key=lambda s: (-s.weight, s.term))
            results[index] = scores[:top_n]
            logger.debug(f"Cluster {index}: {[s.term for s in results[index]]}")
        return results


def characterise(
    gene_sets: Union[Mapping[str, GeneSet], Iterable[GeneSet]],
    clusters: Sequence[Union[Cluster, Iterable[str]]],
    field: str = DEFAULT_TEXT_FIELD,
    top_n: int = DEFAULT_TOP_N,
) -> Dict[int, List[TermScore]]:
    """Characterise clusters with the default NLTK stop words and lemmatizer."""
    return TextCharacteriser().characterise(gene_sets, clusters, field, top_n)


def terms_to_dataframe(terms: Mapping[int, Sequence[TermScore]]) -> pd.DataFrame:
    """Return one row per (cluster, term), ranked within each cluster."""
    rows = []
    for cluster_index in sorted(terms):
        for rank, score in enumerate(terms[cluster_index], 1):
            rows.append({"Cluster": cluster_index, "Rank": rank, "Term": score.term, "Weight": score.weight})
    return pd.DataFrame(rows, columns=["Cluster", "Rank", "Term", "Weight"])
