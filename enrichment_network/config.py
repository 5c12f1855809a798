"""
Central configuration for the enrichment network pipeline.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional

from enrichment_network.exceptions import InvalidInput, UnknownField

# --- Similarity Parameters ---

# Supported gene-set similarity measures.
SIMILARITY_METHODS = ("jaccard", "overlap")

# Default similarity measure between two gene-sets.
DEFAULT_METHOD: str = "jaccard"

# Edges are kept when their weight is at least this value.
DEFAULT_THRESHOLD: float = 0.25

# --- Clustering Parameters ---

# Default community detection algorithm (see partitioners.PARTITIONERS).
DEFAULT_ALGORITHM: str = "louvain"

# Clusters with fewer members are discarded.
DEFAULT_MIN_SIZE: int = 2

# Seed for randomised partitioners.
DEFAULT_SEED: int = 42

# --- Text Mining Parameters ---

# Gene-set fields usable for cluster characterisation, with accepted aliases.
TEXT_FIELDS: Dict[str, str] = {
    "name": "name",
    "short_description": "short_description",
    "shortDescription": "short_description",
    "description": "short_description",
}

DEFAULT_TEXT_FIELD: str = "name"

# Number of terms reported per cluster.
DEFAULT_TOP_N: int = 10

# Log format used by the command line entry point.
LOG_FORMAT: str = "%(asctime)s - %(levelname)s - %(message)s"


def resolve_text_field(text_field: str) -> str:
    """
    Map a text field name or alias onto its canonical name.

    Args:
        text_field: One of the keys of TEXT_FIELDS

    Returns:
        Canonical field name ("name" or "short_description")
    """
    try:
        return TEXT_FIELDS[text_field]
    except (KeyError, TypeError):
        raise UnknownField(
            f"Unsupported text field: {text_field!r} (expected one of {sorted(TEXT_FIELDS)})"
        ) from None


@dataclass
class NetworkConfig:
    """Options recognised by the pipeline."""

    method: str = DEFAULT_METHOD
    threshold: float = DEFAULT_THRESHOLD
    algorithm: Any = DEFAULT_ALGORITHM
    algorithm_params: Dict[str, Any] = field(default_factory=dict)
    min_size: int = DEFAULT_MIN_SIZE
    text_field: str = DEFAULT_TEXT_FIELD
    top_n: int = DEFAULT_TOP_N
    processes: Optional[int] = None

    def validate(self) -> "NetworkConfig":
        """
        Check every option, raising InvalidInput or UnknownField on the first bad one.

        Returns:
            The config itself, so calls can be chained
        """
        if self.method not in SIMILARITY_METHODS:
            raise UnknownField(
                f"Unsupported similarity method: {self.method!r} (expected one of {SIMILARITY_METHODS})"
            )
        if not 0.0 <= self.threshold <= 1.0:
            raise InvalidInput(f"threshold must lie in [0, 1], got {self.threshold}")
        if self.min_size < 1:
            raise InvalidInput(f"min_size must be at least 1, got {self.min_size}")
        if self.top_n < 1:
            raise InvalidInput(f"top_n must be at least 1, got {self.top_n}")
        if self.processes is not None and self.processes < 1:
            raise InvalidInput(f"processes must be at least 1, got {self.processes}")
        resolve_text_field(self.text_field)
        if isinstance(self.algorithm, str):
            # imported here, partitioners imports networkx
            from enrichment_network.partitioners import PARTITIONERS

            if self.algorithm not in PARTITIONERS:
                raise UnknownField(
                    f"Unsupported clustering algorithm: {self.algorithm!r} (expected one of {sorted(PARTITIONERS)})"
                )
        return self

    def to_dict(self) -> Dict[str, Any]:
        """Return the options as a JSON-friendly dictionary."""
        params = asdict(self)
        if not isinstance(self.algorithm, str):
            params["algorithm"] = getattr(self.algorithm, "name", type(self.algorithm).__name__)
        return params
