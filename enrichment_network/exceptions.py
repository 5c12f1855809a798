"""Error taxonomy for the enrichment network pipeline."""


class EnrichmentNetworkError(Exception):
    """Base class for all pipeline errors."""


class InvalidInput(EnrichmentNetworkError, ValueError):
    """Malformed or insufficient input data (empty gene-sets, non-positive top_n, ...)."""


class MissingMetadata(EnrichmentNetworkError, KeyError):
    """An edge references a gene-set that is absent from the metadata mapping."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the message readable
        return str(self.args[0]) if self.args else ""


class EmptyGraph(EnrichmentNetworkError):
    """The similarity graph has no nodes."""


class EmptyCluster(EnrichmentNetworkError):
    """A cluster has no members left after metadata lookup."""


class UnknownField(EnrichmentNetworkError, ValueError):
    """Unsupported enumerated option (similarity method, text field, algorithm)."""
