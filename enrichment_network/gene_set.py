from dataclasses import dataclass
from typing import FrozenSet, Iterable, Optional


@dataclass(frozen=True)
class GeneSet:
    """
    A named, immutable collection of gene identifiers with descriptive metadata.
    """

    id: str
    genes: FrozenSet[str]
    category: str = ""
    description: str = ""
    full_description: Optional[str] = None

    def __post_init__(self):
        # accept any iterable of genes but always store a frozenset
        if not isinstance(self.genes, frozenset):
            object.__setattr__(self, "genes", frozenset(self.genes))

    @classmethod
    def from_genes(
        cls,
        id: str,
        genes: Iterable[str],
        category: str = "",
        description: str = "",
        full_description: Optional[str] = None,
    ) -> "GeneSet":
        """
        Build a gene-set from any iterable of gene identifiers.

        Blank identifiers and surrounding whitespace are dropped.
        """
        cleaned = frozenset(g.strip() for g in genes if g and g.strip())
        return cls(id, cleaned, category, description, full_description)

    @property
    def size(self) -> int:
        return len(self.genes)

    def text(self, field: str) -> str:
        """
        Return the text used for characterisation.

        Args:
            field: Canonical field name, "name" or "short_description"

        Returns:
            The gene-set identifier or its short description ("" if missing)
        """
        if field == "name":
            return self.id
        return self.description or ""

    def has_gene(self, gene: str) -> bool:
        return gene in self.genes
