"""
In-memory expression dataset shared by all pipeline stages.

An ExpressionDataset pairs a genes x samples count matrix with gene and
sample metadata. Operations never modify a dataset; they return a new one.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional, Sequence, Union

import numpy as np
import pandas as pd

from tissuede_pipeline.core.exceptions import InputError


TISSUE_COL = "tissue"
"""Sample metadata column holding the tissue label after merging."""


@dataclass(frozen=True, eq=False)
class ExpressionDataset:
    """
    Read counts with gene and sample metadata.

    Example:
        >>> ds = load_dataset("brain.h5ad", samples=["S1", "S2", "S3"])
        >>> ds.library_sizes
    """

    counts: pd.DataFrame
    """Read counts (genes x samples), non-negative integers."""

    genes: pd.DataFrame
    """Gene metadata indexed by gene identifier."""

    samples: pd.DataFrame
    """Sample metadata indexed by sample identifier."""

    source_info: dict[str, Any] = field(default_factory=dict)
    """Where the data came from (path, original shape)."""

    def __post_init__(self):
        if not self.counts.index.is_unique:
            dups = self.counts.index[self.counts.index.duplicated()].unique()
            raise InputError(
                f"Gene identifiers must be unique; {len(dups)} duplicated "
                f"(e.g. {list(dups[:3])})"
            )
        if not self.counts.columns.is_unique:
            raise InputError("Sample identifiers must be unique")
        if not self.genes.index.equals(self.counts.index):
            raise InputError("Gene metadata does not match count matrix rows")
        if not self.samples.index.equals(self.counts.columns):
            raise InputError("Sample metadata does not match count matrix columns")

    @property
    def gene_ids(self) -> list[str]:
        return list(self.counts.index)

    @property
    def sample_ids(self) -> list[str]:
        return list(self.counts.columns)

    @property
    def n_genes(self) -> int:
        return self.counts.shape[0]

    @property
    def n_samples(self) -> int:
        return self.counts.shape[1]

    @property
    def library_sizes(self) -> pd.Series:
        """Total read count per sample."""
        return self.counts.sum(axis=0)

    @property
    def groups(self) -> pd.Series:
        """Tissue label per sample (only set on merged datasets)."""
        if TISSUE_COL not in self.samples.columns:
            raise KeyError(f"Dataset has no '{TISSUE_COL}' sample annotation")
        return self.samples[TISSUE_COL]

    def select_samples(
        self,
        selectors: Optional[Sequence[Union[str, int]]],
    ) -> "ExpressionDataset":
        """
        Restrict to the given samples.

        Args:
            selectors: Sample names or integer positions, in the order to
                keep. None keeps every sample.

        Returns:
            New ExpressionDataset with only the selected columns.

        Raises:
            InputError: If a name or position does not exist.
        """
        if selectors is None:
            return self

        columns = []
        for sel in selectors:
            if isinstance(sel, (int, np.integer)) and not isinstance(sel, bool):
                if not 0 <= sel < self.n_samples:
                    raise InputError(
                        f"Column index {sel} out of range for dataset with "
                        f"{self.n_samples} samples"
                    )
                columns.append(self.counts.columns[sel])
            else:
                if sel not in self.counts.columns:
                    raise InputError(f"Sample not found in dataset: {sel!r}")
                columns.append(sel)

        if len(set(columns)) != len(columns):
            raise InputError(f"Sample selection contains duplicates: {list(selectors)}")

        return ExpressionDataset(
            counts=self.counts[columns],
            genes=self.genes,
            samples=self.samples.loc[columns],
            source_info=self.source_info,
        )

    def subset_genes(self, mask: Union[pd.Series, np.ndarray]) -> "ExpressionDataset":
        """Keep genes where mask is True."""
        mask = np.asarray(mask, dtype=bool)
        return ExpressionDataset(
            counts=self.counts.loc[mask],
            genes=self.genes.loc[mask],
            samples=self.samples,
            source_info=self.source_info,
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(n_genes={self.n_genes}, n_samples={self.n_samples})"
