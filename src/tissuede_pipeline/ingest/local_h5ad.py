"""
Local H5AD file data source.

Reads one tissue's count matrix with its gene (var) and sample (obs)
metadata from an AnnData file and returns it as a genes x samples
ExpressionDataset.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Sequence, Union

import anndata as ad
import numpy as np
import pandas as pd
from scipy import sparse as sp

from tissuede_pipeline.core.exceptions import InputError
from tissuede_pipeline.ingest.base import ExpressionDataset

logger = logging.getLogger(__name__)


class LocalH5ADSource:
    """
    Data source for a local H5AD file.

    AnnData stores samples as observations and genes as variables; the
    source transposes to the genes x samples layout used downstream.

    Example:
        >>> source = LocalH5ADSource("/path/to/brain.h5ad")
        >>> print(f"Dataset: {source.n_samples} samples, {source.n_genes} genes")
        >>> dataset = source.read(samples=[0, 1, 2])
    """

    def __init__(
        self,
        path: Union[str, Path],
        layer: Optional[str] = None,
    ):
        """
        Initialize H5AD data source.

        Args:
            path: Path to H5AD file.
            layer: Layer holding raw counts (None for .X).

        Raises:
            InputError: If the file is missing or cannot be deserialized.
        """
        self.path = Path(path)
        self.layer = layer

        if not self.path.exists():
            raise InputError(f"H5AD file not found: {self.path}")

        try:
            self._adata = ad.read_h5ad(self.path)
        except (OSError, KeyError, ValueError, TypeError) as e:
            raise InputError(f"Cannot read H5AD file {self.path}: {e}") from e

        if layer is not None and layer not in self._adata.layers:
            raise InputError(
                f"Layer '{layer}' not in {self.path} "
                f"(available: {list(self._adata.layers.keys())})"
            )

    @property
    def n_samples(self) -> int:
        return self._adata.n_obs

    @property
    def n_genes(self) -> int:
        return self._adata.n_vars

    @property
    def sample_ids(self) -> list[str]:
        return list(self._adata.obs_names)

    def read(
        self,
        samples: Optional[Sequence[Union[str, int]]] = None,
    ) -> ExpressionDataset:
        """
        Read the count matrix, optionally restricted to some samples.

        Args:
            samples: Sample names or integer positions (None keeps all).

        Returns:
            ExpressionDataset with genes as rows.
        """
        X = self._adata.layers[self.layer] if self.layer is not None else self._adata.X
        if sp.issparse(X):
            X = X.toarray()
        X = np.asarray(X)

        if X.dtype.kind == "f":
            if np.isnan(X).any():
                raise InputError(f"Missing (NaN) counts in {self.path}")
            if not np.all(np.mod(X, 1) == 0):
                raise InputError(f"Non-integer counts in {self.path}")
        if X.size and X.min() < 0:
            raise InputError(f"Negative counts in {self.path}")
        X = X.astype(np.int64)

        counts = pd.DataFrame(
            X.T,
            index=pd.Index(self._adata.var_names.astype(str), name="gene_id"),
            columns=pd.Index(self._adata.obs_names.astype(str), name="sample_id"),
        )
        genes = self._adata.var.copy()
        genes.index = counts.index
        obs = self._adata.obs.copy()
        obs.index = counts.columns

        dataset = ExpressionDataset(
            counts=counts,
            genes=genes,
            samples=obs,
            source_info={
                "path": str(self.path),
                "n_samples_total": self.n_samples,
                "n_genes_total": self.n_genes,
            },
        )
        dataset = dataset.select_samples(samples)

        logger.info(
            "Loaded %s: %d genes x %d samples (of %d)",
            self.path.name, dataset.n_genes, dataset.n_samples, self.n_samples,
        )
        return dataset

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(path={self.path}, n_samples={self.n_samples})"


def load_dataset(
    path: Union[str, Path],
    samples: Optional[Sequence[Union[str, int]]] = None,
    layer: Optional[str] = None,
) -> ExpressionDataset:
    """
    Load an expression dataset from an H5AD file.

    Args:
        path: Path to H5AD file.
        samples: Sample names or integer positions to keep.
        layer: Layer holding raw counts (None for .X).

    Returns:
        The column-restricted ExpressionDataset.
    """
    return LocalH5ADSource(path, layer=layer).read(samples)
