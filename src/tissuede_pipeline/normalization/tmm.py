"""
TMM normalization and log-CPM via edgeR.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import numpy as np
import pandas as pd

from tissuede_pipeline.core.r_backend import RFunction, str_vector
from tissuede_pipeline.ingest.base import ExpressionDataset

logger = logging.getLogger(__name__)


_R_FILTER_BY_EXPR = RFunction("""
function(counts, groups) {
    suppressPackageStartupMessages(library(edgeR))
    y <- DGEList(counts = counts, group = factor(groups))
    as.integer(filterByExpr(y))
}
""", name="filter_by_expr")

_R_TMM_FACTORS = RFunction("""
function(counts) {
    suppressPackageStartupMessages(library(edgeR))
    y <- calcNormFactors(DGEList(counts = counts), method = "TMM")
    y$samples$norm.factors
}
""", name="tmm_factors")

_R_LOG_CPM = RFunction("""
function(counts, norm_factors, prior_count) {
    suppressPackageStartupMessages(library(edgeR))
    y <- DGEList(counts = counts, norm.factors = norm_factors)
    cpm(y, log = TRUE, prior.count = prior_count)
}
""", name="log_cpm")


@dataclass(frozen=True, eq=False)
class NormalizationResult:
    """Scaling factors and log-CPM matrices for a merged dataset."""

    dataset: ExpressionDataset
    """Dataset the factors apply to (after the expression filter)."""

    norm_factors: pd.Series
    """TMM scaling factor per sample."""

    log_cpm_raw: pd.DataFrame
    """log2-CPM using raw library sizes (genes x samples)."""

    log_cpm_tmm: pd.DataFrame
    """log2-CPM using TMM-scaled library sizes (genes x samples)."""

    n_filtered: int = 0
    """Genes dropped by the low-expression filter."""

    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def lib_sizes(self) -> pd.Series:
        return self.dataset.library_sizes


class TMMNormalizer:
    """
    Trimmed-mean-of-M-values normalization.

    Example:
        >>> normalizer = TMMNormalizer(filter_by_expr=True)
        >>> result = normalizer.normalize(merged)
        >>> result.norm_factors
    """

    def __init__(
        self,
        filter_by_expr: bool = True,
        prior_count: float = 2.0,
    ):
        """
        Initialize normalizer.

        Args:
            filter_by_expr: Drop lowly expressed genes (edgeR filterByExpr,
                grouped by tissue) before computing the factors.
            prior_count: Prior count added before taking logs.
        """
        self.filter_by_expr = filter_by_expr
        self.prior_count = prior_count

    def normalize(self, dataset: ExpressionDataset) -> NormalizationResult:
        """
        Compute TMM factors and log-CPM before and after scaling.

        Args:
            dataset: Merged dataset with a tissue annotation.

        Returns:
            NormalizationResult.
        """
        n_before = dataset.n_genes
        if self.filter_by_expr:
            keep = self.expressed_genes(dataset)
            dataset = dataset.subset_genes(keep)
            logger.info(
                "filterByExpr kept %d of %d genes", dataset.n_genes, n_before,
            )

        counts = dataset.counts.to_numpy(dtype=float)
        factors = _R_TMM_FACTORS(counts)
        norm_factors = pd.Series(factors, index=dataset.counts.columns, name="norm_factors")

        log_cpm_raw = self._log_cpm(dataset, np.ones(dataset.n_samples))
        log_cpm_tmm = self._log_cpm(dataset, factors)

        logger.info(
            "TMM factors: min=%.3f, max=%.3f", norm_factors.min(), norm_factors.max(),
        )
        return NormalizationResult(
            dataset=dataset,
            norm_factors=norm_factors,
            log_cpm_raw=log_cpm_raw,
            log_cpm_tmm=log_cpm_tmm,
            n_filtered=n_before - dataset.n_genes,
            metadata={"method": "TMM", "prior_count": self.prior_count},
        )

    def expressed_genes(self, dataset: ExpressionDataset) -> np.ndarray:
        """Boolean mask of genes passing filterByExpr."""
        keep = _R_FILTER_BY_EXPR(
            dataset.counts.to_numpy(dtype=float),
            str_vector(dataset.groups.astype(str)),
        )
        return keep.astype(bool)

    def _log_cpm(self, dataset: ExpressionDataset, factors: np.ndarray) -> pd.DataFrame:
        values = _R_LOG_CPM(
            dataset.counts.to_numpy(dtype=float),
            np.asarray(factors, dtype=float),
            float(self.prior_count),
        )
        return pd.DataFrame(values, index=dataset.counts.index, columns=dataset.counts.columns)
