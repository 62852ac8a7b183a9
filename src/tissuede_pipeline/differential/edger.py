"""
Quasi-likelihood negative binomial GLM fitting via edgeR.

The design has one indicator column per tissue and no intercept, so each
pairwise contrast is a difference of two group coefficients.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

import numpy as np
import pandas as pd

from tissuede_pipeline.core.config import RunContext
from tissuede_pipeline.core.r_backend import RFunction, str_vector
from tissuede_pipeline.differential.contrasts import ContrastResult, contrast_name
from tissuede_pipeline.normalization.tmm import NormalizationResult

logger = logging.getLogger(__name__)


# Returns the glmQLFTest table columns (logFC, logCPM, F, PValue) of every
# contrast side by side, followed by one column holding the common dispersion.
_R_QL_FIT = RFunction("""
function(counts, groups, levels, norm_factors, contrasts, robust) {
    suppressPackageStartupMessages(library(edgeR))
    group <- factor(groups, levels = levels)
    design <- model.matrix(~0 + group)
    colnames(design) <- levels
    y <- DGEList(counts = counts, group = group, norm.factors = norm_factors)
    y <- estimateDisp(y, design, robust = robust)
    fit <- glmQLFit(y, design, robust = robust)
    tables <- lapply(seq_len(ncol(contrasts)), function(i) {
        res <- glmQLFTest(fit, contrast = contrasts[, i])
        as.matrix(res$table[, c("logFC", "logCPM", "F", "PValue")])
    })
    out <- do.call(cbind, tables)
    cbind(out, rep(y$common.dispersion, nrow(out)))
}
""", name="ql_fit")

_TABLE_COLUMNS = ["logFC", "logCPM", "F", "PValue"]


def design_matrix(groups: pd.Series, levels: tuple[str, ...]) -> pd.DataFrame:
    """No-intercept indicator design (samples x tissues)."""
    cat = pd.Categorical(groups.astype(str), categories=list(levels))
    design = pd.get_dummies(cat).astype(float)
    design.index = groups.index
    design.columns = list(levels)
    return design


def contrast_matrix(context: RunContext) -> pd.DataFrame:
    """Contrast coefficients (tissues x contrasts), +1 first / -1 second."""
    data = {}
    for first, second in context.contrasts:
        vec = pd.Series(0.0, index=list(context.tissues))
        vec[first] = 1.0
        vec[second] = -1.0
        data[contrast_name(first, second)] = vec
    return pd.DataFrame(data)


@dataclass(frozen=True, eq=False)
class FitResult:
    """All pairwise contrasts from one model fit."""

    contrasts: dict[str, ContrastResult]
    """Contrast name -> result, in run order (A-B, A-C, B-C)."""

    design: pd.DataFrame
    """Design matrix used for the fit."""

    common_dispersion: Optional[float] = None
    """edgeR common NB dispersion."""

    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def names(self) -> list[str]:
        return list(self.contrasts)


class ModelFitter(ABC):
    """Fits the three-group model and returns the pairwise contrasts."""

    @abstractmethod
    def fit(
        self,
        normalized: NormalizationResult,
        context: RunContext,
    ) -> FitResult:
        """
        Fit the model.

        Args:
            normalized: Normalization output (filtered counts and factors).
            context: Run context defining tissues and contrast orientation.

        Returns:
            FitResult with one ContrastResult per pairwise contrast.
        """
        ...


class EdgeRQLFitter(ModelFitter):
    """
    edgeR quasi-likelihood fit (estimateDisp, glmQLFit, glmQLFTest).

    Raw p-values are BH-corrected per contrast on the Python side.

    Example:
        >>> fitter = EdgeRQLFitter(robust=True)
        >>> fit = fitter.fit(normalized, context)
        >>> fit.contrasts["brain_vs_heart"].significant(0.05)
    """

    def __init__(self, robust: bool = True, fdr_method: str = "fdr_bh"):
        self.robust = robust
        self.fdr_method = fdr_method

    def fit(
        self,
        normalized: NormalizationResult,
        context: RunContext,
    ) -> FitResult:
        dataset = normalized.dataset
        groups = dataset.groups.astype(str)
        design = design_matrix(groups, context.tissues)
        contrasts = contrast_matrix(context)

        logger.info(
            "Fitting QL model: %d genes, %d samples, design %s",
            dataset.n_genes, dataset.n_samples, list(design.columns),
        )
        out = _R_QL_FIT(
            dataset.counts.to_numpy(dtype=float),
            str_vector(groups),
            str_vector(context.tissues),
            normalized.norm_factors.reindex(dataset.counts.columns).to_numpy(dtype=float),
            contrasts.to_numpy(dtype=float),
            self.robust,
        )
        out = np.asarray(out, dtype=float)
        n_cols = len(_TABLE_COLUMNS)

        results: dict[str, ContrastResult] = {}
        for i, (first, second) in enumerate(context.contrasts):
            block = out[:, i * n_cols:(i + 1) * n_cols]
            table = pd.DataFrame(block, index=dataset.counts.index, columns=_TABLE_COLUMNS)
            result = ContrastResult.from_table(
                first, second, table,
                fdr_method=self.fdr_method,
                metadata={"test": "glmQLFTest"},
            )
            results[result.name] = result
            logger.info(
                "%s: %d genes with FDR < %.2g",
                result.name, len(result.significant(context.fdr_threshold)),
                context.fdr_threshold,
            )

        common_disp = float(out[0, -1]) if out.shape[0] else None
        return FitResult(
            contrasts=results,
            design=design,
            common_dispersion=common_disp,
            metadata={"robust": self.robust, "fdr_method": self.fdr_method},
        )
