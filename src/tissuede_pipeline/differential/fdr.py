"""
Multiple-testing correction of per-contrast p-values.
"""

from __future__ import annotations

from typing import Union

import numpy as np
import pandas as pd
from statsmodels.stats.multitest import multipletests


# statsmodels method names accepted for ModelConfig.fdr_method
SUPPORTED_METHODS = ("fdr_bh", "fdr_by", "bonferroni", "holm")


class FDRCorrector:
    """
    Adjust the raw p-values of one contrast.

    Genes without a p-value stay missing and do not count as tests.

    Example:
        >>> corrector = FDRCorrector(method="fdr_bh")
        >>> table["FDR"] = corrector.correct(table["PValue"])
    """

    def __init__(self, method: str = "fdr_bh"):
        if method not in SUPPORTED_METHODS:
            raise ValueError(
                f"Unknown method: {method} (supported: {', '.join(SUPPORTED_METHODS)})"
            )
        self.method = method

    def correct(
        self,
        pvalues: Union[np.ndarray, pd.Series],
    ) -> Union[np.ndarray, pd.Series]:
        """
        Args:
            pvalues: Raw p-values (1-D), may contain NaN.

        Returns:
            Adjusted values; a Series named "FDR" keeps the input index.
        """
        values = np.asarray(pvalues, dtype=float)
        adjusted = np.full(values.shape, np.nan)
        tested = ~np.isnan(values)
        if tested.any():
            adjusted[tested] = multipletests(values[tested], method=self.method)[1]

        if isinstance(pvalues, pd.Series):
            return pd.Series(adjusted, index=pvalues.index, name="FDR")
        return adjusted
