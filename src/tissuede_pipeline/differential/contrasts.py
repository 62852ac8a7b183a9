"""
Per-contrast test results.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Union

import numpy as np
import pandas as pd

from tissuede_pipeline.core.exceptions import InputError
from tissuede_pipeline.differential.fdr import FDRCorrector


RESULT_COLUMNS = ["logFC", "logCPM", "F", "PValue", "FDR"]
REQUIRED_COLUMNS = ["logFC", "PValue"]


def contrast_name(first: str, second: str) -> str:
    """Name of the contrast first - second (e.g. "brain_vs_heart")."""
    return f"{first}_vs_{second}"


@dataclass(frozen=True, eq=False)
class ContrastResult:
    """
    Result of one pairwise comparison.

    logFC is log2(first / second): positive values mean higher expression
    in the first tissue.
    """

    first: str
    """Tissue on the positive side of the contrast."""

    second: str
    """Tissue on the negative side of the contrast."""

    table: pd.DataFrame
    """Per-gene results indexed by gene id (RESULT_COLUMNS)."""

    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def name(self) -> str:
        return contrast_name(self.first, self.second)

    @property
    def logfc(self) -> pd.Series:
        return self.table["logFC"]

    @property
    def fdr(self) -> pd.Series:
        return self.table["FDR"]

    def significant(self, fdr_threshold: float = 0.05) -> pd.DataFrame:
        """
        Genes with FDR below the threshold, most significant first.

        Ties keep the original gene order.
        """
        sig = self.table[self.table["FDR"] < fdr_threshold]
        return sig.sort_values("PValue", kind="mergesort")

    def up(self, fdr_threshold: float = 0.05) -> list[str]:
        """Significant genes higher in the first tissue."""
        sig = self.significant(fdr_threshold)
        return list(sig.index[sig["logFC"] > 0])

    def down(self, fdr_threshold: float = 0.05) -> list[str]:
        """Significant genes higher in the second tissue."""
        sig = self.significant(fdr_threshold)
        return list(sig.index[sig["logFC"] < 0])

    def to_dataframe(self) -> pd.DataFrame:
        """Results sorted by p-value, with -log10 p for plotting."""
        df = self.table.sort_values("PValue", kind="mergesort").copy()
        df["neg_log10_pval"] = -np.log10(df["PValue"].clip(lower=1e-300))
        return df

    @classmethod
    def from_table(
        cls,
        first: str,
        second: str,
        table: pd.DataFrame,
        fdr_method: str = "fdr_bh",
        metadata: Optional[dict[str, Any]] = None,
    ) -> "ContrastResult":
        """
        Build a result from a table of raw statistics.

        The FDR column is computed from PValue when it is absent.
        """
        missing = [c for c in REQUIRED_COLUMNS if c not in table.columns]
        if missing:
            raise InputError(f"Contrast table missing columns: {missing}")
        if not table.index.is_unique:
            raise InputError("Contrast table gene ids must be unique")

        table = table.copy()
        if "FDR" not in table.columns:
            table["FDR"] = FDRCorrector(method=fdr_method).correct(table["PValue"])
        for col in RESULT_COLUMNS:
            if col not in table.columns:
                table[col] = np.nan
        table = table[RESULT_COLUMNS]
        table.index.name = "gene_id"

        return cls(
            first=first,
            second=second,
            table=table,
            metadata={"fdr_method": fdr_method, **(metadata or {})},
        )

    def to_csv(self, path: Union[str, Path]) -> Path:
        """Write the full table; the file name carries the orientation."""
        path = Path(path)
        self.to_dataframe()[RESULT_COLUMNS].to_csv(path, index_label="gene_id")
        return path

    @classmethod
    def read_csv(
        cls,
        path: Union[str, Path],
        first: Optional[str] = None,
        second: Optional[str] = None,
    ) -> "ContrastResult":
        """
        Read a table written by to_csv.

        Tissue names default to the "contrast_<first>_vs_<second>.csv"
        file name.
        """
        path = Path(path)
        if first is None or second is None:
            stem = path.stem.removeprefix("contrast_")
            if "_vs_" not in stem:
                raise InputError(f"Cannot infer contrast orientation from {path.name}")
            first, second = stem.split("_vs_", 1)
        try:
            table = pd.read_csv(path, index_col=0)
        except (OSError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
            raise InputError(f"Cannot read contrast table {path}: {e}") from e
        table.index = table.index.astype(str)
        return cls.from_table(first, second, table)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.name}, n_genes={len(self.table)})"
