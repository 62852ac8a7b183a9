"""
CSV output writer for tabular exports.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import pandas as pd

from tissuede_pipeline.differential.contrasts import ContrastResult
from tissuede_pipeline.ingest.filtering import FilterStats


class CSVWriter:
    """Writes analysis tables to CSV files."""

    def __init__(
        self,
        output_dir: Path,
        include_index: bool = True,
        float_format: str = "%.6g",
    ):
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.include_index = include_index
        self.float_format = float_format

    def write_matrix(
        self,
        matrix: pd.DataFrame,
        filename: str,
        index_label: Optional[str] = None,
    ) -> Path:
        """Write matrix to CSV.

        Parameters
        ----------
        matrix : pd.DataFrame
            Matrix to write
        filename : str
            Output filename
        index_label : str, optional
            Label for index column

        Returns
        -------
        Path
            Path to written file
        """
        path = self.output_dir / filename
        matrix.to_csv(
            path,
            index=self.include_index,
            index_label=index_label,
            float_format=self.float_format,
        )
        return path

    def write_filter_stats(
        self,
        stats: dict[str, FilterStats],
        filename: str = "filter_stats.csv",
    ) -> Path:
        """Write per-sample filtering statistics of all tissues."""
        table = pd.concat(
            {tissue: s.table for tissue, s in stats.items()},
            names=["tissue", "sample_id"],
        )
        path = self.output_dir / filename
        table.to_csv(path, float_format=self.float_format)
        return path

    def write_contrast(self, contrast: ContrastResult) -> Path:
        """Write a full contrast table (contrast_<first>_vs_<second>.csv)."""
        return contrast.to_csv(self.output_dir / f"contrast_{contrast.name}.csv")

    def write_de_summary(
        self,
        summary: pd.DataFrame,
        filename: str = "de_summary.csv",
    ) -> Path:
        """Write DE set counts per tissue and direction."""
        return self.write_matrix(summary, filename, index_label="tissue")

    def write_norm_factors(
        self,
        norm_factors: pd.Series,
        lib_sizes: pd.Series,
        filename: str = "norm_factors.csv",
    ) -> Path:
        """Write library sizes and TMM factors."""
        df = pd.DataFrame({"lib_size": lib_sizes, "norm_factor": norm_factors})
        return self.write_matrix(df, filename, index_label="sample_id")
