"""
Short and mitochondrial gene filtering with per-sample read statistics.
"""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass

import numpy as np
import pandas as pd

from tissuede_pipeline.core.config import RunContext
from tissuede_pipeline.core.exceptions import InputError, UndefinedRatioWarning
from tissuede_pipeline.ingest.base import ExpressionDataset

logger = logging.getLogger(__name__)


STAT_COLUMNS = [
    "total_reads",
    "short_reads",
    "short_reads_pct",
    "mito_reads",
    "mito_reads_pct",
    "retained_reads",
]


@dataclass(frozen=True, eq=False)
class FilterStats:
    """Per-sample read accounting for the gene filters."""

    table: pd.DataFrame
    """Samples x STAT_COLUMNS."""

    n_short_genes: int = 0
    """Genes removed by the length filter."""

    n_mito_genes: int = 0
    """Genes removed by the mitochondrial filter (length filter passed)."""

    @property
    def total_reads(self) -> pd.Series:
        return self.table["total_reads"]

    @property
    def short_reads_pct(self) -> pd.Series:
        return self.table["short_reads_pct"]

    @property
    def mito_reads_pct(self) -> pd.Series:
        return self.table["mito_reads_pct"]

    def undefined_samples(self) -> list[str]:
        """Samples whose percentages are undefined (zero total reads)."""
        return list(self.table.index[self.table["total_reads"] == 0])


@dataclass(frozen=True, eq=False)
class FilterResult:
    """Filtered dataset plus the statistics that describe the filtering."""

    dataset: ExpressionDataset
    stats: FilterStats

    def __iter__(self):
        # allows `dataset, stats = filter_genes(...)`
        return iter((self.dataset, self.stats))


def percentage(numerator: pd.Series, denominator: pd.Series, label: str = "") -> pd.Series:
    """
    Percentage with NaN where the denominator is zero.

    Emits UndefinedRatioWarning naming the affected entries.
    """
    num = numerator.to_numpy(dtype=float)
    den = denominator.to_numpy(dtype=float)
    with np.errstate(divide="ignore", invalid="ignore"):
        pct = np.where(den > 0, 100.0 * num / den, np.nan)

    undefined = list(denominator.index[den == 0])
    if undefined:
        msg = f"{label or 'percentage'} undefined for zero-read samples: {undefined}"
        logger.warning(msg)
        warnings.warn(msg, UndefinedRatioWarning, stacklevel=2)

    return pd.Series(pct, index=numerator.index, name=numerator.name)


def filter_genes(
    dataset: ExpressionDataset,
    context: RunContext,
    length_col: str = "bp_length",
    chrom_col: str = "chromosome",
) -> FilterResult:
    """
    Remove short and mitochondrial genes and account for their reads.

    Mitochondrial reads are counted only over genes that pass the length
    filter, so every read is attributed to exactly one of short,
    mitochondrial or retained. Percentages are relative to the sample's
    total reads.

    Args:
        dataset: Column-restricted dataset of one tissue.
        context: Run context with the length threshold and mito contig.
        length_col: Gene metadata column with nucleotide length.
        chrom_col: Gene metadata column with the contig label.

    Returns:
        FilterResult with the filtered dataset and per-sample statistics.
    """
    for col in (length_col, chrom_col):
        if col not in dataset.genes.columns:
            raise InputError(
                f"Gene metadata column '{col}' missing "
                f"(available: {list(dataset.genes.columns)})"
            )

    lengths = pd.to_numeric(dataset.genes[length_col], errors="coerce")
    if lengths.isna().any():
        bad = list(lengths.index[lengths.isna()][:3])
        raise InputError(f"Missing or non-numeric gene lengths (e.g. {bad})")

    short_mask = (lengths < context.min_gene_length).to_numpy()
    chrom = dataset.genes[chrom_col].astype(str).to_numpy()
    mito_mask = (chrom == context.mito_contig) & ~short_mask
    keep_mask = ~(short_mask | mito_mask)

    counts = dataset.counts
    total = counts.sum(axis=0).rename("total_reads")
    short = counts.loc[short_mask].sum(axis=0).rename("short_reads")
    mito = counts.loc[mito_mask].sum(axis=0).rename("mito_reads")
    retained = counts.loc[keep_mask].sum(axis=0).rename("retained_reads")

    table = pd.DataFrame({
        "total_reads": total,
        "short_reads": short,
        "short_reads_pct": percentage(short, total, "short_reads_pct"),
        "mito_reads": mito,
        "mito_reads_pct": percentage(mito, total, "mito_reads_pct"),
        "retained_reads": retained,
    })[STAT_COLUMNS]
    table.index.name = "sample_id"

    stats = FilterStats(
        table=table,
        n_short_genes=int(short_mask.sum()),
        n_mito_genes=int(mito_mask.sum()),
    )
    filtered = dataset.subset_genes(keep_mask)

    logger.info(
        "Removed %d short (<%d bp) and %d %s genes; %d of %d genes retained",
        stats.n_short_genes, context.min_gene_length, stats.n_mito_genes,
        context.mito_contig, filtered.n_genes, dataset.n_genes,
    )
    return FilterResult(dataset=filtered, stats=stats)
