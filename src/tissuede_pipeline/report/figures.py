"""
Static QC and contrast figures.

- Filtering statistics per sample (short / mitochondrial read share)
- log-CPM densities before and after TMM scaling
- Mean-difference plot per contrast
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Mapping, Optional

import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from tissuede_pipeline.differential.contrasts import ContrastResult
from tissuede_pipeline.ingest.filtering import FilterStats
from tissuede_pipeline.normalization.tmm import NormalizationResult

logger = logging.getLogger(__name__)


STYLE = {
    'font.family': 'sans-serif',
    'font.sans-serif': ['DejaVu Sans', 'Arial', 'Helvetica'],
    'font.size': 10,
    'axes.titlesize': 12,
    'axes.labelsize': 11,
    'figure.dpi': 150,
    'savefig.dpi': 300,
    'savefig.bbox': 'tight',
    'savefig.facecolor': 'white',
    'axes.spines.top': False,
    'axes.spines.right': False,
}

COLORS = {
    'up': '#DC2626',       # red
    'down': '#2563EB',     # blue
    'neutral': '#9CA3AF',  # gray
    'short': '#D97706',    # amber
    'mito': '#059669',     # emerald
}

TISSUE_PALETTE = ['#3B82F6', '#EF4444', '#10B981', '#8B5CF6', '#F59E0B']


def _save(fig, path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(path)
    plt.close(fig)
    logger.debug("Saved figure %s", path)
    return path


def plot_filter_stats(stats: Mapping[str, FilterStats], path: Path) -> Path:
    """Short and mitochondrial read percentages per sample, grouped by tissue."""
    table = pd.concat({t: s.table for t, s in stats.items()}, names=["tissue", "sample_id"])
    labels = [f"{t}:{s}" for t, s in table.index]
    x = np.arange(len(table))

    with plt.rc_context(STYLE):
        fig, ax = plt.subplots(figsize=(max(6, 0.35 * len(table)), 4))
        ax.bar(x - 0.2, table["short_reads_pct"], width=0.4,
               color=COLORS['short'], label="short genes")
        ax.bar(x + 0.2, table["mito_reads_pct"], width=0.4,
               color=COLORS['mito'], label="mitochondrial genes")
        ax.set_xticks(x)
        ax.set_xticklabels(labels, rotation=90, fontsize=7)
        ax.set_ylabel("% of total reads")
        ax.set_title("Reads removed by gene filters")
        ax.legend(frameon=False)
        return _save(fig, path)


def plot_log_cpm_density(
    normalized: NormalizationResult,
    path: Path,
    bins: int = 60,
) -> Path:
    """Per-sample log-CPM density, raw vs TMM-scaled."""
    groups = normalized.dataset.groups.astype(str)
    tissues = list(dict.fromkeys(groups))
    colors = {t: TISSUE_PALETTE[i % len(TISSUE_PALETTE)] for i, t in enumerate(tissues)}

    with plt.rc_context(STYLE):
        fig, axes = plt.subplots(1, 2, figsize=(11, 4), sharey=True)
        panels = [
            (axes[0], normalized.log_cpm_raw, "log-CPM (raw library sizes)"),
            (axes[1], normalized.log_cpm_tmm, "log-CPM (TMM)"),
        ]
        values = np.concatenate([normalized.log_cpm_raw.values.ravel(),
                                 normalized.log_cpm_tmm.values.ravel()])
        edges = np.linspace(np.nanmin(values), np.nanmax(values), bins + 1) if values.size else bins
        for ax, matrix, title in panels:
            for sample in matrix.columns:
                density, bin_edges = np.histogram(matrix[sample].dropna(), bins=edges, density=True)
                centers = 0.5 * (bin_edges[:-1] + bin_edges[1:])
                ax.plot(centers, density, color=colors[groups[sample]], alpha=0.6, lw=0.8)
            ax.set_title(title)
            ax.set_xlabel("log2 CPM")
        axes[0].set_ylabel("Density")
        for tissue in tissues:
            axes[1].plot([], [], color=colors[tissue], label=tissue)
        axes[1].legend(frameon=False)
        return _save(fig, path)


def plot_mean_difference(
    contrast: ContrastResult,
    path: Path,
    fdr_threshold: float = 0.05,
) -> Path:
    """logFC against average log-CPM, significant genes highlighted."""
    table = contrast.table
    sig = table["FDR"] < fdr_threshold
    up = sig & (table["logFC"] > 0)
    down = sig & (table["logFC"] < 0)

    with plt.rc_context(STYLE):
        fig, ax = plt.subplots(figsize=(6, 5))
        ax.scatter(table.loc[~sig, "logCPM"], table.loc[~sig, "logFC"],
                   s=3, color=COLORS['neutral'], alpha=0.5, rasterized=True)
        ax.scatter(table.loc[up, "logCPM"], table.loc[up, "logFC"],
                   s=4, color=COLORS['up'], label=f"higher in {contrast.first} ({int(up.sum())})")
        ax.scatter(table.loc[down, "logCPM"], table.loc[down, "logFC"],
                   s=4, color=COLORS['down'], label=f"higher in {contrast.second} ({int(down.sum())})")
        ax.axhline(0, color='black', lw=0.6)
        ax.set_xlabel("Average log2 CPM")
        ax.set_ylabel(f"log2 FC ({contrast.first} / {contrast.second})")
        ax.set_title(f"{contrast.first} vs {contrast.second} (FDR < {fdr_threshold:g})")
        ax.legend(frameon=False, markerscale=3)
        return _save(fig, path)


def render_figures(
    output_dir: Path,
    filter_stats: Optional[Mapping[str, FilterStats]] = None,
    normalized: Optional[NormalizationResult] = None,
    contrasts: Optional[Mapping[str, ContrastResult]] = None,
    fdr_threshold: float = 0.05,
) -> list[Path]:
    """Render every figure whose inputs are available."""
    output_dir = Path(output_dir)
    paths = []
    if filter_stats:
        paths.append(plot_filter_stats(filter_stats, output_dir / "filter_stats.png"))
    if normalized is not None:
        paths.append(plot_log_cpm_density(normalized, output_dir / "log_cpm_density.png"))
    for name, contrast in (contrasts or {}).items():
        paths.append(plot_mean_difference(contrast, output_dir / f"md_{name}.png", fdr_threshold))
    logger.info("Rendered %d figures in %s", len(paths), output_dir)
    return paths
