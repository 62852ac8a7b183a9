"""
Main Pipeline class that orchestrates the analysis stages.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional
import logging
import warnings

import pandas as pd

from tissuede_pipeline.core.config import Config, ExportConfig, FilterConfig, ModelConfig, RunContext, TissueInput
from tissuede_pipeline.core.exceptions import IdentifierMappingWarning, InputError, UndefinedRatioWarning
from tissuede_pipeline.differential.de_sets import DEGeneSet, derive_de_sets, summarize_de_sets
from tissuede_pipeline.differential.edger import EdgeRQLFitter, FitResult, ModelFitter
from tissuede_pipeline.export.gene_mapping import SymbolMapper
from tissuede_pipeline.ingest.base import ExpressionDataset
from tissuede_pipeline.ingest.filtering import FilterStats, filter_genes
from tissuede_pipeline.ingest.local_h5ad import load_dataset
from tissuede_pipeline.ingest.merge import merge_datasets
from tissuede_pipeline.normalization.tmm import NormalizationResult, TMMNormalizer

logger = logging.getLogger(__name__)

# Warnings collected into PipelineResult.issues
ISSUE_CATEGORIES = (UndefinedRatioWarning, IdentifierMappingWarning)


@dataclass
class PipelineResult:
    """Result of pipeline execution."""

    filter_stats: dict[str, FilterStats] = field(default_factory=dict)
    merged: Optional[ExpressionDataset] = None
    normalization: Optional[NormalizationResult] = None
    fit: Optional[FitResult] = None
    de_sets: dict[str, dict[str, DEGeneSet]] = field(default_factory=dict)
    summary: Optional[pd.DataFrame] = None
    output_paths: dict[str, Path] = field(default_factory=dict)
    issues: list[str] = field(default_factory=list)
    metrics: dict[str, Any] = field(default_factory=dict)


class Pipeline:
    """Three-tissue differential expression pipeline.

    Stages: load/filter each tissue, merge, TMM normalization, QL model
    fit, DE-set derivation, export. All outputs are written after the
    last computing stage, so a fatal error leaves no partial results.

    Example:
        >>> from tissuede_pipeline import Pipeline, Config
        >>>
        >>> config = Config.from_yaml("config/analysis.yaml")
        >>> pipeline = Pipeline(config)
        >>> result = pipeline.run()
        >>> result.summary
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        output_dir: Optional[Path] = None,
        normalizer: Optional[TMMNormalizer] = None,
        fitter: Optional[ModelFitter] = None,
    ):
        """Initialize pipeline.

        Parameters
        ----------
        config : Config, optional
            Analysis configuration
        output_dir : Path, optional
            Output directory (overrides config.output_dir)
        normalizer : TMMNormalizer, optional
            Normalization stage (edgeR TMM by default)
        fitter : ModelFitter, optional
            Model fitting stage (edgeR quasi-likelihood by default)
        """
        self.config = config or Config()
        self.output_dir = Path(output_dir) if output_dir else self.config.output_dir
        self.normalizer = normalizer or TMMNormalizer(
            filter_by_expr=self.config.model.filter_by_expr,
        )
        self.fitter = fitter or EdgeRQLFitter(
            robust=self.config.model.robust,
            fdr_method=self.config.model.fdr_method,
        )

    def run(
        self,
        datasets: Optional[Mapping[str, ExpressionDataset]] = None,
    ) -> PipelineResult:
        """Run the full analysis.

        Parameters
        ----------
        datasets : Mapping[str, ExpressionDataset], optional
            Pre-loaded tissue datasets. When omitted, every tissue is
            read from its configured H5AD path.

        Returns
        -------
        PipelineResult
            Intermediate artifacts, DE sets and written output paths
        """
        self.config.validate(require_paths=datasets is None)
        context = self.config.run_context()
        result = PipelineResult()

        caught: list[warnings.WarningMessage] = []
        try:
            with warnings.catch_warnings(record=True) as caught:
                for category in ISSUE_CATEGORIES:
                    warnings.simplefilter("always", category)
                self._run_stages(result, context, datasets)
        except Exception as e:
            logger.error(f"Pipeline failed: {e}")
            raise
        finally:
            self._collect_issues(caught, result)

        result.metrics = self._compute_metrics(result)
        return result

    def _run_stages(
        self,
        result: PipelineResult,
        context: RunContext,
        datasets: Optional[Mapping[str, ExpressionDataset]],
    ) -> None:
        total_steps = 6 if self.output_dir else 5

        self._update_progress(1, total_steps, "Loading and filtering tissues...")
        filtered = {}
        for tissue in self.config.tissues:
            dataset = self._load_tissue(tissue, datasets)
            filter_result = filter_genes(
                dataset,
                context,
                length_col=self.config.filtering.length_col,
                chrom_col=self.config.filtering.chrom_col,
            )
            filtered[tissue.name] = filter_result.dataset
            result.filter_stats[tissue.name] = filter_result.stats

        self._update_progress(2, total_steps, "Merging tissues...")
        result.merged = merge_datasets(filtered, tissue_order=context.tissues)

        self._update_progress(3, total_steps, "Normalizing (TMM)...")
        result.normalization = self.normalizer.normalize(result.merged)

        self._update_progress(4, total_steps, "Fitting quasi-likelihood model...")
        result.fit = self.fitter.fit(result.normalization, context)

        self._update_progress(5, total_steps, "Deriving DE gene sets...")
        result.de_sets = derive_de_sets(result.fit.contrasts, context)
        result.summary = summarize_de_sets(result.de_sets)

        if self.output_dir:
            self._update_progress(6, total_steps, f"Exporting to {self.output_dir}...")
            result.output_paths = self._export(result, context)

    def _load_tissue(
        self,
        tissue: TissueInput,
        datasets: Optional[Mapping[str, ExpressionDataset]],
    ) -> ExpressionDataset:
        """Get the column-restricted dataset of one tissue."""
        if datasets is not None:
            if tissue.name not in datasets:
                raise InputError(f"No dataset provided for tissue '{tissue.name}'")
            return datasets[tissue.name].select_samples(tissue.samples)
        return load_dataset(tissue.path, samples=tissue.samples, layer=self.config.filtering.layer)

    def _symbol_mapper(self, genes: pd.DataFrame) -> SymbolMapper:
        export = self.config.export
        if export.symbol_table is not None:
            return SymbolMapper.from_tsv(export.symbol_table)
        return SymbolMapper.from_gene_metadata(genes, export.symbol_col)

    def _export(self, result: PipelineResult, context: RunContext) -> dict[str, Path]:
        """Write workbook, symbol lists, tables and figures."""
        from tissuede_pipeline.export import (
            CSVWriter,
            de_workbook_sheets,
            write_de_workbook,
            write_symbol_lists,
        )

        export = self.config.export
        output_dir = Path(self.output_dir)
        mapper = self._symbol_mapper(result.merged.genes)
        paths: dict[str, Path] = {}

        sheets = de_workbook_sheets(result.fit.contrasts, result.de_sets, context)
        paths["workbook"] = write_de_workbook(output_dir / export.workbook_name, sheets)

        for tissue, path in write_symbol_lists(result.de_sets, mapper, output_dir).items():
            paths[f"symbols_{tissue}"] = path

        if export.write_csv:
            writer = CSVWriter(output_dir)
            paths["filter_stats"] = writer.write_filter_stats(result.filter_stats)
            for name, contrast in result.fit.contrasts.items():
                paths[f"contrast_{name}"] = writer.write_contrast(contrast)
            paths["de_summary"] = writer.write_de_summary(result.summary)
            paths["norm_factors"] = writer.write_norm_factors(
                result.normalization.norm_factors,
                result.normalization.lib_sizes,
            )

        if export.write_figures:
            from tissuede_pipeline.report import render_figures

            figures = render_figures(
                output_dir / "figures",
                filter_stats=result.filter_stats,
                normalized=result.normalization,
                contrasts=result.fit.contrasts,
                fdr_threshold=context.fdr_threshold,
            )
            for path in figures:
                paths[f"figure_{path.stem}"] = path

        return paths

    def _collect_issues(self, caught: list, result: PipelineResult) -> None:
        """Record non-fatal warnings and pass the others on."""
        for w in caught:
            if issubclass(w.category, ISSUE_CATEGORIES):
                result.issues.append(str(w.message))
            else:
                warnings.warn_explicit(w.message, w.category, w.filename, w.lineno)

    def _compute_metrics(self, result: PipelineResult) -> dict:
        """Compute summary metrics from results."""
        metrics = {}

        if result.merged is not None:
            metrics["n_genes_merged"] = result.merged.n_genes
            metrics["n_samples"] = result.merged.n_samples

        if result.normalization is not None:
            metrics["n_genes_tested"] = result.normalization.dataset.n_genes

        if result.fit is not None and result.fit.common_dispersion is not None:
            metrics["common_dispersion"] = result.fit.common_dispersion

        for tissue, by_dir in result.de_sets.items():
            for direction, gene_set in by_dir.items():
                metrics[f"n_{tissue}_{direction}"] = len(gene_set)

        metrics["n_issues"] = len(result.issues)
        return metrics

    def _update_progress(self, step: int, total: int, message: str) -> None:
        logger.info(f"[{step}/{total}] {message}")


def create_pipeline(
    tissue_paths: Optional[Mapping[str, str]] = None,
    output_dir: Optional[str] = None,
    min_gene_length: int = 200,
    fdr_threshold: float = 0.05,
    **kwargs,
) -> Pipeline:
    """Factory function to create pipeline with common settings.

    Parameters
    ----------
    tissue_paths : Mapping[str, str], optional
        Tissue label -> H5AD path, in contrast order
    output_dir : str, optional
        Output directory
    min_gene_length : int
        Length filter threshold in bases
    fdr_threshold : float
        Significance threshold on FDR
    **kwargs
        Passed to Pipeline (normalizer, fitter)

    Returns
    -------
    Pipeline
        Configured pipeline instance
    """
    config = Config(
        filtering=FilterConfig(min_gene_length=min_gene_length),
        model=ModelConfig(fdr_threshold=fdr_threshold),
        export=ExportConfig(),
        output_dir=Path(output_dir) if output_dir else None,
    )
    if tissue_paths is not None:
        config.tissues = [TissueInput(name=name, path=path) for name, path in tissue_paths.items()]

    return Pipeline(config=config, **kwargs)
