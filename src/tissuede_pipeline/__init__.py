"""
tissuede-pipeline - Differential Expression Between Three Tissues from Bulk RNA-seq.

This package provides:
- Loading of per-tissue count matrices (H5AD) with sample selection
- Short / mitochondrial gene filtering with per-sample read statistics
- TMM normalization and quasi-likelihood NB model fitting (edgeR via rpy2)
- Derivation of tissue-level up/down gene sets from pairwise contrasts
- Export to a multi-sheet workbook, symbol lists, CSV tables and figures

Example:
    >>> from tissuede_pipeline import Pipeline, Config
    >>>
    >>> config = Config.from_yaml("config/analysis.yaml")
    >>> result = Pipeline(config).run()
    >>> result.de_sets["brain"]["up"].genes
"""

__version__ = "0.1.0"

# Core infrastructure
from tissuede_pipeline.core.config import Config, RunContext, TissueInput
from tissuede_pipeline.core.exceptions import (
    InputError,
    PipelineError,
    SchemaMismatchError,
)

# Subpackages are imported as needed:
#   from tissuede_pipeline.ingest import load_dataset, filter_genes
#   from tissuede_pipeline.differential import derive_de_sets
#   from tissuede_pipeline.export import write_de_workbook

# Main Pipeline class
from tissuede_pipeline.pipeline import Pipeline, PipelineResult, create_pipeline

__all__ = [
    # Version
    "__version__",
    # Pipeline
    "Pipeline",
    "PipelineResult",
    "create_pipeline",
    # Core
    "Config",
    "RunContext",
    "TissueInput",
    "PipelineError",
    "InputError",
    "SchemaMismatchError",
]
