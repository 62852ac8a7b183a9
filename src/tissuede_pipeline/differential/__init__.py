"""
Differential expression pipeline.

Quasi-likelihood model fitting (edgeR), FDR correction, and derivation
of tissue-level DE gene sets.
"""

from tissuede_pipeline.differential.fdr import FDRCorrector
from tissuede_pipeline.differential.contrasts import (
    ContrastResult,
    contrast_name,
)
from tissuede_pipeline.differential.edger import (
    EdgeRQLFitter,
    FitResult,
    ModelFitter,
    contrast_matrix,
    design_matrix,
)
from tissuede_pipeline.differential.de_sets import (
    DEGeneSet,
    SIGN_TABLE,
    derive_de_sets,
    split_contrast,
    summarize_de_sets,
)

__all__ = [
    # FDR
    "FDRCorrector",
    # Contrasts
    "ContrastResult",
    "contrast_name",
    # Model
    "EdgeRQLFitter",
    "FitResult",
    "ModelFitter",
    "contrast_matrix",
    "design_matrix",
    # DE sets
    "DEGeneSet",
    "SIGN_TABLE",
    "derive_de_sets",
    "split_contrast",
    "summarize_de_sets",
]
