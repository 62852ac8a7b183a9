"""
Between-sample normalization (edgeR TMM).
"""

from tissuede_pipeline.normalization.tmm import (
    NormalizationResult,
    TMMNormalizer,
)

__all__ = [
    "NormalizationResult",
    "TMMNormalizer",
]
