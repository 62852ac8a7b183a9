"""
Data ingestion layer.

Loading per-tissue H5AD files, gene filtering with read statistics,
and merging the tissues into one count matrix.
"""

from tissuede_pipeline.ingest.base import ExpressionDataset, TISSUE_COL
from tissuede_pipeline.ingest.local_h5ad import LocalH5ADSource, load_dataset
from tissuede_pipeline.ingest.filtering import (
    FilterResult,
    FilterStats,
    filter_genes,
    percentage,
)
from tissuede_pipeline.ingest.merge import merge_datasets

__all__ = [
    "ExpressionDataset",
    "TISSUE_COL",
    "LocalH5ADSource",
    "load_dataset",
    "FilterResult",
    "FilterStats",
    "filter_genes",
    "percentage",
    "merge_datasets",
]
