"""
Combine per-tissue datasets into one matrix with a tissue label per sample.
"""

from __future__ import annotations

import logging
from typing import Mapping, Optional, Sequence

import pandas as pd

from tissuede_pipeline.core.exceptions import SchemaMismatchError
from tissuede_pipeline.ingest.base import TISSUE_COL, ExpressionDataset

logger = logging.getLogger(__name__)


def merge_datasets(
    datasets: Mapping[str, ExpressionDataset],
    tissue_order: Optional[Sequence[str]] = None,
) -> ExpressionDataset:
    """
    Concatenate tissue datasets column-wise.

    All inputs must share the same gene identifiers and have disjoint
    sample identifiers. Gene row order follows the first input.

    Args:
        datasets: Tissue label -> dataset.
        tissue_order: Category order of the tissue label (defaults to the
            mapping order).

    Returns:
        Merged ExpressionDataset; its sample metadata carries a categorical
        'tissue' column.

    Raises:
        SchemaMismatchError: If gene sets differ or sample ids overlap.
    """
    if not datasets:
        raise SchemaMismatchError("No datasets to merge")

    items = list(datasets.items())
    ref_name, ref = items[0]
    ref_genes = ref.counts.index
    ref_set = set(ref_genes)

    seen_samples: dict[str, str] = {}
    for name, ds in items:
        other = set(ds.counts.index)
        if other != ref_set:
            raise SchemaMismatchError(
                f"Gene sets differ between '{ref_name}' and '{name}': "
                f"{len(ref_set - other)} only in '{ref_name}', "
                f"{len(other - ref_set)} only in '{name}'"
            )
        for sample in ds.sample_ids:
            if sample in seen_samples:
                raise SchemaMismatchError(
                    f"Sample '{sample}' present in both '{seen_samples[sample]}' and '{name}'"
                )
            seen_samples[sample] = name

    counts = pd.concat([ds.counts.loc[ref_genes] for _, ds in items], axis=1)

    sample_frames = []
    for name, ds in items:
        meta = ds.samples.copy()
        meta[TISSUE_COL] = name
        sample_frames.append(meta)
    samples = pd.concat(sample_frames, axis=0)

    categories = list(tissue_order) if tissue_order is not None else [n for n, _ in items]
    missing = set(samples[TISSUE_COL]) - set(categories)
    if missing:
        raise SchemaMismatchError(f"Tissues not in tissue order: {sorted(missing)}")
    samples[TISSUE_COL] = pd.Categorical(samples[TISSUE_COL], categories=categories)

    merged = ExpressionDataset(
        counts=counts,
        genes=ref.genes,
        samples=samples,
        source_info={"merged_from": {name: ds.source_info for name, ds in items}},
    )

    logger.info(
        "Merged %d datasets: %d genes x %d samples (%s)",
        len(items), merged.n_genes, merged.n_samples,
        ", ".join(f"{name}={ds.n_samples}" for name, ds in items),
    )
    return merged
