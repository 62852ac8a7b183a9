"""Pytest configuration and fixtures."""

import pytest
import numpy as np
import pandas as pd
from pathlib import Path
import tempfile


TISSUES = ("brain", "heart", "colon")


@pytest.fixture
def gene_metadata():
    """Gene metadata covering every filter case.

    - ENSG02 (150 bp) and ENSG07 (199 bp) are short
    - ENSG03 is short and on chrM (counted as short only)
    - ENSG04 is a full-length chrM gene
    - ENSG08 is exactly 200 bp (kept)
    - ENSG06 has no symbol, ENSG05 has two
    """
    return pd.DataFrame({
        "bp_length": [1500, 150, 100, 900, 2000, 300, 199, 200, 5000, 800],
        "chromosome": ["chr1", "chr1", "chrM", "chrM", "chr2",
                       "chr3", "chrX", "chr5", "chr7", "chr9"],
        "symbol": ["GENE1", "SHORT1", "MT-SHORT", "MT-CO1", "GENE5;ALIAS5",
                   "", "SHORT7", "GENE8", "GENE9", "GENE10"],
    }, index=pd.Index([
        "ENSG01.1", "ENSG02.3", "ENSG03.1", "ENSG04.2", "ENSG05.1",
        "ENSG06.1", "ENSG07.1", "ENSG08.1", "ENSG09.4", "ENSG10.1",
    ], name="gene_id"))


@pytest.fixture
def make_counts(gene_metadata):
    """Factory for a genes x samples count frame."""
    def _make(prefix="S", n_samples=3, seed=0, zero_sample=False):
        rng = np.random.default_rng(seed)
        counts = rng.poisson(50, size=(len(gene_metadata), n_samples)).astype(np.int64)
        if zero_sample:
            counts[:, -1] = 0
        return pd.DataFrame(
            counts,
            index=gene_metadata.index,
            columns=pd.Index([f"{prefix}{i + 1}" for i in range(n_samples)], name="sample_id"),
        )
    return _make


@pytest.fixture
def make_dataset(gene_metadata, make_counts):
    """Factory for an in-memory ExpressionDataset."""
    from tissuede_pipeline.ingest.base import ExpressionDataset

    def _make(prefix="S", n_samples=3, seed=0, zero_sample=False):
        counts = make_counts(prefix, n_samples, seed, zero_sample)
        return ExpressionDataset(
            counts=counts,
            genes=gene_metadata.copy(),
            samples=pd.DataFrame(index=counts.columns),
        )
    return _make


@pytest.fixture
def tissue_datasets(make_dataset):
    """One toy dataset per tissue with disjoint sample ids."""
    return {
        tissue: make_dataset(prefix=f"{tissue}_", n_samples=3, seed=i)
        for i, tissue in enumerate(TISSUES)
    }


@pytest.fixture
def temp_dir():
    """Create temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def make_h5ad(temp_dir, gene_metadata, make_counts):
    """Factory writing a toy H5AD file (samples x genes)."""
    try:
        import anndata as ad
    except ImportError:
        pytest.skip("anndata not installed")

    def _make(name="brain", n_samples=4, seed=0, zero_sample=False):
        counts = make_counts(f"{name}_", n_samples, seed, zero_sample)
        obs = pd.DataFrame(
            {"donor": [f"D{i % 2}" for i in range(n_samples)]},
            index=[str(s) for s in counts.columns],
        )
        var = gene_metadata.copy()
        var.index = [str(g) for g in var.index]
        adata = ad.AnnData(X=counts.to_numpy().T, obs=obs, var=var)

        path = temp_dir / f"{name}.h5ad"
        adata.write_h5ad(path)
        return path
    return _make


@pytest.fixture
def context():
    """Default run context (brain, heart, colon)."""
    from tissuede_pipeline.core.config import RunContext
    return RunContext()


@pytest.fixture
def make_contrast():
    """Factory for a ContrastResult from {gene: (logFC, FDR)}."""
    from tissuede_pipeline.differential.contrasts import ContrastResult

    def _make(first, second, values):
        genes = list(values)
        table = pd.DataFrame({
            "logFC": [values[g][0] for g in genes],
            "logCPM": [5.0] * len(genes),
            "F": [10.0] * len(genes),
            "PValue": [values[g][1] / 10 for g in genes],
            "FDR": [values[g][1] for g in genes],
        }, index=pd.Index(genes, name="gene_id"))
        return ContrastResult.from_table(first, second, table)
    return _make


class StubNormalizer:
    """Library-size log-CPM with unit scaling factors."""

    def normalize(self, dataset):
        from tissuede_pipeline.normalization.tmm import NormalizationResult

        lib = dataset.library_sizes.to_numpy(dtype=float)
        with np.errstate(divide="ignore", invalid="ignore"):
            cpm = (dataset.counts.to_numpy(dtype=float) + 0.5) / (lib + 1.0) * 1e6
        log_cpm = pd.DataFrame(np.log2(cpm), index=dataset.counts.index, columns=dataset.counts.columns)
        return NormalizationResult(
            dataset=dataset,
            norm_factors=pd.Series(1.0, index=dataset.counts.columns, name="norm_factors"),
            log_cpm_raw=log_cpm,
            log_cpm_tmm=log_cpm,
        )


class StubFitter:
    """Fixed contrast tables: one marker gene per tissue, everything else null."""

    # gene -> logFC in (A-B, A-C, B-C)
    MARKERS = {
        "ENSG01.1": (3.0, 3.0, 0.1),     # brain up
        "ENSG06.1": (2.5, 2.0, -0.2),    # brain up, no symbol
        "ENSG05.1": (-3.0, 0.2, 3.0),    # heart up
        "ENSG09.4": (0.1, -3.0, -3.0),   # colon up
    }

    def fit(self, normalized, context):
        from tissuede_pipeline.differential.contrasts import ContrastResult
        from tissuede_pipeline.differential.edger import FitResult, design_matrix

        genes = normalized.dataset.gene_ids
        results = {}
        for i, (first, second) in enumerate(context.contrasts):
            logfc = [self.MARKERS.get(g, (0.1, 0.1, 0.1))[i] for g in genes]
            pvals = [1e-6 if abs(v) > 1 else 0.8 for v in logfc]
            table = pd.DataFrame(
                {"logFC": logfc, "logCPM": 5.0, "F": 1.0, "PValue": pvals},
                index=pd.Index(genes, name="gene_id"),
            )
            result = ContrastResult.from_table(first, second, table)
            results[result.name] = result
        return FitResult(
            contrasts=results,
            design=design_matrix(normalized.dataset.groups, context.tissues),
            common_dispersion=0.05,
        )


@pytest.fixture
def stub_normalizer():
    return StubNormalizer()


@pytest.fixture
def stub_fitter():
    return StubFitter()
