"""
Analysis configuration management.

Provides dataclass-based configuration with validation and YAML/dict
serialization, plus the immutable RunContext threaded through the stages.
"""

from __future__ import annotations

from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Any, Optional, Union
import os

import yaml

from tissuede_pipeline.core.exceptions import InputError


DEFAULT_TISSUES = ("brain", "heart", "colon")

SampleSelector = Union[str, int]


@dataclass
class TissueInput:
    """One input dataset and the samples to keep from it."""

    name: str
    """Tissue label used for grouping (e.g. "brain")."""

    path: Optional[Path] = None
    """Path to the H5AD file for this tissue."""

    samples: Optional[list[SampleSelector]] = None
    """Sample names or integer positions to keep (None keeps all)."""

    def __post_init__(self):
        if self.path is not None:
            self.path = Path(self.path)


@dataclass
class FilterConfig:
    """Gene filtering configuration."""

    min_gene_length: int = 200
    """Genes shorter than this many bases are removed."""

    mito_contig: str = "chrM"
    """Contig label of mitochondrial genes."""

    length_col: str = "bp_length"
    """Gene metadata column holding the nucleotide length."""

    chrom_col: str = "chromosome"
    """Gene metadata column holding the chromosome/contig label."""

    layer: Optional[str] = None
    """AnnData layer holding raw counts (None for .X)."""


@dataclass
class ModelConfig:
    """Normalization and model fitting configuration."""

    fdr_threshold: float = 0.05
    """Genes with FDR strictly below this are significant."""

    fdr_method: str = "fdr_bh"
    """Multiple-testing correction method (statsmodels name)."""

    filter_by_expr: bool = True
    """Drop lowly expressed genes with edgeR filterByExpr before fitting."""

    robust: bool = True
    """Use robust hyperparameter estimation in glmQLFit."""


@dataclass
class ExportConfig:
    """Output configuration."""

    workbook_name: str = "de_genes.xlsx"
    """File name of the multi-sheet DE workbook."""

    symbol_col: str = "symbol"
    """Gene metadata column with gene symbols."""

    symbol_table: Optional[Path] = None
    """Optional TSV (gene_id, symbol) used instead of the metadata column."""

    write_csv: bool = True
    """Also write filtering statistics and contrast tables as CSV."""

    write_figures: bool = True
    """Render QC and contrast figures."""

    def __post_init__(self):
        if self.symbol_table is not None:
            self.symbol_table = Path(self.symbol_table)


@dataclass(frozen=True)
class RunContext:
    """
    Immutable parameters shared by every stage of one run.

    The tissue order defines the contrast orientation: with tissues
    (A, B, C) the contrasts are A-B, A-C and B-C.
    """

    tissues: tuple[str, str, str] = DEFAULT_TISSUES
    min_gene_length: int = 200
    fdr_threshold: float = 0.05
    mito_contig: str = "chrM"

    def __post_init__(self):
        if len(self.tissues) != 3:
            raise InputError(f"Exactly three tissues are required, got {len(self.tissues)}")
        if len(set(self.tissues)) != 3:
            raise InputError(f"Tissue labels must be distinct: {self.tissues}")

    @property
    def contrasts(self) -> tuple[tuple[str, str], ...]:
        """Pairwise contrasts as (first, second) tissue pairs."""
        a, b, c = self.tissues
        return ((a, b), (a, c), (b, c))


@dataclass
class Config:
    """
    Main analysis configuration.

    Example:
        >>> config = Config.from_yaml("config/analysis.yaml")
        >>> pipeline = Pipeline(config)
        >>> result = pipeline.run()
    """

    tissues: list[TissueInput] = field(
        default_factory=lambda: [TissueInput(name=t) for t in DEFAULT_TISSUES]
    )
    """The three tissue inputs, in contrast order."""

    filtering: FilterConfig = field(default_factory=FilterConfig)
    model: ModelConfig = field(default_factory=ModelConfig)
    export: ExportConfig = field(default_factory=ExportConfig)

    output_dir: Optional[Path] = None
    """Base output directory."""

    verbose: bool = False
    """Enable verbose logging."""

    log_file: Optional[Path] = None
    """Log file path."""

    def __post_init__(self):
        if self.output_dir is not None:
            self.output_dir = Path(self.output_dir)
        if self.log_file is not None:
            self.log_file = Path(self.log_file)

    @property
    def tissue_names(self) -> tuple[str, ...]:
        return tuple(t.name for t in self.tissues)

    def run_context(self) -> RunContext:
        """Build the immutable context for a run."""
        return RunContext(
            tissues=self.tissue_names,
            min_gene_length=self.filtering.min_gene_length,
            fdr_threshold=self.model.fdr_threshold,
            mito_contig=self.filtering.mito_contig,
        )

    def validate(self, require_paths: bool = True) -> None:
        """
        Check the configuration before a run.

        Args:
            require_paths: Require an input path for every tissue.

        Raises:
            InputError: If the configuration is unusable.
        """
        self.run_context()
        if not 0 < self.model.fdr_threshold <= 1:
            raise InputError(f"fdr_threshold must be in (0, 1]: {self.model.fdr_threshold}")
        if self.filtering.min_gene_length < 0:
            raise InputError(
                f"min_gene_length must be non-negative: {self.filtering.min_gene_length}"
            )
        if require_paths:
            missing = [t.name for t in self.tissues if t.path is None]
            if missing:
                raise InputError(f"No input path configured for: {', '.join(missing)}")

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        d = asdict(self)
        return _stringify_paths(d)

    def to_yaml(self, path: Path | str) -> None:
        """Save configuration to YAML file."""
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(self.to_dict(), f, sort_keys=False)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "Config":
        """
        Create from dictionary.

        Raises:
            InputError: If a section has the wrong shape or an unknown key.
        """
        d = {k: v for k, v in d.items() if v is not None}

        tissues = d.get("tissues", [])
        if not isinstance(tissues, list):
            raise InputError("Invalid configuration: 'tissues' must be a list")
        for i, t in enumerate(tissues):
            if not isinstance(t, (dict, TissueInput)):
                raise InputError(
                    f"Invalid configuration: tissues[{i}] must be a mapping "
                    f"with 'name' and 'path', got {t!r}"
                )
        sections = {"filtering": FilterConfig, "model": ModelConfig, "export": ExportConfig}
        for key, section_cls in sections.items():
            if key in d and not isinstance(d[key], (dict, section_cls)):
                raise InputError(f"Invalid configuration: '{key}' must be a mapping")

        try:
            if "tissues" in d:
                d["tissues"] = [
                    t if isinstance(t, TissueInput) else TissueInput(**t)
                    for t in tissues
                ]
            for key, section_cls in sections.items():
                if isinstance(d.get(key), dict):
                    d[key] = section_cls(**d[key])
            return cls(**d)
        except TypeError as e:
            raise InputError(f"Invalid configuration: {e}") from e

    @classmethod
    def from_yaml(cls, path: Path | str) -> "Config":
        """Load configuration from YAML file."""
        path = Path(path)
        if not path.exists():
            raise InputError(f"Config file not found: {path}")
        with open(path, encoding="utf-8") as f:
            try:
                d = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise InputError(f"Malformed config file {path}: {e}") from e
        if not isinstance(d, dict):
            raise InputError(f"Config file {path} must contain a mapping")

        # Relative paths are resolved against the config file location
        base = path.parent
        for tissue in d.get("tissues") or []:
            if isinstance(tissue, dict):
                tissue["path"] = _resolve(tissue.get("path"), base)
        d["output_dir"] = _resolve(d.get("output_dir"), base)
        d["log_file"] = _resolve(d.get("log_file"), base)
        if isinstance(d.get("export"), dict):
            d["export"]["symbol_table"] = _resolve(d["export"].get("symbol_table"), base)
        return cls.from_dict(d)

    @classmethod
    def from_env(cls) -> "Config":
        """Create configuration from environment variables."""
        output_dir = os.getenv("TISSUEDE_OUTPUT_DIR")
        return cls(
            filtering=FilterConfig(
                min_gene_length=int(os.getenv("TISSUEDE_MIN_GENE_LENGTH", "200")),
            ),
            model=ModelConfig(
                fdr_threshold=float(os.getenv("TISSUEDE_FDR_THRESHOLD", "0.05")),
            ),
            output_dir=Path(output_dir) if output_dir else None,
            verbose=os.getenv("TISSUEDE_VERBOSE", "").lower() in ("1", "true", "yes"),
        )


def _resolve(value: Any, base: Path) -> Any:
    if not isinstance(value, (str, Path)) or not value or Path(value).is_absolute():
        return value
    return base / value


def _stringify_paths(value: Any) -> Any:
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, dict):
        return {k: _stringify_paths(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_stringify_paths(v) for v in value]
    return value
