"""
Gene identifier to symbol mapping.

Identifiers are compared without their version suffix
(ENSG00000141510.16 -> ENSG00000141510). When an identifier maps to
several symbols, the first one is used.
"""

from __future__ import annotations

import logging
import re
import warnings
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence, Union

import numpy as np
import pandas as pd

from tissuede_pipeline.core.exceptions import IdentifierMappingWarning, InputError

logger = logging.getLogger(__name__)


_VERSION_SUFFIX = re.compile(r"\.\d+(?:_PAR_Y)?$")
_SYMBOL_SEPARATORS = re.compile(r"[,;|]")


def strip_version(gene_id: str) -> str:
    """Remove the trailing version number from a gene identifier."""
    return _VERSION_SUFFIX.sub("", str(gene_id))


def first_symbol(value: Any) -> Optional[str]:
    """First non-empty symbol of a possibly multi-valued entry."""
    if value is None:
        return None
    if isinstance(value, (list, tuple, np.ndarray)):
        candidates = [str(v) for v in value if v is not None and not pd.isna(v)]
    else:
        if pd.isna(value):
            return None
        candidates = _SYMBOL_SEPARATORS.split(str(value))
    for candidate in candidates:
        candidate = candidate.strip()
        if candidate and candidate.upper() not in ("NA", "NAN", "NONE"):
            return candidate
    return None


class SymbolMapper:
    """
    Maps versionless gene identifiers to symbols.

    Example:
        >>> mapper = SymbolMapper.from_gene_metadata(dataset.genes, "symbol")
        >>> mapper.map_genes(["ENSG00000141510.16"])
        ['TP53']
    """

    def __init__(self, mapping: Mapping[str, Any]):
        self._mapping: dict[str, str] = {}
        for gene_id, value in mapping.items():
            key = strip_version(gene_id)
            if key in self._mapping:
                continue
            symbol = first_symbol(value)
            if symbol is not None:
                self._mapping[key] = symbol

    def __len__(self) -> int:
        return len(self._mapping)

    def lookup(self, gene_id: str) -> Optional[str]:
        """Symbol for one identifier, or None."""
        return self._mapping.get(strip_version(gene_id))

    def map_genes(self, gene_ids: Sequence[str], label: str = "") -> list[str]:
        """
        Map identifiers to symbols, preserving order.

        Unmapped identifiers are skipped with IdentifierMappingWarning;
        repeated symbols keep their first occurrence.
        """
        symbols: list[str] = []
        seen: set[str] = set()
        unmapped: list[str] = []
        for gene_id in gene_ids:
            symbol = self.lookup(gene_id)
            if symbol is None:
                unmapped.append(gene_id)
                continue
            if symbol not in seen:
                seen.add(symbol)
                symbols.append(symbol)

        if unmapped:
            msg = (
                f"{len(unmapped)} of {len(gene_ids)} gene ids{' in ' + label if label else ''} "
                f"have no symbol and were skipped (e.g. {unmapped[:3]})"
            )
            logger.warning(msg)
            warnings.warn(msg, IdentifierMappingWarning, stacklevel=2)
        return symbols

    @classmethod
    def from_gene_metadata(cls, genes: pd.DataFrame, symbol_col: str = "symbol") -> "SymbolMapper":
        """Build from a gene metadata frame indexed by gene id."""
        if symbol_col not in genes.columns:
            raise InputError(
                f"Gene metadata has no '{symbol_col}' column "
                f"(available: {list(genes.columns)})"
            )
        return cls(dict(zip(genes.index.astype(str), genes[symbol_col])))

    @classmethod
    def from_table(
        cls,
        table: pd.DataFrame,
        id_col: str = "gene_id",
        symbol_col: str = "symbol",
    ) -> "SymbolMapper":
        """Build from a long table; the first row per identifier wins."""
        missing = [c for c in (id_col, symbol_col) if c not in table.columns]
        if missing:
            raise InputError(f"Symbol table missing columns: {missing}")
        table = table.dropna(subset=[id_col, symbol_col])
        table = table.drop_duplicates(subset=[id_col], keep="first")
        return cls(dict(zip(table[id_col].astype(str), table[symbol_col])))

    @classmethod
    def from_tsv(
        cls,
        path: Union[str, Path],
        id_col: str = "gene_id",
        symbol_col: str = "symbol",
    ) -> "SymbolMapper":
        """Load a tab-separated (gene_id, symbol) table."""
        path = Path(path)
        if not path.exists():
            raise InputError(f"Symbol table not found: {path}")
        table = pd.read_csv(path, sep="\t", dtype=str)
        mapper = cls.from_table(table, id_col=id_col, symbol_col=symbol_col)
        logger.info("Loaded %d symbol mappings from %s", len(mapper), path)
        return mapper
