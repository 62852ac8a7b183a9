"""
Newline-delimited gene symbol lists, one file per tissue.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Mapping, Union

from tissuede_pipeline.differential.de_sets import UP, DEGeneSet
from tissuede_pipeline.export.gene_mapping import SymbolMapper

logger = logging.getLogger(__name__)


def symbol_list_filename(tissue: str, direction: str = UP) -> str:
    return f"{tissue}_{direction}_symbols.txt"


def write_symbol_list(path: Union[str, Path], symbols: list[str]) -> Path:
    """Write one symbol per line."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8", newline="\n") as f:
        for symbol in symbols:
            f.write(f"{symbol}\n")
    return path


def read_symbol_list(path: Union[str, Path]) -> list[str]:
    """Read a list written by write_symbol_list."""
    with open(path, encoding="utf-8") as f:
        return [line.strip() for line in f if line.strip()]


def write_symbol_lists(
    de_sets: Mapping[str, Mapping[str, DEGeneSet]],
    mapper: SymbolMapper,
    output_dir: Union[str, Path],
    direction: str = UP,
) -> dict[str, Path]:
    """
    Write each tissue's gene set as symbols.

    Args:
        de_sets: tissue -> {"up"/"down" -> DEGeneSet}.
        mapper: Identifier to symbol mapper.
        output_dir: Directory for the text files.
        direction: Which set of each tissue to write.

    Returns:
        tissue -> written path.
    """
    output_dir = Path(output_dir)
    paths = {}
    for tissue, by_dir in de_sets.items():
        gene_set = by_dir[direction]
        symbols = mapper.map_genes(list(gene_set.genes), label=gene_set.name)
        paths[tissue] = write_symbol_list(
            output_dir / symbol_list_filename(tissue, direction), symbols
        )
        logger.info(
            "%s: %d of %d genes written as symbols to %s",
            gene_set.name, len(symbols), len(gene_set), paths[tissue].name,
        )
    return paths
