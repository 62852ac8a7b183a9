"""
Multi-sheet workbook of DE gene lists.

Each sheet holds named gene lists as parallel columns. Lists of unequal
length are padded with missing values, which the reader drops again.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Mapping, Sequence, Union

import pandas as pd

from tissuede_pipeline.core.config import RunContext
from tissuede_pipeline.core.exceptions import InputError
from tissuede_pipeline.differential.contrasts import ContrastResult
from tissuede_pipeline.differential.de_sets import DEGeneSet, split_contrast

logger = logging.getLogger(__name__)


MAX_SHEET_NAME = 31

GeneLists = Mapping[str, Sequence[str]]


def gene_lists_frame(lists: GeneLists) -> pd.DataFrame:
    """Parallel columns padded to the longest list."""
    return pd.DataFrame({
        name: pd.Series(list(genes), dtype=object)
        for name, genes in lists.items()
    })


def de_workbook_sheets(
    contrasts: Mapping[str, ContrastResult],
    de_sets: Mapping[str, Mapping[str, DEGeneSet]],
    context: RunContext,
) -> dict[str, dict[str, list[str]]]:
    """
    Sheets for the DE workbook.

    One sheet per pairwise contrast, then one per tissue, each with an
    "up" and a "down" column.
    """
    sheets: dict[str, dict[str, list[str]]] = {}
    for name, contrast in contrasts.items():
        sheets[name] = split_contrast(contrast, context.fdr_threshold)
    for tissue, by_dir in de_sets.items():
        sheets[tissue] = {direction: list(s.genes) for direction, s in by_dir.items()}
    return sheets


def write_de_workbook(
    path: Union[str, Path],
    sheets: Mapping[str, GeneLists],
) -> Path:
    """
    Write gene lists to an .xlsx workbook.

    Args:
        path: Output file.
        sheets: Sheet name -> {column name -> gene ids}.

    Returns:
        Path to written file.
    """
    path = Path(path)
    too_long = [name for name in sheets if len(name) > MAX_SHEET_NAME]
    if too_long:
        raise InputError(
            f"Sheet names longer than {MAX_SHEET_NAME} characters: {too_long}"
        )

    path.parent.mkdir(parents=True, exist_ok=True)
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        for sheet_name, lists in sheets.items():
            gene_lists_frame(lists).to_excel(writer, sheet_name=sheet_name, index=False)

    logger.info("Wrote %d sheets to %s", len(sheets), path)
    return path


def read_de_workbook(path: Union[str, Path]) -> dict[str, dict[str, list[str]]]:
    """
    Read a workbook written by write_de_workbook.

    Padding cells are dropped, so every list comes back in its original
    order and length.
    """
    path = Path(path)
    if not path.exists():
        raise InputError(f"Workbook not found: {path}")
    # only empty padding cells are missing; ids such as "NA" or "None" are kept
    frames = pd.read_excel(
        path, sheet_name=None, dtype=str, engine="openpyxl",
        keep_default_na=False, na_values=[""],
    )
    return {
        sheet: {str(col): df[col].dropna().tolist() for col in df.columns}
        for sheet, df in frames.items()
    }
