"""
Output generation.

Writers for the DE workbook, per-tissue symbol lists, and CSV tables.
"""

from tissuede_pipeline.export.excel_writer import (
    de_workbook_sheets,
    gene_lists_frame,
    read_de_workbook,
    write_de_workbook,
)
from tissuede_pipeline.export.gene_mapping import (
    SymbolMapper,
    first_symbol,
    strip_version,
)
from tissuede_pipeline.export.text_writer import (
    read_symbol_list,
    symbol_list_filename,
    write_symbol_list,
    write_symbol_lists,
)
from tissuede_pipeline.export.csv_writer import CSVWriter

__all__ = [
    "de_workbook_sheets",
    "gene_lists_frame",
    "read_de_workbook",
    "write_de_workbook",
    "SymbolMapper",
    "first_symbol",
    "strip_version",
    "read_symbol_list",
    "symbol_list_filename",
    "write_symbol_list",
    "write_symbol_lists",
    "CSVWriter",
]
