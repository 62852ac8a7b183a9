"""Tests for workbook, symbol list and CSV export."""

import warnings

import pytest
import numpy as np
import pandas as pd


class TestGeneMapping:
    """Test identifier to symbol mapping."""

    @pytest.mark.parametrize("gene_id,expected", [
        ("ENSG00000141510.16", "ENSG00000141510"),
        ("ENSG00000002586.20_PAR_Y", "ENSG00000002586"),
        ("ENSG00000141510", "ENSG00000141510"),
        ("TP53", "TP53"),
    ])
    def test_strip_version(self, gene_id, expected):
        from tissuede_pipeline.export import strip_version
        assert strip_version(gene_id) == expected

    @pytest.mark.parametrize("value,expected", [
        ("MT-CO1", "MT-CO1"),
        ("GENE5;ALIAS5", "GENE5"),
        ("A, B", "A"),
        ("X|Y", "X"),
        (["FIRST", "SECOND"], "FIRST"),
        ("", None),
        ("NA", None),
        (np.nan, None),
        (None, None),
    ])
    def test_first_symbol(self, value, expected):
        from tissuede_pipeline.export import first_symbol
        assert first_symbol(value) == expected

    def test_map_genes(self, gene_metadata):
        from tissuede_pipeline.export import SymbolMapper

        mapper = SymbolMapper.from_gene_metadata(gene_metadata)
        # Lookups ignore the version suffix on either side
        symbols = mapper.map_genes(["ENSG05.9", "ENSG01", "ENSG09.4"])
        assert symbols == ["GENE5", "GENE1", "GENE9"]

    def test_unmapped_skipped_with_warning(self, gene_metadata):
        from tissuede_pipeline.core.exceptions import IdentifierMappingWarning
        from tissuede_pipeline.export import SymbolMapper

        mapper = SymbolMapper.from_gene_metadata(gene_metadata)
        with pytest.warns(IdentifierMappingWarning, match="ENSG06.1"):
            symbols = mapper.map_genes(["ENSG01.1", "ENSG06.1", "ENSG99.1", "ENSG08.1"])

        assert symbols == ["GENE1", "GENE8"]

    def test_duplicate_symbols_kept_once(self):
        from tissuede_pipeline.export import SymbolMapper

        mapper = SymbolMapper({"ENSG1.1": "A", "ENSG2.1": "B", "ENSG3.1": "A"})
        assert mapper.map_genes(["ENSG3.1", "ENSG2.1", "ENSG1.1"]) == ["A", "B"]

    def test_first_mapping_wins(self):
        from tissuede_pipeline.export import SymbolMapper

        table = pd.DataFrame({
            "gene_id": ["ENSG1.1", "ENSG1.2", "ENSG2.1"],
            "symbol": ["FIRST", "SECOND", "OTHER"],
        })
        mapper = SymbolMapper.from_table(table)
        assert mapper.lookup("ENSG1") == "FIRST"
        assert len(mapper) == 2

    def test_from_tsv(self, temp_dir):
        from tissuede_pipeline.export import SymbolMapper

        path = temp_dir / "symbols.tsv"
        path.write_text("gene_id\tsymbol\nENSG1.3\tTP53\nENSG2.1\tBRCA1;BRCA1-AS\n")
        mapper = SymbolMapper.from_tsv(path)

        assert mapper.lookup("ENSG1.7") == "TP53"
        assert mapper.lookup("ENSG2") == "BRCA1"

    def test_missing_symbol_column(self, gene_metadata):
        from tissuede_pipeline.core.exceptions import InputError
        from tissuede_pipeline.export import SymbolMapper

        with pytest.raises(InputError, match="gene_name"):
            SymbolMapper.from_gene_metadata(gene_metadata, "gene_name")

    def test_missing_tsv(self, temp_dir):
        from tissuede_pipeline.core.exceptions import InputError
        from tissuede_pipeline.export import SymbolMapper

        with pytest.raises(InputError):
            SymbolMapper.from_tsv(temp_dir / "nope.tsv")


class TestWorkbook:
    """Test the multi-sheet DE workbook."""

    @pytest.fixture(autouse=True)
    def _openpyxl(self):
        pytest.importorskip("openpyxl")

    def test_padding(self):
        from tissuede_pipeline.export import gene_lists_frame

        df = gene_lists_frame({"up": ["a", "b", "c"], "down": ["x"]})
        assert df.shape == (3, 2)
        assert df["down"].isna().sum() == 2
        assert df["up"].tolist() == ["a", "b", "c"]

    def test_round_trip(self, temp_dir):
        from tissuede_pipeline.export import read_de_workbook, write_de_workbook

        sheets = {
            "brain_vs_heart": {"up": ["ENSG3.1", "ENSG1.1", "ENSG2.5"], "down": ["ENSG9.1"]},
            "brain": {"up": [], "down": ["ENSG7.2", "ENSG4.1"]},
        }
        path = write_de_workbook(temp_dir / "out" / "de_genes.xlsx", sheets)

        assert path.exists()
        assert read_de_workbook(path) == sheets

    def test_round_trip_keeps_na_like_ids(self, temp_dir):
        from tissuede_pipeline.export import read_de_workbook, write_de_workbook

        sheets = {
            "s": {"up": ["G1", "NA", "None", "NULL", "nan", "G4"], "down": ["X"]},
        }
        path = write_de_workbook(temp_dir / "na.xlsx", sheets)
        assert read_de_workbook(path) == sheets

    def test_sheet_order(self, temp_dir):
        from tissuede_pipeline.export import read_de_workbook, write_de_workbook

        sheets = {name: {"up": ["g"], "down": []} for name in ("c", "a", "b")}
        loaded = read_de_workbook(write_de_workbook(temp_dir / "wb.xlsx", sheets))
        assert list(loaded) == ["c", "a", "b"]

    def test_long_sheet_name(self, temp_dir):
        from tissuede_pipeline.core.exceptions import InputError
        from tissuede_pipeline.export import write_de_workbook

        with pytest.raises(InputError, match="31"):
            write_de_workbook(temp_dir / "wb.xlsx", {"x" * 32: {"up": []}})
        assert not (temp_dir / "wb.xlsx").exists()

    def test_six_sheets(self, make_contrast, context, temp_dir):
        from tissuede_pipeline.differential import derive_de_sets
        from tissuede_pipeline.export import de_workbook_sheets, read_de_workbook, write_de_workbook

        values = {"G1": (2.0, 0.01), "G2": (-1.0, 0.02), "G3": (0.5, 0.4)}
        contrasts = {
            f"{a}_vs_{b}": make_contrast(a, b, values) for a, b in context.contrasts
        }
        de_sets = derive_de_sets(contrasts, context)
        sheets = de_workbook_sheets(contrasts, de_sets, context)

        assert list(sheets) == [
            "brain_vs_heart", "brain_vs_colon", "heart_vs_colon", "brain", "heart", "colon",
        ]
        assert sheets["brain_vs_heart"] == {"up": ["G1"], "down": ["G2"]}
        assert sheets["brain"] == {"up": ["G1"], "down": ["G2"]}

        loaded = read_de_workbook(write_de_workbook(temp_dir / "de.xlsx", sheets))
        assert loaded == sheets

    def test_missing_workbook(self, temp_dir):
        from tissuede_pipeline.core.exceptions import InputError
        from tissuede_pipeline.export import read_de_workbook

        with pytest.raises(InputError):
            read_de_workbook(temp_dir / "missing.xlsx")


class TestSymbolLists:
    """Test per-tissue symbol text files."""

    def test_round_trip(self, temp_dir):
        from tissuede_pipeline.export import read_symbol_list, write_symbol_list

        symbols = ["TP53", "MT-CO1", "BRCA1"]
        path = write_symbol_list(temp_dir / "x.txt", symbols)
        assert path.read_text() == "TP53\nMT-CO1\nBRCA1\n"
        assert read_symbol_list(path) == symbols

    def test_utf8_encoded(self, temp_dir):
        from tissuede_pipeline.export import read_symbol_list, write_symbol_list

        symbols = ["TNF-α", "IL1β", "TP53"]
        path = write_symbol_list(temp_dir / "x.txt", symbols)
        assert path.read_bytes().decode("utf-8") == "TNF-α\nIL1β\nTP53\n"
        assert read_symbol_list(path) == symbols

    def test_write_symbol_lists(self, temp_dir):
        from tissuede_pipeline.core.exceptions import IdentifierMappingWarning
        from tissuede_pipeline.differential.de_sets import DEGeneSet
        from tissuede_pipeline.export import SymbolMapper, read_symbol_list, write_symbol_lists

        mapper = SymbolMapper({"ENSG1": "A;A2", "ENSG2": "B", "ENSG3": "C"})
        de_sets = {
            "brain": {
                "up": DEGeneSet("brain", "up", ("ENSG2.4", "ENSG1.1")),
                "down": DEGeneSet("brain", "down", ("ENSG3.1",)),
            },
            "heart": {
                "up": DEGeneSet("heart", "up", ("ENSG3.2", "ENSG404.1")),
                "down": DEGeneSet("heart", "down", ()),
            },
        }
        with pytest.warns(IdentifierMappingWarning, match="heart_up"):
            paths = write_symbol_lists(de_sets, mapper, temp_dir)

        assert paths["brain"].name == "brain_up_symbols.txt"
        assert read_symbol_list(paths["brain"]) == ["B", "A"]
        assert read_symbol_list(paths["heart"]) == ["C"]

    def test_empty_set_writes_empty_file(self, temp_dir):
        from tissuede_pipeline.core.exceptions import IdentifierMappingWarning
        from tissuede_pipeline.differential.de_sets import DEGeneSet
        from tissuede_pipeline.export import SymbolMapper, write_symbol_lists

        de_sets = {"colon": {"up": DEGeneSet("colon", "up", ()), "down": DEGeneSet("colon", "down", ())}}
        with warnings.catch_warnings():
            warnings.simplefilter("error", IdentifierMappingWarning)
            paths = write_symbol_lists(de_sets, SymbolMapper({}), temp_dir)
        assert paths["colon"].read_text() == ""


class TestCSVWriter:
    """Test CSV table export."""

    def test_filter_stats(self, tissue_datasets, context, temp_dir):
        from tissuede_pipeline.export import CSVWriter
        from tissuede_pipeline.ingest import filter_genes

        stats = {t: filter_genes(ds, context).stats for t, ds in tissue_datasets.items()}
        path = CSVWriter(temp_dir).write_filter_stats(stats)

        df = pd.read_csv(path)
        assert list(df.columns[:2]) == ["tissue", "sample_id"]
        assert len(df) == 9
        assert set(df["tissue"]) == {"brain", "heart", "colon"}

    def test_contrast_file_name(self, make_contrast, temp_dir):
        from tissuede_pipeline.export import CSVWriter

        path = CSVWriter(temp_dir).write_contrast(
            make_contrast("brain", "colon", {"g": (1.0, 0.01)})
        )
        assert path.name == "contrast_brain_vs_colon.csv"
