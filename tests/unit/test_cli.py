"""Unit tests for the pipeline CLI.

Tests parser construction, argument handling, and the commands that do
not need R (qc, derive).
"""

from __future__ import annotations

import pytest
import pandas as pd
from pathlib import Path

from tissuede_pipeline.cli import build_parser, main


# ===========================================================================
# Parser construction
# ===========================================================================

class TestBuildParser:
    """Tests for argument parser construction."""

    def test_parser_has_all_subcommands(self):
        parser = build_parser()
        subparsers_action = None
        for action in parser._subparsers._actions:
            if hasattr(action, "_parser_class"):
                subparsers_action = action
                break
        assert subparsers_action is not None
        assert set(subparsers_action.choices.keys()) == {"run", "qc", "derive"}

    def test_no_command_returns_zero(self):
        """No subcommand should print help and return 0."""
        assert main([]) == 0

    def test_global_flags(self):
        parser = build_parser()
        args = parser.parse_args(["-v", "--log-file", "/tmp/run.log", "run", "--config", "a.yaml"])
        assert args.verbose is True
        assert args.log_file == "/tmp/run.log"


# ===========================================================================
# Subcommand argument parsing
# ===========================================================================

class TestSubcommandArgs:
    """Tests for individual subcommand argument parsing."""

    def test_run_args(self):
        parser = build_parser()
        args = parser.parse_args(["run", "--config", "analysis.yaml", "-o", "/tmp/out"])
        assert args.command == "run"
        assert args.config == "analysis.yaml"
        assert args.output == "/tmp/out"

    def test_qc_args(self):
        parser = build_parser()
        args = parser.parse_args(["qc", "-i", "brain.h5ad", "--columns", "0", "2"])
        assert args.input == "brain.h5ad"
        assert args.columns == [0, 2]
        assert args.samples is None
        assert args.min_length == 200
        assert args.mito_contig == "chrM"

    def test_qc_selection_exclusive(self):
        parser = build_parser()
        with pytest.raises(SystemExit):
            parser.parse_args(["qc", "-i", "x.h5ad", "--samples", "S1", "--columns", "0"])

    def test_derive_defaults(self):
        parser = build_parser()
        args = parser.parse_args(["derive", "--contrasts", "results/"])
        assert args.tissues == ["brain", "heart", "colon"]
        assert args.fdr == 0.05
        assert args.workbook == "de_genes.xlsx"

    def test_derive_needs_three_tissues(self):
        parser = build_parser()
        with pytest.raises(SystemExit):
            parser.parse_args(["derive", "--contrasts", ".", "--tissues", "a", "b"])


# ===========================================================================
# Command execution
# ===========================================================================

class TestCommands:
    """Tests for running commands."""

    def test_qc(self, make_h5ad, temp_dir, capsys):
        path = make_h5ad("brain", n_samples=4)
        out = temp_dir / "qc" / "stats.csv"

        assert main(["qc", "-i", str(path), "--columns", "0", "3", "-o", str(out)]) == 0

        stats = pd.read_csv(out, index_col=0)
        assert list(stats.index) == ["brain_1", "brain_4"]
        assert "short_reads_pct" in stats.columns
        assert "brain_4" in capsys.readouterr().out

    def test_qc_missing_file_returns_error(self, temp_dir):
        assert main(["qc", "-i", str(temp_dir / "missing.h5ad")]) == 1

    def test_run_missing_config_returns_error(self, temp_dir):
        assert main(["run", "--config", str(temp_dir / "missing.yaml")]) == 1

    def test_run_malformed_config_returns_error(self, temp_dir):
        config = temp_dir / "analysis.yaml"
        config.write_text("tissues: [brain, heart, colon]\n")
        assert main(["run", "--config", str(config)]) == 1

    def test_run_logs_to_configured_file(self, temp_dir):
        import logging

        config = temp_dir / "analysis.yaml"
        config.write_text(
            "tissues:\n"
            "  - {name: brain, path: brain.h5ad}\n"
            "  - {name: heart, path: heart.h5ad}\n"
            "  - {name: colon, path: colon.h5ad}\n"
            "verbose: true\n"
            "log_file: logs/run.log\n"
        )
        root = logging.getLogger()
        level = root.level
        n_handlers = len(root.handlers)
        try:
            # input files are missing, so the run fails after logging starts
            assert main(["run", "--config", str(config), "-o", str(temp_dir / "out")]) == 1
            assert root.level == logging.DEBUG
        finally:
            root.setLevel(level)

        log_text = (temp_dir / "logs" / "run.log").read_text()
        assert "Loading and filtering tissues" in log_text
        assert "Pipeline failed" in log_text
        assert len(root.handlers) == n_handlers

    def test_derive(self, make_contrast, temp_dir):
        from tissuede_pipeline.export import read_de_workbook, read_symbol_list

        pytest.importorskip("openpyxl")
        contrasts_dir = temp_dir / "contrasts"
        contrasts_dir.mkdir()
        values = {
            "bh": {"ENSG1.1": (2.0, 0.01), "ENSG2.1": (-2.0, 0.01), "ENSG3.1": (0.1, 0.9)},
            "bc": {"ENSG1.1": (1.5, 0.02), "ENSG2.1": (0.1, 0.9), "ENSG3.1": (-2.0, 0.01)},
            "hc": {"ENSG1.1": (0.1, 0.9), "ENSG2.1": (2.0, 0.01), "ENSG3.1": (-1.0, 0.03)},
        }
        make_contrast("brain", "heart", values["bh"]).to_csv(contrasts_dir / "contrast_brain_vs_heart.csv")
        make_contrast("brain", "colon", values["bc"]).to_csv(contrasts_dir / "contrast_brain_vs_colon.csv")
        make_contrast("heart", "colon", values["hc"]).to_csv(contrasts_dir / "contrast_heart_vs_colon.csv")

        symbols = temp_dir / "symbols.tsv"
        symbols.write_text("gene_id\tsymbol\nENSG1\tAAA\nENSG2\tBBB\nENSG3\tCCC\n")
        out = temp_dir / "out"

        code = main([
            "derive", "--contrasts", str(contrasts_dir),
            "--symbol-table", str(symbols), "-o", str(out),
        ])
        assert code == 0

        workbook = read_de_workbook(out / "de_genes.xlsx")
        assert workbook["brain"]["up"] == ["ENSG1.1"]
        assert workbook["colon"]["up"] == ["ENSG3.1"]
        assert read_symbol_list(out / "brain_up_symbols.txt") == ["AAA"]
        assert (out / "de_summary.csv").exists()

    def test_derive_missing_contrast(self, temp_dir):
        assert main(["derive", "--contrasts", str(temp_dir), "-o", str(temp_dir / "out")]) == 1
