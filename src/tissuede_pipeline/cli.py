"""
Command-line interface for the tissue DE pipeline.

Usage:
    tissuede-pipeline run --config analysis.yaml
    tissuede-pipeline qc --input brain.h5ad --samples S1 S2 S3
    tissuede-pipeline derive --contrasts results/ --tissues brain heart colon
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

logger = logging.getLogger("tissuede_pipeline")


LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def _setup_logging(verbose: bool = False, log_file: Optional[str] = None) -> None:
    """Configure logging for CLI."""
    level = logging.DEBUG if verbose else logging.INFO
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers)


def cmd_run(args: argparse.Namespace) -> int:
    """Run the full analysis from a YAML config file."""
    from tissuede_pipeline.core.config import Config

    config = Config.from_yaml(args.config)
    if args.output:
        config.output_dir = Path(args.output)
    if config.output_dir is None:
        config.output_dir = Path(".")

    # --log-file on the command line replaces the configured log_file
    root = logging.getLogger()
    if config.verbose:
        root.setLevel(logging.DEBUG)
    handler = None
    if config.log_file and not args.log_file:
        config.log_file.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(config.log_file)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)

    try:
        return _run_pipeline(config)
    finally:
        if handler is not None:
            root.removeHandler(handler)
            handler.close()


def _run_pipeline(config) -> int:
    from tissuede_pipeline.pipeline import Pipeline

    result = Pipeline(config=config).run()

    print(result.summary.to_string())
    for issue in result.issues:
        logger.warning("Issue: %s", issue)
    logger.info("Run complete: %s", result.metrics)
    logger.info("Wrote %d files to %s", len(result.output_paths), config.output_dir)
    return 0


def cmd_qc(args: argparse.Namespace) -> int:
    """Filter one H5AD file and report per-sample read statistics."""
    from tissuede_pipeline.core.config import RunContext
    from tissuede_pipeline.ingest import filter_genes, load_dataset

    selectors = args.samples if args.samples is not None else args.columns
    dataset = load_dataset(args.input, samples=selectors, layer=args.layer)
    context = RunContext(min_gene_length=args.min_length, mito_contig=args.mito_contig)
    result = filter_genes(
        dataset, context, length_col=args.length_col, chrom_col=args.chrom_col,
    )

    print(result.stats.table.to_string(float_format=lambda v: f"{v:.2f}"))
    if args.output:
        out_path = Path(args.output)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        result.stats.table.to_csv(out_path)
        logger.info("Filter statistics saved to %s", out_path)
    return 0


def cmd_derive(args: argparse.Namespace) -> int:
    """Derive DE sets and the workbook from saved contrast tables."""
    from tissuede_pipeline.core.config import RunContext
    from tissuede_pipeline.differential import (
        ContrastResult,
        contrast_name,
        derive_de_sets,
        summarize_de_sets,
    )
    from tissuede_pipeline.export import (
        CSVWriter,
        SymbolMapper,
        de_workbook_sheets,
        write_de_workbook,
        write_symbol_lists,
    )

    context = RunContext(tissues=tuple(args.tissues), fdr_threshold=args.fdr)
    contrasts_dir = Path(args.contrasts)
    contrasts = {}
    for first, second in context.contrasts:
        name = contrast_name(first, second)
        contrasts[name] = ContrastResult.read_csv(
            contrasts_dir / f"contrast_{name}.csv", first, second,
        )

    de_sets = derive_de_sets(contrasts, context)
    summary = summarize_de_sets(de_sets)
    mapper = SymbolMapper.from_tsv(args.symbol_table) if args.symbol_table else None

    output_dir = Path(args.output or ".")
    write_de_workbook(
        output_dir / args.workbook,
        de_workbook_sheets(contrasts, de_sets, context),
    )
    CSVWriter(output_dir).write_de_summary(summary)
    if mapper is not None:
        write_symbol_lists(de_sets, mapper, output_dir)

    print(summary.to_string())
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build the CLI argument parser."""
    from tissuede_pipeline.core.config import DEFAULT_TISSUES

    parser = argparse.ArgumentParser(
        prog="tissuede-pipeline",
        description="Three-tissue bulk RNA-seq differential expression analysis",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")
    parser.add_argument("--log-file", type=str, help="Log file path")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # --- run ---
    p_run = subparsers.add_parser("run", help="Run full analysis from YAML config")
    p_run.add_argument("--config", required=True, help="Analysis YAML config file")
    p_run.add_argument("--output", "-o", help="Output directory")
    p_run.set_defaults(func=cmd_run)

    # --- qc ---
    p_qc = subparsers.add_parser("qc", help="Gene filtering statistics for one file")
    p_qc.add_argument("--input", "-i", required=True, help="Input H5AD file")
    selection = p_qc.add_mutually_exclusive_group()
    selection.add_argument("--samples", nargs="+", help="Sample names to keep")
    selection.add_argument("--columns", nargs="+", type=int, help="Sample positions to keep")
    p_qc.add_argument("--layer", help="Layer holding raw counts")
    p_qc.add_argument("--min-length", type=int, default=200, help="Minimum gene length (bp)")
    p_qc.add_argument("--mito-contig", default="chrM", help="Mitochondrial contig label")
    p_qc.add_argument("--length-col", default="bp_length")
    p_qc.add_argument("--chrom-col", default="chromosome")
    p_qc.add_argument("--output", "-o", help="Output CSV file")
    p_qc.set_defaults(func=cmd_qc)

    # --- derive ---
    p_der = subparsers.add_parser("derive", help="DE sets from saved contrast tables")
    p_der.add_argument("--contrasts", required=True,
                       help="Directory with contrast_<A>_vs_<B>.csv files")
    p_der.add_argument("--tissues", nargs=3, default=list(DEFAULT_TISSUES),
                       help="Tissue labels in contrast order")
    p_der.add_argument("--fdr", type=float, default=0.05, help="FDR threshold")
    p_der.add_argument("--symbol-table", help="TSV with gene_id and symbol columns")
    p_der.add_argument("--workbook", default="de_genes.xlsx", help="Workbook file name")
    p_der.add_argument("--output", "-o", help="Output directory")
    p_der.set_defaults(func=cmd_derive)

    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    from tissuede_pipeline.core.exceptions import PipelineError

    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    _setup_logging(verbose=args.verbose, log_file=args.log_file)

    try:
        return args.func(args)
    except PipelineError as e:
        logger.error("%s: %s", type(e).__name__, e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
