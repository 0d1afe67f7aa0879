"""Command line entry point: ``arraysafety SOURCE CLASS METHOD [LOWER UPPER]``."""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

from loguru import logger

from arraysafety.analysis import ArraySafetyAnalyzer
from arraysafety.config import load_config
from arraysafety.errors import ArraySafetyError
from arraysafety.printer import format_safety, write_reports
from arraysafety.source_parser import load_method


def configure_logging(verbose: bool) -> None:
    logger.remove()
    logger.add(sys.stderr, format="[{level}] {message}", level="DEBUG" if verbose else "INFO")
    logger.enable("arraysafety")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="arraysafety",
        description="Prove array accesses of a Java method safe with interval and points-to analysis",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Analyze BasicTest.foo with the interval window [0, 10]
  arraysafety BasicTest.java BasicTest foo 0 10

  # Write the result files and the interval trace into out/
  arraysafety BasicTest.java BasicTest bar 0 10 --output-dir out --trace
        """,
    )
    parser.add_argument("source", type=Path, help="Path to the Java source file")
    parser.add_argument("classname", help="Class declaring the method (e.g., BasicTest)")
    parser.add_argument("method", help="Method to analyze")
    parser.add_argument("lower", nargs="?", type=int,
                        help="Lower bound of the interval window (default: from config)")
    parser.add_argument("upper", nargs="?", type=int,
                        help="Upper bound of the interval window (default: from config)")
    parser.add_argument("--output-dir", "-o", type=Path, metavar="DIRECTORY",
                        help="Write Output_*.txt result files into DIRECTORY")
    parser.add_argument("--trace", action="store_true",
                        help="Record the interval trace (written as <Class>.<method>.fulloutput.txt)")
    parser.add_argument("--print-ir", action="store_true",
                        help="Print the lowered statements and program-point edges")
    parser.add_argument("--config", type=Path, metavar="FILE",
                        help="TOML configuration file (default: search from the current directory)")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Log every fixpoint update")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point; returns the process exit status."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if (args.lower is None) != (args.upper is None):
        parser.error("LOWER and UPPER must be given together")

    configure_logging(args.verbose)

    try:
        config = load_config(args.config).with_overrides(
            lower_bound=args.lower,
            upper_bound=args.upper,
            record_trace=True if args.trace else None,
            output_dir=args.output_dir,
        )
        body = load_method(args.source, args.classname, args.method)
        if args.print_ir:
            print(body.listing())

        result = ArraySafetyAnalyzer(config).analyze(body)
        if args.print_ir:
            print(result.points.describe())
        print(format_safety(result.class_name, result.method_name, result.verdicts), end="")

        if config.output_dir is not None:
            for path in write_reports(result, config.output_dir):
                logger.info("wrote {}", path)
    except ArraySafetyError as e:
        logger.error("{}", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
