"""Command-line interface for outlier.

Example:
    # Percentile of values given inline
    outlier --values 1,2,3,4,5,6,7,8,9,10 --percentile 95

    # Percentile of a JSON array or a single-column CSV file
    outlier --file data.json -p 99

    # Start the HTTP API
    outlier --serve --port 8080
"""

import argparse
import sys
from pathlib import Path
from typing import Optional, Sequence

from outlier import __version__
from outlier.core.config import Settings, load_settings
from outlier.core.errors import ConfigurationError, DomainError, InvalidPercentileError
from outlier.services.decoder import DataFormat, format_from_filename
from outlier.services.orchestrator import (
    ErrorOutcome,
    Outcome,
    PercentileResult,
    parse_percentile,
    process,
)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="outlier",
        description="Calculate percentiles from numerical datasets",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "-p",
        "--percentile",
        default=None,
        help="Percentile to calculate, e.g. 95 or 99 (default: 95)",
    )
    source = parser.add_mutually_exclusive_group()
    source.add_argument("-f", "--file", type=Path, help="Input file (JSON or CSV format)")
    source.add_argument("-v", "--values", help="Comma-separated values, e.g. 1,2,3.5 (use --values=-1,2 when the first value is negative)")

    server = parser.add_argument_group("server mode")
    server.add_argument("--serve", action="store_true", help="Start the API server")
    server.add_argument("--host", help="Bind address for the API server (overrides config)")
    server.add_argument("--port", type=int, help="Port for the API server (overrides config)")
    server.add_argument("-c", "--config", type=Path, help="YAML config file (default: $CONFIG_FILE)")
    return parser


def format_percentile_label(percentile: float) -> str:
    """Render ``95.0`` as ``95`` and ``99.9`` as ``99.9``."""

    if float(percentile).is_integer():
        return str(int(percentile))
    return repr(float(percentile))


def format_result(result: PercentileResult) -> str:
    return (
        f"Number of values: {result.count}\n"
        f"Percentile (P{format_percentile_label(result.percentile)}): {result.value:.2f}"
    )


def _compute_from_file(path: Path, percentile: float) -> Outcome:
    try:
        fmt = format_from_filename(path)
    except DomainError as exc:
        return ErrorOutcome.from_error(exc)
    data = path.read_bytes()
    return process(data, percentile, fmt)


def _run_server(args: argparse.Namespace) -> int:
    try:
        settings: Settings = load_settings(args.config)
    except ConfigurationError as exc:
        print(f"Error: {exc.message}", file=sys.stderr)
        return 1
    overrides = {}
    if args.host:
        overrides["host"] = args.host
    if args.port is not None:
        overrides["port"] = args.port
    if overrides:
        settings = settings.model_copy(update={"server": settings.server.model_copy(update=overrides)})

    from outlier.main import serve

    serve(settings)
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.serve:
        return _run_server(args)

    if args.file is None and args.values is None:
        parser.error("Must provide either --file or --values")

    try:
        target = parse_percentile(args.percentile)
    except InvalidPercentileError as exc:
        print(f"Error: {exc.message}", file=sys.stderr)
        return 1

    if args.file is not None:
        try:
            outcome = _compute_from_file(args.file, target)
        except OSError as exc:
            print(f"Error: Failed to read file '{args.file}': {exc.strerror or exc}", file=sys.stderr)
            return 1
    else:
        outcome = process(args.values, target, DataFormat.DELIMITED)

    if isinstance(outcome, ErrorOutcome):
        print(f"Error: {outcome.message}", file=sys.stderr)
        return 1
    print(format_result(outcome))
    return 0


if __name__ == "__main__":
    sys.exit(main())
