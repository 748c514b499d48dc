"""CLI entrypoints for codeintel commands."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict

from .config import ConfigError, load_config
from .logging import configure_logging
from .pipeline import AnalysisPipeline, PipelineOptions, corpus_of

_REPORTS = ("frameworks", "api", "state", "events")


def _add_logging_options(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    def default(value: object) -> object:
        return argparse.SUPPRESS if suppress_default else value

    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=default(False),
        help="Increase log verbosity for troubleshooting.",
    )
    parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        default=default(False),
        help="Only log warnings and errors.",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=default(None),
        help="Also write DEBUG logs to this file.",
    )


def _add_scan_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Path to the repository root (defaults to current directory).",
    )
    parser.add_argument(
        "--ext",
        dest="extensions",
        nargs="+",
        metavar="EXT",
        help="Only analyse files with these extensions (e.g. .py .ts).",
    )
    parser.add_argument("--limit", type=int, help="Analyse at most this many files.")
    parser.add_argument(
        "--include-tests",
        action="store_true",
        help="Analyse test, mock and fixture files as well.",
    )
    parser.add_argument(
        "--max-file-size",
        type=int,
        metavar="BYTES",
        help="Skip files larger than this many bytes.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to a .codeintel.yml file (defaults to the repository root).",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="codeintel",
        description="Detect frameworks, API routes, state and events across a repository.",
    )
    _add_logging_options(parser)
    subparsers = parser.add_subparsers(dest="command", required=True)

    analyze_parser = subparsers.add_parser(
        "analyze",
        help="Analyse a repository and emit the full JSON result.",
    )
    _add_logging_options(analyze_parser, suppress_default=True)
    _add_scan_options(analyze_parser)
    analyze_parser.add_argument(
        "--output",
        "-o",
        type=Path,
        help="Write the JSON result to this file instead of stdout.",
    )

    report_parser = subparsers.add_parser(
        "report",
        help="Print a single detector report for a repository.",
    )
    _add_logging_options(report_parser, suppress_default=True)
    report_parser.add_argument(
        "kind",
        choices=_REPORTS,
        help="Which detector report to print.",
    )
    _add_scan_options(report_parser)

    serve_parser = subparsers.add_parser(
        "serve",
        help="Run the HTTP service (requires the 'service' extra).",
    )
    _add_logging_options(serve_parser, suppress_default=True)
    serve_parser.add_argument("--host", default="127.0.0.1", help="Interface to bind.")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port to listen on.")

    return parser


def _pipeline_options(args: argparse.Namespace) -> PipelineOptions:
    return PipelineOptions(
        extensions=args.extensions,
        exclude_test_files=False if args.include_tests else None,
        limit=args.limit,
        max_file_size=args.max_file_size,
    )


def _load_pipeline(parser: argparse.ArgumentParser, args: argparse.Namespace) -> AnalysisPipeline:
    repo_path = Path(args.path).expanduser()
    if not repo_path.exists():
        parser.exit(1, f"Repository path not found: {args.path}\n")
    if not repo_path.is_dir():
        parser.exit(1, f"Repository path is not a directory: {args.path}\n")
    try:
        config = load_config(args.config or repo_path)
    except ConfigError as exc:
        parser.exit(1, f"Invalid configuration: {exc}\n")
    return AnalysisPipeline(config)


def _run_report(pipeline: AnalysisPipeline, args: argparse.Namespace) -> Dict[str, Any]:
    results = pipeline.collect(args.path, _pipeline_options(args))
    return pipeline.report(args.kind, corpus_of(results))


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for codeintel commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose), quiet=bool(args.quiet), log_file=args.log_file)

    if args.command == "analyze":
        pipeline = _load_pipeline(parser, args)
        result = pipeline.run(args.path, _pipeline_options(args))
        payload = json.dumps(result.to_dict(), indent=2)
        if args.output is not None:
            args.output.write_text(payload + "\n", encoding="utf-8")
            print(f"Analysis written to {_relativize(args.output.resolve())}")
        else:
            print(payload)
        if result.metadata.error:
            parser.exit(1, f"codeintel analyze failed: {result.metadata.error}\nRun with --verbose for more details.\n")
    elif args.command == "report":
        pipeline = _load_pipeline(parser, args)
        try:
            report = _run_report(pipeline, args)
        except OSError as exc:
            parser.exit(1, f"codeintel report failed: {exc}\n")
        print(json.dumps(report, indent=2))
    elif args.command == "serve":
        from .service import run_service

        try:
            run_service(host=args.host, port=args.port)
        except RuntimeError as exc:
            parser.exit(1, f"{exc}\n")
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


def _relativize(path: Path) -> str:
    try:
        return str(path.relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    main(sys.argv[1:])
