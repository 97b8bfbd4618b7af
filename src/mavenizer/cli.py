#!/usr/bin/env python3
"""Command line entry point: ``mavenizer analyze PATH...``."""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence
from pathlib import Path

from mavenizer.__version__ import __version__
from mavenizer.analyzer import AnalysisOptions, Analyzer
from mavenizer.config import AnalysisSettings, load_settings
from mavenizer.exceptions import ConfigValidationError, JarReadError, MavenizerError, RepositoryUnreachableError
from mavenizer.logging_config import add_logging_args, configure_logging
from mavenizer.report import DATETIME_SUBSTITUTE, DEFAULT_REPORT_FILE, resolve_report_path
from mavenizer.repository import MavenHttpRepository, RemoteRepository
from mavenizer.selection import InteractiveSelector
from mavenizer.settings import discover_repositories
from mavenizer.verification import OnlineVerifier

logger = logging.getLogger(__name__)

COMMAND_ANALYZE = "analyze"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mavenizer", description="Identify Maven coordinates of jar files."
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = parser.add_subparsers(dest="command")

    analyze = sub.add_parser(COMMAND_ANALYZE, help="Analyze jars and write a coordinate report.")
    analyze.add_argument("jars", nargs="+", help="Jar files or folders containing jar files.")
    analyze.add_argument(
        "-i", "--interactive", action="store_true", help="Ask for values of jars that were not identified."
    )
    analyze.add_argument(
        "--offline", action="store_true", help="Disable online verification against remote repositories."
    )
    analyze.add_argument("--limit", type=int, default=None, help="Analyze at most this many jars.")
    analyze.add_argument("--offset", type=int, default=0, help="Skip this many jars first.")
    analyze.add_argument(
        "--remote-repos",
        nargs="+",
        default=None,
        metavar="URL",
        help="Remote repositories to use instead of those from 'mvn help:effective-settings'.",
    )
    analyze.add_argument(
        "--force-detailed-output", action="store_true", help="Print details even for identified jars."
    )
    analyze.add_argument(
        "--report-file",
        default=DEFAULT_REPORT_FILE,
        help=f"Report path; '{DATETIME_SUBSTITUTE}' is replaced by the current time (default: {DEFAULT_REPORT_FILE}).",
    )
    analyze.add_argument("--config", type=Path, default=None, help="YAML file overriding analysis settings.")
    add_logging_args(analyze)
    return parser


def validate_args(args: argparse.Namespace) -> None:
    """Reject arguments that would fail later in the run."""
    missing = [jar for jar in args.jars if not Path(jar).exists()]
    if missing:
        raise ConfigValidationError(
            f"Jar paths do not exist: {', '.join(missing)}", context={"paths": missing}
        )
    if args.offset < 0:
        raise ConfigValidationError("--offset must not be negative", context={"offset": args.offset})
    if args.limit is not None and args.limit < 0:
        raise ConfigValidationError("--limit must not be negative", context={"limit": args.limit})
    report = resolve_report_path(args.report_file)
    if report.exists():
        raise ConfigValidationError(f"Report file already exists: {report}", context={"path": str(report)})
    if not report.resolve().parent.is_dir():
        raise ConfigValidationError(
            f"Report directory does not exist: {report.resolve().parent}", context={"path": str(report)}
        )


def build_verifier(args: argparse.Namespace, settings: AnalysisSettings) -> OnlineVerifier:
    def make_client(repositories: list[RemoteRepository]) -> MavenHttpRepository:
        return MavenHttpRepository(
            repositories, timeout_s=settings.request_timeout_s, max_attempts=settings.retry_max_attempts
        )

    if args.remote_repos:
        explicit = [RemoteRepository(url=url) for url in args.remote_repos]
        return OnlineVerifier(lambda: make_client(explicit), settings, probe_only=True)
    return OnlineVerifier(
        lambda: make_client(discover_repositories(settings.central_url)),
        settings,
    )


def run_analyze(args: argparse.Namespace) -> int:
    settings = load_settings(args.config)
    validate_args(args)
    if args.interactive:
        print("Interactive mode enabled.")
    if args.offline:
        print("ONLINE ANALYSIS DISABLED! - Jars cannot be auto-selected by matching jars found online!")

    verifier = None if args.offline else build_verifier(args, settings)
    selector = InteractiveSelector(settings, verifier) if args.interactive else None
    options = AnalysisOptions(
        paths=[Path(jar) for jar in args.jars],
        interactive=args.interactive,
        offline=args.offline,
        limit=args.limit,
        offset=args.offset,
        force_detailed_output=args.force_detailed_output,
        report_file=args.report_file,
    )
    Analyzer(options, settings, verifier=verifier, selector=selector).run()
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 1

    configure_logging(level=args.log_level, fmt=args.log_format)
    try:
        return run_analyze(args)
    except RepositoryUnreachableError as exc:
        logger.error("Online repositories are not reachable! Exiting. %s", exc.context.get("repositories", []))
        return 1
    except ConfigValidationError as exc:
        logger.error("Invalid arguments: %s", exc)
        return 2
    except JarReadError as exc:
        logger.error("Failed to read jar %s: %s", exc.context.get("jar"), exc)
        return 1
    except MavenizerError as exc:
        logger.error("%s", exc, extra=exc.as_log_fields())
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
