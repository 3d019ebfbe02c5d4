"""Import PRG address points from GML/XML files into a MySQL table."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from prg_import.common.config_loader import build_run_config, load_importer_config
from prg_import.common.constants import EXIT_HARD_FAIL, EXIT_PARTIAL, EXIT_SUCCESS, EXIT_USAGE
from prg_import.common.errors import PipelineError, UsageError
from prg_import.common.ids import generate_run_id
from prg_import.common.logging import build_logger, log_event
from prg_import.pipeline.database import DatabaseBackend, mysql_backend
from prg_import.pipeline.reports import write_run_summary
from prg_import.pipeline.runner import ImportRun

EPILOG = """\
DIR - directory holding unpacked XML files from PRG
HOST - MySQL host to connect to (e.g. localhost)
USERNAME - MySQL username
PASSWORD - MySQL password
SCHEMA - MySQL schema to insert data into
"""


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message: str):
        raise UsageError(message)


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="prg-import",
        description=__doc__,
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("dir", metavar="DIR")
    parser.add_argument("host", metavar="HOST")
    parser.add_argument("username", metavar="USERNAME")
    parser.add_argument("password", metavar="PASSWORD")
    parser.add_argument("schema", metavar="SCHEMA")
    parser.add_argument("--config-dir", default="./config")
    parser.add_argument("--overlay-config-dir", default=None)
    parser.add_argument("--log-dir", default=None)
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARN", "ERROR"])
    parser.add_argument("--report-path", default=None)
    parser.add_argument("--run-id", default=None)
    parser.add_argument("--strict", action="store_true")
    return parser


def parse_args(argv: list[str]) -> argparse.Namespace:
    args = build_parser().parse_args(argv)
    if not Path(args.dir).is_dir():
        raise UsageError(f"DIR is not a directory: {args.dir}")
    return args


def run_command(args: argparse.Namespace, backend: DatabaseBackend | None = None) -> int:
    run_id = args.run_id or generate_run_id()
    overlay_config_dir = Path(args.overlay_config_dir) if args.overlay_config_dir else None
    logger = build_logger(run_id, log_dir=Path(args.log_dir) if args.log_dir else None, level=args.log_level)

    try:
        cfg = load_importer_config(Path(args.config_dir), overlay_config_dir=overlay_config_dir)
    except PipelineError as exc:
        log_event(logger, f"invalid configuration: {exc}", run_id=run_id, event="RUN_FAIL", status="error", error_code=exc.error_code)
        return EXIT_HARD_FAIL

    config = build_run_config(
        cfg,
        source_dir=Path(args.dir),
        host=args.host,
        username=args.username,
        password=args.password,
        schema=args.schema,
    )
    run = ImportRun(config, backend or mysql_backend(config.database), run_id=run_id, logger=logger)

    exit_code = EXIT_SUCCESS
    try:
        run.execute()
    except PipelineError as exc:
        log_event(logger, f"run failed: {exc}", run_id=run_id, event="RUN_FAIL", status="error", error_code=exc.error_code)
        exit_code = EXIT_HARD_FAIL
    except KeyboardInterrupt:
        log_event(logger, "run cancelled", run_id=run_id, event="RUN_FAIL", status="cancelled")
        exit_code = EXIT_HARD_FAIL

    summary = run.summary
    log_event(
        logger,
        f"run summary: {summary.to_dict()['totals']}",
        run_id=run_id,
        event="RUN_SUMMARY",
        status=summary.status,
        rows_in=summary.records_split,
        rows_out=summary.load.committed,
    )
    if args.report_path:
        write_run_summary(Path(args.report_path), summary)

    if exit_code != EXIT_SUCCESS:
        return exit_code
    if summary.status == "partial":
        return EXIT_HARD_FAIL if args.strict else EXIT_PARTIAL
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    try:
        args = parse_args(sys.argv[1:] if argv is None else argv)
    except UsageError as exc:
        parser = build_parser()
        parser.print_usage(sys.stderr)
        print(f"{parser.prog}: {exc}", file=sys.stderr)
        print(EPILOG, file=sys.stderr, end="")
        return EXIT_USAGE
    try:
        return run_command(args)
    except PipelineError:
        return EXIT_HARD_FAIL


if __name__ == "__main__":
    raise SystemExit(main())
