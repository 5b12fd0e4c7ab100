"""Command-line entry point: top SQL by application and network time from a capture."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .config import AnalyzerConfig
from .errors import CaptureError
from .report import format_report, write_csv_reports
from .session import analyze_capture

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Find the top SQL statements, from the application's point of view, in an Oracle Net capture.",
    )
    parser.add_argument(
        "pcap_path",
        type=Path,
        help="Path to the PCAP/PCAPNG capture to analyze.",
    )
    parser.add_argument(
        "-i",
        "--db-ip",
        required=True,
        metavar="IPS",
        help='Database server IP address; several may be given as "ip1 or ip2".',
    )
    parser.add_argument(
        "-p",
        "--db-port",
        required=True,
        type=int,
        metavar="PORT",
        help="Listener port of the database server.",
    )
    parser.add_argument(
        "-d",
        "--debug",
        action="store_true",
        help="Log per-packet dissection details (same as --log-level DEBUG).",
    )
    parser.add_argument(
        "-C",
        "--output-dir",
        type=Path,
        help="Directory where *_SQL_Stats.csv and *_SQL_Samples.csv are written.",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=1,
        metavar="N",
        help="Threads used to segment conversations (default: 1).",
    )
    parser.add_argument(
        "--max-errors",
        type=int,
        metavar="N",
        help="Stop reading the capture after N malformed frames and report what was collected.",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default="WARNING",
        help="Log level for diagnostic output.",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    level = logging.DEBUG if args.debug else getattr(logging, args.log_level)
    logging.basicConfig(level=level)

    try:
        config = AnalyzerConfig.from_expression(
            args.pcap_path,
            args.db_ip,
            args.db_port,
            debug=args.debug,
            output_dir=args.output_dir,
            workers=args.workers,
            max_errors=args.max_errors,
        )
    except ValueError as exc:
        parser.error(str(exc))

    try:
        report = analyze_capture(config)
    except (FileNotFoundError, CaptureError) as exc:
        logger.error(str(exc))
        return 1

    print(format_report(report))

    if config.output_dir is not None:
        stats_path, samples_path = write_csv_reports(report, config.output_dir, config.pcap_path.name)
        logger.info("Statistics written to %s and %s", stats_path, samples_path)

    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
