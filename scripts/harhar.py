#!/usr/bin/env python3
"""
Fetch URLs through a recording session and write the HAR file.

Usage:
  python scripts/harhar.py [-o results.har] URL [URL ...]
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

# プロジェクトルートをPYTHONPATHに追加
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import requests
from dotenv import load_dotenv

load_dotenv()

from application.exceptions import PersistenceError
from domain.exceptions import HarError
from infrastructure.har.factory import new_recorder, write_har_file
from infrastructure.http.recording_adapter import recording_session
from infrastructure.logging.console_logger import ConsoleLogger
from infrastructure.logging.log_setup import setup_console_logging

DEFAULT_TIMEOUT_SEC = 30


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="GET each URL and save the traffic as HAR")
    parser.add_argument("urls", nargs="+", metavar="URL")
    parser.add_argument("-o", "--output", type=str, default="results.har", help="output .har file")
    parser.add_argument("--indent", type=int, default=None, help="pretty-print with this indent")
    parser.add_argument("--timeout-sec", type=float, default=DEFAULT_TIMEOUT_SEC)
    parser.add_argument("--log-level", type=str, default="INFO")
    return parser


def run(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    setup_console_logging(level=args.log_level)

    recorder = new_recorder(logger=ConsoleLogger().bind(component="harhar"), indent=args.indent)
    failures = 0
    with recording_session(recorder) as session:
        for url in args.urls:
            try:
                resp = session.get(url, timeout=args.timeout_sec)
            except (requests.RequestException, HarError) as exc:
                # logged as har.transport_failed; keep going with the remaining URLs
                print(f"ERROR: {url}: {exc}")
                failures += 1
                continue
            print(f"{resp.status_code} {url} ({len(resp.content)} bytes)")

    try:
        size = write_har_file(recorder, args.output)
    except PersistenceError as exc:
        print(f"ERROR: {exc}")
        return 1

    print(f"[{len(recorder)} entries] -- wrote {args.output} ({size / 1024.0:.1f}kb)")
    return 0 if failures == 0 else 1


def main() -> None:
    sys.exit(run())


if __name__ == "__main__":
    main()
