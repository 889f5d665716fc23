#!/usr/bin/env python3
"""
Start the recording proxy (harprox) with uvicorn.

Usage:
  python scripts/run_api.py [--upstream http://host/prefix] [--server-side] [--port 6060]

Settings not given on the command line come from HARLOG_* / .env / HARLOG_CONFIG.
"""
import argparse
import sys
from dataclasses import replace
from pathlib import Path

# プロジェクトルートをPYTHONPATHに追加
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import uvicorn

from api.main import create_app
from domain.exceptions import ConfigError
from infrastructure.config.settings import load_header_file, load_settings
from infrastructure.logging.log_setup import setup_console_logging


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="HAR recording reverse proxy")
    parser.add_argument("-p", "--upstream", type=str, help="http://hostname/path prefix to prepend on request paths")
    parser.add_argument("-o", "--output", type=str, help="output .har file")
    parser.add_argument("-n", "--interval", type=float, help="save the HAR every N seconds")
    parser.add_argument("-H", "--headers-file", type=str, help="Name: value lines overriding request headers")
    parser.add_argument("-s", "--server-side", action="store_true", help="record at the server instead of the client")
    parser.add_argument("--host", type=str)
    parser.add_argument("--port", type=int)
    return parser


def main() -> None:
    args = _build_parser().parse_args()
    try:
        settings = load_settings()
        overrides = {}
        if args.upstream:
            overrides["upstream"] = args.upstream
        if args.output:
            overrides["output_path"] = args.output
        if args.interval is not None:
            overrides["flush_interval_sec"] = args.interval
        if args.server_side:
            overrides["server_side"] = True
        if args.host:
            overrides["host"] = args.host
        if args.port:
            overrides["port"] = args.port
        if args.headers_file:
            overrides["override_headers"] = settings.override_headers + load_header_file(args.headers_file)
        settings = replace(settings, **overrides)
    except ConfigError as exc:
        print(f"ERROR: {exc}")
        sys.exit(1)

    setup_console_logging(level=settings.log_level, log_file=settings.log_file)
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
