#!/usr/bin/env python3
"""
hitcounter: privacy-preserving page-view beacon receiver.

Run the receiver:
  hitcounter run

Show the last 24 hours of events:
  hitcounter report

Send a sample event to a running receiver:
  hitcounter send-test --url http://localhost:3000/log
"""

from __future__ import annotations

import argparse
import json
import logging
import signal
import sys
from dataclasses import replace
from typing import Any, Dict, Optional, Sequence

import requests

from . import report
from .config import Config, ConfigError, clamp_int, load_config
from .server.app import create_app
from .server.database import EventStore, StoreUnavailable


logger = logging.getLogger("hitcounter")

SAMPLE_EVENT: Dict[str, Any] = {
    "date": "2025-09-25",
    "project": "test-website",
    "userAgent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
    ),
}


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if level != "DEBUG":
        logging.getLogger("werkzeug").setLevel(logging.WARNING)


def _raise_exit(signum: int, _frame: Any) -> None:
    raise SystemExit(0)


def cmd_run(cfg: Config, *, host: Optional[str], port: Optional[str]) -> int:
    server = replace(
        cfg.server,
        host=host or cfg.server.host,
        port=clamp_int(port, 1, 65535, default=cfg.server.port) if port else cfg.server.port,
    )
    try:
        store = EventStore(cfg.database)
        store.connect()
    except StoreUnavailable as e:
        logger.error("%s; refusing to start", e)
        return 1

    # SIGTERM unwinds through the finally below like Ctrl-C does.
    signal.signal(signal.SIGTERM, _raise_exit)
    try:
        app = create_app(cfg, store)
        logger.info("listening on http://%s:%d", server.host, server.port)
        app.run(host=server.host, port=server.port, debug=False)
    except KeyboardInterrupt:
        pass
    finally:
        store.close()
    return 0


def cmd_send_test(url: str) -> int:
    print("Sending test data to /log endpoint...")
    print("Test data:", json.dumps(SAMPLE_EVENT, indent=2))
    try:
        resp = requests.post(url, json=SAMPLE_EVENT, timeout=10)
    except requests.RequestException as e:
        print(f"Test failed with error: {e}")
        print(f"Make sure the receiver is running at {url}")
        return 1

    print(f"\nResponse status: {resp.status_code}")
    try:
        print("Response data:", json.dumps(resp.json(), indent=2))
    except ValueError:
        print("Response data:", resp.text)
    if resp.ok:
        print("\nTest completed successfully")
        return 0
    print("Test failed with error response")
    return 1


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="hitcounter", description="Privacy-preserving page-view beacon receiver")
    ap.add_argument("--config", default=None, help="Path to config.yaml (default: $HITCOUNTER_CONFIG or ./config.yaml)")
    sub = ap.add_subparsers(dest="cmd", required=False)

    runp = sub.add_parser("run", help="Run the receiver")
    runp.add_argument("--host", default=None)
    runp.add_argument("--port", default=None)

    reportp = sub.add_parser("report", help="Print recent events")
    reportp.add_argument("--hours", type=int, default=24)

    testp = sub.add_parser("send-test", help="POST a sample event to a running receiver")
    testp.add_argument("--url", default="http://localhost:3000/log")
    return ap


def main(argv: Optional[Sequence[str]] = None) -> int:
    ap = build_parser()
    args = ap.parse_args(argv)
    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        print(f"config error: {e}", file=sys.stderr)
        return 2
    setup_logging(cfg.log_level)

    cmd = args.cmd or "run"
    if cmd == "run":
        return cmd_run(cfg, host=getattr(args, "host", None), port=getattr(args, "port", None))
    if cmd == "report":
        return report.main(cfg, hours=max(1, args.hours))
    if cmd == "send-test":
        return cmd_send_test(args.url)
    ap.print_help()
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
