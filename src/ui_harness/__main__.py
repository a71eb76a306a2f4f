"""Command line entry point.

    python -m ui_harness login [--save-state PATH] [--headless] [--stealth]
    python -m ui_harness extract-code [FILE]
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

import anyio

from ui_harness.auth_state import ensure_auth_state
from ui_harness.config import HarnessConfig
from ui_harness.errors import HarnessError
from ui_harness.session import SessionOptions, bootstrap
from ui_harness.verification import extract_code

logger = logging.getLogger("ui_harness")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ui-harness", description="UI end-to-end harness utilities")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    login = sub.add_parser("login", help="Log in once and report the outcome")
    login.add_argument("--save-state", type=Path, help="Save the logged-in storage state to this file")
    login.add_argument("--force", action="store_true", help="Log in even if the state file exists")
    login.add_argument("--headless", action="store_true", default=None, help="Run the browser headless")
    login.add_argument("--stealth", action="store_true", help="Randomise user agent and hide automation flags")

    extract = sub.add_parser("extract-code", help="Print the one-time code found in a mail body")
    extract.add_argument("file", nargs="?", type=Path, help="File with the mail body (default: stdin)")
    return parser


async def _login(args: argparse.Namespace, config: HarnessConfig) -> None:
    options = SessionOptions(headless=args.headless, stealth=args.stealth)
    if args.save_state:
        path = await ensure_auth_state(args.save_state, options, config=config, force_login=args.force)
        print(path)
        return
    session = await bootstrap(options, config=config)
    await session.close()
    print("login ok")


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.command == "extract-code":
            text = args.file.read_text(encoding="utf-8") if args.file else sys.stdin.read()
            print(extract_code(text))
            return 0

        config = HarnessConfig.from_env()
        anyio.run(_login, args, config)
        return 0
    except HarnessError as exc:
        logger.error("%s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
