# ruff: noqa: T201

from __future__ import annotations

import argparse
import getpass
import logging
import sys
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from modcheck.app import AuthenticationError, InstallationError, check_mods
from modcheck.common.logging import configure_logging
from modcheck.config import ConfigurationError
from modcheck.config.forge import FORGE_TOKEN_URL
from modcheck.ui.report import render_report

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from types import FrameType

    from modcheck.domain.model import Package

log = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Check installed SPT mods against the Forge catalog",
    )
    parser.add_argument(
        "install_root",
        nargs="?",
        default=".",
        help="Root directory of the SPT installation (default: current directory)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    confirm = parser.add_mutually_exclusive_group()
    confirm.add_argument(
        "--yes",
        action="store_true",
        help="Accept every low-confidence match without asking",
    )
    confirm.add_argument(
        "--no-confirm",
        action="store_true",
        help="Reject every low-confidence match without asking",
    )
    return parser.parse_args(list(argv))


def _prompt_api_key() -> str | None:
    print("A Forge API key with 'read' permission is required.")
    print(f"Generate one at {FORGE_TOKEN_URL}")
    try:
        return getpass.getpass("Enter your API key: ")
    except EOFError:
        return None


def _key_rejected(_key: str) -> None:
    print("The entered key is invalid or lacks 'read' permission. Please try again.")


def _ask_confirmations(pending: Sequence[Package]) -> list[bool]:
    print(f"\n{len(pending)} mod(s) matched with low confidence:")
    decisions: list[bool] = []
    for package in pending:
        print(f"\n  local:  {package.local_name} by {package.local_author} v{package.local_version}")
        print(f"  forge:  {package.catalog_name} by {package.catalog_author} ({package.url or '-'})")
        print(f"  confidence: {package.match_confidence}%")
        try:
            answer = input("  Is this the same mod? [y/N] ")
        except EOFError:
            answer = ""
        decisions.append(answer.strip().casefold() in {"y", "yes"})
    return decisions


def _confirmation_decider(
    args: argparse.Namespace,
) -> Callable[[Sequence[Package]], list[bool]]:
    if args.yes:
        return lambda pending: [True] * len(pending)
    if args.no_confirm:
        return lambda pending: [False] * len(pending)
    return _ask_confirmations


def _match_progress(package: Package, completed: int, total: int) -> None:
    log.debug("Matched %s/%s: %s -> %s", completed, total, package.local_name, package.status)


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args = _parse_args(args_list)

    configure_logging(level=logging.DEBUG if parsed_args.verbose else logging.INFO)
    install_root = Path(parsed_args.install_root).expanduser().resolve()
    if not install_root.is_dir():
        log.error("Install directory not found: %s", install_root)
        sys.exit(2)

    try:
        report = check_mods(
            install_root,
            prompt_api_key=_prompt_api_key,
            on_key_rejected=_key_rejected,
            confirm=_confirmation_decider(parsed_args),
            match_progress=_match_progress,
        )
    except (InstallationError, ConfigurationError):
        log.exception("Cannot check this installation")
        sys.exit(2)
    except AuthenticationError:
        log.exception("Authentication failed")
        sys.exit(1)
    except Exception:
        log.exception("Fatal error during check")
        sys.exit(1)

    print(render_report(report))


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
