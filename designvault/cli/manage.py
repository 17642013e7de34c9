"""Operator CLI: schema creation and classification retry.

Usage::

    python -m designvault.cli init-db
    python -m designvault.cli retry --all
    python -m designvault.cli retry --asset-id 3f2c... --asset-id 9a1b...

Both commands build the same components as the web application from
``Settings`` and ``config/config.yaml``, run once and exit.
"""

from __future__ import annotations

import argparse
import asyncio
import sys

from designvault.config.settings import Settings
from designvault.utils.errors import DesignVaultError


async def _handle_init_db(app_settings: Settings) -> int:
    from designvault.main import build_components, close_components, initialize_stores

    components = build_components(app_settings)
    try:
        await initialize_stores(components)
    finally:
        await close_components(components)
    print(f"Schema ready ({app_settings.database_backend}).")
    return 0


async def _handle_retry(args: argparse.Namespace, app_settings: Settings) -> int:
    from designvault.main import build_components, close_components, initialize_stores

    components = build_components(app_settings)
    try:
        await initialize_stores(components)
        reset_ids = await components["asset_service"].retry_classification(
            asset_ids=args.asset_ids,
            retry_all=args.all,
            wait=True,
        )
        counts = await components["asset_service"].status_counts()
    finally:
        await close_components(components)

    print(f"Reset {len(reset_ids)} failed asset(s) to pending and re-classified them.")
    for asset_id in reset_ids:
        print(f"  {asset_id}")
    print("\nStatus counts:")
    for status, count in counts.items():
        print(f"  {status.value:<12} {count}")
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m designvault.cli",
        description="DesignVault operator commands.",
    )
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("init-db", help="Create the database schema (idempotent)")

    retry = sub.add_parser("retry", help="Re-run classification for failed assets")
    target = retry.add_mutually_exclusive_group(required=True)
    target.add_argument("--all", action="store_true", help="Retry every failed asset")
    target.add_argument(
        "--asset-id",
        dest="asset_ids",
        action="append",
        metavar="ID",
        help="Asset id to retry (repeatable)",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entry point; exits with the handler's status code."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    app_settings = Settings()
    try:
        if args.command == "init-db":
            exit_code = asyncio.run(_handle_init_db(app_settings))
        elif args.command == "retry":
            exit_code = asyncio.run(_handle_retry(args, app_settings))
        else:
            parser.print_help()
            exit_code = 1
    except DesignVaultError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        exit_code = 1

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
