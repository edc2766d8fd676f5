#!/usr/bin/env python3
"""
nostr-wot CLI - sync and query a local Nostr Web of Trust.

Commands:
  nostr-wot sync [--depth N]             Crawl the follow graph from relays
  nostr-wot distance <pubkey>            Hops, paths, bridges and mutual flag
  nostr-wot score <pubkey>               Trust score (0.0 - 1.0)
  nostr-wot check <pubkey> [<pubkey>..]  Distance and score for many targets
  nostr-wot status                       Last sync depth/time and graph size
  nostr-wot clear                        Delete the local graph

Environment Variables:
  NOSTR_WOT_PUBKEY     Your pubkey (hex)
  NOSTR_WOT_RELAYS     Comma-separated relay URLs (needed by sync)
  NOSTR_WOT_STORAGE    Storage backend: sqlite (default), memory, postgres
  NOSTR_WOT_DB_PATH    SQLite file (default: ~/.nostr-wot/graph.sqlite)
  NOSTR_WOT_DSN        PostgreSQL DSN for the postgres backend
  NOSTR_WOT_MAX_HOPS   Default query depth (default: 3)
  NOSTR_WOT_TIMEOUT    Per-subscription relay timeout in seconds

Example:
  export NOSTR_WOT_PUBKEY=82341f88...
  export NOSTR_WOT_RELAYS=wss://relay.damus.io,wss://nos.lol
  nostr-wot sync --depth 2
  nostr-wot score 3bf0c63f...
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from datetime import datetime
from typing import Any

from ..core import defaults
from ..core.config import WoTConfig
from ..core.exceptions import WoTException
from ..graph.store import FollowGraphStore, FollowState
from ..graph.sync import SyncProgress
from ..local import LocalWoT
from ..storage import create_storage

logger = logging.getLogger(__name__)


# =============================================================================
# HELPERS
# =============================================================================


def build_wot(args: argparse.Namespace, offline: bool = False) -> LocalWoT:
    """Create a LocalWoT from environment variables and CLI overrides.

    Query commands pass ``offline=True`` so they run without relays.
    """
    overrides: dict[str, Any] = {"my_pubkey": args.pubkey, "offline": offline}
    if args.relay:
        overrides["relays"] = args.relay
    if args.db:
        overrides["storage"] = "sqlite"
        overrides["storage_options"] = {"path": args.db}
    if getattr(args, "timeout", None):
        overrides["timeout"] = args.timeout
    return LocalWoT(config=WoTConfig.from_env(**overrides))


def build_store(args: argparse.Namespace) -> FollowGraphStore:
    """Open the configured storage without needing pubkey or relays."""
    backend = "sqlite" if args.db else os.environ.get("NOSTR_WOT_STORAGE", "sqlite")
    options: dict[str, Any] = {}
    if backend == "sqlite":
        options["path"] = args.db or os.environ.get("NOSTR_WOT_DB_PATH", defaults.DEFAULT_DB_PATH)
    elif backend == "postgres":
        options["dsn"] = os.environ.get("NOSTR_WOT_DSN", "")
    return FollowGraphStore(create_storage(backend, **options))


def format_time(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp).strftime("%Y-%m-%d %H:%M:%S")


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


async def _close_store(store: FollowGraphStore) -> None:
    close = getattr(store.storage, "close", None)
    if close is not None:
        await close()


# =============================================================================
# COMMANDS
# =============================================================================


def cmd_sync(args: argparse.Namespace) -> int:
    """Sync the follow graph."""
    def on_progress(progress: SyncProgress) -> None:
        if not args.json:
            print(
                f"\r  depth {progress.current_depth}/{progress.total_depth}: "
                f"{progress.processed}/{progress.total}",
                end="",
                flush=True,
            )

    async def run() -> Any:
        wot = build_wot(args)
        try:
            return await wot.sync(depth=args.depth, on_progress=on_progress)
        finally:
            await wot.close()

    report = asyncio.run(run())

    if args.json:
        _print_json({
            "depth": report.depth,
            "rounds": report.rounds,
            "resolved": report.resolved,
            "empty": report.empty,
            "unresolved": report.unresolved,
            "duration": round(report.duration, 3),
        })
        return 0

    print()
    print(f"✅ Synced {report.visited} identities in {report.duration:.1f}s")
    print(f"   resolved: {report.resolved}  empty: {report.empty}  unresolved: {report.unresolved}")
    return 0


def cmd_distance(args: argparse.Namespace) -> int:
    """Show distance details for a target."""
    async def run() -> Any:
        wot = build_wot(args, offline=True)
        try:
            return await wot.get_distance(args.target, max_hops=args.max_hops)
        finally:
            await wot.close()

    result = asyncio.run(run())

    if args.json:
        _print_json(result.to_dict() if result else None)
        return 0

    if result is None:
        print("Not connected")
        return 0

    print(f"Hops:    {result.hops}")
    print(f"Paths:   {result.paths}")
    print(f"Mutual:  {'yes' if result.mutual else 'no'}")
    if result.bridges:
        print("Bridges:")
        for bridge in result.bridges:
            print(f"  {bridge}")
    return 0


def cmd_score(args: argparse.Namespace) -> int:
    """Show the trust score for a target."""
    async def run() -> float:
        wot = build_wot(args, offline=True)
        try:
            return await wot.get_trust_score(args.target, max_hops=args.max_hops)
        finally:
            await wot.close()

    score = asyncio.run(run())

    if args.json:
        _print_json({"pubkey": args.target.lower(), "score": score})
    else:
        print(f"{score:.3f}")
    return 0


def cmd_check(args: argparse.Namespace) -> int:
    """Check several targets at once."""
    async def run() -> Any:
        wot = build_wot(args, offline=True)
        try:
            return await wot.batch_check(args.targets, max_hops=args.max_hops)
        finally:
            await wot.close()

    results = asyncio.run(run())

    if args.json:
        _print_json([r.to_dict() for r in results.values()])
        return 0

    for r in results.values():
        distance = "-" if r.distance is None else str(r.distance)
        marker = "✅" if r.in_wot else "  "
        print(f"{marker} {r.pubkey[:16]}...  hops={distance:>2}  score={r.score:.3f}")
    return 0


def cmd_status(args: argparse.Namespace) -> int:
    """Show sync metadata and graph size."""
    async def run() -> dict[str, Any]:
        store = build_store(args)
        try:
            status = await store.get_sync_status()
            records = await store.snapshot()
        finally:
            await _close_store(store)
        counts = {state.value: 0 for state in FollowState}
        for record in records.values():
            counts[record.state.value] += 1
        return {
            "synced": status is not None,
            "depth": status.depth if status else None,
            "time": status.time if status else None,
            "identities": len(records),
            **counts,
        }

    info = asyncio.run(run())

    if args.json:
        _print_json(info)
        return 0

    if not info["synced"]:
        print("Never synced")
    else:
        print(f"Last sync:  depth {info['depth']} at {format_time(info['time'])}")
    print(f"Identities: {info['identities']}")
    print(
        f"  resolved: {info['resolved']}  empty: {info['empty']}  unresolved: {info['unresolved']}"
    )
    return 0


def cmd_clear(args: argparse.Namespace) -> int:
    """Delete the local graph."""
    async def run() -> None:
        store = build_store(args)
        try:
            await store.clear()
        finally:
            await _close_store(store)

    asyncio.run(run())

    if args.json:
        _print_json({"cleared": True})
    else:
        print("✅ Local graph cleared")
    return 0


# =============================================================================
# ARGUMENT PARSER
# =============================================================================


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="nostr-wot",
        description="Sync and query a local Nostr Web of Trust",
    )
    parser.add_argument("--pubkey", "-p", help="Your pubkey (overrides NOSTR_WOT_PUBKEY)")
    parser.add_argument(
        "--relay",
        "-r",
        action="append",
        help="Relay URL, repeatable (overrides NOSTR_WOT_RELAYS)",
    )
    parser.add_argument("--db", help="SQLite database file (overrides NOSTR_WOT_DB_PATH)")
    parser.add_argument("--json", action="store_true", help="Output as JSON")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    sync_parser = subparsers.add_parser("sync", help="Crawl the follow graph from relays")
    sync_parser.add_argument(
        "--depth",
        "-d",
        type=int,
        default=defaults.DEFAULT_SYNC_DEPTH,
        help=f"BFS rounds from your pubkey (default: {defaults.DEFAULT_SYNC_DEPTH})",
    )
    sync_parser.add_argument("--timeout", "-t", type=float, help="Per-subscription timeout in seconds")

    for name, help_text in (
        ("distance", "Show hops, paths, bridges and mutual flag"),
        ("score", "Show trust score"),
    ):
        query_parser = subparsers.add_parser(name, help=help_text)
        query_parser.add_argument("target", help="Target pubkey (hex)")
        query_parser.add_argument("--max-hops", "-m", type=int, help="Maximum hops to search")

    check_parser = subparsers.add_parser("check", help="Check several targets")
    check_parser.add_argument("targets", nargs="+", help="Target pubkeys (hex)")
    check_parser.add_argument("--max-hops", "-m", type=int, help="Maximum hops to search")

    subparsers.add_parser("status", help="Show last sync and graph size")
    subparsers.add_parser("clear", help="Delete the local graph")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)

    if not args.command:
        parser.print_help()
        return 0

    commands = {
        "sync": cmd_sync,
        "distance": cmd_distance,
        "score": cmd_score,
        "check": cmd_check,
        "status": cmd_status,
        "clear": cmd_clear,
    }

    handler = commands.get(args.command)
    if handler is None:
        parser.print_help()
        return 1

    logger.debug(f"Running command {args.command}")
    try:
        return handler(args)
    except WoTException as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1


# For CLI entry point
app = main


if __name__ == "__main__":
    sys.exit(main())
