"""
Forensic Reporter CLI
=====================

Inspects a persisted ledger file directly, without starting an engine.
Nothing is written back to storage.

COMMANDS:
- verify:  Check hash chain integrity
- log:     Dump the ledger in order
- scan:    Print a Sentinel report for the stored snapshot
- recall:  List threads related to a given thread id

USAGE:
    python -m tapestry.forensic [COMMAND] --storage PATH
"""

import argparse
import json
import os
import sys
from typing import List, Optional, Sequence

from .contracts.base import StorageError
from .contracts.events import Thread
from .core.sentinel import Sentinel
from .query.mnemosyne import Mnemosyne
from .storage import JsonFileStorageBackend
from .temporal.ledger import verify_chain


DEFAULT_STORAGE = os.path.join(".", "data", "ledger.json")


def load_threads(path: str) -> List[Thread]:
    if not os.path.exists(path):
        print(f"[!] No ledger found at {path}")
        return []
    return JsonFileStorageBackend(path).load()


def cmd_verify(args) -> int:
    """Verify hash chain integrity."""
    print(f"[*] Verifying ledger at: {args.storage}")
    threads = load_threads(args.storage)
    print(f"    Loaded {len(threads)} threads.")

    unsealed = sum(1 for t in threads if not t.hash)
    if unsealed:
        print(f"[WARN] {unsealed} legacy thread(s) without a hash; the engine migrates them on startup.")
        return 1

    valid, error = verify_chain(threads)
    if not valid:
        print(f"[FAIL] {error.message}")
        for key, value in error.context:
            print(f"       {key}: {value}")
        return 1

    head = threads[-1].hash if threads else "GENESIS"
    print(f"[PASS] Verified {len(threads)} threads. Integrity intact.")
    print(f"[INFO] HEAD Hash: {head}")
    return 0


def cmd_log(args) -> int:
    """Dump the ledger in insertion order."""
    threads = load_threads(args.storage)
    print("IDX | TIMESTAMP     | ID           | INTENTION | TIME    | REGION | TITLE")
    print("-" * 80)
    for index, t in enumerate(threads):
        print(
            f"{index:<3} | {str(t.timestamp):<13} | {t.id:<12} | {t.intention.value:<9} | "
            f"{t.time_of_day.value:<7} | {t.region.value:<6} | {t.title or ''}"
        )
    return 0


def cmd_scan(args) -> int:
    """Print the Sentinel report for the stored snapshot."""
    report = Sentinel().assess(load_threads(args.storage))
    if args.json:
        print(json.dumps(report.to_dict(), indent=2))
        return 0

    print(f"DEFCON {report.defcon_level} ({report.status.value}) over {report.total} threads")
    if report.dominant.intention:
        print(f"Dominant: {report.dominant.intention.value} ({report.dominant.percent_share}%)")
    for threat in report.threats:
        where = f" [{threat.region.value}]" if threat.region else ""
        print(f"  - {threat.type.value}/{threat.severity.value}{where}: {threat.message}")
    for zone in report.zones:
        print(f"  zone {zone.region.value:<7} {zone.count:>4}  intensity {zone.intensity:.2f}")
    return 0


def cmd_recall(args) -> int:
    """List threads related to the given id."""
    threads = load_threads(args.storage)
    target = next((t for t in threads if t.id == args.thread_id), None)
    if target is None:
        print(f"[!] Thread {args.thread_id} not found")
        return 1

    matches = Mnemosyne().top(target, k=args.limit, threads=threads)
    if not matches:
        print("No related threads.")
    for match in matches:
        t = match.thread
        terms = ", ".join(match.common_terms)
        print(f"{match.score:>3}%  {t.id}  {t.intention.value}/{t.time_of_day.value}/{t.region.value}  [{terms}]")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Forensic Reporter")
    parser.add_argument("--storage", default=DEFAULT_STORAGE, help="Path to the ledger JSON file")

    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("verify", help="Verify integrity")
    subparsers.add_parser("log", help="Dump ledger")

    scan_parser = subparsers.add_parser("scan", help="Sentinel report")
    scan_parser.add_argument("--json", action="store_true", help="Emit the report as JSON")

    recall_parser = subparsers.add_parser("recall", help="Related threads")
    recall_parser.add_argument("thread_id", help="Thread id to search from")
    recall_parser.add_argument("--limit", type=int, default=5, help="Number of matches")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    commands = {
        "verify": cmd_verify,
        "log": cmd_log,
        "scan": cmd_scan,
        "recall": cmd_recall,
    }
    command = commands.get(args.command)
    if command is None:
        parser.print_help()
        return 2

    try:
        return command(args)
    except StorageError as e:
        print(f"[FAIL] Could not read ledger: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
