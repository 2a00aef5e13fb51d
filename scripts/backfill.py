#!/usr/bin/env python3
"""
GameResult backfill script for the flip oracle.

Replays historical GameResult events into a scratch state store and reports
the resulting player states. Useful for auditing the read-model against the
chain and for choosing RECONCILER_START_BLOCK.
"""
import argparse
import json
import os
import sys

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv

load_dotenv()

from flip_oracle.audit_logger import get_audit_logger
from flip_oracle.config import get_config, validate_config
from flip_oracle.errors import UpstreamUnavailableError
from flip_oracle.security import configure_logging
from flip_oracle.services import build_services


def main() -> int:
    """Backfill from --from-block and print the resulting player states."""
    ap = argparse.ArgumentParser(description="Replay GameResult history")
    ap.add_argument("--from-block", type=int, required=True)
    ap.add_argument("--to-block", type=int, default=None)
    ap.add_argument("--show-players", action="store_true")
    args = ap.parse_args()

    cfg = get_config()
    validate_config(cfg)
    configure_logging(cfg)

    services = build_services(cfg)

    print("=" * 60)
    print("Flip Oracle GameResult Backfill")
    print("=" * 60)

    try:
        applied = services.reconciler.backfill(args.from_block, args.to_block)
    except UpstreamUnavailableError as e:
        print(f"\n❌ Backfill failed: {e.message}")
        return 1

    print(f"\n✅ Applied {applied} events")
    print(f"   Cursor: {services.reconciler.cursor}")
    get_audit_logger().log_event(
        "backfill_completed",
        from_block=args.from_block,
        to_block=args.to_block,
        applied=applied,
        cursor=services.reconciler.cursor,
    )

    if args.show_players:
        players = [p.to_dict() for p in services.store.all_players()]
        print(json.dumps(players, indent=2))

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
