"""Maintenance CLI for the marketplace database.

Commands:

- ``history TRADE_ID``: print a trade's negotiation history.
- ``cleanup-trades``: delete trades whose listing no longer exists and,
  with ``--prune-cancelled``, cancelled trades too.
- ``reconcile-vehicles``: clear stale ``is_listed`` / ``in_trade`` flags.

Usage::

    python -m autotrade.admin.cli history 3f2a... --format json
    python -m autotrade.admin.cli --db data/marketplace.db cleanup-trades --prune-cancelled
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any

from autotrade.domain.errors import NotFoundError
from autotrade.domain.models import Trade
from autotrade.state.schema import close_marketplace_db, init_marketplace_db
from autotrade.state.store import DocumentStore
from autotrade.trades.maintenance import cleanup_orphaned_trades, reconcile_vehicle_flags


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the maintenance commands.

    Returns:
        A configured :class:`argparse.ArgumentParser`.
    """
    parser = argparse.ArgumentParser(description="Marketplace maintenance tools")
    parser.add_argument(
        "--db",
        type=str,
        default="data/marketplace.db",
        help="Path to marketplace database (default: data/marketplace.db)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    history = sub.add_parser("history", help="Show a trade's negotiation history")
    history.add_argument("trade_id", help="Trade ID")
    history.add_argument(
        "--format",
        type=str,
        choices=["table", "json"],
        default="table",
        dest="output_format",
        help="Output format (default: table)",
    )

    cleanup = sub.add_parser("cleanup-trades", help="Delete trades whose listing is gone")
    cleanup.add_argument(
        "--prune-cancelled",
        action="store_true",
        help="Also delete cancelled trades",
    )

    sub.add_parser("reconcile-vehicles", help="Clear stale vehicle listing/trade flags")

    return parser


def history_rows(trade: Trade) -> list[dict[str, Any]]:
    """Flatten a trade's history into printable rows."""
    rows: list[dict[str, Any]] = []
    for entry in trade.history:
        rows.append(
            {
                "timestamp": entry.timestamp.isoformat(),
                "action": entry.action.value,
                "actor_id": entry.actor_id,
                "status": entry.status.value,
                "offerer_cash": str(entry.offerer.cash_amount),
                "offerer_vehicles": list(entry.offerer.vehicle_ids),
                "receiver_cash": str(entry.receiver.cash_amount),
                "receiver_vehicles": list(entry.receiver.vehicle_ids),
                "message": entry.message,
            }
        )
    return rows


def format_table(rows: list[dict[str, Any]]) -> str:
    """Format history rows as a human-readable table.

    Columns: Timestamp, Action, Actor, Status, Offerer gives, Receiver gives.
    Long fields are truncated to fit reasonable terminal width.

    Args:
        rows: Rows from :func:`history_rows`.

    Returns:
        Formatted table string with header row.
    """
    if not rows:
        return "No history found."

    headers = ["Timestamp", "Action", "Actor", "Status", "Offerer gives", "Receiver gives"]
    widths = [26, 10, 16, 18, 24, 24]

    def truncate(value: str | None, width: int) -> str:
        s = str(value or "")
        if len(s) > width:
            return s[: width - 3] + "..."
        return s

    def side(cash: str, vehicles: list[str]) -> str:
        return f"{cash} + {len(vehicles)} vehicle(s)"

    lines: list[str] = []
    header_line = "  ".join(h.ljust(w) for h, w in zip(headers, widths, strict=True))
    lines.append(header_line)
    lines.append("-" * len(header_line))

    for row in rows:
        cells = [
            truncate(row["timestamp"], widths[0]),
            truncate(row["action"], widths[1]),
            truncate(row["actor_id"], widths[2]),
            truncate(row["status"], widths[3]),
            truncate(side(row["offerer_cash"], row["offerer_vehicles"]), widths[4]),
            truncate(side(row["receiver_cash"], row["receiver_vehicles"]), widths[5]),
        ]
        lines.append("  ".join(c.ljust(w) for c, w in zip(cells, widths, strict=True)))

    return "\n".join(lines)


def format_json(rows: list[dict[str, Any]]) -> str:
    return json.dumps(rows, indent=2)


def run(args: argparse.Namespace, store: DocumentStore) -> str:
    """Execute the parsed command against *store* and return its output."""
    if args.command == "history":
        trade = store.require(Trade, args.trade_id)
        rows = history_rows(trade)
        return format_json(rows) if args.output_format == "json" else format_table(rows)

    if args.command == "cleanup-trades":
        deleted = cleanup_orphaned_trades(store, prune_cancelled=args.prune_cancelled)
        return f"Deleted {len(deleted)} trade(s)."

    fixed = reconcile_vehicle_flags(store)
    return f"Reconciled {len(fixed)} vehicle(s)."


def main(argv: list[str] | None = None) -> int:
    """Parse arguments, run the command, and print its output.

    Returns:
        The process exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    db_path = Path(args.db)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = init_marketplace_db(db_path)

    try:
        output = run(args, DocumentStore(conn))
    except NotFoundError as exc:
        print(str(exc), file=sys.stderr)
        return 1
    finally:
        close_marketplace_db(conn)

    print(output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
