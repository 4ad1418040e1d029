"""Command-line entry for eventfeed.

Loads the upcoming events once (remote, then cache) and prints them.
"""

from __future__ import annotations

import argparse
import sys
from typing import NoReturn

from . import run_feed


def _create_parser() -> argparse.ArgumentParser:
    """Create argument parser for the eventfeed CLI.

    Returns:
        Configured argument parser
    """
    parser = argparse.ArgumentParser(
        prog="eventfeed",
        description="eventfeed - upcoming church events, online or offline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m eventfeed                              # Next 3 events from Firestore
  python -m eventfeed --limit 10                   # Next 10 events
  python -m eventfeed --events-file events.json    # Read a local JSON export
  python -m eventfeed --offline                    # Serve from the cache only
        """,
    )

    parser.add_argument(
        "--config",
        metavar="PATH",
        help="Path to YAML config file (default: ./eventfeed.yaml)",
    )
    parser.add_argument(
        "--limit",
        type=int,
        metavar="N",
        help="Number of upcoming events to show (default: display_limit from config)",
    )
    parser.add_argument(
        "--events-file",
        dest="events_file",
        metavar="PATH",
        help="Read events from a JSON file instead of Firestore",
    )
    parser.add_argument(
        "--offline",
        action="store_true",
        help="Skip the connectivity probe and use cached events",
    )

    return parser


def main() -> NoReturn:
    """Run the eventfeed CLI."""
    parser = _create_parser()
    args = parser.parse_args()

    try:
        sys.exit(run_feed(args))
    except KeyboardInterrupt:
        sys.exit(130)


if __name__ == "__main__":
    main()
