"""CLI entrypoint for the arXiv thread bot."""

from __future__ import annotations

import argparse
import logging
import os

from dotenv import load_dotenv

from bot import build_client
from channel_gate import GATE_FILE_PATH, ChannelGate
from router import EventRouter


def parse_args() -> argparse.Namespace:
    """Parse command-line flags."""
    parser = argparse.ArgumentParser(description="Discord bot that turns arXiv ids into paper summary threads")
    parser.add_argument(
        "--gate-file",
        default=None,
        help=f"JSON file holding enabled channel ids (default: $GATE_FILE_PATH or {GATE_FILE_PATH})",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: $LOG_LEVEL or INFO)",
    )
    return parser.parse_args()


def main() -> None:
    """Load config, wire the gate and router into a Discord client, and run it."""
    load_dotenv()
    args = parse_args()
    level = args.log_level or os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(message)s")

    token = os.getenv("DISCORD_TOKEN")
    if not token:
        raise RuntimeError("DISCORD_TOKEN environment variable is required")

    gate = ChannelGate(args.gate_file or os.getenv("GATE_FILE_PATH", GATE_FILE_PATH))
    client = build_client(EventRouter(gate))
    # discord.py would otherwise install its own root handler over basicConfig.
    client.run(token, log_handler=None)


if __name__ == "__main__":
    main()
