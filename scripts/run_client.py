#!/usr/bin/env python3
"""Run the NTP client against one server and print each synced time.

Usage examples:
  - python scripts/run_client.py
  - python scripts/run_client.py --host time.google.com --count 3
  - python scripts/run_client.py --interval-ms 10000 --time-offset 2

Settings not given on the command line come from NTPSYNC_* environment
variables or a .env file.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from datetime import datetime, timezone
from pathlib import Path


# Ensure src is on sys.path when run from a checkout
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from ntpsync.client import NTPClient  # noqa: E402
from ntpsync.config.settings import Settings  # noqa: E402
from ntpsync.utils.logging_config import setup_logging  # noqa: E402


def build_settings(args: argparse.Namespace) -> Settings:
    overrides = {
        "destination_host": args.host,
        "destination_port": args.port,
        "resync_interval_ms": args.interval_ms,
        "max_retries": args.max_retries,
        "time_offset": args.time_offset,
        "log_level": args.log_level,
    }
    return Settings(**{k: v for k, v in overrides.items() if v is not None})


async def run(settings: Settings, count: int, timeout: float) -> int:
    synced = 0
    async with NTPClient(settings) as client:
        while count <= 0 or synced < count:
            try:
                now = await client.wait_synced(timeout=timeout)
            except asyncio.TimeoutError:
                print(f"no reply from {settings.destination_host} within {timeout}s")
                continue
            except Exception as e:
                print(f"sync failed: {e}")
                return 1
            synced += 1
            engine = client.engine
            stamp = datetime.fromtimestamp(now, tz=timezone.utc).isoformat()
            print(f"{stamp}  offset={engine.clock_offset:+d}s  delay={engine.round_trip_delay}s")
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Synchronize with an NTP server")
    parser.add_argument("--host", help="NTP server (default: pool.ntp.org)")
    parser.add_argument("--port", type=int, help="NTP server port (default: 123)")
    parser.add_argument("--interval-ms", type=int, help="Resync period in milliseconds")
    parser.add_argument("--max-retries", type=int, help="Send retries before giving up")
    parser.add_argument("--time-offset", type=int, help="Seconds added to the synced time")
    parser.add_argument(
        "--count",
        type=int,
        default=1,
        help="Number of syncs to print before exiting (0 runs until Ctrl+C)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=10.0,
        help="Seconds to wait for each sync (default: 10)",
    )
    parser.add_argument("--log-level", help="Log level (default: INFO)")
    args = parser.parse_args()

    settings = build_settings(args)
    setup_logging(settings, component="ntp_client")

    try:
        code = asyncio.run(run(settings, args.count, args.timeout))
    except KeyboardInterrupt:
        code = 0
    raise SystemExit(code)


if __name__ == "__main__":
    main()
