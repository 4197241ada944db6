from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from loadstat.config import RunConfig, TargetConfig
from loadstat.loadgen import HttpRequestHandler, Runner
from loadstat.metrics import reports_frame


def configure_logging(level: str) -> None:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
    root = logging.getLogger("loadstat")
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level.upper())
    root.propagate = False


def _parse_headers(raw: list[str]) -> dict[str, str]:
    headers: dict[str, str] = {}
    for item in raw:
        name, sep, value = item.partition(":")
        if not sep or not name.strip():
            msg = f"Invalid header {item!r}, expected NAME:VALUE"
            raise argparse.ArgumentTypeError(msg)
        headers[name.strip()] = value.strip()
    return headers


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Concurrent load generator with latency statistics")
    parser.add_argument("--target", required=True, help="Target URL")
    parser.add_argument("-c", "--concurrency", type=int, default=20)
    parser.add_argument("-n", "--requests", type=int, default=50, help="Requests per worker")
    parser.add_argument("--interval", type=float, default=0.0, help="Seconds between periodic reports, 0 disables")
    parser.add_argument("--buffer", type=int, default=1024, help="Outcome buffer capacity")
    parser.add_argument("--method", default="GET")
    parser.add_argument("--timeout", type=float, default=5.0)
    parser.add_argument("--header", action="append", default=[], help="Extra header as NAME:VALUE")
    parser.add_argument("--insecure", action="store_true", help="Skip TLS certificate verification")
    parser.add_argument("--keep-zero-percentiles", action="store_true")
    parser.add_argument("--summary", action="store_true", help="Print a one-row-per-key summary table")
    parser.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"], default="INFO")
    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    try:
        headers = _parse_headers(args.header)
        config = RunConfig(
            concurrency=args.concurrency,
            requests_per_worker=args.requests,
            stat_interval_sec=args.interval,
            results_buffer_size=args.buffer,
            drop_zero_percentiles=not args.keep_zero_percentiles,
        )
    except (argparse.ArgumentTypeError, ValueError) as exc:
        parser.error(str(exc))
    target = TargetConfig(
        url=args.target,
        method=args.method,
        timeout_sec=args.timeout,
        headers=headers,
        verify_tls=not args.insecure,
    )
    runner = Runner()
    reports = asyncio.run(runner.run(config, target, HttpRequestHandler))
    if args.summary:
        print(reports_frame(reports, runner.registry).to_string(index=False))
    print("Run complete")


if __name__ == "__main__":
    main()
