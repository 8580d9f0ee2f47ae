"""Command line entrypoint: service router plus a read-only account status view."""

from __future__ import annotations

import argparse
import importlib
import json
import logging
import sys
from typing import Callable, Sequence

from . import __version__
from .config import constants, settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def _configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _load_service_main(name: str):
    module = importlib.import_module(f"torn_sentinel.services.{name}")
    return getattr(module, "main")


def _run_service(args: argparse.Namespace) -> int:
    settings.get_settings()
    forwarded = list(args.service_args)
    if forwarded and forwarded[0] == "--":
        forwarded = forwarded[1:]
    code = _load_service_main(args.name)(forwarded)
    return code if isinstance(code, int) else 0


def _list_services(args: argparse.Namespace) -> int:
    for name in constants.SERVICE_NAMES:
        print(name)
    return 0


def _show_status(args: argparse.Namespace) -> int:
    from .analytics.pipeline import SentinelPipeline

    cfg = settings.get_settings()
    account_id = args.account or cfg.account_id
    if not account_id:
        print("no account given; pass --account or set TORN_ACCOUNT_ID", file=sys.stderr)
        return 1
    pipeline = SentinelPipeline.from_settings(cfg)
    status = {
        "account_id": account_id,
        "trades": pipeline.ledger.summary(account_id).to_row(),
        "profit": pipeline.profit.totals(account_id).to_row(),
        "alerts": [
            {"item_id": rule.item_id, "country": rule.country, "state": rule.state.value}
            for rule in pipeline.alerts.rules_for(account_id)
        ],
    }
    print(json.dumps(status, indent=2, sort_keys=True))
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="torn-sentinel")
    parser.add_argument("--version", action="version", version=f"torn_sentinel {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command")

    service = subparsers.add_parser("service", help="Run a service by name")
    service.add_argument("--name", choices=constants.SERVICE_NAMES, required=True)
    service.add_argument(
        "service_args",
        nargs=argparse.REMAINDER,
        help="Arguments forwarded to the service",
    )
    service.set_defaults(handler=_run_service)

    services = subparsers.add_parser("services", help="List runnable services")
    services.set_defaults(handler=_list_services)

    status = subparsers.add_parser("status", help="Print stored trade, profit and alert state")
    status.add_argument("--account", help="Account id (defaults to TORN_ACCOUNT_ID)")
    status.set_defaults(handler=_show_status)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(sys.argv[1:] if argv is None else argv)
    handler: Callable[[argparse.Namespace], int] | None = getattr(args, "handler", None)
    if handler is None:
        parser.print_help()
        return 1
    _configure_logging(args.verbose)
    return handler(args)


if __name__ == "__main__":
    raise SystemExit(main())
