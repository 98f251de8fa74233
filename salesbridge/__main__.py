"""
Command line.

    python -m salesbridge serve
    python -m salesbridge init-db
    python -m salesbridge status SO-1001 attempt-1
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys

import uvicorn
from kungfu import Ok, Error

from salesbridge.config import Settings, get_settings
from salesbridge.logging_config import setup_logging
from salesbridge.order import OrderKey
from salesbridge.service import build_service, create_service_app
from salesbridge.wire import StatusOut


def _serve(settings: Settings) -> int:
    uvicorn.run(
        create_service_app(settings),
        host=settings.host,
        port=settings.port,
        log_config=None,
    )
    return 0


async def _init_db(settings: Settings) -> int:
    service = build_service(settings)
    try:
        await service.init_schema()
    finally:
        await service.close()
    print("ledger schema ready")
    return 0


async def _status(settings: Settings, key: OrderKey) -> int:
    service = build_service(settings)
    try:
        looked_up = await service.pipeline.status(key)
    finally:
        await service.close()

    match looked_up:
        case Ok(None):
            print(f"not found: {key}", file=sys.stderr)
            return 1
        case Ok(entry):
            body = StatusOut.from_domain(entry).model_dump(mode="json", by_alias=True, exclude_none=True)
            print(json.dumps(body, indent=2, ensure_ascii=False))
            return 0
        case Error(err):
            print(f"ledger error: {err.message}", file=sys.stderr)
            return 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="salesbridge")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("serve", help="run the HTTP API")
    commands.add_parser("init-db", help="create the ledger table")

    status = commands.add_parser("status", help="show the ledger entry of one order")
    status.add_argument("external_order_id")
    status.add_argument("instance_id")

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    setup_logging(settings.log_level, settings.json_logs)

    match args.command:
        case "serve":
            return _serve(settings)
        case "init-db":
            return asyncio.run(_init_db(settings))
        case "status":
            return asyncio.run(_status(settings, OrderKey(args.external_order_id, args.instance_id)))
    return 2


if __name__ == "__main__":
    sys.exit(main())
