#!/usr/bin/env python3
"""
Shared Config CLI

Command-line access to a running config service.

Usage:
    # Run the background service (owns persistence, serves /config)
    shared-config serve [--settings config.yaml]

    # Print the whole snapshot
    shared-config dump [--url http://127.0.0.1:8765]

    # Read one key
    shared-config get vodDownload

    # Write one key (value parsed as JSON, else taken as a string)
    shared-config set vodDownload true

Output is JSON for easy parsing by scripts.
"""

import argparse
import asyncio
import json
import sys
from typing import Any

from .common.exceptions import SharedConfigError
from .common.settings import load_settings
from .services.config.service import ConfigService
from .services.config.store import ConfigStore
from .services.config.sync import RemoteSnapshotClient
from .services.config.validator import is_config_value


def parse_value(raw: str) -> Any:
    """JSON literal when it decodes to a config value, the raw string otherwise"""
    try:
        value = json.loads(raw)
    except ValueError:
        return raw
    return value if is_config_value(value) else raw


async def _with_remote_store(url: str, action) -> dict:
    """Build a foreground-style store seeded from the remote snapshot, run action"""
    client = RemoteSnapshotClient(url)
    try:
        store = ConfigStore(remote=client, defaults={})
        store.load(await client.fetch())
        return await action(store)
    finally:
        await client.close()


async def dump_config(url: str) -> dict:
    async def action(store: ConfigStore) -> dict:
        return {"success": True, "config": store.snapshot()}

    return await _with_remote_store(url, action)


async def get_value(url: str, key: str) -> dict:
    async def action(store: ConfigStore) -> dict:
        result = store.lookup(key)
        return {
            "success": result.found,
            "key": key,
            "status": result.status.value,
            "value": result.value,
        }

    return await _with_remote_store(url, action)


async def set_value(url: str, key: str, value: Any) -> dict:
    async def action(store: ConfigStore) -> dict:
        store.set(key, value)
        task = store.save()
        saved = await task if task is not None else False
        return {"success": saved, "key": key, "value": value}

    return await _with_remote_store(url, action)


async def serve(settings_path: str | None) -> None:
    service = ConfigService(load_settings(settings_path))
    try:
        await service.start()
    finally:
        await service.stop()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="shared-config",
        description="Shared configuration store",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--settings", help="Path to settings YAML")
    parser.add_argument("--url", help="Snapshot endpoint base URL (default from settings)")

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    subparsers.add_parser("serve", help="Run the background config service")
    subparsers.add_parser("dump", help="Print the full snapshot")

    get_parser = subparsers.add_parser("get", help="Read one key")
    get_parser.add_argument("key", help="Config key")

    set_parser = subparsers.add_parser("set", help="Write one key")
    set_parser.add_argument("key", help="Config key")
    set_parser.add_argument("value", help="Value (JSON literal or plain string)")

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    if args.command == "serve":
        asyncio.run(serve(args.settings))
        return 0

    url = args.url or load_settings(args.settings).snapshot_url

    try:
        if args.command == "dump":
            result = asyncio.run(dump_config(url))
        elif args.command == "get":
            result = asyncio.run(get_value(url, args.key))
        else:
            result = asyncio.run(set_value(url, args.key, parse_value(args.value)))
    except SharedConfigError as e:
        result = {"success": False, "error": str(e)}

    print(json.dumps(result))
    return 0 if result.get("success") else 1


if __name__ == "__main__":
    sys.exit(main())
