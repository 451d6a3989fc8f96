#!/usr/bin/env python3
"""
CLI tool for interacting with the telemetry staging service.

Usage:
    python -m telemetry_svc.cli insert '{"event": "startup", "version": "12.1"}'
    python -m telemetry_svc.cli fetch
    python -m telemetry_svc.cli ack 4f0c... 9a1e...
    python -m telemetry_svc.cli reclaim
    python -m telemetry_svc.cli get 4f0c...
    python -m telemetry_svc.cli health
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any

import httpx
from colorama import Fore, Style, just_fix_windows_console


def colorize(text: str, color: str) -> str:
    return f"{color}{text}{Style.RESET_ALL}"


def print_json(data: Any, indent: int = 2) -> None:
    """Print JSON."""
    output = json.dumps(data, indent=indent, default=str)
    print(output)


def _report_error(response: httpx.Response) -> int:
    print(colorize(f"Error: {response.status_code}", Fore.RED), file=sys.stderr)
    print(response.text, file=sys.stderr)
    return 1


async def cmd_insert(args, client: httpx.AsyncClient) -> int:
    """Stage an event."""
    try:
        payload = json.loads(args.payload)
    except json.JSONDecodeError as e:
        print(colorize(f"Payload is not valid JSON: {e}", Fore.RED), file=sys.stderr)
        return 1

    body = {"payload": payload}
    if args.uuid:
        body["uuid"] = args.uuid

    response = await client.post("/events", json=body)
    if response.status_code != 201:
        return _report_error(response)

    print(colorize("Staged:", Style.BRIGHT), response.json()["uuid"])
    return 0


async def cmd_fetch(args, client: httpx.AsyncClient) -> int:
    """Check out the next batch."""
    response = await client.post("/events/batch")
    if response.status_code != 200:
        return _report_error(response)

    data = response.json()
    print(colorize("Collector:", Style.BRIGHT), data["url"])
    print(colorize("Checked out:", Style.BRIGHT), len(data["uuids"]))

    for event_id, event in zip(data["uuids"], data["events"]):
        print(f"  {colorize(event_id, Fore.CYAN)} {json.dumps(event, default=str)}")
    return 0


async def cmd_ack(args, client: httpx.AsyncClient) -> int:
    """Acknowledge delivered events."""
    response = await client.post("/events/ack", json={"uuids": args.uuids})
    if response.status_code != 200:
        return _report_error(response)

    print(colorize("Acknowledged:", Style.BRIGHT), response.json()["acknowledged"])
    return 0


async def cmd_reclaim(args, client: httpx.AsyncClient) -> int:
    """Reclaim stale checkouts."""
    response = await client.post("/events/reclaim")
    if response.status_code != 200:
        return _report_error(response)

    print(colorize("Reclaimed:", Style.BRIGHT), response.json()["reclaimed"])
    return 0


async def cmd_get(args, client: httpx.AsyncClient) -> int:
    """Show a staged event."""
    response = await client.get(f"/events/{args.uuid}")
    if response.status_code == 404:
        print(colorize(f"Not found: {args.uuid}", Fore.YELLOW), file=sys.stderr)
        return 1
    if response.status_code != 200:
        return _report_error(response)

    data = response.json()
    status = colorize("available", Fore.GREEN) if data["available"] else colorize("checked out", Fore.MAGENTA)
    print(colorize("\nEntry:", Style.BRIGHT), data["uuid"], f"({status})")
    print(colorize("Created:", Style.BRIGHT), data["creation_date"])
    print(colorize("Last changed:", Style.BRIGHT), data["last_changed"])
    print(colorize("Payload:", Style.BRIGHT))
    print_json(data["payload"])
    return 0


async def cmd_health(args, client: httpx.AsyncClient) -> int:
    """Show service health and counters."""
    response = await client.get("/health")
    if response.status_code != 200:
        return _report_error(response)

    print_json(response.json())
    return 0


COMMANDS = {
    "insert": cmd_insert,
    "fetch": cmd_fetch,
    "ack": cmd_ack,
    "reclaim": cmd_reclaim,
    "get": cmd_get,
    "health": cmd_health,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="CLI tool for the Telemetry Staging Service",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--base-url",
        default="http://localhost:8060",
        help="Base URL of the telemetry service",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # insert command
    insert_parser = subparsers.add_parser("insert", help="Stage a telemetry event")
    insert_parser.add_argument("payload", help="Event payload as JSON")
    insert_parser.add_argument("--uuid", help="Event id (generated by the service if omitted)")

    # fetch command
    subparsers.add_parser("fetch", help="Check out the next batch of events")

    # ack command
    ack_parser = subparsers.add_parser("ack", help="Acknowledge delivered events")
    ack_parser.add_argument("uuids", nargs="+", help="Event ids to remove")

    # reclaim command
    subparsers.add_parser("reclaim", help="Return stale checkouts to the queue")

    # get command
    get_parser = subparsers.add_parser("get", help="Show a staged event")
    get_parser.add_argument("uuid", help="Event id")

    # health command
    subparsers.add_parser("health", help="Show service health")

    return parser


async def run_command(args, transport: httpx.AsyncBaseTransport | None = None) -> int:
    """Run a parsed command against the service."""
    async with httpx.AsyncClient(base_url=args.base_url, transport=transport) as client:
        return await COMMANDS[args.command](args, client)


def main(argv: list[str] | None = None) -> int:
    just_fix_windows_console()
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command not in COMMANDS:
        parser.print_help()
        return 1

    try:
        return asyncio.run(run_command(args))
    except httpx.HTTPError as e:
        print(colorize(f"Cannot reach {args.base_url}: {e}", Fore.RED), file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main() or 0)
