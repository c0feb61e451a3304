#!/usr/bin/env python3
"""Cloud Controller CLI.

Command-line tool for inspecting an app's processes and running tasks
through the CAPI client.

Usage:
    capi_cli.py processes                  # List processes of the configured app
    capi_cli.py stats PROCESS_GUID         # Instance stats for a process
    capi_cli.py app-guid NAME              # Resolve an app name in the configured space
    capi_cli.py run "rake db:migrate" --wait
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import httpx

from capi.client import CapiClient
from capi.config import CapiConfig, get_config
from capi.exceptions import CapiClientError
from capi.logging_config import configure_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Query the Cloud Controller API through a forwarding proxy",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Configuration:
  Set in .env or the environment (VCAP_APPLICATION is used as a fallback):
    CAPI_ADDRESS=https://api.sys.example.com
    CAPI_APP_GUID=...
    CAPI_SPACE_GUID=...
    HTTP_PROXY=http://localhost:8080
        """,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("processes", help="List processes of an app")
    p.add_argument("--app", metavar="GUID", help="App guid (default: CAPI_APP_GUID)")

    p = sub.add_parser("stats", help="Instance stats of a process")
    p.add_argument("process_guid", metavar="PROCESS_GUID")

    p = sub.add_parser("app-guid", help="Resolve an app name in the configured space")
    p.add_argument("app_name", metavar="NAME")

    for name, help_text in (
        ("droplet", "Current droplet guid of an app"),
        ("package", "Package guid and download link of the current droplet"),
        ("env", "User-provided environment variables of an app"),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("--app", metavar="GUID", help="App guid (default: CAPI_APP_GUID)")

    p = sub.add_parser("tasks", help="List tasks of an app")
    p.add_argument("--app", metavar="GUID", help="App guid (default: CAPI_APP_GUID)")
    p.add_argument(
        "--query",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Filter, repeatable (e.g. --query states=FAILED)",
    )

    p = sub.add_parser("task", help="Show a task")
    p.add_argument("task_guid", metavar="TASK_GUID")

    p = sub.add_parser("run", help="Create a task")
    p.add_argument("task_command", metavar="COMMAND")
    p.add_argument("--name", default="", help="Task name")
    p.add_argument("--droplet", default="", metavar="GUID", help="Droplet guid")
    p.add_argument("--app", metavar="GUID", help="App guid (default: CAPI_APP_GUID)")
    p.add_argument("--wait", action="store_true", help="Poll until the task finishes")

    return parser


def parse_query(pairs: list[str]) -> dict[str, list[str]]:
    """Turn repeated KEY=VALUE arguments into a multi-valued query mapping."""
    query: dict[str, list[str]] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"invalid query {pair!r}, expected KEY=VALUE")
        query.setdefault(key, []).append(value)
    return query


def build_transport(config: CapiConfig) -> httpx.AsyncClient:
    """Create the HTTP transport. trust_env picks up HTTP_PROXY."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(
            connect=config.capi_connect_timeout,
            read=config.capi_read_timeout,
            write=config.capi_write_timeout,
            pool=config.capi_pool_timeout,
        ),
        trust_env=True,
    )


def _dump(value):
    if isinstance(value, list):
        return [_dump(v) for v in value]
    if hasattr(value, "model_dump"):
        return value.model_dump(mode="json")
    return value


async def run_command(args, config: CapiConfig):
    """Execute the selected subcommand and return a JSON-serializable result."""
    async with build_transport(config) as transport:
        client = CapiClient.from_config(config, transport)
        app = getattr(args, "app", None)

        if args.command == "processes":
            return _dump(await client.processes(app))
        if args.command == "stats":
            return _dump(await client.process_stats(args.process_guid))
        if args.command == "app-guid":
            return {"guid": await client.get_app_guid(args.app_name)}
        if args.command == "droplet":
            return {"guid": await client.get_droplet_guid(app)}
        if args.command == "package":
            guid, download = await client.get_package_guid(app)
            return {"guid": guid, "download": download}
        if args.command == "env":
            return await client.get_environment_variables(app)
        if args.command == "tasks":
            return _dump(await client.list_tasks(app, parse_query(args.query)))
        if args.command == "task":
            return _dump(await client.get_task(args.task_guid))
        if args.command == "run":
            return _dump(
                await client.run_task(
                    args.task_command,
                    name=args.name,
                    droplet_guid=args.droplet,
                    app_guid=app,
                    wait=args.wait,
                )
            )
        raise ValueError(f"unknown command {args.command!r}")


def main():
    """Main CLI entry point."""
    args = build_parser().parse_args()

    try:
        config = get_config()
    except Exception as e:
        print(f"Error: Failed to load configuration: {e}", file=sys.stderr)
        sys.exit(1)

    configure_logging(config.log_level, config.log_format)

    if not config.capi_address:
        print("Error: CAPI_ADDRESS is not set.", file=sys.stderr)
        sys.exit(1)

    try:
        result = asyncio.run(run_command(args, config))
    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        sys.exit(130)
    except (CapiClientError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    print(json.dumps(result, indent=2))


if __name__ == "__main__":
    main()
