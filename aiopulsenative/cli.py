"""
Command-line interface for aiopulsenative.

Inspects and drives a PulseAudio (or pipewire-pulse) server over the native protocol.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import Sequence
from typing import Any

import orjson
from mashumaro.mixins.orjson import DataClassORJSONMixin

from aiopulsenative.client import PulseClient
from aiopulsenative.errors import PulseAudioError

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="aiopulsenative",
        description="Talk to a PulseAudio server over its native protocol",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # List input and output devices:
  python -m aiopulsenative list

  # Load a null sink and print its module index:
  python -m aiopulsenative load module-null-sink sink_name=denoised

  # Dump all sinks as JSON:
  python -m aiopulsenative --json sinks
""",
    )
    parser.add_argument("--socket", help="Server socket path (default: per-user socket)")
    parser.add_argument("--cookie", help="Authentication cookie path")
    parser.add_argument("--timeout", type=float, help="Per-request timeout in seconds")
    parser.add_argument("--json", action="store_true", help="Print records as JSON")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    commands = parser.add_subparsers(dest="command", required=True, metavar="COMMAND")
    commands.add_parser("info", help="Show server information")
    commands.add_parser("sinks", help="List sinks")
    commands.add_parser("sources", help="List sources")
    commands.add_parser("cards", help="List cards")
    commands.add_parser("modules", help="List loaded modules")
    commands.add_parser("list", help="List source and sink names and ids")

    load = commands.add_parser("load", help="Load a module and print its index")
    load.add_argument("name", help="Module name, e.g. module-null-sink")
    load.add_argument("arguments", nargs="*", help="Module arguments, e.g. sink_name=foo")

    unload = commands.add_parser("unload", help="Unload a module")
    unload.add_argument("index", type=int, help="Module index")

    default_sink = commands.add_parser("default-sink", help="Set the default sink")
    default_sink.add_argument("name", help="Sink name")

    default_source = commands.add_parser("default-source", help="Set the default source")
    default_source.add_argument("name", help="Source name")

    commands.add_parser("watch", help="Print a line whenever the server state changes")
    return parser


def _print_json(value: DataClassORJSONMixin | Sequence[DataClassORJSONMixin]) -> None:
    data: Any
    if isinstance(value, DataClassORJSONMixin):
        data = value.to_dict()
    else:
        data = [record.to_dict() for record in value]
    sys.stdout.write(orjson.dumps(data, option=orjson.OPT_INDENT_2).decode() + "\n")


async def _run(args: argparse.Namespace) -> int:  # noqa: PLR0912
    async with PulseClient(
        args.socket, cookie_path=args.cookie, request_timeout=args.timeout
    ) as client:
        match args.command:
            case "info":
                info = await client.server_info()
                server = await client.audio_server()
                if args.json:
                    _print_json(info)
                    return 0
                print(f"Server: {info.package_name} {info.package_version}")
                print(f"Type: {server.name} {server.version if server.version_known else '?'}")
                if server.outdated_pipewire:
                    print("Warning: this PipeWire version is too old")
                print(f"User: {info.user_name}@{info.host_name}")
                print(f"Default sink: {info.default_sink_name}")
                print(f"Default source: {info.default_source_name}")
                print(f"Client index: {client.client_index}")
            case "sinks":
                sinks = await client.sinks()
                if args.json:
                    _print_json(sinks)
                    return 0
                for sink in sinks:
                    print(f"{sink.index}\t{sink.name}\t{sink.display_name}")
            case "sources":
                sources = await client.sources()
                if args.json:
                    _print_json(sources)
                    return 0
                for source in sources:
                    monitor = " (monitor)" if source.is_monitor else ""
                    print(f"{source.index}\t{source.name}\t{source.display_name}{monitor}")
            case "cards":
                cards = await client.cards()
                if args.json:
                    _print_json(cards)
                    return 0
                for card in cards:
                    active = card.active_profile
                    print(f"{card.index}\t{card.name}\t{active.name if active else '-'}")
            case "modules":
                modules = await client.modules()
                if args.json:
                    _print_json(modules)
                    return 0
                for module in modules:
                    print(f"{module.index}\t{module.name}\t{module.argument}")
            case "list":
                print("Sources:")
                for source in await client.sources():
                    print(f"\tDevice Name: {source.display_name}\n\tDevice ID: {source.name}\n")
                print("Sinks:")
                for sink in await client.sinks():
                    print(f"\tDevice Name: {sink.display_name}\n\tDevice ID: {sink.name}\n")
            case "load":
                print(await client.load_module(args.name, " ".join(args.arguments)))
            case "unload":
                await client.unload_module(args.index)
            case "default-sink":
                await client.set_default_sink(args.name)
            case "default-source":
                await client.set_default_source(args.name)
            case "watch":
                updates = await client.subscribe()
                async for _ in updates:
                    print("changed", flush=True)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Run the command line interface."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        return asyncio.run(_run(args))
    except KeyboardInterrupt:
        return 130
    except (PulseAudioError, OSError) as err:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {err}", file=sys.stderr)
        return 1
