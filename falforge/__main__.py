#!/usr/bin/env python

"""
CLI entry point for falforge.

Search and rank FAL models, generate tools for them, and run the agent from
the command line.
"""

import argparse
import asyncio
import json
import logging
import sys
import traceback
from typing import Any, List, Optional

from falforge.agent_core import FalForgeSession
from falforge.config import print_settings, settings, validate_environment
from falforge.utils.error_handling import FalForgeError
from falforge.utils.events import ErrorEvent, Finish, TextDelta

logger = logging.getLogger(__name__)


def print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


async def search_command(session: FalForgeSession, args: argparse.Namespace) -> int:
    has_image = True if args.image else None
    models = await session.rank(args.query, has_image_input=has_image, limit=args.limit)

    if args.json:
        print_json([model.summary() for model in models])
        return 0

    if not models:
        print("No matching models found.")
        return 1

    print(f"Top {len(models)} models for: {args.query}\n")
    for position, model in enumerate(models, start=1):
        flag = " [requires image]" if model.requires_image else ""
        print(f"{position}. {model.id} - {model.title}{flag}")
        print(f"   Category: {model.category or 'unknown'}  Quality: {model.quality_score}")
        if model.description:
            print(f"   {model.description}")
    return 0


async def generate_command(session: FalForgeSession, args: argparse.Namespace) -> int:
    result = await session.generate_tool(args.endpoint_id)

    if args.json:
        print_json(result.model_dump())
        return 0 if result.success else 1

    if not result.success:
        print(f"Error: {result.error}")
        return 1

    print(f"Tool {result.data['status']} for {args.endpoint_id}\n")
    print(result.data["tool_description"])
    return 0


async def describe_command(session: FalForgeSession, args: argparse.Namespace) -> int:
    tool = await session.registry.generate(args.endpoint_id)
    if tool is None:
        print(f"Error: could not generate a tool for {args.endpoint_id}")
        return 1

    if args.json:
        print_json(tool.to_openai_tool())
    else:
        print(session.registry.get_description(args.endpoint_id))
    return 0


async def run_command(session: FalForgeSession, args: argparse.Namespace) -> int:
    if args.stream:
        async for event in session.stream(args.prompt):
            if isinstance(event, TextDelta):
                print(event.text_delta, end="", flush=True)
            elif isinstance(event, Finish):
                print()
            elif isinstance(event, ErrorEvent):
                print(f"\nError: {event.error}")
                return 1
        return 0

    response = await session.run(args.prompt)

    if args.json:
        print_json(response.model_dump())
        return 0

    print(response.content)
    if response.tool_calls:
        print("\nTool calls:")
        for call in response.tool_calls:
            print(f"  {call.name}({json.dumps(call.arguments)})")
            for media in call.output.get("media", []):
                print(f"    {media.get('type')}: {media.get('url')}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="falforge - dynamic FAL AI tools for LLM agents")
    parser.add_argument("--json", "-j", action="store_true", help="Output in JSON format")
    parser.add_argument("--settings", "-s", action="store_true", help="Show current settings")
    parser.add_argument("--debug", action="store_true", help="Enable debug mode")

    subparsers = parser.add_subparsers(dest="command")

    search = subparsers.add_parser("search", help="Rank catalog models for a request")
    search.add_argument("query", help="Natural-language request")
    search.add_argument("--image", action="store_true", help="An input image is available")
    search.add_argument("--limit", type=int, default=settings.ranker_result_limit, help="Number of models")

    generate = subparsers.add_parser("generate", help="Generate a tool for an endpoint")
    generate.add_argument("endpoint_id", help="Endpoint identifier, e.g. fal-ai/flux/schnell")

    describe = subparsers.add_parser("describe", help="Describe the tool for an endpoint")
    describe.add_argument("endpoint_id", help="Endpoint identifier, e.g. fal-ai/flux/schnell")

    run = subparsers.add_parser("run", help="Answer a prompt with the agent")
    run.add_argument("prompt", help="The prompt to process")
    run.add_argument("--stream", action="store_true", help="Stream a plain reply without tools")

    return parser


COMMANDS = {
    "search": search_command,
    "generate": generate_command,
    "describe": describe_command,
    "run": run_command,
}


async def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the CLI.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.debug or settings.debug:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.info("Debug mode enabled")

    if args.settings:
        print(print_settings())
        return 0

    if not args.command:
        parser.print_help()
        return 0

    validate_environment()
    session = FalForgeSession()

    try:
        return await COMMANDS[args.command](session, args)
    except FalForgeError as e:
        if args.json:
            print_json({"error": e.to_dict()})
        else:
            print(f"Error ({e.component}): {e.message}")
        return 1


def cli() -> None:
    """Console script entry point."""
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        print("\nExiting...")
        sys.exit(0)
    except Exception as e:
        print(f"Error: {e}")
        if logging.getLogger().getEffectiveLevel() <= logging.DEBUG:
            traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    cli()
