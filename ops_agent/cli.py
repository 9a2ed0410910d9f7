"""CLI entry point for the ops agent."""

import argparse
import asyncio
import json
from typing import Optional

from .config.settings import AgentSettings
from .main import OpsAgentClient
from .observability.logging import configure_logging


def build_client(planner: Optional[str] = None) -> OpsAgentClient:
    overrides = {"planner": planner} if planner else {}
    return OpsAgentClient(AgentSettings.from_env(**overrides))


async def diagnose(objective: str, max_iterations: Optional[int] = None,
                   planner: Optional[str] = None, as_json: bool = False) -> int:
    """Run one diagnosis and print the outcome."""
    client = build_client(planner)
    output = await client.diagnose(objective, max_iterations=max_iterations)

    if as_json:
        print(json.dumps(output.model_dump(mode="json"), indent=2))
    elif output.succeeded:
        print(output.final_answer or "")
        print(f"\nIterations: {output.iteration_count}  Tool calls: {len(output.results)}  "
              f"Elapsed: {output.elapsed_ms}ms")
    else:
        print(f"Failed: {output.failure_reason}")
    return 0 if output.succeeded else 1


async def chat(message: str) -> int:
    """Stream a direct model reply."""
    client = build_client("llm")
    try:
        async for chunk in client.chat_stream(message):
            print(chunk, end='', flush=True)
        print()
    except Exception as e:
        print(f"Error: {str(e)}")
        return 1
    return 0


def list_tools(planner: Optional[str] = None) -> int:
    """List registered tools."""
    client = build_client(planner or "rules")

    print("Registered Tools:")
    print("-" * 50)
    for tool in client.list_tools():
        status = "✓" if tool["enabled"] else "✗"
        print(f"{status} {tool['name']} ({tool['category']})")
        print(f"   {tool['description']}")
        print(f"   Callers: {', '.join(tool['caller_types'])}")
        print()
    return 0


def main(argv=None) -> int:
    """Main CLI function."""
    parser = argparse.ArgumentParser(description="Ops agent CLI")
    parser.add_argument('--log-level', default='WARNING', help='Logging level (default: WARNING)')
    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    # Diagnose command
    diagnose_parser = subparsers.add_parser('diagnose', help='Investigate an operational objective')
    diagnose_parser.add_argument('objective', help='What to find out, e.g. "why is checkout slow"')
    diagnose_parser.add_argument('--max-iterations', type=int, help='Maximum planning passes')
    diagnose_parser.add_argument('--planner', choices=['llm', 'rules'], help='Planner implementation')
    diagnose_parser.add_argument('--json', action='store_true', help='Print the full run as JSON')

    # Chat command
    chat_parser = subparsers.add_parser('chat', help='Stream a direct model reply')
    chat_parser.add_argument('message', help='Message to send')

    # List tools command
    list_parser = subparsers.add_parser('list-tools', help='List registered tools')
    list_parser.add_argument('--planner', choices=['llm', 'rules'], help='Planner implementation')

    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    if args.command == 'diagnose':
        return asyncio.run(diagnose(args.objective, args.max_iterations, args.planner, args.json))
    elif args.command == 'chat':
        return asyncio.run(chat(args.message))
    elif args.command == 'list-tools':
        return list_tools(args.planner)
    parser.print_help()
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
