"""CLI entry point for frameforge.

This module acts as the central entry point for the project's CLI tools.
It delegates commands to the appropriate submodules or runs specific tasks.
"""

import argparse
import asyncio
import json
import subprocess
import sys

from dotenv import load_dotenv

from frameforge.config import get_session_storage_dir
from frameforge.core.log import get_logger, setup_logging

# Load environment variables from .env file
load_dotenv()

logger = get_logger("cli")


# =============================================================================
# Sessions Command
# =============================================================================


async def _list_sessions(storage_dir: str | None) -> list:
    from frameforge.session import SessionManager

    manager = SessionManager(storage_dir)
    await manager.initialize()
    return await manager.list_sessions()


def cmd_sessions_list(args: argparse.Namespace) -> int:
    """Handle the sessions list command."""
    summaries = asyncio.run(_list_sessions(args.storage_dir))

    if args.json:
        print(json.dumps([s.to_dict() for s in summaries], indent=2))
        return 0

    if not summaries:
        print(f"No sessions in {get_session_storage_dir(args.storage_dir)}")
        return 0

    print(f"{len(summaries)} session(s):")
    for summary in summaries:
        prompt = f'  "{summary.last_prompt}"' if summary.last_prompt else ""
        print(
            f"  {summary.id}  {summary.updated_at:%Y-%m-%d %H:%M}  "
            f"{summary.total_iterations} iteration(s){prompt}"
        )
    return 0


async def _show_session(storage_dir: str | None, session_id: str):
    from frameforge.session import SessionManager

    manager = SessionManager(storage_dir)
    session = await manager.load_session(session_id)
    if session is None:
        return None, []
    return session, await manager.list_wireframes(session_id)


def cmd_sessions_show(args: argparse.Namespace) -> int:
    """Handle the sessions show command."""
    session, wireframes = asyncio.run(_show_session(args.storage_dir, args.session_id))
    if session is None:
        logger.error(f"Session not found: {args.session_id}")
        return 1

    print(f"Session {session.id}")
    print("=" * 50)
    print(f"Created: {session.created_at:%Y-%m-%d %H:%M:%S}")
    print(f"Updated: {session.updated_at:%Y-%m-%d %H:%M:%S}")
    print(f"\nIterations ({len(session.iterations)}):")
    for iteration in session.iterations:
        marker = " [rolled back]" if iteration.rolled_back_to else ""
        print(f'  #{iteration.index}{marker} "{iteration.prompt}"')

    if session.current_asset is not None:
        asset = session.current_asset
        print(f"\nAsset: {asset.type.value}, {len(asset.variants)} variant(s)")
        if asset.selected_variant_id:
            print(f"  Selected: {asset.selected_variant_id}")

    if wireframes:
        print(f"\nWireframes ({len(wireframes)}):")
        for wireframe_id in wireframes:
            print(f"  {wireframe_id}")
    return 0


async def _delete_session(storage_dir: str | None, session_id: str) -> bool:
    from frameforge.session import SessionManager

    return await SessionManager(storage_dir).delete_session(session_id)


def cmd_sessions_delete(args: argparse.Namespace) -> int:
    """Handle the sessions delete command."""
    if asyncio.run(_delete_session(args.storage_dir, args.session_id)):
        logger.info(f"Deleted session {args.session_id}")
        return 0
    logger.error(f"Session not found: {args.session_id}")
    return 1


def handle_sessions_command(argv: list[str]) -> int:
    """Handle session storage commands."""
    parser = argparse.ArgumentParser(
        prog="python . sessions",
        description="Inspect and manage persisted sessions",
    )
    parser.add_argument(
        "--storage-dir",
        type=str,
        default=None,
        help="Session storage root (default: SESSION_STORAGE_DIR)",
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    list_parser = subparsers.add_parser("list", help="List sessions, newest first")
    list_parser.add_argument("--json", action="store_true", help="Print JSON")

    show_parser = subparsers.add_parser("show", help="Show one session")
    show_parser.add_argument("session_id", help="Session ID")

    delete_parser = subparsers.add_parser("delete", help="Delete a session")
    delete_parser.add_argument("session_id", help="Session ID")

    args = parser.parse_args(argv)

    handlers = {
        "list": cmd_sessions_list,
        "show": cmd_sessions_show,
        "delete": cmd_sessions_delete,
    }
    if args.command not in handlers:
        parser.print_help()
        return 1

    try:
        return handlers[args.command](args)
    except Exception as e:
        logger.error(f"Session command failed: {e}")
        return 1


# =============================================================================
# Status Command
# =============================================================================


def cmd_status(argv: list[str]) -> int:
    """Check engine readiness and storage health."""
    from frameforge.mcp import ToolContext
    from frameforge.mcp.health import HealthStatus, format_startup_banner, get_server_health

    parser = argparse.ArgumentParser(prog="python . status")
    parser.add_argument("--storage-dir", type=str, default=None)
    parser.add_argument("--json", action="store_true", help="Print JSON")
    args = parser.parse_args(argv)

    async def check():
        ctx = ToolContext.create(storage_dir=args.storage_dir)
        return await get_server_health(ctx)

    try:
        health = asyncio.run(check())
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    if args.json:
        print(json.dumps(health.to_dict(), indent=2))
    else:
        print(format_startup_banner(health))
    return 0 if health.status != HealthStatus.UNHEALTHY else 1


# =============================================================================
# Dev Command
# =============================================================================


def cmd_test(extra_args: list[str]) -> int:
    """Run pytest with provided arguments and test tier options.

    Usage:
        python . dev test                # Run all tests
        python . dev test --unit         # Run only unit tests
        python . dev test --integration  # Run cross-component tests
        python . dev test --mcp          # Run protocol-level tests
        python . dev test -k "undo"      # Run tests matching pattern
    """
    tier_markers = {
        "--unit": ["-m", "unit"],
        "--integration": ["-m", "integration"],
        "--mcp": ["-m", "mcp"],
        "--all": [],
    }

    pytest_args: list[str] = []
    remaining_args: list[str] = []

    for arg in extra_args:
        if arg in tier_markers:
            pytest_args.extend(tier_markers[arg])
        else:
            remaining_args.append(arg)

    cmd = [sys.executable, "-m", "pytest", *pytest_args, *remaining_args]
    logger.info(f"Running: {' '.join(cmd)}")

    try:
        return subprocess.call(cmd)
    except KeyboardInterrupt:
        return 130


def handle_dev_command(argv: list[str]) -> int:
    """Handle development commands."""
    if not argv or argv[0] != "test":
        print("Usage: python . dev test [--unit|--integration|--mcp|--all] [pytest args]")
        return 1
    return cmd_test(argv[1:])


# =============================================================================
# MCP Server Command
# =============================================================================


def handle_mcp_command(argv: list[str]) -> int:
    """Handle MCP server commands.

    Usage:
        python . mcp run              # Start in STDIO mode (for Claude Desktop)
        python . mcp serve            # Start in HTTP mode
        python . mcp serve --port 8080
        python . mcp info             # Show server information
    """
    if not argv:
        print("MCP Server Commands")
        print("\nUsage: python . mcp {command} [options]")
        print("\nCommands:")
        print("  run                 Start server in STDIO mode (for Claude Desktop)")
        print("  serve               Start server in HTTP mode")
        print("  info                Show server information")
        print("\nOptions for 'run' and 'serve':")
        print("  --host HOST         Bind address (default: MCP_HOST)")
        print("  --port PORT         Port number (default: MCP_PORT)")
        print("  --storage-dir DIR   Session storage root")
        print("  -v                  Verbose logging")
        return 1

    subcommand = argv[0]
    subargs = argv[1:]

    if subcommand == "run":
        from frameforge.mcp.server import main as server_main

        return server_main(["--transport", "stdio", *subargs])

    elif subcommand == "serve":
        from frameforge.mcp.server import main as server_main

        if not any(a in ("--transport", "-t") for a in subargs):
            subargs = ["--transport", "http", *subargs]
        return server_main(subargs)

    elif subcommand == "info":
        from frameforge.mcp import get_server_capabilities, get_server_version
        from frameforge.mcp.tools import __all__ as tool_names

        print("Frameforge MCP Server")
        print("=" * 40)
        print(f"Version: {get_server_version()}")
        print("\nCapabilities:")
        for cap, enabled in get_server_capabilities().items():
            status = "enabled" if enabled else "disabled"
            print(f"  {cap}: {status}")
        print("\nTools:")
        for name in tool_names:
            print(f"  - {name}")
        return 0

    else:
        logger.error(f"Unknown mcp command: {subcommand}")
        return handle_mcp_command([])


def show_help() -> None:
    """Display CLI help message."""
    print("Usage: python . {command} [args]")
    print("\n=== MCP Server ===")
    print("  mcp        Run MCP server (STDIO or HTTP mode)")
    print("\n=== Operations ===")
    print("  sessions   List, show or delete persisted sessions")
    print("  status     Check engine readiness and storage health")
    print("\n=== Development ===")
    print("  dev        Development workflows (test)")
    print("\nExamples:")
    print("  python . mcp run                    # Start STDIO server (Claude Desktop)")
    print("  python . mcp serve --port 18090     # Start HTTP server")
    print("  python . sessions list              # Show stored sessions")
    print("  python . sessions show <id>         # Show one session")
    print("  python . status                     # Engine and storage health")
    print("  python . dev test --unit            # Run unit tests")


def main() -> int:
    """Main entry point for the CLI."""
    if len(sys.argv) < 2:
        show_help()
        return 1

    command = sys.argv[1]
    rest_args = sys.argv[2:]

    if command in ("-h", "--help"):
        show_help()
        return 0

    # The server configures its own logging from its flags
    if command == "mcp":
        return handle_mcp_command(rest_args)

    if command == "dev":
        return handle_dev_command(rest_args)

    commands = {
        "sessions": lambda: handle_sessions_command(rest_args),
        "status": lambda: cmd_status(rest_args),
    }

    if command in commands:
        setup_logging()
        return commands[command]()

    logger.error(f"Unknown command: {command}")
    show_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
