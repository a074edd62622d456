"""
Command-line interface for the stamp server.

Provides CLI commands for server management:
- init-store: Create the JSON document file if it does not exist
- create-operator: Add a counter operator (PIN login)
- show-config: Print the effective configuration
- run: Start the API server

Usage:
    stamp-server init-store
    stamp-server create-operator [--name NAME]
    stamp-server show-config
    stamp-server run [--port PORT] [--host HOST]

Environment Variables:
    STAMP_OPERATOR_NAME: Operator name for create-operator
    STAMP_OPERATOR_PIN:  Operator PIN for create-operator
    STAMP_HOST / STAMP_PORT: Bind address for run
"""

import argparse
import getpass
import os
import sys


def get_operator_credentials_from_env() -> tuple[str, str] | None:
    """
    Get operator credentials from environment variables.

    Returns:
        Tuple of (name, pin) if both STAMP_OPERATOR_NAME and STAMP_OPERATOR_PIN are set.
        None if either is missing.
    """
    name = os.environ.get("STAMP_OPERATOR_NAME")
    pin = os.environ.get("STAMP_OPERATOR_PIN")

    if name and pin:
        return name, pin
    return None


def prompt_for_pin() -> str:
    """Prompt for a PIN twice until both entries match."""
    while True:
        pin = getpass.getpass("PIN: ")
        if not pin:
            print("PIN must not be empty.")
            continue
        if pin != getpass.getpass("Confirm PIN: "):
            print("PINs do not match. Try again.\n")
            continue
        return pin


def cmd_init_store(args: argparse.Namespace) -> int:
    """
    Create the document file with empty collections if it is missing.

    Returns:
        0 on success, 1 on error
    """
    from stamp_server.config import config
    from stamp_server.store import JsonDocumentStore, PersistenceFailure

    path = config.store.absolute_path
    if path.exists():
        print(f"Store already exists at {path}.")
        return 0
    try:
        JsonDocumentStore(path).flush()
    except PersistenceFailure as e:
        print(f"Error initializing store: {e}", file=sys.stderr)
        return 1
    print(f"Store initialized at {path}.")
    return 0


def cmd_create_operator(args: argparse.Namespace) -> int:
    """
    Create an operator account.

    Uses --name, then STAMP_OPERATOR_NAME/STAMP_OPERATOR_PIN, then prompts.

    Returns:
        0 on success, 1 on error
    """
    from stamp_server.core.errors import LedgerError
    from stamp_server.services import build_services
    from stamp_server.store import PersistenceFailure

    env_creds = get_operator_credentials_from_env()
    name = getattr(args, "name", None)

    if env_creds and not name:
        name, pin = env_creds
        print(f"Using credentials from environment variables for operator '{name}'")
    elif env_creds and name == env_creds[0]:
        pin = env_creds[1]
    else:
        if not sys.stdin.isatty():
            print(
                "Error: No credentials provided.\n"
                "Set STAMP_OPERATOR_NAME and STAMP_OPERATOR_PIN environment variables,\n"
                "or run interactively to be prompted for a PIN.",
                file=sys.stderr,
            )
            return 1
        if not name:
            name = input("Operator name: ").strip()
        pin = prompt_for_pin()

    services = build_services()
    if services.store.load().operator_by_name(name) is not None:
        print(f"Error: Operator '{name}' already exists.", file=sys.stderr)
        return 1

    try:
        operator = services.operators.create_operator(name, pin, performed_by="cli")
    except (LedgerError, PersistenceFailure) as e:
        print(f"Error creating operator: {e}", file=sys.stderr)
        return 1

    print(f"\nOperator '{operator.name}' created with id {operator.id}.")
    return 0


def cmd_show_config(args: argparse.Namespace) -> int:
    """Print the effective configuration."""
    from stamp_server.config import print_config_summary

    print_config_summary()
    return 0


def cmd_run(args: argparse.Namespace) -> int:
    """
    Run the API server in the foreground.

    Configuration Priority:
        1. CLI arguments (--port, --host)
        2. Environment variables (STAMP_PORT, STAMP_HOST)
        3. config/server.ini, then defaults

    Returns:
        0 on clean shutdown (Ctrl+C), 1 on startup error
    """
    from stamp_server.api.server import start_server

    try:
        start_server(host=getattr(args, "host", None), port=getattr(args, "port", None))
        return 0
    except KeyboardInterrupt:
        print("\nServer stopped.")
        return 0
    except OSError as e:
        print(f"Error starting server: {e}", file=sys.stderr)
        return 1


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        prog="stamp-server",
        description="Stamp Server - loyalty stamp-card ledger",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    init_parser = subparsers.add_parser(
        "init-store",
        help="Create the JSON document file",
        description="Create the JSON document with empty collections if it does not exist.",
    )
    init_parser.set_defaults(func=cmd_init_store)

    operator_parser = subparsers.add_parser(
        "create-operator",
        help="Create a counter operator",
        description=(
            "Create an operator account. Uses STAMP_OPERATOR_NAME and STAMP_OPERATOR_PIN "
            "environment variables if set, otherwise prompts interactively."
        ),
    )
    operator_parser.add_argument("--name", type=str, help="Operator name")
    operator_parser.set_defaults(func=cmd_create_operator)

    config_parser = subparsers.add_parser("show-config", help="Print the effective configuration")
    config_parser.set_defaults(func=cmd_show_config)

    run_parser = subparsers.add_parser(
        "run",
        help="Run the stamp server",
        description="Start the API server (and the static frontend if configured).",
    )
    run_parser.add_argument(
        "--port",
        "-p",
        type=int,
        help="API server port (default: 3000, or STAMP_PORT env var)",
    )
    run_parser.add_argument(
        "--host",
        type=str,
        help="Host to bind to (default: 0.0.0.0, or STAMP_HOST env var)",
    )
    run_parser.set_defaults(func=cmd_run)

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
