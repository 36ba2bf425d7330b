"""CLI entry point for toolbridge.

Two subcommands:

- ``serve`` runs the tool provider with the built-in tools, over stdio or HTTP.
- ``chat`` connects to a provider, runs one conversation turn and prints the
  answer.

It can be invoked as ``toolbridge`` (via the script entry point) or
``python -m toolbridge``.
"""

import argparse
import asyncio
import logging
import sys

import uvicorn

from toolbridge import __version__, create_app
from toolbridge.client import ClientSession
from toolbridge.config import ToolBridgeSettings
from toolbridge.controller import ConversationController
from toolbridge.conversation import Conversation
from toolbridge.errors import ToolBridgeError
from toolbridge.llm import create_model_client
from toolbridge.tools import build_default_server
from toolbridge.transports import (
    ProcessLaunchSpec,
    StdioServerTransport,
    create_transport,
)

logger = logging.getLogger(__name__)

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def configure_logging(level: str) -> None:
    # stdout carries protocol messages when serving over stdio
    logging.basicConfig(
        level=level.upper(),
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="toolbridge",
        description="Connect LLM conversations to tool providers",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"toolbridge {__version__}",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the tool provider")
    serve.add_argument(
        "--transport",
        choices=["stdio", "http"],
        default="stdio",
        help="Channel to serve on (default: stdio)",
    )
    serve.add_argument(
        "--host",
        type=str,
        default=None,
        help="Host to bind the HTTP endpoint to (default: 127.0.0.1, can be set via TOOLBRIDGE_HOST)",
    )
    serve.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to bind the HTTP endpoint to (default: 3000, can be set via TOOLBRIDGE_PORT)",
    )
    serve.add_argument("--log-level", type=str, default=None, choices=LOG_LEVELS)

    chat = subparsers.add_parser("chat", help="Run one conversation turn")
    chat.add_argument("message", help="User message")
    chat.add_argument(
        "--server-command",
        type=str,
        default=None,
        help="Command that starts the provider (default: this package over stdio)",
    )
    chat.add_argument(
        "--server-arg",
        action="append",
        default=None,
        dest="server_args",
        help="Argument for --server-command (repeatable)",
    )
    chat.add_argument(
        "--server-url",
        type=str,
        default=None,
        help="Streamable HTTP endpoint of the provider",
    )
    chat.add_argument("--backend", choices=["ollama", "openai"], default=None)
    chat.add_argument("--model", type=str, default=None)
    chat.add_argument("--log-level", type=str, default=None, choices=LOG_LEVELS)

    return parser


def build_settings(args: argparse.Namespace) -> ToolBridgeSettings:
    """Build settings, CLI args override environment variables."""
    overrides = {
        "host": getattr(args, "host", None),
        "port": getattr(args, "port", None),
        "log_level": args.log_level,
        "server_command": getattr(args, "server_command", None),
        "server_args": getattr(args, "server_args", None),
        "server_url": getattr(args, "server_url", None),
        "llm_backend": getattr(args, "backend", None),
        "llm_model": getattr(args, "model", None),
    }
    return ToolBridgeSettings(**{k: v for k, v in overrides.items() if v is not None})


def provider_target(settings: ToolBridgeSettings) -> ProcessLaunchSpec | str:
    if settings.server_url:
        return settings.server_url
    if settings.server_command:
        return ProcessLaunchSpec(
            command=settings.server_command, args=list(settings.server_args)
        )
    return ProcessLaunchSpec(
        command=sys.executable,
        args=["-m", "toolbridge", "serve", "--transport", "stdio"],
    )


def serve(settings: ToolBridgeSettings, transport: str) -> None:
    if transport == "http":
        app = create_app(settings=settings)
        uvicorn.run(
            app,
            host=settings.host,
            port=settings.port,
            log_level=settings.log_level.lower(),
        )
        return

    server = build_default_server(settings)
    logger.info(f"Serving {len(server.registry)} tools over stdio")
    asyncio.run(server.serve(StdioServerTransport()))


async def chat(settings: ToolBridgeSettings, message: str) -> str:
    transport = create_transport(provider_target(settings), settings)
    session = ClientSession(
        transport,
        client_name="toolbridge-chat",
        client_version=__version__,
        handshake_timeout=settings.handshake_timeout,
    )
    controller = ConversationController(create_model_client(settings), session)
    async with session:
        result = await controller.run_turn(
            Conversation(system_prompt=settings.system_prompt), message
        )
    return result.answer


def main() -> int:
    """Main entry point for the toolbridge CLI."""
    args = build_parser().parse_args()
    settings = build_settings(args)
    configure_logging(settings.log_level)

    if args.command == "serve":
        serve(settings, args.transport)
        return 0

    try:
        answer = asyncio.run(chat(settings, args.message))
    except ToolBridgeError as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 1
    print(answer)
    return 0


if __name__ == "__main__":
    sys.exit(main())
