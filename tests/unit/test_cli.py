"""Unit tests for the command-line interface."""

import sys
from unittest.mock import patch

import pytest

from toolbridge.__main__ import build_parser, build_settings, main, provider_target
from toolbridge.errors import HandshakeError
from toolbridge.transports import ProcessLaunchSpec


def test_serve_arguments():
    """Test parsing of the serve subcommand."""
    args = build_parser().parse_args(["serve", "--transport", "http", "--port", "4000"])
    settings = build_settings(args)

    assert args.command == "serve"
    assert args.transport == "http"
    assert settings.port == 4000


def test_chat_arguments():
    """Test parsing of the chat subcommand."""
    args = build_parser().parse_args(
        [
            "chat",
            "What is 2 + 2?",
            "--server-command",
            "node",
            "--server-arg",
            "build/index.js",
            "--server-arg",
            "stdio",
            "--backend",
            "openai",
        ]
    )
    settings = build_settings(args)

    assert args.message == "What is 2 + 2?"
    assert settings.server_command == "node"
    assert settings.server_args == ["build/index.js", "stdio"]
    assert settings.llm_backend == "openai"


def test_subcommand_required():
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


def test_provider_target_prefers_url():
    args = build_parser().parse_args(
        ["chat", "hi", "--server-url", "http://localhost:3000/mcp", "--server-command", "x"]
    )

    assert provider_target(build_settings(args)) == "http://localhost:3000/mcp"


def test_provider_target_defaults_to_builtin_provider():
    """Test that without a target the built-in provider is spawned over stdio."""
    args = build_parser().parse_args(["chat", "hi"])

    target = provider_target(build_settings(args))

    assert isinstance(target, ProcessLaunchSpec)
    assert target.command == sys.executable
    assert target.args == ["-m", "toolbridge", "serve", "--transport", "stdio"]


def test_chat_failure_exit_code(capsys):
    """Test that a failing turn is reported with exit code 1."""
    with patch("sys.argv", ["toolbridge", "chat", "hi"]), patch(
        "toolbridge.__main__.chat", side_effect=HandshakeError("no provider")
    ):
        assert main() == 1

    assert capsys.readouterr().out == ""
