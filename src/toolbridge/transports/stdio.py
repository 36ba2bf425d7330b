"""Newline-delimited JSON-RPC over a child process's stdin/stdout.

StdioTransport is the consumer end: it spawns the provider and owns the
child process. StdioServerTransport is the provider end, reading and writing
the current process's own standard streams. Standard error is diagnostic
only and is never parsed as protocol data.
"""

import asyncio
import logging
import os
import sys
from dataclasses import dataclass, field
from typing import BinaryIO

from toolbridge.errors import ConnectionLostError, TransportError
from toolbridge.protocol.messages import JSONRPCMessage, parse_message

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProcessLaunchSpec:
    """How to start a provider process.

    Attributes:
        command: Executable to run (e.g. "python")
        args: Command-line arguments
        env: Extra environment variables, merged over the current environment
        cwd: Working directory for the child (default: inherit)
    """

    command: str
    args: list[str] = field(default_factory=list)
    env: dict[str, str] = field(default_factory=dict)
    cwd: str | None = None


class StdioTransport:
    """Consumer-side transport talking to a spawned provider process."""

    def __init__(
        self,
        spec: ProcessLaunchSpec,
        read_limit: int = 2**20,
        terminate_timeout: float = 5.0,
    ) -> None:
        """Initialize the transport. Nothing is spawned until open().

        Args:
            spec: Process launch specification
            read_limit: Maximum length of one protocol line in bytes
            terminate_timeout: Seconds to wait after SIGTERM before killing
        """
        self.spec = spec
        self.read_limit = read_limit
        self.terminate_timeout = terminate_timeout
        self._process: asyncio.subprocess.Process | None = None
        self._stderr_task: asyncio.Task | None = None
        self._write_lock = asyncio.Lock()

    # ── Lifecycle ─────────────────────────────────────────────────────────

    @property
    def is_running(self) -> bool:
        return self._process is not None and self._process.returncode is None

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process else None

    async def open(self) -> None:
        """Spawn the provider subprocess."""
        if self.is_running:
            return

        merged_env = {**os.environ, **self.spec.env}
        try:
            self._process = await asyncio.create_subprocess_exec(
                self.spec.command,
                *self.spec.args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=merged_env,
                cwd=self.spec.cwd,
                limit=self.read_limit,
            )
        except FileNotFoundError as e:
            raise TransportError(
                f"Provider command not found: {self.spec.command}"
            ) from e
        except PermissionError as e:
            raise TransportError(
                f"Provider command is not executable: {self.spec.command}"
            ) from e

        logger.info(
            f"Started provider process {self._process.pid}: "
            f"{self.spec.command} {' '.join(self.spec.args)}"
        )
        self._stderr_task = asyncio.create_task(self._drain_stderr())

    async def close(self) -> None:
        """Terminate the provider process. A no-op if it already exited."""
        process = self._process
        if process is None:
            return

        if process.returncode is None:
            if process.stdin is not None and not process.stdin.is_closing():
                process.stdin.close()
            try:
                process.terminate()
                await asyncio.wait_for(process.wait(), timeout=self.terminate_timeout)
            except ProcessLookupError:
                pass
            except asyncio.TimeoutError:
                logger.warning(
                    f"Provider process {process.pid} ignored SIGTERM, killing it"
                )
                process.kill()
                await process.wait()
            logger.info(f"Provider process {process.pid} exited ({process.returncode})")

        if self._stderr_task is not None:
            self._stderr_task.cancel()
            try:
                await self._stderr_task
            except asyncio.CancelledError:
                pass
            self._stderr_task = None

    # ── Messages ──────────────────────────────────────────────────────────

    async def send(self, message: JSONRPCMessage) -> None:
        process = self._process
        if process is None or process.returncode is not None or process.stdin is None:
            raise ConnectionLostError("Provider process is not running")

        line = message.to_json().encode("utf-8") + b"\n"
        async with self._write_lock:
            try:
                process.stdin.write(line)
                await process.stdin.drain()
            except (BrokenPipeError, ConnectionResetError) as e:
                raise ConnectionLostError(f"Provider process closed its input: {e}") from e

    async def receive(self) -> JSONRPCMessage:
        process = self._process
        if process is None or process.stdout is None:
            raise ConnectionLostError("Provider process is not running")

        while True:
            try:
                raw = await process.stdout.readline()
            except (ValueError, asyncio.LimitOverrunError) as e:
                raise ConnectionLostError(f"Protocol line exceeds read limit: {e}") from e
            if not raw:
                raise ConnectionLostError("Provider process closed its output")
            raw = raw.strip()
            if raw:
                return parse_message(raw)

    async def _drain_stderr(self) -> None:
        process = self._process
        if process is None or process.stderr is None:
            return
        while True:
            line = await process.stderr.readline()
            if not line:
                return
            logger.info(
                f"[provider {process.pid}] {line.decode('utf-8', 'replace').rstrip()}"
            )


class StdioServerTransport:
    """Provider-side transport over this process's stdin/stdout."""

    def __init__(
        self,
        stdin: BinaryIO | None = None,
        stdout: BinaryIO | None = None,
    ) -> None:
        self._stdin = stdin if stdin is not None else sys.stdin.buffer
        self._stdout = stdout if stdout is not None else sys.stdout.buffer
        self._write_lock = asyncio.Lock()
        self._closed = False

    async def open(self) -> None:
        logger.info("Provider listening on stdio")

    async def send(self, message: JSONRPCMessage) -> None:
        if self._closed:
            raise ConnectionLostError("stdio transport is closed")
        line = message.to_json().encode("utf-8") + b"\n"
        async with self._write_lock:
            try:
                self._stdout.write(line)
                self._stdout.flush()
            except (BrokenPipeError, ValueError) as e:
                raise ConnectionLostError(f"Consumer closed the output: {e}") from e

    async def receive(self) -> JSONRPCMessage:
        while True:
            if self._closed:
                raise ConnectionLostError("stdio transport is closed")
            raw = await asyncio.to_thread(self._stdin.readline)
            if not raw:
                raise ConnectionLostError("Consumer closed the input")
            raw = raw.strip()
            if raw:
                return parse_message(raw)

    async def close(self) -> None:
        self._closed = True
