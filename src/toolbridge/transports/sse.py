"""Minimal server-sent events reader for httpx response lines."""

from dataclasses import dataclass
from typing import AsyncIterator


@dataclass
class ServerSentEvent:
    """One dispatched event from a text/event-stream body."""

    event: str = "message"
    data: str = ""
    id: str | None = None
    retry: int | None = None


async def iter_sse_events(lines: AsyncIterator[str]) -> AsyncIterator[ServerSentEvent]:
    """Group event-stream lines into events.

    Lines starting with ":" are comments (sse-starlette sends pings this
    way). Multiple data lines are joined with newlines. An event is
    dispatched on a blank line; events without data are dropped.

    Args:
        lines: Lines without their terminators, e.g. ``response.aiter_lines()``

    Yields:
        ServerSentEvent for every complete event carrying data
    """
    event = "message"
    data_lines: list[str] = []
    event_id: str | None = None
    retry: int | None = None

    async for line in lines:
        line = line.rstrip("\r\n")
        if not line:
            if data_lines:
                yield ServerSentEvent(
                    event=event, data="\n".join(data_lines), id=event_id, retry=retry
                )
            event, data_lines, retry = "message", [], None
            continue
        if line.startswith(":"):
            continue

        name, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]

        if name == "event":
            event = value
        elif name == "data":
            data_lines.append(value)
        elif name == "id":
            event_id = value
        elif name == "retry" and value.isdigit():
            retry = int(value)

    if data_lines:
        yield ServerSentEvent(
            event=event, data="\n".join(data_lines), id=event_id, retry=retry
        )
