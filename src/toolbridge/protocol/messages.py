"""JSON-RPC 2.0 envelope models.

Every message exchanged between consumer and provider is one of the four
envelope shapes defined here. Transports move these objects; they encode
them with ``to_json()`` and decode with ``parse_message()``.
"""

import json
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from toolbridge.errors import MalformedMessageError

# Error codes
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603
SESSION_INVALID = -32001
SESSION_NOT_INITIALIZED = -32002

RequestId = int | str


class _Envelope(BaseModel):
    jsonrpc: Literal["2.0"] = "2.0"

    model_config = ConfigDict(extra="forbid")

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dict ready for JSON encoding."""
        return self.model_dump(mode="json", exclude_none=True, by_alias=True)

    def to_json(self) -> str:
        """Encode as a single-line JSON string."""
        return json.dumps(self.to_dict(), ensure_ascii=False, separators=(",", ":"))


class JSONRPCRequest(_Envelope):
    """A request expecting exactly one response with the same id."""

    id: RequestId
    method: str
    params: dict[str, Any] | None = None


class JSONRPCNotification(_Envelope):
    """A one-way message; never answered."""

    method: str
    params: dict[str, Any] | None = None


class JSONRPCResponse(_Envelope):
    """A successful response."""

    id: RequestId
    result: dict[str, Any] = Field(default_factory=dict)


class ErrorData(BaseModel):
    """The error member of an error response."""

    code: int
    message: str
    data: Any = None


class JSONRPCError(_Envelope):
    """An error response. ``id`` is None when the request id could not be read."""

    id: RequestId | None = None
    error: ErrorData

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        # id is mandatory on error responses, even when unknown
        data.setdefault("id", None)
        return data


JSONRPCMessage = JSONRPCRequest | JSONRPCNotification | JSONRPCResponse | JSONRPCError


def error_response(
    request_id: RequestId | None, code: int, message: str, data: Any = None
) -> JSONRPCError:
    """Build an error response for the given request id."""
    return JSONRPCError(
        id=request_id, error=ErrorData(code=code, message=message, data=data)
    )


def parse_message(raw: str | bytes | dict[str, Any]) -> JSONRPCMessage:
    """Decode raw data into the matching JSON-RPC envelope.

    Args:
        raw: A JSON document (text or bytes) or an already decoded dict

    Returns:
        The request, notification, response or error envelope

    Raises:
        MalformedMessageError: If the data is not a JSON-RPC 2.0 message
    """
    if isinstance(raw, (str, bytes)):
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise MalformedMessageError(f"Invalid JSON: {e}") from e
    else:
        data = raw

    if not isinstance(data, dict):
        raise MalformedMessageError(
            f"Expected a JSON object, got {type(data).__name__}"
        )

    if "method" in data:
        model: type[_Envelope] = (
            JSONRPCRequest if "id" in data else JSONRPCNotification
        )
    elif "error" in data:
        model = JSONRPCError
    elif "result" in data:
        model = JSONRPCResponse
    else:
        raise MalformedMessageError("Message has neither method, result nor error")

    try:
        return model.model_validate(data)  # type: ignore[return-value]
    except ValidationError as e:
        raise MalformedMessageError(f"Invalid {model.__name__}: {e}") from e
