"""Tool registry: the provider's set of callable tools.

Tools are registered once at provider startup. Each tool has a name, a
description, a parameter model and a handler. The parameter model is a
pydantic model; its JSON schema is what consumers see, and the same model
validates incoming arguments, so both sides accept exactly the same input.
"""

import inspect
import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping

from pydantic import BaseModel, ValidationError, create_model

from toolbridge.errors import (
    DuplicateToolNameError,
    HandlerError,
    SchemaValidationError,
    ToolBridgeError,
    UnknownToolError,
)
from toolbridge.protocol.types import ToolCallResult, ToolDescriptor

logger = logging.getLogger(__name__)

ToolHandler = Callable[..., Any] | Callable[..., Awaitable[Any]]
ToolParameters = type[BaseModel] | Mapping[str, Any]
RegistrationListener = Callable[[ToolDescriptor], None]


@dataclass(frozen=True)
class RegisteredTool:
    """A descriptor together with the model and handler that back it."""

    descriptor: ToolDescriptor
    arguments_model: type[BaseModel]
    handler: ToolHandler

    @property
    def name(self) -> str:
        return self.descriptor.name


def _build_arguments_model(name: str, parameters: ToolParameters) -> type[BaseModel]:
    """Turn a parameters declaration into a pydantic model class.

    Args:
        name: Tool name, used to name the generated model
        parameters: A BaseModel subclass, or a mapping of field name to
            ``(type, default_or_Field)`` tuples as accepted by create_model

    Returns:
        The model class validating this tool's arguments
    """
    if isinstance(parameters, type) and issubclass(parameters, BaseModel):
        return parameters

    fields: dict[str, Any] = {}
    for field_name, definition in parameters.items():
        if isinstance(definition, tuple):
            fields[field_name] = definition
        else:
            # a bare type means a required field
            fields[field_name] = (definition, ...)

    model_name = "".join(part.capitalize() for part in name.replace("-", "_").split("_"))
    return create_model(f"{model_name}Arguments", **fields)


def _describe_validation_error(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(loc) for loc in item["loc"]) or "arguments"
        parts.append(f"{location}: {item['msg']}")
    return "; ".join(parts)


def _normalize_result(value: Any) -> ToolCallResult:
    """Convert whatever a handler returned into a ToolCallResult."""
    if isinstance(value, ToolCallResult):
        return value
    if isinstance(value, str):
        return ToolCallResult.from_text(value)
    if isinstance(value, dict) and "content" in value:
        return ToolCallResult.model_validate(value)
    if isinstance(value, list) and all(
        isinstance(block, dict) and "type" in block for block in value
    ):
        return ToolCallResult(content=value)
    return ToolCallResult.from_text(str(value))


class ToolRegistry:
    """Holds the provider's tools, in registration order.

    Registration happens before any consumer session becomes ready; after
    that the registry is only read, so it can be shared by all connections.
    """

    def __init__(self) -> None:
        self._tools: dict[str, RegisteredTool] = {}
        self._listeners: list[RegistrationListener] = []

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    # ── Registration ──────────────────────────────────────────────────────

    def register(
        self,
        name: str,
        parameters: ToolParameters,
        description: str | None,
        handler: ToolHandler,
    ) -> ToolDescriptor:
        """Register a tool.

        Args:
            name: Unique tool name
            parameters: Parameter model class or field mapping
            description: What the tool does; the model reads this to decide
                whether to call it
            handler: Sync or async callable receiving the validated
                arguments as keyword arguments

        Returns:
            The published descriptor

        Raises:
            DuplicateToolNameError: If a tool with this name already exists
        """
        if name in self._tools:
            raise DuplicateToolNameError(f"Tool '{name}' is already registered")

        arguments_model = _build_arguments_model(name, parameters)
        descriptor = ToolDescriptor(
            name=name,
            description=description,
            input_schema=arguments_model.model_json_schema(),
        )
        self._tools[name] = RegisteredTool(
            descriptor=descriptor,
            arguments_model=arguments_model,
            handler=handler,
        )
        logger.info(f"Registered tool: {name}")

        for listener in self._listeners:
            listener(descriptor)
        return descriptor

    def tool(
        self,
        name: str | None = None,
        parameters: ToolParameters | None = None,
        description: str | None = None,
    ) -> Callable[[ToolHandler], ToolHandler]:
        """Decorator form of register().

        The name defaults to the function name and the description to its
        docstring.

        Example:
            >>> @registry.tool(parameters={"a": float, "b": float})
            ... def add(a: float, b: float) -> str:
            ...     '''Add two numbers.'''
            ...     return str(a + b)
        """

        def decorator(handler: ToolHandler) -> ToolHandler:
            self.register(
                name or handler.__name__,
                parameters if parameters is not None else {},
                description if description is not None else inspect.getdoc(handler),
                handler,
            )
            return handler

        return decorator

    def add_listener(self, listener: RegistrationListener) -> None:
        """Call ``listener`` with the descriptor of every later registration."""
        self._listeners.append(listener)

    # ── Discovery ─────────────────────────────────────────────────────────

    def list_tools(self) -> list[ToolDescriptor]:
        """Return all descriptors in registration order."""
        return [tool.descriptor for tool in self._tools.values()]

    def get_tool(self, name: str) -> RegisteredTool | None:
        return self._tools.get(name)

    # ── Invocation ────────────────────────────────────────────────────────

    async def invoke(self, name: str, arguments: Mapping[str, Any] | None) -> ToolCallResult:
        """Validate arguments and run a tool's handler.

        Never raises for tool-level problems: an unknown name, invalid
        arguments or a failing handler all produce a result with
        ``is_error`` set and a text block describing the problem.

        Args:
            name: Tool name
            arguments: Argument mapping as sent by the consumer

        Returns:
            The tool's result, or an error result
        """
        try:
            tool = self._lookup(name)
            validated = self._validate(tool, arguments or {})
            return await self._run_handler(tool, validated)
        except ToolBridgeError as e:
            logger.warning(f"Tool call '{name}' failed: {e}")
            return ToolCallResult.error(str(e))

    def _lookup(self, name: str) -> RegisteredTool:
        tool = self._tools.get(name)
        if tool is None:
            raise UnknownToolError(f"Unknown tool: {name}")
        return tool

    def _validate(self, tool: RegisteredTool, arguments: Mapping[str, Any]) -> BaseModel:
        if not isinstance(arguments, Mapping):
            raise SchemaValidationError(
                f"Invalid arguments for tool '{tool.name}': expected an object"
            )
        try:
            payload = json.dumps(dict(arguments))
        except (TypeError, ValueError) as e:
            raise SchemaValidationError(
                f"Invalid arguments for tool '{tool.name}': not JSON-serializable: {e}"
            ) from e
        # JSON mode, so arguments are judged as the published schema judges them
        try:
            return tool.arguments_model.model_validate_json(payload, strict=True)
        except ValidationError as e:
            raise SchemaValidationError(
                f"Invalid arguments for tool '{tool.name}': "
                f"{_describe_validation_error(e)}"
            ) from e

    async def _run_handler(self, tool: RegisteredTool, validated: BaseModel) -> ToolCallResult:
        kwargs = {field: getattr(validated, field) for field in type(validated).model_fields}
        try:
            value = tool.handler(**kwargs)
            if inspect.isawaitable(value):
                value = await value
            return _normalize_result(value)
        except Exception as e:
            logger.error(f"Handler for tool '{tool.name}' raised: {e}")
            raise HandlerError(f"Tool '{tool.name}' failed: {e}") from e
