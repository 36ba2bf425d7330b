"""Unit tests for the provider's tool registry."""

from datetime import date
from enum import Enum

import pytest
from pydantic import BaseModel, Field

from toolbridge.errors import DuplicateToolNameError
from toolbridge.protocol.types import ToolCallResult
from toolbridge.server import ToolRegistry
from toolbridge.tools.arithmetic import format_number, register_arithmetic_tools


@pytest.fixture
def registry():
    """A registry holding the arithmetic tools."""
    registry = ToolRegistry()
    register_arithmetic_tools(registry)
    return registry


def test_list_tools_in_registration_order(registry):
    """Test that discovery returns every tool in the order it was added."""
    names = [tool.name for tool in registry.list_tools()]

    assert names == ["add", "subtract", "multiply", "divide"]
    assert len(registry) == 4
    assert "add" in registry


def test_descriptor_schema_from_model(registry):
    """Test that the published schema is the parameter model's schema."""
    schema = registry.get_tool("add").descriptor.input_schema

    assert schema["type"] == "object"
    assert set(schema["properties"]) == {"num1", "num2"}
    assert schema["required"] == ["num1", "num2"]
    assert schema["properties"]["num1"]["description"] == "The first number"


def test_duplicate_name_rejected(registry):
    """Test that a name cannot be registered twice."""
    with pytest.raises(DuplicateToolNameError):
        registry.register("add", {"a": int}, "Again", lambda a: str(a))

    assert len(registry) == 4


@pytest.mark.asyncio
async def test_invoke_add(registry):
    """Test the add tool on integers."""
    result = await registry.invoke("add", {"num1": 12345, "num2": 67890})

    assert result.is_error is False
    assert result.content == [{"type": "text", "text": "80235"}]


@pytest.mark.asyncio
async def test_invoke_missing_field_is_error_result(registry):
    """Test that invalid arguments produce an error result instead of raising."""
    result = await registry.invoke("add", {"num1": 1})

    assert result.is_error is True
    assert "num2" in result.text()


@pytest.mark.asyncio
async def test_invoke_wrong_type_is_error_result(registry):
    """Test that a string is not accepted where the schema says number."""
    result = await registry.invoke("add", {"num1": "1", "num2": 2})

    assert result.is_error is True
    assert "num1" in result.text()


@pytest.mark.asyncio
async def test_invoke_unknown_tool(registry):
    """Test that an unknown name produces an error result."""
    result = await registry.invoke("sqrt", {"x": 4})

    assert result.is_error is True
    assert "Unknown tool: sqrt" in result.text()


@pytest.mark.asyncio
async def test_invoke_handler_failure(registry):
    """Test that a raising handler produces an error result."""
    result = await registry.invoke("divide", {"num1": 1, "num2": 0})

    assert result.is_error is True
    assert "division by zero" in result.text()


@pytest.mark.asyncio
async def test_invoke_async_handler_with_field_mapping():
    """Test registering an async handler with a field mapping."""
    registry = ToolRegistry()

    async def shout(text: str, times: int = 1) -> str:
        return " ".join([text.upper()] * times)

    registry.register(
        "shout",
        {"text": str, "times": (int, Field(default=1, description="Repeats"))},
        "Shout text",
        shout,
    )

    result = await registry.invoke("shout", {"text": "hi", "times": 2})
    schema = registry.get_tool("shout").descriptor.input_schema

    assert result.text() == "HI HI"
    assert schema["required"] == ["text"]


@pytest.mark.asyncio
async def test_decorator_uses_function_name_and_docstring():
    """Test the decorator form of register."""
    registry = ToolRegistry()

    @registry.tool(parameters={"name": str})
    def greet(name: str) -> str:
        """Greet someone by name."""
        return f"Hello, {name}!"

    descriptor = registry.get_tool("greet").descriptor
    result = await registry.invoke("greet", {"name": "Ada"})

    assert descriptor.description == "Greet someone by name."
    assert result.text() == "Hello, Ada!"


@pytest.mark.asyncio
async def test_handler_returning_content_blocks():
    """Test that content block lists are passed through."""
    registry = ToolRegistry()

    class Empty(BaseModel):
        pass

    registry.register(
        "blocks",
        Empty,
        None,
        lambda: [{"type": "text", "text": "a"}, {"type": "text", "text": "b"}],
    )

    result = await registry.invoke("blocks", {})

    assert isinstance(result, ToolCallResult)
    assert len(result.content) == 2
    assert registry.get_tool("blocks").descriptor.description is None


def test_listener_notified_on_registration():
    """Test that listeners see every later registration."""
    registry = ToolRegistry()
    seen = []
    registry.add_listener(lambda descriptor: seen.append(descriptor.name))

    registry.register("one", {}, "One", lambda: "1")
    registry.register("two", {}, "Two", lambda: "2")

    assert seen == ["one", "two"]


@pytest.mark.parametrize(
    "value,expected",
    [
        (80235.0, "80235"),
        (-3.0, "-3"),
        (0.5, "0.5"),
        (2.25, "2.25"),
        (float("inf"), "inf"),
        (float("-inf"), "-inf"),
        (float("nan"), "nan"),
    ],
)
def test_format_number(value, expected):
    """Test that whole numbers lose their decimal point."""
    assert format_number(value) == expected


@pytest.mark.asyncio
async def test_invoke_add_overflow_is_a_result(registry):
    """Test that an overflowing sum is reported as inf, not as a failure."""
    result = await registry.invoke("add", {"num1": 1e308, "num2": 1e308})

    assert result.is_error is False
    assert result.text() == "inf"


class Color(str, Enum):
    RED = "red"
    GREEN = "green"


@pytest.mark.asyncio
async def test_invoke_accepts_json_forms_of_rich_types():
    """Test that enum, tuple and date parameters accept their JSON encodings."""
    registry = ToolRegistry()
    registry.register("paint", {"color": Color}, "Paint", lambda color: color.value)
    registry.register("pair", {"xy": tuple[int, int]}, "Pair", lambda xy: str(sum(xy)))
    registry.register("when", {"day": date}, "When", lambda day: day.strftime("%A"))

    painted = await registry.invoke("paint", {"color": "red"})
    paired = await registry.invoke("pair", {"xy": [1, 2]})
    dated = await registry.invoke("when", {"day": "2024-01-02"})

    assert painted.is_error is False
    assert painted.text() == "red"
    assert paired.text() == "3"
    assert dated.text() == "Tuesday"
    assert registry.get_tool("pair").descriptor.input_schema["properties"]["xy"]["type"] == "array"


@pytest.mark.asyncio
async def test_invoke_rejects_what_the_schema_rejects():
    """Test that strict validation still refuses values outside the schema."""
    registry = ToolRegistry()
    registry.register("paint", {"color": Color}, "Paint", lambda color: color.value)
    registry.register("when", {"day": date}, "When", lambda day: day.isoformat())

    unknown_color = await registry.invoke("paint", {"color": "blue"})
    bad_day = await registry.invoke("when", {"day": "next tuesday"})

    assert unknown_color.is_error is True
    assert bad_day.is_error is True


@pytest.mark.asyncio
async def test_invoke_non_json_arguments_is_error_result(registry):
    """Test that arguments that cannot be JSON-encoded are rejected as invalid."""
    result = await registry.invoke("add", {"num1": object(), "num2": 2})

    assert result.is_error is True
    assert "Invalid arguments for tool 'add'" in result.text()
