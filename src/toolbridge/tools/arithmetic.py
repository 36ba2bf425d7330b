"""Arithmetic tools served by the built-in provider."""

import math

from pydantic import BaseModel, Field

from toolbridge.server.registry import ToolRegistry


class BinaryOperands(BaseModel):
    """Two numbers to combine."""

    num1: float = Field(description="The first number")
    num2: float = Field(description="The second number")


def format_number(value: float) -> str:
    """Format a number the way it reads naturally: 80235, not 80235.0."""
    if math.isfinite(value) and value == int(value):
        return str(int(value))
    return repr(value)


def add(num1: float, num2: float) -> str:
    return format_number(num1 + num2)


def subtract(num1: float, num2: float) -> str:
    return format_number(num1 - num2)


def multiply(num1: float, num2: float) -> str:
    return format_number(num1 * num2)


def divide(num1: float, num2: float) -> str:
    if num2 == 0:
        raise ZeroDivisionError("division by zero")
    return format_number(num1 / num2)


def register_arithmetic_tools(registry: ToolRegistry) -> None:
    """Register add, subtract, multiply and divide on a registry."""
    registry.register("add", BinaryOperands, "Add two numbers", add)
    registry.register("subtract", BinaryOperands, "Subtract num2 from num1", subtract)
    registry.register("multiply", BinaryOperands, "Multiply two numbers", multiply)
    registry.register("divide", BinaryOperands, "Divide num1 by num2", divide)
