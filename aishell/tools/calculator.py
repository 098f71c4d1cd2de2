"""
CalculatorTool - arithmetic without eval().

The expression is parsed with ast and only numeric literals, arithmetic
operators and a handful of math helpers are accepted.
"""

from __future__ import annotations

import ast
import math
import operator
from typing import Any, Callable

from aishell.tools.base import Tool, ToolInputError

MAX_EXPONENT = 10_000
MAX_RESULT_BITS = 100_000

_BINARY_OPS: dict[type, Callable[[Any, Any], Any]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}

_UNARY_OPS: dict[type, Callable[[Any], Any]] = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
}

_FUNCTIONS: dict[str, Callable[..., Any]] = {
    "sqrt": math.sqrt,
    "abs": abs,
    "round": round,
}

_CONSTANTS = {
    "pi": math.pi,
    "e": math.e,
}


class CalculatorTool(Tool):
    name = "calculator"
    description = (
        "Useful for getting the result of a math expression. "
        "The input to this tool should be a valid mathematical expression "
        "that could be executed by a simple calculator, e.g. \"(15 + 25) * 2\" or \"sqrt(2) ** 3\"."
    )

    def invoke(self, tool_input: str) -> str:
        expression = tool_input.strip()
        if not expression:
            raise ToolInputError("expression required")
        try:
            tree = ast.parse(expression, mode="eval")
        except SyntaxError:
            raise ToolInputError(f"invalid expression: {expression}") from None

        try:
            return _format(_evaluate(tree.body))
        except ZeroDivisionError:
            raise ToolInputError("division by zero") from None
        except (OverflowError, TypeError, ValueError) as exc:
            raise ToolInputError(f"cannot evaluate {expression}: {exc}") from None


def _evaluate(node: ast.AST) -> Any:
    if isinstance(node, ast.Constant) and isinstance(node.value, (int, float)) \
            and not isinstance(node.value, bool):
        return node.value

    if isinstance(node, ast.BinOp) and type(node.op) in _BINARY_OPS:
        left = _evaluate(node.left)
        right = _evaluate(node.right)
        if isinstance(node.op, ast.Pow) and abs(right) > MAX_EXPONENT:
            raise ToolInputError(f"exponent too large: {right}")
        if isinstance(node.op, ast.Pow) and _int_result_bits(left, right) > MAX_RESULT_BITS:
            raise ToolInputError("result too large")
        return _BINARY_OPS[type(node.op)](left, right)

    if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPS:
        return _UNARY_OPS[type(node.op)](_evaluate(node.operand))

    if isinstance(node, ast.Name) and node.id in _CONSTANTS:
        return _CONSTANTS[node.id]

    if isinstance(node, ast.Call) and isinstance(node.func, ast.Name) \
            and node.func.id in _FUNCTIONS and not node.keywords:
        args = [_evaluate(arg) for arg in node.args]
        return _FUNCTIONS[node.func.id](*args)

    raise ToolInputError(f"unsupported expression element: {ast.dump(node)[:60]}")


def _int_result_bits(base: Any, exponent: Any) -> int:
    """Approximate size of base ** exponent for integer operands, 0 otherwise."""
    if isinstance(base, int) and isinstance(exponent, int) and exponent > 0:
        return base.bit_length() * exponent
    return 0


def _format(value: Any) -> str:
    if isinstance(value, float) and value.is_integer() and abs(value) < 1e16:
        return str(int(value))
    return str(value)
