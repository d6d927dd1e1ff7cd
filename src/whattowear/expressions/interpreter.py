"""Tree-walking interpreter for compiled expressions.

Evaluation is pure: the interpreter reads the expression tree and the value
mapping and never writes to either, so one tree can be run concurrently from
several threads.
"""

from __future__ import annotations

import operator
from typing import Any, Callable, Dict, Mapping

from whattowear.core.exceptions import ExpressionRuntimeError
from whattowear.expressions.schema import ValueKind, kind_of
from whattowear.expressions.types import (
    BinaryOp,
    Call,
    Conditional,
    Expr,
    Literal,
    Member,
    Name,
    UnaryOp,
)


ORDERING_OPS: Dict[str, Callable[[Any, Any], bool]] = {
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}

ARITHMETIC_OPS: Dict[str, Callable[[Any, Any], Any]] = {
    "-": operator.sub,
    "*": operator.mul,
    "/": operator.truediv,
    "%": operator.mod,
    "**": operator.pow,
}


def values_equal(left: Any, right: Any) -> bool:
    """Equality without Python's bool/int coercion (true != 1)."""
    if isinstance(left, bool) != isinstance(right, bool):
        return False
    return left == right


class Interpreter:
    """Evaluate an expression tree against concrete values.

    Usage:
        interpreter = Interpreter("temperature < 20")
        interpreter.evaluate(tree, {"temperature": 15})
        # True
    """

    def __init__(self, source: str):
        self.source = source

    def evaluate(self, node: Expr, values: Mapping[str, Any]) -> Any:
        return self._eval_node(node, values)

    def _error(self, message: str, node: Expr, **context: Any) -> ExpressionRuntimeError:
        return ExpressionRuntimeError(
            message,
            context={"expression": self.source, "position": getattr(node, "position", 0), **context},
        )

    # -------------------------------------------------------------------------
    # Node evaluation
    # -------------------------------------------------------------------------

    def _eval_node(self, node: Expr, values: Mapping[str, Any]) -> Any:
        """Recursively evaluate a tree node."""
        if isinstance(node, Literal):
            return node.value

        elif isinstance(node, Name):
            if node.name not in values:
                raise self._error(f"Missing binding for '{node.name}'", node)
            return values[node.name]

        elif isinstance(node, Member):
            return self._eval_member(node, values)

        elif isinstance(node, Call):
            return self._eval_call(node, values)

        elif isinstance(node, UnaryOp):
            return self._eval_unary(node, values)

        elif isinstance(node, BinaryOp):
            return self._eval_binary(node, values)

        elif isinstance(node, Conditional):
            test = self._require_bool(self._eval_node(node.test, values), node, "?:")
            branch = node.if_true if test else node.if_false
            return self._eval_node(branch, values)

        raise self._error(f"Unsupported expression type: {type(node).__name__}", node)

    def _eval_member(self, node: Member, values: Mapping[str, Any]) -> Any:
        target = self._eval_node(node.target, values)
        if not isinstance(target, Mapping):
            raise self._error(
                f"Cannot access '{node.name}' on {kind_of(target).value} value", node
            )
        if node.name not in target:
            raise self._error(f"Record has no field '{node.name}'", node)
        return target[node.name]

    def _eval_call(self, node: Call, values: Mapping[str, Any]) -> Any:
        func = self._eval_node(node.callee, values)
        if not callable(func) or isinstance(func, Mapping):
            raise self._error(f"Cannot call {kind_of(func).value} value", node)
        args = [self._eval_node(arg, values) for arg in node.args]
        try:
            return func(*args)
        except ExpressionRuntimeError:
            raise
        except Exception as e:
            raise self._error(f"Function call failed: {e}", node, error_type=type(e).__name__)

    def _eval_unary(self, node: UnaryOp, values: Mapping[str, Any]) -> Any:
        operand = self._eval_node(node.operand, values)
        if node.operator == "!":
            return not self._require_bool(operand, node, "!")
        self._require_number(operand, node, node.operator)
        return -operand if node.operator == "-" else +operand

    def _eval_binary(self, node: BinaryOp, values: Mapping[str, Any]) -> Any:
        op = node.operator

        # Logical operators short-circuit
        if op in ("&&", "||"):
            left = self._require_bool(self._eval_node(node.left, values), node, op)
            if op == "&&" and not left:
                return False
            if op == "||" and left:
                return True
            return self._require_bool(self._eval_node(node.right, values), node, op)

        left = self._eval_node(node.left, values)
        right = self._eval_node(node.right, values)

        if op == "==":
            return values_equal(left, right)
        if op == "!=":
            return not values_equal(left, right)

        if op in ORDERING_OPS:
            left_kind, right_kind = kind_of(left), kind_of(right)
            if left_kind is not right_kind or left_kind not in (
                ValueKind.NUMBER, ValueKind.STRING, ValueKind.TIMESTAMP
            ):
                raise self._error(
                    f"Cannot compare {left_kind.value} {op} {right_kind.value}", node
                )
            try:
                return ORDERING_OPS[op](left, right)
            except TypeError as e:
                # e.g. naive vs aware timestamps
                raise self._error(f"Cannot compare values: {e}", node)

        if op == "+":
            if isinstance(left, str) and isinstance(right, str):
                return left + right
            self._require_number(left, node, op)
            self._require_number(right, node, op)
            try:
                return left + right
            except (OverflowError, ValueError) as e:
                raise self._error(f"Arithmetic error: {e}", node)

        if op in ARITHMETIC_OPS:
            self._require_number(left, node, op)
            self._require_number(right, node, op)
            try:
                result = ARITHMETIC_OPS[op](left, right)
            except ZeroDivisionError:
                raise self._error("Division by zero", node)
            except (OverflowError, ValueError) as e:
                raise self._error(f"Arithmetic error: {e}", node)
            if isinstance(result, complex):
                raise self._error("Arithmetic error: result is not a real number", node)
            return result

        raise self._error(f"Unsupported operator: {op}", node)

    # -------------------------------------------------------------------------
    # Operand checks
    # -------------------------------------------------------------------------

    def _require_bool(self, value: Any, node: Expr, op: str) -> bool:
        if not isinstance(value, bool):
            raise self._error(
                f"Operator '{op}' requires bool, got {kind_of(value).value}: {value!r}", node
            )
        return value

    def _require_number(self, value: Any, node: Expr, op: str) -> None:
        if kind_of(value) is not ValueKind.NUMBER:
            raise self._error(
                f"Operator '{op}' requires number, got {kind_of(value).value}: {value!r}", node
            )
