"""Expression compiler: source + schema → CompiledProgram.

Compilation parses the source, then walks the tree once against the schema:
identifiers must be declared, member access needs a record with that field,
calls need a callable with a matching signature, and operators need operands
of a usable kind. Anything whose kind cannot be known statically (``any``,
``nil``) is left for the interpreter to check at run time.

The resulting program is immutable and can be run any number of times:

    program = compile_expression("temperature < 20", data_schema)
    program.run({"temperature": 15})   # True
    program.run({"temperature": 21})   # False
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Mapping

from whattowear.core.exceptions import CompileError, ExpressionRuntimeError
from whattowear.expressions.interpreter import Interpreter
from whattowear.expressions.parser import LexerError, ParseError, parse_expression
from whattowear.expressions.schema import (
    ANY_BINDING,
    Binding,
    EnvironmentSchema,
    ValueKind,
    kind_of,
)
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

logger = logging.getLogger(__name__)


ORDERABLE_KINDS = (ValueKind.NUMBER, ValueKind.STRING, ValueKind.TIMESTAMP)
NUMERIC_OPERATORS = ("-", "*", "/", "%", "**")


@dataclass(frozen=True)
class CompiledProgram:
    """An expression bound to a schema, ready to run.

    Attributes:
        source: Original expression text.
        tree: Parsed expression tree.
        result_kind: Statically inferred kind of the result (may be ANY).
        references: Schema kinds of every free name the expression reads.
    """
    source: str
    tree: Expr
    result_kind: ValueKind
    references: Mapping[str, ValueKind] = field(default_factory=lambda: MappingProxyType({}))

    @property
    def names(self) -> FrozenSet[str]:
        return frozenset(self.references)

    def run(self, values: Mapping[str, Any]) -> Any:
        """Run the program against concrete values.

        Args:
            values: Concrete value for every name in ``references``.

        Returns:
            The expression result.

        Raises:
            ExpressionRuntimeError: On a missing or mismatched binding, or
                when an operation fails while evaluating.
        """
        for name, kind in self.references.items():
            if name not in values:
                raise ExpressionRuntimeError(
                    f"Missing binding for '{name}'",
                    context={"expression": self.source, "variable": name},
                )
            value = values[name]
            if not kind.accepts(value):
                raise ExpressionRuntimeError(
                    f"Binding '{name}' expected {kind.value}, got {kind_of(value).value}",
                    context={"expression": self.source, "variable": name},
                )
        return Interpreter(self.source).evaluate(self.tree, values)


class TypeChecker:
    """Bind an expression tree to a schema and infer its result kind.

    Usage:
        checker = TypeChecker(source, schema)
        binding = checker.check(tree)
        checker.references  # {"temperature": ValueKind.NUMBER}
    """

    def __init__(self, source: str, schema: EnvironmentSchema):
        self.source = source
        self.schema = schema
        self.references: Dict[str, ValueKind] = {}

    def _error(self, message: str, node: Expr) -> CompileError:
        return CompileError(
            message,
            context={"expression": self.source, "position": getattr(node, "position", 0)},
        )

    def check(self, node: Expr) -> Binding:
        """Recursively check a tree node, returning its static binding."""
        if isinstance(node, Literal):
            return Binding.value(kind_of(node.value))

        elif isinstance(node, Name):
            if node.name not in self.schema:
                available = ", ".join(sorted(self.schema)) or "none"
                raise self._error(
                    f"Unknown identifier '{node.name}' (available: {available})", node
                )
            binding = self.schema[node.name]
            self.references[node.name] = binding.kind
            return binding

        elif isinstance(node, Member):
            return self._check_member(node)

        elif isinstance(node, Call):
            return self._check_call(node)

        elif isinstance(node, UnaryOp):
            operand = self.check(node.operand).kind
            if node.operator == "!":
                self._expect(operand, ValueKind.BOOL, node, "!")
                return Binding.value(ValueKind.BOOL)
            self._expect(operand, ValueKind.NUMBER, node, node.operator)
            return Binding.value(ValueKind.NUMBER)

        elif isinstance(node, BinaryOp):
            return self._check_binary(node)

        elif isinstance(node, Conditional):
            self._expect(self.check(node.test).kind, ValueKind.BOOL, node, "?:")
            if_true = self.check(node.if_true)
            if_false = self.check(node.if_false)
            if if_true.kind is if_false.kind:
                return if_true
            return ANY_BINDING

        raise self._error(f"Unsupported expression type: {type(node).__name__}", node)

    def _check_member(self, node: Member) -> Binding:
        target = self.check(node.target)
        if target.kind is ValueKind.ANY:
            return ANY_BINDING
        if target.kind is not ValueKind.RECORD:
            raise self._error(
                f"Cannot access '{node.name}' on {target.kind.value} value", node
            )
        if target.fields is None:
            return ANY_BINDING
        if node.name not in target.fields:
            available = ", ".join(sorted(target.fields)) or "none"
            raise self._error(
                f"Record has no field '{node.name}' (available: {available})", node
            )
        return target.fields[node.name]

    def _check_call(self, node: Call) -> Binding:
        callee = self.check(node.callee)
        arg_kinds = [self.check(arg).kind for arg in node.args]

        if callee.kind is ValueKind.ANY:
            return ANY_BINDING
        if callee.kind is not ValueKind.CALLABLE:
            raise self._error(f"Cannot call {callee.kind.value} value", node)

        signature = callee.signature
        if signature is None:
            return ANY_BINDING

        count = len(arg_kinds)
        if count < signature.min_args or (
            signature.max_args is not None and count > signature.max_args
        ):
            raise self._error(
                f"Wrong number of arguments: expected {signature.describe()}, got {count}",
                node,
            )
        for index, kind in enumerate(arg_kinds):
            expected = signature.param_kind(index)
            if not expected.is_compatible(kind):
                raise self._error(
                    f"Argument {index + 1} expected {expected.value}, got {kind.value}",
                    node.args[index],
                )
        return Binding.value(signature.returns)

    def _check_binary(self, node: BinaryOp) -> Binding:
        op = node.operator
        left = self.check(node.left).kind
        right = self.check(node.right).kind

        if op in ("&&", "||"):
            self._expect(left, ValueKind.BOOL, node, op)
            self._expect(right, ValueKind.BOOL, node, op)
            return Binding.value(ValueKind.BOOL)

        if op in ("==", "!="):
            return Binding.value(ValueKind.BOOL)

        if op in ("<", "<=", ">", ">="):
            for kind in (left, right):
                if kind is not ValueKind.ANY and kind not in ORDERABLE_KINDS:
                    raise self._error(f"Operator '{op}' cannot order {kind.value} values", node)
            if not left.is_compatible(right):
                raise self._error(f"Cannot compare {left.value} {op} {right.value}", node)
            return Binding.value(ValueKind.BOOL)

        if op == "+":
            if ValueKind.STRING in (left, right):
                self._expect(left, ValueKind.STRING, node, op)
                self._expect(right, ValueKind.STRING, node, op)
                return Binding.value(ValueKind.STRING)
            self._expect(left, ValueKind.NUMBER, node, op)
            self._expect(right, ValueKind.NUMBER, node, op)
            if ValueKind.ANY in (left, right):
                return ANY_BINDING
            return Binding.value(ValueKind.NUMBER)

        if op in NUMERIC_OPERATORS:
            self._expect(left, ValueKind.NUMBER, node, op)
            self._expect(right, ValueKind.NUMBER, node, op)
            return Binding.value(ValueKind.NUMBER)

        raise self._error(f"Unsupported operator: {op}", node)

    def _expect(self, actual: ValueKind, expected: ValueKind, node: Expr, op: str) -> None:
        if not expected.is_compatible(actual):
            raise self._error(
                f"Operator '{op}' requires {expected.value}, got {actual.value}", node
            )


def compile_expression(source: str, schema: EnvironmentSchema) -> CompiledProgram:
    """Compile an expression against a schema.

    Args:
        source: Expression text.
        schema: Names (and their kinds) the expression may reference.

    Returns:
        An immutable CompiledProgram.

    Raises:
        CompileError: On syntax errors, unknown identifiers, invalid
            operator usage or nesting deeper than the interpreter stack.
            ``context["expression"]`` holds the source.
    """
    try:
        tree = parse_expression(source)
    except (LexerError, ParseError) as e:
        raise CompileError(
            f"Invalid expression syntax: {e}",
            context={"expression": source, "position": e.position},
        )
    except RecursionError:
        raise CompileError("Expression nested too deeply", context={"expression": source})

    checker = TypeChecker(source, schema)
    try:
        binding = checker.check(tree)
    except RecursionError:
        raise CompileError("Expression nested too deeply", context={"expression": source})
    logger.debug(
        "Compiled expression",
        extra={"expression": source, "result_kind": binding.kind.value},
    )
    return CompiledProgram(
        source=source,
        tree=tree,
        result_kind=binding.kind,
        references=MappingProxyType(dict(checker.references)),
    )


class TreeExpressionEngine:
    """Default ExpressionEngine: recursive-descent parser plus tree interpreter."""

    def compile(self, source: str, schema: EnvironmentSchema) -> CompiledProgram:
        return compile_expression(source, schema)
