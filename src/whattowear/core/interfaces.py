"""Interfaces (Protocols) for what-to-wear services.

The message evaluator only depends on these protocols, so any expression
technology that can compile once and run many times can be plugged in.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Mapping, Protocol, runtime_checkable

if TYPE_CHECKING:
    from whattowear.expressions.schema import EnvironmentSchema


# -----------------------------------------------------------------------------
# Expression engine Protocols
# -----------------------------------------------------------------------------


@runtime_checkable
class Program(Protocol):
    """An immutable, re-executable compiled expression."""

    source: str

    def run(self, values: Mapping[str, Any]) -> Any:
        """Evaluate against concrete values.

        Raises ExpressionRuntimeError on missing/mismatched bindings or
        evaluation failures.
        """
        ...


@runtime_checkable
class ExpressionEngine(Protocol):
    """Interface for compiling expressions against a schema.

    Implementations:
    - TreeExpressionEngine: recursive-descent parser + tree interpreter
    """

    def compile(self, source: str, schema: "EnvironmentSchema") -> Program:
        """Compile ``source``, raising CompileError when it cannot be bound."""
        ...
