"""Typed environment schemas.

A schema is the compile-time view of an evaluation environment: it maps each
name an expression may reference to a tagged value kind. Records carry their
field bindings and callables carry a signature, so the compiler can check
member access and calls without any live data.

Bindings may also carry an accessor. ``EnvironmentSchema.bind()`` walks the
accessors to turn a data snapshot into the concrete values a compiled
program runs against.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, Iterator, Mapping, Optional, Tuple


class ValueKind(str, Enum):
    """Kinds of values an expression can see or produce."""
    NUMBER = "number"
    STRING = "string"
    BOOL = "bool"
    TIMESTAMP = "timestamp"
    RECORD = "record"
    CALLABLE = "callable"
    NIL = "nil"
    ANY = "any"

    def accepts(self, value: Any) -> bool:
        """Check whether a concrete value belongs to this kind."""
        if self is ValueKind.ANY:
            return True
        return kind_of(value) is self

    def is_compatible(self, other: "ValueKind") -> bool:
        """Static compatibility: ANY matches everything."""
        return self is ValueKind.ANY or other is ValueKind.ANY or self is other


def kind_of(value: Any) -> ValueKind:
    """Classify a concrete value."""
    # bool is a subclass of int, so check it first
    if isinstance(value, bool):
        return ValueKind.BOOL
    if isinstance(value, (int, float)):
        return ValueKind.NUMBER
    if isinstance(value, str):
        return ValueKind.STRING
    if isinstance(value, datetime):
        return ValueKind.TIMESTAMP
    if value is None:
        return ValueKind.NIL
    if isinstance(value, Mapping):
        return ValueKind.RECORD
    if callable(value):
        return ValueKind.CALLABLE
    return ValueKind.ANY


@dataclass(frozen=True)
class FunctionSignature:
    """Parameter and return kinds of a callable binding.

    Attributes:
        params: Kinds of the positional parameters.
        returns: Kind of the returned value.
        required: How many leading params are mandatory (None: all of them).
        variadic: Kind accepted for any extra trailing arguments, if allowed.
    """
    params: Tuple[ValueKind, ...] = ()
    returns: ValueKind = ValueKind.ANY
    required: Optional[int] = None
    variadic: Optional[ValueKind] = None

    @property
    def min_args(self) -> int:
        return len(self.params) if self.required is None else self.required

    @property
    def max_args(self) -> Optional[int]:
        return None if self.variadic is not None else len(self.params)

    def param_kind(self, index: int) -> ValueKind:
        if index < len(self.params):
            return self.params[index]
        return self.variadic or ValueKind.ANY

    def describe(self) -> str:
        parts = [kind.value for kind in self.params]
        if self.variadic is not None:
            parts.append(f"{self.variadic.value}...")
        return f"({', '.join(parts)}) -> {self.returns.value}"


@dataclass(frozen=True)
class Binding:
    """A named slot in a schema: its kind plus optional shape and accessor."""
    kind: ValueKind
    fields: Optional[Mapping[str, "Binding"]] = None
    signature: Optional[FunctionSignature] = None
    accessor: Optional[Callable[[Any], Any]] = field(default=None, compare=False)
    description: str = field(default="", compare=False)

    @classmethod
    def value(
        cls,
        kind: ValueKind,
        accessor: Optional[Callable[[Any], Any]] = None,
        description: str = "",
    ) -> "Binding":
        return cls(kind=kind, accessor=accessor, description=description)

    @classmethod
    def record(
        cls,
        fields: Mapping[str, "Binding"],
        accessor: Optional[Callable[[Any], Any]] = None,
        description: str = "",
    ) -> "Binding":
        return cls(
            kind=ValueKind.RECORD,
            fields=MappingProxyType(dict(fields)),
            accessor=accessor,
            description=description,
        )

    @classmethod
    def function(
        cls,
        signature: FunctionSignature,
        accessor: Optional[Callable[[Any], Any]] = None,
        description: str = "",
    ) -> "Binding":
        return cls(
            kind=ValueKind.CALLABLE,
            signature=signature,
            accessor=accessor,
            description=description,
        )

    def resolve(self, source: Any) -> Any:
        """Produce the concrete value of this binding from a snapshot."""
        if self.accessor is None:
            raise ValueError("Binding has no accessor")
        value = self.accessor(source)
        if self.kind is ValueKind.RECORD and self.fields is not None:
            return MappingProxyType(
                {name: child.resolve(value) for name, child in self.fields.items()}
            )
        return value


ANY_BINDING = Binding(kind=ValueKind.ANY)


class EnvironmentSchema(Mapping[str, Binding]):
    """Immutable mapping from name to Binding.

    Usage:
        schema = EnvironmentSchema({"temperature": Binding.value(ValueKind.NUMBER)})
        program = compile_expression("temperature < 20", schema)

        # Binding schema for templates: every declared variable is a string
        binding_schema = EnvironmentSchema.strings(["test", "umbrella"])
    """

    def __init__(self, bindings: Optional[Mapping[str, Binding]] = None):
        self._bindings: Mapping[str, Binding] = MappingProxyType(dict(bindings or {}))

    @classmethod
    def strings(cls, names: Iterable[str]) -> "EnvironmentSchema":
        """Build a schema typing every name as a string."""
        return cls({name: Binding.value(ValueKind.STRING) for name in names})

    def __getitem__(self, name: str) -> Binding:
        return self._bindings[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._bindings)

    def __len__(self) -> int:
        return len(self._bindings)

    def __repr__(self) -> str:
        kinds = ", ".join(f"{name}: {b.kind.value}" for name, b in self._bindings.items())
        return f"EnvironmentSchema({kinds})"

    def merged(self, other: Mapping[str, Binding]) -> "EnvironmentSchema":
        """Return a new schema with ``other``'s bindings layered on top."""
        combined: Dict[str, Binding] = dict(self._bindings)
        combined.update(other)
        return EnvironmentSchema(combined)

    def bind(self, source: Any) -> Dict[str, Any]:
        """Resolve every binding against a data snapshot.

        Raises:
            ValueError: If a binding has no accessor.
        """
        return {name: binding.resolve(source) for name, binding in self._bindings.items()}
