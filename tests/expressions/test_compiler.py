"""Tests for expression compilation.

Tests cover:
- Identifier binding against a schema
- Static operator checks
- Record member access and call signatures
- Inferred result kinds and references
- Compile-once, run-many behaviour
"""

import pytest

from whattowear.core.exceptions import CompileError, ExpressionRuntimeError
from whattowear.core.interfaces import ExpressionEngine, Program
from whattowear.expressions.compiler import CompiledProgram, TreeExpressionEngine, compile_expression
from whattowear.expressions.schema import (
    Binding,
    EnvironmentSchema,
    FunctionSignature,
    ValueKind,
)


@pytest.fixture
def schema():
    return EnvironmentSchema({
        "x": Binding.value(ValueKind.NUMBER),
        "name": Binding.value(ValueKind.STRING),
        "flag": Binding.value(ValueKind.BOOL),
        "anything": Binding(kind=ValueKind.ANY),
        "rec": Binding.record({"a": Binding.value(ValueKind.NUMBER)}),
        "double": Binding.function(FunctionSignature(params=(ValueKind.NUMBER,), returns=ValueKind.NUMBER)),
        "fmt": Binding.function(
            FunctionSignature(params=(ValueKind.STRING,), returns=ValueKind.STRING, variadic=ValueKind.ANY)
        ),
    })


# -----------------------------------------------------------------------------
# Identifier binding
# -----------------------------------------------------------------------------


class TestBinding:
    """Tests for resolving identifiers against the schema."""

    def test_known_identifier(self, schema):
        program = compile_expression("x > 1", schema)
        assert isinstance(program, CompiledProgram)
        assert program.names == frozenset({"x"})

    def test_unknown_identifier(self, schema):
        with pytest.raises(CompileError, match="Unknown identifier 'temp'") as exc_info:
            compile_expression("temp > 1", schema)
        assert exc_info.value.expression == "temp > 1"

    def test_unknown_identifier_lists_available_names(self, schema):
        with pytest.raises(CompileError) as exc_info:
            compile_expression("missing", schema)
        assert "flag" in str(exc_info.value)

    def test_syntax_error_is_compile_error(self, schema):
        with pytest.raises(CompileError, match="Invalid expression syntax") as exc_info:
            compile_expression("x <", schema)
        assert exc_info.value.context["expression"] == "x <"

    def test_deep_nesting_is_compile_error(self, schema):
        source = "(" * 2000 + "flag" + ")" * 2000
        with pytest.raises(CompileError, match="nested too deeply") as exc_info:
            compile_expression(source, schema)
        assert exc_info.value.expression == source

    def test_moderate_nesting_compiles(self, schema):
        program = compile_expression("(" * 20 + "x + 1" + ")" * 20, schema)
        assert program.run({"x": 1}) == 2

    def test_references_record_schema_kinds(self, schema):
        program = compile_expression("x > 1 && flag", schema)
        assert dict(program.references) == {"x": ValueKind.NUMBER, "flag": ValueKind.BOOL}

    def test_literal_only_expression_has_no_references(self, schema):
        program = compile_expression("'Bring an umbrella'", schema)
        assert program.names == frozenset()

    def test_empty_schema(self):
        with pytest.raises(CompileError):
            compile_expression("test", EnvironmentSchema())

    def test_string_schema(self):
        binding_schema = EnvironmentSchema.strings(["test"])
        program = compile_expression("'Test is ' + test", binding_schema)
        assert program.result_kind is ValueKind.STRING


# -----------------------------------------------------------------------------
# Operator checks
# -----------------------------------------------------------------------------


class TestOperatorChecks:
    """Tests for invalid operator usage detected at compile time."""

    @pytest.mark.parametrize("source", [
        "'a' - 1",
        "name + 1",
        "x + name",
        "x < 'a'",
        "name * 2",
        "!x",
        "-name",
        "x && flag",
        "flag || name",
        "x ? 1 : 2",
        "flag < true",
        "nil + 1",
    ])
    def test_rejected(self, schema, source):
        with pytest.raises(CompileError):
            compile_expression(source, schema)

    @pytest.mark.parametrize("source", [
        "x + 1",
        "name + 'x'",
        "x == name",
        "flag != nil",
        "anything + 1",
        "anything && flag",
        "anything < x",
        "!anything",
        "-x ** 2 % 3",
    ])
    def test_accepted(self, schema, source):
        assert compile_expression(source, schema) is not None


# -----------------------------------------------------------------------------
# Records and calls
# -----------------------------------------------------------------------------


class TestRecordsAndCalls:
    """Tests for member access and call signatures."""

    def test_record_field(self, schema):
        program = compile_expression("rec.a + 1", schema)
        assert program.result_kind is ValueKind.NUMBER

    def test_unknown_record_field(self, schema):
        with pytest.raises(CompileError, match="no field 'b'"):
            compile_expression("rec.b", schema)

    def test_member_on_non_record(self, schema):
        with pytest.raises(CompileError, match="Cannot access"):
            compile_expression("x.a", schema)

    def test_member_on_any(self, schema):
        program = compile_expression("anything.foo", schema)
        assert program.result_kind is ValueKind.ANY

    def test_call(self, schema):
        program = compile_expression("double(x)", schema)
        assert program.result_kind is ValueKind.NUMBER

    def test_call_non_callable(self, schema):
        with pytest.raises(CompileError, match="Cannot call number"):
            compile_expression("x(1)", schema)

    def test_call_wrong_arity(self, schema):
        with pytest.raises(CompileError, match="Wrong number of arguments"):
            compile_expression("double(1, 2)", schema)
        with pytest.raises(CompileError, match="Wrong number of arguments"):
            compile_expression("double()", schema)

    def test_call_wrong_argument_kind(self, schema):
        with pytest.raises(CompileError, match="Argument 1 expected number"):
            compile_expression("double('a')", schema)

    def test_variadic_call(self, schema):
        program = compile_expression("fmt('%s %s %s', x, name, flag)", schema)
        assert program.result_kind is ValueKind.STRING

    def test_variadic_call_requires_fixed_params(self, schema):
        with pytest.raises(CompileError):
            compile_expression("fmt()", schema)


# -----------------------------------------------------------------------------
# Result kinds
# -----------------------------------------------------------------------------


class TestResultKinds:
    """Tests for the statically inferred result kind."""

    @pytest.mark.parametrize("source,kind", [
        ("x + 1", ValueKind.NUMBER),
        ("name + 'x'", ValueKind.STRING),
        ("x > 1", ValueKind.BOOL),
        ("!flag", ValueKind.BOOL),
        ("flag ? 'a' : 'b'", ValueKind.STRING),
        ("flag ? 1 : 'a'", ValueKind.ANY),
        ("nil", ValueKind.NIL),
        ("anything", ValueKind.ANY),
    ])
    def test_result_kind(self, schema, source, kind):
        assert compile_expression(source, schema).result_kind is kind

    def test_non_string_template_still_compiles(self):
        """Result kinds are enforced by the caller at run time"""
        assert compile_expression("1 + 2", EnvironmentSchema()).result_kind is ValueKind.NUMBER


# -----------------------------------------------------------------------------
# Compile once, run many
# -----------------------------------------------------------------------------


class TestCompiledProgram:
    """Tests for running compiled programs."""

    def test_run_many_times(self, schema):
        program = compile_expression("x < 20", schema)
        assert program.run({"x": 15}) is True
        assert program.run({"x": 21}) is False
        assert program.run({"x": 15}) is True

    def test_missing_binding(self, schema):
        program = compile_expression("x < 20", schema)
        with pytest.raises(ExpressionRuntimeError, match="Missing binding for 'x'"):
            program.run({})

    def test_mismatched_binding(self, schema):
        program = compile_expression("x < 20", schema)
        with pytest.raises(ExpressionRuntimeError, match="expected number, got string"):
            program.run({"x": "hot"})

    def test_bool_is_not_a_number(self, schema):
        program = compile_expression("x < 20", schema)
        with pytest.raises(ExpressionRuntimeError):
            program.run({"x": True})

    def test_extra_values_ignored(self, schema):
        program = compile_expression("x < 20", schema)
        assert program.run({"x": 1, "unrelated": object()}) is True

    def test_compile_does_not_mutate_schema(self, schema):
        before = dict(schema)
        compile_expression("x + rec.a", schema)
        compile_expression("name + 'x'", schema)
        assert dict(schema) == before

    def test_program_is_immutable(self, schema):
        program = compile_expression("x < 20", schema)
        with pytest.raises(AttributeError):
            program.source = "x > 20"
        with pytest.raises(TypeError):
            program.references["y"] = ValueKind.NUMBER


class TestEngine:
    """Tests for the pluggable engine interface."""

    def test_tree_engine_satisfies_protocol(self, schema):
        engine = TreeExpressionEngine()
        assert isinstance(engine, ExpressionEngine)
        program = engine.compile("x + 1", schema)
        assert isinstance(program, Program)
        assert program.run({"x": 1}) == 2
