"""Expression engine - parser, schema, compiler, interpreter"""

from .parser import parse_expression, LexerError, ParseError
from .schema import Binding, EnvironmentSchema, FunctionSignature, ValueKind, kind_of
from .compiler import CompiledProgram, TreeExpressionEngine, TypeChecker, compile_expression
from .interpreter import Interpreter
from .types import Expr, BinaryOp, UnaryOp, Name, Literal, Member, Call, Conditional

__all__ = [
    "parse_expression",
    "compile_expression",
    "CompiledProgram",
    "TreeExpressionEngine",
    "TypeChecker",
    "Interpreter",
    "Binding",
    "EnvironmentSchema",
    "FunctionSignature",
    "ValueKind",
    "kind_of",
    "Expr",
    "BinaryOp",
    "UnaryOp",
    "Name",
    "Literal",
    "Member",
    "Call",
    "Conditional",
    "LexerError",
    "ParseError",
]
