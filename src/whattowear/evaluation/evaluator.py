"""Message evaluator.

Two phases:

1. ``compile_all()`` runs once at startup. Every condition and choice guard is
   compiled against the data schema; every template against a binding schema
   holding the message's variable names as strings. Any compile error aborts
   the whole batch.
2. ``evaluate_all()`` runs once per update with a fresh data environment. Each
   message goes through condition → variable resolution → template selection
   → render. A failing message is logged and yields an empty string; it never
   affects the other messages.

Usage:
    evaluator = MessageEvaluator(build_data_schema())
    compiled = evaluator.compile_all(config.messages)
    lines = evaluator.evaluate_all(compiled, build_environment(data))
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from whattowear.core.exceptions import (
    CompileError,
    ConditionEvalError,
    ConditionTypeError,
    ExpressionRuntimeError,
    MessageEvaluationError,
    RenderEvalError,
    RenderTypeError,
)
from whattowear.core.interfaces import ExpressionEngine, Program
from whattowear.core.messages import Message
from whattowear.expressions.compiler import TreeExpressionEngine
from whattowear.expressions.schema import EnvironmentSchema

logger = logging.getLogger(__name__)

# Bound value of a variable whose choices all failed to match
NO_MATCH_SENTINEL = "<>"


def _run_failure(error: Exception, program: Program) -> Tuple[str, Dict[str, Any]]:
    """Cause and log context of an exception raised by ``program.run``.

    Engines are pluggable, so anything a program raises is treated as a
    failure of that program, not only ExpressionRuntimeError.
    """
    if isinstance(error, ExpressionRuntimeError):
        return error.message, dict(error.context or {})
    return (
        f"{type(error).__name__}: {error}",
        {"expression": program.source, "error_type": type(error).__name__},
    )


class OutcomeStatus(str, Enum):
    """Terminal states of a message evaluation."""
    RENDERED = "rendered"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class EvaluationOutcome:
    """Result of evaluating one message."""
    status: OutcomeStatus
    text: str = ""
    error: Optional[MessageEvaluationError] = None
    bindings: Dict[str, str] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return self.status is not OutcomeStatus.FAILED


@dataclass(frozen=True)
class CompiledChoice:
    guard: Program
    value: str


@dataclass(frozen=True)
class CompiledVariable:
    name: str
    choices: Tuple[CompiledChoice, ...] = ()


@dataclass(frozen=True)
class CompiledMessage:
    """Compiled programs of one message. The source Message is left untouched."""
    index: int
    message: Message
    template: Program
    condition: Optional[Program] = None
    negative_template: Optional[Program] = None
    variables: Tuple[CompiledVariable, ...] = ()

    @property
    def label(self) -> str:
        return f"#{self.index} {self.message.label}"


class MessageEvaluator:
    """Compiles and evaluates configured messages.

    The evaluator holds no per-pass state; one instance can evaluate any
    number of passes, concurrently if needed.
    """

    def __init__(
        self,
        data_schema: EnvironmentSchema,
        engine: Optional[ExpressionEngine] = None,
        max_workers: int = 1,
    ):
        """Initialize evaluator.

        Args:
            data_schema: Shape of the data environment used by conditions
                and choice guards.
            engine: Expression engine; defaults to TreeExpressionEngine.
            max_workers: Thread pool size for evaluate_all (1 = sequential).
        """
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")
        self.data_schema = data_schema
        self.engine: ExpressionEngine = engine or TreeExpressionEngine()
        self.max_workers = max_workers

    # -------------------------------------------------------------------------
    # Compile phase
    # -------------------------------------------------------------------------

    def compile_all(self, messages: Sequence[Message]) -> List[CompiledMessage]:
        """Compile every message in order.

        Raises:
            CompileError: On the first expression that fails to compile.
        """
        compiled = [self.compile_message(message, index) for index, message in enumerate(messages)]
        logger.info("Compiled %d messages", len(compiled))
        return compiled

    def compile_message(self, message: Message, index: int = 0) -> CompiledMessage:
        """Compile a single message (see compile_all)."""
        condition = None
        if message.condition:
            condition = self._compile(message.condition, self.data_schema, index, "condition")

        binding_schema = EnvironmentSchema.strings(v.name for v in message.variables)

        variables = tuple(
            CompiledVariable(
                name=variable.name,
                choices=tuple(
                    CompiledChoice(
                        guard=self._compile(
                            choice.guard, self.data_schema, index, f"variables.{variable.name}"
                        ),
                        value=choice.value,
                    )
                    for choice in variable.choices
                ),
            )
            for variable in message.variables
        )

        template = self._compile(message.template, binding_schema, index, "message")
        negative_template = None
        if message.negative_template:
            negative_template = self._compile(
                message.negative_template, binding_schema, index, "negative_message"
            )

        return CompiledMessage(
            index=index,
            message=message,
            template=template,
            condition=condition,
            negative_template=negative_template,
            variables=variables,
        )

    def _compile(
        self, source: str, schema: EnvironmentSchema, index: int, location: str
    ) -> Program:
        try:
            return self.engine.compile(source, schema)
        except CompileError as e:
            raise CompileError(
                f"Message #{index} {location}: {e.message}",
                context={**(e.context or {}), "expression": source, "message_index": index, "field": location},
            )

    # -------------------------------------------------------------------------
    # Evaluate phase
    # -------------------------------------------------------------------------

    def evaluate_one(self, compiled: CompiledMessage, env: Mapping[str, Any]) -> EvaluationOutcome:
        """Evaluate one compiled message against a data environment.

        Never raises for expression failures; they are reported through the
        returned outcome.
        """
        logger.debug("Evaluating message %s", compiled.label)

        # Condition stage
        condition_result = True
        if compiled.condition is not None:
            try:
                output = compiled.condition.run(env)
            except Exception as e:
                cause, context = _run_failure(e, compiled.condition)
                return self._failed(
                    ConditionEvalError(
                        f"Condition failed: {cause}",
                        context={**context, "message": compiled.label},
                    )
                )
            if not isinstance(output, bool):
                return self._failed(
                    ConditionTypeError(
                        f"Condition didn't evaluate to boolean (got {type(output).__name__})",
                        context={"expression": compiled.condition.source, "message": compiled.label},
                    )
                )
            condition_result = output
            # Nothing to say and no negative message configured
            if not condition_result and compiled.negative_template is None:
                logger.debug("Condition false, skipping %s", compiled.label)
                return EvaluationOutcome(status=OutcomeStatus.SKIPPED)

        # Variable resolution stage
        bindings = {
            variable.name: self.resolve_variable(variable, env, compiled)
            for variable in compiled.variables
        }

        # Template selection stage; no condition behaves like a true condition
        if compiled.condition is None or condition_result:
            program = compiled.template
        else:
            program = compiled.negative_template

        # Render stage
        try:
            output = program.run(bindings)
        except Exception as e:
            cause, context = _run_failure(e, program)
            return self._failed(
                RenderEvalError(
                    f"Message failed: {cause}",
                    context={**context, "message": compiled.label},
                ),
                bindings,
            )
        if not isinstance(output, str):
            return self._failed(
                RenderTypeError(
                    f"Expression did not return a valid string (got {type(output).__name__})",
                    context={"expression": program.source, "message": compiled.label},
                ),
                bindings,
            )
        return EvaluationOutcome(status=OutcomeStatus.RENDERED, text=output, bindings=bindings)

    def resolve_variable(
        self,
        variable: CompiledVariable,
        env: Mapping[str, Any],
        compiled: Optional[CompiledMessage] = None,
    ) -> str:
        """Pick a variable's value: the first choice whose guard is true.

        Returns "" when the variable has no choices and NO_MATCH_SENTINEL
        when none of them match. Guards that fail are logged and skipped.
        """
        logger.debug("Evaluating variable %s", variable.name)
        if not variable.choices:
            return ""

        for choice in variable.choices:
            try:
                output = choice.guard.run(env)
            except Exception as e:
                logger.error(
                    "Error evaluating choice",
                    extra={
                        "variable": variable.name,
                        "expression": choice.guard.source,
                        "message_label": compiled.label if compiled else None,
                        "error": str(e),
                    },
                )
                continue
            if output is True:
                logger.debug("Variable %s evaluated to %r", variable.name, choice.value)
                return choice.value

        return NO_MATCH_SENTINEL

    def evaluate_outcomes(
        self, compiled_messages: Sequence[CompiledMessage], env: Mapping[str, Any]
    ) -> List[EvaluationOutcome]:
        """Evaluate every message, keeping input order."""
        workers = min(self.max_workers, len(compiled_messages))
        if workers <= 1:
            return [self.evaluate_one(compiled, env) for compiled in compiled_messages]

        # Slots are pre-sized so completion order cannot reorder results
        slots: List[Optional[EvaluationOutcome]] = [None] * len(compiled_messages)
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {
                executor.submit(self.evaluate_one, compiled, env): position
                for position, compiled in enumerate(compiled_messages)
            }
            for future in as_completed(futures):
                slots[futures[future]] = future.result()
        return [outcome for outcome in slots if outcome is not None]

    def evaluate_all(
        self, compiled_messages: Sequence[CompiledMessage], env: Mapping[str, Any]
    ) -> List[str]:
        """Render every message; failed and skipped messages yield "".

        The result always has one entry per compiled message, in order.
        """
        outcomes = self.evaluate_outcomes(compiled_messages, env)
        rendered = 0
        for compiled, outcome in zip(compiled_messages, outcomes):
            if outcome.status is OutcomeStatus.FAILED:
                logger.error(
                    "Could not evaluate message: %s",
                    outcome.error,
                    extra={"message_index": compiled.index, "message_label": compiled.message.label},
                )
            elif outcome.status is OutcomeStatus.RENDERED:
                rendered += 1
        logger.info(
            "Evaluated messages",
            extra={"total": len(outcomes), "rendered": rendered},
        )
        return [outcome.text for outcome in outcomes]

    @staticmethod
    def _failed(
        error: MessageEvaluationError, bindings: Optional[Dict[str, str]] = None
    ) -> EvaluationOutcome:
        return EvaluationOutcome(status=OutcomeStatus.FAILED, error=error, bindings=bindings or {})
