"""Message compilation and evaluation."""

from whattowear.evaluation.evaluator import (
    NO_MATCH_SENTINEL,
    CompiledChoice,
    CompiledMessage,
    CompiledVariable,
    EvaluationOutcome,
    MessageEvaluator,
    OutcomeStatus,
)

__all__ = [
    "NO_MATCH_SENTINEL",
    "CompiledChoice",
    "CompiledMessage",
    "CompiledVariable",
    "EvaluationOutcome",
    "MessageEvaluator",
    "OutcomeStatus",
]
