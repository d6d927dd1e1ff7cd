"""Custom exception hierarchy for what-to-wear."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass
class WhatToWearException(Exception):
    """Base exception type for all what-to-wear errors."""

    message: str
    context: Optional[Dict[str, Any]] = None

    def __str__(self) -> str:
        if not self.context:
            return self.message
        return f"{self.message} | context={self.context}"


class ConfigurationError(WhatToWearException):
    """Raised when configuration is missing or invalid."""


# -----------------------------------------------------------------------------
# Expression errors
# -----------------------------------------------------------------------------


class CompileError(WhatToWearException):
    """Raised when an expression cannot be bound to its schema.

    Covers syntax errors, unknown identifiers and invalid operator usage.
    The offending source is always available as ``context["expression"]``.
    """

    @property
    def expression(self) -> Optional[str]:
        return (self.context or {}).get("expression")


class ExpressionRuntimeError(WhatToWearException):
    """Raised when a compiled program fails while running."""


# -----------------------------------------------------------------------------
# Message evaluation errors
# -----------------------------------------------------------------------------


class MessageEvaluationError(WhatToWearException):
    """Raised when a single message cannot be rendered."""


class ConditionEvalError(MessageEvaluationError):
    """Raised when a message condition fails at run time."""


class ConditionTypeError(MessageEvaluationError):
    """Raised when a message condition does not produce a boolean."""


class RenderEvalError(MessageEvaluationError):
    """Raised when the selected template fails at run time."""


class RenderTypeError(MessageEvaluationError):
    """Raised when the selected template does not produce a string."""
