"""what-to-wear - weather-conditioned message rendering."""

from typing import TYPE_CHECKING

__version__ = "0.1.0"

__all__ = ["Settings", "MessageEvaluator", "__version__"]

if TYPE_CHECKING:
    from .config.settings import Settings
    from .evaluation.evaluator import MessageEvaluator


def __getattr__(name: str):
    if name == "Settings":
        from .config.settings import Settings

        return Settings
    if name == "MessageEvaluator":
        from .evaluation.evaluator import MessageEvaluator

        return MessageEvaluator
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
