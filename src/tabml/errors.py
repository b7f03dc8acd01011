"""
Error taxonomy for trainers, the registry and the prediction engine.

Every error derives from TabMLError and from the builtin exception a
caller would naturally catch (ValueError for bad input, RuntimeError for
lifecycle misuse, KeyError for unknown identifiers).
"""


class TabMLError(Exception):
    """Base class for all engine errors."""


class InvalidInput(TabMLError, ValueError):
    """Malformed or mismatched input shapes or values."""


class InsufficientData(TabMLError, ValueError):
    """Too few valid rows remain after cleaning."""


class DegenerateInput(TabMLError, ValueError):
    """The fit is unsolvable for this input (e.g. zero-variance feature)."""


class UnsupportedTask(TabMLError, ValueError):
    """The algorithm cannot handle the requested task."""


class NotTrained(TabMLError, RuntimeError):
    """An operation that needs fitted parameters was called before fit()."""


class TrainingCancelled(TabMLError, RuntimeError):
    """An iterative fit was stopped through its cancellation token."""


class ModelNotFound(TabMLError, KeyError):
    """No model is registered under the requested identifier."""

    def __str__(self) -> str:
        # KeyError repr-quotes its argument
        return str(self.args[0]) if self.args else ""


class MissingInputs(TabMLError, ValueError):
    """One or more declared features have no input value."""

    def __init__(self, missing: list[str]) -> None:
        self.missing = list(missing)
        super().__init__(f"Please provide values for: {', '.join(self.missing)}")
