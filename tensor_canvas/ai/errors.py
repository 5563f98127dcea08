"""
Error types shared by the model, the training controller and the dashboard.

Every failure that can stop training carries an ErrorKind so the presentation
layer can show *what* went wrong without inspecting exception classes.
"""

from enum import Enum
from typing import Optional


class ErrorKind(Enum):
    """Failure kinds surfaced to the presentation layer."""
    INVALID_TOPOLOGY = "invalid_topology"
    EMPTY_DATASET = "empty_dataset"
    NUMERIC_DIVERGENCE = "numeric_divergence"
    FIT_FAILURE = "fit_failure"
    INTROSPECTION_FAILURE = "introspection_failure"


class PlaygroundError(Exception):
    """Base class for recoverable playground failures."""

    kind: Optional[ErrorKind] = None

    def __init__(self, message: str, kind: Optional[ErrorKind] = None):
        super().__init__(message)
        if kind is not None:
            self.kind = kind


class NumericDivergenceError(PlaygroundError):
    """The fit primitive produced a non-finite loss or accuracy."""
    kind = ErrorKind.NUMERIC_DIVERGENCE


class FitError(PlaygroundError):
    """The fit primitive itself raised."""
    kind = ErrorKind.FIT_FAILURE


class IntrospectionError(PlaygroundError):
    """Weight capture or grid inference failed."""
    kind = ErrorKind.INTROSPECTION_FAILURE


class ModelDisposedError(RuntimeError):
    """A model was used after dispose() released its resources."""


class ShareStringError(ValueError):
    """A share string could not be decoded into settings."""
