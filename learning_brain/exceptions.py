"""Custom exception classes for the Learning Brain inference pipeline."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .validator import CompatibilityViolation


class LearningBrainError(Exception):
    """Base exception for all Learning Brain errors."""


class ConfigurationError(LearningBrainError):
    """Raised when a model is incompatible with the brain parameters.

    Fatal to the model load that produced it: the brain stays unloaded.
    """

    def __init__(self, violations: Sequence[CompatibilityViolation], model: str | None = None) -> None:
        self.violations = tuple(violations)
        self.model = model
        source = f" {model}" if model else ""
        lines = "\n".join(f"  - {v.message}" for v in self.violations)
        super().__init__(
            f"Model{source} is incompatible with the brain parameters "
            f"({len(self.violations)} failed checks):\n{lines}"
        )


class BindingError(LearningBrainError):
    """Raised when tensors cannot be bound to the model inputs or outputs.

    Fatal to the current decision tick only.
    """

    def __init__(self, message: str, tensor_name: str | None = None) -> None:
        self.tensor_name = tensor_name
        super().__init__(message)


class ExecutionError(BindingError):
    """Raised when the inference engine fails or omits a declared output."""


class DecodeError(LearningBrainError):
    """Raised when an output tensor cannot be decoded into agent actions."""

    def __init__(self, message: str, tensor_name: str | None = None) -> None:
        self.tensor_name = tensor_name
        super().__init__(message)


class UnavailableError(LearningBrainError):
    """No local inference this tick: no model is loaded or a remote channel is active."""


__all__ = [
    "BindingError",
    "ConfigurationError",
    "DecodeError",
    "ExecutionError",
    "LearningBrainError",
    "UnavailableError",
]
