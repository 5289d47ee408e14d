"""Capability interface for neural-network execution backends.

The pipeline never depends on a concrete engine. A ModelSource loads a
ModelHandle for a device; the handle exposes its tensor signatures, executes
named inputs and releases its resources exactly once.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from enum import Enum
from typing import Protocol, runtime_checkable

from ..tensors import TensorProxy, TensorSpec


class InferenceDevice(str, Enum):
    """Inference execution device."""

    CPU = "cpu"
    GPU = "gpu"

    @classmethod
    def parse(cls, value: InferenceDevice | str) -> InferenceDevice:
        if isinstance(value, InferenceDevice):
            return value
        try:
            return cls(value.strip().lower())
        except ValueError as exc:
            raise ValueError(f"Invalid inference device: {value!r}. Must be 'cpu' or 'gpu'") from exc


@runtime_checkable
class ModelHandle(Protocol):
    """A loaded model. Signatures are immutable for the handle's lifetime."""

    @property
    def input_signature(self) -> Sequence[TensorSpec]: ...

    @property
    def output_signature(self) -> Sequence[TensorSpec]: ...

    def execute(self, inputs: Mapping[str, TensorProxy]) -> Mapping[str, TensorProxy]:
        """Run the model on named inputs and return named outputs."""
        ...

    def release(self) -> None:
        """Free engine resources. The handle is unusable afterwards."""
        ...


@runtime_checkable
class ModelSource(Protocol):
    """Reference to a model artifact that can be loaded into a handle."""

    @property
    def name(self) -> str: ...

    def load(self, device: InferenceDevice = InferenceDevice.CPU) -> ModelHandle: ...


__all__ = ["InferenceDevice", "ModelHandle", "ModelSource"]
