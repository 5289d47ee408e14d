"""Tensor descriptors shared by every stage of the inference pipeline.

A TensorSpec is what a model declares (name, shape with a possibly symbolic
batch axis, element kind). A TensorProxy is a concrete tensor flowing through
one decision tick: its batch axis is bound to the number of agents.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

import numpy as np

ElementKind = Literal["float", "int"]

BATCH_AXIS = 0

_KIND_TO_DTYPE: dict[str, np.dtype] = {
    "float": np.dtype(np.float32),
    "int": np.dtype(np.int64),
}


def dtype_for(kind: ElementKind) -> np.dtype:
    """Return the numpy dtype used to store tensors of the given kind."""
    try:
        return _KIND_TO_DTYPE[kind]
    except KeyError as exc:
        raise ValueError(f"Unknown element kind: {kind!r}. Must be 'float' or 'int'") from exc


def kind_of(dtype: np.dtype | type) -> ElementKind:
    """Map a numpy dtype onto an element kind."""
    dtype = np.dtype(dtype)
    if np.issubdtype(dtype, np.integer) or np.issubdtype(dtype, np.bool_):
        return "int"
    return "float"


@dataclass(frozen=True)
class TensorSpec:
    """Declared model tensor.

    Attributes:
        name: Tensor name, unique within a signature.
        shape: Dimension sizes. ``shape[0]`` is the batch axis and is None when
            symbolic. A None elsewhere marks an unbound non-batch dimension.
        kind: Element kind ("float" or "int").
    """

    name: str
    shape: tuple[int | None, ...]
    kind: ElementKind = "float"

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("TensorSpec name must be non-empty")
        object.__setattr__(self, "shape", tuple(self.shape))
        dtype_for(self.kind)

    @property
    def rank(self) -> int:
        return len(self.shape)

    @property
    def row_shape(self) -> tuple[int | None, ...]:
        """Shape of one agent's slice (everything after the batch axis)."""
        return self.shape[BATCH_AXIS + 1 :]

    @property
    def row_width(self) -> int | None:
        """Flat number of elements per agent, or None if a dimension is unbound."""
        width = 1
        for dim in self.row_shape:
            if dim is None:
                return None
            width *= dim
        return width

    @property
    def has_symbolic_row(self) -> bool:
        return any(dim is None for dim in self.row_shape)

    def bind(self, batch_size: int) -> tuple[int, ...]:
        """Return the concrete shape with the batch axis bound to ``batch_size``.

        Raises:
            ValueError: If the spec has an unbound non-batch dimension, or a
                fixed batch dimension that differs from ``batch_size``.
        """
        if self.rank == 0:
            raise ValueError(f"Tensor '{self.name}' is a scalar and has no batch axis")
        if self.has_symbolic_row:
            raise ValueError(f"Tensor '{self.name}' has unbound non-batch dimensions: {self.shape}")
        declared = self.shape[BATCH_AXIS]
        if declared is not None and declared != batch_size:
            raise ValueError(
                f"Tensor '{self.name}' declares a fixed batch dimension of {declared}, "
                f"got a batch of {batch_size}"
            )
        return (batch_size, *(int(d) for d in self.row_shape))  # type: ignore[arg-type]


@dataclass
class TensorProxy:
    """Concrete tensor for one decision tick.

    Attributes:
        name: Tensor name (matches a TensorSpec in the model signature).
        kind: Element kind.
        data: Contiguous numpy array; its shape is the tensor shape.
    """

    name: str
    kind: ElementKind
    data: np.ndarray

    @property
    def shape(self) -> tuple[int, ...]:
        return tuple(self.data.shape)

    @property
    def batch_size(self) -> int:
        return int(self.data.shape[BATCH_AXIS]) if self.data.ndim else 0

    def row(self, index: int) -> np.ndarray:
        """Return agent ``index``'s slice flattened to one dimension."""
        return self.data[index].reshape(-1)

    @classmethod
    def from_array(cls, name: str, array: np.ndarray, kind: ElementKind | None = None) -> TensorProxy:
        """Wrap an engine output array, casting it to the storage dtype of ``kind``."""
        array = np.asarray(array)
        resolved: ElementKind = kind or kind_of(array.dtype)
        return cls(name=name, kind=resolved, data=np.ascontiguousarray(array, dtype=dtype_for(resolved)))


__all__ = [
    "BATCH_AXIS",
    "ElementKind",
    "TensorProxy",
    "TensorSpec",
    "dtype_for",
    "kind_of",
]
