"""Reusable tensor buffers for the decision-tick pipeline.

The allocator keeps one buffer per distinct (name, shape, dtype). A buffer is
leased to the current tick by ``alloc`` and returns to the cache on
``recycle``, so peak memory stays bounded across repeated inference calls.
"""

from __future__ import annotations

import logging

import numpy as np

from .exceptions import BindingError
from .tensors import ElementKind, dtype_for

logger = logging.getLogger(__name__)

BufferKey = tuple[str, tuple[int, ...], str]


class TensorCachingAllocator:
    """Caching allocator handing out zero-filled numpy buffers."""

    def __init__(self) -> None:
        self._cache: dict[BufferKey, np.ndarray] = {}
        self._leased: set[BufferKey] = set()

    @staticmethod
    def _key(name: str, shape: tuple[int, ...], kind: ElementKind) -> BufferKey:
        return (name, tuple(int(d) for d in shape), dtype_for(kind).str)

    def alloc(self, name: str, shape: tuple[int, ...], kind: ElementKind = "float") -> np.ndarray:
        """Lease a zero-filled buffer for the current tick.

        Raises:
            BindingError: If the same (name, shape, kind) is already leased.
        """
        key = self._key(name, shape, kind)
        if key in self._leased:
            raise BindingError(f"Buffer for tensor '{name}' with shape {key[1]} is already in use", name)

        buffer = self._cache.get(key)
        if buffer is None:
            buffer = np.zeros(key[1], dtype=dtype_for(kind))
            self._cache[key] = buffer
        else:
            buffer.fill(0)
        self._leased.add(key)
        return buffer

    def recycle(self) -> None:
        """End the current tick: every leased buffer becomes reusable."""
        self._leased.clear()

    def reset(self, keep_cache: bool = False) -> None:
        """Drop all leases and, unless ``keep_cache``, every cached buffer."""
        released = 0 if keep_cache else len(self._cache)
        self._leased.clear()
        if not keep_cache:
            self._cache.clear()
        logger.debug(f"Allocator reset: keep_cache={keep_cache}, released {released} buffers")

    @property
    def cached_buffers(self) -> int:
        return len(self._cache)

    @property
    def leased_buffers(self) -> int:
        return len(self._leased)

    @property
    def allocated_bytes(self) -> int:
        return sum(buffer.nbytes for buffer in self._cache.values())


__all__ = ["TensorCachingAllocator"]
