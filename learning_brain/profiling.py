"""Named timing spans around the stages of a decision tick.

The controller wraps tensor generation, execution and application in spans.
The default span logs its duration at DEBUG; any callable returning a context
manager can be injected instead (a profiler, a tracing client, a test spy).
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterator
from contextlib import AbstractContextManager, contextmanager

logger = logging.getLogger(__name__)

SpanFactory = Callable[[str], AbstractContextManager]

# Stage names, prefixed with the brain name by the controller.
DECIDE = "DecideAction"
GENERATE = "GenerateTensors"
EXECUTE = "ExecuteGraph"
APPLY = "ApplyTensors"


@contextmanager
def span(name: str) -> Iterator[None]:
    """Time the enclosed block and log the elapsed milliseconds."""
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.debug(f"{name}: {elapsed_ms:.3f} ms")


class SpanRecorder:
    """Span factory that keeps the name and duration of every completed span."""

    def __init__(self) -> None:
        self.records: list[tuple[str, float]] = []

    @contextmanager
    def __call__(self, name: str) -> Iterator[None]:
        start = time.perf_counter()
        try:
            yield
        finally:
            self.records.append((name, time.perf_counter() - start))

    @property
    def names(self) -> list[str]:
        return [name for name, _ in self.records]

    def clear(self) -> None:
        self.records.clear()


__all__ = ["APPLY", "DECIDE", "EXECUTE", "GENERATE", "SpanFactory", "SpanRecorder", "span"]
