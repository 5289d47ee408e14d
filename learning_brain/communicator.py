"""Remote decision channel.

When a communicator is connected (for example, to an external trainer), the
brain forwards each batch to it unchanged and skips local inference.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from .agents import AgentBatch
from .parameters import ObservationSpec


@runtime_checkable
class Communicator(Protocol):
    """Channel to an external decision maker."""

    @property
    def is_connected(self) -> bool: ...

    def subscribe_brain(self, brain_name: str, observation_spec: ObservationSpec) -> None:
        """Register a brain and its contract with the remote side."""
        ...

    def put_observations(self, brain_name: str, batch: AgentBatch) -> None:
        """Hand a batch to the remote side; actions come back through the host."""
        ...


__all__ = ["Communicator"]
