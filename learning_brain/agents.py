"""Per-agent records exchanged with the inference pipeline.

An AgentBatch is an ordered sequence of AgentRecord objects. Row ``i`` of every
input tensor is built from ``batch[i]`` and row ``i`` of every output tensor is
decoded back onto ``batch[i]``.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Hashable, Sequence
from dataclasses import dataclass, field

import numpy as np

from .parameters import ObservationSpec


@dataclass(frozen=True)
class AgentAction:
    """Decoded decision for one agent.

    Attributes:
        key: Identity of the agent the action belongs to.
        continuous: Continuous action vector, or None.
        discrete: One selected index per discrete branch, or None.
        memory: Recurrent state produced by the model, or None.
        value_estimate: Value head output, or None.
    """

    key: Hashable
    continuous: np.ndarray | None = None
    discrete: tuple[int, ...] | None = None
    memory: np.ndarray | None = None
    value_estimate: float | None = None


@dataclass(eq=False)
class AgentRecord:
    """Observation state and decision history of one agent.

    Use :meth:`create` to size the vector-observation history from the brain
    parameters. ``observe`` pushes the previous observation into the history.
    """

    key: Hashable
    vector_observation: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.float32))
    visual_observations: list[np.ndarray] = field(default_factory=list)
    action_mask: np.ndarray | None = None
    history_size: int = 0
    history: deque = field(init=False, repr=False)
    last_action: AgentAction | None = None
    memory: np.ndarray | None = None
    memory_generation: int = -1
    value_estimate: float | None = None

    def __post_init__(self) -> None:
        self.vector_observation = np.array(self.vector_observation, dtype=np.float32)
        self.history = deque(maxlen=max(self.history_size, 0))

    @classmethod
    def create(cls, key: Hashable, observation_spec: ObservationSpec) -> AgentRecord:
        return cls(key=key, history_size=observation_spec.num_stacked_vector_observations - 1)

    def observe(
        self,
        vector_observation: Sequence[float] | np.ndarray,
        visual_observations: Sequence[np.ndarray] = (),
        action_mask: Sequence[float] | np.ndarray | None = None,
    ) -> None:
        """Record this tick's observation, retaining the previous one as history."""
        if self.history.maxlen and self.vector_observation.size:
            self.history.append(self.vector_observation)
        # Copies: hosts may refill the same buffers in place every tick.
        self.vector_observation = np.array(vector_observation, dtype=np.float32)
        self.visual_observations = [np.array(v) for v in visual_observations]
        self.action_mask = None if action_mask is None else np.array(action_mask, dtype=np.float32)

    def stacked_history(self, count: int) -> list[np.ndarray | None]:
        """Return the last ``count`` history entries oldest-first, None-padded at the front."""
        if count <= 0:
            return []
        recent = list(self.history)[-count:]
        return [None] * (count - len(recent)) + recent

    def apply(self, action: AgentAction, generation: int) -> None:
        """Store a decoded action and any auxiliary outputs on the record."""
        self.last_action = action
        if action.memory is not None:
            self.memory = action.memory
            self.memory_generation = generation
        if action.value_estimate is not None:
            self.value_estimate = action.value_estimate

    def memory_for(self, generation: int) -> np.ndarray | None:
        """Return the recurrent memory only if it was produced by ``generation``."""
        return self.memory if self.memory_generation == generation else None

    def reset(self) -> None:
        """Clear history and decision state at an episode boundary."""
        self.history.clear()
        self.last_action = None
        self.memory = None
        self.memory_generation = -1
        self.value_estimate = None


AgentBatch = Sequence[AgentRecord]

__all__ = ["AgentAction", "AgentBatch", "AgentRecord"]
