"""Agent-declared observation and action contract (brain parameters).

The contract is set once at configuration time and must stay stable for the
lifetime of a loaded model; changing it requires a reload.
"""

from __future__ import annotations

import dataclasses
from dataclasses import asdict, dataclass, field
from typing import Any


@dataclass(frozen=True)
class ActionSpec:
    """Action space of a brain.

    Attributes:
        continuous_size: Width of the continuous action vector (0 for none).
        discrete_branch_sizes: Number of actions in each discrete branch.
    """

    continuous_size: int = 0
    discrete_branch_sizes: tuple[int, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "discrete_branch_sizes", tuple(int(b) for b in self.discrete_branch_sizes))
        if self.continuous_size < 0:
            raise ValueError(f"continuous_size must be non-negative, got {self.continuous_size}")
        if any(size <= 0 for size in self.discrete_branch_sizes):
            raise ValueError(f"Discrete branch sizes must be positive, got {self.discrete_branch_sizes}")

    @property
    def is_continuous(self) -> bool:
        return self.continuous_size > 0

    @property
    def is_discrete(self) -> bool:
        return bool(self.discrete_branch_sizes)

    @property
    def num_branches(self) -> int:
        return len(self.discrete_branch_sizes)

    @property
    def mask_width(self) -> int:
        """Width of the concatenated action mask across all branches."""
        return sum(self.discrete_branch_sizes)

    @property
    def previous_action_width(self) -> int:
        """One index per discrete branch, otherwise the continuous vector."""
        return self.num_branches if self.is_discrete else self.continuous_size

    def branch_offsets(self) -> list[int]:
        """Start offset of each branch inside the concatenated action mask."""
        offsets = []
        start = 0
        for size in self.discrete_branch_sizes:
            offsets.append(start)
            start += size
        return offsets


@dataclass(frozen=True)
class ObservationSpec:
    """Observation and action contract declared by the agents of one brain.

    Attributes:
        vector_observation_size: Width of one vector observation.
        num_stacked_vector_observations: Number of consecutive vector
            observations (current included) fed to the model.
        visual_observation_shapes: ``(height, width, channels)`` per camera.
        action_spec: The action space.
    """

    vector_observation_size: int = 0
    num_stacked_vector_observations: int = 1
    visual_observation_shapes: tuple[tuple[int, int, int], ...] = ()
    action_spec: ActionSpec = field(default_factory=ActionSpec)

    def __post_init__(self) -> None:
        shapes = tuple(tuple(int(d) for d in shape) for shape in self.visual_observation_shapes)
        for shape in shapes:
            if len(shape) != 3 or any(d <= 0 for d in shape):
                raise ValueError(f"Visual observation shapes must be positive (H, W, C), got {shape}")
        object.__setattr__(self, "visual_observation_shapes", shapes)
        if self.vector_observation_size < 0:
            raise ValueError(
                f"vector_observation_size must be non-negative, got {self.vector_observation_size}"
            )
        if self.num_stacked_vector_observations < 1:
            raise ValueError(
                "num_stacked_vector_observations must be at least 1, "
                f"got {self.num_stacked_vector_observations}"
            )

    @property
    def stacked_vector_size(self) -> int:
        return self.vector_observation_size * self.num_stacked_vector_observations

    @property
    def num_visual_observations(self) -> int:
        return len(self.visual_observation_shapes)

    def to_dict(self) -> dict[str, Any]:
        """Convert the contract to a dictionary for serialization."""
        data = asdict(self)
        data["visual_observation_shapes"] = [list(s) for s in self.visual_observation_shapes]
        data["action_spec"]["discrete_branch_sizes"] = list(self.action_spec.discrete_branch_sizes)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ObservationSpec:
        """Create the contract from a dictionary, ignoring unknown keys."""
        data = dict(data)
        action = data.get("action_spec")
        if isinstance(action, dict):
            action_fields = {f.name for f in dataclasses.fields(ActionSpec)}
            data["action_spec"] = ActionSpec(**{k: v for k, v in action.items() if k in action_fields})
        elif action is None:
            data["action_spec"] = ActionSpec()

        known_fields = {f.name for f in dataclasses.fields(cls)}
        filtered_data = {k: v for k, v in data.items() if k in known_fields}
        return cls(**filtered_data)


__all__ = ["ActionSpec", "ObservationSpec"]
