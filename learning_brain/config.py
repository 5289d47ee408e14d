"""Configuration of a Learning Brain.

A BrainConfig is only applied by ``LearningBrain.reload``; editing a live
brain's configuration has no effect until the next reload.

Example YAML::

    brain_name: walker
    model: models/walker.onnx
    inference_device: gpu
    seed: 7
    inference_mode: greedy
    brain_parameters:
      vector_observation_size: 12
      num_stacked_vector_observations: 3
      action_spec:
        discrete_branch_sizes: [3, 2]
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .applier import InferenceMode
from .backends.base import InferenceDevice, ModelSource
from .parameters import ObservationSpec


@dataclass
class BrainConfig:
    """Configuration for a LearningBrain.

    Attributes:
        brain_name: Name the brain subscribes under on a remote channel.
        model: Path to a ``.onnx`` / ``.pt`` model, a ModelSource, or None for
            no local model.
        inference_device: "cpu" or "gpu" (accelerated, falls back to CPU).
        seed: Seed for the random-normal input and stochastic decoding.
        inference_mode: Discrete decoding policy, "stochastic" or "greedy".
        brain_parameters: Observation/action contract of the agents.
    """

    brain_name: str = "LearningBrain"
    model: str | Path | ModelSource | None = None
    inference_device: InferenceDevice = InferenceDevice.CPU
    seed: int = 0
    inference_mode: InferenceMode = "stochastic"
    brain_parameters: ObservationSpec = field(default_factory=ObservationSpec)

    def __post_init__(self) -> None:
        self.inference_device = InferenceDevice.parse(self.inference_device)

    @property
    def model_name(self) -> str | None:
        if self.model is None:
            return None
        if isinstance(self.model, (str, Path)):
            return str(self.model)
        return self.model.name

    def to_dict(self) -> dict[str, Any]:
        """Convert configuration to dictionary for serialization."""
        return {
            "brain_name": self.brain_name,
            "model": self.model_name,
            "inference_device": self.inference_device.value,
            "seed": self.seed,
            "inference_mode": self.inference_mode,
            "brain_parameters": self.brain_parameters.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BrainConfig:
        """Create configuration from dictionary."""
        data = data.copy()

        if "brain_parameters" in data:
            if isinstance(data["brain_parameters"], dict):
                data["brain_parameters"] = ObservationSpec.from_dict(data["brain_parameters"])
        else:
            data["brain_parameters"] = ObservationSpec()

        known_fields = {f.name for f in dataclasses.fields(cls)}
        filtered_data = {k: v for k, v in data.items() if k in known_fields}

        return cls(**filtered_data)

    @classmethod
    def from_yaml(cls, path: str | Path) -> BrainConfig:
        """Load configuration from YAML file."""
        import yaml

        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path) as f:
            data = yaml.safe_load(f)

        return cls.from_dict(data or {})

    def validate(self) -> None:
        """Validate configuration parameters."""
        if not self.brain_name:
            raise ValueError("brain_name must be non-empty")
        if self.inference_mode not in ("greedy", "stochastic"):
            raise ValueError(f"inference_mode must be 'greedy' or 'stochastic', got {self.inference_mode}")
        if not isinstance(self.seed, int) or self.seed < 0:
            raise ValueError(f"seed must be a non-negative integer, got {self.seed}")
        if isinstance(self.model, (str, Path)) and Path(self.model).suffix not in (".onnx", ".pt"):
            raise ValueError(f"model must be a .onnx or .pt file, got {self.model}")


__all__ = ["BrainConfig"]
