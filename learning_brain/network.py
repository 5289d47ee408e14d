"""Reference policy network speaking the Learning Brain tensor convention.

PolicyNetwork consumes ``vector_observation`` (plus ``action_masks``,
``recurrent_in`` and ``epsilon`` when the action space calls for them) and
produces ``action`` / ``action_branch_{i}`` / ``recurrent_out`` /
``value_estimate``. It declares its own signature so it can be served by the
torch backend directly or exported to ONNX.

Architecture Overview:
- MLP body (Linear + ReLU) over the stacked vector observation
- Optional single-step GRU carrying recurrent memory between decisions
- Continuous head: mean + learned log-std, perturbed by ``epsilon``
- One logits head per discrete branch, masked with a large negative value
- Value head: scalar estimate per agent
"""

from __future__ import annotations

import dataclasses
from dataclasses import asdict, dataclass
from typing import Any

import torch
import torch.nn as nn

from . import tensor_names as names
from .parameters import ObservationSpec
from .tensors import TensorSpec

_MASK_FILL = -1e8


@dataclass(frozen=True)
class NetworkConfig:
    """Configuration for the reference policy network.

    Attributes:
        vector_observation_size: Width of one vector observation.
        num_stacked_vector_observations: Stacked observations per input row.
        continuous_size: Width of the continuous action output (0 for none).
        discrete_branch_sizes: Logit count of each discrete branch.
        hidden_dim: Size of the hidden layers.
        num_layers: Number of hidden layers in the body.
        memory_size: GRU memory width (0 disables recurrence).
    """

    vector_observation_size: int = 8
    num_stacked_vector_observations: int = 1
    continuous_size: int = 0
    discrete_branch_sizes: tuple[int, ...] = ()
    hidden_dim: int = 64
    num_layers: int = 2
    memory_size: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "discrete_branch_sizes", tuple(self.discrete_branch_sizes))

    @property
    def input_dim(self) -> int:
        return self.vector_observation_size * self.num_stacked_vector_observations

    def to_dict(self) -> dict[str, Any]:
        """Convert config to dictionary for serialization."""
        data = asdict(self)
        data["discrete_branch_sizes"] = list(self.discrete_branch_sizes)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> NetworkConfig:
        """Create config from dictionary."""
        known_fields = {f.name for f in dataclasses.fields(cls)}
        filtered_data = {k: v for k, v in data.items() if k in known_fields}
        if "discrete_branch_sizes" in filtered_data:
            filtered_data["discrete_branch_sizes"] = tuple(filtered_data["discrete_branch_sizes"])
        return cls(**filtered_data)

    @classmethod
    def from_observation_spec(cls, spec: ObservationSpec, **overrides: Any) -> NetworkConfig:
        """Size a network for the given brain parameters."""
        return cls(
            vector_observation_size=spec.vector_observation_size,
            num_stacked_vector_observations=spec.num_stacked_vector_observations,
            continuous_size=spec.action_spec.continuous_size,
            discrete_branch_sizes=spec.action_spec.discrete_branch_sizes,
            **overrides,
        )


class PolicyNetwork(nn.Module):
    """Actor-critic MLP with optional recurrent memory."""

    def __init__(self, config: NetworkConfig | None = None) -> None:
        super().__init__()
        self.config = config or NetworkConfig()
        cfg = self.config

        layers: list[nn.Module] = []
        in_dim = cfg.input_dim
        for _ in range(cfg.num_layers):
            layers.append(nn.Linear(in_dim, cfg.hidden_dim))
            layers.append(nn.ReLU())
            in_dim = cfg.hidden_dim
        self.body = nn.Sequential(*layers)

        self.memory = nn.GRU(in_dim, cfg.memory_size, batch_first=True) if cfg.memory_size else None
        head_dim = cfg.memory_size if cfg.memory_size else in_dim

        if cfg.continuous_size:
            self.mu_head = nn.Linear(head_dim, cfg.continuous_size)
            self.log_std = nn.Parameter(torch.full((cfg.continuous_size,), -1.0))
        self.branch_heads = nn.ModuleList(nn.Linear(head_dim, size) for size in cfg.discrete_branch_sizes)
        self.value_head = nn.Linear(head_dim, 1)

    def forward(
        self,
        vector_observation: torch.Tensor,
        action_masks: torch.Tensor | None = None,
        recurrent_in: torch.Tensor | None = None,
        epsilon: torch.Tensor | None = None,
    ) -> dict[str, torch.Tensor]:
        """Forward pass.

        Args:
            vector_observation: Stacked observations of shape (batch, input_dim).
            action_masks: Concatenated branch masks (batch, sum(branch sizes)).
            recurrent_in: Memory of shape (batch, memory_size).
            epsilon: Standard-normal noise of shape (batch, continuous_size).

        Returns:
            Mapping from output tensor name to tensor, batch-first.
        """
        cfg = self.config
        x = self.body(vector_observation)

        outputs: dict[str, torch.Tensor] = {}
        if self.memory is not None:
            if recurrent_in is None:
                recurrent_in = x.new_zeros(x.shape[0], cfg.memory_size)
            # One step per decision: (batch, 1, hidden) in, (1, batch, memory) state
            _, state = self.memory(x.unsqueeze(1), recurrent_in.unsqueeze(0))
            x = state.squeeze(0)
            outputs[names.RECURRENT_OUT] = x

        if cfg.continuous_size:
            mu = self.mu_head(x)
            if epsilon is not None:
                mu = mu + epsilon * torch.exp(self.log_std)
            outputs[names.ACTION] = mu

        start = 0
        for branch, head in enumerate(self.branch_heads):
            logits = head(x)
            size = cfg.discrete_branch_sizes[branch]
            if action_masks is not None:
                mask = action_masks[:, start : start + size]
                logits = logits.masked_fill(mask <= 0, _MASK_FILL)
            outputs[names.discrete_action_name(branch)] = logits
            start += size

        outputs[names.VALUE_ESTIMATE] = self.value_head(x)
        return outputs

    def input_signature(self) -> tuple[TensorSpec, ...]:
        """Declared input tensors, batch axis symbolic."""
        cfg = self.config
        specs = [TensorSpec(names.VECTOR_OBSERVATION, (None, cfg.input_dim))]
        if cfg.discrete_branch_sizes:
            specs.append(TensorSpec(names.ACTION_MASK, (None, sum(cfg.discrete_branch_sizes))))
        if cfg.memory_size:
            specs.append(TensorSpec(names.RECURRENT_IN, (None, cfg.memory_size)))
        if cfg.continuous_size:
            specs.append(TensorSpec(names.RANDOM_NORMAL_EPSILON, (None, cfg.continuous_size)))
        return tuple(specs)

    def output_signature(self) -> tuple[TensorSpec, ...]:
        """Declared output tensors, in the order ``forward`` produces them."""
        cfg = self.config
        specs = []
        if cfg.memory_size:
            specs.append(TensorSpec(names.RECURRENT_OUT, (None, cfg.memory_size)))
        if cfg.continuous_size:
            specs.append(TensorSpec(names.ACTION, (None, cfg.continuous_size)))
        for branch, size in enumerate(cfg.discrete_branch_sizes):
            specs.append(TensorSpec(names.discrete_action_name(branch), (None, size)))
        specs.append(TensorSpec(names.VALUE_ESTIMATE, (None, 1)))
        return tuple(specs)


def create_network(config: NetworkConfig | None = None) -> PolicyNetwork:
    """Create a PolicyNetwork with the given (or default) configuration."""
    return PolicyNetwork(config)


__all__ = ["NetworkConfig", "PolicyNetwork", "create_network"]
