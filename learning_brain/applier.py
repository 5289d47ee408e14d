"""Decode model output tensors into per-agent actions.

Row ``i`` of every output tensor belongs to ``batch[i]``. Decoding is staged:
agent records are only updated once every output has been decoded, so a
malformed output never leaves the batch partially updated.

Discrete branches whose output is a distribution are resolved with the
configured inference mode:

- ``"greedy"``: highest logit among allowed actions (ties go to the lowest index).
- ``"stochastic"``: categorical sample over the masked softmax, drawn from a
  ``torch.Generator`` seeded with the session seed.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Literal

import numpy as np
import torch
import torch.nn.functional as functional

from . import tensor_names as names
from .agents import AgentAction, AgentRecord
from .exceptions import DecodeError
from .parameters import ActionSpec
from .tensors import TensorProxy

logger = logging.getLogger(__name__)

InferenceMode = Literal["greedy", "stochastic"]

_VALID_MODES = ("greedy", "stochastic")


def batch_greedy_actions(logits: torch.Tensor, masks: torch.Tensor) -> torch.Tensor:
    """Select the highest-logit allowed action for every row.

    Args:
        logits: Branch logits of shape (batch_size, branch_size).
        masks: Action masks of the same shape. 1.0 = allowed, 0.0 = masked.

    Returns:
        Tensor of shape (batch_size,) with action indices.
    """
    masked_logits = torch.where(masks > 0, logits, torch.tensor(float("-inf"), device=logits.device))
    return torch.argmax(masked_logits, dim=-1)


def batch_sample_actions(
    logits: torch.Tensor,
    masks: torch.Tensor,
    generator: torch.Generator | None = None,
) -> torch.Tensor:
    """Sample one allowed action per row from the masked softmax.

    Args:
        logits: Branch logits of shape (batch_size, branch_size).
        masks: Action masks of the same shape.
        generator: Random generator; sampling is reproducible for a given seed.

    Returns:
        Tensor of shape (batch_size,) with sampled action indices.
    """
    masked_logits = torch.where(masks > 0, logits, torch.tensor(float("-inf"), device=logits.device))
    probs = functional.softmax(masked_logits, dim=-1)
    return torch.multinomial(probs, num_samples=1, generator=generator).squeeze(-1)


class TensorApplier:
    """Turn named output tensors into AgentAction records and store them on agents."""

    def __init__(
        self,
        action_spec: ActionSpec,
        seed: int = 0,
        mode: InferenceMode = "stochastic",
        generation: int = 0,
    ) -> None:
        if mode not in _VALID_MODES:
            raise ValueError(f"Invalid mode: {mode}. Must be 'greedy' or 'stochastic'")
        self.action_spec = action_spec
        self.seed = seed
        self.mode: InferenceMode = mode
        self.generation = generation
        self._generator = torch.Generator().manual_seed(seed)

    def apply(self, outputs: Mapping[str, TensorProxy], batch: Sequence[AgentRecord]) -> list[AgentAction]:
        """Decode every output and store the resulting actions on the agents.

        Args:
            outputs: Named output tensors from the executor.
            batch: The same ordered agent records the inputs were built from.

        Returns:
            One AgentAction per agent, in batch order.

        Raises:
            DecodeError: If an output's batch dimension is not ``len(batch)``, a
                row has the wrong width, a direct index is out of range, or a
                branch has no allowed action. No agent is updated in that case.
        """
        batch_size = len(batch)
        rows: dict[str, np.ndarray] = {}
        for name, tensor in outputs.items():
            if names.output_role(name) is None:
                continue
            if tensor.data.ndim == 0 or tensor.shape[0] != batch_size:
                raise DecodeError(
                    f"Output '{name}' has shape {tensor.shape}, expected first dimension {batch_size}", name
                )
            rows[name] = tensor.data.reshape(batch_size, -1)

        continuous = self._decode_continuous(rows) if self.action_spec.is_continuous else None
        discrete = self._decode_discrete(outputs, rows, batch) if self.action_spec.is_discrete else None
        memory = rows.get(names.RECURRENT_OUT)
        values = self._decode_value(rows)

        actions = [
            AgentAction(
                key=agent.key,
                continuous=None if continuous is None else continuous[i].copy(),
                discrete=None if discrete is None else tuple(int(x) for x in discrete[i]),
                memory=None if memory is None else memory[i].astype(np.float32),
                value_estimate=None if values is None else float(values[i]),
            )
            for i, agent in enumerate(batch)
        ]

        for agent, action in zip(batch, actions, strict=True):
            agent.apply(action, self.generation)
        logger.debug(f"Applied {len(rows)} outputs to {batch_size} agents (mode={self.mode})")
        return actions

    def _decode_continuous(self, rows: Mapping[str, np.ndarray]) -> np.ndarray:
        data = rows.get(names.ACTION)
        if data is None:
            raise DecodeError(f"Output '{names.ACTION}' is missing for continuous actions", names.ACTION)
        if data.shape[1] != self.action_spec.continuous_size:
            raise DecodeError(
                f"Output '{names.ACTION}' rows have width {data.shape[1]}, "
                f"expected {self.action_spec.continuous_size}",
                names.ACTION,
            )
        return data.astype(np.float32)

    def _decode_discrete(
        self,
        outputs: Mapping[str, TensorProxy],
        rows: Mapping[str, np.ndarray],
        batch: Sequence[AgentRecord],
    ) -> np.ndarray:
        columns = []
        offsets = self.action_spec.branch_offsets()
        for branch, size in enumerate(self.action_spec.discrete_branch_sizes):
            name = names.discrete_action_name(branch)
            data = rows.get(name)
            if data is None:
                raise DecodeError(f"Output '{name}' is missing for discrete branch {branch}", name)

            if outputs[name].kind == "int" and data.shape[1] == 1:
                indices = data[:, 0]
                if ((indices < 0) | (indices >= size)).any():
                    raise DecodeError(f"Output '{name}' contains indices outside [0, {size})", name)
                columns.append(indices.astype(np.int64))
                continue

            if data.shape[1] != size:
                raise DecodeError(f"Output '{name}' rows have width {data.shape[1]}, expected {size}", name)
            masks = self._branch_masks(batch, offsets[branch], size, self.action_spec.mask_width)
            if (masks.sum(axis=1) == 0).any():
                raise DecodeError(f"Discrete branch {branch} has no allowed action for some agents", name)

            logits = torch.from_numpy(np.ascontiguousarray(data, dtype=np.float32))
            mask_tensor = torch.from_numpy(masks)
            if not torch.isfinite(logits[mask_tensor > 0]).all():
                raise DecodeError(f"Output '{name}' contains non-finite logits for allowed actions", name)
            if self.mode == "greedy":
                selected = batch_greedy_actions(logits, mask_tensor)
            else:
                selected = batch_sample_actions(logits, mask_tensor, generator=self._generator)
            columns.append(selected.cpu().numpy().astype(np.int64))

        return np.stack(columns, axis=1)

    @staticmethod
    def _branch_masks(batch: Sequence[AgentRecord], offset: int, size: int, width: int) -> np.ndarray:
        masks = np.ones((len(batch), size), dtype=np.float32)
        for i, agent in enumerate(batch):
            if agent.action_mask is not None:
                if agent.action_mask.shape != (width,):
                    raise DecodeError(
                        f"Agent {agent.key!r} (row {i}) action mask has shape {agent.action_mask.shape}, "
                        f"expected ({width},)"
                    )
                masks[i] = agent.action_mask[offset : offset + size]
        return masks

    @staticmethod
    def _decode_value(rows: Mapping[str, np.ndarray]) -> np.ndarray | None:
        data = rows.get(names.VALUE_ESTIMATE)
        if data is None:
            return None
        if data.shape[1] != 1:
            raise DecodeError(
                f"Output '{names.VALUE_ESTIMATE}' rows have width {data.shape[1]}, expected 1",
                names.VALUE_ESTIMATE,
            )
        return data[:, 0]


__all__ = [
    "InferenceMode",
    "TensorApplier",
    "batch_greedy_actions",
    "batch_sample_actions",
]
