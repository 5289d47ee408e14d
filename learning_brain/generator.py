"""Build model input tensors from a batch of agent records.

Each declared model input is filled by the generator for its semantic role
(see ``tensor_names``). Row ``i`` of every produced tensor comes from
``batch[i]``. Buffers are leased from the TensorCachingAllocator; the caller
recycles them once the tick is over.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence

import numpy as np

from . import tensor_names as names
from .agents import AgentRecord
from .allocator import TensorCachingAllocator
from .exceptions import BindingError
from .parameters import ObservationSpec
from .tensor_names import InputRole
from .tensors import TensorProxy, TensorSpec

logger = logging.getLogger(__name__)

_SCALAR_ROLES = (InputRole.BATCH_SIZE, InputRole.SEQUENCE_LENGTH)


def _agent_label(index: int, agent: AgentRecord) -> str:
    return f"agent {agent.key!r} (row {index})"


class TensorGenerator:
    """Convert an ordered agent batch into named input tensors.

    Attributes:
        observation_spec: The brain parameters the batch is encoded against.
        seed: Seed of the random-normal (``epsilon``) input stream.
        generation: Model generation; recurrent memory from other
            generations is replaced by zeros.
    """

    def __init__(
        self,
        observation_spec: ObservationSpec,
        seed: int = 0,
        allocator: TensorCachingAllocator | None = None,
        generation: int = 0,
    ) -> None:
        self.observation_spec = observation_spec
        self.seed = seed
        self.generation = generation
        self._allocator = allocator or TensorCachingAllocator()
        self._rng = np.random.default_rng(seed)
        self._fillers: dict[InputRole, Callable[[TensorSpec, np.ndarray, Sequence[AgentRecord]], None]] = {
            InputRole.BATCH_SIZE: self._fill_batch_size,
            InputRole.SEQUENCE_LENGTH: self._fill_sequence_length,
            InputRole.VECTOR_OBSERVATION: self._fill_vector_observation,
            InputRole.VISUAL_OBSERVATION: self._fill_visual_observation,
            InputRole.PREVIOUS_ACTION: self._fill_previous_action,
            InputRole.ACTION_MASK: self._fill_action_mask,
            InputRole.RECURRENT_IN: self._fill_recurrent_in,
            InputRole.RANDOM_NORMAL: self._fill_random_normal,
        }

    @property
    def allocator(self) -> TensorCachingAllocator:
        return self._allocator

    def generate(
        self,
        input_signature: Sequence[TensorSpec],
        batch: Sequence[AgentRecord],
    ) -> dict[str, TensorProxy]:
        """Produce one tensor per declared input, batch axis bound to ``len(batch)``.

        Args:
            input_signature: The model's declared input tensors.
            batch: Ordered agent records.

        Returns:
            Mapping from input name to tensor.

        Raises:
            BindingError: If an input has no recognised source, a spec cannot be
                bound to the batch size, or any agent's data does not fit its row.
        """
        batch_size = len(batch)
        if batch_size == 0:
            raise BindingError("Cannot generate tensors for an empty batch")

        tensors: dict[str, TensorProxy] = {}
        for spec in input_signature:
            role = names.input_role(spec.name)
            if role is None:
                raise BindingError(
                    f"Model requires input '{spec.name}' which the pipeline cannot supply", spec.name
                )

            if role in _SCALAR_ROLES:
                shape: tuple[int, ...] = tuple(1 for _ in spec.shape)
            else:
                try:
                    shape = spec.bind(batch_size)
                except ValueError as exc:
                    raise BindingError(str(exc), spec.name) from exc

            buffer = self._allocator.alloc(spec.name, shape, spec.kind)
            self._fillers[role](spec, buffer, batch)
            tensors[spec.name] = TensorProxy(name=spec.name, kind=spec.kind, data=buffer)

        logger.debug(f"Generated {len(tensors)} input tensors for a batch of {batch_size}")
        return tensors

    # ------------------------------------------------------------------
    # Fillers
    # ------------------------------------------------------------------

    def _fill_batch_size(self, spec: TensorSpec, buffer: np.ndarray, batch: Sequence[AgentRecord]) -> None:
        buffer.fill(len(batch))

    def _fill_sequence_length(self, spec: TensorSpec, buffer: np.ndarray, batch: Sequence[AgentRecord]) -> None:
        buffer.fill(1)

    def _fill_vector_observation(
        self, spec: TensorSpec, buffer: np.ndarray, batch: Sequence[AgentRecord]
    ) -> None:
        size = self.observation_spec.vector_observation_size
        stacked = self.observation_spec.num_stacked_vector_observations
        if buffer.shape[1:] != (size * stacked,):
            raise BindingError(
                f"Input '{spec.name}' expects rows of {buffer.shape[1:]}, brain parameters give "
                f"{size} x {stacked} stacked",
                spec.name,
            )

        for i, agent in enumerate(batch):
            if agent.vector_observation.shape != (size,):
                raise BindingError(
                    f"{_agent_label(i, agent)} vector observation has shape "
                    f"{agent.vector_observation.shape}, expected ({size},)",
                    spec.name,
                )
            row = buffer[i]
            for slot, past in enumerate(agent.stacked_history(stacked - 1)):
                if past is None:
                    continue
                if past.shape != (size,):
                    raise BindingError(
                        f"{_agent_label(i, agent)} stacked observation {slot} has shape "
                        f"{past.shape}, expected ({size},)",
                        spec.name,
                    )
                row[slot * size : (slot + 1) * size] = past
            row[(stacked - 1) * size :] = agent.vector_observation

    def _fill_visual_observation(
        self, spec: TensorSpec, buffer: np.ndarray, batch: Sequence[AgentRecord]
    ) -> None:
        index = names.require_visual_index(spec.name)
        expected = buffer.shape[1:]
        for i, agent in enumerate(batch):
            if index >= len(agent.visual_observations):
                raise BindingError(
                    f"{_agent_label(i, agent)} has no visual observation {index}", spec.name
                )
            observation = agent.visual_observations[index]
            if observation.shape != expected:
                raise BindingError(
                    f"{_agent_label(i, agent)} visual observation {index} has shape "
                    f"{observation.shape}, expected {expected}",
                    spec.name,
                )
            if spec.kind == "float" and observation.dtype == np.uint8:
                buffer[i] = observation.astype(np.float32) / 255.0
            else:
                buffer[i] = observation

    def _fill_previous_action(
        self, spec: TensorSpec, buffer: np.ndarray, batch: Sequence[AgentRecord]
    ) -> None:
        action_spec = self.observation_spec.action_spec
        width = buffer.shape[1:]
        for i, agent in enumerate(batch):
            last = agent.last_action
            if last is None:
                continue
            values = last.discrete if action_spec.is_discrete else last.continuous
            if values is None:
                continue
            values = np.asarray(values)
            if values.shape != width:
                raise BindingError(
                    f"{_agent_label(i, agent)} previous action has shape {values.shape}, expected {width}",
                    spec.name,
                )
            buffer[i] = values

    def _fill_action_mask(self, spec: TensorSpec, buffer: np.ndarray, batch: Sequence[AgentRecord]) -> None:
        width = buffer.shape[1:]
        for i, agent in enumerate(batch):
            if agent.action_mask is None:
                buffer[i] = 1
                continue
            if agent.action_mask.shape != width:
                raise BindingError(
                    f"{_agent_label(i, agent)} action mask has shape {agent.action_mask.shape}, "
                    f"expected {width}",
                    spec.name,
                )
            buffer[i] = agent.action_mask

    def _fill_recurrent_in(self, spec: TensorSpec, buffer: np.ndarray, batch: Sequence[AgentRecord]) -> None:
        width = buffer.shape[1:]
        for i, agent in enumerate(batch):
            memory = agent.memory_for(self.generation)
            if memory is None:
                continue
            if memory.shape != width:
                raise BindingError(
                    f"{_agent_label(i, agent)} recurrent memory has shape {memory.shape}, expected {width}",
                    spec.name,
                )
            buffer[i] = memory

    def _fill_random_normal(self, spec: TensorSpec, buffer: np.ndarray, batch: Sequence[AgentRecord]) -> None:
        buffer[...] = self._rng.standard_normal(buffer.shape)


__all__ = ["TensorGenerator"]
