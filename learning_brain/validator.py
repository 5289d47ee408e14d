"""Compatibility checks between a model signature and the brain parameters.

``validate_model`` is a pure function: it never loads or executes anything and
can be called before a model is bound to a brain. An empty result means the
model is usable with the given observation/action contract.

Checks run in this order:

1. Every recognised model input against its semantic source (vector width and
   stacking, each visual observation's (H, W, C), previous action, action
   mask, random-normal noise, recurrent state), then declared visual
   observations the model never consumes.
2. The outputs needed to rebuild the action space: ``action`` for continuous
   actions and one ``action_branch_{i}`` per discrete branch, plus
   ``recurrent_out`` when the model takes ``recurrent_in``.
3. Model inputs the pipeline has no source for.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from . import tensor_names as names
from .parameters import ObservationSpec
from .tensor_names import InputRole
from .tensors import TensorSpec

if TYPE_CHECKING:
    from .backends.base import ModelHandle


@dataclass(frozen=True)
class CompatibilityViolation:
    """One failed compatibility check.

    Attributes:
        field: Tensor name or brain parameter the check is about.
        expected: What the brain parameters require.
        actual: What the model declares.
        message: Human-readable explanation.
    """

    field: str
    expected: Any
    actual: Any
    message: str

    def __str__(self) -> str:
        return self.message


def _check_row_shape(
    spec: TensorSpec,
    expected_row: tuple[int, ...],
    description: str,
) -> list[CompatibilityViolation]:
    if spec.rank != len(expected_row) + 1:
        return [
            CompatibilityViolation(
                field=spec.name,
                expected=(None, *expected_row),
                actual=spec.shape,
                message=(
                    f"{description} '{spec.name}' has rank {spec.rank}, "
                    f"expected rank {len(expected_row) + 1} (batch, {', '.join(map(str, expected_row))})"
                ),
            )
        ]
    if spec.has_symbolic_row:
        return [
            CompatibilityViolation(
                field=spec.name,
                expected=(None, *expected_row),
                actual=spec.shape,
                message=f"{description} '{spec.name}' has unbound non-batch dimensions {spec.shape}",
            )
        ]
    if tuple(spec.row_shape) != tuple(expected_row):
        return [
            CompatibilityViolation(
                field=spec.name,
                expected=tuple(expected_row),
                actual=tuple(spec.row_shape),
                message=(
                    f"{description} '{spec.name}' shape mismatch: model expects "
                    f"{tuple(spec.row_shape)} per agent, brain parameters give {tuple(expected_row)}"
                ),
            )
        ]
    return []


def _check_vector_observation(
    spec: TensorSpec, observation_spec: ObservationSpec, outputs: dict[str, TensorSpec]
) -> list[CompatibilityViolation]:
    if observation_spec.vector_observation_size == 0:
        return [
            CompatibilityViolation(
                field=spec.name,
                expected=0,
                actual=spec.row_width,
                message=(
                    f"Model requires input '{spec.name}' but the brain parameters "
                    "declare no vector observations"
                ),
            )
        ]
    if spec.rank == 2 and not spec.has_symbolic_row and spec.row_width != observation_spec.stacked_vector_size:
        return [
            CompatibilityViolation(
                field=spec.name,
                expected=observation_spec.stacked_vector_size,
                actual=spec.row_width,
                message=(
                    f"Vector observation size mismatch: model expects {spec.row_width}, brain parameters "
                    f"give {observation_spec.vector_observation_size} x "
                    f"{observation_spec.num_stacked_vector_observations} stacked = "
                    f"{observation_spec.stacked_vector_size}"
                ),
            )
        ]
    return _check_row_shape(spec, (observation_spec.stacked_vector_size,), "Vector observation")


def _check_visual_observation(
    spec: TensorSpec, observation_spec: ObservationSpec, outputs: dict[str, TensorSpec]
) -> list[CompatibilityViolation]:
    index = names.require_visual_index(spec.name)
    if index >= observation_spec.num_visual_observations:
        return [
            CompatibilityViolation(
                field=spec.name,
                expected=None,
                actual=spec.row_shape,
                message=(
                    f"Model requires input '{spec.name}' but the brain parameters declare "
                    f"{observation_spec.num_visual_observations} visual observations"
                ),
            )
        ]
    return _check_row_shape(spec, observation_spec.visual_observation_shapes[index], "Visual observation")


def _check_previous_action(
    spec: TensorSpec, observation_spec: ObservationSpec, outputs: dict[str, TensorSpec]
) -> list[CompatibilityViolation]:
    width = observation_spec.action_spec.previous_action_width
    if width == 0:
        return [
            CompatibilityViolation(
                field=spec.name,
                expected=0,
                actual=spec.row_width,
                message=f"Model requires input '{spec.name}' but the brain declares no actions",
            )
        ]
    return _check_row_shape(spec, (width,), "Previous action")


def _check_action_mask(
    spec: TensorSpec, observation_spec: ObservationSpec, outputs: dict[str, TensorSpec]
) -> list[CompatibilityViolation]:
    action_spec = observation_spec.action_spec
    if not action_spec.is_discrete:
        return [
            CompatibilityViolation(
                field=spec.name,
                expected=None,
                actual=spec.row_width,
                message=(
                    f"Model requires input '{spec.name}' but the brain declares no discrete "
                    "action branches to mask"
                ),
            )
        ]
    return _check_row_shape(spec, (action_spec.mask_width,), "Action mask")


def _check_random_normal(
    spec: TensorSpec, observation_spec: ObservationSpec, outputs: dict[str, TensorSpec]
) -> list[CompatibilityViolation]:
    size = observation_spec.action_spec.continuous_size
    if size == 0:
        return [
            CompatibilityViolation(
                field=spec.name,
                expected=0,
                actual=spec.row_width,
                message=(
                    f"Model requires input '{spec.name}' but the brain declares no continuous "
                    "actions to perturb"
                ),
            )
        ]
    return _check_row_shape(spec, (size,), "Random normal input")


def _check_recurrent_in(
    spec: TensorSpec, observation_spec: ObservationSpec, outputs: dict[str, TensorSpec]
) -> list[CompatibilityViolation]:
    if spec.rank != 2 or spec.has_symbolic_row:
        return [
            CompatibilityViolation(
                field=spec.name,
                expected="(batch, memory_size)",
                actual=spec.shape,
                message=f"Recurrent input '{spec.name}' must have shape (batch, memory_size), got {spec.shape}",
            )
        ]
    recurrent_out = outputs.get(names.RECURRENT_OUT)
    if recurrent_out is not None and recurrent_out.row_shape != spec.row_shape:
        return [
            CompatibilityViolation(
                field=spec.name,
                expected=tuple(spec.row_shape),
                actual=tuple(recurrent_out.row_shape),
                message=(
                    f"Recurrent memory size mismatch: '{spec.name}' takes {tuple(spec.row_shape)} "
                    f"but '{names.RECURRENT_OUT}' produces {tuple(recurrent_out.row_shape)}"
                ),
            )
        ]
    return []


def _check_scalar(
    spec: TensorSpec, observation_spec: ObservationSpec, outputs: dict[str, TensorSpec]
) -> list[CompatibilityViolation]:
    if spec.rank > 1 or (spec.rank == 1 and spec.shape[0] not in (None, 1)):
        return [
            CompatibilityViolation(
                field=spec.name,
                expected=(1,),
                actual=spec.shape,
                message=f"Auxiliary input '{spec.name}' must be a scalar or shape (1,), got {spec.shape}",
            )
        ]
    return []


_INPUT_CHECKS = {
    InputRole.VECTOR_OBSERVATION: _check_vector_observation,
    InputRole.VISUAL_OBSERVATION: _check_visual_observation,
    InputRole.PREVIOUS_ACTION: _check_previous_action,
    InputRole.ACTION_MASK: _check_action_mask,
    InputRole.RANDOM_NORMAL: _check_random_normal,
    InputRole.RECURRENT_IN: _check_recurrent_in,
    InputRole.BATCH_SIZE: _check_scalar,
    InputRole.SEQUENCE_LENGTH: _check_scalar,
}


def _check_duplicates(signature: Sequence[TensorSpec], side: str) -> list[CompatibilityViolation]:
    seen: set[str] = set()
    violations = []
    for spec in signature:
        if spec.name in seen:
            violations.append(
                CompatibilityViolation(
                    field=spec.name,
                    expected="unique name",
                    actual="duplicate",
                    message=f"Model {side} signature declares '{spec.name}' more than once",
                )
            )
        seen.add(spec.name)
    return violations


def _check_inputs(
    observation_spec: ObservationSpec,
    input_signature: Sequence[TensorSpec],
    outputs: dict[str, TensorSpec],
) -> list[CompatibilityViolation]:
    violations: list[CompatibilityViolation] = []
    for spec in input_signature:
        role = names.input_role(spec.name)
        if role is not None:
            violations.extend(_INPUT_CHECKS[role](spec, observation_spec, outputs))

    input_names = {spec.name for spec in input_signature}
    for index in range(observation_spec.num_visual_observations):
        name = names.visual_observation_name(index)
        if name not in input_names:
            violations.append(
                CompatibilityViolation(
                    field=name,
                    expected=observation_spec.visual_observation_shapes[index],
                    actual=None,
                    message=(
                        f"Brain parameters declare visual observation {index} but the model has "
                        f"no '{name}' input"
                    ),
                )
            )
    return violations


def _check_outputs(
    observation_spec: ObservationSpec,
    input_signature: Sequence[TensorSpec],
    outputs: dict[str, TensorSpec],
) -> list[CompatibilityViolation]:
    action_spec = observation_spec.action_spec
    violations: list[CompatibilityViolation] = []

    if action_spec.is_continuous:
        action = outputs.get(names.ACTION)
        if action is None:
            violations.append(
                CompatibilityViolation(
                    field=names.ACTION,
                    expected=action_spec.continuous_size,
                    actual=None,
                    message=(
                        f"Model has no '{names.ACTION}' output for "
                        f"{action_spec.continuous_size} continuous actions"
                    ),
                )
            )
        else:
            violations.extend(_check_row_shape(action, (action_spec.continuous_size,), "Continuous action output"))

    for branch, size in enumerate(action_spec.discrete_branch_sizes):
        name = names.discrete_action_name(branch)
        output = outputs.get(name)
        if output is None:
            violations.append(
                CompatibilityViolation(
                    field=name,
                    expected=size,
                    actual=None,
                    message=f"Model has no '{name}' output for discrete branch {branch} of size {size}",
                )
            )
        elif output.kind == "int" and output.row_shape == (1,):
            continue
        else:
            violations.extend(_check_row_shape(output, (size,), f"Discrete branch {branch} output"))

    input_names = {spec.name for spec in input_signature}
    if names.RECURRENT_IN in input_names and names.RECURRENT_OUT not in outputs:
        violations.append(
            CompatibilityViolation(
                field=names.RECURRENT_OUT,
                expected=names.RECURRENT_OUT,
                actual=None,
                message=(
                    f"Model takes '{names.RECURRENT_IN}' but has no '{names.RECURRENT_OUT}' output "
                    "to carry memory to the next decision"
                ),
            )
        )
    return violations


def _check_unbound_inputs(input_signature: Sequence[TensorSpec]) -> list[CompatibilityViolation]:
    return [
        CompatibilityViolation(
            field=spec.name,
            expected=None,
            actual=spec.shape,
            message=f"Model requires input '{spec.name}' which no observation or action source can supply",
        )
        for spec in input_signature
        if names.input_role(spec.name) is None
    ]


def validate_model(
    observation_spec: ObservationSpec,
    input_signature: Sequence[TensorSpec],
    output_signature: Sequence[TensorSpec],
) -> list[CompatibilityViolation]:
    """Return every compatibility violation between a model signature and brain parameters.

    Args:
        observation_spec: The agents' declared observation/action contract.
        input_signature: The model's declared input tensors.
        output_signature: The model's declared output tensors.

    Returns:
        Violations in check order. An empty list means the model is usable.
    """
    outputs = {spec.name: spec for spec in output_signature}
    violations = _check_duplicates(input_signature, "input") + _check_duplicates(output_signature, "output")
    violations += _check_inputs(observation_spec, input_signature, outputs)
    violations += _check_outputs(observation_spec, input_signature, outputs)
    violations += _check_unbound_inputs(input_signature)
    return violations


def validate(observation_spec: ObservationSpec, handle: ModelHandle) -> list[CompatibilityViolation]:
    """Validate a loaded model handle against brain parameters."""
    return validate_model(observation_spec, handle.input_signature, handle.output_signature)


__all__ = ["CompatibilityViolation", "validate", "validate_model"]
