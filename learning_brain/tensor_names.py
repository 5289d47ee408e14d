"""Tensor naming convention shared with the model-authoring toolchain.

Input and output tensors are matched to their semantic role by name, never by
position.
"""

from __future__ import annotations

import re
from enum import Enum

# Inputs
BATCH_SIZE = "batch_size"
SEQUENCE_LENGTH = "sequence_length"
VECTOR_OBSERVATION = "vector_observation"
VISUAL_OBSERVATION_PREFIX = "visual_obs_"
PREVIOUS_ACTION = "prev_action"
ACTION_MASK = "action_masks"
RECURRENT_IN = "recurrent_in"
RANDOM_NORMAL_EPSILON = "epsilon"

# Outputs
ACTION = "action"
DISCRETE_ACTION_PREFIX = "action_branch_"
RECURRENT_OUT = "recurrent_out"
VALUE_ESTIMATE = "value_estimate"

_VISUAL_RE = re.compile(rf"^{VISUAL_OBSERVATION_PREFIX}(\d+)$")
_BRANCH_RE = re.compile(rf"^{DISCRETE_ACTION_PREFIX}(\d+)$")


class InputRole(Enum):
    BATCH_SIZE = "batch_size"
    SEQUENCE_LENGTH = "sequence_length"
    VECTOR_OBSERVATION = "vector_observation"
    VISUAL_OBSERVATION = "visual_observation"
    PREVIOUS_ACTION = "previous_action"
    ACTION_MASK = "action_mask"
    RECURRENT_IN = "recurrent_in"
    RANDOM_NORMAL = "random_normal"


class OutputRole(Enum):
    CONTINUOUS_ACTION = "continuous_action"
    DISCRETE_ACTION = "discrete_action"
    RECURRENT_OUT = "recurrent_out"
    VALUE_ESTIMATE = "value_estimate"


_FIXED_INPUTS = {
    BATCH_SIZE: InputRole.BATCH_SIZE,
    SEQUENCE_LENGTH: InputRole.SEQUENCE_LENGTH,
    VECTOR_OBSERVATION: InputRole.VECTOR_OBSERVATION,
    PREVIOUS_ACTION: InputRole.PREVIOUS_ACTION,
    ACTION_MASK: InputRole.ACTION_MASK,
    RECURRENT_IN: InputRole.RECURRENT_IN,
    RANDOM_NORMAL_EPSILON: InputRole.RANDOM_NORMAL,
}

_FIXED_OUTPUTS = {
    ACTION: OutputRole.CONTINUOUS_ACTION,
    RECURRENT_OUT: OutputRole.RECURRENT_OUT,
    VALUE_ESTIMATE: OutputRole.VALUE_ESTIMATE,
}


def visual_observation_name(index: int) -> str:
    return f"{VISUAL_OBSERVATION_PREFIX}{index}"


def discrete_action_name(branch: int) -> str:
    return f"{DISCRETE_ACTION_PREFIX}{branch}"


def visual_index(name: str) -> int | None:
    """Return the camera index encoded in a visual observation name."""
    match = _VISUAL_RE.match(name)
    return int(match.group(1)) if match else None


def require_visual_index(name: str) -> int:
    """Like :func:`visual_index`, but raise ValueError for a non-visual name."""
    index = visual_index(name)
    if index is None:
        raise ValueError(f"'{name}' is not a visual observation name")
    return index


def branch_index(name: str) -> int | None:
    """Return the branch index encoded in a discrete action output name."""
    match = _BRANCH_RE.match(name)
    return int(match.group(1)) if match else None


def input_role(name: str) -> InputRole | None:
    """Classify a model input name, or None if the pipeline cannot supply it."""
    if name in _FIXED_INPUTS:
        return _FIXED_INPUTS[name]
    if visual_index(name) is not None:
        return InputRole.VISUAL_OBSERVATION
    return None


def output_role(name: str) -> OutputRole | None:
    """Classify a model output name, or None for outputs the applier ignores."""
    if name in _FIXED_OUTPUTS:
        return _FIXED_OUTPUTS[name]
    if branch_index(name) is not None:
        return OutputRole.DISCRETE_ACTION
    return None


__all__ = [
    "ACTION",
    "ACTION_MASK",
    "BATCH_SIZE",
    "DISCRETE_ACTION_PREFIX",
    "InputRole",
    "OutputRole",
    "PREVIOUS_ACTION",
    "RANDOM_NORMAL_EPSILON",
    "RECURRENT_IN",
    "RECURRENT_OUT",
    "SEQUENCE_LENGTH",
    "VALUE_ESTIMATE",
    "VECTOR_OBSERVATION",
    "VISUAL_OBSERVATION_PREFIX",
    "branch_index",
    "discrete_action_name",
    "input_role",
    "output_role",
    "require_visual_index",
    "visual_index",
    "visual_observation_name",
]
