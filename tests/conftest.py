"""
Pytest configuration and fixtures for Learning Brain tests.

Provides brain parameters, agent batches and in-memory model handles that
record how often they were executed and released.
"""

from collections.abc import Callable, Mapping

import numpy as np
import pytest

from learning_brain import tensor_names as names
from learning_brain.agents import AgentRecord
from learning_brain.backends.base import InferenceDevice
from learning_brain.parameters import ActionSpec, ObservationSpec
from learning_brain.tensors import TensorProxy, TensorSpec, dtype_for

ComputeFn = Callable[[Mapping[str, TensorProxy]], dict[str, TensorProxy]]


def _batch_size(inputs: Mapping[str, TensorProxy]) -> int:
    for name, tensor in inputs.items():
        if names.input_role(name) not in (names.InputRole.BATCH_SIZE, names.InputRole.SEQUENCE_LENGTH):
            return tensor.batch_size
    raise AssertionError("No batched input")


class FakeModelHandle:
    """In-memory model handle counting execute/release calls.

    Without a ``compute`` function every declared output is filled with zeros,
    except ``action`` which echoes the first columns of ``vector_observation``.
    """

    def __init__(self, input_signature, output_signature, compute: ComputeFn | None = None):
        self.input_signature = tuple(input_signature)
        self.output_signature = tuple(output_signature)
        self._compute = compute
        self.execute_calls = 0
        self.release_calls = 0
        self.last_inputs: dict[str, np.ndarray] | None = None

    def execute(self, inputs):
        self.execute_calls += 1
        self.last_inputs = {name: tensor.data.copy() for name, tensor in inputs.items()}
        if self._compute is not None:
            return self._compute(inputs)

        n = _batch_size(inputs)
        outputs = {}
        for spec in self.output_signature:
            data = np.zeros((n, *spec.row_shape), dtype=dtype_for(spec.kind))
            if spec.name == names.ACTION and names.VECTOR_OBSERVATION in inputs:
                width = data.shape[1]
                data[:] = inputs[names.VECTOR_OBSERVATION].data[:, :width]
            outputs[spec.name] = TensorProxy(spec.name, spec.kind, data)
        return outputs

    def release(self):
        self.release_calls += 1


class FakeModelSource:
    """Model source producing a fresh FakeModelHandle on every load."""

    def __init__(self, input_signature, output_signature, compute: ComputeFn | None = None, name="fake-model"):
        self._input_signature = tuple(input_signature)
        self._output_signature = tuple(output_signature)
        self._compute = compute
        self._name = name
        self.handles: list[FakeModelHandle] = []
        self.devices: list[InferenceDevice] = []

    @property
    def name(self):
        return self._name

    def load(self, device=InferenceDevice.CPU):
        handle = FakeModelHandle(self._input_signature, self._output_signature, self._compute)
        self.handles.append(handle)
        self.devices.append(device)
        return handle


class FakeCommunicator:
    """Remote channel recording subscriptions and forwarded batches."""

    def __init__(self, connected=True):
        self.connected = connected
        self.subscriptions = []
        self.forwarded = []

    @property
    def is_connected(self):
        return self.connected

    def subscribe_brain(self, brain_name, observation_spec):
        self.subscriptions.append((brain_name, observation_spec))

    def put_observations(self, brain_name, batch):
        self.forwarded.append((brain_name, batch))


def make_agents(spec: ObservationSpec, count: int, seed: int = 0) -> list[AgentRecord]:
    """Create ``count`` agents holding one random observation each."""
    rng = np.random.default_rng(seed)
    agents = []
    for i in range(count):
        agent = AgentRecord.create(key=f"agent-{i}", observation_spec=spec)
        visuals = [rng.random(shape, dtype=np.float32) for shape in spec.visual_observation_shapes]
        agent.observe(rng.standard_normal(spec.vector_observation_size).astype(np.float32), visuals)
        agents.append(agent)
    return agents


@pytest.fixture
def continuous_spec():
    """8-wide vector observation, 2 continuous actions (scenario A)."""
    return ObservationSpec(vector_observation_size=8, action_spec=ActionSpec(continuous_size=2))


@pytest.fixture
def continuous_source(continuous_spec):
    """Fake model matching ``continuous_spec``."""
    return FakeModelSource(
        input_signature=[TensorSpec(names.VECTOR_OBSERVATION, (None, 8))],
        output_signature=[TensorSpec(names.ACTION, (None, 2))],
    )


@pytest.fixture
def discrete_spec():
    """4-wide vector observation stacked twice, two discrete branches (3, 2)."""
    return ObservationSpec(
        vector_observation_size=4,
        num_stacked_vector_observations=2,
        action_spec=ActionSpec(discrete_branch_sizes=(3, 2)),
    )


@pytest.fixture
def discrete_input_signature():
    return (
        TensorSpec(names.VECTOR_OBSERVATION, (None, 8)),
        TensorSpec(names.ACTION_MASK, (None, 5)),
        TensorSpec(names.PREVIOUS_ACTION, (None, 2)),
    )


@pytest.fixture
def discrete_output_signature():
    return (
        TensorSpec(names.discrete_action_name(0), (None, 3)),
        TensorSpec(names.discrete_action_name(1), (None, 2)),
    )


@pytest.fixture
def visual_spec():
    """One 4x4 RGB camera plus a 3-wide vector observation, 1 continuous action."""
    return ObservationSpec(
        vector_observation_size=3,
        visual_observation_shapes=((4, 4, 3),),
        action_spec=ActionSpec(continuous_size=1),
    )


@pytest.fixture
def visual_source(visual_spec):
    return FakeModelSource(
        input_signature=[
            TensorSpec(names.VECTOR_OBSERVATION, (None, 3)),
            TensorSpec(names.visual_observation_name(0), (None, 4, 4, 3)),
        ],
        output_signature=[TensorSpec(names.ACTION, (None, 1))],
    )


@pytest.fixture
def agent_factory():
    """Factory building observed agent batches: ``agent_factory(spec, count, seed=0)``."""
    return make_agents


@pytest.fixture
def source_factory():
    """Factory building fake model sources from input/output signatures."""
    return FakeModelSource


@pytest.fixture
def communicator():
    """A connected fake remote channel."""
    return FakeCommunicator()
