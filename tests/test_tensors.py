"""
Test suite for tensor descriptors, the naming convention, brain parameters and
agent records.
"""

import numpy as np
import pytest

from learning_brain import tensor_names as names
from learning_brain.agents import AgentAction, AgentRecord
from learning_brain.parameters import ActionSpec, ObservationSpec
from learning_brain.tensors import TensorProxy, TensorSpec, dtype_for, kind_of


class TestTensorSpec:
    """Binding declared shapes to a batch."""

    def test_bind_symbolic_batch(self):
        spec = TensorSpec("visual_obs_0", (None, 84, 84, 3))

        assert spec.bind(5) == (5, 84, 84, 3)
        assert spec.row_width == 84 * 84 * 3

    def test_bind_fixed_batch_mismatch(self):
        with pytest.raises(ValueError, match="fixed batch dimension"):
            TensorSpec("vector_observation", (2, 8)).bind(3)

    def test_bind_symbolic_row(self):
        spec = TensorSpec("vector_observation", (None, None))

        assert spec.has_symbolic_row
        assert spec.row_width is None
        with pytest.raises(ValueError):
            spec.bind(1)

    def test_unknown_kind(self):
        with pytest.raises(ValueError, match="element kind"):
            TensorSpec("x", (None, 1), "complex")


class TestTensorProxy:
    """Engine arrays wrapped for the pipeline."""

    def test_from_array_casts_to_kind(self):
        proxy = TensorProxy.from_array("action_branch_0", np.array([[1.0], [2.0]]), "int")

        assert proxy.data.dtype == np.int64
        assert proxy.batch_size == 2
        assert proxy.row(1).tolist() == [2]

    def test_from_array_infers_kind(self):
        assert TensorProxy.from_array("a", np.zeros((1, 2), np.float64)).kind == "float"
        assert TensorProxy.from_array("a", np.zeros((1, 2), np.int32)).kind == "int"

    def test_dtypes(self):
        assert dtype_for("float") == np.float32
        assert kind_of(np.bool_) == "int"


class TestTensorNames:
    """Roles are derived from names only."""

    def test_indexed_names(self):
        assert names.visual_index(names.visual_observation_name(2)) == 2
        assert names.branch_index(names.discrete_action_name(1)) == 1
        assert names.visual_index("visual_obs_x") is None

    def test_require_visual_index(self):
        assert names.require_visual_index("visual_obs_3") == 3
        with pytest.raises(ValueError, match="not a visual observation"):
            names.require_visual_index("vector_observation")

    def test_roles(self):
        assert names.input_role("visual_obs_0") is names.InputRole.VISUAL_OBSERVATION
        assert names.input_role("epsilon") is names.InputRole.RANDOM_NORMAL
        assert names.input_role("unknown") is None
        assert names.output_role("action_branch_3") is names.OutputRole.DISCRETE_ACTION
        assert names.output_role("value_estimate") is names.OutputRole.VALUE_ESTIMATE


class TestParameters:
    """Brain parameter derived sizes."""

    def test_action_spec_widths(self):
        spec = ActionSpec(discrete_branch_sizes=(3, 2, 4))

        assert spec.mask_width == 9
        assert spec.branch_offsets() == [0, 3, 5]
        assert spec.previous_action_width == 3

    def test_invalid_branch_size(self):
        with pytest.raises(ValueError):
            ActionSpec(discrete_branch_sizes=(3, 0))

    def test_invalid_visual_shape(self):
        with pytest.raises(ValueError):
            ObservationSpec(visual_observation_shapes=((84, 84),))

    def test_from_dict_nested_action_spec(self):
        spec = ObservationSpec.from_dict(
            {"vector_observation_size": 3, "action_spec": {"continuous_size": 2, "extra": 1}, "extra": 1}
        )

        assert spec.action_spec == ActionSpec(continuous_size=2)
        assert ObservationSpec.from_dict(spec.to_dict()) == spec


class TestAgentRecord:
    """Observation history and applied actions."""

    def test_history_bounded_by_stacking(self):
        agent = AgentRecord.create("a", ObservationSpec(vector_observation_size=1, num_stacked_vector_observations=3))
        for value in range(5):
            agent.observe([float(value)])

        assert [h.tolist() for h in agent.history] == [[2.0], [3.0]]
        assert [h.tolist() for h in agent.stacked_history(2)] == [[2.0], [3.0]]

    def test_stacked_history_padded(self):
        agent = AgentRecord.create("a", ObservationSpec(vector_observation_size=1, num_stacked_vector_observations=3))
        agent.observe([1.0])
        agent.observe([2.0])

        history = agent.stacked_history(2)

        assert history[0] is None
        assert history[1].tolist() == [1.0]

    def test_observe_copies_caller_buffers(self):
        agent = AgentRecord.create("a", ObservationSpec(vector_observation_size=2))
        vector = np.ones(2, dtype=np.float32)
        visual = np.ones((2, 2, 1), dtype=np.float32)
        mask = np.ones(3, dtype=np.float32)
        agent.observe(vector, [visual], mask)

        vector[:] = 0
        visual[:] = 0
        mask[:] = 0

        assert agent.vector_observation.tolist() == [1.0, 1.0]
        assert agent.visual_observations[0].min() == 1.0
        assert agent.action_mask.tolist() == [1.0, 1.0, 1.0]

    def test_reset_clears_decision_state(self):
        agent = AgentRecord.create("a", ObservationSpec(vector_observation_size=1, num_stacked_vector_observations=2))
        agent.observe([1.0])
        agent.observe([2.0])
        agent.apply(AgentAction(key="a", memory=np.ones(2), value_estimate=1.0), generation=1)

        agent.reset()

        assert len(agent.history) == 0
        assert agent.last_action is None
        assert agent.memory_for(1) is None
        assert agent.value_estimate is None
