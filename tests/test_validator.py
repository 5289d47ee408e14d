"""
Test suite for model compatibility checks.

Tests that every mismatch between a model signature and the brain parameters
is reported as a CompatibilityViolation, in check order, without raising.
"""

from learning_brain import tensor_names as names
from learning_brain.parameters import ActionSpec, ObservationSpec
from learning_brain.tensors import TensorSpec
from learning_brain.validator import CompatibilityViolation, validate, validate_model


def _fields(violations):
    return [v.field for v in violations]


class TestCompatibleModels:
    """Signatures that match their brain parameters."""

    def test_continuous_model(self, continuous_spec):
        violations = validate_model(
            continuous_spec,
            [TensorSpec(names.VECTOR_OBSERVATION, (None, 8))],
            [TensorSpec(names.ACTION, (None, 2))],
        )
        assert violations == []

    def test_discrete_model(self, discrete_spec, discrete_input_signature, discrete_output_signature):
        assert validate_model(discrete_spec, discrete_input_signature, discrete_output_signature) == []

    def test_direct_index_outputs(self, discrete_spec):
        """Int outputs of width 1 carry chosen indices instead of logits."""
        outputs = [
            TensorSpec(names.discrete_action_name(0), (None, 1), "int"),
            TensorSpec(names.discrete_action_name(1), (None, 1), "int"),
        ]
        assert validate_model(discrete_spec, [TensorSpec(names.VECTOR_OBSERVATION, (None, 8))], outputs) == []

    def test_recurrent_model(self, continuous_spec):
        inputs = [
            TensorSpec(names.VECTOR_OBSERVATION, (None, 8)),
            TensorSpec(names.RECURRENT_IN, (None, 16)),
            TensorSpec(names.RANDOM_NORMAL_EPSILON, (None, 2)),
            TensorSpec(names.BATCH_SIZE, (1,), "int"),
        ]
        outputs = [
            TensorSpec(names.ACTION, (None, 2)),
            TensorSpec(names.RECURRENT_OUT, (None, 16)),
            TensorSpec(names.VALUE_ESTIMATE, (None, 1)),
        ]
        assert validate_model(continuous_spec, inputs, outputs) == []

    def test_validate_reads_handle_signature(self, continuous_spec, continuous_source):
        handle = continuous_source.load()
        assert validate(continuous_spec, handle) == []


class TestInputViolations:
    """Mismatched or unsupported model inputs."""

    def test_undeclared_visual_observation(self):
        """A model input for a camera the agents do not have is one violation."""
        spec = ObservationSpec(vector_observation_size=8, action_spec=ActionSpec(continuous_size=2))
        inputs = [
            TensorSpec(names.VECTOR_OBSERVATION, (None, 8)),
            TensorSpec(names.visual_observation_name(0), (None, 84, 84, 3)),
        ]

        violations = validate_model(spec, inputs, [TensorSpec(names.ACTION, (None, 2))])

        assert len(violations) == 1
        assert violations[0].field == "visual_obs_0"
        assert "visual_obs_0" in str(violations[0])

    def test_vector_width_accounts_for_stacking(self, discrete_spec, discrete_output_signature):
        inputs = [TensorSpec(names.VECTOR_OBSERVATION, (None, 4))]

        violations = validate_model(discrete_spec, inputs, discrete_output_signature)

        assert _fields(violations) == [names.VECTOR_OBSERVATION]
        assert violations[0].expected == 8
        assert violations[0].actual == 4

    def test_visual_shape_mismatch(self, visual_spec):
        inputs = [
            TensorSpec(names.VECTOR_OBSERVATION, (None, 3)),
            TensorSpec(names.visual_observation_name(0), (None, 4, 4, 1)),
        ]

        violations = validate_model(visual_spec, inputs, [TensorSpec(names.ACTION, (None, 1))])

        assert _fields(violations) == ["visual_obs_0"]
        assert violations[0].expected == (4, 4, 3)

    def test_declared_camera_without_model_input(self, visual_spec):
        violations = validate_model(
            visual_spec,
            [TensorSpec(names.VECTOR_OBSERVATION, (None, 3))],
            [TensorSpec(names.ACTION, (None, 1))],
        )
        assert _fields(violations) == ["visual_obs_0"]

    def test_action_mask_without_discrete_actions(self, continuous_spec):
        inputs = [TensorSpec(names.VECTOR_OBSERVATION, (None, 8)), TensorSpec(names.ACTION_MASK, (None, 2))]

        violations = validate_model(continuous_spec, inputs, [TensorSpec(names.ACTION, (None, 2))])

        assert _fields(violations) == [names.ACTION_MASK]

    def test_symbolic_non_batch_dimension(self, continuous_spec):
        violations = validate_model(
            continuous_spec,
            [TensorSpec(names.VECTOR_OBSERVATION, (None, None))],
            [TensorSpec(names.ACTION, (None, 2))],
        )
        assert _fields(violations) == [names.VECTOR_OBSERVATION]

    def test_rank_mismatch(self, continuous_spec):
        violations = validate_model(
            continuous_spec,
            [TensorSpec(names.VECTOR_OBSERVATION, (None, 2, 4))],
            [TensorSpec(names.ACTION, (None, 2))],
        )
        assert _fields(violations) == [names.VECTOR_OBSERVATION]

    def test_unbound_input_reported_last(self, continuous_spec):
        inputs = [TensorSpec("mystery_input", (None, 3)), TensorSpec(names.VECTOR_OBSERVATION, (None, 9))]

        violations = validate_model(continuous_spec, inputs, [TensorSpec(names.ACTION, (None, 2))])

        assert _fields(violations) == [names.VECTOR_OBSERVATION, "mystery_input"]

    def test_duplicate_input_names(self, continuous_spec):
        inputs = [TensorSpec(names.VECTOR_OBSERVATION, (None, 8)), TensorSpec(names.VECTOR_OBSERVATION, (None, 8))]

        violations = validate_model(continuous_spec, inputs, [TensorSpec(names.ACTION, (None, 2))])

        assert _fields(violations) == [names.VECTOR_OBSERVATION]


class TestOutputViolations:
    """Outputs that cannot rebuild the declared action space."""

    def test_missing_continuous_action(self, continuous_spec):
        violations = validate_model(
            continuous_spec,
            [TensorSpec(names.VECTOR_OBSERVATION, (None, 8))],
            [TensorSpec(names.VALUE_ESTIMATE, (None, 1))],
        )
        assert _fields(violations) == [names.ACTION]

    def test_branch_width_mismatch(self, discrete_spec, discrete_input_signature):
        outputs = [
            TensorSpec(names.discrete_action_name(0), (None, 3)),
            TensorSpec(names.discrete_action_name(1), (None, 4)),
        ]

        violations = validate_model(discrete_spec, discrete_input_signature, outputs)

        assert _fields(violations) == ["action_branch_1"]

    def test_missing_branch(self, discrete_spec, discrete_input_signature):
        outputs = [TensorSpec(names.discrete_action_name(0), (None, 3))]

        violations = validate_model(discrete_spec, discrete_input_signature, outputs)

        assert _fields(violations) == ["action_branch_1"]

    def test_recurrent_in_requires_recurrent_out(self, continuous_spec):
        inputs = [TensorSpec(names.VECTOR_OBSERVATION, (None, 8)), TensorSpec(names.RECURRENT_IN, (None, 16))]

        violations = validate_model(continuous_spec, inputs, [TensorSpec(names.ACTION, (None, 2))])

        assert _fields(violations) == [names.RECURRENT_OUT]

    def test_input_violations_precede_output_violations(self, continuous_spec):
        violations = validate_model(
            continuous_spec,
            [TensorSpec(names.VECTOR_OBSERVATION, (None, 5))],
            [],
        )
        assert _fields(violations) == [names.VECTOR_OBSERVATION, names.ACTION]


class TestCompatibilityViolation:
    """Tests for the violation record itself."""

    def test_str_is_message(self):
        violation = CompatibilityViolation("x", 1, 2, "x is wrong")
        assert str(violation) == "x is wrong"
