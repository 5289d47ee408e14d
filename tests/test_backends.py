"""
Test suite for the execution backends.

Tests the reference PolicyNetwork served through the PyTorch backend, the
checkpoint round trip, ONNX export served through ONNX Runtime, and model
source resolution.
"""

import numpy as np
import pytest
import torch

from learning_brain import tensor_names as names
from learning_brain.backends import (
    InferenceDevice,
    ModelHandle,
    ModelSource,
    OnnxModelSource,
    TorchModelSource,
    resolve_model_source,
)
from learning_brain.backends.onnx_backend import select_providers
from learning_brain.brain import DecisionStatus, LearningBrain
from learning_brain.checkpoint import load_network_from_checkpoint, save_checkpoint
from learning_brain.config import BrainConfig
from learning_brain.exceptions import ExecutionError
from learning_brain.generator import TensorGenerator
from learning_brain.network import NetworkConfig, PolicyNetwork, create_network
from learning_brain.parameters import ActionSpec, ObservationSpec
from learning_brain.validator import validate


class _TensorOnlyModule(torch.nn.Module):
    def forward(self):
        return torch.zeros(1)


@pytest.fixture
def recurrent_spec():
    return ObservationSpec(
        vector_observation_size=4,
        num_stacked_vector_observations=2,
        action_spec=ActionSpec(discrete_branch_sizes=(3, 2)),
    )


@pytest.fixture
def recurrent_network(recurrent_spec):
    torch.manual_seed(0)
    config = NetworkConfig.from_observation_spec(recurrent_spec, hidden_dim=16, num_layers=1, memory_size=8)
    return create_network(config)


class TestPolicyNetwork:
    """The reference network speaks the tensor naming convention."""

    def test_signature_matches_brain_parameters(self, recurrent_spec, recurrent_network):
        handle = TorchModelSource(recurrent_network).load()

        assert [s.name for s in handle.input_signature] == ["vector_observation", "action_masks", "recurrent_in"]
        assert [s.name for s in handle.output_signature] == [
            "recurrent_out",
            "action_branch_0",
            "action_branch_1",
            "value_estimate",
        ]
        assert validate(recurrent_spec, handle) == []

    def test_forward_shapes(self):
        network = PolicyNetwork(NetworkConfig(vector_observation_size=3, continuous_size=2, hidden_dim=8))

        outputs = network(torch.zeros(5, 3), epsilon=torch.zeros(5, 2))

        assert outputs[names.ACTION].shape == (5, 2)
        assert outputs[names.VALUE_ESTIMATE].shape == (5, 1)

    def test_config_round_trip(self):
        config = NetworkConfig(discrete_branch_sizes=(2, 3), memory_size=4)
        assert NetworkConfig.from_dict(config.to_dict()) == config


class TestTorchBackend:
    """PolicyNetwork served through TorchModelSource."""

    def test_handle_satisfies_protocols(self, recurrent_network):
        source = TorchModelSource(recurrent_network)
        assert isinstance(source, ModelSource)
        assert isinstance(source.load(), ModelHandle)

    def test_brain_end_to_end(self, recurrent_spec, recurrent_network, agent_factory):
        brain = LearningBrain(
            BrainConfig(
                model=TorchModelSource(recurrent_network),
                brain_parameters=recurrent_spec,
                inference_mode="greedy",
            )
        )
        brain.initialize()
        agents = agent_factory(recurrent_spec, 4)
        agents[0].action_mask = np.array([0, 0, 1, 1, 0], dtype=np.float32)

        report = brain.decide_action(agents)

        assert report.status is DecisionStatus.APPLIED
        assert [a.key for a in report.actions] == [agent.key for agent in agents]
        assert report.actions[0].discrete == (2, 0)
        for action in report.actions:
            assert 0 <= action.discrete[0] < 3 and 0 <= action.discrete[1] < 2
            assert action.memory.shape == (8,)
            assert isinstance(action.value_estimate, float)

    def test_released_handle_refuses_execution(self, recurrent_network):
        handle = TorchModelSource(recurrent_network).load()
        handle.release()
        handle.release()

        assert handle.is_released
        with pytest.raises(ExecutionError):
            handle.execute({})

    def test_module_must_return_mapping(self):
        source = TorchModelSource(_TensorOnlyModule(), input_signature=[], output_signature=[])
        with pytest.raises(ExecutionError, match="mapping"):
            source.load().execute({})


class TestCheckpoint:
    """Checkpoint save/load for the torch backend."""

    def test_round_trip(self, tmp_path, recurrent_network):
        path = save_checkpoint(recurrent_network, tmp_path / "policy", step=12)

        network, config, step = load_network_from_checkpoint(path)

        assert path.suffix == ".pt"
        assert step == 12
        assert config == recurrent_network.config
        for name, value in recurrent_network.state_dict().items():
            assert torch.equal(network.state_dict()[name], value)

    def test_resolve_checkpoint_path(self, tmp_path, recurrent_spec, recurrent_network):
        path = save_checkpoint(recurrent_network, tmp_path / "policy.pt")

        source = resolve_model_source(path)

        assert isinstance(source, TorchModelSource)
        assert validate(recurrent_spec, source.load()) == []

    def test_missing_checkpoint(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            resolve_model_source(tmp_path / "missing.pt")


class TestSourceResolution:
    """Model references resolve to a ModelSource by suffix."""

    def test_onnx_suffix(self, tmp_path):
        assert isinstance(resolve_model_source(str(tmp_path / "policy.onnx")), OnnxModelSource)

    def test_model_source_passes_through(self, continuous_source):
        assert resolve_model_source(continuous_source) is continuous_source

    def test_unsupported_suffix(self):
        with pytest.raises(ValueError, match="Unsupported model file"):
            resolve_model_source("policy.h5")

    @pytest.mark.parametrize(
        ("device", "available", "expected"),
        [
            (InferenceDevice.CPU, ["CUDAExecutionProvider", "CPUExecutionProvider"], ["CPUExecutionProvider"]),
            (
                InferenceDevice.GPU,
                ["CUDAExecutionProvider", "CPUExecutionProvider"],
                ["CUDAExecutionProvider", "CPUExecutionProvider"],
            ),
            (
                InferenceDevice.GPU,
                ["CoreMLExecutionProvider", "CPUExecutionProvider"],
                ["CoreMLExecutionProvider", "CPUExecutionProvider"],
            ),
            (InferenceDevice.GPU, ["CPUExecutionProvider"], ["CPUExecutionProvider"]),
        ],
    )
    def test_select_providers(self, device, available, expected):
        assert select_providers(device, available) == expected


class TestOnnxBackend:
    """PolicyNetwork exported to ONNX and served by ONNX Runtime."""

    @pytest.fixture
    def exported(self, tmp_path, recurrent_network):
        pytest.importorskip("onnx")
        pytest.importorskip("onnxruntime")
        from learning_brain.export import export_to_onnx

        return export_to_onnx(recurrent_network, tmp_path / "policy.onnx")

    def test_export_keeps_tensor_names(self, exported):
        assert exported.input_names == ["vector_observation", "action_masks", "recurrent_in"]
        assert exported.output_names == ["recurrent_out", "action_branch_0", "action_branch_1", "value_estimate"]
        assert exported.output_path.exists()

    def test_signature_has_symbolic_batch(self, exported, recurrent_spec):
        handle = OnnxModelSource(exported.output_path).load(InferenceDevice.CPU)

        assert all(spec.shape[0] is None for spec in handle.input_signature)
        assert validate(recurrent_spec, handle) == []

    def test_matches_torch_outputs(self, exported, recurrent_spec, recurrent_network, agent_factory):
        onnx_handle = OnnxModelSource(exported.output_path).load()
        torch_handle = TorchModelSource(recurrent_network).load()
        agents = agent_factory(recurrent_spec, 3)
        inputs = TensorGenerator(recurrent_spec).generate(torch_handle.input_signature, agents)

        expected = torch_handle.execute(inputs)
        actual = onnx_handle.execute(inputs)

        for name, tensor in expected.items():
            np.testing.assert_allclose(actual[name].data, tensor.data, rtol=1e-4, atol=1e-5)

    def test_release(self, exported):
        handle = OnnxModelSource(exported.output_path).load()
        handle.release()

        assert handle.is_released
        with pytest.raises(ExecutionError):
            handle.execute({})

    def test_missing_model_file(self, tmp_path):
        pytest.importorskip("onnxruntime")
        with pytest.raises(FileNotFoundError):
            OnnxModelSource(tmp_path / "missing.onnx").load()
