"""Learning Brain: local batched inference for groups of agents.

Turns a variable-size batch of agent observations into model input tensors,
checks the model against the agents' declared contract, executes it through a
pluggable backend and writes the decoded actions back onto the agents.

Modules:
    brain: LearningBrain controller (reload, decide_action, shutdown)
    config: BrainConfig (dict / YAML)
    parameters: ObservationSpec and ActionSpec (brain parameters)
    agents: AgentRecord, AgentAction
    allocator: TensorCachingAllocator
    validator: Model compatibility checks
    generator: TensorGenerator (agents -> input tensors)
    executor: InferenceExecutor (named model execution)
    applier: TensorApplier (output tensors -> agent actions)
    backends: ModelSource / ModelHandle protocols, ONNX Runtime and PyTorch backends
    network, checkpoint, export: Reference PyTorch policy, checkpoints, ONNX export
    logging_config: setup_logging / get_logger for the host process
"""

from learning_brain.agents import AgentAction, AgentBatch, AgentRecord
from learning_brain.allocator import TensorCachingAllocator
from learning_brain.applier import InferenceMode, TensorApplier
from learning_brain.backends import (
    InferenceDevice,
    ModelHandle,
    ModelSource,
    OnnxModelSource,
    TorchModelSource,
    resolve_model_source,
)
from learning_brain.brain import BrainState, DecisionReport, DecisionStatus, LearningBrain
from learning_brain.checkpoint import load_network_from_checkpoint, save_checkpoint
from learning_brain.communicator import Communicator
from learning_brain.config import BrainConfig
from learning_brain.exceptions import (
    BindingError,
    ConfigurationError,
    DecodeError,
    ExecutionError,
    LearningBrainError,
    UnavailableError,
)
from learning_brain.executor import InferenceExecutor
from learning_brain.export import ExportResult, export_to_onnx
from learning_brain.generator import TensorGenerator
from learning_brain.logging_config import get_logger, setup_logging
from learning_brain.network import NetworkConfig, PolicyNetwork, create_network
from learning_brain.parameters import ActionSpec, ObservationSpec
from learning_brain.tensors import TensorProxy, TensorSpec
from learning_brain.validator import CompatibilityViolation, validate, validate_model

__version__ = "0.1.0"

__all__ = [
    # Controller
    "BrainConfig",
    "BrainState",
    "DecisionReport",
    "DecisionStatus",
    "LearningBrain",
    # Contract
    "ActionSpec",
    "AgentAction",
    "AgentBatch",
    "AgentRecord",
    "ObservationSpec",
    "TensorProxy",
    "TensorSpec",
    # Pipeline
    "CompatibilityViolation",
    "InferenceExecutor",
    "InferenceMode",
    "TensorApplier",
    "TensorCachingAllocator",
    "TensorGenerator",
    "validate",
    "validate_model",
    # Backends
    "Communicator",
    "InferenceDevice",
    "ModelHandle",
    "ModelSource",
    "OnnxModelSource",
    "TorchModelSource",
    "resolve_model_source",
    # Reference policy, checkpoints and ONNX export
    "ExportResult",
    "NetworkConfig",
    "PolicyNetwork",
    "create_network",
    "export_to_onnx",
    "load_network_from_checkpoint",
    "save_checkpoint",
    # Logging
    "get_logger",
    "setup_logging",
    # Errors
    "BindingError",
    "ConfigurationError",
    "DecodeError",
    "ExecutionError",
    "LearningBrainError",
    "UnavailableError",
]
