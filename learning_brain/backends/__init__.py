"""Neural-network execution backends behind the ModelSource / ModelHandle capability.

Modules:
    base: Capability protocols and the InferenceDevice enum
    onnx_backend: ONNX Runtime sessions
    torch_backend: PyTorch modules and PolicyNetwork checkpoints
"""

from __future__ import annotations

from pathlib import Path

from learning_brain.backends.base import InferenceDevice, ModelHandle, ModelSource
from learning_brain.backends.onnx_backend import OnnxModelHandle, OnnxModelSource
from learning_brain.backends.torch_backend import TorchModelHandle, TorchModelSource


def resolve_model_source(model: str | Path | ModelSource) -> ModelSource:
    """Turn a configured model reference into a ModelSource.

    ``.onnx`` files are served by ONNX Runtime, ``.pt`` files are PolicyNetwork
    checkpoints served by PyTorch. ModelSource objects pass through unchanged.

    Raises:
        ValueError: If a path has an unsupported suffix.
    """
    if isinstance(model, ModelSource):
        return model
    path = Path(model)
    if path.suffix == ".onnx":
        return OnnxModelSource(path)
    if path.suffix == ".pt":
        return TorchModelSource.from_checkpoint(path)
    raise ValueError(f"Unsupported model file {path}: expected a .onnx or .pt file")


__all__ = [
    "InferenceDevice",
    "ModelHandle",
    "ModelSource",
    "OnnxModelHandle",
    "OnnxModelSource",
    "TorchModelHandle",
    "TorchModelSource",
    "resolve_model_source",
]
