"""ONNX Runtime execution backend.

Reads the model signature from the inference session and runs it on named
numpy inputs. Symbolic dimensions (strings or None in the ONNX graph) become
None in the TensorSpec.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

import numpy as np

from ..exceptions import ExecutionError
from ..tensors import ElementKind, TensorProxy, TensorSpec
from .base import InferenceDevice

logger = logging.getLogger(__name__)

_ONNX_TO_NUMPY: dict[str, np.dtype] = {
    "tensor(float)": np.dtype(np.float32),
    "tensor(float16)": np.dtype(np.float16),
    "tensor(double)": np.dtype(np.float64),
    "tensor(int64)": np.dtype(np.int64),
    "tensor(int32)": np.dtype(np.int32),
    "tensor(int8)": np.dtype(np.int8),
    "tensor(uint8)": np.dtype(np.uint8),
    "tensor(bool)": np.dtype(np.bool_),
}


def _import_onnxruntime():
    try:
        import onnxruntime as ort
    except ImportError as e:
        raise ImportError(
            "ONNX inference requires 'onnxruntime'. "
            "Install with: pip install onnxruntime (CPU) or onnxruntime-gpu (GPU)"
        ) from e
    return ort


def select_providers(device: InferenceDevice, available: Sequence[str]) -> list[str]:
    """Pick execution providers for a device, CPU always last."""
    if device is InferenceDevice.GPU:
        if "CUDAExecutionProvider" in available:
            return ["CUDAExecutionProvider", "CPUExecutionProvider"]
        if "CoreMLExecutionProvider" in available:
            return ["CoreMLExecutionProvider", "CPUExecutionProvider"]
        logger.warning("No accelerated ONNX execution provider available, running inference on CPU")
    return ["CPUExecutionProvider"]


def _to_spec(node: Any) -> tuple[TensorSpec, np.dtype]:
    dtype = _ONNX_TO_NUMPY.get(node.type)
    if dtype is None:
        raise ExecutionError(f"Unsupported ONNX tensor type {node.type} for '{node.name}'", node.name)
    shape = tuple(dim if isinstance(dim, int) and dim >= 0 else None for dim in (node.shape or ()))
    kind: ElementKind = "float" if np.issubdtype(dtype, np.floating) else "int"
    return TensorSpec(node.name, shape, kind), dtype


class OnnxModelHandle:
    """Loaded ONNX Runtime inference session."""

    def __init__(self, session: Any, providers: Sequence[str]) -> None:
        self._session = session
        self.providers = list(providers)

        inputs = [_to_spec(node) for node in session.get_inputs()]
        outputs = [_to_spec(node) for node in session.get_outputs()]
        self._input_signature = tuple(spec for spec, _ in inputs)
        self._output_signature = tuple(spec for spec, _ in outputs)
        self._input_dtypes = {spec.name: dtype for spec, dtype in inputs}

    @property
    def input_signature(self) -> tuple[TensorSpec, ...]:
        return self._input_signature

    @property
    def output_signature(self) -> tuple[TensorSpec, ...]:
        return self._output_signature

    @property
    def is_released(self) -> bool:
        return self._session is None

    def execute(self, inputs: Mapping[str, TensorProxy]) -> dict[str, TensorProxy]:
        if self._session is None:
            raise ExecutionError("ONNX model handle has been released")

        feed = {
            name: tensor.data.astype(self._input_dtypes[name], copy=False) for name, tensor in inputs.items()
        }
        output_names = [spec.name for spec in self._output_signature]
        results = self._session.run(output_names, feed)
        return {
            spec.name: TensorProxy.from_array(spec.name, value, spec.kind)
            for spec, value in zip(self._output_signature, results, strict=True)
        }

    def release(self) -> None:
        self._session = None


class OnnxModelSource:
    """ONNX model file, loaded into an ONNX Runtime session on demand."""

    def __init__(self, model_path: str | Path, providers: list[str] | None = None) -> None:
        self.model_path = Path(model_path)
        self._providers = providers

    @property
    def name(self) -> str:
        return str(self.model_path)

    def load(self, device: InferenceDevice = InferenceDevice.CPU) -> OnnxModelHandle:
        ort = _import_onnxruntime()
        if not self.model_path.exists():
            raise FileNotFoundError(f"ONNX model not found: {self.model_path}")

        providers = self._providers or select_providers(device, ort.get_available_providers())
        session = ort.InferenceSession(str(self.model_path), providers=providers)
        logger.info(f"Loaded ONNX model from {self.model_path} with providers: {providers}")
        return OnnxModelHandle(session, providers)


__all__ = ["OnnxModelHandle", "OnnxModelSource", "select_providers"]
