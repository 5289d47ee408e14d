"""PyTorch execution backend.

Serves any ``nn.Module`` whose ``forward`` takes the model inputs as keyword
arguments and returns a mapping from output name to tensor.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from contextlib import contextmanager
from pathlib import Path

import torch
import torch.nn as nn

from ..exceptions import ExecutionError
from ..tensors import TensorProxy, TensorSpec
from .base import InferenceDevice

logger = logging.getLogger(__name__)


def get_device() -> torch.device:
    """Detect and return the best available device.

    Priority: CUDA > MPS (Apple Silicon) > CPU

    Returns:
        torch.device for model placement.
    """
    if torch.cuda.is_available():
        return torch.device("cuda")
    elif hasattr(torch.backends, "mps") and torch.backends.mps.is_available():
        return torch.device("mps")
    return torch.device("cpu")


def resolve_device(device: InferenceDevice) -> torch.device:
    """Map an inference device onto a torch device, falling back to CPU."""
    if device is InferenceDevice.CPU:
        return torch.device("cpu")
    resolved = get_device()
    if resolved.type == "cpu":
        logger.warning("No accelerated device available, running inference on CPU")
    return resolved


@contextmanager
def inference_mode(network: nn.Module):
    """Context manager for network inference.

    Sets the network to eval mode and disables gradient computation.
    Restores the original training mode after the context exits.

    Args:
        network: Neural network to set to eval mode.

    Yields:
        None
    """
    was_training = network.training
    network.eval()
    try:
        with torch.no_grad():
            yield
    finally:
        if was_training:
            network.train()


class TorchModelHandle:
    """Loaded torch module with a declared tensor signature."""

    def __init__(
        self,
        module: nn.Module,
        input_signature: Sequence[TensorSpec],
        output_signature: Sequence[TensorSpec],
        device: torch.device,
    ) -> None:
        self._module: nn.Module | None = module
        self._input_signature = tuple(input_signature)
        self._output_signature = tuple(output_signature)
        self._device = device

    @property
    def input_signature(self) -> tuple[TensorSpec, ...]:
        return self._input_signature

    @property
    def output_signature(self) -> tuple[TensorSpec, ...]:
        return self._output_signature

    @property
    def device(self) -> torch.device:
        return self._device

    @property
    def is_released(self) -> bool:
        return self._module is None

    def execute(self, inputs: Mapping[str, TensorProxy]) -> dict[str, TensorProxy]:
        module = self._module
        if module is None:
            raise ExecutionError("Torch model handle has been released")

        kinds = {spec.name: spec.kind for spec in self._output_signature}
        feed = {name: torch.from_numpy(tensor.data).to(self._device) for name, tensor in inputs.items()}
        with inference_mode(module):
            raw = module(**feed)
        if not isinstance(raw, Mapping):
            raise ExecutionError(f"Torch module must return a mapping of named outputs, got {type(raw).__name__}")

        return {
            name: TensorProxy.from_array(name, value.detach().cpu().numpy(), kinds.get(name))
            for name, value in raw.items()
        }

    def release(self) -> None:
        if self._module is None:
            return
        self._module = None
        if self._device.type == "cuda":
            torch.cuda.empty_cache()


class TorchModelSource:
    """Model source wrapping a torch module (or a factory building one).

    When no signatures are given they are read from the module's
    ``input_signature()`` / ``output_signature()`` methods.
    """

    def __init__(
        self,
        module: nn.Module | Callable[[], nn.Module],
        input_signature: Sequence[TensorSpec] | None = None,
        output_signature: Sequence[TensorSpec] | None = None,
        name: str | None = None,
    ) -> None:
        self._module = module
        self._input_signature = input_signature
        self._output_signature = output_signature
        self._name = name or (type(module).__name__ if isinstance(module, nn.Module) else "torch-module")

    @property
    def name(self) -> str:
        return self._name

    @classmethod
    def from_checkpoint(cls, path: str | Path) -> TorchModelSource:
        """Serve a PolicyNetwork saved with ``checkpoint.save_checkpoint``."""
        from ..checkpoint import load_network_from_checkpoint

        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Checkpoint not found: {path}")

        def _build() -> nn.Module:
            network, _config, _step = load_network_from_checkpoint(path)
            return network

        return cls(_build, name=str(path))

    def load(self, device: InferenceDevice = InferenceDevice.CPU) -> TorchModelHandle:
        module = self._module if isinstance(self._module, nn.Module) else self._module()
        input_signature = self._input_signature
        output_signature = self._output_signature
        if input_signature is None:
            input_signature = module.input_signature()
        if output_signature is None:
            output_signature = module.output_signature()

        torch_device = resolve_device(device)
        module = module.to(torch_device)
        module.eval()
        return TorchModelHandle(module, input_signature, output_signature, torch_device)


__all__ = [
    "TorchModelHandle",
    "TorchModelSource",
    "get_device",
    "inference_mode",
    "resolve_device",
]
