"""Export a PolicyNetwork to ONNX for serving through ONNX Runtime.

The exported graph keeps the Learning Brain tensor names and a symbolic batch
axis on every input and output, so the ONNX backend reads back the same
signature the network declares.

Example:
    from learning_brain.export import export_to_onnx

    result = export_to_onnx(network, "policy.onnx")
    source = OnnxModelSource(result.output_path)
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path

import torch
import torch.nn as nn

from .network import PolicyNetwork

logger = logging.getLogger(__name__)


@dataclass
class ExportResult:
    """Outcome of an ONNX export.

    Attributes:
        output_path: Location of the written .onnx file.
        input_names: Graph input names, in order.
        output_names: Graph output names, in order.
        exported_size_mb: File size in megabytes.
        export_time_s: Wall-clock seconds spent in the exporter.
    """

    output_path: Path
    input_names: list[str]
    output_names: list[str]
    exported_size_mb: float
    export_time_s: float


class _NamedIOWrapper(nn.Module):
    """Positional-argument view of a PolicyNetwork for graph tracing."""

    def __init__(self, network: PolicyNetwork, input_names: list[str], output_names: list[str]) -> None:
        super().__init__()
        self.network = network
        self.input_names = input_names
        self.output_names = output_names

    def forward(self, *tensors: torch.Tensor) -> tuple[torch.Tensor, ...]:
        outputs = self.network(**dict(zip(self.input_names, tensors)))
        return tuple(outputs[name] for name in self.output_names)


def export_to_onnx(
    network: PolicyNetwork,
    output_path: str | Path,
    opset_version: int = 17,
    verify: bool = True,
) -> ExportResult:
    """Export a PolicyNetwork to ONNX format with a dynamic batch axis.

    Args:
        network: Network to export.
        output_path: Path for the output .onnx file.
        opset_version: ONNX opset version (default: 17).
        verify: If True, run the ONNX checker on the exported model.

    Returns:
        ExportResult with export details.

    Raises:
        ImportError: If the onnx package is not installed and ``verify`` is set.
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    input_specs = network.input_signature()
    output_specs = network.output_signature()
    input_names = [spec.name for spec in input_specs]
    output_names = [spec.name for spec in output_specs]

    try:
        device = next(network.parameters()).device
    except StopIteration:
        device = torch.device("cpu")

    dummy_inputs = tuple(
        torch.zeros((1, *(int(d) for d in spec.row_shape)), dtype=torch.float32, device=device)
        for spec in input_specs
    )
    dynamic_axes = {name: {0: "batch_size"} for name in input_names + output_names}

    network.eval()
    wrapper = _NamedIOWrapper(network, input_names, output_names)

    start_time = time.perf_counter()
    with torch.no_grad():
        torch.onnx.export(
            wrapper,
            dummy_inputs,
            str(output_path),
            export_params=True,
            opset_version=opset_version,
            do_constant_folding=True,
            input_names=input_names,
            output_names=output_names,
            dynamic_axes=dynamic_axes,
            dynamo=False,
        )
    export_time = time.perf_counter() - start_time

    if verify:
        try:
            import onnx
        except ImportError as e:
            raise ImportError("ONNX verification requires 'onnx' package. Install with: pip install onnx") from e

        onnx.checker.check_model(onnx.load(str(output_path)))
        logger.info(f"ONNX model verified successfully: {output_path}")

    exported_size_mb = output_path.stat().st_size / (1024 * 1024)
    logger.info(f"Exported model to ONNX: {output_path} ({exported_size_mb:.2f} MB)")

    return ExportResult(
        output_path=output_path,
        input_names=input_names,
        output_names=output_names,
        exported_size_mb=exported_size_mb,
        export_time_s=export_time,
    )


__all__ = ["ExportResult", "export_to_onnx"]
