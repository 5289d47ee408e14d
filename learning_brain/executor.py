"""Inference executor: owns the loaded model handle and runs it by name.

Inputs are bound to the model strictly by name. The executor refuses to run a
handle whose compatibility check has not been confirmed, and treats any
declared output the engine fails to produce as an execution error.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence

from . import tensor_names as names
from .backends.base import InferenceDevice, ModelHandle, ModelSource
from .exceptions import BindingError, ExecutionError
from .tensor_names import InputRole
from .tensors import BATCH_AXIS, TensorProxy, TensorSpec

logger = logging.getLogger(__name__)


class InferenceExecutor:
    """Holds at most one loaded model and executes it on named tensors."""

    def __init__(self) -> None:
        self._handle: ModelHandle | None = None
        self._source_name: str | None = None
        self._contract_confirmed = False

    @property
    def handle(self) -> ModelHandle | None:
        return self._handle

    @property
    def is_loaded(self) -> bool:
        return self._handle is not None

    @property
    def is_ready(self) -> bool:
        """True when a model is loaded and its compatibility check passed."""
        return self._handle is not None and self._contract_confirmed

    @property
    def input_names(self) -> list[str]:
        return [spec.name for spec in self._handle.input_signature] if self._handle else []

    @property
    def output_names(self) -> list[str]:
        return [spec.name for spec in self._handle.output_signature] if self._handle else []

    def load(self, source: ModelSource, device: InferenceDevice = InferenceDevice.CPU) -> ModelHandle:
        """Release the current model, then load ``source`` on ``device``."""
        self.release()
        handle = source.load(device)
        self._handle = handle
        self._source_name = source.name
        self._contract_confirmed = False
        logger.info(
            f"Loaded model {source.name} on {device.value}: "
            f"{len(handle.input_signature)} inputs, {len(handle.output_signature)} outputs"
        )
        return handle

    def confirm_contract(self, violations: Sequence[object]) -> bool:
        """Record the compatibility check result for the current handle."""
        self._contract_confirmed = self._handle is not None and not violations
        return self._contract_confirmed

    def release(self) -> None:
        """Release the loaded model, if any. Safe to call repeatedly."""
        handle, self._handle = self._handle, None
        self._contract_confirmed = False
        if handle is not None:
            handle.release()
            logger.info(f"Released model {self._source_name}")
        self._source_name = None

    def execute(self, inputs: Mapping[str, TensorProxy]) -> dict[str, TensorProxy]:
        """Run the loaded model.

        Args:
            inputs: Exactly one tensor per declared model input.

        Returns:
            One tensor per declared model output, keyed by name.

        Raises:
            BindingError: No confirmed model, input names differ from the
                signature, or an input shape disagrees with its spec.
            ExecutionError: The engine failed or omitted a declared output.
        """
        handle = self._handle
        if handle is None:
            raise BindingError("No model is loaded")
        if not self._contract_confirmed:
            raise BindingError(f"Model {self._source_name} has not passed its compatibility check")

        batch_size = self._check_inputs(handle.input_signature, inputs)

        try:
            raw_outputs = handle.execute(inputs)
        except BindingError:
            raise
        except Exception as exc:
            raise ExecutionError(f"Model {self._source_name} failed to execute: {exc}") from exc

        return self._collect_outputs(handle.output_signature, raw_outputs, batch_size)

    @staticmethod
    def _check_inputs(signature: Sequence[TensorSpec], inputs: Mapping[str, TensorProxy]) -> int | None:
        expected = {spec.name for spec in signature}
        provided = set(inputs)
        if expected != provided:
            missing = sorted(expected - provided)
            unexpected = sorted(provided - expected)
            raise BindingError(
                f"Input names do not match the model signature: missing={missing}, unexpected={unexpected}"
            )

        batch_size: int | None = None
        for spec in signature:
            tensor = inputs[spec.name]
            if tensor.data.ndim != spec.rank:
                raise BindingError(
                    f"Input '{spec.name}' has rank {tensor.data.ndim}, model expects {spec.shape}", spec.name
                )
            batched = names.input_role(spec.name) not in (InputRole.BATCH_SIZE, InputRole.SEQUENCE_LENGTH)
            for axis, (actual, declared) in enumerate(zip(tensor.shape, spec.shape)):
                if declared is not None and actual != declared:
                    raise BindingError(
                        f"Input '{spec.name}' has shape {tensor.shape}, model expects {spec.shape}", spec.name
                    )
                if batched and axis == BATCH_AXIS:
                    if batch_size is None:
                        batch_size = actual
                    elif actual != batch_size:
                        raise BindingError(
                            f"Input '{spec.name}' has batch size {actual}, other inputs have {batch_size}",
                            spec.name,
                        )
        return batch_size

    def _collect_outputs(
        self,
        signature: Sequence[TensorSpec],
        raw_outputs: Mapping[str, TensorProxy],
        batch_size: int | None,
    ) -> dict[str, TensorProxy]:
        outputs: dict[str, TensorProxy] = {}
        for spec in signature:
            tensor = raw_outputs.get(spec.name)
            if tensor is None:
                raise ExecutionError(
                    f"Model {self._source_name} did not produce declared output '{spec.name}'", spec.name
                )
            if batch_size is not None and spec.rank > 0 and spec.shape[BATCH_AXIS] is None:
                if tensor.data.ndim == 0 or tensor.shape[BATCH_AXIS] != batch_size:
                    raise ExecutionError(
                        f"Output '{spec.name}' has shape {tensor.shape}, expected batch size {batch_size}",
                        spec.name,
                    )
            outputs[spec.name] = tensor
        return outputs


__all__ = ["InferenceExecutor"]
