"""Learning Brain controller.

Drives one decision tick per call to ``decide_action``:

    batch -> [remote channel connected: forward and return]
          -> TensorGenerator -> InferenceExecutor -> TensorApplier

The controller owns the model lifecycle. ``reload`` is the only place a new
configuration (model, device, seed, inference mode) takes effect, and every
reload runs the compatibility checks before the model may be used.

Example:
    brain = LearningBrain(BrainConfig.from_yaml("brain.yaml"))
    brain.initialize()
    report = brain.decide_action(agents)
    brain.shutdown()
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

from . import profiling
from .agents import AgentAction, AgentRecord
from .allocator import TensorCachingAllocator
from .applier import TensorApplier
from .backends import resolve_model_source
from .communicator import Communicator
from .config import BrainConfig
from .exceptions import BindingError, ConfigurationError, DecodeError, LearningBrainError, UnavailableError
from .executor import InferenceExecutor
from .generator import TensorGenerator
from .profiling import SpanFactory
from .validator import CompatibilityViolation, validate

logger = logging.getLogger(__name__)


class BrainState(Enum):
    UNLOADED = "unloaded"
    LOADED = "loaded"


class DecisionStatus(Enum):
    """Outcome of one decision tick."""

    APPLIED = "applied"
    REMOTE = "remote"
    EMPTY = "empty"
    UNAVAILABLE = "unavailable"
    FAILED = "failed"


@dataclass(frozen=True)
class DecisionReport:
    """Result of ``LearningBrain.decide_action``.

    Attributes:
        status: What happened this tick.
        actions: Decoded actions in batch order (only when APPLIED).
        error: The reason for an UNAVAILABLE or FAILED tick.
    """

    status: DecisionStatus
    actions: tuple[AgentAction, ...] = ()
    error: LearningBrainError | None = None

    @property
    def applied(self) -> bool:
        return self.status is DecisionStatus.APPLIED


class LearningBrain:
    """Batched local inference for a group of agents sharing one model.

    Args:
        config: Brain configuration. Applied on the first ``reload``/``initialize``.
        span_factory: Callable returning a context manager per named stage.
        allocator: Tensor buffer allocator (a fresh one by default).
    """

    def __init__(
        self,
        config: BrainConfig | None = None,
        *,
        span_factory: SpanFactory = profiling.span,
        allocator: TensorCachingAllocator | None = None,
    ) -> None:
        self._config = config or BrainConfig()
        self._span = span_factory
        self._allocator = allocator or TensorCachingAllocator()
        self._executor = InferenceExecutor()
        self._communicator: Communicator | None = None
        self._failed_checks: list[CompatibilityViolation] = []
        self._generation = 0
        self._generator: TensorGenerator | None = None
        self._applier: TensorApplier | None = None
        self._lock = threading.RLock()

    @property
    def name(self) -> str:
        return self._config.brain_name

    @property
    def config(self) -> BrainConfig:
        return self._config

    @property
    def state(self) -> BrainState:
        return BrainState.LOADED if self._executor.is_ready else BrainState.UNLOADED

    @property
    def generation(self) -> int:
        """Number of reloads so far; tags recurrent memory with its model."""
        return self._generation

    @property
    def executor(self) -> InferenceExecutor:
        return self._executor

    @property
    def allocator(self) -> TensorCachingAllocator:
        return self._allocator

    @property
    def communicator(self) -> Communicator | None:
        return self._communicator

    @property
    def remote_active(self) -> bool:
        return self._communicator is not None and self._communicator.is_connected

    def initialize(self, communicator: Communicator | None = None) -> None:
        """Subscribe to the remote channel if one is given, then load the configured model.

        The channel is attached before the model is loaded, so a missing or
        incompatible model still leaves remote decisions available. Errors
        from :meth:`reload` propagate to the caller.
        """
        with self._lock:
            self._communicator = communicator
            if communicator is not None:
                communicator.subscribe_brain(self.name, self._config.brain_parameters)
                logger.info(f"Brain {self.name} subscribed to remote channel")
            self.reload()

    def reload(self, config: BrainConfig | None = None) -> BrainState:
        """Apply ``config`` (if given) and load its model.

        The previous model is released before the new one is loaded. Recurrent
        memory produced by the previous model is not fed to the new one.

        Returns:
            The resulting state (UNLOADED when the configuration has no model).

        Raises:
            ConfigurationError: The model fails its compatibility checks. The
                new model is released and the brain stays UNLOADED.
            ValueError: The configuration is invalid.
        """
        with self._lock:
            cfg = config or self._config
            cfg.validate()
            self._config = cfg

            self._generation += 1
            self._executor.release()
            self._allocator.reset()
            self._failed_checks = []
            self._generator = TensorGenerator(
                cfg.brain_parameters, seed=cfg.seed, allocator=self._allocator, generation=self._generation
            )
            self._applier = TensorApplier(
                cfg.brain_parameters.action_spec,
                seed=cfg.seed,
                mode=cfg.inference_mode,
                generation=self._generation,
            )

            if cfg.model is None:
                logger.info(f"Brain {self.name} has no model, local inference is disabled")
                return self.state

            source = resolve_model_source(cfg.model)
            handle = self._executor.load(source, cfg.inference_device)
            violations = validate(cfg.brain_parameters, handle)
            self._failed_checks = violations
            if not self._executor.confirm_contract(violations):
                for violation in violations:
                    logger.warning(f"Brain {self.name}: {violation}")
                self._executor.release()
                raise ConfigurationError(violations, source.name)

            logger.info(
                f"Brain {self.name} ready: model={source.name}, device={cfg.inference_device.value}, "
                f"seed={cfg.seed}, mode={cfg.inference_mode}"
            )
            return self.state

    def failed_checks(self) -> list[CompatibilityViolation]:
        """Compatibility violations found by the last reload (does not reload)."""
        return list(self._failed_checks)

    def decide_action(self, batch: Sequence[AgentRecord]) -> DecisionReport:
        """Run one decision tick for ``batch``.

        Never raises for per-tick failures: a tick that cannot bind or decode
        its tensors leaves every agent with its previous action and returns a
        single FAILED report.
        """
        with self._lock:
            communicator = self._communicator
            if communicator is not None and communicator.is_connected:
                communicator.put_observations(self.name, batch)
                return DecisionReport(DecisionStatus.REMOTE)

            if len(batch) == 0:
                return DecisionReport(DecisionStatus.EMPTY)

            handle = self._executor.handle
            generator, applier = self._generator, self._applier
            if handle is None or not self._executor.is_ready or generator is None or applier is None:
                error = UnavailableError(f"No model was present for the Brain {self.name}")
                logger.error(str(error))
                return DecisionReport(DecisionStatus.UNAVAILABLE, error=error)

            try:
                with self._span(f"{self.name}.{profiling.DECIDE}"):
                    with self._span(f"{self.name}.{profiling.GENERATE}"):
                        inputs = generator.generate(handle.input_signature, batch)
                    with self._span(f"{self.name}.{profiling.EXECUTE}"):
                        outputs = self._executor.execute(inputs)
                    with self._span(f"{self.name}.{profiling.APPLY}"):
                        actions = applier.apply(outputs, batch)
            except (BindingError, DecodeError) as exc:
                logger.error(f"Brain {self.name} failed to decide for {len(batch)} agents: {exc}")
                return DecisionReport(DecisionStatus.FAILED, error=exc)
            finally:
                self._allocator.recycle()

            return DecisionReport(DecisionStatus.APPLIED, actions=tuple(actions))

    def shutdown(self) -> None:
        """Release the model and every cached tensor buffer."""
        with self._lock:
            self._executor.release()
            self._allocator.reset()
            logger.info(f"Brain {self.name} shut down")


__all__ = ["BrainState", "DecisionReport", "DecisionStatus", "LearningBrain"]
