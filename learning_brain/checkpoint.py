"""PyTorch checkpoints for PolicyNetwork models served by the torch backend."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import torch

from .network import NetworkConfig, PolicyNetwork

logger = logging.getLogger(__name__)


@dataclass
class CheckpointData:
    """Contents of a saved PolicyNetwork.

    Attributes:
        step: Step the weights were produced at (0 when unknown).
        model_state: PolicyNetwork state_dict.
        config: NetworkConfig as a dictionary, enough to rebuild the network.
        metrics: Free-form metrics stored by the producer, or None.
    """

    step: int
    model_state: dict[str, Any]
    config: dict[str, Any]
    metrics: dict[str, Any] | None


def save_checkpoint(
    network: PolicyNetwork,
    path: str | Path,
    *,
    step: int = 0,
    metrics: dict[str, Any] | None = None,
) -> Path:
    """Save a policy network with its configuration.

    Args:
        network: Network to save.
        path: File path (``.pt`` is appended if missing).
        step: Training step for versioning.
        metrics: Optional metrics to store alongside the weights.

    Returns:
        Path where the checkpoint was saved.
    """
    path = Path(path)
    if path.suffix != ".pt":
        path = path.with_suffix(".pt")
    path.parent.mkdir(parents=True, exist_ok=True)

    checkpoint: dict[str, Any] = {
        "step": step,
        "model_state_dict": network.state_dict(),
        "config": network.config.to_dict(),
    }
    if metrics is not None:
        checkpoint["metrics"] = metrics

    torch.save(checkpoint, path, pickle_protocol=4)
    logger.info(f"Saved checkpoint at step {step} to {path}")
    return path


def load_checkpoint(path: str | Path, map_location: torch.device | str = "cpu") -> CheckpointData:
    """Read a checkpoint file without building a network.

    Raises:
        FileNotFoundError: If the checkpoint file does not exist.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Checkpoint not found: {path}")

    checkpoint = torch.load(path, map_location=map_location, weights_only=False)
    return CheckpointData(
        step=checkpoint.get("step", 0),
        model_state=checkpoint["model_state_dict"],
        config=checkpoint.get("config", {}),
        metrics=checkpoint.get("metrics"),
    )


def load_network_from_checkpoint(
    path: str | Path,
    *,
    device: torch.device | str = "cpu",
    strict: bool = True,
) -> tuple[PolicyNetwork, NetworkConfig, int]:
    """Build a PolicyNetwork from a checkpoint.

    Returns:
        Tuple of (network, config, step), network on ``device`` in eval mode.
    """
    data = load_checkpoint(path)
    config = NetworkConfig.from_dict(data.config) if data.config else NetworkConfig()
    network = PolicyNetwork(config)
    network.load_state_dict(data.model_state, strict=strict)
    network = network.to(device)
    network.eval()

    logger.info(f"Loaded checkpoint from step {data.step} at {path}")
    return network, config, data.step


__all__ = [
    "CheckpointData",
    "load_checkpoint",
    "load_network_from_checkpoint",
    "save_checkpoint",
]
