"""Typed request/response boundary to the external training engine."""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Sequence, Tuple

import numpy as np

from .config import NetworkConfig, engine_name
from .parameters import TrainedParameters
from .processing import PipelineSnapshot, ProcessingPipeline


def _frozen_matrix(values: Any) -> np.ndarray:
    matrix = np.array(values, dtype=np.float64)
    matrix.setflags(write=False)
    return matrix


@dataclass(frozen=True, slots=True)
class TrainingRequest:
    """Everything the engine needs to train one network.

    ``inputs`` holds one example per row (``rows x input_layer_size``) and
    ``targets`` is a ``rows x 1`` column. The train function and processing
    steps travel as engine identifiers, in pipeline order.
    """

    slot: str
    input_layer_size: int
    hidden_layer_size: int
    train_function: str
    processing_steps: Tuple[str, ...]
    train_ratio: float
    val_ratio: float
    test_ratio: float
    epochs: int
    show_window: bool
    use_parallel: bool
    inputs: np.ndarray
    targets: np.ndarray

    @classmethod
    def build(
        cls,
        slot: str,
        config: NetworkConfig,
        pipeline: ProcessingPipeline | PipelineSnapshot,
        inputs: Sequence[Sequence[float]],
        targets: Sequence[Sequence[float]],
    ) -> TrainingRequest:
        return cls(
            slot=slot,
            input_layer_size=config.input_layer_size,
            hidden_layer_size=config.hidden_layer_size,
            train_function=engine_name(config.train_function),
            processing_steps=tuple(pipeline.engine_names()),
            train_ratio=config.train_ratio,
            val_ratio=config.val_ratio,
            test_ratio=config.test_ratio,
            epochs=config.epochs,
            show_window=config.show_window,
            use_parallel=config.use_parallel,
            inputs=_frozen_matrix(inputs),
            targets=_frozen_matrix(targets),
        )

    @property
    def rows(self) -> int:
        return int(self.inputs.shape[0])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "slot": self.slot,
            "inputLayerSize": self.input_layer_size,
            "hiddenLayerSize": self.hidden_layer_size,
            "trainFunction": self.train_function,
            "processingSteps": list(self.processing_steps),
            "trainRatio": self.train_ratio,
            "valRatio": self.val_ratio,
            "testRatio": self.test_ratio,
            "epochs": self.epochs,
            "showWindow": self.show_window,
            "useParallel": self.use_parallel,
            "inputs": self.inputs.tolist(),
            "targets": self.targets.tolist(),
        }


class TrainerClient(ABC):
    """Collaborator that owns the actual training computation."""

    @abstractmethod
    def train(self, request: TrainingRequest) -> TrainedParameters:
        """Train the network in ``request.slot``.

        Implementations raise :class:`~fitnet.errors.TrainingFailure` when no
        parameters can be produced. Callers never retry automatically.
        """

    @abstractmethod
    def release(self, slot: str) -> None:
        """Free engine-side resources for ``slot``. Best effort, must not raise."""

    def simulate(self, slot: str, x: Sequence[float]) -> float:
        """Evaluate the trained network in ``slot`` on the engine side."""

        raise NotImplementedError(f"{type(self).__name__} cannot simulate on the engine")


__all__ = ["TrainingRequest", "TrainerClient"]
