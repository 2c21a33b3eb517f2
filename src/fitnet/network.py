"""Function-fitting network trained by an engine and evaluated locally."""
from __future__ import annotations

from enum import Enum
import logging
from typing import Any, Optional, Sequence

import numpy as np

from .config import NetworkConfig
from .engine import TrainingRequest
from .errors import DimensionMismatch, TrainingFailure, UseAfterDispose
from .forward import predict, predict_batch
from .parameters import TrainedParameters
from .processing import PipelineSnapshot, ProcessingPipeline
from .session import EngineSession

logger = logging.getLogger(__name__)


class NetworkState(Enum):
    CREATED = "created"
    TRAINED = "trained"
    DISPOSED = "disposed"


def _as_matrix(values: Any, name: str) -> np.ndarray:
    matrix = np.asarray(values, dtype=np.float64)
    if matrix.ndim == 1:
        matrix = matrix.reshape(-1, 1)
    if matrix.ndim != 2:
        raise DimensionMismatch(f"{name} must be a 2-D matrix, got shape {matrix.shape}")
    return matrix


class Network:
    """A one-hidden-layer fitting network you can configure, train and execute.

    Training is delegated to the session's :class:`~fitnet.engine.TrainerClient`.
    Execution reproduces the engine's forward pass locally from the returned
    :class:`~fitnet.parameters.TrainedParameters`, so repeated predictions never
    go back to the engine.

    The network moves through ``CREATED -> TRAINED -> DISPOSED``. Executing a
    network that was never trained returns ``0.0``.
    """

    def __init__(
        self,
        session: EngineSession,
        input_layer_size: int,
        hidden_layer_size: int,
        **config_overrides: Any,
    ) -> None:
        self.config = NetworkConfig(input_layer_size, hidden_layer_size, **config_overrides)
        self.pipeline = ProcessingPipeline()
        self._session = session
        self._slot = session.allocate_slot()
        self._state = NetworkState.CREATED
        self._parameters: Optional[TrainedParameters] = None
        self._trained_pipeline: Optional[PipelineSnapshot] = None
        logger.info(
            "Created network %s (%d-%d-1)", self._slot, input_layer_size, hidden_layer_size
        )

    @property
    def slot(self) -> str:
        return self._slot

    @property
    def state(self) -> NetworkState:
        return self._state

    @property
    def parameters(self) -> Optional[TrainedParameters]:
        """Current parameter snapshot, ``None`` until the first successful training."""

        return self._parameters

    @property
    def trained_pipeline(self) -> Optional[PipelineSnapshot]:
        """Processing steps the current parameters were trained with."""

        return self._trained_pipeline

    @property
    def input_layer_size(self) -> int:
        return self.config.input_layer_size

    @property
    def hidden_layer_size(self) -> int:
        return self.config.hidden_layer_size

    def _ensure_alive(self) -> None:
        if self._state is NetworkState.DISPOSED:
            raise UseAfterDispose(f"Network {self._slot} has been disposed")

    def train(self, inputs: Sequence[Sequence[float]], targets: Sequence[Any]) -> TrainedParameters:
        """Train on ``inputs`` (one example per row) against ``targets``.

        Dimension checks run before the engine is contacted. If the engine
        fails, the previous parameters and state are kept.
        """

        self._ensure_alive()
        x = _as_matrix(inputs, "inputs")
        y = _as_matrix(targets, "targets")
        if x.shape[1] != self.config.input_layer_size:
            raise DimensionMismatch(
                f"Inputs have {x.shape[1]} columns, network expects {self.config.input_layer_size}"
            )
        if x.shape[0] != y.shape[0]:
            raise DimensionMismatch(
                f"Number of inputs ({x.shape[0]}) doesn't match number of targets ({y.shape[0]})"
            )
        if y.shape[1] != 1:
            raise DimensionMismatch(f"Targets must be a single column, got {y.shape[1]}")

        snapshot = self.pipeline.snapshot()
        request = TrainingRequest.build(self._slot, self.config, snapshot, x, y)
        logger.info(
            "Training network %s with %s on %d examples", self._slot, request.train_function, request.rows
        )
        params = self._session.client.train(request)
        try:
            params.check_against(self.config)
        except DimensionMismatch as exc:
            raise TrainingFailure(f"Engine returned mismatched parameters: {exc}") from exc
        if snapshot.normalizes and not params.has_normalization:
            raise TrainingFailure("Engine returned no normalization statistics for a mapminmax pipeline")

        self._parameters = params
        self._trained_pipeline = snapshot
        self._state = NetworkState.TRAINED
        logger.info("Network %s trained", self._slot)
        return params

    def execute(self, x: Sequence[float], *, use_engine: bool = False) -> float:
        """Predict the output for a single example.

        With ``use_engine=True`` the engine evaluates the network instead of the
        local forward pass, which is much slower.
        """

        self._ensure_alive()
        vector = np.asarray(x, dtype=np.float64).reshape(-1)
        if vector.shape[0] != self.config.input_layer_size:
            raise DimensionMismatch(
                f"Input has {vector.shape[0]} values, network expects {self.config.input_layer_size}"
            )
        if self._parameters is None:
            return 0.0
        if use_engine:
            return float(self._session.client.simulate(self._slot, vector))
        return predict(self._parameters, self._trained_pipeline, vector)

    def execute_batch(self, inputs: Sequence[Sequence[float]]) -> np.ndarray:
        """Predict one output per row of ``inputs``."""

        self._ensure_alive()
        x = np.asarray(inputs, dtype=np.float64)
        if x.ndim != 2 or x.shape[1] != self.config.input_layer_size:
            raise DimensionMismatch(
                f"Inputs must have shape (rows, {self.config.input_layer_size}), got {x.shape}"
            )
        if self._parameters is None:
            return np.zeros(x.shape[0], dtype=np.float64)
        return predict_batch(self._parameters, self._trained_pipeline, x)

    def dispose(self) -> None:
        """Discard the parameters and release the engine slot."""

        self._ensure_alive()
        self._parameters = None
        self._trained_pipeline = None
        self._state = NetworkState.DISPOSED
        self._session.release(self._slot)
        logger.info("Disposed network %s", self._slot)

    def __repr__(self) -> str:
        return (
            f"Network(slot={self._slot!r}, size={self.input_layer_size}-{self.hidden_layer_size}-1, "
            f"state={self._state.value})"
        )


__all__ = ["Network", "NetworkState"]
