"""Immutable snapshot of the weights, biases and normalization statistics of a trained network."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import numpy as np

from .config import NetworkConfig
from .errors import DimensionMismatch

_STAT_FIELDS = ("input_min", "input_max", "output_min", "output_max")


def _frozen_array(value: Any, name: str, ndim: int) -> np.ndarray:
    array = np.array(value, dtype=np.float64)
    if array.ndim != ndim:
        raise DimensionMismatch(f"{name} must be {ndim}-dimensional, got shape {array.shape}")
    array.setflags(write=False)
    return array


def _scalar(value: Any, name: str) -> float:
    array = np.asarray(value, dtype=np.float64)
    if array.size != 1:
        raise DimensionMismatch(f"{name} must be a scalar, got shape {array.shape}")
    return float(array.reshape(-1)[0])


@dataclass(frozen=True, slots=True, eq=False)
class TrainedParameters:
    """Parameters produced by exactly one successful training run.

    ``w1`` has shape ``(hidden, input)``, ``w2`` shape ``(1, hidden)``, ``b1``
    shape ``(hidden,)`` and ``b2`` is a float. The min-max statistics are either
    all present or all absent. Arrays are copied on construction and marked
    read-only, so a snapshot can be shared between threads.
    """

    w1: np.ndarray
    w2: np.ndarray
    b1: np.ndarray
    b2: float
    input_min: Optional[np.ndarray] = None
    input_max: Optional[np.ndarray] = None
    output_min: Optional[float] = None
    output_max: Optional[float] = None

    def __post_init__(self) -> None:
        w1 = _frozen_array(self.w1, "w1", 2)
        hidden, inputs = w1.shape
        if hidden == 0 or inputs == 0:
            raise DimensionMismatch(f"w1 must be non-empty, got shape {w1.shape}")
        w2 = _frozen_array(np.reshape(self.w2, (1, -1)), "w2", 2)
        b1 = _frozen_array(np.ravel(self.b1), "b1", 1)
        if w2.shape != (1, hidden):
            raise DimensionMismatch(f"w2 must have shape (1, {hidden}), got {w2.shape}")
        if b1.shape != (hidden,):
            raise DimensionMismatch(f"b1 must have length {hidden}, got {b1.shape[0]}")
        object.__setattr__(self, "w1", w1)
        object.__setattr__(self, "w2", w2)
        object.__setattr__(self, "b1", b1)
        object.__setattr__(self, "b2", _scalar(self.b2, "b2"))

        present = [getattr(self, name) is not None for name in _STAT_FIELDS]
        if any(present) and not all(present):
            raise DimensionMismatch("normalization statistics must be all present or all absent")
        if all(present):
            for name in ("input_min", "input_max"):
                array = _frozen_array(np.ravel(getattr(self, name)), name, 1)
                if array.shape != (inputs,):
                    raise DimensionMismatch(f"{name} must have length {inputs}, got {array.shape[0]}")
                object.__setattr__(self, name, array)
            for name in ("output_min", "output_max"):
                object.__setattr__(self, name, _scalar(getattr(self, name), name))

    @property
    def input_size(self) -> int:
        return int(self.w1.shape[1])

    @property
    def hidden_size(self) -> int:
        return int(self.w1.shape[0])

    @property
    def has_normalization(self) -> bool:
        return self.input_min is not None

    def check_against(self, config: NetworkConfig) -> None:
        """Raise :class:`DimensionMismatch` unless the shapes agree with ``config``."""

        expected = (config.hidden_layer_size, config.input_layer_size)
        if self.w1.shape != expected:
            raise DimensionMismatch(
                f"parameters describe a {self.input_size}-{self.hidden_size}-1 network, "
                f"configuration expects {expected[1]}-{expected[0]}-1"
            )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "w1": self.w1.tolist(),
            "w2": self.w2.tolist(),
            "b1": self.b1.tolist(),
            "b2": self.b2,
        }
        if self.has_normalization:
            data["input_min"] = self.input_min.tolist()
            data["input_max"] = self.input_max.tolist()
            data["output_min"] = self.output_min
            data["output_max"] = self.output_max
        return data


def save_parameters(params: TrainedParameters, path: str | Path) -> Path:
    """Write ``params`` to an ``.npz`` archive and return its path."""

    target = Path(path)
    arrays: Dict[str, np.ndarray] = {
        "w1": params.w1,
        "w2": params.w2,
        "b1": params.b1,
        "b2": np.array(params.b2),
    }
    if params.has_normalization:
        arrays["input_min"] = params.input_min
        arrays["input_max"] = params.input_max
        arrays["output_min"] = np.array(params.output_min)
        arrays["output_max"] = np.array(params.output_max)
    with target.open("wb") as handle:
        np.savez(handle, **arrays)
    return target


def load_parameters(path: str | Path) -> TrainedParameters:
    """Load parameters previously written by :func:`save_parameters`."""

    source = Path(path)
    if not source.exists():
        raise FileNotFoundError(f"Parameter archive not found: {source}")
    with np.load(source, allow_pickle=False) as archive:
        values = {name: archive[name] for name in archive.files}
    return TrainedParameters(**values)


__all__ = ["TrainedParameters", "save_parameters", "load_parameters"]
