"""Local reproduction of the engine's forward pass for a fitted network.

The network is ``mapminmax -> tansig hidden layer -> purelin output ->
reverse mapminmax``, which is what the engine evaluates for a function-fitting
network with one hidden layer. Every function here is pure: parameters are
read-only snapshots and nothing is cached, so calls may run concurrently on
the same :class:`~fitnet.parameters.TrainedParameters`.
"""
from __future__ import annotations

from typing import Sequence, Union

import numpy as np

from .errors import DimensionMismatch, InvalidConfigValue
from .parameters import TrainedParameters
from .processing import PipelineSnapshot, ProcessingPipeline

Pipeline = Union[ProcessingPipeline, PipelineSnapshot]


def tansig(z: np.ndarray) -> np.ndarray:
    """Hyperbolic tangent sigmoid, ``2 / (1 + exp(-2z)) - 1``.

    The literal formula is kept instead of ``np.tanh`` so results follow the
    engine's own arithmetic. Overflow of ``exp`` for very negative ``z``
    saturates cleanly at ``-1``.
    """

    with np.errstate(over="ignore"):
        return 2.0 / (1.0 + np.exp(-2.0 * np.asarray(z, dtype=np.float64))) - 1.0


def purelin(z: np.ndarray) -> np.ndarray:
    return np.asarray(z, dtype=np.float64)


def mapminmax_apply(x: np.ndarray, lo: np.ndarray, hi: np.ndarray) -> np.ndarray:
    """Rescale ``x`` from ``[lo, hi]`` to ``[-1, 1]`` per dimension.

    Dimensions that were constant in the training set (``hi == lo``) map to
    ``0.0`` whatever the input.
    """

    x = np.asarray(x, dtype=np.float64)
    span = hi - lo
    degenerate = span == 0.0
    safe_span = np.where(degenerate, 1.0, span)
    scaled = 2.0 * (x - lo) / safe_span - 1.0
    return np.where(degenerate, 0.0, scaled)


def mapminmax_reverse(y: np.ndarray | float, lo: float, hi: float) -> np.ndarray:
    """Map ``y`` from ``[-1, 1]`` back to ``[lo, hi]``."""

    return (hi - lo) * (np.asarray(y, dtype=np.float64) + 1.0) / 2.0 + lo


def _check_normalization(params: TrainedParameters, pipeline: Pipeline) -> bool:
    normalizes = pipeline.normalizes
    if normalizes and not params.has_normalization:
        raise InvalidConfigValue(
            "pipeline enables mapminmax but the parameters carry no normalization statistics"
        )
    return normalizes


def predict(params: TrainedParameters, pipeline: Pipeline, x: Sequence[float]) -> float:
    """Evaluate the network on a single input vector."""

    vector = np.asarray(x, dtype=np.float64).reshape(-1)
    if vector.shape[0] != params.input_size:
        raise DimensionMismatch(
            f"Input has {vector.shape[0]} values, network expects {params.input_size}"
        )
    normalizes = _check_normalization(params, pipeline)

    if normalizes:
        vector = mapminmax_apply(vector, params.input_min, params.input_max)
    hidden = tansig(params.b1 + params.w1 @ vector)
    output = purelin(params.b2 + params.w2[0] @ hidden)
    if normalizes:
        output = mapminmax_reverse(output, params.output_min, params.output_max)
    return float(output)


def predict_batch(
    params: TrainedParameters, pipeline: Pipeline, inputs: Sequence[Sequence[float]]
) -> np.ndarray:
    """Evaluate the network on every row of ``inputs``; returns shape ``(rows,)``."""

    matrix = np.asarray(inputs, dtype=np.float64)
    if matrix.ndim != 2 or matrix.shape[1] != params.input_size:
        raise DimensionMismatch(
            f"Inputs must have shape (rows, {params.input_size}), got {matrix.shape}"
        )
    normalizes = _check_normalization(params, pipeline)

    if normalizes:
        matrix = mapminmax_apply(matrix, params.input_min, params.input_max)
    hidden = tansig(matrix @ params.w1.T + params.b1)
    outputs = purelin(hidden @ params.w2[0] + params.b2)
    if normalizes:
        outputs = mapminmax_reverse(outputs, params.output_min, params.output_max)
    return outputs


__all__ = [
    "tansig",
    "purelin",
    "mapminmax_apply",
    "mapminmax_reverse",
    "predict",
    "predict_batch",
]
