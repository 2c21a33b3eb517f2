import math

import numpy as np
import pytest

from fitnet import DimensionMismatch, InvalidConfigValue, ProcessingPipeline, ProcessingStep, TrainedParameters
from fitnet.forward import mapminmax_apply, mapminmax_reverse, predict, predict_batch, tansig


def reference_tansig(z: float) -> float:
    return 2.0 / (1.0 + math.exp(-2.0 * z)) - 1.0


def reference_predict(params: TrainedParameters, normalize: bool, x) -> float:
    values = list(x)
    if normalize:
        values = [
            2.0 * (v - lo) / (hi - lo) - 1.0
            for v, lo, hi in zip(values, params.input_min, params.input_max)
        ]
    hidden = [
        reference_tansig(params.b1[k] + sum(values[i] * params.w1[k][i] for i in range(len(values))))
        for k in range(params.hidden_size)
    ]
    output = params.b2 + sum(h * params.w2[0][k] for k, h in enumerate(hidden))
    if normalize:
        output = (params.output_max - params.output_min) * (output + 1.0) / 2.0 + params.output_min
    return output


def pipeline(normalize: bool) -> ProcessingPipeline:
    steps = [ProcessingStep.REMOVE_CONSTANT_ROWS]
    if normalize:
        steps.append(ProcessingStep.NORMALIZE_MINMAX)
    return ProcessingPipeline(steps)


def make_random_parameters(seed: int, inputs: int = 3, hidden: int = 4) -> TrainedParameters:
    rng = np.random.default_rng(seed)
    input_min = rng.uniform(-2.0, 0.0, size=inputs)
    return TrainedParameters(
        w1=rng.normal(size=(hidden, inputs)),
        w2=rng.normal(size=(1, hidden)),
        b1=rng.normal(size=hidden),
        b2=float(rng.normal()),
        input_min=input_min,
        input_max=input_min + rng.uniform(0.5, 3.0, size=inputs),
        output_min=-3.0,
        output_max=7.0,
    )


def test_concrete_scenario_without_normalization() -> None:
    params = TrainedParameters(w1=[[1.0, 1.0]], w2=[[1.0]], b1=[0.0], b2=0.0)
    result = predict(params, pipeline(False), [1.0, 1.0])
    assert result == pytest.approx(2.0 / (1.0 + math.exp(-4.0)) - 1.0, abs=1e-12)
    assert result == pytest.approx(0.96403, abs=1e-5)


def test_concrete_scenario_with_normalization() -> None:
    params = TrainedParameters(
        w1=[[1.0, 1.0]],
        w2=[[1.0]],
        b1=[0.0],
        b2=0.0,
        input_min=[0.0, 0.0],
        input_max=[2.0, 2.0],
        output_min=0.0,
        output_max=10.0,
    )
    assert predict(params, pipeline(True), [1.0, 1.0]) == pytest.approx(5.0, abs=1e-12)


@pytest.mark.parametrize("seed", [0, 1, 2, 3])
@pytest.mark.parametrize("normalize", [True, False])
def test_matches_reference_formula(seed: int, normalize: bool) -> None:
    params = make_random_parameters(seed)
    rng = np.random.default_rng(seed + 100)
    for _ in range(5):
        x = rng.uniform(-3.0, 3.0, size=params.input_size)
        assert predict(params, pipeline(normalize), x) == pytest.approx(
            reference_predict(params, normalize, x), abs=1e-9
        )


def test_predict_is_pure() -> None:
    params = make_random_parameters(7)
    before = params.w1.copy()
    x = [0.2, -0.4, 1.3]
    first = predict(params, pipeline(True), x)
    second = predict(params, pipeline(True), x)
    assert first == second
    assert np.array_equal(params.w1, before)


def test_wrong_length_is_rejected_before_arithmetic() -> None:
    params = make_random_parameters(0)
    with pytest.raises(DimensionMismatch):
        predict(params, pipeline(True), [1.0, 2.0])
    with pytest.raises(DimensionMismatch):
        predict(params, pipeline(True), [1.0, 2.0, 3.0, 4.0])


def test_normalizing_pipeline_requires_statistics() -> None:
    params = TrainedParameters(w1=[[1.0, 1.0]], w2=[[1.0]], b1=[0.0], b2=0.0)
    with pytest.raises(InvalidConfigValue):
        predict(params, pipeline(True), [1.0, 1.0])


def test_normalization_boundaries() -> None:
    lo = np.array([-1.5, 0.0, 3.0])
    hi = np.array([2.5, 0.1, 9.0])
    assert np.array_equal(mapminmax_apply(lo, lo, hi), np.full(3, -1.0))
    assert np.array_equal(mapminmax_apply(hi, lo, hi), np.full(3, 1.0))
    assert float(mapminmax_reverse(-1.0, -4.0, 12.0)) == -4.0
    assert float(mapminmax_reverse(1.0, -4.0, 12.0)) == 12.0


def test_degenerate_dimension_maps_to_zero() -> None:
    lo = np.array([0.0, 5.0])
    hi = np.array([2.0, 5.0])
    scaled = mapminmax_apply(np.array([2.0, 17.0]), lo, hi)
    assert scaled[0] == 1.0
    assert scaled[1] == 0.0
    assert np.all(np.isfinite(scaled))


def test_tansig_matches_tanh_and_saturates() -> None:
    z = np.linspace(-5.0, 5.0, 41)
    assert np.allclose(tansig(z), np.tanh(z), atol=1e-12)
    assert tansig(np.array([-1000.0]))[0] == -1.0
    assert tansig(np.array([1000.0]))[0] == 1.0


def test_batch_matches_single_predictions() -> None:
    params = make_random_parameters(11)
    rng = np.random.default_rng(5)
    inputs = rng.uniform(-2.0, 2.0, size=(6, params.input_size))
    batch = predict_batch(params, pipeline(True), inputs)
    assert batch.shape == (6,)
    for row, value in zip(inputs, batch):
        assert value == pytest.approx(predict(params, pipeline(True), row), abs=1e-12)
    with pytest.raises(DimensionMismatch):
        predict_batch(params, pipeline(True), inputs[:, :2])
