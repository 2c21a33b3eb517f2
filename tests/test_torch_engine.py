import numpy as np
import pytest

torch = pytest.importorskip("torch")

from fitnet import EngineSession, Network, NetworkState, ProcessingStep, TrainFunction, TrainingFailure
from fitnet.engine import TrainingRequest
from fitnet.torch_engine import TorchEngineConfig, TorchTrainerClient, split_indices


def make_regression_dataset(rows: int = 40, seed: int = 0):
    rng = np.random.default_rng(seed)
    x = rng.uniform(-1.0, 2.0, size=(rows, 2))
    y = (np.sin(x[:, 0]) + 0.5 * x[:, 1] ** 2).reshape(-1, 1)
    return x, y


def make_network(client: TorchTrainerClient, hidden: int = 5, **overrides) -> Network:
    overrides.setdefault("show_window", False)
    overrides.setdefault("epochs", 60)
    return Network(EngineSession(client), 2, hidden, **overrides)


@pytest.mark.parametrize("function", list(TrainFunction))
def test_local_inference_matches_engine(function: TrainFunction) -> None:
    client = TorchTrainerClient(TorchEngineConfig(seed=3))
    net = make_network(client, train_function=function)
    x, y = make_regression_dataset()
    params = net.train(x, y)
    assert params.has_normalization
    assert params.w1.shape == (5, 2)
    for row in x[:10]:
        assert net.execute(row) == pytest.approx(net.execute(row, use_engine=True), abs=1e-9)


def test_local_inference_matches_engine_without_normalization() -> None:
    client = TorchTrainerClient()
    net = make_network(client, hidden=3)
    net.pipeline.remove(ProcessingStep.NORMALIZE_MINMAX)
    x, y = make_regression_dataset(seed=4)
    params = net.train(x, y)
    assert not params.has_normalization
    batch = net.execute_batch(x)
    for row, value in zip(x, batch):
        assert value == pytest.approx(client.simulate(net.slot, row), abs=1e-9)


def test_training_reduces_error() -> None:
    client = TorchTrainerClient(TorchEngineConfig(seed=0))
    net = make_network(client, hidden=8, epochs=200)
    x, y = make_regression_dataset(rows=60)
    baseline = float(np.mean((y[:, 0] - y.mean()) ** 2))
    net.train(x, y)
    error = float(np.mean((net.execute_batch(x) - y[:, 0]) ** 2))
    assert error < 0.5 * baseline


def test_seeded_training_is_reproducible() -> None:
    x, y = make_regression_dataset()
    first = make_network(TorchTrainerClient(TorchEngineConfig(seed=9))).train(x, y)
    second = make_network(TorchTrainerClient(TorchEngineConfig(seed=9))).train(x, y)
    assert np.array_equal(first.w1, second.w1)
    assert first.b2 == second.b2


def test_release_forgets_slot() -> None:
    client = TorchTrainerClient()
    net = make_network(client)
    net.train(*make_regression_dataset())
    slot = net.slot
    assert slot in client
    net.dispose()
    assert net.state is NetworkState.DISPOSED
    assert slot not in client
    with pytest.raises(TrainingFailure):
        client.simulate(slot, [0.0, 0.0])
    client.release(slot)


def test_unsupported_processing_step_fails_and_keeps_state() -> None:
    client = TorchTrainerClient()
    net = make_network(client)
    net.pipeline.add(ProcessingStep.EXTRACT_PCA)
    with pytest.raises(TrainingFailure):
        net.train(*make_regression_dataset())
    assert net.state is NetworkState.CREATED
    assert net.slot not in client


def test_non_finite_data_is_a_training_failure() -> None:
    client = TorchTrainerClient()
    net = make_network(client)
    x, y = make_regression_dataset()
    x[3, 1] = np.nan
    with pytest.raises(TrainingFailure):
        net.train(x, y)


def test_constant_input_column_uses_degenerate_policy() -> None:
    client = TorchTrainerClient()
    net = make_network(client)
    x, y = make_regression_dataset()
    x[:, 1] = 4.0
    params = net.train(x, y)
    assert params.input_min[1] == params.input_max[1] == 4.0
    probe = [0.5, 123.0]
    assert net.execute(probe) == pytest.approx(net.execute(probe, use_engine=True), abs=1e-9)


def test_split_indices_partitions_rows() -> None:
    generator = torch.Generator().manual_seed(0)
    train, val, test = split_indices(20, (0.7, 0.15, 0.15), generator)
    assert (len(train), len(val), len(test)) == (14, 3, 3)
    merged = torch.cat([train, val, test]).sort().values
    assert torch.equal(merged, torch.arange(20))
    train, val, test = split_indices(1, (0.75, 0.15, 0.15), generator)
    assert len(train) == 1 and len(val) == 0 and len(test) == 0


def test_engine_config_validation() -> None:
    with pytest.raises(ValueError):
        TorchEngineConfig(max_fail=0)
    with pytest.raises(ValueError):
        TorchEngineConfig(regularization=-1.0)


def test_unknown_train_function_in_request() -> None:
    client = TorchTrainerClient()
    net = make_network(client)
    x, y = make_regression_dataset()
    request = TrainingRequest.build(net.slot, net.config, net.pipeline, x, y)
    object.__setattr__(request, "train_function", "traingd")
    with pytest.raises(TrainingFailure):
        client.train(request)
