"""PyTorch stand-in for the external training engine.

:class:`TorchTrainerClient` fits the same ``mapminmax -> tansig -> purelin``
network the local forward pass evaluates. It keeps one fitted module per slot
so :meth:`TorchTrainerClient.simulate` can answer engine-side evaluations.
"""
from __future__ import annotations

from dataclasses import dataclass
import logging
import math
from typing import Callable, Dict, Optional, Sequence, Tuple

import torch
from torch import Tensor, nn
from tqdm.auto import tqdm

from .engine import TrainerClient, TrainingRequest
from .errors import TrainingFailure
from .parameters import TrainedParameters

logger = logging.getLogger(__name__)

# Steps whose effect the local forward pass cannot reproduce.
_UNSUPPORTED_STEPS = frozenset({"mapstd", "processpca"})


@dataclass(slots=True)
class TorchEngineConfig:
    """Optimisation settings for :class:`TorchTrainerClient`."""

    seed: Optional[int] = 0
    max_fail: int = 6
    min_grad: float = 1e-7
    goal: float = 0.0
    regularization: float = 1e-3
    history_size: int = 10
    rprop_learning_rate: float = 1e-2

    def __post_init__(self) -> None:
        if self.max_fail <= 0:
            raise ValueError("max_fail must be positive")
        if self.min_grad < 0:
            raise ValueError("min_grad must be non-negative")
        if self.goal < 0:
            raise ValueError("goal must be non-negative")
        if self.regularization < 0:
            raise ValueError("regularization must be non-negative")
        if self.history_size <= 0:
            raise ValueError("history_size must be positive")
        if self.rprop_learning_rate <= 0:
            raise ValueError("rprop_learning_rate must be positive")


def _minmax_scale(values: Tensor, lo: Tensor, hi: Tensor) -> Tensor:
    span = hi - lo
    degenerate = span == 0
    scaled = 2.0 * (values - lo) / torch.where(degenerate, torch.ones_like(span), span) - 1.0
    return torch.where(degenerate, torch.zeros_like(scaled), scaled)


class FittedNetwork(nn.Module):
    """Engine-side model: optional min-max scaling around a tansig hidden layer."""

    def __init__(self, input_size: int, hidden_size: int, generator: torch.Generator) -> None:
        super().__init__()
        self.hidden = nn.Linear(input_size, hidden_size, dtype=torch.float64)
        self.output = nn.Linear(hidden_size, 1, dtype=torch.float64)
        self._initialise(generator)
        self.register_buffer("input_min", torch.full((input_size,), -1.0, dtype=torch.float64))
        self.register_buffer("input_max", torch.ones(input_size, dtype=torch.float64))
        self.register_buffer("output_min", torch.tensor(-1.0, dtype=torch.float64))
        self.register_buffer("output_max", torch.tensor(1.0, dtype=torch.float64))
        self.normalizes = False

    @torch.no_grad()
    def _initialise(self, generator: torch.Generator) -> None:
        for layer in (self.hidden, self.output):
            fan_out, fan_in = layer.weight.shape
            limit = math.sqrt(6.0 / (fan_in + fan_out))
            layer.weight.copy_(
                (torch.rand(layer.weight.shape, generator=generator, dtype=torch.float64) * 2 - 1) * limit
            )
            layer.bias.fill_(0.0)

    def set_statistics(self, inputs: Tensor, targets: Tensor) -> None:
        self.input_min.copy_(inputs.min(dim=0).values)
        self.input_max.copy_(inputs.max(dim=0).values)
        self.output_min.copy_(targets.min())
        self.output_max.copy_(targets.max())
        self.normalizes = True

    def scale_inputs(self, inputs: Tensor) -> Tensor:
        if not self.normalizes:
            return inputs
        return _minmax_scale(inputs, self.input_min, self.input_max)

    def scale_targets(self, targets: Tensor) -> Tensor:
        if not self.normalizes:
            return targets
        return _minmax_scale(targets, self.output_min, self.output_max)

    def raw(self, scaled_inputs: Tensor) -> Tensor:
        return self.output(torch.tanh(self.hidden(scaled_inputs)))

    def forward(self, inputs: Tensor) -> Tensor:
        outputs = self.raw(self.scale_inputs(inputs))
        if self.normalizes:
            outputs = (self.output_max - self.output_min) * (outputs + 1.0) / 2.0 + self.output_min
        return outputs

    def export(self) -> TrainedParameters:
        stats = {}
        if self.normalizes:
            stats = {
                "input_min": self.input_min.detach().cpu().numpy(),
                "input_max": self.input_max.detach().cpu().numpy(),
                "output_min": float(self.output_min),
                "output_max": float(self.output_max),
            }
        return TrainedParameters(
            w1=self.hidden.weight.detach().cpu().numpy(),
            w2=self.output.weight.detach().cpu().numpy(),
            b1=self.hidden.bias.detach().cpu().numpy(),
            b2=float(self.output.bias.detach()[0]),
            **stats,
        )


def split_indices(
    rows: int, ratios: Tuple[float, float, float], generator: torch.Generator
) -> Tuple[Tensor, Tensor, Tensor]:
    """Randomly divide ``rows`` samples into train/validation/test indices."""

    total = sum(ratios)
    permutation = torch.randperm(rows, generator=generator)
    n_train = max(1, int(round(rows * ratios[0] / total)))
    n_val = min(rows - n_train, int(round(rows * ratios[1] / total)))
    return (
        permutation[:n_train],
        permutation[n_train : n_train + n_val],
        permutation[n_train + n_val :],
    )


class TorchTrainerClient(TrainerClient):
    """Train fitting networks with PyTorch and keep them addressable by slot."""

    def __init__(self, config: Optional[TorchEngineConfig] = None) -> None:
        self.config = config or TorchEngineConfig()
        self._networks: Dict[str, FittedNetwork] = {}

    def __contains__(self, slot: object) -> bool:
        return slot in self._networks

    def train(self, request: TrainingRequest) -> TrainedParameters:
        unsupported = _UNSUPPORTED_STEPS.intersection(request.processing_steps)
        if unsupported:
            raise TrainingFailure(
                f"Processing steps not supported by this engine: {', '.join(sorted(unsupported))}"
            )
        try:
            model = self._fit(request)
        except TrainingFailure:
            raise
        except (RuntimeError, ValueError) as exc:
            raise TrainingFailure(f"Training of {request.slot} failed: {exc}") from exc
        self._networks[request.slot] = model
        return model.export()

    def _fit(self, request: TrainingRequest) -> FittedNetwork:
        inputs = torch.from_numpy(request.inputs.copy())
        targets = torch.from_numpy(request.targets.copy()).reshape(-1, 1)
        if not (torch.isfinite(inputs).all() and torch.isfinite(targets).all()):
            raise TrainingFailure(f"Training data for {request.slot} contains non-finite values")

        generator = torch.Generator()
        if self.config.seed is not None:
            generator.manual_seed(self.config.seed)
        else:
            generator.seed()
        model = FittedNetwork(request.input_layer_size, request.hidden_layer_size, generator)
        if "mapminmax" in request.processing_steps:
            model.set_statistics(inputs, targets)
        x = model.scale_inputs(inputs)
        y = model.scale_targets(targets)

        train_idx, val_idx, _ = split_indices(
            request.rows, (request.train_ratio, request.val_ratio, request.test_ratio), generator
        )
        # Bayesian regularisation trains without validation stopping.
        use_validation = request.train_function != "trainbr" and len(val_idx) > 0
        penalty = self.config.regularization if request.train_function == "trainbr" else 0.0
        optimizer, step = self._make_optimizer(request.train_function, model)

        def loss_fn(indices: Tensor) -> Tensor:
            residual = model.raw(x[indices]) - y[indices]
            loss = residual.pow(2).mean()
            if penalty:
                loss = loss + penalty * sum(p.pow(2).sum() for p in model.parameters())
            return loss

        def closure() -> Tensor:
            optimizer.zero_grad()
            loss = loss_fn(train_idx)
            loss.backward()
            return loss

        best_val = math.inf
        best_state = {k: v.clone() for k, v in model.state_dict().items()}
        fails = 0
        progress = tqdm(
            range(request.epochs),
            desc=f"{request.slot} {request.train_function}",
            disable=not request.show_window,
            leave=False,
        )
        for epoch in progress:
            loss = float(step(closure))
            if not math.isfinite(loss):
                raise TrainingFailure(f"Training of {request.slot} diverged at epoch {epoch + 1}")
            grad_norm = math.sqrt(
                sum(float(p.grad.pow(2).sum()) for p in model.parameters() if p.grad is not None)
            )
            progress.set_postfix(loss=loss)
            logger.debug("%s epoch %d loss=%.6g grad=%.3g", request.slot, epoch + 1, loss, grad_norm)

            if use_validation:
                with torch.no_grad():
                    val_loss = float(loss_fn(val_idx))
                if val_loss < best_val:
                    best_val = val_loss
                    best_state = {k: v.clone() for k, v in model.state_dict().items()}
                    fails = 0
                else:
                    fails += 1
                    if fails >= self.config.max_fail:
                        logger.info("%s stopped on validation after %d epochs", request.slot, epoch + 1)
                        break
            if loss <= self.config.goal or grad_norm < self.config.min_grad:
                break
        progress.close()

        if use_validation:
            model.load_state_dict(best_state)
        return model

    def _make_optimizer(
        self, train_function: str, model: nn.Module
    ) -> Tuple[torch.optim.Optimizer, Callable[[Callable[[], Tensor]], Tensor]]:
        if train_function in ("trainlm", "trainbr"):
            optimizer = torch.optim.LBFGS(
                model.parameters(),
                max_iter=1,
                history_size=self.config.history_size,
                line_search_fn="strong_wolfe",
            )
        elif train_function == "trainscg":
            optimizer = torch.optim.Rprop(model.parameters(), lr=self.config.rprop_learning_rate)
        else:
            raise TrainingFailure(f"Unsupported train function: {train_function}")
        return optimizer, optimizer.step

    @torch.no_grad()
    def simulate(self, slot: str, x: Sequence[float]) -> float:
        model = self._networks.get(slot)
        if model is None:
            raise TrainingFailure(f"No trained network in slot {slot}")
        inputs = torch.as_tensor(x, dtype=torch.float64).reshape(1, -1)
        return float(model(inputs)[0, 0])

    def release(self, slot: str) -> None:
        self._networks.pop(slot, None)


__all__ = ["TorchEngineConfig", "TorchTrainerClient", "FittedNetwork", "split_indices"]
