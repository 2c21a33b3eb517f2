"""Configuration dataclasses for a single function-fitting network."""
from __future__ import annotations

from dataclasses import dataclass, fields
from enum import Enum
import json
from pathlib import Path
from typing import Any, Dict, Mapping

from .errors import InvalidConfigValue, UnknownEnumValue


class TrainFunction(Enum):
    """Training algorithm requested from the engine."""

    LM = "LM"
    BR = "BR"
    SCG = "SCG"

    @classmethod
    def parse(cls, value: str | TrainFunction) -> TrainFunction:
        """Accept a member, its name (``"lm"``) or its engine identifier (``"trainlm"``)."""

        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            text = value.strip()
            if text.upper() in cls.__members__:
                return cls[text.upper()]
            for member, name in _TRAIN_FUNCTION_NAMES.items():
                if name == text.lower():
                    return member
        raise UnknownEnumValue(f"Unknown train function: {value!r}")


_TRAIN_FUNCTION_NAMES: Dict[TrainFunction, str] = {
    TrainFunction.LM: "trainlm",
    TrainFunction.BR: "trainbr",
    TrainFunction.SCG: "trainscg",
}


def engine_name(function: TrainFunction) -> str:
    """Return the engine's identifier for ``function``."""

    try:
        return _TRAIN_FUNCTION_NAMES[function]
    except KeyError:
        raise UnknownEnumValue(f"Train function not defined: {function!r}") from None


_FIXED_FIELDS = frozenset({"input_layer_size", "hidden_layer_size"})
_RATIO_FIELDS = frozenset({"train_ratio", "val_ratio", "test_ratio"})
_BOOL_FIELDS = frozenset({"show_window", "use_parallel"})


def _positive_int(name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidConfigValue(f"{name} must be an integer, got {value!r}")
    if value <= 0:
        raise InvalidConfigValue(f"{name} must be positive, got {value}")
    return value


def _validate(name: str, value: Any) -> Any:
    if name in _FIXED_FIELDS or name == "epochs":
        return _positive_int(name, value)
    if name in _RATIO_FIELDS:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise InvalidConfigValue(f"{name} must be a number, got {value!r}")
        if not 0.0 < value < 1.0:
            raise InvalidConfigValue(f"{name} must lie within (0, 1), got {value}")
        return float(value)
    if name in _BOOL_FIELDS:
        if not isinstance(value, bool):
            raise InvalidConfigValue(f"{name} must be a boolean, got {value!r}")
        return value
    if name == "train_function":
        return TrainFunction.parse(value)
    raise InvalidConfigValue(f"Unknown configuration field: {name}")


@dataclass(slots=True)
class NetworkConfig:
    """Hyperparameters of a one-hidden-layer fitting network.

    Parameters
    ----------
    input_layer_size:
        Number of features in each input row. Fixed once the configuration
        is created.
    hidden_layer_size:
        Number of ``tansig`` units in the hidden layer. Fixed once the
        configuration is created.
    train_function:
        Algorithm the engine trains with. Strings such as ``"trainbr"`` are
        parsed into :class:`TrainFunction`.
    train_ratio, val_ratio, test_ratio:
        Relative share of samples used for training, validation and testing.
        Each must lie strictly inside ``(0, 1)``.
    epochs:
        Maximum number of training iterations.
    show_window:
        Ask the engine to display training progress.
    use_parallel:
        Hint forwarded to the engine. It has no effect on local inference.

    Every assignment is validated; a rejected value raises
    :class:`~fitnet.errors.InvalidConfigValue` and the previous value stays in
    place. Assignment never talks to the engine.
    """

    input_layer_size: int
    hidden_layer_size: int
    train_function: TrainFunction = TrainFunction.LM
    train_ratio: float = 0.75
    val_ratio: float = 0.15
    test_ratio: float = 0.15
    epochs: int = 1000
    show_window: bool = True
    use_parallel: bool = False

    def __setattr__(self, name: str, value: Any) -> None:
        if name in _FIXED_FIELDS and _is_set(self, name):
            raise InvalidConfigValue(f"{name} is fixed at construction")
        object.__setattr__(self, name, _validate(name, value))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> NetworkConfig:
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise InvalidConfigValue(f"Unknown configuration keys: {', '.join(unknown)}")
        return cls(**dict(data))

    def to_dict(self) -> Dict[str, Any]:
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data["train_function"] = self.train_function.name
        return data


def _is_set(config: NetworkConfig, name: str) -> bool:
    try:
        getattr(config, name)
    except AttributeError:
        return False
    return True


def load_config(path: str | Path) -> NetworkConfig:
    """Load a :class:`NetworkConfig` from a JSON file."""

    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")
    with config_path.open("r", encoding="utf-8") as handle:
        data = json.load(handle)
    if not isinstance(data, dict):
        raise InvalidConfigValue(f"Config file must hold a JSON object: {config_path}")
    return NetworkConfig.from_dict(data)


__all__ = ["TrainFunction", "NetworkConfig", "engine_name", "load_config"]
