"""Engine-trained fitting networks with local, engine-compatible inference.

Training of a one-hidden-layer network is delegated to a
:class:`~fitnet.engine.TrainerClient`; prediction replays the engine's forward
pass locally from the returned :class:`~fitnet.parameters.TrainedParameters`.
The PyTorch-backed engine lives in :mod:`fitnet.torch_engine` and is imported
on demand.
"""

from .config import NetworkConfig, TrainFunction, engine_name, load_config
from .engine import TrainerClient, TrainingRequest
from .errors import (
    DimensionMismatch,
    FitnetError,
    InvalidConfigValue,
    TrainingFailure,
    UnknownEnumValue,
    UseAfterDispose,
)
from .forward import predict, predict_batch, tansig
from .network import Network, NetworkState
from .parameters import TrainedParameters, load_parameters, save_parameters
from .processing import PipelineSnapshot, ProcessingPipeline, ProcessingStep
from .session import EngineSession

__all__ = [
    "NetworkConfig",
    "TrainFunction",
    "engine_name",
    "load_config",
    "TrainerClient",
    "TrainingRequest",
    "FitnetError",
    "DimensionMismatch",
    "InvalidConfigValue",
    "TrainingFailure",
    "UnknownEnumValue",
    "UseAfterDispose",
    "predict",
    "predict_batch",
    "tansig",
    "Network",
    "NetworkState",
    "TrainedParameters",
    "load_parameters",
    "save_parameters",
    "PipelineSnapshot",
    "ProcessingPipeline",
    "ProcessingStep",
    "EngineSession",
]
