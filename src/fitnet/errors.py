"""Exception hierarchy shared by the configuration, inference and engine layers."""
from __future__ import annotations


class FitnetError(Exception):
    """Base class for every error raised by :mod:`fitnet`."""


class DimensionMismatch(FitnetError, ValueError):
    """Input length, row count or parameter shape disagrees with the network."""


class InvalidConfigValue(FitnetError, ValueError):
    """A configuration value lies outside its documented range."""


class UnknownEnumValue(FitnetError, ValueError):
    """A symbolic value has no entry in the engine identifier table."""


class TrainingFailure(FitnetError, RuntimeError):
    """The training engine could not produce parameters."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class UseAfterDispose(FitnetError, RuntimeError):
    """An operation was attempted on a disposed network."""


__all__ = [
    "FitnetError",
    "DimensionMismatch",
    "InvalidConfigValue",
    "UnknownEnumValue",
    "TrainingFailure",
    "UseAfterDispose",
]
