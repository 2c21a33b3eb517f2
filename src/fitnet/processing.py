"""Ordered pre/post-processing steps mirrored into each training request."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from .errors import UnknownEnumValue


class ProcessingStep(Enum):
    """Processing functions applied to both inputs and targets by the engine."""

    NORMALIZE_MINMAX = "NORMALIZE_MINMAX"
    REMOVE_CONSTANT_ROWS = "REMOVE_CONSTANT_ROWS"
    STANDARDIZE = "STANDARDIZE"
    EXTRACT_PCA = "EXTRACT_PCA"
    FIX_UNKNOWNS = "FIX_UNKNOWNS"


_STEP_NAMES: Dict[ProcessingStep, str] = {
    ProcessingStep.NORMALIZE_MINMAX: "mapminmax",
    ProcessingStep.REMOVE_CONSTANT_ROWS: "removeconstantrows",
    ProcessingStep.STANDARDIZE: "mapstd",
    ProcessingStep.EXTRACT_PCA: "processpca",
    ProcessingStep.FIX_UNKNOWNS: "fixunknowns",
}

DEFAULT_STEPS: Tuple[ProcessingStep, ...] = (
    ProcessingStep.REMOVE_CONSTANT_ROWS,
    ProcessingStep.NORMALIZE_MINMAX,
)


def step_name(step: ProcessingStep) -> str:
    """Return the engine's identifier for ``step``."""

    try:
        return _STEP_NAMES[step]
    except KeyError:
        raise UnknownEnumValue(f"Processing function not defined: {step!r}") from None


@dataclass(frozen=True, slots=True)
class PipelineSnapshot:
    """Immutable record of the steps a set of parameters was trained under."""

    steps: Tuple[ProcessingStep, ...] = ()

    def __contains__(self, step: object) -> bool:
        return step in self.steps

    def __iter__(self) -> Iterator[ProcessingStep]:
        return iter(self.steps)

    def __len__(self) -> int:
        return len(self.steps)

    @property
    def normalizes(self) -> bool:
        return ProcessingStep.NORMALIZE_MINMAX in self.steps

    def engine_names(self) -> List[str]:
        return [step_name(step) for step in self.steps]


class ProcessingPipeline:
    """Insertion-ordered set of :class:`ProcessingStep` values.

    Only ``NORMALIZE_MINMAX`` changes local inference; the other steps are
    forwarded to the engine and affect training alone.
    """

    def __init__(self, steps: Optional[Iterable[ProcessingStep]] = None) -> None:
        self._steps: Dict[ProcessingStep, None] = {}
        for step in DEFAULT_STEPS if steps is None else steps:
            self.add(step)

    def add(self, step: ProcessingStep) -> bool:
        """Append ``step`` unless present. Returns whether the pipeline changed."""

        if not isinstance(step, ProcessingStep):
            raise UnknownEnumValue(f"Not a processing step: {step!r}")
        if step in self._steps:
            return False
        self._steps[step] = None
        return True

    def remove(self, step: ProcessingStep) -> bool:
        """Drop ``step`` if present. Returns whether the pipeline changed."""

        if step not in self._steps:
            return False
        del self._steps[step]
        return True

    def clear(self) -> None:
        self._steps.clear()

    def copy(self) -> ProcessingPipeline:
        return ProcessingPipeline(self._steps)

    def snapshot(self) -> PipelineSnapshot:
        return PipelineSnapshot(tuple(self._steps))

    @property
    def normalizes(self) -> bool:
        return ProcessingStep.NORMALIZE_MINMAX in self._steps

    def engine_names(self) -> List[str]:
        """Serialized form sent with the training request, recomputed on each call."""

        return [step_name(step) for step in self._steps]

    def __contains__(self, step: object) -> bool:
        return step in self._steps

    def __iter__(self) -> Iterator[ProcessingStep]:
        return iter(list(self._steps))

    def __len__(self) -> int:
        return len(self._steps)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ProcessingPipeline):
            return list(self._steps) == list(other._steps)
        return NotImplemented

    def __repr__(self) -> str:
        names = ", ".join(step.name for step in self._steps)
        return f"ProcessingPipeline([{names}])"


__all__ = [
    "ProcessingStep",
    "ProcessingPipeline",
    "PipelineSnapshot",
    "DEFAULT_STEPS",
    "step_name",
]
