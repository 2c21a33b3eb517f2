"""Engine session owning the trainer client and the network slot counter."""
from __future__ import annotations

import itertools
import logging
from typing import Iterator

from .engine import TrainerClient

logger = logging.getLogger(__name__)


class EngineSession:
    """One connection to the training engine shared by many networks.

    Each network receives a distinct slot name (``net0``, ``net1``, ...). Names
    are never handed out twice, even after a network is disposed, because the
    engine may still hold state that refers to an old slot.
    """

    def __init__(self, client: TrainerClient, *, prefix: str = "net") -> None:
        self.client = client
        self.prefix = prefix
        self._counter: Iterator[int] = itertools.count()
        self._allocated = 0

    @property
    def allocated(self) -> int:
        """Number of slots handed out so far."""

        return self._allocated

    def allocate_slot(self) -> str:
        slot = f"{self.prefix}{next(self._counter)}"
        self._allocated += 1
        logger.debug("Allocated engine slot %s", slot)
        return slot

    def release(self, slot: str) -> None:
        """Fire-and-forget release of ``slot``; failures are logged, not raised."""

        try:
            self.client.release(slot)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to release engine slot %s: %s", slot, exc)
        else:
            logger.debug("Released engine slot %s", slot)


__all__ = ["EngineSession"]
