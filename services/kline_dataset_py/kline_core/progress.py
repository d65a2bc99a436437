"""Progress notifications for long-running fetch and enrich calls."""
from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from .settings import get_logger

logger = get_logger("kline_progress")


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values (round() would go to even)."""
    return int(math.floor(value + 0.5))


class ProgressStatus(str, Enum):
    ONGOING = "ongoing"
    ENDED = "ended"


@dataclass(frozen=True)
class ProgressEvent:
    status: ProgressStatus
    progress: int
    message: str = ""


ProgressCallback = Callable[[ProgressEvent], None]


class ProgressReporter:
    """Fire-and-forget wrapper around an optional consumer callback.

    A consumer that raises is logged and otherwise ignored; the pipeline
    never waits on or fails because of its listener.
    """

    def __init__(self, callback: Optional[ProgressCallback] = None, source: str = ""):
        self._callback = callback
        self._source = source

    def _emit(self, event: ProgressEvent) -> None:
        logger.debug("%s progress %s %d%% %s", self._source, event.status.value, event.progress, event.message)
        if self._callback is None:
            return
        try:
            self._callback(event)
        except Exception:
            logger.exception("Progress consumer raised; event dropped")

    def ongoing(self, progress: int, message: str = "") -> None:
        self._emit(ProgressEvent(ProgressStatus.ONGOING, int(progress), message))

    def ended(self, message: str) -> None:
        self._emit(ProgressEvent(ProgressStatus.ENDED, 100, message))
