"""
Progress accounting: stage bands, rescaling and ETA.
"""

import logging
from collections.abc import Callable

from .models import Job, ProgressEvent, Stage

logger = logging.getLogger("vtranslate")

ProgressObserver = Callable[[ProgressEvent], None]

# Overall percentages at which each stage starts, plus codec band widths.
EXTRACT_START, EXTRACT_WIDTH = 0, 20
TRANSCRIBE_START = 25
TRANSLATE_START = 45
SYNTHESIZE_START = 60
REMUX_START, REMUX_WIDTH = 80, 15
UPLOAD_START = 95
DONE = 100

STAGE_ENTRY = {
    Stage.EXTRACTING: EXTRACT_START,
    Stage.TRANSCRIBING: TRANSCRIBE_START,
    Stage.TRANSLATING: TRANSLATE_START,
    Stage.SYNTHESIZING: SYNTHESIZE_START,
    Stage.REMUXING: REMUX_START,
    Stage.UPLOADING: UPLOAD_START,
    Stage.COMPLETED: DONE,
}


def rescale(band_start: int, band_width: int, inner: float) -> int:
    """Map an inner 0..100 progress value into ``[band_start, band_start + band_width]``."""
    inner = min(100.0, max(0.0, float(inner)))
    return int(band_start + (inner / 100.0) * band_width)


def estimate_eta(elapsed: float, overall: float) -> int | None:
    """
    Seconds remaining, extrapolated linearly from elapsed time.

    Returns None while nothing is known (overall <= 0) and 0 once done.
    """
    if overall <= 0:
        return None
    if overall >= 100:
        return 0
    return max(0, round(elapsed / overall * (100 - overall)))


class ProgressDeduper:
    """Turns a raw 0..1 engine fraction into non-decreasing, de-duplicated ints."""

    def __init__(self, callback: Callable[[int], None] | None):
        self.callback = callback
        self.last: int | None = None

    def __call__(self, fraction: float) -> None:
        if self.callback is None:
            return
        percent = int(round(min(1.0, max(0.0, fraction)) * 100))
        if self.last is not None and percent <= self.last:
            return
        self.last = percent
        self.callback(percent)


class ProgressReporter:
    """Single progress emitter for a job; keeps percent monotonic."""

    def __init__(self, job: Job, observer: ProgressObserver | None = None):
        self.job = job
        self.observer = observer

    def enter(self, stage: Stage) -> None:
        """Advance the job to ``stage`` and emit its entry event."""
        self.job.advance(stage)
        logger.info("[%s] %s", self.job.id, stage.label)
        percent = STAGE_ENTRY.get(stage, self.job.progress)
        self._emit(percent, stage.label)

    def band(self, start: int, width: int) -> Callable[[int], None]:
        """Callback rescaling codec sub-progress into the current stage band."""

        def _update(inner: int) -> None:
            self._emit(rescale(start, width, inner), self.job.stage.label)

        return _update

    def _emit(self, percent: int, label: str) -> None:
        percent = min(DONE, max(0, int(percent), self.job.progress))
        eta = estimate_eta(self.job.elapsed, percent)
        self.job.progress = percent
        self.job.eta_seconds = eta
        if self.observer is None:
            return
        event = ProgressEvent(percent=percent, stage_label=label, eta_seconds=eta)
        try:
            self.observer(event)
        except Exception as e:
            logger.warning("Progress observer raised for job %s: %s", self.job.id, e)
