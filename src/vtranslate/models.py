"""
Data models for the video translation pipeline.
"""

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum


class SourceLanguage(str, Enum):
    """Languages accepted for the spoken track. ``auto`` lets the service detect it."""

    AUTO = "auto"
    RU = "ru"
    EN = "en"
    UK = "uk"


class TargetLanguage(str, Enum):
    """Languages the translated track can be produced in."""

    UK = "uk"
    EN = "en"


class Stage(str, Enum):
    """Pipeline state machine. Transitions are strictly forward."""

    IDLE = "idle"
    EXTRACTING = "extracting"
    TRANSCRIBING = "transcribing"
    TRANSLATING = "translating"
    SYNTHESIZING = "synthesizing"
    REMUXING = "remuxing"
    UPLOADING = "uploading"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (Stage.COMPLETED, Stage.FAILED)

    @property
    def label(self) -> str:
        return STAGE_LABELS[self]


STAGE_LABELS = {
    Stage.IDLE: "Queued",
    Stage.EXTRACTING: "Extracting audio",
    Stage.TRANSCRIBING: "Transcribing speech",
    Stage.TRANSLATING: "Translating text",
    Stage.SYNTHESIZING: "Synthesizing speech",
    Stage.REMUXING: "Combining audio with video",
    Stage.UPLOADING: "Saving translated video",
    Stage.COMPLETED: "Completed",
    Stage.FAILED: "Failed",
}

_STAGE_ORDER = list(Stage)


@dataclass
class Job:
    """One translation request, mutated only by the pipeline driving it."""

    video_bytes: bytes | None
    source_language: SourceLanguage
    target_language: TargetLanguage
    filename: str | None = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    stage: Stage = Stage.IDLE
    progress: int = 0
    eta_seconds: int | None = None
    started_at: float | None = None
    finished_at: float | None = None

    @property
    def elapsed(self) -> float:
        """Seconds since the job started (frozen once it finished)."""
        if self.started_at is None:
            return 0.0
        end = self.finished_at if self.finished_at is not None else time.monotonic()
        return max(0.0, end - self.started_at)

    def start(self) -> None:
        self.started_at = time.monotonic()

    def advance(self, stage: Stage) -> None:
        """Move to ``stage``; going backwards or leaving a terminal state is a bug."""
        if self.stage.is_terminal:
            raise RuntimeError(f"Job {self.id} is already {self.stage.value}")
        if stage is not Stage.FAILED and _STAGE_ORDER.index(stage) <= _STAGE_ORDER.index(self.stage):
            raise RuntimeError(f"Job {self.id} cannot move from {self.stage.value} to {stage.value}")
        self.stage = stage
        if stage.is_terminal:
            self.finished_at = time.monotonic()

    def release(self) -> None:
        """Drop the source video buffer."""
        self.video_bytes = None


@dataclass(frozen=True)
class ProgressEvent:
    """Immutable progress snapshot delivered to an observer."""

    percent: int
    stage_label: str
    eta_seconds: int | None = None


@dataclass
class Transcript:
    """Transcription result."""

    text: str
    language: str | None = None  # detected source language, when reported


@dataclass
class PipelineResult:
    """Outcome of a completed job."""

    job_id: str
    original_text: str
    translated_text: str
    artifact_url: str
    artifact_name: str
    elapsed_seconds: float
    detected_language: str | None = None
