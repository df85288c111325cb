"""
Pipeline orchestration: extract -> transcribe -> translate -> synthesize -> remux.
"""

import asyncio
import logging
from typing import NoReturn

import httpx

from .codec import MediaCodec
from .errors import StageFailedError, UnsupportedOperationError
from .models import Job, PipelineResult, SourceLanguage, Stage, TargetLanguage
from .progress import (
    EXTRACT_START,
    EXTRACT_WIDTH,
    REMUX_START,
    REMUX_WIDTH,
    ProgressObserver,
    ProgressReporter,
)
from .settings import Settings
from .storage import ArtifactStore, artifact_name
from .stt import SpeechTranscriber
from .translation import TextTranslator
from .tts import SpeechSynthesizer

logger = logging.getLogger("vtranslate")

PLATFORMS = {
    "youtube": ("youtube.com", "youtu.be"),
    "twitter": ("twitter.com", "x.com"),
    "facebook": ("facebook.com",),
    "instagram": ("instagram.com",),
}


def detect_platform(url: str) -> str | None:
    """Name of the hosting platform a video URL points to, if recognised."""
    for platform, hosts in PLATFORMS.items():
        if any(host in url for host in hosts):
            return platform
    return None


class Pipeline:
    """
    Drives one job at a time through the translation stages.

    The codec (and its engine) is shared; several pipelines, or several
    concurrent ``run`` calls on one pipeline, may use the same codec.
    """

    def __init__(
        self,
        settings: Settings,
        codec: MediaCodec,
        store: ArtifactStore,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.settings = settings
        self.codec = codec
        self.store = store
        self.http_client = http_client

    def submit_url(self, url: str) -> NoReturn:
        """Direct URL ingestion is not supported; always raises."""
        platform = detect_platform(url) or "URL"
        raise UnsupportedOperationError(
            f"Downloading videos from {platform} links is not supported. "
            "Download the video first and submit it as a file."
        )

    def new_job(
        self,
        video_bytes: bytes,
        source_language: str = "auto",
        target_language: str = "uk",
        filename: str | None = None,
    ) -> Job:
        """Validate a submission and create its job."""
        if not video_bytes:
            raise ValueError("Video is empty")
        return Job(
            video_bytes=video_bytes,
            source_language=SourceLanguage(source_language),
            target_language=TargetLanguage(target_language),
            filename=filename,
        )

    def _services(self, client: httpx.AsyncClient):
        s = self.settings
        return (
            SpeechTranscriber(client, s.gateway_api_key, s.gateway_url, s.transcription_model),
            TextTranslator(client, s.gateway_api_key, s.gateway_url, s.translation_model),
            SpeechSynthesizer(client, s.elevenlabs_api_key, s.elevenlabs_url, s.synthesis_model),
        )

    async def run(self, job: Job, on_progress: ProgressObserver | None = None) -> PipelineResult:
        """
        Run every stage for ``job`` and return the stored artifact reference.

        Only a fresh (idle) job can be run; anything else is a ValueError.
        Raises ConfigurationError before any work if credentials are missing.
        Any stage failure moves the job to FAILED and is raised as
        StageFailedError carrying the stage and the underlying cause.
        """
        if job.stage is not Stage.IDLE:
            raise ValueError(f"Job {job.id} is already {job.stage.value}; submit a new job")
        reporter = ProgressReporter(job, on_progress)
        try:
            self.settings.require_credentials()
        except Exception:
            job.release()
            job.advance(Stage.FAILED)
            raise

        job.start()
        owned = self.http_client is None
        client = self.http_client or httpx.AsyncClient(
            follow_redirects=True, timeout=self.settings.http_timeout
        )
        logger.info(
            "Job %s: %s, %s -> %s (%.2f MB)",
            job.id,
            job.filename or "unnamed video",
            job.source_language.value,
            job.target_language.value,
            len(job.video_bytes) / 1024 / 1024,
        )
        try:
            transcriber, translator, synthesizer = self._services(client)

            reporter.enter(Stage.EXTRACTING)
            audio = await self.codec.extract_audio(
                job.video_bytes, reporter.band(EXTRACT_START, EXTRACT_WIDTH), namespace=job.id
            )

            reporter.enter(Stage.TRANSCRIBING)
            transcript = await transcriber.transcribe(audio, job.source_language.value)
            del audio

            reporter.enter(Stage.TRANSLATING)
            translated = await translator.translate(
                transcript.text, job.source_language.value, job.target_language.value
            )

            reporter.enter(Stage.SYNTHESIZING)
            speech = await synthesizer.synthesize(translated, job.target_language.value)

            reporter.enter(Stage.REMUXING)
            video = await self.codec.remux(
                job.video_bytes, speech, reporter.band(REMUX_START, REMUX_WIDTH), namespace=job.id
            )
            del speech

            reporter.enter(Stage.UPLOADING)
            name = artifact_name(job.id)
            url = await self.store.put(name, video, "video/mp4")

            reporter.enter(Stage.COMPLETED)
        except asyncio.CancelledError:
            logger.warning("Job %s cancelled during %s", job.id, job.stage.value)
            reporter.enter(Stage.FAILED)
            raise
        except Exception as e:
            stage = job.stage
            logger.error("Job %s failed during %s: %s", job.id, stage.value, e)
            reporter.enter(Stage.FAILED)
            raise StageFailedError(stage.value, e) from e
        finally:
            job.release()
            if owned:
                await client.aclose()

        logger.info("Job %s done in %.1fs -> %s", job.id, job.elapsed, url)
        return PipelineResult(
            job_id=job.id,
            original_text=transcript.text,
            translated_text=translated,
            artifact_url=url,
            artifact_name=name,
            elapsed_seconds=job.elapsed,
            detected_language=transcript.language,
        )
