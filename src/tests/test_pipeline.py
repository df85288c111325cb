"""
End-to-end tests for the pipeline with a scripted codec and mocked services.
"""

import asyncio
import itertools
import logging
from pathlib import Path

import pytest

from src.vtranslate.codec import MediaCodec
from src.vtranslate.errors import (
    ConfigurationError,
    StageFailedError,
    TranslationServiceError,
    UnsupportedOperationError,
)
from src.vtranslate.models import Stage
from src.vtranslate.pipeline import Pipeline, detect_platform
from src.vtranslate.settings import Settings
from src.vtranslate.storage import LocalArtifactStore

from src.tests.fakes import FakeEngine, ServiceStub


def _run_job(settings, engine, stub, source="ru", target="uk", video=b"video-bytes"):
    events = []

    async def go():
        async with stub.client() as client:
            pipeline = Pipeline(
                settings, MediaCodec(engine), LocalArtifactStore(settings.output_dir), client
            )
            job = pipeline.new_job(video, source, target)
            try:
                result = await pipeline.run(job, events.append)
            finally:
                events.append(job)
            return result

    return asyncio.run(go()), events


@pytest.mark.parametrize(
    "source,target", list(itertools.product(["ru", "en", "uk", "auto"], ["uk", "en"]))
)
def test_all_language_pairs(settings, engine, services, source, target):
    result, events = _run_job(settings, engine, services, source, target)
    job = events.pop()

    assert result.original_text
    assert result.translated_text
    assert result.translated_text != result.original_text
    assert result.artifact_url.startswith("file://")
    assert Path(settings.output_dir, result.artifact_name).read_bytes() == b"remuxed:video-bytes"
    assert job.stage is Stage.COMPLETED
    assert job.video_bytes is None
    assert engine.list_files() == []


def test_progress_is_monotonic_and_ends_at_100(settings, engine, services):
    _, events = _run_job(settings, engine, services)
    events.pop()
    percents = [e.percent for e in events]

    assert percents == sorted(percents)
    assert all(0 <= p <= 100 for p in percents)
    assert percents[-1] == 100
    assert events[-1].eta_seconds == 0
    assert all(e.eta_seconds is None or e.eta_seconds >= 0 for e in events)
    labels = []
    for e in events:
        if not labels or labels[-1] != e.stage_label:
            labels.append(e.stage_label)
    assert labels == [
        "Extracting audio",
        "Transcribing speech",
        "Translating text",
        "Synthesizing speech",
        "Combining audio with video",
        "Saving translated video",
        "Completed",
    ]
    # codec sub-progress lands inside the extraction and remux bands
    assert 10 in percents
    assert 20 in percents
    assert 95 in percents


def test_stage_failure_is_wrapped(settings, engine):
    stub = ServiceStub(fail_on="/chat/completions")
    with pytest.raises(StageFailedError) as exc_info:
        _run_job(settings, engine, stub)
    err = exc_info.value
    assert err.stage == "translating"
    assert err.kind == "TranslationServiceError"
    assert isinstance(err.cause, TranslationServiceError)
    assert err.cause.status_code == 500
    # no synthesis request after the failure
    assert not any("/text-to-speech/" in r.url.path for r in stub.requests)
    assert not Path(settings.output_dir).exists()
    assert engine.list_files() == []


def test_codec_failure_marks_job_failed(settings, services):
    engine = FakeEngine(fail="Stream map '0:a' matches no streams")
    events = []

    async def go():
        async with services.client() as client:
            pipeline = Pipeline(
                settings, MediaCodec(engine), LocalArtifactStore(settings.output_dir), client
            )
            job = pipeline.new_job(b"video", "en", "uk")
            events.append(job)
            await pipeline.run(job)

    try:
        with pytest.raises(StageFailedError) as exc_info:
            asyncio.run(go())
        assert exc_info.value.stage == "extracting"
        assert exc_info.value.kind == "CodecExecutionError"
        assert events[0].stage is Stage.FAILED
        assert services.requests == []
        assert engine.list_files() == []
    finally:
        engine.close()


def test_missing_credentials_fail_before_any_call(tmp_path, engine, services):
    settings = Settings(gateway_api_key="k", elevenlabs_api_key=None, output_dir=str(tmp_path))
    with pytest.raises(ConfigurationError) as exc_info:
        _run_job(settings, engine, services)
    assert "ELEVENLABS_API_KEY" in str(exc_info.value)
    assert services.requests == []
    assert engine.calls == []


def test_url_submission_is_unsupported(settings, engine):
    pipeline = Pipeline(settings, MediaCodec(engine), LocalArtifactStore(settings.output_dir))
    with pytest.raises(UnsupportedOperationError) as exc_info:
        pipeline.submit_url("https://youtu.be/abc")
    assert "youtube" in str(exc_info.value)
    assert "file" in str(exc_info.value)


def test_detect_platform():
    assert detect_platform("https://www.youtube.com/watch?v=1") == "youtube"
    assert detect_platform("https://x.com/a/status/1") == "twitter"
    assert detect_platform("https://example.org/v.mp4") is None


def test_new_job_validation(settings, engine):
    pipeline = Pipeline(settings, MediaCodec(engine), LocalArtifactStore(settings.output_dir))
    with pytest.raises(ValueError):
        pipeline.new_job(b"", "ru", "uk")
    with pytest.raises(ValueError):
        pipeline.new_job(b"v", "ru", "ru")
    job = pipeline.new_job(b"v", "auto", "en")
    assert job.stage is Stage.IDLE
    assert len(job.id) == 12


def test_no_files_carried_between_stages(settings, engine, services):
    """The remux call only sees its own inputs; nothing is left from extraction."""
    _run_job(settings, engine, services)

    extract_args, remux_args = engine.calls
    assert engine.files_during_calls[0] == [extract_args[1]]
    assert sorted(engine.files_during_calls[1]) == sorted([remux_args[1], remux_args[3]])
    assert not any(name.endswith(".wav") for name in engine.files_during_calls[1])


def test_finished_job_cannot_be_run_again(settings, engine, services):
    async def go():
        async with services.client() as client:
            pipeline = Pipeline(
                settings, MediaCodec(engine), LocalArtifactStore(settings.output_dir), client
            )
            job = pipeline.new_job(b"video", "en", "uk")
            await pipeline.run(job)
            with pytest.raises(ValueError) as exc_info:
                await pipeline.run(job)
            assert "completed" in str(exc_info.value)
            assert job.stage is Stage.COMPLETED

    asyncio.run(go())
    assert len(engine.calls) == 2


def test_job_filename_is_logged(settings, engine, services, caplog):
    async def go():
        async with services.client() as client:
            pipeline = Pipeline(
                settings, MediaCodec(engine), LocalArtifactStore(settings.output_dir), client
            )
            job = pipeline.new_job(b"video", "ru", "en", filename="holiday.mp4")
            await pipeline.run(job)

    with caplog.at_level(logging.INFO, logger="vtranslate"):
        asyncio.run(go())
    assert any("holiday.mp4" in r.getMessage() for r in caplog.records)
