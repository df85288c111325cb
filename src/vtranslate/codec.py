"""
Audio and video transcoding through a shared ffmpeg engine.

The engine owns a private workspace directory that plays the role of a virtual
filesystem: inputs are written into it by name, ffmpeg runs with the workspace
as its working directory, and outputs are read back by name. Every call scopes
its files with a per-call namespace so concurrent jobs never collide, and
deletes them before returning.
"""

import asyncio
import io
import logging
import re
import shutil
import subprocess
import tempfile
import threading
import time
import uuid
from collections import deque
from collections.abc import Callable
from pathlib import Path

from pydub import AudioSegment
from pydub.exceptions import CouldntDecodeError

from .errors import (
    CodecExecutionError,
    EngineUnavailableError,
    ExtractionTimeoutError,
)
from .progress import ProgressDeduper

logger = logging.getLogger("vtranslate")

EXTRACTION_TIMEOUT_S = 300.0
EXTRACT_SAMPLE_RATE = 24000
LARGE_INPUT_BYTES = 50 * 1024 * 1024

_DURATION_RE = re.compile(r"Duration:\s*(\d+):(\d+):(\d+(?:\.\d+)?)")
_SAFE_NAME_RE = re.compile(r"[^A-Za-z0-9_.-]+")


def _parse_duration_us(line: str) -> int | None:
    m = _DURATION_RE.search(line)
    if not m:
        return None
    hours, minutes, seconds = int(m.group(1)), int(m.group(2)), float(m.group(3))
    return int((hours * 3600 + minutes * 60 + seconds) * 1_000_000)


class _ProgressTracker:
    """Derives a 0..1 fraction from ffmpeg's ``-progress`` key=value stream."""

    def __init__(self, on_fraction: Callable[[float], None] | None):
        self.on_fraction = on_fraction
        self.duration_us: int | None = None

    def feed_diagnostic(self, line: str) -> None:
        # One Duration line per input; with -shortest the output is bounded by the smallest.
        us = _parse_duration_us(line)
        if us and (self.duration_us is None or us < self.duration_us):
            self.duration_us = us

    def feed_progress(self, line: str) -> None:
        if self.on_fraction is None or "=" not in line:
            return
        key, _, value = line.partition("=")
        if key == "progress" and value == "end":
            self.on_fraction(1.0)
        elif key == "out_time_us" and self.duration_us:
            try:
                self.on_fraction(int(value) / self.duration_us)
            except ValueError:
                pass


class CodecEngine:
    """
    Handle around the ffmpeg binary and its private workspace.

    Loaded lazily, at most once, on first use; after that the handle is
    reentrant and shared by every job in the process.
    """

    def __init__(self, ffmpeg_binary: str = "ffmpeg", ffprobe_binary: str = "ffprobe"):
        self.ffmpeg_binary = ffmpeg_binary
        self.ffprobe_binary = ffprobe_binary
        self._lock = threading.Lock()
        self._binary: str | None = None
        self._workspace: Path | None = None

    @property
    def loaded(self) -> bool:
        return self._workspace is not None

    @property
    def workspace(self) -> Path:
        if self._workspace is None:
            raise EngineUnavailableError("Codec engine is not loaded")
        return self._workspace

    def _resolve_binary(self) -> str:
        binary = shutil.which(self.ffmpeg_binary)
        if binary is None:
            raise EngineUnavailableError(f"ffmpeg binary not found: {self.ffmpeg_binary}")
        try:
            proc = subprocess.run(
                [binary, "-hide_banner", "-version"],
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                check=False,
            )
        except OSError as e:
            raise EngineUnavailableError(f"Could not start {binary}: {e}") from e
        if proc.returncode != 0:
            raise EngineUnavailableError(f"{binary} -version failed: {proc.stdout.strip()[:300]}")
        logger.info("Codec engine: %s", proc.stdout.splitlines()[0] if proc.stdout else binary)
        return binary

    def load(self) -> None:
        """Resolve the binary and create the workspace (idempotent, thread-safe)."""
        if self._workspace is not None:
            return
        with self._lock:
            if self._workspace is not None:
                return
            self._binary = self._resolve_binary()
            self._workspace = Path(tempfile.mkdtemp(prefix="vtranslate-codec-"))
            logger.debug("Codec workspace: %s", self._workspace)

    async def ensure_loaded(self) -> None:
        if not self.loaded:
            await asyncio.to_thread(self.load)

    def close(self) -> None:
        """Remove the workspace. Only needed by tests and short-lived tools."""
        with self._lock:
            if self._workspace is not None:
                shutil.rmtree(self._workspace, ignore_errors=True)
            self._workspace = None
            self._binary = None

    # Virtual filesystem

    def write_file(self, name: str, data: bytes) -> None:
        (self.workspace / name).write_bytes(data)

    def read_file(self, name: str) -> bytes:
        path = self.workspace / name
        if not path.exists():
            raise CodecExecutionError(f"Codec produced no output file: {name}")
        return path.read_bytes()

    def delete_file(self, name: str) -> None:
        try:
            (self.workspace / name).unlink()
        except FileNotFoundError:
            pass

    def list_files(self) -> list[str]:
        if self._workspace is None:
            return []
        return sorted(p.name for p in self._workspace.iterdir())

    # Execution

    async def execute(
        self, args: list[str], on_progress: Callable[[float], None] | None = None
    ) -> str:
        """
        Run ffmpeg with ``args`` inside the workspace.

        ``on_progress`` receives the raw 0..1 fraction. Returns the diagnostic
        output; raises CodecExecutionError on a non-zero exit. If the awaiting
        task is cancelled (e.g. by a timeout) the process is killed.
        """
        await self.ensure_loaded()
        cmd = [self._binary, "-hide_banner", "-nostdin", "-y", "-nostats", "-progress", "pipe:1", *args]
        logger.debug("Running: %s", " ".join(map(str, cmd)))
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                cwd=str(self.workspace),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise EngineUnavailableError(f"Could not start {self._binary}: {e}") from e

        tracker = _ProgressTracker(on_progress)
        diagnostics: deque[str] = deque(maxlen=60)

        async def _read_progress() -> None:
            async for raw in proc.stdout:
                tracker.feed_progress(raw.decode(errors="replace").strip())

        async def _read_diagnostics() -> None:
            async for raw in proc.stderr:
                line = raw.decode(errors="replace").rstrip()
                diagnostics.append(line)
                tracker.feed_diagnostic(line)

        try:
            await asyncio.gather(_read_progress(), _read_diagnostics())
            returncode = await proc.wait()
        finally:
            if proc.returncode is None:
                proc.kill()
                await proc.wait()

        text = "\n".join(diagnostics)
        if returncode != 0:
            logger.error("ffmpeg failed with code %d: %s", returncode, text[-1000:])
            raise CodecExecutionError(
                f"ffmpeg failed with code {returncode}", diagnostics=text, returncode=returncode
            )
        return text

    async def probe_duration_ms(self, name: str) -> int:
        """Container duration of a workspace file in milliseconds (0 if unknown)."""
        proc = await asyncio.create_subprocess_exec(
            self.ffprobe_binary,
            "-v",
            "error",
            "-show_entries",
            "format=duration",
            "-of",
            "default=noprint_wrappers=1:nokey=1",
            name,
            cwd=str(self.workspace),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
        )
        out, _ = await proc.communicate()
        try:
            seconds = float(out.decode(errors="replace").strip())
        except ValueError:
            seconds = 0.0
        return int(seconds * 1000)


class VirtualFileScope:
    """
    Namespaced set of workspace files that is always deleted on exit.

    Names are ``<namespace>-<nonce>-<name>``, so two calls never share a file
    even when they come from the same job.
    """

    def __init__(self, engine: CodecEngine, namespace: str | None = None):
        self.engine = engine
        namespace = _SAFE_NAME_RE.sub("_", namespace or "call")
        self.prefix = f"{namespace}-{uuid.uuid4().hex[:8]}"
        self.names: list[str] = []
        self._writes: list[asyncio.Future] = []

    def reserve(self, name: str) -> str:
        vname = f"{self.prefix}-{name}"
        self.names.append(vname)
        return vname

    async def write(self, name: str, data: bytes) -> str:
        vname = self.reserve(name)
        # A cancelled caller must not outlive the worker thread still writing the file.
        write = asyncio.ensure_future(asyncio.to_thread(self.engine.write_file, vname, data))
        self._writes.append(write)
        await asyncio.shield(write)
        return vname

    async def read(self, vname: str) -> bytes:
        return await asyncio.to_thread(self.engine.read_file, vname)

    async def __aenter__(self) -> "VirtualFileScope":
        await self.engine.ensure_loaded()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._writes:
            await asyncio.gather(*self._writes, return_exceptions=True)
            self._writes.clear()
        for vname in self.names:
            self.engine.delete_file(vname)
        self.names.clear()


def audio_duration_ms(audio_bytes: bytes, fmt: str = "wav") -> int:
    """Duration of an in-memory audio buffer in milliseconds."""
    try:
        return len(AudioSegment.from_file(io.BytesIO(audio_bytes), format=fmt))
    except (CouldntDecodeError, EOFError, ValueError, OSError) as e:
        raise CodecExecutionError(f"Could not decode {fmt} audio: {e}") from e


class MediaCodec:
    """Audio extraction and remuxing over a shared CodecEngine."""

    def __init__(self, engine: CodecEngine, extraction_timeout: float = EXTRACTION_TIMEOUT_S):
        self.engine = engine
        self.extraction_timeout = extraction_timeout

    @classmethod
    def from_settings(cls, settings) -> "MediaCodec":
        engine = CodecEngine(settings.ffmpeg_binary, settings.ffprobe_binary)
        return cls(engine, extraction_timeout=settings.extraction_timeout)

    async def extract_audio(
        self,
        video_bytes: bytes,
        on_progress: Callable[[int], None] | None = None,
        namespace: str | None = None,
    ) -> bytes:
        """Extract the audio track as mono 16-bit PCM WAV at 24 kHz."""
        size_mb = len(video_bytes) / 1024 / 1024
        if len(video_bytes) > LARGE_INPUT_BYTES:
            logger.warning("Large video (%.2f MB); extraction may be very slow", size_mb)
        logger.info("Extracting audio (%.2f MB input)", size_mb)

        async with VirtualFileScope(self.engine, namespace) as files:
            src = await files.write("input.mp4", video_bytes)
            out = files.reserve("output.wav")
            start = time.monotonic()
            try:
                await asyncio.wait_for(
                    self.engine.execute(
                        ["-i", src, "-vn", "-acodec", "pcm_s16le",
                         "-ar", str(EXTRACT_SAMPLE_RATE), "-ac", "1", out],
                        on_progress=ProgressDeduper(on_progress),
                    ),
                    timeout=self.extraction_timeout,
                )
            except asyncio.TimeoutError as e:
                raise ExtractionTimeoutError(
                    f"Audio extraction timeout: took longer than {self.extraction_timeout:g}s"
                ) from e
            audio = await files.read(out)

        duration_ms = await asyncio.to_thread(audio_duration_ms, audio, "wav")
        if duration_ms <= 0:
            raise CodecExecutionError("Extracted audio track is empty")
        logger.info(
            "Extraction completed in %.1fs (%.2f MB, %.3fs audio)",
            time.monotonic() - start,
            len(audio) / 1024 / 1024,
            duration_ms / 1000,
        )
        return audio

    async def remux(
        self,
        video_bytes: bytes,
        audio_bytes: bytes,
        on_progress: Callable[[int], None] | None = None,
        namespace: str | None = None,
    ) -> bytes:
        """Replace the audio track, copying the video stream, cut to the shorter stream."""
        async with VirtualFileScope(self.engine, namespace) as files:
            src = await files.write("input.mp4", video_bytes)
            audio = await files.write("audio.mp3", audio_bytes)
            out = files.reserve("output.mp4")
            await self.engine.execute(
                ["-i", src, "-i", audio, "-c:v", "copy",
                 "-map", "0:v:0", "-map", "1:a:0", "-shortest", out],
                on_progress=ProgressDeduper(on_progress),
            )
            result = await files.read(out)
        logger.info("Remux completed (%.2f MB output)", len(result) / 1024 / 1024)
        return result

    async def duration_ms(self, media_bytes: bytes, suffix: str = ".mp4", namespace: str | None = None) -> int:
        """Probe the container duration of an in-memory media buffer."""
        async with VirtualFileScope(self.engine, namespace) as files:
            name = await files.write(f"probe{suffix}", media_bytes)
            return await self.engine.probe_duration_ms(name)
