"""
Artifact storage boundary for the translated video.
"""

import asyncio
import logging
import time
from pathlib import Path
from typing import Protocol

logger = logging.getLogger("vtranslate")


class ArtifactStore(Protocol):
    """Stores a finished artifact and returns a public retrieval reference."""

    async def put(self, name: str, data: bytes, content_type: str) -> str: ...


def artifact_name(job_id: str) -> str:
    """Unique name for a translated video."""
    return f"video_{int(time.time() * 1000)}_{job_id}_translated.mp4"


class LocalArtifactStore:
    """Writes artifacts into a local directory and returns ``file://`` URIs."""

    def __init__(self, directory: str):
        self.directory = Path(directory)

    def _write(self, name: str, data: bytes) -> Path:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.directory / name
        path.write_bytes(data)
        return path.resolve()

    async def put(self, name: str, data: bytes, content_type: str) -> str:
        path = await asyncio.to_thread(self._write, name, data)
        logger.info("Saved %s (%s, %.2f MB)", path, content_type, len(data) / 1024 / 1024)
        return path.as_uri()
