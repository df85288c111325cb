"""
Runtime configuration loaded from the environment and an optional .env file.
"""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from .errors import ConfigurationError

DEFAULT_GATEWAY_URL = "https://ai.gateway.lovable.dev/v1"
DEFAULT_ELEVENLABS_URL = "https://api.elevenlabs.io/v1"


@dataclass
class Settings:
    """Credentials, endpoints and limits for one pipeline process."""

    gateway_api_key: str | None = None
    gateway_url: str = DEFAULT_GATEWAY_URL
    transcription_model: str = "whisper-1"
    translation_model: str = "google/gemini-2.5-flash"
    elevenlabs_api_key: str | None = None
    elevenlabs_url: str = DEFAULT_ELEVENLABS_URL
    synthesis_model: str = "eleven_multilingual_v2"
    http_timeout: float = 120.0
    extraction_timeout: float = 300.0
    ffmpeg_binary: str = "ffmpeg"
    ffprobe_binary: str = "ffprobe"
    output_dir: str = "out"

    @classmethod
    def from_env(cls, env_file: str | None = None) -> "Settings":
        """
        Build settings from environment variables.

        Loads ``env_file`` when given, otherwise the project root ``.env`` if it
        exists, otherwise whatever ``.env`` python-dotenv finds from the current
        directory. Existing environment variables are never overridden.
        """
        if env_file:
            load_dotenv(env_file)
        else:
            project_root = Path(__file__).parent.parent.parent
            env_path = project_root / ".env"
            if env_path.exists():
                load_dotenv(env_path)
            else:
                load_dotenv()

        def _get(name: str, default: str) -> str:
            return os.getenv(name) or default

        try:
            http_timeout = float(_get("VTRANSLATE_HTTP_TIMEOUT", "120"))
            extraction_timeout = float(_get("VTRANSLATE_EXTRACTION_TIMEOUT", "300"))
        except ValueError as e:
            raise ConfigurationError(f"Invalid timeout setting: {e}") from e

        return cls(
            gateway_api_key=os.getenv("VTRANSLATE_GATEWAY_API_KEY") or os.getenv("LOVABLE_API_KEY"),
            gateway_url=_get("VTRANSLATE_GATEWAY_URL", DEFAULT_GATEWAY_URL),
            transcription_model=_get("VTRANSLATE_TRANSCRIPTION_MODEL", "whisper-1"),
            translation_model=_get("VTRANSLATE_TRANSLATION_MODEL", "google/gemini-2.5-flash"),
            elevenlabs_api_key=os.getenv("ELEVENLABS_API_KEY"),
            elevenlabs_url=_get("VTRANSLATE_ELEVENLABS_URL", DEFAULT_ELEVENLABS_URL),
            synthesis_model=_get("VTRANSLATE_SYNTHESIS_MODEL", "eleven_multilingual_v2"),
            http_timeout=http_timeout,
            extraction_timeout=extraction_timeout,
            ffmpeg_binary=_get("VTRANSLATE_FFMPEG", "ffmpeg"),
            ffprobe_binary=_get("VTRANSLATE_FFPROBE", "ffprobe"),
            output_dir=_get("VTRANSLATE_OUTPUT_DIR", "out"),
        )

    def require_credentials(self) -> None:
        """Fail fast when any remote-service credential is absent."""
        missing = []
        if not self.gateway_api_key:
            missing.append("VTRANSLATE_GATEWAY_API_KEY (or LOVABLE_API_KEY)")
        if not self.elevenlabs_api_key:
            missing.append("ELEVENLABS_API_KEY")
        if missing:
            raise ConfigurationError(
                f"Missing credentials: {', '.join(missing)}. Put them in .env or environment."
            )
