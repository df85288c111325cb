"""
Text-to-speech synthesis with ElevenLabs.
"""

import logging

import httpx

from .errors import SynthesisServiceError
from .remote import RemoteEndpoint, call_remote

logger = logging.getLogger("vtranslate")

VOICES = {
    "en": "9BWtsMINqrJLrRacOk9x",  # Aria
    "uk": "EXAVITQu4vr4xnSDxMaL",  # Sarah
    "ru": "pFZP5JQG7iQjIQuC4Bku",  # Lily
}

VOICE_SETTINGS = {"stability": 0.5, "similarity_boost": 0.5}


def pick_voice(language: str) -> str:
    """Voice id for ``language``, falling back to the English voice."""
    return VOICES.get(language, VOICES["en"])


def _decode_audio(r: httpx.Response) -> bytes:
    ctype = r.headers.get("content-type", "")
    if ctype and not ctype.startswith(("audio/", "application/octet-stream")):
        raise ValueError(f"unexpected content-type {ctype}")
    if not r.content:
        raise ValueError("empty audio payload")
    return r.content


class SpeechSynthesizer:
    """Synthesizes translated text into compressed (MP3) audio."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: str | None,
        base_url: str,
        model_id: str = "eleven_multilingual_v2",
    ):
        self.client = client
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model_id = model_id

    def endpoint(self, voice_id: str) -> RemoteEndpoint:
        return RemoteEndpoint(
            service="Speech synthesis",
            url=f"{self.base_url}/text-to-speech/{voice_id}",
            error_cls=SynthesisServiceError,
            credential_name="ELEVENLABS_API_KEY",
            auth_header="xi-api-key",
            auth_scheme=None,
            accept="audio/mpeg",
        )

    async def synthesize(self, text: str, target_language: str) -> bytes:
        voice_id = pick_voice(target_language)
        payload = {
            "text": text,
            "model_id": self.model_id,
            "voice_settings": dict(VOICE_SETTINGS),
        }
        logger.info("Generating TTS for language %s with voice %s", target_language, voice_id)
        audio = await call_remote(
            self.client, self.endpoint(voice_id), self.api_key, payload, _decode_audio
        )
        logger.info("TTS generation completed (%.2f MB)", len(audio) / 1024 / 1024)
        return audio
