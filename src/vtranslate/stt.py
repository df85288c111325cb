"""
Speech-to-text transcription through the remote gateway.
"""

import base64
import logging

import httpx

from .errors import TranscriptionServiceError
from .models import Transcript
from .remote import RemoteEndpoint, call_remote

logger = logging.getLogger("vtranslate")


def _decode_transcript(r: httpx.Response) -> Transcript:
    data = r.json()
    text = data["text"]
    if not isinstance(text, str):
        raise TypeError("'text' is not a string")
    return Transcript(text=text.strip(), language=data.get("language"))


class SpeechTranscriber:
    """Sends extracted audio to the transcription endpoint."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: str | None,
        base_url: str,
        model: str = "whisper-1",
    ):
        self.client = client
        self.api_key = api_key
        self.model = model
        self.endpoint = RemoteEndpoint(
            service="Transcription",
            url=f"{base_url.rstrip('/')}/audio/transcriptions",
            error_cls=TranscriptionServiceError,
            credential_name="VTRANSLATE_GATEWAY_API_KEY",
        )

    async def transcribe(self, audio_bytes: bytes, source_language: str) -> Transcript:
        """Transcribe WAV audio; ``auto`` leaves language detection to the service."""
        payload = {
            "audio": base64.b64encode(audio_bytes).decode("ascii"),
            "model": self.model,
        }
        if source_language != "auto":
            payload["language"] = source_language

        logger.info(f"Transcribing with {self.model} (language: {source_language}) …")
        transcript = await call_remote(
            self.client, self.endpoint, self.api_key, payload, _decode_transcript
        )
        if not transcript.text:
            raise TranscriptionServiceError(200, "Transcription returned empty text.")
        if transcript.language:
            logger.info(f"Detected language: {transcript.language}")
        return transcript
