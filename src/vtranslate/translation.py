"""
Translation of transcripts with a remote chat-completion model.
"""

import logging

import httpx

from .errors import TranslationServiceError
from .remote import RemoteEndpoint, call_remote

logger = logging.getLogger("vtranslate")

LANGUAGE_NAMES = {
    "ru": "Russian",
    "en": "English",
    "uk": "Ukrainian",
    "auto": "detected language",
}

SYSTEM_PROMPT = (
    "You are a professional translator. "
    "Translate text accurately while preserving the tone and meaning."
)


def get_language_name(language_code: str) -> str:
    """Human-readable language name; unknown codes are returned verbatim."""
    return LANGUAGE_NAMES.get(language_code, language_code)


def build_prompt(text: str, source_language: str, target_language: str) -> str:
    return (
        f"Translate the following text from {get_language_name(source_language)} "
        f"to {get_language_name(target_language)}. Only return the translation, "
        f"without any additional commentary or explanation:\n\n{text}"
    )


def _decode_completion(r: httpx.Response) -> str:
    content = r.json()["choices"][0]["message"]["content"]
    if not isinstance(content, str):
        raise TypeError("message content is not a string")
    return content.strip()


class TextTranslator:
    """Single-turn translation through an OpenAI-compatible chat endpoint."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: str | None,
        base_url: str,
        model: str = "google/gemini-2.5-flash",
    ):
        self.client = client
        self.api_key = api_key
        self.model = model
        self.endpoint = RemoteEndpoint(
            service="Translation",
            url=f"{base_url.rstrip('/')}/chat/completions",
            error_cls=TranslationServiceError,
            credential_name="VTRANSLATE_GATEWAY_API_KEY",
        )

    async def translate(self, text: str, source_language: str, target_language: str) -> str:
        """
        Translate ``text`` and return only the translated text.

        The result is not validated; an empty or oddly sized answer is returned as is.
        """
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_prompt(text, source_language, target_language)},
            ],
        }
        logger.info(
            f"Translating text ({source_language} -> {target_language}) using {self.model}..."
        )
        translated = await call_remote(
            self.client, self.endpoint, self.api_key, payload, _decode_completion
        )
        logger.info(f"Translation completed: {len(text)} -> {len(translated)} characters")
        return translated
