"""
Error taxonomy for the translation pipeline.
"""


class TranslatorError(Exception):
    """Base error for the video translation pipeline."""


class ConfigurationError(TranslatorError):
    """Raised when required credentials or settings are missing."""


class UnsupportedOperationError(TranslatorError):
    """Raised for input modalities the pipeline does not accept."""


class CodecError(TranslatorError):
    """Base error for codec engine failures."""


class EngineUnavailableError(CodecError):
    """Raised when the codec engine cannot be loaded."""


class CodecExecutionError(CodecError):
    """Raised when a transcode invocation fails."""

    def __init__(self, message: str, diagnostics: str = "", returncode: int | None = None):
        super().__init__(message)
        self.diagnostics = diagnostics
        self.returncode = returncode


class ExtractionTimeoutError(CodecError, TimeoutError):
    """Raised when audio extraction exceeds its wall-clock bound."""


class RemoteServiceError(TranslatorError):
    """Raised when a remote service returns a non-success response."""

    service = "remote"

    def __init__(self, status_code: int | None, body: str):
        self.status_code = status_code
        self.body = body
        status = "transport error" if status_code is None else f"HTTP {status_code}"
        super().__init__(f"{self.service} failed: {status} {body[:300]}".rstrip())


class TranscriptionServiceError(RemoteServiceError):
    service = "Transcription"


class TranslationServiceError(RemoteServiceError):
    service = "Translation"


class SynthesisServiceError(RemoteServiceError):
    service = "Speech synthesis"


class StageFailedError(TranslatorError):
    """Terminal job failure, annotated with the stage that failed."""

    def __init__(self, stage: str, cause: BaseException):
        self.stage = stage
        self.cause = cause
        super().__init__(f"Stage '{stage}' failed: {cause}")

    @property
    def kind(self) -> str:
        return type(self.cause).__name__
