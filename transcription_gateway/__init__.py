"""Transcription Gateway - OpenAI-compatible transcription on DashScope.

Uploads audio to DashScope temporary storage with a signed upload policy,
transcribes it with a Qwen3 ASR model, and returns the result in the OpenAI
transcription shape.

Usage:
    >>> from transcription_gateway import TranscriptionConfig, TranscriptionRequest, transcribe_upload
    >>>
    >>> config = TranscriptionConfig()
    >>> with open("recording.wav", "rb") as f:
    ...     request = TranscriptionRequest(file=f, size=os.path.getsize("recording.wav"),
    ...                                    model="qwen3-asr-flash", filename="recording.wav")
    ...     response = await transcribe_upload(request, api_key, config)
    >>> print(response.text)
"""

__version__ = "0.1.0"

# Public library API exports
from transcription_gateway.core.config import TranscriptionConfig
from transcription_gateway.core.models import (
    SupportedLanguage,
    TranscriptionRequest,
    TranscriptionResponse,
    VerboseTranscriptionResponse,
    parse_language,
)
from transcription_gateway.core.pipeline import transcribe_upload

# Export exceptions for library users
from transcription_gateway.core.exceptions import (
    BadRequestError,
    ExternalServiceError,
    FileTooLargeError,
    GatewayError,
    InternalServerError,
    UnauthorizedError,
    UnsupportedFileTypeError,
    UnsupportedLanguageError,
    UploadError,
)

__all__ = [
    "__version__",
    # Configuration
    "TranscriptionConfig",
    # Models
    "SupportedLanguage",
    "TranscriptionRequest",
    "TranscriptionResponse",
    "VerboseTranscriptionResponse",
    "parse_language",
    # Operations
    "transcribe_upload",
    # Exceptions
    "GatewayError",
    "BadRequestError",
    "FileTooLargeError",
    "UnsupportedFileTypeError",
    "UnsupportedLanguageError",
    "UnauthorizedError",
    "ExternalServiceError",
    "UploadError",
    "InternalServerError",
]
