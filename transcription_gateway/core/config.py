"""Immutable configuration for the transcription pipeline."""

from dataclasses import dataclass, field

DEFAULT_UPLOAD_BASE_URL = "https://dashscope.aliyuncs.com/api/v1/uploads"
DEFAULT_ASR_ENDPOINT = (
    "https://dashscope.aliyuncs.com/api/v1/services/aigc/multimodal-generation/generation"
)

DEFAULT_MAX_FILE_SIZE = 100 * 1024 * 1024

DEFAULT_ALLOWED_TYPES: tuple[str, ...] = (
    "audio/aac",
    "audio/amr",
    "audio/flac",
    "audio/mp3",
    "audio/mpeg",
    "audio/mp4",
    "audio/x-m4a",
    "audio/ogg",
    "audio/opus",
    "audio/wav",
    "audio/wave",
    "audio/x-wav",
    "audio/webm",
    "audio/x-ms-wma",
    # Containers that frequently carry audio-only payloads
    "video/x-msvideo",
    "video/x-flv",
    "video/x-matroska",
    "video/quicktime",
    "video/mp4",
    "video/mpeg",
    "video/webm",
    "video/x-ms-wmv",
)


@dataclass(frozen=True)
class TranscriptionConfig:
    """Configuration for the transcription pipeline.

    Built once at startup (see ``app.config.Settings.to_transcription_config``)
    and passed explicitly to every component.

    Args:
        upload_base_url: DashScope uploads endpoint that issues upload policies
        asr_endpoint: DashScope multimodal-generation endpoint used for ASR
        timeout_s: Total timeout for each outbound request in seconds
        connect_timeout_s: Connection timeout for each outbound request in seconds
        max_file_size: Maximum accepted upload size in bytes
        allowed_types: Content types accepted for upload (compared case-insensitively)
        upload_validity_hours: Validity window reported for uploaded objects
    """

    upload_base_url: str = DEFAULT_UPLOAD_BASE_URL
    asr_endpoint: str = DEFAULT_ASR_ENDPOINT
    timeout_s: float = 30.0
    connect_timeout_s: float = 10.0
    max_file_size: int = DEFAULT_MAX_FILE_SIZE
    allowed_types: tuple[str, ...] = field(default=DEFAULT_ALLOWED_TYPES)
    upload_validity_hours: int = 48
