"""Request, vendor and response models for the transcription pipeline."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import BinaryIO, Literal

from pydantic import BaseModel, ConfigDict, Field

from transcription_gateway.core.exceptions import UnsupportedLanguageError

TASK_TRANSCRIBE = "transcribe"
UNKNOWN_LANGUAGE = "unknown"


class SupportedLanguage(str, Enum):
    """Languages accepted by the Qwen3 ASR models."""

    ZH = "zh"
    YUE = "yue"
    EN = "en"
    JA = "ja"
    DE = "de"
    KO = "ko"
    RU = "ru"
    FR = "fr"
    PT = "pt"
    AR = "ar"
    IT = "it"
    ES = "es"
    HI = "hi"
    ID = "id"
    TH = "th"
    TR = "tr"
    UK = "uk"
    VI = "vi"


def parse_language(value: str | None) -> SupportedLanguage | None:
    """Parse an optional language form field.

    Returns None when no language was supplied, so the vendor auto-detects.

    Raises:
        UnsupportedLanguageError: If the value is not a supported language code.
    """
    if value is None or value == "":
        return None
    try:
        return SupportedLanguage(value)
    except ValueError:
        raise UnsupportedLanguageError(value) from None


# ---------------------------------------------------------------------------
# Inbound request
# ---------------------------------------------------------------------------


ResponseFormat = Literal["json", "verbose_json"]
RESPONSE_FORMATS: tuple[str, ...] = ("json", "verbose_json")


@dataclass(frozen=True)
class TranscriptionRequest:
    """A validated inbound transcription request.

    Not a pydantic model: the HTTP layer validates the form fields, and this
    only carries the results (including the open file stream) into the
    pipeline.
    """

    file: BinaryIO
    size: int
    model: str
    filename: str = ""
    content_type: str | None = None
    language: SupportedLanguage | None = None
    prompt: str | None = None
    response_format: ResponseFormat = "json"


# ---------------------------------------------------------------------------
# Upload policy / object store
# ---------------------------------------------------------------------------


class UploadPolicy(BaseModel):
    """Signed upload policy issued by the DashScope uploads endpoint."""

    model_config = ConfigDict(frozen=True)

    upload_dir: str
    upload_host: str
    oss_access_key_id: str
    signature: str
    policy: str
    x_oss_object_acl: str
    x_oss_forbid_overwrite: str


class UploadPolicyEnvelope(BaseModel):
    """JSON envelope returned by ``?action=getPolicy``."""

    data: UploadPolicy


class UploadResult(BaseModel):
    """Outcome of a successful object-store upload."""

    model_config = ConfigDict(frozen=True)

    oss_url: str
    expire_time: datetime
    model_used: str


# ---------------------------------------------------------------------------
# DashScope ASR response
# ---------------------------------------------------------------------------


class ASRContent(BaseModel):
    text: str | None = None
    audio: str | None = None


class ASRAnnotation(BaseModel):
    language: str = ""
    type: str = ""
    emotion: str = ""


class ASRMessage(BaseModel):
    role: str = ""
    content: list[ASRContent] = Field(default_factory=list)
    annotations: list[ASRAnnotation] = Field(default_factory=list)


class ASRChoice(BaseModel):
    finish_reason: str = ""
    message: ASRMessage = Field(default_factory=ASRMessage)


class ASROutput(BaseModel):
    choices: list[ASRChoice] = Field(default_factory=list)


class ASRTokenDetails(BaseModel):
    text_tokens: int = 0


class ASRUsage(BaseModel):
    input_tokens_details: ASRTokenDetails | None = None
    output_tokens_details: ASRTokenDetails = Field(default_factory=ASRTokenDetails)
    seconds: float | None = None


class ASRResponse(BaseModel):
    """Response body of the DashScope multimodal-generation endpoint."""

    output: ASROutput = Field(default_factory=ASROutput)
    usage: ASRUsage = Field(default_factory=ASRUsage)
    request_id: str = ""


# ---------------------------------------------------------------------------
# OpenAI-compatible responses
# ---------------------------------------------------------------------------


class UploadInfo(BaseModel):
    """Echo of the upload step attached to every successful response."""

    model_config = ConfigDict(frozen=True)

    oss_url: str
    expire_time: str = Field(description="RFC 3339 expiry timestamp")
    model_used: str


class TranscriptionResponse(BaseModel):
    """OpenAI-compatible transcription response."""

    model_config = ConfigDict(frozen=True)

    text: str
    task: str = TASK_TRANSCRIBE
    language: str
    duration: float | None = Field(default=None, description="Audio duration in seconds; omitted when the vendor does not report it")
    upload_info: UploadInfo | None = None
    processing_time_ms: int | None = None


class UsageInfo(BaseModel):
    input_tokens: int = 0
    output_tokens: int = 0
    audio_seconds: float = 0.0


class ASRMetadata(BaseModel):
    detected_language: str
    emotion: str
    finish_reason: str
    usage: UsageInfo


class VerboseTranscriptionResponse(TranscriptionResponse):
    """Extended response carrying the vendor request id and ASR metadata."""

    request_id: str = ""
    timestamp: str = ""
    asr_metadata: ASRMetadata | None = None
