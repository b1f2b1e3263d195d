"""Map DashScope ASR responses onto the OpenAI transcription shape."""

from transcription_gateway.core.models import (
    TASK_TRANSCRIBE,
    UNKNOWN_LANGUAGE,
    ASRAnnotation,
    ASRChoice,
    ASRMetadata,
    ASRResponse,
    ASRUsage,
    TranscriptionResponse,
    UploadInfo,
    UploadResult,
    UsageInfo,
    VerboseTranscriptionResponse,
)


def first_choice(asr: ASRResponse) -> ASRChoice | None:
    if not asr.output.choices:
        return None
    return asr.output.choices[0]


def first_annotation(choice: ASRChoice) -> ASRAnnotation | None:
    if not choice.message.annotations:
        return None
    return choice.message.annotations[0]


def transcript_text(choice: ASRChoice) -> str:
    """Text of the first content item, or an empty string."""
    if not choice.message.content:
        return ""
    return choice.message.content[0].text or ""


def usage_info(usage: ASRUsage) -> UsageInfo:
    input_tokens = usage.input_tokens_details.text_tokens if usage.input_tokens_details else 0
    return UsageInfo(
        input_tokens=input_tokens,
        output_tokens=usage.output_tokens_details.text_tokens,
        audio_seconds=usage.seconds or 0.0,
    )


def upload_info_from(result: UploadResult) -> UploadInfo:
    return UploadInfo(
        oss_url=result.oss_url,
        expire_time=result.expire_time.isoformat(timespec="seconds"),
        model_used=result.model_used,
    )


def to_basic(asr: ASRResponse, processing_time_ms: int) -> TranscriptionResponse:
    """
    Build the OpenAI-compatible response.

    A response without choices is not an error: it yields empty text with
    language "unknown". Otherwise the language comes from the first
    annotation, and only when some text was recognised; it is an empty
    string in every other case. Duration is left unset (and so omitted)
    unless the vendor reports a non-zero number of seconds.
    """
    choice = first_choice(asr)
    if choice is None:
        return TranscriptionResponse(
            text="",
            task=TASK_TRANSCRIBE,
            language=UNKNOWN_LANGUAGE,
            processing_time_ms=processing_time_ms,
        )

    text = transcript_text(choice)
    annotation = first_annotation(choice)
    return TranscriptionResponse(
        text=text,
        task=TASK_TRANSCRIBE,
        language=annotation.language if text and annotation else "",
        duration=asr.usage.seconds or None,
        processing_time_ms=processing_time_ms,
    )


def to_verbose(
    asr: ASRResponse,
    processing_time_ms: int,
    upload_result: UploadResult | None = None,
) -> VerboseTranscriptionResponse:
    """Build the verbose response: basic fields plus request id and ASR metadata."""
    basic = to_basic(asr, processing_time_ms)

    metadata = None
    choice = first_choice(asr)
    annotation = first_annotation(choice) if choice else None
    if choice is not None and annotation is not None:
        metadata = ASRMetadata(
            detected_language=annotation.language,
            emotion=annotation.emotion,
            finish_reason=choice.finish_reason,
            usage=usage_info(asr.usage),
        )

    return VerboseTranscriptionResponse(
        **basic.model_dump(exclude={"upload_info"}),
        request_id=asr.request_id,
        upload_info=upload_info_from(upload_result) if upload_result else None,
        asr_metadata=metadata,
    )
