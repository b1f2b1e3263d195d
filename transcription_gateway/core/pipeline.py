"""Transcription pipeline: validate, fetch policy, upload, transcribe, translate."""

import logging
import time
from contextlib import AsyncExitStack
from datetime import datetime, timezone

import httpx

from transcription_gateway.core.asr import call_asr
from transcription_gateway.core.config import TranscriptionConfig
from transcription_gateway.core.exceptions import GatewayError
from transcription_gateway.core.models import (
    TranscriptionRequest,
    TranscriptionResponse,
    VerboseTranscriptionResponse,
)
from transcription_gateway.core.translate import to_basic, to_verbose, upload_info_from
from transcription_gateway.core.uploads import get_upload_policy, upload_file
from transcription_gateway.core.validation import validate_file

logger = logging.getLogger(__name__)


def build_timeout(config: TranscriptionConfig) -> httpx.Timeout:
    return httpx.Timeout(config.timeout_s, connect=config.connect_timeout_s)


def _elapsed_ms(start: float) -> int:
    return max(1, int((time.perf_counter() - start) * 1000))


async def transcribe_upload(
    request: TranscriptionRequest,
    api_key: str,
    config: TranscriptionConfig,
    client: httpx.AsyncClient | None = None,
) -> TranscriptionResponse | VerboseTranscriptionResponse:
    """
    Run one transcription request end to end.

    Stages run strictly in order and any failure propagates immediately;
    nothing is retried and no partial result is returned. When ``client`` is
    not given, one is opened for this request and closed on every exit path.

    Args:
        request: Validated inbound request carrying the open file stream
        api_key: Caller's DashScope API key, used for both outbound calls
        config: Pipeline configuration
        client: Optional HTTP client to use instead of a request-scoped one

    Returns:
        The basic or verbose response, according to ``request.response_format``

    Raises:
        GatewayError: Subclass describing the failed stage
    """
    start = time.perf_counter()
    stage = "validate"

    logger.info(
        "Transcription request: file=%s, model=%s, language=%s, size=%d",
        request.filename,
        request.model,
        request.language.value if request.language else "auto",
        request.size,
    )

    try:
        validate_file(request.size, request.content_type, request.filename, config)

        async with AsyncExitStack() as stack:
            if client is None:
                client = await stack.enter_async_context(httpx.AsyncClient(timeout=build_timeout(config)))

            stage = "policy"
            policy = await get_upload_policy(client, api_key, request.model, config)

            stage = "upload"
            upload_result = await upload_file(
                client, policy, request.file, request.filename, request.model, config
            )
            logger.info(
                "File uploaded successfully: %s, expires: %s",
                upload_result.oss_url,
                upload_result.expire_time.isoformat(timespec="seconds"),
            )

            stage = "transcribe"
            asr_response = await call_asr(
                client,
                api_key,
                upload_result.oss_url,
                request.model,
                config,
                language=request.language,
                prompt=request.prompt,
            )
    except GatewayError as e:
        logger.error("Transcription failed at stage %s: %s", stage, e.detailed_message)
        raise

    if request.response_format == "verbose_json":
        response = to_verbose(asr_response, _elapsed_ms(start), upload_result)
        response = response.model_copy(
            update={"timestamp": datetime.now(timezone.utc).isoformat(timespec="seconds")}
        )
    else:
        response = to_basic(asr_response, _elapsed_ms(start))

    processing_time_ms = _elapsed_ms(start)
    logger.info("Transcription completed in %d ms (request_id=%s)", processing_time_ms, asr_response.request_id)

    return response.model_copy(
        update={
            "upload_info": upload_info_from(upload_result),
            "processing_time_ms": processing_time_ms,
        }
    )
