"""DashScope multimodal-generation client for Qwen3 ASR models."""

import json
import logging
from typing import Any

import httpx
from pydantic import ValidationError

from transcription_gateway.core.config import TranscriptionConfig
from transcription_gateway.core.exceptions import ExternalServiceError, InternalServerError
from transcription_gateway.core.models import ASRResponse, SupportedLanguage

logger = logging.getLogger(__name__)

ASR_SERVICE = "DashScope ASR"
OSS_RESOLVE_HEADER = "X-DashScope-OssResourceResolve"


def build_asr_request(
    audio_url: str,
    model: str,
    language: SupportedLanguage | None = None,
    prompt: str | None = None,
) -> dict[str, Any]:
    """
    Build the ASR request body.

    The system turn carries the prompt, or a single space when there is none
    since the API rejects an empty system turn. The user turn carries only
    the audio locator; adding a text item there breaks the model.
    """
    asr_options: dict[str, Any] = {"enable_itn": True}
    if language is not None:
        asr_options["language"] = language.value

    return {
        "model": model,
        "input": {
            "messages": [
                {"role": "system", "content": [{"text": prompt or " "}]},
                {"role": "user", "content": [{"audio": audio_url}]},
            ],
        },
        "parameters": {"asr_options": asr_options},
    }


async def call_asr(
    client: httpx.AsyncClient,
    api_key: str,
    audio_url: str,
    model: str,
    config: TranscriptionConfig,
    language: SupportedLanguage | None = None,
    prompt: str | None = None,
) -> ASRResponse:
    """
    Transcribe an uploaded object.

    Args:
        client: HTTP client scoped to the current request
        api_key: Caller's DashScope API key
        audio_url: ``oss://`` locator returned by the upload step
        model: ASR model identifier
        config: Pipeline configuration
        language: Optional language hint; omitted so the vendor auto-detects
        prompt: Optional context text for the system turn

    Returns:
        The decoded ASRResponse

    Raises:
        ExternalServiceError: On a non-2xx response or transport failure
        InternalServerError: If the response body cannot be decoded
    """
    url = config.asr_endpoint
    request_body = build_asr_request(audio_url, model, language, prompt)

    logger.debug(f"ASR request URL: {url}")
    logger.debug(f"ASR request body: {json.dumps(request_body, ensure_ascii=False)}")

    try:
        response = await client.post(
            url,
            json=request_body,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
                OSS_RESOLVE_HEADER: "enable",
            },
        )
    except httpx.TimeoutException as e:
        logger.error(f"Timeout calling ASR endpoint {url}: {e}")
        raise ExternalServiceError(ASR_SERVICE, "ASR request timed out") from e
    except httpx.TransportError as e:
        logger.error(f"Connection error calling ASR endpoint {url}: {e}")
        raise ExternalServiceError(ASR_SERVICE, f"Connection failed: {e}") from e

    if not response.is_success:
        logger.error(f"ASR service error - Status: {response.status_code}, Response: {response.text}")
        raise ExternalServiceError(
            ASR_SERVICE,
            f"Status: {response.status_code}, Body: {response.text}",
            upstream_status=response.status_code,
            upstream_body=response.text,
        )

    try:
        return ASRResponse.model_validate_json(response.content)
    except ValidationError as e:
        logger.error(f"Failed to decode ASR response: {e}")
        raise InternalServerError("Failed to decode ASR response", details=str(e)) from e
