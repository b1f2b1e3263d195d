"""End-to-end tests for the transcription pipeline against mocked DashScope endpoints."""

import io
import json

import httpx
import pytest

from transcription_gateway import (
    ExternalServiceError,
    FileTooLargeError,
    TranscriptionConfig,
    TranscriptionRequest,
    UnsupportedFileTypeError,
    UploadError,
    transcribe_upload,
)
from transcription_gateway.core.models import SupportedLanguage, VerboseTranscriptionResponse

UPLOAD_BASE_URL = "https://dashscope.test/api/v1/uploads"
ASR_ENDPOINT = "https://dashscope.test/api/v1/services/aigc/multimodal-generation/generation"
UPLOAD_HOST = "https://bucket.oss.test"

POLICY_DATA = {
    "upload_dir": "ups",
    "upload_host": UPLOAD_HOST,
    "oss_access_key_id": "AKID",
    "signature": "sig==",
    "policy": "cG9saWN5",
    "x_oss_object_acl": "private",
    "x_oss_forbid_overwrite": "true",
}

WAV_1KB = b"RIFF" + b"\x00" * 1020


@pytest.fixture
def config():
    return TranscriptionConfig(
        upload_base_url=UPLOAD_BASE_URL,
        asr_endpoint=ASR_ENDPOINT,
        max_file_size=1_000_000,
    )


def _request(**overrides) -> TranscriptionRequest:
    fields = {
        "file": io.BytesIO(WAV_1KB),
        "size": len(WAV_1KB),
        "model": "qwen3-asr",
        "filename": "a.wav",
        "content_type": "audio/wav",
    }
    fields.update(overrides)
    return TranscriptionRequest(**fields)


class FakeDashScope:
    """Routes requests to the policy, OSS and ASR handlers and records them."""

    def __init__(self, policy=None, upload=None, asr=None):
        self.calls: list[str] = []
        self.requests: dict[str, httpx.Request] = {}
        self.policy = policy or (lambda request: httpx.Response(200, json={"data": POLICY_DATA}))
        self.upload = upload or (lambda request: httpx.Response(200))
        self.asr = asr or (lambda request: httpx.Response(200, json=_asr_payload("hello world")))

    def __call__(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        if url.startswith(UPLOAD_BASE_URL):
            stage, handler = "policy", self.policy
        elif url.startswith(ASR_ENDPOINT):
            stage, handler = "asr", self.asr
        elif request.url.host == "bucket.oss.test":
            stage, handler = "upload", self.upload
        else:
            raise AssertionError(f"Unexpected request to {url}")
        self.calls.append(stage)
        self.requests[stage] = request
        return handler(request)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


def _asr_payload(text: str, annotations: list | None = None) -> dict:
    return {
        "output": {
            "choices": [
                {
                    "finish_reason": "stop",
                    "message": {"role": "assistant", "content": [{"text": text}], "annotations": annotations or []},
                }
            ]
        },
        "usage": {"output_tokens_details": {"text_tokens": 2}},
        "request_id": "req-abc",
    }


# --- Happy path ---


@pytest.mark.asyncio
async def test_happy_path_basic_response(config):
    fake = FakeDashScope()

    async with fake.client() as client:
        response = await transcribe_upload(_request(), "sk-test", config, client=client)

    assert fake.calls == ["policy", "upload", "asr"]
    assert response.text == "hello world"
    assert response.task == "transcribe"
    assert response.language == ""
    assert response.upload_info.oss_url == "oss://ups/a.wav"
    assert response.upload_info.model_used == "qwen3-asr"
    assert response.processing_time_ms > 0

    sent = json.loads(fake.requests["asr"].content)
    assert sent["input"]["messages"][1]["content"] == [{"audio": "oss://ups/a.wav"}]
    assert sent["parameters"]["asr_options"] == {"enable_itn": True}
    assert fake.requests["policy"].headers["authorization"] == "Bearer sk-test"
    assert fake.requests["asr"].headers["authorization"] == "Bearer sk-test"


@pytest.mark.asyncio
async def test_language_and_prompt_forwarded(config):
    fake = FakeDashScope()

    async with fake.client() as client:
        await transcribe_upload(
            _request(language=SupportedLanguage.DE, prompt="Names: Müller"),
            "sk-test",
            config,
            client=client,
        )

    sent = json.loads(fake.requests["asr"].content)
    assert sent["parameters"]["asr_options"]["language"] == "de"
    assert sent["input"]["messages"][0]["content"] == [{"text": "Names: Müller"}]


@pytest.mark.asyncio
async def test_verbose_response(config):
    annotations = [{"language": "en", "type": "audio_info", "emotion": "happy"}]
    fake = FakeDashScope(asr=lambda request: httpx.Response(200, json=_asr_payload("hi", annotations)))

    async with fake.client() as client:
        response = await transcribe_upload(
            _request(response_format="verbose_json"), "sk-test", config, client=client
        )

    assert isinstance(response, VerboseTranscriptionResponse)
    assert response.request_id == "req-abc"
    assert response.timestamp
    assert response.asr_metadata.emotion == "happy"
    assert response.upload_info.oss_url == "oss://ups/a.wav"


@pytest.mark.asyncio
async def test_missing_filename_gets_synthesized_key(config):
    fake = FakeDashScope()

    async with fake.client() as client:
        response = await transcribe_upload(_request(filename=""), "sk-test", config, client=client)

    assert response.upload_info.oss_url.startswith("oss://ups/upload_")


# --- Failures ---


@pytest.mark.asyncio
async def test_oversized_file_makes_no_network_call(config):
    fake = FakeDashScope()

    async with fake.client() as client:
        with pytest.raises(FileTooLargeError):
            await transcribe_upload(_request(size=config.max_file_size + 1), "sk-test", config, client=client)

    assert fake.calls == []


@pytest.mark.asyncio
async def test_unsupported_type_makes_no_network_call(config):
    fake = FakeDashScope()

    async with fake.client() as client:
        with pytest.raises(UnsupportedFileTypeError):
            await transcribe_upload(_request(content_type="multipart/form-data"), "sk-test", config, client=client)

    assert fake.calls == []


@pytest.mark.asyncio
async def test_policy_403_stops_before_upload(config):
    fake = FakeDashScope(policy=lambda request: httpx.Response(403, text="Forbidden"))

    async with fake.client() as client:
        with pytest.raises(ExternalServiceError) as exc_info:
            await transcribe_upload(_request(), "sk-test", config, client=client)

    assert exc_info.value.status_code == 502
    assert exc_info.value.upstream_status == 403
    assert fake.calls == ["policy"]


@pytest.mark.asyncio
async def test_upload_failure_stops_before_transcription(config):
    fake = FakeDashScope(upload=lambda request: httpx.Response(500, text="InternalError"))

    async with fake.client() as client:
        with pytest.raises(UploadError):
            await transcribe_upload(_request(), "sk-test", config, client=client)

    assert fake.calls == ["policy", "upload"]


@pytest.mark.asyncio
async def test_transcription_timeout_is_external_service_error(config):
    def asr_timeout(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    fake = FakeDashScope(asr=asr_timeout)

    async with fake.client() as client:
        with pytest.raises(ExternalServiceError) as exc_info:
            await transcribe_upload(_request(), "sk-test", config, client=client)

    assert exc_info.value.status_code == 502
    # No retry of either the ASR call or the upload
    assert fake.calls == ["policy", "upload", "asr"]
