"""Tests for the upload policy client and the OSS uploader."""

import io
import json
import re

import httpx
import pytest

from transcription_gateway.core.config import TranscriptionConfig
from transcription_gateway.core.exceptions import ExternalServiceError, InternalServerError, UploadError
from transcription_gateway.core.models import UploadPolicy
from transcription_gateway.core.uploads import (
    build_upload_fields,
    get_upload_policy,
    object_locator,
    synthesize_filename,
    upload_file,
    upload_to_object_store,
)

UPLOAD_BASE_URL = "https://dashscope.test/api/v1/uploads"
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


@pytest.fixture
def config():
    return TranscriptionConfig(upload_base_url=UPLOAD_BASE_URL, upload_validity_hours=48)


@pytest.fixture
def policy():
    return UploadPolicy(**POLICY_DATA)


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


# --- Locator and naming ---


def test_object_locator(policy):
    assert object_locator(policy, "a.wav") == "oss://ups/a.wav"


def test_synthesized_filename_uses_unix_seconds():
    assert synthesize_filename(1700000000.9) == "upload_1700000000"


def test_synthesized_filename_defaults_to_now():
    name = synthesize_filename()
    assert re.fullmatch(r"upload_\d+", name)


def test_upload_fields_order(policy):
    fields = build_upload_fields(policy, "ups/a.wav")

    assert list(fields) == [
        "OSSAccessKeyId",
        "Signature",
        "policy",
        "x-oss-object-acl",
        "x-oss-forbid-overwrite",
        "key",
        "success_action_status",
    ]
    assert fields["key"] == "ups/a.wav"
    assert fields["success_action_status"] == "200"


# --- Upload policy ---


@pytest.mark.asyncio
async def test_get_upload_policy_success(config):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["request"] = request
        return httpx.Response(200, json={"request_id": "r1", "data": POLICY_DATA})

    async with _client(handler) as client:
        policy = await get_upload_policy(client, "sk-test", "qwen3-asr-flash", config)

    assert policy.upload_dir == "ups"
    assert policy.upload_host == UPLOAD_HOST

    request = seen["request"]
    assert request.method == "GET"
    assert request.url.params["action"] == "getPolicy"
    assert request.url.params["model"] == "qwen3-asr-flash"
    assert request.headers["authorization"] == "Bearer sk-test"


@pytest.mark.asyncio
async def test_get_upload_policy_non_2xx(config):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(403, text="AccessDenied")

    async with _client(handler) as client:
        with pytest.raises(ExternalServiceError) as exc_info:
            await get_upload_policy(client, "sk-test", "qwen3-asr-flash", config)

    err = exc_info.value
    assert err.status_code == 502
    assert err.upstream_status == 403
    assert err.upstream_body == "AccessDenied"
    assert "403" in err.detailed_message
    assert err.public_message == err.message


@pytest.mark.asyncio
async def test_get_upload_policy_connection_error(config):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("Connection refused", request=request)

    async with _client(handler) as client:
        with pytest.raises(ExternalServiceError) as exc_info:
            await get_upload_policy(client, "sk-test", "qwen3-asr-flash", config)

    assert exc_info.value.upstream_status is None


@pytest.mark.asyncio
async def test_get_upload_policy_undecodable_body(config):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"data": {"upload_dir": "ups"}})

    async with _client(handler) as client:
        with pytest.raises(InternalServerError) as exc_info:
            await get_upload_policy(client, "sk-test", "qwen3-asr-flash", config)

    assert exc_info.value.status_code == 500


@pytest.mark.asyncio
async def test_get_upload_policy_invalid_json(config):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"<html>oops</html>")

    async with _client(handler) as client:
        with pytest.raises(InternalServerError):
            await get_upload_policy(client, "sk-test", "qwen3-asr-flash", config)


# --- Object store upload ---


@pytest.mark.asyncio
async def test_upload_writes_fields_in_order_with_file_last(policy):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["request"] = request
        return httpx.Response(200)

    async with _client(handler) as client:
        locator = await upload_to_object_store(client, policy, io.BytesIO(b"RIFF....WAVE"), "a.wav")

    assert locator == "oss://ups/a.wav"

    request = seen["request"]
    assert request.method == "POST"
    assert request.url.host == "bucket.oss.test"
    assert request.headers["content-type"].startswith("multipart/form-data; boundary=")

    body = request.content
    names = [
        b'name="OSSAccessKeyId"',
        b'name="Signature"',
        b'name="policy"',
        b'name="x-oss-object-acl"',
        b'name="x-oss-forbid-overwrite"',
        b'name="key"',
        b'name="success_action_status"',
        b'name="file"; filename="a.wav"',
    ]
    positions = [body.index(name) for name in names]
    assert positions == sorted(positions)
    assert b"ups/a.wav" in body
    assert b"RIFF....WAVE" in body
    assert body.index(b"RIFF....WAVE") > positions[-1]


@pytest.mark.asyncio
async def test_upload_non_200_is_upload_error(policy):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(403, text="<Error><Code>SignatureDoesNotMatch</Code></Error>")

    async with _client(handler) as client:
        with pytest.raises(UploadError) as exc_info:
            await upload_to_object_store(client, policy, io.BytesIO(b"data"), "a.wav")

    err = exc_info.value
    assert err.status_code == 500
    assert err.upstream_status == 403
    assert "SignatureDoesNotMatch" in err.upstream_body


@pytest.mark.asyncio
async def test_upload_transport_failure_is_upload_error(policy):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    async with _client(handler) as client:
        with pytest.raises(UploadError):
            await upload_to_object_store(client, policy, io.BytesIO(b"data"), "a.wav")


@pytest.mark.asyncio
async def test_upload_file_synthesizes_name_and_expiry(policy, config):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = request.content
        return httpx.Response(200)

    async with _client(handler) as client:
        result = await upload_file(client, policy, io.BytesIO(b"data"), "", "qwen3-asr-flash", config)

    assert re.fullmatch(r"oss://ups/upload_\d+", result.oss_url)
    assert result.model_used == "qwen3-asr-flash"
    assert result.expire_time.tzinfo is not None

    key = result.oss_url[len("oss://"):]
    assert key.encode() in seen["body"]


@pytest.mark.asyncio
async def test_upload_policy_envelope_ignores_extra_fields(config):
    payload = {"request_id": "r1", "data": dict(POLICY_DATA, max_file_size_mb=100)}

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=json.dumps(payload).encode())

    async with _client(handler) as client:
        policy = await get_upload_policy(client, "sk-test", "qwen3-asr-flash", config)

    assert policy.signature == "sig=="
