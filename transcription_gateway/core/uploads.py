"""Two-phase upload to DashScope temporary storage.

Phase one fetches a signed upload policy for the model; phase two posts the
file straight to the OSS host named in that policy.
"""

import logging
import time
from datetime import datetime, timedelta, timezone
from typing import BinaryIO

import httpx
from pydantic import ValidationError

from transcription_gateway.core.config import TranscriptionConfig
from transcription_gateway.core.exceptions import ExternalServiceError, InternalServerError, UploadError
from transcription_gateway.core.models import UploadPolicy, UploadPolicyEnvelope, UploadResult

logger = logging.getLogger(__name__)

POLICY_SERVICE = "DashScope"
SUCCESS_ACTION_STATUS = "200"


def synthesize_filename(now: float | None = None) -> str:
    """Build a fallback object name for uploads that arrive without a filename."""
    seconds = int(time.time() if now is None else now)
    return f"upload_{seconds}"


def object_key(policy: UploadPolicy, filename: str) -> str:
    return f"{policy.upload_dir}/{filename}"


def object_locator(policy: UploadPolicy, filename: str) -> str:
    """Locator the ASR endpoint resolves server-side.

    OSS does not echo the key back, so it is derived from the same key the
    file was uploaded under.
    """
    return f"oss://{object_key(policy, filename)}"


def build_upload_fields(policy: UploadPolicy, key: str) -> dict[str, str]:
    """Form fields for the OSS POST, in the order the backend expects.

    The file part is not included; it must always be written after these.
    """
    return {
        "OSSAccessKeyId": policy.oss_access_key_id,
        "Signature": policy.signature,
        "policy": policy.policy,
        "x-oss-object-acl": policy.x_oss_object_acl,
        "x-oss-forbid-overwrite": policy.x_oss_forbid_overwrite,
        "key": key,
        "success_action_status": SUCCESS_ACTION_STATUS,
    }


async def get_upload_policy(
    client: httpx.AsyncClient,
    api_key: str,
    model: str,
    config: TranscriptionConfig,
) -> UploadPolicy:
    """
    Fetch a signed upload policy for ``model``.

    Args:
        client: HTTP client scoped to the current request
        api_key: Caller's DashScope API key, passed through unmodified
        model: Model the policy is issued for
        config: Pipeline configuration

    Returns:
        The decoded UploadPolicy

    Raises:
        ExternalServiceError: On a non-2xx response or transport failure
        InternalServerError: If a 2xx body does not match the policy envelope
    """
    url = config.upload_base_url

    try:
        logger.debug(f"Requesting upload policy from {url} for model {model}")
        response = await client.get(
            url,
            params={"action": "getPolicy", "model": model},
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
        )
    except httpx.TimeoutException as e:
        logger.error(f"Timeout requesting upload policy from {url}: {e}")
        raise ExternalServiceError(POLICY_SERVICE, "Upload policy request timed out") from e
    except httpx.TransportError as e:
        logger.error(f"Connection error requesting upload policy from {url}: {e}")
        raise ExternalServiceError(POLICY_SERVICE, f"Connection failed: {e}") from e

    if not response.is_success:
        logger.error(f"Upload policy request failed - Status: {response.status_code}, Body: {response.text}")
        raise ExternalServiceError(
            POLICY_SERVICE,
            f"Status: {response.status_code}, Body: {response.text}",
            upstream_status=response.status_code,
            upstream_body=response.text,
        )

    try:
        envelope = UploadPolicyEnvelope.model_validate_json(response.content)
    except ValidationError as e:
        logger.error(f"Failed to decode upload policy response: {e}")
        raise InternalServerError("Failed to decode upload policy response", details=str(e)) from e

    return envelope.data


async def upload_to_object_store(
    client: httpx.AsyncClient,
    policy: UploadPolicy,
    file: BinaryIO,
    filename: str,
) -> str:
    """
    POST ``file`` to the policy's upload host and return its object locator.

    httpx writes the data fields in insertion order followed by the file
    part, and reads the file in chunks while sending.

    Raises:
        UploadError: On a non-2xx response, transport failure, or a local
            error while building the request body
    """
    key = object_key(policy, filename)
    fields = build_upload_fields(policy, key)

    try:
        logger.debug(f"Uploading {key} to {policy.upload_host}")
        response = await client.post(
            policy.upload_host,
            data=fields,
            files={"file": (filename, file)},
        )
    except httpx.TimeoutException as e:
        logger.error(f"Timeout uploading {key} to {policy.upload_host}: {e}")
        raise UploadError(f"Upload timed out: {e}") from e
    except httpx.HTTPError as e:
        logger.error(f"Upload of {key} to {policy.upload_host} failed: {e}")
        raise UploadError(f"Upload failed: {e}") from e
    except (OSError, ValueError, TypeError) as e:
        logger.error(f"Failed to build upload body for {key}: {e}")
        raise UploadError(f"Failed to build upload request: {e}") from e

    if not response.is_success:
        logger.error(f"Upload failed with status {response.status_code}: {response.text}")
        raise UploadError(
            f"Upload failed with status {response.status_code}: {response.text}",
            upstream_status=response.status_code,
            upstream_body=response.text,
        )

    return object_locator(policy, filename)


async def upload_file(
    client: httpx.AsyncClient,
    policy: UploadPolicy,
    file: BinaryIO,
    filename: str,
    model: str,
    config: TranscriptionConfig,
) -> UploadResult:
    """Upload ``file`` and describe where it landed and how long it is valid."""
    name = filename or synthesize_filename()
    oss_url = await upload_to_object_store(client, policy, file, name)
    expire_time = datetime.now(timezone.utc) + timedelta(hours=config.upload_validity_hours)

    return UploadResult(oss_url=oss_url, expire_time=expire_time, model_used=model)
