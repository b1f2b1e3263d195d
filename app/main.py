"""FastAPI application entry point for the Transcription Gateway."""

import asyncio
import logging
from collections.abc import Awaitable
from typing import TypeVar

from fastapi import FastAPI, File, Form, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from app import __version__
from app.config import get_settings
from app.schemas import ErrorResponse
from app.security import BearerAuthMiddleware, RequestIDMiddleware
from transcription_gateway.core.exceptions import BadRequestError, GatewayError, InternalServerError
from transcription_gateway.core.logging import setup_logging
from transcription_gateway.core.models import RESPONSE_FORMATS, TranscriptionRequest, parse_language
from transcription_gateway.core.pipeline import transcribe_upload

logger = logging.getLogger(__name__)

T = TypeVar("T")

# nginx's non-standard "client closed request"
CLIENT_CLOSED_REQUEST = 499


class ClientDisconnectedError(Exception):
    """Raised when the caller goes away while the pipeline is still running."""


def _load_settings_safe():
    """Load settings, returning None when config is invalid (e.g. tests)."""
    try:
        return get_settings()
    except ValueError:
        return None


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=message, code=status_code).model_dump(),
    )


async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
    return _error_response(exc.status_code, exc.public_message)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = "; ".join(
        f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg', 'invalid')}"
        for err in exc.errors()
    )
    logger.warning("Invalid request form: %s", problems)
    return _error_response(400, f"Invalid request: {problems}")


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error: {exc}")
    return _error_response(500, "Internal server error")


def create_app() -> FastAPI:
    """Build and return the FastAPI application with all middleware configured."""
    settings = _load_settings_safe()

    if settings is not None:
        setup_logging(settings.log_level)

    application = FastAPI(
        title="Transcription Gateway",
        description="OpenAI-compatible audio transcription backed by DashScope Qwen3 ASR",
        version=__version__,
    )

    # Starlette wraps in reverse order: the last middleware added runs first.
    # 1. Bearer credential extraction (skips /health)
    application.add_middleware(BearerAuthMiddleware)

    # 2. Request ID, wrapping auth so 401s are tagged too
    application.add_middleware(RequestIDMiddleware)

    # 3. CORS outermost so preflight requests never hit auth
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allow_origins_list if settings else ["*"],
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    application.add_exception_handler(GatewayError, gateway_error_handler)
    application.add_exception_handler(RequestValidationError, validation_error_handler)
    application.add_exception_handler(Exception, unhandled_error_handler)

    return application


app = create_app()


async def run_until_disconnect(request: Request, work: Awaitable[T], poll_interval_s: float) -> T:
    """
    Await ``work`` while watching for the client to disconnect.

    On disconnect the work is cancelled, which cancels whichever outbound
    call is in flight and closes its HTTP client.

    Raises:
        ClientDisconnectedError: If the client went away first
    """
    task = asyncio.ensure_future(work)
    try:
        while True:
            done, _ = await asyncio.wait({task}, timeout=poll_interval_s)
            if done:
                return task.result()
            if await request.is_disconnected():
                logger.warning("Client disconnected; cancelling transcription")
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
                raise ClientDisconnectedError()
    finally:
        if not task.done():
            task.cancel()


def _upload_size(file: UploadFile) -> int:
    """Size of the uploaded file, measured from the stream when not declared."""
    if file.size is not None:
        return file.size
    stream = file.file
    current = stream.tell()
    stream.seek(0, 2)
    size = stream.tell()
    stream.seek(current)
    return size


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"ok": True, "version": __version__}


@app.post("/v1/audio/transcriptions")
async def create_transcription(
    request: Request,
    file: UploadFile | None = File(None),
    model: str = Form(""),
    language: str | None = Form(None),
    prompt: str | None = Form(None),
    response_format: str = Form("json"),
) -> Response:
    """
    OpenAI-compatible audio transcription endpoint.

    Uploads the file to DashScope temporary storage with a signed policy,
    transcribes it with the requested Qwen3 ASR model, and returns the
    transcript in the OpenAI shape (``json``) or with ASR metadata
    (``verbose_json``).
    """
    settings = get_settings()

    try:
        if file is None:
            raise BadRequestError("Failed to get file from form")
        if not model.strip():
            raise BadRequestError("model parameter is required")
        if response_format not in RESPONSE_FORMATS:
            raise BadRequestError(
                f"Unsupported response_format: {response_format}",
                details=f"Supported formats: {', '.join(RESPONSE_FORMATS)}",
            )

        transcription_request = TranscriptionRequest(
            file=file.file,
            size=_upload_size(file),
            model=model,
            filename=file.filename or "",
            content_type=file.content_type,
            language=parse_language(language),
            prompt=prompt or None,
            response_format=response_format,  # type: ignore[arg-type]
        )

        result = await run_until_disconnect(
            request,
            transcribe_upload(
                transcription_request,
                request.state.api_key,
                settings.transcription_config,
            ),
            settings.disconnect_poll_interval_s,
        )
        return JSONResponse(content=result.model_dump(mode="json", exclude_none=True))

    except GatewayError:
        raise
    except ClientDisconnectedError:
        return Response(status_code=CLIENT_CLOSED_REQUEST)
    except Exception as e:
        logger.exception(f"Unexpected error in create_transcription: {e}")
        raise InternalServerError("An unexpected error occurred") from e
    finally:
        if file is not None:
            await file.close()
