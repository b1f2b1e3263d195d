"""Exception hierarchy for the transcription pipeline.

Every error carries the HTTP status it should be reported with, so the
server layer can render it without knowing which stage raised it.
"""


class GatewayError(Exception):
    """Base exception for all gateway errors."""

    status_code = 500
    error_type = "gateway_error"
    # Upstream failures keep their details in the logs only
    expose_details = True

    def __init__(self, message: str, details: str | None = None):
        self.message = message
        self.details = details
        super().__init__(message)

    @property
    def detailed_message(self) -> str:
        """Message with details appended when present, for logging."""
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message

    @property
    def public_message(self) -> str:
        """Message returned to the caller."""
        return self.detailed_message if self.expose_details else self.message


class BadRequestError(GatewayError):
    """Raised when the caller's request is malformed or invalid."""

    status_code = 400
    error_type = "invalid_request"


class FileTooLargeError(BadRequestError):
    """Raised when an upload exceeds the configured maximum size."""

    error_type = "file_too_large"

    def __init__(self, max_size: int):
        self.max_size = max_size
        super().__init__(f"File too large. Maximum size is {max_size} bytes")


class UnsupportedFileTypeError(BadRequestError):
    """Raised when an upload's content type is not allow-listed."""

    error_type = "unsupported_file_type"

    def __init__(self, content_type: str | None, allowed_types: tuple[str, ...]):
        self.content_type = content_type
        self.allowed_types = allowed_types
        super().__init__(
            "Unsupported file type",
            details=f"Allowed types: {', '.join(allowed_types)}",
        )


class UnsupportedLanguageError(BadRequestError):
    """Raised when the requested language is outside the supported set."""

    error_type = "unsupported_language"

    def __init__(self, language: str):
        self.language = language
        super().__init__(f"Unsupported language: {language}")


class UnauthorizedError(GatewayError):
    """Raised when the Authorization header is missing or malformed."""

    status_code = 401
    error_type = "auth_required"


class ExternalServiceError(GatewayError):
    """Raised when a DashScope endpoint fails or cannot be reached."""

    status_code = 502
    error_type = "external_service_error"
    expose_details = False

    def __init__(
        self,
        service: str,
        details: str,
        upstream_status: int | None = None,
        upstream_body: str | None = None,
    ):
        self.service = service
        self.upstream_status = upstream_status
        self.upstream_body = upstream_body
        super().__init__(f"External service error: {service}", details=details)


class UploadError(GatewayError):
    """Raised when the object-store multipart upload fails."""

    status_code = 500
    error_type = "upload_failed"
    expose_details = False

    def __init__(
        self,
        details: str,
        upstream_status: int | None = None,
        upstream_body: str | None = None,
    ):
        self.upstream_status = upstream_status
        self.upstream_body = upstream_body
        super().__init__("File upload failed", details=details)


class InternalServerError(GatewayError):
    """Raised on contract violations such as malformed upstream JSON."""

    status_code = 500
    error_type = "internal_error"
