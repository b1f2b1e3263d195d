"""Size and content-type policy for incoming uploads."""

import mimetypes

from transcription_gateway.core.config import TranscriptionConfig
from transcription_gateway.core.exceptions import FileTooLargeError, UnsupportedFileTypeError


def resolve_content_type(content_type: str | None, filename: str) -> str | None:
    """Prefer the declared content type, falling back to the filename extension."""
    if content_type:
        return content_type
    if not filename:
        return None
    guessed, _ = mimetypes.guess_type(filename.lower())
    return guessed


def is_content_type_allowed(content_type: str, allowed_types: tuple[str, ...]) -> bool:
    """Check a content type against the allow-list, case-insensitively.

    ``multipart/*`` is never allowed, whatever the allow-list says.
    """
    lowered = content_type.lower()
    if lowered.startswith("multipart/"):
        return False
    return any(lowered == allowed.lower() for allowed in allowed_types)


def validate_file(
    size: int,
    content_type: str | None,
    filename: str,
    config: TranscriptionConfig,
) -> str:
    """Validate upload metadata before any network call is made.

    Args:
        size: Declared file size in bytes
        content_type: Declared content type of the file part, if any
        filename: Client-supplied filename (may be empty)
        config: Pipeline configuration carrying the limits

    Returns:
        The resolved content type

    Raises:
        FileTooLargeError: If size exceeds ``config.max_file_size``
        UnsupportedFileTypeError: If the type cannot be resolved or is not allowed
    """
    if size > config.max_file_size:
        raise FileTooLargeError(config.max_file_size)

    resolved = resolve_content_type(content_type, filename)
    if not resolved or not is_content_type_allowed(resolved, config.allowed_types):
        raise UnsupportedFileTypeError(resolved, config.allowed_types)

    return resolved
