"""HTTP-level response schemas."""

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Error body returned for every failed request."""

    error: str = Field(description="Human-readable error message")
    code: int | None = Field(default=None, description="HTTP status code of the error")
