"""Response models shared by all endpoints.

Success bodies are flat JSON objects; every failure uses the
``{"error": {...}}`` envelope below.
"""

from pydantic import BaseModel


class ErrorDetail(BaseModel):
    """Error information inside the error envelope.

    Attributes:
        code: Machine-readable error code.
        message: Human-readable description.
        details: Optional field-level details.
    """

    code: str
    message: str
    details: list[dict] | None = None


class ErrorResponse(BaseModel):
    """Standard error envelope: ``{"error": {"code", "message", "details"}}``."""

    error: ErrorDetail


class OkResponse(BaseModel):
    """Plain acknowledgement body used by logout and the health check."""

    ok: bool = True
