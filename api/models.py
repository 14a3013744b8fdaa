"""
API response models for authgate JSON endpoints.

Most routes answer in plain text (the wire contract for /register, /login,
/logout and /secret is a short string or raw bytes), so only the two JSON
routes need models here.
"""

from pydantic import BaseModel


class HealthResponse(BaseModel):
    """GET /health -- liveness plus per-component status."""

    status: str = "healthy"
    version: str
    components: dict[str, str]


class DiagnosticsResponse(BaseModel):
    """GET /debug_env -- operator-only environment snapshot."""

    secret: str
