"""
api/dependencies.py -- Per-request dependencies that are not about identity.
"""

from fastapi import Request

from core.deadline import Deadline


def request_deadline(request: Request) -> Deadline:
    """Start the request's deadline clock (REQUEST_TIMEOUT_SECONDS)."""
    return Deadline.after(request.app.state.settings.request_timeout_seconds)
