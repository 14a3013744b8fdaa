"""
api/routes/diagnostics.py -- GET /debug_env, operator-only environment snapshot.

Returns {"secret": <value of DIAGNOSTICS_ENV_VAR>} read from the live process
environment. This is an admin interface, not a public one:
  - DIAGNOSTICS_ENABLED=false makes the route answer 404 before any auth
    check, which is how production builds remove it.
  - Otherwise an operator session is required (401 without a session, 403
    for a non-operator identity).
The value itself is never logged; the access is, with the operator's name.
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.models import DiagnosticsResponse
from auth.dependencies import require_operator
from auth.models import Identity
from core.diagnostics import snapshot
from core.errors import NotFoundError

logger = logging.getLogger("authgate.diagnostics")

router = APIRouter()


def diagnostics_enabled(request: Request) -> None:
    if not request.app.state.settings.diagnostics_enabled:
        raise NotFoundError("not found")


# Route-level dependencies run before parameter dependencies, so a disabled
# endpoint never reaches the session check.
@router.get(
    "/debug_env",
    response_model=DiagnosticsResponse,
    dependencies=[Depends(diagnostics_enabled)],
)
def debug_env(request: Request, operator: Identity = Depends(require_operator)) -> JSONResponse:
    var_name = request.app.state.settings.diagnostics_env_var
    snap = snapshot(var_name)
    logger.info("diagnostics snapshot of %s served to operator %r", var_name, operator.username)
    resp = JSONResponse(content=DiagnosticsResponse(secret=snap.secret).model_dump())
    resp.headers["Cache-Control"] = "no-store"
    return resp
