"""
api/routes/auth.py -- Registration, login, and logout endpoints.

Routes (form-encoded bodies, plain-text responses):
  POST /register  -- create or overwrite an identity; "register success"
  POST /login     -- verify credentials; sets the session cookie; "login success"
  POST /logout    -- revoke the current session and clear the cookie

Security:
  [H2] POST /login and POST /register are rate-limited per client IP.
  [C1] AuthService.login() provides timing equalization -- use it, never inline.
  [M5] Cache-Control: no-store on login responses.
  Error responses come from the ServiceError handler in api/main.py, so an
  unknown user and a wrong password produce byte-identical 401s.
"""

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import PlainTextResponse

from api.dependencies import request_deadline
from api.limiter import limiter
from auth.dependencies import session_token_from_request
from auth.service import AuthService
from auth.sessions import clear_session_cookie, set_session_cookie
from core.config import get_settings
from core.deadline import Deadline, run_with_deadline
from core.errors import ForbiddenError

_settings = get_settings()

# Auth policy:
# - POST /register: public, unless SELF_REGISTRATION_ENABLED=false (403)
# - POST /login:    public -- login endpoint must be unauthenticated
# - POST /logout:   public -- revoking your own token needs no prior check
router = APIRouter()


# The route must register the limiter-wrapped function: SlowAPIMiddleware
# skips decorated routes and leaves enforcement to the wrapper.
@router.post("/register", response_class=PlainTextResponse)
@limiter.limit(_settings.register_rate_limit)  # [H2]
async def register(
    request: Request,
    username: str = Form(""),
    password: str = Form(""),
    deadline: Deadline = Depends(request_deadline),
) -> PlainTextResponse:
    """Register username/password. Re-registering a username replaces its password."""
    if not request.app.state.settings.self_registration_enabled:
        raise ForbiddenError("registration disabled")
    service: AuthService = request.app.state.auth_service
    await run_with_deadline(deadline, service.register, username, password, deadline=deadline)
    return PlainTextResponse("register success")


@router.post("/login", response_class=PlainTextResponse)
@limiter.limit(_settings.login_rate_limit)  # [H2]
async def login(
    request: Request,
    username: str = Form(""),
    password: str = Form(""),
    deadline: Deadline = Depends(request_deadline),
) -> PlainTextResponse:
    """Authenticate with username and password; set the session cookie."""
    service: AuthService = request.app.state.auth_service
    session = await run_with_deadline(deadline, service.login, username, password, deadline=deadline)
    resp = PlainTextResponse("login success")
    set_session_cookie(resp, session, request.app.state.settings.session_cookie_name)
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


@router.post("/logout", response_class=PlainTextResponse)
async def logout(request: Request, deadline: Deadline = Depends(request_deadline)) -> PlainTextResponse:
    """Revoke the presented session (if any) and clear the cookie."""
    token = session_token_from_request(request)
    if token:
        service: AuthService = request.app.state.auth_service
        await run_with_deadline(deadline, service.logout, token)
    resp = PlainTextResponse("logout success")
    clear_session_cookie(resp, request.app.state.settings.session_cookie_name)
    return resp
