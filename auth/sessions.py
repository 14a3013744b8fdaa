"""
auth/sessions.py -- Session issuance, validation, revocation, and cookies.

A session is a signed JWT (see auth/tokens.py) naming exactly one username
plus a random session id (jti). Possession of a valid token therefore means
"authenticated as that one identity", and two logins never share a token.

Lifecycle:
  Unissued -> Active (issue) -> Expired (exp passes) | Revoked (revoke)

Revocation is tracked in a RevocationList: jti -> token expiry. An entry only
has to outlive the token it cancels, so entries are pruned once their expiry
passes. The list is per-process; a multi-worker deployment that needs logout
to reach every worker should share a RevocationList implementation across
them.

validate() re-reads the identity from the repository on every call, so the
role it reports is the stored one, not whatever was true at login. The token
also carries a fingerprint of the password digest it was issued against; once
the identity is overwritten, older sessions no longer validate.
"""

from __future__ import annotations

import threading
import time
from datetime import datetime, timedelta, timezone

from auth.models import Identity, Session
from auth.store import IdentityRepository
from auth.tokens import (
    decode_session_token,
    digest_fingerprint,
    encode_session_token,
    generation_matches,
    new_session_id,
)
from core.errors import ExpiredError, RevokedError, UnknownTokenError

DEFAULT_TTL_SECONDS = 600  # 10 minutes

# ---------------------------------------------------------------------------
# Revocation list
# ---------------------------------------------------------------------------


class RevocationList:
    """Thread-safe set of revoked session ids, each kept until its token expires."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._revoked: dict[str, float] = {}

    def revoke(self, session_id: str, expires_at: float) -> None:
        with self._lock:
            self._prune(time.time())
            self._revoked[session_id] = expires_at

    def is_revoked(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._revoked

    def __len__(self) -> int:
        with self._lock:
            return len(self._revoked)

    def _prune(self, now: float) -> None:
        expired = [sid for sid, exp in self._revoked.items() if exp <= now]
        for sid in expired:
            del self._revoked[sid]


# ---------------------------------------------------------------------------
# Issuer
# ---------------------------------------------------------------------------


class SessionIssuer:
    """Single owner of session issue / validate / revoke.

    Usage:
        issuer = SessionIssuer(identities, ttl_seconds=600)
        session = issuer.issue(identity)
        identity = issuer.validate(session.token)   # raises SessionError subclasses
        issuer.revoke(session.token)
    """

    def __init__(
        self,
        identities: IdentityRepository,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        revocations: RevocationList | None = None,
    ) -> None:
        self.identities = identities
        self.ttl_seconds = ttl_seconds
        self.revocations = revocations if revocations is not None else RevocationList()

    def issue(self, identity: Identity, now: datetime | None = None) -> Session:
        issued_at = now or datetime.now(timezone.utc)
        expires_at = issued_at + timedelta(seconds=self.ttl_seconds)
        token = encode_session_token(
            identity.username,
            new_session_id(),
            digest_fingerprint(identity.password_digest),
            issued_at,
            expires_at,
        )
        return Session(token=token, username=identity.username, expires_at=expires_at)

    def validate(self, token: str) -> Identity:
        """Return the identity the token was issued to.

        Raises:
            ExpiredError:      the session's expiry has passed.
            RevokedError:      the session was logged out.
            UnknownTokenError: anything else (bad signature, malformed token,
                               identity no longer exists, or its password
                               was replaced after the session was issued).
        """
        if not token:
            raise UnknownTokenError()
        claims = decode_session_token(token)
        if self.revocations.is_revoked(claims["jti"]):
            raise RevokedError()
        identity = self.identities.get(claims["sub"])
        if identity is None or not generation_matches(claims["gen"], identity.password_digest):
            raise UnknownTokenError()
        return identity

    def revoke(self, token: str) -> None:
        """End the session behind token. Unknown or expired tokens are ignored."""
        try:
            claims = decode_session_token(token)
        except (ExpiredError, UnknownTokenError):
            return
        self.revocations.revoke(claims["jti"], float(claims["exp"]))


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_session_cookie(response, session: Session, cookie_name: str = "session") -> None:
    """Write the session token as a cookie on the response.

    httponly: JS cannot read the cookie (XSS mitigation).
    secure:   only ever sent over HTTPS.
    samesite="lax": not sent on cross-site POST (CSRF mitigation).
    expires:  matches the JWT exp claim so both expire together.
    """
    response.set_cookie(
        cookie_name,
        value=session.token,
        expires=session.expires_at,
        httponly=session.http_only,
        secure=session.secure,
        samesite="lax",
    )


def clear_session_cookie(response, cookie_name: str = "session") -> None:
    response.delete_cookie(cookie_name, httponly=True, secure=True, samesite="lax")
