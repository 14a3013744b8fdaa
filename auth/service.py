"""
auth/service.py -- Registration, login, and logout orchestration.

AuthService owns the rules; the repository owns storage and SessionIssuer owns
tokens. Every method takes an optional Deadline and checks it between the slow
steps (repository call, bcrypt), so a request that has already run out of
time stops before doing more work.

Security:
  [C1] login() always runs bcrypt, against _DUMMY_HASH when the username is
       unknown, so response time does not reveal account existence. Unknown
       user and wrong password raise the same InvalidCredentialsError.
  The audit log records usernames only. Passwords and digests never reach a
  log call, and neither do tokens.
"""

from __future__ import annotations

import logging

from auth.models import Identity, Session
from auth.sessions import SessionIssuer
from auth.store import IdentityRepository
from auth.tokens import _DUMMY_HASH, MAX_PASSWORD_BYTES, hash_password, verify_password
from core.deadline import Deadline, check_deadline
from core.errors import InternalError, InvalidCredentialsError, ValidationError

logger = logging.getLogger("authgate.auth")
audit = logging.getLogger("authgate.audit")

MAX_USERNAME_LENGTH = 255  # users.username is String(255)


class AuthService:
    def __init__(self, identities: IdentityRepository, sessions: SessionIssuer) -> None:
        self.identities = identities
        self.sessions = sessions

    def register(self, username: str, password: str, deadline: Deadline | None = None) -> None:
        """Hash the password and store the identity, overwriting any previous one.

        Raises:
            ValidationError: empty username or password, or either too long.
            InternalError:   hashing or storage failed.
        """
        _validate_credentials(username, password)
        check_deadline(deadline)
        try:
            digest = hash_password(password)
        except ValueError as exc:
            raise InternalError("hashing failed") from exc
        check_deadline(deadline)
        self.identities.put(Identity(username=username, password_digest=digest))
        audit.info("identity registered username=%r", username)

    def login(self, username: str, password: str, deadline: Deadline | None = None) -> Session:
        """Verify credentials and issue a session.

        Raises:
            InvalidCredentialsError: unknown username or wrong password.
        """
        check_deadline(deadline)
        identity = self.identities.get(username) if username else None
        check_deadline(deadline)
        if identity is None:
            # Equalize timing -- do NOT return before running bcrypt [C1]
            verify_password(password, _DUMMY_HASH)
            audit.info("login failed username=%r", username)
            raise InvalidCredentialsError()
        if not verify_password(password, identity.password_digest):
            audit.info("login failed username=%r", username)
            raise InvalidCredentialsError()
        session = self.sessions.issue(identity)
        audit.info("login succeeded username=%r", username)
        return session

    def logout(self, token: str) -> None:
        self.sessions.revoke(token)


def _validate_credentials(username: str, password: str) -> None:
    if not username or not password:
        raise ValidationError("username and password are required")
    if len(username) > MAX_USERNAME_LENGTH:
        raise ValidationError("username too long")
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValidationError("password too long")
