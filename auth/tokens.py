"""
auth/tokens.py -- Password hashing and session JWT encode/decode.

Security design decisions:
  Passwords: bcrypt, used directly (no passlib wrapper). The cost factor comes
       from Settings.bcrypt_rounds (default 12; tests drop it to 4). bcrypt
       only looks at the first 72 bytes of input, so AuthService rejects longer
       passwords before they reach hash_password(). The _DUMMY_HASH constant
       enables timing equalization in AuthService.login() so response time
       does not reveal whether a username exists [C1].

  JWT: python-jose with HS256, signed with SECRET_KEY. Session tokens carry
       sub (username), jti (random id, unique per login), gen (fingerprint of
       the password digest at issue time), iat and exp.
       decode_session_token() separates "expired" from "anything else wrong"
       so callers can say which one happened without leaking more.

Layer rule: no imports from api/ or resources/. Import from core/ is allowed.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
from datetime import datetime

import bcrypt
from jose import ExpiredSignatureError, JWTError, jwt

from core.config import get_settings
from core.errors import ExpiredError, UnknownTokenError

_settings = get_settings()

_ALGORITHM = "HS256"

# bcrypt ignores everything past 72 bytes of input.
MAX_PASSWORD_BYTES = 72

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a salted bcrypt hash of the given plaintext password."""
    salt = bcrypt.gensalt(rounds=_settings.bcrypt_rounds)
    return bcrypt.hashpw(plain.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    A malformed stored hash counts as a mismatch.
    """
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


# Timing equalization dummy hash [C1].
# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
_DUMMY_HASH: str = hash_password("authgate_timing_dummy")


# ---------------------------------------------------------------------------
# Session JWT encode / decode
# ---------------------------------------------------------------------------


def new_session_id() -> str:
    """128 bits from the OS CSPRNG, URL-safe."""
    return secrets.token_urlsafe(16)


def digest_fingerprint(password_digest: str) -> str:
    """Keyed fingerprint of a stored digest, carried in the token as "gen".

    Replacing the digest (re-registration, password reset) changes the
    fingerprint, which ends every session issued against the old one.
    """
    mac = hmac.new(_settings.secret_key.encode("utf-8"), password_digest.encode("utf-8"), hashlib.sha256)
    return mac.hexdigest()[:32]


def generation_matches(token_generation: str, password_digest: str) -> bool:
    if not isinstance(token_generation, str):
        return False
    return hmac.compare_digest(token_generation.encode("utf-8"), digest_fingerprint(password_digest).encode("utf-8"))


def encode_session_token(
    username: str, session_id: str, generation: str, issued_at: datetime, expires_at: datetime
) -> str:
    payload = {
        "sub": username,
        "jti": session_id,
        "gen": generation,
        "iat": issued_at,
        "exp": expires_at,
    }
    return jwt.encode(payload, _settings.secret_key, algorithm=_ALGORITHM)


def decode_session_token(token: str) -> dict:
    """Verify a session JWT and return its claims.

    Raises:
        ExpiredError:      signature valid but exp is in the past.
        UnknownTokenError: bad signature, malformed token, or missing claims.
    """
    try:
        payload = jwt.decode(token, _settings.secret_key, algorithms=[_ALGORITHM])
    except ExpiredSignatureError as exc:
        raise ExpiredError() from exc
    except JWTError as exc:
        raise UnknownTokenError() from exc
    if not payload.get("sub") or not payload.get("jti") or not payload.get("gen") or "exp" not in payload:
        raise UnknownTokenError()
    return payload
