"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and services do
the work.

Layer rule: no imports from api/ or resources/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass
class Identity:
    """A registered account.

    password_digest is a bcrypt hash string ("$2b$..."). The plaintext is never
    stored anywhere. role is "user" for self-registered accounts; "operator"
    accounts are created with the CLI (main.py create-user --operator) and are
    the only ones allowed to read diagnostics.
    """

    username: str
    password_digest: str
    role: str = "user"  # "user", "operator"
    id: int | None = None

    @property
    def is_operator(self) -> bool:
        return self.role == "operator"


@dataclass(frozen=True)
class Session:
    """An issued session credential, as handed to the cookie layer.

    token is a signed JWT bound to exactly one username. http_only and secure
    are always True; they exist so the cookie flags travel with the session.
    """

    token: str
    username: str
    expires_at: datetime
    http_only: bool = True
    secure: bool = True
