"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and the policy
module do the work. Identity deliberately knows nothing about tokens, hashing
or HTTP; role checks live in auth/policy.py as plain functions.

Layer rule: no imports from api/, catalog/, or ratings/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class Role(str, Enum):
    ADMIN = "ADMIN"
    MEMBER = "MEMBER"


@dataclass
class Identity:
    """A registered account.

    name and email are each globally unique (enforced by UNIQUE constraints
    in auth/store.py). version is the optimistic-lock counter: it is 0 on the
    first insert and incremented by the store on every persisted update.
    Callers pass back the version they read; a mismatch is a StaleWriteError.

    id is None before the record is written to the database.
    """

    name: str
    email: str
    password_hash: str
    role: Role = Role.MEMBER
    id: int | None = None
    version: int = 0
    created_at: str | None = None


@dataclass(frozen=True)
class TokenClaims:
    """Verified contents of an access token."""

    subject: str
    role: Role
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class RequestScope:
    """Per-request identity context.

    Built once by the request filter and passed explicitly down the call
    chain. identity is None for anonymous callers (no header, bad token, or
    a subject that no longer resolves).
    """

    identity: Identity | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.identity is not None


ANONYMOUS = RequestScope()
