"""
auth/authenticator.py -- Credential login and identity registration.

login() is the only path that turns a password into a token. It always runs
exactly one bcrypt comparison, against the stored digest when the identity
exists and against DUMMY_HASH when it does not, so response time does not
reveal which names or emails are registered. Both failure causes surface as
the same AuthFailure.

register() checks name/email availability before hashing: bcrypt is the
expensive step and a taken name is the common failure. The UNIQUE
constraints in auth/store.py still decide races between two concurrent
registrations.

Layer rule: no imports from api/, catalog/, or ratings/.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from auth.models import Identity, Role
from auth.store import IdentityStore
from auth.tokens import DUMMY_HASH, create_access_token, hash_password, verify_password
from core.config import get_settings
from core.exceptions import AuthFailure, RegistrationError

logger = logging.getLogger("cinebase.auth")


@dataclass(frozen=True)
class LoginResult:
    token: str
    expires_in: int
    identity: Identity


def authenticate_identity(store: IdentityStore, name_or_email: str, password: str) -> Identity | None:
    """Return the identity whose credentials match, or None.

    Lookup order: name first, then email. bcrypt runs once on every path.
    """
    identity = store.find_by_name(name_or_email)
    if identity is None:
        identity = store.find_by_email(name_or_email)
    digest = identity.password_hash if identity is not None else DUMMY_HASH
    password_ok = verify_password(password, digest)
    if identity is None or not password_ok:
        return None
    return identity


def login(store: IdentityStore, name_or_email: str, password: str) -> LoginResult:
    """Verify credentials and issue an access token.

    Raises:
        AuthFailure: unknown identity or wrong password (indistinguishable).
    """
    identity = authenticate_identity(store, name_or_email, password)
    if identity is None:
        logger.info("Login failed")
        raise AuthFailure()
    expires_in = get_settings().token_expire_seconds
    token = create_access_token(identity.name, identity.role, expire_seconds=expires_in)
    logger.info("Login succeeded for identity id=%s", identity.id)
    return LoginResult(token=token, expires_in=expires_in, identity=identity)


def register(
    store: IdentityStore,
    name: str,
    email: str,
    password: str,
    role: Role = Role.MEMBER,
) -> Identity:
    """Create a new identity with a freshly salted password digest.

    Raises:
        RegistrationError: name or email already in use.
    """
    if store.exists_by_name(name) or store.exists_by_email(email):
        raise RegistrationError()
    identity = store.save(
        Identity(
            name=name,
            email=email,
            password_hash=hash_password(password),
            role=Role(role),
        )
    )
    logger.info("Registered identity id=%s role=%s", identity.id, identity.role.value)
    return identity
