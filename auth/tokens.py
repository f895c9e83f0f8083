"""
auth/tokens.py -- Password hashing and signed access tokens.

Security design decisions:
  Passwords: bcrypt, used directly (no passlib wrapper). gensalt() draws a
       fresh random salt on every call, so hashing the same password twice
       yields two different digests. The cost factor comes from
       Settings.bcrypt_rounds. checkpw() compares digests in constant time.

  Tokens: python-jose JWT with HS256. Payload carries sub (identity name),
       role, iat and exp. Tokens are stateless -- nothing is persisted server
       side and there is no revocation list; expiry is the only way a token
       dies. decode_access_token() returns None on any failure (bad
       signature, expired, malformed, unknown role) so callers can only ever
       see fully verified claims or nothing.

  SECRET_KEY: sourced from core.config.get_settings(). The Settings class
       validates the key at startup.

Layer rule: no imports from api/, catalog/, or ratings/. Import from core/
is allowed.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

import bcrypt
from jose import JWTError, jwt

from auth.models import Role, TokenClaims
from core.config import get_settings
from core.exceptions import PasswordTooLong

logger = logging.getLogger("cinebase.auth")

# ---------------------------------------------------------------------------
# Config -- read once at module load via the lru_cache singleton
# ---------------------------------------------------------------------------

_settings = get_settings()

_ALGORITHM = "HS256"

# bcrypt hashes at most 72 bytes of input and rejects anything longer.
MAX_PASSWORD_BYTES = 72

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------


def hash_password(plain: str, rounds: int = 0) -> str:
    """Return a salted bcrypt digest of the plaintext password.

    Args:
        plain:  Password as typed by the user.
        rounds: bcrypt cost factor (log2 of iterations). 0 means use
                Settings.bcrypt_rounds.

    Raises:
        PasswordTooLong: the UTF-8 encoding exceeds MAX_PASSWORD_BYTES.
            Non-ASCII characters take 2-4 bytes each, so a 40-character
            password can already be over the limit.
    """
    encoded = plain.encode("utf-8")
    if len(encoded) > MAX_PASSWORD_BYTES:
        raise PasswordTooLong()
    cost = rounds if rounds > 0 else _settings.bcrypt_rounds
    return bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=cost)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt digest.

    Never raises: a malformed or empty digest is simply a mismatch.
    """
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False


# Timing equalization dummy digest.
# Computed once at module load with the configured cost, so a login attempt
# for an unknown identity costs the same bcrypt work as a wrong password.
DUMMY_HASH: str = hash_password("cinebase_timing_dummy")


# ---------------------------------------------------------------------------
# Token encode / decode
# ---------------------------------------------------------------------------


def create_access_token(
    subject: str,
    role: Role | str,
    expire_seconds: int = 0,
    now: datetime | None = None,
) -> str:
    """Encode a signed token for the given identity name and role.

    Args:
        subject:        Identity name, stored as the ``sub`` claim.
        role:           Role at issue time. The request filter re-reads the
                        current role from the store, so this claim is
                        informational for clients.
        expire_seconds: Lifetime in seconds. 0 means Settings.token_expire_seconds.
        now:            Issue time. Defaults to the current UTC time; tests
                        pass a past instant to mint already-expired tokens.
    """
    duration = expire_seconds if expire_seconds > 0 else _settings.token_expire_seconds
    issued = now or datetime.now(timezone.utc)
    payload = {
        "sub": subject,
        "role": Role(role).value,
        "iat": int(issued.timestamp()),
        "exp": int((issued + timedelta(seconds=duration)).timestamp()),
    }
    return jwt.encode(payload, _settings.secret_key, algorithm=_ALGORITHM)


def decode_access_token(token: str) -> TokenClaims | None:
    """Verify signature and expiry. Returns the claims, or None on any failure."""
    try:
        payload = jwt.decode(token, _settings.secret_key, algorithms=[_ALGORITHM])
    except JWTError:
        return None
    try:
        return TokenClaims(
            subject=str(payload["sub"]),
            role=Role(payload["role"]),
            issued_at=datetime.fromtimestamp(int(payload["iat"]), tz=timezone.utc),
            expires_at=datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc),
        )
    except (KeyError, TypeError, ValueError):
        logger.debug("Rejected signed token with incomplete claims")
        return None
