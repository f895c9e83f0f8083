"""
tests/test_request_filter.py -- Unit tests for the request identity filter.

Covers every branch of resolve_request_scope():
  - no header, other scheme, empty bearer -> anonymous
  - bad signature / expired token -> anonymous
  - valid token for a deleted or unknown subject -> anonymous
  - valid token -> scope with the STORED role, not the token's role claim
  - exactly one store read per resolution
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from auth.dependencies import current_identity, extract_bearer_token, resolve_request_scope
from auth.models import ANONYMOUS, Role
from auth.tokens import create_access_token


def _bearer(name: str, role: Role = Role.MEMBER, **kwargs) -> str:
    return f"Bearer {create_access_token(name, role, expire_seconds=300, **kwargs)}"


@pytest.mark.parametrize(
    "header",
    [None, "", "Basic Ym9iOnB3", "Bearer", "Bearer    ", "bearer abc"],
)
def test_missing_or_foreign_scheme_is_anonymous(identity_store, header):
    assert extract_bearer_token(header) is None
    assert resolve_request_scope(header, identity_store) is ANONYMOUS


def test_invalid_token_is_anonymous(identity_store, make_identity):
    make_identity("bob")
    assert resolve_request_scope("Bearer abc.def.ghi", identity_store) is ANONYMOUS


def test_expired_token_is_anonymous(identity_store, make_identity):
    make_identity("bob")
    issued = datetime.now(timezone.utc) - timedelta(days=2)
    header = _bearer("bob", now=issued)
    assert resolve_request_scope(header, identity_store) is ANONYMOUS


def test_unknown_subject_is_anonymous(identity_store):
    """A correctly signed token for a name that is not in the store."""
    assert resolve_request_scope(_bearer("ghost"), identity_store) is ANONYMOUS


def test_valid_token_attaches_identity(identity_store, make_identity):
    bob = make_identity("bob")
    scope = resolve_request_scope(_bearer("bob"), identity_store)
    assert scope.is_authenticated
    assert scope.identity == bob


def test_stored_role_wins_over_token_claim(identity_store, make_identity):
    """A demoted admin's old token must not carry ADMIN anymore."""
    admin = make_identity("root", Role.ADMIN)
    header = _bearer("root", Role.ADMIN)
    admin.role = Role.MEMBER
    identity_store.save(admin)

    scope = resolve_request_scope(header, identity_store)
    assert scope.identity.role is Role.MEMBER


def test_single_store_read(identity_store, make_identity, monkeypatch):
    make_identity("bob")
    reads = []
    original = identity_store.find_by_name

    def counting_find(name):
        reads.append(name)
        return original(name)

    monkeypatch.setattr(identity_store, "find_by_name", counting_find)
    resolve_request_scope(_bearer("bob"), identity_store)
    assert reads == ["bob"]


def test_current_identity(identity_store, make_identity):
    bob = make_identity("bob")
    assert current_identity(resolve_request_scope(_bearer("bob"), identity_store)) == bob
    assert current_identity(ANONYMOUS) is None
