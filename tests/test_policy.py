"""
tests/test_policy.py -- Unit tests for the operation -> role policy.

No stores, no HTTP: authorize() is a pure function of (scope, category).
"""

from __future__ import annotations

import pytest

from auth.models import ANONYMOUS, Identity, RequestScope, Role
from auth.policy import POLICY, DenialReason, OperationCategory, authorize, enforce
from core.exceptions import InsufficientRole, NotAuthenticated


def _scope(role: Role) -> RequestScope:
    return RequestScope(identity=Identity(name="x", email="x@cinebase.io", password_hash="h", role=role, id=1))


ADMIN = _scope(Role.ADMIN)
MEMBER = _scope(Role.MEMBER)


def test_every_category_has_a_policy_row():
    assert set(POLICY) == set(OperationCategory)


@pytest.mark.parametrize("scope", [ANONYMOUS, MEMBER, ADMIN])
def test_catalog_reads_are_public(scope):
    assert authorize(scope, OperationCategory.READ_CATALOG).allowed


@pytest.mark.parametrize(
    "category",
    [
        OperationCategory.SUBMIT_RATING,
        OperationCategory.READ_RATINGS,
        OperationCategory.READ_OWN_RATINGS,
        OperationCategory.READ_OWN_IDENTITY,
    ],
)
def test_member_operations(category):
    assert authorize(MEMBER, category).allowed
    assert authorize(ADMIN, category).allowed
    denied = authorize(ANONYMOUS, category)
    assert not denied.allowed
    assert denied.reason is DenialReason.NOT_AUTHENTICATED


@pytest.mark.parametrize("category", [OperationCategory.WRITE_CATALOG, OperationCategory.MANAGE_IDENTITIES])
def test_admin_operations(category):
    assert authorize(ADMIN, category).allowed
    assert authorize(MEMBER, category).reason is DenialReason.INSUFFICIENT_ROLE
    assert authorize(ANONYMOUS, category).reason is DenialReason.NOT_AUTHENTICATED


def test_unknown_category_is_denied():
    assert not authorize(ADMIN, "launch-missiles").allowed


def test_enforce_raises_categorized_errors():
    with pytest.raises(NotAuthenticated):
        enforce(ANONYMOUS, OperationCategory.WRITE_CATALOG)
    with pytest.raises(InsufficientRole):
        enforce(MEMBER, OperationCategory.WRITE_CATALOG)
    assert enforce(ADMIN, OperationCategory.WRITE_CATALOG) is ADMIN.identity
