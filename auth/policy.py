"""
auth/policy.py -- Declarative operation -> role authorization table.

Evaluation is a pure function of (RequestScope, OperationCategory): no I/O,
no request object, no process-wide state. That keeps it trivially safe under
concurrent requests and testable without an HTTP pipeline.

Denials carry one of two reasons:
  NOT_AUTHENTICATED  -- nobody is logged in; the client should prompt a login.
  INSUFFICIENT_ROLE  -- someone is logged in but their role is not enough;
                        logging in again will not help.

Layer rule: no imports from api/, catalog/, or ratings/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from auth.models import Identity, RequestScope, Role
from core.exceptions import InsufficientRole, NotAuthenticated


class OperationCategory(str, Enum):
    READ_CATALOG = "read-catalog"
    WRITE_CATALOG = "write-catalog"
    SUBMIT_RATING = "submit-rating"
    READ_RATINGS = "read-ratings"
    READ_OWN_RATINGS = "read-own-ratings"
    READ_OWN_IDENTITY = "read-own-identity"
    MANAGE_IDENTITIES = "manage-identities"


class DenialReason(str, Enum):
    NOT_AUTHENTICATED = "not_authenticated"
    INSUFFICIENT_ROLE = "insufficient_role"


# None means "anyone, including anonymous callers".
_ANY_AUTHENTICATED = frozenset(Role)

POLICY: dict[OperationCategory, frozenset[Role] | None] = {
    OperationCategory.READ_CATALOG: None,
    OperationCategory.WRITE_CATALOG: frozenset({Role.ADMIN}),
    OperationCategory.SUBMIT_RATING: _ANY_AUTHENTICATED,
    OperationCategory.READ_RATINGS: _ANY_AUTHENTICATED,
    OperationCategory.READ_OWN_RATINGS: _ANY_AUTHENTICATED,
    OperationCategory.READ_OWN_IDENTITY: _ANY_AUTHENTICATED,
    OperationCategory.MANAGE_IDENTITIES: frozenset({Role.ADMIN}),
}


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: DenialReason | None = None


ALLOWED = Decision(allowed=True)


def has_role(identity: Identity, roles: frozenset[Role]) -> bool:
    """Capability check kept outside the Identity dataclass."""
    return Role(identity.role) in roles


def authorize(scope: RequestScope, category: OperationCategory) -> Decision:
    """Return Allowed or Denied(reason) for the caller in scope.

    Unknown categories are denied; adding an operation means adding a row.
    """
    if category not in POLICY:
        return Decision(allowed=False, reason=DenialReason.INSUFFICIENT_ROLE)
    required = POLICY[category]
    if required is None:
        return ALLOWED
    if scope.identity is None:
        return Decision(allowed=False, reason=DenialReason.NOT_AUTHENTICATED)
    if not has_role(scope.identity, required):
        return Decision(allowed=False, reason=DenialReason.INSUFFICIENT_ROLE)
    return ALLOWED


def enforce(scope: RequestScope, category: OperationCategory) -> Identity | None:
    """Raise the categorized exception for a denial; return the identity otherwise.

    Raises:
        NotAuthenticated: operation needs an identity and none is attached.
        InsufficientRole: identity attached but its role is not permitted.
    """
    decision = authorize(scope, category)
    if not decision.allowed:
        if decision.reason is DenialReason.NOT_AUTHENTICATED:
            raise NotAuthenticated()
        raise InsufficientRole()
    return scope.identity
