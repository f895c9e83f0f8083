"""
auth/dependencies.py -- Request identity filter and FastAPI Depends() helpers.

The filter turns the Authorization header into a RequestScope:

  no header / wrong scheme      -> anonymous
  token fails verification      -> anonymous (bad signature or expired)
  subject no longer in store    -> anonymous
  subject resolves              -> scope carrying the stored Identity

It never raises for a bad credential. Rejection is the policy's job, so
every denial produces the same error shape. The role attached is the role
currently stored, not the role claim inside the token, so an admin demotion
takes effect on the next request.

api/main.py runs resolve_request_scope() once per request in an HTTP
middleware and stores the result on request.state.scope. Route handlers
receive it through get_request_scope() / require() and pass it explicitly to
the policy and the rating engine. Nothing is kept in thread-locals or
module globals.

Layer rule: no imports from catalog/ or ratings/.
  auth/dependencies.py may import from fastapi (for Depends/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from fastapi import Request

from auth.models import ANONYMOUS, Identity, RequestScope
from auth.policy import OperationCategory, enforce
from auth.store import IdentityStore
from auth.tokens import decode_access_token

logger = logging.getLogger("cinebase.auth")

BEARER_PREFIX = "Bearer "


def extract_bearer_token(authorization: str | None) -> str | None:
    """Return the raw token from an ``Authorization: Bearer <token>`` value.

    Missing header, another scheme, or an empty token all return None.
    """
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        return None
    token = authorization[len(BEARER_PREFIX) :].strip()
    return token or None


def resolve_request_scope(authorization: str | None, store: IdentityStore) -> RequestScope:
    """Build the RequestScope for one inbound request.

    Performs at most one store read (find_by_name) and no writes.
    """
    token = extract_bearer_token(authorization)
    if token is None:
        return ANONYMOUS
    claims = decode_access_token(token)
    if claims is None:
        logger.debug("Bearer token rejected; continuing as anonymous")
        return ANONYMOUS
    identity = store.find_by_name(claims.subject)
    if identity is None:
        logger.debug("Token subject no longer exists; continuing as anonymous")
        return ANONYMOUS
    return RequestScope(identity=identity)


def get_request_scope(request: Request) -> RequestScope:
    """Return the scope the identity middleware attached to this request.

    Falls back to resolving (and attaching) it here when the app runs
    without the middleware, so the filter still executes only once.
    """
    scope = getattr(request.state, "scope", None)
    if scope is None:
        scope = resolve_request_scope(request.headers.get("Authorization"), request.app.state.identity_store)
        request.state.scope = scope
    return scope


def current_identity(scope: RequestScope) -> Identity | None:
    return scope.identity


def require(category: OperationCategory) -> Callable[[Request], RequestScope]:
    """Dependency factory: enforce the policy for ``category`` before the handler runs.

    Use as a FastAPI dependency:
        @router.post("/movies")
        def create(scope: RequestScope = Depends(require(OperationCategory.WRITE_CATALOG))): ...

    Raises NotAuthenticated / InsufficientRole, which api/main.py turns into
    401 / 403 responses.
    """

    def dependency(request: Request) -> RequestScope:
        scope = get_request_scope(request)
        enforce(scope, category)
        return scope

    dependency.__name__ = f"require_{category.name.lower()}"
    return dependency
