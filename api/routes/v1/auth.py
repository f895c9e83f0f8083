"""
api/routes/v1/auth.py -- Authentication and identity management REST endpoints.

Routes:
  POST  /api/v1/auth/register        -- self-registration (always MEMBER)
  POST  /api/v1/auth/login           -- name-or-email + password -> bearer token
  GET   /api/v1/auth/me              -- current identity (requires auth)
  GET   /api/v1/auth/users           -- list identities (admin only)
  POST  /api/v1/auth/users           -- create identity with any role (admin only)
  PATCH /api/v1/auth/users/{id}      -- change role, optimistic version check (admin only)

Security:
  POST /login is rate-limited per IP (Settings.login_rate_limit).
  authenticator.login() provides timing equalization -- use it, never inline.
  Cache-Control: no-store on login responses.
  Handlers contain no business logic; failures are typed exceptions mapped
  to HTTP responses by api/main.py.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter
from api.models import IdentityResponse, LoginRequest, LoginResponse, RegisterRequest, RolePatch, UserCreate
from auth.authenticator import login as login_identity
from auth.authenticator import register as register_identity
from auth.dependencies import require
from auth.models import RequestScope, Role
from auth.policy import OperationCategory
from auth.store import IdentityStore
from core.config import get_settings
from core.exceptions import NotFoundError

# Auth policy:
# - POST  /auth/register:     public (disabled when SELF_REGISTRATION_ENABLED=false)
# - POST  /auth/login:        public
# - GET   /auth/me:           any authenticated identity
# - GET   /auth/users:        MANAGE_IDENTITIES (admin)
# - POST  /auth/users:        MANAGE_IDENTITIES (admin)
# - PATCH /auth/users/{id}:   MANAGE_IDENTITIES (admin)
router = APIRouter()


def _login_rate_limit() -> str:
    """slowapi calls this on every hit, so LOGIN_RATE_LIMIT changes apply without a re-import."""
    return get_settings().login_rate_limit


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/register", response_model=IdentityResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> IdentityResponse:
    """Create a MEMBER account. Admin accounts are created through POST /auth/users."""
    if not get_settings().self_registration_enabled:
        raise HTTPException(
            status_code=403,
            detail={"code": "registration_disabled", "message": "Self-registration is disabled."},
        )
    store: IdentityStore = request.app.state.identity_store
    identity = register_identity(store, body.username, str(body.email), body.password, Role.MEMBER)
    return IdentityResponse.from_identity(identity)


@limiter.limit(_login_rate_limit)  # must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/login", response_model=LoginResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with name-or-email and password; return a bearer token.

    Wrong name and wrong password produce the same bad_credentials error
    (raised as AuthFailure, mapped in api/main.py).
    """
    store: IdentityStore = request.app.state.identity_store
    result = login_identity(store, body.username, body.password)
    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(
            access_token=result.token,
            token_type="bearer",  # noqa: S106 # nosec B106 -- OAuth token type, not a password
            expires_in=result.expires_in,
            user_id=result.identity.id,
            username=result.identity.name,
            email=result.identity.email,
            role=result.identity.role,
        ).model_dump(mode="json"),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/me", response_model=IdentityResponse)
def me(scope: RequestScope = Depends(require(OperationCategory.READ_OWN_IDENTITY))) -> IdentityResponse:
    """Return the identity attached to this request."""
    return IdentityResponse.from_identity(scope.identity)


# ---------------------------------------------------------------------------
# Identity management (admin only)
# ---------------------------------------------------------------------------


@router.get("/auth/users", response_model=list[IdentityResponse])
def list_users(
    request: Request,
    scope: RequestScope = Depends(require(OperationCategory.MANAGE_IDENTITIES)),
) -> list[IdentityResponse]:
    store: IdentityStore = request.app.state.identity_store
    return [IdentityResponse.from_identity(i) for i in store.list_identities()]


@router.post("/auth/users", response_model=IdentityResponse, status_code=201)
def create_user(
    request: Request,
    body: UserCreate,
    scope: RequestScope = Depends(require(OperationCategory.MANAGE_IDENTITIES)),
) -> IdentityResponse:
    """Create an identity with an explicit role. The only way to create another ADMIN."""
    store: IdentityStore = request.app.state.identity_store
    identity = register_identity(store, body.username, str(body.email), body.password, body.role)
    return IdentityResponse.from_identity(identity)


@router.patch("/auth/users/{user_id}", response_model=IdentityResponse)
def update_role(
    request: Request,
    user_id: int,
    body: RolePatch,
    scope: RequestScope = Depends(require(OperationCategory.MANAGE_IDENTITIES)),
) -> IdentityResponse:
    """Change an identity's role.

    The write carries body.version; if another admin saved the identity
    since it was read, the store raises StaleWriteError (409 stale_write)
    and the caller must reload and retry.
    """
    store: IdentityStore = request.app.state.identity_store
    target = store.find_by_id(user_id)
    if target is None:
        raise NotFoundError("Identity not found.")
    target.role = body.role
    target.version = body.version
    return IdentityResponse.from_identity(store.save(target))
