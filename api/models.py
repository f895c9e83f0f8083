"""
API request and response models for Cinebase REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py,
catalog/models.py and ratings/models.py, which own the internal domain
representation. Route handlers map between the two.

Score bounds are not repeated here: the rating engine owns them (configured
through Settings) and answers out-of-range scores with a validation_error.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from auth.models import Identity, Role
from auth.tokens import MAX_PASSWORD_BYTES
from catalog.models import Movie
from core.config import get_settings
from ratings.models import Rating

# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str


# ---------------------------------------------------------------------------
# Auth -- requests
# ---------------------------------------------------------------------------


def _password_fits_bcrypt(value: str) -> str:
    """Reject passwords bcrypt cannot hash. The limit is in UTF-8 bytes, not characters."""
    if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes when UTF-8 encoded.")
    return value


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register. Always creates a MEMBER."""

    model_config = ConfigDict(str_strip_whitespace=True)

    username: str = Field(min_length=3, max_length=50)
    email: EmailStr
    password: str = Field(min_length=6, max_length=MAX_PASSWORD_BYTES)

    @field_validator("password")
    @classmethod
    def password_byte_length(cls, value: str) -> str:
        return _password_fits_bcrypt(value)


class UserCreate(RegisterRequest):
    """Request body for POST /api/v1/auth/users (admin only)."""

    role: Role = Role.MEMBER


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login. username accepts a name or an email."""

    username: str = Field(min_length=1, max_length=100)
    password: str = Field(min_length=1, max_length=MAX_PASSWORD_BYTES)

    @field_validator("password")
    @classmethod
    def password_byte_length(cls, value: str) -> str:
        return _password_fits_bcrypt(value)


class RolePatch(BaseModel):
    """Request body for PATCH /api/v1/auth/users/{id}.

    version must be the value read from GET /auth/users. A mismatch means
    another admin changed the record first and the request is rejected.
    """

    role: Role
    version: int = Field(ge=0)


# ---------------------------------------------------------------------------
# Auth -- responses
# ---------------------------------------------------------------------------


class LoginResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    access_token: str
    token_type: str
    expires_in: int
    user_id: int
    username: str
    email: str
    role: Role


class IdentityResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    username: str
    email: str
    role: Role
    version: int
    created_at: str

    @classmethod
    def from_identity(cls, identity: Identity) -> "IdentityResponse":
        return cls(
            id=identity.id,
            username=identity.name,
            email=identity.email,
            role=identity.role,
            version=identity.version,
            created_at=identity.created_at or "",
        )


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


class MovieCreate(BaseModel):
    """Request body for POST /api/v1/movies (admin only)."""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, max_length=1000)
    genre: str = Field(min_length=1, max_length=100)
    release_year: int
    director: str = Field(min_length=1, max_length=255)


class MovieUpdate(MovieCreate):
    """Request body for PUT /api/v1/movies/{id} (admin only). Replaces every editable field."""


class MovieResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    title: str
    description: Optional[str]
    genre: str
    release_year: int
    director: str
    created_at: str

    @classmethod
    def from_movie(cls, movie: Movie) -> "MovieResponse":
        return cls(
            id=movie.id,
            title=movie.title,
            description=movie.description,
            genre=movie.genre,
            release_year=movie.release_year,
            director=movie.director,
            created_at=movie.created_at,
        )


# ---------------------------------------------------------------------------
# Ratings
# ---------------------------------------------------------------------------


class RatingCreate(BaseModel):
    """Request body for POST /api/v1/ratings. The author comes from the token."""

    model_config = ConfigDict(str_strip_whitespace=True)

    movie_id: int
    score: int
    comment: Optional[str] = Field(default=None, max_length=get_settings().comment_max_length)


class RatingResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    movie_id: int
    username: str
    score: int
    comment: Optional[str]
    created_at: str

    @classmethod
    def from_rating(cls, rating: Rating) -> "RatingResponse":
        return cls(
            id=rating.id,
            movie_id=rating.item_id,
            username=rating.author_name,
            score=rating.score,
            comment=rating.comment,
            created_at=rating.created_at or "",
        )


class AverageRatingResponse(BaseModel):
    """average is 0.0 for an unrated movie; count tells the two cases apart."""

    model_config = ConfigDict(frozen=True)

    movie_id: int
    average: float
    count: int
