"""
api/routes/v1/ratings.py -- Rating submission and the caller's own ratings.

Routes:
  POST /ratings       -- submit a rating as the authenticated identity
  GET  /ratings/me    -- ratings written by the authenticated identity

The author is never read from the body. RatingEngine.submit_rating() takes
the RequestScope and re-checks the policy itself, so the dependency below is
the early rejection and the engine is the authority.

Outcomes:
  201 rating created | 401 not_authenticated | 404 not_found (movie)
  409 conflict (already rated) | 422 validation_error (score out of range)
"""

from fastapi import APIRouter, Depends, Request

from api.models import RatingCreate, RatingResponse
from auth.dependencies import require
from auth.models import RequestScope
from auth.policy import OperationCategory
from ratings.engine import RatingEngine

router = APIRouter()


@router.post("/ratings", response_model=RatingResponse, status_code=201)
def submit_rating(
    request: Request,
    body: RatingCreate,
    scope: RequestScope = Depends(require(OperationCategory.SUBMIT_RATING)),
) -> RatingResponse:
    engine: RatingEngine = request.app.state.rating_engine
    rating = engine.submit_rating(scope, body.movie_id, body.score, body.comment)
    return RatingResponse.from_rating(rating)


@router.get("/ratings/me", response_model=list[RatingResponse])
def my_ratings(
    request: Request,
    scope: RequestScope = Depends(require(OperationCategory.READ_OWN_RATINGS)),
) -> list[RatingResponse]:
    engine: RatingEngine = request.app.state.rating_engine
    return [RatingResponse.from_rating(r) for r in engine.ratings_by(scope.identity)]
