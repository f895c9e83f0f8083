"""
api/routes/v1/movies.py -- Catalog routes plus the per-movie rating reads.

Routes (in registration order to avoid FastAPI path capture conflicts):
  GET    /movies                       -- list movies (public)
  POST   /movies                       -- create movie (admin)
  GET    /movies/{movie_id}            -- movie detail (public)
  PUT    /movies/{movie_id}            -- replace movie details (admin)
  DELETE /movies/{movie_id}            -- delete movie and its ratings (admin)
  GET    /movies/{movie_id}/rating     -- average score + count (public)
  GET    /movies/{movie_id}/ratings    -- all ratings of a movie (authenticated)

Catalog validation beyond field presence is out of scope; these handlers
only translate between HTTP and the stores / rating engine.
"""

from fastapi import APIRouter, Depends, Request, Response

from api.models import AverageRatingResponse, MovieCreate, MovieResponse, MovieUpdate, RatingResponse
from auth.dependencies import require
from auth.models import RequestScope
from auth.policy import OperationCategory
from catalog.models import Movie
from catalog.store import CatalogStore
from core.exceptions import NotFoundError
from ratings.engine import RatingEngine

router = APIRouter()


@router.get("/movies", response_model=list[MovieResponse])
def list_movies(
    request: Request,
    scope: RequestScope = Depends(require(OperationCategory.READ_CATALOG)),
) -> list[MovieResponse]:
    catalog: CatalogStore = request.app.state.catalog
    return [MovieResponse.from_movie(m) for m in catalog.list_items()]


@router.post("/movies", response_model=MovieResponse, status_code=201)
def create_movie(
    request: Request,
    body: MovieCreate,
    scope: RequestScope = Depends(require(OperationCategory.WRITE_CATALOG)),
) -> MovieResponse:
    catalog: CatalogStore = request.app.state.catalog
    movie_id = catalog.create_item(
        Movie(
            title=body.title,
            description=body.description,
            genre=body.genre,
            release_year=body.release_year,
            director=body.director,
            created_by=scope.identity.id,
        )
    )
    return MovieResponse.from_movie(catalog.get_item(movie_id))


@router.get("/movies/{movie_id}", response_model=MovieResponse)
def get_movie(
    request: Request,
    movie_id: int,
    scope: RequestScope = Depends(require(OperationCategory.READ_CATALOG)),
) -> MovieResponse:
    catalog: CatalogStore = request.app.state.catalog
    movie = catalog.get_item(movie_id)
    if movie is None:
        raise NotFoundError(f"Movie {movie_id} not found.")
    return MovieResponse.from_movie(movie)


@router.put("/movies/{movie_id}", response_model=MovieResponse)
def update_movie(
    request: Request,
    movie_id: int,
    body: MovieUpdate,
    scope: RequestScope = Depends(require(OperationCategory.WRITE_CATALOG)),
) -> MovieResponse:
    """Replace a movie's details. Ratings are unaffected."""
    catalog: CatalogStore = request.app.state.catalog
    updated = catalog.update_item(
        movie_id,
        Movie(
            title=body.title,
            description=body.description,
            genre=body.genre,
            release_year=body.release_year,
            director=body.director,
        ),
    )
    if not updated:
        raise NotFoundError(f"Movie {movie_id} not found.")
    return MovieResponse.from_movie(catalog.get_item(movie_id))


@router.delete("/movies/{movie_id}", status_code=204)
def delete_movie(
    request: Request,
    movie_id: int,
    scope: RequestScope = Depends(require(OperationCategory.WRITE_CATALOG)),
) -> Response:
    """Delete a movie. Its ratings are removed in the same transaction."""
    engine: RatingEngine = request.app.state.rating_engine
    engine.delete_item(movie_id)
    return Response(status_code=204)


@router.get("/movies/{movie_id}/rating", response_model=AverageRatingResponse)
def average_rating(
    request: Request,
    movie_id: int,
    scope: RequestScope = Depends(require(OperationCategory.READ_CATALOG)),
) -> AverageRatingResponse:
    """Average score of a movie. 0.0 with count=0 when nobody has rated it yet."""
    engine: RatingEngine = request.app.state.rating_engine
    return AverageRatingResponse(
        movie_id=movie_id,
        average=engine.average_for(movie_id),
        count=engine.count_for(movie_id),
    )


@router.get("/movies/{movie_id}/ratings", response_model=list[RatingResponse])
def list_movie_ratings(
    request: Request,
    movie_id: int,
    scope: RequestScope = Depends(require(OperationCategory.READ_RATINGS)),
) -> list[RatingResponse]:
    engine: RatingEngine = request.app.state.rating_engine
    return [RatingResponse.from_rating(r) for r in engine.ratings_for_item(movie_id)]
