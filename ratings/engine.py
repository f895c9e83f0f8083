"""
ratings/engine.py -- Rating consistency engine.

Owns the business rules around ratings:
  - the rated movie must exist in the catalog (NotFoundError otherwise)
  - the score must lie in [Settings.rating_min, Settings.rating_max]
  - at most one rating per (author, movie), decided by RatingStore.insert()
  - the average is the storage layer's AVG(), 0.0 when there are no ratings
  - deleting a movie removes its ratings in the same transaction

The author is always the identity from the caller's RequestScope, never a
value supplied in the request body.

Conflict and not-found are business outcomes, not failures: they are logged
at INFO/DEBUG and propagate as typed exceptions for the API layer to map.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging

from auth.models import Identity, RequestScope
from auth.policy import OperationCategory, enforce
from catalog.store import CatalogStore
from core.config import get_settings
from core.exceptions import ConflictError, NotFoundError, ScoreOutOfRange
from ratings.models import Rating
from ratings.store import RatingStore

logger = logging.getLogger("cinebase.ratings")


class RatingEngine:
    def __init__(
        self,
        ratings: RatingStore,
        catalog: CatalogStore,
        score_min: int | None = None,
        score_max: int | None = None,
    ) -> None:
        settings = get_settings()
        self.ratings = ratings
        self.catalog = catalog
        self.score_min = settings.rating_min if score_min is None else score_min
        self.score_max = settings.rating_max if score_max is None else score_max

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def submit(self, author: Identity, item_id: int, score: int, comment: str | None = None) -> Rating:
        """Record ``author``'s rating for ``item_id``.

        The existence pre-check avoids a write attempt in the common
        double-submit case. The UNIQUE constraint behind RatingStore.insert()
        settles true races; both paths raise the same ConflictError.

        Raises:
            NotFoundError:   the movie does not exist.
            ScoreOutOfRange: score outside the configured bounds.
            ConflictError:   this author already rated this movie.
        """
        if not self.catalog.exists_by_id(item_id):
            logger.debug("Rating rejected: movie %s does not exist", item_id)
            raise NotFoundError(f"Movie {item_id} not found.")
        if not self.score_min <= score <= self.score_max:
            raise ScoreOutOfRange(f"Score must be between {self.score_min} and {self.score_max}.")
        if self.ratings.exists_by_author_and_item(author.id, item_id):
            logger.info("Duplicate rating by identity %s for movie %s", author.id, item_id)
            raise ConflictError()
        try:
            rating = self.ratings.insert(
                Rating(
                    author_id=author.id,
                    author_name=author.name,
                    item_id=item_id,
                    score=score,
                    comment=comment or None,
                )
            )
        except ConflictError:
            logger.info("Concurrent duplicate rating by identity %s for movie %s", author.id, item_id)
            raise
        logger.info("Rating %s stored (identity=%s movie=%s score=%d)", rating.id, author.id, item_id, score)
        return rating

    def submit_rating(self, scope: RequestScope, item_id: int, score: int, comment: str | None = None) -> Rating:
        """Policy-checked entry point: submit as the identity attached to ``scope``.

        Raises NotAuthenticated for anonymous callers, then everything submit() raises.
        """
        author = enforce(scope, OperationCategory.SUBMIT_RATING)
        return self.submit(author, item_id, score, comment)

    def delete_item(self, item_id: int) -> int:
        """Delete a movie and all of its ratings in one transaction.

        Both stores must point at the same database. A missing movie raises
        NotFoundError and rolls the rating delete back. Returns the number of
        ratings removed.
        """
        with self.catalog.engine.begin() as conn:
            removed = self.ratings.delete_for_item(item_id, conn)
            if not self.catalog.delete_item(item_id, conn):
                raise NotFoundError(f"Movie {item_id} not found.")
        logger.info("Movie %s deleted with %d rating(s)", item_id, removed)
        return removed

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def average_for(self, item_id: int) -> float:
        """Arithmetic mean of all scores for the movie; 0.0 when unrated.

        Callers that must tell "unrated" from "average 0" use count_for().
        """
        average = self.ratings.average_score_for_item(item_id)
        return average if average is not None else 0.0

    def count_for(self, item_id: int) -> int:
        return self.ratings.count_for_item(item_id)

    def ratings_for_item(self, item_id: int) -> list[Rating]:
        """All ratings of a movie, newest first. NotFoundError if the movie is missing."""
        if not self.catalog.exists_by_id(item_id):
            raise NotFoundError(f"Movie {item_id} not found.")
        return self.ratings.list_for_item(item_id)

    def ratings_by(self, author: Identity) -> list[Rating]:
        return self.ratings.list_for_author(author.id)
