"""
tests/test_rating_engine.py -- Unit tests for the rating consistency engine.

Covers:
  - Happy path: rating stored with author from the identity
  - One rating per (author, movie): sequential duplicate -> ConflictError
  - Race: pre-check bypassed, the UNIQUE constraint still yields ConflictError
  - Concurrency: N threads, same author and movie -> exactly one success
  - Missing movie -> NotFoundError; out-of-range score -> ScoreOutOfRange
  - Averages: live AVG(), 0.0 when unrated
  - submit_rating() enforces the policy for anonymous scopes
  - delete_item() removes a movie and its ratings in one transaction
"""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError

from auth.models import ANONYMOUS, Identity, RequestScope, Role
from catalog.models import Movie
from catalog.store import CatalogStore
from core.exceptions import ConflictError, NotAuthenticated, NotFoundError, ScoreOutOfRange
from ratings.engine import RatingEngine
from ratings.store import RatingStore


def _member(identity_id: int, name: str) -> Identity:
    return Identity(
        id=identity_id,
        name=name,
        email=f"{name}@cinebase.io",
        password_hash="h",
        role=Role.MEMBER,
    )


BOB = _member(2, "bob")
CAROL = _member(3, "carol")
DAVE = _member(4, "dave")


class TestSubmit:
    def test_submit_stores_rating(self, engine, movie_id):
        rating = engine.submit(BOB, movie_id, 8, "Great film")
        assert rating.id is not None
        assert rating.author_id == BOB.id
        assert rating.author_name == "bob"
        assert rating.item_id == movie_id
        assert rating.score == 8
        assert rating.comment == "Great film"
        assert rating.created_at

    def test_blank_comment_stored_as_none(self, engine, movie_id):
        assert engine.submit(BOB, movie_id, 5, "").comment is None

    def test_second_rating_same_movie_conflicts(self, engine, rating_store, movie_id):
        engine.submit(BOB, movie_id, 8)
        with pytest.raises(ConflictError):
            engine.submit(BOB, movie_id, 3)
        assert rating_store.count_for_item(movie_id) == 1
        assert engine.average_for(movie_id) == 8.0, "first rating must be unchanged"

    def test_other_author_can_rate_same_movie(self, engine, movie_id):
        engine.submit(BOB, movie_id, 8)
        engine.submit(CAROL, movie_id, 6)
        assert engine.count_for(movie_id) == 2

    def test_same_author_can_rate_other_movie(self, engine, catalog, movie_id):
        other = catalog.create_item(Movie(title="Heat", genre="Crime", release_year=1995, director="Michael Mann"))
        engine.submit(BOB, movie_id, 8)
        engine.submit(BOB, other, 9)
        assert [r.item_id for r in engine.ratings_by(BOB)] == [other, movie_id]

    def test_missing_movie(self, engine):
        with pytest.raises(NotFoundError):
            engine.submit(BOB, 999, 8)

    @pytest.mark.parametrize("score", [0, 11, -3])
    def test_score_out_of_range(self, engine, rating_store, movie_id, score):
        with pytest.raises(ScoreOutOfRange):
            engine.submit(BOB, movie_id, score)
        assert rating_store.count_for_item(movie_id) == 0

    @pytest.mark.parametrize("score", [1, 10])
    def test_score_bounds_inclusive(self, engine, movie_id, score):
        assert engine.submit(BOB, movie_id, score).score == score

    def test_anonymous_scope_rejected(self, engine, movie_id):
        with pytest.raises(NotAuthenticated):
            engine.submit_rating(ANONYMOUS, movie_id, 8)

    def test_scope_supplies_author(self, engine, movie_id):
        rating = engine.submit_rating(RequestScope(identity=CAROL), movie_id, 7)
        assert rating.author_id == CAROL.id


class TestRaceSafety:
    def test_constraint_settles_race_when_precheck_passes(self, engine, rating_store, movie_id, monkeypatch):
        """Both requests pass the existence check; the loser still gets ConflictError."""
        monkeypatch.setattr(rating_store, "exists_by_author_and_item", lambda author_id, item_id: False)
        engine.submit(BOB, movie_id, 8)
        with pytest.raises(ConflictError):
            engine.submit(BOB, movie_id, 2)
        assert rating_store.count_for_item(movie_id) == 1

    def test_unique_constraint_exists_in_schema(self, rating_store, movie_id):
        """A raw duplicate insert bypassing the store must fail at the database."""
        insert = text(
            "INSERT INTO ratings (author_id, author_name, item_id, score, created_at) "
            "VALUES (:a, 'bob', :i, 5, '2026-01-01T00:00:00+00:00')"
        )
        with rating_store.engine.begin() as conn:
            conn.execute(insert, {"a": BOB.id, "i": movie_id})
        with pytest.raises(IntegrityError) as exc_info:
            with rating_store.engine.begin() as conn:
                conn.execute(insert, {"a": BOB.id, "i": movie_id})
        assert "UNIQUE" in str(exc_info.value)

    def test_concurrent_submissions_yield_exactly_one_rating(self, tmp_path):
        """N threads submit the same (author, movie) at once against a file database."""
        db_url = f"sqlite:///{tmp_path / 'race.db'}"
        catalog = CatalogStore(db_url)
        ratings = RatingStore(db_url)
        engine = RatingEngine(ratings, catalog, score_min=1, score_max=10)
        movie_id = catalog.create_item(Movie(title="Alien", genre="Sci-Fi", release_year=1979, director="Ridley Scott"))

        workers = 8
        barrier = threading.Barrier(workers)

        def attempt(score: int) -> str:
            barrier.wait()
            try:
                engine.submit(BOB, movie_id, score)
            except ConflictError:
                return "conflict"
            return "created"

        try:
            with ThreadPoolExecutor(max_workers=workers) as pool:
                outcomes = list(pool.map(attempt, range(1, workers + 1)))
            assert outcomes.count("created") == 1, outcomes
            assert outcomes.count("conflict") == workers - 1, outcomes
            assert ratings.count_for_item(movie_id) == 1
        finally:
            ratings.close()
            catalog.close()


class TestAverages:
    def test_unrated_movie_averages_zero(self, engine, movie_id):
        assert engine.average_for(movie_id) == 0.0
        assert engine.count_for(movie_id) == 0

    def test_average_is_arithmetic_mean(self, engine, movie_id):
        engine.submit(BOB, movie_id, 10)
        engine.submit(CAROL, movie_id, 9)
        engine.submit(DAVE, movie_id, 10)
        assert engine.average_for(movie_id) == pytest.approx(29 / 3)
        assert round(engine.average_for(movie_id), 2) == 9.67

    def test_average_reflects_new_rating_immediately(self, engine, movie_id):
        engine.submit(BOB, movie_id, 4)
        assert engine.average_for(movie_id) == 4.0
        engine.submit(CAROL, movie_id, 8)
        assert engine.average_for(movie_id) == 6.0

    def test_ratings_for_missing_movie(self, engine):
        with pytest.raises(NotFoundError):
            engine.ratings_for_item(12345)

    def test_ratings_for_item_newest_first(self, engine, movie_id):
        engine.submit(BOB, movie_id, 4)
        engine.submit(CAROL, movie_id, 8)
        assert [r.author_name for r in engine.ratings_for_item(movie_id)] == ["carol", "bob"]


class TestDeleteItem:
    def test_removes_movie_and_its_ratings(self, engine, catalog, rating_store, movie_id):
        engine.submit(BOB, movie_id, 8)
        engine.submit(CAROL, movie_id, 6)
        assert engine.delete_item(movie_id) == 2
        assert not catalog.exists_by_id(movie_id)
        assert rating_store.count_for_item(movie_id) == 0

    def test_other_movies_keep_their_ratings(self, engine, catalog, rating_store, movie_id):
        other = catalog.create_item(Movie(title="Aliens", genre="Sci-Fi", release_year=1986, director="James Cameron"))
        engine.submit(BOB, movie_id, 8)
        engine.submit(BOB, other, 9)
        engine.delete_item(movie_id)
        assert rating_store.count_for_item(other) == 1

    def test_missing_movie(self, engine):
        with pytest.raises(NotFoundError):
            engine.delete_item(999)

    def test_failed_movie_delete_rolls_back_rating_delete(self, engine, catalog, rating_store, movie_id, monkeypatch):
        """Ratings and movie go together or not at all."""
        engine.submit(BOB, movie_id, 8)
        monkeypatch.setattr(catalog, "delete_item", lambda item_id, conn=None: False)
        with pytest.raises(NotFoundError):
            engine.delete_item(movie_id)
        assert rating_store.count_for_item(movie_id) == 1
