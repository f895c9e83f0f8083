"""
ratings/store.py -- SQLAlchemy Core persistence layer for ratings.

Pattern: Repository + Data Mapper, same as auth/store.py and catalog/store.py.

One rating per (author, item):
  UNIQUE(author_id, item_id) is the correctness guarantee. insert() also runs
  an existence check inside the same transaction as a fast path, but two
  concurrent requests can both pass that check; the loser then hits the
  constraint and gets the same ConflictError the check would have raised.

Averages:
  average_score_for_item() is a single SQL AVG() at read time. There is no
  cached aggregate, so a new rating is reflected on the very next read.

Security: all queries use bound parameters. No f-strings in SQL.
"""

from dataclasses import replace
from typing import Optional

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, UniqueConstraint, func, select
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError

from core.config import get_settings
from core.database import make_engine, now_iso
from core.exceptions import ConflictError
from ratings.models import Rating

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_ratings = Table(
    "ratings",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("author_id", Integer, nullable=False, index=True),
    Column("author_name", String(50), nullable=False, server_default=""),
    Column("item_id", Integer, nullable=False, index=True),
    Column("score", Integer, nullable=False),
    Column("comment", Text),
    Column("created_at", String(32), nullable=False),
    UniqueConstraint("author_id", "item_id", name="uq_rating_author_item"),
)


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class RatingStore:
    """Repository for Rating entities.

    Usage:
        store = RatingStore("sqlite:///:memory:")
        saved = store.insert(Rating(author_id=1, item_id=7, score=9))
        store.average_score_for_item(7)   # 9.0
        store.close()
    """

    def __init__(self, db_url: str = "") -> None:
        self.engine: Engine = make_engine(db_url or get_settings().database_url)
        metadata.create_all(self.engine)

    def exists_by_author_and_item(self, author_id: int, item_id: int) -> bool:
        with self.engine.connect() as conn:
            found = conn.execute(
                select(_ratings.c.id).where((_ratings.c.author_id == author_id) & (_ratings.c.item_id == item_id))
            ).first()
        return found is not None

    def insert(self, rating: Rating) -> Rating:
        """Persist a rating and return it with id and created_at filled in.

        Raises:
            ConflictError: the author already rated this item, whether detected
                           by the in-transaction check or by the UNIQUE constraint.
        """
        created_at = now_iso()
        try:
            with self.engine.begin() as conn:
                duplicate = conn.execute(
                    select(_ratings.c.id).where(
                        (_ratings.c.author_id == rating.author_id) & (_ratings.c.item_id == rating.item_id)
                    )
                ).first()
                if duplicate is not None:
                    raise ConflictError()
                result = conn.execute(
                    _ratings.insert().values(
                        author_id=rating.author_id,
                        author_name=rating.author_name,
                        item_id=rating.item_id,
                        score=rating.score,
                        comment=rating.comment,
                        created_at=created_at,
                    )
                )
                new_id = result.inserted_primary_key[0]
        except IntegrityError as exc:
            raise ConflictError() from exc
        return replace(rating, id=new_id, created_at=created_at)

    def average_score_for_item(self, item_id: int) -> Optional[float]:
        """Return AVG(score) for the item, or None when it has no ratings."""
        with self.engine.connect() as conn:
            result = conn.execute(select(func.avg(_ratings.c.score)).where(_ratings.c.item_id == item_id)).scalar()
        return float(result) if result is not None else None

    def count_for_item(self, item_id: int) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(
                select(func.count()).select_from(_ratings).where(_ratings.c.item_id == item_id)
            ).scalar()
        return result or 0

    def list_for_item(self, item_id: int) -> list[Rating]:
        """Return all ratings for an item, newest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _ratings.select()
                .where(_ratings.c.item_id == item_id)
                .order_by(_ratings.c.created_at.desc(), _ratings.c.id.desc())
            ).fetchall()
        return [_row_to_rating(r) for r in rows]

    def list_for_author(self, author_id: int) -> list[Rating]:
        """Return all ratings written by one identity, newest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _ratings.select()
                .where(_ratings.c.author_id == author_id)
                .order_by(_ratings.c.created_at.desc(), _ratings.c.id.desc())
            ).fetchall()
        return [_row_to_rating(r) for r in rows]

    def delete_for_item(self, item_id: int, conn: Optional[Connection] = None) -> int:
        """Remove every rating of a deleted movie. Returns the number removed.

        Pass ``conn`` to join a caller's transaction (see RatingEngine.delete_item).
        """
        if conn is not None:
            return conn.execute(_ratings.delete().where(_ratings.c.item_id == item_id)).rowcount
        with self.engine.begin() as own_conn:
            result = own_conn.execute(_ratings.delete().where(_ratings.c.item_id == item_id))
        return result.rowcount

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper
# ---------------------------------------------------------------------------


def _row_to_rating(row) -> Rating:
    return Rating(
        id=row.id,
        author_id=row.author_id,
        author_name=row.author_name,
        item_id=row.item_id,
        score=row.score,
        comment=row.comment,
        created_at=row.created_at,
    )
