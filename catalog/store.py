"""
catalog/store.py -- SQLAlchemy Core persistence layer for the movie catalog.

Pattern: Repository + Data Mapper, same as auth/store.py. The rating engine
depends only on exists_by_id(); the rest backs the thin catalog routes.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = CatalogStore()
    movie_id = store.create_item(Movie(title="Alien", genre="Sci-Fi", release_year=1979, director="Ridley Scott"))
    store.exists_by_id(movie_id)   # True
    store.close()
"""

from typing import Optional

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, select
from sqlalchemy.engine import Connection, Engine

from catalog.models import Movie
from core.config import get_settings
from core.database import make_engine, now_iso

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_movies = Table(
    "movies",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("title", String(255), nullable=False),
    Column("description", Text),
    Column("genre", String(100), nullable=False),
    Column("release_year", Integer, nullable=False),
    Column("director", String(255), nullable=False),
    Column("created_by", Integer),
    Column("created_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class CatalogStore:
    def __init__(self, db_url: str = "") -> None:
        self.engine: Engine = make_engine(db_url or get_settings().database_url)
        metadata.create_all(self.engine)

    def create_item(self, movie: Movie) -> int:
        """Insert a movie and return its assigned id."""
        with self.engine.begin() as conn:
            result = conn.execute(
                _movies.insert().values(
                    title=movie.title,
                    description=movie.description,
                    genre=movie.genre,
                    release_year=movie.release_year,
                    director=movie.director,
                    created_by=movie.created_by,
                    created_at=now_iso(),
                )
            )
            return result.inserted_primary_key[0]

    def get_item(self, item_id: int) -> Optional[Movie]:
        with self.engine.connect() as conn:
            row = conn.execute(_movies.select().where(_movies.c.id == item_id)).fetchone()
        return _row_to_movie(row) if row is not None else None

    def list_items(self) -> list[Movie]:
        """Return all movies ordered by title."""
        with self.engine.connect() as conn:
            rows = conn.execute(_movies.select().order_by(_movies.c.title, _movies.c.id)).fetchall()
        return [_row_to_movie(r) for r in rows]

    def exists_by_id(self, item_id: int) -> bool:
        with self.engine.connect() as conn:
            found = conn.execute(select(_movies.c.id).where(_movies.c.id == item_id)).first()
        return found is not None

    def update_item(self, item_id: int, movie: Movie) -> bool:
        """Overwrite the editable fields of a movie. Returns False if not found.

        created_by and created_at keep their original values.
        """
        with self.engine.begin() as conn:
            result = conn.execute(
                _movies.update()
                .where(_movies.c.id == item_id)
                .values(
                    title=movie.title,
                    description=movie.description,
                    genre=movie.genre,
                    release_year=movie.release_year,
                    director=movie.director,
                )
            )
        return result.rowcount > 0

    def delete_item(self, item_id: int, conn: Optional[Connection] = None) -> bool:
        """Delete a movie. Returns True if deleted, False if not found.

        Ratings are not touched here. Pass ``conn`` to run the delete inside a
        caller's transaction; RatingEngine.delete_item() does this so the movie
        and its ratings disappear together.
        """
        if conn is not None:
            return _delete_movie(conn, item_id)
        with self.engine.begin() as own_conn:
            return _delete_movie(own_conn, item_id)

    def close(self) -> None:
        self.engine.dispose()


def _delete_movie(conn: Connection, item_id: int) -> bool:
    return conn.execute(_movies.delete().where(_movies.c.id == item_id)).rowcount > 0


# ---------------------------------------------------------------------------
# Row mapper
# ---------------------------------------------------------------------------


def _row_to_movie(row) -> Movie:
    return Movie(
        id=row.id,
        title=row.title,
        description=row.description,
        genre=row.genre,
        release_year=row.release_year,
        director=row.director,
        created_by=row.created_by,
        created_at=row.created_at,
    )
