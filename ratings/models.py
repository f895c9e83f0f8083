"""
ratings/models.py -- Domain dataclass for ratings.

A Rating is immutable once written: there is no update or delete flow for a
single rating. author_name is copied from the identity at insert time so
listings can show who wrote each rating without a second lookup; identity
names are never changed after registration.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Rating:
    """One score (+ optional comment) by one identity for one movie.

    id and created_at are None before the record is written to the database.
    """

    author_id: int
    item_id: int
    score: int
    comment: Optional[str] = None
    author_name: str = ""
    id: Optional[int] = None
    created_at: Optional[str] = None
