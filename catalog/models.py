"""
catalog/models.py -- Domain dataclass for catalog items (movies).

Pure data container. The rating engine only ever needs an item's id; the
remaining fields exist for the catalog routes.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class Movie:
    """A movie in the catalog.

    created_by is the id of the admin identity that added it.
    id is None before the record is written to the database.
    """

    title: str
    genre: str
    release_year: int
    director: str
    description: Optional[str] = None
    created_by: Optional[int] = None
    id: Optional[int] = None
    created_at: str = ""  # ISO 8601, set by store on insert
