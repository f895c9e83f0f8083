"""
auth/store.py -- SQLAlchemy Core persistence layer for identities.

Pattern: Repository + Data Mapper. IdentityStore is the repository;
_row_to_identity is the mapper. Route and service code never touches SQL
directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

Optimistic locking:
  save() on an existing identity issues
      UPDATE ... SET version = version + 1 WHERE id = :id AND version = :read_version
  A zero rowcount means someone else committed first (StaleWriteError) or
  the row is gone (NotFoundError). No lock is held between the caller's read
  and this write.

Layer rule: no imports from api/, catalog/, or ratings/.
"""

from __future__ import annotations

from dataclasses import replace

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.models import Identity, Role
from core.config import get_settings
from core.database import make_engine, now_iso
from core.exceptions import NotFoundError, RegistrationError, StaleWriteError

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_identities = Table(
    "identities",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(50), nullable=False, unique=True),
    Column("email", String(100), nullable=False, unique=True),
    Column("password_hash", Text, nullable=False),
    Column("role", String(10), nullable=False, server_default=Role.MEMBER.value),
    Column("version", Integer, nullable=False, server_default="0"),
    Column("created_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class IdentityStore:
    """Repository for Identity entities.

    Usage:
        store = IdentityStore()
        saved = store.save(Identity(name="admin", email="a@x.io", password_hash=hash_password("secret")))
        saved.role = Role.ADMIN
        store.save(saved)          # version 0 -> 1
        store.close()
    """

    def __init__(self, db_url: str = "") -> None:
        self.engine: Engine = make_engine(db_url or get_settings().database_url)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def find_by_name(self, name: str) -> Identity | None:
        """Look up an identity by exact name (case-sensitive)."""
        with self.engine.connect() as conn:
            row = conn.execute(_identities.select().where(_identities.c.name == name)).fetchone()
        return _row_to_identity(row) if row is not None else None

    def find_by_email(self, email: str) -> Identity | None:
        with self.engine.connect() as conn:
            row = conn.execute(_identities.select().where(_identities.c.email == email)).fetchone()
        return _row_to_identity(row) if row is not None else None

    def find_by_id(self, identity_id: int) -> Identity | None:
        with self.engine.connect() as conn:
            row = conn.execute(_identities.select().where(_identities.c.id == identity_id)).fetchone()
        return _row_to_identity(row) if row is not None else None

    def exists_by_name(self, name: str) -> bool:
        with self.engine.connect() as conn:
            found = conn.execute(select(_identities.c.id).where(_identities.c.name == name)).first()
        return found is not None

    def exists_by_email(self, email: str) -> bool:
        with self.engine.connect() as conn:
            found = conn.execute(select(_identities.c.id).where(_identities.c.email == email)).first()
        return found is not None

    def list_identities(self) -> list[Identity]:
        """Return all identities ordered by name. Admin-only operation."""
        with self.engine.connect() as conn:
            rows = conn.execute(_identities.select().order_by(_identities.c.name)).fetchall()
        return [_row_to_identity(r) for r in rows]

    def count(self) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(_identities)).scalar()
        return result or 0

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def save(self, identity: Identity) -> Identity:
        """Insert a new identity or apply a version-checked update.

        Returns a fresh Identity reflecting what was persisted (new id on
        insert, incremented version on update). The argument is not mutated.

        Raises:
            RegistrationError: name or email collides with another identity.
            StaleWriteError:   identity.version no longer matches storage.
            NotFoundError:     identity.id does not exist.
        """
        if identity.id is None:
            return self._insert(identity)
        return self._update(identity)

    def _insert(self, identity: Identity) -> Identity:
        created_at = now_iso()
        try:
            with self.engine.begin() as conn:
                result = conn.execute(
                    _identities.insert().values(
                        name=identity.name,
                        email=identity.email,
                        password_hash=identity.password_hash,
                        role=Role(identity.role).value,
                        version=0,
                        created_at=created_at,
                    )
                )
                new_id = result.inserted_primary_key[0]
        except IntegrityError as exc:
            raise RegistrationError() from exc
        return replace(identity, id=new_id, version=0, created_at=created_at)

    def _update(self, identity: Identity) -> Identity:
        try:
            with self.engine.begin() as conn:
                result = conn.execute(
                    _identities.update()
                    .where((_identities.c.id == identity.id) & (_identities.c.version == identity.version))
                    .values(
                        name=identity.name,
                        email=identity.email,
                        password_hash=identity.password_hash,
                        role=Role(identity.role).value,
                        version=_identities.c.version + 1,
                    )
                )
                updated = result.rowcount
        except IntegrityError as exc:
            raise RegistrationError() from exc
        if updated == 0:
            if self.find_by_id(identity.id) is None:
                raise NotFoundError("Identity not found.")
            raise StaleWriteError()
        return replace(identity, version=identity.version + 1)

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_identity(row) -> Identity:
    return Identity(
        id=row.id,
        name=row.name,
        email=row.email,
        password_hash=row.password_hash,
        role=Role(row.role),
        version=row.version,
        created_at=row.created_at,
    )
