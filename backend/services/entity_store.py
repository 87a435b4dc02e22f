"""
Keyed stores for auth elements.

``EntityStore`` persists one model (users, groups, targets, projects);
``RelationshipStore`` adds traversal for edge-like models (belongs,
accesses). Each store shares the caller's SQLAlchemy session.

Writes normally commit immediately. A transaction coordinator can switch a
store's auto-commit off, in which case writes only flush and durability is
decided by whoever commits the session.
"""

import enum
import logging
from typing import Generic, Iterable, List, Optional, Sequence, Type, TypeVar

from sqlalchemy import inspect, or_, select
from sqlalchemy.orm import Session

from auth.errors import InvalidArgumentError
from models.auth_element import new_id, utcnow

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Direction(enum.Enum):
    """Which end of a relationship a node sits on."""

    OUT = "out"    # node is the source
    IN = "in"      # node is the target
    BOTH = "both"


class EntityStore(Generic[T]):
    """
    Add/update/delete/get/list for a single model.

    Args:
        session: Session shared by every store of one manager.
        model: Mapped class handled by this store.
        label: Human-readable kind used in messages (``"user"``).
        natural_key: Columns that identify a record besides its id; ``add``
            refuses a second record with the same values.
    """

    def __init__(
        self,
        session: Session,
        model: Type[T],
        label: str,
        natural_key: Sequence[str] = ("name",),
    ):
        self.session = session
        self.model = model
        self.label = label
        self.natural_key = tuple(natural_key)
        self._auto_commit = True

    # ── Transaction control ───────────────────────────────────────────

    @property
    def auto_commit(self) -> bool:
        return self._auto_commit

    def should_commit(self, value: bool) -> None:
        """Turn per-write commits on or off."""
        self._auto_commit = value

    def _commit_or_flush(self) -> None:
        if not self._auto_commit:
            self.session.flush()
            return
        try:
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

    # ── Writes ────────────────────────────────────────────────────────

    def add(self, entity: T) -> str:
        """Insert ``entity`` and return its id."""
        duplicate = self._find_duplicate(entity)
        if duplicate is not None:
            raise InvalidArgumentError(
                f"Can't save {self.label} '{self._describe(entity)}' that already exists"
            )
        if not entity.id:
            entity.id = new_id()
        now = utcnow()
        entity.created_at = entity.created_at or now
        entity.updated_at = now
        self.session.add(entity)
        self._commit_or_flush()
        logger.debug(f"Added {self.label} {entity.id}")
        return entity.id

    def update(self, entity: T) -> str:
        """Write back a modified ``entity``; it must already exist."""
        if not entity.id or not self.exists(entity.id):
            raise InvalidArgumentError(
                f"Can't update {self.label} '{entity.id}' that does not exist"
            )
        if entity not in self.session:
            entity = self.session.merge(entity)
        entity.updated_at = utcnow()
        self._commit_or_flush()
        logger.debug(f"Updated {self.label} {entity.id}")
        return entity.id

    def delete(self, entity_id: str) -> Optional[T]:
        """Remove a record; returns it, or ``None`` if it did not exist."""
        entity = self.get(entity_id)
        if entity is None:
            return None
        # Reload edge collections so the delete cascade sees current edges
        collections = [
            rel.key for rel in inspect(self.model).relationships if rel.uselist
        ]
        if collections:
            self.session.expire(entity, collections)
        self.session.delete(entity)
        self._commit_or_flush()
        logger.debug(f"Deleted {self.label} {entity_id}")
        return entity

    # ── Reads ─────────────────────────────────────────────────────────

    def get(self, entity_id: Optional[str]) -> Optional[T]:
        if not entity_id:
            return None
        return self.session.get(self.model, entity_id)

    def exists(self, entity_id: Optional[str]) -> bool:
        if not entity_id:
            return False
        stmt = select(self.model.id).where(self.model.id == entity_id)
        return self.session.execute(stmt).first() is not None

    def list(self, ids: Iterable[str]) -> List[T]:
        """Records for ``ids`` in the given order; unknown ids are skipped."""
        ids = [i for i in ids if i]
        if not ids:
            return []
        stmt = select(self.model).where(self.model.id.in_(ids))
        found = {e.id: e for e in self.session.execute(stmt).scalars()}
        return [found[i] for i in ids if i in found]

    def list_all(self, limit: int = -1) -> List[T]:
        """All records, oldest first; a negative ``limit`` means no limit."""
        stmt = select(self.model).order_by(self.model.created_at, self.model.id)
        return self._limited(stmt, limit)

    def query(self, field: str, value, limit: int = -1) -> List[T]:
        column = getattr(self.model, field)
        stmt = select(self.model).where(column == value).order_by(self.model.created_at)
        return self._limited(stmt, limit)

    # ── Helpers ───────────────────────────────────────────────────────

    def _limited(self, stmt, limit: int) -> List[T]:
        if limit is not None and limit >= 0:
            stmt = stmt.limit(limit)
        return list(self.session.execute(stmt).scalars())

    def _find_duplicate(self, entity: T) -> Optional[T]:
        if not self.natural_key:
            return None
        stmt = select(self.model)
        for field in self.natural_key:
            stmt = stmt.where(getattr(self.model, field) == getattr(entity, field))
        return self.session.execute(stmt.limit(1)).scalars().first()

    def _describe(self, entity: T) -> str:
        return ", ".join(str(getattr(entity, f)) for f in self.natural_key) or str(entity.id)


class RelationshipStore(EntityStore[T]):
    """
    Store for edge-like models with a source and a target column.

    ``list_by_node`` answers "which edges of this kind touch this node",
    the traversal used to walk user -> groups -> grants.
    """

    def __init__(
        self,
        session: Session,
        model: Type[T],
        label: str,
        source_field: str,
        target_field: str,
        natural_key: Optional[Sequence[str]] = None,
    ):
        if natural_key is None:
            natural_key = (source_field, target_field)
        super().__init__(session, model, label, natural_key=natural_key)
        self.source_field = source_field
        self.target_field = target_field

    def list_by_node(
        self,
        node_id: str,
        direction: Direction = Direction.OUT,
        limit: int = -1,
    ) -> List[T]:
        source = getattr(self.model, self.source_field)
        target = getattr(self.model, self.target_field)
        if direction is Direction.OUT:
            condition = source == node_id
        elif direction is Direction.IN:
            condition = target == node_id
        else:
            condition = or_(source == node_id, target == node_id)
        stmt = (
            select(self.model)
            .where(condition)
            .order_by(self.model.created_at, self.model.id)
        )
        return self._limited(stmt, limit)
