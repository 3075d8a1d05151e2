"""SQLAlchemy-backed staging repository, partitioned by migration job."""

from __future__ import annotations

from typing import Iterable, Sequence, Type

from sqlalchemy import func, inspect
from sqlalchemy.orm import Session

from portable_app.models.base import db
from portable_app.models.migration.schema import (
    StagedRecordMixin,
    StagedWorkflow,
    StagedWorkflowState,
    StagedWorkflowStatePermission,
)

from .contracts import StagedT
from .errors import UnknownStagingKind

# Children before parents so partition cleanup never orphans rows mid-way.
STAGED_KINDS: tuple[type[StagedRecordMixin], ...] = (
    StagedWorkflowStatePermission,
    StagedWorkflowState,
    StagedWorkflow,
)

# Per-partition bookkeeping that a copied row must not inherit.
_NOT_COPIED = frozenset({"id", "job_id", "local_id", "parent_id", "created_at", "updated_at"})


class SqlStagingRepository:
    """
    Stage, read back and update staged records for one job.

    Writes are flushed, not committed: the checkpoint callback owns the
    transaction boundary.
    """

    def __init__(self, job_id: int, *, session: Session | None = None) -> None:
        self.job_id = job_id
        self.session = session or db.session

    def _query(self, kind: Type[StagedT]):
        if kind not in STAGED_KINDS:
            raise UnknownStagingKind(kind)
        return self.session.query(kind).filter(kind.job_id == self.job_id)

    def _next_sequence(self, kind: Type[StagedT]) -> int:
        current = (
            self.session.query(func.max(kind.sequence_number)).filter(kind.job_id == self.job_id).scalar()
        )
        return (current or 0) + 1

    def count(self, kind: Type[StagedT]) -> int:
        return self._query(kind).count()

    def create_batch(
        self, kind: Type[StagedT], items: Sequence[StagedT], parent_id: int | None = None
    ) -> list[StagedT]:
        """Attach ``items`` to this partition, in the given order, under ``parent_id``."""

        if kind not in STAGED_KINDS:
            raise UnknownStagingKind(kind)
        rows = list(items)
        if not rows:
            return rows

        sequence = self._next_sequence(kind)
        for offset, item in enumerate(rows):
            if not isinstance(item, kind):
                raise UnknownStagingKind(type(item))
            item.job_id = self.job_id
            item.parent_id = parent_id
            item.sequence_number = sequence + offset
        self.session.add_all(rows)
        self.session.flush()
        return rows

    def get_all(self, kind: Type[StagedT]) -> list[StagedT]:
        return self._query(kind).order_by(kind.sequence_number, kind.id).all()

    def get_by_parent(self, kind: Type[StagedT], parent_id: int) -> list[StagedT]:
        return self._query(kind).filter(kind.parent_id == parent_id).order_by(kind.sequence_number, kind.id).all()

    def update_batch(self, items: Iterable[StagedRecordMixin]) -> None:
        rows = list(items)
        if not rows:
            return
        self.session.add_all(rows)
        self.session.flush()

    def clear(self) -> int:
        """Delete every staged row of this partition; returns the number removed."""

        removed = 0
        for kind in STAGED_KINDS:
            removed += (
                self.session.query(kind).filter(kind.job_id == self.job_id).delete(synchronize_session=False)
            )
        self.session.flush()
        return removed

    def copy_from(self, source_job_id: int) -> int:
        """
        Clone another job's partition into this one.

        Export order and parent links are preserved; ``local_id`` starts
        unbound so each import job records its own target ids.
        """

        source = SqlStagingRepository(source_job_id, session=self.session)
        parent_map: dict[int, int] = {}
        copied = 0
        for kind in reversed(STAGED_KINDS):
            originals = source.get_all(kind)
            clones = [self._clone(row, parent_map) for row in originals]
            self.session.add_all(clones)
            self.session.flush()
            parent_map = {original.id: clone.id for original, clone in zip(originals, clones)}
            copied += len(clones)
        return copied

    def _clone(self, row: StagedRecordMixin, parent_map: dict[int, int]) -> StagedRecordMixin:
        kind = type(row)
        values = {
            attr.key: getattr(row, attr.key) for attr in inspect(kind).column_attrs if attr.key not in _NOT_COPIED
        }
        clone = kind(**values)
        clone.job_id = self.job_id
        clone.parent_id = parent_map.get(row.parent_id) if row.parent_id is not None else None
        return clone
