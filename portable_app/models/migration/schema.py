"""
SQLAlchemy models for migration jobs, their checkpoints and staged records.

Staged tables are partitioned by ``job_id``: an export job writes its own
rows and every import job works on its own copy of them. ``sequence_number``
records export order explicitly so import never depends on row-id order.
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import Enum, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..base import BaseModel, db


class MigrationJobType(str, enum.Enum):
    """Direction of a migration job."""

    EXPORT = "export"
    IMPORT = "import"


class MigrationJobStatus(str, enum.Enum):
    """Lifecycle states for a migration job."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


class CollisionResolution(str, enum.Enum):
    """What import does with a target record that already has the staged natural key."""

    IGNORE = "ignore"
    OVERWRITE = "overwrite"


class MigrationJob(BaseModel):
    """A single export or import between installations."""

    __tablename__ = "migration_jobs"

    id: Mapped[int] = mapped_column(primary_key=True)
    job_type: Mapped[MigrationJobType] = mapped_column(
        Enum(MigrationJobType, name="migration_job_type_enum"),
        nullable=False,
        index=True,
    )
    portal_id: Mapped[int] = mapped_column(ForeignKey("portals.id"), nullable=False, index=True)
    status: Mapped[MigrationJobStatus] = mapped_column(
        Enum(MigrationJobStatus, name="migration_job_status_enum"),
        nullable=False,
        default=MigrationJobStatus.PENDING,
        index=True,
    )
    is_cancelled: Mapped[bool] = mapped_column(db.Boolean, nullable=False, default=False)
    collision_resolution: Mapped[CollisionResolution] = mapped_column(
        Enum(CollisionResolution, name="collision_resolution_enum"),
        nullable=False,
        default=CollisionResolution.IGNORE,
    )
    include_deletions: Mapped[bool] = mapped_column(db.Boolean, nullable=False, default=False)
    from_date: Mapped[datetime | None] = mapped_column(db.DateTime(timezone=True), nullable=True)
    to_date: Mapped[datetime | None] = mapped_column(db.DateTime(timezone=True), nullable=True)
    source_job_id: Mapped[int | None] = mapped_column(
        ForeignKey("migration_jobs.id"),
        nullable=True,
        comment="Export job whose staged records an import job was copied from.",
    )
    started_at: Mapped[datetime | None] = mapped_column(db.DateTime(timezone=True))
    finished_at: Mapped[datetime | None] = mapped_column(db.DateTime(timezone=True))
    summary_json: Mapped[dict | None] = mapped_column(db.JSON, nullable=True)
    error_summary: Mapped[str | None] = mapped_column(db.Text, nullable=True)

    checkpoints = relationship(
        "MigrationCheckpoint",
        back_populates="job",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (Index("idx_migration_jobs_portal_status", "portal_id", "status"),)


class MigrationCheckpoint(BaseModel):
    """Persisted progress of one portable service within one job."""

    __tablename__ = "migration_checkpoints"

    id: Mapped[int] = mapped_column(primary_key=True)
    job_id: Mapped[int] = mapped_column(
        ForeignKey("migration_jobs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    category: Mapped[str] = mapped_column(db.String(50), nullable=False)
    stage: Mapped[int] = mapped_column(db.Integer, nullable=False, default=0)
    completed: Mapped[bool] = mapped_column(db.Boolean, nullable=False, default=False)
    progress: Mapped[int] = mapped_column(db.Integer, nullable=False, default=0)
    total_items: Mapped[int] = mapped_column(db.Integer, nullable=False, default=0)
    processed_items: Mapped[int] = mapped_column(db.Integer, nullable=False, default=0)
    stage_data: Mapped[dict | None] = mapped_column(db.JSON, nullable=True)

    job = relationship("MigrationJob", back_populates="checkpoints")

    __table_args__ = (UniqueConstraint("job_id", "category", name="uq_migration_checkpoint_job_category"),)


class StagedRecordMixin:
    """
    Columns shared by every staged table.

    ``local_id`` is written once by import when the record is matched or
    materialized in the target; see ``bind_local_id``.
    """

    id: Mapped[int] = mapped_column(db.Integer, primary_key=True, autoincrement=True)
    job_id: Mapped[int] = mapped_column(
        ForeignKey("migration_jobs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    sequence_number: Mapped[int] = mapped_column(db.Integer, nullable=False, default=0)
    source_id: Mapped[int] = mapped_column(db.Integer, nullable=False)
    local_id: Mapped[int | None] = mapped_column(db.Integer, nullable=True)
    parent_id: Mapped[int | None] = mapped_column(db.Integer, nullable=True, index=True)

    def bind_local_id(self, local_id: int) -> None:
        from portable_app.migration.errors import LocalIdAlreadyBound

        if self.local_id is not None and self.local_id != local_id:
            raise LocalIdAlreadyBound(type(self).__name__, self.id, self.local_id, local_id)
        self.local_id = local_id


class StagedWorkflow(StagedRecordMixin, BaseModel):
    """Workflow captured by an export job."""

    __tablename__ = "staged_workflows"

    name: Mapped[str] = mapped_column(db.String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(db.Text, nullable=True)
    workflow_key: Mapped[str | None] = mapped_column(db.String(100), nullable=True)
    is_system: Mapped[bool] = mapped_column(db.Boolean, nullable=False, default=False)
    is_default: Mapped[bool] = mapped_column(db.Boolean, nullable=False, default=False)
    is_deleted: Mapped[bool] = mapped_column(db.Boolean, nullable=False, default=False)


class StagedWorkflowState(StagedRecordMixin, BaseModel):
    """Workflow state captured by an export job; ``parent_id`` is the staged workflow id."""

    __tablename__ = "staged_workflow_states"

    name: Mapped[str] = mapped_column(db.String(100), nullable=False)
    order: Mapped[int] = mapped_column("state_order", db.Integer, nullable=False, default=0)
    is_system: Mapped[bool] = mapped_column(db.Boolean, nullable=False, default=False)
    send_notification: Mapped[bool] = mapped_column(db.Boolean, nullable=False, default=True)
    send_notification_to_administrators: Mapped[bool] = mapped_column(db.Boolean, nullable=False, default=True)


class StagedWorkflowStatePermission(StagedRecordMixin, BaseModel):
    """
    Workflow state permission captured by an export job; ``parent_id`` is the staged state id.

    Principals travel by name. ``role_id``/``user_id`` keep the source ids so
    pseudo roles and "no principal" can be told apart on import.
    """

    __tablename__ = "staged_workflow_state_permissions"

    permission_code: Mapped[str] = mapped_column(db.String(100), nullable=False)
    permission_key: Mapped[str] = mapped_column(db.String(100), nullable=False)
    permission_name: Mapped[str | None] = mapped_column(db.String(200), nullable=True)
    role_id: Mapped[int | None] = mapped_column(db.Integer, nullable=True)
    role_name: Mapped[str | None] = mapped_column(db.String(50), nullable=True)
    user_id: Mapped[int | None] = mapped_column(db.Integer, nullable=True)
    username: Mapped[str | None] = mapped_column(db.String(100), nullable=True)
    allow_access: Mapped[bool] = mapped_column(db.Boolean, nullable=False, default=True)
    last_modified_at: Mapped[datetime | None] = mapped_column(db.DateTime(timezone=True), nullable=True)
