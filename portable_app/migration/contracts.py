"""Collaborator contracts for the workflow migration engine.

The pipelines never touch live tables or staging tables directly; they talk
to a ``WorkflowReader`` (export source), a ``WorkflowWriter`` (import
target) and a ``StagingRepository``. ``portable_app.migration.live`` and
``portable_app.migration.staging`` provide the SQLAlchemy implementations;
tests substitute in-memory fakes.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable, Protocol, Sequence, Type, TypeVar

from portable_app.models.migration.schema import CollisionResolution, MigrationJob, StagedRecordMixin

StagedT = TypeVar("StagedT", bound=StagedRecordMixin)

# Invoked after every persisted progress update. Returning True asks the
# running pipeline to stop at this point; the next invocation resumes.
CheckpointCallback = Callable[[object], bool]


@dataclass
class WorkflowRecord:
    """Portable view of a live workflow."""

    id: int | None
    portal_id: int
    name: str
    description: str | None = None
    workflow_key: str | None = None
    is_system: bool = False
    is_deleted: bool = False


@dataclass
class WorkflowStateRecord:
    """Portable view of a live workflow state."""

    id: int | None
    workflow_id: int
    name: str
    order: int = 0
    is_system: bool = False
    send_notification: bool = True
    send_notification_to_administrators: bool = True


@dataclass
class StatePermissionRecord:
    """
    Portable view of a live workflow state permission.

    On export the ``permission_code``/``permission_key`` and principal names
    are filled in; on import ``permission_id``/``role_id``/``user_id`` carry
    the ids resolved in the target.
    """

    id: int | None
    state_id: int
    permission_code: str | None = None
    permission_key: str | None = None
    permission_name: str | None = None
    permission_id: int | None = None
    role_id: int | None = None
    role_name: str | None = None
    user_id: int | None = None
    username: str | None = None
    allow_access: bool = True
    last_modified_at: datetime | None = None


class WorkflowReader(Protocol):
    """Read side of the live system used by export."""

    def list_workflows(self, portal_id: int, include_deleted: bool) -> list[WorkflowRecord]: ...

    def get_default_workflow_id(self, portal_id: int) -> int | None: ...

    def list_states(self, workflow_id: int) -> list[WorkflowStateRecord]: ...

    def list_state_permissions(
        self, state_id: int, from_date: datetime, to_date: datetime
    ) -> list[StatePermissionRecord]: ...


class WorkflowWriter(Protocol):
    """Write side of the live system used by import."""

    def find_workflow_by_name(self, portal_id: int, name: str) -> WorkflowRecord | None: ...

    def create_workflow(self, record: WorkflowRecord) -> WorkflowRecord: ...

    def update_workflow(self, record: WorkflowRecord) -> None: ...

    def set_default_workflow(self, portal_id: int, workflow_id: int) -> None: ...

    def find_state_by_name(self, workflow_id: int, name: str) -> WorkflowStateRecord | None: ...

    def create_state(self, record: WorkflowStateRecord) -> WorkflowStateRecord: ...

    def update_state(self, record: WorkflowStateRecord) -> None: ...

    def find_state_permission(self, record: StatePermissionRecord) -> StatePermissionRecord | None: ...

    def create_state_permission(self, record: StatePermissionRecord) -> StatePermissionRecord: ...

    def resolve_permission(self, code: str, key: str) -> int | None: ...

    def resolve_role(self, portal_id: int, name: str) -> int | None: ...

    def resolve_user(self, portal_id: int, name: str) -> int | None: ...


class StagingRepository(Protocol):
    """Keyed store of staged records for one job partition."""

    def count(self, kind: Type[StagedT]) -> int: ...

    def create_batch(
        self, kind: Type[StagedT], items: Sequence[StagedT], parent_id: int | None = None
    ) -> list[StagedT]: ...

    def get_all(self, kind: Type[StagedT]) -> list[StagedT]: ...

    def get_by_parent(self, kind: Type[StagedT], parent_id: int) -> list[StagedT]: ...

    def update_batch(self, items: Iterable[StagedRecordMixin]) -> None: ...


@dataclass(frozen=True)
class ExportOptions:
    """What an export job captures."""

    portal_id: int
    from_date: datetime | None = None
    to_date: datetime | None = None
    include_deletions: bool = False

    @classmethod
    def from_job(cls, job: MigrationJob) -> "ExportOptions":
        return cls(
            portal_id=job.portal_id,
            from_date=job.from_date,
            to_date=job.to_date,
            include_deletions=bool(job.include_deletions),
        )


@dataclass(frozen=True)
class ImportOptions:
    """Where and how an import job materializes staged records."""

    portal_id: int
    collision_resolution: CollisionResolution = CollisionResolution.IGNORE

    @classmethod
    def from_job(cls, job: MigrationJob) -> "ImportOptions":
        return cls(
            portal_id=job.portal_id,
            collision_resolution=CollisionResolution(job.collision_resolution),
        )
