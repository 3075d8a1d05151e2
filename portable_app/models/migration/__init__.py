"""Migration job, checkpoint and staging models."""

from .schema import (
    CollisionResolution,
    MigrationCheckpoint,
    MigrationJob,
    MigrationJobStatus,
    MigrationJobType,
    StagedRecordMixin,
    StagedWorkflow,
    StagedWorkflowState,
    StagedWorkflowStatePermission,
)

__all__ = [
    "CollisionResolution",
    "MigrationCheckpoint",
    "MigrationJob",
    "MigrationJobStatus",
    "MigrationJobType",
    "StagedRecordMixin",
    "StagedWorkflow",
    "StagedWorkflowState",
    "StagedWorkflowStatePermission",
]
