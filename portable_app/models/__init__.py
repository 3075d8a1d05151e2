# portable_app/models/__init__.py
"""
Database models package
"""

from .base import BaseModel, db
from .migration import (
    CollisionResolution,
    MigrationCheckpoint,
    MigrationJob,
    MigrationJobStatus,
    MigrationJobType,
    StagedWorkflow,
    StagedWorkflowState,
    StagedWorkflowStatePermission,
)
from .portal import Portal
from .role import ALL_USERS_ROLE_ID, NO_ROLE_ID, UNAUTHENTICATED_ROLE_ID, Permission, Role, User
from .workflow import Workflow, WorkflowState, WorkflowStatePermission

__all__ = [
    "db",
    "BaseModel",
    "Portal",
    "Role",
    "Permission",
    "User",
    "ALL_USERS_ROLE_ID",
    "UNAUTHENTICATED_ROLE_ID",
    "NO_ROLE_ID",
    # Workflow models
    "Workflow",
    "WorkflowState",
    "WorkflowStatePermission",
    # Migration models
    "CollisionResolution",
    "MigrationCheckpoint",
    "MigrationJob",
    "MigrationJobStatus",
    "MigrationJobType",
    "StagedWorkflow",
    "StagedWorkflowState",
    "StagedWorkflowStatePermission",
]
