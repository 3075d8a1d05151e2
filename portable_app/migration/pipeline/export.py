"""
Export pipeline: stage a portal's workflows, states and state permissions.

Export is a single stage. It never resumes mid-stage; an interrupted export
is rerun from scratch after the orchestrator clears the job's staging
partition.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Tuple

from flask import current_app, has_app_context

from portable_app.models.migration.schema import (
    StagedWorkflow,
    StagedWorkflowState,
    StagedWorkflowStatePermission,
)
from portable_app.utils.dates import MIN_DB_TIME, to_local

from ..checkpoint import CheckpointTracker
from ..contracts import (
    CheckpointCallback,
    StagingRepository,
    StatePermissionRecord,
    WorkflowReader,
    WorkflowRecord,
    WorkflowStateRecord,
)
from ..correlation import KIND_STATE, KIND_STATE_PERMISSION, KIND_WORKFLOW
from ..metrics import record_entity_outcome, record_pipeline_invocation
from ..result import MigrationResult

EXPORT_STAGE = 0

DateRange = Tuple[datetime | None, datetime | None]


@dataclass
class ExportSummary:
    """Counts of records staged by one export invocation."""

    workflows_staged: int = 0
    states_staged: int = 0
    permissions_staged: int = 0
    skipped: bool = False

    @property
    def total_staged(self) -> int:
        return self.workflows_staged + self.states_staged + self.permissions_staged


def normalize_window(date_range: DateRange) -> tuple[datetime, datetime]:
    """Resolve open bounds and convert both ends to local time."""

    from_date, to_date = date_range
    return to_local(from_date or MIN_DB_TIME), to_local(to_date or datetime.now(timezone.utc))


def _staged_workflow(record: WorkflowRecord, *, is_default: bool) -> StagedWorkflow:
    return StagedWorkflow(
        source_id=record.id,
        name=record.name,
        description=record.description,
        workflow_key=record.workflow_key,
        is_system=record.is_system,
        is_default=is_default,
        is_deleted=record.is_deleted,
    )


def _staged_state(record: WorkflowStateRecord) -> StagedWorkflowState:
    return StagedWorkflowState(
        source_id=record.id,
        name=record.name,
        order=record.order,
        is_system=record.is_system,
        send_notification=record.send_notification,
        send_notification_to_administrators=record.send_notification_to_administrators,
    )


def _staged_permission(record: StatePermissionRecord) -> StagedWorkflowStatePermission:
    return StagedWorkflowStatePermission(
        source_id=record.id,
        permission_code=record.permission_code,
        permission_key=record.permission_key,
        permission_name=record.permission_name,
        role_id=record.role_id,
        role_name=record.role_name,
        user_id=record.user_id,
        username=record.username,
        allow_access=record.allow_access,
        last_modified_at=record.last_modified_at,
    )


class WorkflowExportPipeline:
    """Reads the live source and writes staged records; never mutates the source."""

    def __init__(
        self,
        *,
        reader: WorkflowReader,
        repository: StagingRepository,
        tracker: CheckpointTracker,
        result: MigrationResult | None = None,
        checkpoint_callback: CheckpointCallback | None = None,
        owner: object | None = None,
    ) -> None:
        self.reader = reader
        self.repository = repository
        self.tracker = tracker
        self.result = result or MigrationResult()
        self.checkpoint_callback = checkpoint_callback
        self.owner = owner if owner is not None else self

    def export(
        self,
        portal_id: int,
        date_range: DateRange = (None, None),
        include_deletions: bool = False,
    ) -> ExportSummary:
        summary = ExportSummary()
        if self.tracker.should_skip(EXPORT_STAGE):
            summary.skipped = True
            record_pipeline_invocation("export", "skipped")
            return summary

        from_date, to_date = normalize_window(date_range)

        workflows = self.reader.list_workflows(portal_id, include_deletions)
        if workflows:
            default_workflow_id = self.reader.get_default_workflow_id(portal_id)
            staged_workflows = [
                _staged_workflow(record, is_default=record.id == default_workflow_id) for record in workflows
            ]

            self.tracker.advance(total_items=len(staged_workflows))
            self.repository.create_batch(StagedWorkflow, staged_workflows)
            summary.workflows_staged = len(staged_workflows)
            self.result.add_log_entry("Exported workflows", len(staged_workflows))
            record_entity_outcome(KIND_WORKFLOW, "created", len(staged_workflows))

            for staged_workflow in staged_workflows:
                staged_states = self.repository.create_batch(
                    StagedWorkflowState,
                    [_staged_state(record) for record in self.reader.list_states(staged_workflow.source_id)],
                    parent_id=staged_workflow.id,
                )
                summary.states_staged += len(staged_states)

                for staged_state in staged_states:
                    permissions = self.reader.list_state_permissions(staged_state.source_id, from_date, to_date)
                    staged_permissions = self.repository.create_batch(
                        StagedWorkflowStatePermission,
                        [_staged_permission(record) for record in permissions],
                        parent_id=staged_state.id,
                    )
                    summary.permissions_staged += len(staged_permissions)

            record_entity_outcome(KIND_STATE, "created", summary.states_staged)
            record_entity_outcome(KIND_STATE_PERMISSION, "created", summary.permissions_staged)
            self.result.add_log_entry("Exported workflow states", summary.states_staged)
            self.result.add_log_entry("Exported workflow state permissions", summary.permissions_staged)

        self.tracker.mark_stage_complete()
        if self.checkpoint_callback is not None:
            self.checkpoint_callback(self.owner)

        record_pipeline_invocation("export", "completed")
        if has_app_context():
            current_app.logger.info(
                "Export for portal %s staged %s workflows, %s states, %s state permissions",
                portal_id,
                summary.workflows_staged,
                summary.states_staged,
                summary.permissions_staged,
            )
        return summary
