"""
Import pipeline: materialize staged workflows into a target portal.

One unit of work is one staged workflow with all of its states and state
permissions. After each unit the staged rows are written back, the
checkpoint advances by one and the checkpoint callback runs; that is the
point where an invocation may stop and a later one resume. Workflows and
states are matched by name before anything is created, and state
permissions by (state, permission, role, user), so repeating a unit never
creates duplicates.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app, has_app_context

from portable_app.models.migration.schema import (
    CollisionResolution,
    StagedWorkflow,
    StagedWorkflowState,
    StagedWorkflowStatePermission,
)
from portable_app.models.role import NO_ROLE_ID

from ..checkpoint import CheckpointTracker
from ..contracts import (
    CheckpointCallback,
    StagingRepository,
    StatePermissionRecord,
    WorkflowRecord,
    WorkflowStateRecord,
    WorkflowWriter,
)
from ..correlation import KIND_STATE, KIND_STATE_PERMISSION, KIND_WORKFLOW, CorrelationMap
from ..errors import UnresolvedParent
from ..metrics import record_entity_outcome, record_pipeline_invocation
from ..result import MigrationResult

IMPORT_STAGE = 0
RESUME_CURSOR_KEY = "last_sequence_number"
NO_USER_ID = -1


@dataclass
class ImportSummary:
    """Outcome counts for one import invocation."""

    workflows_created: int = 0
    workflows_updated: int = 0
    workflows_unchanged: int = 0
    workflows_resumed: int = 0
    states_created: int = 0
    states_updated: int = 0
    states_protected: int = 0
    permissions_created: int = 0
    permissions_existing: int = 0
    permissions_dropped: int = 0
    skipped: bool = False
    yielded: bool = False
    completed: bool = False


@dataclass(frozen=True)
class _PrincipalSide:
    present: bool
    resolved: bool
    target_id: int | None


_ABSENT = _PrincipalSide(present=False, resolved=False, target_id=None)


class WorkflowImportPipeline:
    """Applies staged records to the target through a ``WorkflowWriter``."""

    def __init__(
        self,
        *,
        writer: WorkflowWriter,
        repository: StagingRepository,
        tracker: CheckpointTracker,
        result: MigrationResult | None = None,
        checkpoint_callback: CheckpointCallback | None = None,
        correlations: CorrelationMap | None = None,
        owner: object | None = None,
    ) -> None:
        self.writer = writer
        self.repository = repository
        self.tracker = tracker
        self.result = result or MigrationResult()
        self.checkpoint_callback = checkpoint_callback
        self.correlations = correlations if correlations is not None else CorrelationMap()
        self.owner = owner if owner is not None else self

    def _persist_checkpoint(self) -> bool:
        """Run the checkpoint callback; True means the caller asked us to stop."""

        if self.checkpoint_callback is None:
            return False
        return bool(self.checkpoint_callback(self.owner))

    def import_(self, portal_id: int, collision_resolution: CollisionResolution) -> ImportSummary:
        summary = ImportSummary()
        if (
            self.tracker.is_cancelled()
            or self.tracker.stage > IMPORT_STAGE
            or self.tracker.completed
            or self._persist_checkpoint()
        ):
            summary.skipped = True
            record_pipeline_invocation("import", "skipped")
            return summary

        collision_resolution = CollisionResolution(collision_resolution)
        staged_workflows = self.repository.get_all(StagedWorkflow)
        self.tracker.advance(total_items=len(staged_workflows))

        default_source_id = next((staged.source_id for staged in staged_workflows if staged.is_default), None)
        cursor = (self.tracker.stage_data or {}).get(RESUME_CURSOR_KEY, 0)

        for staged_workflow in staged_workflows:
            if staged_workflow.sequence_number <= cursor and staged_workflow.local_id is not None:
                # Finished by an earlier invocation; only the correlations are rebuilt.
                self._restore_correlations(staged_workflow)
                summary.workflows_resumed += 1
                continue

            if self.tracker.is_cancelled():
                summary.yielded = True
                record_pipeline_invocation("import", "yielded")
                return summary

            self._import_workflow(
                staged_workflow,
                portal_id=portal_id,
                collision_resolution=collision_resolution,
                is_default=staged_workflow.source_id == default_source_id,
                summary=summary,
            )

            staged_states = self.repository.get_by_parent(StagedWorkflowState, staged_workflow.id)
            touched_permissions: list[StagedWorkflowStatePermission] = []
            for staged_state in staged_states:
                self._import_state(staged_state, parent=staged_workflow, summary=summary)
                staged_permissions = self.repository.get_by_parent(StagedWorkflowStatePermission, staged_state.id)
                for staged_permission in staged_permissions:
                    self._import_permission(
                        staged_permission, parent=staged_state, portal_id=portal_id, summary=summary
                    )
                touched_permissions.extend(staged_permissions)

            self.repository.update_batch([staged_workflow, *staged_states, *touched_permissions])
            self.result.add_summary("Imported Workflow", len(staged_workflows))
            self.tracker.advance(processed_delta=1)
            self.tracker.stage_data = {RESUME_CURSOR_KEY: staged_workflow.sequence_number}
            if self._persist_checkpoint():
                summary.yielded = True
                record_pipeline_invocation("import", "yielded")
                return summary

        self.repository.update_batch(staged_workflows)
        self.tracker.settle(len(staged_workflows))
        self.tracker.mark_stage_complete()
        self._persist_checkpoint()

        summary.completed = True
        record_pipeline_invocation("import", "completed")
        if has_app_context():
            current_app.logger.info(
                "Import into portal %s finished (workflows created=%s updated=%s unchanged=%s; "
                "states created=%s updated=%s protected=%s; permissions created=%s existing=%s dropped=%s)",
                portal_id,
                summary.workflows_created,
                summary.workflows_updated,
                summary.workflows_unchanged,
                summary.states_created,
                summary.states_updated,
                summary.states_protected,
                summary.permissions_created,
                summary.permissions_existing,
                summary.permissions_dropped,
            )
        return summary

    def _restore_correlations(self, staged_workflow: StagedWorkflow) -> None:
        self.correlations.record(KIND_WORKFLOW, staged_workflow.source_id, staged_workflow.local_id)
        for staged_state in self.repository.get_by_parent(StagedWorkflowState, staged_workflow.id):
            if staged_state.local_id is None:
                continue
            self.correlations.record(KIND_STATE, staged_state.source_id, staged_state.local_id)
            for staged_permission in self.repository.get_by_parent(StagedWorkflowStatePermission, staged_state.id):
                if staged_permission.local_id is not None:
                    self.correlations.record(
                        KIND_STATE_PERMISSION, staged_permission.source_id, staged_permission.local_id
                    )

    def _import_workflow(
        self,
        staged: StagedWorkflow,
        *,
        portal_id: int,
        collision_resolution: CollisionResolution,
        is_default: bool,
        summary: ImportSummary,
    ) -> WorkflowRecord:
        workflow = self.writer.find_workflow_by_name(portal_id, staged.name)
        if workflow is not None:
            changed = workflow.description != staged.description or workflow.workflow_key != staged.workflow_key
            if (
                collision_resolution == CollisionResolution.OVERWRITE
                and not staged.is_system
                and not workflow.is_system
                and changed
            ):
                workflow.description = staged.description
                workflow.workflow_key = staged.workflow_key
                self.writer.update_workflow(workflow)
                summary.workflows_updated += 1
                record_entity_outcome(KIND_WORKFLOW, "updated")
                self.result.add_log_entry("Updated workflow", workflow.name)
            else:
                summary.workflows_unchanged += 1
                record_entity_outcome(KIND_WORKFLOW, "skipped")
                self.result.add_log_entry("Kept existing workflow", workflow.name)
        else:
            workflow = self.writer.create_workflow(
                WorkflowRecord(
                    id=None,
                    portal_id=portal_id,
                    name=staged.name,
                    description=staged.description,
                    workflow_key=staged.workflow_key,
                )
            )
            summary.workflows_created += 1
            record_entity_outcome(KIND_WORKFLOW, "created")
            self.result.add_log_entry("Added workflow", workflow.name)
            if is_default:
                self.writer.set_default_workflow(portal_id, workflow.id)
                self.result.add_log_entry("Set default workflow", workflow.name)

        staged.bind_local_id(workflow.id)
        self.correlations.record(KIND_WORKFLOW, staged.source_id, workflow.id)
        return workflow

    def _parent_target_id(self, kind: str, source_id: int) -> int:
        target_id = self.correlations.target_id(kind, source_id)
        if target_id is None:
            raise UnresolvedParent(kind, source_id)
        return target_id

    def _import_state(
        self,
        staged: StagedWorkflowState,
        *,
        parent: StagedWorkflow,
        summary: ImportSummary,
    ) -> WorkflowStateRecord:
        workflow_id = self._parent_target_id(KIND_WORKFLOW, parent.source_id)
        state = self.writer.find_state_by_name(workflow_id, staged.name)
        if state is not None:
            if not state.is_system:
                state.order = staged.order
                state.send_notification = staged.send_notification
                state.send_notification_to_administrators = staged.send_notification_to_administrators
                self.writer.update_state(state)
                summary.states_updated += 1
                record_entity_outcome(KIND_STATE, "updated")
                self.result.add_log_entry("Updated workflow state", state.id)
            else:
                summary.states_protected += 1
                record_entity_outcome(KIND_STATE, "skipped")
                self.result.add_log_entry("Kept system workflow state", state.id)
        else:
            state = self.writer.create_state(
                WorkflowStateRecord(
                    id=None,
                    workflow_id=workflow_id,
                    name=staged.name,
                    order=staged.order,
                    is_system=staged.is_system,
                    send_notification=staged.send_notification,
                    send_notification_to_administrators=staged.send_notification_to_administrators,
                )
            )
            summary.states_created += 1
            record_entity_outcome(KIND_STATE, "created")
            self.result.add_log_entry("Added workflow state", state.id)

        staged.bind_local_id(state.id)
        self.correlations.record(KIND_STATE, staged.source_id, state.id)
        return state

    def _resolve_role(self, staged: StagedWorkflowStatePermission, portal_id: int) -> _PrincipalSide:
        role_id = staged.role_id
        if role_id is None and not staged.role_name:
            return _ABSENT
        if role_id == NO_ROLE_ID:
            return _ABSENT
        if role_id is not None and role_id < 0:
            # Pseudo roles ("All Users", ...) are identical on every installation.
            return _PrincipalSide(present=True, resolved=True, target_id=role_id)
        target_id = self.writer.resolve_role(portal_id, staged.role_name) if staged.role_name else None
        return _PrincipalSide(present=True, resolved=target_id is not None, target_id=target_id)

    def _resolve_user(self, staged: StagedWorkflowStatePermission, portal_id: int) -> _PrincipalSide:
        if (staged.user_id is None or staged.user_id == NO_USER_ID) and not staged.username:
            return _ABSENT
        target_id = self.writer.resolve_user(portal_id, staged.username) if staged.username else None
        return _PrincipalSide(present=True, resolved=target_id is not None, target_id=target_id)

    def _drop_permission(self, staged: StagedWorkflowStatePermission, reason: str, summary: ImportSummary) -> None:
        summary.permissions_dropped += 1
        record_entity_outcome(KIND_STATE_PERMISSION, "dropped")
        self.result.add_log_entry(
            "Dropped workflow state permission",
            f"{staged.permission_code}/{staged.permission_key}: {reason}",
        )

    def _import_permission(
        self,
        staged: StagedWorkflowStatePermission,
        *,
        parent: StagedWorkflowState,
        portal_id: int,
        summary: ImportSummary,
    ) -> None:
        state_id = self._parent_target_id(KIND_STATE, parent.source_id)
        permission_id = self.writer.resolve_permission(staged.permission_code, staged.permission_key)
        if permission_id is None:
            self._drop_permission(staged, "permission not found in target", summary)
            return

        role = self._resolve_role(staged, portal_id)
        user = self._resolve_user(staged, portal_id)
        everyone = not role.present and not user.present
        if not (everyone or role.resolved or user.resolved):
            principal = staged.role_name or staged.username
            self._drop_permission(staged, f"principal '{principal}' not found in target", summary)
            return

        candidate = StatePermissionRecord(
            id=None,
            state_id=state_id,
            permission_code=staged.permission_code,
            permission_key=staged.permission_key,
            permission_id=permission_id,
            role_id=role.target_id if role.resolved else None,
            role_name=staged.role_name,
            user_id=user.target_id if user.resolved else None,
            username=staged.username,
            allow_access=staged.allow_access,
        )

        grant = self.writer.find_state_permission(candidate)
        if grant is not None:
            summary.permissions_existing += 1
            record_entity_outcome(KIND_STATE_PERMISSION, "matched")
            self.result.add_log_entry("Kept existing workflow state permission", grant.id)
        else:
            grant = self.writer.create_state_permission(candidate)
            summary.permissions_created += 1
            record_entity_outcome(KIND_STATE_PERMISSION, "created")
            self.result.add_log_entry("Added workflow state permission", grant.id)

        staged.bind_local_id(grant.id)
        self.correlations.record(KIND_STATE_PERMISSION, staged.source_id, grant.id)
