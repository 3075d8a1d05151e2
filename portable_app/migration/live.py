"""
SQLAlchemy implementations of the live-system reader and writer.

They translate between the workflow models and the portable records in
``contracts``. Writers flush so new rows have ids; committing is left to
the checkpoint callback.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy.orm import Session

from portable_app.models import (
    Permission,
    Portal,
    Role,
    User,
    Workflow,
    WorkflowState,
    WorkflowStatePermission,
    db,
)
from portable_app.models.role import PSEUDO_ROLE_NAMES
from portable_app.utils.dates import within_window

from .contracts import StatePermissionRecord, WorkflowRecord, WorkflowStateRecord


def _workflow_record(workflow: Workflow) -> WorkflowRecord:
    return WorkflowRecord(
        id=workflow.id,
        portal_id=workflow.portal_id,
        name=workflow.name,
        description=workflow.description,
        workflow_key=workflow.workflow_key,
        is_system=bool(workflow.is_system),
        is_deleted=bool(workflow.is_deleted),
    )


def _state_record(state: WorkflowState) -> WorkflowStateRecord:
    return WorkflowStateRecord(
        id=state.id,
        workflow_id=state.workflow_id,
        name=state.name,
        order=state.order,
        is_system=bool(state.is_system),
        send_notification=bool(state.send_notification),
        send_notification_to_administrators=bool(state.send_notification_to_administrators),
    )


class SqlWorkflowReader:
    """Reads workflows of the source portal."""

    def __init__(self, session: Session | None = None) -> None:
        self.session = session or db.session

    def list_workflows(self, portal_id: int, include_deleted: bool) -> list[WorkflowRecord]:
        query = self.session.query(Workflow).filter(Workflow.portal_id == portal_id)
        if not include_deleted:
            query = query.filter(Workflow.is_deleted.is_(False))
        return [_workflow_record(workflow) for workflow in query.order_by(Workflow.id)]

    def get_default_workflow_id(self, portal_id: int) -> int | None:
        portal = self.session.get(Portal, portal_id)
        return portal.default_workflow_id if portal is not None else None

    def list_states(self, workflow_id: int) -> list[WorkflowStateRecord]:
        states = (
            self.session.query(WorkflowState)
            .filter(WorkflowState.workflow_id == workflow_id)
            .order_by(WorkflowState.order, WorkflowState.id)
        )
        return [_state_record(state) for state in states]

    def list_state_permissions(
        self, state_id: int, from_date: datetime, to_date: datetime
    ) -> list[StatePermissionRecord]:
        grants = (
            self.session.query(WorkflowStatePermission)
            .filter(WorkflowStatePermission.state_id == state_id)
            .order_by(WorkflowStatePermission.id)
        )
        records: list[StatePermissionRecord] = []
        for grant in grants:
            # Window is compared in local time, so it cannot be pushed into SQL reliably.
            if not within_window(grant.updated_at, from_date, to_date):
                continue
            records.append(self._permission_record(grant))
        return records

    def _permission_record(self, grant: WorkflowStatePermission) -> StatePermissionRecord:
        role_name = None
        if grant.role_id is not None:
            if grant.role_id < 0:
                role_name = PSEUDO_ROLE_NAMES.get(grant.role_id)
            else:
                role = self.session.get(Role, grant.role_id)
                role_name = role.name if role is not None else None
        user = grant.user
        permission = grant.permission
        return StatePermissionRecord(
            id=grant.id,
            state_id=grant.state_id,
            permission_code=permission.code,
            permission_key=permission.key,
            permission_name=permission.name,
            permission_id=grant.permission_id,
            role_id=grant.role_id,
            role_name=role_name,
            user_id=grant.user_id,
            username=user.username if user is not None else None,
            allow_access=bool(grant.allow_access),
            last_modified_at=grant.updated_at,
        )


class SqlWorkflowWriter:
    """Materializes workflows into the target portal."""

    def __init__(self, session: Session | None = None) -> None:
        self.session = session or db.session

    def find_workflow_by_name(self, portal_id: int, name: str) -> WorkflowRecord | None:
        workflow = (
            self.session.query(Workflow).filter(Workflow.portal_id == portal_id, Workflow.name == name).first()
        )
        return _workflow_record(workflow) if workflow is not None else None

    def create_workflow(self, record: WorkflowRecord) -> WorkflowRecord:
        workflow = Workflow(
            portal_id=record.portal_id,
            name=record.name,
            description=record.description,
            workflow_key=record.workflow_key,
            is_system=record.is_system,
        )
        self.session.add(workflow)
        self.session.flush()
        return _workflow_record(workflow)

    def update_workflow(self, record: WorkflowRecord) -> None:
        workflow = self.session.get(Workflow, record.id)
        if workflow is None:
            raise LookupError(f"Workflow {record.id} no longer exists")
        workflow.description = record.description
        workflow.workflow_key = record.workflow_key
        self.session.flush()

    def set_default_workflow(self, portal_id: int, workflow_id: int) -> None:
        portal = self.session.get(Portal, portal_id)
        if portal is None:
            raise LookupError(f"Portal {portal_id} does not exist")
        portal.default_workflow_id = workflow_id
        self.session.flush()

    def find_state_by_name(self, workflow_id: int, name: str) -> WorkflowStateRecord | None:
        state = (
            self.session.query(WorkflowState)
            .filter(WorkflowState.workflow_id == workflow_id, WorkflowState.name == name)
            .first()
        )
        return _state_record(state) if state is not None else None

    def create_state(self, record: WorkflowStateRecord) -> WorkflowStateRecord:
        state = WorkflowState(
            workflow_id=record.workflow_id,
            name=record.name,
            order=record.order,
            is_system=record.is_system,
            send_notification=record.send_notification,
            send_notification_to_administrators=record.send_notification_to_administrators,
        )
        self.session.add(state)
        self.session.flush()
        return _state_record(state)

    def update_state(self, record: WorkflowStateRecord) -> None:
        state = self.session.get(WorkflowState, record.id)
        if state is None:
            raise LookupError(f"Workflow state {record.id} no longer exists")
        state.order = record.order
        state.send_notification = record.send_notification
        state.send_notification_to_administrators = record.send_notification_to_administrators
        self.session.flush()

    def find_state_permission(self, record: StatePermissionRecord) -> StatePermissionRecord | None:
        grant = (
            self.session.query(WorkflowStatePermission)
            .filter(
                WorkflowStatePermission.state_id == record.state_id,
                WorkflowStatePermission.permission_id == record.permission_id,
                WorkflowStatePermission.role_id.is_(None)
                if record.role_id is None
                else WorkflowStatePermission.role_id == record.role_id,
                WorkflowStatePermission.user_id.is_(None)
                if record.user_id is None
                else WorkflowStatePermission.user_id == record.user_id,
            )
            .first()
        )
        if grant is None:
            return None
        return StatePermissionRecord(
            id=grant.id,
            state_id=grant.state_id,
            permission_id=grant.permission_id,
            role_id=grant.role_id,
            user_id=grant.user_id,
            allow_access=bool(grant.allow_access),
        )

    def create_state_permission(self, record: StatePermissionRecord) -> StatePermissionRecord:
        grant = WorkflowStatePermission(
            state_id=record.state_id,
            permission_id=record.permission_id,
            role_id=record.role_id,
            user_id=record.user_id,
            allow_access=record.allow_access,
        )
        self.session.add(grant)
        self.session.flush()
        record.id = grant.id
        return record

    def resolve_permission(self, code: str, key: str) -> int | None:
        permission = (
            self.session.query(Permission.id).filter(Permission.code == code, Permission.key == key).first()
        )
        return permission[0] if permission is not None else None

    def resolve_role(self, portal_id: int, name: str) -> int | None:
        role = self.session.query(Role.id).filter(Role.portal_id == portal_id, Role.name == name).first()
        return role[0] if role is not None else None

    def resolve_user(self, portal_id: int, name: str) -> int | None:
        user = (
            self.session.query(User.id).filter(User.portal_id == portal_id, User.username == name).first()
        )
        return user[0] if user is not None else None
