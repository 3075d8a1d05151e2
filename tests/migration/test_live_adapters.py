from __future__ import annotations

from datetime import datetime, timezone

import pytest

from portable_app.migration.contracts import StatePermissionRecord, WorkflowRecord, WorkflowStateRecord
from portable_app.migration.live import SqlWorkflowReader, SqlWorkflowWriter
from portable_app.models import ALL_USERS_ROLE_ID, Portal, Workflow, WorkflowState, db


def test_reader_lists_live_workflows_and_ordered_states(source_portal, workflow_factory):
    approval = workflow_factory(source_portal, "Approval", states=("Draft", "Review", "Published"))
    workflow_factory(source_portal, "Retired", is_deleted=True)
    reader = SqlWorkflowReader()

    workflows = reader.list_workflows(source_portal.id, include_deleted=False)
    states = reader.list_states(approval.id)

    assert [workflow.name for workflow in workflows] == ["Approval"]
    assert [(state.name, state.order) for state in states] == [("Draft", 1), ("Review", 2), ("Published", 3)]
    assert len(reader.list_workflows(source_portal.id, include_deleted=True)) == 2


def test_reader_reports_default_workflow(source_portal, workflow_factory):
    approval = workflow_factory(source_portal, "Approval")
    source_portal.default_workflow_id = approval.id
    db.session.commit()

    assert SqlWorkflowReader().get_default_workflow_id(source_portal.id) == approval.id
    assert SqlWorkflowReader().get_default_workflow_id(9999) is None


def test_reader_window_is_inclusive(
    source_portal, workflow_factory, grant_factory, edit_permission, view_permission, user_factory
):
    approval = workflow_factory(source_portal, "Approval", states=("Draft",))
    (draft,) = approval.states
    editor = user_factory(source_portal)
    boundary = datetime(2024, 3, 1, tzinfo=timezone.utc)
    grant_factory(draft, edit_permission, user_id=editor.id, as_of=boundary)
    grant_factory(draft, view_permission, role_id=ALL_USERS_ROLE_ID, as_of=datetime(2024, 3, 2, tzinfo=timezone.utc))

    records = SqlWorkflowReader().list_state_permissions(draft.id, boundary, boundary)

    (record,) = records
    assert (record.permission_code, record.permission_key, record.username) == ("SYSTEM_TAB", "EDIT", "editor")
    assert record.role_name is None


def test_writer_creates_and_finds_by_name(target_portal):
    writer = SqlWorkflowWriter()

    created = writer.create_workflow(WorkflowRecord(id=None, portal_id=target_portal.id, name="Approval"))
    state = writer.create_state(WorkflowStateRecord(id=None, workflow_id=created.id, name="Draft", order=1))
    db.session.commit()

    assert writer.find_workflow_by_name(target_portal.id, "Approval").id == created.id
    assert writer.find_workflow_by_name(target_portal.id, "Missing") is None
    assert writer.find_state_by_name(created.id, "Draft").id == state.id
    assert db.session.get(WorkflowState, state.id).order == 1


def test_writer_updates_only_mutable_fields(target_portal):
    writer = SqlWorkflowWriter()
    created = writer.create_workflow(
        WorkflowRecord(id=None, portal_id=target_portal.id, name="Approval", description="old")
    )

    created.description = "new"
    created.name = "Renamed"
    writer.update_workflow(created)
    db.session.commit()

    workflow = db.session.get(Workflow, created.id)
    assert (workflow.name, workflow.description) == ("Approval", "new")


def test_writer_update_of_missing_row_raises(target_portal):
    with pytest.raises(LookupError):
        SqlWorkflowWriter().update_state(WorkflowStateRecord(id=12345, workflow_id=1, name="Draft"))


def test_writer_sets_portal_default(target_portal):
    writer = SqlWorkflowWriter()
    created = writer.create_workflow(WorkflowRecord(id=None, portal_id=target_portal.id, name="Approval"))

    writer.set_default_workflow(target_portal.id, created.id)
    db.session.commit()

    assert db.session.get(Portal, target_portal.id).default_workflow_id == created.id


def test_writer_grant_lookup_treats_missing_principals_as_null(target_portal, edit_permission):
    writer = SqlWorkflowWriter()
    workflow = writer.create_workflow(WorkflowRecord(id=None, portal_id=target_portal.id, name="Approval"))
    state = writer.create_state(WorkflowStateRecord(id=None, workflow_id=workflow.id, name="Draft"))
    everyone = StatePermissionRecord(id=None, state_id=state.id, permission_id=edit_permission.id)
    all_users = StatePermissionRecord(
        id=None, state_id=state.id, permission_id=edit_permission.id, role_id=ALL_USERS_ROLE_ID
    )

    created = writer.create_state_permission(everyone)

    assert writer.find_state_permission(everyone).id == created.id
    assert writer.find_state_permission(all_users) is None


def test_writer_resolves_names_within_portal(
    source_portal, target_portal, edit_permission, editors_role_factory, user_factory
):
    editors = editors_role_factory(target_portal)
    editors_role_factory(source_portal)
    editor = user_factory(target_portal)
    writer = SqlWorkflowWriter()

    assert writer.resolve_permission("SYSTEM_TAB", "EDIT") == edit_permission.id
    assert writer.resolve_permission("SYSTEM_TAB", "DELETE") is None
    assert writer.resolve_role(target_portal.id, "Editors") == editors.id
    assert writer.resolve_role(target_portal.id, "Reviewers") is None
    assert writer.resolve_user(target_portal.id, "editor") == editor.id
    assert writer.resolve_user(source_portal.id, "editor") is None
