from __future__ import annotations

import pytest
from migration_fakes import FakeWorkflowWriter, make_tracker, stage_grant, stage_state, stage_workflow

from portable_app.migration.pipeline import WorkflowImportPipeline
from portable_app.migration.result import MigrationResult
from portable_app.models import ALL_USERS_ROLE_ID, NO_ROLE_ID, UNAUTHENTICATED_ROLE_ID, CollisionResolution

PORTAL_ID = 5
EDIT_PERMISSION_ID = 1


@pytest.fixture
def staged_state(staging_repository):
    workflow = stage_workflow(staging_repository, "Approval", source_id=1)
    return stage_state(staging_repository, workflow, "Draft", source_id=10, order=1)


@pytest.fixture
def writer():
    return FakeWorkflowWriter(
        permissions={("SYSTEM_TAB", "EDIT"): EDIT_PERMISSION_ID},
        roles={"Editors": 300},
        users={"editor": 400},
    )


def _run(writer, repository, result=None):
    pipeline = WorkflowImportPipeline(
        writer=writer,
        repository=repository,
        tracker=make_tracker(),
        result=result or MigrationResult(),
    )
    return pipeline.import_(PORTAL_ID, CollisionResolution.IGNORE)


def _only_grant(writer):
    (grant,) = writer.grants.values()
    return grant


def test_role_grant_is_remapped_by_name(writer, staging_repository, staged_state):
    staged = stage_grant(staging_repository, staged_state, source_id=100, role_id=7, role_name="Editors")

    summary = _run(writer, staging_repository)

    grant = _only_grant(writer)
    assert (grant.permission_id, grant.role_id, grant.user_id) == (EDIT_PERMISSION_ID, 300, None)
    assert staged.local_id == grant.id
    assert summary.permissions_created == 1


def test_user_grant_is_remapped_by_username(writer, staging_repository, staged_state):
    stage_grant(staging_repository, staged_state, source_id=100, user_id=9, username="editor")

    _run(writer, staging_repository)

    assert (_only_grant(writer).role_id, _only_grant(writer).user_id) == (None, 400)


@pytest.mark.parametrize("pseudo_role", [ALL_USERS_ROLE_ID, UNAUTHENTICATED_ROLE_ID])
def test_pseudo_roles_pass_through(writer, staging_repository, staged_state, pseudo_role):
    stage_grant(staging_repository, staged_state, source_id=100, role_id=pseudo_role, role_name="All Users")

    _run(writer, staging_repository)

    assert _only_grant(writer).role_id == pseudo_role


@pytest.mark.parametrize("role_id", [None, NO_ROLE_ID])
def test_grant_without_principal_is_for_everyone(writer, staging_repository, staged_state, role_id):
    stage_grant(staging_repository, staged_state, source_id=100, role_id=role_id)

    _run(writer, staging_repository)

    grant = _only_grant(writer)
    assert (grant.role_id, grant.user_id) == (None, None)


def test_unknown_permission_is_dropped(writer, staging_repository, staged_state):
    staged = stage_grant(staging_repository, staged_state, source_id=100, key="DELETE", role_name="Editors", role_id=7)
    result = MigrationResult()

    summary = _run(writer, staging_repository, result)

    assert writer.grants == {}
    assert staged.local_id is None
    assert summary.permissions_dropped == 1
    assert "Dropped workflow state permission" in result.titles()


def test_unresolvable_principal_is_dropped(writer, staging_repository, staged_state):
    stage_grant(staging_repository, staged_state, source_id=100, role_id=7, role_name="Reviewers")
    stage_grant(staging_repository, staged_state, source_id=101, user_id=8, username="ghost")

    summary = _run(writer, staging_repository)

    assert writer.grants == {}
    assert summary.permissions_dropped == 2


def test_grant_survives_when_one_side_resolves(writer, staging_repository, staged_state):
    stage_grant(
        staging_repository,
        staged_state,
        source_id=100,
        role_id=7,
        role_name="Reviewers",
        user_id=9,
        username="editor",
    )

    _run(writer, staging_repository)

    grant = _only_grant(writer)
    assert (grant.role_id, grant.user_id) == (None, 400)


def test_existing_grant_is_matched_not_duplicated(writer, staging_repository, staged_state):
    stage_grant(staging_repository, staged_state, source_id=100, role_id=7, role_name="Editors")
    _run(writer, staging_repository)

    summary = _run(writer, staging_repository)

    assert len(writer.grants) == 1
    assert summary.permissions_existing == 1
    assert summary.permissions_created == 0
