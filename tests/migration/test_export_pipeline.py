from __future__ import annotations

from datetime import datetime, timezone

import pytest

from portable_app.migration.checkpoint import CheckpointTracker
from portable_app.migration.live import SqlWorkflowReader
from portable_app.migration.pipeline import WorkflowExportPipeline
from portable_app.migration.result import MigrationResult
from portable_app.migration.service import WorkflowsPortableService
from portable_app.migration.staging import SqlStagingRepository
from portable_app.models import (
    ALL_USERS_ROLE_ID,
    MigrationJob,
    MigrationJobType,
    StagedWorkflow,
    StagedWorkflowState,
    StagedWorkflowStatePermission,
    db,
)

IN_WINDOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
OUT_OF_WINDOW = datetime(2020, 1, 1, tzinfo=timezone.utc)


def _export_job(portal, **options) -> MigrationJob:
    job = MigrationJob(job_type=MigrationJobType.EXPORT, portal_id=portal.id, **options)
    db.session.add(job)
    db.session.commit()
    return job


@pytest.fixture
def seeded_source(
    source_portal, workflow_factory, grant_factory, edit_permission, view_permission, editors_role_factory
):
    editors = editors_role_factory(source_portal)
    approval = workflow_factory(source_portal, "Approval", states=("Draft", "Review"), description="Two step")
    review = workflow_factory(source_portal, "Review Only", states=("Pending",))
    workflow_factory(source_portal, "Retired", states=("Old",), is_deleted=True)
    draft, _ = approval.states
    (pending,) = review.states

    grant_factory(draft, edit_permission, role_id=editors.id, as_of=IN_WINDOW)
    grant_factory(draft, view_permission, role_id=ALL_USERS_ROLE_ID, as_of=IN_WINDOW)
    grant_factory(pending, edit_permission, role_id=editors.id, as_of=OUT_OF_WINDOW)

    source_portal.default_workflow_id = approval.id
    db.session.commit()
    return {"approval": approval, "review": review, "editors": editors}


def test_export_stages_roots_children_and_windowed_grants(source_portal, seeded_source):
    job = _export_job(
        source_portal,
        from_date=datetime(2024, 1, 1, tzinfo=timezone.utc),
        to_date=datetime(2024, 12, 31, tzinfo=timezone.utc),
    )

    summary = WorkflowsPortableService().export_data(job)
    db.session.commit()

    repository = SqlStagingRepository(job.id)
    assert (summary.workflows_staged, summary.states_staged, summary.permissions_staged) == (2, 3, 2)
    assert summary.total_staged == 7
    assert repository.count(StagedWorkflow) == 2
    assert repository.count(StagedWorkflowState) == 3
    assert repository.count(StagedWorkflowStatePermission) == 2


def test_export_preserves_order_parents_and_principal_names(source_portal, seeded_source):
    job = _export_job(source_portal)

    WorkflowsPortableService().export_data(job)

    repository = SqlStagingRepository(job.id)
    approval, review = repository.get_all(StagedWorkflow)
    assert (approval.name, approval.is_default, approval.description) == ("Approval", True, "Two step")
    assert (review.name, review.is_default) == ("Review Only", False)

    draft, second = repository.get_by_parent(StagedWorkflowState, approval.id)
    assert (draft.name, draft.order, second.name, second.order) == ("Draft", 1, "Review", 2)

    grants = repository.get_by_parent(StagedWorkflowStatePermission, draft.id)
    assert [(grant.permission_key, grant.role_name) for grant in grants] == [
        ("EDIT", "Editors"),
        ("VIEW", "All Users"),
    ]
    assert grants[1].role_id == ALL_USERS_ROLE_ID


def test_open_window_includes_old_grants(source_portal, seeded_source):
    job = _export_job(source_portal)

    summary = WorkflowsPortableService().export_data(job)

    assert summary.permissions_staged == 3


def test_include_deletions_stages_deleted_workflows(source_portal, seeded_source):
    job = _export_job(source_portal, include_deletions=True)

    summary = WorkflowsPortableService().export_data(job)

    names = [staged.name for staged in SqlStagingRepository(job.id).get_all(StagedWorkflow)]
    assert summary.workflows_staged == 3
    assert "Retired" in names
    assert SqlStagingRepository(job.id).get_all(StagedWorkflow)[names.index("Retired")].is_deleted is True


def test_export_completes_stage_and_invokes_callback_once(source_portal, seeded_source):
    job = _export_job(source_portal)
    calls = []
    service = WorkflowsPortableService(checkpoint_callback=lambda owner: calls.append(owner) or False)

    service.export_data(job)

    assert calls == [service]
    assert service.tracker.completed is True
    assert service.tracker.stage == 1
    assert service.tracker.total_items == 2
    assert "Exported workflows" in service.result.titles()


def test_completed_export_is_not_repeated(source_portal, seeded_source):
    job = _export_job(source_portal)
    WorkflowsPortableService().export_data(job)
    db.session.commit()

    summary = WorkflowsPortableService().export_data(job)

    assert summary.skipped is True
    assert SqlStagingRepository(job.id).count(StagedWorkflow) == 2


def test_cancelled_export_stages_nothing(source_portal, seeded_source):
    job = _export_job(source_portal, is_cancelled=True)

    summary = WorkflowsPortableService().export_data(job)

    assert summary.skipped is True
    assert SqlStagingRepository(job.id).count(StagedWorkflow) == 0


def test_empty_portal_still_completes(source_portal):
    job = _export_job(source_portal)
    tracker = CheckpointTracker.for_job(job, "workflows")
    pipeline = WorkflowExportPipeline(
        reader=SqlWorkflowReader(),
        repository=SqlStagingRepository(job.id),
        tracker=tracker,
        result=MigrationResult(),
    )

    summary = pipeline.export(source_portal.id)

    assert summary.total_staged == 0
    assert tracker.completed is True
