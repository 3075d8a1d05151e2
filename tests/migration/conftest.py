from __future__ import annotations

import pytest
from migration_fakes import InMemoryStagingRepository, make_tracker

from portable_app.models import Workflow, WorkflowState, WorkflowStatePermission, db


@pytest.fixture
def staging_repository():
    return InMemoryStagingRepository()


@pytest.fixture
def tracker():
    return make_tracker()


@pytest.fixture
def workflow_factory(app):
    """Create a live workflow with ordered states in a portal."""

    def _make(portal, name, *, states=(), is_system=False, is_deleted=False, description=None, workflow_key=None):
        workflow = Workflow(
            portal_id=portal.id,
            name=name,
            description=description,
            workflow_key=workflow_key,
            is_system=is_system,
            is_deleted=is_deleted,
        )
        db.session.add(workflow)
        db.session.flush()
        for order, state_name in enumerate(states, start=1):
            db.session.add(WorkflowState(workflow_id=workflow.id, name=state_name, order=order))
        db.session.commit()
        return workflow

    return _make


@pytest.fixture
def grant_factory(app):
    """Attach a state permission, optionally with an explicit as-of timestamp."""

    def _make(state, permission, *, role_id=None, user_id=None, as_of=None, allow_access=True):
        grant = WorkflowStatePermission(
            state_id=state.id,
            permission_id=permission.id,
            role_id=role_id,
            user_id=user_id,
            allow_access=allow_access,
        )
        if as_of is not None:
            grant.updated_at = as_of
        db.session.add(grant)
        db.session.commit()
        return grant

    return _make
