# conftest.py

import os
import tempfile

import pytest

# Set testing environment BEFORE importing app so app.py picks TestingConfig
os.environ["FLASK_ENV"] = "testing"

from app import app as flask_app  # noqa: E402
from portable_app.models import Permission, Portal, Role, User, db  # noqa: E402


@pytest.fixture(scope="function")
def app():
    """Create and configure a test Flask application"""
    import uuid

    db_fd, temp_db = tempfile.mkstemp(suffix=f"_{uuid.uuid4().hex[:8]}.db")

    try:
        flask_app.config.update(
            {
                "TESTING": True,
                "SQLALCHEMY_DATABASE_URI": f"sqlite:///{temp_db}",
                "SECRET_KEY": "test-secret-key-for-testing-only",
                "ENABLE_FILE_LOGGING": False,
                "ENABLE_CONSOLE_LOGGING": False,
                "LOG_LEVEL": "DEBUG",
                "MIGRATION_ENABLED": True,
                "MIGRATION_SERVICES": ("workflows",),
                "MIGRATION_DEFAULT_COLLISION": "ignore",
                "MIGRATION_SLICE_SECONDS": 0,
                "MIGRATION_METRICS_ENABLED": False,
            }
        )

        from portable_app.utils.logging_config import setup_logging

        setup_logging(flask_app)

        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            yield flask_app
            db.session.remove()
            db.session.close()
            db.drop_all()
    finally:
        try:
            os.close(db_fd)
        except OSError:
            pass
        try:
            if os.path.exists(temp_db):
                os.unlink(temp_db)
        except OSError:
            pass


@pytest.fixture(autouse=True)
def app_context(app):
    """Automatically provide app context for all tests"""
    with app.app_context():
        yield


@pytest.fixture
def source_portal(app):
    """Portal that workflows are exported from"""
    portal = Portal(name="Source Portal", slug="source")
    db.session.add(portal)
    db.session.commit()
    return portal


@pytest.fixture
def target_portal(app):
    """Portal that staged workflows are imported into"""
    portal = Portal(name="Target Portal", slug="target")
    db.session.add(portal)
    db.session.commit()
    return portal


@pytest.fixture
def edit_permission(app):
    permission = Permission(code="SYSTEM_TAB", key="EDIT", name="Edit Tab")
    db.session.add(permission)
    db.session.commit()
    return permission


@pytest.fixture
def view_permission(app):
    permission = Permission(code="SYSTEM_TAB", key="VIEW", name="View Tab")
    db.session.add(permission)
    db.session.commit()
    return permission


@pytest.fixture
def editors_role_factory(app):
    """Create an 'Editors' role inside a given portal"""

    def _make(portal, name="Editors"):
        role = Role(portal_id=portal.id, name=name, display_name=name)
        db.session.add(role)
        db.session.commit()
        return role

    return _make


@pytest.fixture
def user_factory(app):
    def _make(portal, username="editor"):
        user = User(portal_id=portal.id, username=username, display_name=username.title())
        db.session.add(user)
        db.session.commit()
        return user

    return _make


def pytest_configure(config):
    """Configure pytest with custom markers and ensure testing environment"""
    os.environ["FLASK_ENV"] = "testing"

    config.addinivalue_line("markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')")
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
    config.addinivalue_line("markers", "unit: marks tests as unit tests")


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers"""
    for item in items:
        if "integration" in item.nodeid:
            item.add_marker(pytest.mark.slow)
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)
