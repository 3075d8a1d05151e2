import pytest

from config.validation import validate_and_exit, validate_environment


@pytest.fixture
def production_env(monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "a-real-secret")
    monkeypatch.setenv("DATABASE_URL", "postgresql://localhost/portability")
    monkeypatch.delenv("MIGRATION_DEFAULT_COLLISION", raising=False)
    monkeypatch.delenv("MIGRATION_SLICE_SECONDS", raising=False)
    return monkeypatch


def test_non_production_is_not_validated(monkeypatch):
    monkeypatch.delenv("SECRET_KEY", raising=False)

    assert validate_environment("development") == (True, [])


def test_valid_production_environment(production_env):
    assert validate_environment("production") == (True, [])


def test_missing_secret_and_database_are_reported(production_env):
    production_env.delenv("SECRET_KEY")
    production_env.delenv("DATABASE_URL")

    is_valid, errors = validate_environment("production")

    assert is_valid is False
    assert len(errors) == 2


@pytest.mark.parametrize(
    "name, value",
    [
        ("MIGRATION_DEFAULT_COLLISION", "merge"),
        ("MIGRATION_SLICE_SECONDS", "-5"),
        ("MIGRATION_SLICE_SECONDS", "soon"),
    ],
)
def test_invalid_migration_settings_are_reported(production_env, name, value):
    production_env.setenv(name, value)

    is_valid, errors = validate_environment("production")

    assert is_valid is False
    assert name in errors[0]


def test_validate_and_exit_exits_on_errors(production_env, capsys):
    production_env.delenv("DATABASE_URL")

    with pytest.raises(SystemExit):
        validate_and_exit("production")

    assert "DATABASE_URL" in capsys.readouterr().err
