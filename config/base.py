# config/base.py
import os


def _coerce_bool(value, default=False):
    """Convert environment-style truthy/falsey values to bool."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    value_str = str(value).strip().lower()
    if value_str in {"1", "true", "yes", "on"}:
        return True
    if value_str in {"0", "false", "no", "off"}:
        return False
    return default


def _coerce_int(value, default=0, *, minimum=None):
    """Parse an integer setting, falling back to ``default`` on bad input."""
    if value is None or str(value).strip() == "":
        return default
    try:
        number = int(str(value).strip())
    except ValueError:
        return default
    if minimum is not None and number < minimum:
        return minimum
    return number


def _parse_service_list(value):
    """
    Parse a comma-separated portable service list while keeping order and removing duplicates.

    Returns:
        tuple[str, ...]: Normalized service categories.
    """
    if not value:
        return ()

    seen = set()
    services = []
    for raw_item in value.split(","):
        item = raw_item.strip().lower()
        if not item or item in seen:
            continue
        seen.add(item)
        services.append(item)
    return tuple(services)


class Config:
    _flask_env = os.environ.get("FLASK_ENV", "development")
    _is_testing = _flask_env == "testing"
    _is_production = _flask_env == "production"

    SECRET_KEY = os.environ.get("SECRET_KEY")

    # Only require SECRET_KEY in production mode
    if not SECRET_KEY and _is_production:
        raise ValueError(
            "SECRET_KEY environment variable is required in production. "
            'Generate with: python -c "import secrets; print(secrets.token_hex(32))"'
        )

    if not SECRET_KEY:
        SECRET_KEY = "dev-secret-key-change-in-production"

    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {}

    # Migration configuration
    MIGRATION_ENABLED = _coerce_bool(os.environ.get("MIGRATION_ENABLED"), default=True)
    MIGRATION_SERVICES = _parse_service_list(os.environ.get("MIGRATION_SERVICES", "workflows"))
    MIGRATION_DEFAULT_COLLISION = os.environ.get("MIGRATION_DEFAULT_COLLISION", "ignore").strip().lower()
    if MIGRATION_DEFAULT_COLLISION not in {"ignore", "overwrite"}:
        raise ValueError(
            f"MIGRATION_DEFAULT_COLLISION must be 'ignore' or 'overwrite', got '{MIGRATION_DEFAULT_COLLISION}'."
        )
    # Seconds of work per invocation before the checkpoint callback asks the pipeline to yield.
    # 0 disables slicing.
    MIGRATION_SLICE_SECONDS = _coerce_int(os.environ.get("MIGRATION_SLICE_SECONDS"), default=0, minimum=0)

    if MIGRATION_ENABLED and not MIGRATION_SERVICES:
        raise ValueError(
            "MIGRATION_ENABLED is true but MIGRATION_SERVICES is empty. Provide at least one service category."
        )


class DevelopmentConfig(Config):
    DEBUG = True
    _config_dir = os.path.dirname(os.path.abspath(__file__))
    _project_root = os.path.dirname(_config_dir)
    instance_path = os.path.join(_project_root, "instance")

    if not os.path.exists(instance_path):
        os.makedirs(instance_path, exist_ok=True)

    # SQLite URI format: sqlite:///absolute/path (3 slashes for absolute path)
    db_path = os.path.join(instance_path, "portability_dev.db").replace("\\", "/")
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", f"sqlite:///{db_path}")
    SQLALCHEMY_ECHO = False
    if SQLALCHEMY_DATABASE_URI.startswith("sqlite"):
        SQLALCHEMY_ENGINE_OPTIONS = {
            "connect_args": {
                "check_same_thread": False,
                "timeout": 5,
            }
        }
    else:
        SQLALCHEMY_ENGINE_OPTIONS = {}


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = os.environ.get("SECRET_KEY", "test-secret-key-for-testing-only")
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_ECHO = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "connect_args": {
            "check_same_thread": False,
            "timeout": 5,
        }
    }
    MIGRATION_METRICS_ENABLED = False


class ProductionConfig(Config):
    DEBUG = False
    uri = os.environ.get("DATABASE_URL")
    if uri and uri.startswith("postgres://"):
        uri = uri.replace("postgres://", "postgresql://", 1)
    SQLALCHEMY_DATABASE_URI = uri
    SQLALCHEMY_ECHO = False
