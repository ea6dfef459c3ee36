"""
Pytest configuration and fixtures
"""
import os
import sys
from pathlib import Path
from uuid import uuid4

import pytest

# Add backend directory to path for imports
backend_dir = Path(__file__).parent.parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

# Settings are cached on first use: pin the test environment before importing promptvc
os.environ["DATABASE_DSN"] = "sqlite://"
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("LOG_FILE_ENABLED", "false")
os.environ["DEFAULT_MODEL_VENDOR"] = "OPENAI"
os.environ["DEFAULT_MODEL_NAME"] = "gpt-4o"
os.environ.pop("PARAMETER_SCHEMAS_DIR", None)

from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from fakes import InMemoryPromptStorage
from promptvc.core.database import Base, create_db_engine
from promptvc.models import AiVendor
from promptvc.services.model_config_reconciler import ModelConfigReconciler
from promptvc.services.parameter_schema_registry import ParameterSchemaRegistry
from promptvc.storage import SqlAlchemyPromptStorage


@pytest.fixture(scope="session")
def registry() -> ParameterSchemaRegistry:
    """Registry loaded from the packaged model catalogs"""
    return ParameterSchemaRegistry()


@pytest.fixture
def reconciler(registry) -> ModelConfigReconciler:
    return ModelConfigReconciler(registry)


@pytest.fixture
def organization_id():
    return uuid4()


# ---------------------------------------------------------------------------
# SQLite-backed storage
# ---------------------------------------------------------------------------

@pytest.fixture
def engine():
    """Fresh in-memory database per test"""
    engine = create_db_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    import promptvc.models  # noqa: F401
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def db(engine) -> Session:
    """Create a database session for testing"""
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def storage(db) -> SqlAlchemyPromptStorage:
    return SqlAlchemyPromptStorage(db)


@pytest.fixture
def default_model(storage):
    """Built-in fallback model; its schema comes from the catalog"""
    return storage.create_language_model(
        name="gpt-4o",
        display_name="GPT-4o",
        vendor=AiVendor.OPENAI.value,
    )


@pytest.fixture
def project(storage, organization_id):
    return storage.create_project(organization_id, "Demo project")


# ---------------------------------------------------------------------------
# In-memory storage
# ---------------------------------------------------------------------------

@pytest.fixture
def fake_storage() -> InMemoryPromptStorage:
    return InMemoryPromptStorage()


@pytest.fixture
def fake_default_model(fake_storage):
    return fake_storage.create_language_model(
        name="gpt-4o",
        display_name="GPT-4o",
        vendor=AiVendor.OPENAI.value,
    )


@pytest.fixture
def fake_project(fake_storage, organization_id):
    return fake_storage.create_project(organization_id, "Demo project")
