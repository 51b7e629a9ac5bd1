"""Pytest configuration and shared fixtures for ClearDesk tests."""

import os
import sys
import pytest
from unittest.mock import AsyncMock, MagicMock


# ============================================================================
# Ensure local imports work (models/, services/, config/, utils/)
# ============================================================================
#
# Our codebase uses absolute imports like `from models...` / `from services...`.
# This guarantees that `functions/` is importable as the top-level module root.
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)


# ============================================================================
# Firebase Mocks
# ============================================================================

@pytest.fixture
def mock_firestore_client():
    """Mock Firestore client."""
    client = MagicMock()

    # Set up chain: client.collection().document()
    collection_mock = MagicMock()
    document_mock = MagicMock()
    client.collection.return_value = collection_mock
    collection_mock.document.return_value = document_mock

    # Mock async methods
    document_mock.get = AsyncMock(return_value=MagicMock(
        exists=True,
        id="PROJECT#proj-1|METADATA",
        to_dict=lambda: {"PK": "PROJECT#proj-1", "SK": "METADATA"}
    ))
    document_mock.set = AsyncMock()
    document_mock.update = AsyncMock()

    # Query chain: collection().where().where().limit().stream()
    collection_mock.where.return_value = collection_mock
    collection_mock.limit.return_value = collection_mock
    collection_mock.stream.return_value = []

    return client


@pytest.fixture
def mock_firestore_service(mock_firestore_client):
    """FirestoreService with mocked client."""
    from services.firestore_service import FirestoreService

    return FirestoreService(db=mock_firestore_client)


@pytest.fixture
def mock_catalog_service(mock_firestore_client):
    """CatalogService with mocked client."""
    from services.catalog_service import CatalogService

    return CatalogService(db=mock_firestore_client)


# ============================================================================
# In-memory doubles
# ============================================================================

@pytest.fixture
def store():
    """Empty in-memory keyed store."""
    from tests.fixtures.in_memory import InMemoryStore

    return InMemoryStore()


@pytest.fixture
def catalog():
    """In-memory catalog seeded with the sample electrical catalog."""
    from tests.fixtures.in_memory import InMemoryCatalog
    from tests.fixtures.mock_catalog_data import ASSEMBLIES, MATERIALS, PERMIT_MAPPINGS

    return InMemoryCatalog(
        assemblies=ASSEMBLIES,
        materials=MATERIALS,
        permit_mappings=PERMIT_MAPPINGS
    )


@pytest.fixture
def seeded_store(store):
    """Store holding the sample project, company and blueprint."""
    from config.settings import settings
    from tests.fixtures.mock_blueprint_data import blueprint_record
    from tests.fixtures.mock_catalog_data import COMPANY_RECORD, PROJECT_RECORD

    store.seed(settings.projects_table, PROJECT_RECORD)
    store.seed(settings.companies_table, COMPANY_RECORD)
    store.seed(settings.blueprints_table, blueprint_record())
    return store


# ============================================================================
# Sample Data Fixtures
# ============================================================================

@pytest.fixture
def sample_project_id():
    return "proj-1"


@pytest.fixture
def sample_user_id():
    return "user-1"
