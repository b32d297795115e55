"""
Configuración global de pytest y fixtures compartidos.
"""
import pytest
from typing import AsyncGenerator
from httpx import AsyncClient, ASGITransport
from unittest.mock import patch

from festival_portal.main import app
from festival_portal.core.access import Principal
from festival_portal.core.dependencies import require_principal, get_ledger_repository
from festival_portal.models.festival import UserRole

from tests.utils.factories import FestivalFactory, make_principal
from tests.utils.mocks import MockDBConnection, MockDBContextManager, FakeLedgerRepository


# ============================================================================
# Cliente HTTP Async
# ============================================================================

@pytest.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    """Cliente HTTP async para hacer requests al API."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


# ============================================================================
# Mock de Base de Datos
# ============================================================================

@pytest.fixture
def mock_db_connection():
    """Mock de conexión a base de datos."""
    return MockDBConnection()


@pytest.fixture(autouse=True)
def mock_db(mock_db_connection):
    """Ningún test toca Postgres: get_db_connection devuelve la conexión mock."""
    ctx = MockDBContextManager(mock_db_connection)
    with patch('festival_portal.database.get_db_connection', return_value=ctx), \
            patch('festival_portal.core.middleware.get_db_connection', return_value=ctx):
        with patch('festival_portal.services.ledger_repository.get_db_connection', return_value=ctx):
            with patch('festival_portal.services.ticket_sync_service.get_db_connection', return_value=ctx):
                yield mock_db_connection


# ============================================================================
# Principals
# ============================================================================

@pytest.fixture
def admin_principal() -> Principal:
    return make_principal(UserRole.ADMIN)


@pytest.fixture
def festival():
    return FestivalFactory.build()


@pytest.fixture
def login():
    """
    Autentica las requests como `principal` y, opcionalmente, sirve los datos
    desde un FakeLedgerRepository.
    """
    def _login(principal: Principal, festival=None, **data):
        app.dependency_overrides[require_principal] = lambda: principal
        if festival is not None:
            repo = FakeLedgerRepository(principal, festival, **data)
            app.dependency_overrides[get_ledger_repository] = lambda: repo
            return repo
        return None

    yield _login
    app.dependency_overrides.clear()
