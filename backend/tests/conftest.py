"""
Pytest fixtures for stockroom backend tests.

Provides an in-memory database, a test client, per-test table cleanup and
an authenticated operator header.
"""

import io

import pytest
from openpyxl import Workbook

from stockroom import create_app
from stockroom.extensions import db
from stockroom.services import subscription_service
from stockroom.services.item_service import create_item
from stockroom.services.transaction_service import record_incoming


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'ADMIN_USERNAME': 'Praya',
        'ADMIN_PASSWORD': 'Praya',
        'ADMIN_PASSWORD_HASH': None,
        'STOCK_TIMEZONE': 'UTC',
        'DELETE_APPROVED_RETURNS': False,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        subscription_service.registry.clear()

        yield db.session

        # Cleanup after test
        db.session.rollback()
        subscription_service.registry.clear()
        app.config['DELETE_APPROVED_RETURNS'] = False


@pytest.fixture(scope='function')
def auth_headers(client, db_session):
    """Log in as the configured operator and return Authorization headers."""
    token = get_auth_token(client, 'Praya', 'Praya')
    assert token, "login failed in fixture"
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def stocked_item(db_session):
    """Item BRG001 with 10 units received."""
    item = create_item(code="BRG001", name="Kopi Bubuk", category="Minuman")
    record_incoming(item_id=item.id, quantity=10)
    return item


def get_auth_token(client, username: str, password: str) -> str:
    """Helper to get auth token for the operator."""
    response = client.post('/api/auth/login', json={
        'username': username,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def xlsx_upload(headers, rows) -> io.BytesIO:
    """Build an in-memory .xlsx with a header row followed by rows."""
    wb = Workbook()
    ws = wb.active
    ws.append(list(headers))
    for row in rows:
        ws.append(list(row))
    buffer = io.BytesIO()
    wb.save(buffer)
    buffer.seek(0)
    return buffer
