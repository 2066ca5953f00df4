"""Shared pytest fixtures for the novelnest test suite."""

import pytest

from novelnest import create_app, db
from novelnest.config import TestingConfig
from novelnest.models import User


# ---------------------------------------------------------------------------
# Sample payloads
# ---------------------------------------------------------------------------

FLAT_NOVEL = {
    'title': 'The Salt Road',
    'synopsis': 'A caravan crosses a desert that remembers every traveller.',
    'genres': ['Fantasy', 'Adventure'],
    'hasChapters': False,
    'content': 'The dunes were singing again the night Mara left.',
}

CHAPTERED_NOVEL = {
    'title': 'Lanterns of Vell',
    'synopsis': 'A lamplighter discovers the city dims whenever someone lies.',
    'genres': ['Mystery'],
    'hasChapters': True,
    'chapters': [
        {'title': 'First Light', 'content': 'Oren lit the first lamp at dusk.'},
        {'title': 'The Flicker', 'content': 'On Corven Street the flame shrank.'},
        {'title': 'Embers', 'content': 'By midnight half the district was dark.'},
    ],
}


@pytest.fixture
def flat_payload():
    return dict(FLAT_NOVEL, genres=list(FLAT_NOVEL['genres']))


@pytest.fixture
def chaptered_payload():
    return dict(CHAPTERED_NOVEL, chapters=[dict(c) for c in CHAPTERED_NOVEL['chapters']])


# ---------------------------------------------------------------------------
# Application fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def app():
    """App on an in-memory database; no context is left pushed between requests."""
    app = create_app(TestingConfig)
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def file_app(tmp_path):
    """App on an SQLite file, for tests that need real concurrent connections."""
    config = type('FileTestingConfig', (TestingConfig,), {
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'novelnest-test.db'}",
    })
    app = create_app(config)
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


@pytest.fixture
def ctx(app):
    """Application context for calling the services directly."""
    with app.app_context():
        yield app


@pytest.fixture
def client(app):
    return app.test_client()


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

@pytest.fixture
def make_user(ctx):
    """Create a user straight in the database (service-level tests)."""
    def _make(name='Alice', email=None, password='secret123'):
        user = User(name=name, email=email or f'{name.lower()}@example.com')
        user.password = password
        db.session.add(user)
        db.session.commit()
        return user
    return _make


@pytest.fixture
def register():
    """Register (and thereby log in) a user through the API on the given client."""
    def _register(client, name='Alice', email=None, password='secret123'):
        resp = client.post('/api/register', json={
            'name': name,
            'email': email or f'{name.lower()}@example.com',
            'password': password,
        })
        assert resp.status_code == 201, resp.get_json()
        return resp.get_json()
    return _register
