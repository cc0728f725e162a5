"""
Root conftest.py for Inkwell tests.

Shared fixtures: a throwaway SQLite database per test, a Flask test
client and a clean autosave state.
"""

import sys
from pathlib import Path

import pytest

# Ensure the project root is in the path
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))


USER_ID = "user-1"
OTHER_USER_ID = "user-2"


@pytest.fixture(autouse=True)
def clean_autosave():
    """Cancel debounce timers left behind by a test."""
    from services import autosave
    from state import PENDING_SAVES

    yield
    for journal_id in list(PENDING_SAVES.keys()):
        autosave.cancel(journal_id)


@pytest.fixture
def app(tmp_path):
    from app import create_app

    flask_app = create_app(f"sqlite:///{tmp_path / 'inkwell-test.db'}")
    flask_app.config["TESTING"] = True
    return flask_app


@pytest.fixture
def database(app):
    """Just the database; for service-level tests."""
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def headers():
    return {"X-User-Id": USER_ID}


@pytest.fixture
def other_headers():
    return {"X-User-Id": OTHER_USER_ID}


@pytest.fixture
def journal(client, headers):
    response = client.post("/api/journals", json={"title": "Biology"}, headers=headers)
    assert response.status_code == 201
    return response.get_json()
