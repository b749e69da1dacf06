import os
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# IMPORTANT:
# Pytest loads conftest.py BEFORE importing test modules.
# The DB engine reads DATABASE_URL lazily, but set it here, before anything imports the app.
_PROJECT_ROOT = Path(__file__).resolve().parents[1]
_TEST_DB_PATH = _PROJECT_ROOT / "test_inventory.db"
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DB_PATH}"
os.environ.setdefault("USE_ALEMBIC", "0")  # ensure create_all path for sqlite tests


@pytest.fixture(scope="session")
def client():
    """
    One TestClient (and one event loop) for the whole run.

    1) Deletes the sqlite DB file to start from a clean slate.
    2) Resets the global DB engine in case something created it early.
    3) Enters TestClient(app) so FastAPI startup runs init_db() (create_all on SQLite).
    """
    if _TEST_DB_PATH.exists():
        _TEST_DB_PATH.unlink()

    from src.inventory import db as db_mod  # imported after DATABASE_URL is set

    db_mod._engine = None
    db_mod._session_factory = None

    from src.inventory.main import app

    with TestClient(app) as c:
        yield c
