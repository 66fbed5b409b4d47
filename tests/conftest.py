"""
Pytest configuration and shared fixtures.
"""

import os
import tempfile
import threading

# Keep log files out of the real data directory; must run before jobtrack is imported
os.environ.setdefault("JOBTRACK_HOME", tempfile.mkdtemp(prefix="jobtrack-tests-"))

import pytest
from datetime import date
from pathlib import Path
from sqlalchemy import create_engine

from jobtrack.routes import Router
from jobtrack.server import JobServer
from jobtrack.store import JobStore


@pytest.fixture
def db_path(tmp_path) -> Path:
    """Path for a throwaway database file."""
    return tmp_path / "data" / "jobs.db"


@pytest.fixture
def store(db_path):
    """An empty store backed by a temporary SQLite file."""
    s = JobStore(db_path)
    yield s
    s.close()


@pytest.fixture
def populated_store(store):
    """A store with three jobs, added out of date order."""
    store.add("Backend Engineer", "Write services", date(2024, 3, 1))
    store.add("Data Analyst", "Build dashboards", date(2024, 2, 15))
    store.add("engineering manager", "Lead the platform team", date(2023, 12, 31))
    return store


@pytest.fixture
def router(store) -> Router:
    return Router(store)


@pytest.fixture
def live_server(router):
    """A JobServer on an ephemeral port, running in a background thread."""
    server = JobServer(router, host="127.0.0.1", port=0, timeout=2.0)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield server
    server.shutdown()
    server.server_close()
    thread.join(timeout=5)


@pytest.fixture
def legacy_db_path(tmp_path) -> Path:
    """A database as the earlier job_search tool left it: no AUTOINCREMENT, dd-mm-yyyy dates."""
    path = tmp_path / "legacy" / "job_search.db"
    path.parent.mkdir(parents=True)
    engine = create_engine(f"sqlite:///{path}")
    with engine.begin() as conn:
        conn.exec_driver_sql(
            "CREATE TABLE jobs ("
            " id INTEGER PRIMARY KEY,"
            " title TEXT NOT NULL,"
            " description TEXT NOT NULL,"
            " date DATE NOT NULL)"
        )
        conn.exec_driver_sql(
            "INSERT INTO jobs (id, title, description, date) VALUES (?, ?, ?, ?)",
            [
                (1, "Backend Engineer", "Write services", "01-03-2024"),
                (4, "Data Analyst", "Build dashboards", "15-02-2024"),
            ],
        )
    engine.dispose()
    return path
