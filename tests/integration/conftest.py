"""Shared fixtures for SQLite-backed tests."""

import os
import tempfile

import pytest

from backend.greenlight.data import Database, Models


@pytest.fixture
def data_dir():
    """Create temporary data directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir


@pytest.fixture
def db(data_dir):
    """Initialized database in data_dir."""
    database = Database(os.path.join(data_dir, "greenlight.db"), query_timeout_seconds=5.0)
    database.initialize()
    return database


@pytest.fixture
def models(db):
    return Models.from_database(db)
