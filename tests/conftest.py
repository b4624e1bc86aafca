"""Shared test fixtures."""

import pytest

from aurum.repos.db import init_db


@pytest.fixture
def db_path(tmp_path):
    """A fresh, initialised SQLite database file."""
    path = str(tmp_path / "aurum.db")
    init_db(path)
    return path
