# tests/conftest.py
import pytest

import db


@pytest.fixture
def temp_db(monkeypatch, tmp_path):
    # point db.get_connection at a fresh file for each test
    path = tmp_path / "school.db"
    monkeypatch.setattr(db, "DB_PATH", str(path))
    db.init_db()
    yield path


@pytest.fixture
def seeded_db(temp_db):
    db.seed_demo_data()
    yield temp_db


@pytest.fixture
def repo(temp_db):
    from portal.repository import SchoolRepository
    return SchoolRepository()
