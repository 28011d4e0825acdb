"""
Pytest fixtures for KohakuIPAM tests.

Each test gets its own SQLite file so worker threads (which open their own
connections) see the same data as the test thread.
"""

import pytest

from kohakuipam.db.base import close_database, initialize_database
from kohakuipam.ipam.service import IPAMService
from kohakuipam.ipam.store import AllocationStore
from kohakuipam.models.layout import DatacenterLayout

# 10.0.0.0/8, 4 host / 4 tenant / 4 segment bits, 16 endpoints per triple, stride 8
DEFAULT_LAYOUT = "10.0.0.0/8/4/4/4/4/8"


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "ipam.db")


@pytest.fixture
def database(db_path):
    initialize_database(db_path)
    yield db_path
    close_database()


@pytest.fixture
def layout():
    return DatacenterLayout.parse(DEFAULT_LAYOUT)


@pytest.fixture
def store(database):
    return AllocationStore()


@pytest.fixture
def service(layout, store):
    return IPAMService(layout, store)
