# backend/tests/conftest.py
"""
Test configuration: in-memory SQLite, no migrations, no live enrichment.
Environment must be set before any saikaki module reads settings.
"""
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RUN_MIGRATIONS"] = "0"
os.environ["ENRICHMENT_PROVIDER"] = "none"

import asyncio

import pytest

from saikaki.database import engine
from saikaki.models import Base
from saikaki.services.record_store import SqlRecordStore


@pytest.fixture(autouse=True)
def fresh_schema():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def store():
    return SqlRecordStore()


@pytest.fixture
def session_id(store):
    return asyncio.run(store.create_session()).id
