"""
Shared fixtures: an in-memory SQLite database, a FastAPI client bound to it,
and a factory that registers a site + dataset from CSV text.
"""

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["PUBLISH_PROGRESS"] = "false"
os.environ["CACHE_PARSED_TABLES"] = "false"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import fluxqc.models  # noqa: F401
from fluxqc.database import Base, get_db
from fluxqc.main import app
from fluxqc.services import datasets


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def write_csv(tmp_path):
    def _write(text: str, name: str = "data.csv") -> str:
        path = tmp_path / name
        path.write_text(text.strip() + "\n", encoding="utf-8")
        return str(path)
    return _write


@pytest.fixture
def make_dataset(db, write_csv):
    """Register a dataset from CSV text; returns (dataset, raw_version)."""
    counter = {"n": 0}

    def _make(text: str, site=None, **kwargs):
        counter["n"] += 1
        if site is None:
            site = datasets.create_site(db, f"Site {counter['n']}")
        path = write_csv(text, name=f"data_{counter['n']}.csv")
        dataset = datasets.register_dataset(db, site.id, f"Dataset {counter['n']}", path, **kwargs)
        return dataset, dataset.versions[0]

    return _make


TA_CSV = """
TIMESTAMP,Ta
2024-01-01 00:00,10
2024-01-01 00:30,-50
2024-01-01 01:00,200
2024-01-01 01:30,25
"""


@pytest.fixture
def ta_dataset(make_dataset):
    return make_dataset(TA_CSV)
