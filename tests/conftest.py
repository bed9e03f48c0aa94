"""Shared fixtures: a throwaway sqlite database per test, a small catalog
and a TestClient wired to the test database."""

import os

os.environ["POSTGRES_DSN"] = "sqlite://"
os.environ["KAFKA_ENABLED"] = "false"
os.environ["LOG_JSON"] = "false"
os.environ["LOG_LEVEL"] = "WARNING"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from mediashop.api.deps import get_db
from mediashop.db.models import Product
from mediashop.db.session import Base
from mediashop.main import app


@pytest.fixture
def session_factory(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'mediashop.db'}", connect_args={"check_same_thread": False}
    )
    Base.metadata.create_all(engine)
    yield sessionmaker(bind=engine, autoflush=False, autocommit=False)
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def products(db):
    """#7 ebook at 1000, #9 podcast at 2500, #11 ebook at 499, #13 retired."""
    rows = [
        Product(id=7, title="Deep Work", kind="ebook", category="productivity", price_cents=1000, active=True),
        Product(id=9, title="Founders Podcast S1", kind="podcast", category="business", price_cents=2500, active=True),
        Product(id=11, title="Clean Code", kind="ebook", category="software", price_cents=499, active=True),
        Product(id=13, title="Retired Title", kind="ebook", price_cents=100, active=False),
    ]
    by_id = {p.id: p for p in rows}
    db.add_all(rows)
    # no reads after commit: an open read transaction would lock out the client's sessions
    db.commit()
    return by_id


@pytest.fixture
def client(session_factory, products):
    def _get_test_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_test_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
