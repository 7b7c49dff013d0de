import os

# Avant tout import du projet : la session globale ne doit pas viser PostgreSQL
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

from datetime import date  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine, event  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from gestion_bl.app.api.deps import get_db  # noqa: E402
from gestion_bl.app.db.base import Base  # noqa: E402
from gestion_bl.app.db.models import models_v1  # noqa: F401,E402
from gestion_bl.app.main import app  # noqa: E402
from gestion_bl.services.delivery_notes import LineDraft, NoteDraft, create_delivery_note  # noqa: E402


@pytest.fixture(scope="function")
def engine():
    """
    Base SQLite en mémoire, une par test.
    StaticPool : une seule connexion partagée (TestClient tourne dans un autre thread).
    """
    eng = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(eng, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        dbapi_connection.execute("PRAGMA foreign_keys=ON")

    Base.metadata.create_all(bind=eng)
    try:
        yield eng
    finally:
        Base.metadata.drop_all(bind=eng)
        eng.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture(scope="function")
def db_session(session_factory) -> Session:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def client(session_factory):
    def _override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _override_get_db
    try:
        with TestClient(app) as c:
            yield c
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def make_note(db_session):
    """
    make_note("BL-1", [("Widget", 3, "10.000"), ...], supplier="Fournisseur A")
    """
    counter = {"n": 0}

    def _make(note_number=None, lines=(), *, supplier="Fournisseur A", note_date=None, article_ids=None):
        counter["n"] += 1
        article_ids = article_ids or {}
        draft = NoteDraft(
            note_number=note_number or f"BL-TEST-{counter['n']:03d}",
            supplier=supplier,
            note_date=note_date or date(2024, 1, 15),
            lines=[
                LineDraft(
                    designation=designation,
                    quantity=quantity,
                    unit_price=price,
                    article_id=article_ids.get(designation),
                )
                for designation, quantity, price in lines
            ],
        )
        return create_delivery_note(db_session, draft)

    return _make
