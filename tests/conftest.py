import os

# до импорта geoquest: общая in-memory база и известный админ-ключ
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ADMIN_KEY"] = "test-admin-key"
os.environ["ADMIN_UI"] = "false"

import pytest

from geoquest import config, models  # noqa: F401
from geoquest.database import Base, SessionLocal, engine

ADMIN_KEY = "test-admin-key"


@pytest.fixture(autouse=True)
def _tables(monkeypatch):
    monkeypatch.setattr(config, "ADMIN_KEY", ADMIN_KEY)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    pytest.importorskip("httpx", reason="httpx is required for the FastAPI test client")
    from fastapi.testclient import TestClient
    from geoquest.main import app

    return TestClient(app)


@pytest.fixture
def admin_headers():
    return {"x-admin-key": ADMIN_KEY}


@pytest.fixture
def make_game(db):
    """Фабрика: игра судьи + точки [(type, lat, lon), ...] в порядке создания."""
    from geoquest import games, points

    def _make(specs=(), *, judge_id="judge-1", name="Test game", active=False):
        game = games.create_game(db, judge_id=judge_id, name=name)
        created = [
            points.create_point(db, game_id=game.id, type=t, latitude=lat, longitude=lon)
            for (t, lat, lon) in specs
        ]
        if active:
            games.activate_game(db, game.id)
        return game, created

    return _make


@pytest.fixture
def file_sessions(tmp_path):
    """Две независимые сессии над файловой SQLite: у каждой своё соединение и identity map."""
    from sqlalchemy import create_engine
    from sqlalchemy.orm import sessionmaker

    eng = create_engine(f"sqlite:///{tmp_path / 'race.db'}", future=True)
    Base.metadata.create_all(bind=eng)
    make_session = sessionmaker(bind=eng, autocommit=False, autoflush=False, future=True)
    first, second = make_session(), make_session()
    try:
        yield first, second
    finally:
        first.close()
        second.close()
        eng.dispose()
