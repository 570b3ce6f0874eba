# geoquest/database.py
import logging

from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy.pool import StaticPool

from .config import DATABASE_URL

logger = logging.getLogger(__name__)


def _engine_kwargs(url: str) -> dict:
    if not url.startswith("sqlite"):
        return {}
    kwargs: dict = {"connect_args": {"check_same_thread": False}}
    # sqlite:// без файла: одна общая in-memory база на весь процесс (тесты, демо)
    if url in ("sqlite://", "sqlite:///:memory:"):
        kwargs["poolclass"] = StaticPool
    return kwargs


engine = create_engine(DATABASE_URL, future=True, **_engine_kwargs(DATABASE_URL))
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def retrying(db, fn, attempts: int = 3):
    """
    Выполняет fn() (read-modify-write + commit) с повтором при конфликте записи:
    StaleDataError: строку прогресса успели поменять параллельно (version_id_col),
    IntegrityError: параллельная вставка той же пары (game_id, player_id).
    """
    for attempt in range(1, attempts + 1):
        try:
            return fn()
        except (StaleDataError, IntegrityError):
            db.rollback()
            if attempt >= attempts:
                raise
            logger.warning("write conflict, retrying (%s/%s)", attempt, attempts)
