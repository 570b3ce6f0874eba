from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, ForeignKey, Text, Float, JSON,
    UniqueConstraint, Index, func,
)
from sqlalchemy.orm import relationship
from ..database import Base


POINT_TYPES = ("visible", "sequential")
REVIEW_STATUSES = ("draft", "in_review", "approved", "rejected")
ACCOUNT_STATUSES = ("pending", "approved", "rejected")


# ========= common =========

class TimestampMixin:
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime,
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )


# ========= games / control points =========

class Game(Base, TimestampMixin):
    __tablename__ = "games"
    __table_args__ = (
        Index("ix_games_judge", "judge_id"),
        Index("ix_games_active", "is_active"),
        Index("ix_games_published", "published", "review_status"),
    )

    id = Column(Integer, primary_key=True)
    judge_id = Column(String(64), nullable=False)
    name = Column(String(255), nullable=False)

    # метаданные для «магазина карт»
    title = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    area_country = Column(String(128), nullable=True)
    area_region = Column(String(128), nullable=True)
    area_city = Column(String(128), nullable=True)

    is_active = Column(Boolean, nullable=False, default=False, server_default="0")
    min_points = Column(Integer, nullable=False, default=3, server_default="3")
    review_status = Column(String(16), nullable=False, default="draft", server_default="draft")
    published = Column(Boolean, nullable=False, default=False, server_default="0")

    # relations
    points = relationship(
        "ControlPoint", back_populates="game",
        order_by="ControlPoint.id", cascade="all, delete-orphan",
    )

    @property
    def area(self) -> dict | None:
        area = {
            "country": self.area_country,
            "region": self.area_region,
            "city": self.area_city,
        }
        return area if any(area.values()) else None

    @property
    def display_title(self) -> str:
        return self.title or self.name or "Untitled"

    def __repr__(self) -> str:
        return (
            f"<Game id={self.id} judge={self.judge_id!r} name={self.name!r} "
            f"active={self.is_active} review={self.review_status!r} published={self.published}>"
        )


class ControlPoint(Base, TimestampMixin):
    """
    Точка на карте. is_active у последовательных точек: общее состояние игры,
    а не отдельного игрока: разблокировка цепочки видна всем участникам.
    """
    __tablename__ = "control_points"
    __table_args__ = (
        Index("ix_control_points_game", "game_id"),
    )

    id = Column(Integer, primary_key=True)
    game_id = Column(Integer, ForeignKey("games.id", ondelete="CASCADE"), nullable=False)
    type = Column(String(16), nullable=False)  # visible | sequential
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)

    # content
    qr = Column(Text, nullable=True)
    hint = Column(Text, nullable=True)
    symbol = Column(String(32), nullable=True)

    # chain (имеет смысл только для sequential)
    chain_id = Column(String(64), nullable=True)
    chain_order = Column(Integer, nullable=True)
    next_point_id = Column(Integer, ForeignKey("control_points.id", ondelete="SET NULL"), nullable=True)

    is_active = Column(Boolean, nullable=False, default=True, server_default="1")

    game = relationship("Game", back_populates="points")

    @property
    def content(self) -> dict:
        return {"qr": self.qr, "hint": self.hint, "symbol": self.symbol}

    @property
    def chain(self) -> dict | None:
        if self.chain_id is None and self.next_point_id is None:
            return None
        return {"id": self.chain_id, "order": self.chain_order, "next_point_id": self.next_point_id}

    def __repr__(self) -> str:
        return (
            f"<ControlPoint id={self.id} game={self.game_id} type={self.type!r} "
            f"active={self.is_active} next={self.next_point_id}>"
        )


# ========= player progress =========

class PlayerProgress(Base, TimestampMixin):
    """
    Прогресс игрока по игре (game_id + player_id уникально).
    found_points: JSON-список id точек; всегда переприсваиваем новый список без дублей.
    version для оптимистической блокировки: параллельные записи одной строки не теряются.
    """
    __tablename__ = "player_progress"
    __table_args__ = (
        UniqueConstraint("game_id", "player_id", name="uq_progress_game_player"),
        Index("ix_progress_player", "player_id"),
    )

    id = Column(Integer, primary_key=True)
    # без FK: строки переживают удаление игры и отсеиваются при чтении
    game_id = Column(Integer, nullable=False)
    player_id = Column(String(64), nullable=False)

    found_points = Column(JSON, nullable=False, default=list)
    current_lat = Column(Float, nullable=True)
    current_lon = Column(Float, nullable=True)

    is_completed = Column(Boolean, nullable=False, default=False, server_default="0")
    started_at = Column(DateTime, nullable=False)
    completed_at = Column(DateTime, nullable=True)

    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    @property
    def current_position(self) -> dict | None:
        if self.current_lat is None or self.current_lon is None:
            return None
        return {"latitude": self.current_lat, "longitude": self.current_lon}

    def __repr__(self) -> str:
        return (
            f"<PlayerProgress id={self.id} game={self.game_id} player={self.player_id!r} "
            f"found={len(self.found_points or [])} completed={self.is_completed}>"
        )


# ========= accounts =========

class AccountMixin(TimestampMixin):
    id = Column(Integer, primary_key=True)
    # одна учётка на устройство, ник уникален в пределах роли (своя таблица)
    device_id = Column(String(128), nullable=False, index=True, unique=True)
    public_nick = Column(String(64), nullable=False, index=True, unique=True)
    full_name = Column(String(255), nullable=False, server_default="")
    phone = Column(String(32), nullable=False, server_default="")
    email = Column(String(255), nullable=False, server_default="")
    # хэш считается на клиенте и хранится как есть
    password_hash = Column(String(256), nullable=False, server_default="")
    status = Column(String(16), nullable=False, default="pending", server_default="pending")

    def __repr__(self) -> str:
        return (
            f"<{type(self).__name__} id={self.id} nick={self.public_nick!r} "
            f"device={self.device_id!r} status={self.status!r}>"
        )


class Judge(Base, AccountMixin):
    __tablename__ = "judges"


class Player(Base, AccountMixin):
    __tablename__ = "players"


__all__ = [
    "Game", "ControlPoint", "PlayerProgress",
    "Judge", "Player",
    "POINT_TYPES", "REVIEW_STATUSES", "ACCOUNT_STATUSES",
]
