# geoquest/progress.py
"""
Прогресс игроков: not-started (нет строки) -> in-progress -> completed.

- completed терминально: флаг только ставится, никогда не сбрасывается;
- found_points как множество: дубли не пишем, при чтении дополнительно чистим;
- разблокировка следующей точки цепочки глобальна для игры (is_active точки),
  движок её только выставляет через точку и читает, своего состояния не держит;
- за один вызов evaluate_proximity засчитывается максимум одна точка -
  первая подходящая в порядке хранения.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from . import config, models
from .accounts import require_admin
from .database import retrying
from .geo import Position, distance_m
from .points import list_points

logger = logging.getLogger(__name__)


def now_utc() -> datetime:
    # проект везде использует naive UTC (без tzinfo)
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _dedup(ids: Iterable[int] | None) -> list[int]:
    out: list[int] = []
    seen: set[int] = set()
    for pid in ids or []:
        if pid not in seen:
            seen.add(pid)
            out.append(pid)
    return out


def _get_row(db: Session, game_id: int, player_id: str) -> Optional[models.PlayerProgress]:
    return (
        db.query(models.PlayerProgress)
        .filter(
            models.PlayerProgress.game_id == game_id,
            models.PlayerProgress.player_id == player_id,
        )
        .one_or_none()
    )


def _point_ids(db: Session, game_id: int) -> set[int]:
    rows = (
        db.query(models.ControlPoint.id)
        .filter(models.ControlPoint.game_id == game_id)
        .all()
    )
    return {pid for (pid,) in rows}


def _is_complete(found: list[int], existing: set[int]) -> bool:
    return bool(existing) and len(set(found) & existing) == len(existing)


# --- writes -----------------------------------------------------------------
def start(db: Session, game_id: int, player_id: str, position: Position) -> models.PlayerProgress:
    """Идемпотентный upsert. Есть строка, обновляем позицию; нет, создаём пустую."""

    def _run() -> models.PlayerProgress:
        pr = _get_row(db, game_id, player_id)
        if pr:
            pr.current_lat, pr.current_lon = position.latitude, position.longitude
        else:
            pr = models.PlayerProgress(
                game_id=game_id,
                player_id=player_id,
                found_points=[],
                current_lat=position.latitude,
                current_lon=position.longitude,
                is_completed=False,
                started_at=now_utc(),
            )
            db.add(pr)
            logger.info("player %s started game %s", player_id, game_id)
        db.commit()
        db.refresh(pr)
        return pr

    return retrying(db, _run, config.SAVE_RETRIES)


def report_position(db: Session, game_id: int, player_id: str, position: Position) -> Optional[models.PlayerProgress]:
    """Последняя запись побеждает. Игрок не стартовал: no-op."""

    def _run() -> Optional[models.PlayerProgress]:
        pr = _get_row(db, game_id, player_id)
        if not pr:
            return None
        pr.current_lat, pr.current_lon = position.latitude, position.longitude
        db.commit()
        return pr

    return retrying(db, _run, config.SAVE_RETRIES)


def mark_found(db: Session, game_id: int, player_id: str, point_id: int) -> int:
    """
    Засчитывает точку и возвращает число найденных (без дублей).
    Точка не из этой игры или игрок не стартовал: 0, ничего не меняем.
    """
    point = db.get(models.ControlPoint, point_id)
    if not point or point.game_id != game_id:
        return 0

    def _run() -> int:
        pr = _get_row(db, game_id, player_id)
        if not pr:
            return 0
        found = _dedup(pr.found_points)
        if point_id in found:
            return len(found)

        found.append(point_id)
        pr.found_points = found
        logger.info("player %s found point %s in game %s", player_id, point_id, game_id)

        next_id = point.next_point_id
        if next_id:
            nxt = db.get(models.ControlPoint, next_id)
            if nxt and nxt.game_id == game_id and not nxt.is_active:
                nxt.is_active = True
                logger.info("game %s: chain point %s unlocked by %s", game_id, nxt.id, point_id)

        if not pr.is_completed and _is_complete(found, _point_ids(db, game_id)):
            pr.is_completed = True
            pr.completed_at = now_utc()
            logger.info("player %s completed game %s", player_id, game_id)

        db.commit()
        return len(found)

    return retrying(db, _run, config.SAVE_RETRIES)


def evaluate_proximity(
    db: Session,
    game_id: int,
    player_id: str,
    position: Position,
    points: Optional[list[models.ControlPoint]] = None,
) -> Optional[int]:
    """
    Ищет первую активную ненайденную точку в радиусе FIND_RADIUS_M (включительно)
    и засчитывает только её. Возвращает id засчитанной точки или None.
    """
    pr = _get_row(db, game_id, player_id)
    if not pr:
        return None
    found = set(pr.found_points or [])
    candidates = points if points is not None else list_points(db, game_id)

    for p in candidates:
        if p.game_id != game_id or not p.is_active or p.id in found:
            continue
        if distance_m(position, Position(p.latitude, p.longitude)) <= config.FIND_RADIUS_M:
            # засчитано, только если список найденных действительно вырос
            if mark_found(db, game_id, player_id, p.id) > len(found):
                return p.id
            return None
    return None


def report_and_evaluate(db: Session, game_id: int, player_id: str, position: Position) -> dict:
    """Один тик опроса с устройства: запомнить позицию, проверить близость (если игра активна)."""
    game = db.get(models.Game, game_id)
    found_id = None
    if game:
        report_position(db, game_id, player_id, position)
        if game.is_active:
            found_id = evaluate_proximity(db, game_id, player_id, position)

    view = get_progress(db, game_id, player_id)
    return {
        "found_point_id": found_id,
        "found_count": len(view["found_points"]) if view else 0,
        "is_completed": bool(view and view["is_completed"]),
    }


# --- reads ------------------------------------------------------------------
def _view(pr: models.PlayerProgress, existing: set[int]) -> dict:
    found = [pid for pid in _dedup(pr.found_points) if pid in existing]
    return {
        "id": pr.id,
        "game_id": pr.game_id,
        "player_id": pr.player_id,
        "found_points": found,
        "current_position": pr.current_position,
        "is_completed": bool(pr.is_completed) or _is_complete(found, existing),
        "started_at": pr.started_at,
        "completed_at": pr.completed_at,
    }


def get_progress(db: Session, game_id: int, player_id: str) -> Optional[dict]:
    """Снимок строки с found_points, очищенным от удалённых точек. В базу не пишет."""
    pr = _get_row(db, game_id, player_id)
    if not pr:
        return None
    return _view(pr, _point_ids(db, game_id))


def list_player_progress(db: Session, player_id: str) -> list[models.PlayerProgress]:
    return (
        db.query(models.PlayerProgress)
        .filter(models.PlayerProgress.player_id == player_id)
        .order_by(models.PlayerProgress.id.asc())
        .all()
    )


def get_summaries(db: Session, player_id: str) -> list[dict]:
    """
    По каждой начатой игре: прогресс + актуальное число точек + название/район.
    Завершённость пересчитываем (старые строки могли не иметь флага).
    Строки удалённых игр пропускаем.
    """
    out: list[dict] = []
    games: dict[int, Optional[models.Game]] = {}
    ids_by_game: dict[int, set[int]] = {}

    for pr in list_player_progress(db, player_id):
        if pr.game_id not in games:
            games[pr.game_id] = db.get(models.Game, pr.game_id)
            ids_by_game[pr.game_id] = _point_ids(db, pr.game_id)
        game = games[pr.game_id]
        if game is None:
            continue
        existing = ids_by_game[pr.game_id]
        view = _view(pr, existing)
        total = len(existing)
        found_count = len(view["found_points"])
        view.update(
            {
                "found_count": found_count,
                "total_points": total,
                "is_completed": bool(pr.is_completed) or (total > 0 and found_count >= total),
                "game_title": game.display_title,
                "game_area": game.area,
            }
        )
        out.append(view)
    return out


def visible_points(db: Session, game_id: int, player_id: str) -> list[models.ControlPoint]:
    """
    Что игрок видит на карте. visible видны всегда (пока игра активна),
    sequential, если активна или уже найдена этим игроком.
    """
    game = db.get(models.Game, game_id)
    if not game or not game.is_active:
        return []
    pr = _get_row(db, game_id, player_id)
    found = set(pr.found_points or []) if pr else set()
    return [
        p for p in list_points(db, game_id)
        if p.type == "visible" or p.is_active or p.id in found
    ]


# --- admin ------------------------------------------------------------------
def admin_live_snapshot(db: Session, admin_key: Optional[str], game_id: int) -> dict:
    require_admin(admin_key)
    rows = (
        db.query(models.PlayerProgress)
        .filter(models.PlayerProgress.game_id == game_id)
        .order_by(models.PlayerProgress.id.asc())
        .all()
    )
    return {
        "points": [
            {
                "id": p.id,
                "latitude": p.latitude,
                "longitude": p.longitude,
                "type": p.type,
                "is_active": bool(p.is_active),
            }
            for p in list_points(db, game_id)
        ],
        "players": [
            {
                "player_id": pr.player_id,
                "latitude": pr.current_lat,
                "longitude": pr.current_lon,
            }
            for pr in rows
            if pr.current_position
        ],
    }
