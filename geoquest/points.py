# geoquest/points.py
"""
Хранилище контрольных точек.

- visible-точки создаются активными, sequential: неактивными;
- is_active последовательной точки: общее для всех игроков состояние игры,
  меняется только здесь (патчи, старт цепочки, разблокировка следующей точки);
- удаление точки вычищает её id из found_points всех игроков этой игры.
"""
from __future__ import annotations

import logging
import time
from typing import Any, Dict, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from . import config, models
from .accounts import require_admin
from .database import retrying
from .errors import NotFound, ValidationFailed
from .geo import Position, checked_position, clamp_to_radius

logger = logging.getLogger(__name__)

CONTENT_FIELDS = ("qr", "hint", "symbol")


# --- helpers ----------------------------------------------------------------
def _check_type(point_type: str) -> str:
    if point_type not in models.POINT_TYPES:
        raise ValidationFailed(f"Unknown point type: {point_type!r}")
    return point_type


def _apply_content(point: models.ControlPoint, content: Optional[Dict[str, Any]]) -> None:
    content = content or {}
    for key in CONTENT_FIELDS:
        setattr(point, key, content.get(key))


def _new_chain_id() -> str:
    return f"chain-{int(time.time() * 1000)}"


def _check_chain_target(db: Session, point: models.ControlPoint, next_point_id: Optional[int]) -> None:
    if next_point_id is None:
        return
    if point.id is not None and next_point_id == point.id:
        raise ValidationFailed("Point cannot link to itself")
    target = db.get(models.ControlPoint, next_point_id)
    if not target or target.game_id != point.game_id:
        raise ValidationFailed("Chain target must be a point of the same game")


def _apply_chain(db: Session, point: models.ControlPoint, chain: Optional[Dict[str, Any]]) -> None:
    if not chain:
        point.chain_id = None
        point.chain_order = None
        point.next_point_id = None
        return
    next_id = chain.get("next_point_id")
    _check_chain_target(db, point, next_id)
    point.chain_id = chain.get("id") or point.chain_id or _new_chain_id()
    point.chain_order = chain.get("order") if chain.get("order") is not None else (point.chain_order or 0)
    point.next_point_id = next_id


# --- reads ------------------------------------------------------------------
def list_points(db: Session, game_id: int) -> list[models.ControlPoint]:
    """Точки игры в порядке хранения (по id): на этот порядок опирается поиск по близости."""
    return (
        db.query(models.ControlPoint)
        .filter(models.ControlPoint.game_id == game_id)
        .order_by(models.ControlPoint.id.asc())
        .all()
    )


def count_points(db: Session, game_id: int) -> int:
    return (
        db.query(func.count(models.ControlPoint.id))
        .filter(models.ControlPoint.game_id == game_id)
        .scalar()
    ) or 0


def get_point(db: Session, point_id: int) -> Optional[models.ControlPoint]:
    return db.get(models.ControlPoint, point_id)


# --- writes -----------------------------------------------------------------
def create_point(
    db: Session,
    *,
    game_id: int,
    type: str,
    latitude: float,
    longitude: float,
    content: Optional[Dict[str, Any]] = None,
    chain: Optional[Dict[str, Any]] = None,
    is_active: Optional[bool] = None,
    anchor: Optional[Position] = None,
) -> models.ControlPoint:
    _check_type(type)
    position = checked_position(latitude, longitude)
    if anchor is not None:
        # ручная постановка точки: не дальше PLACEMENT_RADIUS_M от GPS судьи
        anchor = checked_position(*anchor)
        position = clamp_to_radius(anchor, position, config.PLACEMENT_RADIUS_M)

    game = db.get(models.Game, game_id)
    if not game:
        raise NotFound("Game not found")

    point = models.ControlPoint(
        game_id=game.id,
        type=type,
        latitude=position.latitude,
        longitude=position.longitude,
        is_active=(type == "visible") if is_active is None else bool(is_active),
    )
    _apply_content(point, content)
    _apply_chain(db, point, chain)
    db.add(point)
    db.commit()
    db.refresh(point)
    logger.info("point %s (%s) created in game %s", point.id, point.type, game.id)
    return point


def update_point(db: Session, point_id: int, patch: Dict[str, Any]) -> Optional[models.ControlPoint]:
    """
    Частичный патч: type / latitude / longitude / content / is_active / chain.
    Удалённая точка: no-op (None).
    """
    point = db.get(models.ControlPoint, point_id)
    if not point:
        return None

    if patch.get("type") is not None:
        point.type = _check_type(patch["type"])
    if patch.get("latitude") is not None or patch.get("longitude") is not None:
        lat = patch["latitude"] if patch.get("latitude") is not None else point.latitude
        lng = patch["longitude"] if patch.get("longitude") is not None else point.longitude
        position = checked_position(lat, lng)
        point.latitude, point.longitude = position.latitude, position.longitude
    if "content" in patch and patch["content"] is not None:
        _apply_content(point, patch["content"])
    if patch.get("is_active") is not None:
        point.is_active = bool(patch["is_active"])
    if "chain" in patch:
        _apply_chain(db, point, patch["chain"])

    db.commit()
    db.refresh(point)
    return point


def update_chain(db: Session, point_id: int, next_point_id: Optional[int]) -> Optional[models.ControlPoint]:
    """Ставит/снимает ссылку на следующую точку; id и order цепочки сохраняются или заводятся."""
    point = db.get(models.ControlPoint, point_id)
    if not point:
        return None
    _check_chain_target(db, point, next_point_id)
    point.chain_id = point.chain_id or _new_chain_id()
    point.chain_order = point.chain_order or 0
    point.next_point_id = next_point_id
    db.commit()
    db.refresh(point)
    return point


def activate_point(db: Session, point_id: int) -> Optional[models.ControlPoint]:
    point = db.get(models.ControlPoint, point_id)
    if not point:
        return None
    if not point.is_active:
        point.is_active = True
        db.commit()
        db.refresh(point)
    return point


def set_start_sequential(db: Session, game_id: int, point_id: int) -> None:
    """Из всех sequential-точек игры активной остаётся ровно выбранная."""
    sequential = [p for p in list_points(db, game_id) if p.type == "sequential"]
    if not any(p.id == point_id for p in sequential):
        raise ValidationFailed("Start point must be a sequential point of this game")
    for p in sequential:
        p.is_active = p.id == point_id
    db.commit()
    logger.info("game %s: sequential start set to point %s", game_id, point_id)


def _prune_found(db: Session, game_id: int, point_id: int) -> int:
    rows = (
        db.query(models.PlayerProgress)
        .filter(models.PlayerProgress.game_id == game_id)
        .all()
    )
    touched = 0
    for pr in rows:
        found = list(pr.found_points or [])
        if point_id in found:
            pr.found_points = [pid for pid in found if pid != point_id]
            touched += 1
    return touched


def delete_point(db: Session, point_id: int) -> bool:
    """
    Каскад: сначала убираем id точки из found_points всех игроков игры
    и ссылки next_point_id на неё, затем удаляем саму точку.
    """
    point = db.get(models.ControlPoint, point_id)
    if not point:
        return False
    game_id = point.game_id

    def _run() -> int:
        touched = _prune_found(db, game_id, point_id)
        (
            db.query(models.ControlPoint)
            .filter(models.ControlPoint.next_point_id == point_id)
            .update({models.ControlPoint.next_point_id: None}, synchronize_session=False)
        )
        target = db.get(models.ControlPoint, point_id)
        if target:
            db.delete(target)
        db.commit()
        return touched

    touched = retrying(db, _run, config.SAVE_RETRIES)
    logger.info("point %s deleted from game %s, pruned from %s progress rows", point_id, game_id, touched)
    return True


# --- admin ------------------------------------------------------------------
def admin_list_points(db: Session, admin_key: Optional[str], game_id: int) -> list[models.ControlPoint]:
    require_admin(admin_key)
    return list_points(db, game_id)


def admin_create_point(db: Session, admin_key: Optional[str], **fields: Any) -> models.ControlPoint:
    require_admin(admin_key)
    return create_point(db, **fields)


def admin_update_point(db: Session, admin_key: Optional[str], point_id: int, patch: Dict[str, Any]) -> Optional[models.ControlPoint]:
    require_admin(admin_key)
    return update_point(db, point_id, patch)


def admin_delete_point(db: Session, admin_key: Optional[str], point_id: int) -> bool:
    require_admin(admin_key)
    return delete_point(db, point_id)
