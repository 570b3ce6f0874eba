# geoquest/games.py
"""
Жизненный цикл игры.

review_status: draft -> in_review -> approved | rejected. Судья умеет только
отправить черновик на модерацию; любые другие переходы: админ по ключу.
is_active и published: независимые флаги. В «магазин» попадает только
published + approved.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from . import config, models
from .accounts import require_admin
from .errors import Conflict, ValidationFailed
from .points import list_points

logger = logging.getLogger(__name__)

AREA_FIELDS = ("country", "region", "city")


def _check_review_status(status: str) -> str:
    if status not in models.REVIEW_STATUSES:
        raise ValidationFailed(f"Unknown review status: {status!r}")
    return status


def _apply_area(game: models.Game, area: Optional[Dict[str, Any]]) -> None:
    area = area or {}
    for key in AREA_FIELDS:
        setattr(game, f"area_{key}", (area.get(key) or None))


# --- reads ------------------------------------------------------------------
def get_game(db: Session, game_id: int) -> Optional[models.Game]:
    return db.get(models.Game, game_id)


def list_judge_games(db: Session, judge_id: str) -> list[models.Game]:
    return (
        db.query(models.Game)
        .filter(models.Game.judge_id == judge_id)
        .order_by(models.Game.created_at.desc(), models.Game.id.desc())
        .all()
    )


def get_active_game(db: Session, judge_id: str) -> Optional[models.Game]:
    return (
        db.query(models.Game)
        .filter(models.Game.judge_id == judge_id, models.Game.is_active == True)  # noqa: E712
        .order_by(models.Game.id.asc())
        .first()
    )


def get_any_active_game(db: Session) -> Optional[models.Game]:
    return (
        db.query(models.Game)
        .filter(models.Game.is_active == True)  # noqa: E712
        .order_by(models.Game.id.asc())
        .first()
    )


def list_published(db: Session) -> list[dict]:
    """Только публичные поля: без данных судьи."""
    rows = (
        db.query(models.Game)
        .filter(models.Game.published == True, models.Game.review_status == "approved")  # noqa: E712
        .order_by(models.Game.id.asc())
        .all()
    )
    return [
        {
            "id": g.id,
            "title": g.display_title,
            "description": g.description,
            "area": g.area,
            "is_active": bool(g.is_active),
        }
        for g in rows
    ]


# --- judge actions ----------------------------------------------------------
def create_game(
    db: Session,
    *,
    judge_id: str,
    name: str,
    title: Optional[str] = None,
    description: Optional[str] = None,
    area: Optional[Dict[str, Any]] = None,
) -> models.Game:
    judge_id = (judge_id or "").strip()
    name = (name or "").strip()
    if not judge_id or not name:
        raise ValidationFailed("judge_id and name are required")

    game = models.Game(
        judge_id=judge_id,
        name=name,
        title=title,
        description=description,
        is_active=False,
        min_points=config.DEFAULT_MIN_POINTS,
        review_status="draft",
        published=False,
    )
    _apply_area(game, area)
    db.add(game)
    db.commit()
    db.refresh(game)
    logger.info("game %s created by judge %s", game.id, judge_id)
    return game


def _pick_chain_start(sequential: list[models.ControlPoint]) -> models.ControlPoint:
    """
    Голова цепочки: точка, на которую никто не ссылается через next_point_id.
    Цикл или неоднозначный граф: берём первую sequential-точку.
    """
    referenced = {p.next_point_id for p in sequential if p.next_point_id}
    for p in sequential:
        if p.id not in referenced:
            return p
    return sequential[0]


def activate_game(db: Session, game_id: int) -> Optional[models.Game]:
    """
    is_active = True. Если в игре есть sequential-точки и ни одна не активна -
    активируем голову цепочки, чтобы у игроков был вход.
    """
    game = db.get(models.Game, game_id)
    if not game:
        return None
    game.is_active = True

    sequential = [p for p in list_points(db, game.id) if p.type == "sequential"]
    if sequential and not any(p.is_active for p in sequential):
        start = _pick_chain_start(sequential)
        start.is_active = True
        logger.info("game %s: chain start point %s activated", game.id, start.id)

    db.commit()
    db.refresh(game)
    logger.info("game %s activated", game.id)
    return game


def deactivate_game(db: Session, game_id: int) -> Optional[models.Game]:
    # флаги точек не трогаем
    game = db.get(models.Game, game_id)
    if not game:
        return None
    game.is_active = False
    db.commit()
    db.refresh(game)
    logger.info("game %s deactivated", game.id)
    return game


def submit_for_review(db: Session, game_id: int) -> Optional[models.Game]:
    game = db.get(models.Game, game_id)
    if not game:
        return None
    current = game.review_status or "draft"
    if current == "in_review":
        return game
    if current != "draft":
        raise Conflict(f"Game is {current}; only an admin can move it back")
    game.review_status = "in_review"
    db.commit()
    db.refresh(game)
    logger.info("game %s submitted for review", game.id)
    return game


def delete_game(db: Session, game_id: int) -> bool:
    """Удаляет точки игры и саму игру. Прогресс игроков остаётся и отсеивается при чтении."""
    game = db.get(models.Game, game_id)
    if not game:
        return False
    # точки уходят каскадом через relationship
    db.delete(game)
    db.commit()
    logger.info("game %s deleted", game_id)
    return True


# --- admin ------------------------------------------------------------------
def admin_list_games(db: Session, admin_key: Optional[str], status: Optional[str] = None) -> list[models.Game]:
    require_admin(admin_key)
    q = db.query(models.Game)
    if status:
        q = q.filter(models.Game.review_status == _check_review_status(status))
    return q.order_by(models.Game.id.asc()).all()


def set_review_status(db: Session, admin_key: Optional[str], game_id: int, status: str) -> Optional[models.Game]:
    require_admin(admin_key)
    _check_review_status(status)
    game = db.get(models.Game, game_id)
    if not game:
        return None
    game.review_status = status
    db.commit()
    db.refresh(game)
    logger.info("game %s review status -> %s", game.id, status)
    return game


def set_published(db: Session, admin_key: Optional[str], game_id: int, published: bool) -> Optional[models.Game]:
    require_admin(admin_key)
    game = db.get(models.Game, game_id)
    if not game:
        return None
    game.published = bool(published)
    db.commit()
    db.refresh(game)
    logger.info("game %s published=%s", game.id, game.published)
    return game


def admin_update_meta(db: Session, admin_key: Optional[str], game_id: int, patch: Dict[str, Any]) -> Optional[models.Game]:
    """title / description / area / is_active. Включение идёт через activate_game (старт цепочки)."""
    require_admin(admin_key)
    game = db.get(models.Game, game_id)
    if not game:
        return None
    if "title" in patch:
        game.title = patch["title"] or None
    if "description" in patch:
        game.description = patch["description"] or None
    if "area" in patch:
        current = game.area or {}
        current.update({k: v for k, v in (patch["area"] or {}).items() if k in AREA_FIELDS})
        _apply_area(game, current)
    db.commit()

    if patch.get("is_active") is True and not game.is_active:
        return activate_game(db, game.id)
    if patch.get("is_active") is False and game.is_active:
        return deactivate_game(db, game.id)
    db.refresh(game)
    return game
