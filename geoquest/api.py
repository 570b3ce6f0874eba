# geoquest/api.py
from __future__ import annotations

from typing import Optional, List

from fastapi import APIRouter, Depends, HTTPException, Header, Path, Query
from sqlalchemy.orm import Session

from .database import get_db
from . import accounts, games, models, points, progress
from .geo import checked_position
from .schemas import (
    # games
    GameCreateIn, GameCreateOut, GameOut, PublishedGameOut, GameMetaIn,
    ReviewStatusIn, PublishedIn, StartPointIn,
    # points
    PointCreateIn, AdminPointCreateIn, PointUpdateIn, AdminPointUpdateIn,
    ChainUpdateIn, PointCreateOut, PointOut, CountOut,
    # progress
    ProgressStartIn, ProgressStartOut, PositionReportIn, PositionReportOut,
    FoundIn, FoundOut, ProgressOut, SummaryOut, LiveSnapshotOut,
    # accounts
    RegisterIn, RegisterOut, ProfileIn, LoginIn, LoginOut, AccountOut, AccountStatusIn,
)

# -----------------------------------------------------------------------------
# Root router: /api
# -----------------------------------------------------------------------------
router = APIRouter(prefix="/api", tags=["api"])


# --- security ---------------------------------------------------------------
def require_admin_key(x_admin_key: str | None = Header(default=None, alias="x-admin-key")) -> str | None:
    accounts.require_admin(x_admin_key)
    return x_admin_key


# Админ-саброутер защищён заголовком x-admin-key
admin = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin_key)])


# --- helpers ----------------------------------------------------------------
def _game_or_404(db: Session, game_id: int) -> models.Game:
    game = games.get_game(db, game_id)
    if not game:
        raise HTTPException(404, "Game not found")
    return game


def _point_fields(data: PointCreateIn) -> dict:
    fields = {
        "game_id": data.game_id,
        "type": data.type,
        "latitude": data.latitude,
        "longitude": data.longitude,
        "content": data.content.model_dump(),
        "chain": data.chain.model_dump() if data.chain else None,
        "anchor": (data.anchor.latitude, data.anchor.longitude) if data.anchor else None,
    }
    return fields


def _register_core(model: accounts.AccountModel, data: RegisterIn, db: Session) -> RegisterOut:
    acc = accounts.register(
        db, model,
        device_id=data.device_id,
        nickname=data.nickname,
        password_hash=data.password_hash,
        full_name=data.full_name,
        phone=data.phone,
        email=data.email,
    )
    return RegisterOut(account_id=acc.id, status=acc.status)


def _profile_core(model: accounts.AccountModel, data: ProfileIn, db: Session):
    return accounts.upsert_profile(
        db, model,
        device_id=data.device_id,
        nickname=data.nickname,
        full_name=data.full_name,
        phone=data.phone,
        email=data.email,
    )


def _by_device_core(model: accounts.AccountModel, device_id: str, db: Session):
    acc = accounts.get_by_device(db, model, device_id)
    if not acc:
        raise HTTPException(404, "Account not found")
    return acc


# =============================================================================
# GAMES
# =============================================================================
@router.post("/games", response_model=GameCreateOut)
def create_game(data: GameCreateIn, db: Session = Depends(get_db)):
    game = games.create_game(
        db,
        judge_id=data.judge_id,
        name=data.name,
        title=data.title,
        description=data.description,
        area=data.area.model_dump() if data.area else None,
    )
    return GameCreateOut(game_id=game.id)


@router.get("/games/published", response_model=List[PublishedGameOut])
def list_published_games(db: Session = Depends(get_db)):
    return games.list_published(db)


@router.get("/games/active", response_model=Optional[GameOut])
def get_active_game(judge_id: Optional[str] = Query(None), db: Session = Depends(get_db)):
    """С judge_id отдаём активную игру судьи, без него любую активную."""
    if judge_id:
        return games.get_active_game(db, judge_id)
    return games.get_any_active_game(db)


@router.get("/games/by-judge/{judge_id}", response_model=List[GameOut])
def list_judge_games(judge_id: str, db: Session = Depends(get_db)):
    return games.list_judge_games(db, judge_id)


@router.get("/games/{game_id}", response_model=GameOut)
def get_game(game_id: int = Path(..., ge=1), db: Session = Depends(get_db)):
    return _game_or_404(db, game_id)


@router.post("/games/{game_id}/activate", response_model=dict)
def activate_game(game_id: int = Path(..., ge=1), db: Session = Depends(get_db)):
    game = games.activate_game(db, game_id)
    return {"ok": game is not None}


@router.post("/games/{game_id}/deactivate", response_model=dict)
def deactivate_game(game_id: int = Path(..., ge=1), db: Session = Depends(get_db)):
    game = games.deactivate_game(db, game_id)
    return {"ok": game is not None}


@router.post("/games/{game_id}/submit-review", response_model=dict)
def submit_game_for_review(game_id: int = Path(..., ge=1), db: Session = Depends(get_db)):
    game = games.submit_for_review(db, game_id)
    return {"ok": game is not None, "review_status": game.review_status if game else None}


@router.delete("/games/{game_id}", response_model=dict)
def delete_game(game_id: int = Path(..., ge=1), db: Session = Depends(get_db)):
    return {"ok": games.delete_game(db, game_id)}


@router.get("/games/{game_id}/points", response_model=List[PointOut])
def list_game_points(game_id: int = Path(..., ge=1), db: Session = Depends(get_db)):
    return points.list_points(db, game_id)


@router.get("/games/{game_id}/points/count", response_model=CountOut)
def count_game_points(game_id: int = Path(..., ge=1), db: Session = Depends(get_db)):
    return CountOut(count=points.count_points(db, game_id))


@router.get("/games/{game_id}/points/visible", response_model=List[PointOut])
def visible_game_points(
    game_id: int = Path(..., ge=1),
    player_id: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
):
    return progress.visible_points(db, game_id, player_id)


@router.post("/games/{game_id}/start-point", response_model=dict)
def set_start_sequential_point(data: StartPointIn, game_id: int = Path(..., ge=1), db: Session = Depends(get_db)):
    points.set_start_sequential(db, game_id, data.point_id)
    return {"ok": True}


# =============================================================================
# CONTROL POINTS
# =============================================================================
@router.post("/points", response_model=PointCreateOut)
def create_control_point(data: PointCreateIn, db: Session = Depends(get_db)):
    point = points.create_point(db, **_point_fields(data))
    return PointCreateOut(point_id=point.id)


@router.patch("/points/{point_id}", response_model=Optional[PointOut])
def update_control_point(data: PointUpdateIn, point_id: int = Path(..., ge=1), db: Session = Depends(get_db)):
    return points.update_point(db, point_id, data.model_dump(exclude_unset=True))


@router.post("/points/{point_id}/chain", response_model=Optional[PointOut])
def update_control_point_chain(data: ChainUpdateIn, point_id: int = Path(..., ge=1), db: Session = Depends(get_db)):
    return points.update_chain(db, point_id, data.next_point_id)


@router.post("/points/{point_id}/activate", response_model=Optional[PointOut])
def activate_control_point(point_id: int = Path(..., ge=1), db: Session = Depends(get_db)):
    return points.activate_point(db, point_id)


@router.delete("/points/{point_id}", response_model=dict)
def delete_control_point(point_id: int = Path(..., ge=1), db: Session = Depends(get_db)):
    return {"ok": points.delete_point(db, point_id)}


# =============================================================================
# PLAYER PROGRESS
# =============================================================================
@router.post("/progress/start", response_model=ProgressStartOut)
def start_game(data: ProgressStartIn, db: Session = Depends(get_db)):
    position = checked_position(data.latitude, data.longitude)
    pr = progress.start(db, data.game_id, data.player_id, position)
    return ProgressStartOut(progress_id=pr.id)


@router.post("/progress/position", response_model=PositionReportOut)
def update_player_position(data: PositionReportIn, db: Session = Depends(get_db)):
    """Тик опроса с устройства: позиция + проверка близости."""
    position = checked_position(data.latitude, data.longitude)
    return progress.report_and_evaluate(db, data.game_id, data.player_id, position)


@router.post("/progress/found", response_model=FoundOut)
def found_control_point(data: FoundIn, db: Session = Depends(get_db)):
    return FoundOut(found_count=progress.mark_found(db, data.game_id, data.player_id, data.point_id))


@router.get("/progress/by-player/{player_id}", response_model=List[ProgressOut])
def list_player_progress(player_id: str, db: Session = Depends(get_db)):
    return progress.list_player_progress(db, player_id)


@router.get("/progress/summaries/{player_id}", response_model=List[SummaryOut])
def get_player_summaries(player_id: str, db: Session = Depends(get_db)):
    return progress.get_summaries(db, player_id)


@router.get("/progress/{game_id}/{player_id}", response_model=Optional[ProgressOut])
def get_player_progress(game_id: int, player_id: str, db: Session = Depends(get_db)):
    return progress.get_progress(db, game_id, player_id)


# =============================================================================
# ACCOUNTS
# =============================================================================
@router.post("/judges/register", response_model=RegisterOut)
def register_judge(data: RegisterIn, db: Session = Depends(get_db)):
    return _register_core(models.Judge, data, db)


@router.post("/judges/login", response_model=LoginOut)
def login_judge(data: LoginIn, db: Session = Depends(get_db)):
    return accounts.login(db, models.Judge, data.nickname, data.password_hash)


@router.put("/judges/profile", response_model=AccountOut)
def upsert_judge(data: ProfileIn, db: Session = Depends(get_db)):
    return _profile_core(models.Judge, data, db)


@router.get("/judges/by-device/{device_id}", response_model=AccountOut)
def get_judge(device_id: str, db: Session = Depends(get_db)):
    return _by_device_core(models.Judge, device_id, db)


@router.post("/players/register", response_model=RegisterOut)
def register_player(data: RegisterIn, db: Session = Depends(get_db)):
    return _register_core(models.Player, data, db)


@router.post("/players/login", response_model=LoginOut)
def login_player(data: LoginIn, db: Session = Depends(get_db)):
    return accounts.login(db, models.Player, data.nickname, data.password_hash)


@router.put("/players/profile", response_model=AccountOut)
def upsert_player(data: ProfileIn, db: Session = Depends(get_db)):
    return _profile_core(models.Player, data, db)


@router.get("/players/by-device/{device_id}", response_model=AccountOut)
def get_player(device_id: str, db: Session = Depends(get_db)):
    return _by_device_core(models.Player, device_id, db)


# =============================================================================
# ADMIN (под /api/admin, защищён require_admin_key)
# =============================================================================
@admin.get("/judges", response_model=List[AccountOut])
def admin_list_judges(
    status: Optional[str] = Query(None),
    admin_key: str | None = Depends(require_admin_key),
    db: Session = Depends(get_db),
):
    return accounts.admin_list(db, models.Judge, admin_key, status)


@admin.post("/judges/{judge_id}/status", response_model=AccountOut)
def admin_set_judge_status(
    data: AccountStatusIn,
    judge_id: int = Path(..., ge=1),
    admin_key: str | None = Depends(require_admin_key),
    db: Session = Depends(get_db),
):
    return accounts.admin_set_status(db, models.Judge, admin_key, judge_id, data.status)


@admin.get("/players", response_model=List[AccountOut])
def admin_list_players(
    status: Optional[str] = Query(None),
    admin_key: str | None = Depends(require_admin_key),
    db: Session = Depends(get_db),
):
    return accounts.admin_list(db, models.Player, admin_key, status)


@admin.post("/players/{player_id}/status", response_model=AccountOut)
def admin_set_player_status(
    data: AccountStatusIn,
    player_id: int = Path(..., ge=1),
    admin_key: str | None = Depends(require_admin_key),
    db: Session = Depends(get_db),
):
    return accounts.admin_set_status(db, models.Player, admin_key, player_id, data.status)


@admin.get("/games", response_model=List[GameOut])
def admin_list_games(
    status: Optional[str] = Query(None),
    admin_key: str | None = Depends(require_admin_key),
    db: Session = Depends(get_db),
):
    return games.admin_list_games(db, admin_key, status)


@admin.patch("/games/{game_id}", response_model=Optional[GameOut])
def admin_update_game_meta(
    data: GameMetaIn,
    game_id: int = Path(..., ge=1),
    admin_key: str | None = Depends(require_admin_key),
    db: Session = Depends(get_db),
):
    return games.admin_update_meta(db, admin_key, game_id, data.model_dump(exclude_unset=True))


@admin.post("/games/{game_id}/review", response_model=Optional[GameOut])
def admin_set_game_review_status(
    data: ReviewStatusIn,
    game_id: int = Path(..., ge=1),
    admin_key: str | None = Depends(require_admin_key),
    db: Session = Depends(get_db),
):
    return games.set_review_status(db, admin_key, game_id, data.status)


@admin.post("/games/{game_id}/published", response_model=Optional[GameOut])
def admin_set_game_published(
    data: PublishedIn,
    game_id: int = Path(..., ge=1),
    admin_key: str | None = Depends(require_admin_key),
    db: Session = Depends(get_db),
):
    return games.set_published(db, admin_key, game_id, data.published)


@admin.get("/games/{game_id}/points", response_model=List[PointOut])
def admin_list_points(
    game_id: int = Path(..., ge=1),
    admin_key: str | None = Depends(require_admin_key),
    db: Session = Depends(get_db),
):
    return points.admin_list_points(db, admin_key, game_id)


@admin.get("/games/{game_id}/live", response_model=LiveSnapshotOut)
def admin_live_snapshot(
    game_id: int = Path(..., ge=1),
    admin_key: str | None = Depends(require_admin_key),
    db: Session = Depends(get_db),
):
    return progress.admin_live_snapshot(db, admin_key, game_id)


@admin.post("/points", response_model=PointCreateOut)
def admin_create_point(
    data: AdminPointCreateIn,
    admin_key: str | None = Depends(require_admin_key),
    db: Session = Depends(get_db),
):
    point = points.admin_create_point(db, admin_key, is_active=data.is_active, **_point_fields(data))
    return PointCreateOut(point_id=point.id)


@admin.patch("/points/{point_id}", response_model=Optional[PointOut])
def admin_update_point(
    data: AdminPointUpdateIn,
    point_id: int = Path(..., ge=1),
    admin_key: str | None = Depends(require_admin_key),
    db: Session = Depends(get_db),
):
    return points.admin_update_point(db, admin_key, point_id, data.model_dump(exclude_unset=True))


@admin.delete("/points/{point_id}", response_model=dict)
def admin_delete_point(
    point_id: int = Path(..., ge=1),
    admin_key: str | None = Depends(require_admin_key),
    db: Session = Depends(get_db),
):
    return {"ok": points.admin_delete_point(db, admin_key, point_id)}


# Подключаем админский саброутер
router.include_router(admin)
