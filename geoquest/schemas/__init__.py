from datetime import datetime
from typing import Optional, Literal, List

from pydantic import BaseModel, ConfigDict, Field

FROM_ATTR = ConfigDict(from_attributes=True)

PointType = Literal["visible", "sequential"]
ReviewStatus = Literal["draft", "in_review", "approved", "rejected"]
AccountStatus = Literal["pending", "approved", "rejected"]


# ========== Общие куски ==========

class PositionIn(BaseModel):
    # NaN/inf отсекаем уже на входе; диапазоны дополнительно проверяет ядро
    latitude: float = Field(allow_inf_nan=False)
    longitude: float = Field(allow_inf_nan=False)


class AreaIn(BaseModel):
    country: Optional[str] = None
    region: Optional[str] = None
    city: Optional[str] = None


class ContentIn(BaseModel):
    qr: Optional[str] = None
    hint: Optional[str] = None
    symbol: Optional[str] = None


class ChainIn(BaseModel):
    id: Optional[str] = None
    order: Optional[int] = None
    next_point_id: Optional[int] = None


# ========== Игры ==========

class GameCreateIn(BaseModel):
    judge_id: str
    name: str
    title: Optional[str] = None
    description: Optional[str] = None
    area: Optional[AreaIn] = None


class GameCreateOut(BaseModel):
    game_id: int


class GameOut(BaseModel):
    id: int
    judge_id: str
    name: str
    title: Optional[str] = None
    description: Optional[str] = None
    area: Optional[AreaIn] = None
    is_active: bool
    min_points: int
    review_status: ReviewStatus
    published: bool
    created_at: Optional[datetime] = None
    model_config = FROM_ATTR


class PublishedGameOut(BaseModel):
    """Публичная карточка игры в «магазине»: без данных судьи."""
    id: int
    title: str
    description: Optional[str] = None
    area: Optional[AreaIn] = None
    is_active: bool


class GameMetaIn(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    area: Optional[AreaIn] = None
    is_active: Optional[bool] = None


class ReviewStatusIn(BaseModel):
    status: ReviewStatus


class PublishedIn(BaseModel):
    published: bool


class StartPointIn(BaseModel):
    point_id: int


# ========== Контрольные точки ==========

class PointCreateIn(BaseModel):
    game_id: int
    type: PointType
    latitude: float = Field(allow_inf_nan=False)
    longitude: float = Field(allow_inf_nan=False)
    content: ContentIn = Field(default_factory=ContentIn)
    chain: Optional[ChainIn] = None
    # GPS судьи: точку притянем в радиус PLACEMENT_RADIUS_M
    anchor: Optional[PositionIn] = None


class AdminPointCreateIn(PointCreateIn):
    is_active: Optional[bool] = None


class PointUpdateIn(BaseModel):
    type: Optional[PointType] = None
    latitude: Optional[float] = Field(default=None, allow_inf_nan=False)
    longitude: Optional[float] = Field(default=None, allow_inf_nan=False)
    content: Optional[ContentIn] = None
    is_active: Optional[bool] = None


class AdminPointUpdateIn(PointUpdateIn):
    chain: Optional[ChainIn] = None


class ChainUpdateIn(BaseModel):
    next_point_id: Optional[int] = None


class PointCreateOut(BaseModel):
    point_id: int


class PointOut(BaseModel):
    id: int
    game_id: int
    type: PointType
    latitude: float
    longitude: float
    content: ContentIn
    chain: Optional[ChainIn] = None
    is_active: bool
    model_config = FROM_ATTR


class CountOut(BaseModel):
    count: int


# ========== Прогресс ==========

class ProgressStartIn(BaseModel):
    game_id: int
    player_id: str = Field(min_length=1)
    latitude: float = Field(allow_inf_nan=False)
    longitude: float = Field(allow_inf_nan=False)


class ProgressStartOut(BaseModel):
    progress_id: int


class PositionReportIn(ProgressStartIn):
    pass


class PositionReportOut(BaseModel):
    found_point_id: Optional[int] = None
    found_count: int
    is_completed: bool


class FoundIn(BaseModel):
    game_id: int
    player_id: str
    point_id: int


class FoundOut(BaseModel):
    found_count: int


class ProgressOut(BaseModel):
    id: int
    game_id: int
    player_id: str
    found_points: List[int] = Field(default_factory=list)
    current_position: Optional[PositionIn] = None
    is_completed: bool
    started_at: datetime
    completed_at: Optional[datetime] = None
    model_config = FROM_ATTR


class SummaryOut(ProgressOut):
    found_count: int
    total_points: int
    game_title: str
    game_area: Optional[AreaIn] = None


class LivePointOut(BaseModel):
    id: int
    latitude: float
    longitude: float
    type: PointType
    is_active: bool


class LivePlayerOut(BaseModel):
    player_id: str
    latitude: float
    longitude: float


class LiveSnapshotOut(BaseModel):
    points: List[LivePointOut] = Field(default_factory=list)
    players: List[LivePlayerOut] = Field(default_factory=list)


# ========== Учётки (судьи / игроки) ==========

class RegisterIn(BaseModel):
    device_id: str
    nickname: str
    password_hash: str
    full_name: str = ""
    phone: str = ""
    email: str = ""


class RegisterOut(BaseModel):
    account_id: int
    status: AccountStatus


class ProfileIn(BaseModel):
    device_id: str
    nickname: str
    full_name: str = ""
    phone: str = ""
    email: str = ""


class LoginIn(BaseModel):
    nickname: str
    password_hash: str


class LoginOut(BaseModel):
    success: bool
    status: Optional[AccountStatus] = None
    account_id: Optional[int] = None
    device_id: Optional[str] = None
    error: Optional[str] = None


class AccountOut(BaseModel):
    """Без password_hash."""
    id: int
    device_id: str
    public_nick: str
    full_name: str
    phone: str
    email: str
    status: AccountStatus
    created_at: Optional[datetime] = None
    model_config = FROM_ATTR


class AccountStatusIn(BaseModel):
    status: AccountStatus


__all__ = [
    "PositionIn", "AreaIn", "ContentIn", "ChainIn",
    # games
    "GameCreateIn", "GameCreateOut", "GameOut", "PublishedGameOut",
    "GameMetaIn", "ReviewStatusIn", "PublishedIn", "StartPointIn",
    # points
    "PointCreateIn", "AdminPointCreateIn", "PointUpdateIn", "AdminPointUpdateIn",
    "ChainUpdateIn", "PointCreateOut", "PointOut", "CountOut",
    # progress
    "ProgressStartIn", "ProgressStartOut", "PositionReportIn", "PositionReportOut",
    "FoundIn", "FoundOut", "ProgressOut", "SummaryOut",
    "LivePointOut", "LivePlayerOut", "LiveSnapshotOut",
    # accounts
    "RegisterIn", "RegisterOut", "ProfileIn", "LoginIn", "LoginOut",
    "AccountOut", "AccountStatusIn",
]
