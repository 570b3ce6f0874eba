# geoquest/admin.py
import secrets

from fastapi import FastAPI, Request
from sqladmin import Admin, ModelView
from sqladmin.authentication import AuthenticationBackend

from . import config, models
from .accounts import require_admin
from .database import engine
from .errors import Forbidden


class AdminKeyAuth(AuthenticationBackend):
    """Вход в панель: пароль = ADMIN_KEY, логин любой."""

    async def login(self, request: Request) -> bool:
        form = await request.form()
        try:
            require_admin(form.get("password"))
        except Forbidden:
            return False
        request.session.update({"admin": True})
        return True

    async def logout(self, request: Request) -> bool:
        request.session.clear()
        return True

    async def authenticate(self, request: Request) -> bool:
        return bool(request.session.get("admin")) and bool(config.ADMIN_KEY)


class GameAdmin(ModelView, model=models.Game):
    name_plural = "Games"
    icon = "fa-solid fa-map"
    column_list = [
        models.Game.id, models.Game.name, models.Game.title, models.Game.judge_id,
        models.Game.is_active, models.Game.review_status, models.Game.published,
        models.Game.created_at,
    ]
    form_columns = [
        models.Game.name, models.Game.title, models.Game.description,
        models.Game.area_country, models.Game.area_region, models.Game.area_city,
        models.Game.review_status, models.Game.published,
    ]
    column_searchable_list = [models.Game.name, models.Game.title, models.Game.judge_id]


class ControlPointAdmin(ModelView, model=models.ControlPoint):
    name_plural = "Control points"
    icon = "fa-solid fa-location-dot"
    column_list = [
        models.ControlPoint.id, models.ControlPoint.game_id, models.ControlPoint.type,
        models.ControlPoint.latitude, models.ControlPoint.longitude,
        models.ControlPoint.next_point_id, models.ControlPoint.is_active,
    ]
    form_columns = [
        models.ControlPoint.hint, models.ControlPoint.qr, models.ControlPoint.symbol,
    ]


class PlayerProgressAdmin(ModelView, model=models.PlayerProgress):
    name_plural = "Player progress"
    icon = "fa-solid fa-person-walking"
    can_create = False
    can_edit = False
    column_list = [
        models.PlayerProgress.id, models.PlayerProgress.game_id, models.PlayerProgress.player_id,
        models.PlayerProgress.found_points, models.PlayerProgress.is_completed,
        models.PlayerProgress.started_at, models.PlayerProgress.completed_at,
    ]
    column_searchable_list = [models.PlayerProgress.player_id]


class JudgeAdmin(ModelView, model=models.Judge):
    name_plural = "Judges"
    icon = "fa-solid fa-gavel"
    column_list = [
        models.Judge.id, models.Judge.public_nick, models.Judge.full_name,
        models.Judge.phone, models.Judge.email, models.Judge.status, models.Judge.created_at,
    ]
    column_details_exclude_list = [models.Judge.password_hash]
    form_columns = [models.Judge.full_name, models.Judge.phone, models.Judge.email, models.Judge.status]
    column_searchable_list = [models.Judge.public_nick, models.Judge.phone, models.Judge.email]


class PlayerAdmin(ModelView, model=models.Player):
    name_plural = "Players"
    icon = "fa-regular fa-user"
    column_list = [
        models.Player.id, models.Player.public_nick, models.Player.full_name,
        models.Player.phone, models.Player.email, models.Player.status, models.Player.created_at,
    ]
    column_details_exclude_list = [models.Player.password_hash]
    form_columns = [models.Player.full_name, models.Player.phone, models.Player.email, models.Player.status]
    column_searchable_list = [models.Player.public_nick, models.Player.phone, models.Player.email]


def mount_admin(app: FastAPI) -> Admin:
    # без ADMIN_KEY сессию подписываем случайным ключом: войти всё равно нельзя
    auth = AdminKeyAuth(secret_key=config.ADMIN_KEY or secrets.token_urlsafe(32))
    admin = Admin(app, engine, authentication_backend=auth)
    admin.add_view(GameAdmin)
    admin.add_view(ControlPointAdmin)
    admin.add_view(PlayerProgressAdmin)
    admin.add_view(JudgeAdmin)
    admin.add_view(PlayerAdmin)
    return admin
