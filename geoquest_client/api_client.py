# geoquest_client/api_client.py
from __future__ import annotations

import asyncio
import logging
from typing import Any, Tuple

import aiohttp

from .config import get_http, api_url

logger = logging.getLogger(__name__)


# ------------------------------ low-level HTTP -------------------------------

async def _read_json(r: aiohttp.ClientResponse) -> Any:
    """Если ответ не JSON: возвращаем сырой текст в {'raw': ...}."""
    try:
        return await r.json(content_type=None)
    except ValueError:
        return {"raw": await r.text()}


async def _req_json(
    method: str,
    path: str,
    *,
    params: dict | None = None,
    json: Any | None = None,
    headers: dict | None = None,
) -> Tuple[int, Any]:
    """
    Единая обёртка над aiohttp: общая сессия из get_http(), результат (status, json).
    Сетевая ошибка: (0, {"detail": "network_error"}).
    """
    s = await get_http()
    url = api_url(path)
    try:
        async with s.request(method, url, params=params, json=json, headers=headers) as r:
            return r.status, await _read_json(r)
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        logger.error("%s %s failed: %r", method, url, e)
        return 0, {"detail": "network_error"}


def _admin(admin_key: str) -> dict:
    return {"x-admin-key": admin_key}


# ------------------------------ accounts -------------------------------------

async def register_player(device_id: str, nickname: str, password_hash: str, *,
                          full_name: str = "", phone: str = "", email: str = ""):
    """POST /api/players/register"""
    payload = {
        "device_id": device_id, "nickname": nickname, "password_hash": password_hash,
        "full_name": full_name, "phone": phone, "email": email,
    }
    return await _req_json("POST", "/api/players/register", json=payload)


async def login_player(nickname: str, password_hash: str):
    """POST /api/players/login -> {success, status, account_id, device_id} | {success: false, error}"""
    return await _req_json(
        "POST", "/api/players/login",
        json={"nickname": nickname, "password_hash": password_hash},
    )


async def player_by_device(device_id: str):
    return await _req_json("GET", f"/api/players/by-device/{device_id}")


async def register_judge(device_id: str, nickname: str, password_hash: str, *,
                         full_name: str = "", phone: str = "", email: str = ""):
    """POST /api/judges/register"""
    payload = {
        "device_id": device_id, "nickname": nickname, "password_hash": password_hash,
        "full_name": full_name, "phone": phone, "email": email,
    }
    return await _req_json("POST", "/api/judges/register", json=payload)


async def login_judge(nickname: str, password_hash: str):
    return await _req_json(
        "POST", "/api/judges/login",
        json={"nickname": nickname, "password_hash": password_hash},
    )


# ------------------------------ games ----------------------------------------

async def published_games():
    """GET /api/games/published: «магазин карт»"""
    return await _req_json("GET", "/api/games/published")


async def active_game(judge_id: str | None = None):
    params = {"judge_id": judge_id} if judge_id else None
    return await _req_json("GET", "/api/games/active", params=params)


async def get_game(game_id: int):
    return await _req_json("GET", f"/api/games/{game_id}")


async def visible_points(game_id: int, player_id: str):
    """GET /api/games/{id}/points/visible?player_id=..."""
    return await _req_json(
        "GET", f"/api/games/{game_id}/points/visible",
        params={"player_id": player_id},
    )


# ------------------------------ progress -------------------------------------

async def start_game(game_id: int, player_id: str, latitude: float, longitude: float):
    """POST /api/progress/start"""
    return await _req_json(
        "POST", "/api/progress/start",
        json={"game_id": game_id, "player_id": player_id, "latitude": latitude, "longitude": longitude},
    )


async def report_position(game_id: int, player_id: str, latitude: float, longitude: float):
    """
    POST /api/progress/position
    -> {found_point_id, found_count, is_completed}
    """
    return await _req_json(
        "POST", "/api/progress/position",
        json={"game_id": game_id, "player_id": player_id, "latitude": latitude, "longitude": longitude},
    )


async def get_progress(game_id: int, player_id: str):
    return await _req_json("GET", f"/api/progress/{game_id}/{player_id}")


async def summaries(player_id: str):
    return await _req_json("GET", f"/api/progress/summaries/{player_id}")


# ------------------------------ admin ----------------------------------------

async def admin_live_snapshot(admin_key: str, game_id: int):
    return await _req_json("GET", f"/api/admin/games/{game_id}/live", headers=_admin(admin_key))


async def admin_set_player_status(admin_key: str, player_id: int, status: str):
    return await _req_json(
        "POST", f"/api/admin/players/{player_id}/status",
        json={"status": status}, headers=_admin(admin_key),
    )
