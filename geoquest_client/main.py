import argparse
import asyncio
import hashlib
import logging

from . import api_client
from .config import close_http, POLL_SECONDS
from .location import LocationProvider, LocationUnavailable, StaticLocationProvider
from .watchers import PositionWatcher

log = logging.getLogger("geoquest_client")


def hash_password(password: str) -> str:
    # сервер хранит и сравнивает хэш как есть, сам ничего не считает
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


async def play(nickname: str, password: str, game_id: int, provider: LocationProvider,
               *, api=api_client, poll_seconds: float = POLL_SECONDS) -> int:
    """
    Вход игрока -> старт игры -> цикл опроса позиции до прохождения.
    Код возврата 0, если игра пройдена, иначе 1.
    """
    code, res = await api.login_player(nickname, hash_password(password))
    if code != 200 or not res.get("success"):
        log.error("login failed: %s", (res or {}).get("error") or res)
        return 1
    if res.get("status") != "approved":
        log.error("account is %s: wait for approval", res.get("status"))
        return 1
    player_id = str(res["account_id"])

    try:
        pos = await provider.current()
    except LocationUnavailable as e:
        log.error("cannot start without location: %s", e)
        return 1

    code, data = await api.start_game(game_id, player_id, pos.latitude, pos.longitude)
    if code != 200:
        log.error("start failed (%s): %r", code, data)
        return 1
    log.info("game %s started, progress %s", game_id, data.get("progress_id"))

    watcher = PositionWatcher(api=api, poll_seconds=poll_seconds)
    task = watcher.start(
        game_id, player_id, provider,
        on_found=lambda pid, n: log.info("found point %s (%s so far)", pid, n),
        on_completed=lambda n: log.info("game completed, %s points found", n),
        on_error=lambda e: log.warning("tick failed: %s", e),
    )
    try:
        await task
    finally:
        await watcher.stop_all()
    return 0


def _parse_args(argv=None) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="geoquest-client", description="Play a GeoQuest game from the command line")
    p.add_argument("--nick", required=True)
    p.add_argument("--password", required=True)
    p.add_argument("--game", type=int, required=True)
    p.add_argument("--lat", type=float, required=True)
    p.add_argument("--lon", type=float, required=True)
    return p.parse_args(argv)


async def main(argv=None) -> int:
    args = _parse_args(argv)
    try:
        return await play(args.nick, args.password, args.game,
                          StaticLocationProvider.fixed(args.lat, args.lon))
    finally:
        await close_http()


def run() -> None:
    raise SystemExit(asyncio.run(main()))


if __name__ == "__main__":
    run()
