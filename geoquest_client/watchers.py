# geoquest_client/watchers.py
import asyncio
import inspect
import logging
from typing import Any, Callable, Optional

from . import api_client
from .config import POLL_SECONDS
from .location import LocationProvider, LocationUnavailable

logger = logging.getLogger(__name__)

Callback = Optional[Callable[..., Any]]


async def _call(cb: Callback, *args) -> None:
    if cb is None:
        return
    res = cb(*args)
    if inspect.isawaitable(res):
        await res


class _State:
    def __init__(self, game_id: int, player_id: str, provider: LocationProvider,
                 on_found: Callback, on_completed: Callback, on_error: Callback):
        self.game_id = game_id
        self.player_id = str(player_id)
        self.provider = provider
        self.on_found = on_found
        self.on_completed = on_completed
        self.on_error = on_error
        self.found_count = 0
        self.completed = False


class PositionWatcher:
    """
    Цикл опроса позиции игрока: раз в poll_seconds берём координаты у провайдера
    и шлём их на /api/progress/position. Сервер сам решает, найдена ли точка.
    """

    def __init__(self, api=api_client, poll_seconds: float = POLL_SECONDS,
                 backoff_start: float = 1.0, backoff_max: float = 30.0):
        self.api = api
        self.poll_seconds = poll_seconds
        self.backoff_start = backoff_start
        self.backoff_max = backoff_max
        self._tasks: dict[tuple[int, str], asyncio.Task] = {}
        self._states: dict[tuple[int, str], _State] = {}

    def running(self, game_id: int, player_id: str) -> bool:
        t = self._tasks.get((game_id, str(player_id)))
        return bool(t and not t.done())

    def start(self, game_id: int, player_id: str, provider: LocationProvider, *,
              on_found: Callback = None, on_completed: Callback = None,
              on_error: Callback = None) -> asyncio.Task:
        """
        ИДЕМПОТЕНТНО: если цикл для (game_id, player_id) уже крутится -
        только обновляем провайдера и колбэки.
        """
        key = (game_id, str(player_id))
        st = self._states.get(key)
        if st:
            st.provider = provider
            st.on_found, st.on_completed, st.on_error = on_found, on_completed, on_error
        else:
            st = _State(game_id, player_id, provider, on_found, on_completed, on_error)
            self._states[key] = st

        t = self._tasks.get(key)
        if t and not t.done():
            return t
        t = asyncio.create_task(self._loop(st))
        self._tasks[key] = t
        return t

    async def stop(self, game_id: int, player_id: str) -> None:
        key = (game_id, str(player_id))
        t = self._tasks.pop(key, None)
        self._states.pop(key, None)
        if t and not t.done():
            t.cancel()
            try:
                await t
            except asyncio.CancelledError:
                pass

    async def stop_all(self) -> None:
        for game_id, player_id in list(self._tasks):
            await self.stop(game_id, player_id)

    async def tick(self, st: _State) -> Optional[bool]:
        """
        Один замер. True: игра пройдена, False: ок, None: сеть/сервер недоступны.
        LocationUnavailable: тик пропущен, сообщаем через on_error.
        """
        try:
            pos = await st.provider.current()
        except LocationUnavailable as e:
            logger.warning("watcher %s/%s: location unavailable: %s", st.game_id, st.player_id, e)
            await _call(st.on_error, e)
            return False

        code, data = await self.api.report_position(st.game_id, st.player_id, pos.latitude, pos.longitude)
        if code == 0:
            return None
        if code != 200 or not isinstance(data, dict):
            logger.warning("watcher %s/%s: position rejected (%s): %r", st.game_id, st.player_id, code, data)
            await _call(st.on_error, data)
            return False

        st.found_count = int(data.get("found_count") or 0)
        found_id = data.get("found_point_id")
        if found_id:
            logger.info("watcher %s/%s: point %s found (%s total)", st.game_id, st.player_id, found_id, st.found_count)
            await _call(st.on_found, found_id, st.found_count)

        if data.get("is_completed") and not st.completed:
            st.completed = True
            await _call(st.on_completed, st.found_count)
        return st.completed

    async def _loop(self, st: _State):
        backoff = self.backoff_start
        try:
            while True:
                done = await self.tick(st)
                if done is None:
                    logger.warning("watcher %s/%s: network error, retrying…", st.game_id, st.player_id)
                    await asyncio.sleep(backoff)
                    backoff = min(max(backoff * 2, self.backoff_start), self.backoff_max)
                    continue

                backoff = self.backoff_start
                if done:
                    logger.info("watcher %s/%s: game completed", st.game_id, st.player_id)
                    break
                await asyncio.sleep(self.poll_seconds)
        except asyncio.CancelledError:
            logger.info("watcher %s/%s stopped", st.game_id, st.player_id)
            raise


WATCHER = PositionWatcher()
