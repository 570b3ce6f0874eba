# geoquest_client/location.py
from __future__ import annotations

from typing import Iterable, Protocol

from geoquest.geo import Position


class LocationUnavailable(Exception):
    """Нет фикса GPS или нет разрешения на геолокацию."""


class LocationProvider(Protocol):
    async def current(self) -> Position:
        ...


class StaticLocationProvider:
    """
    Фиксированная точка или сценарий позиций (демо, тесты).
    Сценарий отдаётся по одной позиции на вызов; None в сценарии = LocationUnavailable.
    Когда сценарий кончился: повторяем последнюю позицию.
    """

    def __init__(self, positions: Iterable[Position | tuple[float, float] | None]):
        self._positions = [Position(*p) if p is not None else None for p in positions]
        if not self._positions:
            raise ValueError("at least one position is required")
        self._idx = 0

    @classmethod
    def fixed(cls, latitude: float, longitude: float) -> "StaticLocationProvider":
        return cls([(latitude, longitude)])

    async def current(self) -> Position:
        pos = self._positions[min(self._idx, len(self._positions) - 1)]
        self._idx += 1
        if pos is None:
            raise LocationUnavailable("no GPS fix")
        return pos
