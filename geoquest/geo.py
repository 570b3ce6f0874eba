# geoquest/geo.py
from __future__ import annotations

from math import asin, atan2, cos, degrees, isfinite, radians, sin, sqrt
from typing import NamedTuple

from .errors import ValidationFailed

EARTH_RADIUS_M = 6371000


class Position(NamedTuple):
    latitude: float
    longitude: float


def distance_m(a: Position, b: Position) -> float:
    """Return distance in metres using haversine formula."""
    d_lat = radians(b.latitude - a.latitude)
    d_lng = radians(b.longitude - a.longitude)
    lat1 = radians(a.latitude)
    lat2 = radians(b.latitude)
    h = sin(d_lat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(d_lng / 2) ** 2
    c = 2 * atan2(sqrt(h), sqrt(1 - h))
    return EARTH_RADIUS_M * c


def initial_bearing(a: Position, b: Position) -> float:
    """Начальный азимут из a в b, радианы."""
    lat1 = radians(a.latitude)
    lat2 = radians(b.latitude)
    d_lng = radians(b.longitude - a.longitude)
    y = sin(d_lng) * cos(lat2)
    x = cos(lat1) * sin(lat2) - sin(lat1) * cos(lat2) * cos(d_lng)
    return atan2(y, x)


def destination(origin: Position, bearing: float, distance: float) -> Position:
    """Точка на расстоянии distance (м) от origin по азимуту bearing (радианы)."""
    lat1 = radians(origin.latitude)
    lng1 = radians(origin.longitude)
    delta = distance / EARTH_RADIUS_M
    lat2 = asin(sin(lat1) * cos(delta) + cos(lat1) * sin(delta) * cos(bearing))
    lng2 = lng1 + atan2(
        sin(bearing) * sin(delta) * cos(lat1),
        cos(delta) - sin(lat1) * sin(lat2),
    )
    # нормализуем долготу в [-180, 180)
    lng = (degrees(lng2) + 540) % 360 - 180
    return Position(degrees(lat2), lng)


def clamp_to_radius(center: Position, point: Position, radius_m: float) -> Position:
    """
    Притягивает point к окружности радиуса radius_m вокруг center,
    если точка лежит дальше. Иначе возвращает её без изменений.
    """
    dist = distance_m(center, point)
    if dist == 0 or dist <= radius_m:
        return point
    return destination(center, initial_bearing(center, point), radius_m)


def checked_position(latitude, longitude) -> Position:
    """Проверка координат на границе: конечные числа в допустимых диапазонах."""
    try:
        lat = float(latitude)
        lng = float(longitude)
    except (TypeError, ValueError):
        raise ValidationFailed("Coordinates must be numbers")
    if not (isfinite(lat) and isfinite(lng)):
        raise ValidationFailed("Coordinates must be finite")
    if not (-90.0 <= lat <= 90.0) or not (-180.0 <= lng <= 180.0):
        raise ValidationFailed("Coordinates out of range")
    return Position(lat, lng)
