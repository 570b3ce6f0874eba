# geoquest/errors.py
from __future__ import annotations

from typing import Any, Dict, Optional


class GeoQuestError(Exception):
    """Ошибка ядра; status_code и payload уходят клиенту как есть."""

    status_code = 400

    def __init__(self, message: str, status_code: Optional[int] = None, payload: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.payload = payload or {"detail": message}


class Forbidden(GeoQuestError):
    """Админ-ключ не передан или не совпал. Бросается до любого чтения данных."""

    status_code = 403

    def __init__(self, message: str = "Forbidden"):
        super().__init__(message)


class ValidationFailed(GeoQuestError):
    status_code = 422


class Conflict(GeoQuestError):
    status_code = 409


class NotFound(GeoQuestError):
    status_code = 404


__all__ = ["GeoQuestError", "Forbidden", "ValidationFailed", "Conflict", "NotFound"]
