# geoquest/accounts.py
"""
Учётки судей и игроков + проверка админ-ключа.

Судьи и игроки: раздельные пространства ников (отдельные таблицы), операции
одинаковые, поэтому все функции принимают класс модели (models.Judge / models.Player).

Пароль приходит уже захэшированным с клиента и сравнивается как есть:
сервер ничего не хэширует.
"""
from __future__ import annotations

import hmac
import logging
from typing import Optional, Type, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import config, models
from .errors import Conflict, Forbidden, NotFound, ValidationFailed

logger = logging.getLogger(__name__)

Account = Union[models.Judge, models.Player]
AccountModel = Type[Account]


# --- admin gate -------------------------------------------------------------
def require_admin(admin_key: Optional[str]) -> None:
    """Fail closed: любой промах по ключу (и пустой ADMIN_KEY) даёт Forbidden."""
    expected = config.ADMIN_KEY
    if not expected or not admin_key or not hmac.compare_digest(str(admin_key), expected):
        logger.warning("admin key rejected")
        raise Forbidden()


def check_status(status: str) -> str:
    if status not in models.ACCOUNT_STATUSES:
        raise ValidationFailed(f"Unknown status: {status!r}")
    return status


def _role(model: AccountModel) -> str:
    return "judge" if model is models.Judge else "player"


# --- lookups ----------------------------------------------------------------
def get_by_device(db: Session, model: AccountModel, device_id: str) -> Optional[Account]:
    return (
        db.query(model)
        .filter(model.device_id == device_id)
        .order_by(model.id.asc())
        .first()
    )


def get_by_nick(db: Session, model: AccountModel, nick: str) -> Optional[Account]:
    # точное сравнение с учётом регистра
    return (
        db.query(model)
        .filter(model.public_nick == nick)
        .order_by(model.id.asc())
        .first()
    )


# --- registration / profile -------------------------------------------------
def _save(db: Session, model: AccountModel, account: Account) -> Account:
    """
    Коммит учётки. Проверка ника выше не атомарна: параллельную регистрацию
    того же ника (или того же устройства) ловит unique-индекс в базе.
    """
    nickname = account.public_nick
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.warning("%s nick %r: concurrent registration rejected by unique index", _role(model), nickname)
        raise Conflict("Nickname already taken")
    db.refresh(account)
    return account


def register(
    db: Session,
    model: AccountModel,
    *,
    device_id: str,
    nickname: str,
    password_hash: str,
    full_name: str = "",
    phone: str = "",
    email: str = "",
) -> Account:
    """
    Регистрация. Ник занят другим устройством: Conflict.
    То же устройство регистрируется повторно: перезаписываем профиль и
    возвращаем статус в pending.
    """
    device_id = (device_id or "").strip()
    nickname = (nickname or "").strip()
    password_hash = (password_hash or "").strip()
    if not device_id:
        raise ValidationFailed("device_id is required")
    if not nickname:
        raise ValidationFailed("Nickname is required")
    if not password_hash:
        raise ValidationFailed("Password is required")

    taken = get_by_nick(db, model, nickname)
    if taken and taken.device_id != device_id:
        raise Conflict("Nickname already taken")

    account = get_by_device(db, model, device_id)
    if account:
        account.public_nick = nickname
        account.full_name = full_name or ""
        account.phone = phone or ""
        account.email = email or ""
        account.password_hash = password_hash
        account.status = "pending"
        logger.info("%s %s re-registered from device %s, status reset to pending", _role(model), account.id, device_id)
    else:
        account = model(
            device_id=device_id,
            public_nick=nickname,
            full_name=full_name or "",
            phone=phone or "",
            email=email or "",
            password_hash=password_hash,
            status="pending",
        )
        db.add(account)
    return _save(db, model, account)


def upsert_profile(
    db: Session,
    model: AccountModel,
    *,
    device_id: str,
    nickname: str,
    full_name: str = "",
    phone: str = "",
    email: str = "",
) -> Account:
    """Профиль по устройству без смены статуса и хэша. Новая учётка без хэша войти не сможет."""
    device_id = (device_id or "").strip()
    nickname = (nickname or "").strip()
    if not device_id or not nickname:
        raise ValidationFailed("device_id and nickname are required")

    taken = get_by_nick(db, model, nickname)
    if taken and taken.device_id != device_id:
        raise Conflict("Nickname already taken")

    account = get_by_device(db, model, device_id)
    if account:
        account.public_nick = nickname
        account.full_name = full_name or ""
        account.phone = phone or ""
        account.email = email or ""
    else:
        account = model(
            device_id=device_id,
            public_nick=nickname,
            full_name=full_name or "",
            phone=phone or "",
            email=email or "",
            password_hash="",
            status="pending",
        )
        db.add(account)
    return _save(db, model, account)


# --- login ------------------------------------------------------------------
def login(db: Session, model: AccountModel, nickname: str, password_hash: str) -> dict:
    """
    Структурный результат вместо исключения. success=True ещё не пускает в игру:
    вход в геймплей решает status == 'approved' на стороне клиента.
    """
    account = get_by_nick(db, model, (nickname or "").strip())
    if not account or not account.password_hash:
        return {"success": False, "error": "Account not found"}
    if account.password_hash != (password_hash or ""):
        return {"success": False, "error": "Wrong password"}
    return {
        "success": True,
        "status": account.status,
        "account_id": account.id,
        "device_id": account.device_id,
    }


# --- admin moderation -------------------------------------------------------
def admin_list(db: Session, model: AccountModel, admin_key: Optional[str], status: Optional[str] = None) -> list[Account]:
    require_admin(admin_key)
    if status:
        check_status(status)
        return db.query(model).filter(model.status == status).order_by(model.id.asc()).all()
    order = {s: i for i, s in enumerate(models.ACCOUNT_STATUSES)}
    rows = db.query(model).order_by(model.id.asc()).all()
    return sorted(rows, key=lambda a: order.get(a.status, len(order)))


def admin_set_status(db: Session, model: AccountModel, admin_key: Optional[str], account_id: int, status: str) -> Account:
    require_admin(admin_key)
    check_status(status)
    account = db.get(model, account_id)
    if not account:
        raise NotFound(f"{_role(model).capitalize()} not found")
    account.status = status
    db.commit()
    db.refresh(account)
    logger.info("%s %s status -> %s", _role(model), account.id, status)
    return account
