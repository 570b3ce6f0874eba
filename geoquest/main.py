# geoquest/main.py
from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import config
from .database import engine, Base
from .errors import GeoQuestError
from . import models  # noqa: F401  регистрирует таблицы в Base.metadata

# Роутеры
from .api import router as api_router                    # /api/...

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("geoquest")

# --- APP ---------------------------------------------------------------------
app = FastAPI(title="GeoQuest")

app.include_router(api_router)          # /api/...

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(GeoQuestError)
async def geoquest_error_handler(request: Request, exc: GeoQuestError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.payload)


@app.on_event("startup")
def on_startup() -> None:
    """Создаём схему БД и монтируем админку (ADMIN_UI)."""
    Base.metadata.create_all(bind=engine)

    if config.ADMIN_UI:
        try:
            from .admin import mount_admin
            mount_admin(app)
        except Exception:
            # без админки API продолжает работать
            logger.exception("admin UI was not mounted")


@app.get("/health", tags=["core"])
def health() -> Dict[str, Any]:
    return {
        "status": "ok",
        "find_radius_m": config.FIND_RADIUS_M,
        "admin_configured": bool(config.ADMIN_KEY),
    }
