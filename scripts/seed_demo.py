# scripts/seed_demo.py
"""
Демо-игра для локального стенда: две видимые точки и цепочка X -> Y -> Z
вокруг центра (DEMO_LAT, DEMO_LON). Игра сразу одобрена, опубликована и активна.

    DATABASE_URL=sqlite:///./geoquest.db python scripts/seed_demo.py
"""
from __future__ import annotations

import os
from math import radians
from typing import Any, Dict, List

from geoquest import games, models, points
from geoquest.database import Base, SessionLocal, engine
from geoquest.geo import Position, destination

CENTER = Position(
    float(os.getenv("DEMO_LAT", "56.3269")),
    float(os.getenv("DEMO_LON", "44.0059")),
)
JUDGE_ID = os.getenv("DEMO_JUDGE_ID", "demo-judge")

# (тип, азимут°, дистанция м, подсказка)
POINTS: List[Dict[str, Any]] = [
    {"type": "visible", "bearing": 0, "distance": 40, "hint": "Фонтан у входа", "symbol": "A"},
    {"type": "visible", "bearing": 120, "distance": 60, "hint": "Памятник на углу", "symbol": "B"},
]
CHAIN: List[Dict[str, Any]] = [
    {"bearing": 200, "distance": 50, "hint": "X: скамейка под липой", "symbol": "X"},
    {"bearing": 260, "distance": 80, "hint": "Y: старая водокачка", "symbol": "Y"},
    {"bearing": 320, "distance": 110, "hint": "Z: смотровая площадка", "symbol": "Z"},
]


def seed(session) -> models.Game:
    game = games.create_game(
        session,
        judge_id=JUDGE_ID,
        name="demo",
        title="Демо-квест",
        description="Две точки видны сразу, цепочка X -> Y -> Z открывается по ходу игры.",
        area={"country": "RU", "city": "Нижний Новгород"},
    )

    for p in POINTS:
        pos = destination(CENTER, radians(p["bearing"]), p["distance"])
        points.create_point(
            session, game_id=game.id, type=p["type"],
            latitude=pos.latitude, longitude=pos.longitude,
            content={"hint": p["hint"], "symbol": p["symbol"]},
        )

    chain_ids: List[int] = []
    for order, p in enumerate(CHAIN):
        pos = destination(CENTER, radians(p["bearing"]), p["distance"])
        cp = points.create_point(
            session, game_id=game.id, type="sequential",
            latitude=pos.latitude, longitude=pos.longitude,
            content={"hint": p["hint"], "symbol": p["symbol"]},
            chain={"id": "demo-chain", "order": order},
        )
        chain_ids.append(cp.id)
    for cur, nxt in zip(chain_ids, chain_ids[1:]):
        points.update_chain(session, cur, nxt)

    # модерация в обход админ-ключа: это локальный сид
    game.review_status = "approved"
    game.published = True
    session.commit()
    return games.activate_game(session, game.id)


def main() -> None:
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        game = seed(session)
        print(f"OK: demo game {game.id} seeded around {CENTER.latitude}, {CENTER.longitude}")
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


if __name__ == "__main__":
    main()
