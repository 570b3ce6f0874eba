import math

import pytest

from geoquest import games, points, progress
from geoquest.errors import Forbidden
from geoquest.geo import EARTH_RADIUS_M, Position

LAT, LON = 55.7520, 37.6175
DEG_PER_M = 180 / (math.pi * EARTH_RADIUS_M)


def north_of(lat, lon, meters):
    return Position(lat + meters * DEG_PER_M, lon)


def _found(db, game_id, player_id):
    return progress.get_progress(db, game_id, player_id)["found_points"]


# --- start / position -------------------------------------------------------
def test_start_is_idempotent_upsert(db, make_game):
    game, (p,) = make_game([("visible", LAT, LON)], active=True)
    first = progress.start(db, game.id, "p1", Position(LAT, LON))
    progress.mark_found(db, game.id, "p1", p.id)

    again = progress.start(db, game.id, "p1", Position(LAT + 1, LON + 1))
    assert again.id == first.id
    assert again.found_points == [p.id]
    assert again.current_position == {"latitude": LAT + 1, "longitude": LON + 1}
    assert len(progress.list_player_progress(db, "p1")) == 1


def test_report_position_without_start_is_noop(db, make_game):
    game, _ = make_game([("visible", LAT, LON)], active=True)
    assert progress.report_position(db, game.id, "ghost", Position(LAT, LON)) is None
    assert progress.get_progress(db, game.id, "ghost") is None


def test_report_position_last_write_wins(db, make_game):
    game, _ = make_game([("visible", LAT, LON)], active=True)
    progress.start(db, game.id, "p1", Position(LAT, LON))
    progress.report_position(db, game.id, "p1", Position(1.0, 2.0))
    progress.report_position(db, game.id, "p1", Position(3.0, 4.0))
    assert progress.get_progress(db, game.id, "p1")["current_position"] == {"latitude": 3.0, "longitude": 4.0}


# --- mark_found -------------------------------------------------------------
def test_mark_found_twice_keeps_one_entry_and_unlock(db, make_game):
    game, (x, y) = make_game([("sequential", LAT, LON), ("sequential", LAT + 0.01, LON)])
    points.update_chain(db, x.id, y.id)
    games.activate_game(db, game.id)
    progress.start(db, game.id, "p1", Position(LAT, LON))

    assert progress.mark_found(db, game.id, "p1", x.id) == 1
    assert points.get_point(db, y.id).is_active is True

    assert progress.mark_found(db, game.id, "p1", x.id) == 1
    assert _found(db, game.id, "p1") == [x.id]
    assert points.get_point(db, y.id).is_active is True


def test_mark_found_point_of_other_game_is_noop(db, make_game):
    game, _ = make_game([("visible", LAT, LON)], active=True)
    _, (foreign,) = make_game([("visible", LAT, LON)], name="other")
    progress.start(db, game.id, "p1", Position(LAT, LON))

    assert progress.mark_found(db, game.id, "p1", foreign.id) == 0
    assert progress.mark_found(db, game.id, "p1", 98765) == 0
    assert _found(db, game.id, "p1") == []


def test_mark_found_without_start_is_noop(db, make_game):
    game, (p,) = make_game([("visible", LAT, LON)], active=True)
    assert progress.mark_found(db, game.id, "nobody", p.id) == 0
    assert progress.get_progress(db, game.id, "nobody") is None


def test_completion_is_set_once_and_stays(db, make_game):
    game, (a, b) = make_game([("visible", LAT, LON), ("visible", LAT + 0.01, LON)], active=True)
    progress.start(db, game.id, "p1", Position(LAT, LON))

    progress.mark_found(db, game.id, "p1", a.id)
    assert progress.get_progress(db, game.id, "p1")["is_completed"] is False

    progress.mark_found(db, game.id, "p1", b.id)
    view = progress.get_progress(db, game.id, "p1")
    assert view["is_completed"] is True
    completed_at = view["completed_at"]
    assert completed_at is not None

    # новые точки, удаление найденной точки и повторный старт не сбрасывают флаг
    points.create_point(db, game_id=game.id, type="visible", latitude=LAT + 0.02, longitude=LON)
    points.delete_point(db, b.id)
    progress.start(db, game.id, "p1", Position(LAT, LON))
    progress.mark_found(db, game.id, "p1", a.id)

    view = progress.get_progress(db, game.id, "p1")
    assert view["is_completed"] is True
    assert view["completed_at"] == completed_at
    assert progress.get_summaries(db, "p1")[0]["is_completed"] is True


# --- sanitized reads --------------------------------------------------------
def test_deleted_point_disappears_and_completion_is_recomputed(db, make_game):
    game, (a, b, c) = make_game([
        ("visible", LAT, LON),
        ("visible", LAT + 0.01, LON),
        ("visible", LAT + 0.02, LON),
    ], active=True)
    game_id, a_id, b_id, c_id = game.id, a.id, b.id, c.id
    progress.start(db, game_id, "p1", Position(LAT, LON))
    progress.mark_found(db, game_id, "p1", a_id)
    progress.mark_found(db, game_id, "p1", b_id)

    points.delete_point(db, b_id)
    view = progress.get_progress(db, game_id, "p1")
    assert view["found_points"] == [a_id]
    assert view["is_completed"] is False

    points.delete_point(db, c_id)
    assert progress.get_progress(db, game_id, "p1")["is_completed"] is True


def test_stale_ids_are_filtered_at_read_time_only(db, make_game):
    game, (a,) = make_game([("visible", LAT, LON), ], active=True)
    row = progress.start(db, game.id, "p1", Position(LAT, LON))
    # устаревшая запись: дубль и id удалённой точки
    row.found_points = [a.id, a.id, 777]
    db.commit()

    view = progress.get_progress(db, game.id, "p1")
    assert view["found_points"] == [a.id]
    assert view["is_completed"] is True

    db.expire_all()
    assert progress._get_row(db, game.id, "p1").found_points == [a.id, a.id, 777]


# --- proximity --------------------------------------------------------------
def test_proximity_boundary_is_inclusive(db, make_game, monkeypatch):
    game, (p,) = make_game([("visible", LAT, LON)], active=True)
    progress.start(db, game.id, "p1", Position(0, 0))

    monkeypatch.setattr(progress, "distance_m", lambda a, b: 5.1)
    assert progress.evaluate_proximity(db, game.id, "p1", Position(LAT, LON)) is None
    assert _found(db, game.id, "p1") == []

    monkeypatch.setattr(progress, "distance_m", lambda a, b: 5.0)
    assert progress.evaluate_proximity(db, game.id, "p1", Position(LAT, LON)) == p.id
    assert _found(db, game.id, "p1") == [p.id]


def test_proximity_with_real_offsets(db, make_game):
    game, (p,) = make_game([("visible", LAT, LON)], active=True)
    progress.start(db, game.id, "p1", Position(0, 0))

    assert progress.evaluate_proximity(db, game.id, "p1", north_of(LAT, LON, 5.1)) is None
    assert progress.evaluate_proximity(db, game.id, "p1", north_of(LAT, LON, 4.9)) == p.id


def test_one_point_per_evaluation_in_listing_order(db, make_game):
    game, (p1, p2) = make_game([
        ("visible", LAT, LON),
        ("visible", LAT + 2 * DEG_PER_M, LON),
    ], active=True)
    progress.start(db, game.id, "p1", Position(LAT, LON))
    here = north_of(LAT, LON, 1)

    assert progress.evaluate_proximity(db, game.id, "p1", here) == p1.id
    assert _found(db, game.id, "p1") == [p1.id]

    assert progress.evaluate_proximity(db, game.id, "p1", here) == p2.id
    assert _found(db, game.id, "p1") == [p1.id, p2.id]

    assert progress.evaluate_proximity(db, game.id, "p1", here) is None


def test_proximity_ignores_inactive_points(db, make_game):
    game, (vis, seq) = make_game([("visible", LAT, LON), ("sequential", LAT, LON)])
    points.update_point(db, vis.id, {"is_active": False})
    progress.start(db, game.id, "p1", Position(LAT, LON))
    assert progress.evaluate_proximity(db, game.id, "p1", Position(LAT, LON)) is None


def test_report_and_evaluate_skips_inactive_game(db, make_game):
    game, (p,) = make_game([("visible", LAT, LON)])
    progress.start(db, game.id, "p1", Position(0, 0))

    out = progress.report_and_evaluate(db, game.id, "p1", Position(LAT, LON))
    assert out == {"found_point_id": None, "found_count": 0, "is_completed": False}
    assert progress.get_progress(db, game.id, "p1")["current_position"] == {"latitude": LAT, "longitude": LON}

    games.activate_game(db, game.id)
    out = progress.report_and_evaluate(db, game.id, "p1", Position(LAT, LON))
    assert out == {"found_point_id": p.id, "found_count": 1, "is_completed": True}


# --- scenarios --------------------------------------------------------------
def test_first_visible_point_is_credited_at_start_position(db):
    game = games.create_game(db, judge_id="j1", name="A")
    created = [
        points.create_point(db, game_id=game.id, type="visible", latitude=LAT + i * 0.001, longitude=LON)
        for i in range(3)
    ]
    games.activate_game(db, game.id)
    start_pos = Position(created[0].latitude, created[0].longitude)

    progress.start(db, game.id, "p1", start_pos)
    assert progress.evaluate_proximity(db, game.id, "p1", start_pos) == created[0].id

    view = progress.get_progress(db, game.id, "p1")
    assert view["found_points"] == [created[0].id]
    assert view["is_completed"] is False


def test_chain_unlock_is_shared_between_players(db, make_game):
    game, (x, y) = make_game([("sequential", LAT, LON), ("sequential", LAT + 0.01, LON)])
    points.update_chain(db, x.id, y.id)
    games.activate_game(db, game.id)
    assert [p.id for p in progress.visible_points(db, game.id, "p2")] == [x.id]

    progress.start(db, game.id, "p1", Position(LAT, LON))
    progress.start(db, game.id, "p2", Position(0, 0))
    assert progress.evaluate_proximity(db, game.id, "p1", Position(LAT, LON)) == x.id
    assert points.get_point(db, y.id).is_active is True

    # второй игрок видит Y, хотя сам X не находил
    assert [p.id for p in progress.visible_points(db, game.id, "p2")] == [x.id, y.id]
    assert progress.evaluate_proximity(db, game.id, "p2", Position(y.latitude, y.longitude)) == y.id


# --- visibility / summaries / live -----------------------------------------
def test_visible_points_rule(db, make_game):
    game, (vis, s1, s2) = make_game([
        ("visible", LAT, LON),
        ("sequential", LAT + 0.001, LON),
        ("sequential", LAT + 0.002, LON),
    ])
    assert progress.visible_points(db, game.id, "p1") == []

    games.activate_game(db, game.id)  # s1: голова (ссылок нет, первая)
    assert [p.id for p in progress.visible_points(db, game.id, "p1")] == [vis.id, s1.id]

    # найденная, но снова выключенная точка остаётся видна нашедшему
    progress.start(db, game.id, "p1", Position(LAT, LON))
    progress.mark_found(db, game.id, "p1", s1.id)
    points.set_start_sequential(db, game.id, s2.id)
    assert [p.id for p in progress.visible_points(db, game.id, "p1")] == [vis.id, s1.id, s2.id]
    assert [p.id for p in progress.visible_points(db, game.id, "p2")] == [vis.id, s2.id]


def test_summaries_enrich_and_recompute(db, make_game):
    game, (a, b) = make_game([("visible", LAT, LON), ("visible", LAT + 0.01, LON)], active=True)
    games.admin_update_meta(db, "test-admin-key", game.id, {"title": "Кремль", "area": {"city": "Москва"}})
    progress.start(db, game.id, "p1", Position(LAT, LON))
    progress.mark_found(db, game.id, "p1", a.id)

    (summary,) = progress.get_summaries(db, "p1")
    assert summary["found_count"] == 1
    assert summary["total_points"] == 2
    assert summary["is_completed"] is False
    assert summary["game_title"] == "Кремль"
    assert summary["game_area"]["city"] == "Москва"

    # строка без флага, но все точки найдены: считается пройденной
    row = progress._get_row(db, game.id, "p1")
    row.found_points = [a.id, b.id]
    db.commit()
    assert progress.get_summaries(db, "p1")[0]["is_completed"] is True
    assert progress.get_summaries(db, "nobody") == []


def test_live_snapshot_requires_key(db, make_game):
    game, (p,) = make_game([("visible", LAT, LON)], active=True)
    progress.start(db, game.id, "p1", Position(LAT, LON))

    with pytest.raises(Forbidden):
        progress.admin_live_snapshot(db, "wrong", game.id)

    snap = progress.admin_live_snapshot(db, "test-admin-key", game.id)
    assert snap["points"] == [
        {"id": p.id, "latitude": LAT, "longitude": LON, "type": "visible", "is_active": True}
    ]
    assert snap["players"] == [{"player_id": "p1", "latitude": LAT, "longitude": LON}]


def test_proximity_ignores_points_of_another_game(db, make_game):
    game, _ = make_game([("visible", LAT + 1, LON)], active=True)
    _, (foreign,) = make_game([("visible", LAT, LON)], name="other", active=True)
    progress.start(db, game.id, "p1", Position(LAT, LON))

    assert progress.evaluate_proximity(db, game.id, "p1", Position(LAT, LON), points=[foreign]) is None
    assert _found(db, game.id, "p1") == []
