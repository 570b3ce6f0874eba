import pytest

from geoquest import games, points, progress
from geoquest.errors import Conflict, Forbidden, ValidationFailed
from geoquest.geo import Position

KEY = "test-admin-key"
LAT, LON = 59.9398, 30.3146


def _chain(db, game_id, ids):
    for cur, nxt in zip(ids, ids[1:]):
        points.update_chain(db, cur, nxt)


def test_create_game_defaults(db):
    game = games.create_game(db, judge_id="j1", name="Эрмитаж")
    assert game.review_status == "draft"
    assert game.is_active is False
    assert game.published is False
    assert game.min_points == 3
    assert game.area is None
    assert game.display_title == "Эрмитаж"


def test_create_game_requires_judge_and_name(db):
    with pytest.raises(ValidationFailed):
        games.create_game(db, judge_id="j1", name="  ")
    with pytest.raises(ValidationFailed):
        games.create_game(db, judge_id="", name="x")


def test_activate_picks_chain_head_not_first_point(db, make_game):
    # порядок создания Z, Y, X; цепочка X -> Y -> Z
    game, (z, y, x) = make_game([
        ("sequential", LAT + 0.003, LON),
        ("sequential", LAT + 0.002, LON),
        ("sequential", LAT + 0.001, LON),
    ])
    _chain(db, game.id, [x.id, y.id, z.id])

    games.activate_game(db, game.id)

    active = [p.id for p in points.list_points(db, game.id) if p.is_active]
    assert active == [x.id]
    assert games.get_game(db, game.id).is_active is True


def test_activate_cyclic_chain_falls_back_to_first_sequential(db, make_game):
    game, (vis, a, b) = make_game([
        ("visible", LAT, LON),
        ("sequential", LAT + 0.001, LON),
        ("sequential", LAT + 0.002, LON),
    ])
    _chain(db, game.id, [a.id, b.id, a.id])

    games.activate_game(db, game.id)

    states = {p.id: p.is_active for p in points.list_points(db, game.id)}
    assert states == {vis.id: True, a.id: True, b.id: False}


def test_activate_keeps_already_active_sequential(db, make_game):
    game, (a, b) = make_game([("sequential", LAT, LON), ("sequential", LAT + 0.001, LON)])
    _chain(db, game.id, [a.id, b.id])
    points.activate_point(db, b.id)

    games.activate_game(db, game.id)

    states = {p.id: p.is_active for p in points.list_points(db, game.id)}
    assert states == {a.id: False, b.id: True}


def test_deactivate_leaves_point_flags(db, make_game):
    game, (a,) = make_game([("sequential", LAT, LON)], active=True)
    games.deactivate_game(db, game.id)
    assert games.get_game(db, game.id).is_active is False
    assert points.get_point(db, a.id).is_active is True


def test_activate_missing_game_is_noop(db):
    assert games.activate_game(db, 12345) is None
    assert games.deactivate_game(db, 12345) is None


def test_submit_for_review_only_moves_draft(db):
    game = games.create_game(db, judge_id="j1", name="g")
    assert games.submit_for_review(db, game.id).review_status == "in_review"
    # повторная отправка ничего не ломает
    assert games.submit_for_review(db, game.id).review_status == "in_review"

    games.set_review_status(db, KEY, game.id, "approved")
    with pytest.raises(Conflict):
        games.submit_for_review(db, game.id)
    assert games.get_game(db, game.id).review_status == "approved"


def test_set_review_status_requires_key_and_known_status(db):
    game = games.create_game(db, judge_id="j1", name="g")
    with pytest.raises(Forbidden):
        games.set_review_status(db, "nope", game.id, "approved")
    with pytest.raises(ValidationFailed):
        games.set_review_status(db, KEY, game.id, "published")
    assert games.get_game(db, game.id).review_status == "draft"

    # админ может вернуть одобренную игру в черновик
    games.set_review_status(db, KEY, game.id, "approved")
    assert games.set_review_status(db, KEY, game.id, "draft").review_status == "draft"


def test_list_published_requires_published_and_approved(db):
    shown = games.create_game(
        db, judge_id="j1", name="shown", title="Витрина", description="d",
        area={"city": "СПб"},
    )
    only_published = games.create_game(db, judge_id="j1", name="only-published")
    only_approved = games.create_game(db, judge_id="j1", name="only-approved")

    games.set_review_status(db, KEY, shown.id, "approved")
    games.set_published(db, KEY, shown.id, True)
    games.set_published(db, KEY, only_published.id, True)
    games.set_review_status(db, KEY, only_approved.id, "approved")

    listed = games.list_published(db)
    assert listed == [{
        "id": shown.id,
        "title": "Витрина",
        "description": "d",
        "area": {"country": None, "region": None, "city": "СПб"},
        "is_active": False,
    }]


def test_admin_list_games_by_status(db):
    a = games.create_game(db, judge_id="j1", name="a")
    b = games.create_game(db, judge_id="j1", name="b")
    games.submit_for_review(db, b.id)

    assert [g.id for g in games.admin_list_games(db, KEY, "in_review")] == [b.id]
    assert [g.id for g in games.admin_list_games(db, KEY)] == [a.id, b.id]
    with pytest.raises(Forbidden):
        games.admin_list_games(db, "")


def test_admin_update_meta_merges_area_and_activates(db, make_game):
    game, (seq,) = make_game([("sequential", LAT, LON)])
    games.admin_update_meta(db, KEY, game.id, {"area": {"country": "RU", "city": "Москва"}})
    out = games.admin_update_meta(db, KEY, game.id, {"title": "Новое", "area": {"city": "СПб"}, "is_active": True})

    assert out.title == "Новое"
    assert out.area == {"country": "RU", "region": None, "city": "СПб"}
    assert out.is_active is True
    assert points.get_point(db, seq.id).is_active is True
    assert games.admin_update_meta(db, KEY, 9999, {"title": "x"}) is None


def test_active_game_lookups(db):
    a = games.create_game(db, judge_id="j1", name="a")
    b = games.create_game(db, judge_id="j2", name="b")
    assert games.get_any_active_game(db) is None

    games.activate_game(db, b.id)
    assert games.get_active_game(db, "j1") is None
    assert games.get_active_game(db, "j2").id == b.id
    assert games.get_any_active_game(db).id == b.id
    assert [g.id for g in games.list_judge_games(db, "j1")] == [a.id]


def test_delete_game_cascades_points_but_keeps_progress(db, make_game):
    game, (p,) = make_game([("visible", LAT, LON)], active=True)
    game_id, point_id = game.id, p.id
    progress.start(db, game_id, "p1", Position(LAT, LON))

    assert games.delete_game(db, game_id) is True
    assert games.get_game(db, game_id) is None
    assert points.get_point(db, point_id) is None
    assert points.count_points(db, game_id) == 0
    # строка прогресса осталась, но сводки её не показывают
    assert len(progress.list_player_progress(db, "p1")) == 1
    assert progress.get_summaries(db, "p1") == []
    assert games.delete_game(db, game_id) is False
