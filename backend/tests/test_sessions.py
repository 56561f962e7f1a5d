import json

from foodguess.services.games.sessions import (
    SCHEMA_VERSION,
    InMemorySessionStore,
    SessionRecord,
    SqlSessionStore,
    decode_record,
    encode_record,
)


def test_missing_or_unreadable_payload_gives_defaults():
    for raw in (None, '', 'not json', '[1, 2, 3]', '42', '{"session": "nope"}'):
        record = decode_record(raw)
        assert record == SessionRecord()


def test_damaged_fields_fall_back_one_by_one():
    raw = json.dumps({
        'version': SCHEMA_VERSION,
        'session': {
            'usedDishIds': [1, 2, '3', 'x', None],
            'usedImagesByDish': 'garbage',
            'recentDishIds': [4, 'y', 5],
            'lastCompletedGameDishIds': {'not': 'a list'},
            'gamesCompleted': 'many',
        },
    })
    record = decode_record(raw)
    assert record.used_dish_ids == {1, 2, 3}
    assert record.used_images_by_dish == {}
    assert record.recent_dish_ids == [4, 5]
    assert record.last_completed_game_dish_ids == []
    assert record.games_completed == 0


def test_image_history_drops_bad_keys_and_negative_indices():
    raw = json.dumps({'session': {'usedImagesByDish': {'7': [0, -1, 2], 'abc': [1], '8': []}}})
    record = decode_record(raw)
    assert record.used_images_by_dish == {7: [0, 2]}


def test_unknown_fields_and_other_versions_still_load():
    raw = json.dumps({
        'version': SCHEMA_VERSION + 1,
        'session': {'usedDishIds': [9], 'favouriteColour': 'green'},
        'extra': True,
    })
    assert decode_record(raw).used_dish_ids == {9}


def test_bare_record_without_envelope_is_accepted():
    raw = json.dumps({'usedDishIds': [3], 'recentDishIds': [3]})
    record = decode_record(raw)
    assert record.used_dish_ids == {3}
    assert record.recent_dish_ids == [3]


def test_encode_decode_keeps_usage_order():
    record = SessionRecord(
        used_dish_ids={5, 1},
        used_images_by_dish={5: [2, 0, 1]},
        recent_dish_ids=[1, 5],
        last_completed_game_dish_ids=[1, 5],
        last_played_at=123.0,
        games_completed=2,
    )
    assert decode_record(encode_record(record)) == record


def test_update_is_load_mutate_save():
    store = InMemorySessionStore()
    result = store.update(lambda record: record.used_dish_ids.add(4) or 'done')
    assert result == 'done'
    assert store.load().used_dish_ids == {4}
    assert store.writes == 1


def test_recent_dishes_are_bounded_to_the_last_eighteen():
    store = InMemorySessionStore()
    games = [list(range(g * 6 + 1, g * 6 + 7)) for g in range(4)]
    for game in games:
        store.record_game_completion(game)
    record = store.load()
    assert record.recent_dish_ids == games[1] + games[2] + games[3]
    assert record.last_completed_game_dish_ids == games[3]
    assert record.games_completed == 4
    # every completion is its own durable write
    assert store.writes == 4


def test_reset_used_dishes_keeps_history():
    store = InMemorySessionStore()
    store.update(lambda r: r.used_dish_ids.update({1, 2}))
    store.record_game_completion([1, 2])
    store.reset_used_dishes()
    record = store.load()
    assert record.used_dish_ids == set()
    assert record.recent_dish_ids == [1, 2]


def test_reset_forgets_everything():
    store = InMemorySessionStore()
    store.record_game_completion([1, 2])
    store.reset()
    record = store.load()
    assert record.recent_dish_ids == []
    assert record.games_completed == 0


def test_sql_store_round_trip(flask_app):
    store = SqlSessionStore('player-1')
    assert not store.exists()
    assert store.load() == SessionRecord()

    store.update(lambda r: r.used_dish_ids.add(11))
    assert store.exists()
    assert SqlSessionStore('player-1').load().used_dish_ids == {11}
    assert SqlSessionStore('player-2').load().used_dish_ids == set()


def test_sql_store_survives_corrupt_row(flask_app):
    from foodguess import db
    from foodguess.models import PlayerSession

    db.session.add(PlayerSession(player_key='broken', payload='{not json'))
    db.session.commit()
    store = SqlSessionStore('broken')
    assert store.load() == SessionRecord()
    store.record_game_completion([1, 2, 3])
    assert store.load().recent_dish_ids == [1, 2, 3]
