def _create(client, player_key='player-1'):
    res = client.post('/api/games/create', json={'player_key': player_key})
    assert res.status_code == 201
    return res.get_json()


def test_create_game(seeded_client):
    data = _create(seeded_client)
    assert len(data['game_code']) == 6
    assert data['phase'] == 'playing'
    assert data['round']['number'] == 1
    assert data['time_left'] == 60
    assert data['max_score'] == 30000
    # coordinates stay hidden while the round is open
    assert 'correct_position' not in data['round']
    assert 'lat' not in data['round']['dish']


def test_create_requires_player_key(seeded_client):
    assert seeded_client.post('/api/games/create', json={}).status_code == 400
    assert seeded_client.post('/api/games/create', json={'player_key': '   '}).status_code == 400
    assert seeded_client.post('/api/games/create', json={'player_key': 'x' * 65}).status_code == 400


def test_create_without_dishes_is_unavailable(client, flask_app):
    res = client.post('/api/games/create', json={'player_key': 'player-1'})
    assert res.status_code == 503
    assert res.get_json()['state']['phase'] == 'no_content'
    assert len(flask_app.extensions['foodguess_games']) == 0


def test_state_lookup(seeded_client):
    code = _create(seeded_client)['game_code']
    assert seeded_client.get(f'/api/games/{code}/state').status_code == 200
    assert seeded_client.get(f'/api/games/{code.lower()}/state').status_code == 200
    assert seeded_client.get('/api/games/NOPE00/state').status_code == 404


def test_guess_is_clamped_to_valid_coordinates(seeded_client):
    code = _create(seeded_client)['game_code']
    res = seeded_client.post(f'/api/games/{code}/guess', json={'lat': 95, 'lng': 190})
    assert res.status_code == 200
    assert res.get_json()['round']['guess'] == {'lat': 90.0, 'lng': -170.0}


def test_guess_needs_numbers(seeded_client):
    code = _create(seeded_client)['game_code']
    assert seeded_client.post(f'/api/games/{code}/guess', json={'lat': 'north'}).status_code == 400
    assert seeded_client.post(f'/api/games/{code}/guess', json={}).status_code == 400
    assert seeded_client.post(f'/api/games/{code}/submit', json={'lat': 'x', 'lng': 1}).status_code == 400


def test_submit_then_skip(seeded_client):
    code = _create(seeded_client)['game_code']
    res = seeded_client.post(f'/api/games/{code}/submit', json={'lat': 10, 'lng': 10})
    assert res.status_code == 200
    state = res.get_json()
    assert state['phase'] == 'result_showing'
    assert state['round']['guess'] == {'lat': 10.0, 'lng': 10.0}
    assert state['round']['score'] >= 50
    assert 'correct_position' in state['round']

    # a second submit for the same round is refused
    assert seeded_client.post(f'/api/games/{code}/submit').status_code == 409

    res = seeded_client.post(f'/api/games/{code}/skip')
    assert res.status_code == 200
    assert res.get_json()['round']['number'] == 2
    res = seeded_client.post(f'/api/games/{code}/skip')
    assert res.status_code == 409
    assert res.get_json()['state']['phase'] == 'playing'


def test_submit_without_guess_scores_zero(seeded_client):
    code = _create(seeded_client)['game_code']
    state = seeded_client.post(f'/api/games/{code}/submit').get_json()
    assert state['round']['guess'] is None
    assert state['round']['score'] == 0


def test_pause_and_resume(seeded_client, scheduler):
    code = _create(seeded_client)['game_code']
    scheduler.advance(20)
    res = seeded_client.post(f'/api/games/{code}/pause')
    assert res.status_code == 200
    assert res.get_json()['paused'] is True
    assert res.get_json()['time_left'] == 40
    assert seeded_client.post(f'/api/games/{code}/pause').status_code == 409
    assert seeded_client.post(f'/api/games/{code}/guess', json={'lat': 1, 'lng': 1}).status_code == 409

    scheduler.advance(100)
    res = seeded_client.post(f'/api/games/{code}/resume')
    assert res.status_code == 200
    assert res.get_json()['time_left'] == 40
    assert res.get_json()['phase'] == 'playing'


def test_round_closes_when_the_timer_runs_out(seeded_client, scheduler):
    code = _create(seeded_client)['game_code']
    scheduler.advance(59)
    assert seeded_client.get(f'/api/games/{code}/state').get_json()['time_left'] == 1
    scheduler.advance(1)
    state = seeded_client.get(f'/api/games/{code}/state').get_json()
    assert state['phase'] == 'result_showing'
    assert state['round']['score'] == 0
    # dwell, countdown, then the next round starts on its own
    scheduler.advance(8)
    state = seeded_client.get(f'/api/games/{code}/state').get_json()
    assert state['phase'] == 'playing'
    assert state['round']['number'] == 2


def test_full_game_is_recorded(seeded_client):
    code = _create(seeded_client)['game_code']
    for _ in range(6):
        assert seeded_client.post(f'/api/games/{code}/submit', json={'lat': 0, 'lng': 0}).status_code == 200
        res = seeded_client.post(f'/api/games/{code}/skip')
        assert res.status_code == 200
    state = res.get_json()
    assert state['phase'] == 'final_score'
    summary = state['summary']
    assert summary['rounds_played'] == 6
    assert len(set(summary['dish_ids_played'])) == 6
    assert summary['finished_at'] is not None

    stats = seeded_client.get('/api/dishes/stats').get_json()
    assert stats['totalDishes'] == 7
    assert stats['totalCountries'] == 7
    assert stats['totalGames'] == 1
    assert stats['averageScore'] == summary['total_score']

    session = seeded_client.get('/api/sessions/player-1').get_json()
    assert session['gamesCompleted'] == 1
    assert session['recentDishIds'] == summary['dish_ids_played']

    res = seeded_client.post(f'/api/games/{code}/play-again')
    assert res.status_code == 200
    again = res.get_json()
    assert again['phase'] == 'playing'
    assert again['summary']['rounds_played'] == 0


def test_play_again_only_after_the_game(seeded_client):
    code = _create(seeded_client)['game_code']
    assert seeded_client.post(f'/api/games/{code}/play-again').status_code == 409


def test_quit_discards_the_game(seeded_client):
    code = _create(seeded_client)['game_code']
    assert seeded_client.post(f'/api/games/{code}/quit').status_code == 200
    assert seeded_client.get(f'/api/games/{code}/state').status_code == 404
    assert seeded_client.post(f'/api/games/{code}/quit').status_code == 404


def test_session_stats_and_reset(seeded_client):
    assert seeded_client.get('/api/sessions/nobody').status_code == 404
    assert seeded_client.delete('/api/sessions/nobody').status_code == 404

    _create(seeded_client, 'player-9')
    stats = seeded_client.get('/api/sessions/player-9').get_json()
    assert stats['dishesUsed'] == 1
    assert stats['lastPlayedAt'] is not None

    assert seeded_client.delete('/api/sessions/player-9').status_code == 200
    stats = seeded_client.get('/api/sessions/player-9').get_json()
    assert stats['dishesUsed'] == 0
    assert stats['gamesCompleted'] == 0


def test_list_dishes(seeded_client):
    res = seeded_client.get('/api/dishes')
    assert res.status_code == 200
    body = res.get_json()
    assert body['success'] is True
    names = [d['name'] for d in body['data']]
    assert names == sorted(names)
    assert len(names) == 7
    pad_thai = next(d for d in body['data'] if d['name'] == 'Pad Thai')
    assert len(pad_thai['images']) == 3


def test_list_dishes_filters(seeded_client):
    res = seeded_client.get('/api/dishes?country=thailand')
    assert [d['name'] for d in res.get_json()['data']] == ['Pad Thai']
    assert seeded_client.get('/api/dishes?country=Atlantis').status_code == 404
    res = seeded_client.get('/api/dishes?random=true&count=3')
    assert len(res.get_json()['data']) == 3
    assert seeded_client.get('/api/dishes?difficulty=hard').status_code == 400


def test_index(client):
    res = client.get('/')
    assert res.status_code == 200


def test_untouched_game_is_dropped_before_it_plays_itself_out(seeded_client, seeded_app, scheduler):
    code = _create(seeded_client)['game_code']
    scheduler.advance(6 * 68 + 10)
    assert len(seeded_app.extensions['foodguess_games']) == 0
    assert seeded_client.get(f'/api/games/{code}/state').status_code == 404
    # no result is recorded and only the rounds actually started were used up
    assert seeded_client.get('/api/dishes/stats').get_json()['totalGames'] == 0
    assert seeded_client.get('/api/sessions/player-1').get_json()['dishesUsed'] == 2


def test_activity_keeps_a_game_alive(seeded_client, scheduler):
    code = _create(seeded_client)['game_code']
    scheduler.advance(100)
    assert seeded_client.get(f'/api/games/{code}/state').status_code == 200
    scheduler.advance(100)
    assert seeded_client.get(f'/api/games/{code}/state').status_code == 200


def test_finished_game_is_released_after_the_final_screen(seeded_client, scheduler):
    code = _create(seeded_client)['game_code']
    for _ in range(6):
        seeded_client.post(f'/api/games/{code}/submit')
        seeded_client.post(f'/api/games/{code}/skip')
    scheduler.advance(19)
    assert seeded_client.get(f'/api/games/{code}/state').get_json()['phase'] == 'final_score'
    scheduler.advance(20)
    assert seeded_client.get(f'/api/games/{code}/state').status_code == 404
    assert seeded_client.get('/api/dishes/stats').get_json()['totalGames'] == 1


def test_play_again_during_the_final_screen_keeps_the_game(seeded_client, scheduler):
    code = _create(seeded_client)['game_code']
    for _ in range(6):
        seeded_client.post(f'/api/games/{code}/submit')
        seeded_client.post(f'/api/games/{code}/skip')
    scheduler.advance(10)
    assert seeded_client.post(f'/api/games/{code}/play-again').status_code == 200
    scheduler.advance(30)
    assert seeded_client.get(f'/api/games/{code}/state').get_json()['phase'] == 'playing'
