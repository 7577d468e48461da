def test_index(client):
    res = client.get('/')
    assert res.status_code == 200
    assert 'message' in res.get_json()


def test_health_counts_rooms(flask_app, client):
    assert client.get('/health').get_json() == {'status': 'ok', 'rooms': 0}
    flask_app.extensions['rps_party'].sessions.create_room('sid-h', 'Host')
    assert client.get('/health').get_json()['rooms'] == 1


def test_room_lookup_for_deep_link(flask_app, client):
    sessions = flask_app.extensions['rps_party'].sessions
    room, host = sessions.create_room('sid-h', 'Host')
    sessions.join_room('sid-a', room.code, 'Alice')

    res = client.get(f'/api/rooms/{room.code.lower()}')
    assert res.status_code == 200
    data = res.get_json()
    assert data['room_code'] == room.code
    assert data['state'] == 'lobby'
    assert data['player_count'] == 2
    assert data['joinable'] is True
    assert data['join_url'] == f'http://party.test/?room={room.code}'


def test_room_lookup_after_rotation(flask_app, client):
    svc = flask_app.extensions['rps_party']
    room, host = svc.sessions.create_room('sid-h', 'Host')
    old_code = room.code
    svc.engine.rotate_code(room, host)
    assert client.get(f'/api/rooms/{old_code}').status_code == 404
    assert client.get(f'/api/rooms/{room.code}').status_code == 200


def test_unknown_room_is_404(client):
    res = client.get('/api/rooms/NOPE')
    assert res.status_code == 404
    assert res.get_json() == {'error': 'Room not found'}
