from delve.dungeon import catalog_ids, get_catalog
from delve.routes import dungeon_api

SMALL = {"width": 20, "height": 20, "max_room_size": 6}


def test_generate_returns_layout_and_stores_it(client, clear_layout_cache):
    resp = client.post('/api/dungeon/generate', json=dict(SMALL, seed=42))
    assert resp.status_code == 201
    body = resp.get_json()
    assert body['seed'] == 42
    assert body['layout']['levels'][0]['rooms']
    fetched = client.get(f"/api/dungeon/{body['id']}")
    assert fetched.status_code == 200
    stored = fetched.get_json()
    assert stored['id'] == body['id']
    assert stored['layout'] == body['layout']
    assert stored['params']['width'] == 20


def test_text_seed_is_hashed_deterministically(client, clear_layout_cache):
    a = client.post('/api/dungeon/generate', json=dict(SMALL, seed='forest')).get_json()
    b = client.post('/api/dungeon/generate', json=dict(SMALL, seed='forest')).get_json()
    assert a['seed'] == b['seed']
    assert a['layout'] == b['layout']
    assert a['id'] != b['id']


def test_same_params_hit_the_cache(client, clear_layout_cache, monkeypatch):
    monkeypatch.delenv('DUNGEON_DISABLE_CACHE', raising=False)
    client.post('/api/dungeon/generate', json=dict(SMALL, seed=5))
    client.post('/api/dungeon/generate', json=dict(SMALL, seed=5))
    assert len(dungeon_api._layout_cache) == 1


def test_cache_is_bounded(client, clear_layout_cache, test_app, monkeypatch):
    monkeypatch.delenv('DUNGEON_DISABLE_CACHE', raising=False)
    monkeypatch.setitem(test_app.config, 'DUNGEON_LAYOUT_CACHE_MAX', 2)
    for seed in range(4):
        client.post('/api/dungeon/generate', json=dict(SMALL, seed=seed))
    assert len(dungeon_api._layout_cache) == 2


def test_invalid_parameters_return_400(client):
    resp = client.post('/api/dungeon/generate', json={'width': 0})
    assert resp.status_code == 400
    body = resp.get_json()
    assert body['error'] == 'invalid_parameters'
    assert 'grid' in body['message']


def test_non_object_body_returns_400(client):
    resp = client.post('/api/dungeon/generate', json=[1, 2, 3])
    assert resp.status_code == 400
    assert resp.get_json()['error'] == 'invalid_parameters'


def test_exhausted_generation_returns_422(client, clear_layout_cache):
    resp = client.post(
        '/api/dungeon/generate',
        json={'width': 10, 'height': 10, 'min_room_size': 20, 'max_room_size': 25, 'seed': 1},
    )
    assert resp.status_code == 422
    body = resp.get_json()
    assert body['error'] == 'generation_exhausted'
    assert body['params']['min_room_size'] == 20


def test_unknown_layout_is_404(client):
    resp = client.get('/api/dungeon/does-not-exist')
    assert resp.status_code == 404
    assert resp.get_json()['error'] == 'not_found'


def test_catalog_listing(client):
    body = client.get('/api/dungeon/catalogs').get_json()
    ids = [c['id'] for c in body['catalogs']]
    assert 'basic' in ids and 'quad' in ids
    quad = next(c for c in body['catalogs'] if c['id'] == 'quad')
    assert quad == {'id': 'quad', 'tile_size': 2, 'tiles': 4}


def test_inline_catalog_is_registered(client, clear_layout_cache):
    edges = {'north': 'wall', 'east': 'wall', 'south': 'wall', 'west': 'wall'}
    catalog = {
        'id': 'rooms-only',
        'tile_size': 2,
        'tiles': [
            {'name': 'cell', 'pattern': ['##', '##'], 'edges': edges},
            {'name': 'rock', 'pattern': ['..', '..'], 'edges': edges, 'weight': 2},
        ],
    }
    resp = client.post('/api/dungeon/generate', json=dict(SMALL, seed=3, mode='tile', catalog=catalog))
    assert resp.status_code == 201
    used = resp.get_json()['layout']['params']['tile_catalog']
    assert used.startswith('rooms-only-')
    assert used in catalog_ids()
    again = client.post('/api/dungeon/generate', json=dict(SMALL, seed=3, mode='tile', catalog=catalog))
    assert again.get_json()['layout']['params']['tile_catalog'] == used


def test_inline_catalog_cannot_replace_a_builtin(client, clear_layout_cache):
    before = client.post('/api/dungeon/generate', json=dict(SMALL, seed=5, mode='tile')).get_json()['layout']
    edges = {'north': 'wall', 'east': 'wall', 'south': 'wall', 'west': 'wall'}
    impostor = {'id': 'basic', 'tile_size': 2, 'tiles': [{'name': 'rock', 'pattern': ['..', '..'], 'edges': edges}]}
    resp = client.post('/api/dungeon/generate', json=dict(SMALL, seed=5, mode='tile', catalog=impostor))
    assert resp.status_code == 201
    assert resp.get_json()['layout']['params']['tile_catalog'].startswith('basic-')
    assert len(get_catalog('basic').tiles) == 21
    with dungeon_api._layout_cache_lock:
        dungeon_api._layout_cache.clear()
    after = client.post('/api/dungeon/generate', json=dict(SMALL, seed=5, mode='tile')).get_json()['layout']
    assert after == before


def test_malformed_inline_catalog_returns_400(client):
    resp = client.post('/api/dungeon/generate', json=dict(SMALL, catalog={'id': 'broken', 'tiles': []}))
    assert resp.status_code == 400
