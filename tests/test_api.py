"""End-to-end tests of the JSON API through the Flask test client."""

import pytest

from novelnest import content, identity


@pytest.fixture
def alice(app, register):
    client = app.test_client()
    register(client, 'Alice')
    return client


@pytest.fixture
def bob(app, register):
    client = app.test_client()
    register(client, 'Bob')
    return client


def _publish(client, payload):
    resp = client.post('/api/novels', json=payload)
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()


class TestNovelEndpoints:
    def test_create_requires_login(self, client, flat_payload):
        resp = client.post('/api/novels', json=flat_payload)
        assert resp.status_code == 401
        assert resp.get_json() == {'error': 'Authentication required'}

    def test_create_and_fetch_flat(self, alice, client, flat_payload):
        created = _publish(alice, flat_payload)
        assert created['hasChapters'] is False
        assert created['content'] == flat_payload['content']
        assert 'chapters' not in created
        assert created['author']['name'] == 'Alice'

        fetched = client.get(f"/api/novels/{created['id']}").get_json()
        for key in ('title', 'synopsis', 'genres', 'content', 'hasChapters'):
            assert fetched[key] == flat_payload[key]
        assert fetched['averageRating'] == 0.0
        assert fetched['ratingCount'] == 0

    def test_create_chaptered_renumbers(self, alice, chaptered_payload):
        chaptered_payload['chapters'][0]['chapterNumber'] = 9
        created = _publish(alice, chaptered_payload)
        assert 'content' not in created
        assert [c['chapterNumber'] for c in created['chapters']] == [1, 2, 3]

    def test_chaptered_without_chapters_is_rejected(self, alice, client, chaptered_payload):
        chaptered_payload['chapters'] = []
        resp = alice.post('/api/novels', json=chaptered_payload)
        assert resp.status_code == 400
        assert 'chapter' in resp.get_json()['error'].lower()
        assert client.get('/api/novels').get_json() == []

    def test_non_json_body(self, alice):
        resp = alice.post('/api/novels', data='title=x', content_type='application/x-www-form-urlencoded')
        assert resp.status_code == 400

    def test_missing_novel(self, client):
        assert client.get('/api/novels/31337').status_code == 404

    def test_non_numeric_id_is_json_404(self, client):
        resp = client.get('/api/novels/abc')
        assert resp.status_code == 404
        assert 'error' in resp.get_json()

    def test_update_by_author(self, alice, flat_payload):
        novel = _publish(alice, flat_payload)
        resp = alice.put(f"/api/novels/{novel['id']}", json={
            'hasChapters': True,
            'chapters': [{'title': 'Part One', 'content': 'Sand.'}],
        })
        assert resp.status_code == 200
        body = resp.get_json()
        assert body['hasChapters'] is True
        assert 'content' not in body
        assert body['chapters'] == [{'title': 'Part One', 'content': 'Sand.', 'chapterNumber': 1}]
        assert body['title'] == flat_payload['title']

    def test_update_by_other_user_is_forbidden(self, alice, bob, flat_payload):
        novel = _publish(alice, flat_payload)
        resp = bob.put(f"/api/novels/{novel['id']}", json={'title': 'Mine now'})
        assert resp.status_code == 403
        after = bob.get(f"/api/novels/{novel['id']}").get_json()
        assert after['title'] == novel['title']
        assert after['updatedAt'] == novel['updatedAt']

    def test_update_validation_error(self, alice, flat_payload):
        novel = _publish(alice, flat_payload)
        resp = alice.put(f"/api/novels/{novel['id']}", json={'title': 'x' * 101})
        assert resp.status_code == 400
        assert resp.get_json()['details'] == {'field': 'title'}

    def test_update_requires_login(self, alice, client, flat_payload):
        novel = _publish(alice, flat_payload)
        assert client.put(f"/api/novels/{novel['id']}", json={'title': 'x'}).status_code == 401

    def test_delete(self, alice, bob, flat_payload):
        novel = _publish(alice, flat_payload)
        assert bob.delete(f"/api/novels/{novel['id']}").status_code == 403
        assert alice.delete(f"/api/novels/{novel['id']}").status_code == 200
        assert alice.get(f"/api/novels/{novel['id']}").status_code == 404
        assert alice.delete(f"/api/novels/{novel['id']}").status_code == 404

    def test_search(self, alice, bob, client, flat_payload, chaptered_payload):
        salt = _publish(alice, flat_payload)
        lanterns = _publish(bob, chaptered_payload)

        everything = client.get('/api/novels').get_json()
        assert [n['id'] for n in everything] == [lanterns['id'], salt['id']]
        assert 'content' not in everything[1]
        assert everything[0]['chapterCount'] == 3

        assert [n['id'] for n in client.get('/api/novels?q=DESERT').get_json()] == [salt['id']]
        assert [n['id'] for n in client.get('/api/novels?q=bob').get_json()] == [lanterns['id']]
        by_genre = client.get('/api/novels?genre=mystery,horror').get_json()
        assert [n['id'] for n in by_genre] == [lanterns['id']]
        both = client.get('/api/novels?genre=Mystery&genre=Adventure').get_json()
        assert len(both) == 2

    def test_my_works(self, alice, bob, flat_payload, chaptered_payload):
        mine = _publish(alice, flat_payload)
        _publish(bob, chaptered_payload)
        works = alice.get('/api/my-works').get_json()
        assert [n['id'] for n in works] == [mine['id']]

    def test_genres(self, client):
        genres = client.get('/api/genres').get_json()
        assert 'Fantasy' in genres
        assert len(genres) == len(set(genres))


class TestChapterEndpoints:
    def test_fetch_chapter(self, alice, client, chaptered_payload):
        novel = _publish(alice, chaptered_payload)
        resp = client.get(f"/api/novels/{novel['id']}/chapters/2")
        assert resp.status_code == 200
        assert resp.get_json() == {
            'title': 'The Flicker',
            'content': 'On Corven Street the flame shrank.',
            'chapterNumber': 2,
        }

    def test_fetch_out_of_range(self, alice, client, chaptered_payload):
        novel = _publish(alice, chaptered_payload)
        assert client.get(f"/api/novels/{novel['id']}/chapters/4").status_code == 404
        assert client.get(f"/api/novels/{novel['id']}/chapters/0").status_code == 404

    def test_fetch_from_flat_novel(self, alice, client, flat_payload):
        novel = _publish(alice, flat_payload)
        assert client.get(f"/api/novels/{novel['id']}/chapters/1").status_code == 404

    def test_add_and_remove(self, alice, bob, chaptered_payload):
        novel = _publish(alice, chaptered_payload)
        url = f"/api/novels/{novel['id']}/chapters"

        assert bob.post(url, json={'title': 'X', 'content': 'y'}).status_code == 403

        resp = alice.post(url, json={'title': 'Prologue', 'content': 'Before.', 'position': 1})
        assert resp.status_code == 201
        chapters = resp.get_json()['chapters']
        assert [(c['chapterNumber'], c['title']) for c in chapters][:2] == [(1, 'Prologue'), (2, 'First Light')]

        resp = alice.delete(f'{url}/3')
        assert resp.status_code == 200
        assert [c['chapterNumber'] for c in resp.get_json()['chapters']] == [1, 2, 3]
        assert [c['title'] for c in resp.get_json()['chapters']] == ['Prologue', 'First Light', 'Embers']

        assert alice.delete(f'{url}/9').status_code == 404


class TestRatingEndpoints:
    def test_rate_and_rerate(self, alice, bob, client, flat_payload):
        novel = _publish(alice, flat_payload)
        url = f"/api/novels/{novel['id']}/rate"

        resp = bob.post(url, json={'rating': 3})
        assert resp.status_code == 200
        assert resp.get_json() == {'average': 3.0, 'count': 1, 'userRating': 3}

        resp = bob.post(url, json={'rating': 5})
        assert resp.get_json() == {'average': 5.0, 'count': 1, 'userRating': 5}

        resp = alice.post(url, json={'rating': 2})
        assert resp.get_json() == {'average': 3.5, 'count': 2, 'userRating': 2}

        stored = client.get(f"/api/novels/{novel['id']}").get_json()
        assert (stored['totalScore'], stored['ratingCount'], stored['averageRating']) == (7, 2, 3.5)

    def test_integral_float_rating_is_accepted(self, alice, bob, flat_payload):
        novel = _publish(alice, flat_payload)
        resp = bob.post(f"/api/novels/{novel['id']}/rate", json={'rating': 4.0})
        assert resp.status_code == 200
        assert resp.get_json() == {'average': 4.0, 'count': 1, 'userRating': 4}

    @pytest.mark.parametrize('body', [{'rating': 0}, {'rating': 6}, {'rating': 2.5}, {'rating': '4'}, {}])
    def test_invalid_rating(self, alice, flat_payload, body):
        novel = _publish(alice, flat_payload)
        resp = alice.post(f"/api/novels/{novel['id']}/rate", json=body)
        assert resp.status_code == 400

    def test_rate_requires_login(self, alice, client, flat_payload):
        novel = _publish(alice, flat_payload)
        assert client.post(f"/api/novels/{novel['id']}/rate", json={'rating': 4}).status_code == 401

    def test_rate_missing_novel(self, alice):
        assert alice.post('/api/novels/999/rate', json={'rating': 4}).status_code == 404

    def test_summary_and_history(self, alice, bob, client, flat_payload):
        novel = _publish(alice, flat_payload)
        bob.post(f"/api/novels/{novel['id']}/rate", json={'rating': 4})

        anonymous = client.get(f"/api/novels/{novel['id']}/rating").get_json()
        assert anonymous == {'average': 4.0, 'count': 1, 'userRating': None}
        assert bob.get(f"/api/novels/{novel['id']}/rating").get_json()['userRating'] == 4

        history = bob.get('/api/profile/ratings').get_json()
        assert history == [{'novelId': novel['id'], 'title': novel['title'], 'rating': 4}]


class TestAuthEndpoints:
    def test_register_logs_in(self, client, register):
        me = register(client, 'Carol', email='Carol@Example.com')
        assert me['email'] == 'carol@example.com'
        assert set(me) == {'id', 'name', 'email'}
        assert client.get('/api/profile').get_json() == me

    def test_register_duplicate_email(self, client, register):
        register(client, 'Carol')
        resp = client.post('/api/register', json={
            'name': 'Other Carol', 'email': 'CAROL@example.com', 'password': 'secret123',
        })
        assert resp.status_code == 400

    def test_register_missing_fields(self, client):
        assert client.post('/api/register', json={'email': 'x@example.com'}).status_code == 400

    def test_login_logout(self, app, register):
        setup = app.test_client()
        register(setup, 'Dana')

        client = app.test_client()
        assert client.get('/api/profile').status_code == 401
        resp = client.post('/api/login', json={'email': 'dana@example.com', 'password': 'wrong-pass'})
        assert resp.status_code == 401
        resp = client.post('/api/login', json={'email': 'DANA@example.com', 'password': 'secret123'})
        assert resp.status_code == 200
        assert resp.get_json()['name'] == 'Dana'
        assert client.get('/api/profile').status_code == 200

        assert client.post('/api/logout').status_code == 200
        assert client.get('/api/profile').status_code == 401

    def test_login_missing_fields(self, client):
        assert client.post('/api/login', json={'email': 'a@example.com'}).status_code == 400

    def test_update_profile(self, alice, bob):
        resp = alice.put('/api/profile', json={'name': 'Alice Liddell'})
        assert resp.status_code == 200
        assert resp.get_json()['name'] == 'Alice Liddell'

        resp = alice.put('/api/profile', json={'email': 'bob@example.com'})
        assert resp.status_code == 400

    def test_profile_email_lost_to_a_concurrent_claim(self, monkeypatch, alice, bob):
        monkeypatch.setattr(identity, '_email_taken', lambda email, exclude_user_id=None: False)
        resp = bob.put('/api/profile', json={'email': 'alice@example.com'})
        assert resp.status_code == 400
        assert resp.get_json()['details'] == {'field': 'email'}
        assert bob.get('/api/profile').get_json()['email'] == 'bob@example.com'

    def test_profile_requires_login(self, client):
        assert client.put('/api/profile', json={'name': 'x'}).status_code == 401

    def test_change_password(self, app, alice):
        resp = alice.post('/api/change-password', json={'currentPassword': 'nope', 'newPassword': 'brand-new'})
        assert resp.status_code == 400

        resp = alice.post('/api/change-password',
                          json={'currentPassword': 'secret123', 'newPassword': 'brand-new'})
        assert resp.status_code == 200

        fresh = app.test_client()
        assert fresh.post('/api/login', json={'email': 'alice@example.com',
                                              'password': 'secret123'}).status_code == 401
        assert fresh.post('/api/login', json={'email': 'alice@example.com',
                                              'password': 'brand-new'}).status_code == 200

    def test_change_password_requires_login(self, client):
        resp = client.post('/api/change-password', json={'currentPassword': 'a', 'newPassword': 'b'})
        assert resp.status_code == 401


class TestErrorBoundary:
    def test_unexpected_error_is_generic_500(self, client, monkeypatch, caplog):
        def explode(novel_id):
            raise RuntimeError('connection string postgres://secret@db leaked')

        monkeypatch.setattr(content, 'get_novel', explode)
        with caplog.at_level('ERROR', logger='novelnest.errors'):
            resp = client.get('/api/novels/1')
        assert resp.status_code == 500
        assert resp.get_json() == {'error': 'Internal server error'}
        assert 'secret' not in resp.get_data(as_text=True)
        assert 'GET /api/novels/1' in caplog.text

    def test_unknown_api_route(self, client):
        resp = client.get('/api/nowhere')
        assert resp.status_code == 404
        assert 'error' in resp.get_json()
