"""Tests for the HTTP API."""

import io
import json

import pytest

from grantha_library.api import create_app
from grantha_library.config import LibraryConfig
from grantha_library.store import new_id


@pytest.fixture
def app(store):
    app = create_app(LibraryConfig(), store)
    app.config['TESTING'] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def services(app):
    """Returns the services the application runs on."""
    return app.extensions['grantha_library']


def create(client, path, payload):
    """Posts a payload and returns the created resource."""
    response = client.post(path, json=payload)
    assert response.status_code == 201, response.get_json()
    return response.get_json()


@pytest.fixture
def grantha_json(client):
    return create(client, '/api/granthas', {
        'title': 'भगवद्गीता',
        'titleEnglish': 'Bhagavad Gita',
        'author': 'व्यासः',
        'status': 'published',
        'availableCommentaries': [
            {'name': 'Bhashya', 'order': 1}, {'name': 'Tika', 'order': 2},
        ],
    })


@pytest.fixture
def verse_json(client, grantha_json):
    return create(client, '/api/verses', {
        'granthaId': grantha_json['_id'],
        'chapterNumber': 1,
        'verseNumber': 1,
        'verseText': '<p>धर्मक्षेत्रे कुरुक्षेत्रे</p>',
    })


class TestHealthAndErrors:
    """Tests for the health route and error translation."""

    def test_health(self, client):
        response = client.get('/')
        assert response.status_code == 200
        body = response.get_json()
        assert body['message'] == 'Sanskrit Library API is running!'
        assert body['database'] in ('Connected', 'Disconnected')

    def test_unknown_route(self, client):
        response = client.get('/api/nothing-here')
        assert response.status_code == 404
        assert response.get_json() == {'error': 'Route not found'}

    def test_unknown_grantha(self, client):
        response = client.get(f"/api/granthas/{new_id()}")
        assert response.status_code == 404
        assert 'not found' in response.get_json()['error']

    def test_malformed_id_is_not_found(self, client):
        assert client.get('/api/verses/xyz').status_code == 404

    def test_missing_fields(self, client):
        response = client.post('/api/granthas', json={'author': 'Anon'})
        assert response.status_code == 400
        assert response.get_json()['required'] == ['title']

    def test_non_object_body(self, client):
        response = client.post('/api/commentaries', data='[1, 2]',
                               content_type='application/json')
        assert response.status_code == 400


class TestGranthaRoutes:
    """Tests for /api/granthas."""

    def test_list_published(self, client, grantha_json):
        create(client, '/api/granthas', {'title': 'Draft'})
        body = client.get('/api/granthas?page=1&limit=5').get_json()
        assert [g['_id'] for g in body['granthas']] == [grantha_json['_id']]
        assert body['totalCount'] == 1
        assert body['totalPages'] == 1

    def test_admin_list_includes_drafts(self, client, grantha_json):
        create(client, '/api/granthas', {'title': 'Draft'})
        body = client.get('/api/admin/granthas').get_json()
        assert len(body) == 2

    def test_unicode_is_not_escaped(self, client, grantha_json):
        response = client.get(f"/api/granthas/{grantha_json['_id']}")
        assert 'भगवद्गीता'.encode('utf-8') in response.data

    def test_update(self, client, grantha_json):
        response = client.put(f"/api/granthas/{grantha_json['_id']}",
                              json={'description': 'Song of the Lord'})
        assert response.status_code == 200
        assert response.get_json()['description'] == 'Song of the Lord'

    def test_delete(self, client, grantha_json, verse_json):
        create(client, '/api/commentaries', {
            'verseId': verse_json['_id'], 'commentaryName': 'Bhashya',
        })
        response = client.delete(f"/api/granthas/{grantha_json['_id']}")
        assert response.get_json() == {
            'message': 'Grantha deleted successfully',
            'deletedVerses': 1,
            'deletedCommentaries': 1,
        }
        assert client.get(f"/api/verses/{verse_json['_id']}").status_code == 404

    def test_export_download(self, client, grantha_json, verse_json):
        response = client.get(f"/api/granthas/{grantha_json['_id']}/export")
        assert response.status_code == 200
        disposition = response.headers['Content-Disposition']
        assert disposition.startswith('attachment')
        assert 'Bhagavad Gita_export.json' in disposition
        assert response.get_json()['statistics']['totalVerses'] == 1

    def test_export_non_ascii_name(self, client):
        grantha = create(client, '/api/granthas', {'title': 'गीता'})
        response = client.get(f"/api/granthas/{grantha['_id']}/export")
        disposition = response.headers['Content-Disposition']
        assert "filename*=UTF-8''" in disposition
        assert 'grantha_export.json' in disposition

    def test_import_upload(self, client, grantha_json, verse_json):
        data = client.get(f"/api/granthas/{grantha_json['_id']}/export").get_json()
        data['grantha']['title'] = 'गीता (copy)'
        upload = io.BytesIO(json.dumps(data, ensure_ascii=False).encode('utf-8'))
        response = client.post(
            '/api/granthas/import',
            data={'granthaFile': (upload, 'gita.json')},
            content_type='multipart/form-data',
        )
        assert response.status_code == 201
        body = response.get_json()
        assert body['statistics']['versesCreated'] == 1
        assert body['grantha']['title'] == 'गीता (copy)'

    def test_import_rejects_bad_uploads(self, client):
        assert client.post('/api/granthas/import', data={},
                           content_type='multipart/form-data').status_code == 400
        response = client.post(
            '/api/granthas/import',
            data={'granthaFile': (io.BytesIO(b'{}'), 'notes.txt', 'text/plain')},
            content_type='multipart/form-data',
        )
        assert response.status_code == 400
        assert response.get_json()['error'] == 'Only JSON files are allowed'

    def test_import_reports_schema_details(self, client):
        payload = json.dumps({'grantha': {'title': 'x'}, 'verses': [{}]}).encode()
        response = client.post(
            '/api/granthas/import',
            data={'granthaFile': (io.BytesIO(payload), 'bad.json')},
            content_type='multipart/form-data',
        )
        assert response.status_code == 400
        assert response.get_json()['details']


class TestVerseAndCommentaryRoutes:
    """Tests for /api/verses and /api/commentaries."""

    def test_verse_listing_order(self, client, grantha_json, verse_json):
        for number in (10, 2):
            create(client, '/api/verses', {
                'granthaId': grantha_json['_id'], 'chapterNumber': 1,
                'verseNumber': number,
            })
        verses = client.get(f"/api/verses/grantha/{grantha_json['_id']}").get_json()
        assert [v['verseNumber'] for v in verses] == [1, 2, 10]

    def test_verse_update_and_delete(self, client, verse_json):
        path = f"/api/verses/{verse_json['_id']}"
        updated = client.put(path, json={'verseText': 'new'}).get_json()
        assert updated['verseText'] == 'new'
        body = client.delete(path).get_json()
        assert body['deletedCommentaries'] == 0

    def test_commentary_tree(self, client, verse_json):
        root = create(client, '/api/commentaries', {
            'verseId': verse_json['_id'], 'commentaryName': 'Bhashya',
        })
        child = create(client, '/api/commentaries', {
            'verseId': verse_json['_id'], 'commentaryName': 'Tika',
            'parentCommentaryId': root['_id'], 'level': 9,
        })
        assert child['level'] == 1

        forest = client.get(f"/api/commentaries/verse/{verse_json['_id']}").get_json()
        assert forest[0]['_id'] == root['_id']
        assert forest[0]['subCommentaries'][0]['_id'] == child['_id']

        detail = client.get(f"/api/commentaries/{child['_id']}").get_json()
        assert detail['parentCommentary']['_id'] == root['_id']

        flat = client.get(
            f"/api/commentaries/grantha/{verse_json['granthaId']}"
        ).get_json()
        assert [c['level'] for c in flat] == [0, 1]

        response = client.delete(f"/api/commentaries/{root['_id']}")
        assert response.get_json()['deletedCount'] == 2

    def test_commentary_cycle_is_rejected(self, client, verse_json):
        root = create(client, '/api/commentaries', {
            'verseId': verse_json['_id'], 'commentaryName': 'Bhashya',
        })
        child = create(client, '/api/commentaries', {
            'verseId': verse_json['_id'], 'commentaryName': 'Tika',
            'parentCommentaryId': root['_id'],
        })
        response = client.put(f"/api/commentaries/{root['_id']}",
                              json={'parentCommentaryId': child['_id']})
        assert response.status_code == 400

    def test_undeclared_commentary_is_rejected(self, client, verse_json):
        response = client.post('/api/commentaries', json={
            'verseId': verse_json['_id'], 'commentaryName': 'Undeclared',
        })
        assert response.status_code == 400
        assert 'Undeclared' in response.get_json()['error']

    def test_invalid_client_level_is_ignored(self, client, verse_json):
        root = create(client, '/api/commentaries', {
            'verseId': verse_json['_id'], 'commentaryName': 'Bhashya',
            'level': 'abc',
        })
        assert root['level'] == 0

    def test_timestamps_match_between_create_and_read(self, client, verse_json):
        root = create(client, '/api/commentaries', {
            'verseId': verse_json['_id'], 'commentaryName': 'Bhashya',
        })
        fetched = client.get(f"/api/commentaries/{root['_id']}").get_json()
        assert fetched['createdAt'] == root['createdAt']
        assert root['createdAt'].endswith('+00:00')


class TestSuggestionSearchAndAdminRoutes:
    """Tests for suggestions, search and admin login."""

    def test_suggestion_flow(self, client, grantha_json, verse_json):
        response = client.post('/api/suggestions', json={
            'granthaId': grantha_json['_id'],
            'verseId': verse_json['_id'],
            'suggestionType': 'moolam',
            'originalText': 'a',
            'suggestedText': 'b',
        })
        assert response.status_code == 201
        body = response.get_json()
        assert body['success'] is True
        suggestion_id = body['suggestion']['_id']

        pending = client.get('/api/suggestions/pending').get_json()
        assert [s['_id'] for s in pending] == [suggestion_id]

        approved = client.put(f"/api/suggestions/{suggestion_id}/approve")
        assert approved.get_json()['status'] == 'approved'
        again = client.put(f"/api/suggestions/{suggestion_id}/reject")
        assert again.status_code == 400
        assert client.get('/api/suggestions/pending').get_json() == []

    def test_search(self, client, grantha_json, verse_json):
        assert client.get('/api/search/advanced?q=a').get_json() == {'results': []}
        results = client.get('/api/search/advanced?q=gita').get_json()['results']
        assert results[0]['id'] == grantha_json['_id']

    def test_login(self, client, services):
        services.admins.create_admin('editor', 's3cret')
        ok = client.post('/api/admin/login',
                         json={'username': 'editor', 'password': 's3cret'})
        assert ok.status_code == 200
        assert ok.get_json()['success'] is True
        assert ok.get_json()['username'] == 'editor'

        bad = client.post('/api/admin/login',
                          json={'username': 'editor', 'password': 'nope'})
        assert bad.status_code == 401
        assert client.post('/api/admin/login', json={}).status_code == 400
