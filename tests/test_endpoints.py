"""Tests for SealBox API endpoints."""

from datetime import datetime, timezone
from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient

from bundler.archive.identities import generate_keypair
from bundler.main import app
from bundler.migration import MigrationWorker
from bundler.repositories.group_repository import GroupRepository
from bundler.service_locator import set_migration_worker

EXPIRES = "2030-01-01T12:00:00+02:00"


@pytest.fixture
def migration_worker():
    worker = Mock(spec=MigrationWorker)
    set_migration_worker(worker)
    yield worker
    set_migration_worker(None)


@pytest.fixture
def client(test_db, storage, migration_worker):
    """Create FastAPI test client."""
    with TestClient(app) as test_client:
        yield test_client


def _register(client, username):
    response = client.post('/auth/register', json={'username': username, 'password': 'password123'})
    assert response.status_code == 201
    data = response.json()
    return {'Authorization': f"Bearer {data['api_key']}"}, data['user_id']


def _group_with_files(client, headers, files):
    response = client.post('/groups', headers=headers)
    assert response.status_code == 201
    group_id = response.json()['file_group_id']
    for name, content in files:
        response = client.post(f'/groups/{group_id}/files', headers=headers, files={'file': (name, content)})
        assert response.status_code == 201
    return group_id


def _bundle_body(group_id, **overrides):
    body = {'file_group_id': group_id, 'expired_at': EXPIRES, 'passcode': 'zip-pass-123'}
    body.update(overrides)
    return body


def test_health_endpoint(client):
    response = client.get('/health')
    assert response.status_code == 200
    assert response.json()['status'] == 'healthy'
    assert 'X-Request-ID' in response.headers


class TestAuthEndpoints:
    def test_duplicate_register(self, client):
        _register(client, 'alice')
        response = client.post('/auth/register', json={'username': 'alice', 'password': 'x'})
        assert response.status_code == 400
        assert response.json()['code'] == 'USER_ALREADY_EXISTS'

    def test_login(self, client):
        _, user_id = _register(client, 'alice')
        response = client.post('/auth/login', json={'username': 'alice', 'password': 'password123'})
        assert response.status_code == 200
        body = response.json()
        assert body['api_key'].startswith('sbx_')
        assert body['user_id'] == user_id
        assert datetime.fromisoformat(body['expires_at'].replace('Z', '+00:00')) > datetime.now(timezone.utc)

        response = client.post('/auth/login', json={'username': 'alice', 'password': 'nope'})
        assert response.status_code == 401
        assert response.json()['code'] == 'INVALID_CREDENTIALS'

    @pytest.mark.parametrize("headers", [{}, {'Authorization': 'sbx_raw'}, {'Authorization': 'Bearer sbx_unknown'}])
    def test_missing_or_bad_api_key(self, client, headers):
        response = client.post('/groups', headers=headers)
        assert response.status_code == 401
        assert response.json()['code'] == 'INVALID_API_KEY'


class TestKeyEndpoints:
    def test_register_and_lookup(self, client):
        headers, user_id = _register(client, 'alice')
        _, public_key = generate_keypair()

        response = client.put('/keys', headers=headers, json={'public_key': public_key})
        assert response.status_code == 200

        response = client.get(f'/keys/{user_id}', headers=headers)
        assert response.status_code == 200
        assert response.json()['public_key'] == public_key

    def test_unknown_and_invalid_key(self, client):
        headers, _ = _register(client, 'alice')

        response = client.get('/keys/nobody', headers=headers)
        assert response.status_code == 404
        assert response.json()['code'] == 'KEY_NOT_FOUND'

        response = client.put('/keys', headers=headers, json={'public_key': 'garbage'})
        assert response.status_code == 400
        assert response.json()['code'] == 'BAD_REQUEST'


class TestBundleEndpoint:
    def test_bundle_success(self, client, migration_worker):
        headers, _ = _register(client, 'alice')
        group_id = _group_with_files(client, headers, [('a.txt', b'AAA'), ('b.txt', b'BBB')])

        response = client.post('/groups/bundle', headers=headers, json=_bundle_body(group_id))

        assert response.status_code == 201
        data = response.json()
        assert set(data) == {'expired_at', 'download_url'}
        assert datetime.fromisoformat(data['expired_at']) == datetime.fromisoformat(EXPIRES)
        assert data['download_url'].startswith('https://sb.test/d/')
        migration_worker.dispatch.assert_called_once()

    def test_second_bundle_conflicts(self, client):
        headers, _ = _register(client, 'alice')
        group_id = _group_with_files(client, headers, [('a.txt', b'AAA')])
        assert client.post('/groups/bundle', headers=headers, json=_bundle_body(group_id)).status_code == 201

        response = client.post('/groups/bundle', headers=headers, json=_bundle_body(group_id))
        assert response.status_code == 409
        assert response.json()['code'] == 'INVALID_GROUP'

    def test_upload_after_bundle_conflicts(self, client):
        headers, _ = _register(client, 'alice')
        group_id = _group_with_files(client, headers, [('a.txt', b'AAA')])
        client.post('/groups/bundle', headers=headers, json=_bundle_body(group_id))

        response = client.post(f'/groups/{group_id}/files', headers=headers, files={'file': ('late.txt', b'L')})
        assert response.status_code == 409
        assert response.json()['code'] == 'INVALID_GROUP'

    def test_other_users_group_conflicts(self, client):
        alice_headers, _ = _register(client, 'alice')
        bob_headers, _ = _register(client, 'bob')
        group_id = _group_with_files(client, alice_headers, [('a.txt', b'AAA')])

        response = client.post('/groups/bundle', headers=bob_headers, json=_bundle_body(group_id))
        assert response.status_code == 409

    def test_empty_group(self, client):
        headers, _ = _register(client, 'alice')
        group_id = _group_with_files(client, headers, [])

        response = client.post('/groups/bundle', headers=headers, json=_bundle_body(group_id))
        assert response.status_code == 400
        assert response.json()['code'] == 'EMPTY_GROUP'

    @pytest.mark.parametrize("overrides", [
        {'passcode': '12345'},
        {'passcode': 'x' * 101},
        {'download_password': 'short'},
        {'expired_at': '2030-01-01T12:00:00'},
        {'expired_at': 'tomorrow'},
    ])
    def test_request_validation(self, client, overrides):
        headers, _ = _register(client, 'alice')
        group_id = _group_with_files(client, headers, [('a.txt', b'AAA')])

        response = client.post('/groups/bundle', headers=headers, json=_bundle_body(group_id, **overrides))
        assert response.status_code == 400
        assert response.json()['code'] == 'BAD_REQUEST'
        assert GroupRepository.get_by_id(group_id).bundled_at is None

    def test_bundle_for_recipients(self, client):
        alice_headers, alice_id = _register(client, 'alice')
        bob_headers, bob_id = _register(client, 'bob')
        for headers in (alice_headers, bob_headers):
            client.put('/keys', headers=headers, json={'public_key': generate_keypair()[1]})
        group_id = _group_with_files(client, alice_headers, [('a.txt', b'AAA')])

        response = client.post(
            '/groups/bundle',
            headers=alice_headers,
            json=_bundle_body(group_id, user_ids=[bob_id], download_password='pin-123456'),
        )

        assert response.status_code == 201
        group = GroupRepository.get_by_id(group_id)
        assert group.file_key.endswith('.zip.sealed')
        assert set(group.shared_to_user_ids) == {alice_id, bob_id}

    def test_remint_when_link_exists(self, client):
        headers, _ = _register(client, 'alice')
        group_id = _group_with_files(client, headers, [('a.txt', b'AAA')])
        client.post('/groups/bundle', headers=headers, json=_bundle_body(group_id))

        response = client.post(f'/groups/{group_id}/links', headers=headers, json={})
        assert response.status_code == 409
        assert response.json()['code'] == 'LINK_EXISTS'
