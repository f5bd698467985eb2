import io
import json

import pytest

from buildtrack.app import create_app
from buildtrack.models import db
from buildtrack.services.storage import storage

ACME_REPLY = json.dumps({
    "vendor": "Acme",
    "date": "2024-03-01",
    "total": 45.50,
    "lineItems": [
        {"description": "Bolt", "quantity": 2, "unitPrice": 1.25, "totalPrice": 2.50},
    ],
})

# Smallest byte strings the upload checks accept for each type
PNG_BYTES = b'\x89PNG\r\n\x1a\n' + b'\x00' * 64
PDF_BYTES = b'%PDF-1.4\n%fake receipt\n'


class FakeExtractor:
    """Stands in for the OpenAI extractor; returns a canned reply or raises."""

    def __init__(self, reply=ACME_REPLY, error=None):
        self.reply = reply
        self.error = error
        self.calls = []

    def extract(self, encoded_content, mime_type):
        self.calls.append({'content': encoded_content, 'mime_type': mime_type})
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture()
def extractor():
    return FakeExtractor()


@pytest.fixture()
def app(tmp_path, extractor):
    # File-backed SQLite so the background parse thread sees the same data
    app = create_app('testing', extractor=extractor, config_overrides={
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'buildtrack-test.db'}",
        'RECEIPT_UPLOAD_FOLDER': str(tmp_path / 'uploads'),
    })
    yield app
    app.extensions['receipt_parse_runner'].shutdown()
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def ctx(app):
    with app.app_context():
        yield


@pytest.fixture()
def client(app):
    return app.test_client()


def register(client, email='owner@example.com', password='correct-horse'):
    response = client.post('/api/auth/register', json={
        'email': email,
        'password': password,
        'firstName': 'Pat',
        'lastName': 'Builder',
    })
    assert response.status_code == 201, response.get_json()
    return response.get_json()['user']


@pytest.fixture()
def auth_client(app):
    client = app.test_client()
    client.user = register(client)
    return client


@pytest.fixture()
def other_client(app):
    client = app.test_client()
    client.user = register(client, email='someone-else@example.com')
    return client


def create_client_record(http, name='Jane Homeowner'):
    response = http.post('/api/clients', json={'name': name, 'email': 'jane@example.com'})
    assert response.status_code == 201, response.get_json()
    return response.get_json()


def create_project_record(http, client_id, **overrides):
    body = {'clientId': client_id, 'name': 'Kitchen remodel', 'status': 'active'}
    body.update(overrides)
    response = http.post('/api/projects', json=body)
    assert response.status_code == 201, response.get_json()
    return response.get_json()


def create_contract_record(http, project_id, **overrides):
    body = {'projectId': project_id, 'title': 'Cabinet install'}
    body.update(overrides)
    response = http.post('/api/contracts', json=body)
    assert response.status_code == 201, response.get_json()
    return response.get_json()


def upload(http, data=PNG_BYTES, filename='receipt.png', content_type='image/png', **form):
    form['receipt'] = (io.BytesIO(data), filename, content_type)
    return http.post('/api/receipts/upload', data=form, content_type='multipart/form-data')


def make_user(email='direct@example.com'):
    return storage.create_user(email, 'correct-horse')
