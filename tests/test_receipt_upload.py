import os

import pytest

from conftest import (
    PDF_BYTES, create_client_record, create_contract_record, create_project_record, upload,
)


def uploaded_files(app):
    folder = app.config['RECEIPT_UPLOAD_FOLDER']
    return os.listdir(folder) if os.path.isdir(folder) else []


def test_upload_creates_pending_receipt_and_parses_in_background(app, auth_client):
    response = upload(auth_client)

    assert response.status_code == 201
    body = response.get_json()
    assert body['status'] == 'pending'
    assert body['projectId'] is None
    assert body['fileName'] == 'receipt.png'
    assert body['filePath'].startswith(app.config['RECEIPT_UPLOAD_FOLDER'])
    assert body['filePath'].endswith('.png')
    assert os.path.exists(body['filePath'])

    task = app.extensions['receipt_parse_runner'].wait(body['parseTaskId'], timeout=10)
    assert task['status'] == 'succeeded'

    receipt = auth_client.get(f"/api/receipts/{body['id']}").get_json()
    assert receipt['aiParsed'] is True
    assert receipt['vendor'] == 'Acme'
    assert receipt['totalAmount'] == '45.50'

    items = auth_client.get(f"/api/receipts/{body['id']}/line-items").get_json()
    assert [item['totalPrice'] for item in items] == ['2.50']


def test_upload_response_does_not_wait_for_failed_parse(app, auth_client, extractor):
    extractor.error = TimeoutError('extraction timed out')

    response = upload(auth_client, data=PDF_BYTES, filename='scan.pdf', content_type='application/pdf')
    assert response.status_code == 201

    body = response.get_json()
    task = app.extensions['receipt_parse_runner'].wait(body['parseTaskId'], timeout=10)
    assert task['status'] == 'failed'

    receipt = auth_client.get(f"/api/receipts/{body['id']}").get_json()
    assert receipt['aiParsed'] is False
    assert receipt['parsedData'] == {'error': 'AI parsing failed'}
    assert os.path.exists(receipt['filePath'])


def test_upload_with_project_and_contract(app, auth_client):
    client = create_client_record(auth_client)
    project = create_project_record(auth_client, client['id'])
    contract = create_contract_record(auth_client, project['id'])

    response = upload(auth_client, projectId=project['id'], contractId=contract['id'])

    assert response.status_code == 201
    body = response.get_json()
    assert body['projectId'] == project['id']
    assert body['contractId'] == contract['id']
    app.extensions['receipt_parse_runner'].wait(body['parseTaskId'], timeout=10)


@pytest.mark.parametrize('filename, content_type', [
    ('receipt.gif', 'image/gif'),
    ('receipt.exe', 'application/octet-stream'),
    ('receipt.png', 'text/plain'),
    ('receipt', 'image/png'),
])
def test_upload_rejects_unsupported_types(app, auth_client, filename, content_type):
    response = upload(auth_client, filename=filename, content_type=content_type)

    assert response.status_code == 400
    assert response.get_json()['message'] == 'Only images (jpeg, jpg, png) and PDFs are allowed'
    assert auth_client.get('/api/receipts').get_json() == []
    assert uploaded_files(app) == []


def test_upload_rejects_files_over_limit(app, auth_client, extractor):
    oversized = b'\x00' * (app.config['RECEIPT_MAX_BYTES'] + 1)

    response = upload(auth_client, data=oversized)

    assert response.status_code == 400
    assert 'limit' in response.get_json()['message']
    assert auth_client.get('/api/receipts').get_json() == []
    assert uploaded_files(app) == []
    assert extractor.calls == []


def test_upload_over_request_size_is_a_client_error(app, auth_client, extractor):
    oversized = b'\x00' * (app.config['MAX_CONTENT_LENGTH'] + 1)

    response = upload(auth_client, data=oversized)

    assert response.status_code == 413
    assert response.get_json()['code'] == 'PAYLOAD_TOO_LARGE'
    assert auth_client.get('/api/receipts').get_json() == []
    assert uploaded_files(app) == []
    assert extractor.calls == []


def test_upload_with_contract_only_files_under_its_project(app, auth_client, other_client):
    client = create_client_record(auth_client)
    project = create_project_record(auth_client, client['id'])
    contract = create_contract_record(auth_client, project['id'])

    body = upload(auth_client, contractId=contract['id']).get_json()
    app.extensions['receipt_parse_runner'].wait(body['parseTaskId'], timeout=10)

    assert body['projectId'] == project['id']
    assert body['contractId'] == contract['id']
    assert other_client.get('/api/receipts').get_json() == []
    assert other_client.get(f"/api/receipts/{body['id']}").status_code == 403


def test_assigning_contract_on_review_sets_project(app, auth_client):
    client = create_client_record(auth_client)
    project = create_project_record(auth_client, client['id'])
    contract = create_contract_record(auth_client, project['id'])
    body = upload(auth_client).get_json()
    app.extensions['receipt_parse_runner'].wait(body['parseTaskId'], timeout=10)

    response = auth_client.put(f"/api/receipts/{body['id']}", json={'contractId': contract['id']})

    assert response.status_code == 200
    assert response.get_json()['projectId'] == project['id']
    assert response.get_json()['contractId'] == contract['id']


def test_upload_rejects_empty_file(app, auth_client):
    response = upload(auth_client, data=b'')

    assert response.status_code == 400
    assert auth_client.get('/api/receipts').get_json() == []


def test_upload_without_file(auth_client):
    response = auth_client.post('/api/receipts/upload', data={}, content_type='multipart/form-data')

    assert response.status_code == 400
    assert response.get_json()['message'] == 'No file uploaded'


def test_upload_into_someone_elses_project_is_forbidden(app, auth_client, other_client):
    client = create_client_record(other_client)
    project = create_project_record(other_client, client['id'])

    response = upload(auth_client, projectId=project['id'])

    assert response.status_code == 403
    assert uploaded_files(app) == []


def test_upload_requires_login(client):
    response = upload(client)

    assert response.status_code == 401
    assert response.get_json()['code'] == 'UNAUTHORIZED'


def test_reparse_queues_new_task(app, auth_client):
    body = upload(auth_client).get_json()
    runner = app.extensions['receipt_parse_runner']
    runner.wait(body['parseTaskId'], timeout=10)

    response = auth_client.post(f"/api/receipts/{body['id']}/parse")

    assert response.status_code == 202
    task_id = response.get_json()['parseTaskId']
    runner.wait(task_id, timeout=10)

    status = auth_client.get(f'/api/receipts/parse-tasks/{task_id}').get_json()
    assert status['status'] == 'succeeded'
    assert status['receiptId'] == body['id']

    items = auth_client.get(f"/api/receipts/{body['id']}/line-items").get_json()
    assert len(items) == 2


def test_unknown_parse_task(auth_client):
    response = auth_client.get('/api/receipts/parse-tasks/does-not-exist')

    assert response.status_code == 404


def test_upload_rate_limit(tmp_path, extractor):
    from buildtrack.app import create_app
    from conftest import register

    app = create_app('testing', extractor=extractor, config_overrides={
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'limits.db'}",
        'RECEIPT_UPLOAD_FOLDER': str(tmp_path / 'uploads'),
        'RATELIMIT_ENABLED': True,
        'UPLOAD_RATE_LIMIT': '2 per minute',
    })
    try:
        http = app.test_client()
        register(http)

        statuses = [upload(http, data=b'').status_code for _ in range(3)]

        assert statuses == [400, 400, 429]
        limited = upload(http, data=b'')
        assert limited.get_json()['message'] == 'Too many uploads, please try again later'
    finally:
        app.extensions['receipt_parse_runner'].shutdown()


def test_general_api_rate_limit(tmp_path, extractor):
    from buildtrack.app import create_app
    from conftest import register

    app = create_app('testing', extractor=extractor, config_overrides={
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'limits.db'}",
        'RECEIPT_UPLOAD_FOLDER': str(tmp_path / 'uploads'),
        'RATELIMIT_ENABLED': True,
        'RATELIMIT_DEFAULT': '3 per minute',
    })
    try:
        http = app.test_client()
        register(http)

        statuses = [http.get('/api/clients').status_code for _ in range(4)]

        assert statuses == [200, 200, 200, 429]
        limited = http.get('/api/clients')
        assert limited.status_code == 429
        assert limited.get_json() == {
            'error': 'Too Many Requests',
            'message': 'Too many requests, please try again later',
            'code': 'RATE_LIMITED',
        }
        assert http.get('/api/health').status_code in (200, 503)
    finally:
        app.extensions['receipt_parse_runner'].shutdown()
