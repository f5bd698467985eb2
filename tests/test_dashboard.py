from decimal import Decimal

import pytest

from buildtrack.services.storage import storage

from conftest import create_client_record, create_project_record, make_user


@pytest.fixture()
def owner(ctx):
    return make_user('owner@example.com')


def add_project(user_id, status='active'):
    client = storage.create_client(user_id, {'name': 'Client'})
    return storage.create_project({'client_id': client.id, 'name': 'Project', 'status': status})


def test_stats_for_new_user_are_zero(owner):
    assert storage.get_project_stats(owner.id) == {
        'activeProjects': 0,
        'pendingReceipts': 0,
        'totalRevenue': 0.0,
        'changeOrders': 0,
    }


def test_stats_count_only_matching_rows(owner):
    active = add_project(owner.id)
    add_project(owner.id, status='planning')

    storage.create_contract({'project_id': active.id, 'title': 'Main', 'status': 'approved',
                             'total_amount': Decimal('1200.50')})
    storage.create_contract({'project_id': active.id, 'title': 'Extra', 'status': 'approved',
                             'is_change_order': True, 'total_amount': Decimal('300')})
    storage.create_contract({'project_id': active.id, 'title': 'Draft', 'status': 'draft',
                             'total_amount': Decimal('999')})

    storage.create_receipt({'project_id': active.id, 'file_name': 'a.png', 'file_path': '/tmp/a.png'})
    storage.create_receipt({'project_id': active.id, 'file_name': 'b.png', 'file_path': '/tmp/b.png',
                            'status': 'approved'})
    # Unassigned receipts do not count towards anyone's pending total
    storage.create_receipt({'file_name': 'c.png', 'file_path': '/tmp/c.png'})

    stats = storage.get_project_stats(owner.id)

    assert stats['activeProjects'] == 1
    assert stats['pendingReceipts'] == 1
    assert stats['totalRevenue'] == pytest.approx(1500.50)
    assert stats['changeOrders'] == 1


def test_stats_are_scoped_to_the_user(owner):
    stranger = make_user('stranger@example.com')
    project = add_project(stranger.id)
    storage.create_contract({'project_id': project.id, 'title': 'Theirs', 'status': 'approved',
                             'total_amount': Decimal('5000')})

    assert storage.get_project_stats(owner.id)['totalRevenue'] == 0.0
    assert storage.get_project_stats(stranger.id)['activeProjects'] == 1


def test_stats_endpoint(auth_client):
    client = create_client_record(auth_client)
    create_project_record(auth_client, client['id'], status='active')

    response = auth_client.get('/api/dashboard/stats')

    assert response.status_code == 200
    assert response.get_json() == {
        'activeProjects': 1,
        'pendingReceipts': 0,
        'totalRevenue': 0.0,
        'changeOrders': 0,
    }
