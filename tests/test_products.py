import pytest

from buildtrack.errors import ValidationError
from buildtrack.services.storage import storage

from conftest import make_user


@pytest.fixture()
def owner(ctx):
    return make_user('catalogue@example.com')


def test_sku_prefix_comes_from_category(owner):
    first = storage.create_product(owner.id, {'name': '2x4 stud', 'category': 'Lumber'})
    second = storage.create_product(owner.id, {'name': '2x6 stud', 'category': 'lumber'})
    other = storage.create_product(owner.id, {'name': 'Wood glue', 'category': 'Adhesives & Glue'})

    assert first.sku == 'LUM-0001'
    assert second.sku == 'LUM-0002'
    assert other.sku == 'ADH-0001'


def test_sku_without_category(owner):
    product = storage.create_product(owner.id, {'name': 'Misc'})

    assert product.sku == 'GEN-0001'
    assert storage.generate_next_sku(owner.id, '  ') == 'GEN-0002'


def test_sku_skips_numbers_taken_by_other_users(owner):
    stranger = make_user('stranger@example.com')
    storage.create_product(stranger.id, {'name': 'Their stud', 'category': 'Lumber'})

    product = storage.create_product(owner.id, {'name': 'My stud', 'category': 'Lumber'})

    assert product.sku == 'LUM-0002'


def test_explicit_sku_is_kept_and_unique(owner):
    storage.create_product(owner.id, {'name': 'Hinge', 'sku': 'HW-77'})

    with pytest.raises(ValidationError) as excinfo:
        storage.create_product(owner.id, {'name': 'Other hinge', 'sku': 'HW-77'})
    assert excinfo.value.message == 'SKU already exists'


def test_similar_products_rank_substring_matches_first(owner):
    for name in ('Deck screw 3in', 'Deck screws', 'Drywall screw', 'Paint roller', 'deck'):
        storage.create_product(owner.id, {'name': name, 'category': 'Hardware'})

    names = [product.name for product in storage.find_similar_products(owner.id, 'Deck screw')]

    assert names[:3] == ['Deck screws', 'Deck screw 3in', 'deck']
    assert 'Paint roller' not in names


def test_similar_products_are_limited_and_scoped(owner):
    stranger = make_user('stranger@example.com')
    storage.create_product(stranger.id, {'name': 'Anchor bolt'})
    for index in range(12):
        storage.create_product(owner.id, {'name': f'Anchor bolt {index}'})

    matches = storage.find_similar_products(owner.id, 'anchor bolt')

    assert len(matches) == 10
    assert all(product.user_id == owner.id for product in matches)
    assert storage.find_similar_products(owner.id, '   ') == []


def test_products_api(auth_client):
    created = auth_client.post('/api/products', json={
        'name': 'Joist hanger', 'category': 'Hardware', 'unitPrice': '1.89',
    })
    assert created.status_code == 201
    product = created.get_json()
    assert product['sku'] == 'HAR-0001'
    assert product['unit'] == 'each'
    assert product['unitPrice'] == '1.89'

    similar = auth_client.get('/api/products/similar/joist%20hanger').get_json()
    assert [item['id'] for item in similar] == [product['id']]

    updated = auth_client.put(f"/api/products/{product['id']}", json={'unitPrice': '2.05'}).get_json()
    assert updated['unitPrice'] == '2.05'
    assert updated['sku'] == 'HAR-0001'

    assert [item['id'] for item in auth_client.get('/api/products').get_json()] == [product['id']]
    assert auth_client.delete(f"/api/products/{product['id']}").status_code == 200
    assert auth_client.get('/api/products').get_json() == []


def test_products_are_private(auth_client, other_client):
    product = auth_client.post('/api/products', json={'name': 'Flashing'}).get_json()

    assert other_client.get('/api/products').get_json() == []
    assert other_client.get(f"/api/products/{product['id']}").status_code == 403
    assert other_client.get('/api/products/similar/Flashing').get_json() == []
