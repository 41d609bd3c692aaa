from datetime import date, timedelta
from restaurant_pos import get_db
from restaurant_pos.constants.permissions import Capability
from restaurant_pos.models.audit import AuditLog
from restaurant_pos.models.meal import Meal
from restaurant_pos.models.stock import Stock
from sqlalchemy import select
from test_utils_seed import ensure_staff, ensure_meal, customer_with_card, place_order, auth_headers


def _chef(client):
    ensure_staff('meal_chef', [Capability.MEAL_MANAGEMENT])
    return auth_headers(client, 'meal_chef')


def test_create_meal_with_stock_and_categories(client):
    get_db().rollback()
    headers = _chef(client)
    resp = client.post('/api/meals', json={
        'meal_name': 'Tofu Bowl', 'price': 1150, 'cost_to_make': 300,
        'meal_types': ['Vegan', 'Lunch', 'Vegan'],
        'nutrition_facts': {'calories': 420},
        'stock': {'quantity_in_stock': 25, 'reorder_threshold': 5, 'stock_fulfillment_time': 1},
    }, headers=headers)
    assert resp.status_code == 201, resp.get_json()
    body = resp.get_json()
    assert body['meal_types'] == ['Lunch', 'Vegan']
    assert body['meal_status'] == Meal.STATUS_ACTIVE
    stock = get_db().get(Stock, body['stock_id'])
    assert stock.quantity_in_stock == 25
    assert stock.needs_reorder is False
    log = get_db().execute(select(AuditLog).where(AuditLog.action == 'MEAL.CREATE', AuditLog.entity_id == str(body['meal_id']))).scalar_one()
    assert log.meta['price'] == 1150


def test_create_meal_validation(client):
    get_db().rollback()
    headers = _chef(client)
    assert client.post('/api/meals', json={'price': 100}, headers=headers).status_code == 400
    assert client.post('/api/meals', json={'meal_name': 'Bad', 'price': 'ten'}, headers=headers).status_code == 400
    assert client.post('/api/meals', json={'meal_name': 'Bad', 'price': 10.5}, headers=headers).status_code == 400
    assert client.post('/api/meals', json={'meal_name': 'Bad', 'price': 100, 'meal_status': 4}, headers=headers).status_code == 400
    window = {'meal_name': 'Bad', 'price': 100, 'start_date': '2025-05-10', 'end_date': '2025-05-01'}
    assert client.post('/api/meals', json=window, headers=headers).status_code == 400


def test_update_meal_records_changes(client):
    get_db().rollback()
    headers = _chef(client)
    meal = ensure_meal('Update Curry', price=1000)
    resp = client.put(f'/api/meals/{meal.meal_id}', json={'price': 1250, 'meal_types': ['Spicy']}, headers=headers)
    assert resp.status_code == 200
    assert resp.get_json()['price'] == 1250
    assert resp.get_json()['meal_types'] == ['Spicy']
    log = get_db().execute(
        select(AuditLog).where(AuditLog.action == 'MEAL.UPDATE', AuditLog.entity_id == str(meal.meal_id))
    ).scalars().first()
    assert log.meta['changes']['price'] == {'before': 1000, 'after': 1250}
    assert client.put('/api/meals/987654', json={'price': 1}, headers=headers).status_code == 404


def test_list_meals_filters(client):
    get_db().rollback()
    headers = _chef(client)
    ensure_meal('Filter Waffle', status=Meal.STATUS_INACTIVE)
    page = client.get('/api/meals?meal_name=filter waffle&meal_status=0', headers=headers).get_json()
    assert [m['meal_name'] for m in page['data']] == ['Filter Waffle']
    assert client.get('/api/meals?meal_status=9', headers=headers).status_code == 400


def test_delete_meal_blocked_by_order_history(client):
    get_db().rollback()
    headers = _chef(client)
    sold = ensure_meal('Sold Lasagna')
    _, pm, cust_headers = customer_with_card(client, 'meal_history_buyer')
    assert place_order(client, cust_headers, sold, pm).status_code == 201
    resp = client.delete(f'/api/meals/{sold.meal_id}', headers=headers)
    assert resp.status_code == 409
    unsold = ensure_meal('Unsold Soup')
    assert client.delete(f'/api/meals/{unsold.meal_id}', headers=headers).status_code == 200
    assert get_db().get(Meal, unsold.meal_id) is None


def test_meal_endpoints_need_meal_management(client):
    get_db().rollback()
    ensure_staff('meal_outsider', [Capability.STOCK_CONTROL])
    headers = auth_headers(client, 'meal_outsider')
    resp = client.post('/api/meals', json={'meal_name': 'Nope', 'price': 1}, headers=headers)
    assert resp.status_code == 403
    assert resp.get_json()['error']['kind'] == 'InsufficientPermission'


def test_public_menu_hides_inactive_and_out_of_window(client):
    session = get_db()
    session.rollback()
    ensure_meal('Menu Pancakes', categories=['Breakfast'])
    ensure_meal('Menu Hidden', status=Meal.STATUS_INACTIVE)
    expired = ensure_meal('Menu Expired')
    expired.end_date = date.today() - timedelta(days=1)
    sold_out = ensure_meal('Menu Sold Out', quantity=0, reorder_threshold=0)
    session.commit()
    resp = client.get('/api/meals/menu')
    assert resp.status_code == 200
    names = {m['meal_name']: m for m in resp.get_json()['data']}
    assert 'Menu Pancakes' in names
    assert 'Menu Hidden' not in names
    assert 'Menu Expired' not in names
    assert names['Menu Sold Out']['in_stock'] is False
    assert names['Menu Pancakes']['meal_types'] == ['Breakfast']
    breakfast = client.get('/api/meals/menu?category=Breakfast').get_json()['data']
    assert {m['meal_name'] for m in breakfast} >= {'Menu Pancakes'}
    assert sold_out.meal_id in {m['meal_id'] for m in resp.get_json()['data']}


def test_menu_etag_conditional(client):
    get_db().rollback()
    ensure_meal('Etag Burger')
    first = client.get('/api/meals/menu')
    etag = first.headers.get('ETag')
    assert etag
    second = client.get('/api/meals/menu', headers={'If-None-Match': etag})
    assert second.status_code == 304
    changed = client.get('/api/meals/menu', headers={'If-None-Match': 'stale'})
    assert changed.status_code == 200
