from datetime import date, timedelta
from restaurant_pos import get_db
from restaurant_pos.constants.permissions import Capability
from test_utils_seed import ensure_admin, ensure_staff, ensure_meal, customer_with_card, place_order, auth_headers

TODAY = date.today().isoformat()


def test_staff_meal_activity_reports(client):
    get_db().rollback()
    ensure_admin('report_admin')
    admin = auth_headers(client, 'report_admin')
    ensure_staff('report_chef', [Capability.MEAL_MANAGEMENT])
    chef = auth_headers(client, 'report_chef')
    meal = client.post('/api/meals', json={'meal_name': 'Report Risotto', 'price': 1800, 'cost_to_make': 600}, headers=chef).get_json()
    client.put(f"/api/meals/{meal['meal_id']}", json={'price': 1900}, headers=chef)
    created = client.get(f'/api/admin/reports/staff-meals-created?start_date={TODAY}&end_date={TODAY}', headers=admin)
    assert created.status_code == 200
    rows = [r for r in created.get_json()['data'] if r['meal_id'] == meal['meal_id']]
    assert len(rows) == 1
    assert rows[0]['activity_type'] == 'CREATED'
    assert rows[0]['first_name'] == 'Report_Chef'
    updated = client.get('/api/admin/reports/staff-meals-updated', headers=admin).get_json()
    upd = [r for r in updated['data'] if r['meal_id'] == meal['meal_id']]
    assert upd[0]['changes']['price'] == {'before': 1800, 'after': 1900}
    chef_id = rows[0]['staff_id']
    filtered = client.get(f'/api/admin/reports/staff-meals-created?staff_id={chef_id}', headers=admin).get_json()
    assert {r['staff_id'] for r in filtered['data']} == {chef_id}
    past = (date.today() - timedelta(days=400)).isoformat()
    none = client.get(f'/api/admin/reports/staff-meals-created?start_date={past}&end_date={past}', headers=admin).get_json()
    assert none['count'] == 0


def test_meal_sales_excludes_refunds(client):
    get_db().rollback()
    ensure_admin('report_admin')
    admin = auth_headers(client, 'report_admin')
    meal = ensure_meal('Report Paella', price=2500)
    _, pm, cust = customer_with_card(client, 'report_buyer')
    kept = place_order(client, cust, meal, pm, quantity=2).get_json()
    refunded = place_order(client, cust, meal, pm, quantity=5).get_json()
    assert client.put(f"/api/orders/{refunded['order_id']}/status", json={'order_status': 3}, headers=admin).status_code == 200
    body = client.get('/api/admin/reports/meal-sales', headers=admin).get_json()
    row = [r for r in body['data'] if r['meal_id'] == meal.meal_id][0]
    assert row['total_quantity_sold'] == 2
    assert row['total_revenue'] == 5000
    assert row['average_price'] == 2500
    assert kept['order_status'] == 0


def test_admin_reports_need_admin(client):
    get_db().rollback()
    ensure_staff('report_staff', range(6))
    resp = client.get('/api/admin/reports/meal-sales', headers=auth_headers(client, 'report_staff'))
    assert resp.status_code == 403
    assert resp.get_json()['error']['kind'] == 'Forbidden'


def test_revenue_report(client):
    get_db().rollback()
    ensure_staff('report_analyst', [Capability.REPORTS])
    analyst = auth_headers(client, 'report_analyst')
    meal = ensure_meal('Report Gyro', price=900)
    _, pm, cust = customer_with_card(client, 'report_gyro_fan')
    place_order(client, cust, meal, pm, quantity=3)
    resp = client.post('/api/staff/reports/revenue', json={'meal_id': meal.meal_id}, headers=analyst)
    assert resp.status_code == 200
    body = resp.get_json()
    assert body['filters']['limit'] == 500
    assert body['data'] == [{'order_date': TODAY, 'meal_id': meal.meal_id, 'meal_name': 'Report Gyro', 'units_sold': 3, 'revenue_cents': 2700}]
    assert body['totals'] == {'units_sold': 3, 'revenue_cents': 2700}
    capped = client.post('/api/staff/reports/revenue', json={'limit': 99999}, headers=analyst).get_json()
    assert capped['filters']['limit'] == 5000
    bad = client.post('/api/staff/reports/revenue', json={'start_date': '2025-03-01', 'end_date': '2025-02-01'}, headers=analyst)
    assert bad.status_code == 400
    assert client.post('/api/staff/reports/revenue', json={'limit': 'many'}, headers=analyst).status_code == 400


def test_revenue_report_needs_reports_capability(client):
    get_db().rollback()
    ensure_staff('report_cook', [Capability.MEAL_MANAGEMENT])
    resp = client.post('/api/staff/reports/revenue', json={}, headers=auth_headers(client, 'report_cook'))
    assert resp.status_code == 403
    assert resp.get_json()['error']['kind'] == 'InsufficientPermission'
