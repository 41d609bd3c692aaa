from datetime import date, timedelta
from restaurant_pos import get_db
from restaurant_pos.models.audit import AuditLog
from restaurant_pos.models.accounts import UserAccount, Staff
from sqlalchemy import select
from test_utils_seed import ensure_admin, ensure_staff, ensure_customer, auth_headers


def _admin(client):
    ensure_admin('staff_admin')
    return auth_headers(client, 'staff_admin')


def _payload(username, **extra):
    body = {
        'email': f'{username}@example.com', 'username': username, 'password': 'secret123',
        'phone_number': '555-0123', 'hire_date': '2024-03-01', 'salary': 52000,
        'first_name': 'Pat', 'last_name': username.title(),
    }
    body.update(extra)
    return body


def test_create_staff_with_legacy_flags(client):
    get_db().rollback()
    headers = _admin(client)
    resp = client.post('/api/admin/staff', json=_payload('cook_one', stock_perm=True, meal_perm='on'), headers=headers)
    assert resp.status_code == 201, resp.get_json()
    body = resp.get_json()
    assert body['role'] == 'staff'
    assert body['permissions'] == 6
    assert body['permission_flags'] == {
        'reports': False, 'meal_management': True, 'stock_control': True,
        'orders': False, 'seasonal_discounts': False, 'promo_codes': False,
    }
    log = get_db().execute(select(AuditLog).where(AuditLog.action == 'STAFF.CREATE').order_by(AuditLog.id.desc())).scalars().first()
    assert log.entity_id == str(body['staff_id'])
    assert log.permissions_snapshot == 63


def test_create_staff_defaults_to_zero_mask(client):
    get_db().rollback()
    headers = _admin(client)
    body = client.post('/api/admin/staff', json=_payload('dish_washer'), headers=headers).get_json()
    assert body['permissions'] == 0


def test_create_staff_validation(client):
    get_db().rollback()
    headers = _admin(client)
    missing = client.post('/api/admin/staff', json={'username': 'nobody'}, headers=headers)
    assert missing.status_code == 400
    future = (date.today() + timedelta(days=3)).isoformat()
    assert client.post('/api/admin/staff', json=_payload('future_hire', hire_date=future), headers=headers).status_code == 400
    assert client.post('/api/admin/staff', json=_payload('neg_salary', salary=-1), headers=headers).status_code == 400
    client.post('/api/admin/staff', json=_payload('taken_name'), headers=headers)
    clash = client.post('/api/admin/staff', json=_payload('taken_name', email='fresh@example.com'), headers=headers)
    assert clash.status_code == 409


def test_staff_password_must_be_a_string(client):
    get_db().rollback()
    headers = _admin(client)
    numeric = client.post('/api/admin/staff', json=_payload('numeric_cook', password=12345678), headers=headers)
    assert numeric.status_code == 400
    assert 'string' in numeric.get_json()['error']['detail']
    created = client.post('/api/admin/staff', json=_payload('string_cook'), headers=headers).get_json()
    update = client.put(f"/api/admin/staff/{created['user_id']}", json={'password': 87654321}, headers=headers)
    assert update.status_code == 400


def test_list_and_get_staff(client):
    get_db().rollback()
    headers = _admin(client)
    created = client.post('/api/admin/staff', json=_payload('listed_staff'), headers=headers).get_json()
    page = client.get('/api/admin/staff?limit=500', headers=headers).get_json()
    assert page['pagination']['limit'] == 200
    usernames = {row['username'] for row in page['data']}
    assert 'listed_staff' in usernames
    # admins are not listed as staff members
    assert 'staff_admin' not in usernames
    detail = client.get(f"/api/admin/staff/{created['user_id']}", headers=headers).get_json()
    assert detail['created_by_name'] == 'Staff_Admin Staff'
    assert client.get('/api/admin/staff/999999', headers=headers).status_code == 404


def test_update_staff_replaces_mask_only_when_flags_present(client):
    get_db().rollback()
    headers = _admin(client)
    created = client.post('/api/admin/staff', json=_payload('update_me', permissions=5), headers=headers).get_json()
    uid = created['user_id']
    salary_only = client.put(f'/api/admin/staff/{uid}', json={'salary': 60000}, headers=headers).get_json()
    assert salary_only['permissions'] == 5
    assert salary_only['salary'] == 60000
    flags = client.put(f'/api/admin/staff/{uid}', json={'promo_codes': True}, headers=headers).get_json()
    assert flags['permissions'] == 32
    log = get_db().execute(select(AuditLog).where(AuditLog.action == 'STAFF.UPDATE').order_by(AuditLog.id.desc())).scalars().first()
    assert log.meta['changes']['permissions'] == {'before': 5, 'after': 32}


def test_update_staff_conflicts(client):
    get_db().rollback()
    headers = _admin(client)
    a = client.post('/api/admin/staff', json=_payload('conflict_a'), headers=headers).get_json()
    client.post('/api/admin/staff', json=_payload('conflict_b'), headers=headers)
    resp = client.put(f"/api/admin/staff/{a['user_id']}", json={'email': 'conflict_b@example.com'}, headers=headers)
    assert resp.status_code == 409
    short = client.put(f"/api/admin/staff/{a['user_id']}", json={'password': '123'}, headers=headers)
    assert short.status_code == 400


def test_delete_staff_removes_both_rows(client):
    session = get_db()
    session.rollback()
    headers = _admin(client)
    created = client.post('/api/admin/staff', json=_payload('short_lived'), headers=headers).get_json()
    resp = client.delete(f"/api/admin/staff/{created['user_id']}", headers=headers)
    assert resp.status_code == 200
    assert session.get(Staff, created['staff_id']) is None
    assert session.get(UserAccount, created['user_id']) is None
    assert client.delete(f"/api/admin/staff/{created['user_id']}", headers=headers).status_code == 404


def test_staff_admin_requires_admin_role(client):
    get_db().rollback()
    ensure_staff('all_caps_staff', range(6))
    ensure_customer('curious_customer')
    staff_headers = auth_headers(client, 'all_caps_staff')
    resp = client.get('/api/admin/staff', headers=staff_headers)
    assert resp.status_code == 403
    assert resp.get_json()['error']['kind'] == 'Forbidden'
    assert client.get('/api/admin/staff', headers=auth_headers(client, 'curious_customer')).status_code == 403
    assert client.get('/api/admin/staff').status_code == 401
