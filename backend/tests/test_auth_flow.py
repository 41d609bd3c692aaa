from restaurant_pos import get_db
from restaurant_pos.models.accounts import UserAccount
from sqlalchemy import select
from test_utils_seed import ensure_staff, ensure_admin, auth_headers, login
from restaurant_pos.constants.permissions import Capability


def test_register_creates_customer_and_returns_token(client):
    get_db().rollback()
    resp = client.post('/api/auth/register', json={
        'email': 'newbie@example.com', 'username': 'newbie', 'password': 'hunter22',
        'first_name': 'New', 'lastName': 'Bie', 'state_code': 'CA',
    })
    assert resp.status_code == 201, resp.get_json()
    body = resp.get_json()
    assert body['access_token']
    assert body['user']['role'] == 'customer'
    assert body['user']['last_name'] == 'Bie'
    assert body['user']['loyalty_points'] == 0
    user = get_db().execute(select(UserAccount).where(UserAccount.username == 'newbie')).scalar_one()
    assert user.user_role == 0
    assert user.password_hash != 'hunter22'
    me = client.get('/api/auth/me', headers={'Authorization': f"Bearer {body['access_token']}"})
    assert me.status_code == 200
    assert me.get_json()['customer_id'] == body['user']['customer_id']


def test_register_rejects_short_password_and_duplicates(client):
    get_db().rollback()
    short = client.post('/api/auth/register', json={'email': 's@example.com', 'username': 'shorty', 'password': '12345'})
    assert short.status_code == 400
    missing = client.post('/api/auth/register', json={'email': 'm@example.com'})
    assert missing.status_code == 400
    ok = client.post('/api/auth/register', json={'email': 'dupe@example.com', 'username': 'dupe', 'password': 'secret99'})
    assert ok.status_code == 201
    again = client.post('/api/auth/register', json={'email': 'dupe@example.com', 'username': 'dupe2', 'password': 'secret99'})
    assert again.status_code == 409
    same_name = client.post('/api/auth/register', json={'email': 'other@example.com', 'username': 'dupe', 'password': 'secret99'})
    assert same_name.status_code == 409


def test_login_bad_credentials(client):
    get_db().rollback()
    ensure_staff('login_staff')
    resp = client.post('/api/auth/login', json={'username': 'login_staff', 'password': 'wrong-password'})
    assert resp.status_code == 401
    unknown = client.post('/api/auth/login', json={'username': 'ghost', 'password': 'whatever1'})
    assert unknown.status_code == 401
    empty = client.post('/api/auth/login', json={})
    assert empty.status_code == 400


def test_non_string_credentials_are_rejected(client):
    get_db().rollback()
    numeric = client.post('/api/auth/register', json={'email': 'num@example.com', 'username': 'numeric_pw', 'password': 12345678})
    assert numeric.status_code == 400
    assert 'string' in numeric.get_json()['error']['detail']
    listed = client.post('/api/auth/register', json={'email': ['x@example.com'], 'username': 'list_mail', 'password': 'secret123'})
    assert listed.status_code == 400
    ensure_staff('typed_login')
    assert client.post('/api/auth/login', json={'username': 'typed_login', 'password': 12345678}).status_code == 400
    assert get_db().execute(select(UserAccount).where(UserAccount.username == 'numeric_pw')).scalar_one_or_none() is None


def test_staff_login_carries_mask_and_me_reads_it_fresh(client):
    get_db().rollback()
    ensure_staff('me_staff', [Capability.STOCK_CONTROL, Capability.ORDERS])
    resp = client.post('/api/auth/login', json={'username': 'me_staff', 'password': 'secret123'})
    body = resp.get_json()
    assert body['user']['role'] == 'staff'
    assert body['user']['permissions'] == 12
    assert body['user']['permission_flags']['orders'] is True
    headers = {'Authorization': f"Bearer {body['access_token']}"}
    # Mask change after login is visible on the next request
    ensure_staff('me_staff', [Capability.REPORTS])
    me = client.get('/api/auth/me', headers=headers).get_json()
    assert me['permissions']['reports'] is True
    assert me['permissions']['orders'] is False


def test_admin_login_role(client):
    get_db().rollback()
    ensure_admin('auth_admin')
    body = client.post('/api/auth/login', json={'username': 'auth_admin', 'password': 'secret123'}).get_json()
    assert body['user']['role'] == 'admin'
    assert body['user']['permissions'] == 63


def test_login_with_corrupt_role_code_fails_closed(client):
    session = get_db()
    session.rollback()
    user = UserAccount(username='weird_role', email='weird@example.com', user_role=7, password_hash='')
    user.set_password('secret123')
    session.add(user); session.commit()
    resp = client.post('/api/auth/login', json={'username': 'weird_role', 'password': 'secret123'})
    assert resp.status_code == 400
    assert resp.get_json()['error']['kind'] == 'InvalidRoleCode'


def test_me_and_logout_require_token(client):
    get_db().rollback()
    assert client.get('/api/auth/me').status_code == 401
    assert client.post('/api/auth/logout').status_code == 401
    ensure_staff('logout_staff')
    headers = auth_headers(client, 'logout_staff')
    assert client.post('/api/auth/logout', headers=headers).get_json()['message'] == 'Logged out'


def test_garbage_token_is_unauthenticated(client):
    resp = client.get('/api/auth/me', headers={'Authorization': 'Bearer not.a.jwt'})
    assert resp.status_code == 401
    assert resp.get_json()['error']['kind'] == 'Unauthenticated'


def test_token_login_helper_roundtrip(client):
    get_db().rollback()
    ensure_staff('helper_staff')
    assert login(client, 'helper_staff').count('.') == 2
