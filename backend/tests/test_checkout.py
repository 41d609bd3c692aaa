from datetime import date, timedelta
from restaurant_pos import get_db
from restaurant_pos.models.accounts import Customer
from restaurant_pos.models.order import Order, OrderPromotion, Payment
from restaurant_pos.models.outbox import EventOutbox
from restaurant_pos.models.promotion import Promotion, SaleEvent
from restaurant_pos.models.meal import Meal
from sqlalchemy import select
from test_utils_seed import ensure_meal, ensure_customer, ensure_admin, ensure_payment_method, customer_with_card, place_order, auth_headers


def _no_sale_events():
    session = get_db()
    session.query(SaleEvent).delete()
    session.commit()


def test_checkout_computes_totals_server_side(client):
    session = get_db()
    session.rollback()
    user, pm, headers = customer_with_card(client, 'checkout_happy')
    meal = ensure_meal('Checkout Burger', price=1200, quantity=10, reorder_threshold=1)
    resp = client.post('/api/orders', json={
        'cart': [{'meal_id': meal.meal_id, 'quantity': 1}, {'meal': {'meal_id': meal.meal_id}, 'quantity': 1}],
        'payment_method_id': pm.payment_method_id,
        'tax': 150,
        'delivery_notes': 'ring twice',
    }, headers=headers)
    assert resp.status_code == 201, resp.get_json()
    body = resp.get_json()
    assert body['order_status'] == 0
    assert body['order_status_name'] == 'processing'
    assert body['unit_price'] == 2400
    assert body['total'] == 2550
    assert body['version'] == 1
    assert body['items'] == [{'meal_id': meal.meal_id, 'meal_name': 'Checkout Burger', 'quantity': 2, 'price_at_sale': 1200}]
    assert body['loyalty_points_earned'] == 25
    assert body['shipping_address']['city'] == 'Austin'
    assert meal.stock.quantity_in_stock == 8
    payment = session.execute(select(Payment).where(Payment.order_ref == body['order_id'])).scalar_one()
    assert payment.payment_amount == 2550
    assert payment.payment_method_ref == pm.payment_method_id
    customer = session.get(Customer, user.customer.customer_id)
    assert customer.loyalty_points == 25
    assert customer.total_amount_spent == 2550


def test_checkout_ignores_client_prices(client):
    get_db().rollback()
    _, pm, headers = customer_with_card(client, 'checkout_cheater')
    meal = ensure_meal('Checkout Steak', price=3000)
    body = {'cart': [{'meal_id': meal.meal_id, 'quantity': 1, 'price': 1}], 'payment_method_id': pm.payment_method_id}
    assert client.post('/api/orders', json=body, headers=headers).get_json()['unit_price'] == 3000


def test_checkout_rejections(client):
    get_db().rollback()
    _, pm, headers = customer_with_card(client, 'checkout_rejects')
    other = ensure_customer('checkout_other')
    foreign_pm = ensure_payment_method(other, '9999')
    meal = ensure_meal('Checkout Salad', price=800)
    inactive = ensure_meal('Checkout Retired', status=Meal.STATUS_INACTIVE)
    cart = [{'meal_id': meal.meal_id, 'quantity': 1}]
    assert client.post('/api/orders', json={'cart': [], 'payment_method_id': pm.payment_method_id}, headers=headers).status_code == 400
    assert client.post('/api/orders', json={'cart': cart}, headers=headers).status_code == 400
    assert client.post('/api/orders', json={'cart': cart, 'payment_method_id': foreign_pm.payment_method_id}, headers=headers).status_code == 400
    assert place_order(client, headers, inactive, pm).status_code == 400
    unknown = client.post('/api/orders', json={'cart': [{'meal_id': 777777}], 'payment_method_id': pm.payment_method_id}, headers=headers)
    assert unknown.status_code == 400
    assert place_order(client, headers, meal, pm, quantity=0).status_code == 400
    assert place_order(client, headers, meal, pm, tax=-5).status_code == 400
    assert place_order(client, headers, meal, pm, discount=900, promo_code=None).status_code == 400


def test_checkout_out_of_window_meal(client):
    session = get_db()
    session.rollback()
    _, pm, headers = customer_with_card(client, 'checkout_window')
    meal = ensure_meal('Checkout Seasonal')
    meal.start_date = date.today() + timedelta(days=5)
    session.commit()
    assert place_order(client, headers, meal, pm).status_code == 400


def test_insufficient_stock_leaves_nothing_behind(client):
    session = get_db()
    session.rollback()
    user, pm, headers = customer_with_card(client, 'checkout_greedy')
    plenty = ensure_meal('Checkout Plenty', quantity=50)
    scarce = ensure_meal('Checkout Scarce', quantity=1, reorder_threshold=0)
    before = session.execute(select(Order).where(Order.customer_ref == user.customer.customer_id)).scalars().all()
    resp = client.post('/api/orders', json={
        'cart': [{'meal_id': plenty.meal_id, 'quantity': 2}, {'meal_id': scarce.meal_id, 'quantity': 3}],
        'payment_method_id': pm.payment_method_id,
    }, headers=headers)
    assert resp.status_code == 409
    after = session.execute(select(Order).where(Order.customer_ref == user.customer.customer_id)).scalars().all()
    assert len(after) == len(before)
    session.refresh(plenty.stock)
    assert plenty.stock.quantity_in_stock == 50


def test_discount_needs_promo_or_sale_event(client):
    get_db().rollback()
    _no_sale_events()
    _, pm, headers = customer_with_card(client, 'checkout_discount')
    meal = ensure_meal('Checkout Pizza', price=2000)
    assert place_order(client, headers, meal, pm, discount=500).status_code == 400
    assert place_order(client, headers, meal, pm, discount=2500, promo_code='nope').status_code == 400
    session = get_db()
    session.add(SaleEvent(event_description='Flash', event_start=date.today(), event_end=date.today(),
                          sitewide_event_type=SaleEvent.TYPE_FIXED, sitewide_discount_value=500))
    session.commit()
    ok = place_order(client, headers, meal, pm, discount=500)
    assert ok.status_code == 201
    assert ok.get_json()['total'] == 1500
    _no_sale_events()


def test_promo_code_applied_and_recorded(client):
    session = get_db()
    session.rollback()
    _, pm, headers = customer_with_card(client, 'checkout_promo')
    meal = ensure_meal('Checkout Tacos', price=1000)
    session.add(Promotion(promo_description='Ten off', promo_type=1, promo_code='TACO10', promo_exp_date=date.today()))
    session.add(Promotion(promo_description='Old', promo_type=1, promo_code='OLDTACO', promo_exp_date=date.today() - timedelta(days=1)))
    session.commit()
    resp = place_order(client, headers, meal, pm, quantity=2, discount=200, promo_code='taco10')
    assert resp.status_code == 201, resp.get_json()
    order_id = resp.get_json()['order_id']
    link = session.execute(select(OrderPromotion).where(OrderPromotion.order_ref == order_id)).scalar_one()
    assert link.discount_amount == 200
    assert place_order(client, headers, meal, pm, discount=100, promo_code='OLDTACO').status_code == 400


def test_checkout_crossing_threshold_emits_restock(client):
    session = get_db()
    session.rollback()
    _, pm, headers = customer_with_card(client, 'checkout_restock')
    meal = ensure_meal('Checkout Dumplings', quantity=5, reorder_threshold=3)
    resp = place_order(client, headers, meal, pm, quantity=2)
    assert resp.status_code == 201
    assert meal.stock.needs_reorder is True
    events = session.execute(select(EventOutbox).where(EventOutbox.event_type == 'INVENTORY_RESTOCK_NEEDED')).scalars().all()
    mine = [e for e in events if e.payload_json.get('meal_ref') == meal.meal_id]
    assert len(mine) == 1
    assert mine[0].payload_json['quantity_in_stock'] == 3
    # still low after the next sale; no duplicate alert
    place_order(client, headers, meal, pm, quantity=1)
    events = session.execute(select(EventOutbox).where(EventOutbox.event_type == 'INVENTORY_RESTOCK_NEEDED')).scalars().all()
    assert len([e for e in events if e.payload_json.get('meal_ref') == meal.meal_id]) == 1


def test_my_orders_lists_only_own(client):
    get_db().rollback()
    _, pm, headers = customer_with_card(client, 'checkout_history')
    _, other_pm, other_headers = customer_with_card(client, 'checkout_stranger')
    meal = ensure_meal('Checkout Noodles')
    place_order(client, headers, meal, pm)
    place_order(client, headers, meal, pm, quantity=2)
    place_order(client, other_headers, meal, other_pm)
    page = client.get('/api/orders/my-orders', headers=headers).get_json()
    assert page['pagination']['total'] == 2
    assert {o['items'][0]['quantity'] for o in page['data']} == {1, 2}
    assert page['data'][0]['last_four'] == '4242'


def test_checkout_is_customer_only(client):
    get_db().rollback()
    ensure_admin('checkout_admin')
    resp = client.post('/api/orders', json={'cart': []}, headers=auth_headers(client, 'checkout_admin'))
    assert resp.status_code == 403
    assert client.post('/api/orders', json={'cart': []}).status_code == 401
