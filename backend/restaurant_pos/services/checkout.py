"""Checkout: turn a customer's cart into an order in PROCESSING state.

Everything happens inside the caller's session; the route commits once, so
a failure anywhere leaves no partial order, stock change or payment behind.
Prices come from MEAL, never from the client. Discount and tax are taken
from the request but validated against the computed subtotal.
"""
from __future__ import annotations
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Mapping, Optional
from flask import abort, current_app
from sqlalchemy import select

from restaurant_pos.models.accounts import Customer, PaymentMethod
from restaurant_pos.models.meal import Meal
from restaurant_pos.models.order import Order, OrderLine, OrderPromotion, Payment
from restaurant_pos.models.outbox import INVENTORY_RESTOCK_NEEDED
from restaurant_pos.models.promotion import Promotion, SaleEvent
from restaurant_pos.models.stock import Stock
from restaurant_pos.services.order_lifecycle import INITIAL_STATUS
from restaurant_pos.services.outbox import record_event
from restaurant_pos.utils.validation import parse_int


@dataclass
class CartLine:
    meal_id: int
    quantity: int


def parse_cart(raw: Any) -> List[CartLine]:
    """Accept ``[{"meal_id": 1, "quantity": 2}]`` or the storefront's ``[{"meal": {...}, "quantity": 2}]``.

    Repeated meals are merged into one line.
    """
    if not isinstance(raw, list) or not raw:
        abort(400, description='Cart is empty')
    merged: Dict[int, int] = {}
    for item in raw:
        if not isinstance(item, Mapping):
            abort(400, description='cart items must be objects')
        meal_ref = item.get('meal_id')
        if meal_ref is None and isinstance(item.get('meal'), Mapping):
            meal_ref = item['meal'].get('meal_id', item['meal'].get('id'))
        meal_id = parse_int(meal_ref, 'meal_id', minimum=1)
        qty = parse_int(item.get('quantity', 1), 'quantity', minimum=1)
        merged[meal_id] = merged.get(meal_id, 0) + qty
    return [CartLine(m, q) for m, q in merged.items()]


def active_sale_event(session, today: date) -> Optional[SaleEvent]:
    q = select(SaleEvent).where(SaleEvent.event_start <= today, SaleEvent.event_end >= today)
    return session.execute(q.order_by(SaleEvent.sale_event_id.desc())).scalars().first()


def lookup_promotion(session, code: Optional[str], today: date) -> Optional[Promotion]:
    """Promotion for code when it exists and has not expired, else None."""
    if not code:
        return None
    promo = session.execute(select(Promotion).where(Promotion.promo_code == str(code).strip().upper())).scalar_one_or_none()
    if promo is None or promo.is_expired(today):
        return None
    return promo


def place_order(session, customer: Customer, user_id: int, data: Mapping[str, Any], today: Optional[date] = None) -> Order:
    today = today or date.today()
    cart = parse_cart(data.get('cart'))
    if data.get('payment_method_id') in (None, ''):
        abort(400, description='Payment method is required')
    pm_id = parse_int(data.get('payment_method_id'), 'payment_method_id', minimum=1)
    pm = session.get(PaymentMethod, pm_id)
    if pm is None or pm.customer_ref != customer.customer_id:
        abort(400, description='Payment method not found')

    lines: List[OrderLine] = []
    subtotal = 0
    for line in cart:
        meal = session.get(Meal, line.meal_id)
        if meal is None:
            abort(400, description=f'Meal with ID {line.meal_id} not found')
        if not meal.is_orderable(today):
            abort(400, description=f'Meal {meal.meal_name} is not available')
        stock = meal.stock
        if stock is not None and stock.quantity_in_stock < line.quantity:
            abort(409, description=f'Insufficient stock for {meal.meal_name}')
        subtotal += meal.price * line.quantity
        lines.append(OrderLine(
            meal_ref=meal.meal_id,
            num_units_ordered=line.quantity,
            price_at_sale=meal.price,
            cost_per_unit=meal.cost_to_make,
        ))

    tax = parse_int(data.get('tax', 0), 'tax', minimum=0)
    discount = parse_int(data.get('discount', 0), 'discount', minimum=0)
    if discount > subtotal:
        abort(400, description='discount cannot exceed subtotal')
    promo = lookup_promotion(session, data.get('promo_code'), today)
    if data.get('promo_code') and promo is None:
        abort(400, description='Promo code is invalid or expired')
    if discount > 0 and promo is None and active_sale_event(session, today) is None:
        abort(400, description='discount requires a promo code or an active sale event')

    address = data.get('shipping_address') or {}
    order = Order(
        customer_ref=customer.customer_id,
        order_date=today,
        order_status=int(INITIAL_STATUS),
        unit_price=subtotal,
        tax=tax,
        discount=discount,
        notes=data.get('delivery_notes'),
        shipping_street=address.get('street') or customer.street,
        shipping_city=address.get('city') or customer.city,
        shipping_state_code=address.get('state_code') or customer.state_code,
        shipping_zipcode=address.get('zipcode') or customer.zipcode,
        created_by=user_id,
    )
    order.lines = lines
    session.add(order)
    session.flush()

    for line in cart:
        stock = session.execute(select(Stock).where(Stock.meal_ref == line.meal_id)).scalar_one_or_none()
        if stock is None:
            continue
        was_flagged = stock.needs_reorder
        stock.quantity_in_stock -= line.quantity
        if stock.refresh_reorder_flag() and not was_flagged:
            record_event(session, INVENTORY_RESTOCK_NEEDED, {
                'meal_ref': stock.meal_ref,
                'stock_id': stock.stock_id,
                'quantity_in_stock': stock.quantity_in_stock,
                'reorder_threshold': stock.reorder_threshold,
            }, ref_order_id=order.order_id)

    if promo is not None:
        session.add(OrderPromotion(order_ref=order.order_id, promotion_ref=promo.promotion_id, discount_amount=discount))

    total = order.total
    session.add(Payment(
        order_ref=order.order_id,
        payment_method_ref=pm.payment_method_id,
        payment_amount=total,
        transaction_status=Payment.STATUS_COMPLETED,
        created_by=user_id,
    ))
    points = loyalty_points_for(total)
    customer.loyalty_points = (customer.loyalty_points or 0) + points
    customer.total_amount_spent = (customer.total_amount_spent or 0) + total
    current_app.logger.info('checkout order=%s customer=%s total=%s lines=%s', order.order_id, customer.customer_id, total, len(lines))
    return order


def loyalty_points_for(total_cents: int) -> int:
    return max(0, total_cents) // 100


__all__ = ['CartLine', 'parse_cart', 'place_order', 'lookup_promotion', 'active_sale_event', 'loyalty_points_for']
