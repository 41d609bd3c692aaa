from __future__ import annotations
from enum import IntEnum
from sqlalchemy.orm import relationship, Mapped, mapped_column
from sqlalchemy import String, Integer, Text, ForeignKey, Date, DateTime, func
from typing import Optional
from datetime import date, datetime

from .accounts import Base
from restaurant_pos.errors import InvalidStatusCode


class OrderStatus(IntEnum):
    """Wire and storage codes of ORDERS.order_status. Never renumber."""
    PROCESSING = 0
    DELIVERED = 1
    SHIPPED = 2
    REFUNDED = 3

    @property
    def label(self) -> str:
        return self.name.lower()


class Order(Base):
    __tablename__ = 'ORDERS'
    order_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    customer_ref: Mapped[int] = mapped_column(ForeignKey('CUSTOMER.customer_id'), nullable=False, index=True)
    order_date: Mapped[date] = mapped_column(Date, nullable=False, default=date.today)
    order_status: Mapped[int] = mapped_column(Integer, nullable=False, default=int(OrderStatus.PROCESSING), index=True)
    delivery_date: Mapped[Optional[date]] = mapped_column(Date)
    # cents; unit_price holds the order subtotal
    unit_price: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    tax: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    discount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    tracking_number: Mapped[Optional[str]] = mapped_column(String(64))
    shipping_street: Mapped[Optional[str]] = mapped_column(String(128))
    shipping_city: Mapped[Optional[str]] = mapped_column(String(64))
    shipping_state_code: Mapped[Optional[str]] = mapped_column(String(2))
    shipping_zipcode: Mapped[Optional[str]] = mapped_column(String(10))
    created_by: Mapped[Optional[int]] = mapped_column(ForeignKey('USER_ACCOUNT.user_id', ondelete='SET NULL'))
    updated_by_staff: Mapped[Optional[int]] = mapped_column(ForeignKey('STAFF.staff_id', ondelete='SET NULL'))
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    last_updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

    __mapper_args__ = {'version_id_col': version}

    lines = relationship('OrderLine', back_populates='order', cascade='all, delete-orphan')
    customer = relationship('Customer')
    payment = relationship('Payment', back_populates='order', uselist=False, cascade='all, delete-orphan')
    promotions = relationship('OrderPromotion', cascade='all, delete-orphan')

    @property
    def status(self) -> OrderStatus:
        try:
            return OrderStatus(self.order_status)
        except ValueError:
            raise InvalidStatusCode(f'Order {self.order_id} has unknown status {self.order_status!r}') from None

    @property
    def total(self) -> int:
        return self.unit_price + self.tax - self.discount


class OrderLine(Base):
    __tablename__ = 'ORDER_LINE'
    order_line_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    order_ref: Mapped[int] = mapped_column(ForeignKey('ORDERS.order_id', ondelete='CASCADE'), nullable=False, index=True)
    meal_ref: Mapped[int] = mapped_column(ForeignKey('MEAL.meal_id'), nullable=False, index=True)
    num_units_ordered: Mapped[int] = mapped_column(Integer, nullable=False)
    price_at_sale: Mapped[int] = mapped_column(Integer, nullable=False)
    cost_per_unit: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    order = relationship('Order', back_populates='lines')
    meal = relationship('Meal')


class OrderPromotion(Base):
    __tablename__ = 'ORDER_PROMOTION'
    order_ref: Mapped[int] = mapped_column(ForeignKey('ORDERS.order_id', ondelete='CASCADE'), primary_key=True)
    promotion_ref: Mapped[int] = mapped_column(ForeignKey('PROMOTION.promotion_id', ondelete='CASCADE'), primary_key=True)
    discount_amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class Payment(Base):
    __tablename__ = 'PAYMENT'
    STATUS_PENDING = 0
    STATUS_COMPLETED = 1
    payment_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    order_ref: Mapped[int] = mapped_column(ForeignKey('ORDERS.order_id', ondelete='CASCADE'), unique=True, nullable=False)
    payment_method_ref: Mapped[Optional[int]] = mapped_column(ForeignKey('PAYMENT_METHOD.payment_method_id', ondelete='SET NULL'))
    payment_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    transaction_status: Mapped[int] = mapped_column(Integer, nullable=False, default=STATUS_COMPLETED)
    created_by: Mapped[Optional[int]] = mapped_column(ForeignKey('USER_ACCOUNT.user_id', ondelete='SET NULL'))
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    order = relationship('Order', back_populates='payment')
    payment_method = relationship('PaymentMethod')
