from __future__ import annotations
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Integer, Boolean, JSON, ForeignKey, DateTime, func
from typing import Optional, Dict, Any
from datetime import datetime

from .accounts import Base

ORDER_SHIPPED = 'ORDER_SHIPPED'
ORDER_DELIVERED = 'ORDER_DELIVERED'
INVENTORY_RESTOCK_NEEDED = 'INVENTORY_RESTOCK_NEEDED'
DELIVERY_EVENTS = (ORDER_SHIPPED, ORDER_DELIVERED)
EVENT_TYPES = (ORDER_SHIPPED, ORDER_DELIVERED, INVENTORY_RESTOCK_NEEDED)


class EventOutbox(Base):
    __tablename__ = 'EVENT_OUTBOX'
    event_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    event_type: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    payload_json: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)
    ref_order_id: Mapped[Optional[int]] = mapped_column(ForeignKey('ORDERS.order_id', ondelete='SET NULL'), index=True)
    resolved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
