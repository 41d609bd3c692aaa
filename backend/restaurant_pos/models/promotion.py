from __future__ import annotations
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Integer, Text, ForeignKey, Date, DateTime, func
from typing import Optional
from datetime import date, datetime

from .accounts import Base


class Promotion(Base):
    __tablename__ = 'PROMOTION'
    promotion_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    promo_description: Mapped[Optional[str]] = mapped_column(Text)
    # 0 percent off, 1 fixed amount off (cents)
    promo_type: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    promo_code: Mapped[str] = mapped_column(String(32), unique=True, nullable=False, index=True)
    promo_exp_date: Mapped[date] = mapped_column(Date, nullable=False)
    created_by: Mapped[Optional[int]] = mapped_column(ForeignKey('STAFF.staff_id', ondelete='SET NULL'))
    updated_by: Mapped[Optional[int]] = mapped_column(ForeignKey('STAFF.staff_id', ondelete='SET NULL'))
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    last_updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

    def is_expired(self, today: date) -> bool:
        return self.promo_exp_date < today


class SaleEvent(Base):
    __tablename__ = 'SALE_EVENT'
    TYPE_PERCENT = 0
    TYPE_FIXED = 1
    sale_event_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    event_description: Mapped[Optional[str]] = mapped_column(Text)
    event_start: Mapped[date] = mapped_column(Date, nullable=False)
    event_end: Mapped[date] = mapped_column(Date, nullable=False)
    sitewide_event_type: Mapped[int] = mapped_column(Integer, nullable=False, default=TYPE_PERCENT)
    # percent (0-100) or cents, depending on sitewide_event_type
    sitewide_discount_value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_by: Mapped[Optional[int]] = mapped_column(ForeignKey('STAFF.staff_id', ondelete='SET NULL'))
    updated_by: Mapped[Optional[int]] = mapped_column(ForeignKey('STAFF.staff_id', ondelete='SET NULL'))
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    last_updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

    def is_active(self, today: date) -> bool:
        return self.event_start <= today <= self.event_end
