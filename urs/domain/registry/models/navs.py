from __future__ import annotations

import datetime as dt
from decimal import Decimal

from sqlalchemy import Date, ForeignKey, Numeric, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from urs.core.db.base import Base, IntIdMixin, TimestampMixin


class FundNav(Base, IntIdMixin, TimestampMixin):
    __tablename__ = "fund_navs"

    fund_id: Mapped[int] = mapped_column(ForeignKey("funds.id", ondelete="CASCADE"), index=True)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)

    nav: Mapped[Decimal] = mapped_column(Numeric(28, 4), default=0, nullable=False)
    nav_per_unit: Mapped[Decimal] = mapped_column(Numeric(24, 8), default=0, nullable=False)
    outstanding_unit: Mapped[Decimal] = mapped_column(Numeric(28, 8), default=0, nullable=False)

    __table_args__ = (UniqueConstraint("fund_id", "date", name="uq_fund_navs_fund_date"),)
