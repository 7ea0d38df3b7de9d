from __future__ import annotations

import datetime as dt
import uuid
from decimal import Decimal

from sqlalchemy import Date, ForeignKey, Integer, Numeric, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from urs.core.db.base import Base, IntIdMixin, TimestampMixin


class AumInvestorDaily(Base, IntIdMixin, TimestampMixin):
    __tablename__ = "aum_investor_daily"

    investor_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("investors.id"), index=True)
    agent_id: Mapped[int] = mapped_column(ForeignKey("agents.id"), index=True)
    fund_id: Mapped[int] = mapped_column(ForeignKey("funds.id"), index=True)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)

    units: Mapped[Decimal] = mapped_column(Numeric(24, 8), nullable=False)
    nav_per_unit: Mapped[Decimal] = mapped_column(Numeric(24, 8), nullable=False)
    aum_value: Mapped[Decimal] = mapped_column(Numeric(28, 4), nullable=False)
    days: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    management_fee: Mapped[Decimal] = mapped_column(Numeric(28, 8), default=0, nullable=False)

    __table_args__ = (UniqueConstraint("investor_id", "fund_id", "date", name="uq_aum_investor_daily"),)


class AumDaily(Base, IntIdMixin, TimestampMixin):
    __tablename__ = "aum_daily"

    date: Mapped[dt.date] = mapped_column(Date, unique=True, nullable=False, index=True)
    aum_value: Mapped[Decimal] = mapped_column(Numeric(28, 4), nullable=False)
    management_fee: Mapped[Decimal] = mapped_column(Numeric(28, 8), nullable=False)
