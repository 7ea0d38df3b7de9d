from __future__ import annotations

import datetime as dt
from decimal import Decimal

from sqlalchemy import JSON, Date, Index, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from urs.core.db.base import AuditMetaMixin, Base, IdMixin, IntIdMixin, TimestampMixin


class Fund(Base, IntIdMixin, TimestampMixin):
    __tablename__ = "funds"

    name: Mapped[str] = mapped_column(String(200), index=True)
    code: Mapped[str | None] = mapped_column(String(50), nullable=True, index=True)
    external_code: Mapped[str | None] = mapped_column(String(64), unique=True, nullable=True, index=True)
    fund_category_id: Mapped[str | None] = mapped_column(String(32), nullable=True)

    min_sub: Mapped[Decimal] = mapped_column(Numeric(24, 4), default=0, nullable=False)
    min_red: Mapped[Decimal] = mapped_column(Numeric(24, 4), default=0, nullable=False)
    min_swin: Mapped[Decimal] = mapped_column(Numeric(24, 4), default=0, nullable=False)
    min_swout: Mapped[Decimal] = mapped_column(Numeric(24, 4), default=0, nullable=False)
    max_red_percentage: Mapped[Decimal] = mapped_column(Numeric(9, 4), default=100, nullable=False)
    max_switch_percentage: Mapped[Decimal] = mapped_column(Numeric(9, 4), default=100, nullable=False)

    sub_settlement_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    red_settlement_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    switching_settlement_days: Mapped[int | None] = mapped_column(Integer, nullable=True)

    min_rest_red: Mapped[str] = mapped_column(String(16), default="AMOUNT", nullable=False)
    min_rest_red_amount: Mapped[Decimal] = mapped_column(Numeric(24, 4), default=0, nullable=False)
    min_rest_switch: Mapped[str] = mapped_column(String(16), default="AMOUNT", nullable=False)
    min_rest_switch_amount: Mapped[Decimal] = mapped_column(Numeric(24, 4), default=0, nullable=False)

    initial_nav_per_unit: Mapped[Decimal] = mapped_column(Numeric(24, 8), default=0, nullable=False)
    initial_unit: Mapped[Decimal] = mapped_column(Numeric(24, 8), default=0, nullable=False)

    # Percent per annum, e.g. 1.5 means 1.5%
    management_fee_rate: Mapped[Decimal] = mapped_column(Numeric(9, 4), default=0, nullable=False)
    # Day-count convention for fee accrual (360 / 365 / 366)
    valuation_basis: Mapped[int] = mapped_column(Integer, default=365, nullable=False)

    start_date: Mapped[dt.date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[dt.date | None] = mapped_column(Date, nullable=True)

    is_active: Mapped[bool] = mapped_column(default=True, nullable=False)
    is_public: Mapped[bool] = mapped_column(default=True, nullable=False)
    is_sharia: Mapped[bool] = mapped_column(default=False, nullable=False)
    can_subscribe: Mapped[bool] = mapped_column(default=True, nullable=False)
    can_redeem: Mapped[bool] = mapped_column(default=True, nullable=False)
    can_switch: Mapped[bool] = mapped_column(default=True, nullable=False)


class Investor(Base, IdMixin, TimestampMixin):
    __tablename__ = "investors"

    external_code: Mapped[str | None] = mapped_column(String(64), unique=True, nullable=True, index=True)
    first_name: Mapped[str] = mapped_column(String(200), default="", nullable=False)
    middle_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    phone_number: Mapped[str | None] = mapped_column(String(64), nullable=True)
    sid: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    investor_type_id: Mapped[str | None] = mapped_column(String(32), nullable=True)


class MigrationAuditEvent(Base, IdMixin, AuditMetaMixin):
    __tablename__ = "migration_audit_events"

    run_id: Mapped[str] = mapped_column(String(64), index=True)
    actor_id: Mapped[str] = mapped_column(String(200), index=True)

    action: Mapped[str] = mapped_column(String(200), index=True)
    step: Mapped[str] = mapped_column(String(64), index=True)

    summary: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    __table_args__ = (
        Index("ix_migration_audit_events_run_step", "run_id", "step"),
    )
