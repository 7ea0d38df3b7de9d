from __future__ import annotations

import datetime as dt
import uuid
from decimal import Decimal

from sqlalchemy import Date, Enum as SAEnum, ForeignKey, Index, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from urs.core.db.base import Base, IntIdMixin, TimestampMixin
from urs.shared.enums import TransactionType


class InvestorAccount(Base, IntIdMixin, TimestampMixin):
    __tablename__ = "investor_accounts"

    investor_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("investors.id", ondelete="CASCADE"), index=True)
    fund_id: Mapped[int] = mapped_column(ForeignKey("funds.id", ondelete="CASCADE"), index=True)
    account_number: Mapped[str | None] = mapped_column(String(64), nullable=True)

    __table_args__ = (UniqueConstraint("investor_id", "fund_id", name="uq_investor_account_investor_fund"),)


class Transaction(Base, IntIdMixin, TimestampMixin):
    """Immutable ledger entry; only ``source_transaction_id`` may be backfilled once."""

    __tablename__ = "transactions"

    external_code: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    transaction_type: Mapped[TransactionType] = mapped_column(
        SAEnum(TransactionType, name="transaction_type_enum"),
        nullable=False,
        index=True,
    )

    investor_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("investors.id"), index=True)
    fund_id: Mapped[int] = mapped_column(ForeignKey("funds.id"), index=True)
    investor_account_id: Mapped[int | None] = mapped_column(ForeignKey("investor_accounts.id"), nullable=True, index=True)
    agent_id: Mapped[int | None] = mapped_column(ForeignKey("agents.id"), nullable=True)

    reference_no: Mapped[str | None] = mapped_column(String(100), nullable=True)
    transaction_date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    nav_date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    settlement_date: Mapped[dt.date] = mapped_column(Date, nullable=False)

    nav_per_unit: Mapped[Decimal] = mapped_column(Numeric(24, 8), nullable=False)
    units: Mapped[Decimal] = mapped_column(Numeric(24, 8), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(24, 4), default=0, nullable=False)
    net_amount: Mapped[Decimal] = mapped_column(Numeric(24, 4), default=0, nullable=False)
    fee: Mapped[Decimal] = mapped_column(Numeric(24, 4), default=0, nullable=False)

    is_redeem_all: Mapped[bool] = mapped_column(default=False, nullable=False)
    payment_method_id: Mapped[str] = mapped_column(String(16), default="TRS", nullable=False)

    # SWITCHING_IN -> paired SWITCHING_OUT (or the reverse) as recorded in SIAR
    source_transaction_id: Mapped[int | None] = mapped_column(ForeignKey("transactions.id"), nullable=True, index=True)

    __table_args__ = (
        Index("ix_transactions_account_fund_date", "investor_account_id", "fund_id", "transaction_date"),
    )


class InvestorHolding(Base, IntIdMixin, TimestampMixin):
    """Append-only running unit balance, one row per transaction."""

    __tablename__ = "investor_holdings"

    investor_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("investors.id"), index=True)
    investor_account_id: Mapped[int | None] = mapped_column(ForeignKey("investor_accounts.id"), nullable=True, index=True)
    transaction_id: Mapped[int] = mapped_column(ForeignKey("transactions.id"), unique=True, index=True)
    fund_id: Mapped[int] = mapped_column(ForeignKey("funds.id"), index=True)

    units_before: Mapped[Decimal] = mapped_column(Numeric(24, 8), nullable=False)
    units_after: Mapped[Decimal] = mapped_column(Numeric(24, 8), nullable=False)
    delta_units: Mapped[Decimal] = mapped_column(Numeric(24, 8), nullable=False)
