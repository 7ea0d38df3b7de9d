from __future__ import annotations

import datetime as dt
import uuid

from sqlalchemy import Date, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from urs.core.db.base import Base, IntIdMixin, TimestampMixin


class Reference(Base, IntIdMixin, TimestampMixin):
    __tablename__ = "references"

    reference_name: Mapped[str] = mapped_column(String(100), index=True)
    code: Mapped[str] = mapped_column(String(100))
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    __table_args__ = (UniqueConstraint("reference_name", "code", name="uq_references_name_code"),)


class Bank(Base, IntIdMixin, TimestampMixin):
    __tablename__ = "banks"

    code: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    name: Mapped[str] = mapped_column(String(200))
    bi_code: Mapped[str | None] = mapped_column(String(32), nullable=True)
    is_active: Mapped[bool] = mapped_column(default=True, nullable=False)


class BankBranch(Base, IntIdMixin, TimestampMixin):
    __tablename__ = "bank_branches"

    code: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    name: Mapped[str] = mapped_column(String(200))
    bank_id: Mapped[int] = mapped_column(ForeignKey("banks.id", ondelete="CASCADE"), index=True)


class AgentLevel(Base, IntIdMixin, TimestampMixin):
    __tablename__ = "agent_levels"

    name: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    tree_level: Mapped[int] = mapped_column(Integer, default=1, nullable=False)


class Agent(Base, IntIdMixin, TimestampMixin):
    __tablename__ = "agents"

    code: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    name: Mapped[str] = mapped_column(String(200), default="", nullable=False)
    agent_level_id: Mapped[int | None] = mapped_column(ForeignKey("agent_levels.id"), nullable=True, index=True)
    agent_type_id: Mapped[str] = mapped_column(String(16), default="1", nullable=False)
    is_active: Mapped[bool] = mapped_column(default=True, nullable=False)


class AgentInvestor(Base, IntIdMixin, TimestampMixin):
    __tablename__ = "agent_investors"

    agent_id: Mapped[int] = mapped_column(ForeignKey("agents.id", ondelete="CASCADE"), index=True)
    investor_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("investors.id", ondelete="CASCADE"), index=True)
    effective_date: Mapped[dt.date | None] = mapped_column(Date, nullable=True)

    __table_args__ = (UniqueConstraint("agent_id", "investor_id", name="uq_agent_investor"),)
