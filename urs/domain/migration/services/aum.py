from __future__ import annotations

import datetime as dt
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

import structlog
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from urs.core.db.models import Fund
from urs.domain.migration.batching import run_bounded
from urs.domain.migration.bulk import insert_skip_duplicates
from urs.domain.migration.results import RecordOutcome, StepSummary
from urs.domain.migration.runtime import MigrationRuntime
from urs.domain.registry.models.aum import AumDaily, AumInvestorDaily
from urs.domain.registry.models.navs import FundNav
from urs.domain.registry.models.references import AgentInvestor
from urs.domain.registry.models.transactions import InvestorHolding, Transaction
from urs.shared.utils import chunked

log = structlog.get_logger(__name__)

DEFAULT_VALUATION_BASIS = 365
INSERT_BATCH_SIZE = 10000


@dataclass(frozen=True)
class FundTerms:
    management_fee_rate: Decimal
    valuation_basis: int


@dataclass(frozen=True)
class AumContext:
    """Reference data shared by every date being processed."""

    funds: dict[int, FundTerms]
    agents: dict[uuid.UUID, int]
    days: dict[tuple[int, dt.date], int]


def management_fee(aum_value: Decimal, terms: FundTerms, days: int) -> Decimal:
    basis = terms.valuation_basis or DEFAULT_VALUATION_BASIS
    return aum_value * Decimal(terms.management_fee_rate) / Decimal(100) / Decimal(basis) * Decimal(days)


def _load_context(db: Session) -> AumContext:
    funds = {
        fund_id: FundTerms(Decimal(rate or 0), basis or 0)
        for fund_id, rate, basis in db.execute(select(Fund.id, Fund.management_fee_rate, Fund.valuation_basis))
    }

    ranked = select(
        AgentInvestor.investor_id,
        AgentInvestor.agent_id,
        func.row_number()
        .over(
            partition_by=AgentInvestor.investor_id,
            order_by=(AgentInvestor.effective_date.desc(), AgentInvestor.id.desc()),
        )
        .label("rn"),
    ).subquery()
    agents = dict(db.execute(select(ranked.c.investor_id, ranked.c.agent_id).where(ranked.c.rn == 1)).all())

    days: dict[tuple[int, dt.date], int] = {}
    previous: dict[int, dt.date] = {}
    for fund_id, nav_date in db.execute(select(FundNav.fund_id, FundNav.date).order_by(FundNav.fund_id, FundNav.date)):
        prior = previous.get(fund_id)
        days[(fund_id, nav_date)] = max((nav_date - prior).days, 1) if prior else 1
        previous[fund_id] = nav_date

    return AumContext(funds=funds, agents=agents, days=days)


def _holdings_as_of(db: Session, as_of: dt.date) -> list[tuple[uuid.UUID, int, Decimal]]:
    """Latest holding per (investor, fund) on or before ``as_of`` with a positive balance."""
    ranked = (
        select(
            InvestorHolding.investor_id,
            InvestorHolding.fund_id,
            InvestorHolding.units_after,
            func.row_number()
            .over(
                partition_by=(InvestorHolding.investor_id, InvestorHolding.fund_id),
                order_by=(Transaction.transaction_date.desc(), Transaction.id.desc()),
            )
            .label("rn"),
        )
        .join(Transaction, Transaction.id == InvestorHolding.transaction_id)
        .where(Transaction.transaction_date <= as_of)
        .subquery()
    )
    stmt = select(ranked.c.investor_id, ranked.c.fund_id, ranked.c.units_after).where(
        ranked.c.rn == 1, ranked.c.units_after > 0
    )
    return [tuple(row) for row in db.execute(stmt)]


def _process_date(runtime: MigrationRuntime, nav_date: dt.date, ctx: AumContext) -> StepSummary:
    summary = StepSummary(step="aum")
    key = nav_date.isoformat()
    try:
        with runtime.urs() as db:
            navs = dict(db.execute(select(FundNav.fund_id, FundNav.nav_per_unit).where(FundNav.date == nav_date)).all())
            holdings = _holdings_as_of(db, nav_date)
            if not holdings:
                log.warning("aum.no_holdings", date=key)
                summary.add(RecordOutcome.unresolved(key, "no holdings"))
                return summary

            rows: list[dict[str, Any]] = []
            for investor_id, fund_id, units in holdings:
                nav_per_unit = navs.get(fund_id)
                agent_id = ctx.agents.get(investor_id)
                if nav_per_unit is None or agent_id is None:
                    continue
                terms = ctx.funds.get(fund_id, FundTerms(Decimal(0), DEFAULT_VALUATION_BASIS))
                days = ctx.days.get((fund_id, nav_date), 1)
                aum_value = Decimal(units) * Decimal(nav_per_unit)
                rows.append(
                    {
                        "investor_id": investor_id,
                        "agent_id": agent_id,
                        "fund_id": fund_id,
                        "date": nav_date,
                        "units": units,
                        "nav_per_unit": nav_per_unit,
                        "aum_value": aum_value,
                        "days": days,
                        "management_fee": management_fee(aum_value, terms, days),
                    }
                )

            inserted = 0
            for batch in chunked(rows, INSERT_BATCH_SIZE):
                inserted += insert_skip_duplicates(
                    db, AumInvestorDaily, list(batch), conflict_columns=("investor_id", "fund_id", "date")
                )

            total_aum = sum((r["aum_value"] for r in rows), Decimal(0))
            total_fee = sum((r["management_fee"] for r in rows), Decimal(0))
            daily = db.execute(select(AumDaily).where(AumDaily.date == nav_date)).scalar_one_or_none()
            if daily is None:
                db.add(AumDaily(date=nav_date, aum_value=total_aum, management_fee=total_fee))
            else:
                daily.aum_value = total_aum
                daily.management_fee = total_fee
            db.commit()

        summary.add(RecordOutcome.success(key, f"{inserted} rows"))
        summary.extra["rows"] = inserted
    except Exception as exc:
        log.exception("aum.date_failed", date=key)
        summary.add(RecordOutcome.failed(key, str(exc)))
    return summary


def generate_aum(runtime: MigrationRuntime) -> StepSummary:
    """Compute per-investor daily AUM and fee accrual for NAV dates not yet totalled."""
    summary = StepSummary(step="aum")
    with runtime.urs() as db:
        nav_dates = list(db.execute(select(FundNav.date).distinct().order_by(FundNav.date)).scalars())
        done = set(db.execute(select(AumDaily.date)).scalars())
        pending = [d for d in nav_dates if d not in done]
        log.info("aum.dates", nav_dates=len(nav_dates), already_done=len(done), pending=len(pending))
        ctx = _load_context(db) if pending else None

    summary.extra["rows"] = 0
    if ctx is not None:
        for processed, results in run_bounded(
            pending, lambda d: _process_date(runtime, d, ctx), limit=runtime.parallel_limit
        ):
            for result in results:
                summary.merge(result)
            log.info("aum.progress", done=processed, total=len(pending))

    summary.extra["dates_without_aum"] = len(verify_aum(runtime))
    return summary


def verify_aum(runtime: MigrationRuntime) -> list[dt.date]:
    """NAV dates that have no per-investor AUM rows."""
    with runtime.urs() as db:
        nav_dates = list(db.execute(select(FundNav.date).distinct().order_by(FundNav.date)).scalars())
        aum_dates = set(db.execute(select(AumInvestorDaily.date).distinct()).scalars())
        aum_rows = db.execute(select(func.count()).select_from(AumInvestorDaily)).scalar_one()
        holding_rows = db.execute(select(func.count()).select_from(InvestorHolding)).scalar_one()

    missing = [d for d in nav_dates if d not in aum_dates]
    log.info("aum.verify", nav_dates=len(nav_dates), aum_rows=aum_rows, holdings=holding_rows)
    if missing:
        log.warning("aum.verify.missing_dates", missing=len(missing), sample=[d.isoformat() for d in missing[:10]])
    return missing
