from __future__ import annotations

import structlog
from sqlalchemy import case, exists, func, insert, select
from sqlalchemy.orm import Session

from urs.domain.migration.results import RecordOutcome, StepSummary
from urs.domain.migration.runtime import MigrationRuntime
from urs.domain.registry.models.transactions import InvestorHolding, Transaction
from urs.shared.enums import TransactionType

log = structlog.get_logger(__name__)

INFLOW_TYPES = (TransactionType.SUBSCRIPTION, TransactionType.SWITCHING_IN)


def build_holdings_insert():
    """INSERT ... SELECT producing one holdings row per transaction that has none.

    Running balances are computed over every transaction in the (account, fund)
    partition, so rows added later still see the full history before them.
    """
    signed = case(
        (Transaction.transaction_type.in_(INFLOW_TYPES), Transaction.units),
        else_=-Transaction.units,
    )
    ordering = (Transaction.transaction_date, Transaction.id)
    partition = (Transaction.investor_account_id, Transaction.fund_id)

    ledger = select(
        Transaction.id.label("transaction_id"),
        Transaction.investor_id,
        Transaction.investor_account_id,
        Transaction.fund_id,
        signed.label("delta_units"),
        func.coalesce(
            func.sum(signed).over(partition_by=partition, order_by=ordering, rows=(None, -1)),
            0,
        ).label("units_before"),
        func.sum(signed).over(partition_by=partition, order_by=ordering, rows=(None, 0)).label("units_after"),
    ).subquery("ledger")

    already = exists().where(InvestorHolding.transaction_id == ledger.c.transaction_id)
    source = (
        select(
            ledger.c.investor_id,
            ledger.c.investor_account_id,
            ledger.c.transaction_id,
            ledger.c.fund_id,
            ledger.c.units_before,
            ledger.c.units_after,
            ledger.c.delta_units,
        )
        .where(~already)
        .order_by(ledger.c.transaction_id)
    )
    return insert(InvestorHolding).from_select(
        [
            "investor_id",
            "investor_account_id",
            "transaction_id",
            "fund_id",
            "units_before",
            "units_after",
            "delta_units",
        ],
        source,
    )


def generate_holdings_in(db: Session) -> int:
    result = db.execute(build_holdings_insert())
    return max(result.rowcount or 0, 0)


def generate_holdings(runtime: MigrationRuntime) -> StepSummary:
    summary = StepSummary(step="holdings")
    with runtime.urs() as urs:
        created = generate_holdings_in(urs)
        urs.commit()
    log.info("holdings.generated", created=created)
    summary.add(RecordOutcome.success("holdings", f"{created} rows"))
    summary.extra["created"] = created
    return summary
