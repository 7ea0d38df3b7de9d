from __future__ import annotations

import datetime as dt
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from urs.core.db.audit import get_audit_log
from urs.domain.migration.services.transactions import verify_transaction_counts
from urs.domain.migration.steps import ALL_STEPS, run_steps
from urs.domain.registry.models.transactions import InvestorAccount, InvestorHolding, Transaction
from urs.shared.enums import TransactionType


def _seed_single_investor(siar) -> None:
    siar.product(1, code="EQF")
    siar.customer(10, "Alice")
    siar.transaction(1, 10, category="SUB", units="100", day=dt.date(2024, 1, 2))
    # Its SWTIN partner lives in another customer's history that is not part of this fixture.
    siar.transaction(2, 10, category="SWTOT", units="40", day=dt.date(2024, 1, 10), source_id=999)
    siar.transaction(3, 10, category="RED", units="20", day=dt.date(2024, 2, 1))
    siar.nav(1, 1, dt.date(2024, 1, 2), "1000")
    siar.nav(2, 1, dt.date(2024, 2, 1), "1100")
    siar.commit()


def test_single_investor_end_to_end(runtime, siar, urs_db: Session):
    _seed_single_investor(siar)

    summaries = run_steps(runtime, ALL_STEPS, actor_id="test-runner", run_id="run-1")

    assert [s.step for s in summaries] == [step.name for step in ALL_STEPS]

    txs = urs_db.execute(select(Transaction).order_by(Transaction.transaction_date)).scalars().all()
    assert [t.transaction_type for t in txs] == [
        TransactionType.SUBSCRIPTION,
        TransactionType.SWITCHING_OUT,
        TransactionType.REDEMPTION,
    ]
    assert all(t.source_transaction_id is None for t in txs)
    assert len(urs_db.execute(select(InvestorAccount)).scalars().all()) == 1

    holdings = urs_db.execute(
        select(InvestorHolding.units_before, InvestorHolding.units_after)
        .join(Transaction, Transaction.id == InvestorHolding.transaction_id)
        .order_by(Transaction.transaction_date)
    ).all()
    assert [(Decimal(b), Decimal(a)) for b, a in holdings] == [
        (Decimal(0), Decimal(100)),
        (Decimal(100), Decimal(60)),
        (Decimal(60), Decimal(40)),
    ]

    report = verify_transaction_counts(runtime)
    assert report.consistent
    assert report.matched == 1

    events = {e.step: e for e in get_audit_log(urs_db, run_id="run-1")}
    assert set(events) == {step.name for step in ALL_STEPS}
    assert all(e.actor_id == "test-runner" and e.action == "migration.step.completed" for e in events.values())
    assert events["transactions"].summary["success"] == 3


def test_rerunning_every_step_changes_nothing(runtime, siar, urs_db: Session):
    _seed_single_investor(siar)
    run_steps(runtime, ALL_STEPS, actor_id="test-runner")

    def snapshot():
        urs_db.expire_all()
        return (
            sorted((t.external_code, t.id) for t in urs_db.execute(select(Transaction)).scalars()),
            sorted(h.transaction_id for h in urs_db.execute(select(InvestorHolding)).scalars()),
        )

    before = snapshot()
    run_steps(runtime, ALL_STEPS, actor_id="test-runner")
    assert snapshot() == before
