from __future__ import annotations

import datetime as dt
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from urs.domain.migration.services.holdings import generate_holdings
from urs.domain.migration.services.references import import_references
from urs.domain.migration.services.transactions import import_transactions
from urs.domain.registry.models.transactions import InvestorHolding, Transaction


def _ledger(urs_db: Session) -> list[tuple[str, Decimal, Decimal, Decimal]]:
    urs_db.expire_all()
    rows = urs_db.execute(
        select(Transaction.external_code, InvestorHolding.units_before, InvestorHolding.delta_units, InvestorHolding.units_after)
        .join(InvestorHolding, InvestorHolding.transaction_id == Transaction.id)
        .order_by(Transaction.transaction_date, Transaction.id)
    ).all()
    return [(code, Decimal(b), Decimal(d), Decimal(a)) for code, b, d, a in rows]


def test_holdings_are_running_balances_per_account_and_fund(runtime, siar, urs_db: Session):
    siar.product(1, code="EQF")
    siar.product(2, code="MMF")
    siar.customer(10, "Alice")
    siar.customer(11, "Bob")
    siar.transaction(1, 10, category="SUB", units="100", day=dt.date(2024, 1, 2))
    siar.transaction(2, 10, category="SWTOT", units="30", day=dt.date(2024, 1, 5))
    siar.transaction(3, 10, category="SWTIN", units="3000", product_id=2, day=dt.date(2024, 1, 5), source_id=2)
    siar.transaction(4, 10, category="RED", units="20", day=dt.date(2024, 1, 9))
    siar.transaction(5, 11, category="SUB", units="7", day=dt.date(2024, 1, 3))
    # Same date as SIAR-1: ordering falls back to the URS id.
    siar.transaction(6, 10, category="ADJUP", units="1", day=dt.date(2024, 1, 2))
    siar.commit()
    import_references(runtime)
    import_transactions(runtime)

    summary = generate_holdings(runtime)

    assert summary.extra["created"] == 6
    ledger = {code: (before, delta, after) for code, before, delta, after in _ledger(urs_db)}
    assert ledger["SIAR-1"] == (Decimal(0), Decimal(100), Decimal(100))
    assert ledger["SIAR-6"] == (Decimal(100), Decimal(1), Decimal(101))
    assert ledger["SIAR-2"] == (Decimal(101), Decimal(-30), Decimal(71))
    assert ledger["SIAR-4"] == (Decimal(71), Decimal(-20), Decimal(51))
    assert ledger["SIAR-3"] == (Decimal(0), Decimal(3000), Decimal(3000))
    assert ledger["SIAR-5"] == (Decimal(0), Decimal(7), Decimal(7))

    for before, delta, after in ledger.values():
        assert before + delta == after


def test_holdings_generation_is_idempotent_and_incremental(runtime, siar, urs_db: Session):
    siar.product(1)
    siar.customer(10, "Alice")
    siar.transaction(1, 10, units="10", day=dt.date(2024, 1, 2))
    siar.transaction(2, 10, units="5", day=dt.date(2024, 1, 3))
    siar.commit()
    import_references(runtime)
    import_transactions(runtime)

    generate_holdings(runtime)
    first = _ledger(urs_db)
    assert generate_holdings(runtime).extra["created"] == 0
    assert _ledger(urs_db) == first

    siar.transaction(3, 10, category="RED", units="4", day=dt.date(2024, 1, 10))
    siar.commit()
    import_transactions(runtime)

    assert generate_holdings(runtime).extra["created"] == 1
    assert _ledger(urs_db)[-1] == ("SIAR-3", Decimal(15), Decimal(-4), Decimal(11))
    assert len(urs_db.execute(select(InvestorHolding)).scalars().all()) == 3
