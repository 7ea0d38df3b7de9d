from __future__ import annotations

import datetime as dt

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from urs.domain.migration.services.missing import (
    find_missing_transaction_ids,
    import_missing_transactions,
    verify_missing_transactions,
)
from urs.domain.migration.services.references import import_references
from urs.domain.migration.services.transactions import import_transactions
from urs.domain.registry.models.transactions import Transaction


def _count(urs_db: Session) -> int:
    return urs_db.execute(select(func.count()).select_from(Transaction)).scalar_one()


def test_reconciler_converges_after_transaction_import(runtime, siar, urs_db: Session):
    siar.product(1)
    siar.customer(10, "Alice")
    siar.customer(11, "Bob")
    for tx_id in range(1, 4):
        siar.transaction(tx_id, 10, day=dt.date(2024, 1, tx_id))
    siar.commit()
    import_references(runtime)
    import_transactions(runtime)

    # Rows that appear in SIAR after the main import (late approvals, backdated entries).
    siar.transaction(4, 11, category="SWTOT", units="10")
    siar.transaction(5, 11, category="SWTIN", units="10", source_id=4)
    siar.transaction(6, 10, category="RED", units="5", day=dt.date(2023, 12, 31))
    siar.transaction(7, 10, category="CASHD")
    siar.commit()

    missing, siar_total, urs_total = find_missing_transaction_ids(runtime)
    assert missing == [4, 5, 6]
    assert (siar_total, urs_total) == (6, 3)

    summary = import_missing_transactions(runtime)

    assert summary.succeeded == 3
    assert summary.extra["verification"]["still_missing"] == 0
    assert _count(urs_db) == 6
    links = dict(urs_db.execute(select(Transaction.external_code, Transaction.source_transaction_id)).all())
    ids = dict(urs_db.execute(select(Transaction.external_code, Transaction.id)).all())
    assert links["SIAR-5"] == ids["SIAR-4"]

    report = verify_missing_transactions(runtime)
    assert report.complete

    again = import_missing_transactions(runtime)
    assert again.succeeded == 0
    assert _count(urs_db) == 6


def test_reconciler_reports_rows_that_cannot_be_imported(runtime, siar, urs_db: Session):
    siar.product(1)
    siar.customer(10, "Alice")
    siar.transaction(1, 10)
    siar.transaction(2, 10, NAVDate=None)
    siar.commit()
    import_references(runtime)

    summary = import_missing_transactions(runtime)

    assert summary.succeeded == 1
    assert summary.skipped == 1
    report = verify_missing_transactions(runtime)
    assert report.missing == [2]
    assert report.as_dict() == {"siar_total": 2, "urs_total": 1, "still_missing": 1}
