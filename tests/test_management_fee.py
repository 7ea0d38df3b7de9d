from __future__ import annotations

import datetime as dt
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from urs.core.db.models import Fund
from urs.domain.migration.services.fee import import_management_fees, load_current_fees, pick_fee_per_product
from urs.domain.migration.services.references import import_references


def _funds(urs_db: Session) -> dict[str, Fund]:
    urs_db.expire_all()
    return {f.external_code: f for f in urs_db.execute(select(Fund)).scalars()}


def test_latest_effective_fee_with_lowest_position_wins(runtime, siar, urs_db: Session):
    siar.product(1, code="EQF")
    siar.fee(10, 1, effective=dt.date(2023, 1, 1), rules=((1, "2.0"),))
    siar.fee(11, 1, effective=dt.date(2024, 1, 1), rules=((None, "9.9"), (3, "1.75"), (2, "1.25")), days=360)
    # Not yet effective on the run date.
    siar.fee(12, 1, effective=dt.date(2024, 12, 1), rules=((1, "3.0"),))
    siar.commit()
    import_references(runtime)

    summary = import_management_fees(runtime)

    fund = _funds(urs_db)["SIAR-1"]
    assert fund.management_fee_rate == Decimal("1.25")
    assert fund.valuation_basis == 360
    assert summary.extra == {"updated": 1, "skipped": 0}


def test_fund_is_resolved_by_source_id_when_codes_differ(runtime, siar, urs_db: Session):
    siar.product(1, code="EQF")
    siar.product(2, code="BND", name="Bond Fund")
    siar.fee(10, 1, effective=dt.date(2024, 1, 1), rules=((1, "1.5"),), days=None)
    siar.fee(11, 2, effective=dt.date(2024, 1, 1), rules=((1, "0.5"),), amount_code="FX")
    siar.commit()
    import_references(runtime)

    # Fund codes drift in URS; the SIAR-<IDProduct> external code still resolves them.
    for fund in _funds(urs_db).values():
        fund.code = f"URS-{fund.code}"
    urs_db.commit()

    summary = import_management_fees(runtime)

    funds = _funds(urs_db)
    assert funds["SIAR-1"].management_fee_rate == Decimal("1.5")
    assert funds["SIAR-1"].valuation_basis == 365
    assert funds["SIAR-2"].management_fee_rate == Decimal("0.5")
    assert summary.succeeded == 2


def test_inactive_and_other_fee_types_are_ignored(runtime, siar, siar_db: Session, urs_db: Session):
    siar.product(1, code="EQF", ManagementFee=Decimal("0"))
    siar.fee(10, 1, effective=dt.date(2024, 1, 1), rules=((1, "4.0"),), active=False)
    siar.fee(11, 1, effective=dt.date(2024, 1, 1), rules=((1, "0.2"),), fee_type="SUB")
    siar.product(2, code="ORPHAN")
    siar.fee(12, 2, effective=dt.date(2024, 1, 1), rules=((1, "1.0"),))
    siar.commit()

    assert load_current_fees(siar_db, today=dt.date(2024, 6, 30))[0].ProductCode == "ORPHAN"

    import_references(runtime)
    urs_db.delete(_funds(urs_db)["SIAR-2"])
    urs_db.commit()

    summary = import_management_fees(runtime)

    assert _funds(urs_db)["SIAR-1"].management_fee_rate == 0
    assert summary.skipped == 1
    assert summary.succeeded == 0


def test_pick_fee_keeps_first_row_when_positions_are_null():
    class Row:
        def __init__(self, code, pos, amount):
            self.ProductCode = code
            self.FeePos = pos
            self.FeeAmount = amount

    chosen = pick_fee_per_product([Row("A", None, 1), Row("A", None, 2), Row("B", 2, 3), Row("B", 1, 4)])
    assert chosen["A"].FeeAmount == 1
    assert chosen["B"].FeeAmount == 4
