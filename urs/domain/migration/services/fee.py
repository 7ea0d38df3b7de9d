from __future__ import annotations

import datetime as dt
from typing import Any

import structlog
from sqlalchemy import func, select
from sqlalchemy.engine import Row
from sqlalchemy.orm import Session

from urs.core.db.models import Fund
from urs.domain.migration.results import RecordOutcome, StepSummary
from urs.domain.migration.runtime import MigrationRuntime
from urs.domain.siar.models import MANAGEMENT_FEE, TProduct, TProductFeeByDate, TSharingFee, TSharingFeeRule
from urs.shared.utils import SIAR_PREFIX, siar_code

log = structlog.get_logger(__name__)

DEFAULT_VALUATION_BASIS = 365


def load_current_fees(siar: Session, *, today: dt.date, fee_type: str = MANAGEMENT_FEE) -> list[Row[Any]]:
    """Current fee rows per product: the latest active fee link effective on or before ``today``."""
    fee_link = (
        select(
            TProductFeeByDate.IDProduct,
            TProductFeeByDate.Type,
            TProductFeeByDate.FeeID,
            TProductFeeByDate.EffectiveDate,
            func.row_number()
            .over(
                partition_by=(TProductFeeByDate.IDProduct, TProductFeeByDate.Type),
                order_by=TProductFeeByDate.EffectiveDate.desc(),
            )
            .label("rn"),
        )
        .where(
            TProductFeeByDate.IsActive == True,  # noqa: E712
            TProductFeeByDate.sysRecStatus == 1,
            TProductFeeByDate.EffectiveDate <= today,
            TProductFeeByDate.Type == fee_type,
        )
        .subquery("fee_link")
    )

    stmt = (
        select(
            TProduct.IDProduct,
            TProduct.ProductCode,
            TProduct.ProductName,
            fee_link.c.EffectiveDate,
            TSharingFee.FeeDays,
            TSharingFeeRule.FeePos,
            TSharingFeeRule.FeeAmount,
            TSharingFeeRule.FeeAmountCode,
        )
        .select_from(fee_link)
        .join(TProduct, TProduct.IDProduct == fee_link.c.IDProduct)
        .join(TSharingFee, TSharingFee.FeeID == fee_link.c.FeeID)
        .outerjoin(TSharingFeeRule, TSharingFeeRule.FeeID == TSharingFee.FeeID)
        .where(fee_link.c.rn == 1)
        .order_by(TProduct.ProductCode, TSharingFeeRule.FeePos)
    )
    return list(siar.execute(stmt).all())


def pick_fee_per_product(rows: list[Row[Any]]) -> dict[str, Row[Any]]:
    """Keep one rule per product code, preferring the lowest non-null ``FeePos``."""
    chosen: dict[str, Row[Any]] = {}
    for row in rows:
        current = chosen.get(row.ProductCode)
        if current is None:
            chosen[row.ProductCode] = row
        elif row.FeePos is not None and (current.FeePos is None or row.FeePos < current.FeePos):
            chosen[row.ProductCode] = row
    return chosen


def import_management_fees(runtime: MigrationRuntime) -> StepSummary:
    """Write the current management fee rate and day-count basis onto each fund."""
    summary = StepSummary(step="management-fee")

    with runtime.siar() as siar:
        fees = pick_fee_per_product(load_current_fees(siar, today=runtime.as_of()))
    log.info("fee.products", products=len(fees))

    with runtime.urs() as urs:
        funds = list(urs.execute(select(Fund).where(Fund.external_code.startswith(SIAR_PREFIX))).scalars())
        by_code = {f.code: f for f in funds if f.code}
        by_external_code = {f.external_code: f for f in funds}

        for product_code, fee in fees.items():
            fund = by_code.get(product_code) or by_external_code.get(siar_code(fee.IDProduct))
            if fund is None:
                log.warning("fee.fund_not_found", product=product_code, name=fee.ProductName)
                summary.add(RecordOutcome.unresolved(str(product_code), "fund not found"))
                continue

            if fee.FeeAmountCode and fee.FeeAmountCode != "PC":
                log.warning("fee.non_percentage_amount", product=product_code, amount_code=fee.FeeAmountCode)

            fund.management_fee_rate = fee.FeeAmount or 0
            fund.valuation_basis = fee.FeeDays or DEFAULT_VALUATION_BASIS
            log.info(
                "fee.updated",
                fund_id=fund.id,
                product=product_code,
                rate=str(fund.management_fee_rate),
                basis=fund.valuation_basis,
            )
            summary.add(RecordOutcome.success(str(product_code)))
        urs.commit()

    summary.extra["updated"] = summary.succeeded
    summary.extra["skipped"] = summary.skipped
    return summary
