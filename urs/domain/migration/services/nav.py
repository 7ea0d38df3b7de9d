from __future__ import annotations

import datetime as dt
from typing import Any

import structlog
from sqlalchemy import and_, insert, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from urs.core.db.models import Fund
from urs.domain.migration import bulk
from urs.domain.migration.results import RecordOutcome, StepSummary
from urs.domain.migration.runtime import MigrationRuntime
from urs.domain.registry.models.navs import FundNav
from urs.domain.siar.models import TNAV
from urs.shared.utils import SIAR_PREFIX, chunked, siar_id_from_code

log = structlog.get_logger(__name__)


def _active_navs():
    return and_(TNAV.sysRecStatus == 1, TNAV.NAVDate.is_not(None), TNAV.IDProduct.is_not(None))


def _fund_ids_by_product(urs: Session) -> dict[str, int]:
    rows = urs.execute(select(Fund.external_code, Fund.id).where(Fund.external_code.startswith(SIAR_PREFIX))).all()
    return {siar_id_from_code(code): fund_id for code, fund_id in rows}


def _insert_rows_one_by_one(urs: Session, rows: list[dict[str, Any]], summary: StepSummary) -> None:
    for row in rows:
        key = f"{row['fund_id']}:{row['date'].isoformat()}"
        try:
            with urs.begin_nested():
                urs.execute(insert(FundNav).values(**row))
            summary.add(RecordOutcome.success(key))
        except SQLAlchemyError as exc:
            log.warning("nav.row_failed", fund_id=row["fund_id"], date=row["date"].isoformat(), error=str(exc))
            summary.add(RecordOutcome.failed(key, str(exc)))


def import_navs(runtime: MigrationRuntime) -> StepSummary:
    """Copy active SIAR NAV rows whose (fund, date) is not yet in URS."""
    summary = StepSummary(step="nav")

    with runtime.siar() as siar:
        siar_navs = list(
            siar.execute(
                select(TNAV).where(_active_navs()).order_by(TNAV.IDProduct, TNAV.NAVDate, TNAV.IDNav)
            ).scalars()
        )
    with runtime.urs() as urs:
        existing = {tuple(row) for row in urs.execute(select(FundNav.fund_id, FundNav.date))}
        fund_ids = _fund_ids_by_product(urs)
    log.info("nav.counts", siar=len(siar_navs), urs=len(existing), funds=len(fund_ids))

    missing: list[dict[str, Any]] = []
    seen: set[tuple[int, dt.date]] = set()
    for nav in siar_navs:
        fund_id = fund_ids.get(str(nav.IDProduct))
        if fund_id is None:
            log.warning("nav.fund_not_found", nav=nav.IDNav, product=nav.IDProduct)
            summary.add(RecordOutcome.unresolved(str(nav.IDNav), f"fund not found for product {nav.IDProduct}"))
            continue
        key = (fund_id, nav.NAVDate)
        if key in existing or key in seen:
            continue
        seen.add(key)
        missing.append(
            {
                "fund_id": fund_id,
                "date": nav.NAVDate,
                "nav": nav.TotalNetAsset or 0,
                "nav_per_unit": nav.Value or 0,
                "outstanding_unit": nav.OutstandingUnit or 0,
            }
        )

    log.info("nav.missing", missing=len(missing))
    with runtime.urs() as urs:
        for number, batch in enumerate(chunked(missing, runtime.page_size), start=1):
            batch = list(batch)
            try:
                with urs.begin_nested():
                    bulk.insert_skip_duplicates(urs, FundNav, batch, conflict_columns=("fund_id", "date"))
                summary.extend(RecordOutcome.success(f"{r['fund_id']}:{r['date'].isoformat()}") for r in batch)
            except SQLAlchemyError:
                log.exception("nav.batch_failed", batch=number, size=len(batch))
                _insert_rows_one_by_one(urs, batch, summary)
            urs.commit()
            log.info("nav.progress", batch=number, imported=summary.succeeded)

    summary.extra["missing_after_import"] = len(verify_navs(runtime))
    return summary


def verify_navs(runtime: MigrationRuntime) -> list[tuple[int, dt.date]]:
    """Return the (IDProduct, NAVDate) pairs that still have no URS row."""
    with runtime.siar() as siar:
        pairs = siar.execute(
            select(TNAV.IDProduct, TNAV.NAVDate)
            .where(_active_navs())
            .distinct()
            .order_by(TNAV.IDProduct, TNAV.NAVDate)
        ).all()
    with runtime.urs() as urs:
        existing = {tuple(row) for row in urs.execute(select(FundNav.fund_id, FundNav.date))}
        fund_ids = _fund_ids_by_product(urs)

    missing = [
        (product, nav_date)
        for product, nav_date in pairs
        if (fund_ids.get(str(product)), nav_date) not in existing
    ]
    if missing:
        log.warning(
            "nav.verify.missing",
            missing=len(missing),
            sample=[f"{product}@{nav_date.isoformat()}" for product, nav_date in missing[:10]],
        )
    else:
        log.info("nav.verify.complete", siar=len(pairs))
    return missing
