from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Sequence

import structlog
from sqlalchemy import select

from urs.domain.migration.batching import run_bounded
from urs.domain.migration.results import RecordOutcome, StepSummary
from urs.domain.migration.runtime import MigrationRuntime
from urs.domain.migration.services.transactions import (
    eligible_transactions,
    import_transaction_batch,
    update_source_transaction_ids,
)
from urs.domain.registry.models.transactions import Transaction
from urs.domain.siar.models import TTransaction
from urs.shared.utils import SIAR_PREFIX, chunked, siar_id_from_code

log = structlog.get_logger(__name__)


def find_missing_transaction_ids(runtime: MigrationRuntime) -> tuple[list[int], int, int]:
    """Return (missing SIAR ids, SIAR total, URS total) for eligible transactions."""
    with runtime.siar() as siar:
        siar_ids = list(
            siar.execute(
                select(TTransaction.IDTransaction).where(eligible_transactions()).order_by(TTransaction.IDTransaction)
            ).scalars()
        )
    with runtime.urs() as urs:
        codes = urs.execute(
            select(Transaction.external_code).where(Transaction.external_code.startswith(SIAR_PREFIX))
        ).scalars()
        imported = {siar_id_from_code(code) for code in codes}

    missing = [tx_id for tx_id in siar_ids if str(tx_id) not in imported]
    return missing, len(siar_ids), len(imported)


def _import_chunk(runtime: MigrationRuntime, rows: Sequence[TTransaction]) -> list[RecordOutcome]:
    try:
        with runtime.urs() as urs:
            outcomes = import_transaction_batch(urs, rows)
            urs.commit()
        return outcomes
    except Exception as exc:
        log.exception("missing.chunk_failed", first=rows[0].IDTransaction, size=len(rows))
        return [RecordOutcome.failed(f"{SIAR_PREFIX}{r.IDTransaction}", str(exc)) for r in rows]


@dataclass
class CompletenessReport:
    siar_total: int
    urs_total: int
    missing: list[int] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.missing

    def as_dict(self) -> dict[str, Any]:
        return {"siar_total": self.siar_total, "urs_total": self.urs_total, "still_missing": len(self.missing)}


def verify_missing_transactions(runtime: MigrationRuntime) -> CompletenessReport:
    missing, siar_total, urs_total = find_missing_transaction_ids(runtime)
    report = CompletenessReport(siar_total=siar_total, urs_total=urs_total, missing=missing)
    if report.complete:
        log.info("missing.verify.complete", **report.as_dict())
    else:
        shown = ", ".join(str(i) for i in missing[:20])
        if len(missing) > 20:
            shown += "..."
        log.warning("missing.verify.incomplete", ids=shown, **report.as_dict())
    return report


def import_missing_transactions(runtime: MigrationRuntime) -> StepSummary:
    """Import every eligible SIAR transaction that has no URS counterpart yet."""
    summary = StepSummary(step="missing-transactions")
    missing, siar_total, urs_total = find_missing_transaction_ids(runtime)
    log.info("missing.found", missing=len(missing), siar_total=siar_total, urs_total=urs_total)

    total_pages = math.ceil(len(missing) / runtime.page_size) if missing else 0
    for page_number, page_ids in enumerate(chunked(missing, runtime.page_size), start=1):
        with runtime.siar() as siar:
            rows = list(
                siar.execute(
                    select(TTransaction)
                    .where(TTransaction.IDTransaction.in_(list(page_ids)))
                    .order_by(TTransaction.IDTransaction)
                ).scalars()
            )
        log.info("missing.page", page=page_number, pages=total_pages, fetched=len(rows))

        chunk_size = max(1, math.ceil(len(rows) / runtime.parallel_limit))
        chunks = list(chunked(rows, chunk_size))
        for _, results in run_bounded(chunks, lambda c: _import_chunk(runtime, c), limit=runtime.parallel_limit):
            for outcomes in results:
                summary.extend(outcomes)

    summary.extra["source_links_updated"] = update_source_transaction_ids(runtime)
    summary.extra["verification"] = verify_missing_transactions(runtime).as_dict()
    return summary
