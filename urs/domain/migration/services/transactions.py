from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any, Sequence

import structlog
from sqlalchemy import ColumnElement, and_, func, or_, select
from sqlalchemy.orm import Session

from urs.core.db.models import Fund, Investor
from urs.domain.migration.batching import run_bounded
from urs.domain.migration.bulk import insert_skip_duplicates
from urs.domain.migration.results import RecordOutcome, StepSummary
from urs.domain.migration.runtime import MigrationRuntime
from urs.domain.registry.models.transactions import InvestorAccount, Transaction
from urs.domain.siar.models import APPROVED, CASH_DIVIDEND, SWITCH_IN, TCustomer, TTransaction
from urs.shared.enums import TransactionType
from urs.shared.utils import SIAR_PREFIX, blank_to_none, siar_code

log = structlog.get_logger(__name__)

CATEGORY_TYPES: dict[str, TransactionType] = {
    "SUB": TransactionType.SUBSCRIPTION,
    "ADJUP": TransactionType.SUBSCRIPTION,
    "RED": TransactionType.REDEMPTION,
    "ADJDN": TransactionType.REDEMPTION,
    "SWTIN": TransactionType.SWITCHING_IN,
    "SWTOT": TransactionType.SWITCHING_OUT,
}

REQUIRED_FIELDS = ("TransactionDate", "NAVDate", "NAVValue", "Units", "SettDate")


def eligible_transactions() -> ColumnElement[bool]:
    """Approved SIAR transactions, cash dividends excluded."""
    return and_(TTransaction.IDStatus == APPROVED, TTransaction.IDCategory != CASH_DIVIDEND)


def _ensure_accounts(db: Session, wanted: dict[tuple[uuid.UUID, int], str | None]) -> dict[tuple[uuid.UUID, int], int]:
    """Create missing investor accounts for the given (investor_id, fund_id) pairs and return their ids."""
    if not wanted:
        return {}

    def lookup() -> dict[tuple[uuid.UUID, int], int]:
        stmt = select(InvestorAccount.investor_id, InvestorAccount.fund_id, InvestorAccount.id).where(
            or_(*(and_(InvestorAccount.investor_id == inv, InvestorAccount.fund_id == fund) for inv, fund in wanted))
        )
        return {(inv, fund): acc_id for inv, fund, acc_id in db.execute(stmt).all()}

    existing = lookup()
    new_rows = [
        {"investor_id": inv, "fund_id": fund, "account_number": account_number}
        for (inv, fund), account_number in wanted.items()
        if (inv, fund) not in existing
    ]
    if new_rows:
        created = insert_skip_duplicates(db, InvestorAccount, new_rows, conflict_columns=("investor_id", "fund_id"))
        log.info("transactions.accounts_created", created=created)
        existing = lookup()
    return existing


def import_transaction_batch(db: Session, rows: Sequence[TTransaction]) -> list[RecordOutcome]:
    """Validate, link and bulk insert one page of SIAR transactions.

    Rows already present in URS (by external code) are silently left alone by the
    insert. The caller owns the commit.
    """
    if not rows:
        return []

    investor_codes = {siar_code(r.IDCustomer) for r in rows}
    fund_codes = {siar_code(r.IDProduct) for r in rows if r.IDProduct is not None}
    partner_codes = {siar_code(r.SourceIDTransaction) for r in rows if r.SourceIDTransaction}

    investors = dict(
        db.execute(select(Investor.external_code, Investor.id).where(Investor.external_code.in_(list(investor_codes)))).all()
    )
    funds = dict(db.execute(select(Fund.external_code, Fund.id).where(Fund.external_code.in_(list(fund_codes)))).all())
    partners: dict[str, int] = {}
    if partner_codes:
        partners = dict(
            db.execute(
                select(Transaction.external_code, Transaction.id).where(Transaction.external_code.in_(list(partner_codes)))
            ).all()
        )

    outcomes: list[RecordOutcome] = []
    pending: list[tuple[str, dict[str, Any]]] = []
    accounts_wanted: dict[tuple[uuid.UUID, int], str | None] = {}

    for row in rows:
        key = siar_code(row.IDTransaction)

        if row.TSubAccount is None:
            log.warning("transactions.no_sub_account", transaction=key, customer=row.IDCustomer)
            outcomes.append(RecordOutcome.unresolved(key, "no sub account"))
            continue

        investor_id = investors.get(siar_code(row.IDCustomer))
        if investor_id is None:
            log.warning("transactions.investor_not_found", transaction=key, investor=siar_code(row.IDCustomer))
            outcomes.append(RecordOutcome.unresolved(key, f"investor not found ({siar_code(row.IDCustomer)})"))
            continue

        fund_id = funds.get(siar_code(row.IDProduct))
        if fund_id is None:
            log.warning("transactions.fund_not_found", transaction=key, fund=siar_code(row.IDProduct))
            outcomes.append(RecordOutcome.unresolved(key, f"fund not found ({siar_code(row.IDProduct)})"))
            continue

        transaction_type = CATEGORY_TYPES.get(row.IDCategory or "")
        if transaction_type is None:
            log.warning("transactions.unsupported_category", transaction=key, category=row.IDCategory)
            outcomes.append(RecordOutcome.missing_field(key, f"unsupported category {row.IDCategory!r}"))
            continue

        missing = [name for name in REQUIRED_FIELDS if getattr(row, name) is None]
        if missing:
            log.warning("transactions.missing_fields", transaction=key, fields=missing)
            outcomes.append(RecordOutcome.missing_field(key, ", ".join(missing)))
            continue

        accounts_wanted.setdefault((investor_id, fund_id), row.TSubAccount.NoAccount)
        pending.append(
            (
                key,
                {
                    "external_code": key,
                    "transaction_type": transaction_type,
                    "investor_id": investor_id,
                    "fund_id": fund_id,
                    "agent_id": None,
                    "reference_no": blank_to_none(row.ReferenceNo),
                    "transaction_date": row.TransactionDate,
                    "nav_date": row.NAVDate,
                    "nav_per_unit": row.NAVValue,
                    "units": row.Units,
                    "settlement_date": row.SettDate,
                    "amount": row.Amount or 0,
                    "net_amount": row.NetAmount or 0,
                    "fee": row.Fee or 0,
                    "is_redeem_all": bool(row.IsRedemAll),
                    "payment_method_id": row.PaymentMethod or "TRS",
                    # Partners imported later are linked by the backfill pass.
                    "source_transaction_id": partners.get(siar_code(row.SourceIDTransaction))
                    if row.SourceIDTransaction
                    else None,
                },
            )
        )

    if not pending:
        return outcomes

    accounts = _ensure_accounts(db, accounts_wanted)
    values = []
    for _, data in pending:
        data["investor_account_id"] = accounts.get((data["investor_id"], data["fund_id"]))
        values.append(data)

    inserted = insert_skip_duplicates(db, Transaction, values, conflict_columns=("external_code",))
    log.debug("transactions.batch_inserted", candidates=len(values), inserted=inserted)
    outcomes.extend(RecordOutcome.success(key) for key, _ in pending)
    return outcomes


def _import_customer(runtime: MigrationRuntime, customer_id: int, name: str | None) -> StepSummary:
    summary = StepSummary(step="transactions")
    bound = log.bind(customer=customer_id, name=name)
    try:
        with runtime.urs() as urs:
            investor = urs.execute(
                select(Investor.id).where(Investor.external_code == siar_code(customer_id))
            ).scalar_one_or_none()
        if investor is None:
            bound.warning("transactions.investor_not_found")
            summary.add(RecordOutcome.failed(siar_code(customer_id), "investor not found"))
            return summary

        last_id: int | None = None
        while True:
            with runtime.siar() as siar:
                stmt = select(TTransaction).where(eligible_transactions(), TTransaction.IDCustomer == customer_id)
                if last_id is not None:
                    stmt = stmt.where(TTransaction.IDTransaction > last_id)
                page = list(
                    siar.execute(stmt.order_by(TTransaction.IDTransaction).limit(runtime.page_size)).scalars().unique()
                )
            if not page:
                break

            with runtime.urs() as urs:
                summary.extend(import_transaction_batch(urs, page))
                urs.commit()
            last_id = page[-1].IDTransaction
            if len(page) < runtime.page_size:
                break
    except Exception as exc:
        bound.exception("transactions.customer_failed")
        summary.add(RecordOutcome.failed(siar_code(customer_id), str(exc)))
    return summary


def update_source_transaction_ids(runtime: MigrationRuntime) -> int:
    """Link SWITCHING_IN rows to their partners once both sides exist in URS.

    Only rows whose link is still empty are touched. Returns the number of links set.
    """
    updated = 0
    last_id: int | None = None
    while True:
        with runtime.siar() as siar:
            stmt = select(TTransaction.IDTransaction, TTransaction.SourceIDTransaction).where(
                TTransaction.IDStatus == APPROVED,
                TTransaction.IDCategory == SWITCH_IN,
                TTransaction.SourceIDTransaction.is_not(None),
            )
            if last_id is not None:
                stmt = stmt.where(TTransaction.IDTransaction > last_id)
            page = siar.execute(stmt.order_by(TTransaction.IDTransaction).limit(runtime.page_size)).all()
        if not page:
            break

        pairs = {siar_code(tx_id): siar_code(source_id) for tx_id, source_id in page}
        with runtime.urs() as urs:
            targets = urs.execute(
                select(Transaction).where(
                    Transaction.external_code.in_(list(pairs)),
                    Transaction.source_transaction_id.is_(None),
                )
            ).scalars().all()
            if targets:
                partner_ids = dict(
                    urs.execute(
                        select(Transaction.external_code, Transaction.id).where(
                            Transaction.external_code.in_([pairs[t.external_code] for t in targets])
                        )
                    ).all()
                )
                for target in targets:
                    partner_id = partner_ids.get(pairs[target.external_code])
                    if partner_id is None:
                        continue
                    target.source_transaction_id = partner_id
                    updated += 1
                urs.commit()

        last_id = page[-1][0]
        if len(page) < runtime.page_size:
            break

    log.info("transactions.source_links_updated", updated=updated)
    return updated


@dataclass
class TransactionCountReport:
    """Per-customer comparison of eligible SIAR transactions against URS rows."""

    matched: int = 0
    only_in_siar: list[tuple[str, int]] = field(default_factory=list)
    only_in_urs: list[tuple[str, int]] = field(default_factory=list)
    mismatches: list[tuple[str, int, int]] = field(default_factory=list)
    siar_total: int = 0
    urs_total: int = 0

    @property
    def consistent(self) -> bool:
        return not (self.only_in_siar or self.only_in_urs or self.mismatches)

    def as_dict(self) -> dict[str, Any]:
        return {
            "matched": self.matched,
            "only_in_siar": len(self.only_in_siar),
            "only_in_urs": len(self.only_in_urs),
            "mismatches": len(self.mismatches),
            "siar_total": self.siar_total,
            "urs_total": self.urs_total,
        }


def verify_transaction_counts(runtime: MigrationRuntime) -> TransactionCountReport:
    with runtime.siar() as siar:
        siar_rows = siar.execute(
            select(TTransaction.IDCustomer, TCustomer.FirstName, func.count(TTransaction.IDTransaction))
            .join(TCustomer, TCustomer.IDCustomer == TTransaction.IDCustomer)
            .where(eligible_transactions())
            .group_by(TTransaction.IDCustomer, TCustomer.FirstName)
        ).all()
    with runtime.urs() as urs:
        urs_rows = urs.execute(
            select(Investor.external_code, Investor.first_name, func.count(Transaction.id))
            .join(Investor, Investor.id == Transaction.investor_id)
            .where(Investor.external_code.startswith(SIAR_PREFIX))
            .group_by(Investor.external_code, Investor.first_name)
        ).all()

    siar_counts = {siar_code(cid): (name or "", int(n)) for cid, name, n in siar_rows}
    urs_counts = {code: (name or "", int(n)) for code, name, n in urs_rows}

    report = TransactionCountReport(
        siar_total=sum(n for _, n in siar_counts.values()),
        urs_total=sum(n for _, n in urs_counts.values()),
    )
    for code, (name, siar_n) in sorted(siar_counts.items()):
        if code not in urs_counts:
            report.only_in_siar.append((f"{code} {name}".strip(), siar_n))
            continue
        urs_n = urs_counts[code][1]
        if urs_n == siar_n:
            report.matched += 1
        else:
            report.mismatches.append((f"{code} {name}".strip(), siar_n, urs_n))
    for code, (name, urs_n) in sorted(urs_counts.items()):
        if code not in siar_counts:
            report.only_in_urs.append((f"{code} {name}".strip(), urs_n))

    log.info("transactions.verify", **report.as_dict())
    for label, count in report.only_in_siar[:10]:
        log.warning("transactions.verify.only_in_siar", customer=label, siar=count)
    for label, count in report.only_in_urs[:10]:
        log.warning("transactions.verify.only_in_urs", customer=label, urs=count)
    for label, siar_n, urs_n in sorted(report.mismatches, key=lambda m: abs(m[1] - m[2]), reverse=True)[:20]:
        log.warning("transactions.verify.mismatch", customer=label, siar=siar_n, urs=urs_n, diff=siar_n - urs_n)
    return report


def import_transactions(runtime: MigrationRuntime) -> StepSummary:
    """Import every eligible SIAR transaction, customer by customer."""
    with runtime.siar() as siar:
        customers = siar.execute(
            select(TTransaction.IDCustomer, TCustomer.FirstName, func.count(TTransaction.IDTransaction).label("n"))
            .join(TCustomer, TCustomer.IDCustomer == TTransaction.IDCustomer)
            .where(eligible_transactions())
            .group_by(TTransaction.IDCustomer, TCustomer.FirstName)
            .order_by(func.count(TTransaction.IDTransaction).desc(), TTransaction.IDCustomer)
        ).all()

    log.info("transactions.customers", total=len(customers))
    summary = StepSummary(step="transactions")
    for done, results in run_bounded(
        customers,
        lambda c: _import_customer(runtime, c[0], c[1]),
        limit=runtime.parallel_limit,
    ):
        for result in results:
            summary.merge(result)
        log.info("transactions.progress", done=done, total=len(customers))

    summary.extra["source_links_updated"] = update_source_transaction_ids(runtime)
    summary.extra["verification"] = verify_transaction_counts(runtime).as_dict()
    return summary
