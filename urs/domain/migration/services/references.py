from __future__ import annotations

from typing import Any

import structlog
from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from urs.core.db.models import Fund, Investor
from urs.domain.migration.results import RecordOutcome, StepSummary
from urs.domain.migration.runtime import MigrationRuntime
from urs.domain.registry.models.references import Agent, AgentInvestor, AgentLevel, Bank, BankBranch, Reference
from urs.domain.siar.models import (
    TAgent,
    TAgentLevel,
    TCustomer,
    TProduct,
    TRefBank,
    TReferenceDetail,
)
from urs.shared.enums import MinRestType
from urs.shared.utils import blank_to_none, siar_code

log = structlog.get_logger(__name__)


def _count(db: Session, model: type) -> int:
    return int(db.execute(select(func.count()).select_from(model)).scalar_one())


def _needs_import(siar: Session, urs: Session, source: type, target: type) -> bool:
    source_count = _count(siar, source)
    target_count = _count(urs, target)
    log.info("references.count", entity=target.__tablename__, siar=source_count, urs=target_count)
    return source_count > target_count


def _upsert(
    db: Session,
    model: type,
    *,
    where: dict[str, Any],
    create: dict[str, Any],
    update: dict[str, Any],
):
    existing = db.execute(select(model).filter_by(**where)).scalar_one_or_none()
    if existing is None:
        row = model(**where, **create)
        db.add(row)
        db.flush()
        return row
    for key, value in update.items():
        setattr(existing, key, value)
    db.flush()
    return existing


def import_reference_codes(siar: Session, urs: Session) -> int:
    if not _needs_import(siar, urs, TReferenceDetail, Reference):
        return 0
    imported = 0
    for ref in siar.execute(select(TReferenceDetail).order_by(TReferenceDetail.IDReferenceDetail)).scalars():
        group_name = ref.TReferenceGroup.GroupName.strip()
        code = str(ref.MainValue).strip()
        log.info("references.reference", group=group_name, code=code, display=ref.Display)
        _upsert(
            urs,
            Reference,
            where={"reference_name": group_name, "code": code},
            create={"name": ref.Display},
            update={"name": ref.Display},
        )
        imported += 1
    urs.commit()
    return imported


def import_banks(siar: Session, urs: Session) -> int:
    if not _needs_import(siar, urs, TRefBank, Bank):
        return 0
    imported = 0
    for bank in siar.execute(select(TRefBank).order_by(TRefBank.IDBank)).scalars():
        log.info("references.bank", code=siar_code(bank.IDBank), name=bank.BankName)
        target = _upsert(
            urs,
            Bank,
            where={"code": siar_code(bank.IDBank)},
            create={"name": bank.BankName, "bi_code": bank.BIMemberCode, "is_active": True},
            update={"bi_code": bank.BIMemberCode or None},
        )
        imported += 1
        for branch in bank.TRefBankBranch:
            log.info("references.bank_branch", code=siar_code(branch.IDBankBranch), name=branch.BranchName)
            _upsert(
                urs,
                BankBranch,
                where={"code": siar_code(branch.IDBankBranch)},
                create={"name": branch.BranchName, "bank_id": target.id},
                update={"name": branch.BranchName},
            )
            imported += 1
    urs.commit()
    return imported


def import_agent_levels(siar: Session, urs: Session) -> int:
    if not _needs_import(siar, urs, TAgentLevel, AgentLevel):
        return 0
    imported = 0
    for level in siar.execute(select(TAgentLevel).order_by(TAgentLevel.AgentLevelID)).scalars():
        name = level.AgentLevelName.upper()
        log.info("references.agent_level", name=name)
        _upsert(
            urs,
            AgentLevel,
            where={"name": name},
            create={"tree_level": (level.CodeLength or 0) + 1},
            update={},
        )
        imported += 1
    urs.commit()
    return imported


def import_agents(siar: Session, urs: Session) -> int:
    if not _needs_import(siar, urs, TAgent, Agent):
        return 0

    level_names = {
        lvl.AgentLevelID: lvl.AgentLevelName.upper()
        for lvl in siar.execute(select(TAgentLevel)).scalars()
    }
    level_ids = {lvl.name: lvl.id for lvl in urs.execute(select(AgentLevel)).scalars()}

    imported = 0
    for agent in siar.execute(select(TAgent).order_by(TAgent.AgentID)).scalars():
        code = siar_code(agent.AgentID)
        is_active = agent.IDStatus == "ACTIVE"
        log.info("references.agent", code=code, name=agent.NameAgent)
        _upsert(
            urs,
            Agent,
            where={"code": code},
            create={
                "name": agent.NameAgent or "",
                "agent_level_id": level_ids.get(level_names.get(agent.AgentLevelID, "")),
                "agent_type_id": "1",
                "is_active": is_active,
            },
            update={"name": agent.NameAgent or "", "is_active": is_active},
        )
        imported += 1
    urs.commit()
    return imported


def _fund_values(product: TProduct) -> dict[str, Any]:
    return {
        "name": product.ProductName,
        "code": product.ProductCode,
        "fund_category_id": product.IDCategory,
        "max_red_percentage": 100,
        "max_switch_percentage": 100,
        "min_red": product.RedMinAmount or 0,
        "min_sub": product.SubsMin or 0,
        "min_swin": product.MinUnitSwitching or 0,
        "min_swout": product.MinUnitSwitching or 0,
        "sub_settlement_days": product.SubSettle,
        "red_settlement_days": product.RedSettle,
        "switching_settlement_days": product.SwtSettle,
        "min_rest_red": MinRestType.AMOUNT.value,
        "min_rest_red_amount": product.MinBalanceAfterRedemption or 0,
        "min_rest_switch": MinRestType.AMOUNT.value,
        "min_rest_switch_amount": product.MinBalanceAfterSwitching or 0,
        "initial_nav_per_unit": product.InitialUnit or 0,
        "initial_unit": product.InitialUnit or 0,
        "management_fee_rate": product.ManagementFee or 0,
        "start_date": product.StartDate,
        "end_date": product.EndDate,
        "is_active": bool(product.IDStatus),
        "is_public": True,
        "is_sharia": bool(product.IsSharia),
        "can_subscribe": bool(product.AllowSubscription),
        "can_redeem": bool(product.AllowRedemption),
        "can_switch": bool(product.AllowSwitching),
    }


def import_funds(siar: Session, urs: Session) -> int:
    if not _needs_import(siar, urs, TProduct, Fund):
        return 0
    imported = 0
    for product in siar.execute(select(TProduct).order_by(TProduct.IDProduct)).scalars():
        log.info("references.fund", external_code=siar_code(product.IDProduct), name=product.ProductName)
        # Funds are never rewritten once present: transactions may already reference them.
        _upsert(
            urs,
            Fund,
            where={"external_code": siar_code(product.IDProduct)},
            create=_fund_values(product),
            update={},
        )
        imported += 1
    urs.commit()
    return imported


def import_investors(siar: Session, urs: Session) -> tuple[int, int]:
    """Upsert investors and their first agent assignment. Returns (investors, agent links)."""
    if not _needs_import(siar, urs, TCustomer, Investor):
        return 0, 0

    agents = {a.code: a.id for a in urs.execute(select(Agent)).scalars()}
    customers = siar.execute(
        select(TCustomer).options(selectinload(TCustomer.TAgentCustomer)).order_by(TCustomer.IDCustomer)
    ).scalars()

    imported = links = 0
    for customer in customers:
        values = {
            "first_name": customer.FirstName or "",
            "middle_name": customer.MiddleName,
            "last_name": customer.LastName,
            "email": blank_to_none(customer.Email),
            "phone_number": blank_to_none(customer.MobilePhone),
            "sid": customer.UnitHolderIDNo,
            "investor_type_id": customer.InvestorType,
        }
        log.info("references.investor", external_code=siar_code(customer.IDCustomer), name=customer.FirstName)
        investor = _upsert(
            urs,
            Investor,
            where={"external_code": siar_code(customer.IDCustomer)},
            create=values,
            update=values,
        )
        imported += 1

        if not customer.TAgentCustomer:
            continue
        first = customer.TAgentCustomer[0]
        agent_id = agents.get(siar_code(first.AgentId))
        if agent_id is None:
            log.warning("references.agent_not_found", agent=siar_code(first.AgentId), customer=customer.IDCustomer)
            continue
        _upsert(
            urs,
            AgentInvestor,
            where={"agent_id": agent_id, "investor_id": investor.id},
            create={"effective_date": first.EffDate.date() if first.EffDate else None},
            update={},
        )
        links += 1
    urs.commit()
    return imported, links


def import_references(runtime: MigrationRuntime) -> StepSummary:
    """Copy SIAR lookup data into URS; a no-op for entities whose counts already match."""
    summary = StepSummary(step="references")
    with runtime.siar() as siar, runtime.urs() as urs:
        summary.extra["references"] = import_reference_codes(siar, urs)
        summary.extra["banks"] = import_banks(siar, urs)
        summary.extra["agent_levels"] = import_agent_levels(siar, urs)
        summary.extra["agents"] = import_agents(siar, urs)
        summary.extra["funds"] = import_funds(siar, urs)
        investors, links = import_investors(siar, urs)
        summary.extra["investors"] = investors
        summary.extra["agent_investors"] = links

    total = sum(v for v in summary.extra.values() if isinstance(v, int))
    summary.add(RecordOutcome.success("references", f"{total} rows upserted"))
    log.info("references.completed", **summary.extra)
    return summary
