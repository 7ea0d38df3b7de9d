from __future__ import annotations

import datetime as dt
import os
import sys
from collections.abc import Generator
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# Make the repository root importable regardless of pytest import mode.
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from urs.core.db.base import Base
from urs.core.db.session import import_model_modules
from urs.domain.migration.runtime import MigrationRuntime
from urs.domain.siar.models import (
    TAgent,
    TAgentCustomer,
    TAgentLevel,
    TCustomer,
    TNAV,
    TProduct,
    TProductFeeByDate,
    TRefBank,
    TRefBankBranch,
    TReferenceDetail,
    TReferenceGroup,
    TSharingFee,
    TSharingFeeRule,
    TSubAccount,
    TTransaction,
    SiarBase,
)

# Ensure model modules are imported so Base.metadata is complete.
import_model_modules()

TODAY = dt.date(2024, 6, 30)


def _memory_engine():
    return create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


@pytest.fixture()
def urs_engine():
    engine = _memory_engine()
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture()
def siar_engine():
    engine = _memory_engine()
    SiarBase.metadata.create_all(engine)
    return engine


@pytest.fixture()
def urs_db(urs_engine) -> Generator[Session, None, None]:
    TestingSessionLocal = sessionmaker(bind=urs_engine, autoflush=False, autocommit=False, class_=Session)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def siar_db(siar_engine) -> Generator[Session, None, None]:
    TestingSessionLocal = sessionmaker(bind=siar_engine, autoflush=False, autocommit=False, class_=Session)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def runtime(urs_engine, siar_engine) -> MigrationRuntime:
    # In-memory SQLite shares one connection, so steps run their units inline.
    return MigrationRuntime(
        urs_engine=urs_engine,
        siar_engine=siar_engine,
        page_size=2,
        parallel_limit=1,
        today=TODAY,
    )


class SiarSeeder:
    """Builds legacy SIAR rows with sensible defaults; call ``commit()`` before running a step."""

    def __init__(self, db: Session):
        self.db = db

    def commit(self) -> None:
        self.db.commit()

    def product(self, product_id: int = 1, code: str = "EQF", name: str = "Equity Fund", **kw) -> TProduct:
        values = dict(
            IDProduct=product_id,
            ProductCode=code,
            ProductName=name,
            IDCategory="EQUITY",
            IDStatus=True,
            SubsMin=Decimal("100000"),
            RedMinAmount=Decimal("50000"),
            MinUnitSwitching=Decimal("10"),
            SubSettle=0,
            RedSettle=3,
            SwtSettle=3,
            InitialUnit=Decimal("1000"),
            ManagementFee=Decimal("1.5"),
            StartDate=dt.date(2020, 1, 1),
            IsSharia=False,
            AllowSubscription=True,
            AllowRedemption=True,
            AllowSwitching=True,
        )
        values.update(kw)
        row = TProduct(**values)
        self.db.add(row)
        return row

    def customer(
        self,
        customer_id: int,
        first_name: str = "Alice",
        *,
        agent_id: int | None = None,
        agent_since: dt.datetime = dt.datetime(2021, 1, 1, 9, 30),
        account_no: str | None = None,
        **kw,
    ) -> TCustomer:
        values = dict(
            IDCustomer=customer_id,
            FirstName=first_name,
            LastName="Tan",
            Email=f"{first_name.lower()}@example.com",
            MobilePhone="0811111111",
            UnitHolderIDNo=f"SID{customer_id:05d}",
            InvestorType="IND",
        )
        values.update(kw)
        row = TCustomer(**values)
        self.db.add(row)
        self.db.add(TSubAccount(IDSubAccount=customer_id, IDCustomer=customer_id, NoAccount=account_no or f"ACC-{customer_id}"))
        if agent_id is not None:
            self.db.add(TAgentCustomer(IDCustomer=customer_id, AgentId=agent_id, EffDate=agent_since))
        return row

    def transaction(
        self,
        tx_id: int,
        customer_id: int,
        *,
        category: str = "SUB",
        units: str | Decimal = "100",
        day: dt.date = dt.date(2024, 1, 2),
        product_id: int = 1,
        source_id: int | None = None,
        status: str = "APPROVED",
        with_sub_account: bool = True,
        **kw,
    ) -> TTransaction:
        units = Decimal(units)
        values = dict(
            IDTransaction=tx_id,
            IDCustomer=customer_id,
            IDSubAccount=customer_id if with_sub_account else None,
            IDProduct=product_id,
            IDStatus=status,
            IDCategory=category,
            TransactionDate=day,
            NAVDate=day,
            NAVValue=Decimal("1000"),
            Units=units,
            SettDate=day + dt.timedelta(days=3),
            Amount=units * 1000,
            NetAmount=units * 1000,
            Fee=Decimal("0"),
            IsRedemAll=False,
            ReferenceNo=f"REF-{tx_id}",
            PaymentMethod=None,
            SourceIDTransaction=source_id,
        )
        values.update(kw)
        row = TTransaction(**values)
        self.db.add(row)
        return row

    def nav(self, nav_id: int, product_id: int, day: dt.date, value: str = "1000", **kw) -> TNAV:
        values = dict(
            IDNav=nav_id,
            IDProduct=product_id,
            NAVDate=day,
            Value=Decimal(value),
            TotalNetAsset=Decimal("1000000000"),
            OutstandingUnit=Decimal("1000000"),
            sysRecStatus=1,
        )
        values.update(kw)
        row = TNAV(**values)
        self.db.add(row)
        return row

    def agent_level(self, level_id: int, name: str, code_length: int = 0) -> TAgentLevel:
        row = TAgentLevel(AgentLevelID=level_id, AgentLevelName=name, CodeLength=code_length)
        self.db.add(row)
        return row

    def agent(self, agent_id: int, name: str, *, level_id: int | None = None, status: str = "ACTIVE") -> TAgent:
        row = TAgent(AgentID=agent_id, NameAgent=name, AgentLevelID=level_id, IDStatus=status)
        self.db.add(row)
        return row

    def bank(self, bank_id: int, name: str, bi_code: str | None = None, branches: tuple[str, ...] = ()) -> TRefBank:
        row = TRefBank(IDBank=bank_id, BankName=name, BIMemberCode=bi_code)
        self.db.add(row)
        for offset, branch in enumerate(branches, start=1):
            self.db.add(TRefBankBranch(IDBankBranch=bank_id * 100 + offset, IDBank=bank_id, BranchName=branch))
        return row

    def reference(self, detail_id: int, group: str, value: str, display: str, group_id: int = 1) -> TReferenceDetail:
        if self.db.get(TReferenceGroup, group_id) is None:
            self.db.add(TReferenceGroup(IDReferenceGroup=group_id, GroupName=group))
            self.db.flush()
        row = TReferenceDetail(
            IDReferenceDetail=detail_id,
            IDReferenceGroup=group_id,
            MainValue=value,
            Display=display,
        )
        self.db.add(row)
        return row

    def fee(
        self,
        fee_id: int,
        product_id: int,
        *,
        effective: dt.date,
        rules: tuple[tuple[int | None, str], ...] = ((1, "1.5"),),
        days: int | None = 365,
        fee_type: str = "MGT",
        active: bool = True,
        amount_code: str = "PC",
    ) -> TSharingFee:
        fee = TSharingFee(FeeID=fee_id, FeeName=f"Fee {fee_id}", FeeDays=days, FeeType="P")
        self.db.add(fee)
        self.db.add(
            TProductFeeByDate(
                IDProduct=product_id,
                Type=fee_type,
                FeeID=fee_id,
                EffectiveDate=effective,
                IsActive=active,
                sysRecStatus=1,
            )
        )
        for pos, amount in rules:
            self.db.add(
                TSharingFeeRule(
                    FeeID=fee_id,
                    FeePos=pos,
                    FeeAmount=Decimal(amount),
                    FeeAmountCode=amount_code,
                )
            )
        return fee


@pytest.fixture()
def siar(siar_db: Session) -> SiarSeeder:
    return SiarSeeder(siar_db)


@pytest.fixture()
def seeder_cls() -> type[SiarSeeder]:
    return SiarSeeder
