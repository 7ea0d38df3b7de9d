"""Read-only mapping of the legacy SIAR registry tables used by the migration.

Column names mirror the SIAR schema verbatim; only the columns the migration
reads are mapped.
"""

from __future__ import annotations

import datetime as dt
from decimal import Decimal

from sqlalchemy import BigInteger, Boolean, Date, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

# SIAR ids are BIGINT; SQLite only auto-increments INTEGER primary keys.
SiarId = BigInteger().with_variant(Integer(), "sqlite")

APPROVED = "APPROVED"
CASH_DIVIDEND = "CASHD"
SWITCH_IN = "SWTIN"
MANAGEMENT_FEE = "MGT"


class SiarBase(DeclarativeBase):
    pass


class TCustomer(SiarBase):
    __tablename__ = "TCustomer"

    IDCustomer: Mapped[int] = mapped_column(SiarId, primary_key=True)
    FirstName: Mapped[str | None] = mapped_column(String(200))
    MiddleName: Mapped[str | None] = mapped_column(String(200))
    LastName: Mapped[str | None] = mapped_column(String(200))
    Email: Mapped[str | None] = mapped_column(String(320))
    MobilePhone: Mapped[str | None] = mapped_column(String(64))
    UnitHolderIDNo: Mapped[str | None] = mapped_column(String(64))
    InvestorType: Mapped[str | None] = mapped_column(String(32))

    TAgentCustomer: Mapped[list["TAgentCustomer"]] = relationship(order_by="TAgentCustomer.IDAgentCustomer")


class TSubAccount(SiarBase):
    __tablename__ = "TSubAccount"

    IDSubAccount: Mapped[int] = mapped_column(SiarId, primary_key=True)
    IDCustomer: Mapped[int] = mapped_column(ForeignKey("TCustomer.IDCustomer"))
    NoAccount: Mapped[str | None] = mapped_column(String(64))


class TTransaction(SiarBase):
    __tablename__ = "TTransaction"

    IDTransaction: Mapped[int] = mapped_column(SiarId, primary_key=True)
    IDCustomer: Mapped[int] = mapped_column(ForeignKey("TCustomer.IDCustomer"), index=True)
    IDSubAccount: Mapped[int | None] = mapped_column(ForeignKey("TSubAccount.IDSubAccount"))
    IDProduct: Mapped[int | None] = mapped_column(BigInteger)
    IDStatus: Mapped[str | None] = mapped_column(String(20))
    IDCategory: Mapped[str | None] = mapped_column(String(10))

    TransactionDate: Mapped[dt.date | None] = mapped_column(Date)
    NAVDate: Mapped[dt.date | None] = mapped_column(Date)
    NAVValue: Mapped[Decimal | None] = mapped_column(Numeric(24, 8))
    Units: Mapped[Decimal | None] = mapped_column(Numeric(24, 8))
    SettDate: Mapped[dt.date | None] = mapped_column(Date)
    Amount: Mapped[Decimal | None] = mapped_column(Numeric(24, 4))
    NetAmount: Mapped[Decimal | None] = mapped_column(Numeric(24, 4))
    Fee: Mapped[Decimal | None] = mapped_column(Numeric(24, 4))
    IsRedemAll: Mapped[bool | None] = mapped_column(Boolean)
    ReferenceNo: Mapped[str | None] = mapped_column(String(100))
    PaymentMethod: Mapped[str | None] = mapped_column(String(16))
    SourceIDTransaction: Mapped[int | None] = mapped_column(BigInteger)

    TSubAccount: Mapped[TSubAccount | None] = relationship(lazy="joined")


class TProduct(SiarBase):
    __tablename__ = "TProduct"

    IDProduct: Mapped[int] = mapped_column(SiarId, primary_key=True)
    ProductCode: Mapped[str | None] = mapped_column(String(50))
    ProductName: Mapped[str] = mapped_column(String(200))
    IDCategory: Mapped[str | None] = mapped_column(String(32))
    IDStatus: Mapped[bool | None] = mapped_column(Boolean)

    SubsMin: Mapped[Decimal | None] = mapped_column(Numeric(24, 4))
    RedMinAmount: Mapped[Decimal | None] = mapped_column(Numeric(24, 4))
    MinUnitSwitching: Mapped[Decimal | None] = mapped_column(Numeric(24, 4))
    SubSettle: Mapped[int | None] = mapped_column(Integer)
    RedSettle: Mapped[int | None] = mapped_column(Integer)
    SwtSettle: Mapped[int | None] = mapped_column(Integer)
    MinBalanceAfterRedemption: Mapped[Decimal | None] = mapped_column(Numeric(24, 4))
    MinBalanceAfterSwitching: Mapped[Decimal | None] = mapped_column(Numeric(24, 4))
    InitialUnit: Mapped[Decimal | None] = mapped_column(Numeric(24, 8))
    ManagementFee: Mapped[Decimal | None] = mapped_column(Numeric(9, 4))
    StartDate: Mapped[dt.date | None] = mapped_column(Date)
    EndDate: Mapped[dt.date | None] = mapped_column(Date)
    IsSharia: Mapped[bool | None] = mapped_column(Boolean)
    AllowSubscription: Mapped[bool | None] = mapped_column(Boolean)
    AllowRedemption: Mapped[bool | None] = mapped_column(Boolean)
    AllowSwitching: Mapped[bool | None] = mapped_column(Boolean)


class TNAV(SiarBase):
    __tablename__ = "TNAV"

    IDNav: Mapped[int] = mapped_column(SiarId, primary_key=True)
    IDProduct: Mapped[int | None] = mapped_column(BigInteger, index=True)
    NAVDate: Mapped[dt.date | None] = mapped_column(Date)
    Value: Mapped[Decimal | None] = mapped_column(Numeric(24, 8))
    TotalNetAsset: Mapped[Decimal | None] = mapped_column(Numeric(28, 4))
    OutstandingUnit: Mapped[Decimal | None] = mapped_column(Numeric(28, 8))
    sysRecStatus: Mapped[int] = mapped_column(Integer, default=1)


class TProductFeeByDate(SiarBase):
    __tablename__ = "TProductFeeByDate"

    IDFeeByDate: Mapped[int] = mapped_column(SiarId, primary_key=True)
    IDProduct: Mapped[int] = mapped_column(BigInteger, index=True)
    Type: Mapped[str] = mapped_column(String(10))
    FeeID: Mapped[int] = mapped_column(BigInteger)
    EffectiveDate: Mapped[dt.date] = mapped_column(Date)
    IsActive: Mapped[bool] = mapped_column(Boolean, default=True)
    sysRecStatus: Mapped[int] = mapped_column(Integer, default=1)


class TSharingFee(SiarBase):
    __tablename__ = "TSharingFee"

    FeeID: Mapped[int] = mapped_column(SiarId, primary_key=True)
    FeeName: Mapped[str | None] = mapped_column(String(200))
    FeeDays: Mapped[int | None] = mapped_column(Integer)
    FeeType: Mapped[str | None] = mapped_column(String(10))


class TSharingFeeRule(SiarBase):
    __tablename__ = "TSharingFeeRule"

    IDFeeRule: Mapped[int] = mapped_column(SiarId, primary_key=True)
    FeeID: Mapped[int] = mapped_column(ForeignKey("TSharingFee.FeeID"), index=True)
    FeePos: Mapped[int | None] = mapped_column(Integer)
    FeeRangeBottom: Mapped[Decimal | None] = mapped_column(Numeric(24, 4))
    FeeRange: Mapped[Decimal | None] = mapped_column(Numeric(24, 4))
    FeeAmount: Mapped[Decimal | None] = mapped_column(Numeric(9, 4))
    FeeAmountCode: Mapped[str | None] = mapped_column(String(10))
    FeeSign: Mapped[str | None] = mapped_column(String(4))


class TReferenceGroup(SiarBase):
    __tablename__ = "TReferenceGroup"

    IDReferenceGroup: Mapped[int] = mapped_column(SiarId, primary_key=True)
    GroupName: Mapped[str] = mapped_column(String(100))


class TReferenceDetail(SiarBase):
    __tablename__ = "TReferenceDetail"

    IDReferenceDetail: Mapped[int] = mapped_column(SiarId, primary_key=True)
    IDReferenceGroup: Mapped[int] = mapped_column(ForeignKey("TReferenceGroup.IDReferenceGroup"))
    MainValue: Mapped[str] = mapped_column(String(100))
    Display: Mapped[str | None] = mapped_column(String(255))

    TReferenceGroup: Mapped[TReferenceGroup] = relationship(lazy="joined")


class TRefBank(SiarBase):
    __tablename__ = "TRefBank"

    IDBank: Mapped[int] = mapped_column(SiarId, primary_key=True)
    BankName: Mapped[str] = mapped_column(String(200))
    BIMemberCode: Mapped[str | None] = mapped_column(String(32))

    TRefBankBranch: Mapped[list["TRefBankBranch"]] = relationship(
        order_by="TRefBankBranch.IDBankBranch", lazy="selectin"
    )


class TRefBankBranch(SiarBase):
    __tablename__ = "TRefBankBranch"

    IDBankBranch: Mapped[int] = mapped_column(SiarId, primary_key=True)
    IDBank: Mapped[int] = mapped_column(ForeignKey("TRefBank.IDBank"))
    BranchName: Mapped[str] = mapped_column(String(200))


class TAgentLevel(SiarBase):
    __tablename__ = "TAgentLevel"

    AgentLevelID: Mapped[int] = mapped_column(SiarId, primary_key=True)
    AgentLevelName: Mapped[str] = mapped_column(String(100))
    CodeLength: Mapped[int] = mapped_column(Integer, default=0)


class TAgent(SiarBase):
    __tablename__ = "TAgent"

    AgentID: Mapped[int] = mapped_column(SiarId, primary_key=True)
    NameAgent: Mapped[str | None] = mapped_column(String(200))
    AgentLevelID: Mapped[int | None] = mapped_column(ForeignKey("TAgentLevel.AgentLevelID"))
    IDStatus: Mapped[str | None] = mapped_column(String(20))


class TAgentCustomer(SiarBase):
    __tablename__ = "TAgentCustomer"

    IDAgentCustomer: Mapped[int] = mapped_column(SiarId, primary_key=True)
    IDCustomer: Mapped[int] = mapped_column(ForeignKey("TCustomer.IDCustomer"))
    AgentId: Mapped[int] = mapped_column(BigInteger)
    EffDate: Mapped[dt.datetime | None] = mapped_column(DateTime)
