"""initial URS registry schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def _int_id() -> sa.Column:
    return sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False)


def upgrade() -> None:
    # --- Reference data
    op.create_table(
        "funds",
        _int_id(),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("code", sa.String(length=50), nullable=True),
        sa.Column("external_code", sa.String(length=64), nullable=True),
        sa.Column("fund_category_id", sa.String(length=32), nullable=True),
        sa.Column("min_sub", sa.Numeric(24, 4), nullable=False, server_default="0"),
        sa.Column("min_red", sa.Numeric(24, 4), nullable=False, server_default="0"),
        sa.Column("min_swin", sa.Numeric(24, 4), nullable=False, server_default="0"),
        sa.Column("min_swout", sa.Numeric(24, 4), nullable=False, server_default="0"),
        sa.Column("max_red_percentage", sa.Numeric(9, 4), nullable=False, server_default="100"),
        sa.Column("max_switch_percentage", sa.Numeric(9, 4), nullable=False, server_default="100"),
        sa.Column("sub_settlement_days", sa.Integer(), nullable=True),
        sa.Column("red_settlement_days", sa.Integer(), nullable=True),
        sa.Column("switching_settlement_days", sa.Integer(), nullable=True),
        sa.Column("min_rest_red", sa.String(length=16), nullable=False, server_default="AMOUNT"),
        sa.Column("min_rest_red_amount", sa.Numeric(24, 4), nullable=False, server_default="0"),
        sa.Column("min_rest_switch", sa.String(length=16), nullable=False, server_default="AMOUNT"),
        sa.Column("min_rest_switch_amount", sa.Numeric(24, 4), nullable=False, server_default="0"),
        sa.Column("initial_nav_per_unit", sa.Numeric(24, 8), nullable=False, server_default="0"),
        sa.Column("initial_unit", sa.Numeric(24, 8), nullable=False, server_default="0"),
        sa.Column("management_fee_rate", sa.Numeric(9, 4), nullable=False, server_default="0"),
        sa.Column("valuation_basis", sa.Integer(), nullable=False, server_default="365"),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_public", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_sharia", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("can_subscribe", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("can_redeem", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("can_switch", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("ix_funds_name", "funds", ["name"])
    op.create_index("ix_funds_code", "funds", ["code"])
    op.create_index("ix_funds_external_code", "funds", ["external_code"], unique=True)

    op.create_table(
        "investors",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("external_code", sa.String(length=64), nullable=True),
        sa.Column("first_name", sa.String(length=200), nullable=False, server_default=""),
        sa.Column("middle_name", sa.String(length=200), nullable=True),
        sa.Column("last_name", sa.String(length=200), nullable=True),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.Column("phone_number", sa.String(length=64), nullable=True),
        sa.Column("sid", sa.String(length=64), nullable=True),
        sa.Column("investor_type_id", sa.String(length=32), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_investors_id", "investors", ["id"])
    op.create_index("ix_investors_external_code", "investors", ["external_code"], unique=True)
    op.create_index("ix_investors_sid", "investors", ["sid"])

    op.create_table(
        "references",
        _int_id(),
        sa.Column("reference_name", sa.String(length=100), nullable=False),
        sa.Column("code", sa.String(length=100), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("reference_name", "code", name="uq_references_name_code"),
    )
    op.create_index("ix_references_reference_name", "references", ["reference_name"])

    op.create_table(
        "banks",
        _int_id(),
        sa.Column("code", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("bi_code", sa.String(length=32), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("ix_banks_code", "banks", ["code"], unique=True)

    op.create_table(
        "bank_branches",
        _int_id(),
        sa.Column("code", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("bank_id", sa.Integer(), sa.ForeignKey("banks.id", ondelete="CASCADE"), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_bank_branches_code", "bank_branches", ["code"], unique=True)
    op.create_index("ix_bank_branches_bank_id", "bank_branches", ["bank_id"])

    op.create_table(
        "agent_levels",
        _int_id(),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("tree_level", sa.Integer(), nullable=False, server_default="1"),
        *_timestamps(),
    )
    op.create_index("ix_agent_levels_name", "agent_levels", ["name"], unique=True)

    op.create_table(
        "agents",
        _int_id(),
        sa.Column("code", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False, server_default=""),
        sa.Column("agent_level_id", sa.Integer(), sa.ForeignKey("agent_levels.id"), nullable=True),
        sa.Column("agent_type_id", sa.String(length=16), nullable=False, server_default="1"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("ix_agents_code", "agents", ["code"], unique=True)
    op.create_index("ix_agents_agent_level_id", "agents", ["agent_level_id"])

    op.create_table(
        "agent_investors",
        _int_id(),
        sa.Column("agent_id", sa.Integer(), sa.ForeignKey("agents.id", ondelete="CASCADE"), nullable=False),
        sa.Column("investor_id", sa.Uuid(), sa.ForeignKey("investors.id", ondelete="CASCADE"), nullable=False),
        sa.Column("effective_date", sa.Date(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("agent_id", "investor_id", name="uq_agent_investor"),
    )
    op.create_index("ix_agent_investors_agent_id", "agent_investors", ["agent_id"])
    op.create_index("ix_agent_investors_investor_id", "agent_investors", ["investor_id"])

    # --- Ledger
    op.create_table(
        "investor_accounts",
        _int_id(),
        sa.Column("investor_id", sa.Uuid(), sa.ForeignKey("investors.id", ondelete="CASCADE"), nullable=False),
        sa.Column("fund_id", sa.Integer(), sa.ForeignKey("funds.id", ondelete="CASCADE"), nullable=False),
        sa.Column("account_number", sa.String(length=64), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("investor_id", "fund_id", name="uq_investor_account_investor_fund"),
    )
    op.create_index("ix_investor_accounts_investor_id", "investor_accounts", ["investor_id"])
    op.create_index("ix_investor_accounts_fund_id", "investor_accounts", ["fund_id"])

    op.create_table(
        "transactions",
        _int_id(),
        sa.Column("external_code", sa.String(length=64), nullable=False),
        sa.Column(
            "transaction_type",
            sa.Enum("SUBSCRIPTION", "REDEMPTION", "SWITCHING_IN", "SWITCHING_OUT", name="transaction_type_enum"),
            nullable=False,
        ),
        sa.Column("investor_id", sa.Uuid(), sa.ForeignKey("investors.id"), nullable=False),
        sa.Column("fund_id", sa.Integer(), sa.ForeignKey("funds.id"), nullable=False),
        sa.Column("investor_account_id", sa.Integer(), sa.ForeignKey("investor_accounts.id"), nullable=True),
        sa.Column("agent_id", sa.Integer(), sa.ForeignKey("agents.id"), nullable=True),
        sa.Column("reference_no", sa.String(length=100), nullable=True),
        sa.Column("transaction_date", sa.Date(), nullable=False),
        sa.Column("nav_date", sa.Date(), nullable=False),
        sa.Column("settlement_date", sa.Date(), nullable=False),
        sa.Column("nav_per_unit", sa.Numeric(24, 8), nullable=False),
        sa.Column("units", sa.Numeric(24, 8), nullable=False),
        sa.Column("amount", sa.Numeric(24, 4), nullable=False, server_default="0"),
        sa.Column("net_amount", sa.Numeric(24, 4), nullable=False, server_default="0"),
        sa.Column("fee", sa.Numeric(24, 4), nullable=False, server_default="0"),
        sa.Column("is_redeem_all", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("payment_method_id", sa.String(length=16), nullable=False, server_default="TRS"),
        sa.Column("source_transaction_id", sa.Integer(), sa.ForeignKey("transactions.id"), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_transactions_external_code", "transactions", ["external_code"], unique=True)
    op.create_index("ix_transactions_transaction_type", "transactions", ["transaction_type"])
    op.create_index("ix_transactions_investor_id", "transactions", ["investor_id"])
    op.create_index("ix_transactions_fund_id", "transactions", ["fund_id"])
    op.create_index("ix_transactions_investor_account_id", "transactions", ["investor_account_id"])
    op.create_index("ix_transactions_source_transaction_id", "transactions", ["source_transaction_id"])
    op.create_index(
        "ix_transactions_account_fund_date",
        "transactions",
        ["investor_account_id", "fund_id", "transaction_date"],
    )

    op.create_table(
        "investor_holdings",
        _int_id(),
        sa.Column("investor_id", sa.Uuid(), sa.ForeignKey("investors.id"), nullable=False),
        sa.Column("investor_account_id", sa.Integer(), sa.ForeignKey("investor_accounts.id"), nullable=True),
        sa.Column("transaction_id", sa.Integer(), sa.ForeignKey("transactions.id"), nullable=False),
        sa.Column("fund_id", sa.Integer(), sa.ForeignKey("funds.id"), nullable=False),
        sa.Column("units_before", sa.Numeric(24, 8), nullable=False),
        sa.Column("units_after", sa.Numeric(24, 8), nullable=False),
        sa.Column("delta_units", sa.Numeric(24, 8), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_investor_holdings_transaction_id", "investor_holdings", ["transaction_id"], unique=True)
    op.create_index("ix_investor_holdings_investor_id", "investor_holdings", ["investor_id"])
    op.create_index("ix_investor_holdings_investor_account_id", "investor_holdings", ["investor_account_id"])
    op.create_index("ix_investor_holdings_fund_id", "investor_holdings", ["fund_id"])

    # --- NAV and AUM
    op.create_table(
        "fund_navs",
        _int_id(),
        sa.Column("fund_id", sa.Integer(), sa.ForeignKey("funds.id", ondelete="CASCADE"), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("nav", sa.Numeric(28, 4), nullable=False, server_default="0"),
        sa.Column("nav_per_unit", sa.Numeric(24, 8), nullable=False, server_default="0"),
        sa.Column("outstanding_unit", sa.Numeric(28, 8), nullable=False, server_default="0"),
        *_timestamps(),
        sa.UniqueConstraint("fund_id", "date", name="uq_fund_navs_fund_date"),
    )
    op.create_index("ix_fund_navs_fund_id", "fund_navs", ["fund_id"])
    op.create_index("ix_fund_navs_date", "fund_navs", ["date"])

    op.create_table(
        "aum_investor_daily",
        _int_id(),
        sa.Column("investor_id", sa.Uuid(), sa.ForeignKey("investors.id"), nullable=False),
        sa.Column("agent_id", sa.Integer(), sa.ForeignKey("agents.id"), nullable=False),
        sa.Column("fund_id", sa.Integer(), sa.ForeignKey("funds.id"), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("units", sa.Numeric(24, 8), nullable=False),
        sa.Column("nav_per_unit", sa.Numeric(24, 8), nullable=False),
        sa.Column("aum_value", sa.Numeric(28, 4), nullable=False),
        sa.Column("days", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("management_fee", sa.Numeric(28, 8), nullable=False, server_default="0"),
        *_timestamps(),
        sa.UniqueConstraint("investor_id", "fund_id", "date", name="uq_aum_investor_daily"),
    )
    op.create_index("ix_aum_investor_daily_investor_id", "aum_investor_daily", ["investor_id"])
    op.create_index("ix_aum_investor_daily_agent_id", "aum_investor_daily", ["agent_id"])
    op.create_index("ix_aum_investor_daily_fund_id", "aum_investor_daily", ["fund_id"])
    op.create_index("ix_aum_investor_daily_date", "aum_investor_daily", ["date"])

    op.create_table(
        "aum_daily",
        _int_id(),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("aum_value", sa.Numeric(28, 4), nullable=False),
        sa.Column("management_fee", sa.Numeric(28, 8), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_aum_daily_date", "aum_daily", ["date"], unique=True)

    # --- Audit
    op.create_table(
        "migration_audit_events",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("run_id", sa.String(length=64), nullable=False),
        sa.Column("actor_id", sa.String(length=200), nullable=False),
        sa.Column("action", sa.String(length=200), nullable=False),
        sa.Column("step", sa.String(length=64), nullable=False),
        sa.Column("summary", sa.JSON(), nullable=True),
        *_timestamps(),
        sa.Column("created_by", sa.String(length=128), nullable=True),
        sa.Column("updated_by", sa.String(length=128), nullable=True),
    )
    op.create_index("ix_migration_audit_events_id", "migration_audit_events", ["id"])
    op.create_index("ix_migration_audit_events_run_id", "migration_audit_events", ["run_id"])
    op.create_index("ix_migration_audit_events_actor_id", "migration_audit_events", ["actor_id"])
    op.create_index("ix_migration_audit_events_action", "migration_audit_events", ["action"])
    op.create_index("ix_migration_audit_events_step", "migration_audit_events", ["step"])
    op.create_index("ix_migration_audit_events_run_step", "migration_audit_events", ["run_id", "step"])


def downgrade() -> None:
    op.drop_table("migration_audit_events")
    op.drop_table("aum_daily")
    op.drop_table("aum_investor_daily")
    op.drop_table("fund_navs")
    op.drop_table("investor_holdings")
    op.drop_table("transactions")
    sa.Enum(name="transaction_type_enum").drop(op.get_bind(), checkfirst=True)
    op.drop_table("investor_accounts")
    op.drop_table("agent_investors")
    op.drop_table("agents")
    op.drop_table("agent_levels")
    op.drop_table("bank_branches")
    op.drop_table("banks")
    op.drop_table("references")
    op.drop_table("investors")
    op.drop_table("funds")
