"""URS registry models populated by the SIAR migration."""

from urs.domain.registry.models.aum import AumDaily, AumInvestorDaily
from urs.domain.registry.models.navs import FundNav
from urs.domain.registry.models.references import Agent, AgentInvestor, AgentLevel, Bank, BankBranch, Reference
from urs.domain.registry.models.transactions import InvestorAccount, InvestorHolding, Transaction

__all__ = [
	"Agent",
	"AgentInvestor",
	"AgentLevel",
	"AumDaily",
	"AumInvestorDaily",
	"Bank",
	"BankBranch",
	"FundNav",
	"InvestorAccount",
	"InvestorHolding",
	"Reference",
	"Transaction",
]
