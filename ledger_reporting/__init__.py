"""
Statement derivation over the posted ledger.

Profit & Loss, Balance Sheet and Trial Balance are computed on demand from
immutable ledger entries; nothing here writes to the ledger.
"""

from ledger_reporting.config import ReportingConfig
from ledger_reporting.models import (
    AccountBalanceLine,
    AccountBalancesReport,
    AccountHierarchyReport,
    AccountNode,
    BalanceSheetReport,
    PartyBalanceReport,
    PartyType,
    ProfitAndLossReport,
    ReportMetadata,
    ReportPeriod,
    ReportType,
    TrialBalanceLine,
    TrialBalanceReport,
    TrialBalanceTotals,
)
from ledger_reporting.service import StatementService
from ledger_reporting.statements import render_to_dict

__all__ = [
    "AccountBalanceLine",
    "AccountBalancesReport",
    "AccountHierarchyReport",
    "AccountNode",
    "BalanceSheetReport",
    "PartyBalanceReport",
    "PartyType",
    "ProfitAndLossReport",
    "ReportMetadata",
    "ReportPeriod",
    "ReportType",
    "ReportingConfig",
    "StatementService",
    "TrialBalanceLine",
    "TrialBalanceReport",
    "TrialBalanceTotals",
    "render_to_dict",
]
