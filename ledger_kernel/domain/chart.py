"""
Standard chart of accounts -- the fixed accounts the posting rules target.

Posting rules refer to accounts by role (receivable, sales, ...), never by
code.  The chart maps each role to the code, fallback name and type used
when AccountRegistry has to create the account on first use.

Role          | Code | Name                | Type
--------------|------|---------------------|----------
receivable    | 1200 | Accounts Receivable | asset
sales         | 4000 | Sales               | income
tax_payable   | 2100 | Tax Payable         | liability
inventory     | 1500 | Inventory Asset     | asset
payable       | 2000 | Accounts Payable    | liability
cash          | 1001 | Cash                | asset
bank          | 1002 | Bank                | asset
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping

from ledger_kernel.models.account import AccountType


class AccountRole(str, Enum):
    RECEIVABLE = "receivable"
    SALES = "sales"
    TAX_PAYABLE = "tax_payable"
    INVENTORY = "inventory"
    PAYABLE = "payable"
    CASH = "cash"
    BANK = "bank"


@dataclass(frozen=True)
class AccountDefinition:
    """Code, fallback name and type for one standard account."""

    code: str
    name: str
    account_type: AccountType

    def __post_init__(self):
        if not self.code:
            raise ValueError("Account code must not be empty")
        object.__setattr__(self, "account_type", AccountType(self.account_type))


_STANDARD_ACCOUNTS: dict[AccountRole, AccountDefinition] = {
    AccountRole.RECEIVABLE: AccountDefinition("1200", "Accounts Receivable", AccountType.ASSET),
    AccountRole.SALES: AccountDefinition("4000", "Sales", AccountType.INCOME),
    AccountRole.TAX_PAYABLE: AccountDefinition("2100", "Tax Payable", AccountType.LIABILITY),
    AccountRole.INVENTORY: AccountDefinition("1500", "Inventory Asset", AccountType.ASSET),
    AccountRole.PAYABLE: AccountDefinition("2000", "Accounts Payable", AccountType.LIABILITY),
    AccountRole.CASH: AccountDefinition("1001", "Cash", AccountType.ASSET),
    AccountRole.BANK: AccountDefinition("1002", "Bank", AccountType.ASSET),
}


@dataclass(frozen=True)
class ChartOfAccounts:
    """
    Role-to-account mapping.

    Every role must be mapped, and codes must be distinct; two roles on one
    code would merge balances the statements report separately.
    """

    accounts: Mapping[AccountRole, AccountDefinition] = field(
        default_factory=lambda: dict(_STANDARD_ACCOUNTS)
    )

    def __post_init__(self):
        missing = [role.value for role in AccountRole if role not in self.accounts]
        if missing:
            raise ValueError(f"Chart of accounts is missing roles: {missing}")
        codes = [d.code for d in self.accounts.values()]
        if len(codes) != len(set(codes)):
            raise ValueError("Chart of accounts maps two roles to the same code")

    @classmethod
    def standard(cls) -> ChartOfAccounts:
        return cls()

    def definition(self, role: AccountRole) -> AccountDefinition:
        return self.accounts[AccountRole(role)]

    def code_for(self, role: AccountRole) -> str:
        return self.definition(role).code
