"""
AccountRegistry -- race-safe resolution of (organization, code) to account id.

Responsibility:
    Looks up an account by organization and chart code, creating it with a
    fallback name and type on first reference.  Creation is surfaced to
    operators through a WARNING-level ``account_auto_created`` log event.

Architecture position:
    Kernel > Services.  Shares the caller's session, so accounts created
    while posting a group commit or roll back together with that group.

Invariants enforced:
    - Exactly one account per (organization_id, code).  The database UNIQUE
      constraint uq_account_org_code is the race guard: creation runs in a
      SAVEPOINT, and a losing concurrent insert rolls the SAVEPOINT back and
      re-reads the winner's row.
    - The in-process cache never serves an id from a rolled-back
      transaction.  Ids resolved inside a transaction are held as pending
      and only promoted to the cache when the root transaction commits;
      any rollback, SAVEPOINT rollbacks included, discards them.
    - Session hooks are installed once per session and hold registries
      weakly, so short-lived registries do not pile up listeners.
    - A resolved account must match the requested type and be postable
      (active, not a group).

Failure modes:
    - ConfigurationError: organization_id missing.
    - AccountTypeConflictError: the code exists with a different type.
    - AccountNotPostableError: the account is a group or deactivated.
    - AccountResolutionError(transient=True): storage failure during lookup
      or creation; safe to retry the whole posting.
"""

from __future__ import annotations

import weakref
from uuid import UUID

from sqlalchemy import event, select
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from ledger_kernel.domain.chart import AccountRole, ChartOfAccounts
from ledger_kernel.exceptions import (
    AccountHierarchyError,
    AccountNotFoundError,
    AccountNotPostableError,
    AccountResolutionError,
    AccountTypeConflictError,
    ConfigurationError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import Account, AccountType
from ledger_kernel.services.base import BaseService

logger = get_logger("services.account_registry")

_CacheKey = tuple[UUID, str]

_REGISTRIES_KEY = "ledger_kernel.account_registries"


# =========================================================================
# Session hooks (installed once per session)
# =========================================================================


def _registries(session: Session) -> weakref.WeakSet:
    registries = session.info.get(_REGISTRIES_KEY)
    if registries is None:
        registries = session.info[_REGISTRIES_KEY] = weakref.WeakSet()
        event.listen(session, "after_commit", _on_commit)
        event.listen(session, "after_rollback", _on_rollback)
        event.listen(session, "after_transaction_end", _on_transaction_end)
    return registries


def _on_commit(session: Session) -> None:
    # Fires for SAVEPOINT commits too; only the root commit makes ids durable
    if session.in_nested_transaction():
        return
    for registry in list(session.info.get(_REGISTRIES_KEY, ())):
        registry._promote_pending()


def _on_rollback(session: Session) -> None:
    for registry in list(session.info.get(_REGISTRIES_KEY, ())):
        registry._discard_pending()


def _on_transaction_end(session: Session, transaction) -> None:
    if transaction.parent is None:
        _on_rollback(session)


class AccountRegistry(BaseService[Account]):
    """
    Resolves chart codes to account ids for one session.

    Contract:
        ``resolve()`` returns the id of an active, non-group account of the
        requested type, creating it if absent.  The registry flushes but
        never commits.

    Guarantees:
        - Concurrent resolvers of the same key (threads or processes)
          converge on one account row.
        - The cache is scoped to this instance; separate registries never
          share state.
    """

    def __init__(self, session: Session, chart: ChartOfAccounts | None = None):
        super().__init__(session)
        self._chart = chart or ChartOfAccounts.standard()
        self._cache: dict[_CacheKey, tuple[UUID, AccountType]] = {}
        self._pending: dict[_CacheKey, tuple[UUID, AccountType]] = {}
        _registries(session).add(self)

    @property
    def chart(self) -> ChartOfAccounts:
        return self._chart

    # =========================================================================
    # Transaction hooks
    # =========================================================================

    def _promote_pending(self) -> None:
        self._cache.update(self._pending)
        self._pending.clear()

    def _discard_pending(self) -> None:
        self._pending.clear()

    # =========================================================================
    # Resolution
    # =========================================================================

    def resolve(
        self,
        organization_id: UUID,
        code: str,
        fallback_name: str,
        account_type: AccountType,
    ) -> UUID:
        """
        Resolve (organization_id, code) to an account id, creating if absent.

        Args:
            organization_id: Owning organization.
            code: Chart code, unique per organization.
            fallback_name: Display name used only when the account is created.
            account_type: Required type of the account.

        Returns:
            The account id.
        """
        if organization_id is None:
            raise ConfigurationError("Missing organization context", field="organization_id")

        account_type = AccountType(account_type)
        key = (organization_id, code)
        cached = self._cache.get(key) or self._pending.get(key)
        if cached is not None:
            account_id, cached_type = cached
            if cached_type != account_type:
                raise AccountTypeConflictError(
                    str(organization_id), code, cached_type.value, account_type.value
                )
            return account_id

        try:
            account = self._find(organization_id, code)
            if account is None:
                account = self._create(organization_id, code, fallback_name, account_type)
        except SQLAlchemyError as exc:
            raise AccountResolutionError(
                str(organization_id),
                code,
                f"storage failure: {exc.__class__.__name__}",
                transient=isinstance(exc, OperationalError),
            ) from exc

        self._check_usable(account, account_type)
        self._pending[key] = (account.id, account_type)
        return account.id

    def resolve_role(self, organization_id: UUID, role: AccountRole) -> UUID:
        """Resolve a standard chart role using this registry's chart."""
        definition = self._chart.definition(role)
        return self.resolve(
            organization_id,
            definition.code,
            definition.name,
            definition.account_type,
        )

    def ensure_chart(self, organization_id: UUID) -> dict[AccountRole, UUID]:
        """Resolve every standard account for an organization."""
        return {role: self.resolve_role(organization_id, role) for role in AccountRole}

    def deactivate(self, organization_id: UUID, code: str) -> Account:
        """
        Mark an account inactive.  Accounts are never deleted.

        Raises:
            AccountNotFoundError: No account with that code exists.
        """
        account = self._find(organization_id, code)
        if account is None:
            raise AccountNotFoundError(str(organization_id), code)

        account.is_active = False
        self.session.flush()
        self._cache.pop((organization_id, code), None)
        self._pending.pop((organization_id, code), None)

        logger.info(
            "account_deactivated",
            extra={
                "organization_id": str(organization_id),
                "account_code": code,
                "account_id": str(account.id),
            },
        )
        return account

    def set_parent(
        self,
        organization_id: UUID,
        code: str,
        parent_code: str | None,
    ) -> Account:
        """
        Place an account under a group account, or at the root with None.

        Raises:
            AccountNotFoundError: Either code is unknown.
            AccountHierarchyError: The parent is the account itself, is not
                a group account, or is one of the account's descendants.
        """
        account = self._find(organization_id, code)
        if account is None:
            raise AccountNotFoundError(str(organization_id), code)

        parent_id = None
        if parent_code is not None:
            parent = self._find(organization_id, parent_code)
            if parent is None:
                raise AccountNotFoundError(str(organization_id), parent_code)
            if parent.id == account.id:
                raise AccountHierarchyError(
                    str(organization_id), code, "an account cannot be its own parent"
                )
            if not parent.is_group:
                raise AccountHierarchyError(
                    str(organization_id), code, f"parent {parent_code} is not a group account"
                )
            parents = dict(
                self.session.execute(
                    select(Account.id, Account.parent_id).where(
                        Account.organization_id == organization_id
                    )
                ).all()
            )
            ancestor = parent.id
            while ancestor is not None:
                if ancestor == account.id:
                    raise AccountHierarchyError(
                        str(organization_id), code, f"parent {parent_code} is a descendant"
                    )
                ancestor = parents.get(ancestor)
            parent_id = parent.id

        account.parent_id = parent_id
        self.session.flush()

        logger.info(
            "account_reparented",
            extra={
                "organization_id": str(organization_id),
                "account_code": code,
                "parent_code": parent_code,
            },
        )
        return account

    def clear_cache(self) -> None:
        self._cache.clear()
        self._pending.clear()

    # =========================================================================
    # Internal helpers
    # =========================================================================

    def _find(self, organization_id: UUID, code: str) -> Account | None:
        return self.session.execute(
            select(Account).where(
                Account.organization_id == organization_id,
                Account.code == code,
            )
        ).scalar_one_or_none()

    def _create(
        self,
        organization_id: UUID,
        code: str,
        fallback_name: str,
        account_type: AccountType,
    ) -> Account:
        savepoint = self.session.begin_nested()
        try:
            account = Account(
                organization_id=organization_id,
                code=code,
                name=fallback_name,
                account_type=account_type.value,
                is_group=False,
                is_active=True,
            )
            self.session.add(account)
            self.session.flush()
            savepoint.commit()
        except IntegrityError:
            # Another transaction created the account; re-read its row
            savepoint.rollback()
            logger.info(
                "account_create_race_retry",
                extra={
                    "organization_id": str(organization_id),
                    "account_code": code,
                },
            )
            account = self._find(organization_id, code)
            if account is None:
                raise AccountResolutionError(
                    str(organization_id),
                    code,
                    "unique key collision but no committed row is visible",
                    transient=True,
                ) from None
            return account

        logger.warning(
            "account_auto_created",
            extra={
                "organization_id": str(organization_id),
                "account_code": code,
                "account_name": fallback_name,
                "account_type": account_type.value,
                "account_id": str(account.id),
            },
        )
        return account

    def _check_usable(self, account: Account, account_type: AccountType) -> None:
        if AccountType(account.account_type) != account_type:
            raise AccountTypeConflictError(
                str(account.organization_id),
                account.code,
                AccountType(account.account_type).value,
                account_type.value,
            )
        if not account.is_postable:
            reason = "account is a group account" if account.is_group else "account is inactive"
            raise AccountNotPostableError(
                str(account.organization_id), account.code, reason
            )
