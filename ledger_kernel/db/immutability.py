"""
ORM-Level Immutability Enforcement.

Posted ledger rows are never updated or deleted; corrections are new posting
groups.  SQLAlchemy fires mapper events before UPDATE/DELETE statements reach
the database, and the listeners below reject them:

    session.flush()
         |
         v
    [before_update] --> _check_*_update() --> ImmutabilityViolationError
    [before_delete] --> _check_*_delete() --> ImmutabilityViolationError

Entity        | Rule
--------------|-----------------------------------------------------------
PostingGroup  | Immutable from creation (updated_at excepted)
LedgerEntry   | Immutable from creation (updated_at excepted)
Account       | organization_id, code and account_type never change;
              | rows are never deleted (deactivate instead)

Bulk ``update()``/``delete()`` statements bypass mapper events; the kernel
never issues them against these tables.
"""

from sqlalchemy import event, inspect

from ledger_kernel.exceptions import ImmutabilityViolationError
from ledger_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_AUDIT_FIELDS = frozenset({"updated_at"})

_ACCOUNT_STRUCTURAL_FIELDS = frozenset({"organization_id", "code", "account_type"})


def _changed_fields(target, ignore: frozenset[str] = _AUDIT_FIELDS) -> list[str]:
    state = inspect(target)
    return [
        prop.key
        for prop in state.mapper.column_attrs
        if prop.key not in ignore and state.attrs[prop.key].history.has_changes()
    ]


def _block(entity_type: str, target, operation: str, reason: str, field: str | None = None):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
            "field": field,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=reason,
    )


def _check_posting_group_update(mapper, connection, target):
    changed = _changed_fields(target)
    if changed:
        _block(
            "PostingGroup",
            target,
            "UPDATE",
            f"Cannot modify field '{changed[0]}' on a posted group",
            field=changed[0],
        )


def _check_posting_group_delete(mapper, connection, target):
    _block("PostingGroup", target, "DELETE", "Posting groups cannot be deleted")


def _check_ledger_entry_update(mapper, connection, target):
    changed = _changed_fields(target)
    if changed:
        _block(
            "LedgerEntry",
            target,
            "UPDATE",
            f"Cannot modify field '{changed[0]}' on a posted entry",
            field=changed[0],
        )


def _check_ledger_entry_delete(mapper, connection, target):
    _block("LedgerEntry", target, "DELETE", "Ledger entries cannot be deleted")


def _check_account_structural_update(mapper, connection, target):
    state = inspect(target)
    for key in _ACCOUNT_STRUCTURAL_FIELDS:
        if state.attrs[key].history.has_changes():
            _block(
                "Account",
                target,
                "UPDATE",
                f"Account field '{key}' is immutable after creation",
                field=key,
            )


def _check_account_delete(mapper, connection, target):
    _block("Account", target, "DELETE", "Accounts are deactivated, never deleted")


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Idempotent: listeners already registered are left in place.
    """
    from ledger_kernel.models.account import Account
    from ledger_kernel.models.ledger import LedgerEntry, PostingGroup

    for target, name, fn in _listeners(Account, LedgerEntry, PostingGroup):
        if not event.contains(target, name, fn):
            event.listen(target, name, fn)


def _listeners(account_cls, entry_cls, group_cls):
    return (
        (group_cls, "before_update", _check_posting_group_update),
        (group_cls, "before_delete", _check_posting_group_delete),
        (entry_cls, "before_update", _check_ledger_entry_update),
        (entry_cls, "before_delete", _check_ledger_entry_delete),
        (account_cls, "before_update", _check_account_structural_update),
        (account_cls, "before_delete", _check_account_delete),
    )
