"""
Typed Exception Hierarchy for the Ledger Kernel.

Every error has a typed class (catch by type, not message), a ``code`` class
attribute (machine-readable, API-safe) and structured instance attributes.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    LedgerKernelError (base)
    |
    +-- ConfigurationError
    |
    +-- AccountError
    |   +-- AccountResolutionError
    |   |   +-- AccountTypeConflictError
    |   |   +-- AccountNotPostableError
    |   +-- AccountNotFoundError
    |   +-- AccountHierarchyError
    |
    +-- PostingError
    |   +-- InvariantViolation
    |   |   +-- UnbalancedGroupError
    |   |   +-- InvalidEntryAmountError
    |   +-- IdempotencyConflict
    |
    +-- StatementError
    |   +-- QueryTimeout
    |
    +-- LedgerIntegrityError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Code                        | When Raised                            | Retry?
----------------------------|----------------------------------------|--------------
CONFIGURATION_ERROR         | Missing organization / malformed event | No
ACCOUNT_RESOLUTION_FAILED   | Account lookup/creation failed         | If transient
ACCOUNT_TYPE_CONFLICT       | Code exists with a different type      | No
ACCOUNT_NOT_POSTABLE        | Group or deactivated account           | No
ACCOUNT_NOT_FOUND           | Deactivating an unknown code           | No
ACCOUNT_HIERARCHY_INVALID   | Reparent to self, a cycle or non-group | No
UNBALANCED_GROUP            | sum(debit) != sum(credit) before write | No
INVALID_ENTRY_AMOUNT        | Negative, zero or two-sided entry      | No
IDEMPOTENCY_CONFLICT        | Group already exists (absorbed, no-op) | n/a
QUERY_TIMEOUT               | Statement exceeded its time bound      | Narrower range
LEDGER_INTEGRITY_ALARM      | Trial balance diff != 0                | No, page
IMMUTABILITY_VIOLATION      | UPDATE/DELETE of posted ledger rows    | No

===============================================================================
HANDLING PATTERNS
===============================================================================

    result = poster.post_invoice(event)       # ALREADY_POSTED is success
    try:
        poster.post_invoice(event)
    except InvariantViolation as e:
        mark_not_posted(event, reason=e.code)  # malformed upstream data
    except AccountResolutionError as e:
        retry_later(event)                     # may be transient
"""


class LedgerKernelError(Exception):
    """
    Base exception for all ledger kernel errors.

    All subclasses have a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "LEDGER_KERNEL_ERROR"


class ConfigurationError(LedgerKernelError):
    """Caller supplied an event without the context needed to post it."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


# Account-related exceptions


class AccountError(LedgerKernelError):
    """Base exception for account-related errors."""

    code: str = "ACCOUNT_ERROR"


class AccountResolutionError(AccountError):
    """An account could not be resolved or created."""

    code: str = "ACCOUNT_RESOLUTION_FAILED"

    def __init__(
        self,
        organization_id: str,
        account_code: str,
        reason: str,
        transient: bool = False,
    ):
        self.organization_id = organization_id
        self.account_code = account_code
        self.reason = reason
        self.transient = transient
        super().__init__(
            f"Cannot resolve account {account_code} for organization "
            f"{organization_id}: {reason}"
        )


class AccountTypeConflictError(AccountResolutionError):
    """The code already exists under a different account type."""

    code: str = "ACCOUNT_TYPE_CONFLICT"

    def __init__(
        self,
        organization_id: str,
        account_code: str,
        existing_type: str,
        requested_type: str,
    ):
        self.existing_type = existing_type
        self.requested_type = requested_type
        super().__init__(
            organization_id,
            account_code,
            f"existing type '{existing_type}' does not match '{requested_type}'",
        )


class AccountNotPostableError(AccountResolutionError):
    """The account exists but cannot receive entries (group or inactive)."""

    code: str = "ACCOUNT_NOT_POSTABLE"


class AccountNotFoundError(AccountError):
    """No account with the given code exists for the organization."""

    code: str = "ACCOUNT_NOT_FOUND"

    def __init__(self, organization_id: str, account_code: str):
        self.organization_id = organization_id
        self.account_code = account_code
        super().__init__(
            f"Account {account_code} not found for organization {organization_id}"
        )


class AccountHierarchyError(AccountError):
    """A parent assignment would break the account tree."""

    code: str = "ACCOUNT_HIERARCHY_INVALID"

    def __init__(self, organization_id: str, account_code: str, reason: str):
        self.organization_id = organization_id
        self.account_code = account_code
        self.reason = reason
        super().__init__(f"Cannot reparent account {account_code}: {reason}")


# Posting-related exceptions


class PostingError(LedgerKernelError):
    """Base exception for posting-related errors."""

    code: str = "POSTING_ERROR"


class InvariantViolation(PostingError):
    """A posting group broke a double-entry rule before any write occurred."""

    code: str = "INVARIANT_VIOLATION"


class UnbalancedGroupError(InvariantViolation):
    """Posting group debits do not equal credits."""

    code: str = "UNBALANCED_GROUP"

    def __init__(self, reference_type: str, reference_id: str, debits: str, credits: str):
        self.reference_type = reference_type
        self.reference_id = reference_id
        self.debits = debits
        self.credits = credits
        super().__init__(
            f"Unbalanced {reference_type} group {reference_id}: "
            f"debits={debits}, credits={credits}"
        )


class InvalidEntryAmountError(InvariantViolation):
    """An entry is not single-sided with a strictly positive amount."""

    code: str = "INVALID_ENTRY_AMOUNT"

    def __init__(
        self,
        reference_type: str,
        reference_id: str,
        account_code: str,
        debit: str,
        credit: str,
    ):
        self.reference_type = reference_type
        self.reference_id = reference_id
        self.account_code = account_code
        self.debit = debit
        self.credit = credit
        super().__init__(
            f"Invalid entry on account {account_code} for {reference_type} "
            f"{reference_id}: debit={debit}, credit={credit}"
        )


class IdempotencyConflict(PostingError):
    """A posting group already exists for this source document."""

    code: str = "IDEMPOTENCY_CONFLICT"

    def __init__(self, reference_type: str, reference_id: str):
        self.reference_type = reference_type
        self.reference_id = reference_id
        super().__init__(
            f"Posting group already exists for {reference_type} {reference_id}"
        )


# Statement-related exceptions


class StatementError(LedgerKernelError):
    """Base exception for statement computation errors."""

    code: str = "STATEMENT_ERROR"


class QueryTimeout(StatementError):
    """Statement computation exceeded the caller-supplied bound."""

    code: str = "QUERY_TIMEOUT"

    def __init__(self, statement: str, timeout_seconds: float):
        self.statement = statement
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"{statement} exceeded timeout of {timeout_seconds}s; "
            "retry with a narrower date range"
        )


class LedgerIntegrityError(LedgerKernelError):
    """
    Posted data breaks the double-entry law.

    Only reachable through a posting bug or out-of-band writes; treat as an
    alarm, never as a normal result.
    """

    code: str = "LEDGER_INTEGRITY_ALARM"

    def __init__(self, organization_id: str, reason: str, diff: str | None = None):
        self.organization_id = organization_id
        self.reason = reason
        self.diff = diff
        super().__init__(
            f"Ledger integrity alarm for organization {organization_id}: {reason}"
        )


# Immutability exceptions


class ImmutabilityError(LedgerKernelError):
    """Base exception for immutability errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempt to modify or delete an immutable ledger record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(f"Cannot modify {entity_type} {entity_id}: {reason}")
