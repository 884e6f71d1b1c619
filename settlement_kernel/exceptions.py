"""
Typed Exception Hierarchy for the Settlement Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers must be able to tell "fix your input" from "not allowed" from "try
again" without parsing message strings.  Every exception therefore has:

  1. A TYPED class (catch by type, not message)
  2. A CODE class attribute (machine-readable, API-safe)
  3. A KIND class attribute from the closed ``ErrorKind`` enumeration
  4. Structured DATA stored as attributes

Example:
    try:
        ledger.register_user_receipt(project_id, user_id, amount)
    except ConflictError:
        ...  # re-run the whole operation (see services.retry)
    except SettlementKernelError as e:
        return api_error(kind=e.kind, code=e.code)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    SettlementKernelError (base)
    |
    +-- ValidationError                      kind=VALIDATION
    |   +-- MissingFieldError
    |   +-- InvalidAmountError
    |   +-- InvalidCommissionError
    |   +-- InvalidPlatformCommissionError
    |
    +-- AccessDeniedError                    kind=ACCESS_DENIED
    |
    +-- NotFoundError                        kind=NOT_FOUND
    |   +-- ProjectNotFoundError
    |   +-- UserNotFoundError
    |   +-- TransactionNotFoundError
    |   +-- CollaborationNotFoundError
    |   +-- ForecastEntryNotFoundError
    |
    +-- PartnershipError                     kind=PARTNERSHIP
    |   +-- CollaborationRequiredError
    |   +-- InvalidSelfShareError
    |   +-- NotSharedError
    |   +-- CollaborationExistsError
    |
    +-- StateError                           kind=STATE
    |   +-- CollaborationStateError
    |   +-- ForecastEntryNotPendingError
    |
    +-- ConflictError                        kind=CONFLICT
    |
    +-- DataIntegrityError                   kind=DATA_INTEGRITY

===============================================================================
HANDLING PATTERNS
===============================================================================

* VALIDATION     -> surface to the caller, never retry.
* ACCESS_DENIED  -> client-visible rejection, never retry.
* NOT_FOUND      -> referenced row does not exist.
* PARTNERSHIP    -> partnership preconditions unmet.
* STATE          -> row is not in a state that allows the action.
* CONFLICT       -> concurrent ledger mutation; retry the WHOLE operation.
* DATA_INTEGRITY -> stored data is malformed; 500-equivalent, investigate.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Closed set of error kinds exposed to callers."""

    VALIDATION = "validation"
    ACCESS_DENIED = "access_denied"
    NOT_FOUND = "not_found"
    PARTNERSHIP = "partnership"
    STATE = "state"
    CONFLICT = "conflict"
    DATA_INTEGRITY = "data_integrity"


class SettlementKernelError(Exception):
    """
    Base exception for all settlement kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification and a `kind` from ErrorKind.
    """

    code: str = "SETTLEMENT_KERNEL_ERROR"
    kind: ErrorKind = ErrorKind.DATA_INTEGRITY


# Validation


class ValidationError(SettlementKernelError):
    """Malformed input."""

    code: str = "VALIDATION_ERROR"
    kind: ErrorKind = ErrorKind.VALIDATION

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class MissingFieldError(ValidationError):
    """A required field was not provided."""

    code: str = "MISSING_FIELD"

    def __init__(self, field: str):
        super().__init__(f"Field is required: {field}", field=field)


class InvalidAmountError(ValidationError):
    """A monetary amount is outside its allowed range."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, field: str, amount, reason: str):
        self.amount = amount
        self.reason = reason
        super().__init__(f"Invalid {field} {amount}: {reason}", field=field)


class InvalidCommissionError(ValidationError):
    """Commission type or value is not acceptable."""

    code: str = "INVALID_COMMISSION"

    def __init__(self, commission_type, commission_value, reason: str):
        self.commission_type = commission_type
        self.commission_value = commission_value
        self.reason = reason
        super().__init__(
            f"Invalid commission {commission_type}={commission_value}: {reason}",
            field="commission",
        )


class InvalidPlatformCommissionError(ValidationError):
    """Platform commission percent outside [0, 100] or finer than 0.01."""

    code: str = "INVALID_PLATFORM_COMMISSION"

    def __init__(self, percent):
        self.percent = percent
        super().__init__(
            f"Platform commission percent must be between 0 and 100 "
            f"with at most two decimal places, got {percent}",
            field="platform_commission_percent",
        )


# Access


class AccessDeniedError(SettlementKernelError):
    """Caller is not a stakeholder or lacks the required permission."""

    code: str = "ACCESS_DENIED"
    kind: ErrorKind = ErrorKind.ACCESS_DENIED

    def __init__(self, user_id: str, resource: str, action: str):
        self.user_id = user_id
        self.resource = resource
        self.action = action
        super().__init__(f"User {user_id} may not {action} {resource}")


# Not found


class NotFoundError(SettlementKernelError):
    """Referenced entity does not exist."""

    code: str = "NOT_FOUND"
    kind: ErrorKind = ErrorKind.NOT_FOUND

    entity_type: str = "entity"

    def __init__(self, entity_id: str):
        self.entity_id = entity_id
        super().__init__(f"{self.entity_type.capitalize()} not found: {entity_id}")


class ProjectNotFoundError(NotFoundError):
    code: str = "PROJECT_NOT_FOUND"
    entity_type = "project"


class UserNotFoundError(NotFoundError):
    code: str = "USER_NOT_FOUND"
    entity_type = "user"


class TransactionNotFoundError(NotFoundError):
    code: str = "TRANSACTION_NOT_FOUND"
    entity_type = "transaction"


class CollaborationNotFoundError(NotFoundError):
    code: str = "COLLABORATION_NOT_FOUND"
    entity_type = "collaboration"


class ForecastEntryNotFoundError(NotFoundError):
    code: str = "FORECAST_ENTRY_NOT_FOUND"
    entity_type = "forecast entry"


# Partnership


class PartnershipError(SettlementKernelError):
    """Base exception for partnership precondition failures."""

    code: str = "PARTNERSHIP_ERROR"
    kind: ErrorKind = ErrorKind.PARTNERSHIP


class CollaborationRequiredError(PartnershipError):
    """No accepted collaboration exists between owner and partner."""

    code: str = "COLLABORATION_REQUIRED"

    def __init__(self, owner_id: str, partner_id: str):
        self.owner_id = owner_id
        self.partner_id = partner_id
        super().__init__(
            f"An accepted collaboration between {owner_id} and {partner_id} "
            "is required to share a project"
        )


class InvalidSelfShareError(PartnershipError):
    """Owner attempted to share a project with themselves."""

    code: str = "INVALID_SELF_SHARE"

    def __init__(self, project_id: str, user_id: str):
        self.project_id = project_id
        self.user_id = user_id
        super().__init__(f"Project {project_id} cannot be shared with its owner")


class NotSharedError(PartnershipError):
    """Partner holds no share on the project."""

    code: str = "NOT_SHARED"

    def __init__(self, project_id: str, partner_id: str):
        self.project_id = project_id
        self.partner_id = partner_id
        super().__init__(f"Project {project_id} is not shared with {partner_id}")


class CollaborationExistsError(PartnershipError):
    """A collaboration request already exists between the two users."""

    code: str = "COLLABORATION_EXISTS"

    def __init__(self, user_a: str, user_b: str):
        self.user_a = user_a
        self.user_b = user_b
        super().__init__(f"A collaboration between {user_a} and {user_b} already exists")


# State


class StateError(SettlementKernelError):
    """Entity is not in a state that allows the requested action."""

    code: str = "STATE_ERROR"
    kind: ErrorKind = ErrorKind.STATE


class CollaborationStateError(StateError):
    code: str = "COLLABORATION_STATE"

    def __init__(self, collaboration_id: str, status: str, action: str):
        self.collaboration_id = collaboration_id
        self.status = status
        self.action = action
        super().__init__(
            f"Cannot {action} collaboration {collaboration_id} in status {status}"
        )


class ForecastEntryNotPendingError(StateError):
    code: str = "FORECAST_ENTRY_NOT_PENDING"

    def __init__(self, entry_id: str, status: str):
        self.entry_id = entry_id
        self.status = status
        super().__init__(f"Forecast entry {entry_id} is {status}, not pending")


# Concurrency


class ConflictError(SettlementKernelError):
    """
    Concurrent ledger mutation detected.

    The caller should retry the whole operation in a new transaction,
    not just the final write.
    """

    code: str = "LEDGER_CONFLICT"
    kind: ErrorKind = ErrorKind.CONFLICT

    def __init__(
        self,
        project_id: str,
        expected_version: int | None = None,
        actual_version: int | None = None,
    ):
        self.project_id = project_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Project {project_id} was modified by another transaction"
        )


# Data integrity


class DataIntegrityError(SettlementKernelError):
    """Stored data is malformed and cannot be interpreted."""

    code: str = "DATA_INTEGRITY"
    kind: ErrorKind = ErrorKind.DATA_INTEGRITY

    def __init__(self, entity_type: str, entity_id: str, detail: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.detail = detail
        super().__init__(f"Malformed {entity_type} {entity_id}: {detail}")
