"""Errors raised by ledger operations.

Every operation validates its input and business rules before the first write,
so any of these reaching the caller means nothing was committed.
"""


class LedgerError(Exception):
    """Base class for ledger errors"""


class TenantIsolationViolation(LedgerError):
    """A write tried to link rows that belong to different gyms.

    The message only names entity kinds, never data of the other tenant.
    """

    def __init__(self, entity, referenced):
        self.entity = entity
        self.referenced = referenced
        super().__init__(f'{entity} cannot reference a {referenced} of another gym')


class BusinessRuleViolation(LedgerError):
    """An operation is refused by a business rule the caller can resolve.

    ``blocking`` names the rows in the way, e.g. ``{'memberships': [3]}``.
    """

    def __init__(self, message, blocking=None):
        self.blocking = blocking or {}
        super().__init__(message)


class MemberNotEligible(BusinessRuleViolation):
    """The member cannot receive a membership (deleted or inactive)"""


class ValidationError(LedgerError):
    """Malformed input, rejected before any write"""


class InvalidEnumValue(ValidationError):
    def __init__(self, field, value, allowed):
        self.field = field
        self.value = value
        self.allowed = tuple(allowed)
        super().__init__(f'Invalid {field} {value!r}; expected one of {", ".join(self.allowed)}')


class InvalidStatusTransition(ValidationError):
    def __init__(self, entity, current, requested):
        self.entity = entity
        self.current = current
        self.requested = requested
        super().__init__(f'{entity} cannot move from {current} to {requested}')


class InvalidAmount(ValidationError):
    """Money amounts must be non-negative decimals"""


class NotFound(LedgerError):
    def __init__(self, entity, entity_id):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f'{entity} {entity_id} not found')


class DuplicateIdentity(LedgerError):
    """Phone or email already used by a member or staff account.

    ``restorable_id`` is set when the match is a deleted member that can be
    restored instead of creating a new identity; ``conflicting_id`` when the
    match is a live row.
    """

    def __init__(self, field, value, restorable_id=None, conflicting_id=None):
        self.field = field
        self.value = value
        self.restorable_id = restorable_id
        self.conflicting_id = conflicting_id
        if restorable_id is not None:
            message = f'{field} {value} belongs to deleted member {restorable_id}; restore it instead'
        else:
            message = f'{field} {value} is already in use'
        super().__init__(message)


class StorageError(LedgerError):
    """The database rejected or failed a write; the transaction was rolled back"""


class CheckInRejected(LedgerError):
    """Admission refused; ``reason`` is a RejectionReason"""

    def __init__(self, member_id, reason):
        self.member_id = member_id
        self.reason = reason
        super().__init__(f'Check-in rejected for member {member_id}: {reason.value}')
