import enum

from gymledger.exceptions import InvalidEnumValue


class StaffRole(str, enum.Enum):
    OWNER = 'OWNER'
    STAFF = 'STAFF'


class AccountStatus(str, enum.Enum):
    ACTIVE = 'ACTIVE'
    INACTIVE = 'INACTIVE'


class MemberStatus(str, enum.Enum):
    ACTIVE = 'ACTIVE'
    INACTIVE = 'INACTIVE'


class Gender(str, enum.Enum):
    MALE = 'M'
    FEMALE = 'F'
    OTHER = 'O'


class MembershipStatus(str, enum.Enum):
    ACTIVE = 'ACTIVE'
    PENDING_RENEWAL = 'PENDING_RENEWAL'
    EXPIRED = 'EXPIRED'
    CANCELLED = 'CANCELLED'


# Rows in these states never change status again
TERMINAL_MEMBERSHIP_STATUSES = (MembershipStatus.EXPIRED.value, MembershipStatus.CANCELLED.value)

# States that grant gym access inside the membership period
ACCESS_MEMBERSHIP_STATUSES = (MembershipStatus.ACTIVE.value, MembershipStatus.PENDING_RENEWAL.value)


class PaymentPurpose(str, enum.Enum):
    MEMBERSHIP = 'MEMBERSHIP'
    CLASS = 'CLASS'
    RETAIL = 'RETAIL'


class PaymentMethod(str, enum.Enum):
    CASH = 'CASH'
    DEBIT_CARD = 'DEBIT_CARD'
    BANK_TRANSFER = 'BANK_TRANSFER'
    E_WALLET = 'E_WALLET'


class PaymentStatus(str, enum.Enum):
    PAID = 'PAID'
    PENDING = 'PENDING'
    REFUNDED = 'REFUNDED'
    CANCELLED = 'CANCELLED'


class RejectionReason(str, enum.Enum):
    MEMBER_DELETED = 'MEMBER_DELETED'
    NO_ACTIVE_MEMBERSHIP = 'NO_ACTIVE_MEMBERSHIP'


def values(enum_cls):
    return [member.value for member in enum_cls]


def check_in_clause(column, enum_cls):
    """SQL fragment restricting a column to the enum's values"""
    allowed = ', '.join(f"'{value}'" for value in values(enum_cls))
    return f'{column} IN ({allowed})'


def coerce_enum(enum_cls, value, field):
    """
    Resolve ``value`` to a member of ``enum_cls``

    Accepts a member or its exact string value; anything else raises
    InvalidEnumValue rather than being guessed at.
    """
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        for member in enum_cls:
            if member.value == value:
                return member
    raise InvalidEnumValue(field, value, values(enum_cls))
