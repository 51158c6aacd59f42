import logging
from datetime import datetime, date, time, timedelta, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from sqlalchemy.exc import SQLAlchemyError

from gymledger import db
from gymledger.exceptions import InvalidAmount, LedgerError, StorageError

logger = logging.getLogger(__name__)

CENTS = Decimal('0.01')


def utcnow():
    """Naive UTC timestamp, the form every timestamp column stores"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_date(value):
    """Reduce a datetime to its date; dates pass through"""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    raise TypeError(f'Expected date or datetime, got {type(value).__name__}')


def to_money(value, field='amount'):
    """
    Convert an amount to a 2-place Decimal

    Args:
        value: Decimal, int or numeric string (floats are refused)
        field: name used in the error message

    Returns:
        Decimal quantized to cents
    """
    if isinstance(value, (float, bool)) or value is None:
        raise InvalidAmount(f'{field} must be a decimal amount, got {value!r}')
    try:
        amount = Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError):
        raise InvalidAmount(f'{field} must be a decimal amount, got {value!r}')
    if not amount.is_finite() or amount < 0:
        raise InvalidAmount(f'{field} must be zero or more, got {value}')
    return amount


def flush():
    """Flush pending rows so they get their ids, wrapping storage failures"""
    try:
        db.session.flush()
    except LedgerError:
        db.session.rollback()
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error(f'Storage failure during flush, transaction rolled back: {exc.__class__.__name__}')
        raise StorageError(exc.__class__.__name__) from exc


def commit():
    """Commit the unit of work, rolling back and wrapping storage failures"""
    try:
        db.session.commit()
    except LedgerError:
        # raised by the flush hooks
        db.session.rollback()
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error(f'Storage failure, transaction rolled back: {exc.__class__.__name__}')
        raise StorageError(exc.__class__.__name__) from exc


def as_datetime(value):
    """Widen a date to midnight; datetimes pass through"""
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    raise TypeError(f'Expected date or datetime, got {type(value).__name__}')


def day_bounds(start=None, end=None):
    """Datetime range [start 00:00, day after end 00:00) for an inclusive date range"""
    lower = as_datetime(as_date(start)) if start is not None else None
    upper = as_datetime(as_date(end) + timedelta(days=1)) if end is not None else None
    return lower, upper
