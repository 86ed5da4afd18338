"""
Utility functions for money handling and billing configuration
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from django.conf import settings
from django.utils.translation import gettext as _

CENT = Decimal('0.01')

# Amounts at or below this are treated as settled.
TOLERANCE = Decimal('0.01')

ZERO = Decimal('0.00')

BILLING_DEFAULTS = {
    'BILLING_CYCLE': 'MONTHLY',
    'PAYMENT_DUE_DAY': 1,
    'TRANSPORT_DUE_DAY': 7,
    'AUTO_PROMOTION_ENABLED': True,
    'AUTO_PROMOTION_DATE': '01-01',
    'RETAIN_PAYMENT_HISTORY_ON_GRADUATION': False,
    'TRANSFER_RETENTION_YEARS': 5,
    'CLASS_LADDERS': [],
}


def to_money(value):
    """
    Coerce a number or numeric string to a cent-quantized Decimal.

    Raises InvalidOperation or TypeError for values that are not finite
    numbers. None and '' become zero.
    """
    if value is None or value == '':
        return ZERO
    if isinstance(value, float):
        value = repr(value)
    amount = Decimal(value)
    if not amount.is_finite():
        raise InvalidOperation(f"Non-finite amount: {value!r}")
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def money_or_zero(value):
    """Like to_money but degrades to zero for malformed values."""
    try:
        return to_money(value)
    except (InvalidOperation, TypeError, ValueError):
        return ZERO


def outstanding_of(amount_due, amount_paid):
    return max(ZERO, to_money(amount_due) - to_money(amount_paid))


def is_settled(outstanding):
    return outstanding <= TOLERANCE


def billing_setting(key):
    """Read a SCHOOL_BILLING setting, falling back to the built-in default."""
    configured = getattr(settings, 'SCHOOL_BILLING', {}) or {}
    if key in configured:
        return configured[key]
    if key not in BILLING_DEFAULTS:
        raise KeyError(f"Unknown billing setting: {key}")
    return BILLING_DEFAULTS[key]


def validate_payment_amount(value):
    """
    Check a user-entered amount.

    Returns: (is_valid, amount_or_None, message)
    """
    if value is None or value == "" or isinstance(value, bool):
        return False, None, _("Please enter a valid amount")
    try:
        amount = to_money(value)
    except (InvalidOperation, TypeError, ValueError):
        return False, None, _("Please enter a valid amount")
    if amount < 0:
        return False, None, _("Amount cannot be negative")
    return True, amount, ""
