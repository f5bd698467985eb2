# buildtrack/models/base.py

import uuid
from decimal import Decimal, ROUND_HALF_UP

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

CENTS = Decimal('0.01')


def generate_uuid():
    return str(uuid.uuid4())


def format_money(value):
    """Render a money column as a two-decimal string, e.g. '45.50'."""
    if value is None:
        return None
    return str(Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP))


def format_quantity(value):
    """Render a quantity without trailing zeros, e.g. Decimal('2.00') -> '2'."""
    if value is None:
        return None
    normalized = Decimal(str(value)).normalize()
    # normalize() turns 100 into 1E+2
    if normalized == normalized.to_integral_value():
        return str(normalized.quantize(Decimal(1)))
    return format(normalized, 'f')


def isoformat(value):
    return value.isoformat() if value else None
