"""
Input validation utilities for the Grocito delivery policy service.

Provides reusable validators for money amounts, timestamps and path
parameters. Amounts become Decimal before any policy arithmetic so
199 and 198.99 compare exactly.
"""
import math
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from fastapi import HTTPException, Path

from domain.constants import CURRENCY_SYMBOL, MAX_AMOUNT, MONEY_QUANTUM
from domain.errors import InvalidAmountError, InvalidTimestampError


def parse_amount(value: Any, field: str = "orderAmount") -> Decimal:
    """
    Convert an order amount or bonus to Decimal.

    Accepts int, float, Decimal or numeric strings. Floats go through str()
    so 198.99 stays 198.99 rather than its binary expansion.

    Raises:
        InvalidAmountError for None, booleans, non-numeric strings, NaN,
        infinities, negative values and amounts above MAX_AMOUNT.
    """
    if value is None or isinstance(value, bool):
        raise InvalidAmountError(value, field=field)

    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            raise InvalidAmountError(value, field=field)
        amount = Decimal(str(value))
    elif isinstance(value, str):
        try:
            amount = Decimal(value.strip())
        except InvalidOperation:
            raise InvalidAmountError(value, field=field)
    else:
        raise InvalidAmountError(value, field=field)

    if not amount.is_finite():
        raise InvalidAmountError(value, field=field)
    if amount < 0:
        raise InvalidAmountError(value, field=field)
    if amount > MAX_AMOUNT:
        raise InvalidAmountError(
            value, field=field, reason=f"must not exceed {CURRENCY_SYMBOL}{MAX_AMOUNT}",
        )
    return amount


def round_money(amount: Decimal) -> Decimal:
    """Round to 2 decimal places, half-up."""
    return Decimal(amount).quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)


def parse_timestamp(value: Any, field: str = "placedAt") -> datetime:
    """
    Convert a timestamp to an aware UTC datetime.

    Accepts:
        - datetime (naive values are taken as UTC, which is how the ORM stores them)
        - ISO-8601 strings, including a trailing "Z"
        - epoch milliseconds (int/float), the frontends' `placedAt`

    Raises:
        InvalidTimestampError for anything else.
    """
    if value is None or isinstance(value, bool):
        raise InvalidTimestampError(value, field=field)

    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            raise InvalidTimestampError(value, field=field)
        try:
            moment = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            raise InvalidTimestampError(value, field=field)
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            moment = datetime.fromisoformat(text)
        except ValueError:
            raise InvalidTimestampError(value, field=field)
    else:
        raise InvalidTimestampError(value, field=field)

    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def validate_user_id(user_id: int) -> int:
    """
    Validate a customer or partner id.

    Raises:
        HTTPException(400) if the id is not a positive integer
    """
    if user_id is None or isinstance(user_id, bool) or user_id <= 0:
        raise HTTPException(status_code=400, detail=f"Invalid id: {user_id!r}")
    return user_id


def validated_user_id(user_id: int = Path(..., description="Customer id")) -> int:
    """FastAPI dependency for validating user id path parameters."""
    return validate_user_id(user_id)


def validated_partner_id(partner_id: int = Path(..., description="Delivery partner id")) -> int:
    """FastAPI dependency for validating partner id path parameters."""
    return validate_user_id(partner_id)
