"""Field coercion shared by the payload normalizers.

Every helper raises ``ValidationError`` with a machine-readable code rather
than defaulting a malformed value.
"""

from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from ordersync.core.errors import ValidationError

CENTS = Decimal("0.01")
# Column limits: Numeric(12, 2) for money, 32-bit Integer for quantities.
MAX_AMOUNT = Decimal("9999999999.99")
MAX_QUANTITY = 2**31 - 1


def as_dict(value: Any) -> dict[str, Any]:
    """Return ``value`` if it is a JSON object, else an empty dict."""
    return value if isinstance(value, dict) else {}


def as_text(value: Any) -> str:
    """Stringify a scalar payload value, mapping None to an empty string."""
    if value is None:
        return ""
    return str(value).strip()


def first_present(*values: Any) -> str | None:
    """Return the first non-empty string among ``values``."""
    for value in values:
        text = as_text(value)
        if text:
            return text
    return None


def full_name(first: Any, last: Any) -> str:
    return f"{as_text(first)} {as_text(last)}".strip()


def canonical_order_id(value: Any) -> str:
    """Coerce a provider order id into the string used as the idempotency key."""
    if isinstance(value, bool) or value is None:
        raise ValidationError("Order id is missing", code="missing_order_id", field="id")
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if not value.is_integer():
            raise ValidationError("Order id is malformed", code="invalid_order_id", field="id")
        return str(int(value))
    text = as_text(value)
    if not text:
        raise ValidationError("Order id is missing", code="missing_order_id", field="id")
    return text


def parse_amount(value: Any, field: str, code: str) -> Decimal:
    """Parse a provider money value (string or number) into a 2-place Decimal."""
    if value is None or isinstance(value, bool) or (isinstance(value, str) and not value.strip()):
        raise ValidationError(f"{field} is missing", code=code, field=field)
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValidationError(f"{field} is not a number", code=code, field=field) from None
    if not amount.is_finite():
        raise ValidationError(f"{field} is not a number", code=code, field=field)
    if amount < 0:
        raise ValidationError(f"{field} must not be negative", code=code, field=field)
    if amount > MAX_AMOUNT:
        raise ValidationError(f"{field} is too large", code=code, field=field)
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def parse_quantity(value: Any, field: str) -> int:
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} is missing", code="invalid_quantity", field=field)
    try:
        number = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValidationError(
            f"{field} is not a number", code="invalid_quantity", field=field
        ) from None
    if not number.is_finite() or number != number.to_integral_value():
        raise ValidationError(
            f"{field} must be a whole number", code="invalid_quantity", field=field
        )
    if number < 0:
        raise ValidationError(f"{field} must not be negative", code="invalid_quantity", field=field)
    if number > MAX_QUANTITY:
        raise ValidationError(f"{field} is too large", code="invalid_quantity", field=field)
    return int(number)


def parse_timestamp(value: Any, field: str) -> datetime | None:
    """Parse an ISO-8601 timestamp into an aware UTC datetime; None if absent.

    Naive timestamps are taken to be UTC.
    """
    text = as_text(value)
    if not text:
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        raise ValidationError(
            f"{field} is not a valid timestamp", code="invalid_timestamp", field=field
        ) from None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def require_email(*candidates: Any) -> str:
    email = first_present(*candidates)
    if not email:
        raise ValidationError("Customer email is missing", code="missing_email", field="email")
    return email


def require_line_items(payload: dict[str, Any]) -> list[dict[str, Any]]:
    items = payload.get("line_items", [])
    if items is None:
        return []
    if not isinstance(items, list):
        raise ValidationError(
            "line_items must be a list", code="invalid_line_items", field="line_items"
        )
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError(
                f"line_items[{index}] must be an object",
                code="invalid_line_items",
                field=f"line_items[{index}]",
            )
    return items
