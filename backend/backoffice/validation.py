"""
Request parsing for the POS API.

Parses raw JSON into typed request objects before any service touches the
store. Every problem is collected per field ("items[1].quantity") and
raised once as ValidationError so the terminal can highlight all of them.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .errors import ValidationError
from .time_utils import parse_date_bound

# Maximum amount: 9,999,999.99 (999,999,999 cents)
MAX_AMOUNT_CENTS = 999_999_999
MAX_LINE_QUANTITY = 100_000
# Ids, pages and stock counts live in 32-bit INTEGER columns
MAX_ID = 2_147_483_647


@dataclass(frozen=True)
class CustomerInfo:
    customer_id: int | None = None
    name: str | None = None
    phone: str | None = None
    email: str | None = None


@dataclass(frozen=True)
class SaleLineRequest:
    product_id: int
    quantity: int
    unit_price_cents: int | None = None  # None -> product list price
    discount_cents: int = 0


@dataclass(frozen=True)
class PaymentRequest:
    payment_method_id: int
    amount_cents: int
    reference_number: str | None = None


@dataclass(frozen=True)
class SaleRequest:
    items: list[SaleLineRequest]
    payments: list[PaymentRequest] = field(default_factory=list)
    customer: CustomerInfo = field(default_factory=CustomerInfo)
    tax_cents: int = 0
    discount_cents: int = 0
    notes: str | None = None
    idempotency_key: str | None = None

    def availability_lines(self) -> list[tuple[int, int]]:
        return [(line.product_id, line.quantity) for line in self.items]


@dataclass(frozen=True)
class StockAdjustmentRequest:
    product_id: int
    reason: str
    quantity_delta: int | None = None
    target_quantity: int | None = None


@dataclass(frozen=True)
class HistoryFilters:
    page: int = 1
    limit: int = 20
    status: str | None = None
    payment_status: str | None = None
    cashier_id: int | None = None
    customer_id: int | None = None
    start_date: Any = None
    end_date: Any = None
    search: str | None = None


class _Errors:
    def __init__(self):
        self.fields: dict[str, str] = {}

    def add(self, key: str, message: str) -> None:
        self.fields.setdefault(key, message)

    def raise_if_any(self, message: str = "Invalid request") -> None:
        if self.fields:
            raise ValidationError(message, details={"fields": self.fields})


def coerce_int(value: Any, key: str) -> int:
    """
    Strict integer coercion.

    Accepts ints and plain digit strings. Rejects bools, floats, decimals
    and scientific notation ("1e3") rather than silently truncating.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{key} must be an integer")
        if "e" in stripped.lower():
            raise ValidationError(f"{key} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise ValidationError(f"{key} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{key} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{key} must be an integer, not a decimal")
    raise ValidationError(f"{key} must be an integer")


def bounded_int(value: Any, key: str, *, minimum: int | None = None, maximum: int = MAX_ID) -> int:
    """coerce_int plus range check, for single query-string arguments."""
    result = coerce_int(value, key)
    if minimum is not None and result < minimum:
        raise ValidationError(f"{key} must be >= {minimum}")
    if result > maximum:
        raise ValidationError(f"{key} cannot exceed {maximum}")
    return result


def _int_field(
    errors: _Errors,
    data: dict,
    name: str,
    key: str,
    *,
    required: bool = False,
    default: int | None = None,
    minimum: int | None = None,
    maximum: int | None = None,
) -> int | None:
    raw = data.get(name)
    if raw is None:
        if required:
            errors.add(key, f"{key} is required")
        return default
    try:
        value = coerce_int(raw, key)
    except ValidationError as e:
        errors.add(key, str(e))
        return default
    if minimum is not None and value < minimum:
        errors.add(key, f"{key} must be >= {minimum}")
        return default
    if maximum is not None and value > maximum:
        errors.add(key, f"{key} cannot exceed {maximum}")
        return default
    return value


def _str_field(errors: _Errors, data: dict, name: str, key: str, *, max_length: int) -> str | None:
    raw = data.get(name)
    if raw is None:
        return None
    if not isinstance(raw, (str, int)) or isinstance(raw, bool):
        errors.add(key, f"{key} must be a string")
        return None
    value = str(raw).strip()
    if not value:
        return None
    if len(value) > max_length:
        errors.add(key, f"{key} exceeds max length {max_length}")
        return None
    return value


def _require_object(payload: Any) -> dict:
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload


def parse_sale_lines(raw_items: Any, errors: _Errors) -> list[SaleLineRequest]:
    if not isinstance(raw_items, list) or not raw_items:
        errors.add("items", "At least one item is required")
        return []

    lines = []
    for i, raw in enumerate(raw_items):
        prefix = f"items[{i}]"
        if not isinstance(raw, dict):
            errors.add(prefix, f"{prefix} must be an object")
            continue
        product_id = _int_field(
            errors, raw, "product_id", f"{prefix}.product_id",
            required=True, minimum=1, maximum=MAX_ID,
        )
        quantity = _int_field(
            errors, raw, "quantity", f"{prefix}.quantity",
            required=True, minimum=1, maximum=MAX_LINE_QUANTITY,
        )
        unit_price = _int_field(
            errors, raw, "unit_price_cents", f"{prefix}.unit_price_cents",
            minimum=0, maximum=MAX_AMOUNT_CENTS,
        )
        discount = _int_field(
            errors, raw, "discount_cents", f"{prefix}.discount_cents",
            default=0, minimum=0, maximum=MAX_AMOUNT_CENTS,
        )
        if product_id is None or quantity is None:
            continue
        if unit_price is not None and discount > quantity * unit_price:
            errors.add(f"{prefix}.discount_cents", "line discount cannot exceed quantity * unit price")
            continue
        lines.append(SaleLineRequest(
            product_id=product_id,
            quantity=quantity,
            unit_price_cents=unit_price,
            discount_cents=discount,
        ))
    return lines


def parse_payments(raw_payments: Any, errors: _Errors) -> list[PaymentRequest]:
    if raw_payments is None:
        return []
    if not isinstance(raw_payments, list):
        errors.add("payments", "payments must be a list")
        return []

    payments = []
    for i, raw in enumerate(raw_payments):
        prefix = f"payments[{i}]"
        if not isinstance(raw, dict):
            errors.add(prefix, f"{prefix} must be an object")
            continue
        method_id = _int_field(
            errors, raw, "payment_method_id", f"{prefix}.payment_method_id",
            required=True, minimum=1, maximum=MAX_ID,
        )
        amount = _int_field(
            errors, raw, "amount_cents", f"{prefix}.amount_cents",
            required=True, minimum=1, maximum=MAX_AMOUNT_CENTS,
        )
        reference = _str_field(errors, raw, "reference_number", f"{prefix}.reference_number", max_length=128)
        if method_id is None or amount is None:
            continue
        payments.append(PaymentRequest(
            payment_method_id=method_id,
            amount_cents=amount,
            reference_number=reference,
        ))
    return payments


def parse_sale_request(payload: Any) -> SaleRequest:
    """Validate the create-sale body. Raises ValidationError with per-field detail."""
    data = _require_object(payload)
    errors = _Errors()

    items = parse_sale_lines(data.get("items"), errors)
    payments = parse_payments(data.get("payments"), errors)

    customer = CustomerInfo()
    raw_customer = data.get("customer")
    if raw_customer is not None:
        if not isinstance(raw_customer, dict):
            errors.add("customer", "customer must be an object")
        else:
            customer = CustomerInfo(
                customer_id=_int_field(errors, raw_customer, "id", "customer.id", minimum=1, maximum=MAX_ID),
                name=_str_field(errors, raw_customer, "name", "customer.name", max_length=255),
                phone=_str_field(errors, raw_customer, "phone", "customer.phone", max_length=64),
                email=_str_field(errors, raw_customer, "email", "customer.email", max_length=255),
            )
            if customer.email and "@" not in customer.email:
                errors.add("customer.email", "customer.email must be a valid email")

    tax = _int_field(errors, data, "tax_cents", "tax_cents", default=0, minimum=0, maximum=MAX_AMOUNT_CENTS)
    discount = _int_field(
        errors, data, "discount_cents", "discount_cents", default=0, minimum=0, maximum=MAX_AMOUNT_CENTS,
    )
    notes = _str_field(errors, data, "notes", "notes", max_length=2000)
    idempotency_key = _str_field(errors, data, "idempotency_key", "idempotency_key", max_length=128)

    errors.raise_if_any("Invalid sale request")

    return SaleRequest(
        items=items,
        payments=payments,
        customer=customer,
        tax_cents=tax,
        discount_cents=discount,
        notes=notes,
        idempotency_key=idempotency_key,
    )


def parse_check_stock_request(payload: Any) -> list[tuple[int, int]]:
    data = _require_object(payload)
    errors = _Errors()
    lines = parse_sale_lines(data.get("items"), errors)
    errors.raise_if_any("Invalid stock check request")
    return [(line.product_id, line.quantity) for line in lines]


def parse_payment_request(payload: Any) -> PaymentRequest:
    data = _require_object(payload)
    errors = _Errors()
    payments = parse_payments([data], errors)
    errors.raise_if_any("Invalid payment")
    return payments[0]


def parse_stock_adjustment(payload: Any) -> StockAdjustmentRequest:
    data = _require_object(payload)
    errors = _Errors()

    product_id = _int_field(errors, data, "product_id", "product_id", required=True, minimum=1, maximum=MAX_ID)
    delta = _int_field(errors, data, "quantity_delta", "quantity_delta", minimum=-MAX_ID, maximum=MAX_ID)
    target = _int_field(errors, data, "target_quantity", "target_quantity", minimum=0, maximum=MAX_ID)
    reason = _str_field(errors, data, "reason", "reason", max_length=255)

    if data.get("quantity_delta") is None and data.get("target_quantity") is None:
        errors.add("quantity_delta", "Provide quantity_delta or target_quantity")
    elif data.get("quantity_delta") is not None and data.get("target_quantity") is not None:
        errors.add("quantity_delta", "Provide only one of quantity_delta or target_quantity")
    elif delta == 0 and data.get("quantity_delta") is not None:
        errors.add("quantity_delta", "quantity_delta must be non-zero")
    if not reason:
        errors.add("reason", "reason is required")

    errors.raise_if_any("Invalid stock adjustment")

    return StockAdjustmentRequest(
        product_id=product_id,
        reason=reason,
        quantity_delta=delta,
        target_quantity=target,
    )


def parse_history_filters(args, *, default_limit: int = 20, max_limit: int = 100) -> HistoryFilters:
    """Parse query-string filters for the transaction history API."""
    errors = _Errors()
    data = dict(args.items()) if hasattr(args, "items") else dict(args or {})

    page = _int_field(errors, data, "page", "page", default=1, minimum=1, maximum=MAX_ID)
    limit = _int_field(errors, data, "limit", "limit", default=default_limit, minimum=1)
    cashier_id = _int_field(errors, data, "cashier_id", "cashier_id", minimum=1, maximum=MAX_ID)
    customer_id = _int_field(errors, data, "customer_id", "customer_id", minimum=1, maximum=MAX_ID)

    start_date = end_date = None
    try:
        start_date = parse_date_bound(data.get("start_date"))
    except ValueError:
        errors.add("start_date", "start_date must be an ISO-8601 date or datetime")
    try:
        end_date = parse_date_bound(data.get("end_date"), end_of_day=True)
    except ValueError:
        errors.add("end_date", "end_date must be an ISO-8601 date or datetime")

    errors.raise_if_any("Invalid history filters")

    return HistoryFilters(
        page=page,
        limit=min(limit, max_limit),
        status=_clean(data.get("status")),
        payment_status=_clean(data.get("payment_status")),
        cashier_id=cashier_id,
        customer_id=customer_id,
        start_date=start_date,
        end_date=end_date,
        search=_clean(data.get("search")),
    )


def _clean(value: Any) -> str | None:
    if value is None:
        return None
    value = str(value).strip()
    return value or None
