# bookstore_requests/services/validators.py
"""
Pure field validators for intake and status-change forms.

Every validator returns a ``ValidationResult`` and never raises on bad input,
so the engine can collect all problems of a submission in one pass.
"""
from __future__ import annotations

import re
from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, NamedTuple, Optional


class ValidationResult(NamedTuple):
    valid: bool
    error: Optional[str] = None


OK = ValidationResult(True)

_ISBN_STRIP = re.compile(r"[-\s]")
_PHONE_STRIP = re.compile(r"[\s\-.()]")
_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]{2,}$")
_ORDER_PATTERNS = (
    re.compile(r"^D\d+$"),      # draft order
    re.compile(r"^\d{5}$"),     # regular order
    re.compile(r"^1\d{5,}$"),   # extended order
)

ORDER_NUMBER_ERROR = (
    "Order number must be either: 5 digits, more than 5 digits starting with '1', "
    "or start with 'D' followed by numbers"
)


# ---- ISBN ----
def _isbn13_checksum_ok(digits: str) -> bool:
    total = sum((1 if i % 2 == 0 else 3) * int(d) for i, d in enumerate(digits[:12]))
    return (10 - total % 10) % 10 == int(digits[12])


def _isbn10_checksum_ok(chars: str) -> bool:
    total = sum((10 - i) * int(d) for i, d in enumerate(chars[:9]))
    check = 10 if chars[9] in "Xx" else int(chars[9])
    return (total + check) % 11 == 0


def validate_isbn(raw: str, strict: bool = True) -> ValidationResult:
    """Validate an ISBN-10/ISBN-13, or accept a non-numeric store SKU.

    With ``strict=False`` any value is accepted (legacy SKU behaviour).
    """
    if not strict:
        return OK
    clean = _ISBN_STRIP.sub("", raw or "")
    if not clean:
        return ValidationResult(False, "ISBN cannot be empty")

    if clean.isdigit():
        if len(clean) == 13:
            if not clean.startswith(("978", "979")):
                return ValidationResult(False, "ISBN-13 must start with 978 or 979")
            if not _isbn13_checksum_ok(clean):
                return ValidationResult(False, "Invalid ISBN-13 checksum")
            return OK
        if len(clean) == 10:
            if not _isbn10_checksum_ok(clean):
                return ValidationResult(False, "Invalid ISBN-10 checksum")
            return OK
        return ValidationResult(False, "Numeric ISBN must be either 10 or 13 digits long")

    if len(clean) == 10 and clean[:9].isdigit() and clean[9] in "Xx":
        if not _isbn10_checksum_ok(clean):
            return ValidationResult(False, "Invalid ISBN-10 checksum")
        return OK

    # non-standard SKU
    return OK


# ---- Order number ----
def validate_order_number(raw: str) -> ValidationResult:
    clean = re.sub(r"\s", "", raw or "")
    if any(p.match(clean) for p in _ORDER_PATTERNS):
        return OK
    return ValidationResult(False, ORDER_NUMBER_ERROR)


# ---- Contact ----
def validate_email(raw: str) -> ValidationResult:
    email = (raw or "").strip()
    if not email:
        return ValidationResult(False, "Email address cannot be empty")
    if not _EMAIL_RE.match(email):
        return ValidationResult(False, "Please enter a valid email address (e.g., name@example.com)")
    return OK


def validate_phone_number(raw: str) -> ValidationResult:
    phone = _PHONE_STRIP.sub("", raw or "")
    if not phone:
        return ValidationResult(False, "Phone number cannot be empty")

    if phone.startswith("+"):
        if len(phone) < 9:
            return ValidationResult(False, "International phone number is too short")
        if not phone[1:].isdigit():
            return ValidationResult(False, "International phone number can only contain digits after the '+'")
        return OK

    if len(phone) != 10:
        return ValidationResult(False, "Phone number must be 10 digits (or include '+' for international format)")
    if not phone.isdigit():
        return ValidationResult(False, "Phone number can only contain digits")
    return OK


def guess_contact_type(raw: str) -> str:
    value = (raw or "").strip()
    if "@" in value:
        return "email"
    if re.search(r"[\d+\-().\s]", value) and len(re.sub(r"[^\d+]", "", value)) >= 4:
        return "phone"
    return "unknown"


def validate_contact(raw: str) -> ValidationResult:
    if not (raw or "").strip():
        return ValidationResult(False, "Contact information cannot be empty")
    kind = guess_contact_type(raw)
    if kind == "email":
        return validate_email(raw)
    if kind == "phone":
        return validate_phone_number(raw)
    if validate_email(raw).valid or validate_phone_number(raw).valid:
        return OK
    return ValidationResult(False, "Please enter a valid email address or phone number")


# ---- Dates ----
def parse_date(value: Any) -> Optional[date]:
    """Date part of a ``date``/``datetime`` or an ISO string; None if unparseable."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            return None
    return None


def validate_not_future(value: Any, today: date, label: str = "Date") -> ValidationResult:
    day = parse_date(value)
    if day is None:
        return ValidationResult(False, f"{label} must be a valid date (YYYY-MM-DD)")
    if day >= today + timedelta(days=1):
        return ValidationResult(False, f"{label} must be today or earlier, not a future date")
    return OK


def validate_future(value: Any, today: date, label: str = "Date") -> ValidationResult:
    day = parse_date(value)
    if day is None:
        return ValidationResult(False, f"{label} must be a valid date (YYYY-MM-DD)")
    if day < today + timedelta(days=1):
        return ValidationResult(False, f"{label} must be tomorrow or later")
    return OK


def validate_not_past(value: Any, today: date, label: str = "Date") -> ValidationResult:
    day = parse_date(value)
    if day is None:
        return ValidationResult(False, f"{label} must be a valid date (YYYY-MM-DD)")
    if day < today:
        return ValidationResult(False, f"{label} must be today or a future date")
    return OK


FieldValidator = Callable[[Any, date, bool], ValidationResult]


def _dated(check, label: str) -> FieldValidator:
    return lambda value, today, strict_isbn=True: check(value, today, label)


FIELD_VALIDATORS: Dict[str, FieldValidator] = {
    "isbn": lambda value, today, strict_isbn=True: validate_isbn(str(value), strict=strict_isbn),
    "order_number": lambda value, today, strict_isbn=True: validate_order_number(str(value)),
    "customer_contact": lambda value, today, strict_isbn=True: validate_contact(str(value)),
    "arrival_date": _dated(validate_not_future, "Arrival date"),
    "notification_date": _dated(validate_not_future, "Notification date"),
    "completion_date": _dated(validate_not_future, "Completion date"),
    "estimated_arrival": _dated(validate_future, "Estimated arrival date"),
    "date_needed": _dated(validate_future, "Date needed"),
    "estimated_completion": _dated(validate_future, "Estimated completion date"),
    "pickup_date": _dated(validate_not_past, "Pick Up Date"),
}


def validate_field(name: str, value: Any, today: date, strict_isbn: bool = True) -> ValidationResult:
    """Run the validator registered for ``name``; fields without one are accepted."""
    validator = FIELD_VALIDATORS.get(name)
    if validator is None:
        return OK
    return validator(value, today, strict_isbn)
