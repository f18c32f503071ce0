"""Phone number screening for the demo call form.

A heuristic filter, not a telecom-correct validator: numbers must be in
international (E.164) form and must not look like keyboard mashing.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

E164_RE = re.compile(r"^\+[1-9][0-9]{1,14}$")
REPEATED_DIGITS_RE = re.compile(r"^([0-9])\1+$")
SEQUENTIAL_RUNS = ("01234", "12345", "23456", "34567", "45678", "56789", "67890")

FORMAT_ERROR = "Phone number must be in international format (e.g., +14155552671)"
PATTERN_ERROR = "Invalid phone number pattern"


@dataclass(frozen=True)
class PhoneValidation:
    valid: bool
    number: str = ""
    error: str | None = None


def clean_phone(phone: str) -> str:
    """Strip whitespace and hyphens: '+1 555-123 4567' → '+15551234567'."""
    return re.sub(r"[\s-]", "", phone)


def validate_phone_number(phone: str) -> PhoneValidation:
    cleaned = clean_phone(phone)
    if not E164_RE.match(cleaned):
        return PhoneValidation(valid=False, error=FORMAT_ERROR)

    digits = cleaned[1:]
    if REPEATED_DIGITS_RE.match(digits) or any(run in digits for run in SEQUENTIAL_RUNS):
        return PhoneValidation(valid=False, error=PATTERN_ERROR)

    return PhoneValidation(valid=True, number=cleaned)


def mask_phone(phone: str | None) -> str:
    """Mask a phone number for logs: '+15559876543' → '***6543'."""
    if not phone:
        return "[no-phone]"
    digits = re.sub(r"\D", "", phone)
    return "***" + digits[-4:] if len(digits) >= 4 else "****"
