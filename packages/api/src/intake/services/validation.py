# This project was developed with assistance from AI tools.
"""Field-level and upload validation for the intake form.

Field validators are pure functions returning ``(ok, message, normalized)``.
Upload checks raise ``UploadValidationError`` so the whole batch is rejected
before any file is stored.
"""

import re
from collections.abc import Callable, Sequence
from decimal import Decimal, InvalidOperation

from ..core.config import settings
from ..schemas.document import DocumentRequirement, NewPayload

ALLOWED_CONTENT_TYPES = {
    "application/pdf",
    "image/jpeg",
    "image/png",
    "image/webp",
}


class IntakeValidationError(ValueError):
    """User-correctable problem; the operation was aborted without changes."""


class UploadValidationError(IntakeValidationError):
    """Raised when an upload batch fails type, size or count checks."""


def validate_email(value: str) -> tuple[bool, str, str | None]:
    """Basic email format validation."""
    value = value.strip().lower()
    if not value:
        return True, "", ""
    if not re.fullmatch(r"[^@\s]+@[^@\s]+\.[^@\s]+", value):
        return False, "Invalid email format", None
    return True, "", value


def validate_phone(value: str) -> tuple[bool, str, str | None]:
    """Accept international numbers; keep a leading + and digits only."""
    value = value.strip()
    if not value:
        return True, "", ""
    cleaned = re.sub(r"[\s\-().]", "", value)
    if not re.fullmatch(r"\+?\d{8,15}", cleaned):
        return False, "Phone number must contain 8 to 15 digits", None
    return True, "", cleaned


def validate_income(value: str) -> tuple[bool, str, Decimal | None]:
    """Validate gross monthly income. Empty input clears the field."""
    cleaned = re.sub(r"[€$,\s]", "", value.strip())
    if cleaned == "":
        return True, "", None
    try:
        amount = Decimal(cleaned)
    except InvalidOperation:
        return False, "Could not parse income amount", None
    if amount < 0:
        return False, "Income cannot be negative", None
    if amount > 1_000_000:
        return False, "Income seems unusually high -- please confirm", None
    return True, "", amount.quantize(Decimal("0.01"))


def _strip(value: str) -> tuple[bool, str, str]:
    return True, "", value.strip()


_FIELD_VALIDATORS: dict[str, Callable[[str], tuple[bool, str, object]]] = {
    "name": _strip,
    "email": validate_email,
    "phone": validate_phone,
    "address": _strip,
    "postcode": _strip,
    "city": _strip,
    "income": validate_income,
}


def validate_field(field_name: str, value) -> tuple[bool, str, object]:
    """Validate a single party form field; unknown fields pass through."""
    validator = _FIELD_VALIDATORS.get(field_name)
    if validator is None or not isinstance(value, str):
        return True, "", value
    return validator(value)


def validate_payloads(payloads: Sequence[NewPayload]) -> None:
    """Check content type and size of every new file in a batch."""
    max_bytes = settings.UPLOAD_MAX_SIZE_MB * 1024 * 1024
    for payload in payloads:
        if payload.content_type not in ALLOWED_CONTENT_TYPES:
            raise UploadValidationError(
                f"Unsupported file type for {payload.filename}: {payload.content_type}. "
                f"Allowed: {', '.join(sorted(ALLOWED_CONTENT_TYPES))}"
            )
        if payload.size > max_bytes:
            raise UploadValidationError(
                f"{payload.filename} exceeds the maximum of {settings.UPLOAD_MAX_SIZE_MB}MB"
            )


def validate_file_count(
    requirement: DocumentRequirement | None,
    carried_over: int,
    new_files: int,
) -> None:
    """Reject a batch that would overflow a multi-file slot."""
    if requirement is None or not requirement.multi_file:
        return
    remaining = requirement.max_files - carried_over
    if new_files > remaining:
        raise UploadValidationError(
            f"{requirement.label} accepts at most {requirement.max_files} files "
            f"({max(remaining, 0)} remaining)"
        )
