"""
Contact identifiers (email / phone): validation, normalization, masking.

Pure functions only. An invalid value is reported by returning False / None,
never by raising; callers decide which error to surface.
"""
import re
from dataclasses import dataclass

from app.config import settings
from app.models.otp_code import ContactType


EMAIL_REGEX = re.compile(
    r"^[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+"
    r"@[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*$"
)
PHONE_REGEX = re.compile(r"^\+\d{7,15}$")
PHONE_SEPARATORS = re.compile(r"[\s\-.()]")


@dataclass(frozen=True)
class Contact:
    value: str
    kind:  ContactType

    @property
    def masked(self) -> str:
        return mask_contact(self.value, self.kind)


# ─── Validation ───────────────────────────────────────────────────────────────
def validate_email(email: str) -> bool:
    if not email or len(email) > 254:
        return False

    parts = email.split("@")
    if len(parts) != 2:
        return False

    local_part, domain = parts
    if len(local_part) > 64 or len(domain) > 253:
        return False
    if ".." in local_part or ".." in domain:
        return False

    return EMAIL_REGEX.match(email) is not None


def validate_phone(phone: str) -> bool:
    """`+` prefixed international form, 7–15 digits once separators are removed."""
    if not phone or not phone.startswith("+"):
        return False
    return PHONE_REGEX.match(PHONE_SEPARATORS.sub("", phone)) is not None


def validate_contact(value: str, kind: ContactType) -> bool:
    if kind == ContactType.EMAIL:
        return validate_email(value)
    if kind == ContactType.PHONE:
        return validate_phone(value)
    return False


# ─── Normalization ────────────────────────────────────────────────────────────
def sanitize_phone_number(phone: str, default_country_code: str | None = None) -> str:
    """
    Reduce a phone number to `+<digits>`.

    Numbers already written with a leading `+` are taken as international.
    Otherwise: 10 digits get the default country code (even when they start
    with `00`), a longer `00` prefix is the international dialing prefix,
    and anything else is treated as international.
    Idempotent: sanitize(sanitize(x)) == sanitize(x).
    """
    country_code = default_country_code or settings.PHONE_DEFAULT_COUNTRY_CODE
    stripped = phone.strip()
    digits = re.sub(r"\D", "", stripped)

    if stripped.startswith("+"):
        return f"+{digits}"
    if len(digits) == 10 and not digits.startswith(country_code):
        return f"+{country_code}{digits}"
    if stripped.startswith("00") and len(digits) > 2:
        return f"+{digits[2:]}"
    return f"+{digits}"


def normalize_email(email: str) -> str:
    return email.strip().lower()


def normalize_contact(value: str, kind: ContactType) -> Contact | None:
    """Canonical Contact, or None when the value is not a valid identifier."""
    if value is None:
        return None
    if kind == ContactType.EMAIL:
        normalized = normalize_email(value)
    elif kind == ContactType.PHONE:
        normalized = sanitize_phone_number(value)
    else:
        return None

    if not validate_contact(normalized, kind):
        return None
    return Contact(value=normalized, kind=kind)


# ─── Masking (logs) ───────────────────────────────────────────────────────────
def mask_contact(value: str, kind: ContactType) -> str:
    if not value:
        return ""
    if kind == ContactType.EMAIL and "@" in value:
        local, domain = value.split("@", 1)
        return f"{local[:2]}***@{domain}"
    visible = value[-2:]
    return "*" * max(len(value) - 2, 0) + visible
