from core.imports import re, math, datetime, timezone
from core.errors import ValidationError

PHONE_RE = re.compile(r"^\+?[0-9]{10,15}$")
PROFILE_PHONE_RE = re.compile(r"^\+?[0-9]{7,15}$")
INDIAN_PIN_RE = re.compile(r"^[1-9][0-9]{5}$")
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
PASSWORD_RE = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)")

ADDRESS_REQUIRED_FIELDS = ("full_name", "phone", "email", "street", "city", "state", "postal_code")


def field_error(field, message):
    return {"field": field, "message": message}


def clean_string(value, field):
    """Strip a text field; ``None`` becomes ``""`` and any non-string is a validation error."""
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError(errors=[field_error(field, "Must be a string")])
    return value.strip()


def is_valid_email(value):
    return isinstance(value, str) and bool(EMAIL_RE.match(value.strip()))


def normalize_email(value):
    if not isinstance(value, str):
        return ""
    return value.strip().lower()


def password_errors(password, field="password"):
    errors = []
    if not isinstance(password, str) or len(password) < 6:
        errors.append(field_error(field, "Password must be at least 6 characters"))
    elif not PASSWORD_RE.match(password):
        errors.append(field_error(
            field,
            "Password must contain at least one uppercase letter, one lowercase letter, and one number"
        ))
    return errors


def validate_shipping_address(data):
    """Return a cleaned shipping-address snapshot or raise ValidationError."""
    if not isinstance(data, dict):
        raise ValidationError(errors=[field_error("shipping_address", "Shipping address is required")])

    address = {key: str(value).strip() for key, value in data.items() if value is not None}
    if not address.get("country"):
        address["country"] = "India"

    errors = []
    for field in ADDRESS_REQUIRED_FIELDS:
        if not address.get(field):
            errors.append(field_error(f"shipping_address.{field}", f"{field.replace('_', ' ').capitalize()} is required"))

    phone = address.get("phone", "").replace(" ", "")
    if phone and not PHONE_RE.match(phone):
        errors.append(field_error("shipping_address.phone", "Please provide a valid phone number"))

    email = address.get("email")
    if email and not is_valid_email(email):
        errors.append(field_error("shipping_address.email", "Please provide a valid email address"))

    postal_code = address.get("postal_code")
    if postal_code and address["country"].lower() == "india" and not INDIAN_PIN_RE.match(postal_code):
        errors.append(field_error("shipping_address.postal_code", "Please provide a valid 6-digit PIN code"))

    if errors:
        raise ValidationError(errors=errors)

    return {
        "full_name": address["full_name"],
        "phone": phone,
        "email": normalize_email(email),
        "street": address["street"],
        "city": address["city"],
        "state": address["state"],
        "postal_code": postal_code,
        "country": address["country"],
        "landmark": address.get("landmark") or None,
    }


def parse_int(value, default, minimum=1, maximum=None):
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    if number < minimum:
        return default
    if maximum is not None and number > maximum:
        return maximum
    return number


def parse_quantity(value, field="quantity"):
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValidationError(errors=[field_error(field, "Quantity must be a positive integer")])
    return value


def parse_bool(value):
    if isinstance(value, bool):
        return value
    if value is None:
        return None
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def parse_datetime(value, field):
    """Accept ISO-8601 strings (a trailing ``Z`` included); returns a naive UTC datetime."""
    if value in (None, ""):
        return None
    try:
        parsed = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError(errors=[field_error(field, "Must be an ISO-8601 date")])
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def parse_amount(value, field, minimum=0):
    if isinstance(value, bool):
        value = None
    try:
        amount = float(value)
    except (TypeError, ValueError):
        raise ValidationError(errors=[field_error(field, "Must be a number")])
    if not math.isfinite(amount):
        raise ValidationError(errors=[field_error(field, "Must be a finite number")])
    if amount < minimum:
        raise ValidationError(errors=[field_error(field, f"Must be at least {minimum:g}")])
    return round(amount, 2)
