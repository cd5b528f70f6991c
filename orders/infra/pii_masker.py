"""
PII (Personally Identifiable Information) masking utilities for log records.
"""
import re


UUID_RE = re.compile(r'^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$', re.I)


def mask_email(email: str) -> str:
    """Mask email address."""
    if "@" not in email:
        return email
    local, domain = email.split("@", 1)
    if len(local) <= 2:
        masked = "**"
    else:
        masked = local[:2] + "*" * (len(local) - 2)
    return f"{masked}@{domain}"


def mask_identifier(value: str) -> str:
    """Show only the first 8 characters of an identifier."""
    if len(value) <= 8:
        return "*" * len(value)
    return value[:8] + "*" * 4


def mask_address(address: str) -> str:
    """Keep the last comma-separated part (usually city or postcode)."""
    parts = [part.strip() for part in address.split(",") if part.strip()]
    if len(parts) <= 1:
        return "***"
    return "***, " + parts[-1]


def mask_pii_in_dict(data: dict) -> dict:
    """Mask PII in dictionary recursively."""
    masked = {}
    address_fields = {"delivery_address", "deliveryaddress", "address"}

    for key, value in data.items():
        key_lower = key.lower()

        if isinstance(value, dict):
            masked[key] = mask_pii_in_dict(value)
        elif isinstance(value, list):
            masked[key] = [mask_pii_in_dict(item) if isinstance(item, dict) else item for item in value]
        elif not isinstance(value, str):
            masked[key] = value
        elif key_lower in address_fields:
            masked[key] = mask_address(value)
        elif "@" in value:
            masked[key] = mask_email(value)
        elif key_lower in ("user_id", "owner_id", "userid", "ownerid") or UUID_RE.match(value):
            masked[key] = mask_identifier(value)
        else:
            masked[key] = value

    return masked
