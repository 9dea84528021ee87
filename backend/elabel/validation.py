"""
eLabel API — Field Formats and Validation Error Formatting
==========================================================

What:  The regex formats shared by request bodies and path parameters, and
       the conversion of Pydantic/FastAPI validation errors into the
       `[{"field": ..., "message": ...}]` list returned with HTTP 400.
Why:   A batch number must be checked the same way whether it arrives in a
       POST body or in `/api/labels/batch/{batch_number}`. Keeping the
       patterns and their messages together guarantees that.
Who:   elabel.schemas (Field(pattern=...)), elabel.routes (Path(pattern=...)),
       and the RequestValidationError handler in elabel.main.
"""

from typing import Any, Dict, Iterable, List, Mapping

# ── Formats ───────────────────────────────────────────────────────────────
# Letters, numbers, spaces, &, dots, hyphens
SPONSOR_NAME_PATTERN = r"^[A-Za-z0-9\s&.-]+$"
# Uppercase letters, numbers, hyphens
BATCH_NUMBER_PATTERN = r"^[A-Z0-9-]+$"
# Exactly six digits
KIT_NUMBER_PATTERN = r"^[0-9]{6}$"
# Trial identifiers, protocol numbers, identifier codes
CODE_PATTERN = r"^[A-Za-z0-9_-]+$"
# ISO 639-1 code with optional region, e.g. en, fr, pt-BR
LANGUAGE_CODE_PATTERN = r"^[a-z]{2}(-[A-Z]{2})?$"
UUID_PATTERN = r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"

# Messages reported when a value does not match its field's pattern
PATTERN_MESSAGES: Dict[str, str] = {
    "id": "Invalid ID format",
    "sponsorName": "Invalid sponsor name format",
    "trialIdentifier": "Invalid trial identifier format",
    "protocolNumber": "Invalid protocol number format",
    "identifierCode": "Invalid identifier code format",
    "batchNumber": "Invalid batch number format",
    "kitNumber": "Kit number must be exactly 6 digits",
    "languages": "Invalid language code",
}

_LOCATION_ROOTS = {"body", "path", "query", "header", "cookie"}
_VALUE_ERROR_PREFIX = "Value error, "


def to_camel(name: str) -> str:
    """snake_case → camelCase; names without underscores pass through."""
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def field_name(loc: Iterable[Any]) -> str:
    """
    Turns a Pydantic error location into the public field name.

    ("path", "kit_number")            → "kitNumber"
    ("body", "metadata", "createdBy") → "metadata.createdBy"
    ("body", "languages", 2)          → "languages.2"
    ("body",)                         → "body"
    """
    parts = list(loc)
    if len(parts) > 1 and parts[0] in _LOCATION_ROOTS:
        parts = parts[1:]
    return ".".join(to_camel(p) if isinstance(p, str) else str(p) for p in parts)


def _message_for(error: Mapping[str, Any], name: str) -> str:
    if error.get("type") == "string_pattern_mismatch":
        # languages.0 → languages
        named = [part for part in name.split(".") if not part.isdigit()]
        base = named[-1] if named else name
        if base in PATTERN_MESSAGES:
            return PATTERN_MESSAGES[base]
    message = str(error.get("msg", "Invalid value"))
    if message.startswith(_VALUE_ERROR_PREFIX):
        message = message[len(_VALUE_ERROR_PREFIX):]
    return message


def format_errors(errors: Iterable[Mapping[str, Any]]) -> List[Dict[str, str]]:
    """Converts `RequestValidationError.errors()` into field/message pairs."""
    formatted = []
    for error in errors:
        name = field_name(error.get("loc", ()))
        formatted.append({"field": name, "message": _message_for(error, name)})
    return formatted
