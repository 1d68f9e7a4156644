"""
Naming helpers for generated identifiers.
"""

import re

# Characters that may not appear in a C++ / protobuf identifier
_ILLEGAL_CHARS = re.compile(r"[^A-Za-z0-9_]")

# Word boundaries for camelCase / PascalCase splitting
_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")

_REPEATED_UNDERSCORES = re.compile(r"_{2,}")


def is_legal_identifier(text: str) -> bool:
    """Check that text is usable as-is as a C++ and protobuf identifier."""
    return bool(text) and not _ILLEGAL_CHARS.search(text) and not text[0].isdigit()


def to_code_safe_name(text: str) -> str:
    """Replace every character that cannot appear in an identifier with an underscore.

    Examples:
        "Pawn" -> "Pawn"
        "BP_Ghost_C" -> "BP_Ghost_C"
        "My Actor-2" -> "My_Actor_2"

    Returns an empty string when nothing usable is left, or when the
    result would start with a digit; callers decide on a fallback name.
    """
    if not text:
        return ""
    safe = _ILLEGAL_CHARS.sub("_", text.strip())
    if not safe.strip("_") or not is_legal_identifier(safe):
        return ""
    return safe


def to_snake_case(text: str) -> str:
    """Convert PascalCase or camelCase text to snake_case.

    Examples:
        "Health" -> "health"
        "bIsCrouched" -> "b_is_crouched"
        "HTTPRequest" -> "http_request"
        "Pawn_2" -> "pawn_2"
    """
    if not text:
        return ""
    snake = _CAMEL_BOUNDARY.sub("_", text).lower()
    return _REPEATED_UNDERSCORES.sub("_", snake)
