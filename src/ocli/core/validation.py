"""Input validation utilities.

Provides validation for:
- PostgreSQL database names
- Required command arguments

All validators return the validated value or raise ValidationError.
"""

import re
from typing import Optional

from ocli.core.exceptions import ValidationError


# Names owned by the PostgreSQL cluster itself
RESERVED_DB_NAMES: frozenset[str] = frozenset({
    "template0",
    "template1",
    "postgres",
})

# PostgreSQL identifier pattern (ASCII only)
IDENTIFIER_PATTERN = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")

# Maximum identifier length
MAX_IDENTIFIER_LENGTH = 63


def is_valid_db_name(name: Optional[str]) -> bool:
    """Check a database name against PostgreSQL identifier rules.

    Rules:
    - 1 to 63 characters
    - Starts with an ASCII letter or underscore
    - Contains only ASCII letters, digits and underscores
    - Is not a reserved cluster database (case-insensitive)
    """
    if not name or len(name) > MAX_IDENTIFIER_LENGTH:
        return False
    if not IDENTIFIER_PATTERN.match(name):
        return False
    return name.lower() not in RESERVED_DB_NAMES


def validate_db_name(name: Optional[str], label: str = "database") -> str:
    """Validate a database name.

    Args:
        name: The name to validate
        label: Used in error messages (e.g., "database", "new database")

    Returns:
        The validated name

    Raises:
        ValidationError: If the name is invalid
    """
    if is_valid_db_name(name):
        return name  # type: ignore[return-value]

    if not name:
        hint = "Provide a non-empty name"
    elif len(name) > MAX_IDENTIFIER_LENGTH:
        hint = f"Use a name with {MAX_IDENTIFIER_LENGTH} or fewer characters"
    elif name.lower() in RESERVED_DB_NAMES:
        hint = f"'{name}' is reserved by PostgreSQL"
    else:
        hint = "Must start with a letter or underscore, contain only letters, digits, and underscores"

    raise ValidationError(f"Invalid {label} name: '{name or ''}'", hint=hint)


def require(value: Optional[str], what: str, flag: str) -> str:
    """Ensure a required argument was given.

    Raises:
        ValidationError: If value is empty
    """
    if not value:
        raise ValidationError(
            f"{what} is required",
            hint=f"Use {flag} to specify it",
        )
    return value
