"""
Identifier validation for dynamically built queries.
"""
import re
from typing import Iterable, List

from ..common.constants import IDENTIFIER_PATTERN
from ..common.errors import InvalidIdentifierError

_VALID_NAME = re.compile(IDENTIFIER_PATTERN)


def is_valid_identifier(name: str) -> bool:
    """Check that a table or column name only contains [a-zA-Z0-9_]."""
    return bool(name) and _VALID_NAME.match(name) is not None


def validate_identifier(name: str, message: str = "Invalid parameter format") -> str:
    if not is_valid_identifier(name):
        raise InvalidIdentifierError(message)
    return name


def validate_identifiers(names: Iterable[str], message: str = "Invalid parameter format") -> List[str]:
    return [validate_identifier(name, message) for name in names]


def split_names(raw: str) -> List[str]:
    """Split a comma-separated parameter, dropping empty entries."""
    return [part.strip() for part in (raw or "").split(",") if part.strip()]
