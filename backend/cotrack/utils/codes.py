"""Generation of the short user and session identity codes."""
import secrets
import string
from typing import Type

from sqlalchemy.orm import Session

from cotrack.constants import CODE_RANDOM_LENGTH

CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_code(suffix: str) -> str:
    """
    Generate a random identity code.

    Args:
        suffix: Single-character suffix ("U" for users, "S" for sessions)

    Returns:
        Code string (format: ABC123U)
    """
    random_part = "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_RANDOM_LENGTH))
    return f"{random_part}{suffix}"


def get_unique_code(db: Session, model: Type, field_name: str, suffix: str) -> str:
    """
    Generate a code that is not yet used in the given column.

    Args:
        db: Database session
        model: SQLAlchemy model class owning the code column
        field_name: Name of the code column
        suffix: Code suffix

    Returns:
        Unused code
    """
    field = getattr(model, field_name)
    while True:
        code = generate_code(suffix)
        if not db.query(model).filter(field == code).first():
            return code


def normalize_code(code: str) -> str:
    """Codes are case-insensitive; store and compare them upper-cased."""
    return code.strip().upper() if code else code


def is_valid_code(code: str, suffix: str) -> bool:
    """True for a normalized code of the form ABC123<suffix>."""
    if not code or len(code) != CODE_RANDOM_LENGTH + 1 or not code.endswith(suffix):
        return False
    return all(char in CODE_ALPHABET for char in code[:-1])
