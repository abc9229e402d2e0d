"""Short code generation and format validation.

Candidates are pure random draws from a 62-character alphabet; uniqueness is
the concern of ``shortlinks.resolver`` and, authoritatively, of the store.

Key Behaviours
===============
- Generated codes are ``DEFAULT_CODE_LENGTH`` (6) characters long.
- Caller-supplied and generated codes share one rule: 4-10 ASCII letters or digits.
"""

import re

from nanoid import generate

__all__ = [
    "ALPHABET",
    "DEFAULT_CODE_LENGTH",
    "generate_candidate",
    "validate_format",
]

ALPHABET = "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
DEFAULT_CODE_LENGTH = 6
MIN_CODE_LENGTH = 4
MAX_CODE_LENGTH = 10

_CODE_PATTERN = re.compile(rf"[A-Za-z0-9]{{{MIN_CODE_LENGTH},{MAX_CODE_LENGTH}}}")


def generate_candidate(length: int = DEFAULT_CODE_LENGTH) -> str:
    assert isinstance(length, int) and length > 0, f"length must be a positive integer, got {length!r}"
    return generate(ALPHABET, length)


def validate_format(code: object) -> bool:
    return isinstance(code, str) and _CODE_PATTERN.fullmatch(code) is not None
