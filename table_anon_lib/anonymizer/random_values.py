"""Generate random replacement values for anonymized columns.

Replacements are drawn from a 62-character alphanumeric alphabet using the
``secrets`` CSPRNG, so an anonymized value carries no guessable structure
from the value it replaced.
"""

import secrets
import string
from typing import Callable


ALPHABET = string.ascii_lowercase + string.ascii_uppercase + string.digits  # 62 chars

# Signature: (length: int) -> str
ValueGenerator = Callable[[int], str]


def generate(length: int) -> str:
    """Return a random alphanumeric string of exactly ``length`` characters.

    Each character is chosen uniformly and independently from ALPHABET.
    ``length == 0`` returns the empty string.
    """
    if length < 0:
        raise ValueError(f"length must be >= 0, got {length}")
    return "".join(secrets.choice(ALPHABET) for _ in range(length))
