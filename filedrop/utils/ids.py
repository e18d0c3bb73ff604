"""
Short object identifiers.
"""

import random
import string
from typing import Optional

ALPHABET = string.ascii_letters + string.digits


def generate_id(length: int, rng: Optional[random.Random] = None) -> str:
    """
    Generate a random alphanumeric identifier.

    Used as both the object key and the public URL path segment. Collisions are
    possible and not checked for.

    Args:
        length: Number of characters
        rng: Random source (module-level generator by default)

    Returns:
        String of exactly ``length`` characters from [A-Za-z0-9]
    """
    rng = rng or random
    return "".join(rng.choices(ALPHABET, k=length))
