"""ID and value generators (CUID, random secrets)."""

import secrets
import string

from cuid2 import cuid_wrapper

cuid_generator = cuid_wrapper()

_SECRET_ALPHABET = string.ascii_letters + string.digits


def generate_cuid() -> str:
    """Generate a collision-resistant unique identifier (CUID2).

    Returns:
        A new CUID string.
    """
    result = cuid_generator()
    if not isinstance(result, str):
        raise TypeError(
            f"Expected str from cuid_generator, got {type(result).__name__}"
        )
    return result


def generate_secret(length: int = 32) -> str:
    """Return a random alphanumeric secret of the given length (CSPRNG)."""
    return "".join(secrets.choice(_SECRET_ALPHABET) for _ in range(length))
