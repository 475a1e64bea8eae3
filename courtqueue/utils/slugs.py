"""Shareable booking-link code generation."""

import secrets
import string

SLUG_ALPHABET = string.ascii_lowercase + string.digits
SLUG_LENGTH = 8


def generate_slug(length: int = SLUG_LENGTH) -> str:
    """Return a random lowercase alphanumeric code (e.g. "k3v9x0qa")."""
    return "".join(secrets.choice(SLUG_ALPHABET) for _ in range(length))
