"""One-time verification code generation.

Codes are drawn with ``secrets.randbelow`` over the whole range
``0 .. 10**length - 1`` and left-padded with zeros, so every code from
``000000`` to ``999999`` is equally likely. Nothing is retained between
draws.
"""

import secrets
from collections.abc import Iterator

DEFAULT_CODE_LENGTH = 6


def generate_code(length: int = DEFAULT_CODE_LENGTH) -> str:
    """Generate a numeric one-time code.

    Args:
        length: Number of digits.

    Returns:
        Zero-padded numeric string of exactly ``length`` digits.

    Raises:
        ValueError: If length is not positive.
    """
    if length <= 0:
        msg = f"Code length must be positive. Got: {length}"
        raise ValueError(msg)
    return str(secrets.randbelow(10**length)).zfill(length)


def code_stream(length: int = DEFAULT_CODE_LENGTH) -> Iterator[str]:
    """Yield independent one-time codes forever.

    Args:
        length: Number of digits per code.

    Yields:
        Zero-padded numeric codes.
    """
    while True:
        yield generate_code(length)
