"""Random password generation for tenant accounts."""

from __future__ import annotations

import random
import secrets
import string

SYMBOLS = "!@#$%^&*"
CHARACTER_CLASSES = (
    string.ascii_lowercase,
    string.ascii_uppercase,
    string.digits,
    SYMBOLS,
)
MIN_PASSWORD_LENGTH = len(CHARACTER_CLASSES)
DEFAULT_PASSWORD_LENGTH = 16


class CredentialGenerator:
    """Generates passwords containing every required character class.

    One character of each class is seeded first, the rest is drawn from the
    union of all classes, and the whole sequence is then shuffled so the
    seeded characters do not sit at predictable positions.
    """

    def __init__(
        self,
        length: int = DEFAULT_PASSWORD_LENGTH,
        rng: random.Random | None = None,
    ):
        """Initialize the generator.

        Args:
            length: Default password length
            rng: Random source; defaults to the OS CSPRNG
        """
        self._length = length
        self._rng = rng or secrets.SystemRandom()

    def generate(self, length: int | None = None) -> str:
        """Generate a password.

        Args:
            length: Exact password length; defaults to the configured length

        Returns:
            The password

        Raises:
            ValueError: If length is below the number of required classes
        """
        length = self._length if length is None else length
        if length < MIN_PASSWORD_LENGTH:
            raise ValueError(
                f"Password length must be at least {MIN_PASSWORD_LENGTH}, got {length}"
            )

        alphabet = "".join(CHARACTER_CLASSES)
        chars = [self._rng.choice(chars) for chars in CHARACTER_CLASSES]
        chars.extend(self._rng.choice(alphabet) for _ in range(length - len(chars)))
        self._rng.shuffle(chars)
        return "".join(chars)
