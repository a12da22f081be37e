"""
Short code generation strategies for the link registry.
Uses Strategy Pattern to allow different generation algorithms.

Strategies are pure: they know nothing about existing codes. Collision
handling belongs to the allocation service.
"""

import base64
import re
import secrets
import string
from abc import ABC, abstractmethod


class ShortCodeStrategy(ABC):
    """Abstract base class for short code generation strategies"""

    @abstractmethod
    def generate(self, length: int) -> str:
        """
        Generate a random short code.

        Args:
            length: Exact number of characters to return

        Returns:
            A URL-safe code made of letters and digits only
        """
        pass

    @staticmethod
    def _check_length(length: int) -> None:
        if length < 1:
            raise ValueError(f"Short code length must be positive, got {length}")


class RandomBytesShortCodeStrategy(ShortCodeStrategy):
    """
    Base64 over cryptographically random bytes.

    '+', '/' and '=' are stripped, so a single draw can come up short;
    the strategy keeps drawing until it has enough characters, then
    truncates to the requested length.
    """

    _NON_ALNUM = re.compile(r"[^A-Za-z0-9]")

    def generate(self, length: int) -> str:
        self._check_length(length)
        code = ""
        while len(code) < length:
            chunk = base64.b64encode(secrets.token_bytes(length)).decode("ascii")
            code += self._NON_ALNUM.sub("", chunk)
        return code[:length]


class AlphabetShortCodeStrategy(ShortCodeStrategy):
    """
    Pick each character independently from the 62-character alphabet.
    Uniform over the code space.
    """

    ALPHABET = string.ascii_letters + string.digits

    def generate(self, length: int) -> str:
        self._check_length(length)
        return "".join(secrets.choice(self.ALPHABET) for _ in range(length))
