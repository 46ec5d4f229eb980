"""
Boundary to the protected-content service. The encryption scheme itself is
provided by a {obj}`Cipher` implementation.
"""

import time
from abc import ABC, abstractmethod

from .exceptions import ProtectedSessionError

__all__ = [
    "Cipher",
    "ProtectedSessionService",
]


class Cipher(ABC):
    """
    Encrypts and decrypts protected titles and content with a data key.
    """

    @abstractmethod
    def encrypt(self, key: bytes, plain: bytes) -> str:
        ...

    @abstractmethod
    def decrypt(self, key: bytes, cipher_text: str) -> bytes | None:
        """
        Return plaintext, or `None` if it couldn't be decrypted with this key.
        """
        ...


class ProtectedSessionService:
    """
    Holds the data key for the current protected session, if any.
    """

    _cipher: Cipher | None
    _data_key: bytes | None = None
    _last_activity: float = 0.0

    timeout: float | None
    """
    Seconds of inactivity after which the protected session expires, or
    `None` to never expire.
    """

    def __init__(self, cipher: Cipher | None = None, *, timeout: float | None = None):
        self._cipher = cipher
        self.timeout = timeout

    def set_data_key(self, data_key: bytes):
        if self._cipher is None:
            raise ProtectedSessionError(
                "No cipher configured, can't enter protected session"
            )
        self._data_key = data_key
        self.touch()

    def reset(self):
        self._data_key = None

    def is_available(self) -> bool:
        return self._data_key is not None

    def touch(self):
        self._last_activity = time.monotonic()

    def check_timeout(self) -> bool:
        """
        Expire the protected session if idle for longer than the timeout.
        Returns whether it was expired.
        """
        if (
            self.is_available()
            and self.timeout is not None
            and time.monotonic() - self._last_activity > self.timeout
        ):
            self.reset()
            return True
        return False

    def encrypt(self, plain: str | bytes) -> str:
        if not self.is_available():
            raise ProtectedSessionError(
                "Protected session is not available, can't encrypt"
            )
        assert self._cipher is not None and self._data_key is not None

        data = plain.encode() if isinstance(plain, str) else plain
        return self._cipher.encrypt(self._data_key, data)

    def decrypt(self, cipher_text: str) -> bytes | None:
        if not self.is_available():
            return None
        assert self._cipher is not None and self._data_key is not None

        return self._cipher.decrypt(self._data_key, cipher_text)

    def decrypt_string(self, cipher_text: str) -> str | None:
        plain = self.decrypt(cipher_text)
        return None if plain is None else plain.decode()
