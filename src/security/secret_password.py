"""
Short-lived holder for PKCS#12 passwords.

The password lives in a mutable buffer that is zeroed as soon as the
operation that needed it is finished. It is never rendered by ``repr`` or
``str``, so it cannot leak into log lines or audit rows by accident.
"""

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from src.certmigrate.core.errors import ValidationError
from src.i18n import _

WEAK_PASSWORD_LENGTH = 4


class SecretPassword:
    """A password that can be revealed for one call and then wiped."""

    __slots__ = ("_buffer", "_length")

    def __init__(self, value: str):
        self._buffer = bytearray(value.encode("utf-8"))
        self._length = len(value)

    def __repr__(self) -> str:
        return "SecretPassword(****)"

    __str__ = __repr__

    def __len__(self) -> int:
        return self._length

    def __enter__(self) -> "SecretPassword":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.clear()

    @property
    def cleared(self) -> bool:
        """True once the buffer has been wiped."""
        return not self._buffer

    def is_blank(self) -> bool:
        """True for empty or whitespace-only passwords."""
        return not bytes(self._buffer).strip()

    @contextmanager
    def reveal(self) -> Iterator[bytes]:
        """Yield the password bytes for the duration of one crypto call."""
        if self.cleared and self._length:
            raise ValidationError(_("Password has already been cleared"))
        yield bytes(self._buffer)

    def clear(self) -> None:
        """Overwrite and release the buffer."""
        for index in range(len(self._buffer)):
            self._buffer[index] = 0
        self._buffer = bytearray()


def require_password(secret: Optional[SecretPassword]) -> SecretPassword:
    """Reject a missing, empty or whitespace-only password."""
    if secret is None or secret.is_blank():
        raise ValidationError(_("A non-empty password is required"))
    return secret


def warn_if_weak(secret: SecretPassword, logger: logging.Logger) -> bool:
    """Log an advisory for very short passwords. Never raises."""
    if len(secret) < WEAK_PASSWORD_LENGTH:
        logger.warning(
            _("Password is shorter than %d characters; consider a stronger one"),
            WEAK_PASSWORD_LENGTH,
        )
        return True
    return False
