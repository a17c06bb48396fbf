"""
Secure Memory - Scoped handling of secret material.

Secrets (mnemonic phrases, seeds, private keys) are held in mutable
bytearrays so they can be overwritten in place when no longer needed.
Python str/bytes copies handed to libraries cannot be wiped; they are kept
local to a single call and dropped on return.
"""

import threading
from contextlib import contextmanager
from typing import Iterator, Optional

from .errors import KeyWiped


class SecretBuffer:
    """
    A wipeable container for secret bytes.

    Usage:
        buf = SecretBuffer.from_text(phrase)
        with buf.exposed() as text:
            ...                     # use text for the duration of the call
        buf.wipe()                  # zero-fills the backing storage
    """

    def __init__(self, data: bytes | bytearray):
        self._data: Optional[bytearray] = bytearray(data)
        self._lock = threading.Lock()

    @classmethod
    def from_text(cls, text: str) -> "SecretBuffer":
        return cls(text.encode("utf-8"))

    @property
    def is_wiped(self) -> bool:
        return self._data is None

    def __len__(self) -> int:
        return 0 if self._data is None else len(self._data)

    def __repr__(self) -> str:
        state = "wiped" if self.is_wiped else f"{len(self)} bytes"
        return f"<SecretBuffer {state}>"

    def reveal(self) -> bytes:
        """Return a copy of the secret bytes."""
        with self._lock:
            if self._data is None:
                raise KeyWiped("Secret material has been wiped")
            return bytes(self._data)

    def reveal_text(self) -> str:
        return self.reveal().decode("utf-8")

    @contextmanager
    def exposed(self) -> Iterator[str]:
        """Expose the secret as text for the duration of a with-block."""
        yield self.reveal_text()

    def wipe(self) -> None:
        """Overwrite the secret with zeros and release it. Idempotent."""
        with self._lock:
            if self._data is not None:
                for i in range(len(self._data)):
                    self._data[i] = 0
                self._data = None

    def __del__(self):
        """Attempt to clear secret data on destruction."""
        if hasattr(self, '_lock'):
            self.wipe()


def wipe_bytearray(data: bytearray) -> None:
    """Zero-fill a bytearray in place."""
    for i in range(len(data)):
        data[i] = 0


@contextmanager
def scoped_secret(data: bytes | bytearray) -> Iterator[SecretBuffer]:
    """Wrap secret bytes in a SecretBuffer that is wiped on every exit path."""
    buf = SecretBuffer(data)
    try:
        yield buf
    finally:
        buf.wipe()
