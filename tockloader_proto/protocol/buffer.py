"""Fixed-capacity receive buffer shared by both decoders."""

from __future__ import annotations

from .errors import FrameOverflowError
from .protocol import DEFAULT_BUFFER_CAPACITY


class DecodeBuffer:
    """Preallocated byte storage with a write cursor.

    The storage never grows: appending past ``capacity`` raises
    :class:`FrameOverflowError` instead of reallocating or truncating.
    ``clear`` only rewinds the cursor.
    """

    __slots__ = ("_storage", "_cursor")

    def __init__(self, capacity: int = DEFAULT_BUFFER_CAPACITY) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._storage = bytearray(capacity)
        self._cursor = 0

    @property
    def capacity(self) -> int:
        return len(self._storage)

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def remaining(self) -> int:
        return len(self._storage) - self._cursor

    def is_full(self) -> bool:
        return self._cursor == len(self._storage)

    def __len__(self) -> int:
        return self._cursor

    def append(self, byte: int) -> None:
        if self._cursor == len(self._storage):
            raise FrameOverflowError(f"Decode buffer full ({len(self._storage)} bytes)")
        self._storage[self._cursor] = byte
        self._cursor += 1

    def clear(self) -> None:
        self._cursor = 0

    def view(self) -> memoryview:
        """Zero-copy view of the bytes written so far."""
        return memoryview(self._storage)[: self._cursor]

    def to_bytes(self) -> bytes:
        return bytes(self._storage[: self._cursor])

    def __repr__(self) -> str:
        return f"DecodeBuffer(capacity={self.capacity}, cursor={self._cursor})"


__all__ = ["DecodeBuffer"]
