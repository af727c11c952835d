"""Opaque position tokens produced by marked streams."""

from __future__ import annotations

import binascii
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class PositionToken:
    """Exact resumable position of a stream, stored as raw bytes.

    The bytes are only meaningful to the stream implementation that produced
    them. For Python file objects they hold the big-endian ``tell()`` cookie,
    which on text streams also packs the decoder state.
    """

    data: bytes

    def __post_init__(self) -> None:
        if not isinstance(self.data, (bytes, bytearray)):
            raise TypeError(f"PositionToken data must be bytes, got {type(self.data).__name__}.")
        if not self.data:
            raise ValueError("PositionToken data must not be empty.")
        object.__setattr__(self, "data", bytes(self.data))

    @classmethod
    def from_cookie(cls, cookie: int) -> "PositionToken":
        """Encode a ``tell()`` cookie."""
        if cookie < 0:
            raise ValueError(f"tell() cookie must be non-negative, got {cookie}.")
        length = max(1, (cookie.bit_length() + 7) // 8)
        return cls(cookie.to_bytes(length, "big"))

    @property
    def cookie(self) -> int:
        return int.from_bytes(self.data, "big")

    def hex(self) -> str:
        return self.data.hex()

    @classmethod
    def fromhex(cls, text: str) -> "PositionToken":
        try:
            data = binascii.unhexlify(text.strip())
        except (binascii.Error, ValueError) as exc:
            raise ValueError(f"Invalid hex position token: {text!r}") from exc
        return cls(data)

    def __repr__(self) -> str:
        return f"PositionToken({self.hex()})"


__all__ = ["PositionToken"]
