"""Property value buffers with typed markers."""

from __future__ import annotations

import enum
import struct
from dataclasses import dataclass, field, replace
from typing import BinaryIO, Iterator

_INTEGER_FORMATS = {8: ">B", 16: ">H", 32: ">I", 64: ">Q"}


class MarkerType(enum.Enum):
    """Kinds of annotation that can be attached to a position in a value."""

    TYPE_NONE = enum.auto()
    REF_PHANDLE = enum.auto()
    REF_PATH = enum.auto()
    LABEL = enum.auto()
    TYPE_UINT8 = enum.auto()
    TYPE_UINT16 = enum.auto()
    TYPE_UINT32 = enum.auto()
    TYPE_UINT64 = enum.auto()
    TYPE_STRING = enum.auto()


@dataclass
class Marker:
    """An annotation at a byte offset within a value."""

    offset: int
    type: MarkerType
    ref: str | None = None


@dataclass
class Data:
    """A growable byte value together with its ordered markers.

    The ``append_*`` methods modify the value in place and return it, so
    calls can be chained.
    """

    val: bytearray = field(default_factory=bytearray)
    markers: list[Marker] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.val)

    def __bytes__(self) -> bytes:
        return bytes(self.val)

    @classmethod
    def copy_mem(cls, mem: bytes) -> Data:
        """Create a value holding a copy of ``mem``."""
        return cls(bytearray(mem))

    @classmethod
    def from_file(cls, f: BinaryIO, maxlen: int | None = None) -> Data:
        """Read a binary stream, up to ``maxlen`` bytes if given."""
        data = cls().add_marker(MarkerType.TYPE_NONE)
        if maxlen is None or maxlen < 0:
            chunk = f.read()
        else:
            chunk = f.read(maxlen)
        if chunk:
            data.val.extend(chunk)
        return data

    def append_data(self, p: bytes) -> Data:
        self.val.extend(p)
        return self

    def insert_at_marker(self, marker: Marker, p: bytes) -> Data:
        """Insert ``p`` at the marker's offset, shifting the markers after it."""
        index = next(
            (i for i, m in enumerate(self.markers) if m is marker), None
        )
        if index is None:
            raise ValueError("marker does not belong to this value")
        self.val[marker.offset:marker.offset] = p
        for later in self.markers[index + 1:]:
            later.offset += len(p)
        return self

    def merge(self, other: Data) -> Data:
        """Append another value, carrying over its markers."""
        base = len(self.val)
        self.val.extend(other.val)
        self.markers.extend(replace(m, offset=m.offset + base) for m in other.markers)
        return self

    def append_integer(self, value: int, bits: int) -> Data:
        """Append ``value`` big-endian, truncated to ``bits`` bits."""
        fmt = _INTEGER_FORMATS.get(bits)
        if fmt is None:
            raise ValueError(f"Invalid literal size ({bits})")
        return self.append_data(struct.pack(fmt, value & ((1 << bits) - 1)))

    def append_re(self, address: int, size: int) -> Data:
        """Append a memory reservation entry (two 64-bit words)."""
        return self.append_integer(address, 64).append_integer(size, 64)

    def append_cell(self, word: int) -> Data:
        return self.append_integer(word, 32)

    def append_addr(self, addr: int) -> Data:
        return self.append_integer(addr, 64)

    def append_byte(self, byte: int) -> Data:
        return self.append_integer(byte, 8)

    def append_zeroes(self, length: int) -> Data:
        self.val.extend(bytes(length))
        return self

    def append_align(self, align: int) -> Data:
        """Pad with zeroes up to a multiple of ``align`` (a power of two)."""
        newlen = (len(self.val) + align - 1) & ~(align - 1)
        return self.append_zeroes(newlen - len(self.val))

    def add_marker(self, type: MarkerType, ref: str | None = None) -> Data:
        """Add a marker at the current end of the value."""
        self.markers.append(Marker(len(self.val), type, ref))
        return self

    def markers_of_type(self, type: MarkerType) -> Iterator[Marker]:
        return (m for m in self.markers if m.type is type)

    def is_one_string(self) -> bool:
        """True if the value is exactly one NUL-terminated string."""
        return bool(self.val) and self.val.index(0) == len(self.val) - 1 if 0 in self.val else False