"""128-bit vector registers and the state of the RSP vector unit."""

from __future__ import annotations

from typing import Iterable, Optional, Union

__all__ = [
    "Vector128",
    "VectorUnit",
    "sclamp",
    "sclip",
]

_VECTOR_BYTES = 16
_ELEMENTS = 8


def sclamp(value: int, bits: int) -> int:
    """Clamp a value to the range of a signed integer of the given width."""
    bound = 1 << (bits - 1)
    if value > bound - 1:
        return bound - 1
    if value < -bound:
        return -bound
    return value


def sclip(value: int, bits: int) -> int:
    """Wrap a value to a signed integer of the given width."""
    bound = 1 << (bits - 1)
    mask = (1 << bits) - 1
    return ((value & mask) ^ bound) - bound


class Vector128:
    """A 128-bit register, seen as 16 bytes or 8 halfwords, element 0 first.

    Element 0 is the most significant halfword and byte 0 the most
    significant byte, as the hardware numbers them.
    """

    __slots__ = ("data",)

    def __init__(self, data: Optional[Union[bytes, bytearray, Iterable[int]]] = None) -> None:
        if data is None:
            self.data = bytearray(_VECTOR_BYTES)
        elif isinstance(data, (bytes, bytearray, memoryview)):
            raw = bytearray(data)
            if len(raw) != _VECTOR_BYTES:
                raise ValueError(f"a vector holds {_VECTOR_BYTES} bytes, got {len(raw)}")
            self.data = raw
        else:
            halfwords = list(data)
            if len(halfwords) != _ELEMENTS:
                raise ValueError(f"a vector holds {_ELEMENTS} halfwords, got {len(halfwords)}")
            self.data = bytearray(_VECTOR_BYTES)
            for index, value in enumerate(halfwords):
                self.set_u16(index, value)

    def byte(self, index: int) -> int:
        return self.data[index]

    def set_byte(self, index: int, value: int) -> None:
        self.data[index] = value & 0xFF

    def u16(self, index: int) -> int:
        return (self.data[2 * index] << 8) | self.data[2 * index + 1]

    def s16(self, index: int) -> int:
        value = self.u16(index)
        return value - 0x10000 if value & 0x8000 else value

    def set_u16(self, index: int, value: int) -> None:
        value &= 0xFFFF
        self.data[2 * index] = value >> 8
        self.data[2 * index + 1] = value & 0xFF

    def flag(self, index: int) -> bool:
        """Whether a flag lane (a whole halfword) is set."""
        return self.u16(index) != 0

    def set_flag(self, index: int, value: bool) -> bool:
        """Set a flag lane to all ones or all zeros and return the flag."""
        value = bool(value)
        self.set_u16(index, 0xFFFF if value else 0)
        return value

    def broadcast(self, e: int) -> "Vector128":
        """A copy with elements repeated as selected by the element specifier e."""
        if not 0 <= e < 16:
            raise ValueError(f"element specifier must be 0..15, got {e}")
        if e < 2:
            return self.copy()
        if e < 4:
            sources = [(n & ~1) | (e & 1) for n in range(_ELEMENTS)]
        elif e < 8:
            sources = [(n & ~3) | (e & 3) for n in range(_ELEMENTS)]
        else:
            sources = [e & 7] * _ELEMENTS
        return Vector128([self.u16(src) for src in sources])

    def copy(self) -> "Vector128":
        return Vector128(bytes(self.data))

    def assign(self, other: "Vector128") -> None:
        """Overwrite this register with the contents of another."""
        self.data[:] = other.data

    def halfwords(self) -> list[int]:
        return [self.u16(n) for n in range(_ELEMENTS)]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Vector128):
            return NotImplemented
        return self.data == other.data

    def __repr__(self) -> str:
        return "Vector128([" + ", ".join(f"0x{h:04X}" for h in self.halfwords()) + "])"


class VectorUnit:
    """Registers, accumulator, flags and divide state of the vector unit."""

    def __init__(self) -> None:
        self.r = [Vector128() for _ in range(32)]
        self.acch = Vector128()
        self.accm = Vector128()
        self.accl = Vector128()
        self.vcoh = Vector128()
        self.vcol = Vector128()
        self.vcch = Vector128()
        self.vccl = Vector128()
        self.vce = Vector128()
        self.divin = 0
        self.divout = 0
        self.divdp = False

    def accumulator_get(self, index: int) -> int:
        """The 48-bit accumulator lane as an unsigned value."""
        return (
            (self.acch.u16(index) << 32)
            | (self.accm.u16(index) << 16)
            | self.accl.u16(index)
        )

    def accumulator_set(self, index: int, value: int) -> None:
        """Store the low 48 bits of a value in an accumulator lane."""
        self.acch.set_u16(index, value >> 32)
        self.accm.set_u16(index, value >> 16)
        self.accl.set_u16(index, value)

    def accumulator_saturate(self, index: int, slice_: bool, negative: int, positive: int) -> int:
        """Clamp an accumulator lane to 16 bits, taking the middle or low slice."""
        if self.acch.s16(index) < 0:
            if self.acch.u16(index) != 0xFFFF:
                return negative
            if self.accm.s16(index) >= 0:
                return negative
        else:
            if self.acch.u16(index) != 0x0000:
                return positive
            if self.accm.s16(index) < 0:
                return positive
        return self.accm.u16(index) if slice_ else self.accl.u16(index)

    def _control_pair(self, rd: int) -> tuple[Optional[Vector128], Vector128]:
        selector = rd & 3
        if selector == 0:
            return self.vcoh, self.vcol
        if selector == 1:
            return self.vcch, self.vccl
        return None, self.vce

    def cfc2(self, rd: int) -> int:
        """Read a control register as a sign-extended 32-bit value."""
        hi, lo = self._control_pair(rd)
        value = 0
        for n in range(_ELEMENTS):
            value |= int(lo.flag(n)) << n
            if hi is not None:
                value |= int(hi.flag(n)) << (8 + n)
        return sclip(value, 16) & 0xFFFFFFFF

    def ctc2(self, rt: int, rd: int) -> None:
        """Write a control register from the low 16 bits of rt."""
        hi, lo = self._control_pair(rd)
        for n in range(_ELEMENTS):
            lo.set_flag(n, rt & (1 << n))
            if hi is not None:
                hi.set_flag(n, rt & (1 << (8 + n)))