"""Vector unit loads, stores and moves between vector and scalar registers.

Each operation takes the element specifier ``e`` (0..15) last.
Addresses are formed from a 32-bit base register ``rs`` and a signed 8-bit
immediate scaled by the access size, as the hardware does.
"""

from __future__ import annotations

from ultrart.rsp_memory import Dmem
from ultrart.vector import Vector128, VectorUnit, sclip

__all__ = [
    "mfc2",
    "mtc2",
    "lbv",
    "ldv",
    "lfv",
    "lhv",
    "llv",
    "lpv",
    "lqv",
    "lrv",
    "lsv",
    "ltv",
    "luv",
    "lwv",
    "sbv",
    "sdv",
    "sfv",
    "shv",
    "slv",
    "spv",
    "sqv",
    "srv",
    "ssv",
    "stv",
    "suv",
    "swv",
]

_MASK32 = 0xFFFFFFFF

# Element order written by SFV for each element specifier; others store zeros.
_SFV_ORDER = {
    0: (0, 1, 2, 3),
    15: (0, 1, 2, 3),
    1: (6, 7, 4, 5),
    4: (1, 2, 3, 0),
    5: (7, 4, 5, 6),
    8: (4, 5, 6, 7),
    11: (3, 0, 1, 2),
    12: (5, 6, 7, 4),
}


def _address(rs: int, imm: int, scale: int) -> int:
    return (rs + sclip(imm, 8) * scale) & _MASK32


def _load(dmem: Dmem, address: int) -> int:
    return dmem.read_byte(0, address)


def _store(dmem: Dmem, address: int, value: int) -> None:
    dmem.write_byte(0, address, value)


def mfc2(vs: Vector128, e: int) -> int:
    """Move a halfword starting at byte e out of a vector, sign-extended to 32 bits."""
    hi = vs.byte(e & 15)
    lo = vs.byte((e + 1) & 15)
    return sclip((hi << 8) | lo, 16) & _MASK32


def mtc2(rt: int, vs: Vector128, e: int) -> None:
    """Move the low halfword of rt into a vector starting at byte e."""
    vs.set_byte(e, rt >> 8)
    if e != 15:
        vs.set_byte(e + 1, rt)


def _load_bytes(dmem: Dmem, vt: Vector128, address: int, start: int, end: int) -> None:
    for offset in range(start, end):
        vt.set_byte(offset & 15, _load(dmem, address))
        address += 1


def _store_bytes(dmem: Dmem, vt: Vector128, address: int, start: int, end: int) -> None:
    for offset in range(start, end):
        _store(dmem, address, vt.byte(offset & 15))
        address += 1


def lbv(dmem: Dmem, vt: Vector128, rs: int, imm: int, e: int) -> None:
    """Load one byte into byte e."""
    vt.set_byte(e, _load(dmem, _address(rs, imm, 1)))


def ldv(dmem: Dmem, vt: Vector128, rs: int, imm: int, e: int) -> None:
    """Load eight bytes starting at byte e."""
    _load_bytes(dmem, vt, _address(rs, imm, 8), e, min(e + 8, 16))


def lfv(dmem: Dmem, vt: Vector128, rs: int, imm: int, e: int) -> None:
    """Load every fourth byte, shifted left by 7, into elements; keep bytes e..e+7."""
    address = _address(rs, imm, 16)
    index = (address & 7) - e
    address &= ~7
    tmp = Vector128()
    for offset in range(4):
        tmp.set_u16(offset, _load(dmem, address + ((index + offset * 4) & 15)) << 7)
        tmp.set_u16(offset + 4, _load(dmem, address + ((index + offset * 4 + 8) & 15)) << 7)
    for offset in range(e, min(e + 8, 16)):
        vt.set_byte(offset, tmp.byte(offset))


def lhv(dmem: Dmem, vt: Vector128, rs: int, imm: int, e: int) -> None:
    """Load every second byte, shifted left by 7, into the eight elements."""
    address = _address(rs, imm, 16)
    index = (address & 7) - e
    address &= ~7
    for offset in range(8):
        vt.set_u16(offset, _load(dmem, address + ((index + offset * 2) & 15)) << 7)


def llv(dmem: Dmem, vt: Vector128, rs: int, imm: int, e: int) -> None:
    """Load four bytes starting at byte e."""
    _load_bytes(dmem, vt, _address(rs, imm, 4), e, min(e + 4, 16))


def lpv(dmem: Dmem, vt: Vector128, rs: int, imm: int, e: int) -> None:
    """Load eight bytes, shifted left by 8, into the eight elements."""
    address = _address(rs, imm, 8)
    index = (address & 7) - e
    address &= ~7
    for offset in range(8):
        vt.set_u16(offset, _load(dmem, address + ((index + offset) & 15)) << 8)


def lqv(dmem: Dmem, vt: Vector128, rs: int, imm: int, e: int) -> None:
    """Load up to the end of the 16-byte line containing the address."""
    address = _address(rs, imm, 16)
    end = min(16 + e - (address & 15), 16)
    _load_bytes(dmem, vt, address, e, end)


def lrv(dmem: Dmem, vt: Vector128, rs: int, imm: int, e: int) -> None:
    """Load the part of the 16-byte line before the address into the vector's tail."""
    address = _address(rs, imm, 16)
    start = 16 - ((address & 15) - e)
    address &= ~15
    _load_bytes(dmem, vt, address, start, 16)


def lsv(dmem: Dmem, vt: Vector128, rs: int, imm: int, e: int) -> None:
    """Load two bytes starting at byte e."""
    _load_bytes(dmem, vt, _address(rs, imm, 2), e, min(e + 2, 16))


def ltv(vu: VectorUnit, dmem: Dmem, vt: int, rs: int, imm: int, e: int) -> None:
    """Load a transposed diagonal into the group of eight registers holding vt."""
    address = _address(rs, imm, 16)
    begin = address & ~7
    wrap = (begin + 16) & _MASK32
    address = (begin + ((e + (address & 8)) & 15)) & _MASK32
    vtbase = vt & ~7
    vtoff = e >> 1
    for i in range(8):
        register = vu.r[vtbase + vtoff]
        for half in range(2):
            register.set_byte(i * 2 + half, _load(dmem, address))
            address = (address + 1) & _MASK32
            if address == wrap:
                address = begin
        vtoff = (vtoff + 1) & 7


def luv(dmem: Dmem, vt: Vector128, rs: int, imm: int, e: int) -> None:
    """Load eight bytes, shifted left by 7, into the eight elements."""
    address = _address(rs, imm, 8)
    index = (address & 7) - e
    address &= ~7
    for offset in range(8):
        vt.set_u16(offset, _load(dmem, address + ((index + offset) & 15)) << 7)


def lwv(dmem: Dmem, vt: Vector128, rs: int, imm: int, e: int) -> None:
    """Load wrapped bytes from every fourth address."""
    address = _address(rs, imm, 16)
    for offset in range(16 - e, e + 16):
        vt.set_byte(offset & 15, _load(dmem, address))
        address += 4


def sbv(dmem: Dmem, vt: Vector128, rs: int, imm: int, e: int) -> None:
    """Store byte e."""
    _store(dmem, _address(rs, imm, 1), vt.byte(e))


def sdv(dmem: Dmem, vt: Vector128, rs: int, imm: int, e: int) -> None:
    """Store eight bytes starting at byte e."""
    _store_bytes(dmem, vt, _address(rs, imm, 8), e, e + 8)


def sfv(dmem: Dmem, vt: Vector128, rs: int, imm: int, e: int) -> None:
    """Store four elements, shifted right by 7, to every fourth byte."""
    address = _address(rs, imm, 16)
    base = address & 7
    address &= ~7
    order = _SFV_ORDER.get(e)
    for k in range(4):
        value = vt.u16(order[k]) >> 7 if order is not None else 0
        _store(dmem, address + ((base + 4 * k) & 15), value)


def shv(dmem: Dmem, vt: Vector128, rs: int, imm: int, e: int) -> None:
    """Store each element, shifted right by 7, to every second byte."""
    address = _address(rs, imm, 16)
    index = address & 7
    address &= ~7
    for offset in range(8):
        byte = e + offset * 2
        value = (vt.byte(byte & 15) << 1) | (vt.byte((byte + 1) & 15) >> 7)
        _store(dmem, address + ((index + offset * 2) & 15), value)


def slv(dmem: Dmem, vt: Vector128, rs: int, imm: int, e: int) -> None:
    """Store four bytes starting at byte e."""
    _store_bytes(dmem, vt, _address(rs, imm, 4), e, e + 4)


def spv(dmem: Dmem, vt: Vector128, rs: int, imm: int, e: int) -> None:
    """Store the high bytes of the elements (packed signed form)."""
    address = _address(rs, imm, 8)
    for offset in range(e, e + 8):
        if (offset & 15) < 8:
            value = vt.byte((offset & 7) << 1)
        else:
            value = vt.u16(offset & 7) >> 7
        _store(dmem, address, value)
        address += 1


def sqv(dmem: Dmem, vt: Vector128, rs: int, imm: int, e: int) -> None:
    """Store up to the end of the 16-byte line containing the address."""
    address = _address(rs, imm, 16)
    _store_bytes(dmem, vt, address, e, e + (16 - (address & 15)))


def srv(dmem: Dmem, vt: Vector128, rs: int, imm: int, e: int) -> None:
    """Store the vector's tail into the part of the 16-byte line before the address."""
    address = _address(rs, imm, 16)
    end = e + (address & 15)
    base = 16 - (address & 15)
    address &= ~15
    for offset in range(e, end):
        _store(dmem, address, vt.byte((offset + base) & 15))
        address += 1


def ssv(dmem: Dmem, vt: Vector128, rs: int, imm: int, e: int) -> None:
    """Store two bytes starting at byte e."""
    _store_bytes(dmem, vt, _address(rs, imm, 2), e, e + 2)


def stv(vu: VectorUnit, dmem: Dmem, vt: int, rs: int, imm: int, e: int) -> None:
    """Store a transposed diagonal from the group of eight registers holding vt."""
    address = _address(rs, imm, 16)
    start = vt & ~7
    element = 16 - (e & ~1)
    base = (address & 7) - (e & ~1)
    address &= ~7
    for offset in range(start, start + 8):
        register = vu.r[offset]
        for _ in range(2):
            _store(dmem, address + (base & 15), register.byte(element & 15))
            base += 1
            element += 1


def suv(dmem: Dmem, vt: Vector128, rs: int, imm: int, e: int) -> None:
    """Store the elements shifted right by 7 (packed unsigned form)."""
    address = _address(rs, imm, 8)
    for offset in range(e, e + 8):
        if (offset & 15) < 8:
            value = vt.u16(offset & 7) >> 7
        else:
            value = vt.byte((offset & 7) << 1)
        _store(dmem, address, value)
        address += 1


def swv(dmem: Dmem, vt: Vector128, rs: int, imm: int, e: int) -> None:
    """Store sixteen bytes rotated within the 8-byte aligned line."""
    address = _address(rs, imm, 16)
    base = address & 7
    address &= ~7
    for offset in range(e, e + 16):
        _store(dmem, address + (base & 15), vt.byte(offset & 15))
        base += 1