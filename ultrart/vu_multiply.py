"""Vector unit multiply, multiply-accumulate, divide, rounding and move operations.

Multiplies write their full product into the 48-bit accumulator (or add it
there), then read a clamped 16-bit slice into ``vd``.  The divide operations
use the reciprocal and inverse square root tables and keep their state in the
vector unit's divide registers.
"""

from __future__ import annotations

from ultrart.rsp_memory import build_inverse_square_roots, build_reciprocals
from ultrart.vector import Vector128, VectorUnit, sclamp, sclip

__all__ = [
    "vmacf",
    "vmacu",
    "vmacq",
    "vmadh",
    "vmadl",
    "vmadm",
    "vmadn",
    "vmudh",
    "vmudl",
    "vmudm",
    "vmudn",
    "vmulf",
    "vmulu",
    "vmulq",
    "vmov",
    "vrcp",
    "vrcpl",
    "vrcph",
    "vrsq",
    "vrsql",
    "vrsqh",
    "vrndn",
    "vrndp",
    "vsar",
]

_LANES = range(8)
_MASK32 = 0xFFFFFFFF


def _operands(vs: Vector128, vt: Vector128, e: int) -> tuple[Vector128, Vector128]:
    # Snapshot the sources so that vd may alias either of them.
    return vs.copy(), vt.broadcast(e)


def _signed_saturate(vu: VectorUnit, n: int) -> int:
    return vu.accumulator_saturate(n, True, 0x8000, 0x7FFF)


def _unsigned_saturate(vu: VectorUnit, n: int) -> int:
    return vu.accumulator_saturate(n, False, 0x0000, 0xFFFF)


def _fractional_accumulate(vu: VectorUnit, vd: Vector128, vs: Vector128,
                           vt: Vector128, e: int, unsigned: bool) -> None:
    vs, vte = _operands(vs, vt, e)
    for n in _LANES:
        vu.accumulator_set(n, vu.accumulator_get(n) + vs.s16(n) * vte.s16(n) * 2)
        if unsigned:
            if vu.acch.s16(n) < 0:
                value = 0x0000
            elif vu.acch.s16(n) or vu.accm.s16(n) < 0:
                value = 0xFFFF
            else:
                value = vu.accm.u16(n)
        else:
            value = _signed_saturate(vu, n)
        vd.set_u16(n, value)


def vmacf(vu: VectorUnit, vd: Vector128, vs: Vector128, vt: Vector128, e: int) -> None:
    """Signed fractional multiply-accumulate, signed clamp."""
    _fractional_accumulate(vu, vd, vs, vt, e, unsigned=False)


def vmacu(vu: VectorUnit, vd: Vector128, vs: Vector128, vt: Vector128, e: int) -> None:
    """Signed fractional multiply-accumulate, unsigned clamp."""
    _fractional_accumulate(vu, vd, vs, vt, e, unsigned=True)


def vmacq(vu: VectorUnit, vd: Vector128) -> None:
    """Oddify the accumulator for MPEG dequantisation."""
    for n in _LANES:
        product = sclip((vu.acch.u16(n) << 16) | vu.accm.u16(n), 32)
        if product < 0 and not product & (1 << 5):
            product += 32
        elif product >= 32 and not product & (1 << 5):
            product -= 32
        vu.acch.set_u16(n, product >> 16)
        vu.accm.set_u16(n, product)
        vd.set_u16(n, sclamp(product >> 1, 16) & ~15)


def vmadh(vu: VectorUnit, vd: Vector128, vs: Vector128, vt: Vector128, e: int) -> None:
    """Signed high multiply-accumulate into the upper 32 bits of the accumulator."""
    vs, vte = _operands(vs, vt, e)
    for n in _LANES:
        result = sclip((vu.accumulator_get(n) >> 16) + vs.s16(n) * vte.s16(n), 32)
        vu.acch.set_u16(n, result >> 16)
        vu.accm.set_u16(n, result)
        vd.set_u16(n, _signed_saturate(vu, n))


def vmadl(vu: VectorUnit, vd: Vector128, vs: Vector128, vt: Vector128, e: int) -> None:
    """Unsigned low multiply-accumulate; keeps the high half of the product."""
    vs, vte = _operands(vs, vt, e)
    for n in _LANES:
        product = ((vs.u16(n) * vte.u16(n)) & _MASK32) >> 16
        vu.accumulator_set(n, vu.accumulator_get(n) + product)
        vd.set_u16(n, _unsigned_saturate(vu, n))


def vmadm(vu: VectorUnit, vd: Vector128, vs: Vector128, vt: Vector128, e: int) -> None:
    """Signed vs times unsigned vt, accumulated; signed clamp of the middle slice."""
    vs, vte = _operands(vs, vt, e)
    for n in _LANES:
        vu.accumulator_set(n, vu.accumulator_get(n) + vs.s16(n) * vte.u16(n))
        vd.set_u16(n, _signed_saturate(vu, n))


def vmadn(vu: VectorUnit, vd: Vector128, vs: Vector128, vt: Vector128, e: int) -> None:
    """Unsigned vs times signed vt, accumulated; unsigned clamp of the low slice."""
    vs, vte = _operands(vs, vt, e)
    for n in _LANES:
        vu.accumulator_set(n, vu.accumulator_get(n) + vs.u16(n) * vte.s16(n))
        vd.set_u16(n, _unsigned_saturate(vu, n))


def vmudh(vu: VectorUnit, vd: Vector128, vs: Vector128, vt: Vector128, e: int) -> None:
    """Signed multiply into the upper 32 bits of the accumulator."""
    vs, vte = _operands(vs, vt, e)
    for n in _LANES:
        vu.accumulator_set(n, (vs.s16(n) * vte.s16(n)) << 16)
        vd.set_u16(n, _signed_saturate(vu, n))


def vmudl(vu: VectorUnit, vd: Vector128, vs: Vector128, vt: Vector128, e: int) -> None:
    """Unsigned multiply keeping the high half of the product."""
    vs, vte = _operands(vs, vt, e)
    for n in _LANES:
        vu.accumulator_set(n, ((vs.u16(n) * vte.u16(n)) >> 16) & 0xFFFF)
    vd.assign(vu.accl)


def vmudm(vu: VectorUnit, vd: Vector128, vs: Vector128, vt: Vector128, e: int) -> None:
    """Signed vs times unsigned vt; vd gets the middle slice."""
    vs, vte = _operands(vs, vt, e)
    for n in _LANES:
        vu.accumulator_set(n, sclip(vs.s16(n) * vte.u16(n), 32))
    vd.assign(vu.accm)


def vmudn(vu: VectorUnit, vd: Vector128, vs: Vector128, vt: Vector128, e: int) -> None:
    """Unsigned vs times signed vt; vd gets the low slice."""
    vs, vte = _operands(vs, vt, e)
    for n in _LANES:
        vu.accumulator_set(n, sclip(vs.u16(n) * vte.s16(n), 32))
    vd.assign(vu.accl)


def _fractional_multiply(vu: VectorUnit, vd: Vector128, vs: Vector128,
                         vt: Vector128, e: int, unsigned: bool) -> None:
    vs, vte = _operands(vs, vt, e)
    for n in _LANES:
        vu.accumulator_set(n, vs.s16(n) * vte.s16(n) * 2 + 0x8000)
        if unsigned:
            if vu.acch.s16(n) < 0:
                value = 0x0000
            elif (vu.acch.s16(n) ^ vu.accm.s16(n)) < 0:
                value = 0xFFFF
            else:
                value = vu.accm.u16(n)
        else:
            value = _signed_saturate(vu, n)
        vd.set_u16(n, value)


def vmulf(vu: VectorUnit, vd: Vector128, vs: Vector128, vt: Vector128, e: int) -> None:
    """Signed fractional multiply with rounding, signed clamp."""
    _fractional_multiply(vu, vd, vs, vt, e, unsigned=False)


def vmulu(vu: VectorUnit, vd: Vector128, vs: Vector128, vt: Vector128, e: int) -> None:
    """Signed fractional multiply with rounding, unsigned clamp."""
    _fractional_multiply(vu, vd, vs, vt, e, unsigned=True)


def vmulq(vu: VectorUnit, vd: Vector128, vs: Vector128, vt: Vector128, e: int) -> None:
    """Signed multiply for MPEG quantisation, rounding negatives toward zero."""
    vs, vte = _operands(vs, vt, e)
    for n in _LANES:
        product = vs.s16(n) * vte.s16(n)
        if product < 0:
            product += 31
        vu.acch.set_u16(n, product >> 16)
        vu.accm.set_u16(n, product)
        vu.accl.set_u16(n, 0)
        vd.set_u16(n, sclamp(product >> 1, 16) & ~15)


def vmov(vu: VectorUnit, vd: Vector128, de: int, vt: Vector128, e: int) -> None:
    """Copy element de of the broadcast vt into vd."""
    vte = vt.broadcast(e)
    vd.set_u16(de, vte.u16(de))
    vu.accl.assign(vte)


def _divide(vu: VectorUnit, vd: Vector128, de: int, vt: Vector128, e: int,
            double: bool, square_root: bool) -> None:
    raw = vt.u16(e & 7)
    if double and vu.divdp:
        value = sclip((vu.divin << 16) | raw, 32)
    else:
        value = sclip(raw, 16)
    mask = -1 if value < 0 else 0
    data = value ^ mask
    if value > -32768:
        data -= mask
    data32 = data & _MASK32
    if data32 == 0:
        result = 0x7FFFFFFF
    elif value == -32768:
        result = sclip(0xFFFF0000, 32)
    else:
        shift = 32 - data32.bit_length()
        index = ((data32 << shift) & 0x7FC00000) >> 22
        if square_root:
            entry = build_inverse_square_roots()[(index & 0x1FE) | (shift & 1)]
            amount = (31 - shift) >> 1
        else:
            entry = build_reciprocals()[index]
            amount = 31 - shift
        result = sclip((((0x10000 | entry) << 14) >> amount) ^ mask, 32)
    broadcast = vt.broadcast(e)
    vu.divdp = False
    vu.divout = sclip(result >> 16, 16)
    vu.accl.assign(broadcast)
    vd.set_u16(de, result)


def _divide_high(vu: VectorUnit, vd: Vector128, de: int, vt: Vector128, e: int) -> None:
    broadcast = vt.broadcast(e)
    divin = vt.s16(e & 7)
    vu.accl.assign(broadcast)
    vu.divdp = True
    vu.divin = divin
    vd.set_u16(de, vu.divout)


def vrcp(vu: VectorUnit, vd: Vector128, de: int, vt: Vector128, e: int) -> None:
    """Single-precision reciprocal."""
    _divide(vu, vd, de, vt, e, double=False, square_root=False)


def vrcpl(vu: VectorUnit, vd: Vector128, de: int, vt: Vector128, e: int) -> None:
    """Reciprocal of the low half, using a high half set by VRCPH if pending."""
    _divide(vu, vd, de, vt, e, double=True, square_root=False)


def vrcph(vu: VectorUnit, vd: Vector128, de: int, vt: Vector128, e: int) -> None:
    """Set the high half of a double-precision input; return the last result's high half."""
    _divide_high(vu, vd, de, vt, e)


def vrsq(vu: VectorUnit, vd: Vector128, de: int, vt: Vector128, e: int) -> None:
    """Single-precision inverse square root."""
    _divide(vu, vd, de, vt, e, double=False, square_root=True)


def vrsql(vu: VectorUnit, vd: Vector128, de: int, vt: Vector128, e: int) -> None:
    """Inverse square root of the low half, using a high half set by VRSQH if pending."""
    _divide(vu, vd, de, vt, e, double=True, square_root=True)


def vrsqh(vu: VectorUnit, vd: Vector128, de: int, vt: Vector128, e: int) -> None:
    """Set the high half of a double-precision input; return the last result's high half."""
    _divide_high(vu, vd, de, vt, e)


def _round(vu: VectorUnit, vd: Vector128, vs: int, vt: Vector128, e: int,
           positive: bool) -> None:
    vte = vt.broadcast(e)
    for n in _LANES:
        product = vte.s16(n)
        if vs & 1:
            product <<= 16
        acc = sclip(vu.accumulator_get(n), 48)
        if (not positive and acc < 0) or (positive and acc >= 0):
            acc = sclip(acc + product, 48)
        vu.accumulator_set(n, acc)
        vd.set_u16(n, sclamp(acc >> 16, 16))


def vrndn(vu: VectorUnit, vd: Vector128, vs: int, vt: Vector128, e: int) -> None:
    """Add vt to negative accumulator lanes; vs's low bit shifts vt up 16 bits."""
    _round(vu, vd, vs, vt, e, positive=False)


def vrndp(vu: VectorUnit, vd: Vector128, vs: int, vt: Vector128, e: int) -> None:
    """Add vt to non-negative accumulator lanes; vs's low bit shifts vt up 16 bits."""
    _round(vu, vd, vs, vt, e, positive=True)


def vsar(vu: VectorUnit, vd: Vector128, vs: Vector128, e: int) -> None:
    """Read an accumulator slice: e=8 high, 9 middle, 10 low, anything else zero."""
    slices = {0x8: vu.acch, 0x9: vu.accm, 0xA: vu.accl}
    source = slices.get(e)
    vd.assign(source if source is not None else Vector128())