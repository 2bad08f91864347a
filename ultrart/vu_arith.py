"""Vector unit add, subtract, logic, compare, clip and select operations.

Every operation takes the vector unit, the destination register ``vd``,
the source registers ``vs`` and ``vt`` and the element specifier ``e``
that selects how ``vt`` is broadcast.  Results are also left in the low
accumulator slice, and the flag registers are updated as the hardware does.
"""

from __future__ import annotations

from typing import Callable

from ultrart.vector import Vector128, VectorUnit, sclamp, sclip

__all__ = [
    "vabs",
    "vadd",
    "vaddc",
    "vsub",
    "vsubc",
    "vand",
    "vnand",
    "vor",
    "vnor",
    "vxor",
    "vnxor",
    "vch",
    "vcl",
    "vcr",
    "veq",
    "vne",
    "vge",
    "vlt",
    "vmrg",
    "vzero",
    "vnop",
]

_LANES = range(8)


def _operands(vs: Vector128, vt: Vector128, e: int) -> tuple[Vector128, Vector128]:
    # Snapshot the sources so that vd may alias either of them.
    return vs.copy(), vt.broadcast(e)


def _clear(*vectors: Vector128) -> None:
    for vector in vectors:
        vector.assign(Vector128())


def _s16(value: int) -> int:
    return sclip(value, 16)


def vabs(vu: VectorUnit, vd: Vector128, vs: Vector128, vt: Vector128, e: int) -> None:
    """vt with the sign of vs applied (zero where vs is zero)."""
    vs, vte = _operands(vs, vt, e)
    for n in _LANES:
        s, t = vs.s16(n), vte.s16(n)
        if s < 0:
            if t == -32768:
                vu.accl.set_u16(n, -32768)
                vd.set_u16(n, 32767)
            else:
                vu.accl.set_u16(n, -t)
                vd.set_u16(n, -t)
        elif s > 0:
            vu.accl.set_u16(n, t)
            vd.set_u16(n, t)
        else:
            vu.accl.set_u16(n, 0)
            vd.set_u16(n, 0)


def vadd(vu: VectorUnit, vd: Vector128, vs: Vector128, vt: Vector128, e: int) -> None:
    """Signed saturating add, plus the carry left in VCO."""
    vs, vte = _operands(vs, vt, e)
    for n in _LANES:
        result = vs.s16(n) + vte.s16(n) + int(vu.vcol.flag(n))
        vu.accl.set_u16(n, result)
        vd.set_u16(n, sclamp(result, 16))
    _clear(vu.vcol, vu.vcoh)


def vaddc(vu: VectorUnit, vd: Vector128, vs: Vector128, vt: Vector128, e: int) -> None:
    """Unsigned add, recording the carry out of each lane in VCO."""
    vs, vte = _operands(vs, vt, e)
    for n in _LANES:
        result = vs.u16(n) + vte.u16(n)
        vu.accl.set_u16(n, result)
        vu.vcol.set_flag(n, result >> 16)
    _clear(vu.vcoh)
    vd.assign(vu.accl)


def vsub(vu: VectorUnit, vd: Vector128, vs: Vector128, vt: Vector128, e: int) -> None:
    """Signed saturating subtract, minus the borrow left in VCO."""
    vs, vte = _operands(vs, vt, e)
    for n in _LANES:
        result = vs.s16(n) - vte.s16(n) - int(vu.vcol.flag(n))
        vu.accl.set_u16(n, result)
        vd.set_u16(n, sclamp(result, 16))
    _clear(vu.vcol, vu.vcoh)


def vsubc(vu: VectorUnit, vd: Vector128, vs: Vector128, vt: Vector128, e: int) -> None:
    """Unsigned subtract, recording borrow and inequality in VCO."""
    vs, vte = _operands(vs, vt, e)
    for n in _LANES:
        result = (vs.u16(n) - vte.u16(n)) & 0xFFFFFFFF
        vu.accl.set_u16(n, result)
        vu.vcol.set_flag(n, result >> 16)
        vu.vcoh.set_flag(n, result != 0)
    vd.assign(vu.accl)


def _logic(op: Callable[[int, int], int]) -> Callable[..., None]:
    def apply(vu: VectorUnit, vd: Vector128, vs: Vector128, vt: Vector128, e: int) -> None:
        vs, vte = _operands(vs, vt, e)
        for n in _LANES:
            vu.accl.set_u16(n, op(vs.u16(n), vte.u16(n)))
        vd.assign(vu.accl)

    return apply


_vand = _logic(lambda a, b: a & b)
_vnand = _logic(lambda a, b: ~(a & b))
_vor = _logic(lambda a, b: a | b)
_vnor = _logic(lambda a, b: ~(a | b))
_vxor = _logic(lambda a, b: a ^ b)
_vnxor = _logic(lambda a, b: ~(a ^ b))


def vand(vu: VectorUnit, vd: Vector128, vs: Vector128, vt: Vector128, e: int) -> None:
    """Bitwise AND."""
    _vand(vu, vd, vs, vt, e)


def vnand(vu: VectorUnit, vd: Vector128, vs: Vector128, vt: Vector128, e: int) -> None:
    """Bitwise NAND."""
    _vnand(vu, vd, vs, vt, e)


def vor(vu: VectorUnit, vd: Vector128, vs: Vector128, vt: Vector128, e: int) -> None:
    """Bitwise OR."""
    _vor(vu, vd, vs, vt, e)


def vnor(vu: VectorUnit, vd: Vector128, vs: Vector128, vt: Vector128, e: int) -> None:
    """Bitwise NOR."""
    _vnor(vu, vd, vs, vt, e)


def vxor(vu: VectorUnit, vd: Vector128, vs: Vector128, vt: Vector128, e: int) -> None:
    """Bitwise XOR."""
    _vxor(vu, vd, vs, vt, e)


def vnxor(vu: VectorUnit, vd: Vector128, vs: Vector128, vt: Vector128, e: int) -> None:
    """Bitwise XNOR."""
    _vnxor(vu, vd, vs, vt, e)


def vch(vu: VectorUnit, vd: Vector128, vs: Vector128, vt: Vector128, e: int) -> None:
    """Clip test, high part: clamp vs to [-vt, vt] and set the clip flags."""
    vs, vte = _operands(vs, vt, e)
    for n in _LANES:
        s, t = vs.s16(n), vte.s16(n)
        not_complement = vs.u16(n) != (vte.u16(n) ^ 0xFFFF)
        if (s ^ t) < 0:
            result = _s16(s + t)
            vu.accl.set_u16(n, -t if result <= 0 else s)
            vu.vccl.set_flag(n, result <= 0)
            vu.vcch.set_flag(n, t < 0)
            vu.vcol.set_flag(n, True)
            vu.vcoh.set_flag(n, result != 0 and not_complement)
            vu.vce.set_flag(n, result == -1)
        else:
            result = _s16(s - t)
            vu.accl.set_u16(n, t if result >= 0 else s)
            vu.vccl.set_flag(n, t < 0)
            vu.vcch.set_flag(n, result >= 0)
            vu.vcol.set_flag(n, False)
            vu.vcoh.set_flag(n, result != 0 and not_complement)
            vu.vce.set_flag(n, False)
    vd.assign(vu.accl)


def vcl(vu: VectorUnit, vd: Vector128, vs: Vector128, vt: Vector128, e: int) -> None:
    """Clip test, low part: finish a clip using the flags left by VCH."""
    vs, vte = _operands(vs, vt, e)
    for n in _LANES:
        s, t = vs.u16(n), vte.u16(n)
        if vu.vcol.flag(n):
            if vu.vcoh.flag(n):
                use_neg = vu.vccl.flag(n)
            else:
                total = s + t
                sum16 = total & 0xFFFF
                carry = total != sum16
                if vu.vce.flag(n):
                    use_neg = vu.vccl.set_flag(n, sum16 == 0 or not carry)
                else:
                    use_neg = vu.vccl.set_flag(n, sum16 == 0 and not carry)
            vu.accl.set_u16(n, -t if use_neg else s)
        else:
            if vu.vcoh.flag(n):
                use_t = vu.vcch.flag(n)
            else:
                use_t = vu.vcch.set_flag(n, s - t >= 0)
            vu.accl.set_u16(n, t if use_t else s)
    _clear(vu.vcol, vu.vcoh, vu.vce)
    vd.assign(vu.accl)


def vcr(vu: VectorUnit, vd: Vector128, vs: Vector128, vt: Vector128, e: int) -> None:
    """Clip test with ones' complement negation."""
    vs, vte = _operands(vs, vt, e)
    for n in _LANES:
        s, t = vs.s16(n), vte.s16(n)
        if (s ^ t) < 0:
            vu.vcch.set_flag(n, t < 0)
            use_t = vu.vccl.set_flag(n, s + t + 1 <= 0)
            vu.accl.set_u16(n, ~vte.u16(n) if use_t else vs.u16(n))
        else:
            vu.vccl.set_flag(n, t < 0)
            use_t = vu.vcch.set_flag(n, s - t >= 0)
            vu.accl.set_u16(n, vte.u16(n) if use_t else vs.u16(n))
    _clear(vu.vcol, vu.vcoh, vu.vce)
    vd.assign(vu.accl)


def _compare(vu: VectorUnit, vd: Vector128, vs: Vector128, vt: Vector128, e: int,
             test: Callable[[VectorUnit, Vector128, Vector128, int], bool]) -> None:
    vs, vte = _operands(vs, vt, e)
    for n in _LANES:
        pick_s = vu.vccl.set_flag(n, test(vu, vs, vte, n))
        vu.accl.set_u16(n, vs.u16(n) if pick_s else vte.u16(n))
    _clear(vu.vcch, vu.vcol, vu.vcoh)
    vd.assign(vu.accl)


def veq(vu: VectorUnit, vd: Vector128, vs: Vector128, vt: Vector128, e: int) -> None:
    """Set VCC where lanes are equal (and VCO high is clear)."""
    _compare(vu, vd, vs, vt, e,
             lambda u, a, b, n: not u.vcoh.flag(n) and a.u16(n) == b.u16(n))


def vne(vu: VectorUnit, vd: Vector128, vs: Vector128, vt: Vector128, e: int) -> None:
    """Set VCC where lanes differ (or VCO high is set)."""
    _compare(vu, vd, vs, vt, e,
             lambda u, a, b, n: a.u16(n) != b.u16(n) or u.vcoh.flag(n))


def vge(vu: VectorUnit, vd: Vector128, vs: Vector128, vt: Vector128, e: int) -> None:
    """Signed greater-or-equal; selects the larger lane."""
    _compare(vu, vd, vs, vt, e,
             lambda u, a, b, n: a.s16(n) > b.s16(n) or (
                 a.s16(n) == b.s16(n) and (not u.vcol.flag(n) or not u.vcoh.flag(n))))


def vlt(vu: VectorUnit, vd: Vector128, vs: Vector128, vt: Vector128, e: int) -> None:
    """Signed less-than; selects the smaller lane."""
    _compare(vu, vd, vs, vt, e,
             lambda u, a, b, n: a.s16(n) < b.s16(n) or (
                 a.s16(n) == b.s16(n) and u.vcol.flag(n) and u.vcoh.flag(n)))


def vmrg(vu: VectorUnit, vd: Vector128, vs: Vector128, vt: Vector128, e: int) -> None:
    """Select vs where VCC low is set, vt elsewhere."""
    vs, vte = _operands(vs, vt, e)
    for n in _LANES:
        vu.accl.set_u16(n, vs.u16(n) if vu.vccl.flag(n) else vte.u16(n))
    _clear(vu.vcoh, vu.vcol)
    vd.assign(vu.accl)


def vzero(vu: VectorUnit, vd: Vector128, vs: Vector128, vt: Vector128, e: int) -> None:
    """Leave the sum in the accumulator and clear vd."""
    vs, vte = _operands(vs, vt, e)
    for n in _LANES:
        vu.accl.set_u16(n, vs.s16(n) + vte.s16(n))
        vd.set_u16(n, 0)


def vnop(vu: VectorUnit) -> None:
    """Do nothing."""