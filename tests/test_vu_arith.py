import pytest

from ultrart.vector import Vector128, VectorUnit
from ultrart.vu_arith import (
    vabs, vadd, vaddc, vand, vch, vcl, vcr, veq, vge, vlt, vmrg, vnand,
    vne, vnop, vnor, vnxor, vor, vsub, vsubc, vxor, vzero,
)

A = [0x1234, 0xFFFF, 0x0000, 0x8000, 0x7FFF, 0x00F0, 0x0F0F, 0xAAAA]
B = [0x4321, 0x0001, 0xFFFF, 0x8000, 0x0001, 0x0F00, 0xF0F0, 0x5555]


def signed(values):
    return [v - 0x10000 if v & 0x8000 else v for v in values]


def vec(values):
    return Vector128([v & 0xFFFF for v in values])


def test_vand_vor_vxor_match_python_bitwise():
    vu, vd = VectorUnit(), Vector128()
    vand(vu, vd, vec(A), vec(B), 0)
    assert vd.halfwords() == [a & b for a, b in zip(A, B)]
    assert vu.accl == vd
    vor(vu, vd, vec(A), vec(B), 0)
    assert vd.halfwords() == [a | b for a, b in zip(A, B)]
    vxor(vu, vd, vec(A), vec(B), 0)
    assert vd.halfwords() == [a ^ b for a, b in zip(A, B)]


def test_negated_logic_is_complement():
    for plain, negated in [(vand, vnand), (vor, vnor), (vxor, vnxor)]:
        vu, p, q = VectorUnit(), Vector128(), Vector128()
        plain(vu, p, vec(A), vec(B), 0)
        negated(vu, q, vec(A), vec(B), 0)
        assert [x ^ 0xFFFF for x in p.halfwords()] == q.halfwords()


def test_vxor_with_itself_is_zero_even_when_aliased():
    vu = VectorUnit()
    v = vec(A)
    vxor(vu, v, v, v, 0)
    assert v.halfwords() == [0] * 8


def test_broadcast_element_specifier_used():
    vu, vd = VectorUnit(), Vector128()
    vor(vu, vd, Vector128(), vec(A), 8)
    assert vd.halfwords() == [A[0]] * 8


def test_vadd_saturates_but_accumulator_wraps():
    vu, vd = VectorUnit(), Vector128()
    vadd(vu, vd, vec([0x7FFF] * 8), vec([1] * 8), 0)
    assert vd.halfwords() == [0x7FFF] * 8
    assert vu.accl.halfwords() == [0x8000] * 8


def test_vadd_plain_values():
    vu, vd = VectorUnit(), Vector128()
    xs = [1, -2, 300, -400, 5, 6, 7, 8]
    ys = [10, 20, -30, 40, 0, -6, 100, -8]
    vadd(vu, vd, vec(xs), vec(ys), 0)
    assert signed(vd.halfwords()) == [x + y for x, y in zip(xs, ys)]


def test_vaddc_then_vadd_is_32_bit_addition():
    a = [0x0001FFFF, 0x00010000, 0x12345678, 0x0000FFFF,
         0x10000000, 0x00008000, 0x7FFF0000, 0]
    b = [0x00000001, 0x0000FFFF, 0x11111111, 0x0000FFFF,
         0x0FFFFFFF, 0x00008000, 0x0000FFFF, 5]
    vu, lo, hi = VectorUnit(), Vector128(), Vector128()
    vaddc(vu, lo, vec([x & 0xFFFF for x in a]), vec([x & 0xFFFF for x in b]), 0)
    vadd(vu, hi, vec([x >> 16 for x in a]), vec([x >> 16 for x in b]), 0)
    got = [(h << 16) | l for h, l in zip(hi.halfwords(), lo.halfwords())]
    assert got == [x + y for x, y in zip(a, b)]
    assert vu.cfc2(0) == 0


def test_vsubc_then_vsub_is_32_bit_subtraction():
    a = [0x00020000, 0x12345678, 0x00010005, 0x7FFF0000, 10, 0x00050000, 0x00030003, 0x00100000]
    b = [0x00000001, 0x11111111, 0x00000006, 0x0000FFFF, 3, 0x00010001, 0x00030003, 0x000F0001]
    vu, lo, hi = VectorUnit(), Vector128(), Vector128()
    vsubc(vu, lo, vec([x & 0xFFFF for x in a]), vec([x & 0xFFFF for x in b]), 0)
    vsub(vu, hi, vec([x >> 16 for x in a]), vec([x >> 16 for x in b]), 0)
    got = [(h << 16) | l for h, l in zip(hi.halfwords(), lo.halfwords())]
    assert got == [x - y for x, y in zip(a, b)]


def test_vsubc_flags():
    vu, vd = VectorUnit(), Vector128()
    vsubc(vu, vd, vec([5, 5, 3, 0, 0, 0, 0, 0]), vec([5, 3, 5, 0, 0, 0, 0, 0]), 0)
    assert [vu.vcoh.flag(n) for n in range(3)] == [False, True, True]
    assert [vu.vcol.flag(n) for n in range(3)] == [False, False, True]


def test_vabs():
    vu, vd = VectorUnit(), Vector128()
    vabs(vu, vd, vec([5, -5, 0, -1, 1, -1, 0, 2]),
         vec([7, 7, 7, -32768, -32768, -3, 9, -9]), 0)
    assert signed(vd.halfwords()) == [7, -7, 0, 32767, -32768, 3, 0, -9]


def test_vzero_clears_destination_keeps_sum():
    vu, vd = VectorUnit(), vec(A)
    xs, ys = [1, 2, 3, 4, 5, 6, 7, 8], [10, 20, 30, 40, 50, 60, 70, 80]
    vzero(vu, vd, vec(xs), vec(ys), 0)
    assert vd.halfwords() == [0] * 8
    assert vu.accl.halfwords() == [x + y for x, y in zip(xs, ys)]


def test_vge_and_vlt_select_max_and_min():
    xs = [1, -5, 100, -32768, 7, 0, 32767, -1]
    ys = [2, -6, 100, 32767, -7, 0, -32768, 1]
    vu, vd = VectorUnit(), Vector128()
    vge(vu, vd, vec(xs), vec(ys), 0)
    assert signed(vd.halfwords()) == [max(x, y) for x, y in zip(xs, ys)]
    vlt(vu, vd, vec(xs), vec(ys), 0)
    assert signed(vd.halfwords()) == [min(x, y) for x, y in zip(xs, ys)]
    assert [vu.vccl.flag(n) for n in range(8)] == [x < y for x, y in zip(xs, ys)]


def test_veq_and_vne_flags_complement():
    xs = [1, 2, 3, 4, 5, 6, 7, 8]
    ys = [1, 0, 3, 0, 5, 0, 7, 0]
    vu, vd = VectorUnit(), Vector128()
    veq(vu, vd, vec(xs), vec(ys), 0)
    eq = [vu.vccl.flag(n) for n in range(8)]
    vne(vu, vd, vec(xs), vec(ys), 0)
    ne = [vu.vccl.flag(n) for n in range(8)]
    assert eq == [x == y for x, y in zip(xs, ys)]
    assert ne == [not f for f in eq]


def test_vmrg_follows_vccl():
    vu, vd = VectorUnit(), Vector128()
    xs, ys = [1, 2, 3, 4, 5, 6, 7, 8], [9, 9, 9, 9, 9, 9, 9, 9]
    veq(vu, Vector128(), vec(xs), vec([1, 0, 3, 0, 5, 0, 7, 0]), 0)
    vmrg(vu, vd, vec(xs), vec(ys), 0)
    assert vd.halfwords() == [1, 9, 3, 9, 5, 9, 7, 9]


def test_vch_clamps_to_symmetric_range():
    xs = [100, 30, -100, -30, 0, 50, -50, 7]
    limit = 50
    vu, vd = VectorUnit(), Vector128()
    vch(vu, vd, vec(xs), vec([limit] * 8), 0)
    assert signed(vd.halfwords()) == [max(-limit, min(limit, x)) for x in xs]


def test_vcl_with_clear_flags_is_unsigned_min():
    xs = [1, 0xFFFF, 0x8000, 5, 0, 10, 0x7FFF, 3]
    ys = [2, 0x0001, 0x7FFF, 5, 9, 0, 0x8000, 1]
    vu, vd = VectorUnit(), Vector128()
    vcl(vu, vd, vec(xs), vec(ys), 0)
    assert vd.halfwords() == [min(x, y) for x, y in zip(xs, ys)]
    assert [vu.vcch.flag(n) for n in range(8)] == [x >= y for x, y in zip(xs, ys)]
    assert vu.cfc2(2) == 0


def test_vcr_ones_complement():
    vu, vd = VectorUnit(), Vector128()
    vcr(vu, vd, vec([100, 30, -100, 0, 0, 0, 0, 0]), vec([50] * 8), 0)
    got = signed(vd.halfwords())
    assert got[0] == 50
    assert got[1] == 30
    assert got[2] == ~50


def test_vnop_leaves_state():
    vu = VectorUnit()
    vu.ctc2(0x1234, 0)
    vnop(vu)
    assert vu.cfc2(0) == 0x1234


@pytest.mark.parametrize("op", [vadd, vand, vge])
def test_bad_element_specifier(op):
    with pytest.raises(ValueError):
        op(VectorUnit(), Vector128(), Vector128(), Vector128(), 16)