import pytest

from ultrart.rsp_memory import (
    Dmem,
    RspError,
    RspExitReason,
    RspTask,
    build_inverse_square_roots,
    build_reciprocals,
    rdram_index,
    run_task,
)


def test_word_round_trip():
    dmem = Dmem()
    dmem.store_word(0x10, 0x20, 0x11223344)
    assert dmem.load_word(0x10, 0x20) == 0x11223344
    assert dmem.load_word(0, 0x30) == 0x11223344


def test_word_bytes_are_big_endian_in_rsp_view():
    dmem = Dmem()
    dmem.store_word(0, 0, 0x11223344)
    assert [dmem.read_byte(i, 0) for i in range(4)] == [0x11, 0x22, 0x33, 0x44]
    # Physically stored swizzled within the word.
    assert dmem.data[3] == 0x11
    assert dmem.data[0] == 0x44


def test_read_byte_is_signed():
    dmem = Dmem()
    dmem.write_byte(5, 0, 0xFF)
    assert dmem.read_byte(0, 5) == -1


def test_address_wraps():
    dmem = Dmem()
    dmem.write_byte(0, 0x1000, 0x5A)
    assert dmem.read_byte(0, 0) == 0x5A


def test_halfword_round_trip_and_sign():
    dmem = Dmem()
    dmem.store_halfword(0, 4, 0x8001)
    assert dmem.load_halfword_unsigned(0, 4) == 0x8001
    assert dmem.load_halfword(0, 4) == 0xFFFF8001
    dmem.store_halfword(0, 6, 0x1234)
    assert dmem.load_halfword(0, 6) == dmem.load_halfword_unsigned(0, 6) == 0x1234


def test_rdram_index_swizzle():
    assert rdram_index(0, 0x80000000) == 3
    assert rdram_index(4, 0x80000000) == rdram_index(0, 0x80000004)
    assert rdram_index(0, 0xFFFFFFFF80000010) == rdram_index(0, 0x80000010)


def test_rdram_index_rejects_low_address():
    with pytest.raises(RspError):
        rdram_index(0, 0x100)


def test_dma_round_trip():
    rdram = bytearray(0x2000)
    for i in range(0x40):
        rdram[rdram_index(i, 0x80000100)] = i
    dmem = Dmem()
    dmem.dma_from_rdram(rdram, 0x200, 0x100, 0x3F)
    assert [dmem.read_byte(i, 0x200) for i in range(0x40)] == list(range(0x40))

    other = bytearray(0x2000)
    dmem.dma_to_rdram(other, 0x200, 0x400, 0x3F)
    assert [other[rdram_index(i, 0x80000400)] for i in range(0x40)] == list(range(0x40))


def test_dma_overrun_raises():
    dmem = Dmem()
    with pytest.raises(RspError):
        dmem.dma_from_rdram(bytearray(0x2000), 0xFF0, 0, 0x10)
    with pytest.raises(RspError):
        dmem.dma_to_rdram(bytearray(0x2000), 0xFF0, 0, 0x10)


def test_reciprocals_table():
    table = build_reciprocals()
    assert len(table) == 512
    assert table[0] == 0xFFFF
    assert all(table[i] >= table[i + 1] for i in range(1, 511))


def test_inverse_square_roots_table():
    table = build_inverse_square_roots()
    assert len(table) == 512
    assert all(0 <= v <= 0xFFFF for v in table)
    evens = table[0::2]
    odds = table[1::2]
    assert all(evens[i] >= evens[i + 1] for i in range(len(evens) - 1))
    assert all(odds[i] >= odds[i + 1] for i in range(len(odds) - 1))


def test_run_task_loads_task_and_data():
    rdram = bytearray(0x2000)
    for i in range(0x10):
        rdram[rdram_index(i, 0x80000100)] = 0xA0 + i
    task = RspTask(type=2, ucode=0x80001000, ucode_data=0x80000100, data_ptr=0x80000400)
    dmem = Dmem()
    seen = {}

    def ucode(ram, addr):
        seen["addr"] = addr
        seen["type"] = dmem.load_word(0xFC0, 0)
        seen["data_ptr"] = dmem.load_word(0xFC0 + 4 * 12, 0)
        seen["first"] = dmem.read_byte(0, 0) & 0xFF
        return RspExitReason.BROKE

    result = run_task(rdram, task, lambda t: ucode, dmem)
    assert result is RspExitReason.BROKE
    assert seen == {"addr": task.ucode, "type": 2, "data_ptr": task.data_ptr, "first": 0xA0}


def test_run_task_without_microcode():
    with pytest.raises(RspError):
        run_task(bytearray(0x2000), RspTask(type=7), lambda t: None, Dmem())


def test_run_task_bad_exit():
    def ucode(ram, addr):
        return RspExitReason.IMEM_OVERRUN

    with pytest.raises(RspError):
        run_task(bytearray(0x2000), RspTask(type=1), lambda t: ucode, Dmem())