"""RSP data memory, DMA transfers, lookup tables and task dispatch."""

from __future__ import annotations

import math
from dataclasses import astuple, dataclass
from enum import Enum
from functools import lru_cache
from typing import Callable, MutableSequence, Optional

__all__ = [
    "RspExitReason",
    "RspError",
    "RspTask",
    "Dmem",
    "rdram_index",
    "build_reciprocals",
    "build_inverse_square_roots",
    "run_task",
]

DMEM_SIZE = 0x1000
TASK_DMEM_ADDR = 0xFC0
UCODE_DATA_LENGTH = 0xF80 - 1


class RspExitReason(Enum):
    """Why a microcode function returned."""

    INVALID = 0
    BROKE = 1
    IMEM_OVERRUN = 2
    UNHANDLED_JUMP_TARGET = 3
    UNSUPPORTED = 4
    SWAP_OVERLAY = 5
    UNHANDLED_RESUME_TARGET = 6


class RspError(Exception):
    """Raised when an RSP operation or task fails."""


@dataclass
class RspTask:
    """An RSP task descriptor, laid out as sixteen 32-bit words."""

    type: int = 0
    flags: int = 0
    ucode_boot: int = 0
    ucode_boot_size: int = 0
    ucode: int = 0
    ucode_size: int = 0
    ucode_data: int = 0
    ucode_data_size: int = 0
    dram_stack: int = 0
    dram_stack_size: int = 0
    output_buff: int = 0
    output_buff_size: int = 0
    data_ptr: int = 0
    data_size: int = 0
    yield_data_ptr: int = 0
    yield_data_size: int = 0


def rdram_index(offset: int, addr: int) -> int:
    """Index into byte-swizzled RDRAM for a KSEG0 virtual address plus offset."""
    virtual = (addr + offset) & 0xFFFFFFFF
    index = (virtual ^ 3) - 0x80000000
    if index < 0:
        raise RspError(f"address 0x{virtual:08X} is not in RDRAM")
    return index


def _dmem_index(offset: int, addr: int) -> int:
    return 0xFFF & ((offset + addr) ^ 3)


class Dmem:
    """4 KiB of RSP data memory, stored with 32-bit words byte-swapped."""

    def __init__(self) -> None:
        self.data = bytearray(DMEM_SIZE)

    def read_byte(self, offset: int, addr: int) -> int:
        """Read a byte as a signed 8-bit value."""
        value = self.data[_dmem_index(offset, addr)]
        return value - 0x100 if value & 0x80 else value

    def write_byte(self, offset: int, addr: int, value: int) -> None:
        self.data[_dmem_index(offset, addr)] = value & 0xFF

    def _read_unsigned(self, offset: int, addr: int) -> int:
        return self.data[_dmem_index(offset, addr)]

    def load_word(self, offset: int, addr: int) -> int:
        """Load a big-endian 32-bit word."""
        value = 0
        for i in range(4):
            value = (value << 8) | self._read_unsigned(offset + i, addr)
        return value

    def store_word(self, offset: int, addr: int, value: int) -> None:
        """Store a big-endian 32-bit word."""
        for i in range(4):
            self.write_byte(offset + i, addr, value >> (8 * (3 - i)))

    def load_halfword_unsigned(self, offset: int, addr: int) -> int:
        """Load a big-endian 16-bit value, zero-extended."""
        return (self._read_unsigned(offset, addr) << 8) | self._read_unsigned(offset + 1, addr)

    def load_halfword(self, offset: int, addr: int) -> int:
        """Load a big-endian 16-bit value, sign-extended to a 32-bit register value."""
        value = self.load_halfword_unsigned(offset, addr)
        if value & 0x8000:
            value -= 0x10000
        return value & 0xFFFFFFFF

    def store_halfword(self, offset: int, addr: int, value: int) -> None:
        """Store the low 16 bits of a value big-endian."""
        self.write_byte(offset, addr, value >> 8)
        self.write_byte(offset + 1, addr, value)

    def _check_range(self, dmem_addr: int, length: int) -> None:
        if dmem_addr + length > DMEM_SIZE:
            raise RspError(
                f"DMA of 0x{length:X} bytes at DMEM 0x{dmem_addr:X} overruns DMEM"
            )

    def dma_from_rdram(
        self, rdram: MutableSequence[int], dmem_addr: int, dram_addr: int, length: int
    ) -> None:
        """Copy length + 1 bytes from RDRAM into DMEM."""
        length += 1
        dram_addr &= 0xFFFFF8
        self._check_range(dmem_addr, length)
        for i in range(length):
            self.write_byte(i, dmem_addr, rdram[rdram_index(0, dram_addr + i + 0x80000000)])

    def dma_to_rdram(
        self, rdram: MutableSequence[int], dmem_addr: int, dram_addr: int, length: int
    ) -> None:
        """Copy length + 1 bytes from DMEM into RDRAM."""
        length += 1
        dram_addr &= 0xFFFFF8
        self._check_range(dmem_addr, length)
        for i in range(length):
            rdram[rdram_index(0, dram_addr + i + 0x80000000)] = self._read_unsigned(i, dmem_addr)


@lru_cache(maxsize=None)
def build_reciprocals() -> tuple[int, ...]:
    """The 512-entry reciprocal table used by VRCP."""
    table = [0xFFFF]
    for index in range(1, 512):
        b = (1 << 34) // (index + 512)
        table.append(((b + 1) >> 8) & 0xFFFF)
    return tuple(table)


@lru_cache(maxsize=None)
def build_inverse_square_roots() -> tuple[int, ...]:
    """The 512-entry inverse square root table used by VRSQ."""
    table = []
    limit = 1 << 44
    for index in range(512):
        a = (index + 512) >> (1 if index % 2 == 1 else 0)
        # Largest c with a * c * c < 2**44, never below the 2**17 starting point.
        c = math.isqrt((limit - 1) // a)
        b = max(1 << 17, c)
        table.append((b >> 1) & 0xFFFF)
    return tuple(table)


MicrocodeFunc = Callable[[MutableSequence[int], int], RspExitReason]


def run_task(
    rdram: MutableSequence[int],
    task: RspTask,
    get_microcode: Callable[[RspTask], Optional[MicrocodeFunc]],
    dmem: Dmem,
) -> RspExitReason:
    """Load a task into DMEM and run the microcode chosen for it."""
    ucode_func = get_microcode(task)
    if ucode_func is None:
        raise RspError(f"No registered RSP ucode for {task.type}")

    for i, word in enumerate(astuple(task)):
        dmem.store_word(TASK_DMEM_ADDR + 4 * i, 0, word)

    dmem.dma_from_rdram(rdram, 0x0000, task.ucode_data, UCODE_DATA_LENGTH)

    exit_reason = ucode_func(rdram, task.ucode)
    if exit_reason is not RspExitReason.BROKE:
        raise RspError(f"RSP ucode {task.type} exited unexpectedly. exit_reason: {exit_reason}")
    return exit_reason