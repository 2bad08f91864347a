"""Code section tables, overlay loading and function lookup by address."""

from __future__ import annotations

from bisect import bisect_left, bisect_right
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Iterable, Mapping, MutableSequence, Optional

from ultrart.rsp_memory import rdram_index

__all__ = [
    "SECTION_ABSOLUTE",
    "OverlayError",
    "FuncEntry",
    "RelocEntry",
    "SectionTableEntry",
    "BasePatchedFunction",
    "OverlayManager",
    "is_manual_patch_symbol",
]

_MASK32 = 0xFFFFFFFF

# Section index used by relocations that refer to absolute addresses.
SECTION_ABSOLUTE = 0xFFFE

RecompFunc = Callable[..., Any]


def _u32(value: int) -> int:
    return value & _MASK32


class OverlayError(Exception):
    """Raised when an overlay operation cannot be carried out."""


@dataclass(frozen=True)
class FuncEntry:
    """A function inside a code section, at an offset from the section start."""

    func: RecompFunc
    offset: int


@dataclass(frozen=True)
class RelocEntry:
    """A relocation inside a code section."""

    offset: int
    target_section_offset: int
    target_section: int
    type: int


@dataclass
class SectionTableEntry:
    """A code section of the ROM and the functions it holds."""

    rom_addr: int
    ram_addr: int
    size: int
    index: int
    funcs: list[FuncEntry] = field(default_factory=list)
    relocs: list[RelocEntry] = field(default_factory=list)


@dataclass(frozen=True)
class BasePatchedFunction:
    """Where a patched base function lives among the patch sections."""

    patch_section: int
    function_index: int


@dataclass
class _LoadedSection:
    loaded_ram_addr: int
    section_table_index: int


def is_manual_patch_symbol(vram: int) -> bool:
    """Whether a vram address falls in the range reserved for manual patch symbols."""
    return 0x8F000000 <= vram < 0x90000000


def _find_entry(sections: list[SectionTableEntry], section_index: int,
                function_offset: int) -> Optional[FuncEntry]:
    if not 0 <= section_index < len(sections):
        return None
    section = sections[section_index]
    if function_offset >= section.size:
        return None
    return next((f for f in section.funcs if f.offset == function_offset), None)


class OverlayManager:
    """Tracks code sections, which overlays are loaded, and the function map."""

    def __init__(self, code_sections: Iterable[SectionTableEntry],
                 total_num_sections: int, overlay_table: Iterable[int]) -> None:
        self.code_sections: list[SectionTableEntry] = list(code_sections)
        self.total_num_sections = total_num_sections
        self.overlay_table: list[int] = list(overlay_table)
        self.section_addresses: list[int] = [0] * total_num_sections

        self._patch_sections: Optional[list[SectionTableEntry]] = None
        self._patch_data = b""
        self._code_sections_by_rom: dict[int, int] = {}
        self._patch_sections_by_rom: dict[int, int] = {}
        self._loaded_sections: list[_LoadedSection] = []
        self._func_map: dict[int, RecompFunc] = {}
        self._base_exports: dict[str, RecompFunc] = {}
        self._ext_base_exports: dict[str, RecompFunc] = {}
        self._base_events: dict[str, int] = {}
        self._manual_patch_symbols: dict[int, RecompFunc] = {}

    # Registration

    def register_patches(self, patch_data: bytes, sections: Iterable[SectionTableEntry]) -> None:
        """Register the patch binary and the patch code sections."""
        self._patch_sections = list(sections)
        self._patch_data = bytes(patch_data)
        for i, section in enumerate(self._patch_sections):
            self._patch_sections_by_rom.setdefault(section.rom_addr, i)

    def register_base_export(self, name: str, func: RecompFunc) -> None:
        self._base_exports.setdefault(name, func)

    def register_ext_base_export(self, name: str, func: RecompFunc) -> None:
        self._ext_base_exports.setdefault(name, func)

    def register_base_exports(self, exports: Iterable[tuple[str, int]]) -> None:
        """Export patch functions by name, given (name, vram) pairs."""
        by_vram: dict[int, RecompFunc] = {}
        for section in self._patch_sections or []:
            for entry in section.funcs:
                by_vram.setdefault(_u32(section.ram_addr + entry.offset), entry.func)
        for name, ram_addr in exports:
            try:
                func = by_vram[_u32(ram_addr)]
            except KeyError:
                raise OverlayError(
                    f"Failed to find exported function {name!r} in patch function sections"
                ) from None
            self._base_exports.setdefault(name, func)

    def get_base_export(self, name: str) -> Optional[RecompFunc]:
        return self._base_exports.get(name)

    def get_ext_base_export(self, name: str) -> Optional[RecompFunc]:
        return self._ext_base_exports.get(name)

    def register_base_events(self, event_names: Iterable[str]) -> None:
        for index, name in enumerate(event_names):
            self._base_events.setdefault(name, index)

    def get_base_event_index(self, name: str) -> Optional[int]:
        """Index of a base event, or None if no such event was registered."""
        return self._base_events.get(name)

    def num_base_events(self) -> int:
        return len(self._base_events)

    def register_manual_patch_symbols(self, symbols: Iterable[tuple[int, RecompFunc]]) -> None:
        """Register (vram, func) pairs; a repeated address is an error."""
        for ram_addr, func in symbols:
            ram_addr = _u32(ram_addr)
            if ram_addr in self._manual_patch_symbols:
                raise OverlayError(
                    f"Duplicate manual patch symbol address: {ram_addr:08X}"
                )
            self._manual_patch_symbols[ram_addr] = func

    # Setup

    def init_overlays(self) -> None:
        """Sort code sections by ROM address, reset addresses and load patch functions."""
        self._func_map.clear()
        self.section_addresses = [0] * self.total_num_sections
        self.code_sections.sort(key=lambda s: s.rom_addr)
        for i, section in enumerate(self.code_sections):
            self.section_addresses[section.index] = _u32(section.ram_addr)
            self._code_sections_by_rom[section.rom_addr] = i
        for section in self._patch_sections or []:
            self._map_functions(section, section.ram_addr)

    def _map_functions(self, section: SectionTableEntry, ram: int) -> None:
        for entry in section.funcs:
            self._func_map[_u32(ram + entry.offset)] = entry.func

    def _unmap_functions(self, section: SectionTableEntry, ram: int) -> None:
        for entry in section.funcs:
            self._func_map.pop(_u32(ram + entry.offset), None)

    # Base sections

    def get_vrom_to_section_map(self) -> Mapping[int, int]:
        return MappingProxyType(self._code_sections_by_rom)

    def get_section_ram_addr(self, index: int) -> int:
        return self.code_sections[index].ram_addr

    def get_section_relocs(self, index: int) -> tuple[RelocEntry, ...]:
        if 0 <= index < len(self.code_sections):
            return tuple(self.code_sections[index].relocs)
        raise OverlayError(f"No code section with index {index}")

    def add_loaded_function(self, ram: int, func: RecompFunc) -> None:
        self._func_map[_u32(ram)] = func

    def _load_overlay(self, section_table_index: int, ram: int) -> None:
        ram = _u32(ram)
        section = self.code_sections[section_table_index]
        self._map_functions(section, ram)
        self._loaded_sections.append(_LoadedSection(ram, section_table_index))
        self.section_addresses[section.index] = ram

    def load_overlays(self, rom: int, ram_addr: int, size: int) -> None:
        """Load every code section that lies within a ROM range copied to ram_addr."""
        sections = self.code_sections
        lower = bisect_left(sections, rom, key=lambda s: s.rom_addr)
        upper = bisect_right(sections, _u32(rom + size), key=lambda s: _u32(s.rom_addr + s.size))
        for index in range(lower, upper):
            self._load_overlay(index, sections[index].rom_addr - rom + ram_addr)

    def unload_overlays(self, ram_addr: int, size: int) -> None:
        """Unload every section lying within a RAM range; partial overlap is an error."""
        ram_addr = _u32(ram_addr)
        end = _u32(ram_addr + size)
        remaining: list[_LoadedSection] = []
        for loaded in self._loaded_sections:
            section = self.code_sections[loaded.section_table_index]
            loaded_end = _u32(loaded.loaded_ram_addr + section.size)
            if ram_addr < loaded_end and end >= loaded.loaded_ram_addr:
                if ram_addr > loaded.loaded_ram_addr or end < loaded_end:
                    raise OverlayError(
                        "Cannot partially unload section\n"
                        f"  rom: 0x{section.rom_addr:08X} size: 0x{section.size:08X} "
                        f"loaded_addr: 0x{loaded.loaded_ram_addr:08X}\n"
                        f"  unloaded_ram: 0x{ram_addr:08X} unloaded_size : 0x{_u32(size):08X}"
                    )
                self._unmap_functions(section, loaded.loaded_ram_addr)
                self.section_addresses[section.index] = _u32(section.ram_addr)
            else:
                remaining.append(loaded)
        self._loaded_sections = remaining

    def load_overlay_by_id(self, overlay_id: int, ram_addr: int) -> None:
        """Load an overlay; if it is already relocated, ram_addr is an offset from there."""
        index = self.overlay_table[overlay_id]
        section = self.code_sections[index]
        prev = self.section_addresses[section.index]
        if prev == _u32(section.ram_addr):
            self._load_overlay(index, ram_addr)
        else:
            new_address = _u32(prev + ram_addr)
            self.unload_overlay_by_id(overlay_id)
            self._load_overlay(index, new_address)

    def unload_overlay_by_id(self, overlay_id: int) -> None:
        index = self.overlay_table[overlay_id]
        section = self.code_sections[index]
        for pos, loaded in enumerate(self._loaded_sections):
            if loaded.section_table_index == index:
                self._unmap_functions(section, loaded.loaded_ram_addr)
                self.section_addresses[section.index] = _u32(section.ram_addr)
                del self._loaded_sections[pos]
                return

    def get_function(self, addr: int) -> RecompFunc:
        """The function currently loaded at a RAM address."""
        addr = _u32(addr)
        try:
            return self._func_map[addr]
        except KeyError:
            raise OverlayError(f"Failed to find function at 0x{addr:08X}") from None

    def get_func_entry(self, section_index: int, function_offset: int) -> Optional[FuncEntry]:
        return _find_entry(self.code_sections, section_index, function_offset)

    def get_func_by_section_index_function_offset(
        self, section_index: int, function_offset: int
    ) -> Optional[RecompFunc]:
        entry = self.get_func_entry(section_index, function_offset)
        if entry is not None:
            return entry.func
        if section_index == SECTION_ABSOLUTE and is_manual_patch_symbol(function_offset):
            return self._manual_patch_symbols.get(function_offset)
        return None

    def get_func_by_section_rom_function_vram(
        self, section_rom: int, function_vram: int
    ) -> Optional[RecompFunc]:
        index = self._code_sections_by_rom.get(section_rom)
        if index is None:
            return None
        offset = _u32(function_vram - self.code_sections[index].ram_addr)
        return self.get_func_by_section_index_function_offset(index, offset)

    # Patch sections

    def _patch_list(self) -> list[SectionTableEntry]:
        return self._patch_sections or []

    def get_base_patched_funcs(self) -> dict[RecompFunc, BasePatchedFunction]:
        """Base functions that also appear in the patch sections."""
        patch_funcs: dict[RecompFunc, BasePatchedFunction] = {}
        for section_index, section in enumerate(self._patch_list()):
            for func_index, entry in enumerate(section.funcs):
                patch_funcs.setdefault(entry.func, BasePatchedFunction(section_index, func_index))
        result: dict[RecompFunc, BasePatchedFunction] = {}
        for section in self.code_sections:
            for entry in section.funcs:
                if entry.func in patch_funcs:
                    result.setdefault(entry.func, patch_funcs[entry.func])
        return result

    def get_patch_vrom_to_section_map(self) -> Mapping[int, int]:
        return MappingProxyType(self._patch_sections_by_rom)

    def _patch_section(self, index: int) -> SectionTableEntry:
        sections = self._patch_list()
        if 0 <= index < len(sections):
            return sections[index]
        raise OverlayError(f"No patch section with index {index}")

    def get_patch_section_ram_addr(self, index: int) -> int:
        return self._patch_section(index).ram_addr

    def get_patch_section_rom_addr(self, index: int) -> int:
        return self._patch_section(index).rom_addr

    def get_patch_function_entry(self, section_index: int, function_index: int) -> FuncEntry:
        section = self._patch_section(section_index)
        if 0 <= function_index < len(section.funcs):
            return section.funcs[function_index]
        raise OverlayError(
            f"No function {function_index} in patch section {section_index}"
        )

    def get_patch_func_entry(self, section_index: int, function_offset: int) -> Optional[FuncEntry]:
        return _find_entry(self._patch_list(), section_index, function_offset)

    def get_patch_section_relocs(self, index: int) -> tuple[RelocEntry, ...]:
        return tuple(self._patch_section(index).relocs)

    def get_patch_binary(self) -> bytes:
        return self._patch_data

    def read_patch_data(self, rdram: MutableSequence[int], address: int) -> None:
        """Copy the patch binary into RDRAM at a virtual address."""
        for i, value in enumerate(self._patch_data):
            rdram[rdram_index(i, address)] = value