# ultrart

Building blocks for the runtime of a statically recompiled N64 program,
written in plain Python with no third-party dependencies.

## What is inside

- `ultrart.overlays`: `OverlayManager` keeps track of code sections
  (`SectionTableEntry`, `FuncEntry`, `RelocEntry`). It loads and unloads
  overlays by ROM range or by overlay id, and finds the function loaded at a
  RAM address. It also holds patch sections and the patch binary, base
  exports, base events and manual patch symbols. Failures raise
  `OverlayError`: an unknown function address, a partial unload of a section,
  a duplicate manual patch symbol, or an export that no patch section holds.
- `ultrart.rsp_memory`: `Dmem` is the 4 KiB RSP data memory, with its
  byte-swapped addressing. It offers byte, halfword and word access and DMA
  to and from RDRAM. `run_task` loads an `RspTask` into DMEM and runs the
  microcode that a callback picks for it. It raises `RspError` unless the
  microcode returns `RspExitReason.BROKE`. `build_reciprocals` and
  `build_inverse_square_roots` build the divide lookup tables.
- `ultrart.vector`: `Vector128` is one 128-bit vector register, seen as 16
  bytes or 8 halfwords. `VectorUnit` holds the 32 registers, the 48-bit
  accumulator, the VCO, VCC and VCE flag registers and the divide state, and
  implements `cfc2` and `ctc2`. `sclamp` and `sclip` clamp or wrap a value to
  a signed width.
- `ultrart.vu_loadstore`: vector loads and stores between a `Vector128` and a
  `Dmem` (`lqv`, `sqv`, `ltv`, `stv` and so on), and `mfc2` and `mtc2`.
- `ultrart.vu_arith`: add, subtract, logic, compare, clip and select
  (`vadd`, `vsubc`, `vch`, `vcl`, `vge`, `vmrg` and so on).
- `ultrart.vu_multiply`: multiply, multiply-accumulate, divide, rounding and
  accumulator reads (`vmulf`, `vmacf`, `vmadh`, `vrcp`, `vrsq`, `vrndp`,
  `vsar` and so on).

## Examples

Loading an overlay and finding a function by address:

```python
from ultrart.overlays import FuncEntry, OverlayManager, SectionTableEntry

def entry_point(rdram, ctx):
    ...

sections = [
    SectionTableEntry(rom_addr=0x1000, ram_addr=0x80000400, size=0x100, index=0,
                      funcs=[FuncEntry(func=entry_point, offset=0)]),
]
manager = OverlayManager(sections, total_num_sections=1, overlay_table=[0])
manager.init_overlays()
manager.load_overlays(0x1000, 0x80000400, 0x100)
assert manager.get_function(0x80000400) is entry_point
```

Working with data memory and the vector unit:

```python
from ultrart.rsp_memory import Dmem
from ultrart.vector import VectorUnit
from ultrart.vu_arith import vadd
from ultrart.vu_loadstore import lqv

dmem = Dmem()
dmem.store_word(0, 0x10, 0x12345678)
assert dmem.load_word(0, 0x10) == 0x12345678

vu = VectorUnit()
lqv(dmem, vu.r[2], 0x10, 0, 0)
vadd(vu, vu.r[1], vu.r[2], vu.r[3], 0)
```

## What this package does not do

It does not apply ROM patches, and it does not read, validate or store ROM
images. It has no game loop, no threads, no save files and no graphics,
audio or input. It holds no microcode either: `run_task` calls whatever
function the caller's callback returns.

## Installing

```
pip install .
```

## Running the tests

```
pip install .[test]
pytest
```