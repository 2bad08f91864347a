"""Runtime support for recompiled N64 programs: overlays, RSP data memory and the RSP vector unit."""

__version__ = "0.1.0"

__all__ = [
    "rsp_memory",
    "overlays",
    "vector",
    "vu_loadstore",
    "vu_arith",
    "vu_multiply",
]