"""Sv39 paging helpers and ELF64 executable headers."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntFlag
from typing import Iterator

__all__ = [
    "PGSIZE",
    "PGSHIFT",
    "PXMASK",
    "MAXVA",
    "SATP_SV39",
    "ELF_MAGIC",
    "PT_LOAD",
    "PteFlag",
    "ElfHeader",
    "ProgramHeader",
    "pgroundup",
    "pgrounddown",
    "pa2pte",
    "pte2pa",
    "pte_flags",
    "pxshift",
    "px",
    "make_satp",
]

PGSIZE = 4096
PGSHIFT = 12
PXMASK = 0x1FF
# One beyond the highest usable virtual address; one bit below the Sv39
# limit so that addresses never need sign extension.
MAXVA = 1 << (9 + 9 + 9 + 12 - 1)
SATP_SV39 = 8 << 60

ELF_MAGIC = 0x464C457F
PT_LOAD = 1

_MASK64 = (1 << 64) - 1


class PteFlag(IntFlag):
    """Permission and validity bits of a page-table entry."""

    V = 1 << 0
    R = 1 << 1
    W = 1 << 2
    X = 1 << 3
    U = 1 << 4


def pgroundup(sz: int) -> int:
    """Round a size up to a whole number of pages."""
    return ((sz + PGSIZE - 1) & ~(PGSIZE - 1)) & _MASK64


def pgrounddown(a: int) -> int:
    """Round an address down to the start of its page."""
    return (a & ~(PGSIZE - 1)) & _MASK64


def pa2pte(pa: int) -> int:
    """Place a physical address where a page-table entry holds it."""
    return ((pa & _MASK64) >> 12) << 10


def pte2pa(pte: int) -> int:
    """Extract the physical page address from a page-table entry."""
    return (((pte & _MASK64) >> 10) << 12) & _MASK64


def pte_flags(pte: int) -> int:
    """The low ten flag bits of a page-table entry."""
    return pte & 0x3FF


def pxshift(level: int) -> int:
    """Bit position of the page-table index for ``level``."""
    return PGSHIFT + 9 * level


def px(level: int, va: int) -> int:
    """The 9-bit page-table index of ``va`` at ``level`` (0 to 2)."""
    if not 0 <= level <= 2:
        raise ValueError(f"page-table level out of range: {level}")
    return ((va & _MASK64) >> pxshift(level)) & PXMASK


def make_satp(pagetable: int) -> int:
    """The satp value selecting Sv39 with the given root page table."""
    return (SATP_SV39 | ((pagetable & _MASK64) >> 12)) & _MASK64


_ELF_HEADER = struct.Struct("<I12sHHIQQQIHHHHHH")
_PROG_HEADER = struct.Struct("<IIQQQQQQ")


@dataclass(frozen=True)
class ProgramHeader:
    """One ELF64 program header (segment description)."""

    type: int
    flags: int
    off: int
    vaddr: int
    paddr: int
    filesz: int
    memsz: int
    align: int

    SIZE = _PROG_HEADER.size

    @classmethod
    def parse(cls, data: bytes, offset: int = 0) -> "ProgramHeader":
        """Decode a program header found at ``offset`` in ``data``."""
        if offset < 0 or offset + _PROG_HEADER.size > len(data):
            raise ValueError("program header lies outside the data")
        return cls(*_PROG_HEADER.unpack_from(data, offset))

    @property
    def is_load(self) -> bool:
        """Whether this segment is to be loaded into memory."""
        return self.type == PT_LOAD


@dataclass(frozen=True)
class ElfHeader:
    """The ELF64 file header of a little-endian executable."""

    magic: int
    elf: bytes
    type: int
    machine: int
    version: int
    entry: int
    phoff: int
    shoff: int
    flags: int
    ehsize: int
    phentsize: int
    phnum: int
    shentsize: int
    shnum: int
    shstrndx: int

    SIZE = _ELF_HEADER.size

    @classmethod
    def parse(cls, data: bytes) -> "ElfHeader":
        """Decode the file header; raise ValueError if it is not ELF."""
        if len(data) < _ELF_HEADER.size:
            raise ValueError("data too short for an ELF header")
        header = cls(*_ELF_HEADER.unpack_from(data, 0))
        if header.magic != ELF_MAGIC:
            raise ValueError(f"bad ELF magic: {header.magic:#x}")
        return header

    def program_headers(self, data: bytes) -> Iterator[ProgramHeader]:
        """Yield the program headers that this header points to in ``data``."""
        for index in range(self.phnum):
            yield ProgramHeader.parse(data, self.phoff + index * ProgramHeader.SIZE)