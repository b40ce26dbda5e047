"""Register file, instruction field decoding and a flat memory bus for the CPU core."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator

MASK32 = 0xFFFF_FFFF
MASK64 = 0xFFFF_FFFF_FFFF_FFFF
RDRAM_SIZE = 0x80_0000
CACHE_LINES = 512

_KSEG0 = 0x8000_0000
_KSEG1 = 0xA000_0000
_KSEG2 = 0xC000_0000


class InstructionError(RuntimeError):
    """Raised for reserved or unsupported instructions and cache operations."""


@dataclass(frozen=True)
class Translation:
    """Result of translating a virtual address to a physical one."""

    address: int
    error: bool
    cached: bool

    def __iter__(self) -> Iterator:
        return iter((self.address, self.error, self.cached))


@dataclass
class _CacheLine:
    valid: bool = False
    dirty: bool = False
    tag: int = 0


def _line_list() -> list[_CacheLine]:
    return [_CacheLine() for _ in range(CACHE_LINES)]


class MemoryBus:
    """Big-endian physical memory reached through the direct-mapped segments.

    Cached accesses keep the data-cache line state up to date; the data itself
    is always written through to memory, so a write-back only clears the dirty
    flag. Reads outside memory return zero and writes outside it are dropped.
    """

    def __init__(self, size: int = RDRAM_SIZE) -> None:
        self.memory = bytearray(size)
        self.icache = _line_list()
        self.dcache = _line_list()

    def translate_address(self, address: int) -> Translation:
        address &= MASK64
        high, low = address >> 32, address & MASK32
        if high not in (0, MASK32):
            return Translation(0, True, False)
        if _KSEG0 <= low < _KSEG1:
            return Translation(low - _KSEG0, False, True)
        if _KSEG1 <= low < _KSEG2:
            return Translation(low - _KSEG1, False, False)
        return Translation(0, True, False)

    def icache_hit(self, line: int, address: int) -> bool:
        entry = self.icache[line]
        return entry.valid and entry.tag == (address & ~0xFFF & MASK32)

    def dcache_hit(self, line: int, address: int) -> bool:
        entry = self.dcache[line]
        return entry.valid and entry.tag == (address & ~0xFFF & MASK32)

    def dcache_writeback(self, line: int) -> None:
        self.dcache[line].dirty = False

    def _touch(self, address: int, cached: bool, dirty: bool) -> None:
        if not cached:
            return
        entry = self.dcache[(address >> 4) & 0x1FF]
        tag = address & ~0xFFF & MASK32
        if not (entry.valid and entry.tag == tag):
            entry.valid, entry.tag, entry.dirty = True, tag, False
        if dirty:
            entry.dirty = True

    def _read(self, address: int, size: int, cached: bool) -> int:
        end = address + size
        if address < 0 or end > len(self.memory):
            return 0
        self._touch(address, cached, False)
        return int.from_bytes(self.memory[address:end], "big")

    def _write(self, address: int, size: int, value: int, cached: bool, mask: int) -> None:
        end = address + size
        if address < 0 or end > len(self.memory):
            return
        full = (1 << (8 * size)) - 1
        old = int.from_bytes(self.memory[address:end], "big")
        new = (old & ~mask & full) | (value & mask & full)
        self.memory[address:end] = new.to_bytes(size, "big")
        self._touch(address, cached, True)

    def read8(self, address: int, cached: bool = True) -> int:
        return self._read(address, 1, cached)

    def read16(self, address: int, cached: bool = True) -> int:
        return self._read(address, 2, cached)

    def read32(self, address: int, cached: bool = True) -> int:
        return self._read(address, 4, cached)

    def read64(self, address: int, cached: bool = True) -> int:
        return self._read(address, 8, cached)

    def write8(self, address: int, value: int, cached: bool = True) -> None:
        self._write(address, 1, value, cached, 0xFF)

    def write16(self, address: int, value: int, cached: bool = True) -> None:
        self._write(address, 2, value, cached, 0xFFFF)

    def write32(self, address: int, value: int, cached: bool = True, mask: int = MASK32) -> None:
        self._write(address, 4, value, cached, mask)

    def write64(self, address: int, value: int, cached: bool = True, mask: int = MASK64) -> None:
        self._write(address, 8, value, cached, mask)


@dataclass
class CpuState:
    """Architectural state of the CPU and the coprocessor fields instructions touch."""

    registers: list[int] = field(default_factory=lambda: [0] * 32)
    pc: int = 0
    next_pc: int = 0
    hi: int = 0
    lo: int = 0
    in_delay_slot: bool = False
    discarded: bool = False
    llbit: bool = False
    tag_lo: int = 0
    ll_address: int = 0
    cycles: int = 0
    fr: bool = False
    fgr32: list[int] = field(default_factory=lambda: [0] * 32)
    fgr64: list[int] = field(default_factory=lambda: [0] * 32)

    def set_register(self, index: int, value: int) -> None:
        """Store a 64-bit value; writes to register 0 are discarded."""
        if not 0 <= index < 32:
            raise IndexError(f"no general register {index}")
        if index:
            self.registers[index] = value & MASK64

    def add_cycles(self, cycles: int) -> None:
        self.cycles += cycles


def rs(instruction: int) -> int:
    return (instruction >> 21) & 0x1F


def rt(instruction: int) -> int:
    return (instruction >> 16) & 0x1F


def rd(instruction: int) -> int:
    return (instruction >> 11) & 0x1F


def shift_amount(instruction: int) -> int:
    return (instruction >> 6) & 0x1F


def immediate(instruction: int) -> int:
    return instruction & 0xFFFF


def signed_immediate(instruction: int) -> int:
    """The 16-bit immediate sign-extended to an unsigned 64-bit value."""
    value = instruction & 0xFFFF
    if value & 0x8000:
        value -= 0x1_0000
    return value & MASK64