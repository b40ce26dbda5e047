"""Load and store instructions, including the unaligned left and right forms."""

from __future__ import annotations

from typing import Callable, Optional

from .cpu_state import (
    MASK32,
    MASK64,
    CpuState,
    InstructionError,
    MemoryBus,
    Translation,
    rs,
    rt,
    signed_immediate,
)

Handler = Callable[[CpuState, MemoryBus, int], None]


def _sext(value: int, bits: int) -> int:
    value &= (1 << bits) - 1
    if value >> (bits - 1):
        value -= 1 << bits
    return value & MASK64


def _address(cpu: CpuState, instruction: int) -> int:
    return (cpu.registers[rs(instruction)] + signed_immediate(instruction)) & MASK64


def _translate(bus: MemoryBus, address: int) -> Optional[Translation]:
    translation = bus.translate_address(address)
    return None if translation.error else translation


def _target(cpu: CpuState, bus: MemoryBus, instruction: int) -> Optional[Translation]:
    return _translate(bus, _address(cpu, instruction))


# Loads


def _lb(cpu: CpuState, bus: MemoryBus, instruction: int) -> None:
    t = _target(cpu, bus, instruction)
    if t is not None:
        cpu.set_register(rt(instruction), _sext(bus.read8(t.address, t.cached), 8))


def _lbu(cpu: CpuState, bus: MemoryBus, instruction: int) -> None:
    t = _target(cpu, bus, instruction)
    if t is not None:
        cpu.set_register(rt(instruction), bus.read8(t.address, t.cached))


def _lh(cpu: CpuState, bus: MemoryBus, instruction: int) -> None:
    t = _translate(bus, _address(cpu, instruction) & MASK32)
    if t is not None:
        cpu.set_register(rt(instruction), _sext(bus.read16(t.address, t.cached), 16))


def _lhu(cpu: CpuState, bus: MemoryBus, instruction: int) -> None:
    t = _translate(bus, _address(cpu, instruction) & MASK32)
    if t is not None:
        cpu.set_register(rt(instruction), bus.read16(t.address, t.cached))


def _lw(cpu: CpuState, bus: MemoryBus, instruction: int) -> None:
    t = _target(cpu, bus, instruction)
    if t is not None:
        cpu.set_register(rt(instruction), _sext(bus.read32(t.address, t.cached), 32))


def _ld(cpu: CpuState, bus: MemoryBus, instruction: int) -> None:
    t = _target(cpu, bus, instruction)
    if t is not None:
        cpu.set_register(rt(instruction), bus.read64(t.address, t.cached))


def _ll(cpu: CpuState, bus: MemoryBus, instruction: int) -> None:
    cpu.llbit = True
    t = _target(cpu, bus, instruction)
    if t is None:
        return
    cpu.set_register(rt(instruction), _sext(bus.read32(t.address, t.cached), 32))
    cpu.ll_address = t.address >> 4


def _lwl(cpu: CpuState, bus: MemoryBus, instruction: int) -> None:
    t = _target(cpu, bus, instruction)
    if t is None:
        return
    shift = 8 * (t.address & 0x3)
    mask = (1 << shift) - 1
    value = bus.read32(t.address & ~0x3, t.cached)
    current = cpu.registers[rt(instruction)] & MASK32
    cpu.set_register(rt(instruction), _sext((current & mask) | (value << shift), 32))


def _lwr(cpu: CpuState, bus: MemoryBus, instruction: int) -> None:
    t = _target(cpu, bus, instruction)
    if t is None:
        return
    offset = t.address & 0x3
    shift = 8 * (3 - offset)
    mask = 0 if offset == 3 else ~((1 << (8 * (offset + 1))) - 1) & MASK32
    value = bus.read32(t.address & ~0x3, t.cached)
    current = cpu.registers[rt(instruction)] & MASK32
    cpu.set_register(rt(instruction), _sext((current & mask) | (value >> shift), 32))


def _ldl(cpu: CpuState, bus: MemoryBus, instruction: int) -> None:
    address = _address(cpu, instruction)
    shift = 8 * (address & 0x7)
    mask = (1 << shift) - 1
    t = _translate(bus, address)
    if t is None:
        return
    value = bus.read64(t.address & ~0x7, t.cached)
    current = cpu.registers[rt(instruction)]
    cpu.set_register(rt(instruction), (current & mask) | ((value << shift) & MASK64))


def _ldr(cpu: CpuState, bus: MemoryBus, instruction: int) -> None:
    t = _target(cpu, bus, instruction)
    if t is None:
        return
    offset = t.address & 0x7
    shift = 8 * (7 - offset)
    mask = 0 if offset == 7 else ~((1 << (8 * (offset + 1))) - 1) & MASK64
    value = bus.read64(t.address & ~0x7, t.cached)
    current = cpu.registers[rt(instruction)]
    cpu.set_register(rt(instruction), (current & mask) | (value >> shift))


_LOADS: dict[int, Handler] = {
    0x1A: _ldl,
    0x1B: _ldr,
    0x20: _lb,
    0x21: _lh,
    0x22: _lwl,
    0x23: _lw,
    0x24: _lbu,
    0x25: _lhu,
    0x26: _lwr,
    0x30: _ll,
    0x37: _ld,
}

_UNSUPPORTED_LOADS = {0x27: "lwu", 0x34: "lld"}

LOAD_OPCODES = frozenset(_LOADS) | frozenset(_UNSUPPORTED_LOADS)


def execute_load(cpu: CpuState, bus: MemoryBus, instruction: int) -> None:
    """Execute a load; a failed address translation leaves the CPU unchanged."""
    opcode = (instruction >> 26) & 0x3F
    handler = _LOADS.get(opcode)
    if handler is not None:
        handler(cpu, bus, instruction)
        return
    if opcode in _UNSUPPORTED_LOADS:
        raise InstructionError(f"instruction not supported: {_UNSUPPORTED_LOADS[opcode]}")
    raise InstructionError(f"opcode {opcode:#x} is not a load")


# Stores


def _sb(cpu: CpuState, bus: MemoryBus, instruction: int) -> None:
    t = _target(cpu, bus, instruction)
    if t is not None:
        bus.write8(t.address, cpu.registers[rt(instruction)] & 0xFF, t.cached)


def _sh(cpu: CpuState, bus: MemoryBus, instruction: int) -> None:
    t = _target(cpu, bus, instruction)
    if t is not None:
        bus.write16(t.address, cpu.registers[rt(instruction)] & 0xFFFF, t.cached)


def _sw(cpu: CpuState, bus: MemoryBus, instruction: int) -> None:
    t = _target(cpu, bus, instruction)
    if t is not None:
        bus.write32(t.address, cpu.registers[rt(instruction)] & MASK32, t.cached)


def _sd(cpu: CpuState, bus: MemoryBus, instruction: int) -> None:
    t = _target(cpu, bus, instruction)
    if t is not None:
        bus.write64(t.address, cpu.registers[rt(instruction)], t.cached)


def _sc(cpu: CpuState, bus: MemoryBus, instruction: int) -> None:
    target = rt(instruction)
    if not cpu.llbit:
        cpu.set_register(target, 0)
        return
    cpu.llbit = False
    t = _target(cpu, bus, instruction)
    if t is None:
        return
    bus.write32(t.address, cpu.registers[target] & MASK32, t.cached)
    cpu.set_register(target, 1)


def _swl(cpu: CpuState, bus: MemoryBus, instruction: int) -> None:
    t = _target(cpu, bus, instruction)
    if t is None:
        return
    offset = t.address & 0x3
    shift = 8 * offset
    mask = MASK32 if offset == 0 else (1 << (8 * (4 - offset))) - 1
    value = (cpu.registers[rt(instruction)] >> shift) & MASK32
    bus.write32(t.address & ~0x3, value, t.cached, mask)


def _swr(cpu: CpuState, bus: MemoryBus, instruction: int) -> None:
    t = _target(cpu, bus, instruction)
    if t is None:
        return
    shift = 8 * (3 - (t.address & 0x3))
    mask = ~((1 << shift) - 1) & MASK32
    value = (cpu.registers[rt(instruction)] << shift) & MASK32
    bus.write32(t.address & ~0x3, value, t.cached, mask)


def _sdl(cpu: CpuState, bus: MemoryBus, instruction: int) -> None:
    t = _target(cpu, bus, instruction)
    if t is None:
        return
    offset = t.address & 0x7
    shift = 8 * offset
    mask = MASK64 if offset == 0 else (1 << (8 * (8 - offset))) - 1
    value = cpu.registers[rt(instruction)] >> shift
    bus.write64(t.address & ~0x7, value, t.cached, mask)


def _sdr(cpu: CpuState, bus: MemoryBus, instruction: int) -> None:
    t = _target(cpu, bus, instruction)
    if t is None:
        return
    shift = 8 * (7 - (t.address & 0x7))
    mask = ~((1 << shift) - 1) & MASK64
    # The shifted value is narrowed to 32 bits before it is stored.
    value = (cpu.registers[rt(instruction)] << shift) & MASK32
    bus.write64(t.address & ~0x7, value, t.cached, mask)


_STORES: dict[int, Handler] = {
    0x28: _sb,
    0x29: _sh,
    0x2A: _swl,
    0x2B: _sw,
    0x2C: _sdl,
    0x2D: _sdr,
    0x2E: _swr,
    0x38: _sc,
    0x3F: _sd,
}

_UNSUPPORTED_STORES = {0x3C: "scd"}

STORE_OPCODES = frozenset(_STORES) | frozenset(_UNSUPPORTED_STORES)


def execute_store(cpu: CpuState, bus: MemoryBus, instruction: int) -> None:
    """Execute a store; a failed address translation leaves memory unchanged."""
    opcode = (instruction >> 26) & 0x3F
    handler = _STORES.get(opcode)
    if handler is not None:
        handler(cpu, bus, instruction)
        return
    if opcode in _UNSUPPORTED_STORES:
        raise InstructionError(f"instruction not supported: {_UNSUPPORTED_STORES[opcode]}")
    raise InstructionError(f"opcode {opcode:#x} is not a store")