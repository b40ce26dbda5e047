"""Top-level instruction dispatch, including the CACHE instruction."""

from __future__ import annotations

from .alu import execute_immediate, execute_special
from .cpu_state import (
    MASK32,
    CpuState,
    InstructionError,
    MemoryBus,
    rs,
    rt,
    signed_immediate,
)
from .flow import execute_branch, execute_jump, execute_regimm
from .memory import LOAD_OPCODES, STORE_OPCODES, execute_load, execute_store

_IMMEDIATE_OPCODES = frozenset({0x08, 0x09, 0x0A, 0x0B, 0x0C, 0x0D, 0x0E, 0x0F, 0x18, 0x19})
_BRANCH_OPCODES = frozenset({0x04, 0x05, 0x06, 0x07, 0x14, 0x15, 0x16, 0x17})
_JUMP_OPCODES = frozenset({0x02, 0x03})
_CACHE_OPCODE = 0x2F
_UNSUPPORTED = {
    0x10: "cop0",
    0x11: "cop1",
    0x12: "cop2",
    0x31: "lwc1",
    0x35: "ldc1",
    0x39: "swc1",
    0x3D: "sdc1",
}
_SPECIAL_UNSUPPORTED = {0x0C: "syscall", 0x0D: "break"}


def _cache(cpu: CpuState, bus: MemoryBus, instruction: int) -> None:
    operation = rt(instruction)
    address = cpu.registers[rs(instruction)] + signed_immediate(instruction)
    translation = bus.translate_address(address)
    if translation.error:
        return
    physical = translation.address
    iline = (physical >> 5) & 0x1FF
    dline = (physical >> 4) & 0x1FF
    tag_from_tag_lo = (cpu.tag_lo & 0xFFF_FF00) << 4

    if operation == 0x00:
        bus.icache[iline].valid = False
    elif operation == 0x01:
        entry = bus.dcache[dline]
        if entry.dirty and entry.valid:
            bus.dcache_writeback(dline)
        entry.valid = False
    elif operation == 0x08:
        bus.icache[iline].valid = (cpu.tag_lo >> 7) & 1 == 1
        bus.icache[iline].tag = tag_from_tag_lo
    elif operation == 0x09:
        # The line's valid flag ends up holding bit 6 of TagLo.
        bus.dcache[dline].valid = (cpu.tag_lo >> 6) & 1 == 1
        bus.dcache[dline].tag = tag_from_tag_lo
    elif operation == 0x0D:
        if not bus.dcache_hit(dline, physical) and bus.dcache[dline].dirty:
            bus.dcache_writeback(dline)
        entry = bus.dcache[dline]
        entry.tag = physical & ~0xFFF & MASK32
        entry.dirty = True
        entry.valid = True
    elif operation == 0x10:
        if bus.icache_hit(iline, physical):
            bus.icache[iline].valid = False
    elif operation == 0x11:
        if bus.dcache_hit(dline, physical):
            bus.dcache[dline].valid = False
            bus.dcache[dline].dirty = False
    elif operation == 0x15:
        if bus.dcache_hit(dline, physical):
            bus.dcache_writeback(dline)
            bus.dcache[dline].valid = False
    elif operation == 0x19:
        if bus.dcache_hit(dline, physical) and bus.dcache[dline].dirty:
            bus.dcache_writeback(dline)
    else:
        raise InstructionError(f"cache operation not supported: {operation:#x}")


def execute(cpu: CpuState, bus: MemoryBus, instruction: int) -> None:
    """Execute one instruction word against the CPU state and memory bus."""
    opcode = (instruction >> 26) & 0x3F

    if opcode == 0x00:
        funct = instruction & 0x3F
        if funct in (0x08, 0x09):
            execute_jump(cpu, instruction)
        elif funct in _SPECIAL_UNSUPPORTED:
            raise InstructionError(f"instruction not supported: {_SPECIAL_UNSUPPORTED[funct]}")
        else:
            execute_special(cpu, instruction)
    elif opcode == 0x01:
        execute_regimm(cpu, instruction)
    elif opcode in _JUMP_OPCODES:
        execute_jump(cpu, instruction)
    elif opcode in _BRANCH_OPCODES:
        execute_branch(cpu, instruction)
    elif opcode in _IMMEDIATE_OPCODES:
        execute_immediate(cpu, instruction)
    elif opcode in LOAD_OPCODES:
        execute_load(cpu, bus, instruction)
    elif opcode in STORE_OPCODES:
        execute_store(cpu, bus, instruction)
    elif opcode == _CACHE_OPCODE:
        _cache(cpu, bus, instruction)
    elif opcode in _UNSUPPORTED:
        raise InstructionError(f"instruction not supported: {_UNSUPPORTED[opcode]}")
    else:
        raise InstructionError(f"opcode reserved: {opcode:#x}")