"""Jumps and branches, including the branch-likely and linking forms."""

from __future__ import annotations

from typing import Callable

from .cpu_state import (
    MASK32,
    MASK64,
    CpuState,
    InstructionError,
    immediate,
    rd,
    rs,
    rt,
    signed_immediate,
)

Condition = Callable[[CpuState, int], bool]

_SEGMENT_MASK = 0xFFFF_FFFF_F000_0000
_LINK_REGISTER = 31


def _signed64(value: int) -> int:
    value &= MASK64
    return value - (1 << 64) if value >> 63 else value


def _branch_offset(instruction: int) -> int:
    """Branch displacement as an unsigned 64-bit value.

    The shifted immediate is narrowed to 16 bits before it is sign-extended.
    """
    value = (immediate(instruction) << 2) & 0xFFFF
    if value & 0x8000:
        value -= 0x1_0000
    return value & MASK64


def _resolve(cpu: CpuState, instruction: int, taken: bool, likely: bool) -> None:
    if taken:
        cpu.next_pc = (cpu.pc + _branch_offset(instruction)) & MASK64
        cpu.in_delay_slot = True
    elif likely:
        # A branch-likely that is not taken skips its delay slot.
        cpu.pc = cpu.next_pc
        cpu.discarded = True
    else:
        cpu.in_delay_slot = True


def _equal(cpu: CpuState, instruction: int) -> bool:
    return cpu.registers[rs(instruction)] == cpu.registers[rt(instruction)]


def _not_equal(cpu: CpuState, instruction: int) -> bool:
    return cpu.registers[rs(instruction)] != cpu.registers[rt(instruction)]


def _less_equal_zero(cpu: CpuState, instruction: int) -> bool:
    return _signed64(cpu.registers[rs(instruction)]) <= 0


def _greater_zero(cpu: CpuState, instruction: int) -> bool:
    return _signed64(cpu.registers[rs(instruction)]) > 0


def _less_zero(cpu: CpuState, instruction: int) -> bool:
    return _signed64(cpu.registers[rs(instruction)]) < 0


def _greater_equal_zero(cpu: CpuState, instruction: int) -> bool:
    return _signed64(cpu.registers[rs(instruction)]) >= 0


_BRANCHES: dict[int, tuple[Condition, bool]] = {
    0x04: (_equal, False),  # BEQ
    0x05: (_not_equal, False),  # BNE
    0x06: (_less_equal_zero, False),  # BLEZ
    0x07: (_greater_zero, False),  # BGTZ
    0x14: (_equal, True),  # BEQL
    0x15: (_not_equal, True),  # BNEL
    0x16: (_less_equal_zero, True),  # BLEZL
    0x17: (_greater_zero, True),  # BGTZL
}

_REGIMM_BRANCHES: dict[int, tuple[Condition, bool]] = {
    0x00: (_less_zero, False),  # BLTZ
    0x01: (_greater_equal_zero, False),  # BGEZ
    0x02: (_less_zero, True),  # BLTZL
    0x03: (_greater_equal_zero, True),  # BGEZL
}

_REGIMM_UNSUPPORTED = {
    0x09: "tgeiu",
    0x0A: "tlti",
    0x0B: "tltiu",
    0x0C: "teqi",
    0x0E: "tnei",
    0x12: "bltzall",
    0x13: "bgezall",
}


def _jump_target(cpu: CpuState, instruction: int) -> int:
    return (cpu.pc & _SEGMENT_MASK) | ((instruction & 0x3FF_FFFF) << 2)


def execute_jump(cpu: CpuState, instruction: int) -> None:
    """Execute J, JAL, or the register jumps JR and JALR from the SPECIAL group."""
    opcode = (instruction >> 26) & 0x3F
    if opcode == 0x02:
        cpu.in_delay_slot = True
        # The J target is held in 32 bits and is not sign-extended.
        cpu.next_pc = _jump_target(cpu, instruction) & MASK32
    elif opcode == 0x03:
        cpu.set_register(_LINK_REGISTER, cpu.next_pc)
        cpu.in_delay_slot = True
        cpu.next_pc = _jump_target(cpu, instruction) & MASK64
    elif opcode == 0x00 and instruction & 0x3F == 0x08:
        cpu.in_delay_slot = True
        cpu.next_pc = cpu.registers[rs(instruction)]
    elif opcode == 0x00 and instruction & 0x3F == 0x09:
        cpu.set_register(rd(instruction), cpu.next_pc)
        cpu.in_delay_slot = True
        cpu.next_pc = cpu.registers[rs(instruction)]
    else:
        raise InstructionError(f"instruction {instruction:#010x} is not a jump")


def execute_branch(cpu: CpuState, instruction: int) -> None:
    """Execute a primary-opcode conditional branch."""
    opcode = (instruction >> 26) & 0x3F
    entry = _BRANCHES.get(opcode)
    if entry is None:
        raise InstructionError(f"opcode {opcode:#x} is not a branch")
    condition, likely = entry
    _resolve(cpu, instruction, condition(cpu, instruction), likely)


def execute_regimm(cpu: CpuState, instruction: int) -> None:
    """Execute an instruction from the REGIMM (opcode 1) group."""
    selector = rt(instruction)
    entry = _REGIMM_BRANCHES.get(selector)
    if entry is not None:
        condition, likely = entry
        _resolve(cpu, instruction, condition(cpu, instruction), likely)
        return

    if selector == 0x08:  # TGEI
        value = _signed64(cpu.registers[rs(instruction)])
        if value > _signed64(signed_immediate(instruction)):
            raise InstructionError("trap taken: tgei")
        return

    if selector == 0x10:  # BLTZAL: the link is written before the test
        cpu.set_register(_LINK_REGISTER, cpu.next_pc)
        _resolve(cpu, instruction, _less_zero(cpu, instruction), False)
        return

    if selector == 0x11:  # BGEZAL: the test sees the old register value
        link = cpu.next_pc
        taken = _greater_equal_zero(cpu, instruction)
        _resolve(cpu, instruction, taken, False)
        cpu.set_register(_LINK_REGISTER, link)
        return

    if selector in _REGIMM_UNSUPPORTED:
        raise InstructionError(f"instruction not supported: {_REGIMM_UNSUPPORTED[selector]}")
    raise InstructionError(f"REGIMM selector {selector:#x} is reserved")