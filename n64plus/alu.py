"""Arithmetic, logic, shift, multiply and divide instructions."""

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
    shift_amount,
    signed_immediate,
)

Handler = Callable[[CpuState, int], None]

_MULT_CYCLES = 4
_DIV_CYCLES = 36
_DMULT_CYCLES = 7
_DDIV_CYCLES = 68


def _signed32(value: int) -> int:
    value &= MASK32
    return value - (1 << 32) if value & 0x8000_0000 else value


def _signed64(value: int) -> int:
    value &= MASK64
    return value - (1 << 64) if value >> 63 else value


def _sext32(value: int) -> int:
    """Sign-extend the low 32 bits of ``value`` to an unsigned 64-bit value."""
    return _signed32(value) & MASK64


def _trunc_divmod(numerator: int, denominator: int) -> tuple[int, int]:
    """Quotient rounded toward zero and the remainder with the numerator's sign."""
    quotient = abs(numerator) // abs(denominator)
    if (numerator < 0) != (denominator < 0):
        quotient = -quotient
    return quotient, numerator - quotient * denominator


# Immediate-operand instructions


def _addiu(cpu: CpuState, instruction: int) -> None:
    base = _signed32(cpu.registers[rs(instruction)])
    cpu.set_register(rt(instruction), base + signed_immediate(instruction))


def _daddiu(cpu: CpuState, instruction: int) -> None:
    cpu.set_register(rt(instruction), cpu.registers[rs(instruction)] + signed_immediate(instruction))


def _slti(cpu: CpuState, instruction: int) -> None:
    value = _signed64(cpu.registers[rs(instruction)])
    cpu.set_register(rt(instruction), int(value < _signed64(signed_immediate(instruction))))


def _sltiu(cpu: CpuState, instruction: int) -> None:
    cpu.set_register(rt(instruction), int(cpu.registers[rs(instruction)] < immediate(instruction)))


def _andi(cpu: CpuState, instruction: int) -> None:
    cpu.set_register(rt(instruction), cpu.registers[rs(instruction)] & immediate(instruction))


def _ori(cpu: CpuState, instruction: int) -> None:
    cpu.set_register(rt(instruction), cpu.registers[rs(instruction)] | immediate(instruction))


def _xori(cpu: CpuState, instruction: int) -> None:
    cpu.set_register(rt(instruction), cpu.registers[rs(instruction)] ^ immediate(instruction))


def _lui(cpu: CpuState, instruction: int) -> None:
    cpu.set_register(rt(instruction), _sext32(immediate(instruction) << 16))


_IMMEDIATE: dict[int, Handler] = {
    0x08: _addiu,  # ADDI
    0x09: _addiu,
    0x0A: _slti,
    0x0B: _sltiu,
    0x0C: _andi,
    0x0D: _ori,
    0x0E: _xori,
    0x0F: _lui,
    0x18: _daddiu,  # DADDI
    0x19: _daddiu,
}


def execute_immediate(cpu: CpuState, instruction: int) -> None:
    """Execute a primary-opcode arithmetic or logic instruction with an immediate."""
    opcode = (instruction >> 26) & 0x3F
    handler = _IMMEDIATE.get(opcode)
    if handler is None:
        raise InstructionError(f"opcode {opcode:#x} is not an immediate ALU instruction")
    handler(cpu, instruction)


# SPECIAL instructions


def _sll(cpu: CpuState, instruction: int) -> None:
    value = cpu.registers[rt(instruction)] & MASK32
    cpu.set_register(rd(instruction), _sext32(value << shift_amount(instruction)))


def _srl(cpu: CpuState, instruction: int) -> None:
    value = cpu.registers[rt(instruction)] & MASK32
    cpu.set_register(rd(instruction), _sext32(value >> shift_amount(instruction)))


def _sra(cpu: CpuState, instruction: int) -> None:
    value = _signed64(cpu.registers[rt(instruction)])
    cpu.set_register(rd(instruction), _sext32(value >> shift_amount(instruction)))


def _variable_shift(cpu: CpuState, instruction: int, mask: int) -> int:
    return cpu.registers[rs(instruction)] & mask


def _sllv(cpu: CpuState, instruction: int) -> None:
    value = cpu.registers[rt(instruction)] & MASK32
    cpu.set_register(rd(instruction), _sext32(value << _variable_shift(cpu, instruction, 0x1F)))


def _srlv(cpu: CpuState, instruction: int) -> None:
    value = cpu.registers[rt(instruction)] & MASK32
    cpu.set_register(rd(instruction), _sext32(value >> _variable_shift(cpu, instruction, 0x1F)))


def _srav(cpu: CpuState, instruction: int) -> None:
    value = _signed64(cpu.registers[rt(instruction)])
    cpu.set_register(rd(instruction), _sext32(value >> _variable_shift(cpu, instruction, 0x1F)))


def _dsllv(cpu: CpuState, instruction: int) -> None:
    value = cpu.registers[rt(instruction)]
    cpu.set_register(rd(instruction), value << _variable_shift(cpu, instruction, 0x3F))


def _dsrlv(cpu: CpuState, instruction: int) -> None:
    value = cpu.registers[rt(instruction)]
    cpu.set_register(rd(instruction), value >> _variable_shift(cpu, instruction, 0x3F))


def _dsrav(cpu: CpuState, instruction: int) -> None:
    value = _signed64(cpu.registers[rt(instruction)])
    cpu.set_register(rd(instruction), value >> _variable_shift(cpu, instruction, 0x3F))


def _dsll(cpu: CpuState, instruction: int, extra: int = 0) -> None:
    value = cpu.registers[rt(instruction)]
    cpu.set_register(rd(instruction), value << (shift_amount(instruction) + extra))


def _dsrl(cpu: CpuState, instruction: int, extra: int = 0) -> None:
    value = cpu.registers[rt(instruction)]
    cpu.set_register(rd(instruction), value >> (shift_amount(instruction) + extra))


def _dsra(cpu: CpuState, instruction: int, extra: int = 0) -> None:
    value = _signed64(cpu.registers[rt(instruction)])
    cpu.set_register(rd(instruction), value >> (shift_amount(instruction) + extra))


def _dsll32(cpu: CpuState, instruction: int) -> None:
    _dsll(cpu, instruction, 32)


def _dsrl32(cpu: CpuState, instruction: int) -> None:
    _dsrl(cpu, instruction, 32)


def _dsra32(cpu: CpuState, instruction: int) -> None:
    _dsra(cpu, instruction, 32)


def _mfhi(cpu: CpuState, instruction: int) -> None:
    cpu.set_register(rd(instruction), cpu.hi)


def _mthi(cpu: CpuState, instruction: int) -> None:
    cpu.hi = cpu.registers[rs(instruction)]


def _mflo(cpu: CpuState, instruction: int) -> None:
    cpu.set_register(rd(instruction), cpu.lo)


def _mtlo(cpu: CpuState, instruction: int) -> None:
    cpu.lo = cpu.registers[rs(instruction)]


def _mult(cpu: CpuState, instruction: int) -> None:
    result = _signed32(cpu.registers[rs(instruction)]) * _signed32(cpu.registers[rt(instruction)])
    cpu.lo = _sext32(result)
    cpu.hi = _sext32(result >> 32)
    cpu.add_cycles(_MULT_CYCLES)


def _multu(cpu: CpuState, instruction: int) -> None:
    result = (cpu.registers[rs(instruction)] & MASK32) * (cpu.registers[rt(instruction)] & MASK32)
    cpu.lo = _sext32(result)
    cpu.hi = _sext32(result >> 32)
    cpu.add_cycles(_MULT_CYCLES)


def _div(cpu: CpuState, instruction: int) -> None:
    numerator = _signed32(cpu.registers[rs(instruction)])
    denominator = _signed32(cpu.registers[rt(instruction)])
    if denominator:
        quotient, remainder = _trunc_divmod(numerator, denominator)
        cpu.lo = _sext32(quotient)
        cpu.hi = _sext32(remainder)
    else:
        cpu.lo = 1 if numerator < 0 else MASK64
        cpu.hi = numerator & MASK64
    cpu.add_cycles(_DIV_CYCLES)


def _divu(cpu: CpuState, instruction: int) -> None:
    numerator = cpu.registers[rs(instruction)] & MASK32
    denominator = cpu.registers[rt(instruction)] & MASK32
    if denominator:
        cpu.lo = _sext32(numerator // denominator)
        cpu.hi = _sext32(numerator % denominator)
    else:
        cpu.lo = MASK64
        cpu.hi = _sext32(numerator)
    cpu.add_cycles(_DIV_CYCLES)


def _dmult(cpu: CpuState, instruction: int) -> None:
    result = _signed64(cpu.registers[rs(instruction)]) * _signed64(cpu.registers[rt(instruction)])
    result &= (1 << 128) - 1
    cpu.lo = result & MASK64
    cpu.hi = result >> 64
    cpu.add_cycles(_DMULT_CYCLES)


def _dmultu(cpu: CpuState, instruction: int) -> None:
    result = cpu.registers[rs(instruction)] * cpu.registers[rt(instruction)]
    cpu.lo = result & MASK64
    cpu.hi = result >> 64
    cpu.add_cycles(_DMULT_CYCLES)


def _ddiv(cpu: CpuState, instruction: int) -> None:
    numerator = _signed64(cpu.registers[rs(instruction)])
    denominator = _signed64(cpu.registers[rt(instruction)])
    if denominator:
        quotient, remainder = _trunc_divmod(numerator, denominator)
        cpu.lo = quotient & MASK64
        cpu.hi = remainder & MASK64
    else:
        cpu.lo = 1 if numerator < 0 else MASK64
        cpu.hi = numerator & MASK64
    cpu.add_cycles(_DDIV_CYCLES)


def _ddivu(cpu: CpuState, instruction: int) -> None:
    numerator = cpu.registers[rs(instruction)]
    denominator = cpu.registers[rt(instruction)]
    if denominator:
        cpu.lo = numerator // denominator
        cpu.hi = numerator % denominator
    else:
        cpu.lo = MASK64
        cpu.hi = numerator
    cpu.add_cycles(_DDIV_CYCLES)


def _add(cpu: CpuState, instruction: int) -> None:
    total = (cpu.registers[rt(instruction)] & MASK32) + (cpu.registers[rs(instruction)] & MASK32)
    cpu.set_register(rd(instruction), _sext32(total))


def _sub(cpu: CpuState, instruction: int) -> None:
    diff = (cpu.registers[rs(instruction)] & MASK32) - (cpu.registers[rt(instruction)] & MASK32)
    cpu.set_register(rd(instruction), _sext32(diff))


def _and(cpu: CpuState, instruction: int) -> None:
    cpu.set_register(rd(instruction), cpu.registers[rs(instruction)] & cpu.registers[rt(instruction)])


def _or(cpu: CpuState, instruction: int) -> None:
    cpu.set_register(rd(instruction), cpu.registers[rs(instruction)] | cpu.registers[rt(instruction)])


def _xor(cpu: CpuState, instruction: int) -> None:
    cpu.set_register(rd(instruction), cpu.registers[rs(instruction)] ^ cpu.registers[rt(instruction)])


def _nor(cpu: CpuState, instruction: int) -> None:
    value = cpu.registers[rs(instruction)] | cpu.registers[rt(instruction)]
    cpu.set_register(rd(instruction), ~value & MASK64)


def _slt(cpu: CpuState, instruction: int) -> None:
    less = _signed64(cpu.registers[rs(instruction)]) < _signed64(cpu.registers[rt(instruction)])
    cpu.set_register(rd(instruction), int(less))


def _sltu(cpu: CpuState, instruction: int) -> None:
    less = cpu.registers[rs(instruction)] < cpu.registers[rt(instruction)]
    cpu.set_register(rd(instruction), int(less))


def _dadd(cpu: CpuState, instruction: int) -> None:
    cpu.set_register(rd(instruction), cpu.registers[rs(instruction)] + cpu.registers[rt(instruction)])


def _dsub(cpu: CpuState, instruction: int) -> None:
    cpu.set_register(rd(instruction), cpu.registers[rs(instruction)] - cpu.registers[rt(instruction)])


_SPECIAL: dict[int, Handler] = {
    0x00: _sll,
    0x02: _srl,
    0x03: _sra,
    0x04: _sllv,
    0x06: _srlv,
    0x07: _srav,
    0x10: _mfhi,
    0x11: _mthi,
    0x12: _mflo,
    0x13: _mtlo,
    0x14: _dsllv,
    0x16: _dsrlv,
    0x17: _dsrav,
    0x18: _mult,
    0x19: _multu,
    0x1A: _div,
    0x1B: _divu,
    0x1C: _dmult,
    0x1D: _dmultu,
    0x1E: _ddiv,
    0x1F: _ddivu,
    0x20: _add,
    0x21: _add,  # ADDU
    0x22: _sub,
    0x23: _sub,  # SUBU
    0x24: _and,
    0x25: _or,
    0x26: _xor,
    0x27: _nor,
    0x2A: _slt,
    0x2B: _sltu,
    0x2C: _dadd,
    0x2D: _dadd,  # DADDU
    0x2E: _dsub,
    0x2F: _dsub,  # DSUBU
    0x38: _dsll,
    0x3A: _dsrl,
    0x3B: _dsra,
    0x3C: _dsll32,
    0x3E: _dsrl32,
    0x3F: _dsra32,
}

# Function codes that are accepted but change no state (SYNC).
_NO_EFFECT = frozenset({0x0F})

_TRAPS = {
    0x30: "tge",
    0x31: "tgeu",
    0x32: "tlt",
    0x33: "tltu",
    0x34: "teq",
    0x36: "tne",
}


def execute_special(cpu: CpuState, instruction: int) -> None:
    """Execute an ALU instruction from the SPECIAL (opcode 0) group."""
    funct = instruction & 0x3F
    if funct in _NO_EFFECT:
        return
    handler = _SPECIAL.get(funct)
    if handler is not None:
        handler(cpu, instruction)
        return
    if funct in _TRAPS:
        raise InstructionError(f"trap instruction not supported: {_TRAPS[funct]}")
    raise InstructionError(f"function {funct:#x} is not a SPECIAL ALU instruction")