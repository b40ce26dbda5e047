"""Text rendering of SPECIAL, coprocessor and whole instructions for trace output."""

from __future__ import annotations

from typing import Callable

from .cpu_state import (
    MASK32,
    MASK64,
    CpuState,
    InstructionError,
    MemoryBus,
    rd,
    rs,
    rt,
    shift_amount,
)
from .disasm_primary import RESERVED, format_primary, format_regimm

Formatter = Callable[[CpuState, int], str]

_YES_NO = {True: "Yes", False: "No"}


def _signed64(value: int) -> int:
    value &= MASK64
    return value - (1 << 64) if value >> 63 else value


def _dispatch(fixed: dict[int, str], table: dict[int, Formatter], key: int, cpu: CpuState, instruction: int) -> str:
    if key in fixed:
        return fixed[key]
    formatter = table.get(key)
    if formatter is None:
        return RESERVED
    return formatter(cpu, instruction)


# SPECIAL group


def _shift(name: str, extra: int = 0, signed: bool = False) -> Formatter:
    def render(cpu: CpuState, instruction: int) -> str:
        t, d = rt(instruction), rd(instruction)
        value = cpu.registers[t]
        if signed:
            value = _signed64(value)
        return f"{name} r{d}, r{t}, {shift_amount(instruction) + extra} ; r{t} = 0x{value:x}"

    return render


def _variable_shift(name: str, mask: int, signed: bool = False, register_label: bool = False) -> Formatter:
    def render(cpu: CpuState, instruction: int) -> str:
        s, t, d = rs(instruction), rt(instruction), rd(instruction)
        shift = cpu.registers[s] & mask
        value = cpu.registers[t]
        if signed:
            value = _signed64(value)
        amount = f"r{shift}" if register_label else str(shift)
        return (
            f"{name} r{d}, r{t}, {amount} ; "
            f"r{s} = 0x{cpu.registers[s]:x}, r{t} = 0x{value:x}"
        )

    return render


def _register_jump(name: str) -> Formatter:
    def render(cpu: CpuState, instruction: int) -> str:
        s = rs(instruction)
        return f"{name} r{s} ; r{s} = 0x{cpu.registers[s]:x}"

    return render


def _move_from(name: str, attribute: str) -> Formatter:
    def render(cpu: CpuState, instruction: int) -> str:
        return f"{name} r{rd(instruction)} ; {attribute} = 0x{getattr(cpu, attribute):x}"

    return render


def _move_to(name: str) -> Formatter:
    def render(cpu: CpuState, instruction: int) -> str:
        s = rs(instruction)
        return f"{name} r{s}, r{s} = 0x{cpu.registers[s]:x}"

    return render


def _operand_pair(name: str, signed: bool) -> Formatter:
    def render(cpu: CpuState, instruction: int) -> str:
        s, t = rs(instruction), rt(instruction)
        first, second = cpu.registers[s], cpu.registers[t]
        if signed:
            first, second = _signed64(first), _signed64(second)
        return f"{name} r{s}, r{t} ; r{s} = 0x{first:x}, r{t} = 0x{second:x}"

    return render


def _three_register(name: str) -> Formatter:
    def render(cpu: CpuState, instruction: int) -> str:
        s, t, d = rs(instruction), rt(instruction), rd(instruction)
        return (
            f"{name} r{d}, r{s}, r{t} ; "
            f"r{s} = 0x{cpu.registers[s]:x}, r{t} = 0x{cpu.registers[t]:x}"
        )

    return render


def _set_less(name: str, signed: bool) -> Formatter:
    def render(cpu: CpuState, instruction: int) -> str:
        s, t, d = rs(instruction), rt(instruction), rd(instruction)
        first, second = cpu.registers[s], cpu.registers[t]
        if signed:
            first, second = _signed64(first), _signed64(second)
        return (
            f"{name} r{d}, r{s}, r{t} ; r{s} = 0x{first:x}, r{t} = 0x{second:x} "
            f"(True: {_YES_NO[first < second]})"
        )

    return render


_SPECIAL_FIXED: dict[int, str] = {
    0x0C: "SYSCALL",
    0x0D: "BREAK",
    0x0F: "SYNC",
    0x30: "TGE",
    0x31: "TGEU",
    0x32: "TLT",
    0x33: "TLTU",
    0x34: "TEQ",
    0x36: "TNE",
}

_SPECIAL: dict[int, Formatter] = {
    0x00: _shift("SLL"),
    0x02: _shift("SRL"),
    0x03: _shift("SRA", signed=True),
    0x04: _variable_shift("SLLV", 0x1F),
    0x06: _variable_shift("SRLV", 0x1F),
    # SRAV is traced under the SLLV label with the shift shown as a register.
    0x07: _variable_shift("SLLV", 0x1F, signed=True, register_label=True),
    0x08: _register_jump("JR"),
    0x09: _register_jump("JALR"),
    0x10: _move_from("MFHI", "hi"),
    0x11: _move_to("MTHI"),
    0x12: _move_from("MFLO", "lo"),
    0x13: _move_to("MTLO"),
    0x14: _variable_shift("DSLLV", 0x3F),
    0x16: _variable_shift("DSRLV", 0x3F),
    0x17: _variable_shift("DSRAV", 0x3F, signed=True),
    0x18: _operand_pair("MULT", True),
    0x19: _operand_pair("MULTU", False),
    0x1A: _operand_pair("DIV", True),
    0x1B: _operand_pair("DIVU", False),
    0x1C: _operand_pair("DMULT", True),
    0x1D: _operand_pair("DMULTU", False),
    0x1E: _operand_pair("DDIV", True),
    0x1F: _operand_pair("DDIVU", False),
    0x20: _three_register("ADD"),
    0x21: _three_register("ADDU"),
    0x22: _three_register("SUB"),
    0x23: _three_register("SUBU"),
    0x24: _three_register("AND"),
    0x25: _three_register("OR"),
    0x26: _three_register("XOR"),
    0x27: _three_register("NOR"),
    0x2A: _set_less("SLT", True),
    0x2B: _set_less("SLTU", False),
    0x2C: _three_register("DADD"),
    0x2D: _three_register("DADDU"),
    0x2E: _three_register("DSUB"),
    0x2F: _three_register("DSUBU"),
    0x38: _shift("DSLL"),
    0x3A: _shift("DSRL"),
    0x3B: _shift("DSRA", signed=True),
    0x3C: _shift("DSLL32", extra=32),
    0x3E: _shift("DSRL32", extra=32),
    0x3F: _shift("DSRA32", extra=32, signed=True),
}


def format_special(cpu: CpuState, instruction: int) -> str:
    """Render an instruction of the SPECIAL group, selected by its function field."""
    return _dispatch(_SPECIAL_FIXED, _SPECIAL, instruction & 0x3F, cpu, instruction)


# Coprocessor 0


def _cop0_from(name: str) -> Formatter:
    def render(cpu: CpuState, instruction: int) -> str:
        return f"{name} r{rt(instruction)}, r{rd(instruction)}"

    return render


def _cop0_to(name: str) -> Formatter:
    def render(cpu: CpuState, instruction: int) -> str:
        t = rt(instruction)
        return f"{name} r{rd(instruction)}, r{t} ; r{t} = 0x{cpu.registers[t]:x}"

    return render


_TLB: dict[int, str] = {1: "TLBR", 2: "TLBWI", 6: "TLBWR", 8: "TLBP", 24: "ERET"}

_COP0: dict[int, Formatter] = {
    0: _cop0_from("MFC0"),
    1: _cop0_from("DMFC0"),
    4: _cop0_to("MTC0"),
    # Selector 5 is traced like MFC0.
    5: _cop0_from("MFC0"),
}


def format_cop0(cpu: CpuState, instruction: int) -> str:
    """Render a coprocessor 0 instruction."""
    selector = (instruction >> 21) & 0x1F
    if selector == 16:
        return _TLB.get(instruction & 0x3F, RESERVED)
    return _dispatch({}, _COP0, selector, cpu, instruction)


# Coprocessor 1


def _mfc1(cpu: CpuState, instruction: int) -> str:
    t, d = rt(instruction), rd(instruction)
    if cpu.fr:
        value = cpu.fgr64[d] & MASK32
    else:
        value = cpu.fgr32[d] & MASK32
    return f"MFC1 r{t}, r{d} ; r{d} = 0x{value:x}"


def _dmfc1(cpu: CpuState, instruction: int) -> str:
    t, d = rt(instruction), rd(instruction)
    if cpu.fr:
        value = cpu.fgr64[d] & MASK64
    else:
        upper = cpu.fgr32[d + 1] if d + 1 < len(cpu.fgr32) else 0
        value = (cpu.fgr32[d] & MASK32) | ((upper & MASK32) << 32)
    # Traced under the MFC1 label.
    return f"MFC1 r{t}, r{d} ; r{d} = 0x{value:x}"


def _cop1_from(name: str) -> Formatter:
    def render(cpu: CpuState, instruction: int) -> str:
        return f"{name} r{rt(instruction)}, r{rd(instruction)}"

    return render


def _cop1_to(name: str) -> Formatter:
    def render(cpu: CpuState, instruction: int) -> str:
        t = rt(instruction)
        return f"{name} r{rd(instruction)}, r{t} ; r{t} = 0x{cpu.registers[t]:x}"

    return render


_COP1_FIXED: dict[int, str] = {
    8: "COP1_B",
    16: "COP1_S",
    17: "COP1_D",
    20: "COP1_W",
    21: "COP1_L",
}

_COP1: dict[int, Formatter] = {
    0: _mfc1,
    1: _dmfc1,
    2: _cop1_from("CFC1"),
    3: _cop1_from("DCFC1"),
    4: _cop1_to("MTC1"),
    5: _cop1_to("DMTC1"),
    6: _cop1_to("CTC1"),
    7: _cop1_to("DCTC1"),
}


def format_cop1(cpu: CpuState, instruction: int) -> str:
    """Render a coprocessor 1 instruction, selected by its format field."""
    return _dispatch(_COP1_FIXED, _COP1, (instruction >> 21) & 0x1F, cpu, instruction)


def disassemble(cpu: CpuState, instruction: int, bus: MemoryBus) -> str:
    """Render one instruction word as text annotated with current register values."""
    opcode = (instruction >> 26) & 0x3F
    if opcode == 0:
        return format_special(cpu, instruction)
    if opcode == 1:
        return format_regimm(cpu, instruction)
    if opcode == 16:
        return format_cop0(cpu, instruction)
    if opcode == 17:
        return format_cop1(cpu, instruction)
    if opcode == 18:
        raise InstructionError("coprocessor 2 instructions cannot be disassembled")
    return format_primary(cpu, instruction, bus)