"""Text rendering of primary-opcode and REGIMM instructions for trace output."""

from __future__ import annotations

from typing import Callable

from .cpu_state import (
    MASK32,
    MASK64,
    CpuState,
    MemoryBus,
    immediate,
    rs,
    rt,
    signed_immediate,
)

PrimaryFormatter = Callable[[CpuState, int, MemoryBus], str]
RegimmFormatter = Callable[[CpuState, int], str]

RESERVED = "RESERVED"
_SEGMENT_MASK = 0xFFFF_FFFF_F000_0000
_YES_NO = {True: "Yes", False: "No"}


def _signed64(value: int) -> int:
    value &= MASK64
    return value - (1 << 64) if value >> 63 else value


def _branch_amount(instruction: int) -> int:
    value = (immediate(instruction) << 2) & 0xFFFF
    if value & 0x8000:
        value -= 0x1_0000
    return value & MASK64


def _jump(name: str) -> PrimaryFormatter:
    def render(cpu: CpuState, instruction: int, bus: MemoryBus) -> str:
        target = ((cpu.pc & _SEGMENT_MASK) | ((instruction & 0x3FF_FFFF) << 2)) & MASK32
        return f"{name} 0x{target:x}"

    return render


def _compare_branch(name: str, equal: bool) -> PrimaryFormatter:
    def render(cpu: CpuState, instruction: int, bus: MemoryBus) -> str:
        s, t = rs(instruction), rt(instruction)
        first, second = cpu.registers[s], cpu.registers[t]
        taken = (first == second) == equal
        return (
            f"{name} r{s}, r{t}, 0x{_branch_amount(instruction):x} ; "
            f"r{s} = 0x{first:x}, r{t} = 0x{second:x} (Taken: {_YES_NO[taken]})"
        )

    return render


def _zero_branch_text(name: str, cpu: CpuState, instruction: int, test: Callable[[int], bool]) -> str:
    s = rs(instruction)
    value = cpu.registers[s]
    taken = bool(test(_signed64(value)))
    return f"{name} r{s} ; r{s} = 0x{value:x} (Taken: {_YES_NO[taken]})"


def _zero_branch(name: str, test: Callable[[int], bool]) -> PrimaryFormatter:
    def render(cpu: CpuState, instruction: int, bus: MemoryBus) -> str:
        return _zero_branch_text(name, cpu, instruction, test)

    return render


def _arith_immediate(name: str, signed: bool) -> PrimaryFormatter:
    def render(cpu: CpuState, instruction: int, bus: MemoryBus) -> str:
        s, t = rs(instruction), rt(instruction)
        value = signed_immediate(instruction) if signed else immediate(instruction)
        return f"{name} r{t}, r{s}, 0x{value:x} ; r{s} = 0x{cpu.registers[s]:x}"

    return render


def _slti(cpu: CpuState, instruction: int, bus: MemoryBus) -> str:
    s, t = rs(instruction), rt(instruction)
    value = _signed64(signed_immediate(instruction))
    current = _signed64(cpu.registers[s])
    return (
        f"SLTI r{t}, r{s}, 0x{value:x} ; r{s} = 0x{current:x} "
        f"(True: {_YES_NO[current < value]})"
    )


def _sltiu(cpu: CpuState, instruction: int, bus: MemoryBus) -> str:
    s, t = rs(instruction), rt(instruction)
    value = immediate(instruction)
    current = cpu.registers[s]
    return (
        f"SLTIU r{t}, r{s}, 0x{value:x} ; r{s} = 0x{current:x} "
        f"(True: {_YES_NO[current < value]})"
    )


def _lui(cpu: CpuState, instruction: int, bus: MemoryBus) -> str:
    t = rt(instruction)
    return f"LUI r{t}, 0x{immediate(instruction):x} ; r{t} = 0x{cpu.registers[t]:x}"


def _load(name: str) -> PrimaryFormatter:
    def render(cpu: CpuState, instruction: int, bus: MemoryBus) -> str:
        s, t = rs(instruction), rt(instruction)
        offset = signed_immediate(instruction)
        return f"{name} r{t}, 0x{offset:x}(r{s}) ; r{s} = 0x{cpu.registers[s]:x}"

    return render


def _load_with_address(name: str, separator: str) -> PrimaryFormatter:
    def render(cpu: CpuState, instruction: int, bus: MemoryBus) -> str:
        s, t = rs(instruction), rt(instruction)
        offset = signed_immediate(instruction)
        physical = bus.translate_address(cpu.registers[s] + offset).address
        return (
            f"{name} r{t}, 0x{offset:x}(r{s}) ; r{s} = 0x{cpu.registers[s]:x}"
            f"{separator}addr = 0x{physical:x}"
        )

    return render


def _store(name: str) -> PrimaryFormatter:
    def render(cpu: CpuState, instruction: int, bus: MemoryBus) -> str:
        s, t = rs(instruction), rt(instruction)
        offset = signed_immediate(instruction)
        return (
            f"{name} r{t}, 0x{offset:x}(r{s}) ; "
            f"r{t} = 0x{cpu.registers[t]:x}, r{s} = 0x{cpu.registers[s]:x}"
        )

    return render


def _coprocessor_store(name: str) -> PrimaryFormatter:
    def render(cpu: CpuState, instruction: int, bus: MemoryBus) -> str:
        return f"{name} r{rt(instruction)}, 0x{signed_immediate(instruction):x}(r{rs(instruction)})"

    return render


def _cache(cpu: CpuState, instruction: int, bus: MemoryBus) -> str:
    s = rs(instruction)
    return (
        f"CACHE 0x{rt(instruction):x}, 0x{signed_immediate(instruction):x}(r{s}) ; "
        f"r{s} = 0x{cpu.registers[s]:x}"
    )


def _le_zero(value: int) -> bool:
    return value <= 0


def _gt_zero(value: int) -> bool:
    return value > 0


def _lt_zero(value: int) -> bool:
    return value < 0


def _ge_zero(value: int) -> bool:
    return value >= 0


_PRIMARY_FIXED: dict[int, str] = {
    0x34: "LLD",
    0x3C: "SCD",
}

_PRIMARY: dict[int, PrimaryFormatter] = {
    0x02: _jump("J"),
    0x03: _jump("JAL"),
    0x04: _compare_branch("BEQ", True),
    0x05: _compare_branch("BNE", False),
    0x06: _zero_branch("BLEZ", _le_zero),
    0x07: _zero_branch("BGTZ", _gt_zero),
    0x08: _arith_immediate("ADDI", True),
    0x09: _arith_immediate("ADDIU", True),
    0x0A: _slti,
    0x0B: _sltiu,
    0x0C: _arith_immediate("ANDI", False),
    0x0D: _arith_immediate("ORI", False),
    0x0E: _arith_immediate("XORI", False),
    0x0F: _lui,
    0x14: _compare_branch("BEQL", True),
    0x15: _compare_branch("BNEL", False),
    0x16: _zero_branch("BLEZL", _le_zero),
    0x17: _zero_branch("BGTZL", _gt_zero),
    0x18: _arith_immediate("DADDI", True),
    0x19: _arith_immediate("DADDIU", True),
    0x1A: _load("LDL"),
    0x1B: _load("LDR"),
    0x20: _load("LB"),
    0x21: _load("LH"),
    0x22: _load("LWL"),
    0x23: _load_with_address("LW", " ; "),
    0x24: _load("LBU"),
    0x25: _load_with_address("LHU", ", "),
    0x26: _load("LWR"),
    0x27: _load("LWU"),
    0x28: _store("SB"),
    0x29: _store("SH"),
    0x2A: _store("SWL"),
    0x2B: _store("SW"),
    0x2C: _store("SDL"),
    0x2D: _store("SDR"),
    0x2E: _store("SWR"),
    0x2F: _cache,
    0x30: _load("LL"),
    0x31: _load("LWC1"),
    0x35: _load("LDC1"),
    0x37: _load("LD"),
    0x38: _store("SC"),
    0x39: _coprocessor_store("SWC1"),
    0x3D: _coprocessor_store("SDC1"),
    0x3F: _store("SD"),
}


def format_primary(cpu: CpuState, instruction: int, bus: MemoryBus) -> str:
    """Render an instruction by its primary opcode, annotated with register values."""
    opcode = (instruction >> 26) & 0x3F
    if opcode in _PRIMARY_FIXED:
        return _PRIMARY_FIXED[opcode]
    formatter = _PRIMARY.get(opcode)
    if formatter is None:
        return RESERVED
    return formatter(cpu, instruction, bus)


def _regimm_branch(name: str, test: Callable[[int], bool]) -> RegimmFormatter:
    def render(cpu: CpuState, instruction: int) -> str:
        return _zero_branch_text(name, cpu, instruction, test)

    return render


def _tgei(cpu: CpuState, instruction: int) -> str:
    s = rs(instruction)
    value = _signed64(signed_immediate(instruction))
    return f"TGEI, r{s}, 0x{value:x} ; r{s} = 0x{cpu.registers[s]:x}"


_REGIMM_FIXED: dict[int, str] = {
    0x09: "TGEIU",
    0x0A: "TLTI",
    0x0B: "TLTIU",
    0x0C: "TEQI",
    0x0E: "TNEI",
}

_REGIMM: dict[int, RegimmFormatter] = {
    0x00: _regimm_branch("BLTZ", _lt_zero),
    0x01: _regimm_branch("BGEZ", _ge_zero),
    0x02: _regimm_branch("BLTZL", _lt_zero),
    0x03: _regimm_branch("BGEZL", _ge_zero),
    0x08: _tgei,
    0x10: _regimm_branch("BLTZAL", _lt_zero),
    0x11: _regimm_branch("BGEZAL", _ge_zero),
    0x12: _regimm_branch("BLTZALL", _lt_zero),
    0x13: _regimm_branch("BGEZALL", _ge_zero),
}


def format_regimm(cpu: CpuState, instruction: int) -> str:
    """Render an instruction of the REGIMM group, selected by its rt field."""
    selector = rt(instruction)
    if selector in _REGIMM_FIXED:
        return _REGIMM_FIXED[selector]
    formatter = _REGIMM.get(selector)
    if formatter is None:
        return RESERVED
    return formatter(cpu, instruction)