import pytest

from n64plus.cpu_state import CpuState, InstructionError, MemoryBus
from n64plus.executor import execute

KSEG0 = 0xFFFF_FFFF_8000_0000


def _i_type(opcode, rs, rt, imm):
    return (opcode << 26) | (rs << 21) | (rt << 16) | (imm & 0xFFFF)


def _r_type(rs, rt, rd, funct):
    return (rs << 21) | (rt << 16) | (rd << 11) | funct


@pytest.fixture
def cpu():
    state = CpuState()
    state.set_register(1, KSEG0)
    state.pc = 0x1000
    state.next_pc = 0x1004
    return state


@pytest.fixture
def bus():
    return MemoryBus(size=0x1000)


def test_dispatches_immediate_alu(cpu, bus):
    cpu.set_register(2, 5)
    execute(cpu, bus, _i_type(0x09, 2, 3, 3))
    assert cpu.registers[3] == 5 + 3


def test_dispatches_special_alu(cpu, bus):
    cpu.set_register(2, 5)
    cpu.set_register(3, 7)
    execute(cpu, bus, _r_type(2, 3, 4, 0x21))
    assert cpu.registers[4] == 5 + 7


def test_dispatches_load_and_store(cpu, bus):
    cpu.set_register(2, 0x0102_0304)
    execute(cpu, bus, _i_type(0x2B, 1, 2, 0x20))
    execute(cpu, bus, _i_type(0x23, 1, 3, 0x20))
    assert cpu.registers[3] == 0x0102_0304


def test_dispatches_branch(cpu, bus):
    execute(cpu, bus, _i_type(0x04, 0, 0, 2))
    assert cpu.in_delay_slot is True
    assert cpu.next_pc == cpu.pc + 8


def test_dispatches_register_jump(cpu, bus):
    cpu.set_register(5, 0x8000_1234)
    execute(cpu, bus, _r_type(5, 0, 0, 0x08))
    assert cpu.next_pc == 0x8000_1234


def test_dispatches_regimm(cpu, bus):
    cpu.set_register(2, 1)
    execute(cpu, bus, _i_type(0x01, 2, 0x01, 2))
    assert cpu.next_pc == cpu.pc + 8


@pytest.mark.parametrize(
    "instruction",
    [
        _r_type(0, 0, 0, 0x0C),  # SYSCALL
        _i_type(0x1C, 0, 0, 0),  # reserved
        _i_type(0x10, 0, 0, 0),  # COP0
        _i_type(0x31, 1, 0, 0),  # LWC1
        _i_type(0x27, 1, 2, 0),  # LWU
    ],
)
def test_unsupported_instructions_raise(cpu, bus, instruction):
    with pytest.raises(InstructionError):
        execute(cpu, bus, instruction)


def _cache_op(operation, offset):
    return _i_type(0x2F, 1, operation, offset)


def test_cache_index_invalidate_icache(cpu, bus):
    bus.icache[2].valid = True
    execute(cpu, bus, _cache_op(0x00, 0x40))
    assert bus.icache[2].valid is False


def test_cache_index_store_tag_icache(cpu, bus):
    cpu.tag_lo = 0x180
    execute(cpu, bus, _cache_op(0x08, 0x40))
    assert bus.icache[2].valid is True
    assert bus.icache[2].tag == 0x1000


def test_cache_create_dirty_then_hit_invalidate(cpu, bus):
    execute(cpu, bus, _cache_op(0x0D, 0x10))
    line = bus.dcache[1]
    assert (line.valid, line.dirty, line.tag) == (True, True, 0)
    execute(cpu, bus, _cache_op(0x11, 0x10))
    assert (line.valid, line.dirty) == (False, False)


def test_cache_hit_writeback_invalidate(cpu, bus):
    execute(cpu, bus, _cache_op(0x0D, 0x10))
    execute(cpu, bus, _cache_op(0x15, 0x10))
    assert bus.dcache[1].valid is False
    assert bus.dcache[1].dirty is False


def test_cache_index_writeback_invalidate(cpu, bus):
    execute(cpu, bus, _cache_op(0x0D, 0x10))
    execute(cpu, bus, _cache_op(0x01, 0x10))
    assert bus.dcache[1].valid is False
    assert bus.dcache[1].dirty is False


def test_cache_hit_writeback_keeps_line_valid(cpu, bus):
    execute(cpu, bus, _cache_op(0x0D, 0x10))
    execute(cpu, bus, _cache_op(0x19, 0x10))
    assert bus.dcache[1].valid is True
    assert bus.dcache[1].dirty is False


def test_cache_unknown_operation_raises(cpu, bus):
    with pytest.raises(InstructionError):
        execute(cpu, bus, _cache_op(0x02, 0x10))


def test_cache_translation_error_does_nothing(cpu, bus):
    execute(cpu, bus, _i_type(0x2F, 0, 0x0D, 0x10))
    assert not any(line.valid for line in bus.dcache)