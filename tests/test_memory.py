import pytest

from n64plus.cpu_state import MASK32, CpuState, InstructionError, MemoryBus
from n64plus.memory import execute_load, execute_store

KSEG0 = 0xFFFF_FFFF_8000_0000


def _i_type(opcode, rs, rt, imm):
    return (opcode << 26) | (rs << 21) | (rt << 16) | (imm & 0xFFFF)


@pytest.fixture
def cpu():
    state = CpuState()
    state.set_register(1, KSEG0)
    return state


@pytest.fixture
def bus():
    return MemoryBus(size=0x1000)


def test_lw_reads_big_endian_word(cpu, bus):
    bus.memory[0x10:0x14] = b"\x12\x34\x56\x78"
    execute_load(cpu, bus, _i_type(0x23, 1, 2, 0x10))
    assert cpu.registers[2] == int.from_bytes(b"\x12\x34\x56\x78", "big")


def test_lw_sign_extends(cpu, bus):
    bus.memory[0x10:0x14] = b"\xff\xff\xff\xfe"
    execute_load(cpu, bus, _i_type(0x23, 1, 2, 0x10))
    assert cpu.registers[2] == 0xFFFF_FFFF_FFFF_FFFE


def test_lb_sign_extends_and_lbu_does_not(cpu, bus):
    bus.memory[0x20] = 0x80
    execute_load(cpu, bus, _i_type(0x20, 1, 2, 0x20))
    execute_load(cpu, bus, _i_type(0x24, 1, 3, 0x20))
    assert cpu.registers[2] == 0xFFFF_FFFF_FFFF_FF80
    assert cpu.registers[3] == 0x80


def test_lh_and_lhu_agree_on_low_half(cpu, bus):
    bus.memory[0x30:0x32] = b"\x80\x01"
    execute_load(cpu, bus, _i_type(0x21, 1, 2, 0x30))
    execute_load(cpu, bus, _i_type(0x25, 1, 3, 0x30))
    assert cpu.registers[3] == 0x8001
    assert cpu.registers[2] & 0xFFFF == cpu.registers[3]
    assert cpu.registers[2] >> 63 == 1


def test_sd_then_ld_round_trip(cpu, bus):
    value = 0x0123_4567_89AB_CDEF
    cpu.set_register(2, value)
    execute_store(cpu, bus, _i_type(0x3F, 1, 2, 0x40))
    execute_load(cpu, bus, _i_type(0x37, 1, 3, 0x40))
    assert cpu.registers[3] == value
    assert bytes(bus.memory[0x40:0x48]) == value.to_bytes(8, "big")


def test_sw_sh_sb_store_low_bits(cpu, bus):
    value = 0x1122_3344_5566_7788
    cpu.set_register(2, value)
    execute_store(cpu, bus, _i_type(0x2B, 1, 2, 0x50))
    execute_store(cpu, bus, _i_type(0x29, 1, 2, 0x58))
    execute_store(cpu, bus, _i_type(0x28, 1, 2, 0x5C))
    assert bytes(bus.memory[0x50:0x54]) == (value & MASK32).to_bytes(4, "big")
    assert bytes(bus.memory[0x58:0x5A]) == (value & 0xFFFF).to_bytes(2, "big")
    assert bus.memory[0x5C] == value & 0xFF


@pytest.mark.parametrize("offset", [0, 1, 2, 3])
def test_lwl_lwr_pair_loads_unaligned_word(cpu, bus, offset):
    bus.memory[0x20:0x28] = bytes(range(0x11, 0x19))
    cpu.set_register(2, 0x7EAD_BEEF)
    execute_load(cpu, bus, _i_type(0x22, 1, 2, 0x20 + offset))
    execute_load(cpu, bus, _i_type(0x26, 1, 2, 0x23 + offset))
    expected = int.from_bytes(bus.memory[0x20 + offset:0x24 + offset], "big")
    assert cpu.registers[2] == expected


@pytest.mark.parametrize("offset", range(8))
def test_ldl_ldr_pair_loads_unaligned_doubleword(cpu, bus, offset):
    bus.memory[0x40:0x50] = bytes(range(1, 17))
    cpu.set_register(2, 0xFFFF_FFFF_FFFF_FFFF)
    execute_load(cpu, bus, _i_type(0x1A, 1, 2, 0x40 + offset))
    execute_load(cpu, bus, _i_type(0x1B, 1, 2, 0x47 + offset))
    expected = int.from_bytes(bus.memory[0x40 + offset:0x48 + offset], "big")
    assert cpu.registers[2] == expected


@pytest.mark.parametrize("offset", [0, 1, 2, 3])
def test_swl_swr_pair_stores_unaligned_word(cpu, bus, offset):
    value = 0x1122_3344_5566_7788
    cpu.set_register(2, value)
    address = 0x60 + offset
    execute_store(cpu, bus, _i_type(0x2A, 1, 2, address))
    execute_store(cpu, bus, _i_type(0x2E, 1, 2, address + 3))
    assert bytes(bus.memory[address:address + 4]) == (value & MASK32).to_bytes(4, "big")
    assert bus.memory[address + 4] == 0
    assert bus.memory[0x5F] == 0
    assert bytes(bus.memory[0x60:address]) == bytes(offset)


def test_sdl_aligned_stores_whole_register(cpu, bus):
    value = 0x0102_0304_0506_0708
    cpu.set_register(2, value)
    execute_store(cpu, bus, _i_type(0x2C, 1, 2, 0x80))
    assert bytes(bus.memory[0x80:0x88]) == value.to_bytes(8, "big")


def test_sdr_last_byte_stores_small_register(cpu, bus):
    value = 0x0A0B_0C0D
    cpu.set_register(2, value)
    execute_store(cpu, bus, _i_type(0x2D, 1, 2, 0x87))
    assert bytes(bus.memory[0x80:0x88]) == value.to_bytes(8, "big")


def test_ll_then_sc_succeeds(cpu, bus):
    bus.memory[0x90:0x94] = b"\x00\x00\x00\x07"
    execute_load(cpu, bus, _i_type(0x30, 1, 2, 0x90))
    assert cpu.llbit is True
    assert cpu.ll_address == 0x90 >> 4
    assert cpu.registers[2] == 7
    cpu.set_register(3, 0x0506_0708)
    execute_store(cpu, bus, _i_type(0x38, 1, 3, 0x90))
    assert cpu.registers[3] == 1
    assert cpu.llbit is False
    assert bytes(bus.memory[0x90:0x94]) == (0x0506_0708).to_bytes(4, "big")


def test_sc_without_link_fails(cpu, bus):
    cpu.set_register(3, 0x0506_0708)
    execute_store(cpu, bus, _i_type(0x38, 1, 3, 0x90))
    assert cpu.registers[3] == 0
    assert bytes(bus.memory[0x90:0x94]) == bytes(4)


def test_translation_error_leaves_state_unchanged(cpu, bus):
    cpu.set_register(2, 42)
    execute_load(cpu, bus, _i_type(0x23, 0, 2, 0x10))
    execute_store(cpu, bus, _i_type(0x2B, 0, 2, 0x10))
    assert cpu.registers[2] == 42
    assert bytes(bus.memory) == bytes(len(bus.memory))


def test_ll_sets_link_even_on_translation_error(cpu, bus):
    execute_load(cpu, bus, _i_type(0x30, 0, 2, 0x10))
    assert cpu.llbit is True


def test_load_into_register_zero_is_discarded(cpu, bus):
    bus.memory[0x10:0x14] = b"\x01\x02\x03\x04"
    execute_load(cpu, bus, _i_type(0x23, 1, 0, 0x10))
    assert cpu.registers[0] == 0


@pytest.mark.parametrize("opcode", [0x27, 0x34, 0x08])
def test_unsupported_loads_raise(cpu, bus, opcode):
    with pytest.raises(InstructionError):
        execute_load(cpu, bus, _i_type(opcode, 1, 2, 0))


@pytest.mark.parametrize("opcode", [0x3C, 0x23])
def test_unsupported_stores_raise(cpu, bus, opcode):
    with pytest.raises(InstructionError):
        execute_store(cpu, bus, _i_type(opcode, 1, 2, 0))