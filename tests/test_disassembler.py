import pytest

from n64plus.cpu_state import CpuState, InstructionError, MemoryBus
from n64plus.disasm_primary import format_primary, format_regimm
from n64plus.disassembler import disassemble, format_cop0, format_cop1, format_special


def special(funct, rs=0, rt=0, rd=0, sa=0):
    return (rs << 21) | (rt << 16) | (rd << 11) | (sa << 6) | funct


def cop(opcode, selector, rt=0, rd=0, funct=0):
    return (opcode << 26) | (selector << 21) | (rt << 16) | (rd << 11) | funct


@pytest.fixture
def cpu():
    return CpuState()


@pytest.fixture
def bus():
    return MemoryBus(size=0x1000)


@pytest.mark.parametrize(
    "funct, expected",
    [(0x0C, "SYSCALL"), (0x0D, "BREAK"), (0x0F, "SYNC")],
)
def test_fixed_special_text(cpu, funct, expected):
    assert format_special(cpu, special(funct)) == expected


@pytest.mark.parametrize("funct", [0x01, 0x05, 0x0A, 0x0B, 0x0E, 0x15, 0x28, 0x29, 0x35, 0x37, 0x39, 0x3D])
def test_reserved_special_functions(cpu, funct):
    assert format_special(cpu, special(funct, 1, 2, 3)) == "RESERVED"


def test_add_pinned(cpu):
    cpu.set_register(1, 0x10)
    cpu.set_register(2, 0x20)
    assert format_special(cpu, special(0x20, 1, 2, 3)) == "ADD r3, r1, r2 ; r1 = 0x10, r2 = 0x20"


def test_mult_shows_signed_operands(cpu):
    cpu.set_register(1, 0xFFFF_FFFF_FFFF_FFFF)
    cpu.set_register(2, 2)
    assert format_special(cpu, special(0x18, 1, 2)) == "MULT r1, r2 ; r1 = 0x-1, r2 = 0x2"


def test_slt_and_sltu_disagree_on_negative(cpu):
    cpu.set_register(1, 0xFFFF_FFFF_FFFF_FFFF)
    cpu.set_register(2, 1)
    assert "Yes" in format_special(cpu, special(0x2A, 1, 2, 3))
    assert "No" in format_special(cpu, special(0x2B, 1, 2, 3))


def test_srav_is_traced_with_sllv_label(cpu):
    srav = format_special(cpu, special(0x07, 1, 2, 3))
    sllv = format_special(cpu, special(0x04, 1, 2, 3))
    assert srav.split()[0] == sllv.split()[0]


def test_mfhi_reflects_hi_only(cpu):
    cpu.hi = 1
    first_hi = format_special(cpu, special(0x10, rd=4))
    first_lo = format_special(cpu, special(0x12, rd=4))
    cpu.hi = 2
    assert format_special(cpu, special(0x10, rd=4)) != first_hi
    assert format_special(cpu, special(0x12, rd=4)) == first_lo


def test_unsigned_divide_differs_from_signed_on_negative(cpu):
    cpu.set_register(1, 0xFFFF_FFFF_FFFF_FFFE)
    signed = format_special(cpu, special(0x1E, 1, 2))
    unsigned = format_special(cpu, special(0x1F, 1, 2))
    assert signed.split(";")[1] != unsigned.split(";")[1]


@pytest.mark.parametrize(
    "funct, expected",
    [(1, "TLBR"), (2, "TLBWI"), (6, "TLBWR"), (8, "TLBP"), (24, "ERET"), (3, "RESERVED")],
)
def test_cop0_tlb_group(cpu, funct, expected):
    assert format_cop0(cpu, cop(16, 16, funct=funct)) == expected


def test_cop0_unknown_selector_is_reserved(cpu):
    assert format_cop0(cpu, cop(16, 2, 1, 2)) == "RESERVED"


def test_cop0_selector_five_matches_mfc0(cpu):
    assert format_cop0(cpu, cop(16, 5, 7, 9)) == format_cop0(cpu, cop(16, 0, 7, 9))


@pytest.mark.parametrize(
    "selector, expected",
    [(8, "COP1_B"), (16, "COP1_S"), (17, "COP1_D"), (20, "COP1_W"), (21, "COP1_L"), (9, "RESERVED")],
)
def test_cop1_fixed_text(cpu, selector, expected):
    assert format_cop1(cpu, cop(17, selector)) == expected


def test_mfc1_pinned(cpu):
    cpu.fgr32[3] = 0xDEADBEEF
    assert format_cop1(cpu, cop(17, 0, 5, 3)) == "MFC1 r5, r3 ; r3 = 0xdeadbeef"


def test_mfc1_truncates_64_bit_register(cpu):
    cpu.fgr32[3] = 0x1234_5678
    narrow = format_cop1(cpu, cop(17, 0, 5, 3))
    cpu.fr = True
    cpu.fgr64[3] = 0xABCD_0000_1234_5678
    assert format_cop1(cpu, cop(17, 0, 5, 3)) == narrow


def test_dmfc1_pairs_match_64_bit_register(cpu):
    cpu.fgr32[4] = 0x1111_2222
    cpu.fgr32[5] = 0x3333_4444
    paired = format_cop1(cpu, cop(17, 1, 6, 4))
    cpu.fr = True
    cpu.fgr64[4] = 0x3333_4444_1111_2222
    assert format_cop1(cpu, cop(17, 1, 6, 4)) == paired


def test_dmfc1_uses_mfc1_label(cpu):
    assert format_cop1(cpu, cop(17, 1, 6, 4)).split()[0] == format_cop1(cpu, cop(17, 0, 6, 4)).split()[0]


def test_disassemble_dispatches_special(cpu, bus):
    word = special(0x25, 1, 2, 3)
    assert disassemble(cpu, word, bus) == format_special(cpu, word)


def test_disassemble_dispatches_regimm(cpu, bus):
    word = (1 << 26) | (4 << 21) | (0x01 << 16) | 0x10
    assert disassemble(cpu, word, bus) == format_regimm(cpu, word)


def test_disassemble_dispatches_coprocessors(cpu, bus):
    assert disassemble(cpu, cop(16, 16, funct=24), bus) == "ERET"
    assert disassemble(cpu, cop(17, 17), bus) == "COP1_D"


@pytest.mark.parametrize("opcode", [0x02, 0x09, 0x23, 0x2B, 0x3F, 0x13])
def test_disassemble_dispatches_primary(cpu, bus, opcode):
    word = (opcode << 26) | (1 << 21) | (2 << 16) | 0x40
    assert disassemble(cpu, word, bus) == format_primary(cpu, word, bus)


def test_disassemble_rejects_cop2(cpu, bus):
    with pytest.raises(InstructionError):
        disassemble(cpu, 18 << 26, bus)