import pytest

from zeighty.registers import Flag, Registers, format_state, parity


def test_halves_compose_pairs():
    regs = Registers()
    regs.a = 0x12
    regs.f = 0x34
    regs.h = 0xDE
    regs.l = 0xAD
    assert regs.af == 0x1234
    assert regs.hl == 0xDEAD


def test_pairs_split_into_halves():
    regs = Registers(bc=0xBEEF, ix=0x1234)
    assert regs.b == 0xBE
    assert regs.c == 0xEF
    assert regs.ixh == 0x12
    assert regs.ixl == 0x34


def test_setting_half_keeps_other_half():
    regs = Registers(de=0x1234)
    regs.d = 0xAB
    assert regs.e == 0x34
    assert regs.de == (0xAB << 8) | 0x34


def test_word_registers_wrap():
    regs = Registers(pc=0xFFFF)
    regs.pc += 1
    assert regs.pc == 0
    regs.sp = -1
    assert regs.sp == 0xFFFF


def test_byte_registers_wrap():
    regs = Registers(i=0x80)
    regs.a = 0x1FF
    assert regs.a == 0xFF
    regs.r = 0x100 + regs.i
    assert regs.r == 0x80


def test_exx_swaps_with_alternates():
    regs = Registers(
        bc=0x1111, alt_bc=0x2222, de=0x3333, alt_de=0x4444, hl=0x5555, alt_hl=0x6666
    )
    regs.exx()
    assert (regs.bc, regs.alt_bc) == (0x2222, 0x1111)
    assert (regs.de, regs.alt_de) == (0x4444, 0x3333)
    assert (regs.hl, regs.alt_hl) == (0x6666, 0x5555)


def test_exx_twice_restores():
    regs = Registers(bc=0x1111, alt_bc=0x2222, de=0x3333, hl=0x5555, af=0x4F00)
    before = Registers(bc=0x1111, alt_bc=0x2222, de=0x3333, hl=0x5555, af=0x4F00)
    regs.exx()
    regs.exx()
    assert regs == before


def test_ex_de_hl():
    regs = Registers(hl=0xDEAD, de=0xBEEF)
    regs.ex_de_hl()
    assert regs.hl == 0xBEEF
    assert regs.de == 0xDEAD


def test_ex_af():
    regs = Registers(af=0x1234, alt_af=0xDEAD)
    regs.ex_af()
    assert regs.af == 0xDEAD
    assert regs.alt_af == 0x1234


@pytest.mark.parametrize("flag", list(Flag))
def test_set_flag_round_trip(flag):
    regs = Registers()
    regs.set_flag(flag, True)
    assert regs.get_flag(flag)
    assert regs.f == flag
    regs.set_flag(flag, False)
    assert not regs.get_flag(flag)
    assert regs.f == 0


def test_clearing_flag_leaves_others():
    regs = Registers(f=0xFF)
    regs.set_flag(Flag.Z, False)
    assert not regs.get_flag(Flag.Z)
    assert all(regs.get_flag(flag) for flag in Flag if flag is not Flag.Z)
    assert regs.a == 0


def test_unknown_register_rejected():
    with pytest.raises(TypeError):
        Registers(q=1)


def test_parity_zero():
    assert parity(0) == 0


@pytest.mark.parametrize("value", [0x00, 0x01, 0x3C, 0x80, 0xA5, 0xFE])
def test_parity_flips_with_single_bit(value):
    assert parity(value ^ 0x01) != parity(value)


@pytest.mark.parametrize("a,b", [(0x12, 0x34), (0xFF, 0x0F), (0x80, 0x01), (0x55, 0xAA)])
def test_parity_is_linear(a, b):
    assert parity(a ^ b) == parity(a) ^ parity(b)


def test_parity_uses_low_byte():
    assert parity(0x100 | 0x3C) == parity(0x3C)


def test_format_state_registers():
    state = format_state(Registers(af=0x1234, alt_hl=0xBEEF, pc=0xDEAD))
    assert "AF: 0x1234" in state
    assert "'HL: 0xBEEF" in state
    assert "PC: 0xDEAD" in state
    assert state.endswith("\n")


def test_format_state_no_flags():
    state = format_state(Registers())
    assert state.splitlines()[-1] == "Flags: None set"


def test_format_state_flag_labels():
    regs = Registers()
    regs.set_flag(Flag.S, True)
    regs.set_flag(Flag.C, True)
    regs.set_flag(Flag.F3, True)
    line = format_state(regs).splitlines()[-1]
    assert "S " in line
    assert "C " in line
    assert "5 " in line
    assert "None set" not in line