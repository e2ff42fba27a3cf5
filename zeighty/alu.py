"""Z80 arithmetic, logic, rotate and decimal-adjust operations on the accumulator."""

from __future__ import annotations

from .registers import Flag, Registers, parity

__all__ = ["alu", "rotate", "daa"]

_UNDEF = int(Flag.F3 | Flag.F5)


def _sign(value: int) -> int:
    return int(Flag.S) if value & 0x80 else 0


def _zero(value: int) -> int:
    return int(Flag.Z) if value & 0xFF == 0 else 0


def _undef(value: int) -> int:
    return value & _UNDEF


def _parity(value: int) -> int:
    return 0 if parity(value) else int(Flag.PV)


def _carry(value: int) -> int:
    return int(Flag.C) if value & 0x100 else 0


def _half_add(op1: int, op2: int, carry: int) -> int:
    return int(Flag.H) if ((op1 & 0xF) + (op2 & 0xF) + carry) & 0x10 else 0


def _half_sub(op1: int, op2: int, carry: int) -> int:
    return int(Flag.H) if ((op1 & 0xF) - (op2 & 0xF) - carry) & 0x10 else 0


def _overflow_add(op1: int, op2: int, result: int) -> int:
    return int(Flag.PV) if (op1 ^ result) & (op2 ^ result) & 0x80 else 0


def _overflow_sub(op1: int, op2: int, result: int) -> int:
    return int(Flag.PV) if (op1 ^ op2) & (op1 ^ result) & 0x80 else 0


def _when(flag: Flag, condition: bool) -> int:
    return int(flag) if condition else 0


def _szp(value: int) -> int:
    return _sign(value) | _zero(value) | _undef(value) | _parity(value)


def alu(registers: Registers, operation: int, value: int) -> int:
    """Apply ALU operation 0-7 (ADD, ADC, SUB, SBC, AND, XOR, OR, CP) to A.

    Updates A (except for CP) and F, and returns the new value of A.
    """
    a = registers.a
    value &= 0xFF
    carry = int(registers.get_flag(Flag.C))
    if operation == 0:
        result = (a + value) & 0xFF
        flags = (_sign(result) | _zero(result) | _undef(result)
                 | _overflow_add(a, value, result) | _carry(a + value)
                 | _half_add(a, value, 0))
    elif operation == 1:
        result = (a + value + carry) & 0xFF
        flags = (_sign(result) | _zero(result) | _undef(result)
                 | _overflow_add(a, value, result) | _carry(a + value + carry)
                 | _half_add(a, value, carry))
    elif operation == 2:
        result = (a - value) & 0xFF
        flags = (_sign(result) | _zero(result) | _undef(result)
                 | _overflow_sub(a, value, result) | int(Flag.N)
                 | _carry(a - value) | _half_sub(a, value, 0))
    elif operation == 3:
        result = (a - value - carry) & 0xFF
        flags = (_sign(result) | _zero(result) | _undef(result)
                 | _overflow_sub(a, value, result) | int(Flag.N)
                 | _carry(a - value - carry) | _half_sub(a, value, carry))
    elif operation == 4:
        result = a & value
        flags = _szp(result) | int(Flag.H)
    elif operation == 5:
        result = a ^ value
        flags = _szp(result)
    elif operation == 6:
        result = a | value
        flags = _szp(result)
    elif operation == 7:
        difference = (a - value) & 0xFF
        registers.f = (_sign(difference) | _zero(difference) | _undef(value)
                       | int(Flag.N) | _carry(a - value)
                       | _overflow_sub(a, value, difference) | _half_sub(a, value, 0))
        return a
    else:
        raise ValueError(f"ALU operation must be 0-7, not {operation}")
    registers.a = result
    registers.f = flags
    return result


def rotate(registers: Registers, operation: int, value: int) -> int:
    """Apply rotate/shift 0-7 (RLC, RRC, RL, RR, SLA, SRA, SLL, SRL) to value.

    Sets F from the result and returns the shifted byte; the caller stores it.
    """
    value &= 0xFF
    old_7 = (value >> 7) & 1
    old_0 = value & 1
    old_c = int(registers.get_flag(Flag.C))
    if operation == 0:
        result, carry = (value << 1) | old_7, old_7
    elif operation == 1:
        result, carry = (value >> 1) | (old_0 << 7), old_0
    elif operation == 2:
        result, carry = (value << 1) | old_c, old_7
    elif operation == 3:
        result, carry = (value >> 1) | (old_c << 7), old_0
    elif operation == 4:
        result, carry = value << 1, old_7
    elif operation == 5:
        result, carry = (value >> 1) | (old_7 << 7), old_0
    elif operation == 6:
        result, carry = (value << 1) | 1, old_7
    elif operation == 7:
        result, carry = value >> 1, old_0
    else:
        raise ValueError(f"rotate operation must be 0-7, not {operation}")
    result &= 0xFF
    registers.f = _when(Flag.C, bool(carry)) | _szp(result)
    return result


def daa(registers: Registers) -> int:
    """Decimal-adjust A after a BCD addition or subtraction; returns the new A."""
    a = registers.a
    adjust = 0
    if (a & 0xF) > 9 or registers.get_flag(Flag.H):
        adjust += 0x06
    if ((a + adjust) >> 4) > 9 or _carry(a + adjust) or registers.get_flag(Flag.C):
        adjust += 0x60
    subtract = registers.get_flag(Flag.N)
    if subtract:
        result = (a - adjust) & 0xFF
        half = _half_sub(a, adjust, 0)
    else:
        result = (a + adjust) & 0xFF
        half = _half_add(a, adjust, 0)
    registers.a = result
    registers.f = (_szp(result) | _when(Flag.N, subtract)
                   | _when(Flag.C, adjust >= 0x60) | half)
    return result