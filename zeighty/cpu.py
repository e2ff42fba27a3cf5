"""Z80 instruction interpreter."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

from .alu import alu, daa, rotate
from .registers import Flag, Registers, parity

__all__ = ["IODevice", "FlatMemory", "CPU"]

_IM_MODES = (0, 0, 1, 2, 0, 0, 1, 2)

_WORD_REGISTERS = frozenset(
    ("af", "bc", "de", "hl", "alt_af", "alt_bc", "alt_de", "alt_hl",
     "pc", "sp", "ix", "iy", "wz")
)
_BYTE_REGISTERS = frozenset(
    ("a", "f", "b", "c", "d", "e", "h", "l", "i", "r", "ixh", "ixl", "iyh", "iyl")
)


class Memory(Protocol):
    def read(self, address: int) -> int: ...

    def write(self, address: int, value: int) -> None: ...


@dataclass
class IODevice:
    """A device attached to an I/O port; either side may be absent."""

    read_in: Optional[Callable[[], int]] = None
    write_out: Optional[Callable[[int], None]] = None


class FlatMemory:
    """A plain 64 KiB address space."""

    def __init__(self, size: int = 0x10000, fill: int = 0) -> None:
        self.data = bytearray([fill & 0xFF]) * size

    def read(self, address: int) -> int:
        return self.data[address % len(self.data)]

    def write(self, address: int, value: int) -> None:
        self.data[address % len(self.data)] = value & 0xFF

    def load(self, data: bytes, offset: int = 0) -> None:
        """Copy data into memory starting at offset."""
        if offset < 0 or offset + len(data) > len(self.data):
            raise ValueError("data does not fit in memory at this offset")
        self.data[offset:offset + len(data)] = data


def _on(flag: Flag, condition) -> int:
    return int(flag) if condition else 0


def _s8(v: int) -> int:
    return _on(Flag.S, v & 0x80)


def _z8(v: int) -> int:
    return _on(Flag.Z, (v & 0xFF) == 0)


def _u8(v: int) -> int:
    return v & 0x28


def _p(v: int) -> int:
    return 0 if parity(v) else int(Flag.PV)


def _h8_add(a: int, b: int, c: int) -> int:
    return _on(Flag.H, ((a & 0xF) + (b & 0xF) + c) & 0x10)


def _h8_sub(a: int, b: int, c: int) -> int:
    return _on(Flag.H, ((a & 0xF) - (b & 0xF) - c) & 0x10)


def _s16(v: int) -> int:
    return _on(Flag.S, v & 0x8000)


def _z16(v: int) -> int:
    return _on(Flag.Z, (v & 0xFFFF) == 0)


def _u16(v: int) -> int:
    return (v >> 8) & 0x28


def _c16(v: int) -> int:
    return _on(Flag.C, v & 0x10000)


def _h16_add(a: int, b: int, c: int) -> int:
    return _on(Flag.H, ((a & 0xFFF) + (b & 0xFFF) + c) & 0x1000)


def _h16_sub(a: int, b: int, c: int) -> int:
    return _on(Flag.H, ((a & 0xFFF) - (b & 0xFFF) - c) & 0x1000)


def _v16_add(a: int, b: int, res: int) -> int:
    return _on(Flag.PV, (a ^ res) & (b ^ res) & 0x8000)


def _v16_sub(a: int, b: int, res: int) -> int:
    return _on(Flag.PV, (a ^ b) & (a ^ res) & 0x8000)


def _block_undef(v: int) -> int:
    return (v & 0x08) | ((v & 0x02) << 4)


class CPU:
    """A Z80 core executing against a memory object and 256 I/O ports."""

    def __init__(self, memory: Memory, log: logging.Logger | None = None) -> None:
        self.memory = memory
        self.log = log or logging.getLogger(__name__)
        self.registers = Registers()
        self.devices = [IODevice() for _ in range(0x100)]
        self.prefix = 0
        self.halted = False
        self.iff1 = False
        self.iff2 = False
        self.iff_wait = False
        self.interrupt = False
        self.int_mode = 0
        self.bus = 0
        self._cycles = 0

    # Memory and ports

    def read_byte(self, address: int) -> int:
        return self.memory.read(address & 0xFFFF) & 0xFF

    def write_byte(self, address: int, value: int) -> None:
        self.memory.write(address & 0xFFFF, value & 0xFF)

    def read_word(self, address: int) -> int:
        return self.read_byte(address) | (self.read_byte(address + 1) << 8)

    def write_word(self, address: int, value: int) -> None:
        self.write_byte(address, value & 0xFF)
        self.write_byte(address + 1, (value >> 8) & 0xFF)

    def port_in(self, port: int) -> int:
        device = self.devices[port & 0xFF]
        if device.read_in is None:
            return 0
        return device.read_in() & 0xFF

    def port_out(self, port: int, value: int) -> None:
        device = self.devices[port & 0xFF]
        if device.write_out is not None:
            device.write_out(value & 0xFF)

    def push(self, value: int) -> None:
        r = self.registers
        self.write_word(r.sp - 2, value)
        r.sp -= 2

    def pop(self) -> int:
        r = self.registers
        value = self.read_word(r.sp)
        r.sp += 2
        return value

    def read_register(self, name: str) -> int:
        return getattr(self.registers, self._register_name(name))

    def write_register(self, name: str, value: int) -> int:
        key = self._register_name(name)
        setattr(self.registers, key, value)
        return getattr(self.registers, key)

    @staticmethod
    def _register_name(name: str) -> str:
        key = name.lower()
        if key not in _WORD_REGISTERS and key not in _BYTE_REGISTERS:
            raise KeyError(f"unknown register: {name}")
        return key

    # Operand helpers

    def _fetch(self) -> int:
        r = self.registers
        value = self.read_byte(r.pc)
        r.pc += 1
        return value

    def _fetch_word(self) -> int:
        r = self.registers
        value = self.read_word(r.pc)
        r.pc += 2
        return value

    def _fetch_d(self) -> int:
        value = self._fetch()
        return value - 0x100 if value & 0x80 else value

    @property
    def _index(self) -> int:
        return self.prefix >> 8

    def _index_name(self, base: str, dd: str, fd: str) -> str:
        if self._index == 0xDD:
            return dd
        if self._index == 0xFD:
            return fd
        return base

    def _read_r(self, i: int) -> int:
        r = self.registers
        if i == 4:
            return getattr(r, self._index_name("h", "ixh", "iyh"))
        if i == 5:
            return getattr(r, self._index_name("l", "ixl", "iyl"))
        if i == 6:
            self._cycles += 3
            if self._index in (0xDD, 0xFD):
                self._cycles += 8
                base = r.ix if self._index == 0xDD else r.iy
                r.wz = base + self._fetch_d()
                return self.read_byte(r.wz)
            return self.read_byte(r.hl)
        return getattr(r, "bcde" "hl" "a"[i] if i < 4 else "a")

    def _write_r(self, i: int, value: int) -> int:
        r = self.registers
        value &= 0xFF
        if i == 4:
            setattr(r, self._index_name("h", "ixh", "iyh"), value)
        elif i == 5:
            setattr(r, self._index_name("l", "ixl", "iyl"), value)
        elif i == 6:
            self._cycles += 3
            if self._index in (0xDD, 0xFD):
                self._cycles += 4
                base = r.ix if self._index == 0xDD else r.iy
                r.wz = base + self._fetch_d()
                self.write_byte(r.wz, value)
            else:
                self.write_byte(r.hl, value)
        else:
            setattr(r, "bcde"[i] if i < 4 else "a", value)
        return value

    def _read_write_r(self, read: int, write: int) -> int:
        if write == 6 or read == 6:
            old_prefix = self.prefix
            if write == 6:
                self.prefix &= 0xFF
            value = self._read_r(read)
            self.prefix = old_prefix
            if read == 6:
                self.prefix &= 0xFF
            return self._write_r(write, value)
        return self._write_r(write, self._read_r(read))

    def _hl_name(self) -> str:
        return self._index_name("hl", "ix", "iy")

    def _read_rp(self, i: int, last: str = "sp") -> int:
        names = ("bc", "de", self._hl_name(), last)
        return getattr(self.registers, names[i])

    def _write_rp(self, i: int, value: int, last: str = "sp") -> int:
        names = ("bc", "de", self._hl_name(), last)
        setattr(self.registers, names[i], value)
        return getattr(self.registers, names[i])

    def _cc(self, i: int) -> bool:
        flag = (Flag.Z, Flag.C, Flag.PV, Flag.S)[i >> 1]
        state = self.registers.get_flag(flag)
        return state if i & 1 else not state

    # Execution

    def execute(self, cycles: int) -> int:
        """Run until the cycle budget is spent; return the remaining (possibly negative) cycles."""
        while cycles > 0 or self.prefix != 0:
            self._cycles = 0
            opcode = 0
            done = False
            if self.iff2 and not self.prefix:
                if self.iff_wait:
                    self.iff_wait = False
                elif self.interrupt:
                    self.halted = False
                    self._handle_interrupt()
                    done = True
            if not done and self.halted:
                self._cycles += 4
                done = True
            if not done:
                opcode = self._step()
            cycles -= self._cycles
            if self._cycles == 0:
                self.log.error("Error: Unrecognized instruction 0x%02X.", opcode)
                cycles -= 1
        return cycles

    def _handle_interrupt(self) -> None:
        r = self.registers
        if self.int_mode == 0:
            self.log.warning("Warning: interrupt mode 0 is not supported.")
        elif self.int_mode == 1:
            self._cycles += 13
            self.push(r.pc)
            r.pc = 0x38
            self.iff1 = self.iff2 = False
        elif self.int_mode == 2:
            self._cycles += 19
            self.push(r.pc)
            r.pc = r.i * 256 + self.bus
            self.iff1 = self.iff2 = False

    def _step(self) -> int:
        r = self.registers
        opcode = self._fetch()
        r.r = (r.r & 0x80) | ((r.r + 1) & 0x7F)
        reset_prefix = True
        if (self.prefix & 0xFF) == 0xCB:
            opcode = self._execute_cb(opcode)
        elif self._index == 0xED:
            self._execute_ed(opcode)
        else:
            reset_prefix = self._execute_main(opcode)
        if reset_prefix:
            self.prefix = 0
        return opcode

    def _execute_cb(self, opcode: int) -> int:
        r = self.registers
        switch = self.prefix >> 8
        if switch:
            opcode = self.read_byte(r.pc)
            r.pc -= 1
        x, y, z = opcode >> 6, (opcode >> 3) & 7, opcode & 7
        self._cycles += 4
        if x == 0:
            value = self._read_r(z)
            if z == 6 and switch:
                r.pc -= 1
            self._write_r(z, rotate(r, y, value))
        elif x == 1:
            old = self._read_r(z)
            new = old & (1 << y)
            r.f = (_s8(new) | _z8(new) | (_u16(r.wz) if z == 6 else _u8(old))
                   | _p(new) | _on(Flag.C, r.get_flag(Flag.C)) | int(Flag.H))
        else:
            old = self._read_r(z)
            old = old & ~(1 << y) if x == 2 else old | (1 << y)
            if z == 6 and switch:
                r.pc -= 1
            self._write_r(z, old)
        if switch:
            r.pc += 1
        return opcode

    def _execute_ed(self, opcode: int) -> None:
        r = self.registers
        x, y, z = opcode >> 6, (opcode >> 3) & 7, opcode & 7
        p, q = y >> 1, y & 1
        if x == 2 and y >= 4 and z < 4:
            self._execute_block(y, z)
            return
        if x != 1:
            self._cycles += 4
            self.iff_wait = True
            return
        carry = int(r.get_flag(Flag.C))
        if z == 0:
            self._cycles += 8
            new = self.port_in(r.c)
            if y != 6:
                self._write_r(y, new)
            r.f = _s8(new) | _u8(new) | _on(Flag.C, carry) | _z8(new) | _p(new)
        elif z == 1:
            self._cycles += 8
            self.port_out(r.c, 0xFF if y == 6 else self._read_r(y))
        elif z == 2:
            self._cycles += 11
            old = r.hl
            op = self._read_rp(p)
            if q == 0:
                r.hl = old - op - carry
                r.f = (_s16(r.hl) | _z16(r.hl) | _u16(r.hl) | _v16_sub(old, op, r.hl)
                       | int(Flag.N) | _c16(old - op - carry) | _h16_sub(old, op, carry))
            else:
                r.hl = old + op + carry
                r.f = (_s16(r.hl) | _z16(r.hl) | _u16(r.hl) | _v16_add(old, op, r.hl)
                       | _c16(old + op + carry) | _h16_add(old, op, carry))
            r.wz = r.hl
        elif z == 3:
            self._cycles += 16
            r.wz = self._fetch_word()
            if q == 0:
                self.write_word(r.wz, self._read_rp(p))
            else:
                self._write_rp(p, self.read_word(r.wz))
        elif z == 4:
            self._cycles += 4
            old = r.a
            r.a = -old
            r.f = (_s8(r.a) | _z8(r.a) | _u8(r.a) | _on(Flag.PV, old == 0x80)
                   | int(Flag.N) | _on(Flag.C, old != 0) | _h8_sub(0, old, 0))
        elif z == 5:
            self._cycles += 14
            r.pc = self.pop()
        elif z == 6:
            self._cycles += 4
            self.int_mode = _IM_MODES[y]
        else:
            self._execute_ed_misc(y, carry)

    def _execute_ed_misc(self, y: int, carry: int) -> None:
        r = self.registers
        if y in (0, 1, 2, 3):
            self._cycles += 5
            if y == 0:
                r.i = r.a
            elif y == 1:
                r.r = r.a
            else:
                r.a = r.i if y == 2 else r.r
                r.f = (_s8(r.a) | _z8(r.a) | _u8(r.a) | _on(Flag.PV, self.iff2)
                       | _on(Flag.C, carry))
        elif y in (4, 5):
            self._cycles += 14
            old = r.a
            new = self.read_byte(r.hl)
            if y == 4:
                r.a = (old & 0xF0) | (new & 0x0F)
                new = (new >> 4) | (old << 4)
            else:
                r.a = (old & 0xF0) | (new >> 4)
                new = (new << 4) | (old & 0x0F)
            self.write_byte(r.hl, new)
            r.f = _on(Flag.C, carry) | _s8(r.a) | _z8(r.a) | _p(r.a) | _u8(r.a)
        else:
            self._cycles += 4

    def _execute_block(self, y: int, z: int) -> None:
        r = self.registers
        step = 1 if y in (4, 6) else -1
        repeat = y >= 6
        self._cycles += 12
        if z == 0:
            old = self.read_byte(r.hl)
            self.write_byte(r.de, old)
            r.hl += step
            r.de += step
            new = (r.a + old) & 0xFF
            r.bc -= 1
            r.f = ((r.f & int(Flag.S | Flag.Z | Flag.C)) | _on(Flag.PV, r.bc)
                   | _block_undef(new))
            again = repeat and r.bc != 0
        elif z == 1:
            old = self.read_byte(r.hl)
            r.hl += step
            new = (r.a - old) & 0xFF
            hc = 1 if _h8_sub(r.a, old, 0) else 0
            carry = r.get_flag(Flag.C)
            r.bc -= 1
            r.f = (_s8(new) | _z8(new) | _on(Flag.H, hc) | _on(Flag.PV, r.bc)
                   | int(Flag.N) | _on(Flag.C, carry) | _block_undef(new - hc))
            again = repeat and r.bc != 0 and not r.get_flag(Flag.Z)
        else:
            if z == 2:
                self.write_byte(r.hl, self.port_in(r.c))
            else:
                self.port_out(r.c, self.read_byte(r.hl))
            r.hl += step
            r.b -= 1
            r.set_flag(Flag.Z, r.b == 0)
            r.set_flag(Flag.N, True)
            again = repeat and not r.get_flag(Flag.Z)
        if again:
            self._cycles += 5
            r.pc -= 2

    def _execute_main(self, opcode: int) -> bool:
        r = self.registers
        x, y, z = opcode >> 6, (opcode >> 3) & 7, opcode & 7
        if x == 0:
            self._execute_x0(y, z)
        elif x == 1:
            self._cycles += 4
            if z == 6 and y == 6:
                self.halted = True
            else:
                self._read_write_r(z, y)
        elif x == 2:
            self._cycles += 4
            alu(r, y, self._read_r(z))
        else:
            return self._execute_x3(y, z)
        return True

    def _jump_relative(self, d: int) -> None:
        r = self.registers
        r.pc += d
        r.wz = r.pc

    def _execute_x0(self, y: int, z: int) -> None:
        r = self.registers
        p, q = y >> 1, y & 1
        if z == 0:
            if y == 0:
                self._cycles += 4
            elif y == 1:
                self._cycles += 4
                r.ex_af()
            elif y == 2:
                self._cycles += 8
                d = self._fetch_d()
                r.b -= 1
                if r.b != 0:
                    self._cycles += 5
                    self._jump_relative(d)
            elif y == 3:
                self._cycles += 12
                self._jump_relative(self._fetch_d())
            else:
                self._cycles += 7
                d = self._fetch_d()
                if self._cc(y - 4):
                    self._cycles += 5
                    self._jump_relative(d)
        elif z == 1:
            if q == 0:
                self._cycles += 10
                self._write_rp(p, self._fetch_word())
            else:
                self._cycles += 11
                name = self._hl_name()
                old = getattr(r, name)
                op = self._read_rp(p)
                setattr(r, name, old + op)
                new = getattr(r, name)
                r.wz = new
                r.f = ((r.f & int(Flag.S | Flag.Z | Flag.PV)) | _u16(new)
                       | _c16(old + op) | _h16_add(old, op, 0))
        elif z == 2:
            if p in (0, 1):
                self._cycles += 7
                address = r.bc if p == 0 else r.de
                if q == 0:
                    self.write_byte(address, r.a)
                else:
                    r.a = self.read_byte(address)
            elif p == 2:
                self._cycles += 16
                r.wz = self._fetch_word()
                if q == 0:
                    self.write_word(r.wz, getattr(r, self._hl_name()))
                else:
                    setattr(r, self._hl_name(), self.read_word(r.wz))
            else:
                self._cycles += 13
                r.wz = self._fetch_word()
                if q == 0:
                    self.write_byte(r.wz, r.a)
                else:
                    r.a = self.read_byte(r.wz)
        elif z == 3:
            self._cycles += 6
            self._write_rp(p, self._read_rp(p) + (1 if q == 0 else -1))
        elif z in (4, 5):
            self._cycles += 4
            old = self._read_r(y)
            if y == 6 and self._index:
                r.pc -= 1
            carry = r.get_flag(Flag.C)
            if z == 4:
                new = self._write_r(y, old + 1)
                r.f = (_on(Flag.C, carry) | _s8(new) | _z8(new) | _h8_add(old, 0, 1)
                       | _on(Flag.PV, old == 0x7F) | _u8(new))
            else:
                new = self._write_r(y, old - 1)
                r.f = (_on(Flag.C, carry) | _s8(new) | _z8(new) | _h8_sub(old, 0, 1)
                       | _on(Flag.PV, old == 0x80) | int(Flag.N) | _u8(new))
        elif z == 6:
            self._cycles += 7
            indexed = y == 6 and self._index
            if indexed:
                r.pc += 1
            value = self._fetch()
            if indexed:
                r.pc -= 2
            self._write_r(y, value)
            if indexed:
                r.pc += 1
        else:
            self._execute_accumulator(y)

    def _execute_accumulator(self, y: int) -> None:
        r = self.registers
        self._cycles += 4
        if y == 4:
            daa(r)
            return
        a = r.a
        if y == 0:
            carry = a >> 7
            r.a = (a << 1) | carry
        elif y == 1:
            carry = a & 1
            r.a = (a >> 1) | (carry << 7)
        elif y == 2:
            carry = a >> 7
            r.a = (a << 1) | int(r.get_flag(Flag.C))
        elif y == 3:
            carry = a & 1
            r.a = (a >> 1) | (int(r.get_flag(Flag.C)) << 7)
        elif y == 5:
            r.a = ~a
            r.set_flag(Flag.N, True)
            r.set_flag(Flag.H, True)
            carry = None
        elif y == 6:
            carry = 1
        else:
            r.set_flag(Flag.H, r.get_flag(Flag.C))
            carry = 0 if r.get_flag(Flag.C) else 1
            r.set_flag(Flag.N, False)
        if carry is not None:
            r.set_flag(Flag.C, bool(carry))
            r.set_flag(Flag.N, False)
            if y != 7:
                r.set_flag(Flag.H, False)
        r.set_flag(Flag.F3, r.a & Flag.F3)
        r.set_flag(Flag.F5, r.a & Flag.F5)

    def _execute_x3(self, y: int, z: int) -> bool:
        r = self.registers
        p, q = y >> 1, y & 1
        if z == 0:
            self._cycles += 5
            if self._cc(y):
                r.pc = self.pop()
                self._cycles += 6
        elif z == 1:
            if q == 0:
                self._cycles += 10
                self._write_rp(p, self.pop(), "af")
            elif p == 0:
                self._cycles += 10
                r.pc = self.pop()
            elif p == 1:
                self._cycles += 4
                r.exx()
            elif p == 2:
                self._cycles += 4
                r.pc = getattr(r, self._hl_name())
            else:
                self._cycles += 6
                r.sp = getattr(r, self._hl_name())
        elif z == 2:
            self._cycles += 10
            target = self._fetch_word()
            if self._cc(y):
                r.pc = target
        elif z == 3:
            if y == 0:
                self._cycles += 10
                r.pc = self._fetch_word()
            elif y == 1:
                self._cycles += 4
                self.prefix = (self.prefix & 0xFF00) | 0xCB
                return False
            elif y == 2:
                self._cycles += 11
                self.port_out(self._fetch(), r.a)
            elif y == 3:
                self._cycles += 11
                r.a = self.port_in(self._fetch())
            elif y == 4:
                self._cycles += 19
                name = self._hl_name()
                r.wz = self.read_word(r.sp)
                self.write_word(r.sp, getattr(r, name))
                setattr(r, name, r.wz)
            elif y == 5:
                self._cycles += 4
                r.ex_de_hl()
            elif y == 6:
                self._cycles += 4
                self.iff1 = self.iff2 = False
            else:
                self._cycles += 4
                self.iff1 = self.iff2 = True
                self.iff_wait = True
        elif z == 4:
            self._cycles += 10
            target = self._fetch_word()
            if self._cc(y):
                self._cycles += 7
                self.push(r.pc)
                r.pc = target
        elif z == 5:
            if q == 0:
                self._cycles += 11
                self.push(self._read_rp(p, "af"))
            elif p == 0:
                self._cycles += 17
                target = self._fetch_word()
                self.push(r.pc)
                r.pc = target
            else:
                self._cycles += 4
                self.prefix = (self.prefix & 0xFF) | ({1: 0xDD, 2: 0xED, 3: 0xFD}[p] << 8)
                return False
        elif z == 6:
            self._cycles += 4
            alu(r, y, self._fetch())
        else:
            self._cycles += 11
            self.push(r.pc)
            r.pc = y * 8
        return True