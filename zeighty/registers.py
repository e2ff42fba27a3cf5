"""Z80 register file and flag definitions."""

from __future__ import annotations

from enum import IntFlag

__all__ = ["Flag", "Registers", "parity", "format_state"]


class Flag(IntFlag):
    """Bits of the Z80 flag register F."""

    C = 0x01
    N = 0x02
    PV = 0x04
    F3 = 0x08
    H = 0x10
    F5 = 0x20
    Z = 0x40
    S = 0x80


class _Register:
    """A register stored directly, masked to its width on assignment."""

    def __init__(self, bits: int) -> None:
        self.mask = (1 << bits) - 1
        self.name = ""

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name

    def __get__(self, obj: Registers | None, objtype: type | None = None):
        if obj is None:
            return self
        return obj._values[self.name]

    def __set__(self, obj: Registers, value: int) -> None:
        obj._values[self.name] = int(value) & self.mask


class _Half:
    """The high or low byte of a 16-bit register pair."""

    def __init__(self, pair: str, high: bool) -> None:
        self.pair = pair
        self.shift = 8 if high else 0

    def __get__(self, obj: Registers | None, objtype: type | None = None):
        if obj is None:
            return self
        return (getattr(obj, self.pair) >> self.shift) & 0xFF

    def __set__(self, obj: Registers, value: int) -> None:
        word = getattr(obj, self.pair)
        mask = 0xFF << self.shift
        setattr(obj, self.pair, (word & ~mask) | ((int(value) & 0xFF) << self.shift))


_WORDS = (
    "af", "bc", "de", "hl",
    "alt_af", "alt_bc", "alt_de", "alt_hl",
    "pc", "sp", "ix", "iy", "wz",
)
_BYTES = ("i", "r")
_HALVES = ("a", "f", "b", "c", "d", "e", "h", "l", "ixh", "ixl", "iyh", "iyl")


class Registers:
    """The full Z80 register set; 8-bit registers are views on their pairs."""

    af = _Register(16)
    bc = _Register(16)
    de = _Register(16)
    hl = _Register(16)
    alt_af = _Register(16)
    alt_bc = _Register(16)
    alt_de = _Register(16)
    alt_hl = _Register(16)
    pc = _Register(16)
    sp = _Register(16)
    ix = _Register(16)
    iy = _Register(16)
    wz = _Register(16)
    i = _Register(8)
    r = _Register(8)

    a = _Half("af", True)
    f = _Half("af", False)
    b = _Half("bc", True)
    c = _Half("bc", False)
    d = _Half("de", True)
    e = _Half("de", False)
    h = _Half("hl", True)
    l = _Half("hl", False)  # noqa: E741
    ixh = _Half("ix", True)
    ixl = _Half("ix", False)
    iyh = _Half("iy", True)
    iyl = _Half("iy", False)

    def __init__(self, **values: int) -> None:
        self._values = dict.fromkeys(_WORDS + _BYTES, 0)
        for name, value in values.items():
            if name not in _WORDS and name not in _BYTES and name not in _HALVES:
                raise TypeError(f"unknown register: {name}")
            setattr(self, name, value)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Registers):
            return NotImplemented
        return self._values == other._values

    def __repr__(self) -> str:
        fields = ", ".join(f"{name}=0x{value:X}" for name, value in self._values.items())
        return f"Registers({fields})"

    def ex_af(self) -> None:
        """Exchange AF with its alternate (EX AF, AF')."""
        self.af, self.alt_af = self.alt_af, self.af

    def ex_de_hl(self) -> None:
        """Exchange DE and HL (EX DE, HL)."""
        self.de, self.hl = self.hl, self.de

    def exx(self) -> None:
        """Exchange BC, DE and HL with their alternates (EXX)."""
        self.hl, self.alt_hl = self.alt_hl, self.hl
        self.de, self.alt_de = self.alt_de, self.de
        self.bc, self.alt_bc = self.alt_bc, self.bc

    def get_flag(self, flag: Flag) -> bool:
        """Return whether the given flag is set in F."""
        return bool(self.f & flag)

    def set_flag(self, flag: Flag, value: bool) -> None:
        """Set or clear the given flag in F."""
        if value:
            self.f = self.f | flag
        else:
            self.f = self.f & ~flag


def parity(value: int) -> int:
    """Return 1 if the low byte of value has an odd number of set bits, else 0."""
    return bin(value & 0xFF).count("1") & 1


def format_state(registers: Registers) -> str:
    """Render the register state as the multi-line dump shown on exit."""
    r = registers
    labels = (
        (Flag.S, "S "),
        (Flag.Z, "Z "),
        (Flag.H, "H "),
        (Flag.F3, "5 "),
        (Flag.PV, "P/V "),
        (Flag.F5, "3 "),
        (Flag.N, "N "),
        (Flag.C, "C "),
    )
    flags = "".join(text for flag, text in labels if r.get_flag(flag))
    if r.f == 0:
        flags += "None set"
    lines = [
        f"   AF: 0x{r.af:04X}   BC: 0x{r.bc:04X}   DE: 0x{r.de:04X}  HL: 0x{r.hl:04X}",
        f"  'AF: 0x{r.alt_af:04X}  'BC: 0x{r.alt_bc:04X}  'DE: 0x{r.alt_de:04X} 'HL: 0x{r.alt_hl:04X}",
        f"   PC: 0x{r.pc:04X}   SP: 0x{r.sp:04X}   IX: 0x{r.ix:04X}  IY: 0x{r.iy:04X}",
        "Flags: " + flags,
    ]
    return "\n".join(lines) + "\n"