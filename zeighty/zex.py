"""Runner for CP/M-style Z80 instruction exerciser programs."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional, Sequence, TextIO

from .cpu import CPU, FlatMemory, IODevice

__all__ = ["ProgramEnded", "build_machine", "run_exerciser", "main"]

LOAD_ADDRESS = 0x100
_SLICE = 10000
_USAGE = "zex `file` - run the Z80 instruction exerciser\n"


class ProgramEnded(Exception):
    """Raised when the program jumps back to address 0x0000."""


def build_machine(program: bytes, output: TextIO) -> CPU:
    """Build a CPU with the program loaded at 0x100 and a minimal BDOS stub.

    Every port's output ends the run; every port's input performs the BDOS
    console call selected by register C (2: print E, 9: print the
    '$'-terminated string at DE), writing the text to output.
    """
    memory = FlatMemory()
    memory.load(bytes(program), LOAD_ADDRESS)
    cpu = CPU(memory)

    def reset(_value: int) -> None:
        output.write("Jumped to 0x00!\n")
        output.flush()
        raise ProgramEnded()

    def write_text() -> int:
        r = cpu.registers
        if r.c == 2:
            output.write(chr(r.e))
        elif r.c == 9:
            address = r.de
            for _ in range(0x10000):
                value = memory.read(address & 0xFFFF)
                if value == ord("$"):
                    break
                output.write(chr(value))
                if value == 0:
                    break
                address += 1
        output.flush()
        return 0

    for port in range(0x100):
        cpu.devices[port] = IODevice(read_in=write_text, write_out=reset)

    memory.write(0, 0xD3)  # OUT (n), A
    memory.write(1, 0x00)
    memory.write(5, 0xDB)  # IN A, (n)
    memory.write(6, 0x00)
    memory.write(7, 0xC9)  # RET

    cpu.registers.pc = LOAD_ADDRESS
    return cpu


def run_exerciser(
    path: str | Path,
    output: Optional[TextIO] = None,
    max_cycles: Optional[int] = None,
) -> bool:
    """Run the program in path until it jumps to 0x0000.

    Returns True when the program ended, False when max_cycles ran out first.
    Raises OSError if the file cannot be read.
    """
    stream = output if output is not None else sys.stdout
    program = Path(path).read_bytes()
    cpu = build_machine(program, stream)
    spent = 0
    try:
        while max_cycles is None or spent < max_cycles:
            budget = _SLICE if max_cycles is None else min(_SLICE, max_cycles - spent)
            remaining = cpu.execute(budget)
            spent += budget - remaining
    except ProgramEnded:
        return True
    return False


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Command-line entry point: run the exerciser file named by the one argument."""
    args = list(sys.argv[1:] if argv is None else argv)
    if len(args) != 1:
        sys.stdout.write(_USAGE)
        return 1
    try:
        run_exerciser(args[0], sys.stdout)
    except OSError as error:
        sys.stdout.write(f"{error.strerror or error}\n")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())