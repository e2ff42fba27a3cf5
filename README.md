# zeighty

A Z80 CPU emulator core in pure Python, with no dependencies outside the
standard library.

## What it contains

- `zeighty.registers`: the register file `Registers`. It holds the main,
  alternate (`alt_af`, `alt_bc`, `alt_de`, `alt_hl`), index (`ix`, `iy`) and
  special registers (`pc`, `sp`, `wz`, `i`, `r`). The 8-bit registers (`a`,
  `f`, `b`, `c`, `d`, `e`, `h`, `l`, `ixh`, `ixl`, `iyh`, `iyl`) are views on
  their 16-bit pairs. Every value is masked to the register's width when it is
  assigned. The module also has the flag bits (`Flag`), the exchange
  operations (`ex_af`, `ex_de_hl`, `exx`), `get_flag` / `set_flag`, the
  `parity` helper, and `format_state`, which returns a readable dump of the
  registers as text.
- `zeighty.alu`: the 8-bit operations on the accumulator. `alu` covers ADD,
  ADC, SUB, SBC, AND, XOR, OR and CP. `rotate` covers RLC, RRC, RL, RR, SLA,
  SRA, SLL and SRL, and returns the shifted byte. `daa` does the decimal
  adjust. Each one sets the flags the way the processor does.
- `zeighty.cpu`: the `CPU`. It runs the unprefixed, CB, DD, ED and FD
  instruction sets, including the indexed `(IX+d)` / `(IY+d)` forms and the
  block instructions. It also handles HALT, EI/DI and interrupt modes 1 and 2,
  and counts cycles. Memory is any object with `read(address)` and
  `write(address, value)`. `FlatMemory` gives a plain 64 KiB address space
  and has a `load(data, offset)` method. The 256 I/O ports are the entries of
  `cpu.devices`. Each is an `IODevice` with an optional `read_in()` callable
  and an optional `write_out(value)` callable. A port that has no reader
  returns 0.
- `zeighty.zex`: a runner for CP/M-style instruction exercisers such as
  `zexdoc.com` and `zexall.com`.

## Using the CPU

```python
from zeighty.cpu import CPU, FlatMemory

memory = FlatMemory()
memory.load(bytes([0x80]), 0)   # ADD A, B
cpu = CPU(memory)
cpu.registers.a = 0x10
cpu.registers.b = 0x20
remaining = cpu.execute(4)      # run for 4 T-states
assert cpu.registers.a == 0x30
assert remaining == 0
```

`execute(cycles)` runs whole instructions while cycles remain, and also until
any prefix byte has been completed. It returns the cycles left over, which is
negative when the last instruction overran the budget.

The CPU also offers the following:

- Memory access: `read_byte`, `write_byte`, `read_word`, `write_word`.
- Port access: `port_in` and `port_out`.
- Stack access: `push` and `pop`.
- Register access by name: `read_register(name)` and
  `write_register(name, value)`. Names are case-insensitive, and an unknown
  name raises `KeyError`.

To raise an interrupt, set `cpu.interrupt = True`. When interrupts are
enabled, it is taken before the next instruction. In mode 2, the low byte of
the vector comes from `cpu.bus`.

## Running an instruction exerciser

After installing the package, run a CP/M `.com` exerciser like this:

```
zeighty-zex zexdoc.com
```

The program is loaded at `0x100`. The runner handles two BDOS console calls,
2 (print character) and 9 (print a `$`-terminated string), and writes their
output to standard output. The run ends when the program jumps back to
address `0x0000`, and the runner then prints `Jumped to 0x00!`. If the file
cannot be read, the runner prints the error and exits with status 1.

From Python, there are two entry points:

- `run_exerciser(path, output=None, max_cycles=None)` returns `True` when the
  program ended and `False` when `max_cycles` ran out first.
- `build_machine(program, output)` returns the prepared `CPU`. A jump to
  `0x0000` then raises `ProgramEnded`.

## What it does not do

This package is only the processor core. It has none of the following:

- No model of a complete computer: no banked memory mapping, no display, no
  keyboard, no link port and no timers.
- No ROM loading and no interactive debugger or disassembler.
- No interrupt mode 0. Taking an interrupt in that mode only logs a warning.
- No non-maskable interrupts.

To run real machine software, supply your own memory object and `IODevice`
ports.