"""A Z80 CPU emulator core: registers, ALU, instruction interpreter and an exerciser runner."""

__version__ = "0.1.0"
__all__ = ["registers", "alu", "cpu", "zex"]