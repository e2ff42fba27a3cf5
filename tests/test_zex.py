import io

import pytest

from zeighty.zex import ProgramEnded, build_machine, main, run_exerciser

END = "Jumped to 0x00!\n"

# LD C, 9 / LD DE, 0x010B / CALL 5 / JP 0 / "Hi$"
PRINT_STRING = bytes([0x0E, 0x09, 0x11, 0x0B, 0x01, 0xCD, 0x05, 0x00,
                      0xC3, 0x00, 0x00]) + b"Hi$"
# LD C, 2 / LD E, 'A' / CALL 5 / JP 0
PRINT_CHAR = bytes([0x0E, 0x02, 0x1E, 0x41, 0xCD, 0x05, 0x00, 0xC3, 0x00, 0x00])
# JR $
LOOP_FOREVER = bytes([0x18, 0xFE])


def run_until_end(cpu):
    with pytest.raises(ProgramEnded):
        for _ in range(100):
            cpu.execute(10000)


def test_machine_layout():
    out = io.StringIO()
    cpu = build_machine(PRINT_CHAR, out)
    assert cpu.registers.pc == 0x100
    assert cpu.read_byte(0) == 0xD3
    assert cpu.read_byte(1) == 0x00
    assert cpu.read_byte(5) == 0xDB
    assert cpu.read_byte(7) == 0xC9
    loaded = bytes(cpu.read_byte(0x100 + i) for i in range(len(PRINT_CHAR)))
    assert loaded == PRINT_CHAR


def test_print_string_call():
    out = io.StringIO()
    cpu = build_machine(PRINT_STRING, out)
    run_until_end(cpu)
    assert out.getvalue() == "Hi" + END


def test_print_char_call():
    out = io.StringIO()
    cpu = build_machine(PRINT_CHAR, out)
    run_until_end(cpu)
    assert out.getvalue() == "A" + END


def test_string_stops_at_nul():
    program = bytearray(PRINT_STRING[:11]) + b"A\x00B$"
    out = io.StringIO()
    cpu = build_machine(bytes(program), out)
    run_until_end(cpu)
    assert out.getvalue() == "A\x00" + END


def test_program_too_large():
    with pytest.raises(ValueError):
        build_machine(bytes(0x10000), io.StringIO())


def test_run_exerciser_ends(tmp_path):
    path = tmp_path / "prog.com"
    path.write_bytes(PRINT_STRING)
    out = io.StringIO()
    assert run_exerciser(path, out) is True
    assert out.getvalue() == "Hi" + END


def test_run_exerciser_budget_exhausted(tmp_path):
    path = tmp_path / "loop.com"
    path.write_bytes(LOOP_FOREVER)
    out = io.StringIO()
    assert run_exerciser(path, out, 5000) is False
    assert out.getvalue() == ""


def test_run_exerciser_missing_file(tmp_path):
    with pytest.raises(OSError):
        run_exerciser(tmp_path / "absent.com", io.StringIO())


def test_main_usage(capsys):
    assert main([]) == 1
    assert "zex `file`" in capsys.readouterr().out


def test_main_missing_file(tmp_path, capsys):
    assert main([str(tmp_path / "absent.com")]) == 1
    assert capsys.readouterr().out.strip() != ""


def test_main_runs_program(tmp_path, capsys):
    path = tmp_path / "prog.com"
    path.write_bytes(PRINT_CHAR)
    assert main([str(path)]) == 0
    assert capsys.readouterr().out == "A" + END