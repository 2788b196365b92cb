import io
import sys
from unittest import mock

import pytest

from rvos.console import Console
from rvos.shell import MAXARGS, Shell, main, parse_line
from rvos.syscalls import SyscallError, System


def make_shell(stdin="", files=None):
    out = io.StringIO()
    system = System(root=files, console=Console(io.StringIO(stdin), out))
    return Shell(system, None), system, out


def test_parse_line_splits_on_whitespace():
    assert parse_line("  ls  -l\tx\r\n") == ["ls", "-l", "x"]


def test_parse_line_empty():
    assert parse_line(" \t ") == []


def test_parse_line_limits_word_count():
    words = [f"w{i}" for i in range(40)]
    parsed = parse_line(" ".join(words))
    assert len(parsed) == MAXARGS - 1
    assert parsed == words[:MAXARGS - 1]


def test_execute_empty_is_noop():
    shell, _, out = make_shell()
    assert shell.execute([]) == 0
    assert out.getvalue() == ""


def test_help_and_exit():
    shell, system, out = make_shell("help\nexit\n")
    assert shell.run() == 0
    text = out.getvalue()
    assert "=== RISC-V OS Shell 帮助 ===\n" in text
    assert text.endswith("再见！\n")
    with pytest.raises(SyscallError):
        system.getpid()


def test_exit_with_arguments_is_refused():
    shell, _, out = make_shell()
    assert shell.execute(["exit", "now"]) == 1
    assert out.getvalue() == "用法: exit\n"


def test_end_of_input_stops_shell():
    shell, _, out = make_shell("")
    assert shell.run() == 0
    assert out.getvalue().endswith("$ \n读取输入失败，退出\n")


def test_pid_builtin():
    shell, system, out = make_shell()
    assert shell.execute(["pid"]) == 0
    assert out.getvalue() == f"当前进程ID: {system.getpid()}\n"


def test_clear_builtin():
    shell, _, out = make_shell()
    assert shell.execute(["clear"]) == 0
    assert out.getvalue() == "\033[2J\033[H"


def test_sleep_without_argument():
    shell, _, out = make_shell()
    assert shell.execute(["sleep"]) == 1
    assert out.getvalue() == "用法: sleep <秒数>\n"


def test_sleep_rejects_non_number():
    shell, _, out = make_shell()
    assert shell.execute(["sleep", "abc"]) == 1
    assert out.getvalue() == "错误: 无效的秒数: abc\n"


@mock.patch("rvos.syscalls.time.sleep")
def test_sleep_waits(fake_sleep):
    shell, _, out = make_shell()
    assert shell.execute(["sleep", "2"]) == 0
    fake_sleep.assert_called_once_with(2)
    assert "睡眠 2 秒...\n" in out.getvalue()
    assert out.getvalue().endswith("醒来！\n")


@mock.patch("rvos.syscalls.time.sleep")
def test_fork_runs_child_before_parent(fake_sleep):
    shell, system, out = make_shell()
    parent = system.getpid()
    assert shell.execute(["fork"]) == 0
    text = out.getvalue()
    child_at = text.index("这是子进程")
    parent_at = text.index(f"这是父进程 (pid={parent})")
    assert child_at < parent_at
    assert system.getpid() == parent


def test_external_program_runs():
    shell, system, out = make_shell()
    parent = system.getpid()
    assert shell.execute(["hello"]) == 0
    assert out.getvalue() == "Hello, World!\n"
    assert system.getpid() == parent


def test_external_program_with_absolute_path():
    shell, _, out = make_shell()
    assert shell.execute(["/hello"]) == 0
    assert out.getvalue() == "Hello, World!\n"


def test_unknown_program_reports_error():
    shell, _, out = make_shell()
    assert shell.execute(["nope"]) == 1
    assert out.getvalue() == "错误: 无法执行 'nope'\n提示: 确保程序存在于文件系统中\n"


def test_echo_then_cat_through_shell():
    shell, _, out = make_shell("echo hi f\ncat f\nexit\n")
    assert shell.run() == 0
    assert "$ cat f\nhi\n$ " in out.getvalue()


def test_custom_programs_mapping():
    calls = []

    def probe(system, argv):
        calls.append(list(argv))
        system.exit(7)

    out = io.StringIO()
    system = System(console=Console(io.StringIO(""), out))
    shell = Shell(system, {"probe": probe})
    assert shell.execute(["probe", "x"]) == 7
    assert calls == [["probe", "x"]]


def test_main_runs_on_terminal(monkeypatch, capsys):
    monkeypatch.setattr(sys, "stdin", io.StringIO("exit\n"))
    assert main([]) == 0
    assert "再见！" in capsys.readouterr().out