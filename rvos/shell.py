"""An interactive shell with built-in commands and external programs."""

from __future__ import annotations

import re
from typing import Any, Callable, Mapping, Sequence

from .console import Console
from .fmt import uformat
from .programs import PROGRAMS, Program
from .syscalls import ProgramExit, SyscallError, System

__all__ = ["MAXLINE", "MAXARGS", "Shell", "parse_line", "main"]

MAXLINE = 256
MAXARGS = 32

_WHITESPACE = re.compile(r"[ \t\n\r]+")


def parse_line(line: str) -> list[str]:
    """Split a command line into at most ``MAXARGS - 1`` words."""
    return [word for word in _WHITESPACE.split(line) if word][:MAXARGS - 1]


def _atoi(text: str) -> int:
    match = re.match(r"[0-9]*", text)
    digits = match.group(0) if match else ""
    return int(digits) if digits else 0


class Shell:
    """Reads command lines from standard input and runs them."""

    def __init__(self, system: System, programs: Mapping[str, Program] | None = None) -> None:
        self.system = system
        self.programs = dict(PROGRAMS if programs is None else programs)
        self._builtins: dict[str, Callable[[list[str]], int]] = {
            "exit": self._cmd_exit,
            "help": self._cmd_help,
            "pid": self._cmd_pid,
            "fork": self._cmd_fork,
            "sleep": self._cmd_sleep,
            "clear": self._cmd_clear,
        }

    def _say(self, fmt: str, *args: Any) -> None:
        self.system.write(1, uformat(fmt, *args))

    def _cmd_exit(self, argv: list[str]) -> int:
        if len(argv) > 1:
            self._say("用法: exit\n")
            return 1
        self._say("再见！\n")
        self.system.exit(0)
        return 0

    def _cmd_help(self, argv: list[str]) -> int:
        self._say("=== RISC-V OS Shell 帮助 ===\n")
        self._say("内置命令:\n")
        self._say("  exit        - 退出shell\n")
        self._say("  help        - 显示此帮助信息\n")
        self._say("  pid         - 显示当前进程ID\n")
        self._say("  fork        - 测试fork功能\n")
        self._say("  sleep <n>   - 睡眠n秒\n")
        self._say("  clear       - 清除屏幕\n")
        self._say("\n")
        self._say("外部程序:\n")
        self._say("  可以执行文件系统中的程序，例如: /hello\n")
        return 0

    def _cmd_pid(self, argv: list[str]) -> int:
        self._say("当前进程ID: %d\n", self.system.getpid())
        return 0

    def _cmd_fork(self, argv: list[str]) -> int:
        self._say("执行fork测试...\n")
        try:
            child = self.system.fork()
        except SyscallError:
            self._say("fork失败\n")
            return 1
        try:
            self._say("这是子进程 (pid=%d)\n", self.system.getpid())
            self.system.sleep(1)
            self._say("子进程退出\n")
            self.system.exit(0)
        except ProgramExit:
            pass
        self._say("这是父进程 (pid=%d), 子进程pid=%d\n", self.system.getpid(), child)
        status = self.system.wait()
        self._say("父进程等待子进程结束，返回值: %d\n", status)
        return 0

    def _cmd_sleep(self, argv: list[str]) -> int:
        if len(argv) < 2:
            self._say("用法: sleep <秒数>\n")
            return 1
        seconds = _atoi(argv[1])
        if seconds <= 0:
            self._say("错误: 无效的秒数: %s\n", argv[1])
            return 1
        self._say("睡眠 %d 秒...\n", seconds)
        self.system.sleep(seconds)
        self._say("醒来！\n")
        return 0

    def _cmd_clear(self, argv: list[str]) -> int:
        self._say("\033[2J")
        self._say("\033[H")
        return 0

    def _execute_external(self, argv: list[str]) -> int:
        path = argv[0] if argv[0].startswith("/") else "/" + argv[0]
        try:
            self.system.fork()
        except SyscallError:
            self._say("错误: fork失败\n")
            return 1
        try:
            program = self.programs.get(path[1:])
            if program is None:
                self._say("错误: 无法执行 '%s'\n", argv[0])
                self._say("提示: 确保程序存在于文件系统中\n")
                self.system.exit(1)
            else:
                program(self.system, list(argv))
            self.system.exit(0)
        except ProgramExit as done:
            status = done.status
        self.system.wait()
        return status

    def execute(self, argv: Sequence[str]) -> int:
        """Run one parsed command line and return its status."""
        words = list(argv)
        if not words:
            return 0
        builtin = self._builtins.get(words[0])
        if builtin is not None:
            return builtin(words)
        return self._execute_external(words)

    def _loop(self) -> int:
        self._say("\n")
        self._say("=== RISC-V OS Shell ===\n")
        self._say("输入 'help' 查看可用命令\n")
        self._say("输入 'exit' 退出\n")
        self._say("\n")
        while True:
            self._say("$ ")
            try:
                data = self.system.read(0, MAXLINE - 1)
            except SyscallError:
                data = b""
            if not data:
                self._say("\n读取输入失败，退出\n")
                return 0
            line = data.decode("utf-8", errors="replace")
            if line.endswith("\n"):
                line = line[:-1]
            words = parse_line(line)
            if words:
                self.execute(words)

    def run(self) -> int:
        """Run until ``exit`` or end of input; return the exit status."""
        try:
            return self._loop()
        except ProgramExit as done:
            return done.status


def _shell_program(system: System, argv: Sequence[str]) -> None:
    Shell(system, _default_programs())._loop()
    system.exit(0)


def _default_programs() -> dict[str, Program]:
    programs: dict[str, Program] = dict(PROGRAMS)
    programs["shell"] = _shell_program
    programs["init"] = _shell_program
    return programs


def main(argv: Sequence[str] | None = None) -> int:
    """Start a shell on the terminal and return its exit status."""
    system = System(console=Console())
    return Shell(system, _default_programs()).run()


if __name__ == "__main__":
    raise SystemExit(main())