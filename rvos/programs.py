"""User programs run from the shell: cat, delete, echo, hello, t, touch and ls."""

from __future__ import annotations

import struct
from typing import Any, Callable, Mapping, Sequence

from .fmt import uformat
from .syscalls import (
    DIRENT_SIZE,
    DIRSIZ,
    FileType,
    OpenFlag,
    ProgramExit,
    Stat,
    SyscallError,
    System,
)

__all__ = [
    "BUF_SIZE",
    "Program",
    "PROGRAMS",
    "cat",
    "delete",
    "echo",
    "hello",
    "t",
    "touch",
    "ls",
    "run_program",
]

BUF_SIZE = 512

Program = Callable[[System, Sequence[str]], None]

_DIRENT = struct.Struct(f"<H{DIRSIZ}s")

_TYPE_LABELS = {
    FileType.DIR: "DIR ",
    FileType.FILE: "FILE",
    FileType.DEVICE: "DEV ",
}


def _print(system: System, fmt: str, *args: Any) -> None:
    system.write(1, uformat(fmt, *args))


def cat(system: System, argv: Sequence[str]) -> None:
    """Copy a file to standard output."""
    if len(argv) < 2:
        _print(system, "用法: cat <文件名>\n")
        system.exit(1)
    try:
        fd = system.open(argv[1], OpenFlag.RDONLY)
    except SyscallError:
        _print(system, "cat: 无法打开文件 '%s'\n", argv[1])
        system.exit(1)
        return
    try:
        while chunk := system.read(fd, BUF_SIZE):
            system.write(1, chunk)
    except SyscallError:
        _print(system, "cat: 读取错误\n")
        system.close(fd)
        system.exit(1)
    system.close(fd)
    system.exit(0)


def delete(system: System, argv: Sequence[str]) -> None:
    """Remove a file."""
    if len(argv) < 2:
        _print(system, "用法: delete <文件名>\n")
        system.exit(1)
    try:
        system.unlink(argv[1])
    except SyscallError:
        _print(system, "delete: 无法删除文件 '%s'\n", argv[1])
        system.exit(1)
    _print(system, "已删除: %s\n", argv[1])
    system.exit(0)


def echo(system: System, argv: Sequence[str]) -> None:
    """Write a line of text to a file, replacing what it held."""
    if len(argv) < 3:
        _print(system, "用法: echo <内容> <文件名>\n")
        _print(system, "示例: echo \"Hello World\" test.txt\n")
        system.exit(1)
    try:
        fd = system.open(argv[2], OpenFlag.CREATE | OpenFlag.WRONLY | OpenFlag.TRUNC)
    except SyscallError:
        _print(system, "echo: 无法打开文件 '%s'\n", argv[2])
        system.exit(1)
        return
    content = argv[1].encode("utf-8")
    try:
        written = system.write(fd, content)
    except SyscallError:
        written = -1
    if written != len(content):
        _print(system, "echo: 写入失败\n")
        system.close(fd)
        system.exit(1)
    system.write(fd, b"\n")
    system.close(fd)
    system.exit(0)


def hello(system: System, argv: Sequence[str]) -> None:
    """Greet the world."""
    _print(system, "Hello, World!\n")
    system.exit(0)


def t(system: System, argv: Sequence[str]) -> None:
    """Exit at once with status 0."""
    system.exit(0)


def touch(system: System, argv: Sequence[str]) -> None:
    """Create a file if it does not exist."""
    if len(argv) < 2:
        _print(system, "用法: touch <文件名>\n")
        system.exit(1)
    try:
        fd = system.open(argv[1], OpenFlag.CREATE | OpenFlag.WRONLY)
    except SyscallError:
        _print(system, "touch: 无法创建文件 '%s'\n", argv[1])
        system.exit(1)
        return
    system.close(fd)
    system.exit(0)


def _print_file(system: System, name: str, st: Stat) -> None:
    label = _TYPE_LABELS.get(st.type, "??? ")
    _print(system, "%s %d %s\n", label, int(st.size), name)


def _stat_path(system: System, path: str) -> Stat:
    fd = system.open(path, OpenFlag.RDONLY)
    try:
        return system.fstat(fd)
    finally:
        system.close(fd)


def _ls_dir(system: System, path: str) -> None:
    try:
        fd = system.open(path, OpenFlag.RDONLY)
    except SyscallError:
        _print(system, "ls: 无法打开目录 %s\n", path)
        return
    prefix = path if not path or path.endswith("/") else path + "/"
    while len(raw := system.read(fd, DIRENT_SIZE)) == DIRENT_SIZE:
        inum, raw_name = _DIRENT.unpack(raw)
        if inum == 0:
            continue
        name = raw_name.split(b"\0", 1)[0].decode("utf-8", errors="replace")
        if name in (".", ".."):
            continue
        try:
            file_fd = system.open(prefix + name, OpenFlag.RDONLY)
        except SyscallError:
            _print(system, "%s\n", name)
            continue
        try:
            st = system.fstat(file_fd)
        except SyscallError:
            _print(system, "%s\n", name)
            system.close(file_fd)
            continue
        system.close(file_fd)
        _print_file(system, name, st)
    system.close(fd)


def _ls_file(system: System, path: str) -> None:
    try:
        fd = system.open(path, OpenFlag.RDONLY)
    except SyscallError:
        _print(system, "ls: 无法打开 %s\n", path)
        return
    try:
        st = system.fstat(fd)
    except SyscallError:
        _print(system, "ls: 无法获取 %s 的状态\n", path)
        system.close(fd)
        return
    system.close(fd)
    _print_file(system, path.rpartition("/")[2], st)


def _ls(system: System, path: str) -> None:
    try:
        fd = system.open(path, OpenFlag.RDONLY)
    except SyscallError:
        _print(system, "ls: 无法打开 %s\n", path)
        return
    try:
        st = system.fstat(fd)
    except SyscallError:
        _print(system, "ls: 无法获取 %s 的状态\n", path)
        system.close(fd)
        return
    system.close(fd)
    if st.type == FileType.FILE:
        _ls_file(system, path)
    elif st.type == FileType.DIR:
        _ls_dir(system, path)
    else:
        _print(system, "ls: %s 类型未知\n", path)


def ls(system: System, argv: Sequence[str]) -> None:
    """List directories and describe files."""
    paths = list(argv[1:])
    if not paths:
        _ls(system, ".")
    else:
        for index, path in enumerate(paths):
            if len(paths) > 1:
                _print(system, "%s:\n", path)
            _ls(system, path)
            if index < len(paths) - 1:
                _print(system, "\n")
    system.exit(0)


PROGRAMS: Mapping[str, Program] = {
    "cat": cat,
    "delete": delete,
    "echo": echo,
    "hello": hello,
    "t": t,
    "touch": touch,
    "ls": ls,
}


def run_program(system: System, name: str, argv: Sequence[str]) -> int:
    """Run a program in a forked child, wait for it, and return its exit status."""
    program = PROGRAMS.get(name)
    if program is None:
        raise KeyError(f"no such program: {name}")
    system.fork()
    try:
        program(system, list(argv))
        system.exit(0)
    except ProgramExit as done:
        status = done.status
    system.wait()
    return status