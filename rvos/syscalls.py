"""System calls over an in-memory file system and a small process table."""

from __future__ import annotations

import struct
import time
from dataclasses import dataclass, field
from enum import Enum, IntEnum, IntFlag
from typing import Any, Callable, Mapping, Optional, Union

from .console import Console
from .memory import PGSIZE

__all__ = [
    "NPROC",
    "NOFILE",
    "NFILE",
    "ROOTDEV",
    "ROOTINO",
    "MAXARG",
    "MAXPATH",
    "DIRSIZ",
    "DIRENT_SIZE",
    "SyscallNumber",
    "OpenFlag",
    "FileType",
    "Stat",
    "SyscallError",
    "ProgramExit",
    "System",
]

NPROC = 64
NOFILE = 16
NFILE = 100
ROOTDEV = 1
ROOTINO = 1
MAXARG = 32
MAXPATH = 128
DIRSIZ = 14

_DIRENT = struct.Struct("<H14s")
DIRENT_SIZE = _DIRENT.size
_FIRST_FD = 3


class SyscallNumber(IntEnum):
    """System call numbers shared by the kernel and user programs."""

    EXIT = 1
    GETPID = 2
    FORK = 3
    WAIT = 4
    READ = 5
    WRITE = 6
    OPEN = 7
    CLOSE = 8
    EXEC = 9
    SBRK = 10
    SLEEP = 11
    FSTAT = 12
    UNLINK = 13
    MKDIR = 14


class OpenFlag(IntFlag):
    """Flags accepted by ``System.open``."""

    RDONLY = 0x000
    WRONLY = 0x001
    RDWR = 0x002
    CREATE = 0x200
    TRUNC = 0x400


class FileType(IntEnum):
    """Kinds of inode."""

    DIR = 1
    FILE = 2
    DEVICE = 3


@dataclass(frozen=True)
class Stat:
    """What ``fstat`` reports about an open file."""

    dev: int
    ino: int
    type: FileType
    nlink: int
    size: int


class SyscallError(OSError):
    """A system call failed (the kernel would have returned -1)."""


class ProgramExit(Exception):
    """Raised by ``exit``: the calling process has finished."""

    def __init__(self, status: int, pid: int) -> None:
        super().__init__(f"process {pid} exited with status {status}")
        self.status = status
        self.pid = pid


@dataclass
class _DirEntry:
    inum: int
    name: str


@dataclass
class _Inode:
    inum: int
    type: FileType
    nlink: int = 1
    data: bytearray = field(default_factory=bytearray)
    entries: list[_DirEntry] = field(default_factory=list)

    @property
    def size(self) -> int:
        if self.type == FileType.DIR:
            return DIRENT_SIZE * len(self.entries)
        return len(self.data)

    def contents(self) -> bytes:
        if self.type == FileType.DIR:
            return b"".join(
                _DIRENT.pack(entry.inum, entry.name.encode("utf-8"))
                for entry in self.entries
            )
        return bytes(self.data)


@dataclass
class _OpenFile:
    inode: _Inode
    readable: bool
    writable: bool
    off: int = 0
    ref: int = 1


class _State(Enum):
    RUNNING = "running"
    ZOMBIE = "zombie"


@dataclass
class _Process:
    pid: int
    parent: Optional[int]
    ofile: list[Optional[_OpenFile]] = field(default_factory=lambda: [None] * NOFILE)
    state: _State = _State.RUNNING
    status: int = 0


class System:
    """The kernel's system-call interface for a single-CPU machine.

    The file system lives in memory; ``root`` gives the files initially
    present in the root directory, by name. A forked child runs first: it
    is the current process until it exits, after which its parent resumes.
    """

    def __init__(
        self,
        root: Mapping[str, Union[bytes, str]] | None = None,
        console: Console | None = None,
    ) -> None:
        self.console = console if console is not None else Console()
        self._inodes: dict[int, _Inode] = {}
        self._next_inum = ROOTINO
        self._root = self._ialloc(FileType.DIR)
        self._root.entries = [_DirEntry(ROOTINO, "."), _DirEntry(ROOTINO, "..")]
        for name, content in (root or {}).items():
            if not name or "/" in name or len(name) > DIRSIZ or name in (".", ".."):
                raise ValueError(f"invalid file name: {name!r}")
            ip = self._ialloc(FileType.FILE)
            ip.data = bytearray(content.encode("utf-8") if isinstance(content, str) else content)
            self._dirlink(self._root, name, ip.inum)
        self._procs: dict[int, _Process] = {}
        self._nextpid = 1
        first = self._allocproc(None)
        self._initpid = first.pid
        self._current: Optional[int] = first.pid

    # processes

    def getpid(self) -> int:
        """Pid of the current process."""
        return self._proc.pid

    def fork(self) -> int:
        """Create a child sharing the open files; the child becomes current.

        Returns the child's pid.
        """
        parent = self._proc
        if len(self._procs) >= NPROC:
            raise SyscallError("process table full")
        child = self._allocproc(parent.pid)
        for fd, f in enumerate(parent.ofile):
            if f is not None:
                f.ref += 1
                child.ofile[fd] = f
        self._current = child.pid
        return child.pid

    def wait(self) -> int:
        """Reap an exited child of the current process and return its pid."""
        p = self._proc
        children = [c for c in self._procs.values() if c.parent == p.pid]
        if not children:
            raise SyscallError("no children to wait for")
        for child in children:
            if child.state is _State.ZOMBIE:
                del self._procs[child.pid]
                return child.pid
        raise SyscallError("no child has exited")

    def exit(self, status: int) -> None:
        """End the current process; always raises ProgramExit."""
        p = self._proc
        for fd, f in enumerate(p.ofile):
            if f is not None:
                f.ref -= 1
                p.ofile[fd] = None
        for other in self._procs.values():
            if other.parent == p.pid:
                other.parent = self._initpid if p.pid != self._initpid else None
        p.state = _State.ZOMBIE
        p.status = status
        self._current = p.parent if p.parent in self._procs else None
        raise ProgramExit(status, p.pid)

    def sleep(self, seconds: int) -> int:
        """Sleep for a whole number of seconds."""
        self.console.puts("[U->K] sys_sleep()\n")
        if seconds < 0:
            raise SyscallError("negative sleep time")
        if seconds == 0:
            return 0
        time.sleep(seconds)
        return 0

    # files

    def open(self, path: str, flags: int = OpenFlag.RDONLY) -> int:
        """Open (and with CREATE, create) a file; return its descriptor."""
        p = self._proc
        self._check_path(path)
        flags = int(flags)
        if flags & OpenFlag.CREATE:
            ip = self._create(path, FileType.FILE)
        else:
            ip = self._namei(path)
        if self._open_file_count() >= NFILE:
            raise SyscallError("file table full")
        fd = next((fd for fd in range(_FIRST_FD, NOFILE) if p.ofile[fd] is None), None)
        if fd is None:
            raise SyscallError("too many open files")
        p.ofile[fd] = _OpenFile(
            inode=ip,
            readable=not flags & OpenFlag.WRONLY,
            writable=bool(flags & (OpenFlag.WRONLY | OpenFlag.RDWR)),
        )
        if flags & OpenFlag.TRUNC and ip.type == FileType.FILE:
            ip.data.clear()
        return fd

    def read(self, fd: int, n: int) -> bytes:
        """Read up to ``n`` bytes; descriptor 0 reads an edited console line."""
        if n < 0:
            raise SyscallError("negative read length")
        self._proc
        if fd == 0:
            try:
                line = self.console.read_line(min(n, PGSIZE))
            except EOFError:
                return b""
            return line.encode("utf-8")
        f = self._file(fd)
        if not f.readable:
            raise SyscallError(f"descriptor {fd} is not readable")
        chunk = f.inode.contents()[f.off:f.off + n]
        f.off += len(chunk)
        return chunk

    def write(self, fd: int, data: Union[bytes, str]) -> int:
        """Write data; descriptors 1 and 2 go to the console. Returns the byte count."""
        payload = data.encode("utf-8") if isinstance(data, str) else bytes(data)
        self._proc
        if fd in (1, 2):
            self.console.puts(payload.decode("utf-8", errors="replace"))
            return len(payload)
        f = self._file(fd)
        if not f.writable:
            raise SyscallError(f"descriptor {fd} is not writable")
        ip = f.inode
        if ip.type == FileType.DIR:
            raise SyscallError("cannot write to a directory")
        ip.data[f.off:f.off + len(payload)] = payload
        f.off += len(payload)
        return len(payload)

    def close(self, fd: int) -> int:
        """Close a descriptor."""
        f = self._file(fd)
        self._proc.ofile[fd] = None
        f.ref -= 1
        return 0

    def fstat(self, fd: int) -> Stat:
        """Describe the file behind a descriptor."""
        ip = self._file(fd).inode
        return Stat(ROOTDEV, ip.inum, ip.type, ip.nlink, ip.size)

    def unlink(self, path: str) -> int:
        """Remove a file's directory entry; directories are refused."""
        self._proc
        self._check_path(path)
        dp, name = self._nameiparent(path)
        entry = self._entry(dp, name)
        if entry is None:
            raise SyscallError(f"no such file: {path}")
        ip = self._inodes[entry.inum]
        if ip.type == FileType.DIR:
            raise SyscallError(f"cannot unlink a directory: {path}")
        ip.nlink -= 1
        entry.inum = 0
        entry.name = ""
        return 0

    def mkdir(self, path: str) -> int:
        """Create a directory."""
        self._proc
        self._check_path(path)
        self._create(path, FileType.DIR)
        return 0

    def dispatch(self, num: int, *args: Any) -> Any:
        """Run system call ``num``; a failing call yields -1."""
        handlers: dict[SyscallNumber, Callable[..., Any]] = {
            SyscallNumber.EXIT: self.exit,
            SyscallNumber.GETPID: self.getpid,
            SyscallNumber.FORK: self.fork,
            SyscallNumber.WAIT: self.wait,
            SyscallNumber.READ: self.read,
            SyscallNumber.WRITE: self.write,
            SyscallNumber.OPEN: self.open,
            SyscallNumber.CLOSE: self.close,
            SyscallNumber.EXEC: self._unsupported,
            SyscallNumber.SBRK: self._unsupported,
            SyscallNumber.SLEEP: self.sleep,
            SyscallNumber.FSTAT: self.fstat,
            SyscallNumber.UNLINK: self.unlink,
            SyscallNumber.MKDIR: self.mkdir,
        }
        try:
            handler = handlers[SyscallNumber(num)]
        except ValueError:
            self.console.puts(f"Unknown syscall {num} from pid={self._current}\n")
            return -1
        try:
            return handler(*args)
        except SyscallError:
            return -1

    # internals

    @property
    def _proc(self) -> _Process:
        if self._current is None:
            raise SyscallError("no running process")
        return self._procs[self._current]

    def _unsupported(self, *args: Any) -> int:
        raise SyscallError("system call not supported")

    def _allocproc(self, parent: Optional[int]) -> _Process:
        proc = _Process(pid=self._nextpid, parent=parent)
        self._nextpid += 1
        self._procs[proc.pid] = proc
        return proc

    def _ialloc(self, type_: FileType) -> _Inode:
        ip = _Inode(inum=self._next_inum, type=type_)
        self._next_inum += 1
        self._inodes[ip.inum] = ip
        return ip

    def _open_file_count(self) -> int:
        return len({id(f) for p in self._procs.values() for f in p.ofile if f is not None})

    def _file(self, fd: int) -> _OpenFile:
        p = self._proc
        if not 0 <= fd < NOFILE or p.ofile[fd] is None:
            raise SyscallError(f"bad file descriptor: {fd}")
        return p.ofile[fd]

    @staticmethod
    def _check_path(path: str) -> None:
        if len(path) >= MAXPATH:
            raise SyscallError("path too long")

    @staticmethod
    def _components(path: str) -> list[str]:
        return [part[:DIRSIZ] for part in path.split("/") if part]

    @staticmethod
    def _entry(dp: _Inode, name: str) -> Optional[_DirEntry]:
        return next((e for e in dp.entries if e.inum != 0 and e.name == name), None)

    def _walk(self, parts: list[str]) -> _Inode:
        ip = self._root
        for name in parts:
            if ip.type != FileType.DIR:
                raise SyscallError(f"not a directory on the way to {name!r}")
            entry = self._entry(ip, name)
            if entry is None:
                raise SyscallError(f"no such file or directory: {name!r}")
            ip = self._inodes[entry.inum]
        return ip

    def _namei(self, path: str) -> _Inode:
        return self._walk(self._components(path))

    def _nameiparent(self, path: str) -> tuple[_Inode, str]:
        parts = self._components(path)
        if not parts:
            raise SyscallError(f"no parent directory for {path!r}")
        dp = self._walk(parts[:-1])
        if dp.type != FileType.DIR:
            raise SyscallError(f"not a directory: {path!r}")
        return dp, parts[-1]

    def _dirlink(self, dp: _Inode, name: str, inum: int) -> None:
        for entry in dp.entries:
            if entry.inum == 0:
                entry.inum = inum
                entry.name = name
                return
        dp.entries.append(_DirEntry(inum, name))

    def _create(self, path: str, type_: FileType) -> _Inode:
        dp, name = self._nameiparent(path)
        entry = self._entry(dp, name)
        if entry is not None:
            existing = self._inodes[entry.inum]
            if type_ == FileType.FILE and existing.type in (FileType.FILE, FileType.DEVICE):
                return existing
            raise SyscallError(f"already exists: {path!r}")
        ip = self._ialloc(type_)
        if type_ == FileType.DIR:
            ip.entries = [_DirEntry(ip.inum, "."), _DirEntry(dp.inum, "..")]
            dp.nlink += 1
        self._dirlink(dp, name, ip.inum)
        return ip