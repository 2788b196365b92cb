"""Trap decoding and dispatch: exceptions, device interrupts and system calls."""

from __future__ import annotations

import struct
from dataclasses import astuple, dataclass, fields
from enum import Enum, IntEnum
from typing import Callable, Mapping, Optional

__all__ = [
    "CAUSE_INTERRUPT_FLAG",
    "ExceptionCause",
    "InterruptCause",
    "DeviceKind",
    "TrapAction",
    "TrapFrame",
    "KernelPanic",
    "SyscallTable",
    "decode_scause",
    "devintr",
    "usertrap_action",
    "handle_syscall",
    "handle_exception",
]

CAUSE_INTERRUPT_FLAG = 0x8000000000000000
_MASK64 = (1 << 64) - 1

SyscallTable = Mapping[int, Optional[Callable[[], int]]]


class ExceptionCause(IntEnum):
    """Synchronous trap causes (scause without the interrupt bit)."""

    INSTRUCTION_MISALIGNED = 0
    INSTRUCTION_ACCESS_FAULT = 1
    ILLEGAL_INSTRUCTION = 2
    BREAKPOINT = 3
    LOAD_MISALIGNED = 4
    LOAD_ACCESS_FAULT = 5
    STORE_MISALIGNED = 6
    STORE_ACCESS_FAULT = 7
    USER_ECALL = 8
    SUPERVISOR_ECALL = 9
    MACHINE_ECALL = 11
    INSTRUCTION_PAGE_FAULT = 12
    LOAD_PAGE_FAULT = 13
    STORE_PAGE_FAULT = 15


class InterruptCause(IntEnum):
    """Asynchronous trap causes (scause with the interrupt bit cleared)."""

    SOFTWARE = 1
    TIMER = 5
    EXTERNAL = 9


class DeviceKind(IntEnum):
    """What a device interrupt turned out to be."""

    UNKNOWN = 0
    DEVICE = 1
    TIMER = 2


class TrapAction(Enum):
    """What the kernel does after a trap taken from user mode."""

    RESUME = "resume"
    YIELD = "yield"
    SYSCALL = "syscall"
    KILL = "kill"


class KernelPanic(Exception):
    """An unrecoverable kernel condition."""

    def __init__(self, message: str, detail: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail


_FRAME_LAYOUT = struct.Struct("<32Q")


@dataclass
class TrapFrame:
    """Registers saved on a kernel trap, in their in-memory order."""

    ra: int = 0
    sp: int = 0
    gp: int = 0
    tp: int = 0
    t0: int = 0
    t1: int = 0
    t2: int = 0
    s0: int = 0
    s1: int = 0
    a0: int = 0
    a1: int = 0
    a2: int = 0
    a3: int = 0
    a4: int = 0
    a5: int = 0
    a6: int = 0
    a7: int = 0
    s2: int = 0
    s3: int = 0
    s4: int = 0
    s5: int = 0
    s6: int = 0
    s7: int = 0
    s8: int = 0
    s9: int = 0
    s10: int = 0
    s11: int = 0
    t3: int = 0
    t4: int = 0
    t5: int = 0
    t6: int = 0
    epc: int = 0

    SIZE = _FRAME_LAYOUT.size

    @classmethod
    def from_bytes(cls, data: bytes) -> "TrapFrame":
        """Decode a frame from its little-endian memory image."""
        if len(data) < _FRAME_LAYOUT.size:
            raise ValueError("data too short for a trap frame")
        return cls(*_FRAME_LAYOUT.unpack_from(data, 0))

    def to_bytes(self) -> bytes:
        """The frame's little-endian memory image."""
        return _FRAME_LAYOUT.pack(*(value & _MASK64 for value in astuple(self)))

    @classmethod
    def register_names(cls) -> list[str]:
        """Register names in their memory order."""
        return [f.name for f in fields(cls)]


def decode_scause(scause: int) -> ExceptionCause | InterruptCause:
    """Classify an scause value; raise ValueError for an unknown code."""
    scause &= _MASK64
    code = scause & ~CAUSE_INTERRUPT_FLAG
    try:
        if scause & CAUSE_INTERRUPT_FLAG:
            return InterruptCause(code)
        return ExceptionCause(code)
    except ValueError:
        raise ValueError(f"unknown scause: {scause:#x}") from None


def devintr(scause: int) -> DeviceKind:
    """Tell a supervisor external or timer interrupt from anything else."""
    scause &= _MASK64
    if scause == CAUSE_INTERRUPT_FLAG | InterruptCause.EXTERNAL:
        return DeviceKind.DEVICE
    if scause == CAUSE_INTERRUPT_FLAG | InterruptCause.TIMER:
        return DeviceKind.TIMER
    return DeviceKind.UNKNOWN


def usertrap_action(scause: int) -> TrapAction:
    """Decide how to handle a trap taken from user mode."""
    scause &= _MASK64
    if scause & CAUSE_INTERRUPT_FLAG:
        return TrapAction.YIELD if devintr(scause) is DeviceKind.TIMER else TrapAction.RESUME
    if scause == ExceptionCause.USER_ECALL:
        return TrapAction.SYSCALL
    return TrapAction.KILL


def handle_syscall(frame: TrapFrame, table: SyscallTable) -> int:
    """Run the system call numbered in a7, store its result in a0, step past ecall.

    An unknown number yields -1. Returns the value stored in a0.
    """
    num = frame.a7 & _MASK64
    handler = table.get(num) if num > 0 else None
    result = handler() if handler is not None else -1
    frame.a0 = result & _MASK64
    frame.epc = (frame.epc + 4) & _MASK64
    return frame.a0


_FATAL: dict[ExceptionCause, tuple[str, str]] = {
    ExceptionCause.INSTRUCTION_MISALIGNED: ("Instruction misaligned", "Instruction address misaligned"),
    ExceptionCause.INSTRUCTION_ACCESS_FAULT: ("Instruction access fault", "Instruction access fault"),
    ExceptionCause.ILLEGAL_INSTRUCTION: ("Illegal instruction", "Illegal instruction at 0x{epc:x}"),
    ExceptionCause.LOAD_MISALIGNED: ("Load misaligned", "Load address misaligned: addr=0x{stval:x}"),
    ExceptionCause.LOAD_ACCESS_FAULT: ("Load access fault", "Load access fault: addr=0x{stval:x}"),
    ExceptionCause.STORE_MISALIGNED: ("Store misaligned", "Store address misaligned: addr=0x{stval:x}"),
    ExceptionCause.STORE_ACCESS_FAULT: ("Store access fault", "Store access fault: addr=0x{stval:x}"),
    ExceptionCause.INSTRUCTION_PAGE_FAULT: ("Instruction page fault", "Instruction page fault: addr=0x{stval:x}"),
    ExceptionCause.LOAD_PAGE_FAULT: ("Load page fault", "Load page fault: addr=0x{stval:x}"),
    ExceptionCause.STORE_PAGE_FAULT: ("Store page fault", "Store page fault: addr=0x{stval:x}"),
}


def handle_exception(
    frame: TrapFrame,
    scause: int,
    stval: int = 0,
    table: SyscallTable | None = None,
) -> None:
    """Handle a synchronous kernel exception.

    Breakpoints are stepped over, environment calls are dispatched through
    ``table``; every other cause raises KernelPanic.
    """
    scause &= _MASK64
    cause: ExceptionCause | None = None
    if not scause & CAUSE_INTERRUPT_FLAG:
        try:
            cause = ExceptionCause(scause)
        except ValueError:
            cause = None
    if cause is ExceptionCause.BREAKPOINT:
        frame.epc = (frame.epc + 2) & _MASK64
        return
    if cause in (ExceptionCause.USER_ECALL, ExceptionCause.SUPERVISOR_ECALL):
        handle_syscall(frame, table if table is not None else {})
        return
    if cause in _FATAL:
        message, detail = _FATAL[cause]
        raise KernelPanic(message, detail.format(epc=frame.epc, stval=stval & _MASK64))
    raise KernelPanic("Unknown exception", f"Unknown exception: cause={scause}")