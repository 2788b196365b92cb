import pytest

from rvos.traps import (
    CAUSE_INTERRUPT_FLAG,
    DeviceKind,
    ExceptionCause,
    InterruptCause,
    KernelPanic,
    TrapAction,
    TrapFrame,
    decode_scause,
    devintr,
    handle_exception,
    handle_syscall,
    usertrap_action,
)


def test_decode_exception_and_interrupt():
    assert decode_scause(2) is ExceptionCause.ILLEGAL_INSTRUCTION
    assert decode_scause(0x8000000000000005) is InterruptCause.TIMER
    assert decode_scause(0x8000000000000009) is InterruptCause.EXTERNAL


def test_decode_unknown_raises():
    with pytest.raises(ValueError):
        decode_scause(10)
    with pytest.raises(ValueError):
        decode_scause(CAUSE_INTERRUPT_FLAG | 3)


def test_devintr_classification():
    assert devintr(0x8000000000000009) is DeviceKind.DEVICE
    assert devintr(0x8000000000000005) is DeviceKind.TIMER
    assert devintr(0x8000000000000001) is DeviceKind.UNKNOWN
    assert devintr(ExceptionCause.USER_ECALL) is DeviceKind.UNKNOWN
    assert int(DeviceKind.TIMER) == 2


def test_usertrap_actions():
    assert usertrap_action(0x8000000000000005) is TrapAction.YIELD
    assert usertrap_action(0x8000000000000009) is TrapAction.RESUME
    assert usertrap_action(ExceptionCause.USER_ECALL) is TrapAction.SYSCALL
    for cause in (
        ExceptionCause.LOAD_ACCESS_FAULT,
        ExceptionCause.LOAD_PAGE_FAULT,
        ExceptionCause.STORE_PAGE_FAULT,
        ExceptionCause.INSTRUCTION_PAGE_FAULT,
        ExceptionCause.ILLEGAL_INSTRUCTION,
    ):
        assert usertrap_action(cause) is TrapAction.KILL


def test_handle_syscall_dispatches_and_advances_epc():
    frame = TrapFrame(a7=2, epc=0x1000)
    result = handle_syscall(frame, {2: lambda: 7})
    assert result == 7
    assert frame.a0 == 7
    assert frame.epc == 0x1000 + 4


def test_handle_syscall_unknown_returns_minus_one():
    frame = TrapFrame(a7=99, epc=0x2000)
    handle_syscall(frame, {2: lambda: 7})
    assert frame.a0 == (1 << 64) - 1
    assert frame.epc == 0x2000 + 4


def test_handle_syscall_zero_and_missing_handler():
    frame = TrapFrame(a7=0)
    handle_syscall(frame, {0: lambda: 5})
    assert frame.a0 == (1 << 64) - 1
    frame = TrapFrame(a7=3)
    handle_syscall(frame, {3: None})
    assert frame.a0 == (1 << 64) - 1


def test_breakpoint_steps_over_instruction():
    frame = TrapFrame(epc=0x80001000)
    handle_exception(frame, ExceptionCause.BREAKPOINT)
    assert frame.epc == 0x80001000 + 2


def test_ecall_goes_through_table():
    frame = TrapFrame(a7=1, epc=0x100)
    handle_exception(frame, ExceptionCause.SUPERVISOR_ECALL, 0, {1: lambda: 0})
    assert frame.a0 == 0
    assert frame.epc == 0x100 + 4


@pytest.mark.parametrize(
    "cause, message",
    [
        (ExceptionCause.INSTRUCTION_MISALIGNED, "Instruction misaligned"),
        (ExceptionCause.ILLEGAL_INSTRUCTION, "Illegal instruction"),
        (ExceptionCause.LOAD_MISALIGNED, "Load misaligned"),
        (ExceptionCause.STORE_ACCESS_FAULT, "Store access fault"),
        (ExceptionCause.LOAD_PAGE_FAULT, "Load page fault"),
        (ExceptionCause.STORE_PAGE_FAULT, "Store page fault"),
    ],
)
def test_fatal_exceptions_panic(cause, message):
    with pytest.raises(KernelPanic) as info:
        handle_exception(TrapFrame(), cause, 0x80000001)
    assert info.value.message == message


def test_load_fault_detail_includes_address():
    with pytest.raises(KernelPanic) as info:
        handle_exception(TrapFrame(), ExceptionCause.LOAD_MISALIGNED, 0x80000001)
    assert "0x80000001" in info.value.detail


def test_unknown_exception_panics():
    with pytest.raises(KernelPanic, match="Unknown exception"):
        handle_exception(TrapFrame(), 10)
    with pytest.raises(KernelPanic, match="Unknown exception"):
        handle_exception(TrapFrame(), 0x8000000000000005)


def test_trapframe_round_trip_and_layout():
    frame = TrapFrame(ra=1, sp=2, a0=3, a7=4, t6=5, epc=6)
    data = frame.to_bytes()
    assert len(data) == TrapFrame.SIZE == 256
    assert TrapFrame.from_bytes(data) == frame
    names = TrapFrame.register_names()
    assert names[0] == "ra"
    assert names[-1] == "epc"
    assert names.index("a0") * 8 == 72
    assert names.index("a7") * 8 == 128


def test_trapframe_from_short_data_raises():
    with pytest.raises(ValueError):
        TrapFrame.from_bytes(b"\x00" * 10)