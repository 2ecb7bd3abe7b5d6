import pytest

from xvsim.proc import ProcTable
from xvsim.syscall import SysCall, SyscallTable, TrapFrame, argint


@pytest.fixture
def proc():
    return ProcTable(4).userinit()


@pytest.mark.parametrize("raw, call", [(1, SysCall.FORK), (7, SysCall.EXEC), (22, SysCall.GETPROCS)])
def test_syscall_numbers_dispatch(proc, raw, call):
    table = SyscallTable()
    seen = []

    def handler(p):
        seen.append(call)
        return 0

    table.register(call, handler)
    proc.tf.r0 = raw
    assert table.dispatch(proc) == 0
    assert seen == [call]


def test_argint_reads_r1_to_r4():
    frame = TrapFrame(r1=10, r2=20, r3=30, r4=40)
    assert [argint(frame, n) for n in range(4)] == [10, 20, 30, 40]


def test_argint_is_signed():
    frame = TrapFrame(r1=0xFFFFFFFF)
    assert argint(frame, 0) == -1


def test_argint_rejects_fifth_argument():
    with pytest.raises(ValueError):
        argint(TrapFrame(), 4)


def test_dispatch_runs_handler_and_sets_r0(proc):
    table = SyscallTable()
    table.register(SysCall.GETPID, lambda p: p.pid)
    proc.tf.r0 = SysCall.GETPID
    assert table.dispatch(proc) == proc.pid
    assert proc.tf.r0 == proc.pid
    assert proc.syscall_count == 1


def test_dispatch_passes_arguments(proc):
    table = SyscallTable()
    table.register(SysCall.WRITE, lambda p: argint(p.tf, 2))
    proc.tf.r0 = SysCall.WRITE
    proc.tf.r3 = 5
    assert table.dispatch(proc) == 5


def test_negative_result_stored_as_word(proc):
    table = SyscallTable()
    table.register(SysCall.CLOSE, lambda p: -1)
    proc.tf.r0 = SysCall.CLOSE
    assert table.dispatch(proc) == -1
    assert proc.tf.r0 == 0xFFFFFFFF


def test_exec_keeps_r0(proc):
    table = SyscallTable()

    def fake_exec(p):
        p.tf.r0 = 3
        return 0

    table.register(SysCall.EXEC, fake_exec)
    proc.tf.r0 = SysCall.EXEC
    table.dispatch(proc)
    assert proc.tf.r0 == 3


def test_unknown_call_is_logged(proc):
    messages = []
    table = SyscallTable(messages.append)
    proc.tf.r0 = 99
    assert table.dispatch(proc) == -1
    assert proc.tf.r0 == 0xFFFFFFFF
    assert messages == [f"{proc.pid} initcode: unknown sys call 99"]
    assert proc.syscall_count == 0


def test_unregistered_known_call_is_unknown(proc):
    table = SyscallTable()
    proc.tf.r0 = SysCall.FORK
    assert table.dispatch(proc) == -1


def test_register_rejects_bad_number():
    table = SyscallTable()
    with pytest.raises(ValueError):
        table.register(0, lambda p: 0)