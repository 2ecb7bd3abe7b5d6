import pytest

from xvsim.cpu import Cpu, CpuError, CpuMode, SpinLock
from xvsim.syscall import DIS_INT, MODE_MASK, USR_MODE


def test_starts_in_svc_mode_with_interrupts_off():
    cpu = Cpu()
    assert cpu.mode is CpuMode.SVC
    assert cpu.int_enabled() is False


def test_sti_and_cli_toggle_interrupts():
    cpu = Cpu()
    cpu.sti()
    assert cpu.int_enabled() is True
    cpu.cli()
    assert cpu.int_enabled() is False
    assert cpu.mode is CpuMode.SVC


def test_spsr_usr_switches_mode_and_keeps_other_bits():
    cpu = Cpu()
    cpu.sti()
    word = cpu.spsr_usr()
    assert word & MODE_MASK == USR_MODE
    assert word & ~MODE_MASK == cpu.cpsr & ~MODE_MASK
    assert cpu.mode is CpuMode.SVC


def test_pushcli_popcli_nest():
    cpu = Cpu()
    cpu.sti()
    cpu.pushcli()
    cpu.pushcli()
    assert cpu.ncli == 2
    assert cpu.int_enabled() is False
    cpu.popcli()
    assert cpu.int_enabled() is False
    cpu.popcli()
    assert cpu.ncli == 0
    assert cpu.int_enabled() is True


def test_pushcli_leaves_interrupts_off_when_they_were_off():
    cpu = Cpu()
    cpu.pushcli()
    cpu.popcli()
    assert cpu.int_enabled() is False


def test_popcli_while_interruptible_raises():
    cpu = Cpu()
    cpu.sti()
    with pytest.raises(CpuError):
        cpu.popcli()


def test_popcli_underflow_raises():
    cpu = Cpu()
    with pytest.raises(CpuError):
        cpu.popcli()
    assert cpu.ncli == 0


def test_spinlock_disables_and_restores_interrupts():
    cpu = Cpu()
    cpu.sti()
    lock = SpinLock("test", cpu)
    lock.acquire()
    assert lock.holding() is True
    assert cpu.cpsr & DIS_INT
    lock.release()
    assert lock.holding() is False
    assert cpu.int_enabled() is True


def test_spinlock_context_manager_nests_with_other_locks():
    cpu = Cpu()
    cpu.sti()
    first = SpinLock("a", cpu)
    second = SpinLock("b", cpu)
    with first:
        with second:
            assert cpu.ncli == 2
        assert first.holding() and not second.holding()
        assert cpu.int_enabled() is False
    assert cpu.ncli == 0
    assert cpu.int_enabled() is True


def test_spinlock_keeps_name():
    lock = SpinLock("bcache")
    assert lock.name == "bcache"
    assert lock.holding() is False