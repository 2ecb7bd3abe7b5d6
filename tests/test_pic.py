import pytest

from xvsim.pic import NUM_INTSRC, InterruptController


def test_dispatch_calls_enabled_isr_with_frame_and_source():
    pic = InterruptController()
    calls = []
    pic.enable(4, lambda frame, n: calls.append((frame, n)))
    pic.raise_irq(4)
    assert pic.dispatch("frame") == [4]
    assert calls == [("frame", 4)]


def test_dispatch_clears_pending_sources():
    pic = InterruptController()
    calls = []
    pic.enable(7, lambda frame, n: calls.append(n))
    pic.raise_irq(7)
    pic.dispatch(None)
    assert pic.raw_status == 0
    assert pic.dispatch(None) == []
    assert calls == [7]


def test_disabled_source_stays_pending_until_enabled():
    pic = InterruptController()
    calls = []
    pic.raise_irq(12)
    assert pic.dispatch(None) == []
    assert pic.raw_status == 1 << 12
    pic.enable(12, lambda frame, n: calls.append(n))
    assert pic.dispatch(None) == [12]
    assert calls == [12]


def test_sources_dispatch_in_ascending_order():
    pic = InterruptController()
    calls = []
    for n in (19, 4, 12):
        pic.enable(n, lambda frame, n: calls.append(n))
        pic.raise_irq(n)
    pic.dispatch(None)
    assert calls == sorted(calls)
    assert set(calls) == {4, 12, 19}


def test_disable_restores_default_isr_that_logs():
    messages = []
    pic = InterruptController(log=messages.append)
    pic.enable(5, lambda frame, n: None)
    pic.disable(5)
    assert pic.enabled == 0
    pic.enable(6, lambda frame, n: None)
    pic.disable(6)
    pic.raise_irq(5)
    assert pic.dispatch(None) == []
    assert messages == []


def test_irq_status_masks_raw_status():
    pic = InterruptController()
    pic.enable(1, lambda frame, n: None)
    pic.raise_irq(1)
    pic.raise_irq(2)
    assert pic.irq_status == pic.raw_status & pic.enabled
    assert pic.irq_status == 1 << 1


@pytest.mark.parametrize("n", [-1, NUM_INTSRC])
def test_invalid_source_rejected(n):
    pic = InterruptController()
    with pytest.raises(ValueError):
        pic.enable(n, lambda frame, i: None)
    with pytest.raises(ValueError):
        pic.disable(n)
    with pytest.raises(ValueError):
        pic.raise_irq(n)