import asyncio, logging
import pytest
from enchannel import Channel, ChannelSet
from enchannel.channels import get_channel
from .channel_utils import TIMEOUT, run


def test_subscribe_filters_and_unsubscribes():
    ch = Channel("shell")
    got = []
    sub = ch.subscribe(got.append, where=lambda m: m.get("keep"))
    ch.deliver({"keep": True, "n": 1})
    ch.deliver({"keep": False, "n": 2})
    sub.unsubscribe()
    sub.unsubscribe()
    ch.deliver({"keep": True, "n": 3})
    assert [m["n"] for m in got] == [1]
    assert ch.subscribers == [] and ch.received == 3


def test_complete_is_idempotent():
    ch = Channel("iopub")
    finished = []
    sub = ch.subscribe(lambda m: None, on_complete=lambda: finished.append(1))
    ch.complete()
    ch.complete()
    assert ch.closed and sub.closed
    assert finished == [1]
    assert ch.subscribers == []


def test_subscribe_after_complete():
    ch = Channel("stdin")
    ch.complete()
    finished = []
    sub = ch.subscribe(lambda m: None, on_complete=lambda: finished.append(1))
    assert sub.closed and finished == [1] and ch.subscribers == []


def test_publish_after_complete_is_dropped(caplog):
    sent = []
    ch = Channel("control", sender=sent.append)
    ch.next({"n": 1})
    ch.complete()
    with caplog.at_level(logging.WARNING, logger="enchannel.channels"): ch.next({"n": 2})
    assert sent == [{"n": 1}] and ch.sent == 1
    assert "publish after complete" in caplog.text


def test_deliver_after_complete_is_dropped():
    ch = Channel("iopub")
    got = []
    ch.subscribe(got.append)
    ch.complete()
    ch.deliver({"n": 1})
    assert got == [] and ch.received == 0


def test_subscriber_error_is_logged(caplog):
    ch = Channel("iopub")
    got = []
    def boom(msg): raise ValueError("boom")
    ch.subscribe(boom)
    ch.subscribe(got.append)
    with caplog.at_level(logging.ERROR, logger="enchannel.channels"): ch.deliver({"n": 1})
    assert got == [{"n": 1}]
    assert "iopub subscriber error: boom" in caplog.text


def test_outgoing_queue():
    async def _run():
        ch = Channel("shell")
        ch.next({"n": 1})
        ch.next({"n": 2})
        return [await ch.outgoing(), await ch.outgoing()]
    assert run(_run()) == [{"n": 1}, {"n": 2}]


def test_outbox_is_bounded(caplog, monkeypatch):
    ch = Channel("shell", maxsize=2)
    with caplog.at_level(logging.WARNING, logger="enchannel.channels"):
        for i in range(3): ch.next({"n": i})
    assert ch.outbox.qsize() == 2 and ch.sent == 2 and ch.dropped == 1
    assert "shell outbox full" in caplog.text
    monkeypatch.setenv("ENCHANNEL_OUTBOX_QMAX", "5")
    assert Channel("iopub").outbox.maxsize == 5


def test_async_iteration_ends_on_complete():
    async def _run():
        ch = Channel("iopub")
        got = []
        async def consume():
            async for msg in ch: got.append(msg)
        task = asyncio.create_task(consume())
        await asyncio.sleep(0)
        ch.deliver({"n": 1})
        ch.deliver({"n": 2})
        ch.complete()
        await asyncio.wait_for(task, TIMEOUT)
        return got, ch.subscribers
    got, subs = run(_run())
    assert got == [{"n": 1}, {"n": 2}]
    assert subs == []


def test_async_iteration_is_per_subscription():
    async def _run():
        ch = Channel("iopub")
        async def first():
            async for msg in ch: return msg
        a, b = asyncio.create_task(first()), asyncio.create_task(first())
        await asyncio.sleep(0)
        ch.deliver({"n": 1})
        return await asyncio.gather(a, b)
    assert run(_run()) == [{"n": 1}, {"n": 1}]


def test_channel_set_create():
    cs = ChannelSet.create()
    assert [ch.name for ch in cs] == ["shell", "iopub", "stdin", "control", "heartbeat"]
    sent = []
    cs = ChannelSet.create(heartbeat=False, shell=sent.append)
    assert cs.heartbeat is None and len(list(cs)) == 4
    cs.shell.next({"n": 1})
    assert sent == [{"n": 1}]


def test_channel_set_from_dict():
    chans = {name: Channel(name) for name in ("shell", "iopub", "stdin", "control")}
    cs = ChannelSet.from_dict(chans)
    assert cs.shell is chans["shell"] and cs.heartbeat is None
    del chans["stdin"]
    with pytest.raises(KeyError, match="stdin"): ChannelSet.from_dict(chans)


def test_get_channel():
    cs = ChannelSet.create(heartbeat=False)
    assert get_channel(cs, "shell") is cs.shell
    assert get_channel(cs, "heartbeat") is None
    assert get_channel({"shell": cs.shell}, "shell") is cs.shell
    assert get_channel({}, "heartbeat") is None
