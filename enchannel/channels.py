import asyncio, logging, os
from collections.abc import Mapping
from dataclasses import dataclass, fields
from typing import Any, Callable
from fastcore.basics import store_attr
from . import debug as _dbg_mod

log = logging.getLogger("enchannel.channels")

CHANNEL_NAMES = ("shell", "iopub", "stdin", "control", "heartbeat")
REQUIRED_CHANNELS = CHANNEL_NAMES[:-1]
_done = object()

__all__ = ["CHANNEL_NAMES", "REQUIRED_CHANNELS", "Subscription", "Channel", "ChannelSet", "get_channel"]


class Subscription:
    def __init__(self, channel: "Channel", callback: Callable[[Any], Any], where: Callable[[Any], bool]|None=None,
        on_complete: Callable[[], Any]|None=None):
        "Listener registered on `channel`; `where` filters which inbound messages reach `callback`."
        store_attr()
        self.closed = False

    def unsubscribe(self):
        "Detach from the channel; safe to call more than once."
        if self.closed: return
        self.closed = True
        self.channel._detach(self)

    def _dispatch(self, msg):
        if self.closed: return
        if self.where is not None and not self.where(msg): return
        self.callback(msg)

    def _finish(self):
        self.closed = True
        if self.on_complete is not None: self.on_complete()


class Channel:
    "Bidirectional message stream for one kernel channel."

    def __init__(self, name:str, sender: Callable[[dict], Any]|None=None, maxsize: int|None=None):
        "Without a `sender`, published messages wait in a bounded `outbox` until read with `outgoing`."
        store_attr("name,sender")
        if maxsize is None: maxsize = int(os.environ.get("ENCHANNEL_OUTBOX_QMAX", "10000"))
        self.subscribers: list[Subscription] = []
        self.outbox = asyncio.Queue(maxsize=maxsize)
        self.closed = False
        self.sent = 0
        self.received = 0
        self.dropped = 0

    def __repr__(self): return f"Channel({self.name!r}, closed={self.closed})"

    def next(self, msg: dict):
        "Publish `msg`: hand it to `sender`, or queue it for `outgoing`."
        if self.closed:
            log.warning("%s: publish after complete; dropping", self.name)
            return
        _dbg_mod.tlog(log, f"{self.name} send", msg)
        if self.sender is not None: self.sender(msg)
        else:
            try: self.outbox.put_nowait(msg)
            except asyncio.QueueFull:
                self.dropped += 1
                if self.dropped in (1, 100, 1000): log.warning("%s outbox full; dropping. dropped=%d", self.name, self.dropped)
                return
        self.sent += 1

    async def outgoing(self)->dict:
        "Wait for the next queued outbound message."
        return await self.outbox.get()

    def deliver(self, msg):
        "Feed an inbound message to every current subscriber."
        if self.closed:
            log.debug("%s: inbound message after complete; dropping", self.name)
            return
        _dbg_mod.tlog(log, f"{self.name} recv", msg)
        self.received += 1
        for sub in list(self.subscribers):
            try: sub._dispatch(msg)
            except Exception as exc: log.error("%s subscriber error: %s", self.name, exc, exc_info=exc)

    def subscribe(self, callback: Callable[[Any], Any], where: Callable[[Any], bool]|None=None,
        on_complete: Callable[[], Any]|None=None)->Subscription:
        "Call `callback` with each inbound message passing `where` until unsubscribed or completed."
        sub = Subscription(self, callback, where, on_complete)
        if self.closed: sub._finish()
        else: self.subscribers.append(sub)
        return sub

    def _detach(self, sub: Subscription):
        try: self.subscribers.remove(sub)
        except ValueError: pass

    def complete(self):
        "End the stream and release its subscribers; later calls are no-ops."
        if self.closed: return
        self.closed = True
        subs, self.subscribers = self.subscribers, []
        log.debug("%s: complete (sent=%d received=%d, %d subscribers)", self.name, self.sent, self.received, len(subs))
        for sub in subs:
            try: sub._finish()
            except Exception as exc: log.error("%s completion callback error: %s", self.name, exc, exc_info=exc)

    async def __aiter__(self):
        q = asyncio.Queue()
        sub = self.subscribe(q.put_nowait, on_complete=lambda: q.put_nowait(_done))
        try:
            while (msg := await q.get()) is not _done: yield msg
        finally: sub.unsubscribe()


@dataclass
class ChannelSet:
    shell: Channel
    iopub: Channel
    stdin: Channel
    control: Channel
    heartbeat: Channel|None = None

    @classmethod
    def create(cls, heartbeat: bool = True, **senders)->"ChannelSet":
        "Build fresh channels; `senders` maps channel names to outbound hooks."
        _dbg_mod.setup()
        names = CHANNEL_NAMES if heartbeat else REQUIRED_CHANNELS
        return cls(**{name: Channel(name, senders.get(name)) for name in names})

    @classmethod
    def from_dict(cls, channels: Mapping)->"ChannelSet":
        "Build from a mapping of channel name to stream; raises KeyError if a required channel is missing."
        missing = [name for name in REQUIRED_CHANNELS if channels.get(name) is None]
        if missing: raise KeyError(f"missing channels: {', '.join(missing)}")
        return cls(**{name: channels.get(name) for name in CHANNEL_NAMES})

    def __iter__(self):
        for f in fields(self):
            if (ch := getattr(self, f.name)) is not None: yield ch


def get_channel(channels, name:str):
    "Return channel `name` from a ChannelSet-like object or mapping, or None if absent."
    if isinstance(channels, Mapping): return channels.get(name)
    return getattr(channels, name, None)
