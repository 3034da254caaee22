"Shutdown and restart handshake over a set of kernel channels."
import asyncio, logging
from .channels import REQUIRED_CHANNELS, get_channel
from .messages import child_of, create_message, msg_type
from . import debug as _dbg_mod

log = logging.getLogger("enchannel.shutdown")

__all__ = ["first_reply", "complete_channels", "shutdown_request"]


def first_reply(channel, request: dict, reply_type:str)->asyncio.Future:
    """Subscribe to `channel` for the first `reply_type` reply to `request`.

    Returns a future resolving to that reply's `content`. The listener detaches once the future is done,
    whether it resolved or was cancelled. Must be called from a running event loop.
    """
    fut = asyncio.get_running_loop().create_future()
    is_child = child_of(request)
    def _matches(msg)->bool: return is_child(msg) and msg_type(msg) == reply_type
    def _on_reply(msg):
        if not fut.done(): fut.set_result(msg.get("content"))
    sub = channel.subscribe(_on_reply, where=_matches)
    fut.add_done_callback(lambda _: sub.unsubscribe())
    return fut


def complete_channels(channels):
    "Complete shell, iopub, stdin and control, then heartbeat if present."
    for name in REQUIRED_CHANNELS:
        ch = get_channel(channels, name)
        if ch is None: raise KeyError(f"missing channel: {name}")
        ch.complete()
    if (hb := get_channel(channels, "heartbeat")) is not None: hb.complete()


async def shutdown_request(channels, username:str, session:str, restart: bool = False):
    """Send a shutdown_request on the shell channel and wait for its shutdown_reply.

    On a plain shutdown every channel is completed once the reply arrives; on restart the channels stay open.
    No timeout is applied: wrap in `asyncio.wait_for` to bound the wait. Cancelling detaches the reply
    listener and completes nothing.
    """
    request = create_message(username, session, "shutdown_request", content=dict(restart=bool(restart)))
    shell = get_channel(channels, "shell")
    if shell is None: raise KeyError("missing channel: shell")
    reply = first_reply(shell, request, "shutdown_reply")
    _dbg_mod.tlog(log, "shutdown send", request)
    shell.next(request)
    log.debug("shutdown_request %s sent (restart=%s)", request["header"]["msg_id"], bool(restart))
    content = await reply
    log.debug("shutdown_reply for %s: %r", request["header"]["msg_id"], content)
    if not restart: complete_channels(channels)
