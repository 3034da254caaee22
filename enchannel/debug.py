"Debug logging switches for enchannel, driven by environment flags."
import logging, os, sys

def envbool(name: str)->bool:
    v = (os.environ.get(name) or "").strip().lower()
    return v not in ("", "0", "false", "no")

enabled = envbool("ENCHANNEL_DEBUG")
trace_msgs = envbool("ENCHANNEL_DEBUG_MSGS")

def setup(force: bool = False):
    "Route enchannel logging to stderr at DEBUG level when debugging is enabled."
    if not (enabled or force): return
    log = logging.getLogger("enchannel")
    log.setLevel(logging.DEBUG)
    if not logging.getLogger().handlers and not log.handlers:
        handler = logging.StreamHandler(sys.__stderr__)
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        log.addHandler(handler)

def tlog(log, prefix: str, msg):
    "Log message flow at high level: msg_type, msg_id, parent msg_id."
    if not trace_msgs: return
    if not isinstance(msg, dict): msg = {}
    h, p = msg.get("header") or {}, msg.get("parent_header") or {}
    if not isinstance(h, dict): h = {}
    if not isinstance(p, dict): p = {}
    log.warning("%s type=%s id=%s parent=%s", prefix, h.get("msg_type"), h.get("msg_id"), p.get("msg_id"))
