"Envelope construction and parent/child correlation for Jupyter protocol messages."
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, Callable
from jupyter_client.session import new_id as _new_id

PROTOCOL_VERSION = "5.0"

__all__ = ["PROTOCOL_VERSION", "utcnow", "create_message", "is_child_message", "child_of", "msg_type"]


def utcnow()->datetime:
    "Return timezone-aware UTC timestamp."
    return datetime.now(timezone.utc)


def create_message(username:str, session:str, msg_type:str, content: dict|None=None, version:str = PROTOCOL_VERSION,
    new_id: Callable[[], str] = _new_id)->dict:
    """Create a message envelope with a fresh `msg_id`.

    `username` and `session` are forwarded verbatim; `msg_type` is not checked against the protocol.
    `new_id` generates the message id and must never repeat over the life of a connection.
    """
    header = dict(username=username, session=session, msg_type=msg_type, msg_id=new_id(), date=utcnow(), version=version)
    return dict(header=header, metadata={}, parent_header={}, content={} if content is None else content)


def _get(msg: Mapping, key:str):
    try: return msg.get(key)
    except Exception: return None


def _field(msg: Any, key:str)->Mapping|None:
    if not isinstance(msg, Mapping): return None
    value = _get(msg, key)
    return value if isinstance(value, Mapping) else None


def is_child_message(parent: Any, message: Any)->bool:
    "True if `message` replies to `parent`; any other shape, including non-dicts, is False."
    header, parent_header = _field(parent, "header"), _field(message, "parent_header")
    if header is None or parent_header is None: return False
    msg_id, parent_id = _get(header, "msg_id"), _get(parent_header, "msg_id")
    # ids are strings on the wire; any other type never matches
    return type(msg_id) is str and type(parent_id) is str and msg_id == parent_id


def child_of(parent: Any)->Callable[[Any], bool]:
    "Predicate matching replies to `parent`."
    def _is_child(message: Any)->bool: return is_child_message(parent, message)
    return _is_child


def msg_type(message: Any)->str|None:
    "Return `header.msg_type` of `message`, or None when it has none."
    header = _field(message, "header")
    return None if header is None else _get(header, "msg_type")
