from importlib.metadata import PackageNotFoundError, version
from .messages import PROTOCOL_VERSION, child_of, create_message, is_child_message
from .channels import Channel, ChannelSet, Subscription
from .shutdown import complete_channels, first_reply, shutdown_request

try:
    __version__ = version("enchannel")
except PackageNotFoundError:  # pragma: no cover - local editable without metadata
    __version__ = "0.0.0+local"

__all__ = ["PROTOCOL_VERSION", "create_message", "is_child_message", "child_of", "Channel", "ChannelSet", "Subscription",
    "first_reply", "complete_channels", "shutdown_request", "__version__"]
