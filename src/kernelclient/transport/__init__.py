"""Transport layer implementations."""

from .base import (
    Transport,
    TransportError,
    TransportTimeout,
    TransportConnectionError,
    TransportClosed,
)
from .session import CommandSession, SubscribeSession
