"""Transport interface.

This is the (small) contract that transport implementations should follow.
It lives outside :mod:`kernelclient.protocol` so the protocol remains
transport-agnostic. Transports move raw frames; signing and decoding happen
one layer up, in :mod:`kernelclient.transport.session`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Optional, Sequence


# Transport agnostic exceptions

class TransportError(Exception):
    """Base class for all transport-layer errors."""


class TransportTimeout(TransportError):
    """A receive did not complete within the requested time."""


class TransportConnectionError(TransportError):
    """The transport could not establish or maintain a connection."""


class TransportClosed(TransportError):
    """The transport was closed, possibly while a caller was blocked on it."""


class Transport(ABC):
    """Minimal contract for a multi-part, frame-level transport."""

    @abstractmethod
    def close(self) -> None:
        """Tear down the underlying connection/socket."""

    @abstractmethod
    def send(self, frames: Sequence[bytes]) -> None:
        """Send one multi-part message as a single atomic write."""

    @abstractmethod
    def recv(self, timeout: Optional[float] = None) -> Optional[List[bytes]]:
        """Receive the next multi-part message.

        Returns None if *timeout* seconds elapse first; blocks indefinitely
        if *timeout* is None.
        """

    @property
    def is_open(self) -> bool:
        """Whether the transport is currently connected."""
        return False
