"""Transport-agnostic session layer.

A session pairs a frame-level :class:`~kernelclient.transport.base.Transport`
with the signing key, and speaks :class:`~kernelclient.protocol.Envelope`
instances instead of frames.
"""

from __future__ import annotations

import time
from typing import Optional

from ..protocol import codec
from ..protocol.fields import DELIMITER
from ..protocol.message import Envelope
from .base import Transport, TransportTimeout


class CommandSession:
    """Client-side request/reply pattern logic.

    The underlying channel is single-flight: every :meth:`send` must be
    followed by exactly one :meth:`recv` before the next :meth:`send`.
    Callers sharing a session are responsible for serializing those pairs.
    """

    def __init__(self, transport: Transport, key=None):
        self.transport = transport
        self.key = key

    def send(self, envelope: Envelope) -> None:
        frames = codec.encode(envelope, self.key)
        prefix = list(envelope.identities) + [DELIMITER]
        self.transport.send(prefix + frames)

    def recv(self, timeout: Optional[float] = None) -> Envelope:
        deadline = None if timeout is None else time.monotonic() + timeout

        while True:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            frames = self.transport.recv(remaining)
            if frames is not None:
                return codec.decode(frames, self.key)
            if deadline is not None and time.monotonic() >= deadline:
                raise TransportTimeout(f"no reply received in {timeout:.2f} sec")

    def close(self) -> None:
        self.transport.close()


class SubscribeSession:
    """Client-side subscribe pattern logic."""

    def __init__(self, transport: Transport, key=None):
        self.transport = transport
        self.key = key

    def recv(self, timeout: Optional[float] = None) -> Optional[Envelope]:
        """Return the next decoded broadcast, or None on timeout.

        Decoding failures propagate: a stream that cannot be decoded, or
        whose signatures do not verify, cannot be trusted for routing.
        """

        frames = self.transport.recv(timeout)
        if frames is None:
            return None
        return codec.decode(frames, self.key)

    def close(self) -> None:
        self.transport.close()
