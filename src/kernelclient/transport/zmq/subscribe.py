"""ZeroMQ broadcast transport."""

from __future__ import annotations

import threading
import time
from typing import List, Optional, Sequence

import zmq

from ..base import Transport, TransportClosed, TransportConnectionError, TransportError
from . import zmq_context


class Client(Transport):
    """SUB client, subscribed to every topic the kernel publishes."""

    def __init__(self, address: str, *, poll_interval: float = 0.1):
        self.address = address
        self.poll_interval = poll_interval
        self.shutdown = False

        self.socket = zmq_context.socket(zmq.SUB)
        self.socket.setsockopt(zmq.LINGER, 0)

        try:
            self.socket.connect(address)
        except zmq.ZMQError as exc:
            self.socket.close()
            raise TransportConnectionError(f"cannot connect to {address}: {exc}") from exc

        self.socket_lock = threading.Lock()
        self.subscribe(b"")

    @property
    def is_open(self) -> bool:
        return not self.shutdown

    def subscribe(self, topic: bytes) -> None:
        """ ZeroMQ subscriptions are based on a topic prefix. Filtering of
            messages happens on the publishing side; the empty topic
            subscribes to everything.
        """

        with self.socket_lock:
            self.socket.setsockopt(zmq.SUBSCRIBE, topic)
            self._poll_flush()

    def _poll_flush(self, timeout: float = 0.01) -> None:
        """ Poll the subscribe socket in an effort to make sure we're fully
            connected before proceeding. This is not deterministic, but it
            has been observed to fix odd subscription 'misses' where the
            client never receives broadcasts despite subscribing normally.
        """

        poller = zmq.Poller()
        poller.register(self.socket, zmq.POLLIN | zmq.POLLOUT)
        poller.poll(timeout * 1000)

    def send(self, frames: Sequence[bytes]) -> None:
        raise TransportError("a subscription is receive-only")

    def recv(self, timeout: Optional[float] = None) -> Optional[List[bytes]]:
        deadline = None if timeout is None else time.monotonic() + timeout

        with self.socket_lock:
            poller = zmq.Poller()
            poller.register(self.socket, zmq.POLLIN)

            while True:
                if self.shutdown:
                    raise TransportClosed(f"broadcast channel {self.address} is closed")

                wait = self.poll_interval
                if deadline is not None:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        return None
                    wait = min(wait, remaining)

                try:
                    ready = dict(poller.poll(wait * 1000))
                    if ready.get(self.socket):
                        return self.socket.recv_multipart()
                except zmq.ZMQError as exc:
                    raise TransportError(f"receive from {self.address} failed: {exc}") from exc

    def close(self) -> None:
        self.shutdown = True

        with self.socket_lock:
            if not self.socket.closed:
                self.socket.close(linger=0)
