"""ZeroMQ command transport.

The kernel's shell channel is a ROUTER socket; connecting to it with a
DEALER socket keeps the frame layout identical in both directions (the
ROUTER strips and restores our identity) while still allowing receives to
be abandoned on timeout, which a REQ socket would not.
"""

from __future__ import annotations

import threading
import time
from typing import List, Optional, Sequence

import zmq

from ..base import Transport, TransportClosed, TransportConnectionError, TransportError
from . import zmq_context


class Client(Transport):
    """Send commands via a ZeroMQ DEALER socket and receive replies.

    The socket is only ever touched while holding ``socket_lock``; a receive
    holds it while polling in slices of *poll_interval* seconds so that
    :meth:`close` can interrupt it.
    """

    def __init__(self, address: str, *, poll_interval: float = 0.1, identity: Optional[bytes] = None):
        self.address = address
        self.poll_interval = poll_interval
        self.shutdown = False

        self.socket = zmq_context.socket(zmq.DEALER)
        self.socket.setsockopt(zmq.LINGER, 0)
        if identity is not None:
            self.socket.identity = identity

        try:
            self.socket.connect(address)
        except zmq.ZMQError as exc:
            self.socket.close()
            raise TransportConnectionError(f"cannot connect to {address}: {exc}") from exc

        self.socket_lock = threading.Lock()

    @property
    def is_open(self) -> bool:
        return not self.shutdown

    def send(self, frames: Sequence[bytes]) -> None:
        # The lock around the ZeroMQ socket is necessary in a multithreaded
        # application; otherwise, if two different threads both invoke
        # send_multipart(), the message parts can and will get mixed together.

        with self.socket_lock:
            if self.shutdown:
                raise TransportClosed(f"command channel {self.address} is closed")
            try:
                self.socket.send_multipart(list(frames))
            except zmq.ZMQError as exc:
                raise TransportError(f"send to {self.address} failed: {exc}") from exc

    def recv(self, timeout: Optional[float] = None) -> Optional[List[bytes]]:
        deadline = None if timeout is None else time.monotonic() + timeout

        with self.socket_lock:
            poller = zmq.Poller()
            poller.register(self.socket, zmq.POLLIN)

            while True:
                if self.shutdown:
                    raise TransportClosed(f"command channel {self.address} is closed")

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

        # Wait for any receive in progress to notice the shutdown flag.
        with self.socket_lock:
            if not self.socket.closed:
                self.socket.close(linger=0)
