""" Correlation of broadcast notifications with the commands that caused
    them. The :class:`RoutingTable` is shared by two actors: caller threads
    issuing commands register entries, and the background thread draining
    the broadcast channel routes notifications into them and tears them down
    when the kernel reports the command has gone idle.
"""

import collections
import logging
import threading
import time

from .protocol import fields


logger = logging.getLogger(__name__)


class ChannelClosed(Exception):
    """ Raised by :func:`OutputChannel.get` once the channel is closed and
        every buffered item has been consumed.
    """



class OutputChannel:
    """ A FIFO conduit of notification payloads for a single command. There
        is one producer, the broadcast-draining thread, and any number of
        consumers. Iterating over a channel yields payloads until the channel
        is closed and drained, at which point the iteration ends.

        If *maxsize* is greater than zero the channel is bounded, and
        :func:`put` blocks while the channel is full. Since there is a single
        draining thread for all commands, a slow consumer on one channel
        throttles delivery for every channel; this is intentional, nothing
        is ever dropped on the floor.
    """

    def __init__(self, command_id, maxsize=0):

        self.command_id = command_id
        self.maxsize = maxsize

        self._items = collections.deque()
        self._closed = False
        self._condition = threading.Condition()


    def __iter__(self):

        while True:
            try:
                item = self.get()
            except ChannelClosed:
                return
            yield item


    def __len__(self):
        with self._condition:
            return len(self._items)


    def __repr__(self):
        state = 'closed' if self._closed else 'open'
        return '<OutputChannel %s %s, %d pending>' % (self.command_id, state, len(self))


    @property
    def closed(self):
        return self._closed


    def put(self, item):
        """ Append *item* to the channel, blocking while the channel is full.
            Returns False, without appending, if the channel is closed before
            there is room.
        """

        with self._condition:
            while self._full() and not self._closed:
                self._condition.wait()

            if self._closed:
                return False

            self._items.append(item)
            self._condition.notify_all()
            return True


    def get(self, timeout=None):
        """ Remove and return the next item. Blocks until an item arrives, or
            for at most *timeout* seconds if *timeout* is not None, in which
            case :class:`TimeoutError` is raised. Items buffered before the
            channel was closed are still returned; after that,
            :class:`ChannelClosed` is raised.
        """

        if timeout is None:
            deadline = None
        else:
            deadline = time.monotonic() + timeout

        with self._condition:
            while len(self._items) == 0:
                if self._closed:
                    raise ChannelClosed(self.command_id)

                if deadline is None:
                    self._condition.wait()
                else:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        raise TimeoutError('no output for %s in %.2f sec' % (self.command_id, timeout))
                    self._condition.wait(remaining)

            item = self._items.popleft()
            self._condition.notify_all()
            return item


    def close(self):
        """ Signal end-of-stream. Returns True the first time the channel is
            closed, and False for any subsequent (redundant) calls.
        """

        with self._condition:
            if self._closed:
                return False

            self._closed = True
            self._condition.notify_all()
            return True


    def _full(self):
        return self.maxsize > 0 and len(self._items) >= self.maxsize


# end of class OutputChannel



class RoutingTable:
    """ A thread-safe mapping of command identifiers to open
        :class:`OutputChannel` instances.

        All reads and mutations of the mapping are serialized by a single
        lock. Pushing onto a channel happens outside the lock, so a blocked
        push never prevents a caller from registering a new command.

        Identifiers of recently closed entries are remembered for *grace*
        seconds, so that a late notification racing the close of its entry
        can be told apart from a notification nobody ever asked for. Entries
        abandoned with :func:`abandon` are remembered for longer, since the
        kernel may still be working on the command.
    """

    def __init__(self, buffer=0, grace=1.0):

        self.buffer = buffer
        self.grace = grace

        self._entries = dict()
        self._closed_at = dict()
        self._lock = threading.Lock()


    def __contains__(self, command_id):
        with self._lock:
            return command_id in self._entries


    def __len__(self):
        with self._lock:
            return len(self._entries)


    def register(self, command_id):
        """ Allocate a fresh :class:`OutputChannel` for *command_id* and return
            it. This must happen before the command is transmitted, otherwise
            the first notifications could arrive before there is anywhere to
            put them.
        """

        channel = OutputChannel(command_id, self.buffer)

        with self._lock:
            if command_id in self._entries:
                raise ValueError('command id already registered: ' + repr(command_id))
            self._entries[command_id] = channel

        return channel


    def lookup(self, command_id):
        """ Return the open channel for *command_id*, or None.
        """

        with self._lock:
            return self._entries.get(command_id)


    def route(self, parent_id, payload):
        """ Push *payload* onto the channel registered for *parent_id*. This
            may block if the channel is full. Returns True if the payload was
            delivered, False if there is no such channel.
        """

        channel = self.lookup(parent_id)

        if channel is None:
            return False

        return channel.put(payload)


    def close_and_remove(self, command_id, expiry=None):
        """ Close the channel for *command_id* and remove it from the table.
            The identifier is remembered for *expiry* seconds, or for the
            grace period if *expiry* is None. Returns True if there was an
            entry to remove; redundant calls are a no-op and return False.
        """

        if expiry is None:
            expiry = self.grace

        now = time.monotonic()

        with self._lock:
            channel = self._entries.pop(command_id, None)

            if channel is not None:
                self._closed_at[command_id] = now + expiry

            # Forget closures that have aged out.

            expired = list()
            for closed_id, deadline in self._closed_at.items():
                if now > deadline:
                    expired.append(closed_id)

            for closed_id in expired:
                del self._closed_at[closed_id]

        if channel is None:
            return False

        channel.close()
        logger.debug('closed output channel for %s', command_id)
        return True


    def close_all(self):
        """ Close and remove every entry. Consumers blocked on any channel
            will observe end-of-stream. Returns the number of entries closed.
        """

        with self._lock:
            channels = list(self._entries.values())
            self._entries.clear()

        for channel in channels:
            channel.close()

        if channels:
            logger.debug('closed %d output channels', len(channels))

        return len(channels)


    def abandon(self, command_id, expiry):
        """ Close and remove the entry for a command whose send or receive
            failed. Output the kernel still produces for it is expected for
            up to *expiry* seconds.
        """

        return self.close_and_remove(command_id, expiry)


    def recently_closed(self, command_id):
        """ Return True if the entry for *command_id* was closed, and the
            identifier has not yet aged out.
        """

        with self._lock:
            deadline = self._closed_at.get(command_id)

        if deadline is None:
            return False

        return time.monotonic() <= deadline


    @staticmethod
    def is_terminal(msg_type, content):
        """ Return True if a notification of *msg_type* with the decoded
            *content* marks the end of output for its parent command: the
            kernel reporting that it has returned to the idle state.
        """

        if msg_type != fields.STATUS:
            return False

        if isinstance(content, dict):
            state = content.get('execution_state')
        else:
            state = getattr(content, 'execution_state', None)

        return state == fields.STATE_IDLE


    def observe(self, parent_id, msg_type, content):
        """ Handle one decoded notification addressed to *parent_id*. Status
            notifications are consumed here rather than delivered: the idle
            state closes the entry, any other state is dropped. Everything
            else is routed onto the matching channel.

            Returns True if the notification matched an open entry.
        """

        if self.is_terminal(msg_type, content):
            return self.close_and_remove(parent_id)

        if msg_type == fields.STATUS:
            return parent_id in self

        return self.route(parent_id, content)


# end of class RoutingTable


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
