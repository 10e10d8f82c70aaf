""" The client runtime: issue commands to a kernel over the command channel,
    and concurrently demultiplex the kernel's broadcast channel into one
    output channel per command.
"""

import logging
import threading
import time

from . import config
from .protocol import commands
from .protocol import fields
from .protocol.codec import DecodingError
from .protocol.content import UnknownContent, UnknownMessageTypeError, dispatch_content, parse_content
from .protocol.message import Envelope, new_header, new_id
from .routing import RoutingTable
from .transport import CommandSession, SubscribeSession, TransportClosed, TransportError, TransportTimeout


logger = logging.getLogger(__name__)


class ClientClosedError(RuntimeError):
    """ The client was closed, or its background processing failed; no
        further commands can be issued. If there was a failure it is
        available as the ``__cause__`` of this exception.
    """



class OrphanedNotificationError(RuntimeError):
    """ A notification arrived for a command that must always have a
        listener, but no output channel exists for it. The routing table
        and the kernel no longer agree on what is outstanding.
    """

    def __init__(self, envelope):

        parent = envelope.parent_header
        message = '%s notification for %s %s has no output channel' % (envelope.msg_type, parent.msg_type, parent.msg_id)
        RuntimeError.__init__(self, message)
        self.envelope = envelope



class Client:
    """ A client for a single kernel. The *info* is a
        :class:`kernelclient.config.ConnectionInfo` describing where the
        kernel is listening and the key it signs messages with.

        One background thread per client drains the broadcast channel for
        the lifetime of the client. Commands may be issued from any thread;
        they are serialized against each other, since the command channel
        only allows one command in flight at a time.

        The *command* and *broadcast* arguments accept alternate
        :class:`kernelclient.transport.Transport` instances in place of the
        default ZeroMQ sockets; the *key* argument overrides the signing key
        from *info*. The *on_error* callable, if specified, is invoked with
        every error encountered by the background thread, fatal or not.
    """

    def __init__(self, info=None, config=None, command=None, broadcast=None, key=None, on_error=None):

        if config is None:
            config = _default_config()

        if key is None:
            key = info.signing_key if info is not None else b''

        if info is None and (command is None or broadcast is None):
            raise ValueError('connection info is required unless both transports are provided')

        self.config = config
        self.info = info
        self.on_error = on_error
        self.session = new_id()
        self.shutdown = False

        # The transports are only imported here so that a client built
        # entirely on caller-provided transports never touches ZeroMQ.

        if command is None:
            from .transport.zmq import command as zmq_command
            command = zmq_command.Client(info.shell_address, poll_interval=config.poll_interval)

        if broadcast is None:
            from .transport.zmq import subscribe as zmq_subscribe
            try:
                broadcast = zmq_subscribe.Client(info.iopub_address, poll_interval=config.poll_interval)
            except TransportError:
                command.close()
                raise

        self.commands = CommandSession(command, key)
        self.broadcasts = SubscribeSession(broadcast, key)
        self.routes = RoutingTable(config.channel_buffer, config.orphan_grace)

        self._error = None
        self._command_lock = threading.Lock()
        self._close_lock = threading.Lock()

        self.thread = threading.Thread(target=self.run, name='kernelclient.broadcast')
        self.thread.daemon = True
        self.thread.start()


    def __enter__(self):
        return self


    def __exit__(self, exc_type, exc_value, traceback):
        self.close()


    @property
    def closed(self):
        return self.shutdown


    @property
    def error(self):
        """ The exception that stopped background processing, if any.
        """

        return self._error


    def _check_open(self):

        if self._error is not None:
            raise ClientClosedError('broadcast processing failed: ' + str(self._error)) from self._error

        if self.shutdown:
            raise ClientClosedError('client is closed')


    def issue_command(self, msg_type, content):
        """ Send a command of *msg_type* with the specified *content*, and
            block until the kernel replies. Returns a tuple of the reply
            :class:`kernelclient.protocol.Envelope` and the
            :class:`kernelclient.routing.OutputChannel` that will receive
            the broadcast notifications caused by the command.
        """

        return self._request(msg_type, content, listen=True)


    def _request(self, msg_type, content, listen):

        self._check_open()

        header = new_header(msg_type, self.session, self.config.username)
        envelope = Envelope(header=header, content=content)
        command_id = envelope.msg_id

        channel = None
        if listen:
            channel = self.routes.register(command_id)

        try:
            # A fatal error or shutdown may have raced the registration;
            # either one would have already closed every entry.
            self._check_open()

            with self._command_lock:
                self.commands.send(envelope)
                logger.debug('sent %s %s', msg_type, command_id)
                reply = self._recv_reply(envelope)

        except BaseException:
            if channel is not None:
                self.routes.abandon(command_id, self.config.abandon_grace)
            raise

        return reply, channel


    def _recv_reply(self, envelope):
        """ Receive the reply to *envelope*. Replies to anything else are
            stale, left over from a command whose receive timed out, and are
            discarded.
        """

        timeout = self.config.reply_timeout

        if timeout is None:
            deadline = None
        else:
            deadline = time.monotonic() + timeout

        while True:
            if deadline is None:
                remaining = None
            else:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise TransportTimeout('no reply to %s in %.2f sec' % (envelope.msg_type, timeout))

            reply = self.commands.recv(remaining)

            if reply.parent_id == envelope.msg_id:
                return reply

            logger.warning('discarding %s for %s, expected a reply to %s', reply.msg_type, reply.parent_id or '(none)', envelope.msg_id)


    def _parse_reply(self, reply, expected):

        try:
            parsed = dispatch_content(reply.msg_type, reply.content)
        except ValueError as exc:
            raise DecodingError('invalid %s: %s' % (reply.msg_type, exc)) from exc

        if not isinstance(parsed, expected):
            raise DecodingError('expected %s, received %s' % (expected.msg_type, reply.msg_type))

        return parsed


    def execute(self, code, **options):
        """ Execute *code* in the kernel. Additional keyword arguments are
            passed to :class:`kernelclient.protocol.commands.ExecuteRequest`.
            Returns the :class:`ExecuteReply` and the output channel; the
            reply only confirms the kernel handled the request, the output
            typically continues to arrive afterwards::

                reply, output = client.execute('print(2 + 2)')
                for content in output:
                    print(content)
        """

        request = commands.ExecuteRequest(code, **options)
        reply, channel = self.issue_command(request.msg_type, request)

        try:
            parsed = self._parse_reply(reply, commands.ExecuteReply)
        except BaseException:
            self.routes.abandon(channel.command_id, self.config.abandon_grace)
            raise

        return parsed, channel


    def inspect(self, code, cursor_pos=None, detail_level=0):
        """ Request introspection of the object at *cursor_pos* in *code*.
        """

        request = commands.InspectRequest(code, cursor_pos, detail_level)
        reply, _ = self._request(request.msg_type, request, listen=False)
        return self._parse_reply(reply, commands.InspectReply)


    def complete(self, code, cursor_pos=None):
        request = commands.CompleteRequest(code, cursor_pos)
        reply, _ = self._request(request.msg_type, request, listen=False)
        return self._parse_reply(reply, commands.CompleteReply)


    def history(self, **options):
        """ Request input (and optionally output) history from the kernel.
            Keyword arguments are passed to
            :class:`kernelclient.protocol.commands.HistoryRequest`.
        """

        request = commands.HistoryRequest(**options)
        reply, _ = self._request(request.msg_type, request, listen=False)
        return self._parse_reply(reply, commands.HistoryReply)


    def run(self):
        """ Main loop of the background thread: drain the broadcast channel
            until the client is closed or something fatal happens.
        """

        while self.shutdown == False:
            try:
                envelope = self.broadcasts.recv(self.config.poll_interval)
            except TransportClosed:
                break
            except Exception as exc:
                # A stream that cannot be decoded, or that fails signature
                # checks, cannot be trusted for routing anything else.
                self._fail(exc)
                break

            if envelope is None:
                continue

            try:
                self._handle(envelope)
            except Exception as exc:
                # Anything escaping the handler is fatal as well.
                self._fail(exc)
                break


    def _handle(self, envelope):

        try:
            content = parse_content(envelope.msg_type, envelope.content)
        except ValueError as exc:
            raise DecodingError('invalid %s: %s' % (envelope.msg_type, exc)) from exc

        if isinstance(content, UnknownContent):
            self._report(UnknownMessageTypeError(envelope.msg_type))
            return

        parent = envelope.parent_header

        if self.routes.observe(parent.msg_id, envelope.msg_type, content):
            return

        if self.shutdown:
            return

        if self._expects_listener(parent):
            raise OrphanedNotificationError(envelope)

        logger.debug('dropping unsolicited %s for %s', envelope.msg_type, parent.msg_id or '(none)')


    def _expects_listener(self, parent):
        """ Return True if a notification caused by *parent* must have an
            open output channel. Only this client's own execute requests
            qualify, and not after their channel was closed recently or
            abandoned after a failed send or receive.
        """

        if parent.msg_type not in fields.LISTENING_REQUESTS:
            return False

        if parent.session != self.session:
            return False

        if self.routes.recently_closed(parent.msg_id):
            return False

        return True


    def _report(self, error):
        """ Out-of-band sink for errors encountered by the background thread.
        """

        logger.warning('%s', error)
        self._callback(error)


    def _fail(self, error):

        logger.error('broadcast processing failed, no further output will be routed: %s', error, exc_info=error)

        # Set the error before closing the entries, so that a concurrent
        # registration either sees the error or has its entry closed here.

        self._error = error
        self.routes.close_all()
        self._callback(error)


    def _callback(self, error):

        callback = self.on_error

        if callback is None:
            return

        try:
            callback(error)
        except Exception:
            logger.exception('error callback failed')


    def close(self):
        """ Stop the background thread, close every open output channel, and
            close both transports. Redundant calls are a no-op.
        """

        with self._close_lock:
            if self.shutdown:
                return
            self.shutdown = True

        # Closing the channels first releases the background thread if it
        # is blocked delivering to a consumer that is no longer reading.

        self.routes.close_all()
        self.broadcasts.close()

        if self.thread is not threading.current_thread():
            self.thread.join(5)

        self.commands.close()
        self.routes.close_all()


# end of class Client



def _default_config():
    return config.ClientConfig()


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
