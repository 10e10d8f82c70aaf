import pytest
import queue
import time

import kernelclient
from kernelclient.protocol import codec
from kernelclient.protocol import fields
from kernelclient.protocol.message import Envelope, new_header, new_id
from kernelclient.transport import Transport, TransportClosed


class MemoryTransport(Transport):
    """ Frames written by the test are queued with :func:`push` and handed
        out by :func:`recv`; frames sent by the client are recorded, and
        passed to the *responder* if there is one.
    """

    def __init__(self, responder=None):

        self.responder = responder
        self.sent = list()
        self.incoming = queue.Queue()
        self.shutdown = False
        self.send_error = None


    @property
    def is_open(self):
        return not self.shutdown


    def push(self, frames):
        self.incoming.put(list(frames))


    def send(self, frames):

        if self.shutdown:
            raise TransportClosed('closed')

        if self.send_error is not None:
            raise self.send_error

        frames = list(frames)
        self.sent.append(frames)

        if self.responder is not None:
            self.responder(frames)


    def recv(self, timeout=None):

        if timeout is None:
            deadline = None
        else:
            deadline = time.monotonic() + timeout

        while True:
            if self.shutdown:
                raise TransportClosed('closed')

            wait = 0.01
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return None
                wait = min(wait, remaining)

            try:
                return self.incoming.get(timeout=wait)
            except queue.Empty:
                pass


    def close(self):
        self.shutdown = True


# end of class MemoryTransport



class FakeKernel:
    """ Answers commands the way a kernel would: a busy status on the
        broadcast channel, whatever notifications the *handler* asks for, the
        reply on the command channel, and finally an idle status.

        The *handler* is called with the decoded request envelope and returns
        a tuple of (reply content, list of (msg_type, content) notifications).
        Returning None for the reply content suppresses the reply entirely.
    """

    def __init__(self, handler, key=b''):

        self.handler = handler
        self.key = key
        self.session = new_id()
        self.requests = list()
        self.idle = True

        self.command = MemoryTransport(self.respond)
        self.broadcast = MemoryTransport()


    def respond(self, frames):

        request = codec.decode(frames, self.key)
        self.requests.append(request)

        reply, notifications = self.handler(request)

        self.publish(fields.STATUS, {'execution_state': fields.STATE_BUSY}, request.header)
        for msg_type, content in notifications:
            self.publish(msg_type, content, request.header)

        if reply is not None:
            self.reply(request.header, reply)

        if self.idle:
            self.publish(fields.STATUS, {'execution_state': fields.STATE_IDLE}, request.header)


    def message(self, msg_type, content, parent, key=None):

        if key is None:
            key = self.key

        header = new_header(msg_type, self.session, 'kernel')
        envelope = Envelope(header=header, parent_header=parent, content=content)
        return codec.encode(envelope, key)


    def reply(self, parent, content, key=None):

        msg_type = parent.msg_type.replace('_request', '_reply')
        frames = [fields.DELIMITER] + self.message(msg_type, content, parent, key)
        self.command.push(frames)


    def publish(self, msg_type, content, parent, key=None):

        # Kernels prefix broadcasts with a topic, which arrives as an identity.
        topic = ('kernel.%s.%s' % (self.session, msg_type)).encode()
        frames = [topic, fields.DELIMITER] + self.message(msg_type, content, parent, key)
        self.broadcast.push(frames)


# end of class FakeKernel



def execute_handler(request):
    """ Evaluate simple arithmetic, the way a Python kernel would report it.
    """

    count = execute_handler.count = execute_handler.count + 1
    code = request.content['code']

    try:
        value = eval(code, {'__builtins__': {}})
    except Exception as e:
        error = {'ename': type(e).__name__, 'evalue': str(e), 'traceback': ['Traceback', str(e)]}
        reply = dict(error)
        reply['status'] = 'error'
        reply['execution_count'] = count
        return reply, [(fields.ERROR, error)]

    result = {'execution_count': count, 'data': {'text/plain': repr(value)}, 'metadata': {}}
    reply = {'status': 'ok', 'execution_count': count, 'user_expressions': {}, 'payload': []}
    return reply, [(fields.EXECUTE_RESULT, result)]

execute_handler.count = 0



@pytest.fixture
def kernel_factory():

    def factory(handler=execute_handler, key=b'secret'):
        return FakeKernel(handler, key)

    return factory



@pytest.fixture
def client_factory():

    clients = list()

    def factory(kernel, **settings):

        on_error = settings.pop('on_error', None)
        config = kernelclient.ClientConfig(**settings)
        client = kernelclient.Client(config=config, command=kernel.command, broadcast=kernel.broadcast, key=kernel.key, on_error=on_error)
        clients.append(client)
        return client

    yield factory

    for client in clients:
        client.close()



@pytest.fixture
def wait_for():

    def waiter(predicate, timeout=2):

        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if predicate():
                return True
            time.sleep(0.01)

        return predicate()

    return waiter


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
