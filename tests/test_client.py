import json as stdlib_json
import kernelclient
import pytest
import threading

from kernelclient.protocol import codec
from kernelclient.protocol import commands
from kernelclient.protocol import content
from kernelclient.protocol import fields
from kernelclient.protocol.message import Header, new_header, new_id
from kernelclient.transport import TransportError, TransportTimeout


def test_execute(kernel_factory, client_factory):

    kernel = kernel_factory()
    client = client_factory(kernel)

    reply, output = client.execute('2+2')

    assert isinstance(reply, commands.ExecuteReply)
    assert reply.ok
    assert reply.execution_count is not None

    # Status notifications are consumed by the client, the idle status
    # closes the channel; the only thing delivered is the result.

    received = list(output)
    assert len(received) == 1

    result = received[0]
    assert isinstance(result, content.ExecuteResult)
    assert result.data['text/plain'] == '4'
    assert result.execution_count == reply.execution_count

    assert output.closed
    assert len(client.routes) == 0
    assert client.error is None


def test_execute_request_header(kernel_factory, client_factory):

    kernel = kernel_factory()
    client = client_factory(kernel, username='tester')

    reply, output = client.execute('1', silent=True)
    list(output)

    request = kernel.requests[0]
    assert request.msg_type == fields.EXECUTE_REQUEST
    assert request.header.session == client.session
    assert request.header.username == 'tester'
    assert request.header.version == fields.PROTOCOL_VERSION
    assert not request.parent_header

    assert request.content['code'] == '1'
    assert request.content['silent'] == True
    assert request.content['store_history'] == False
    assert request.content['allow_stdin'] == False


def test_execute_error(kernel_factory, client_factory):

    kernel = kernel_factory()
    client = client_factory(kernel)

    reply, output = client.execute('1/0')

    assert reply.ok == False
    assert reply.status == fields.STATUS_ERROR
    assert reply.ename == 'ZeroDivisionError'

    received = list(output)
    assert len(received) == 1
    assert isinstance(received[0], content.Error)
    assert received[0].ename == 'ZeroDivisionError'


def test_issue_command(kernel_factory, client_factory):

    kernel = kernel_factory()
    client = client_factory(kernel)

    request = commands.ExecuteRequest('3*3')
    reply, output = client.issue_command(request.msg_type, request)

    assert reply.msg_type == fields.EXECUTE_REPLY
    assert reply.parent_id == output.command_id
    assert reply.content['status'] == 'ok'

    received = list(output)
    assert received[0].data['text/plain'] == '9'


def test_output_isolation(kernel_factory, client_factory):

    def handler(request):
        code = request.content['code']
        notifications = list()
        for line in range(5):
            notifications.append((fields.STREAM, {'name': 'stdout', 'text': '%s %d\n' % (code, line)}))
        return {'status': 'ok', 'execution_count': 1}, notifications

    kernel = kernel_factory(handler)
    client = client_factory(kernel)

    outputs = dict()

    def run(code):
        reply, output = client.execute(code)
        outputs[code] = [item.text for item in output]

    threads = list()
    for code in ('first', 'second', 'third'):
        thread = threading.Thread(target=run, args=(code,))
        thread.start()
        threads.append(thread)

    for thread in threads:
        thread.join(5)

    for code in ('first', 'second', 'third'):
        expected = ['%s %d\n' % (code, line) for line in range(5)]
        assert outputs[code] == expected

    assert len(client.routes) == 0


def test_send_failure_releases_entry(kernel_factory, client_factory):

    kernel = kernel_factory()
    client = client_factory(kernel)

    kernel.command.send_error = TransportError('broken pipe')

    with pytest.raises(TransportError):
        client.execute('2+2')

    assert len(client.routes) == 0
    assert client.error is None


def test_reply_timeout_releases_entry(kernel_factory, client_factory, wait_for):

    def handler(request):
        return None, list()

    errors = list()
    kernel = kernel_factory(handler)
    kernel.idle = False
    client = client_factory(kernel, reply_timeout=0.2, orphan_grace=0, on_error=errors.append)

    with pytest.raises(TransportTimeout):
        client.execute('2+2')

    assert len(client.routes) == 0

    # Output the kernel produces for the abandoned command later on is not
    # an error, regardless of how late it arrives.

    parent = kernel.requests[0].header
    kernel.publish(fields.STREAM, {'name': 'stdout', 'text': 'late\n'}, parent)
    kernel.publish(fields.STATUS, {'execution_state': fields.STATE_IDLE}, parent)

    # Broadcasts are handled in order; once this one is reported, the
    # notifications ahead of it have been handled too.

    kernel.publish('comm_open', {}, parent)

    assert wait_for(lambda: len(errors) > 0)
    assert isinstance(errors[0], content.UnknownMessageTypeError)
    assert client.error is None


def test_stale_reply_discarded(kernel_factory, client_factory):

    pending = list()

    def handler(request):
        if len(pending) == 0:
            pending.append(request)
            return None, list()

        # The reply to the first request arrives late, ahead of the reply to
        # the second.
        kernel.reply(pending[0].header, {'status': 'ok', 'execution_count': 1})
        return {'status': 'ok', 'execution_count': 2}, list()

    kernel = kernel_factory(handler)
    client = client_factory(kernel, reply_timeout=0.2)

    with pytest.raises(TransportTimeout):
        client.execute('first')

    reply, output = client.execute('second')
    assert reply.execution_count == 2
    assert list(output) == []


def test_typed_replies(kernel_factory, client_factory):

    def handler(request):
        if request.msg_type == fields.INSPECT_REQUEST:
            assert request.content['cursor_pos'] == len(request.content['code'])
            return {'status': 'ok', 'found': True, 'data': {'text/plain': 'int'}, 'metadata': {}}, list()
        if request.msg_type == fields.COMPLETE_REQUEST:
            return {'status': 'ok', 'matches': ['print', 'property'], 'cursor_start': 0, 'cursor_end': 2, 'metadata': {}}, list()
        if request.msg_type == fields.HISTORY_REQUEST:
            assert request.content['hist_access_type'] == 'tail'
            assert request.content['n'] == 2
            history = [[1, 1, 'a = 1'], [1, 2, ['a', '1']]]
            return {'status': 'ok', 'history': history}, list()
        raise AssertionError(request.msg_type)

    kernel = kernel_factory(handler)
    client = client_factory(kernel)

    inspected = client.inspect('x')
    assert isinstance(inspected, commands.InspectReply)
    assert inspected.found
    assert inspected.data['text/plain'] == 'int'

    completed = client.complete('pr')
    assert completed.matches == ['print', 'property']
    assert completed.cursor_start == 0
    assert completed.cursor_end == 2

    history = client.history(n=2)
    assert len(history.history) == 2
    assert history.history[0].input == 'a = 1'
    assert history.history[0].output is None
    assert history.history[1].input == 'a'
    assert history.history[1].output == '1'

    # None of these listen on the broadcast channel.
    assert len(client.routes) == 0


def test_mismatched_reply_type(kernel_factory, client_factory):

    def handler(request):
        return {'status': 'ok', 'execution_count': 1}, list()

    kernel = kernel_factory(handler)
    original = kernel.reply

    def reply(parent, content, key=None):
        parent = Header.from_dict(parent.to_dict())
        parent.msg_type = fields.EXECUTE_REQUEST
        original(parent, content, key)

    kernel.reply = reply
    client = client_factory(kernel)

    with pytest.raises(codec.DecodingError):
        client.complete('pr')


def test_invalid_signature_is_fatal(kernel_factory, client_factory, wait_for):

    def handler(request):
        return {'status': 'ok', 'execution_count': 1}, list()

    errors = list()
    kernel = kernel_factory(handler)
    kernel.idle = False
    client = client_factory(kernel, on_error=errors.append)

    reply, output = client.execute('pass')
    parent = kernel.requests[0].header

    kernel.publish(fields.STREAM, {'name': 'stdout', 'text': 'forged\n'}, parent, key=b'wrong')

    assert wait_for(lambda: len(errors) > 0)
    assert isinstance(client.error, codec.InvalidSignatureError)
    assert errors == [client.error]

    # Every open channel is closed, and nothing more can be issued.

    assert list(output) == []
    assert output.closed

    with pytest.raises(kernelclient.ClientClosedError) as caught:
        client.execute('pass')

    assert caught.value.__cause__ is client.error


def test_missing_delimiter_is_fatal(kernel_factory, client_factory, wait_for):

    kernel = kernel_factory()
    client = client_factory(kernel)

    kernel.broadcast.push([b'topic', b'', b'{}', b'{}', b'{}', b'{}'])

    assert wait_for(lambda: client.error is not None)
    assert isinstance(client.error, codec.NotFoundError)


def test_unknown_type_is_reported(kernel_factory, client_factory):

    reported = threading.Event()
    errors = list()

    def on_error(error):
        errors.append(error)
        reported.set()

    kernel = kernel_factory()
    client = client_factory(kernel, on_error=on_error)

    parent = new_header(fields.EXECUTE_REQUEST, client.session)
    kernel.publish('comm_msg', {'comm_id': new_id(), 'data': {}}, parent)

    assert reported.wait(2)
    assert isinstance(errors[0], content.UnknownMessageTypeError)
    assert errors[0].msg_type == 'comm_msg'

    # Processing continues.

    reply, output = client.execute('2+2')
    assert len(list(output)) == 1
    assert client.error is None


def test_orphan_is_fatal(kernel_factory, client_factory, wait_for):

    kernel = kernel_factory()
    client = client_factory(kernel)

    # A notification for an execute request from this client that was never
    # registered.

    parent = new_header(fields.EXECUTE_REQUEST, client.session)
    kernel.publish(fields.STREAM, {'name': 'stdout', 'text': 'lost\n'}, parent)

    assert wait_for(lambda: client.error is not None)
    assert isinstance(client.error, kernelclient.OrphanedNotificationError)
    assert client.error.envelope.parent_id == parent.msg_id


def test_oversized_integer_is_tolerated(kernel_factory, client_factory, monkeypatch):

    # The standard library decodes 1e400 as infinity, which no integer
    # field can hold.
    monkeypatch.setattr(kernelclient.json, 'loads', stdlib_json.loads)

    def handler(request):
        return {'status': 'ok', 'execution_count': 1}, list()

    kernel = kernel_factory(handler)
    kernel.idle = False
    client = client_factory(kernel)

    reply, output = client.execute('pass')
    parent = kernel.requests[0].header

    frames = kernel.message(fields.EXECUTE_RESULT, {}, parent)
    frames[4] = b'{"execution_count": 1e400, "data": {"text/plain": "inf"}, "metadata": {}}'
    frames[0] = codec.sign(frames[1:5], kernel.key)
    kernel.broadcast.push([b'topic', fields.DELIMITER] + frames)

    result = output.get(timeout=2)
    assert isinstance(result, content.ExecuteResult)
    assert result.execution_count is None
    assert result.data['text/plain'] == 'inf'
    assert client.error is None


def test_unexpected_handler_error_is_fatal(kernel_factory, client_factory, monkeypatch, wait_for):

    def handler(request):
        return {'status': 'ok', 'execution_count': 1}, list()

    kernel = kernel_factory(handler)
    kernel.idle = False
    client = client_factory(kernel)

    reply, output = client.execute('pass')

    def broken(msg_type, value):
        raise RuntimeError('cannot parse ' + msg_type)

    monkeypatch.setattr(kernelclient.client, 'parse_content', broken)

    parent = kernel.requests[0].header
    kernel.publish(fields.STREAM, {'name': 'stdout', 'text': 'hello\n'}, parent)

    assert wait_for(lambda: client.error is not None)
    assert isinstance(client.error, RuntimeError)

    # The background thread stopped, but not before closing every channel.

    client.thread.join(2)
    assert client.thread.is_alive() == False
    assert output.closed
    assert list(output) == []
    assert len(client.routes) == 0

    with pytest.raises(kernelclient.ClientClosedError) as caught:
        client.execute('pass')

    assert caught.value.__cause__ is client.error


def test_abandoned_commands_expire(kernel_factory, client_factory, wait_for):

    def handler(request):
        return None, list()

    kernel = kernel_factory(handler)
    kernel.idle = False
    client = client_factory(kernel, reply_timeout=0.1, orphan_grace=0, abandon_grace=0.1)

    with pytest.raises(TransportTimeout):
        client.execute('2+2')

    parent = kernel.requests[0].header
    assert client.routes.recently_closed(parent.msg_id)

    # Once the abandoned command ages out it is no longer remembered, and
    # output for it is treated like any other orphan.

    assert wait_for(lambda: client.routes.recently_closed(parent.msg_id) == False)

    kernel.publish(fields.STREAM, {'name': 'stdout', 'text': 'very late\n'}, parent)

    assert wait_for(lambda: client.error is not None)
    assert isinstance(client.error, kernelclient.OrphanedNotificationError)


def test_unsolicited_is_dropped(kernel_factory, client_factory):

    kernel = kernel_factory()
    client = client_factory(kernel)

    # Another client's execute request, the kernel's own startup status, and
    # output for a command that does not listen are all ignored.

    foreign = new_header(fields.EXECUTE_REQUEST, new_id())
    kernel.publish(fields.STREAM, {'name': 'stdout', 'text': 'other\n'}, foreign)
    kernel.publish(fields.STATUS, {'execution_state': fields.STATE_STARTING}, Header())

    inspect = new_header(fields.INSPECT_REQUEST, client.session)
    kernel.publish(fields.STATUS, {'execution_state': fields.STATE_BUSY}, inspect)

    reply, output = client.execute('2+2')
    assert len(list(output)) == 1
    assert client.error is None


def test_late_notification_within_grace(kernel_factory, client_factory):

    kernel = kernel_factory()
    client = client_factory(kernel, orphan_grace=60)

    reply, output = client.execute('2+2')
    list(output)

    parent = kernel.requests[0].header
    kernel.publish(fields.STREAM, {'name': 'stdout', 'text': 'straggler\n'}, parent)

    reply, output = client.execute('3+3')
    assert len(list(output)) == 1
    assert client.error is None


def test_close(kernel_factory, client_factory):

    kernel = kernel_factory()
    kernel.idle = False
    client = client_factory(kernel)

    reply, output = client.execute('2+2')
    assert output.closed == False

    with client:
        pass

    assert client.closed
    assert output.closed
    assert len(client.routes) == 0
    assert client.thread.is_alive() == False

    # A second close is a no-op.
    client.close()

    with pytest.raises(kernelclient.ClientClosedError):
        client.execute('2+2')


def test_construction_requires_info():

    with pytest.raises(ValueError):
        kernelclient.Client()


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
