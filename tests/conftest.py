import socket
import pytest
import zat

from zat.transport import (
    EndOfStream,
    MessageStream,
    PublishError,
    Sample,
    Session,
    SubscribeStreamError,
)


class ScriptedStream(MessageStream):
    """ Hand out a fixed sequence of Sample/EndOfStream instances. Exception
        instances in the script are raised instead of returned; running off
        the end of the script raises SubscribeStreamError.
    """

    def __init__(self, script):
        self.script = list(script)
        self.closed = False

    def recv(self):
        if len(self.script) == 0:
            raise SubscribeStreamError('script exhausted')

        item = self.script.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    def close(self):
        self.closed = True


class RecordingSession(Session):
    """ Remember every publish; raise PublishError once *fail_after*
        messages have been published.
    """

    def __init__(self, stream=None, fail_after=None):
        self.published = list()
        self.subscribed = list()
        self.stream = stream
        self.fail_after = fail_after
        self.closed = False

    @property
    def is_open(self):
        return self.closed == False

    def publish(self, topic, payload, qos):
        if self.fail_after is not None and len(self.published) >= self.fail_after:
            raise PublishError('simulated transport failure')
        self.published.append((topic, payload, qos))

    def subscribe(self, topic):
        self.subscribed.append(topic)
        return self.stream

    def close(self):
        self.closed = True

    @property
    def payloads(self):
        return [payload for topic, payload, qos in self.published]


@pytest.fixture
def tcp_endpoint():
    """ A loopback TCP endpoint on a port that was free a moment ago.
    """

    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(('127.0.0.1', 0))
    port = sock.getsockname()[1]
    sock.close()

    return 'tcp/127.0.0.1:' + str(port)


@pytest.fixture
def recording_session():
    return RecordingSession()


@pytest.fixture
def scripted():
    """ Factory for a RecordingSession wrapped around a ScriptedStream.
    """

    def factory(*script):
        return RecordingSession(stream=ScriptedStream(script))

    return factory


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
