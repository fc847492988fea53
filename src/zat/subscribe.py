""" The subscribe bridge: messages in, payload bytes out. Payloads are
    written verbatim, in arrival order, with no framing between them.
"""

import enum
import logging
import sys

from .transport.base import EndOfStream

logger = logging.getLogger(__name__)


class State(enum.Enum):
    LISTENING = 'listening'
    DRAINING = 'draining'
    TERMINATED = 'terminated'


class SubscribeBridge:
    """ Subscribe to ``params.topic`` via the *session* and write each payload
        to the *output* stream (standard output by default), flushing after
        every message.

        An end-of-stream signal either ends the bridge or, if
        ``params.continue_on_eos`` is set, is treated as a lull and the bridge
        keeps listening. :class:`zat.transport.SubscribeStreamError` and
        output errors terminate the bridge and propagate to the caller.

        :ivar state: The current :class:`State`.
        :ivar received: The number of payloads written so far.
    """

    def __init__(self, session, params, output=None):

        if output is None:
            output = sys.stdout.buffer

        self.session = session
        self.params = params
        self.output = output
        self.state = State.LISTENING
        self.received = 0


    def run(self):
        """ Listen until terminated. Returns the number of payloads written.
        """

        topic = self.params.topic
        stream = self.session.subscribe(topic)

        logger.info('subscribed to %s', topic)

        try:
            for received in stream:
                if isinstance(received, EndOfStream):
                    self.state = self._on_end_of_stream(received)
                else:
                    self.state = State.DRAINING
                    self._write(received.payload)
                    self.state = State.LISTENING

                if self.state is State.TERMINATED:
                    break
        except BaseException:
            self.state = State.TERMINATED
            raise
        finally:
            stream.close()

        logger.info('terminated after %d message(s)', self.received)
        return self.received


    def _on_end_of_stream(self, signal):
        """ Transition guard for an end-of-stream signal. A signal without a
            key means the local session itself went away, which no amount of
            waiting will fix.
        """

        if signal.key is None:
            logger.info('session closed')
            return State.TERMINATED

        if self.params.continue_on_eos:
            logger.info('end of stream on %s, still listening', signal.key)
            return State.LISTENING

        logger.info('end of stream on %s', signal.key)
        return State.TERMINATED


    def _write(self, payload):

        self.output.write(payload)
        self.output.flush()
        self.received += 1


# end of class SubscribeBridge


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
