""" The publish bridge: standard input in, one published message per chunk
    out. Chunks are published synchronously and in input order; message N+1
    is not sent until the publish call for message N has returned.
"""

import logging
import sys

logger = logging.getLogger(__name__)


class PublishBridge:
    """ Read the *stream* (standard input by default) in chunks of at most
        ``params.chunk_size`` bytes and publish each chunk on ``params.topic``
        with ``params.qos`` via the *session*.

        Any exception raised by the session, including
        :class:`zat.transport.PublishError`, stops the bridge and propagates
        to the caller; a chunk is never retried or skipped. The same applies
        to read errors on the input stream.

        :ivar published: The number of messages published so far.
    """

    def __init__(self, session, params, stream=None):

        if stream is None:
            stream = sys.stdin.buffer

        self.session = session
        self.params = params
        self.stream = stream
        self.published = 0

        # A single buffer is reused for every read; only the bytes actually
        # read are handed to the session.

        self.buffer = bytearray(params.chunk_size)


    def run(self):
        """ Publish until the input is exhausted. Returns the number of
            messages published.
        """

        topic = self.params.topic
        qos = self.params.qos
        view = memoryview(self.buffer)

        logger.info('publishing standard input on %s in chunks of %d bytes', topic, len(self.buffer))

        while True:
            count = self._read(view)

            # A zero-length read is the end of the input, not an error.

            if not count:
                break

            self.session.publish(topic, bytes(view[:count]), qos)
            self.published += 1

            logger.debug('published %d bytes on %s', count, topic)

        logger.info('end of input after %d message(s)', self.published)
        return self.published


    def _read(self, view):
        """ Read at most one chunk. :func:`readinto1` is preferred since it
            returns whatever is available instead of waiting for a full
            buffer, which matters for interactive input.
        """

        stream = self.stream

        try:
            readinto = stream.readinto1
        except AttributeError:
            readinto = stream.readinto

        return readinto(view)


# end of class PublishBridge


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
