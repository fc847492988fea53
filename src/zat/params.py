""" Resolved parameters for a single zat invocation. A process runs in exactly
    one mode: :class:`PublishParams` for write mode, :class:`SubscribeParams`
    for read mode.
"""

import dataclasses
import typing

from .keyexpr import TopicExpression
from .qos import Qos


DEFAULT_CHUNK_SIZE = 32768


@dataclasses.dataclass(frozen=True)
class PublishParams:
    """ Parameters for write mode: standard input is published on *topic*
        in chunks of at most *chunk_size* bytes.
    """

    topic: TopicExpression
    qos: Qos = Qos()
    chunk_size: int = DEFAULT_CHUNK_SIZE

    def __post_init__(self):

        object.__setattr__(self, 'topic', TopicExpression(self.topic))

        chunk_size = self.chunk_size
        if isinstance(chunk_size, bool) or not isinstance(chunk_size, int):
            raise TypeError('chunk size must be an integer, not ' + type(chunk_size).__name__)
        if chunk_size <= 0:
            raise ValueError('chunk size must be a positive integer: ' + repr(chunk_size))


# end of class PublishParams



@dataclasses.dataclass(frozen=True)
class SubscribeParams:
    """ Parameters for read mode. If *continue_on_eos* is True the bridge
        keeps listening after an end-of-stream signal instead of exiting.
    """

    topic: TopicExpression
    continue_on_eos: bool = False

    def __post_init__(self):
        object.__setattr__(self, 'topic', TopicExpression(self.topic))


# end of class SubscribeParams


Params = typing.Union[PublishParams, SubscribeParams]


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
