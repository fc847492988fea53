"""Session interface.

This is the (small) contract that session implementations should follow.
It lives apart from the bridges so they remain transport-agnostic: a bridge
only ever sees :class:`Session`, :class:`MessageStream`, :class:`Sample` and
:class:`EndOfStream`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import NamedTuple, Optional, Union

from ..keyexpr import TopicExpression
from ..qos import Qos


# Transport agnostic exceptions

class TransportError(Exception):
    """Base class for all session and transport errors."""


class ConnectError(TransportError):
    """The session could not be established."""


class PublishError(TransportError):
    """A message was not accepted by the session."""


class SubscribeStreamError(TransportError):
    """Unrecoverable error while waiting for messages."""


class Sample(NamedTuple):
    """One received message."""

    key: str
    payload: bytes
    qos: Qos = Qos()
    timestamp: Optional[float] = None


class EndOfStream(NamedTuple):
    """No further messages are currently available for *key*.

    *key* is None when the local session itself was closed.
    """

    key: Optional[str] = None


Received = Union[Sample, EndOfStream]


class MessageStream(ABC):
    """Incoming messages for one subscription, in arrival order."""

    @abstractmethod
    def recv(self) -> Received:
        """Block until the next Sample or EndOfStream is available."""

    def close(self) -> None:
        """Stop receiving."""

    def __iter__(self):
        while True:
            yield self.recv()


class Session(ABC):
    """Minimal contract for a publish/subscribe session."""

    @abstractmethod
    def publish(self, topic: TopicExpression, payload: bytes, qos: Qos) -> None:
        """Publish *payload* on *topic*; return once the session accepted it."""

    @abstractmethod
    def subscribe(self, topic: TopicExpression) -> MessageStream:
        """Return the stream of messages whose keys intersect *topic*."""

    @abstractmethod
    def close(self) -> None:
        """Release every socket held by the session."""

    @property
    def is_open(self) -> bool:
        """Whether the session is currently usable."""
        return False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, tb) -> None:
        self.close()
