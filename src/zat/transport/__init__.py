"""Session implementations."""

import os

from .base import (
    TransportError,
    ConnectError,
    PublishError,
    SubscribeStreamError,
    Session,
    MessageStream,
    Sample,
    EndOfStream,
)

_BACKEND = os.environ.get("ZAT_TRANSPORT", "zmq")

if _BACKEND == "zmq":
    from .zmq import session as backend
else:
    raise ImportError(f"unknown ZAT_TRANSPORT backend: {_BACKEND!r}")


def open_session(config) -> Session:
    """Open a session of the selected backend for *config*.

    Raises :class:`ConnectError` if the session cannot be established.
    """
    return backend.open(config)
