"""ZMQ multipart framing for zat messages.

Publish (XPUB/SUB)
    topic_with_trailing_dot, version, kind, header_json, payload

The kind is ``PUT`` for a sample and ``EOS`` when a publisher is done with a
key; the payload frame is empty for ``EOS``.
"""

from __future__ import annotations

import time
from typing import Optional, Sequence, Tuple

from ... import json
from ...qos import Qos, ResolutionError
from ..base import EndOfStream, Received, Sample


PROTOCOL_VERSION = b"zat1"

PUT = b"PUT"
EOS = b"EOS"


class FramingError(ValueError):
    """A multipart message is not a valid zat frame."""


def topic_frame(key: str) -> bytes:
    # Trailing dot prevents an exact-key SUB filter from matching longer keys.
    return (str(key) + ".").encode()


def to_put_frames(key: str, payload: bytes, qos: Qos, source: Optional[str] = None) -> Tuple[bytes, ...]:
    """Encode a sample for the XPUB socket."""

    header = qos.to_dict()
    header["timestamp"] = time.time()
    header["source"] = source
    return (topic_frame(key), PROTOCOL_VERSION, PUT, json.dumps(header), bytes(payload))


def to_eos_frames(key: str, qos: Qos, source: Optional[str] = None) -> Tuple[bytes, ...]:
    """Encode an end-of-stream marker for *key*."""

    header = qos.to_dict()
    header["timestamp"] = time.time()
    header["source"] = source
    return (topic_frame(key), PROTOCOL_VERSION, EOS, json.dumps(header), b"")


def from_frames(parts: Sequence[bytes]) -> Received:
    """Decode SUB parts into a :class:`Sample` or :class:`EndOfStream`."""

    if len(parts) != 5:
        raise FramingError(f"expected 5 frames, got {len(parts)}")

    topic, version, kind, header_bytes, payload = parts

    if version != PROTOCOL_VERSION:
        raise FramingError(f"message is zat protocol {version!r}, recipient expects {PROTOCOL_VERSION!r}")

    try:
        key = bytes(topic).decode()
    except UnicodeDecodeError as exc:
        raise FramingError("topic frame is not UTF-8") from exc

    if not key.endswith("."):
        raise FramingError(f"topic frame without trailing dot: {key!r}")
    key = key[:-1]

    try:
        header = json.loads(header_bytes) if header_bytes else {}
    except (json.DecodeError, ValueError) as exc:
        raise FramingError(f"invalid header: {exc}") from exc

    if not isinstance(header, dict):
        raise FramingError("header is not a JSON object")

    if kind == EOS:
        return EndOfStream(key=key)

    if kind != PUT:
        raise FramingError(f"unknown message kind {kind!r}")

    try:
        qos = Qos.from_dict(header)
    except ResolutionError as exc:
        raise FramingError(f"invalid header: {exc}") from exc

    return Sample(key=key, payload=bytes(payload), qos=qos, timestamp=header.get("timestamp"))
