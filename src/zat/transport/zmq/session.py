"""ZeroMQ publish/subscribe session.

Publishing goes through an XPUB socket, so the session can see incoming
subscriptions; subscribing goes through a SUB socket. Either socket binds the
configured listen endpoints and connects the configured connect endpoints.
Without explicit endpoints the publisher binds an ephemeral TCP port and
announces it through :mod:`zat.transport.scouting`; subscribers scout for
publishers and connect to them.
"""

from __future__ import annotations

import atexit
import logging
import time
import uuid
from typing import Dict, List, Optional, Set, Tuple

import zmq

from ...config import Configuration
from ...keyexpr import TopicExpression, ValidationError
from ...qos import CongestionControl, Qos, Reliability
from .. import scouting
from ..base import (
    ConnectError,
    EndOfStream,
    MessageStream,
    PublishError,
    Received,
    Session,
    SubscribeStreamError,
)
from .framing import FramingError, from_frames, to_eos_frames, to_put_frames, topic_frame

logger = logging.getLogger(__name__)

zmq_context = zmq.Context()

default_router_listen = "tcp/0.0.0.0:7447"
ephemeral_listen = "tcp/0.0.0.0:0"

_schemes = {
    "tcp": "tcp",
    "ipc": "ipc",
    "unixsock-stream": "ipc",
    "inproc": "inproc",
}

_unspecified_hosts = ("0.0.0.0", "::", "*")


def to_zmq_endpoint(locator: str, bind: bool = False) -> str:
    """Translate a ``protocol/address`` locator to a ZeroMQ endpoint.

    With *bind* set, unspecified hosts and port 0 become ZeroMQ's ``*``.
    """

    locator = str(locator).strip()

    # Locator metadata (``#iface=eth0`` and the like) has no ZeroMQ meaning.
    locator = locator.split("#", 1)[0].split("?", 1)[0]

    protocol, sep, address = locator.partition("/")
    if not sep or not address:
        raise ConnectError(f"invalid endpoint {locator!r}, expected PROTOCOL/ADDRESS")

    scheme = _schemes.get(protocol)
    if scheme is None:
        raise ConnectError(f"unsupported endpoint protocol {protocol!r} in {locator!r}")

    if scheme == "tcp":
        host, sep, port = address.rpartition(":")
        if not sep or not host or not port.isdigit() or int(port) > 65535:
            raise ConnectError(f"invalid TCP endpoint {locator!r}, expected tcp/HOST:PORT")

        if bind:
            if host.strip("[]") in _unspecified_hosts:
                host = "*"
            if int(port) == 0:
                port = "*"
        elif int(port) == 0:
            raise ConnectError(f"cannot connect to port 0: {locator!r}")

        address = f"{host}:{port}"

    return f"{scheme}://{address}"


def _wants_ipv6(locator: str) -> bool:
    return "[" in str(locator)


def _bound_port(socket: zmq.Socket) -> Optional[int]:
    endpoint = socket.getsockopt(zmq.LAST_ENDPOINT)
    if isinstance(endpoint, bytes):
        endpoint = endpoint.decode()
    if not endpoint.startswith("tcp://"):
        return None
    return int(endpoint.rpartition(":")[2])


class ZmqSession(Session):
    """A session backed by the module-level ZeroMQ context."""

    def __init__(self, config: Configuration):
        self.config = config
        self.mode = config["mode"]
        self.connect: List[str] = list(config["connect/endpoints"])
        self.listen: List[str] = list(config["listen/endpoints"])
        self.scouting: bool = bool(config["scouting/multicast/enabled"])
        self.id = uuid.uuid4().hex

        self._open = True
        self._publisher: Optional[zmq.Socket] = None
        self._responder: Optional[scouting.Responder] = None
        self._nodrop: Optional[bool] = None
        self._subscriptions: Set[bytes] = set()
        self._joined: Set[str] = set()
        self._published: Dict[str, Qos] = {}
        self._streams: List[ZmqStream] = []

        # Fail early on malformed locators rather than on first use.
        for locator in self.connect:
            to_zmq_endpoint(locator)
        for locator in self.listen:
            to_zmq_endpoint(locator, bind=True)

        try:
            self.scout_address: Tuple[str, int] = scouting.parse_address(config["scouting/multicast/address"])
        except ValueError as exc:
            raise ConnectError(str(exc)) from exc

        if self.mode == "client" and self.listen:
            logger.warning("client mode does not listen, ignoring %d listen endpoint(s)", len(self.listen))

        logger.debug("session %s opened in %s mode", self.id, self.mode)

    @property
    def is_open(self) -> bool:
        return self._open

    # --- publishing ---

    def publish(self, topic: TopicExpression, payload: bytes, qos: Qos) -> None:
        if not self._open:
            raise PublishError("session is closed")

        first = self._publisher is None
        socket = self._ensure_publisher()
        key = str(topic)

        try:
            self._set_congestion_control(socket, qos.congestion_control)
            self._drain_subscriptions(socket)

            # Subscribers that are already running only see messages sent
            # after their connection is complete, whatever the reliability.
            # The first publication waits for them once; reliable ones wait
            # again for every new key.

            if key not in self._joined:
                if first or qos.reliability is Reliability.RELIABLE:
                    self._wait_for_subscriber(socket, key)
                self._joined.add(key)

            socket.send_multipart(to_put_frames(key, payload, qos, self.id))
        except zmq.ZMQError as exc:
            raise PublishError(f"publish on {key!r} failed: {exc}") from exc

        self._published[key] = qos

    def _publisher_listen(self) -> List[str]:
        if self.mode == "client":
            if not self.connect:
                raise ConnectError("client mode requires at least one connect endpoint to publish")
            return []

        if self.listen:
            return list(self.listen)

        if self.mode == "router":
            return [default_router_listen]

        if self.scouting:
            return [ephemeral_listen]

        if not self.connect:
            raise ConnectError("nowhere to publish: no connect or listen endpoints, and scouting is disabled")

        return []

    def _ensure_publisher(self) -> zmq.Socket:
        if self._publisher is not None:
            return self._publisher

        listen = self._publisher_listen()

        try:
            socket = zmq_context.socket(zmq.XPUB)
        except zmq.ZMQError as exc:
            raise ConnectError(f"cannot create publisher: {exc}") from exc

        tcp_port = None

        try:
            socket.setsockopt(zmq.LINGER, int(self.config["transport/linger"]))
            socket.setsockopt(zmq.SNDHWM, int(self.config["transport/high_water_mark"]))

            for locator in listen:
                if _wants_ipv6(locator):
                    socket.setsockopt(zmq.IPV6, 1)
                socket.bind(to_zmq_endpoint(locator, bind=True))
                port = _bound_port(socket)
                if tcp_port is None and port is not None:
                    tcp_port = port
                logger.info("publishing on %s", socket.getsockopt(zmq.LAST_ENDPOINT).decode())

            for locator in self.connect:
                if _wants_ipv6(locator):
                    socket.setsockopt(zmq.IPV6, 1)
                socket.connect(to_zmq_endpoint(locator))
                logger.info("publisher connecting to %s", locator)
        except zmq.ZMQError as exc:
            socket.close(linger=0)
            raise ConnectError(f"cannot establish publisher: {exc}") from exc

        if self.scouting and tcp_port is not None:
            host, port = self.scout_address
            self._responder = scouting.Responder(tcp_port, port)

        self._publisher = socket
        return socket

    def _set_congestion_control(self, socket: zmq.Socket, congestion_control: CongestionControl) -> None:
        nodrop = congestion_control is CongestionControl.BLOCK
        if self._nodrop is not nodrop:
            # XPUB_NODROP turns "drop at the high water mark" into "block".
            socket.setsockopt(zmq.XPUB_NODROP, 1 if nodrop else 0)
            self._nodrop = nodrop

    def _drain_subscriptions(self, socket: zmq.Socket) -> None:
        """Consume subscription notices queued on the XPUB socket."""

        while True:
            try:
                notice = socket.recv(zmq.NOBLOCK)
            except zmq.Again:
                break

            if not notice:
                continue

            flag = notice[0]
            prefix = bytes(notice[1:])

            if flag == 1:
                self._subscriptions.add(prefix)
                logger.debug("subscriber joined with filter %r", prefix)
            elif flag == 0:
                self._subscriptions.discard(prefix)
                logger.debug("subscriber left with filter %r", prefix)

    def _has_subscriber(self, key: str) -> bool:
        target = topic_frame(key)
        return any(target.startswith(prefix) for prefix in self._subscriptions)

    def _wait_for_subscriber(self, socket: zmq.Socket, key: str) -> None:
        """Give subscribers up to ``transport/join_timeout`` ms to show up.

        ZeroMQ drops messages published before a subscription arrives; this
        closes that window for reliable publications.
        """

        if self._has_subscriber(key):
            return

        timeout = float(self.config["transport/join_timeout"]) / 1000
        deadline = time.monotonic() + timeout

        poller = zmq.Poller()
        poller.register(socket, zmq.POLLIN)

        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                logger.info("no subscriber for %r after %.1f s, publishing anyway", key, timeout)
                return

            events = dict(poller.poll(remaining * 1000))
            if socket in events:
                self._drain_subscriptions(socket)
                if self._has_subscriber(key):
                    logger.debug("subscriber present for %r", key)
                    return

    # --- subscribing ---

    def subscribe(self, topic: TopicExpression) -> MessageStream:
        if not self._open:
            raise SubscribeStreamError("session is closed")

        topic = TopicExpression(topic)

        try:
            socket = zmq_context.socket(zmq.SUB)
        except zmq.ZMQError as exc:
            raise ConnectError(f"cannot create subscriber: {exc}") from exc

        try:
            socket.setsockopt(zmq.LINGER, 0)
            socket.setsockopt(zmq.RCVHWM, int(self.config["transport/high_water_mark"]))

            if self.mode != "client":
                for locator in self.listen:
                    if _wants_ipv6(locator):
                        socket.setsockopt(zmq.IPV6, 1)
                    socket.bind(to_zmq_endpoint(locator, bind=True))
                    logger.info("subscribing on %s", socket.getsockopt(zmq.LAST_ENDPOINT).decode())

            for locator in self.connect:
                if _wants_ipv6(locator):
                    socket.setsockopt(zmq.IPV6, 1)
                socket.connect(to_zmq_endpoint(locator))
                logger.info("subscriber connecting to %s", locator)
        except zmq.ZMQError as exc:
            socket.close(linger=0)
            raise ConnectError(f"cannot establish subscriber: {exc}") from exc

        scout = None
        if self.scouting and self.mode != "router":
            host, port = self.scout_address
            interval = float(self.config["scouting/multicast/interval"]) / 1000
            try:
                scout = scouting.Scout(host, port, interval)
            except OSError as exc:
                socket.close(linger=0)
                raise ConnectError(f"cannot start scouting: {exc}") from exc

        if self.mode == "client" and not self.connect and scout is None:
            socket.close(linger=0)
            raise ConnectError("client mode requires connect endpoints or scouting to subscribe")

        if topic.is_wild:
            prefix = topic.literal_prefix.encode()
        else:
            prefix = topic_frame(topic)

        try:
            socket.setsockopt(zmq.SUBSCRIBE, prefix)
            stream = ZmqStream(topic, socket, scout)
        except zmq.ZMQError as exc:
            socket.close(linger=0)
            if scout is not None:
                scout.close()
            raise ConnectError(f"cannot subscribe to {str(topic)!r}: {exc}") from exc

        self._streams.append(stream)
        return stream

    # --- lifecycle ---

    def close(self) -> None:
        if not self._open:
            return

        self._open = False

        for stream in self._streams:
            stream.close()
        self._streams = []

        if self._responder is not None:
            self._responder.cleanup()
            self._responder = None

        socket = self._publisher
        self._publisher = None

        if socket is not None:
            for key, qos in self._published.items():
                try:
                    socket.send_multipart(to_eos_frames(key, qos, self.id), zmq.NOBLOCK)
                except zmq.ZMQError as exc:
                    logger.warning("could not announce end of stream on %r: %s", key, exc)

            socket.close(linger=int(self.config["transport/linger"]))

        logger.debug("session %s closed", self.id)


class ZmqStream(MessageStream):
    """Receive loop for one SUB socket, with optional scouting."""

    idle = 1000

    def __init__(self, topic: TopicExpression, socket: zmq.Socket, scout: Optional[scouting.Scout] = None):
        self.topic = topic
        self.socket = socket
        self.scout = scout
        self.closed = False
        self.connected: Set[str] = set()

        # Plain sockets come back from poll() as file descriptors, so the
        # scouting socket is registered by its descriptor to match.

        self.scout_fd: Optional[int] = None

        self.poller = zmq.Poller()
        self.poller.register(socket, zmq.POLLIN)
        if scout is not None:
            self.scout_fd = scout.socket.fileno()
            self.poller.register(self.scout_fd, zmq.POLLIN)

    def recv(self) -> Received:
        while True:
            if self.closed:
                return EndOfStream(key=None)

            if self.scout is not None and self.scout.due():
                self.scout.call()

            try:
                events = dict(self.poller.poll(self._timeout()))
            except zmq.ZMQError as exc:
                raise SubscribeStreamError(f"waiting for messages failed: {exc}") from exc

            if self.scout_fd is not None and self.scout_fd in events:
                self._connect_found(self.scout.collect())

            if self.socket not in events:
                continue

            try:
                parts = self.socket.recv_multipart(zmq.NOBLOCK)
            except zmq.Again:
                continue
            except zmq.ZMQError as exc:
                raise SubscribeStreamError(f"receiving a message failed: {exc}") from exc

            try:
                received = from_frames(parts)
            except FramingError as exc:
                logger.warning("dropping malformed message: %s", exc)
                continue

            if not self._matches(received.key):
                continue

            return received

    def _timeout(self) -> float:
        if self.scout is None:
            return self.idle

        remaining = self.scout.last_call + self.scout.interval - time.time()
        return max(0, min(self.idle, remaining * 1000))

    def _matches(self, key: str) -> bool:
        try:
            return self.topic.intersects(key)
        except ValidationError as exc:
            logger.warning("dropping message with invalid key %r: %s", key, exc)
            return False

    def _connect_found(self, found) -> None:
        for address, port in found:
            endpoint = f"tcp://{address}:{port}"
            if endpoint in self.connected:
                continue
            self.connected.add(endpoint)
            try:
                self.socket.connect(endpoint)
            except zmq.ZMQError as exc:
                logger.warning("cannot connect to scouted publisher %s: %s", endpoint, exc)
                continue
            logger.info("connected to scouted publisher %s", endpoint)

    def close(self) -> None:
        if self.closed:
            return

        self.closed = True

        if self.scout is not None:
            self.poller.unregister(self.scout_fd)
            self.scout.close()

        self.socket.close(linger=0)


def open(config: Optional[Configuration] = None) -> ZmqSession:
    """Open a ZeroMQ session for *config* (defaults if None)."""

    if config is None:
        config = Configuration()
    return ZmqSession(config)


def _cleanup() -> None:
    # Closes any socket a caller forgot to close, honoring its linger.
    zmq_context.destroy()


atexit.register(_cleanup)
