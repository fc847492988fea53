""" A simple broadcast UDP scouting method. A publishing session fires up a
    :class:`Responder` instance, and subscribing sessions use a :class:`Scout`
    to find any publishers on the local network.

    No other information is exchanged beyond the TCP port a publisher is
    listening on; the subscriber connects to that port at the address the
    response came from, and the ZeroMQ subscription takes it from there.
"""

import logging
import socket
import threading
import time

logger = logging.getLogger(__name__)

call = 'zat?'
call = call.encode()

response = 'zat:'
response = response.encode()

default_address = '255.255.255.255'
default_port = 7446


def parse_address(address):
    """ Split a ``host:port`` scouting *address* into a (host, port) tuple.
        A bare port number uses the broadcast address.
    """

    address = str(address).strip()

    if ':' in address:
        host, port = address.rsplit(':', 1)
    else:
        host, port = default_address, address

    host = host.strip('[]')
    if host == '':
        host = default_address

    try:
        port = int(port)
    except ValueError:
        raise ValueError('invalid scouting address: ' + repr(address)) from None

    if port <= 0 or port > 65535:
        raise ValueError('invalid scouting port: ' + repr(address))

    return host, port



class Responder:
    """ Listen for any scouting calls on the scouting *port*; respond to any
        queries with the TCP *listen* port we were provided. This allows
        subscribers to discover a valid location where they can connect.
    """

    def __init__(self, listen, port=default_port):
        self.delay = 1
        self.seen = dict()
        self.socket = None
        self.thread = None

        listen = int(listen)
        listen = str(listen)
        listen = listen.encode()
        self.response = response + listen

        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEPORT, 1)
        except (AttributeError, OSError):
            pass

        try:
            sock.bind(('', port))
        except OSError as e:
            # Another process may own the port without SO_REUSEPORT. Scouting
            # is best-effort; the explicit endpoints still work.
            logger.warning('scouting responder cannot bind UDP port %d: %s', port, e)
            sock.close()
            return

        # The timeout lets run() notice cleanup() between calls.

        sock.settimeout(1)
        self.socket = sock
        self.thread = threading.Thread(target=self.run)
        self.thread.daemon = True
        self.thread.start()


    def cleanup(self):

        sock = self.socket
        self.socket = None
        self.seen = dict()
        self.thread = None

        if sock is not None:
            sock.close()


    def run(self):

        while True:
            sock = self.socket
            if sock is None:
                break

            try:
                data, address = sock.recvfrom(4096)
            except socket.timeout:
                continue
            except OSError:
                # Socket closed by cleanup().
                break

            now = time.time()

            try:
                last_response = self.seen[address]
            except KeyError:
                last_response = 0

            if last_response + self.delay > now:
                # Throttling responses to this client, we already corresponded
                # with them in recent memory.
                continue

            data = data.strip()
            if data == call and self.socket is not None:
                try:
                    self.socket.sendto(self.response, address)
                except OSError as e:
                    logger.debug('scouting response to %s failed: %s', address, e)
                    continue
                self.seen[address] = now


# end of class Responder



class Scout:
    """ Non-blocking counterpart to :class:`Responder`. The owner polls
        :attr:`socket` for readability alongside its other sockets, calls
        :func:`call` every so often, and :func:`collect` whenever the socket
        is readable. Each publisher is only reported once.
    """

    def __init__(self, address=default_address, port=default_port, interval=1.0):

        self.target = (address, int(port))
        self.interval = float(interval)
        self.last_call = None
        self.found = set()

        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
        sock.setblocking(False)
        sock.bind(('', 0))
        self.socket = sock


    def due(self, now=None):
        """ Return True if the next call should be broadcast.
        """

        if now is None:
            now = time.time()

        if self.last_call is None:
            return True

        return now - self.last_call >= self.interval


    def call(self, now=None):
        """ Broadcast a scouting call. Failures are logged and otherwise
            ignored; the next interval will try again.
        """

        if now is None:
            now = time.time()

        self.last_call = now

        try:
            self.socket.sendto(call, self.target)
        except OSError as e:
            logger.debug('scouting call to %s:%d failed: %s', self.target[0], self.target[1], e)


    def collect(self):
        """ Read any pending responses and return a list of newly discovered
            (address, port) tuples.
        """

        discovered = list()

        while True:
            try:
                data, server = self.socket.recvfrom(4096)
            except (BlockingIOError, InterruptedError):
                break
            except OSError as e:
                logger.debug('scouting receive failed: %s', e)
                break

            data = data.strip()
            if data.startswith(response) == False:
                continue

            try:
                port = int(data[len(response):])
            except ValueError:
                continue

            found = (server[0], port)
            if found in self.found:
                continue

            self.found.add(found)
            discovered.append(found)

        return discovered


    def close(self):
        self.socket.close()


# end of class Scout


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
