"""Command line entry point for zat.

    $ zat -r demo/cat
    $ echo "Meow" | zat -w demo/cat
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import List, Optional, Sequence, Tuple

from . import __version__
from . import json
from . import log
from . import transport
from .config import ConfigError, Configuration
from .keyexpr import ValidationError, validate
from .params import DEFAULT_CHUNK_SIZE, Params, PublishParams, SubscribeParams
from .publish import PublishBridge
from .qos import (
    ResolutionError,
    congestion_control_tokens,
    priority_tokens,
    reliability_tokens,
    resolve,
)
from .subscribe import SubscribeBridge

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_USAGE = 2
EXIT_INTERRUPTED = 130

EXAMPLE = """\
Example:
  $ zat -r zenoh/cat
  $ echo "Meow" | zat -w zenoh/cat
"""

# clap-style short spellings of the sub-commands.
_SHORT_COMMANDS = {"-r": "read", "-w": "write"}


def _positive_int(text: str) -> int:
    try:
        value = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer: {text!r}") from None
    if value <= 0:
        raise argparse.ArgumentTypeError(f"must be a positive integer: {text!r}")
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="zat",
        description="Bridge standard input and output to a publish/subscribe session.",
        epilog=EXAMPLE,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    session = parser.add_argument_group("session")
    session.add_argument("-m", "--mode", choices=("peer", "client", "router"),
                         help='the session mode [default: "peer"]')
    session.add_argument("-e", "--connect", action="append", default=[], metavar="ENDPOINT",
                         help="endpoint to connect to, e.g. tcp/127.0.0.1:7447 (repeatable)")
    session.add_argument("-l", "--listen", action="append", default=[], metavar="ENDPOINT",
                         help="endpoint to listen on, e.g. tcp/0.0.0.0:7447 (repeatable)")
    session.add_argument("--no-multicast-scouting", action="store_true",
                         help="disable the multicast-based scouting mechanism")
    session.add_argument("-c", "--config", metavar="FILE",
                         help="a JSON5 configuration file")
    session.add_argument("--cfg", action="append", default=[], metavar="KEY:VALUE",
                         help="arbitrary configuration change as a colon-separated KEY:VALUE pair, "
                              "VALUE being JSON5 (repeatable)")
    parser.add_argument("-v", "--verbose", action="count", default=0,
                        help="log more on standard error (repeatable)")

    commands = parser.add_subparsers(dest="command", metavar="{read,-r,write,-w}")
    commands.required = True

    read = commands.add_parser("read", help="read from the session and write to stdout (-r)")
    read.add_argument("keyexpr", help="the topic expression to read from")
    read.add_argument("-i", "--ignore-eof", action="store_true",
                      help="do not exit on end of stream")

    write = commands.add_parser("write", help="read from stdin and write to the session (-w)")
    write.add_argument("keyexpr", help="the topic expression to write on")
    write.add_argument("-t", "--reliability", choices=reliability_tokens,
                       help="the reliability to use for writing")
    write.add_argument("-d", "--congestion-control", choices=congestion_control_tokens,
                       help="the congestion control to use for writing")
    write.add_argument("-p", "--priority", choices=priority_tokens,
                       help="the priority to use for writing")
    write.add_argument("-e", "--express", action="store_true",
                       help="the express flag to use for writing")
    write.add_argument("-b", "--buffer", type=_positive_int, default=DEFAULT_CHUNK_SIZE,
                       help=f"the buffer size to read on [default: {DEFAULT_CHUNK_SIZE}]")

    return parser


def expand_short_commands(argv: Sequence[str]) -> List[str]:
    """Replace the first ``-r`` or ``-w`` with its sub-command name."""

    argv = list(argv)
    for index, argument in enumerate(argv):
        if argument == "--":
            break
        if argument in _SHORT_COMMANDS:
            argv[index] = _SHORT_COMMANDS[argument]
            break
        if argument in ("read", "write"):
            break
    return argv


def params(args: argparse.Namespace) -> Params:
    """Build the invocation parameters from parsed arguments.

    Raises ValidationError for a malformed topic expression and
    ResolutionError for an out-of-set QoS token.
    """

    topic = validate(args.keyexpr)

    if args.command == "read":
        return SubscribeParams(topic=topic, continue_on_eos=args.ignore_eof)

    qos = resolve(args.reliability, args.congestion_control, args.priority, args.express)
    return PublishParams(topic=topic, qos=qos, chunk_size=args.buffer)


def split_cfg(pair: str) -> Tuple[str, str]:
    key, sep, value = pair.partition(":")
    if not sep:
        raise ConfigError(f"`--cfg` argument: expected KEY:VALUE pair, got {pair}")
    return key, value


def config(args: argparse.Namespace) -> Configuration:
    """Build the session configuration from parsed arguments."""

    if args.config:
        configuration = Configuration.from_file(args.config)
    else:
        configuration = Configuration()

    if args.mode:
        configuration.insert("mode", args.mode)
    if args.connect:
        configuration.insert("connect/endpoints", args.connect)
    if args.listen:
        configuration.insert("listen/endpoints", args.listen)
    if args.no_multicast_scouting:
        configuration.insert("scouting/multicast/enabled", False)

    for pair in args.cfg:
        key, value = split_cfg(pair)
        try:
            configuration.insert_json(key, value)
        except ConfigError as exc:
            raise ConfigError(f"`--cfg` argument: could not parse `{pair}`: {exc}") from exc

    return configuration


def run(invocation: Params, configuration: Configuration) -> int:
    """Open a session and run the bridge matching *invocation*."""

    with transport.open_session(configuration) as session:
        if isinstance(invocation, PublishParams):
            PublishBridge(session, invocation).run()
        else:
            SubscribeBridge(session, invocation).run()

    return EXIT_OK


def _report(error: BaseException) -> None:
    sys.stderr.write(f"zat: error: {error}\n")
    sys.stderr.flush()
    logger.debug("fatal error", exc_info=error)


def main(argv: Optional[Sequence[str]] = None) -> int:
    if argv is None:
        argv = sys.argv[1:]

    parser = build_parser()
    args = parser.parse_args(expand_short_commands(argv))

    log.configure(args.verbose)
    logger.debug("zat %s, JSON via %s", __version__, json.backend)

    try:
        invocation = params(args)
        configuration = config(args)
        return run(invocation, configuration)
    except KeyboardInterrupt:
        logger.info("interrupted")
        return EXIT_INTERRUPTED
    except BrokenPipeError as exc:
        # Nobody is reading standard output any more; keep the interpreter
        # from failing again while flushing it at exit.
        devnull = os.open(os.devnull, os.O_WRONLY)
        os.dup2(devnull, sys.stdout.fileno())
        _report(exc)
        return EXIT_ERROR
    except (ValidationError, ResolutionError, ConfigError, transport.TransportError, OSError) as exc:
        _report(exc)
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
