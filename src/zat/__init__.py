""" Python implementation of zat, a bridge between standard input/output and
    a publish/subscribe session. Read mode writes every payload received on a
    topic expression to standard output; write mode publishes standard input
    in fixed-size chunks.
"""

__version__ = '0.1.0'

# Utility components.

from . import json
from . import log

# Submodules used by multiple other components.

from . import keyexpr
from . import qos
from . import params
from . import config
from . import transport

# Primary public-facing interfaces.

from .keyexpr import TopicExpression, ValidationError, validate
from .qos import Qos, ResolutionError, resolve
from .params import PublishParams, SubscribeParams
from .config import Configuration, ConfigError
from .publish import PublishBridge
from .subscribe import SubscribeBridge

# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
