""" Quality of service attached to every published message. The command line
    accepts a fixed set of tokens for each field; :func:`resolve` maps those
    tokens, or their absence, onto a concrete :class:`Qos` value.
"""

import dataclasses
import enum


class ResolutionError(ValueError):
    """ Raised when a QoS token is outside its closed set.
    """

    def __init__(self, field, token):
        ValueError.__init__(self, 'invalid %s: %r' % (field, token))
        self.field = field
        self.token = token


# end of class ResolutionError



class Reliability(enum.Enum):
    RELIABLE = 'reliable'
    BEST_EFFORT = 'besteffort'


class CongestionControl(enum.Enum):
    DROP = 'drop'
    BLOCK = 'block'


class Priority(enum.IntEnum):
    """ Message priority, 1 being the most urgent.
    """

    REAL_TIME = 1
    INTERACTIVE_HIGH = 2
    INTERACTIVE_LOW = 3
    DATA_HIGH = 4
    DATA = 5
    DATA_LOW = 6
    BACKGROUND = 7


DEFAULT_RELIABILITY = Reliability.BEST_EFFORT
DEFAULT_CONGESTION_CONTROL = CongestionControl.DROP
DEFAULT_PRIORITY = Priority.DATA

reliability_tokens = tuple(member.value for member in Reliability)
congestion_control_tokens = tuple(member.value for member in CongestionControl)
priority_tokens = tuple(str(int(member)) for member in Priority)


@dataclasses.dataclass(frozen=True)
class Qos:
    """ An immutable set of quality of service parameters.
    """

    reliability: Reliability = DEFAULT_RELIABILITY
    congestion_control: CongestionControl = DEFAULT_CONGESTION_CONTROL
    priority: Priority = DEFAULT_PRIORITY
    express: bool = False

    def to_dict(self):
        """ Return the JSON-friendly representation used on the wire.
        """

        fields = dict()
        fields['reliability'] = self.reliability.value
        fields['congestion_control'] = self.congestion_control.value
        fields['priority'] = int(self.priority)
        fields['express'] = self.express
        return fields


    @classmethod
    def from_dict(cls, fields):
        """ Inverse of :func:`to_dict`; missing fields take their defaults.
            Unknown tokens raise :class:`ResolutionError`.
        """

        priority = fields.get('priority')
        if priority is not None:
            priority = str(priority)

        return resolve(fields.get('reliability'),
                       fields.get('congestion_control'),
                       priority,
                       bool(fields.get('express', False)))


# end of class Qos



def resolve(reliability=None, congestion_control=None, priority=None, express=False):
    """ Map the optional *reliability*, *congestion_control* and *priority*
        tokens to a :class:`Qos` instance. Absent tokens (None) resolve to the
        defaults: best effort, drop, and priority 5. The priority token may be
        the string or the integer form of 1 through 7.
    """

    return Qos(reliability=_resolve_reliability(reliability),
               congestion_control=_resolve_congestion_control(congestion_control),
               priority=_resolve_priority(priority),
               express=bool(express))



def _resolve_reliability(token):

    if token is None:
        return DEFAULT_RELIABILITY

    try:
        return Reliability(token)
    except ValueError:
        raise ResolutionError('reliability', token) from None



def _resolve_congestion_control(token):

    if token is None:
        return DEFAULT_CONGESTION_CONTROL

    try:
        return CongestionControl(token)
    except ValueError:
        raise ResolutionError('congestion control', token) from None



def _resolve_priority(token):

    if token is None:
        return DEFAULT_PRIORITY

    # Booleans are integers in Python; they are not priorities.

    if isinstance(token, bool):
        raise ResolutionError('priority', token)

    if isinstance(token, int):
        token = str(token)

    if token in priority_tokens:
        return Priority(int(token))

    raise ResolutionError('priority', token)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
