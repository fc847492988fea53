""" Session configuration. A :class:`Configuration` behaves like a nested
    dictionary of known keys, addressed with slash-separated paths such as
    ``connect/endpoints`` or ``scouting/multicast/enabled``. Values can come
    from a JSON5 file, from dedicated command line options, or from arbitrary
    ``KEY:VALUE`` overrides.
"""

import copy
import os

import json5


modes = ('peer', 'client', 'router')

# The default configuration doubles as the schema: only keys present here
# are accepted, and values must match the type of the default.

defaults = {
    'mode': 'peer',
    'connect': {
        'endpoints': [],
    },
    'listen': {
        'endpoints': [],
    },
    'scouting': {
        'multicast': {
            'enabled': True,
            'address': '255.255.255.255:7446',
            'interval': 1000,
        },
    },
    'transport': {
        'join_timeout': 3000,
        'linger': 1000,
        'high_water_mark': 1000,
    },
}


class ConfigError(ValueError):
    """ Raised for unknown keys, values of the wrong type, and configuration
        files that cannot be read or parsed.
    """

    pass


# end of class ConfigError



class Configuration:
    """ A convenience class to represent zat session configuration. The
        optional *values* are a nested dictionary merged over the defaults.
    """

    def __init__(self, values=None):

        self._values = copy.deepcopy(defaults)

        if values is not None:
            if not isinstance(values, dict):
                raise ConfigError('configuration must be a JSON object, not ' + type(values).__name__)
            for key, value in _flatten(values):
                self.insert(key, value)


    def __getitem__(self, key):
        return self.get(key)


    def __repr__(self):
        return 'Configuration(' + repr(self._values) + ')'


    @classmethod
    def from_file(cls, path):
        """ Load a configuration from the JSON5 file at *path*. Comments,
            unquoted keys and trailing commas are all accepted.
        """

        path = os.path.expanduser(os.fspath(path))

        try:
            with open(path, 'rb') as handle:
                contents = handle.read()
        except OSError as e:
            raise ConfigError('cannot read configuration file %s: %s' % (path, e.strerror)) from e

        try:
            values = json5.loads(contents.decode('utf-8'))
        except ValueError as e:
            raise ConfigError('cannot parse configuration file %s: %s' % (path, e)) from e

        return cls(values)


    def get(self, key):
        """ Return the value stored at the slash-separated *key*.
        """

        node = self._values
        for part in _split(key):
            if not isinstance(node, dict) or part not in node:
                raise ConfigError('unknown configuration key: ' + repr(key))
            node = node[part]

        return copy.deepcopy(node)


    def insert(self, key, value):
        """ Set the slash-separated *key* to *value*. The key must exist in
            the defaults, and the value must be of the same type as the
            default; a dictionary value is merged key by key.
        """

        parts = _split(key)
        key = '/'.join(parts)

        node = self._values
        schema = defaults
        for part in parts[:-1]:
            if not isinstance(schema, dict) or part not in schema:
                raise ConfigError('unknown configuration key: ' + repr(key))
            node = node[part]
            schema = schema[part]

        last = parts[-1]
        if not isinstance(schema, dict) or last not in schema:
            raise ConfigError('unknown configuration key: ' + repr(key))

        expected = schema[last]

        if isinstance(expected, dict):
            if not isinstance(value, dict):
                raise ConfigError('%s expects a JSON object, got %r' % (key, value))
            for subkey, subvalue in _flatten(value):
                self.insert(key + '/' + subkey, subvalue)
            return

        node[last] = _check_type(key, expected, value)


    def insert_json(self, key, text):
        """ Same as :func:`insert`, with the value given as JSON5 text.
        """

        try:
            value = json5.loads(text)
        except ValueError as e:
            raise ConfigError('could not parse %r as JSON5: %s' % (text, e)) from e

        self.insert(key, value)


    def to_dict(self):
        return copy.deepcopy(self._values)


# end of class Configuration



def _split(key):

    key = str(key).strip('/')
    if key == '':
        raise ConfigError('empty configuration key')

    return key.split('/')



def _flatten(values, prefix=''):
    """ Yield (path, value) pairs for every leaf in a nested dictionary.
    """

    for key, value in values.items():
        path = prefix + str(key)
        if isinstance(value, dict) and value:
            for pair in _flatten(value, path + '/'):
                yield pair
        else:
            yield path, value



def _check_type(key, expected, value):

    if key == 'mode':
        if value not in modes:
            raise ConfigError('invalid mode %r, expected one of: %s' % (value, ', '.join(modes)))
        return value

    if isinstance(expected, bool):
        if not isinstance(value, bool):
            raise ConfigError('%s expects true or false, got %r' % (key, value))
        return value

    if isinstance(expected, (int, float)):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ConfigError('%s expects a number, got %r' % (key, value))
        if value < 0:
            raise ConfigError('%s must not be negative, got %r' % (key, value))
        return value

    if isinstance(expected, str):
        if not isinstance(value, str):
            raise ConfigError('%s expects a string, got %r' % (key, value))
        return value

    if isinstance(expected, list):
        if isinstance(value, str):
            value = [value]
        if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
            raise ConfigError('%s expects a list of strings, got %r' % (key, value))
        return list(value)

    raise ConfigError('unsupported configuration value for %s: %r' % (key, value))


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
