''' JSON handling for zat message headers and configuration files, using the
    fastest library available: msgspec, then orjson, then the standard
    library. Whichever one is in use, :func:`dumps` returns bytes,
    :func:`loads` accepts bytes or str, and :data:`DecodeError` is what
    :func:`loads` raises for malformed input. Payloads never pass through
    here.
'''

# Libraries are only imported until one is found; there is no point in
# loading orjson if msgspec is already present.

msgspec = None
orjson = None
json = None

try:
    import msgspec
except ImportError:
    pass

if msgspec is None:
    try:
        import orjson
    except ImportError:
        pass

if msgspec is None and orjson is None:
    import json


if msgspec is not None:
    backend = 'msgspec'
    _encoder = msgspec.json.Encoder()
    _decoder = msgspec.json.Decoder()

    dumps = _encoder.encode
    loads = _decoder.decode
    DecodeError = msgspec.DecodeError

elif orjson is not None:
    backend = 'orjson'
    dumps = orjson.dumps
    loads = orjson.loads
    DecodeError = orjson.JSONDecodeError

else:
    backend = 'json'

    def dumps(value):
        # Match the other two: bytes out.
        return json.dumps(value).encode()

    loads = json.loads
    DecodeError = json.JSONDecodeError


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
