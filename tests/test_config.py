import pytest
import zat

from zat.config import ConfigError, Configuration


def test_defaults():

    config = Configuration()
    assert config['mode'] == 'peer'
    assert config['connect/endpoints'] == []
    assert config['listen/endpoints'] == []
    assert config['scouting/multicast/enabled'] == True
    assert config.get('transport/linger') == 1000

    with pytest.raises(ConfigError):
        config.get('no/such/key')


def test_insert():

    config = Configuration()
    config.insert('mode', 'client')
    config.insert('connect/endpoints', ['tcp/127.0.0.1:7447'])
    config.insert('scouting', {'multicast': {'enabled': False}})

    assert config['mode'] == 'client'
    assert config['connect/endpoints'] == ['tcp/127.0.0.1:7447']
    assert config['scouting/multicast/enabled'] == False

    # Untouched siblings keep their defaults.

    assert config['scouting/multicast/interval'] == 1000


def test_insert_json():

    config = Configuration()
    config.insert_json('transport/join_timeout', '250')
    config.insert_json('listen/endpoints', '["tcp/0.0.0.0:7447"]')
    config.insert_json('/mode/', '"router"')

    assert config['transport/join_timeout'] == 250
    assert config['listen/endpoints'] == ['tcp/0.0.0.0:7447']
    assert config['mode'] == 'router'

    with pytest.raises(ConfigError):
        config.insert_json('transport/linger', 'not json')


def test_rejected_values():

    config = Configuration()

    bad = (('no/such/key', 1),
           ('mode', 'satellite'),
           ('scouting/multicast/enabled', 'yes'),
           ('transport/linger', True),
           ('transport/linger', -1),
           ('connect/endpoints', [1, 2]),
           ('scouting', 'off'),
           ('mode/deeper', 'x'),
           ('', 1))

    for key, value in bad:
        with pytest.raises(ConfigError):
            config.insert(key, value)

    # Nothing above should have changed anything.

    assert config.to_dict() == Configuration().to_dict()


def test_single_endpoint_string():

    config = Configuration()
    config.insert('connect/endpoints', 'tcp/10.0.0.1:7447')
    assert config['connect/endpoints'] == ['tcp/10.0.0.1:7447']


def test_get_returns_a_copy():

    config = Configuration()
    endpoints = config['connect/endpoints']
    endpoints.append('tcp/127.0.0.1:1')
    assert config['connect/endpoints'] == []


def test_from_file(tmp_path):

    path = tmp_path / 'zat.json'
    path.write_text('{"mode": "client", "connect": {"endpoints": ["tcp/127.0.0.1:7447"]}}')

    config = Configuration.from_file(path)
    assert config['mode'] == 'client'
    assert config['connect/endpoints'] == ['tcp/127.0.0.1:7447']
    assert config['listen/endpoints'] == []


def test_from_json5_file(tmp_path):

    path = tmp_path / 'zat.json5'
    path.write_text('''{
        // Talk to the router only.
        mode: 'client',
        connect: {
            endpoints: ['tcp/127.0.0.1:7447',],  /* trailing comma */
        },
        scouting: {multicast: {enabled: false}},
    }''')

    config = Configuration.from_file(path)
    assert config['mode'] == 'client'
    assert config['connect/endpoints'] == ['tcp/127.0.0.1:7447']
    assert config['scouting/multicast/enabled'] == False


def test_insert_json5():

    config = Configuration()
    config.insert_json('scouting', "{multicast: {interval: 250,},}")
    config.insert_json('mode', "'router'")

    assert config['scouting/multicast/interval'] == 250
    assert config['mode'] == 'router'


def test_from_bad_file(tmp_path):

    with pytest.raises(ConfigError):
        Configuration.from_file(tmp_path / 'missing.json')

    path = tmp_path / 'broken.json'
    path.write_text('{"mode": ')
    with pytest.raises(ConfigError):
        Configuration.from_file(path)

    path = tmp_path / 'list.json'
    path.write_text('[1, 2, 3]')
    with pytest.raises(ConfigError):
        Configuration.from_file(path)

    path = tmp_path / 'unknown.json'
    path.write_text('{"plugins": {}}')
    with pytest.raises(ConfigError):
        Configuration.from_file(path)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
