import io
import sys
import threading
import pytest
import zat

from zat import cli
from zat.qos import CongestionControl, Priority, Reliability
from zat.transport import EndOfStream, Sample


def parse(*argv):

    return cli.build_parser().parse_args(cli.expand_short_commands(argv))


@pytest.fixture
def opened(monkeypatch):
    """ Replace session establishment with the given session; the fixture
        value lists every configuration a session was requested for.
    """

    requests = list()

    def install(session):
        def open_session(configuration):
            requests.append(configuration)
            return session

        monkeypatch.setattr(cli.transport, 'open_session', open_session)
        return requests

    return install


def test_expand_short_commands():

    assert cli.expand_short_commands(['-r', 'demo/cat']) == ['read', 'demo/cat']
    assert cli.expand_short_commands(['-m', 'client', '-w', 'demo/cat', '-b', '4']) == \
        ['-m', 'client', 'write', 'demo/cat', '-b', '4']

    # Only the first one counts; later ones belong to the sub-command.
    assert cli.expand_short_commands(['write', '-r']) == ['write', '-r']
    assert cli.expand_short_commands(['--', '-r']) == ['--', '-r']


def test_write_params():

    args = parse('-w', 'demo/cat', '-t', 'reliable', '-d', 'block', '-p', '2', '-e', '-b', '4')
    params = cli.params(args)

    assert isinstance(params, zat.PublishParams)
    assert params.topic == 'demo/cat'
    assert params.chunk_size == 4
    assert params.qos.reliability is Reliability.RELIABLE
    assert params.qos.congestion_control is CongestionControl.BLOCK
    assert params.qos.priority is Priority.INTERACTIVE_HIGH
    assert params.qos.express == True

    params = cli.params(parse('write', 'demo/cat'))
    assert params.qos == zat.Qos()
    assert params.chunk_size == 32768


def test_read_params():

    params = cli.params(parse('-r', 'demo/**'))
    assert isinstance(params, zat.SubscribeParams)
    assert params.continue_on_eos == False

    params = cli.params(parse('-r', 'demo/**', '-i'))
    assert params.continue_on_eos == True


def test_usage_errors():

    for argv in (['-w', 'demo/cat', '-b', '0'],
                 ['-w', 'demo/cat', '-b', 'many'],
                 ['-w', 'demo/cat', '-t', 'sometimes'],
                 ['-w', 'demo/cat', '-p', '8'],
                 ['-m', 'server', '-r', 'demo/cat'],
                 ['demo/cat']):
        with pytest.raises(SystemExit) as raised:
            cli.main(argv)
        assert raised.value.code == cli.EXIT_USAGE


def test_invalid_keyexpr_opens_no_session(opened, recording_session, capsys):

    requests = opened(recording_session)

    assert cli.main(['-w', 'demo//cat']) == cli.EXIT_ERROR
    assert requests == []

    error = capsys.readouterr().err
    assert error.startswith('zat: error: ')
    assert '//' in error


def test_split_cfg():

    assert cli.split_cfg('mode:"client"') == ('mode', '"client"')
    assert cli.split_cfg('connect/endpoints:["tcp/127.0.0.1:7447"]') == \
        ('connect/endpoints', '["tcp/127.0.0.1:7447"]')

    with pytest.raises(zat.ConfigError) as raised:
        cli.split_cfg('mode')
    assert 'expected KEY:VALUE pair, got mode' in str(raised.value)


def test_config():

    args = parse('-m', 'client', '-e', 'tcp/127.0.0.1:7447', '-e', 'tcp/127.0.0.1:7448',
                 '--no-multicast-scouting', '--cfg', 'transport/join_timeout:100', '-r', 'demo/cat')
    configuration = cli.config(args)

    assert configuration['mode'] == 'client'
    assert configuration['connect/endpoints'] == ['tcp/127.0.0.1:7447', 'tcp/127.0.0.1:7448']
    assert configuration['scouting/multicast/enabled'] == False
    assert configuration['transport/join_timeout'] == 100

    args = parse('--cfg', 'transport/join_timeout:soon', '-r', 'demo/cat')
    with pytest.raises(zat.ConfigError) as raised:
        cli.config(args)
    assert 'could not parse' in str(raised.value)


def test_config_file(tmp_path):

    path = tmp_path / 'zat.json'
    path.write_text('{"mode": "router", "listen": {"endpoints": ["tcp/0.0.0.0:7450"]}}')

    args = parse('-c', str(path), '-l', 'tcp/0.0.0.0:7451', '-r', 'demo/cat')
    configuration = cli.config(args)

    # Command line options win over the file.
    assert configuration['mode'] == 'router'
    assert configuration['listen/endpoints'] == ['tcp/0.0.0.0:7451']


def test_missing_config_file(opened, recording_session, tmp_path, capsys):

    requests = opened(recording_session)

    assert cli.main(['-c', str(tmp_path / 'missing.json'), '-r', 'demo/cat']) == cli.EXIT_ERROR
    assert requests == []
    assert 'missing.json' in capsys.readouterr().err


def test_write(opened, recording_session, monkeypatch):

    requests = opened(recording_session)
    monkeypatch.setattr(sys, 'stdin', io.TextIOWrapper(io.BytesIO(b'ABCDEFG')))

    assert cli.main(['-w', 'demo/cat', '-t', 'reliable', '-b', '4']) == cli.EXIT_OK

    assert len(requests) == 1
    assert recording_session.payloads == [b'ABCD', b'EFG']
    assert recording_session.published[0][2].reliability is Reliability.RELIABLE
    assert recording_session.closed == True


def test_read(opened, scripted, capsysbinary):

    session = scripted(Sample('demo/cat', b'x'), Sample('demo/cat', b'yz'), EndOfStream('demo/cat'))
    opened(session)

    assert cli.main(['-r', 'demo/cat']) == cli.EXIT_OK
    assert capsysbinary.readouterr().out == b'xyz'
    assert session.closed == True


def test_write_then_read(tcp_endpoint, monkeypatch, capsysbinary):

    results = list()

    def read():
        results.append(cli.main(['-l', tcp_endpoint, '--no-multicast-scouting', '-r', 'demo/cat']))

    reader = threading.Thread(target=read)
    reader.daemon = True
    reader.start()

    monkeypatch.setattr(sys, 'stdin', io.TextIOWrapper(io.BytesIO(b'Meow\n')))

    # No QoS options: best effort, drop, priority 5.
    assert cli.main(['-e', tcp_endpoint, '--no-multicast-scouting', '-w', 'demo/cat']) == cli.EXIT_OK

    reader.join(10)
    assert reader.is_alive() == False, 'reader did not see the end of the stream'
    assert results == [cli.EXIT_OK]
    assert capsysbinary.readouterr().out == b'Meow\n'


def test_publish_error(opened, monkeypatch, capsys):

    from conftest import RecordingSession

    session = RecordingSession(fail_after=1)
    opened(session)
    monkeypatch.setattr(sys, 'stdin', io.TextIOWrapper(io.BytesIO(b'ABCDEFGH')))

    assert cli.main(['-w', 'demo/cat', '-b', '4']) == cli.EXIT_ERROR
    assert session.payloads == [b'ABCD']
    assert session.closed == True
    assert 'simulated transport failure' in capsys.readouterr().err


def test_interrupt(opened, scripted, capsysbinary):

    session = scripted(Sample('demo/cat', b'x'), KeyboardInterrupt())
    opened(session)

    assert cli.main(['-r', 'demo/cat']) == cli.EXIT_INTERRUPTED
    assert capsysbinary.readouterr().out == b'x'
    assert session.closed == True
    assert session.stream.closed == True


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
