"""Tests for server version parsing.
"""
import pytest
from pgadapter.exceptions import ConnectionFailure, QueryError
from pgadapter.exceptions import VersionDetectionError
from pgadapter.version import MINIMUM_VERSION, UPSERT_VERSION, ServerVersion
from pgadapter.version import coerce_version, detect_server_version
from pgadapter.version import parse_server_version


@pytest.mark.parametrize(('text', 'expected'), [
    ('9.4', (9, 4)),
    ('9.5.25', (9, 5, 25)),
    ('12.4 (Debian 12.4-1.pgdg100+1)', (12, 4)),
    ('16beta1', (16,)),
    ('  13.2', (13, 2)),
])
def test_parse(text, expected):
    assert parse_server_version(text) == ServerVersion(expected)


@pytest.mark.parametrize('text', ['', 'PostgreSQL 12', 'devel', None])
def test_parse_rejects(text):
    with pytest.raises(VersionDetectionError):
        parse_server_version(text)


@pytest.mark.parametrize(('version', 'upsert'), [
    ((9, 4), False),
    ((9, 4, 26), False),
    ((9, 5), True),
    ((10,), True),
    ((12, 4), True),
])
def test_upsert_threshold(version, upsert):
    """Versions compare component-wise, not as floats."""
    assert (ServerVersion(version) >= UPSERT_VERSION) is upsert


def test_coerce():
    assert coerce_version('10.1') == ServerVersion((10, 1))
    assert coerce_version([11]) == ServerVersion((11,))
    assert coerce_version(MINIMUM_VERSION) is MINIMUM_VERSION
    with pytest.raises(VersionDetectionError):
        coerce_version(())


def test_str():
    assert str(ServerVersion((9, 5, 3))) == '9.5.3'


class TestDetect:

    def test_show_answer(self, mocker):
        cn = mocker.Mock()
        cn.select_scalar.return_value = '15.2'
        assert detect_server_version(cn) == ServerVersion((15, 2))
        cn.select_scalar.assert_called_once_with('SHOW server_version')

    @pytest.mark.parametrize('error', [
        QueryError('unrecognized configuration parameter "server_version"'),
        VersionDetectionError("Unrecognized server version: 'devel'"),
    ])
    def test_failed_detection_assumes_minimum(self, mocker, error):
        cn = mocker.Mock()
        cn.select_scalar.side_effect = error
        assert detect_server_version(cn) == MINIMUM_VERSION

    def test_transport_failure_propagates(self, mocker):
        cn = mocker.Mock()
        cn.select_scalar.side_effect = ConnectionFailure('server closed the connection')
        with pytest.raises(ConnectionFailure):
            detect_server_version(cn)

    def test_override_wins(self, mocker):
        cn = mocker.Mock()
        assert detect_server_version(cn, lambda c: '9.6.1') == ServerVersion((9, 6, 1))
        cn.select_scalar.assert_not_called()
