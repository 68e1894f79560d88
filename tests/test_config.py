# -*- coding: utf-8 -*-
import logging

import pytest

from omeroext.auth import load_credentials_from_file
from omeroext.config import DEFAULT_PORT
from omeroext.config import OmeroExtConfig
from omeroext.log import configure_logging
from omeroext.log import level_for_verbosity


@pytest.fixture()
def config_file(tmp_path, monkeypatch):
    path = tmp_path / 'omeroext.cfg'
    monkeypatch.setenv('OMEROEXT_CONFIG_FILE', str(path))
    return path


def test_missing_config_file_keeps_defaults(config_file):
    config = OmeroExtConfig()
    config.read()
    assert config.config_file == str(config_file)
    assert config.port == DEFAULT_PORT
    assert config.host is None
    assert config.group is None


def test_read_config_file(config_file):
    config_file.write_text(
        '[omeroext]\nhost = omero.example.org\nport = 4080\n'
        'username = root\ngroup = 3\n'
    )
    config = OmeroExtConfig()
    config.read()
    assert config.host == 'omero.example.org'
    assert config.port == 4080
    assert config.username == 'root'
    assert config.group == 3
    assert config.ca_bundle is None


def test_write_config_file(config_file):
    config = OmeroExtConfig()
    config.host = 'localhost'
    config.port = 4064
    config.write()
    other = OmeroExtConfig()
    other.read()
    assert other.host == 'localhost'
    assert other.port == 4064


def test_config_setters_check_types(config_file):
    config = OmeroExtConfig()
    with pytest.raises(ValueError):
        config.port = '4064'
    with pytest.raises(ValueError):
        config.group = 'users'


def test_load_credentials(tmp_path, monkeypatch):
    monkeypatch.setenv('HOME', str(tmp_path))
    (tmp_path / '.omero_pass').write_text('root: secret\nalice: 1234\n')
    assert load_credentials_from_file('root') == 'secret'
    assert load_credentials_from_file('alice') == '1234'
    with pytest.raises(KeyError):
        load_credentials_from_file('bob')


def test_load_credentials_without_file(tmp_path, monkeypatch):
    monkeypatch.setenv('HOME', str(tmp_path))
    with pytest.raises(OSError):
        load_credentials_from_file('root')


@pytest.mark.parametrize('verbosity,level', [
    (0, logging.WARNING),
    (1, logging.INFO),
    (2, logging.DEBUG),
    (10, logging.DEBUG),
])
def test_level_for_verbosity(verbosity, level):
    assert level_for_verbosity(verbosity) == level


def test_level_for_verbosity_rejects_invalid_values():
    with pytest.raises(ValueError):
        level_for_verbosity(-1)
    with pytest.raises(TypeError):
        level_for_verbosity('2')


@pytest.fixture()
def package_logger():
    logger = logging.getLogger('omeroext')
    yield logger
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


def test_configure_logging_splits_streams(package_logger, capsys):
    configure_logging(1)
    logging.getLogger('omeroext.functions').info('listed projects')
    logging.getLogger('omeroext.functions').debug('hidden detail')
    logging.getLogger('omeroext.api').error('request failed')
    out, err = capsys.readouterr()
    assert 'listed projects' in out
    assert 'request failed' not in out
    assert 'request failed' in err
    assert 'listed projects' not in err
    assert 'hidden detail' not in out + err


def test_configure_logging_replaces_handlers(package_logger):
    configure_logging()
    assert package_logger.level == logging.WARNING
    configure_logging(2)
    assert package_logger.level == logging.DEBUG
    assert sorted(h.name for h in package_logger.handlers) == [
        'omeroext.err', 'omeroext.out'
    ]
    assert not package_logger.propagate
