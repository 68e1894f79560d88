# Copyright 2016-2019 University of Zurich
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
import os
import logging
from configparser import ConfigParser

logger = logging.getLogger(__name__)


CONFIG_FILE = os.path.expanduser('~/.omeroext/omeroext.cfg')
DEFAULT_PORT = 443


class OmeroExtConfig(object):

    '''Configuration settings for connecting to an *OMERO* server.

    Settings are stored in the ``omeroext`` section of an
    `INI <https://en.wikipedia.org/wiki/INI_file>`_-like file
    (:attr:`CONFIG_FILE <omeroext.config.CONFIG_FILE>`).

    The environment variable ``OMEROEXT_CONFIG_FILE`` can be used to overwrite
    the default location of the file.
    '''

    __slots__ = ('_config_file', '_config', '_section')

    def __init__(self):
        if 'OMEROEXT_CONFIG_FILE' in os.environ:
            self._config_file = os.environ['OMEROEXT_CONFIG_FILE']
            logger.info(
                'use config file set by environment variable '
                'OMEROEXT_CONFIG_FILE'
            )
        else:
            self._config_file = CONFIG_FILE
            logger.debug('use default config file')
        logger.debug('config file: %s', self._config_file)
        self._config = ConfigParser()
        self._section = self.__class__.__module__.split('.')[0]
        if not self._config.has_section(self._section):
            self._config.add_section(self._section)
        self.port = DEFAULT_PORT

    @property
    def config_file(self):
        '''str: path to the configuration file'''
        return self._config_file

    def read(self):
        '''Reads the configuration from file.

        A missing or unreadable file is not an error: the built-in defaults
        stay in place.

        See Also
        --------
        :const:`omeroext.config.CONFIG_FILE`
        '''
        if not os.path.exists(self._config_file):
            logger.warning(
                'configuration file does not exist: %s', self._config_file
            )
            return
        logger.debug('read config file: %s', self._config_file)
        try:
            self._config.read(self._config_file)
        except Exception as err:
            logger.error(
                'cannot read configuration file "%s": %s',
                self._config_file, err
            )
            logger.warning(
                'no configuration file loaded; using built-in defaults'
            )

    def write(self):
        '''Writes the configuration to file.'''
        directory = os.path.dirname(self._config_file)
        if directory and not os.path.exists(directory):
            os.makedirs(directory)
        with open(self._config_file, 'w') as f:
            self._config.write(f)

    def _get(self, name):
        if not self._config.has_option(self._section, name):
            return None
        value = self._config.get(self._section, name)
        return value or None

    @property
    def host(self):
        '''str: name or IP address of the *OMERO* server'''
        return self._get('host')

    @host.setter
    def host(self, value):
        if not isinstance(value, str):
            raise ValueError(
                'Configuration parameter "host" must have type str.'
            )
        self._config.set(self._section, 'host', value)

    @property
    def port(self):
        '''int: port of the *OMERO* web server (default: ``443``)'''
        return self._config.getint(self._section, 'port')

    @port.setter
    def port(self, value):
        if not isinstance(value, int):
            raise ValueError(
                'Configuration parameter "port" must have type int.'
            )
        self._config.set(self._section, 'port', str(value))

    @property
    def username(self):
        '''str: name of the *OMERO* user'''
        return self._get('username')

    @username.setter
    def username(self, value):
        if not isinstance(value, str):
            raise ValueError(
                'Configuration parameter "username" must have type str.'
            )
        self._config.set(self._section, 'username', value)

    @property
    def group(self):
        '''int: ID of the group that should be active after login'''
        value = self._get('group')
        if value is None:
            return None
        return int(value)

    @group.setter
    def group(self, value):
        if not isinstance(value, int):
            raise ValueError(
                'Configuration parameter "group" must have type int.'
            )
        self._config.set(self._section, 'group', str(value))

    @property
    def ca_bundle(self):
        '''str: path to a CA bundle file in PEM format'''
        return self._get('ca_bundle')

    @ca_bundle.setter
    def ca_bundle(self, value):
        if not isinstance(value, str):
            raise ValueError(
                'Configuration parameter "ca_bundle" must have type str.'
            )
        self._config.set(self._section, 'ca_bundle', value)
