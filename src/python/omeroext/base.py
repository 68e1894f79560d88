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
from abc import ABCMeta
from urllib.parse import urlencode

import requests
from requests.adapters import HTTPAdapter

from omeroext.errors import AccessDenied
from omeroext.errors import NotFound
from omeroext.errors import RepositoryError
from omeroext.errors import TransportError


logger = logging.getLogger(__name__)


class HttpClient(metaclass=ABCMeta):

    '''Abstract base class for HTTP client interface.'''

    def __init__(self, host, port, username, password, ca_bundle=None):
        '''
        Parameters
        ----------
        host: str
            name of the OMERO.web host
        port: int
            number of the port to which the OMERO.web server listens
        username: str
            name of the OMERO user
        password: str
            password for `username`
        ca_bundle: str, optional
            path to a CA bundle file in Privacy Enhanced Mail (PEM) format;
            only used with HTTPS when `port` is set to ``443``
        '''
        # save parameters for late initialization (when `self._session` is first accessed)
        self._host = host
        self._port = port
        self._username = username
        self._password = password
        self._ca_bundle = ca_bundle

        self._real_session = None
        self._real_base_url = None
        self._csrf_token = None
        self._server_id = 1
        self._sudo_user = None
        self._event_context = dict()

    def _init_session(self):
        '''
        Delayed initialization of Requests Session object.
        '''
        session = requests.Session()
        # each request is attempted once
        adapter = HTTPAdapter(max_retries=0)
        session.mount('http://', adapter)
        session.mount('https://', adapter)
        if self._port == 443:
            logger.debug('initializing HTTPS session')
            self._real_base_url = 'https://{host}:{port}'.format(
                host=self._host, port=self._port
            )
            if self._ca_bundle is not None:
                logger.debug('use CA bundle: %s', self._ca_bundle)
                ca_bundle = os.path.expanduser(
                    os.path.expandvars(self._ca_bundle)
                )
                if not os.path.exists(ca_bundle):
                    raise OSError(
                        'CA bundle file does not exist: {0}'.format(ca_bundle)
                    )
                session.verify = ca_bundle
        else:
            logger.debug('initializing HTTP session')
            self._real_base_url = 'http://{host}:{port}'.format(
                host=self._host, port=self._port
            )
        self._real_session = session
        try:
            self._login(self._username, self._password, self._sudo_user)
        except requests.RequestException as err:
            self._real_session = None
            raise TransportError(str(err))
        except RepositoryError:
            self._real_session = None
            raise

    @property
    def _session(self):
        '''Return a Requests Session, creating it first if necessary.'''
        if self._real_session is None:
            self._init_session()
        return self._real_session

    @property
    def _base_url(self):
        '''Return the base URL for HTTP(S) requests, creating session first if necessary.'''
        if self._real_base_url is None:
            self._init_session()
        return self._real_base_url

    @property
    def is_connected(self):
        '''bool: whether a session was opened'''
        return self._real_session is not None

    def _build_url(self, route, params={}):
        '''Builds the full URL based on the base URL (``http://<host>:<port>``)
        and the provided `route`.

        Parameters
        ----------
        route: str
            route used by the OMERO.web API
        params: dict, optional
            optional parameters that need to be included in the URL query string

        Returns
        -------
        str
            URL
        '''
        url = self._base_url + route
        if not params:
            logger.debug('url: %s', url)
            return url
        url = '{url}?{params}'.format(url=url, params=urlencode(params, doseq=True))
        logger.debug('url: %s', url)
        return url

    def _login(self, username, password, sudo=None):
        '''Authenticates an OMERO user.

        Parameters
        ----------
        username: str
            name
        password: str
            password
        sudo: str, optional
            name of a user on whose behalf the session should act
        '''
        logger.debug('login as user "%s"', username)
        session = self._real_session
        res = session.get(self._real_base_url + '/api/v0/token/')
        self._check_response(res, 'token', None)
        self._csrf_token = res.json()['data']
        session.headers.update({
            'X-CSRFToken': self._csrf_token,
            'Referer': self._real_base_url
        })
        payload = {
            'username': username,
            'password': password,
            'server': self._server_id
        }
        if sudo is not None:
            logger.debug('act on behalf of user "%s"', sudo)
            payload['sudo'] = sudo
        res = session.post(self._real_base_url + '/api/v0/login/', data=payload)
        self._check_response(res, 'login', username)
        data = res.json()
        if not data.get('success', False):
            raise AccessDenied(
                'Login failed for user "{0}": {1}'.format(
                    username, data.get('message', 'unknown reason')
                )
            )
        self._event_context = data.get('eventContext', dict())

    @staticmethod
    def _check_response(res, resource, id):
        '''Maps HTTP error codes onto repository errors.

        Parameters
        ----------
        res: requests.Response
            response of the server
        resource: str
            name of the requested resource (used in error messages)
        id: int or str
            identifier of the requested resource (used in error messages)

        Raises
        ------
        omeroext.errors.NotFound
            for status code 404
        omeroext.errors.AccessDenied
            for status codes 401 and 403
        omeroext.errors.TransportError
            for any other unsuccessful status code
        '''
        if res.status_code == 404:
            raise NotFound('No {0} found with ID {1}'.format(resource, id))
        if res.status_code in (401, 403):
            raise AccessDenied(
                'Access to {0} {1} denied'.format(resource, id)
            )
        try:
            res.raise_for_status()
        except requests.HTTPError as err:
            raise TransportError(str(err))

    def _request(self, method, url, resource, id=None, **kwargs):
        '''Sends a request and checks the response.

        Connection failures are raised as
        :class:`TransportError <omeroext.errors.TransportError>`.
        '''
        try:
            res = self._session.request(method, url, **kwargs)
        except requests.RequestException as err:
            raise TransportError(str(err))
        self._check_response(res, resource, id)
        return res

    def _logout(self):
        if self._real_session is None:
            return
        logger.debug('logout user "%s"', self._username)
        try:
            self._real_session.post(
                self._real_base_url + '/webclient/logout/'
            )
        except requests.RequestException as err:
            raise TransportError('Logout failed: {0}'.format(err))
        finally:
            self._real_session.close()
            self._real_session = None
            self._real_base_url = None
