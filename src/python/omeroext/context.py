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
'''State shared by consecutive macro calls.'''
import logging

from omeroext.errors import NoSudoSession
from omeroext.errors import RepositoryError
from omeroext.tables import TableRegistry

logger = logging.getLogger(__name__)


class MacroContext(object):

    '''Active session, sudo backup, user filter and tables of one macro
    caller.

    The context is not safe for concurrent use; the host is expected to run
    one macro call at a time.

    Warning
    -------
    Only one level of :meth:`sudo` is remembered. Calling :meth:`sudo` while
    already acting as another user replaces the backup, so the session
    that was active before the first call can no longer be restored by
    :meth:`end_sudo`.
    '''

    def __init__(self, client=None):
        '''
        Parameters
        ----------
        client: omeroext.repository.RepositoryClient, optional
            client used for the active session
        '''
        self.client = client
        self.switched = None
        self.user = None
        self.tables = TableRegistry()

    def _close(self, client):
        if client is None:
            return
        try:
            client.disconnect()
        except RepositoryError as err:
            logger.warning('could not log out of session: %s', err)

    def sudo(self, username):
        '''Switches the active session to one acting as another user.

        The session that was kept as backup before, if any, is logged out.

        Parameters
        ----------
        username: str
            name of the user

        Raises
        ------
        omeroext.errors.RepositoryError
            when the session could not be opened; the active session is
            kept and the backup is dropped
        '''
        previous = self.switched
        try:
            client = self.client.sudo(username)
        except Exception:
            self.switched = None
            self._close(previous)
            raise
        self.switched = self.client
        self.client = client
        self._close(previous)
        logger.info('acting as user "%s"', username)

    def end_sudo(self):
        '''Restores the session that was active before :meth:`sudo` and
        logs out of the sudo session.

        Raises
        ------
        omeroext.errors.NoSudoSession
            when no sudo session is active
        '''
        if self.switched is None:
            raise NoSudoSession('No sudo has been used before.')
        sudo_client = self.client
        self.client = self.switched
        self.switched = None
        self._close(sudo_client)
        logger.info('stopped acting as another user')

    def set_user(self, user):
        '''Sets or removes (``None``) the user whose objects are listed.'''
        self.user = user

    def filter_user(self, objects):
        '''Keeps only objects owned by the filter user.

        Parameters
        ----------
        objects: List[omeroext.objects.RepositoryObject or omeroext.objects.Annotation]

        Returns
        -------
        List[omeroext.objects.RepositoryObject or omeroext.objects.Annotation]
        '''
        if self.user is None:
            return objects
        return [o for o in objects if o.owner_id == self.user['id']]
