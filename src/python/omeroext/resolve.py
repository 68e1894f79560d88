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
'''Resolution of ``(type, id)`` pairs to objects on the repository.'''
import logging

from omeroext.errors import InvalidType
from omeroext.errors import RemoteFetchFailed
from omeroext.errors import RepositoryError
from omeroext.errors import UnknownType
from omeroext.keys import ALL
from omeroext.keys import REPOSITORY
from omeroext.keys import TypeKey
from omeroext.keys import normalize
from omeroext.keys import plural_list

logger = logging.getLogger(__name__)


def check_type(label, allowed=ALL):
    '''Normalizes a type label and checks that it is allowed.

    Parameters
    ----------
    label: str or omeroext.keys.TypeKey
        type label given by the user
    allowed: Sequence[omeroext.keys.TypeKey], optional
        kinds accepted at the call site (default: all kinds)

    Returns
    -------
    omeroext.keys.TypeKey

    Raises
    ------
    omeroext.errors.InvalidType
        when the label is unknown or not in `allowed`; the message lists the
        allowed values
    '''
    try:
        key = normalize(label)
    except UnknownType:
        raise InvalidType(label, plural_list(allowed))
    if key not in allowed:
        raise InvalidType(label, plural_list(allowed))
    return key


class Resolver(object):

    '''Fetches the object addressed by a type label and an ID.

    Every call results in exactly one request to the repository; nothing is
    cached.
    '''

    def __init__(self, client):
        '''
        Parameters
        ----------
        client: omeroext.repository.RepositoryClient
            client of the repository
        '''
        self.client = client

    def _fetch(self, key, id):
        if key in (TypeKey.TAG, TypeKey.KV_PAIR):
            return self.client.fetch_annotation(key, id)
        elif key in (TypeKey.PROJECT, TypeKey.DATASET, TypeKey.IMAGE,
                TypeKey.SCREEN, TypeKey.PLATE, TypeKey.WELL):
            return self.client.fetch_repository_object(key, id)
        raise AssertionError('Unhandled type key: {0}'.format(key))

    def resolve(self, label, id, allowed=ALL):
        '''Gets an object.

        Parameters
        ----------
        label: str or omeroext.keys.TypeKey
            type of the object, e.g. ``"Images"`` or ``"tag"``
        id: int
            ID of the object
        allowed: Sequence[omeroext.keys.TypeKey], optional
            kinds accepted at the call site (default: all kinds)

        Returns
        -------
        omeroext.objects.RepositoryObject or omeroext.objects.Annotation

        Raises
        ------
        omeroext.errors.InvalidType
            when `label` is not an allowed kind
        omeroext.errors.RemoteFetchFailed
            when the repository could not provide the object
        '''
        key = check_type(label, allowed)
        id = int(id)
        logger.debug('resolve %s %d', key, id)
        try:
            return self._fetch(key, id)
        except RepositoryError as err:
            raise RemoteFetchFailed(key, id, err)

    def resolve_repository_object(self, label, id):
        '''Gets a project, dataset, image, screen, plate or well.

        See also
        --------
        :meth:`omeroext.resolve.Resolver.resolve`
        '''
        return self.resolve(label, id, REPOSITORY)
