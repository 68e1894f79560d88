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
'''Functions callable from macros.

Every function returns a plain value that a macro can use directly: an ID,
a comma-separated list of IDs, a name, ``True``/``False`` or a count.
Problems are never raised into the macro. They are passed to a report
callback (by default the logger of this module) and the function returns
a neutral value instead: ``-1`` for IDs, an empty string for lists and
names, ``False`` and ``0``.
'''
import os
import inspect
import logging
import functools

import numpy as np
import pandas as pd

from omeroext.api import OmeroClient
from omeroext.bounds import parse_bounds
from omeroext.bounds import roi_bounds
from omeroext.context import MacroContext
from omeroext.errors import EmptyTable
from omeroext.errors import InvalidLink
from omeroext.errors import NotFound
from omeroext.errors import OmeroExtError
from omeroext.errors import RemoteWriteFailed
from omeroext.errors import RepositoryError
from omeroext.errors import TransportError
from omeroext.keys import ALL
from omeroext.keys import REPOSITORY
from omeroext.keys import TypeKey
from omeroext.links import LinkKind
from omeroext.links import validate_link
from omeroext.objects import display_name
from omeroext.objects import to_ids
from omeroext.resolve import Resolver
from omeroext.resolve import check_type

logger = logging.getLogger(__name__)

#: Dict[omeroext.keys.TypeKey, Tuple[omeroext.keys.TypeKey]]: kinds that can
#: be listed inside or for an object of a given kind
CHILDREN = {
    TypeKey.PROJECT: (
        TypeKey.DATASET, TypeKey.IMAGE, TypeKey.TAG, TypeKey.KV_PAIR
    ),
    TypeKey.DATASET: (TypeKey.IMAGE, TypeKey.TAG, TypeKey.KV_PAIR),
    TypeKey.SCREEN: (
        TypeKey.PLATE, TypeKey.WELL, TypeKey.IMAGE, TypeKey.TAG,
        TypeKey.KV_PAIR
    ),
    TypeKey.PLATE: (
        TypeKey.WELL, TypeKey.IMAGE, TypeKey.TAG, TypeKey.KV_PAIR
    ),
    TypeKey.WELL: (TypeKey.IMAGE, TypeKey.TAG, TypeKey.KV_PAIR),
    TypeKey.IMAGE: (TypeKey.TAG, TypeKey.KV_PAIR),
    TypeKey.TAG: REPOSITORY,
    TypeKey.KV_PAIR: REPOSITORY,
}

#: Dict[str, str]: names of macro extensions mapped to method names
EXTENSIONS = {
    'connectToOMERO': 'connect',
    'switchGroup': 'switch_group',
    'listForUser': 'set_user',
    'list': 'list',
    'createDataset': 'create_dataset',
    'createProject': 'create_project',
    'createTag': 'create_tag',
    'createKeyValuePair': 'create_key_value_pair',
    'link': 'link',
    'unlink': 'unlink',
    'addFile': 'add_file',
    'deleteFile': 'delete_file',
    'addToTable': 'add_to_table',
    'saveTable': 'save_table',
    'saveTableAsFile': 'save_table_as_file',
    'clearTable': 'clear_table',
    'importImage': 'import_image',
    'downloadImage': 'download_image',
    'delete': 'delete',
    'getName': 'get_name',
    'getImage': 'get_image',
    'removeROIs': 'remove_rois',
    'getKeyValuePairs': 'get_key_value_pairs',
    'getValue': 'get_value',
    'sudo': 'sudo',
    'endSudo': 'end_sudo',
    'disconnect': 'disconnect',
}

#: Tuple[type]: errors that are reported instead of raised
REPORTED_ERRORS = (OmeroExtError, RepositoryError, OSError, ValueError)

#: Tuple[type]: errors whose message is reported without a prefix
COMPLETE_ERRORS = (InvalidLink, RemoteWriteFailed)


def _log_report(message, level=logging.ERROR):
    logger.log(level, message)


def reports(message, default=None):
    '''
    Method decorator that reports errors instead of raising them.

    Parameters
    ----------
    message: str
        prefix of the reported message; may reference arguments of the
        decorated method by name, e.g. ``"Could not delete {type}"``
    default: object, optional
        value returned when an error was reported

    Note
    ----
    A :class:`KeyboardInterrupt` is reported as well but raised again, so an
    interrupted remote call still stops the host.
    '''
    def decorator(func):
        signature = inspect.signature(func)

        @functools.wraps(func)
        def wrapper(self, *args, **kwargs):
            try:
                return func(self, *args, **kwargs)
            except (REPORTED_ERRORS + (KeyboardInterrupt, )) as err:
                if isinstance(err, COMPLETE_ERRORS):
                    text = str(err)
                else:
                    arguments = signature.bind_partial(self, *args, **kwargs)
                    text = '{0}: {1}'.format(
                        message.format(**arguments.arguments), err
                    )
                self._report(text)
                if isinstance(err, KeyboardInterrupt):
                    raise
                return default

        return wrapper

    return decorator


class MacroFunctions(object):

    '''Functions of the *OMERO* macro extension.

    Examples
    --------
    >>>functions = MacroFunctions()
    >>>functions.connect('omero.example.org', 443, 'devuser', '123456')
    True
    >>>functions.list('projects')
    '1,4,7'
    >>>functions.link('dataset', 2, 'project', 1)
    '''

    def __init__(self, client=None, report=None, client_factory=OmeroClient):
        '''
        Parameters
        ----------
        client: omeroext.repository.RepositoryClient, optional
            client of an already connected repository
        report: Callable[[str, int], None], optional
            callback that displays a message with a logging level
            (default: log the message)
        client_factory: Callable, optional
            called with host, port, username and password by :meth:`connect`
            to create the client (default: :class:`OmeroClient
            <omeroext.api.OmeroClient>`)
        '''
        self.context = MacroContext(client)
        self._report = report if report is not None else _log_report
        self._client_factory = client_factory

    @property
    def client(self):
        '''omeroext.repository.RepositoryClient: client of the active
        session

        Raises
        ------
        omeroext.errors.TransportError
            when no session was opened
        '''
        if self.context.client is None:
            raise TransportError('Not connected to a server.')
        return self.context.client

    @property
    def resolver(self):
        '''omeroext.resolve.Resolver: resolver bound to the active session'''
        return Resolver(self.client)

    @reports('Could not connect', default=False)
    def connect(self, host, port, username, password):
        '''Connects to an *OMERO* server.

        Returns
        -------
        bool
            whether the connection was established
        '''
        client = self._client_factory(host, int(port), username, password)
        client.connect()
        self.context.client = client
        return True

    @reports('Could not switch group', default=-1)
    def switch_group(self, group_id):
        '''Makes a group the active one.

        Returns
        -------
        int
            ID of the active group
        '''
        return self.client.switch_group(int(group_id))

    def set_user(self, username):
        '''Sets the user whose objects are returned by :meth:`list`.

        Parameters
        ----------
        username: str
            name of the user; ``None``, an empty name or ``"all"`` removes
            the filter

        Returns
        -------
        int
            ID of the filter user or ``-1`` when no filter is set
        '''
        if username and username.strip() and username.lower() != 'all':
            try:
                self.context.set_user(self.client.get_user(username))
            except RepositoryError:
                self._report(
                    'Could not retrieve user: {0}'.format(username),
                    logging.WARNING
                )
        else:
            self.context.set_user(None)
        if self.context.user is None:
            return -1
        return self.context.user['id']

    def list(self, type, parent=None, id=None):
        '''Lists objects.

        Parameters
        ----------
        type: str
            type of the objects
        parent: str, optional
            name of the objects or, if `id` is given, type of the container
        id: int, optional
            ID of the container

        Returns
        -------
        str
            comma-separated IDs

        See also
        --------
        :meth:`list_all`
        :meth:`list_by_name`
        :meth:`list_in`
        '''
        if parent is None and id is None:
            return self.list_all(type)
        elif id is None:
            return self.list_by_name(type, parent)
        elif parent is not None:
            return self.list_in(type, parent, id)
        self._report('Second argument should not be null.')
        return ''

    @reports('Could not retrieve {type}', default='')
    def list_all(self, type):
        '''Lists all objects of a type (owned by the filter user, if set).'''
        key = check_type(type, ALL)
        objects = self.client.fetch_objects(key)
        return to_ids(self.context.filter_user(objects))

    @reports('Could not retrieve {type} with name "{name}"', default='')
    def list_by_name(self, type, name):
        '''Lists objects of a type with a given name (owned by the filter
        user, if set).'''
        key = check_type(type, ALL)
        objects = self.client.fetch_objects(key, name)
        return to_ids(self.context.filter_user(objects))

    @reports('Could not retrieve {type} in {parent}', default='')
    def list_in(self, type, parent, id):
        '''Lists objects of a type inside or linked to a container.'''
        parent_key = check_type(parent, ALL)
        key = check_type(type, CHILDREN[parent_key])
        objects = self.client.fetch_children(parent_key, int(id), key)
        return to_ids(objects)

    def _create(self, kind, name, description, parent_id=None):
        try:
            return self.client.create_object(kind, name, description, parent_id)
        except RepositoryError as err:
            raise RemoteWriteFailed('create {0}'.format(kind), err)

    @reports('Could not create tag', default=-1)
    def create_tag(self, name, description=''):
        '''Creates a tag and returns its ID.'''
        return self._create(TypeKey.TAG, name, description)

    @reports('Could not create kv-pair', default=-1)
    def create_key_value_pair(self, key, value):
        '''Creates a key-value pair annotation and returns its ID.'''
        try:
            return self.client.create_key_value_pair(key, value)
        except RepositoryError as err:
            raise RemoteWriteFailed('create kv-pair', err)

    @reports('Could not create project', default=-1)
    def create_project(self, name, description=''):
        '''Creates a project and returns its ID.'''
        return self._create(TypeKey.PROJECT, name, description)

    @reports('Could not create dataset', default=-1)
    def create_dataset(self, name, description='', project_id=None):
        '''Creates a dataset, optionally inside a project, and returns its
        ID.'''
        if project_id is not None:
            project_id = int(project_id)
            self.resolver.resolve(TypeKey.PROJECT, project_id)
        return self._create(TypeKey.DATASET, name, description, project_id)

    @reports('Could not delete {type}')
    def delete(self, type, id):
        '''Deletes an object.'''
        obj = self.resolver.resolve(type, id)
        try:
            self.client.delete_object(obj)
        except RepositoryError as err:
            raise RemoteWriteFailed('delete {0}'.format(obj.kind), err)

    def _resolve_plan(self, plan):
        resolver = self.resolver
        if plan.kind is LinkKind.ANNOTATION_ATTACH:
            resolver.resolve_repository_object(*plan.target)
            resolver.resolve(*plan.annotation)
        else:
            resolver.resolve(*plan.parent)
            resolver.resolve(*plan.child)

    @reports('Cannot link {type1} and {type2}')
    def link(self, type1, id1, type2, id2):
        '''Links two objects.

        An annotation is attached to a repository object, a dataset is added
        to a project and an image to a dataset. Other combinations are
        rejected.
        '''
        plan = validate_link(type1, id1, type2, id2)
        self._resolve_plan(plan)
        try:
            self.client.link_objects(plan)
        except RepositoryError as err:
            raise RemoteWriteFailed('link', err)

    @reports('Cannot unlink {type1} and {type2}')
    def unlink(self, type1, id1, type2, id2):
        '''Removes the link between two objects.

        See also
        --------
        :meth:`link`
        '''
        plan = validate_link(type1, id1, type2, id2)
        self._resolve_plan(plan)
        try:
            self.client.unlink_objects(plan)
        except RepositoryError as err:
            raise RemoteWriteFailed('unlink', err)

    @reports('Could not add file to object', default=-1)
    def add_file(self, type, id, path):
        '''Attaches a file to a repository object.

        Returns
        -------
        int
            ID of the attached file or ``-1``
        '''
        obj = self.resolver.resolve_repository_object(type, id)
        path = os.path.expanduser(path)
        if not os.path.isfile(path):
            raise OSError('File does not exist: {0}'.format(path))
        try:
            return self.client.attach_file(obj, path)
        except RepositoryError as err:
            raise RemoteWriteFailed('add file', err)

    @reports('Could not delete file')
    def delete_file(self, id):
        '''Deletes an attached file.'''
        try:
            self.client.delete_file(int(id))
        except RepositoryError as err:
            raise RemoteWriteFailed('delete file', err)

    @reports('Could not add results to table')
    def add_to_table(self, table_name, results, image_id=None, property=None):
        '''Adds results to a named table.

        Parameters
        ----------
        table_name: str
            name of the table
        results: pandas.DataFrame or List[dict] or str
            rows or path to a delimited results file
        image_id: int, optional
            ID of the image the results were measured on
        property: str, optional
            name of the column that groups rows by ROI
        '''
        if isinstance(results, str):
            path = os.path.expanduser(results)
            logger.debug('read results from file: %s', path)
            results = pd.read_csv(path, sep=None, engine='python')
        if image_id is not None:
            image_id = int(image_id)
        self.context.tables.append(table_name, results, image_id, property)

    @reports('Could not create table file')
    def save_table_as_file(self, table_name, path, delimiter=None):
        '''Writes a named table to a delimited file (tab by default).'''
        self.context.tables.persist_to_file(table_name, path, delimiter)

    @reports('Could not save table', default=-1)
    def save_table(self, table_name, type, id):
        '''Attaches a named table to a repository object.

        Returns
        -------
        int
            ID of the table on the repository or ``-1``
        '''
        obj = self.resolver.resolve_repository_object(type, id)
        try:
            return self.context.tables.persist_to_repository(
                table_name, self.client, obj
            )
        except EmptyTable as err:
            self._report(
                'Could not save table "{0}": {1}'.format(table_name, err),
                logging.CRITICAL
            )
            return -1

    def clear_table(self, table_name):
        '''Removes a named table.'''
        self.context.tables.clear(table_name)

    @reports('Could not import image', default='')
    def import_image(self, dataset_id, path):
        '''Imports an image file into a dataset.

        Returns
        -------
        str
            comma-separated IDs of the imported images
        '''
        dataset_id = int(dataset_id)
        self.resolver.resolve(TypeKey.DATASET, dataset_id)
        ids = self.client.import_image(dataset_id, os.path.expanduser(path))
        return ','.join(str(i) for i in ids)

    @reports('Could not download image', default='')
    def download_image(self, image_id, path):
        '''Downloads the original files of an image.

        Returns
        -------
        str
            comma-separated paths of the written files
        '''
        files = self.client.download_image(int(image_id), path)
        return ','.join(files)

    @reports('Could not retrieve {type}', default='')
    def get_name(self, type, id):
        '''Gets the name of an object (text of a tag, content of a key-value
        pair annotation).'''
        return display_name(self.resolver.resolve(type, id))

    @reports('Could not retrieve image')
    def get_image(self, id, roi=None):
        '''Gets the pixels of an image or of a region of it.

        Parameters
        ----------
        id: int
            ID of the image
        roi: int or str, optional
            ID of a ROI of the image, whose bounding box is used, or region
            description like ``"x:0:100 y::200 z:5: t::"``
            (see :func:`omeroext.bounds.parse_bounds`)

        Returns
        -------
        numpy.ndarray
            pixels with dimensions (t, z, c, y, x)
        '''
        id = int(id)
        self.resolver.resolve(TypeKey.IMAGE, id)
        roi_id = None
        if isinstance(roi, (int, float)):
            roi_id = int(roi)
        elif roi is not None and roi.strip().isdigit():
            roi_id = int(roi)
        if roi_id is not None:
            rois = [r for r in self.client.fetch_rois(id) if r['id'] == roi_id]
            if not rois:
                raise NotFound('ROI not found: {0}'.format(roi_id))
            bounds = roi_bounds(rois[0]['payload'].get('shapes', list()))
        else:
            bounds = parse_bounds(roi or '')
        return self.client.get_image(id, bounds)

    @reports('Could not remove image ROIs', default=0)
    def remove_rois(self, id):
        '''Deletes all ROIs of an image.

        Returns
        -------
        int
            number of deleted ROIs
        '''
        id = int(id)
        self.resolver.resolve(TypeKey.IMAGE, id)
        rois = self.client.fetch_rois(id)
        try:
            self.client.delete_rois([r['id'] for r in rois])
        except RepositoryError as err:
            raise RemoteWriteFailed('remove ROIs', err)
        return len(rois)

    def _key_value_pairs(self, type, id):
        obj = self.resolver.resolve_repository_object(type, id)
        annotations = self.client.fetch_children(
            obj.kind, obj.id, TypeKey.KV_PAIR
        )
        return [entry for a in annotations for entry in a.entries]

    @reports('Could not retrieve object', default='')
    def get_key_value_pairs(self, type, id, separator=None):
        '''Concatenates all key-value pairs of a repository object.

        Returns
        -------
        str
            ``key<sep>value<sep>key<sep>value...`` where the separator is a
            tab by default
        '''
        sep = '\t' if separator is None else separator
        return sep.join(
            sep.join((key, value))
            for key, value in self._key_value_pairs(type, id)
        )

    @reports('Could not retrieve value')
    def get_value(self, type, id, key, default=None):
        '''Gets the value of the first key-value pair with a given key.

        Returns
        -------
        str
            value, or `default` when the key does not exist

        Raises
        ------
        omeroext.errors.NotFound
            when the key does not exist and no `default` was given (reported)
        '''
        for k, value in self._key_value_pairs(type, id):
            if k == key:
                return value
        if default is not None:
            return default
        raise NotFound('No value found for key "{0}"'.format(key))

    @reports('Could not switch user')
    def sudo(self, username):
        '''Acts as another user until :meth:`end_sudo` is called.

        Warning
        -------
        Only one level is remembered, see
        :class:`MacroContext <omeroext.context.MacroContext>`.
        '''
        if self.context.client is None:
            raise TransportError('Not connected to a server.')
        self.context.sudo(username)

    @reports('Could not end sudo')
    def end_sudo(self):
        '''Stops acting as another user.'''
        self.context.end_sudo()

    @reports('Could not disconnect')
    def disconnect(self):
        '''Ends a sudo session, if any, and disconnects.'''
        if self.context.switched is not None:
            self.context.end_sudo()
        if self.context.client is not None:
            self.context.client.disconnect()

    @staticmethod
    def format_result(result):
        '''Converts a result to the string returned to a macro.'''
        if result is None:
            return ''
        if isinstance(result, bool):
            return str(result).lower()
        if isinstance(result, np.ndarray):
            return ','.join(str(n) for n in result.shape)
        return str(result)

    def handle_extension(self, name, args=()):
        '''Calls a function by its macro name.

        Parameters
        ----------
        name: str
            name of the macro function, e.g. ``"list"`` or ``"getName"``
        args: Sequence, optional
            arguments of the macro function; trailing ``None`` values of
            optional arguments may be omitted

        Returns
        -------
        str
            result as a string; empty if the function has no result or
            failed
        '''
        method_name = EXTENSIONS.get(name)
        if method_name is None:
            self._report('No such method: {0}'.format(name))
            return ''
        logger.debug('call method "%s"', method_name)
        args = list(args)
        while args and args[-1] is None:
            args.pop()
        method = getattr(self, method_name)
        try:
            inspect.signature(method).bind(*args)
        except TypeError as err:
            self._report(
                'Invalid arguments for {0}: {1}'.format(name, err)
            )
            return ''
        return self.format_result(method(*args))
