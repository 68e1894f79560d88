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
'''Named tables that accumulate measurement results across macro calls.'''
import os
import datetime
import logging

import pandas as pd

from omeroext.errors import EmptyTable
from omeroext.errors import NoInputRows
from omeroext.errors import RemoteWriteFailed
from omeroext.errors import RepositoryError
from omeroext.errors import UnknownTable

logger = logging.getLogger(__name__)

#: str: delimiter used when none or an invalid one was requested
DEFAULT_DELIMITER = '\t'

#: str: format of the prefix added to table names saved to the repository
TIMESTAMP_FORMAT = '%Y-%m-%d_%H-%M-%S'

#: str: name of the column holding the ID of the measured image
IMAGE_COLUMN = 'Image'

#: str: name of the column holding the ROI grouping value
ROI_COLUMN = 'ROI'


def _to_frame(rows):
    if rows is None:
        raise NoInputRows('Results table does not exist.')
    if isinstance(rows, pd.DataFrame):
        data = rows.copy()
    else:
        data = pd.DataFrame(rows)
    if data.empty:
        raise NoInputRows('Results table is empty.')
    return data


class NamedTable(object):

    '''Tabular buffer that rows can be appended to.'''

    def __init__(self, name, data, image_id=None, property=None):
        '''
        Parameters
        ----------
        name: str
            name of the table
        data: pandas.DataFrame
            initial rows
        image_id: int, optional
            ID of the image the rows were measured on
        property: str, optional
            name of the column that groups rows by ROI
        '''
        self.name = name
        self.image_id = image_id
        self.property = property
        self.data = self._tag(data, image_id, property)

    @staticmethod
    def _tag(data, image_id, property):
        if image_id is not None:
            data[IMAGE_COLUMN] = int(image_id)
        if property and property in data.columns:
            data[ROI_COLUMN] = data[property]
        return data

    def add_rows(self, data, image_id=None, property=None):
        '''Appends rows; columns missing on either side are filled with
        ``NaN``.

        Parameters
        ----------
        data: pandas.DataFrame
            new rows
        image_id: int, optional
            ID of the image the rows were measured on
        property: str, optional
            name of the column that groups rows by ROI
        '''
        data = self._tag(data, image_id, property)
        self.data = pd.concat([self.data, data], ignore_index=True, sort=False)

    def __len__(self):
        return len(self.data)

    def __repr__(self):
        return '<NamedTable(name="{0}", n_rows={1})>'.format(
            self.name, len(self)
        )


class TableRegistry(object):

    '''Mapping of user-chosen names to :class:`NamedTable` objects.

    Tables stay registered after they have been saved, so rows can still be
    added; only :meth:`clear` removes them.
    '''

    def __init__(self):
        self._tables = dict()

    def __contains__(self, name):
        return name in self._tables

    def __len__(self):
        return len(self._tables)

    def names(self):
        '''List[str]: names of the registered tables'''
        return sorted(self._tables)

    def get(self, name):
        '''Gets a table.

        Raises
        ------
        omeroext.errors.UnknownTable
            when no table is registered under `name`
        '''
        try:
            return self._tables[name]
        except KeyError:
            raise UnknownTable('Table does not exist: {0}'.format(name))

    def append(self, name, rows, image_id=None, property=None):
        '''Adds rows to a table, creating the table if necessary.

        Parameters
        ----------
        name: str
            name of the table
        rows: pandas.DataFrame or List[dict] or Dict[str, list]
            rows that should be added
        image_id: int, optional
            ID of the image the rows were measured on; added as column
            ``"Image"``
        property: str, optional
            name of a column whose values identify ROIs; copied into column
            ``"ROI"``

        Returns
        -------
        omeroext.tables.NamedTable

        Raises
        ------
        omeroext.errors.NoInputRows
            when `rows` is missing or empty
        '''
        data = _to_frame(rows)
        table = self._tables.get(name)
        if table is None:
            logger.debug('create table "%s"', name)
            table = NamedTable(name, data, image_id, property)
            self._tables[name] = table
        else:
            logger.debug('add %d rows to table "%s"', len(data), name)
            table.add_rows(data, image_id, property)
        return table

    def persist_to_file(self, name, path, delimiter=None):
        '''Writes a table to a delimited text file.

        Parameters
        ----------
        name: str
            name of the table
        path: str
            path to the file
        delimiter: str, optional
            single delimiter character (default: tab)

        Raises
        ------
        omeroext.errors.UnknownTable
            when no table is registered under `name`
        '''
        table = self.get(name)
        if delimiter is None or len(delimiter) != 1:
            delimiter = DEFAULT_DELIMITER
        path = os.path.expanduser(path)
        logger.info('write table "%s" to file: %s', name, path)
        table.data.to_csv(path, sep=delimiter, index=False)

    def persist_to_repository(self, name, client, obj, now=None):
        '''Attaches a table to a repository object.

        The table is renamed to ``<timestamp>_<name>`` before upload to avoid
        name collisions on the server.

        Parameters
        ----------
        name: str
            name of the table; if empty, the current name of the table
            registered under the empty name is used
        client: omeroext.repository.RepositoryClient
            client of the repository
        obj: omeroext.objects.RepositoryObject
            object the table should be attached to
        now: datetime.datetime, optional
            time used for the name prefix (default: current time)

        Returns
        -------
        int
            ID of the table on the repository

        Raises
        ------
        omeroext.errors.EmptyTable
            when no table is registered under `name`
        omeroext.errors.RemoteWriteFailed
            when the repository rejected the table
        '''
        table = self._tables.get(name)
        if table is None:
            raise EmptyTable('Table is empty!')
        if now is None:
            now = datetime.datetime.now()
        timestamp = now.strftime(TIMESTAMP_FORMAT)
        table.name = '{0}_{1}'.format(timestamp, name or table.name)
        logger.info(
            'save table "%s" to %s %d', table.name, obj.kind, obj.id
        )
        try:
            return client.add_table(obj, table.name, table.data)
        except RepositoryError as err:
            raise RemoteWriteFailed('save table', err)

    def clear(self, name):
        '''Removes a table; removing an unknown table does nothing.'''
        if self._tables.pop(name, None) is not None:
            logger.debug('cleared table "%s"', name)
