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
'''Objects retrieved from the repository.

Repository objects (projects, datasets, images, screens, plates and wells)
and annotations (tags and key-value pairs) expose different capabilities and
are therefore represented by two unrelated classes.
'''
import logging

from omeroext.keys import TypeKey

logger = logging.getLogger(__name__)


class RepositoryObject(object):

    '''A named object that can be contained in or contain other objects.'''

    __slots__ = ('kind', 'id', 'name', 'description', 'owner_id', 'payload')

    def __init__(self, kind, id, name, description='', owner_id=None,
            payload=None):
        '''
        Parameters
        ----------
        kind: omeroext.keys.TypeKey
            one of the repository kinds
        id: int
            ID of the object
        name: str
            name of the object
        description: str, optional
            description of the object
        owner_id: int, optional
            ID of the user who owns the object
        payload: dict, optional
            kind-specific attributes as returned by the server, e.g. the
            pixel dimensions of an image
        '''
        if not kind.is_repository:
            raise ValueError(
                'Kind "{0}" is not a repository kind.'.format(kind)
            )
        self.kind = kind
        self.id = int(id)
        self.name = name
        self.description = description
        self.owner_id = owner_id
        self.payload = payload if payload is not None else dict()

    def __eq__(self, other):
        if not isinstance(other, RepositoryObject):
            return NotImplemented
        return (self.kind, self.id) == (other.kind, other.id)

    def __hash__(self):
        return hash((self.kind, self.id))

    def __repr__(self):
        return '<RepositoryObject(kind={0}, id={1}, name="{2}")>'.format(
            self.kind, self.id, self.name
        )


class Annotation(object):

    '''A tag or a list of key-value pairs that can be attached to repository
    objects.
    '''

    __slots__ = ('kind', 'id', 'content', 'description', 'owner_id', 'payload')

    def __init__(self, kind, id, content, description='', owner_id=None,
            payload=None):
        '''
        Parameters
        ----------
        kind: omeroext.keys.TypeKey
            ``TypeKey.TAG`` or ``TypeKey.KV_PAIR``
        id: int
            ID of the annotation
        content: str or List[Tuple[str, str]]
            text value of a tag or the entries of a key-value pair annotation
        description: str, optional
            description of the annotation
        owner_id: int, optional
            ID of the user who owns the annotation
        payload: dict, optional
            attributes as returned by the server
        '''
        if not kind.is_annotation:
            raise ValueError(
                'Kind "{0}" is not an annotation kind.'.format(kind)
            )
        self.kind = kind
        self.id = int(id)
        self.content = content
        self.description = description
        self.owner_id = owner_id
        self.payload = payload if payload is not None else dict()

    @property
    def entries(self):
        '''List[Tuple[str, str]]: key-value entries (empty for tags)'''
        if self.kind is TypeKey.KV_PAIR:
            return list(self.content)
        return list()

    def __eq__(self, other):
        if not isinstance(other, Annotation):
            return NotImplemented
        return (self.kind, self.id) == (other.kind, other.id)

    def __hash__(self):
        return hash((self.kind, self.id))

    def __repr__(self):
        return '<Annotation(kind={0}, id={1})>'.format(self.kind, self.id)


def display_name(obj):
    '''Gets the name that identifies an object for a user.

    Parameters
    ----------
    obj: omeroext.objects.RepositoryObject or omeroext.objects.Annotation

    Returns
    -------
    str
        name of a repository object, text of a tag, or one
        ``key<TAB>value`` line per entry of a key-value pair annotation
    '''
    if isinstance(obj, RepositoryObject):
        return obj.name or ''
    if obj.kind is TypeKey.TAG:
        return obj.content or ''
    return '\n'.join(
        '{0}\t{1}'.format(key, value) for key, value in obj.entries
    )


def to_ids(objects):
    '''Joins the IDs of objects with commas.

    Parameters
    ----------
    objects: Iterable[omeroext.objects.RepositoryObject or omeroext.objects.Annotation]

    Returns
    -------
    str
    '''
    return ','.join(str(o.id) for o in objects)
