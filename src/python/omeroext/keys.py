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
'''Vocabulary of object kinds that can be addressed by macros.

Macros refer to objects by a loosely-typed label (``"Images"``, ``"TAG"``,
``"kv-pairs"``) and a numeric ID. :func:`normalize` maps such a label onto
one :class:`TypeKey`.
'''
import enum
import logging

from omeroext.errors import UnknownType

logger = logging.getLogger(__name__)


class TypeKey(enum.Enum):

    '''Kind of an object on the repository.'''

    PROJECT = 'project'
    DATASET = 'dataset'
    IMAGE = 'image'
    SCREEN = 'screen'
    PLATE = 'plate'
    WELL = 'well'
    TAG = 'tag'
    KV_PAIR = 'kv-pair'

    def __str__(self):
        return self.value

    @property
    def plural(self):
        '''str: plural form of the label'''
        return self.value + 's'

    @property
    def is_annotation(self):
        '''bool: whether objects of this kind can be attached to others'''
        return self in ANNOTATIONS

    @property
    def is_hcs(self):
        '''bool: whether this kind belongs to the screen hierarchy'''
        return self in HCS

    @property
    def is_repository(self):
        '''bool: whether objects of this kind are named containers'''
        return self in REPOSITORY


#: Tuple[TypeKey]: annotation kinds
ANNOTATIONS = (TypeKey.TAG, TypeKey.KV_PAIR)

#: Tuple[TypeKey]: kinds of the high-content screening hierarchy
HCS = (TypeKey.SCREEN, TypeKey.PLATE, TypeKey.WELL)

#: Tuple[TypeKey]: kinds of named, hierarchically containable objects
REPOSITORY = (
    TypeKey.PROJECT, TypeKey.DATASET, TypeKey.IMAGE,
    TypeKey.SCREEN, TypeKey.PLATE, TypeKey.WELL
)

#: Tuple[TypeKey]: all kinds
ALL = REPOSITORY + ANNOTATIONS

_LOOKUP = {key.value: key for key in TypeKey}


def singular(label):
    '''Lower-cases `label` and strips one trailing "s".

    Parameters
    ----------
    label: str
        type label as given by the user

    Returns
    -------
    str
        singular, lower-case label (may be empty)
    '''
    label = label.lower()
    if label.endswith('s'):
        label = label[:-1]
    return label


def normalize(label):
    '''Maps a free-form type label onto a :class:`TypeKey`.

    Parameters
    ----------
    label: str or omeroext.keys.TypeKey
        type label, e.g. ``"Images"``, ``"TAG"`` or ``"kv-pairs"``

    Returns
    -------
    omeroext.keys.TypeKey

    Raises
    ------
    omeroext.errors.UnknownType
        when the label does not name a known kind
    '''
    if isinstance(label, TypeKey):
        return label
    if not label:
        raise UnknownType(label)
    key = singular(str(label))
    try:
        return _LOOKUP[key]
    except KeyError:
        logger.debug('unknown type label "%s"', label)
        raise UnknownType(label)


def plural_list(keys, final='or'):
    '''Renders kinds as a human readable enumeration, as used in error
    messages, e.g. ``"datasets, images or tags"``.

    Parameters
    ----------
    keys: Sequence[omeroext.keys.TypeKey]
        kinds
    final: str, optional
        conjunction before the last item (default: ``"or"``)

    Returns
    -------
    str
    '''
    names = [k.plural for k in keys]
    if len(names) < 2:
        return ''.join(names)
    return '{0} {1} {2}'.format(', '.join(names[:-1]), final, names[-1])
