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
'''Decides whether and how two addressed objects can be linked.

The caller passes two ``(type, id)`` pairs in any order; the validator
infers which remote operation is meant and rejects pairings the repository
does not allow:

    * an annotation (tag or key-value pair) can be attached to any
      repository object,
    * a dataset can be added to a project,
    * an image can be added to a dataset.

Everything else, e.g. two annotations, a project and an image, or a plate
and a well, is an invalid link.
'''
import enum
import collections
import logging

from omeroext.keys import TypeKey
from omeroext.keys import normalize
from omeroext.errors import InvalidLink
from omeroext.errors import UnknownType

logger = logging.getLogger(__name__)


class LinkKind(enum.Enum):

    '''Remote operation a link request resolves to.'''

    #: attach an annotation to a repository object
    ANNOTATION_ATTACH = 'annotation-attach'
    #: add a dataset to a project or an image to a dataset
    CONTAINER_CHILD = 'container-child'


#: Tuple[omeroext.keys.TypeKey, int]: kind and ID of an addressed object
Address = collections.namedtuple('Address', ['kind', 'id'])


class LinkPlan(collections.namedtuple('LinkPlan', ['kind', 'source', 'target'])):

    '''Outcome of link validation.

    For :attr:`LinkKind.ANNOTATION_ATTACH` `source` is the annotation and
    `target` the repository object; for :attr:`LinkKind.CONTAINER_CHILD`
    `source` is the container (project or dataset) and `target` the child
    (dataset or image).
    '''

    __slots__ = ()

    @property
    def annotation(self):
        '''omeroext.links.Address: the annotation of an attach plan'''
        if self.kind is not LinkKind.ANNOTATION_ATTACH:
            raise AttributeError('Plan does not attach an annotation.')
        return self.source

    @property
    def parent(self):
        '''omeroext.links.Address: the container of a container plan'''
        if self.kind is not LinkKind.CONTAINER_CHILD:
            raise AttributeError('Plan does not link a container.')
        return self.source

    @property
    def child(self):
        '''omeroext.links.Address: the child of a container plan'''
        if self.kind is not LinkKind.CONTAINER_CHILD:
            raise AttributeError('Plan does not link a container.')
        return self.target


def validate_link(type_a, id_a, type_b, id_b):
    '''Determines how two objects should be linked (or unlinked).

    Parameters
    ----------
    type_a: str or omeroext.keys.TypeKey
        type of the first object
    id_a: int
        ID of the first object
    type_b: str or omeroext.keys.TypeKey
        type of the second object
    id_b: int
        ID of the second object

    Returns
    -------
    omeroext.links.LinkPlan

    Raises
    ------
    omeroext.errors.InvalidLink
        when the two objects cannot be linked
    '''
    def invalid():
        return InvalidLink(
            'Cannot link {0} and {1}'.format(type_a, type_b)
        )

    try:
        key_a = normalize(type_a)
        key_b = normalize(type_b)
    except UnknownType:
        raise invalid()

    addresses = {key_a: int(id_a)}
    addresses.setdefault(key_b, int(id_b))
    annotations = [k for k in addresses if k.is_annotation]
    objects = [k for k in addresses if not k.is_annotation]

    if len(addresses) != 2:
        raise invalid()
    if len(annotations) == 2:
        raise invalid()
    if any(k.is_hcs for k in objects) and not annotations:
        raise invalid()
    if TypeKey.PROJECT in addresses and TypeKey.IMAGE in addresses:
        raise invalid()

    if len(annotations) == 1:
        annotation, = annotations
        obj, = objects
        plan = LinkPlan(
            LinkKind.ANNOTATION_ATTACH,
            Address(annotation, addresses[annotation]),
            Address(obj, addresses[obj])
        )
    else:
        if TypeKey.DATASET not in addresses:
            raise invalid()
        dataset = Address(TypeKey.DATASET, addresses[TypeKey.DATASET])
        if TypeKey.PROJECT in addresses:
            project = Address(TypeKey.PROJECT, addresses[TypeKey.PROJECT])
            plan = LinkPlan(LinkKind.CONTAINER_CHILD, project, dataset)
        else:
            image = Address(TypeKey.IMAGE, addresses[TypeKey.IMAGE])
            plan = LinkPlan(LinkKind.CONTAINER_CHILD, dataset, image)
    logger.debug('link plan: %s', plan)
    return plan
