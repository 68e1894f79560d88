# -*- coding: utf-8 -*-
import os
import logging
import collections

import numpy as np
import pytest

from omeroext.bounds import Coordinates
from omeroext.errors import AccessDenied
from omeroext.errors import NotFound
from omeroext.errors import NotSupportedError
from omeroext.functions import MacroFunctions
from omeroext.keys import TypeKey
from omeroext.objects import Annotation
from omeroext.objects import RepositoryObject
from omeroext.repository import RepositoryClient


class FakeRepository(RepositoryClient):

    '''In-memory repository that records the changes made to it.'''

    def __init__(self, username='root', store=None):
        self.username = username
        self.store = store if store is not None else dict()
        self.children = collections.defaultdict(list)
        self.users = {'root': {'id': 0}, 'alice': {'id': 1}, 'bob': {'id': 2}}
        self.links = list()
        self.unlinks = list()
        self.deleted = list()
        self.files = dict()
        self.tables = list()
        self.images = dict()
        self.rois = collections.defaultdict(list)
        self.group_id = 3
        self.connected = False
        self.fail_writes = False
        self._next_id = 100

    def _new_id(self):
        self._next_id += 1
        return self._next_id

    def _check_writable(self):
        if self.fail_writes:
            raise AccessDenied('Read-only session')

    def add(self, obj, parent=None):
        self.store[(obj.kind, obj.id)] = obj
        if parent is not None:
            self.children[(parent.kind, parent.id, obj.kind)].append(obj.id)
            self.children[(obj.kind, obj.id, parent.kind)].append(parent.id)
        return obj

    def connect(self):
        self.connected = True

    def disconnect(self):
        self.connected = False

    def switch_group(self, group_id):
        self.group_id = group_id
        return group_id

    def get_user(self, username):
        try:
            return self.users[username]
        except KeyError:
            raise NotFound('No user found with name {0}'.format(username))

    def sudo(self, username):
        self.get_user(username)
        client = FakeRepository(username, self.store)
        client.children = self.children
        client.connected = True
        return client

    def _get(self, kind, id):
        try:
            return self.store[(kind, id)]
        except KeyError:
            raise NotFound('No {0} found with ID {1}'.format(kind, id))

    def fetch_repository_object(self, kind, id):
        return self._get(kind, id)

    def fetch_annotation(self, kind, id):
        return self._get(kind, id)

    def fetch_objects(self, kind, name=None):
        objects = [o for (k, _), o in self.store.items() if k is kind]
        if name is not None:
            objects = [
                o for o in objects
                if getattr(o, 'name', getattr(o, 'content', None)) == name
            ]
        return sorted(objects, key=lambda o: o.id)

    def fetch_children(self, parent_kind, parent_id, child_kind):
        if parent_kind.is_annotation and child_kind.is_annotation:
            raise NotSupportedError('Listing annotations of annotations')
        self._get(parent_kind, parent_id)
        ids = self.children[(parent_kind, parent_id, child_kind)]
        return sorted(
            [self._get(child_kind, i) for i in set(ids)], key=lambda o: o.id
        )

    def create_object(self, kind, name, description='', parent_id=None):
        self._check_writable()
        id = self._new_id()
        if kind is TypeKey.TAG:
            obj = Annotation(kind, id, name, description, owner_id=0)
        else:
            obj = RepositoryObject(kind, id, name, description, owner_id=0)
        parent = None
        if parent_id is not None:
            parent = self._get(TypeKey.PROJECT, parent_id)
        self.add(obj, parent)
        return id

    def create_key_value_pair(self, key, value):
        self._check_writable()
        id = self._new_id()
        self.add(Annotation(TypeKey.KV_PAIR, id, [(key, value)], owner_id=0))
        return id

    def delete_object(self, obj):
        self._check_writable()
        del self.store[(obj.kind, obj.id)]
        self.deleted.append(obj)

    def link_objects(self, plan):
        self._check_writable()
        self.links.append(plan)

    def unlink_objects(self, plan):
        self._check_writable()
        self.unlinks.append(plan)

    def attach_file(self, obj, path):
        self._check_writable()
        id = self._new_id()
        self.files[id] = (obj, path)
        return id

    def delete_file(self, file_id):
        self._check_writable()
        try:
            del self.files[file_id]
        except KeyError:
            raise NotFound('No file found with ID {0}'.format(file_id))

    def add_table(self, obj, name, data):
        self._check_writable()
        self.tables.append((obj, name, data.copy()))
        return self._new_id()

    def download_image(self, image_id, path):
        self._get(TypeKey.IMAGE, image_id)
        return [os.path.join(path, 'image{0}.tif'.format(image_id))]

    def import_image(self, dataset_id, path):
        self._check_writable()
        image = RepositoryObject(
            TypeKey.IMAGE, self._new_id(), os.path.basename(path), owner_id=0
        )
        self.add(image, self._get(TypeKey.DATASET, dataset_id))
        return [image.id]

    def get_image(self, image_id, bounds):
        pixels = self.images[image_id]
        t, z, c, y, x = pixels.shape
        region = bounds.resolve(Coordinates(x=x, y=y, c=c, z=z, t=t))
        s, e = region.start, region.end
        return pixels[
            s.t:e.t + 1, s.z:e.z + 1, s.c:e.c + 1, s.y:e.y + 1, s.x:e.x + 1
        ]

    def fetch_rois(self, image_id):
        return list(self.rois[image_id])

    def delete_rois(self, roi_ids):
        self._check_writable()
        for rois in self.rois.values():
            rois[:] = [r for r in rois if r['id'] not in roi_ids]


@pytest.fixture()
def repository():
    '''Repository with one project tree, one screen tree and annotations.

    ========  ==  =========================================
    kind      id  relation
    ========  ==  =========================================
    project    1  owned by root, contains dataset 3
    project    2  owned by alice, empty
    dataset    3  contains image 4, tagged with tag 5
    image      4  5x5 pixels, 2 channels, annotated with 6
    tag        5
    kv-pair    6  (Key, Value), (Key, Other), (Unit, um)
    screen     7  contains plate 8
    plate      8  contains well 9
    well       9  contains image 10
    image     10
    ========  ==  =========================================
    '''
    repo = FakeRepository()
    project = repo.add(RepositoryObject(
        TypeKey.PROJECT, 1, 'Project A', 'first', owner_id=0
    ))
    repo.add(RepositoryObject(TypeKey.PROJECT, 2, 'Project B', owner_id=1))
    dataset = repo.add(
        RepositoryObject(TypeKey.DATASET, 3, 'Dataset', owner_id=0), project
    )
    image = repo.add(
        RepositoryObject(TypeKey.IMAGE, 4, 'image.tif', owner_id=0), dataset
    )
    repo.add(Annotation(TypeKey.TAG, 5, 'Tag', owner_id=0), dataset)
    repo.add(
        Annotation(
            TypeKey.KV_PAIR, 6,
            [('Key', 'Value'), ('Key', 'Other'), ('Unit', 'um')],
            owner_id=1
        ),
        image
    )
    screen = repo.add(RepositoryObject(TypeKey.SCREEN, 7, 'Screen', owner_id=0))
    plate = repo.add(
        RepositoryObject(TypeKey.PLATE, 8, 'Plate', owner_id=0), screen
    )
    well = repo.add(
        RepositoryObject(TypeKey.WELL, 9, 'A1', owner_id=0), plate
    )
    repo.add(RepositoryObject(TypeKey.IMAGE, 10, 'well.tif', owner_id=0), well)
    repo.images[4] = np.arange(2 * 5 * 5, dtype=np.uint8).reshape(1, 1, 2, 5, 5)
    repo.rois[4] = [
        {
            'id': 11, 'name': 'cell',
            'payload': {
                'shapes': [{'X': 1, 'Y': 2, 'Width': 2, 'Height': 1}]
            }
        },
        {'id': 12, 'name': 'nucleus', 'payload': {'shapes': []}},
    ]
    return repo


@pytest.fixture()
def reported():
    '''Messages passed to the report callback as (level, message) tuples.'''
    return list()


@pytest.fixture()
def functions(repository, reported):
    def report(message, level=logging.ERROR):
        reported.append((level, message))

    return MacroFunctions(repository, report=report)
