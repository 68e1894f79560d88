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
from email.message import Message

import cv2
import numpy as np

from omeroext.base import HttpClient
from omeroext.bounds import Coordinates
from omeroext.errors import NotFound
from omeroext.errors import NotSupportedError
from omeroext.errors import TransportError
from omeroext.keys import TypeKey
from omeroext.links import LinkKind
from omeroext.links import validate_link
from omeroext.objects import Annotation
from omeroext.objects import RepositoryObject
from omeroext.repository import RepositoryClient


logger = logging.getLogger(__name__)

#: str: namespace of OME model types used by the JSON API
OME_SCHEMA = 'http://www.openmicroscopy.org/Schemas/OME/2016-06'

#: int: number of objects requested per page
PAGE_SIZE = 500

#: Dict[omeroext.keys.TypeKey, str]: JSON API routes of repository kinds
ROUTES = {
    TypeKey.PROJECT: 'projects',
    TypeKey.DATASET: 'datasets',
    TypeKey.IMAGE: 'images',
    TypeKey.SCREEN: 'screens',
    TypeKey.PLATE: 'plates',
    TypeKey.WELL: 'wells',
}

#: Dict[omeroext.keys.TypeKey, str]: webclient names of annotation kinds
ANNOTATION_TYPES = {
    TypeKey.TAG: 'tag',
    TypeKey.KV_PAIR: 'map',
}

#: Dict[str, omeroext.keys.TypeKey]: kinds of the objects an annotation link
#: points to, by the model class reported by the webclient
LINK_PARENT_CLASSES = {
    'ProjectI': TypeKey.PROJECT,
    'DatasetI': TypeKey.DATASET,
    'ImageI': TypeKey.IMAGE,
    'ScreenI': TypeKey.SCREEN,
    'PlateI': TypeKey.PLATE,
    'WellI': TypeKey.WELL,
}

#: Dict[omeroext.keys.TypeKey, str]: OME model types of creatable kinds
MODEL_TYPES = {
    TypeKey.PROJECT: 'Project',
    TypeKey.DATASET: 'Dataset',
    TypeKey.TAG: 'TagAnnotation',
    TypeKey.KV_PAIR: 'MapAnnotation',
}


class OmeroClient(HttpClient, RepositoryClient):

    '''*OMERO* client that talks to the JSON and webclient APIs of an
    *OMERO.web* server.'''

    def __init__(self, host, port, username, password, ca_bundle=None):
        '''
        Parameters
        ----------
        host: str
            name or IP address of the machine that hosts the *OMERO.web*
            server (e.g. ``"localhost"`` or ``"omero.example.org"``)
        port: int
            number of the port to which server listens
            (e.g. ``80``, ``443`` or ``4080``)
        username: str
            name of the *OMERO* user
        password: str
            password for the user (can also be provided via the
            *.omero_pass* file)
        ca_bundle: str, optional
            path to a CA bundle file in Privacy Enhanced Mail (PEM) format

        Examples
        --------
        >>>client = OmeroClient('localhost', 4080, 'devuser', '123456')
        >>>client.connect()
        >>>client.fetch_objects(TypeKey.PROJECT)
        '''
        super(OmeroClient, self).__init__(
            host, port, username, password, ca_bundle
        )
        self._group_id = None

    def connect(self):
        logger.info(
            'connect to "%s:%s" as user "%s"',
            self._host, self._port, self._username
        )
        self._session  # opens the session lazily
        return self

    def disconnect(self):
        logger.info('disconnect from "%s"', self._host)
        self._logout()

    def switch_group(self, group_id):
        logger.info('switch to group %d', group_id)
        url = self._build_url('/webclient/active_group/')
        self._request(
            'post', url, 'group', group_id, data={'active_group': group_id}
        )
        self._group_id = int(group_id)
        return self._group_id

    @property
    def group_id(self):
        '''int: ID of the active group'''
        if self._group_id is None:
            return self._event_context.get('groupId', -1)
        return self._group_id

    def get_user(self, username):
        logger.debug('get user "%s"', username)
        for user in self._get_paged('/api/v0/m/experimenters/', 'experimenter'):
            if user.get('UserName') == username:
                return {'id': user['@id'], 'name': username}
        raise NotFound('No user found with name "{0}"'.format(username))

    def sudo(self, username):
        logger.info('act as user "%s"', username)
        client = self.__class__(
            self._host, self._port, self._username, self._password,
            self._ca_bundle
        )
        client._sudo_user = username
        return client.connect()

    def _get_data(self, route, resource, id=None, params={}):
        url = self._build_url(route, params)
        res = self._request('get', url, resource, id)
        return res.json()

    def _get_paged(self, route, resource, params={}):
        '''Collects all items of a paginated JSON API listing.'''
        items = list()
        offset = 0
        while True:
            query = dict(params)
            query.update({'offset': offset, 'limit': PAGE_SIZE})
            content = self._get_data(route, resource, params=query)
            data = content.get('data', list())
            items.extend(data)
            total = content.get('meta', dict()).get('totalCount', len(items))
            offset += len(data)
            if not data or offset >= total:
                return items

    @staticmethod
    def _owner_id(data):
        details = data.get('omero:details', dict())
        return details.get('owner', dict()).get('@id')

    @classmethod
    def _to_repository_object(cls, kind, data):
        name = data.get('Name')
        if name is None and kind is TypeKey.WELL:
            name = '{0}{1}'.format(
                chr(ord('A') + data.get('Row', 0)), data.get('Column', 0) + 1
            )
        return RepositoryObject(
            kind, data['@id'], name, data.get('Description', ''),
            cls._owner_id(data), data
        )

    @staticmethod
    def _to_annotation(kind, data):
        if kind is TypeKey.TAG:
            content = data.get('textValue', '')
        else:
            content = [tuple(entry) for entry in data.get('values', list())]
        owner = data.get('owner', dict())
        return Annotation(
            kind, data['id'], content, data.get('description', ''),
            owner.get('id'), data
        )

    def fetch_repository_object(self, kind, id):
        logger.debug('get %s %d', kind, id)
        route = '/api/v0/m/{0}/{1}/'.format(ROUTES[kind], id)
        data = self._get_data(route, kind.value, id)['data']
        return self._to_repository_object(kind, data)

    def _get_annotation_data(self, kind, params):
        query = {'type': ANNOTATION_TYPES[kind]}
        query.update(params)
        content = self._get_data(
            '/webclient/api/annotations/', kind.value, params=query
        )
        return content.get('annotations', list())

    def _get_annotations(self, kind, params):
        annotations = [
            self._to_annotation(kind, a)
            for a in self._get_annotation_data(kind, params)
        ]
        # the same annotation is listed once per linked object
        unique = {a.id: a for a in annotations}
        return [unique[i] for i in sorted(unique)]

    def fetch_annotation(self, kind, id):
        logger.debug('get %s %d', kind, id)
        annotations = self._get_annotations(kind, {'annotation': id})
        if not annotations:
            raise NotFound('No {0} found with ID {1}'.format(kind, id))
        return annotations[0]

    def fetch_objects(self, kind, name=None):
        logger.debug('get all objects of type %s', kind)
        if kind.is_annotation:
            annotations = self._get_annotations(kind, dict())
            if name is not None:
                if kind is TypeKey.TAG:
                    annotations = [a for a in annotations if a.content == name]
                else:
                    annotations = [
                        a for a in annotations
                        if any(k == name for k, _ in a.entries)
                    ]
            return annotations
        params = dict()
        if self._group_id is not None:
            params['group'] = self._group_id
        objects = [
            self._to_repository_object(kind, d)
            for d in self._get_paged(
                '/api/v0/m/{0}/'.format(ROUTES[kind]), kind.value, params
            )
        ]
        if name is not None:
            objects = [o for o in objects if o.name == name]
        return sorted(objects, key=lambda o: o.id)

    def _get_direct_children(self, parent_kind, parent_id, child_kind):
        route = '/api/v0/m/{0}/{1}/{2}/'.format(
            ROUTES[parent_kind], parent_id, ROUTES[child_kind]
        )
        return [
            self._to_repository_object(child_kind, d)
            for d in self._get_paged(route, parent_kind.value)
        ]

    def _get_well_images(self, well_id):
        well = self.fetch_repository_object(TypeKey.WELL, well_id)
        return [
            self._to_repository_object(TypeKey.IMAGE, sample['Image'])
            for sample in well.payload.get('WellSamples', list())
            if 'Image' in sample
        ]

    def _get_tagged(self, tag_id, child_kind):
        content = self._get_data(
            '/webclient/api/tags/', 'tag', tag_id, {'id': tag_id}
        )
        return [
            RepositoryObject(
                child_kind, d['id'], d.get('name'), owner_id=d.get('ownerId'),
                payload=d
            )
            for d in content.get(child_kind.plural, list())
        ]

    def _get_annotated(self, kind, annotation_id, child_kind):
        '''Gets the objects of kind `child_kind` that an annotation is linked
        to. The webclient lists an annotation once per link, and each entry
        names the linked object as ``link.parent``.
        '''
        objects = list()
        links = self._get_annotation_data(kind, {'annotation': annotation_id})
        for data in links:
            if data.get('id') != annotation_id:
                continue
            parent = data.get('link', dict()).get('parent', dict())
            if LINK_PARENT_CLASSES.get(parent.get('class')) is not child_kind:
                continue
            objects.append(RepositoryObject(
                child_kind, parent['id'], parent.get('name'),
                owner_id=parent.get('ownerId'), payload=parent
            ))
        return objects

    def fetch_children(self, parent_kind, parent_id, child_kind):
        logger.debug(
            'get %s of %s %d', child_kind.plural, parent_kind, parent_id
        )
        relation = (parent_kind, child_kind)
        if child_kind.is_annotation and parent_kind.is_repository:
            children = self._get_annotations(
                child_kind, {parent_kind.value: parent_id}
            )
        elif parent_kind is TypeKey.TAG and child_kind.is_repository:
            children = self._get_tagged(parent_id, child_kind)
        elif parent_kind is TypeKey.KV_PAIR and child_kind.is_repository:
            children = self._get_annotated(parent_kind, parent_id, child_kind)
        elif relation in {
                (TypeKey.PROJECT, TypeKey.DATASET),
                (TypeKey.DATASET, TypeKey.IMAGE),
                (TypeKey.SCREEN, TypeKey.PLATE),
                (TypeKey.PLATE, TypeKey.WELL)}:
            children = self._get_direct_children(*relation)
        elif relation == (TypeKey.PROJECT, TypeKey.IMAGE):
            children = [
                image
                for dataset in self._get_direct_children(
                    TypeKey.PROJECT, parent_id, TypeKey.DATASET)
                for image in self._get_direct_children(
                    TypeKey.DATASET, dataset.id, TypeKey.IMAGE)
            ]
        elif relation == (TypeKey.WELL, TypeKey.IMAGE):
            children = self._get_well_images(parent_id)
        elif relation == (TypeKey.PLATE, TypeKey.IMAGE):
            children = [
                image
                for well in self._get_direct_children(
                    TypeKey.PLATE, parent_id, TypeKey.WELL)
                for image in self._get_well_images(well.id)
            ]
        elif relation in {
                (TypeKey.SCREEN, TypeKey.WELL),
                (TypeKey.SCREEN, TypeKey.IMAGE)}:
            children = [
                child
                for plate in self._get_direct_children(
                    TypeKey.SCREEN, parent_id, TypeKey.PLATE)
                for child in self.fetch_children(
                    TypeKey.PLATE, plate.id, child_kind)
            ]
        else:
            raise NotSupportedError(
                'Cannot list {0} of a {1}.'.format(
                    child_kind.plural, parent_kind
                )
            )
        unique = {c.id: c for c in children}
        return [unique[i] for i in sorted(unique)]

    def _save(self, kind, content):
        content['@type'] = '{0}#{1}'.format(OME_SCHEMA, MODEL_TYPES[kind])
        params = dict()
        if self._group_id is not None:
            params['group'] = self._group_id
        url = self._build_url('/api/v0/m/save/', params)
        res = self._request('post', url, kind.value, json=content)
        return int(res.json()['data']['@id'])

    def create_object(self, kind, name, description='', parent_id=None):
        logger.info('create %s "%s"', kind, name)
        if kind is TypeKey.TAG:
            content = {'TextValue': name, 'Description': description}
        elif kind in (TypeKey.PROJECT, TypeKey.DATASET):
            content = {'Name': name, 'Description': description}
        else:
            raise NotSupportedError('Cannot create a {0}.'.format(kind))
        id = self._save(kind, content)
        if parent_id is not None:
            plan = validate_link(TypeKey.PROJECT, parent_id, kind, id)
            self.link_objects(plan)
        return id

    def create_key_value_pair(self, key, value):
        logger.info('create key-value pair "%s"', key)
        return self._save(TypeKey.KV_PAIR, {'Values': [[key, value]]})

    def delete_object(self, obj):
        logger.info('delete %s %d', obj.kind, obj.id)
        if obj.kind.is_annotation:
            url = self._build_url('/webclient/deletemany/')
            self._request(
                'post', url, obj.kind.value, obj.id,
                data={ANNOTATION_TYPES[obj.kind]: obj.id}
            )
        else:
            url = self._build_url(
                '/api/v0/m/{0}/{1}/'.format(ROUTES[obj.kind], obj.id)
            )
            self._request('delete', url, obj.kind.value, obj.id)

    @staticmethod
    def _link_content(plan):
        if plan.kind is LinkKind.ANNOTATION_ATTACH:
            parent = plan.target
            child_name = 'annotation'
            child_id = plan.source.id
        else:
            parent = plan.source
            child_name = plan.target.kind.value
            child_id = plan.target.id
        return {
            parent.kind.value: {str(parent.id): {child_name: [child_id]}}
        }

    def link_objects(self, plan):
        logger.info('link %s %d to %s %d', plan.source.kind, plan.source.id,
            plan.target.kind, plan.target.id)
        url = self._build_url('/webclient/api/links/')
        self._request('post', url, 'link', json=self._link_content(plan))

    def unlink_objects(self, plan):
        logger.info('unlink %s %d from %s %d', plan.source.kind,
            plan.source.id, plan.target.kind, plan.target.id)
        url = self._build_url('/webclient/api/links/')
        self._request('delete', url, 'link', json=self._link_content(plan))

    def _upload_file(self, obj, filename, file_obj):
        url = self._build_url('/webclient/annotate_file/')
        res = self._request(
            'post', url, obj.kind.value, obj.id,
            data={obj.kind.value: obj.id},
            files={'annotation_file': (filename, file_obj)}
        )
        return int(res.json()['fileId'])

    def attach_file(self, obj, path):
        logger.info('attach file "%s" to %s %d', path, obj.kind, obj.id)
        with open(path, 'rb') as f:
            return self._upload_file(obj, os.path.basename(path), f)

    def delete_file(self, file_id):
        logger.info('delete file %d', file_id)
        url = self._build_url('/webclient/deletemany/')
        self._request('post', url, 'file', file_id, data={'file': file_id})

    def add_table(self, obj, name, data):
        logger.info('attach table "%s" to %s %d', name, obj.kind, obj.id)
        content = data.to_csv(index=False).encode('utf-8')
        return self._upload_file(obj, '{0}.csv'.format(name), content)

    @staticmethod
    def _extract_filename_from_headers(headers):
        message = Message()
        message['content-disposition'] = headers.get('Content-Disposition', '')
        filename = message.get_filename()
        if filename is None:
            raise TransportError(
                'No filename found in header field "Content-Disposition".'
            )
        return filename

    def download_image(self, image_id, path):
        logger.info('download image %d', image_id)
        directory = os.path.expanduser(os.path.expandvars(path))
        if not os.path.isdir(directory):
            raise OSError('Download directory does not exist: {0}'.format(
                directory
            ))
        url = self._build_url(
            '/webgateway/archived_files/download/{0}/'.format(image_id)
        )
        res = self._request('get', url, 'image', image_id, stream=True)
        filename = self._extract_filename_from_headers(res.headers)
        filepath = os.path.join(directory, filename)
        logger.debug('write file: %s', filepath)
        with open(filepath, 'wb') as f:
            for chunk in res.iter_content(chunk_size=1 << 16):
                f.write(chunk)
        return [filepath]

    def import_image(self, dataset_id, path):
        raise NotSupportedError(
            'Image import is not available through the OMERO.web API.'
        )

    @staticmethod
    def image_sizes(image):
        '''Gets the dimensions of an image.

        Parameters
        ----------
        image: omeroext.objects.RepositoryObject
            image

        Returns
        -------
        omeroext.bounds.Coordinates
            number of pixels along x, y, c, z and t
        '''
        pixels = image.payload.get('Pixels', dict())
        return Coordinates(
            pixels.get('SizeX', 1), pixels.get('SizeY', 1),
            pixels.get('SizeC', 1), pixels.get('SizeZ', 1),
            pixels.get('SizeT', 1)
        )

    def _download_plane(self, image_id, region, c, z, t):
        params = {
            'c': '{0}|0:255$FFFFFF'.format(c + 1),
            'm': 'g',
            'format': 'png',
            'region': ','.join(str(v) for v in region),
        }
        url = self._build_url(
            '/webgateway/render_image_region/{0}/{1}/{2}/'.format(
                image_id, z, t
            ),
            params
        )
        res = self._request('get', url, 'image', image_id)
        data = np.frombuffer(res.content, np.uint8)
        plane = cv2.imdecode(data, cv2.IMREAD_UNCHANGED)
        if plane is None:
            raise TransportError(
                'Could not decode plane c={0}, z={1}, t={2} of image '
                '{3}.'.format(c, z, t, image_id)
            )
        if plane.ndim == 3:
            plane = plane[:, :, 0]
        return plane

    def get_image(self, image_id, bounds):
        '''Gets the rendered pixels of an image region.

        Each plane is rendered in greyscale by the server, hence intensities
        are 8-bit values scaled by the rendering settings of the image.
        '''
        image = self.fetch_repository_object(TypeKey.IMAGE, image_id)
        region = bounds.resolve(self.image_sizes(image))
        shape = region.shape()
        logger.info(
            'download region of image %d with shape (t=%d, z=%d, c=%d, '
            'y=%d, x=%d)', image_id, shape.t, shape.z, shape.c, shape.y,
            shape.x
        )
        pixels = np.zeros(
            (shape.t, shape.z, shape.c, shape.y, shape.x), dtype=np.uint8
        )
        rect = (region.start.x, region.start.y, shape.x, shape.y)
        for t in range(shape.t):
            for z in range(shape.z):
                for c in range(shape.c):
                    pixels[t, z, c] = self._download_plane(
                        image_id, rect, region.start.c + c,
                        region.start.z + z, region.start.t + t
                    )
        return pixels

    def fetch_rois(self, image_id):
        logger.debug('get ROIs of image %d', image_id)
        route = '/api/v0/m/images/{0}/rois/'.format(image_id)
        return [
            {'id': roi['@id'], 'name': roi.get('Name'), 'payload': roi}
            for roi in self._get_paged(route, 'image')
        ]

    def delete_rois(self, roi_ids):
        for roi_id in roi_ids:
            logger.debug('delete ROI %d', roi_id)
            url = self._build_url('/api/v0/m/rois/{0}/'.format(roi_id))
            self._request('delete', url, 'roi', roi_id)
