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
'''Capabilities a repository client has to provide.

All methods are synchronous. Failures are signalled by raising
:class:`NotFound <omeroext.errors.NotFound>`,
:class:`AccessDenied <omeroext.errors.AccessDenied>` or
:class:`TransportError <omeroext.errors.TransportError>`.
'''
from abc import ABCMeta
from abc import abstractmethod


class RepositoryClient(metaclass=ABCMeta):

    '''Abstract base class for clients of an image repository.'''

    @abstractmethod
    def connect(self):
        '''Opens a session.'''

    @abstractmethod
    def disconnect(self):
        '''Closes the session.'''

    @abstractmethod
    def switch_group(self, group_id):
        '''Makes a group the active one.

        Parameters
        ----------
        group_id: int
            ID of the group

        Returns
        -------
        int
            ID of the group that is active afterwards
        '''

    @abstractmethod
    def get_user(self, username):
        '''Gets a user.

        Parameters
        ----------
        username: str
            login name of the user

        Returns
        -------
        dict
            user resource representation with at least the key ``"id"``
        '''

    @abstractmethod
    def sudo(self, username):
        '''Opens a session on behalf of another user.

        Parameters
        ----------
        username: str
            login name of the user

        Returns
        -------
        omeroext.repository.RepositoryClient
            client acting as `username`
        '''

    @abstractmethod
    def fetch_repository_object(self, kind, id):
        '''Gets a project, dataset, image, screen, plate or well.

        Parameters
        ----------
        kind: omeroext.keys.TypeKey
            repository kind
        id: int
            ID of the object

        Returns
        -------
        omeroext.objects.RepositoryObject
        '''

    @abstractmethod
    def fetch_annotation(self, kind, id):
        '''Gets a tag or key-value pair annotation.

        Parameters
        ----------
        kind: omeroext.keys.TypeKey
            annotation kind
        id: int
            ID of the annotation

        Returns
        -------
        omeroext.objects.Annotation
        '''

    @abstractmethod
    def fetch_objects(self, kind, name=None):
        '''Gets all objects of a kind the session can see.

        Parameters
        ----------
        kind: omeroext.keys.TypeKey
            kind of the objects
        name: str, optional
            only return objects with this name (or tag text)

        Returns
        -------
        List[omeroext.objects.RepositoryObject or omeroext.objects.Annotation]
            objects sorted by ID
        '''

    @abstractmethod
    def fetch_children(self, parent_kind, parent_id, child_kind):
        '''Gets objects of kind `child_kind` contained in or linked to a
        parent object.

        Supported relations are datasets and images of a project, images of
        a dataset, plates, wells and images of a screen, wells and images of
        a plate, images of a well, annotations of any repository object and
        repository objects an annotation is attached to.

        Parameters
        ----------
        parent_kind: omeroext.keys.TypeKey
            kind of the parent
        parent_id: int
            ID of the parent
        child_kind: omeroext.keys.TypeKey
            kind of the children

        Returns
        -------
        List[omeroext.objects.RepositoryObject or omeroext.objects.Annotation]
            children sorted by ID
        '''

    @abstractmethod
    def create_object(self, kind, name, description='', parent_id=None):
        '''Creates a project, dataset or tag.

        Parameters
        ----------
        kind: omeroext.keys.TypeKey
            kind of the new object
        name: str
            name of the object (text of a tag)
        description: str, optional
            description of the object
        parent_id: int, optional
            ID of the project a new dataset should be added to

        Returns
        -------
        int
            ID of the new object
        '''

    @abstractmethod
    def create_key_value_pair(self, key, value):
        '''Creates a key-value pair annotation with one entry.

        Returns
        -------
        int
            ID of the new annotation
        '''

    @abstractmethod
    def delete_object(self, obj):
        '''Deletes an object.

        Parameters
        ----------
        obj: omeroext.objects.RepositoryObject or omeroext.objects.Annotation
        '''

    @abstractmethod
    def link_objects(self, plan):
        '''Creates the link described by a plan.

        Parameters
        ----------
        plan: omeroext.links.LinkPlan
        '''

    @abstractmethod
    def unlink_objects(self, plan):
        '''Removes the link described by a plan.

        Parameters
        ----------
        plan: omeroext.links.LinkPlan
        '''

    @abstractmethod
    def attach_file(self, obj, path):
        '''Uploads a file and attaches it to a repository object.

        Returns
        -------
        int
            ID of the file annotation
        '''

    @abstractmethod
    def delete_file(self, file_id):
        '''Deletes an attached file.'''

    @abstractmethod
    def add_table(self, obj, name, data):
        '''Attaches a table to a repository object.

        Parameters
        ----------
        obj: omeroext.objects.RepositoryObject
            object the table should be attached to
        name: str
            name of the table
        data: pandas.DataFrame
            table content

        Returns
        -------
        int
            ID of the table on the repository
        '''

    @abstractmethod
    def download_image(self, image_id, path):
        '''Downloads the original files of an image.

        Returns
        -------
        List[str]
            paths of the written files
        '''

    @abstractmethod
    def import_image(self, dataset_id, path):
        '''Imports an image file into a dataset.

        Returns
        -------
        List[int]
            IDs of the imported images
        '''

    @abstractmethod
    def get_image(self, image_id, bounds):
        '''Gets the pixels of an image region.

        Parameters
        ----------
        image_id: int
            ID of the image
        bounds: omeroext.bounds.Bounds
            region of the image; open ends are allowed

        Returns
        -------
        numpy.ndarray
            pixels with dimensions (t, z, c, y, x)
        '''

    @abstractmethod
    def fetch_rois(self, image_id):
        '''Gets the regions of interest of an image.

        Returns
        -------
        List[dict]
            ROI resource representations with at least the key ``"id"``
        '''

    @abstractmethod
    def delete_rois(self, roi_ids):
        '''Deletes regions of interest.'''
