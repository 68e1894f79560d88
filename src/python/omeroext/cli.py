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
'''Command line interface to the macro functions.

Each sub-command calls the macro function of the same name and prints its
result, e.g.::

    omero_ext -H omero.example.org -u devuser list datasets --in project 1
'''
import os
import sys
import inspect
import logging
import argparse
import functools

from prettytable import PrettyTable

from omeroext.api import OmeroClient
from omeroext.auth import load_credentials_from_file
from omeroext.auth import prompt_for_credentials
from omeroext.bounds import AXES
from omeroext.bounds import parse_bounds
from omeroext.config import OmeroExtConfig
from omeroext.functions import MacroFunctions
from omeroext.log import configure_logging
from omeroext.version import __version__

logger = logging.getLogger(__name__)


parser = argparse.ArgumentParser(
    prog='omero_ext',
    description='OMERO macro extension (version: {version}).'.format(
        version=__version__
    )
)
parser.add_argument(
    '-H', '--host', default=os.environ.get('OMERO_HOST'),
    help='name of OMERO.web server host (default: $OMERO_HOST or value '
         'from the configuration file)'
)
parser.add_argument(
    '-P', '--port', default=os.environ.get('OMERO_PORT'),
    help='number of the port to which the server listens '
         '(default: $OMERO_PORT or value from the configuration file)'
)
parser.add_argument(
    '-u', '--user', dest='username', default=os.environ.get('OMERO_USER'),
    help='name of OMERO user (default: $OMERO_USER or value from the '
         'configuration file)'
)
parser.add_argument(
    '-p', '--password',
    help='password of OMERO user'
)
parser.add_argument(
    '-g', '--group', type=int,
    help='ID of the group that should be active'
)
parser.add_argument(
    '-v', '--verbosity', action='count', default=0,
    help='increase logging verbosity'
)

subparsers = parser.add_subparsers(dest='command', help='commands')
subparsers.required = True

####################
# Abstract parsers #
####################

abstract_object_parser = argparse.ArgumentParser(add_help=False)
abstract_object_parser.add_argument(
    'type', help='type of the object, e.g. "dataset" or "tag"'
)
abstract_object_parser.add_argument(
    'id', type=int, help='ID of the object'
)

abstract_link_parser = argparse.ArgumentParser(add_help=False)
abstract_link_parser.add_argument('type1', help='type of the first object')
abstract_link_parser.add_argument('id1', type=int, help='ID of the first object')
abstract_link_parser.add_argument('type2', help='type of the second object')
abstract_link_parser.add_argument('id2', type=int, help='ID of the second object')

abstract_description_parser = argparse.ArgumentParser(add_help=False)
abstract_description_parser.add_argument(
    '--description', default='', help='optional description'
)

#############
## Listing ##
#############

list_parser = subparsers.add_parser(
    'list', help='list objects',
    description='List IDs of objects of a type, optionally by name or '
                'inside a container.'
)
list_parser.add_argument(
    'type', help='type of the objects, e.g. "datasets"'
)
list_group = list_parser.add_mutually_exclusive_group()
list_group.add_argument(
    '-n', '--name', help='name of the objects'
)
list_group.add_argument(
    '-i', '--in', dest='inside', nargs=2, metavar=('TYPE', 'ID'),
    help='type and ID of the container'
)
list_parser.add_argument(
    '--for-user', dest='for_user', metavar='USER',
    help='only list objects owned by this user ("all" for everybody)'
)
list_parser.add_argument(
    '--table', action='store_true',
    help='print IDs and names as a table'
)
list_parser.set_defaults(method='list')

get_name_parser = subparsers.add_parser(
    'get-name', help='print the name of an object',
    description='Print the name of an object.',
    parents=[abstract_object_parser]
)
get_name_parser.set_defaults(method='get_name')

get_kv_pairs_parser = subparsers.add_parser(
    'get-kv-pairs', help='print the key-value pairs of an object',
    description='Print all key-value pairs of an object.',
    parents=[abstract_object_parser]
)
get_kv_pairs_parser.add_argument(
    '--separator', help='separator of keys and values (default: tab)'
)
get_kv_pairs_parser.set_defaults(method='get_key_value_pairs')

get_value_parser = subparsers.add_parser(
    'get-value', help='print a value of an object',
    description='Print the value of the first key-value pair of an object '
                'with a given key.',
    parents=[abstract_object_parser]
)
get_value_parser.add_argument('key', help='key of the pair')
get_value_parser.add_argument(
    '--default', help='value printed when the key does not exist'
)
get_value_parser.set_defaults(method='get_value')

##############
## Creation ##
##############

create_project_parser = subparsers.add_parser(
    'create-project', help='create a project',
    description='Create a project and print its ID.',
    parents=[abstract_description_parser]
)
create_project_parser.add_argument('name', help='name of the project')
create_project_parser.set_defaults(method='create_project')

create_dataset_parser = subparsers.add_parser(
    'create-dataset', help='create a dataset',
    description='Create a dataset and print its ID.',
    parents=[abstract_description_parser]
)
create_dataset_parser.add_argument('name', help='name of the dataset')
create_dataset_parser.add_argument(
    '--project', dest='project_id', type=int,
    help='ID of the project the dataset should be added to'
)
create_dataset_parser.set_defaults(method='create_dataset')

create_tag_parser = subparsers.add_parser(
    'create-tag', help='create a tag',
    description='Create a tag and print its ID.',
    parents=[abstract_description_parser]
)
create_tag_parser.add_argument('name', help='text of the tag')
create_tag_parser.set_defaults(method='create_tag')

create_kv_pair_parser = subparsers.add_parser(
    'create-kv-pair', help='create a key-value pair',
    description='Create a key-value pair annotation and print its ID.'
)
create_kv_pair_parser.add_argument('key', help='key of the pair')
create_kv_pair_parser.add_argument('value', help='value of the pair')
create_kv_pair_parser.set_defaults(method='create_key_value_pair')

delete_parser = subparsers.add_parser(
    'delete', help='delete an object',
    description='Delete an object.',
    parents=[abstract_object_parser]
)
delete_parser.set_defaults(method='delete')

#############
## Linking ##
#############

link_parser = subparsers.add_parser(
    'link', help='link two objects',
    description='Attach an annotation to an object, add a dataset to a '
                'project or add an image to a dataset.',
    parents=[abstract_link_parser]
)
link_parser.set_defaults(method='link')

unlink_parser = subparsers.add_parser(
    'unlink', help='unlink two objects',
    description='Remove the link between two objects.',
    parents=[abstract_link_parser]
)
unlink_parser.set_defaults(method='unlink')

###########
## Files ##
###########

add_file_parser = subparsers.add_parser(
    'add-file', help='attach a file to an object',
    description='Attach a file to an object and print the ID of the file.',
    parents=[abstract_object_parser]
)
add_file_parser.add_argument('path', help='path to the file')
add_file_parser.set_defaults(method='add_file')

delete_file_parser = subparsers.add_parser(
    'delete-file', help='delete an attached file',
    description='Delete an attached file.'
)
delete_file_parser.add_argument('id', type=int, help='ID of the file')
delete_file_parser.set_defaults(method='delete_file')

############
## Images ##
############

download_image_parser = subparsers.add_parser(
    'download-image', help='download an image',
    description='Download the original files of an image and print their '
                'paths.'
)
download_image_parser.add_argument(
    'image_id', type=int, help='ID of the image'
)
download_image_parser.add_argument(
    'path', help='directory where the files should be stored'
)
download_image_parser.set_defaults(method='download_image')

remove_rois_parser = subparsers.add_parser(
    'remove-rois', help='delete the ROIs of an image',
    description='Delete all ROIs of an image and print their number.'
)
remove_rois_parser.add_argument('id', type=int, help='ID of the image')
remove_rois_parser.set_defaults(method='remove_rois')

show_bounds_parser = subparsers.add_parser(
    'show-bounds', help='show a parsed region description',
    description='Print start and end of each axis of a region description '
                'like "x:0:100 y::200 z:5: t::". No connection is made.'
)
show_bounds_parser.add_argument('text', help='region description')
show_bounds_parser.set_defaults(method=None)


def _call(functions, args):
    '''Calls the macro function selected by `args` with the matching
    arguments.'''
    method_name = args.method
    logger.debug('call method "%s"', method_name)
    method = getattr(functions, method_name)
    params = inspect.signature(method).parameters
    kwargs = {
        name: value for name, value in vars(args).items()
        if name in params
    }
    return method(**kwargs)


def _show_bounds(text):
    bounds = parse_bounds(text)
    t = PrettyTable(['Axis', 'Start', 'End'])
    t.padding_width = 1
    for axis in AXES:
        start, end = bounds.axis(axis)
        t.add_row([axis, start, 'last' if end < 0 else end])
    print(t)


def _list(functions, args):
    if args.for_user is not None:
        functions.set_user(args.for_user)
    if args.inside is not None:
        parent, id = args.inside
        result = functions.list(args.type, parent, id)
    else:
        result = functions.list(args.type, args.name)
    if not args.table:
        return result
    t = PrettyTable(['ID', 'Name'])
    t.align['Name'] = 'l'
    t.padding_width = 1
    for id in filter(None, result.split(',')):
        t.add_row([id, functions.get_name(args.type, id)])
    print(t)


def main():
    '''Main entry point for command line interface.'''
    args = parser.parse_args()

    configure_logging(args.verbosity)

    if args.method is None:
        _show_bounds(args.text)
        return

    config = OmeroExtConfig()
    config.read()
    host = args.host or config.host
    username = args.username or config.username
    if not host:
        logger.error(
            'Please give a host name,'
            ' either via the `--host` command-line option,'
            ' by setting the `OMERO_HOST` environment variable'
            ' or in the configuration file.'
        )
        sys.exit(os.EX_USAGE)
    if not username:
        logger.error(
            'Please give a user name,'
            ' either via the `--user` command-line option,'
            ' by setting the `OMERO_USER` environment variable'
            ' or in the configuration file.'
        )
        sys.exit(os.EX_USAGE)
    try:
        port = int(args.port) if args.port else config.port
    except ValueError:
        logger.error(
            'Invalid value for server port: `%s`;'
            ' it should be an integer number in the range 1..65535.',
            args.port
        )
        sys.exit(os.EX_USAGE)

    password = args.password
    if not password:
        try:
            password = load_credentials_from_file(username)
        except (OSError, SyntaxError, KeyError):
            password = prompt_for_credentials(username)

    failures = list()

    def report(message, level=logging.ERROR):
        logger.log(level, message)
        failures.append(message)

    factory = functools.partial(OmeroClient, ca_bundle=config.ca_bundle)
    functions = MacroFunctions(report=report, client_factory=factory)
    if not functions.connect(host, port, username, password):
        sys.exit(1)
    try:
        group = args.group if args.group is not None else config.group
        if group is not None:
            functions.switch_group(group)
        if args.method == 'list':
            result = _list(functions, args)
        else:
            result = _call(functions, args)
    finally:
        functions.disconnect()
    if result is not None:
        print(functions.format_result(result))
    if failures:
        sys.exit(1)
