# -*- coding: utf-8 -*-
import logging

import mock
import pytest

from omeroext.errors import TransportError
from omeroext.functions import MacroFunctions
from omeroext.keys import TypeKey
from omeroext.links import Address
from omeroext.links import LinkKind


def messages(reported):
    return [m for _, m in reported]


def test_connect_creates_client(repository):
    calls = list()

    def factory(host, port, username, password):
        calls.append((host, port, username, password))
        return repository

    functions = MacroFunctions(client_factory=factory)
    assert functions.connect('omero.example.org', '4064', 'root', 'secret')
    assert calls == [('omero.example.org', 4064, 'root', 'secret')]
    assert repository.connected
    assert functions.client is repository


def test_connect_failure_is_reported(reported):
    def factory(host, port, username, password):
        raise TransportError('Connection refused')

    functions = MacroFunctions(
        report=lambda m, level=logging.ERROR: reported.append((level, m)),
        client_factory=factory
    )
    assert functions.connect('localhost', 4064, 'root', 'secret') is False
    assert messages(reported) == ['Could not connect: Connection refused']
    assert functions.context.client is None


def test_default_report_logs_errors(repository, caplog):
    functions = MacroFunctions(repository)
    with caplog.at_level(logging.ERROR, logger='omeroext.functions'):
        assert functions.get_name('image', 42) == ''
    assert 'Could not retrieve image 42' in caplog.text


def test_list_all(functions):
    assert functions.list('projects') == '1,2'
    assert functions.list('Images') == '4,10'
    assert functions.list('tag') == '5'
    assert functions.list('kv-pairs') == '6'


def test_list_by_name(functions):
    assert functions.list('datasets', 'Dataset') == '3'
    assert functions.list('tags', 'Tag') == '5'
    assert functions.list('projects', 'Project C') == ''


def test_list_unknown_type(functions, reported):
    assert functions.list('foo') == ''
    assert messages(reported) == [
        'Could not retrieve foo: Invalid type: foo. Possible values are: '
        'projects, datasets, images, screens, plates, wells, tags or kv-pairs.'
    ]


@pytest.mark.parametrize('type,parent,id,expected', [
    ('datasets', 'project', 1, '3'),
    ('images', 'dataset', 3, '4'),
    ('tags', 'dataset', 3, '5'),
    ('kv-pairs', 'image', 4, '6'),
    ('datasets', 'tag', 5, '3'),
    ('images', 'kv-pair', 6, '4'),
    ('datasets', 'kv-pair', 6, ''),
    ('plates', 'screen', 7, '8'),
    ('wells', 'plate', 8, '9'),
    ('images', 'well', 9, '10'),
    ('images', 'project', 2, ''),
])
def test_list_in_container(functions, type, parent, id, expected):
    assert functions.list(type, parent, id) == expected


def test_list_in_container_rejects_child_type(functions, reported):
    assert functions.list('projects', 'dataset', 3) == ''
    assert messages(reported) == [
        'Could not retrieve projects in dataset: Invalid type: projects. '
        'Possible values are: images, tags or kv-pairs.'
    ]


def test_list_requires_parent_type(functions, reported):
    assert functions.list('images', None, 3) == ''
    assert messages(reported) == ['Second argument should not be null.']


def test_list_for_user(functions, reported):
    assert functions.set_user('alice') == 1
    assert functions.list('projects') == '2'
    assert functions.list('kv-pairs') == '6'
    assert functions.list('tags') == ''
    # unknown users keep the previous filter
    assert functions.set_user('nobody') == 1
    assert reported == [
        (logging.WARNING, 'Could not retrieve user: nobody')
    ]
    # listing inside a container is not filtered
    assert functions.list('datasets', 'project', 1) == '3'
    assert functions.set_user('all') == -1
    assert functions.list('projects') == '1,2'
    functions.set_user('alice')
    assert functions.set_user('') == -1
    assert functions.set_user(None) == -1


def test_create_objects(functions, repository):
    project_id = functions.create_project('New project', 'description')
    assert repository.store[(TypeKey.PROJECT, project_id)].name == 'New project'
    dataset_id = functions.create_dataset('New dataset', '', project_id)
    assert functions.list('datasets', 'project', project_id) == str(dataset_id)
    tag_id = functions.create_tag('New tag')
    assert functions.get_name('tag', tag_id) == 'New tag'
    kv_id = functions.create_key_value_pair('Key', 'Value')
    assert functions.get_name('kv-pair', kv_id) == 'Key\tValue'


def test_create_dataset_in_missing_project(functions, repository, reported):
    assert functions.create_dataset('New dataset', '', 42) == -1
    assert messages(reported) == [
        'Could not create dataset: Could not retrieve project 42: '
        'No project found with ID 42'
    ]
    assert functions.list('datasets') == '3'


def test_create_on_read_only_repository(functions, repository, reported):
    repository.fail_writes = True
    assert functions.create_tag('New tag') == -1
    assert functions.create_key_value_pair('Key', 'Value') == -1
    assert messages(reported) == [
        'Could not create tag: Read-only session',
        'Could not create kv-pair: Read-only session',
    ]


def test_delete(functions, repository, reported):
    functions.delete('datasets', 3)
    assert [o.id for o in repository.deleted] == [3]
    functions.delete('dataset', 3)
    assert messages(reported) == [
        'Could not delete dataset: Could not retrieve dataset 3: '
        'No dataset found with ID 3'
    ]


def test_link_and_unlink(functions, repository):
    functions.link('image', 4, 'dataset', 3)
    functions.link('tag', 5, 'well', 9)
    assert repository.links == [
        (LinkKind.CONTAINER_CHILD,
            Address(TypeKey.DATASET, 3), Address(TypeKey.IMAGE, 4)),
        (LinkKind.ANNOTATION_ATTACH,
            Address(TypeKey.TAG, 5), Address(TypeKey.WELL, 9)),
    ]
    functions.unlink('dataset', 3, 'project', 1)
    assert repository.unlinks == [
        (LinkKind.CONTAINER_CHILD,
            Address(TypeKey.PROJECT, 1), Address(TypeKey.DATASET, 3)),
    ]


def test_invalid_link_is_reported_before_any_write(functions, repository,
        reported):
    functions.link('project', 1, 'image', 4)
    functions.link('tag', 5, 'image', 42)
    assert repository.links == []
    assert messages(reported) == [
        'Cannot link project and image',
        'Cannot link tag and image: Could not retrieve image 42: '
        'No image found with ID 42',
    ]


def test_link_on_read_only_repository(functions, repository, reported):
    repository.fail_writes = True
    functions.link('image', 4, 'dataset', 3)
    assert messages(reported) == ['Could not link: Read-only session']


def test_interrupted_link_is_reported_and_raised(functions, repository,
        reported):
    with mock.patch.object(
            repository, 'link_objects', side_effect=KeyboardInterrupt):
        with pytest.raises(KeyboardInterrupt):
            functions.link('image', 4, 'dataset', 3)
    assert len(reported) == 1
    assert reported[0][1].startswith('Cannot link image and dataset')


def test_add_and_delete_file(functions, repository, reported, tmp_path):
    path = tmp_path / 'notes.txt'
    path.write_text('some notes')
    file_id = functions.add_file('dataset', 3, str(path))
    obj, attached = repository.files[file_id]
    assert obj.id == 3
    assert attached == str(path)
    functions.delete_file(file_id)
    assert repository.files == {}
    functions.delete_file(file_id)
    assert messages(reported) == [
        'Could not delete file: No file found with ID {0}'.format(file_id)
    ]


def test_add_missing_file(functions, repository, reported, tmp_path):
    assert functions.add_file('dataset', 3, str(tmp_path / 'missing')) == -1
    assert functions.add_file('tag', 5, str(tmp_path / 'missing')) == -1
    assert repository.files == {}
    assert len(reported) == 2
    assert 'File does not exist' in reported[0][1]
    assert 'Invalid type: tag.' in reported[1][1]


def test_tables(functions, repository, reported, tmp_path):
    results = tmp_path / 'results.csv'
    results.write_text('Area,Label\n2,b\n3,c\n')
    functions.add_to_table('measurements', [{'Area': 1, 'Label': 'a'}], 4)
    functions.add_to_table('measurements', str(results), 10)
    table_id = functions.save_table('measurements', 'dataset', 3)
    assert table_id > 100
    obj, name, data = repository.tables[0]
    assert obj.id == 3
    assert name.endswith('_measurements')
    assert data['Area'].tolist() == [1, 2, 3]
    assert data['Image'].tolist() == [4, 10, 10]

    path = tmp_path / 'measurements.csv'
    functions.save_table_as_file('measurements', str(path), ',')
    assert path.read_text().splitlines()[0] == 'Area,Label,Image'

    functions.clear_table('measurements')
    functions.save_table_as_file('measurements', str(path))
    assert reported == [(
        logging.ERROR,
        'Could not create table file: Table does not exist: measurements'
    )]


def test_add_to_cleared_table(functions, reported):
    functions.add_to_table('measurements', [{'Area': 1}], 4)
    functions.add_to_table('measurements', [{'Area': 2}], 4)
    assert len(functions.context.tables.get('measurements')) == 2
    functions.clear_table('measurements')
    functions.add_to_table('measurements', [{'Area': 3}], 10)
    table = functions.context.tables.get('measurements')
    assert len(table) == 1
    assert table.data['Image'].tolist() == [10]
    assert reported == []


def test_save_unknown_table(functions, repository, reported):
    assert functions.save_table('missing', 'dataset', 3) == -1
    assert reported == [
        (logging.CRITICAL, 'Could not save table "missing": Table is empty!')
    ]
    assert repository.tables == []


def test_add_missing_results(functions, reported):
    functions.add_to_table('measurements', None)
    assert messages(reported) == [
        'Could not add results to table: Results table does not exist.'
    ]


def test_import_and_download_image(functions, repository):
    image_ids = functions.import_image(3, '/data/new.tif')
    assert functions.list('images', 'dataset', 3) == '4,' + image_ids
    assert functions.download_image(4, '/tmp') == '/tmp/image4.tif'
    assert functions.download_image(42, '/tmp') == ''


def test_get_name(functions):
    assert functions.get_name('project', 1) == 'Project A'
    assert functions.get_name('wells', 9) == 'A1'
    assert functions.get_name('tag', 5) == 'Tag'
    assert functions.get_name('kv-pair', 6) == (
        'Key\tValue\nKey\tOther\nUnit\tum'
    )
    assert functions.get_name('image', 42) == ''


def test_get_image(functions, repository):
    pixels = repository.images[4]
    assert functions.get_image(4).shape == (1, 1, 2, 5, 5)
    region = functions.get_image(4, 'x:1:3 c:1')
    assert region.shape == (1, 1, 1, 5, 2)
    assert (region == pixels[:, :, 1:2, :, 1:3]).all()


def test_get_image_of_roi(functions, reported):
    assert functions.get_image(4, '11').shape == (1, 1, 2, 2, 3)
    assert functions.get_image(4, 12) is None
    assert functions.get_image(4, '99') is None
    assert functions.get_image(4, 'z:5') is None
    assert len(reported) == 3


def test_get_image_of_roi_given_as_macro_number(functions, reported):
    assert functions.handle_extension('getImage', [4.0, 11.0]) == '1,1,2,2,3'
    assert reported == []
    assert functions.handle_extension('getImage', [4.0, 999.0]) == ''
    assert messages(reported) == [
        'Could not retrieve image: ROI not found: 999'
    ]


def test_remove_rois(functions, repository):
    assert functions.remove_rois(4) == 2
    assert repository.fetch_rois(4) == []
    assert functions.remove_rois(10) == 0
    assert functions.remove_rois(42) == 0


def test_key_value_pairs(functions, reported):
    assert functions.get_key_value_pairs('image', 4) == (
        'Key\tValue\tKey\tOther\tUnit\tum'
    )
    assert functions.get_key_value_pairs('images', 4, ';') == (
        'Key;Value;Key;Other;Unit;um'
    )
    assert functions.get_key_value_pairs('dataset', 3) == ''
    assert functions.get_value('image', 4, 'Key') == 'Value'
    assert functions.get_value('image', 4, 'Unit') == 'um'
    assert functions.get_value('image', 4, 'Missing', 'none') == 'none'
    assert reported == []
    assert functions.get_value('image', 4, 'Missing') is None
    assert messages(reported) == [
        'Could not retrieve value: No value found for key "Missing"'
    ]


def test_sudo(functions, repository):
    repository.connect()
    functions.sudo('alice')
    alice = functions.client
    assert alice.username == 'alice'
    assert functions.context.switched is repository
    functions.end_sudo()
    assert functions.client is repository
    assert functions.context.switched is None
    assert not alice.connected
    assert repository.connected


def test_nested_sudo_only_restores_last_session(functions, repository,
        reported):
    repository.connect()
    functions.sudo('alice')
    alice = functions.client
    functions.sudo('bob')
    bob = functions.client
    # the session before the first sudo is lost and logged out
    assert not repository.connected
    functions.end_sudo()
    assert functions.client is alice
    assert alice.connected
    assert not bob.connected
    functions.end_sudo()
    assert functions.client.username == 'alice'
    assert messages(reported) == [
        'Could not end sudo: No sudo has been used before.'
    ]


def test_failed_sudo_keeps_session(functions, repository, reported):
    functions.sudo('nobody')
    assert functions.client is repository
    assert functions.context.switched is None
    assert len(reported) == 1


def test_disconnect_ends_sudo(functions, repository):
    repository.connect()
    functions.sudo('alice')
    alice = functions.client
    functions.disconnect()
    assert not alice.connected
    assert functions.client is repository
    assert not repository.connected


def test_handle_extension(functions, repository, reported):
    assert functions.handle_extension('list', ['datasets', 'project', 1.0]) == '3'
    assert functions.handle_extension('list', ['projects', None, None]) == '1,2'
    assert functions.handle_extension('switchGroup', [5.0]) == '5'
    assert repository.group_id == 5
    assert functions.handle_extension('getImage', [4.0]) == '1,1,2,5,5'
    assert functions.handle_extension('getName', ['tag', 5.0]) == 'Tag'
    assert functions.handle_extension('clearTable', ['missing']) == ''
    assert functions.handle_extension('removeROIs', [4.0]) == '2'
    assert reported == []


def test_handle_extension_reports_unknown_calls(functions, reported):
    assert functions.handle_extension('nonsense', []) == ''
    assert functions.handle_extension('getName', ['tag', 5, 6, 7]) == ''
    assert messages(reported)[0] == 'No such method: nonsense'
    assert messages(reported)[1].startswith('Invalid arguments for getName')


def test_handle_extension_propagates_errors_of_method_body(functions,
        repository, reported):
    with mock.patch.object(
            repository, 'fetch_repository_object',
            side_effect=TypeError('unhashable type')):
        with pytest.raises(TypeError):
            functions.handle_extension('getName', ['image', 4.0])
    assert reported == []


def test_handle_extension_connect(repository):
    functions = MacroFunctions(
        client_factory=lambda host, port, username, password: repository
    )
    result = functions.handle_extension(
        'connectToOMERO', ['localhost', 4064.0, 'root', 'secret']
    )
    assert result == 'true'


def test_end_sudo_survives_failed_logout(functions, repository, reported):
    functions.sudo('alice')
    alice = functions.client
    with mock.patch.object(
            alice, 'disconnect', side_effect=TransportError('reset')):
        functions.end_sudo()
    assert functions.client is repository
    assert functions.context.switched is None
    assert reported == []
