import time
import unittest.mock

import pytest

from girder.exceptions import RestException
from girder.models.file import File
from girder.models.folder import Folder
from girder.models.item import Item
from girder_omero import transfer
from girder_omero.constants import FILE_STATUS_MISSING, FILE_STATUS_OK, REFERENCE_META_KEY

SHARE_URL = 'https://omero.example.org/webclient/img_detail/5/'
PNG_DATA = b'\x89PNG\r\n\x1a\n' + b'\0' * 32


@pytest.fixture
def repository():
    repository = unittest.mock.Mock()
    repository.getFileShareLink.side_effect = \
        lambda imageId: 'https://omero.example.org/webclient/img_detail/%s/' % imageId
    repository.getImageRenderUrl.side_effect = \
        lambda imageId, size=2048: 'https://omero.example.org/render/%s.png' % imageId
    repository.getImage.side_effect = \
        lambda imageId, rois=False: {'id': imageId, 'name': 'slide_%s.svs' % imageId}

    def getFile(imageId, saveas, size=2048, timeout=None):
        with open(saveas, 'wb') as fh:
            fh.write(PNG_DATA)
        return {'path': saveas, 'url': repository.getImageRenderUrl(imageId)}
    repository.getFile.side_effect = getFile
    return repository


@pytest.fixture
def owner():
    return {'_id': 'owner_id', 'login': 'jdoe', 'firstName': 'Jane', 'lastName': 'Doe'}


@pytest.fixture
def userFolder(user, fsAssetstore):
    folders = Folder().childFolders(parent=user, parentType='user', user=user)
    for folder in folders:
        if folder['public'] is True:
            return folder


def headResponse(status=200, length='1234'):
    resp = unittest.mock.Mock()
    resp.status_code = status
    resp.headers = {'Content-Length': length} if length is not None else {}
    return resp


def testGetFileReference(repository, owner):
    reference = transfer.getFileReference(repository, 5, owner)
    assert reference == {
        'path': '/omero-image-repository/5',
        'userId': 'owner_id',
        'userName': 'Jane Doe'
    }
    assert not repository.getFileShareLink.called

    reference = transfer.getFileReference(repository, 5, owner, useFileReference=True)
    assert reference['url'] == SHARE_URL
    assert transfer.getReferenceSource(reference) == '5'


def testFullName():
    assert transfer.fullName({'firstName': 'Jane', 'lastName': 'Doe'}) == 'Jane Doe'
    assert transfer.fullName({'firstName': '', 'lastName': '', 'login': 'jdoe'}) == 'jdoe'
    assert transfer.fullName(None) == ''


def testFixOldStyleReference(repository):
    old = {
        'path': '/omero-image-repository/5',
        'access_key': 'key',
        'access_secret': 'secret'
    }
    assert transfer.fixOldStyleReference(repository, old) == {
        'path': '/omero-image-repository/5',
        'url': SHARE_URL
    }
    # The stored reference is left untouched
    assert 'access_key' in old

    repository.getFileShareLink.side_effect = None
    repository.getFileShareLink.return_value = None
    assert transfer.fixOldStyleReference(repository, old) is old


def testGetReferenceDetails(repository, owner):
    reference = transfer.getFileReference(repository, 5, owner, useFileReference=True)

    assert transfer.getReferenceDetails(reference, owner) == \
        'omero: /omero-image-repository/5'
    other = {'_id': 'other_id'}
    assert transfer.getReferenceDetails(reference, other) == \
        'omero (Jane Doe): /omero-image-repository/5'
    assert transfer.getReferenceDetails(reference, owner, FILE_STATUS_MISSING) == \
        'Lost source: omero: %s' % SHARE_URL
    assert transfer.getReferenceDetails({}, owner, repositoryName='OMERO') == \
        'Lost source: OMERO'


def testGetFileSourceInfo(owner):
    assert transfer.getFileSourceInfo(5, owner) == 'omero (Jane Doe): 5'


def testImportImageAsLink(repository, user, userFolder):
    item = transfer.importImage(repository, 5, userFolder, user, cacheLimit=0)

    assert item['name'] == 'slide_5.svs.png'
    reference = item['meta'][REFERENCE_META_KEY]
    assert reference['path'] == '/omero-image-repository/5'
    assert reference['url'] == SHARE_URL
    assert reference['userId'] == str(user['_id'])
    assert reference['status'] == FILE_STATUS_OK
    assert not repository.getFile.called

    files = list(Item().childFiles(item))
    assert len(files) == 1
    assert files[0]['linkUrl'] == SHARE_URL


def testImportImageCopiesSmallImages(repository, user, userFolder):
    item = transfer.importImage(repository, 5, userFolder, user, cacheLimit=1024)

    files = list(Item().childFiles(item))
    assert len(files) == 1
    assert 'linkUrl' not in files[0]
    assert files[0]['size'] == len(PNG_DATA)
    assert files[0]['mimeType'] == 'image/png'
    with File().open(files[0]) as fh:
        assert fh.read() == PNG_DATA
    assert Item().load(item['_id'], force=True)['size'] == len(PNG_DATA)


def testImportImageDownloadFailureCreatesNoItem(repository, user, userFolder):
    repository.getFile.side_effect = RestException('Could not reach OMERO', code=502)

    with pytest.raises(RestException, match='Could not reach OMERO'):
        transfer.importImage(repository, 5, userFolder, user, cacheLimit=1024)
    assert list(Folder().childItems(userFolder)) == []


def testReimportReplacesFile(repository, user, userFolder):
    first = transfer.importImage(repository, 5, userFolder, user, cacheLimit=1024)
    second = transfer.importImage(repository, 5, userFolder, user, cacheLimit=1024)

    assert second['_id'] == first['_id']
    files = list(Item().childFiles(second))
    assert len(files) == 1
    assert 'linkUrl' not in files[0]
    assert second['size'] == len(PNG_DATA)

    # Switching to a link drops the stored copy
    third = transfer.importImage(repository, 5, userFolder, user, cacheLimit=0)
    files = list(Item().childFiles(third))
    assert len(files) == 1
    assert files[0]['linkUrl'] == SHARE_URL
    assert len(list(Folder().childItems(userFolder))) == 1


def testImportImageLinksLargeImages(repository, user, userFolder):
    item = transfer.importImage(repository, 5, userFolder, user, cacheLimit=10)

    files = list(Item().childFiles(item))
    assert len(files) == 1
    assert files[0]['linkUrl'] == SHARE_URL
    assert files[0]['size'] == len(PNG_DATA)


def testSyncReference(repository, user, userFolder):
    item = transfer.importImage(repository, 5, userFolder, user)
    repository.request.return_value = headResponse(length='4096')

    # Synchronised at import time
    assert transfer.syncReference(repository, item) is False
    assert not repository.request.called

    assert transfer.syncReference(repository, item, force=True) is True
    repository.request.assert_called_once_with(
        'HEAD', 'https://omero.example.org/render/5.png', allow_redirects=True)
    item = Item().load(item['_id'], force=True)
    assert item['meta'][REFERENCE_META_KEY]['status'] == FILE_STATUS_OK
    assert list(Item().childFiles(item))[0]['size'] == 4096
    assert item['size'] == 4096


def testSyncReferenceMissingSource(repository, user, userFolder):
    item = transfer.importImage(repository, 5, userFolder, user)

    repository.request.return_value = headResponse(status=404, length=None)
    assert transfer.syncReference(repository, item, force=True) is True
    item = Item().load(item['_id'], force=True)
    assert item['meta'][REFERENCE_META_KEY]['status'] == FILE_STATUS_MISSING

    repository.request.side_effect = RestException('Could not reach OMERO', code=502)
    reference = item['meta'][REFERENCE_META_KEY]
    reference['status'] = FILE_STATUS_OK
    assert transfer.syncReference(repository, item, force=True) is True
    item = Item().load(item['_id'], force=True)
    assert item['meta'][REFERENCE_META_KEY]['status'] == FILE_STATUS_MISSING


def testSyncReferenceBadContentLength(repository, user, userFolder):
    item = transfer.importImage(repository, 5, userFolder, user)

    repository.request.return_value = headResponse(length='abc')
    assert transfer.syncReference(repository, item, force=True) is True
    item = Item().load(item['_id'], force=True)
    assert item['meta'][REFERENCE_META_KEY]['status'] == FILE_STATUS_MISSING


def testSyncReferenceSkipsOtherItems(repository, user, userFolder):
    item = Item().createItem('local.png', user, userFolder)
    assert transfer.syncReference(repository, item, force=True) is False


def testCron(repository, user, userFolder):
    transfer.importImage(repository, 5, userFolder, user)
    second = transfer.importImage(repository, 6, userFolder, user)
    Item().createItem('local.png', user, userFolder)

    # Pretend the second image was synchronised two days ago
    reference = second['meta'][REFERENCE_META_KEY]
    reference['lastSync'] = time.time() - 2 * 86400
    Item().setMetadata(second, {REFERENCE_META_KEY: reference})

    repository.request.return_value = headResponse()
    assert transfer.cron(repository) == 1
    repository.request.assert_called_once_with(
        'HEAD', 'https://omero.example.org/render/6.png', allow_redirects=True)

    with unittest.mock.patch.object(
            transfer, 'syncReference', side_effect=[RestException('boom', code=502), True]):
        assert transfer.cron(repository, force=True) == 1
    with unittest.mock.patch.object(
            transfer, 'syncReference', side_effect=[ValueError('bad answer'), True]):
        assert transfer.cron(repository, force=True) == 1
