"""
Download of OMERO images and bookkeeping of the Girder items imported from OMERO.

An imported item carries a reference to its OMERO source in ``meta.omero``::

    {
        'path': '/omero-image-repository/<imageId>',
        'userId': '<id of the importing user>',
        'userName': '<full name of the importing user>',
        'url': '<OMERO.web link of the image>',
        'lastSync': <epoch seconds of the last synchronisation>,
        'status': 0 or 666
    }
"""
import logging
import os
import tempfile
import time

import requests

from girder.exceptions import RestException
from girder.models.file import File
from girder.models.item import Item
from girder.models.upload import Upload

from .constants import (
    DOWNLOAD_CHUNK_SIZE, FILE_STATUS_MISSING, FILE_STATUS_OK, IMPORT_IMAGE_SIZE,
    REFERENCE_META_KEY, REFERENCE_PATH_PREFIX, SYNC_INTERVAL)

logger = logging.getLogger(__name__)


def _removeFile(path):
    try:
        os.remove(path)
    except OSError:
        pass


def downloadToFile(client, url, saveas, timeout=None):
    """
    Stream an authenticated GET request to a local file.

    :param client: The ``ConfidentialOAuthClient`` sending the request.
    :param url: The URL to download.
    :param saveas: The local path of the downloaded file.
    :param timeout: Request timeout in seconds; the client's timeout if None.
    :returns: A dict with the keys 'path' and 'url'.
    """
    kwargs = {'stream': True}
    if timeout:
        kwargs['timeout'] = timeout

    logger.debug('Downloading %s to %s', url, saveas)
    try:
        resp = client.request('GET', url, **kwargs)
        resp.raise_for_status()
        with open(saveas, 'wb') as fh:
            for chunk in resp.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                fh.write(chunk)
    except RestException:
        _removeFile(saveas)
        raise
    except (requests.RequestException, OSError) as e:
        _removeFile(saveas)
        raise RestException('Error while downloading %s: %s' % (url, e), code=502)
    return {'path': saveas, 'url': url}


def fullName(user):
    if not user:
        return ''
    return ('%s %s' % (user.get('firstName', ''), user.get('lastName', ''))).strip() or \
        user.get('login', '')


def getReferenceSource(reference):
    """
    Return the OMERO image ID a reference points to, or None.
    """
    path = (reference or {}).get('path') or ''
    if not path.startswith(REFERENCE_PATH_PREFIX):
        return None
    return path[len(REFERENCE_PATH_PREFIX):] or None


def getFileReference(client, source, user, useFileReference=False):
    """
    Build the reference to an OMERO image.

    :param client: The OMERO repository client.
    :param source: The OMERO image ID.
    :param user: The user selecting the image.
    :param useFileReference: Whether the reference must also hold the link to the
        image, i.e. whether the image is linked rather than copied.
    """
    reference = {
        'path': '%s%s' % (REFERENCE_PATH_PREFIX, source),
        'userId': str(user['_id']) if user else None,
        'userName': fullName(user)
    }
    if useFileReference:
        url = client.getFileShareLink(source)
        if url:
            reference['url'] = url
    return reference


def fixOldStyleReference(client, reference):
    """
    Upgrade a reference stored by older releases, which kept the OMERO
    credentials instead of the image link. The reference is returned unchanged
    when the link cannot be computed.
    """
    fixed = dict(reference)
    if not fixed.get('url'):
        source = getReferenceSource(fixed)
        url = client.getFileShareLink(source) if source else None
        if not url:
            return reference
        fixed['url'] = url
    fixed.pop('access_key', None)
    fixed.pop('access_secret', None)
    return fixed


def getReferenceDetails(reference, user, fileStatus=FILE_STATUS_OK, repositoryName='omero'):
    """
    Return a human readable description of a reference.

    :param reference: The reference, as built by ``getFileReference``.
    :param user: The user reading the description.
    :param fileStatus: 0 if the source is available, 666 if it is missing.
    :param repositoryName: The name of the repository prefixing the description.
    """
    prefix = repositoryName
    userId = str(user['_id']) if user else None
    if reference.get('userId') and reference['userId'] != userId and reference.get('userName'):
        prefix += ' (%s)' % reference['userName']

    details = prefix
    if reference.get('path'):
        details += ': %s' % reference['path']
        if not fileStatus:
            return details
    if reference.get('url'):
        details = '%s: %s' % (prefix, reference['url'])
    return 'Lost source: %s' % details


def getFileSourceInfo(source, user):
    return 'omero (%s): %s' % (fullName(user), source)


def importImage(client, imageId, folder, user, cacheLimit=0):
    """
    Import an OMERO image in a Girder folder.

    The image is rendered as a PNG. When its size does not exceed ``cacheLimit``
    bytes the PNG is stored in the current assetstore, otherwise the item holds a
    link to the image in OMERO.web. A cache limit of 0 always links. Importing
    an image again in the same folder replaces the file of its item.

    :param client: The OMERO repository client.
    :param imageId: The OMERO image ID.
    :param folder: The destination folder.
    :param user: The importing user.
    :param cacheLimit: The size, in bytes, of the largest image to copy.
    :returns: The imported item.
    """
    image = client.getImage(imageId)
    name = '%s.png' % (image.get('name') or imageId)
    reference = getFileReference(client, imageId, user, useFileReference=True)

    path = None
    size = None
    if cacheLimit:
        fd, path = tempfile.mkstemp(suffix='.png')
        os.close(fd)
    try:
        if path is not None:
            client.getFile(imageId, path, IMPORT_IMAGE_SIZE)
            size = os.path.getsize(path)

        item = Item().createItem(name=name, creator=user, folder=folder, reuseExisting=True)
        # A new import replaces whatever an earlier one attached
        for file in list(Item().childFiles(item)):
            File().remove(file)

        cached = size is not None and size <= cacheLimit
        if cached:
            with open(path, 'rb') as fh:
                Upload().uploadFromFile(
                    fh, size, name, parentType='item', parent=item, user=user,
                    mimeType='image/png')
        else:
            File().createLinkFile(name, item, 'item', reference['url'], user)
            if size is not None:
                _updateLinkSize(item, size)
    finally:
        if path is not None:
            _removeFile(path)

    logger.info('Imported OMERO image %s as item %s (%s)', imageId, item['_id'],
                'cached' if cached else 'linked')

    reference.update({'lastSync': time.time(), 'status': FILE_STATUS_OK})
    item = Item().load(item['_id'], force=True)
    return Item().setMetadata(item, {REFERENCE_META_KEY: reference})


def _updateLinkSize(item, size):
    for file in Item().childFiles(item):
        if file.get('linkUrl') and file.get('size') != size:
            increment = size - (file.get('size') or 0)
            file['size'] = size
            File().updateFile(file)
            File().propagateSizeChange(item, increment)


def syncReference(client, item, force=False):
    """
    Check the OMERO source of an imported item, at most once a day unless
    ``force`` is set. The size of linked files is refreshed from the answer to a
    HEAD request; an unreachable source marks the reference as missing.

    :returns: Whether the item was synchronised.
    """
    reference = (item.get('meta') or {}).get(REFERENCE_META_KEY)
    if not isinstance(reference, dict):
        return False
    if not force and reference.get('lastSync', 0) + SYNC_INTERVAL > time.time():
        return False

    if not reference.get('url'):
        reference = fixOldStyleReference(client, reference)
    source = getReferenceSource(reference)
    if not reference.get('url') or source is None:
        return False

    url = client.getImageRenderUrl(source)
    try:
        resp = client.request('HEAD', url, allow_redirects=True)
    except RestException as e:
        logger.warning('Could not check OMERO image %s: %s', source, e)
        resp = None

    length = None
    if resp is not None and resp.status_code == 200:
        try:
            length = int(resp.headers.get('Content-Length'))
        except (TypeError, ValueError):
            logger.warning('Bad Content-Length for OMERO image %s', source)
    if length is not None and length >= 0:
        _updateLinkSize(item, length)
        reference['status'] = FILE_STATUS_OK
    else:
        logger.info('OMERO source of item %s is missing', item['_id'])
        reference['status'] = FILE_STATUS_MISSING

    reference['lastSync'] = time.time()
    item = Item().load(item['_id'], force=True)
    Item().setMetadata(item, {REFERENCE_META_KEY: reference})
    return True


def cron(client, force=False):
    """
    Synchronise every item imported from OMERO. A failing item does not stop
    the synchronisation of the others.

    :returns: The number of synchronised items.
    """
    count = 0
    for item in Item().find({'meta.%s' % REFERENCE_META_KEY: {'$exists': True}}):
        try:
            if syncReference(client, item, force=force):
                count += 1
        except Exception:
            logger.exception('Failed to synchronise item %s', item['_id'])
    return count
