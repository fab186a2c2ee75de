import logging

from girder.api import access
from girder.api.describe import Description, autoDescribeRoute
from girder.api.rest import (
    Resource, filtermodel, getApiUrl, setContentDisposition, setRawResponse, setResponseHeader)
from girder.constants import AccessType, TokenScope
from girder.exceptions import RestException
from girder.models.folder import Folder
from girder.models.item import Item
from girder.models.setting import Setting

from . import client as omeroClient
from . import transfer
from .constants import (
    API_VERSIONS, DOWNLOAD_CHUNK_SIZE, FILE_STATUS_OK, IMPORT_IMAGE_SIZE, REFERENCE_META_KEY,
    SessionKey, THUMBNAIL_LIFETIME)
from .listing import RepositoryBrowser
from .paths import OmeroUrls, PathUtils
from .session import SessionCache
from .settings import PluginSettings, getWebclientUrl

logger = logging.getLogger(__name__)


class Omero(Resource):
    def __init__(self):
        super().__init__()
        self.resourceName = 'omero'

        self.route('GET', ('api_versions',), self.getApiVersions)
        self.route('GET', ('listing',), self.getListing)
        self.route('GET', ('search',), self.search)
        self.route('GET', ('thumbnail', ':imageId'), self.getThumbnail)
        self.route('GET', ('image', ':imageId', 'download'), self.downloadImage)
        self.route('GET', ('image', ':imageId', 'reference'), self.getImageReference)
        self.route('POST', ('image', ':imageId', 'import'), self.importImage)
        self.route('GET', ('item', ':id', 'details'), self.getItemDetails)
        self.route('PUT', ('item', ':id', 'sync'), self.syncItem)
        self.route('POST', ('sync',), self.syncAll)
        self.route('DELETE', ('session',), self.logOut)

    def _getSession(self):
        token = self.getCurrentToken()
        if token is not None:
            return SessionCache(token['_id'])
        return SessionCache(self.getCurrentUser()['_id'])

    def _getBrowser(self):
        settings = Setting()
        return RepositoryBrowser(
            omeroClient.fromSettings(),
            OmeroUrls(getApiUrl()),
            self._getSession(),
            blacklist=settings.get(PluginSettings.ITEM_BLACKLIST),
            enablePagination=settings.get(PluginSettings.ENABLE_PAGINATION),
            manageUrl=getWebclientUrl())

    def _getReference(self, item):
        reference = (item.get('meta') or {}).get(REFERENCE_META_KEY)
        if not isinstance(reference, dict):
            raise RestException('Item %s was not imported from OMERO.' % item['_id'])
        return reference

    @access.public
    @autoDescribeRoute(
        Description('List the supported OMERO API versions.')
    )
    def getApiVersions(self):
        return API_VERSIONS

    @access.user(scope=TokenScope.DATA_READ)
    @autoDescribeRoute(
        Description('List the content of an OMERO resource.')
        .notes('The path is an OME-Seadragon path such as /get/projects or '
               '/get/dataset/12; the root lists the projects and the tags. '
               'Listing the same annotation query twice in a row refreshes it.')
        .param('path', 'The path of the resource.', required=False, default='/')
        .param('page', 'The page of a dataset listing.', required=False,
               dataType='integer', default=1)
        .errorResponse('OMERO could not be reached.', 502)
    )
    def getListing(self, path, page):
        return self._getBrowser().getListing(path, page)

    @access.user(scope=TokenScope.DATA_READ)
    @autoDescribeRoute(
        Description('Search the OMERO tagsets and tags.')
        .param('q', 'The text to search.')
        .param('page', 'Unused, for symmetry with the listing.', required=False,
               dataType='integer', default=1)
        .errorResponse('OMERO could not be reached.', 502)
    )
    def search(self, q, page):
        return self._getBrowser().search(q, page)

    @access.user(scope=TokenScope.DATA_READ, cookie=True)
    @autoDescribeRoute(
        Description('Get the thumbnail of an OMERO image.')
        .notes('The response may be cached for a long time, since the URL built by '
               'the listing changes with the last update time of the image.')
        .param('imageId', 'The OMERO image ID.', paramType='path', dataType='integer')
        .param('lastUpdate', 'The last update time of the image.', required=False)
        .param('height', 'The thumbnail height.', required=False, dataType='integer',
               default=128)
        .param('width', 'The thumbnail width.', required=False, dataType='integer',
               default=128)
        .produces('image/png')
        .errorResponse('OMERO could not be reached.', 502)
    )
    def getThumbnail(self, imageId, lastUpdate, height, width):
        size = max(height, width, 1)
        content = omeroClient.fromSettings().processRequest(
            PathUtils.buildImageRenderUrl(imageId, size), decode=False)

        setResponseHeader('Content-Type', 'image/png')
        setResponseHeader('Cache-Control', 'public, max-age=%d' % THUMBNAIL_LIFETIME)
        setRawResponse()
        return content

    @access.user(scope=TokenScope.DATA_READ, cookie=True)
    @autoDescribeRoute(
        Description('Download a PNG rendering of an OMERO image.')
        .param('imageId', 'The OMERO image ID.', paramType='path', dataType='integer')
        .param('size', 'The size of the longest side of the rendering.', required=False,
               dataType='integer', default=IMPORT_IMAGE_SIZE)
        .produces('image/png')
        .errorResponse('OMERO could not be reached.', 502)
    )
    def downloadImage(self, imageId, size):
        repository = omeroClient.fromSettings()
        resp = repository.request('GET', repository.getImageRenderUrl(imageId, size), stream=True)
        repository.raiseForStatus(resp)

        setResponseHeader('Content-Type', 'image/png')
        setContentDisposition('%s.png' % imageId)

        def stream():
            with resp:
                for chunk in resp.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                    yield chunk
        return stream

    @access.user(scope=TokenScope.DATA_READ)
    @autoDescribeRoute(
        Description('Get the reference to an OMERO image.')
        .param('imageId', 'The OMERO image ID.', paramType='path', dataType='integer')
        .param('useFileReference', 'Whether to include the link to the image.',
               required=False, dataType='boolean', default=False)
    )
    def getImageReference(self, imageId, useFileReference):
        user = self.getCurrentUser()
        reference = transfer.getFileReference(
            omeroClient.fromSettings(), imageId, user, useFileReference)
        return {
            'reference': reference,
            'details': transfer.getReferenceDetails(reference, user),
            'sourceInfo': transfer.getFileSourceInfo(imageId, user)
        }

    @access.user(scope=TokenScope.DATA_WRITE)
    @filtermodel(model=Item)
    @autoDescribeRoute(
        Description('Import an OMERO image in a folder.')
        .notes('Images within the omero.cache_limit setting are copied to the '
               'assetstore; larger ones are linked.')
        .param('imageId', 'The OMERO image ID.', paramType='path', dataType='integer')
        .modelParam('folderId', 'The destination folder.', model=Folder,
                    level=AccessType.WRITE, paramType='formData')
        .errorResponse('Write access was denied on the folder.', 403)
        .errorResponse('OMERO could not be reached.', 502)
    )
    def importImage(self, imageId, folder):
        return transfer.importImage(
            omeroClient.fromSettings(), imageId, folder, self.getCurrentUser(),
            Setting().get(PluginSettings.CACHE_LIMIT))

    @access.user(scope=TokenScope.DATA_READ)
    @autoDescribeRoute(
        Description('Describe the OMERO source of an imported item.')
        .modelParam('id', model=Item, level=AccessType.READ)
        .errorResponse('The item was not imported from OMERO.')
    )
    def getItemDetails(self, item):
        reference = self._getReference(item)
        status = reference.get('status', FILE_STATUS_OK)
        return {
            'details': transfer.getReferenceDetails(reference, self.getCurrentUser(), status),
            'status': status
        }

    @access.user(scope=TokenScope.DATA_WRITE)
    @filtermodel(model=Item)
    @autoDescribeRoute(
        Description('Synchronise an imported item with its OMERO source.')
        .modelParam('id', model=Item, level=AccessType.WRITE)
        .param('force', 'Synchronise even if the item was synchronised today.',
               required=False, dataType='boolean', default=True)
        .errorResponse('The item was not imported from OMERO.')
    )
    def syncItem(self, item, force):
        self._getReference(item)
        transfer.syncReference(omeroClient.fromSettings(), item, force=force)
        return Item().load(item['_id'], force=True)

    @access.admin
    @autoDescribeRoute(
        Description('Synchronise every item imported from OMERO.')
        .param('force', 'Synchronise even the items synchronised today.',
               required=False, dataType='boolean', default=False)
    )
    def syncAll(self, force):
        return {'synchronized': transfer.cron(omeroClient.fromSettings(), force=force)}

    @access.user
    @autoDescribeRoute(
        Description('Forget the OMERO navigation state and access token.')
    )
    def logOut(self):
        logger.info('User %s logged out of OMERO', self.getCurrentUser()['login'])
        session = self._getSession()
        session.deleteMany((
            SessionKey.ANNOTATION_QUERY, SessionKey.TAGSET, SessionKey.PROJECT,
            SessionKey.DATASET, SessionKey.LAST_QUERY))
        omeroClient.fromSettings().logOut()
        return {'message': 'Logged out of OMERO.'}
