import logging

from girder.exceptions import ValidationException
from girder.models.setting import Setting

from .constants import ApiVersion, API_VERSIONS, IMPORT_IMAGE_SIZE
from .oauth import ConfidentialOAuthClient
from .paths import PathUtils
from .settings import PluginSettings, getWebclientUrl
from .transfer import downloadToFile

logger = logging.getLogger(__name__)


class OmeSeadragonImageRepository(ConfidentialOAuthClient):
    """
    Client of the OME-Seadragon REST API exposed by an OMERO server.

    :param serverUrl: The base URL of the OMERO server.
    :param clientId: The OAuth2 client ID.
    :param clientSecret: The OAuth2 client secret.
    :param webclientUrl: The base URL of OMERO.web, used for share links.
        Defaults to ``serverUrl``.
    :param timeout: Timeout of each request, in seconds.
    """
    API_PREFIX = '/ome_seadragon'

    def __init__(self, serverUrl, clientId, clientSecret, webclientUrl=None, timeout=None,
                 tokenStore=None):
        super().__init__(serverUrl, clientId, clientSecret, timeout=timeout,
                         tokenStore=tokenStore)
        self.webclientUrl = (webclientUrl or self.serverUrl).rstrip('/')

    @classmethod
    def getApiVersion(cls):
        return cls.__name__

    def apiUrl(self, path='/'):
        return '%s%s%s' % (self.serverUrl, self.API_PREFIX, path)

    def processRequest(self, path='/', decode=True):
        """
        Send a GET request to an API path.

        :param path: The API path, e.g. ``/get/projects``.
        :param decode: Whether the response is JSON to decode.
        :returns: The decoded JSON document, or the raw bytes when not decoding.
        """
        url = self.apiUrl(path)
        logger.debug('Processing OMERO request: %s', url)
        if decode:
            return self.getJson(url)
        resp = self.request('GET', url)
        self.raiseForStatus(resp)
        return resp.content

    def getProjects(self):
        return self.processRequest(PathUtils.buildProjectListUrl())

    def getProject(self, projectId, datasets=True):
        return self.processRequest(PathUtils.buildDatasetListUrl(projectId, datasets))

    def getDataset(self, datasetId, images=True):
        return self.processRequest(PathUtils.buildDatasetDetailUrl(datasetId, images))

    def getAnnotations(self):
        return self.processRequest(PathUtils.buildAnnotationListUrl())

    def getTagset(self, tagsetId, tags=True):
        return self.processRequest(PathUtils.buildTagsetDetailsUrl(tagsetId, tags))

    def getTag(self, tagId, images=True):
        return self.processRequest(PathUtils.buildTagDetailUrl(tagId, images))

    def getImage(self, imageId, rois=False):
        return self.processRequest(PathUtils.buildImageDetailUrl(imageId, rois))

    def findAnnotations(self, query):
        return self.processRequest(PathUtils.buildFindAnnotationsUrl(query))

    def getImageRenderUrl(self, imageId, size=IMPORT_IMAGE_SIZE):
        return self.apiUrl(PathUtils.buildImageRenderUrl(imageId, size))

    def getImageDziUrl(self, imageId):
        return self.apiUrl(PathUtils.buildImageDziUrl(imageId))

    def getThumbnail(self, imageId, saveas, size=128, timeout=None):
        """
        Download the thumbnail of an image.

        :param imageId: The OMERO image ID.
        :param saveas: The local path of the downloaded PNG.
        :param size: The size, in pixels, of the longest side of the thumbnail.
        :param timeout: Request timeout in seconds; the client's timeout if None.
        :returns: A dict with the keys 'path' and 'url'.
        """
        return downloadToFile(self, self.getImageRenderUrl(imageId, size), saveas, timeout)

    def getFile(self, imageId, saveas, size=IMPORT_IMAGE_SIZE, timeout=None):
        """
        Download a PNG rendering of an image. See ``getThumbnail``.
        """
        return downloadToFile(self, self.getImageRenderUrl(imageId, size), saveas, timeout)

    def getFileShareLink(self, imageId):
        """
        Return the OMERO.web link that displays an image.
        """
        return '%s/webclient/img_detail/%s/' % (self.webclientUrl, imageId)


class OmeSeadragonGatewayImageRepository(OmeSeadragonImageRepository):
    """
    Client of an OME-Seadragon server published behind its REST gateway.
    """
    API_PREFIX = '/ome_seadragon_gw'


_repositoryClasses = {
    ApiVersion.OME_SEADRAGON: OmeSeadragonImageRepository,
    ApiVersion.OME_SEADRAGON_GATEWAY: OmeSeadragonGatewayImageRepository,
}


def getRepository(apiVersion, serverUrl, clientId, clientSecret, **kwargs):
    """
    Instantiate the repository client implementing an API version.

    :param apiVersion: One of the keys of ``API_VERSIONS``.
    """
    cls = _repositoryClasses.get(apiVersion)
    if cls is None:
        raise ValidationException(
            'Unknown OMERO API version "%s"; expected one of %s.' % (
                apiVersion, ', '.join(API_VERSIONS)), 'apiVersion')
    return cls(serverUrl, clientId, clientSecret, **kwargs)


def fromSettings():
    """
    Create the repository client configured in the plugin settings.
    """
    settings = Setting()
    return getRepository(
        settings.get(PluginSettings.API_VERSION),
        settings.get(PluginSettings.SERVER),
        settings.get(PluginSettings.CLIENT_ID),
        settings.get(PluginSettings.CLIENT_SECRET),
        webclientUrl=getWebclientUrl(),
        timeout=settings.get(PluginSettings.REQUEST_TIMEOUT))
