"""
Virtual paths of the OMERO repository tree.

The paths handed to the listing are the OME-Seadragon REST paths of the
selected resource (e.g. ``/get/project/12``), so the same string is used both
to recognise the kind of node being browsed and to query the server.
"""
import re
import urllib.parse

# A path may be followed by a query string
_QS = r'(?:\?.*)?$'

_PROJECTS_RE = re.compile(r'^/get/projects' + _QS)
_ANNOTATIONS_RE = re.compile(r'^/get/annotations' + _QS)
_TAGSET_RE = re.compile(r'^/get/tagset/(\d+)' + _QS)
_TAG_RE = re.compile(r'^/get/tag/(\d+)' + _QS)
_PROJECT_RE = re.compile(r'^/get/project/(\d+)' + _QS)
_DATASET_RE = re.compile(r'^/get/dataset/(\d+)' + _QS)
_IMAGE_RE = re.compile(r'^/get/image/(\d+)' + _QS)
_ANNOTATIONS_QUERY_RE = re.compile(r'^/find/annotations' + _QS)
_ANY_ELEMENT_RE = re.compile(r'/get/\w+/(\d+)')


def _flag(value):
    return 'true' if value else 'false'


class PathUtils:
    """
    Predicates and builders of OME-Seadragon REST paths.
    """

    @staticmethod
    def isRootPath(path):
        return not path or path == '/'

    @staticmethod
    def isProjectsRoot(path):
        return bool(_PROJECTS_RE.match(path or ''))

    @staticmethod
    def isAnnotationsRoot(path):
        return bool(_ANNOTATIONS_RE.match(path or ''))

    @staticmethod
    def isTagset(path):
        return bool(_TAGSET_RE.match(path or ''))

    @staticmethod
    def isTag(path):
        return bool(_TAG_RE.match(path or ''))

    @staticmethod
    def isProject(path):
        return bool(_PROJECT_RE.match(path or ''))

    @staticmethod
    def isDataset(path):
        return bool(_DATASET_RE.match(path or ''))

    @staticmethod
    def isImage(path):
        return bool(_IMAGE_RE.match(path or ''))

    @staticmethod
    def isAnnotationsQuery(path):
        return bool(_ANNOTATIONS_QUERY_RE.match(path or ''))

    @staticmethod
    def buildProjectListUrl():
        return '/get/projects'

    @staticmethod
    def buildAnnotationListUrl():
        return '/get/annotations'

    @staticmethod
    def buildFindAnnotationsUrl(query):
        return '/find/annotations?%s' % urllib.parse.urlencode({'query': query})

    @staticmethod
    def buildTagsetDetailsUrl(tagsetId, tags=True):
        return '/get/tagset/%s?tags=%s' % (tagsetId, _flag(tags))

    @staticmethod
    def buildTagDetailUrl(tagId, images=True):
        return '/get/tag/%s?images=%s' % (tagId, _flag(images))

    @staticmethod
    def buildProjectDetailUrl(projectId):
        return '/get/project/%s' % projectId

    @staticmethod
    def buildDatasetListUrl(projectId, datasets=True):
        return '/get/project/%s?datasets=%s' % (projectId, _flag(datasets))

    @staticmethod
    def buildDatasetDetailUrl(datasetId, images=True):
        return '/get/dataset/%s?images=%s' % (datasetId, _flag(images))

    @staticmethod
    def buildImageDetailUrl(imageId, rois=True):
        return '/get/image/%s?rois=%s' % (imageId, _flag(rois))

    @staticmethod
    def buildImageDziUrl(imageId):
        return '/deepzoom/image_mpp/%s.dzi' % imageId

    @staticmethod
    def buildImageRenderUrl(imageId, size):
        return '/deepzoom/get/thumbnail/%s.png?size=%d' % (imageId, size)

    @staticmethod
    def buildImageThumbnailUrl(apiUrl, imageId, lastUpdate, height=128, width=128):
        """
        Build the URL of the thumbnail proxy served by this plugin. The last update
        time is part of the URL so that browsers can cache thumbnails for a long time.
        """
        query = urllib.parse.urlencode({
            'lastUpdate': lastUpdate if lastUpdate is not None else '',
            'height': height,
            'width': width
        })
        return '%s/omero/thumbnail/%s?%s' % (apiUrl.rstrip('/'), imageId, query)

    @staticmethod
    def getElementIdFromUrl(url, elementName=None):
        """
        Extract the numeric ID of an element from a path.

        :param url: The path, e.g. ``/get/dataset/51?images=true``.
        :param elementName: The element kind preceding the ID (e.g. ``dataset``).
            When omitted, the ID of any ``/get/<kind>/<id>`` path is returned.
        :returns: The ID as an int, or None if the path holds no such element.
        """
        if elementName is None:
            match = _ANY_ELEMENT_RE.search(url or '')
        else:
            match = re.search(r'%s/(\d+)' % re.escape(elementName), url or '')
        if match:
            return int(match.group(1))
        return None

    @staticmethod
    def getQueryFromUrl(url):
        query = urllib.parse.urlparse(url or '').query
        values = urllib.parse.parse_qs(query).get('query')
        return values[0] if values else None


class OmeroUrls:
    """
    The URLs used by the listing and the navigation bar. The thumbnail URLs point
    to the proxy endpoint under ``apiUrl``.
    """

    def __init__(self, apiUrl=''):
        self.apiUrl = apiUrl

    def getRootUrl(self):
        return '/'

    def getProjectsUrl(self):
        return PathUtils.buildProjectListUrl()

    def getAnnotationsUrl(self):
        return PathUtils.buildAnnotationListUrl()

    def getAnnotationsQueryUrl(self, query):
        return PathUtils.buildFindAnnotationsUrl(query)

    def getTagsetUrl(self, tagsetId):
        return '/get/tagset/%s' % tagsetId

    def getTagUrl(self, tagId):
        return '/get/tag/%s' % tagId

    def getProjectUrl(self, projectId):
        return PathUtils.buildProjectDetailUrl(projectId)

    def getDatasetUrl(self, datasetId):
        return '/get/dataset/%s' % datasetId

    def getImageUrl(self, imageId):
        return '/get/image/%s' % imageId

    def getImageThumbnailUrl(self, imageId, lastUpdate, height=128, width=128):
        return PathUtils.buildImageThumbnailUrl(self.apiUrl, imageId, lastUpdate, height, width)

    def getElementIdFromUrl(self, url, elementName=None):
        return PathUtils.getElementIdFromUrl(url, elementName)

    isRootUrl = staticmethod(PathUtils.isRootPath)
    isProjectsUrl = staticmethod(PathUtils.isProjectsRoot)
    isAnnotationsUrl = staticmethod(PathUtils.isAnnotationsRoot)
    isAnnotationsQueryUrl = staticmethod(PathUtils.isAnnotationsQuery)
    isTagsetUrl = staticmethod(PathUtils.isTagset)
    isTagUrl = staticmethod(PathUtils.isTag)
    isProjectUrl = staticmethod(PathUtils.isProject)
    isDatasetUrl = staticmethod(PathUtils.isDataset)
    isImageUrl = staticmethod(PathUtils.isImage)
