import logging
import math
import re
import urllib.parse

from .constants import (
    ICON_SIZE, IMAGES_PER_PAGE, ItemType, PROJECTS_ROOT_ITEM, SessionKey, STATIC_ROOT,
    TAGS_ROOT_ITEM, THUMBNAIL_SIZE, Label)
from .navigation import NavigationState, buildNavigationBar
from .paths import PathUtils

logger = logging.getLogger(__name__)


def fileIcon(iconName, iconSize=None):
    """
    Return the URL of a plugin icon.

    :param iconName: The icon name: 'folder', 'tagset' or 'tag'.
    :param iconSize: The size of the icon, at least 16.
    """
    iconSize = max(16, int(iconSize or 0))
    return '%s/pix/%s/%d.png' % (STATIC_ROOT, iconName, iconSize)


def annotationType(item):
    return ItemType.TAGSET if item.get('type') == 'tagset' else ItemType.TAG


class RepositoryBrowser:
    """
    Translate the OMERO resources into the listings of a file repository.

    :param repository: The OMERO repository client.
    :type repository: OmeSeadragonImageRepository
    :param urls: The ``OmeroUrls`` of the listing.
    :param session: The ``SessionCache`` of the current user.
    :param blacklist: Regular expressions of project and dataset names to hide.
    :param enablePagination: Whether dataset listings are split in pages.
    :param manageUrl: The URL of the OMERO web client.
    """

    def __init__(self, repository, urls, session, blacklist=(), enablePagination=False,
                 manageUrl=None):
        self.repository = repository
        self.urls = urls
        self.session = session
        self.state = NavigationState(session)
        self.blacklist = [re.compile(pattern) for pattern in blacklist or ()]
        self.enablePagination = enablePagination
        self.manageUrl = manageUrl

    def search(self, searchText, page=0):
        return self.getListing('', 1, searchText)

    def getListing(self, path='/', page=1, searchText=None):
        """
        List the content of a path of the repository.

        :param path: The path to list; the root when empty.
        :param page: The page to return when dataset listings are paginated.
        :param searchText: When given, list the annotations matching this text.
        :returns: The listing, as a dict.
        """
        urls = self.urls
        if not path:
            path = '/'

        listing = {
            'list': [],
            'manage': self.manageUrl,
            'dynload': True,
            'nologin': True,
            'search_query': searchText,
            'nosearch': False,
            'issearchresult': False,
            'pages': 1
        }

        if searchText is not None or urls.isAnnotationsQueryUrl(path):
            if searchText is not None:
                response = self.repository.findAnnotations(searchText)
                query = searchText
            else:
                response = self.processRequest(path)
                query = PathUtils.getQueryFromUrl(path)
            self._appendItems(listing, (
                (annotationType(item), item) for item in response or ()))
            listing['issearchresult'] = True
            listing['path'] = buildNavigationBar(
                urls, self.state, '/find/annotations', annotationsQuery=query)

        elif urls.isRootUrl(path):
            logger.debug('Listing the root')
            self._appendItems(listing, (
                (ItemType.PROJECT_ROOT, PROJECTS_ROOT_ITEM),
                (ItemType.TAG_ROOT, TAGS_ROOT_ITEM)))
            listing['path'] = buildNavigationBar(urls, self.state, path)

        elif urls.isProjectsUrl(path):
            logger.debug('Listing the projects')
            self._appendItems(listing, (
                (ItemType.PROJECT, item) for item in self.repository.getProjects() or ()))
            listing['path'] = buildNavigationBar(urls, self.state, path)

        elif urls.isAnnotationsUrl(path):
            logger.debug('Listing the tagsets and tags')
            self._appendItems(listing, (
                (annotationType(item), item) for item in self.repository.getAnnotations() or ()))
            listing['path'] = buildNavigationBar(urls, self.state, path)

        elif urls.isTagsetUrl(path):
            logger.debug('Listing the tags of %s', path)
            response = self.repository.getTagset(urls.getElementIdFromUrl(path, 'tagset'))
            self._appendItems(listing, (
                (ItemType.TAG, item) for item in response.get('tags') or ()))
            listing['path'] = buildNavigationBar(urls, self.state, path, response)

        elif urls.isTagUrl(path):
            logger.debug('Listing the images of %s', path)
            response = self.repository.getTag(urls.getElementIdFromUrl(path, 'tag'))
            self._appendItems(listing, (
                (ItemType.IMAGE, item) for item in response.get('images') or ()))
            listing['path'] = buildNavigationBar(urls, self.state, path, response)

        elif urls.isProjectUrl(path):
            logger.debug('Listing the datasets of %s', path)
            response = self.repository.getProject(urls.getElementIdFromUrl(path, 'project'))
            self._appendItems(listing, (
                (ItemType.DATASET, item) for item in response.get('datasets') or ()))
            listing['path'] = buildNavigationBar(urls, self.state, path, response)

        elif urls.isDatasetUrl(path):
            logger.debug('Listing the images of %s', path)
            response = self.repository.getDataset(urls.getElementIdFromUrl(path, 'dataset'))
            listing['path'] = buildNavigationBar(urls, self.state, path, response)
            images = response.get('images') or []
            if self.enablePagination:
                page = max(1, int(page or 1))
                listing['page'] = page
                listing['pages'] = max(1, int(math.ceil(len(images) / IMAGES_PER_PAGE)))
                images = images[(page - 1) * IMAGES_PER_PAGE:page * IMAGES_PER_PAGE]
            self._appendItems(listing, ((ItemType.IMAGE, item) for item in images))

        else:
            logger.warning('Unknown OMERO resource selected: %s', path)
            listing['path'] = buildNavigationBar(self.urls, self.state, path)

        return listing

    def _appendItems(self, listing, typedItems):
        for itemType, item in typedItems:
            obj = self.processListItem(itemType, item)
            if obj is not None:
                listing['list'].append(obj)

    def processRequest(self, path):
        """
        Fetch an API path through the session cache. Requesting the same path
        twice in a row bypasses the cache, so that users can refresh a listing.
        """
        key = 'request.%s' % urllib.parse.quote(path, safe='')

        if self.session.get(SessionKey.LAST_QUERY) == path:
            logger.debug('Cleaning cached response of %s', path)
            self.session.delete(key)
        self.session.set(SessionKey.LAST_QUERY, path)

        response = self.session.get(key)
        if response is None:
            logger.debug('Getting %s from the OMERO server', path)
            response = self.repository.processRequest(path)
            self.session.set(key, response)
        else:
            logger.debug('Getting %s from the cache', path)
        return response

    def isBlacklisted(self, name):
        return any(pattern.fullmatch(name or '') for pattern in self.blacklist)

    def processListItem(self, itemType, item):
        """
        Convert an OMERO object into a listing entry.

        :param itemType: One of the ``ItemType`` values.
        :param item: The OMERO object, as decoded from JSON.
        :returns: The entry, or None if the object is hidden by the blacklist.
        """
        if itemType in (ItemType.PROJECT, ItemType.DATASET) and self.isBlacklisted(
                item.get('name')):
            return None

        urls = self.urls
        obj = {
            'image_id': item.get('id'),
            'title': 'Undefined',
            'source': item.get('id'),
            'license': 'unknown',
            'children': []
        }

        if itemType == ItemType.PROJECT_ROOT:
            obj['title'] = Label.PROJECTS
            obj['path'] = urls.getProjectsUrl()
            obj['thumbnail'] = fileIcon('folder', ICON_SIZE)

        elif itemType == ItemType.TAG_ROOT:
            obj['title'] = Label.TAGS
            obj['path'] = urls.getAnnotationsUrl()
            obj['thumbnail'] = fileIcon('tagset', ICON_SIZE)

        elif itemType == ItemType.TAGSET:
            obj['title'] = '%s [id:%s]' % (item.get('value'), item['id'])
            obj['path'] = urls.getTagsetUrl(item['id'])
            obj['thumbnail'] = fileIcon('tagset', ICON_SIZE)

        elif itemType == ItemType.TAG:
            description = ' %s' % item['description'] if item.get('description') else ''
            obj['title'] = '%s%s [id:%s]' % (item.get('value'), description, item['id'])
            obj['path'] = urls.getTagUrl(item['id'])
            obj['thumbnail'] = fileIcon('tag', ICON_SIZE)

        elif itemType in (ItemType.PROJECT, ItemType.DATASET):
            obj['title'] = '%s [id:%s]' % (item.get('name'), item['id'])
            if itemType == ItemType.PROJECT:
                obj['path'] = urls.getProjectUrl(item['id'])
            else:
                obj['path'] = urls.getDatasetUrl(item['id'])
            obj['thumbnail'] = fileIcon('folder', ICON_SIZE)

        elif itemType == ItemType.IMAGE:
            # The highest resolution image of a series replaces the image itself
            source = item.get('high_resolution_image') or item['id']
            thumbnail = urls.getImageThumbnailUrl(
                item['id'], item.get('lastUpdate'), THUMBNAIL_SIZE, THUMBNAIL_SIZE)
            obj.update({
                'source': source,
                'title': '%s [id:%s]' % (item.get('name'), source),
                'author': item.get('author'),
                'path': urls.getImageUrl(item['id']),
                'thumbnail': thumbnail,
                'url': thumbnail,
                'date': item.get('importTime'),
                'datecreated': item.get('creationTime'),
                'datemodified': item.get('lastUpdate'),
                'children': None,
                'image_width': item.get('width'),
                'image_height': item.get('height'),
                'thumbnail_height': THUMBNAIL_SIZE,
                'thumbnail_width': THUMBNAIL_SIZE
            })

        else:
            raise ValueError('Unknown data type: %s' % itemType)

        obj['icon'] = obj['thumbnail']
        return obj
