import collections


class ApiVersion:
    OME_SEADRAGON = 'OmeSeadragonImageRepository'
    OME_SEADRAGON_GATEWAY = 'OmeSeadragonGatewayImageRepository'


# Supported API versions and their display names; the first one is the default
API_VERSIONS = collections.OrderedDict([
    (ApiVersion.OME_SEADRAGON, 'OmeSeadragon API'),
    (ApiVersion.OME_SEADRAGON_GATEWAY, 'OmeSeadragon Gateway API'),
])


class ItemType:
    PROJECT_ROOT = 'ProjectRoot'
    TAG_ROOT = 'TagRoot'
    TAGSET = 'TagSet'
    TAG = 'Tag'
    PROJECT = 'Project'
    DATASET = 'Dataset'
    IMAGE = 'Image'


class SessionKey:
    TAGSET = 'omero_tagset'
    PROJECT = 'omero_project'
    DATASET = 'omero_dataset'
    ANNOTATION_QUERY = 'omero_annotation_query'
    LAST_QUERY = 'omero_last_query_key'


# Labels of the navigation bar and of the virtual root folders
class Label:
    PROJECTS = 'Projects'
    PROJECT = 'Project'
    DATASET = 'Dataset'
    TAGS = 'Tags'
    TAGSET = 'TagSet'
    TAG = 'Tag'
    QUERY = 'Query'


PROJECTS_ROOT_ITEM = {
    'id': '0',
    'name': 'projects',
    'type': 'projects',
    'path': '/projects'
}

TAGS_ROOT_ITEM = {
    'id': '0',
    'name': 'tags',
    'type': 'tags',
    'path': '/tags'
}

REFERENCE_PATH_PREFIX = '/omero-image-repository/'
REFERENCE_META_KEY = 'omero'

THUMBNAIL_SIZE = 95
ICON_SIZE = 64
IMAGES_PER_PAGE = 12
IMPORT_IMAGE_SIZE = 2048

STATIC_ROOT = '/static/built/plugins/omero'

# Seconds before a cached session value or response expires
SESSION_TTL = 24 * 60 * 60
# Most session values and responses kept in memory at once
SESSION_CACHE_SIZE = 10000
# Browsers may keep a thumbnail for 30 days since its URL changes with the image
THUMBNAIL_LIFETIME = 30 * 24 * 60 * 60
# An imported reference is synchronised at most once a day
SYNC_INTERVAL = 24 * 60 * 60
# Seconds subtracted from the token lifetime reported by the server
TOKEN_EXPIRY_MARGIN = 10

DOWNLOAD_CHUNK_SIZE = 65536

# Status of the source of an imported image
FILE_STATUS_OK = 0
FILE_STATUS_MISSING = 666
