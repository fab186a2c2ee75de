import re

from girder.exceptions import ValidationException
from girder.models.setting import Setting
from girder.utility import setting_utilities

from .constants import API_VERSIONS


class PluginSettings:
    API_VERSION = 'omero.api_version'
    SERVER = 'omero.server'
    WEBCLIENT = 'omero.webclient'
    CLIENT_ID = 'omero.client_id'
    CLIENT_SECRET = 'omero.client_secret'
    CACHE_LIMIT = 'omero.cache_limit'
    ITEM_BLACKLIST = 'omero.item_blacklist'
    ENABLE_PAGINATION = 'omero.enable_pagination'
    REQUEST_TIMEOUT = 'omero.request_timeout'


# Saving one of these settings invalidates the cached OAuth token
CONNECTION_SETTINGS = {
    PluginSettings.SERVER,
    PluginSettings.CLIENT_ID,
    PluginSettings.CLIENT_SECRET,
}


@setting_utilities.default(PluginSettings.API_VERSION)
def _defaultApiVersion():
    return next(iter(API_VERSIONS))


@setting_utilities.default({
    PluginSettings.SERVER,
    PluginSettings.WEBCLIENT,
    PluginSettings.CLIENT_ID,
    PluginSettings.CLIENT_SECRET,
})
def _defaultStrings():
    return ''


@setting_utilities.default(PluginSettings.CACHE_LIMIT)
def _defaultCacheLimit():
    return 0


@setting_utilities.default(PluginSettings.ITEM_BLACKLIST)
def _defaultItemBlacklist():
    return []


@setting_utilities.default(PluginSettings.ENABLE_PAGINATION)
def _defaultEnablePagination():
    return False


@setting_utilities.default(PluginSettings.REQUEST_TIMEOUT)
def _defaultRequestTimeout():
    return 60


@setting_utilities.validator(PluginSettings.API_VERSION)
def _validateApiVersion(doc):
    if doc['value'] not in API_VERSIONS:
        raise ValidationException(
            'API version must be one of %s.' % ', '.join(API_VERSIONS), 'value')


@setting_utilities.validator({
    PluginSettings.SERVER,
    PluginSettings.WEBCLIENT,
})
def _validateUrl(doc):
    if not isinstance(doc['value'], str):
        raise ValidationException('The setting is not a string', 'value')
    value = doc['value'].strip().rstrip('/')
    if value and not re.match(r'^https?://[^/]+', value):
        raise ValidationException('The setting must be an http or https URL.', 'value')
    doc['value'] = value


@setting_utilities.validator({
    PluginSettings.CLIENT_ID,
    PluginSettings.CLIENT_SECRET,
})
def _validateCredentials(doc):
    if not isinstance(doc['value'], str):
        raise ValidationException('The setting is not a string', 'value')
    doc['value'] = doc['value'].strip()


@setting_utilities.validator(PluginSettings.CACHE_LIMIT)
def _validateCacheLimit(doc):
    try:
        doc['value'] = int(doc['value'])
    except (TypeError, ValueError):
        raise ValidationException('Cache limit must be an integer.', 'value')
    if doc['value'] < 0:
        raise ValidationException('Cache limit must not be negative.', 'value')


@setting_utilities.validator(PluginSettings.ITEM_BLACKLIST)
def _validateItemBlacklist(doc):
    if not isinstance(doc['value'], (list, tuple)):
        raise ValidationException('The item blacklist must be a list.', 'value')
    for index, pattern in enumerate(doc['value']):
        if not isinstance(pattern, str):
            raise ValidationException('Pattern %d is not a string' % index, 'value')
        try:
            re.compile(pattern)
        except re.error as e:
            raise ValidationException(
                'Pattern %d is not a valid regular expression: %s' % (index, e), 'value')
    doc['value'] = list(doc['value'])


@setting_utilities.validator(PluginSettings.ENABLE_PAGINATION)
def _validateEnablePagination(doc):
    if not isinstance(doc['value'], bool):
        raise ValidationException('Enable pagination setting must be boolean.', 'value')


@setting_utilities.validator(PluginSettings.REQUEST_TIMEOUT)
def _validateRequestTimeout(doc):
    try:
        doc['value'] = int(doc['value'])
    except (TypeError, ValueError):
        raise ValidationException('Request timeout must be an integer.', 'value')
    if doc['value'] <= 0:
        raise ValidationException('Request timeout must be positive.', 'value')


def getWebclientUrl():
    """
    Return the OMERO.web base URL, falling back to the REST endpoint.
    """
    return Setting().get(PluginSettings.WEBCLIENT) or Setting().get(PluginSettings.SERVER)
