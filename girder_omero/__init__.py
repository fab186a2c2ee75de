import logging

from girder import events
from girder.plugin import GirderPlugin

from . import rest
from .session import tokenCache
from .settings import CONNECTION_SETTINGS

logger = logging.getLogger(__name__)


def _connectionSettingSaved(event):
    """
    The cached OAuth tokens are bound to the server and credentials, so they
    are dropped whenever one of these changes.
    """
    if event.info.get('key') in CONNECTION_SETTINGS:
        logger.info('OMERO connection setting %s changed, dropping tokens', event.info['key'])
        tokenCache.invalidate()


class OmeroPlugin(GirderPlugin):
    DISPLAY_NAME = 'OMERO Repository'

    def load(self, info):
        events.bind('model.setting.save.after', 'omero', _connectionSettingSaved)

        info['apiRoot'].omero = rest.Omero()
