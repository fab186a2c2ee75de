import cachetools
from dogpile.cache import make_region
from dogpile.cache.api import NO_VALUE

from .constants import SESSION_CACHE_SIZE, SESSION_TTL

# Holds OAuth tokens shared by every request to the same OMERO server. Unlike
# Girder's own regions this one is always configured, since the token must
# survive between requests.
tokenCache = make_region(name='girder_omero.token').configure(backend='dogpile.cache.memory')


def makeSessionRegion(maxsize=SESSION_CACHE_SIZE, ttl=SESSION_TTL):
    """
    Make a memory region whose entries are dropped once expired, and whose
    least recently used entries are dropped beyond ``maxsize``.
    """
    return make_region().configure(
        backend='dogpile.cache.memory', expiration_time=ttl,
        arguments={'cache_dict': cachetools.TTLCache(maxsize=maxsize, ttl=ttl)})


# Holds the per-session navigation state and the cached OMERO responses.
sessionCache = makeSessionRegion()


class SessionCache:
    """
    A view of a dogpile.cache region restricted to the keys of one session.

    :param sessionId: Identifies the session (e.g. the Girder token ID).
    :type sessionId: str
    :param region: The backing region, ``sessionCache`` by default.
    """

    def __init__(self, sessionId, region=None):
        self.sessionId = str(sessionId)
        self.region = region if region is not None else sessionCache

    def _key(self, key):
        return 'omero.%s.%s' % (self.sessionId, key)

    def get(self, key, default=None):
        value = self.region.get(self._key(key))
        if value is NO_VALUE:
            return default
        return value

    def set(self, key, value):
        self.region.set(self._key(key), value)

    def delete(self, key):
        self.region.delete(self._key(key))

    def deleteMany(self, keys):
        self.region.delete_multi([self._key(key) for key in keys])
