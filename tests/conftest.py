import pytest
from dogpile.cache import make_region

from girder_omero.client import OmeSeadragonImageRepository
from girder_omero.paths import OmeroUrls
from girder_omero.session import SessionCache

from .mocks import API_URL, OMERO_URL


@pytest.fixture
def tokenRegion():
    return make_region().configure('dogpile.cache.memory')


@pytest.fixture
def session():
    return SessionCache('test_session', region=make_region().configure('dogpile.cache.memory'))


@pytest.fixture
def repository(tokenRegion):
    return OmeSeadragonImageRepository(
        OMERO_URL, 'test_client_id', 'test_client_secret', tokenStore=tokenRegion)


@pytest.fixture
def urls():
    return OmeroUrls(API_URL)
