import json
import logging
import time

import requests

from girder.exceptions import GirderException, RestException

from .constants import TOKEN_EXPIRY_MARGIN
from .session import tokenCache

logger = logging.getLogger(__name__)


class ConfidentialOAuthClient:
    """
    An OAuth2 confidential client authenticating with the client credentials
    grant. The access token is shared by every request sent with the same client
    ID to the same server, and it is transparently renewed when it expires or
    when the server rejects it.

    :param serverUrl: The base URL of the OAuth2 server.
    :type serverUrl: str
    :param clientId: The client ID.
    :type clientId: str
    :param clientSecret: The client secret.
    :type clientSecret: str
    :param scope: The requested scope.
    :type scope: str
    :param timeout: Timeout of each request, in seconds.
    :type timeout: int or None
    :param tokenStore: The dogpile.cache region storing the token.
    """

    def __init__(self, serverUrl, clientId, clientSecret, scope='read', timeout=None,
                 tokenStore=None):
        self.serverUrl = (serverUrl or '').rstrip('/')
        self.clientId = clientId
        self.clientSecret = clientSecret
        self.scope = scope
        self.timeout = timeout
        self.tokenStore = tokenStore if tokenStore is not None else tokenCache

    def authUrl(self):
        return '%s/o/authorize/' % self.serverUrl

    def tokenUrl(self):
        return '%s/o/token/' % self.serverUrl

    @property
    def _tokenKey(self):
        return 'omero.token.%s.%s' % (self.serverUrl, self.clientId)

    def getStoredToken(self):
        token = self.tokenStore.get(self._tokenKey)
        return token if isinstance(token, dict) else None

    def storeToken(self, token):
        if token is None:
            self.tokenStore.delete(self._tokenKey)
        else:
            self.tokenStore.set(self._tokenKey, token)

    def logOut(self):
        self.storeToken(None)

    def isLoggedIn(self):
        token = self.getStoredToken()
        if token is None:
            return False
        if token.get('expires') is not None and time.time() >= token['expires']:
            self.logOut()
            return False
        return bool(token.get('token'))

    def upgradeToken(self, refresh=False):
        """
        Retrieve a new access token if none is stored or if ``refresh`` is set.

        :returns: True once a token is available.
        """
        if self.getStoredToken() is not None and not refresh:
            return True

        self.storeToken(None)
        if not self.serverUrl:
            raise GirderException('The OMERO server is not configured.')

        logger.debug('Requesting a new OMERO access token from %s', self.tokenUrl())
        response = self._getJson(method='POST', url=self.tokenUrl(), data={
            'client_id': self.clientId,
            'client_secret': self.clientSecret,
            'grant_type': 'client_credentials',
            'scope': self.scope
        })
        if not isinstance(response, dict) or not response.get('access_token'):
            raise RestException('Authentication error: no access token from OMERO.', code=502)

        expiresIn = response.get('expires_in')
        self.storeToken({
            'token': response['access_token'],
            'tokenType': response.get('token_type', 'Bearer'),
            'expires': (
                time.time() + int(expiresIn) - TOKEN_EXPIRY_MARGIN
                if expiresIn is not None else None)
        })
        return True

    def refreshAccessToken(self):
        return self.upgradeToken(refresh=True)

    def _authHeaders(self):
        token = self.getStoredToken()
        return {'Authorization': 'Bearer %s' % token['token']}

    def request(self, method, url, headers=None, **kwargs):
        """
        Send an authenticated request. A 401 answer is retried once with a new token.

        :returns: The ``requests`` response, whatever its status code.
        """
        if not self.isLoggedIn():
            self.upgradeToken()

        kwargs.setdefault('timeout', self.timeout)
        allHeaders = dict(headers or {})
        allHeaders.update(self._authHeaders())
        resp = self._send(method=method, url=url, headers=allHeaders, **kwargs)

        if resp.status_code == 401:
            logger.info('OMERO rejected the access token, refreshing it')
            resp.close()
            self.refreshAccessToken()
            allHeaders.update(self._authHeaders())
            resp = self._send(method=method, url=url, headers=allHeaders, **kwargs)
        return resp

    def getJson(self, url, method='GET', **kwargs):
        resp = self.request(method, url, **kwargs)
        return self._decodeJson(resp)

    def _getJson(self, **kwargs):
        """
        Make an unauthenticated HTTP request using the specified kwargs, then
        parse it as JSON and return the value.
        """
        kwargs.setdefault('timeout', self.timeout)
        return self._decodeJson(self._send(**kwargs))

    @staticmethod
    def _send(**kwargs):
        try:
            return requests.request(**kwargs)
        except requests.RequestException as e:
            raise RestException('Could not reach OMERO at %s: %s' % (kwargs['url'], e), code=502)

    @staticmethod
    def raiseForStatus(resp):
        try:
            resp.raise_for_status()
        except requests.HTTPError:
            content = resp.content
            if isinstance(content, bytes):
                content = content.decode('utf8', 'replace')
            raise RestException(
                'Got %s code from OMERO, response="%s".' % (
                    resp.status_code, content
                ), code=502)

    @classmethod
    def _decodeJson(cls, resp):
        cls.raiseForStatus(resp)

        content = resp.content
        if isinstance(content, bytes):
            content = content.decode('utf8', 'replace')

        try:
            return json.loads(content)
        except ValueError:
            raise RestException('Non-JSON response: %s' % content, code=502)
