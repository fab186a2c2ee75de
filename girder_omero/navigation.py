import logging

from .constants import Label, SessionKey

logger = logging.getLogger(__name__)


class NavigationState:
    """
    The drill-down position of a user: the last visited tagset, project and
    dataset, and the active annotation query. Values are kept in a
    ``SessionCache`` as small dicts holding only what the navigation bar shows.
    """

    def __init__(self, session):
        self.session = session

    @property
    def tagset(self):
        return self.session.get(SessionKey.TAGSET)

    @tagset.setter
    def tagset(self, obj):
        self.session.set(SessionKey.TAGSET, _summary(obj, 'value'))

    @property
    def project(self):
        return self.session.get(SessionKey.PROJECT)

    @project.setter
    def project(self, obj):
        self.session.set(SessionKey.PROJECT, _summary(obj, 'name'))

    @property
    def dataset(self):
        return self.session.get(SessionKey.DATASET)

    @dataset.setter
    def dataset(self, obj):
        self.session.set(SessionKey.DATASET, _summary(obj, 'name'))

    @property
    def annotationsQuery(self):
        return self.session.get(SessionKey.ANNOTATION_QUERY)

    @annotationsQuery.setter
    def annotationsQuery(self, query):
        self.session.set(SessionKey.ANNOTATION_QUERY, query)

    def clear(self):
        self.session.deleteMany((
            SessionKey.ANNOTATION_QUERY,
            SessionKey.TAGSET,
            SessionKey.PROJECT,
            SessionKey.DATASET
        ))


def _summary(obj, labelField):
    return {'id': obj.get('id'), labelField: obj.get(labelField)}


def formatElementName(label, name, elementId):
    return '%s: %s [id.%s]' % (label, name, elementId)


def buildNavigationBar(urls, state, path, objInfo=None, annotationsQuery=None):
    """
    Build the navigation bar (breadcrumb) of a path.

    :param urls: The ``OmeroUrls`` used to build the element paths.
    :param state: The ``NavigationState`` of the session; it is updated with the
        tagset, project or dataset being displayed.
    :param path: The path being listed.
    :param objInfo: The OMERO object described by ``path``, when it's a tagset,
        tag, project or dataset.
    :param annotationsQuery: The text of a new annotation search. When not given,
        the query of the previous search is kept until a new navigation starts.
    :returns: A list of dicts with the keys 'name' and 'path'.
    """
    logger.debug('Building navigation bar of %s', path)
    result = []

    if urls.isRootUrl(path) or urls.isProjectsUrl(path) or urls.isAnnotationsUrl(path):
        # A new navigation starts
        state.clear()
        annotationsQuery = None
    elif annotationsQuery:
        state.annotationsQuery = annotationsQuery
    else:
        annotationsQuery = state.annotationsQuery

    result.append({'name': '/', 'path': urls.getRootUrl()})

    if annotationsQuery:
        result.append({
            'name': '%s: %s' % (Label.QUERY, annotationsQuery),
            'path': urls.getAnnotationsQueryUrl(annotationsQuery)
        })

    tagsCrumb = {'name': Label.TAGS, 'path': urls.getAnnotationsUrl()}
    projectsCrumb = {'name': Label.PROJECTS, 'path': urls.getProjectsUrl()}

    if urls.isAnnotationsUrl(path):
        result.append(tagsCrumb)

    elif urls.isTagsetUrl(path):
        if not annotationsQuery:
            result.append(tagsCrumb)
        result.append({
            'name': formatElementName(Label.TAGSET, objInfo['value'], objInfo['id']),
            'path': urls.getTagsetUrl(objInfo['id'])
        })
        state.tagset = objInfo

    elif urls.isTagUrl(path):
        if not annotationsQuery:
            result.append(tagsCrumb)
        tagset = state.tagset
        if tagset:
            result.append({
                'name': formatElementName(Label.TAGSET, tagset['value'], tagset['id']),
                'path': urls.getTagsetUrl(tagset['id'])
            })
        result.append({
            'name': formatElementName(Label.TAG, objInfo['value'], objInfo['id']),
            'path': path
        })

    elif urls.isProjectsUrl(path):
        result.append(projectsCrumb)

    elif urls.isProjectUrl(path):
        state.project = objInfo
        result.append(projectsCrumb)
        result.append({
            'name': formatElementName(Label.PROJECT, objInfo['name'], objInfo['id']),
            'path': urls.getProjectUrl(objInfo['id'])
        })

    elif urls.isDatasetUrl(path):
        state.dataset = objInfo
        result.append(projectsCrumb)
        project = state.project
        if project:
            result.append({
                'name': formatElementName(Label.PROJECT, project['name'], project['id']),
                'path': urls.getProjectUrl(project['id'])
            })
        result.append({
            'name': formatElementName(Label.DATASET, objInfo['name'], objInfo['id']),
            'path': urls.getDatasetUrl(objInfo['id'])
        })

    return result
