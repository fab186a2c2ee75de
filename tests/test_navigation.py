import pytest

from girder_omero.constants import SessionKey
from girder_omero.navigation import NavigationState, buildNavigationBar, formatElementName

TAGSET = {'id': 1, 'value': 'Organs', 'tags': [{'id': 2}]}
TAG = {'id': 2, 'value': 'Lung', 'images': []}
PROJECT = {'id': 5, 'name': 'Biopsies', 'datasets': [{'id': 7}]}
DATASET = {'id': 7, 'name': 'Batch 1', 'images': []}


@pytest.fixture
def state(session):
    return NavigationState(session)


def names(bar):
    return [crumb['name'] for crumb in bar]


def testFormatElementName():
    assert formatElementName('Project', 'Biopsies', 5) == 'Project: Biopsies [id.5]'


def testRoot(urls, state):
    assert buildNavigationBar(urls, state, '/') == [{'name': '/', 'path': '/'}]


def testTagsetThenTag(urls, state):
    bar = buildNavigationBar(urls, state, '/get/annotations')
    assert bar == [{'name': '/', 'path': '/'}, {'name': 'Tags', 'path': '/get/annotations'}]

    bar = buildNavigationBar(urls, state, '/get/tagset/1', TAGSET)
    assert names(bar) == ['/', 'Tags', 'TagSet: Organs [id.1]']
    assert bar[2]['path'] == '/get/tagset/1'
    assert state.tagset == {'id': 1, 'value': 'Organs'}

    bar = buildNavigationBar(urls, state, '/get/tag/2', TAG)
    assert names(bar) == ['/', 'Tags', 'TagSet: Organs [id.1]', 'Tag: Lung [id.2]']
    assert bar[3]['path'] == '/get/tag/2'


def testTagWithoutTagset(urls, state):
    bar = buildNavigationBar(urls, state, '/get/tag/2', TAG)
    assert names(bar) == ['/', 'Tags', 'Tag: Lung [id.2]']


def testProjectThenDataset(urls, state):
    bar = buildNavigationBar(urls, state, '/get/projects')
    assert names(bar) == ['/', 'Projects']

    bar = buildNavigationBar(urls, state, '/get/project/5', PROJECT)
    assert names(bar) == ['/', 'Projects', 'Project: Biopsies [id.5]']
    assert state.project == {'id': 5, 'name': 'Biopsies'}

    bar = buildNavigationBar(urls, state, '/get/dataset/7', DATASET)
    assert bar == [
        {'name': '/', 'path': '/'},
        {'name': 'Projects', 'path': '/get/projects'},
        {'name': 'Project: Biopsies [id.5]', 'path': '/get/project/5'},
        {'name': 'Dataset: Batch 1 [id.7]', 'path': '/get/dataset/7'},
    ]
    assert state.dataset == {'id': 7, 'name': 'Batch 1'}


def testDatasetWithoutProject(urls, state):
    bar = buildNavigationBar(urls, state, '/get/dataset/7', DATASET)
    assert names(bar) == ['/', 'Projects', 'Dataset: Batch 1 [id.7]']


def testNewNavigationClearsState(urls, state, session):
    buildNavigationBar(urls, state, '/get/project/5', PROJECT)
    buildNavigationBar(urls, state, '/find/annotations', annotationsQuery='lung')
    assert session.get(SessionKey.PROJECT) is not None

    buildNavigationBar(urls, state, '/get/projects')
    assert state.project is None
    assert state.annotationsQuery is None

    bar = buildNavigationBar(urls, state, '/get/dataset/7', DATASET)
    assert names(bar) == ['/', 'Projects', 'Dataset: Batch 1 [id.7]']


def testAnnotationsQuery(urls, state):
    bar = buildNavigationBar(urls, state, '/find/annotations', annotationsQuery='lung')
    assert bar == [
        {'name': '/', 'path': '/'},
        {'name': 'Query: lung', 'path': '/find/annotations?query=lung'},
    ]
    assert state.annotationsQuery == 'lung'

    # The query is kept while browsing its results, in place of the Tags folder
    bar = buildNavigationBar(urls, state, '/get/tagset/1', TAGSET)
    assert names(bar) == ['/', 'Query: lung', 'TagSet: Organs [id.1]']
    bar = buildNavigationBar(urls, state, '/get/tag/2', TAG)
    assert names(bar) == ['/', 'Query: lung', 'TagSet: Organs [id.1]', 'Tag: Lung [id.2]']

    bar = buildNavigationBar(urls, state, '/get/annotations')
    assert names(bar) == ['/', 'Tags']
