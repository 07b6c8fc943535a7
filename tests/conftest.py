import pytest
import requests

from restmap import Configuration
from restmap.mock import MockSession
from restmap_example.entity import example_entity_mapping, example_repository


BASE_URL = "http://api.test"


class StubHttp(requests.Session):
    """requests session answering every request with a fixed JSON body."""

    def __init__(self, body=b'{"results": [{"uniqueValue": "u1"}]}', status=200):
        super().__init__()
        self.body = body
        self.status = status
        self.sent = []

    def send(self, request, **kwargs):
        self.sent.append(request)
        response = requests.Response()
        response.status_code = self.status
        response._content = self.body
        response.request = request
        response.url = request.url
        return response


@pytest.fixture
def configuration():
    return Configuration(BASE_URL, timeout=5.0)


@pytest.fixture
def mock_session():
    return MockSession()


@pytest.fixture
def manual_session():
    """Mock session whose tasks only complete when the test says so."""
    return MockSession(auto_complete=False)


@pytest.fixture
def repository(tmp_path):
    repository = example_repository(str(tmp_path / "restmap.db"))
    yield repository
    repository.close()


@pytest.fixture
def mapping(repository):
    return example_entity_mapping(repository)
