import pytest
from requests.structures import CaseInsensitiveDict

from ghproxy.allowlist import AllowlistGuard
from ghproxy.app import create_app
from ghproxy.config import ProxyConfig


class FakeResponse:
    """Stand-in for a streamed ``requests.Response``."""

    def __init__(self, status=200, headers=None, body=b''):
        self.status_code = status
        self.headers = CaseInsensitiveDict(headers or {})
        self.body = body
        self.closed = False

    @property
    def content(self):
        return self.body

    def iter_content(self, chunk_size=1):
        for i in range(0, len(self.body), chunk_size):
            yield self.body[i:i + chunk_size]

    def close(self):
        self.closed = True


class FakeSession:
    """Upstream double keyed by URL.

    A route value is a ``FakeResponse``, an exception instance to raise, a
    callable taking the call kwargs, or a list consumed one item per call.
    """

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.calls = []
        self.responses = []

    def request(self, **kwargs):
        self.calls.append(kwargs)
        result = self.routes.get(kwargs['url'], None)
        if isinstance(result, list):
            result = result.pop(0) if len(result) > 1 else result[0]
        if callable(result) and not isinstance(result, FakeResponse):
            result = result(kwargs)
        if result is None:
            result = FakeResponse(404, {'Content-Type': 'text/plain'}, b'Not Found')
        if isinstance(result, Exception):
            raise result
        self.responses.append(result)
        return result

    @property
    def urls(self):
        return [c['url'] for c in self.calls]


@pytest.fixture
def config():
    return ProxyConfig(retry_delay=0)


@pytest.fixture
def session():
    return FakeSession()


@pytest.fixture
def guard(config):
    return AllowlistGuard.from_config(config)


@pytest.fixture
def app(config, session):
    app = create_app(config, session=session)
    app.config['TESTING'] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()
