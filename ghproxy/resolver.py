from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote, urlsplit

from ghproxy.config import CDN_MIRROR_HOST, RAW_HOST
from ghproxy.errors import ResolutionError

_HOSTNAME = re.compile(r'^(?=.{1,253}$)[a-z0-9_]([a-z0-9_-]*[a-z0-9_])?(\.[a-z0-9_]([a-z0-9_-]*[a-z0-9_])?)*$')
_COLLAPSED_SCHEME = re.compile(r'^(https?):/(?!/)', re.IGNORECASE)
_BLOB_PATH = re.compile(r'^/[^/]+/[^/]+/blob/')
_RAW_PATH = re.compile(r'^/(?P<owner>[^/]+)/(?P<repo>[^/]+)/(?P<branch>[^/]+)/(?P<path>.+)$')

# Characters kept literal when re-encoding a path. Paths Werkzeug has already
# decoded get a literal '%' escaped again.
_PATH_SAFE = "/:@!$&'()*+,;=~%"
_DECODED_PATH_SAFE = _PATH_SAFE.replace('%', '')


@dataclass(frozen=True)
class ResolvedTarget:
    scheme: str
    host: str
    path: str = '/'
    query: str = ''
    port: Optional[int] = None

    @property
    def netloc(self):
        return self.host if self.port is None else f'{self.host}:{self.port}'

    @property
    def url(self):
        url = f'{self.scheme}://{self.netloc}{self.path}'
        return f'{url}?{self.query}' if self.query else url

    @property
    def origin(self):
        return f'{self.scheme}://{self.netloc}'


def parse_target(url, decoded=False) -> ResolvedTarget:
    """Parse an absolute URL into a ``ResolvedTarget`` or raise ``ResolutionError``."""
    try:
        parts = urlsplit(url)
        port = parts.port
    except ValueError:
        raise ResolutionError(f"Invalid URL: {url}") from None
    scheme = parts.scheme.lower()
    if scheme not in ('http', 'https'):
        raise ResolutionError(f"Unsupported scheme: {url}")
    host = (parts.hostname or '').rstrip('.')
    if not _HOSTNAME.match(host):
        raise ResolutionError(f"Invalid host in URL: {url}")
    if port == {'http': 80, 'https': 443}[scheme]:
        port = None
    path = quote(parts.path, safe=_DECODED_PATH_SAFE if decoded else _PATH_SAFE) or '/'
    return ResolvedTarget(scheme, host, path, parts.query, port)


class UrlResolver:
    """Maps an inbound proxy path onto the upstream URL it stands for."""

    def __init__(self, config):
        self.routes = config.routes
        self.default_host = config.default_host
        self.blob_to_raw = config.blob_to_raw

    def resolve(self, path, query='') -> ResolvedTarget:
        path = path[1:] if path.startswith('/') else path
        if not path:
            raise ResolutionError("Empty target path")

        path = _COLLAPSED_SCHEME.sub(r'\1://', path)
        if path.lower().startswith(('http://', 'https://')):
            # the query may already be part of a percent-encoded embedded URL
            url = path if '?' in path or not query else f'{path}?{query}'
            return self._apply_policy(parse_target(url, decoded=True))

        head, _, rest = path.partition('/')
        if '.' in head:
            return self._apply_policy(parse_target(_join('https://' + head, rest, query), decoded=True))

        if head in self.routes:
            if not rest:
                raise ResolutionError(f"Empty target path after /{head}/")
            host = self.routes[head]
            if host is None:
                host, _, rest = rest.partition('/')
            return self._apply_policy(parse_target(_join('https://' + host, rest, query), decoded=True))

        return self._apply_policy(parse_target(_join('https://' + self.default_host, path, query), decoded=True))

    def _apply_policy(self, target):
        if self.blob_to_raw and target.host == self.default_host and _BLOB_PATH.match(target.path):
            path = target.path.replace('/blob/', '/raw/', 1)
            return ResolvedTarget(target.scheme, target.host, path, target.query, target.port)
        return target


def _join(origin, path, query):
    url = f'{origin}/{path}'
    return f'{url}?{query}' if query else url


def proxy_path(target, prefix='/'):
    """Encode ``target`` as a path on the proxy that resolves back to it."""
    if not prefix.endswith('/'):
        prefix += '/'
    if target.scheme == 'https':
        path = f'{prefix}{target.netloc}{target.path}'
    else:
        path = f'{prefix}{target.url.split("?", 1)[0]}'
    return f'{path}?{target.query}' if target.query else path


def is_raw_content(target):
    return target.host == RAW_HOST and _RAW_PATH.match(target.path) is not None


def cdn_mirror_url(target):
    """jsDelivr URL serving the same file as a raw.githubusercontent.com target."""
    m = _RAW_PATH.match(target.path)
    if target.host != RAW_HOST or m is None:
        raise ResolutionError(f"Not a raw content URL: {target.url}")
    return 'https://{}/gh/{}/{}@{}/{}'.format(
        CDN_MIRROR_HOST, m.group('owner'), m.group('repo'), m.group('branch'), m.group('path'))
