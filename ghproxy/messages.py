from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict, Optional
from urllib.parse import quote

from werkzeug.datastructures import Headers

from ghproxy.resolver import ResolvedTarget

BODYLESS_METHODS = ('GET', 'HEAD')

# Raw query bytes are forwarded as sent; anything outside this set is escaped
_QUERY_SAFE = "/?:@!$&'()*+,;=~%"


@dataclass(frozen=True)
class ProxyRequest:
    method: str
    path: str
    query: str
    headers: Headers
    body: Optional[bytes] = None

    @classmethod
    def from_flask(cls, request, path=None):
        method = request.method.upper()
        body = None if method in BODYLESS_METHODS else request.get_data()
        return cls(
            method=method,
            path=request.path if path is None else path,
            query=quote(request.query_string, safe=_QUERY_SAFE),
            headers=Headers(request.headers),
            body=body,
        )


@dataclass(frozen=True)
class OutboundRequest:
    method: str
    target: ResolvedTarget
    headers: Dict[str, str]
    body: Optional[bytes] = None

    @property
    def url(self):
        return self.target.url

    def retarget(self, target, status) -> 'OutboundRequest':
        """Request to issue for a redirect with ``status`` pointing at ``target``."""
        method, body = self.method, self.body
        if (status == 303 and method != 'HEAD') or (status in (301, 302) and method == 'POST'):
            method, body = 'GET', None

        headers = {k: v for k, v in self.headers.items()
                   if body is not None or k.lower() != 'content-type'}
        if target.host != self.target.host:
            headers = {k: v for k, v in headers.items() if k.lower() != 'authorization'}
        _set(headers, 'Host', target.netloc)
        _set(headers, 'Referer', f'{target.origin}/')
        return replace(self, method=method, target=target, headers=headers, body=body)


@dataclass(frozen=True)
class UpstreamResponse:
    status: int
    headers: Headers
    target: ResolvedTarget
    raw: object

    @property
    def content_type(self):
        return self.headers.get('Content-Type', '')

    def close(self):
        self.raw.close()


def _set(headers, name, value):
    for key in [k for k in headers if k.lower() == name.lower()]:
        del headers[key]
    headers[name] = value
