TEXT_TYPES = ('text/html', 'text/css', 'javascript', 'application/json')


class BodyRewriter:
    """Literal host substitution for textual response bodies.

    Rewriting buffers the whole body, so it is limited to the content types
    in ``TEXT_TYPES``; everything else is streamed untouched.
    """

    def __init__(self, mapping):
        self.mapping = [(k.encode(), v.encode()) for k, v in mapping]

    @classmethod
    def for_proxy(cls, proxy_host, prefix='/'):
        base = f'//{proxy_host}{prefix.rstrip("/")}'
        return cls([
            ('//raw.githubusercontent.com', f'{base}/raw'),
            ('//gist.githubusercontent.com', f'{base}/gist'),
            ('//avatars.githubusercontent.com', f'{base}/avatar'),
            ('//github.io', f'{base}/io/github.io'),
            ('//github.com', base),
        ])

    @staticmethod
    def applies_to(content_type):
        content_type = (content_type or '').lower()
        return any(t in content_type for t in TEXT_TYPES)

    def rewrite(self, body: bytes) -> bytes:
        for old, new in self.mapping:
            body = body.replace(old, new)
        return body
