from flask import Response

from ghproxy.headers import sanitize_response_headers

DEFAULT_CONTENT_TYPE = 'application/octet-stream'


def finalize(upstream, rewriter=None, chunk_size=8192, method='GET') -> Response:
    """Turn an upstream response into the client response.

    The body is piped through chunk by chunk; only textual responses handed a
    ``rewriter`` are buffered. Closing the client response releases the
    upstream connection, which is what aborts the fetch on a client disconnect.
    """
    rewrite = (
        rewriter is not None
        and method != 'HEAD'
        and 200 <= upstream.status < 300
        and rewriter.applies_to(upstream.content_type)
    )

    if rewrite:
        try:
            body = rewriter.rewrite(upstream.raw.content)
        finally:
            upstream.close()
        headers = sanitize_response_headers(upstream.headers, keep_length=False)
        headers.set('Content-Length', str(len(body)))
    else:
        body = upstream.raw.iter_content(chunk_size=chunk_size)
        headers = sanitize_response_headers(upstream.headers)

    # Response would otherwise fill in its own text/html default
    headers.setdefault('Content-Type', DEFAULT_CONTENT_TYPE)
    response = Response(body, status=upstream.status, headers=headers)
    if not rewrite:
        response.call_on_close(upstream.close)
    return response
