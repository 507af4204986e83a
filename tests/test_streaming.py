from werkzeug.datastructures import Headers

from conftest import FakeResponse
from ghproxy.messages import UpstreamResponse
from ghproxy.resolver import parse_target
from ghproxy.rewriter import BodyRewriter
from ghproxy.streaming import finalize

TARGET = parse_target('https://github.com/acme/repo')


def upstream_for(raw):
    return UpstreamResponse(raw.status_code, Headers(list(raw.headers.items())), TARGET, raw)


def test_body_is_streamed_in_chunks():
    raw = FakeResponse(200, {'Content-Type': 'application/zip', 'Content-Length': '10'}, b'0123456789')
    response = finalize(upstream_for(raw), chunk_size=4)

    assert response.is_streamed
    assert list(response.response) == [b'0123', b'4567', b'89']
    assert response.headers['Content-Length'] == '10'
    assert response.headers['Access-Control-Allow-Origin'] == '*'


def test_closing_client_response_closes_upstream():
    raw = FakeResponse(200, {'Content-Type': 'application/zip'}, b'data')
    response = finalize(upstream_for(raw))
    assert not raw.closed
    response.close()
    assert raw.closed


def test_missing_content_type_defaults_to_binary():
    response = finalize(upstream_for(FakeResponse(200, {}, b'\x00')))
    assert response.headers['Content-Type'] == 'application/octet-stream'


def test_text_is_rewritten_and_length_recomputed():
    body = b'<a href="https://github.com/acme/repo">repo</a>'
    raw = FakeResponse(200, {'Content-Type': 'text/html', 'Content-Length': str(len(body))}, body)
    response = finalize(upstream_for(raw), BodyRewriter.for_proxy('proxy.example'))

    expected = b'<a href="https://proxy.example/acme/repo">repo</a>'
    assert response.get_data() == expected
    assert response.headers['Content-Length'] == str(len(expected))
    assert raw.closed


def test_binary_is_not_rewritten():
    body = b'PK\x03\x04 https://github.com/'
    raw = FakeResponse(200, {'Content-Type': 'application/zip'}, body)
    response = finalize(upstream_for(raw), BodyRewriter.for_proxy('proxy.example'))
    assert response.get_data() == body


def test_head_and_errors_are_not_rewritten():
    body = b'https://github.com/'
    head = FakeResponse(200, {'Content-Type': 'text/html'}, body)
    assert finalize(upstream_for(head), BodyRewriter.for_proxy('p'), method='HEAD').is_streamed
    error = FakeResponse(404, {'Content-Type': 'text/html'}, body)
    assert finalize(upstream_for(error), BodyRewriter.for_proxy('p')).get_data() == body
