from werkzeug.datastructures import Headers

from ghproxy.messages import OutboundRequest

HOP_BY_HOP_HEADERS = {
    'connection', 'keep-alive', 'proxy-authenticate', 'proxy-authorization',
    'proxy-connection', 'te', 'trailer', 'transfer-encoding', 'upgrade',
}

# Describe the client and the proxy's own network position
CLIENT_IP_HEADERS = {
    'x-forwarded-for', 'x-forwarded-host', 'x-forwarded-proto', 'x-forwarded-port',
    'forwarded', 'x-real-ip', 'true-client-ip', 'cf-connecting-ip',
    'cf-ipcountry', 'cf-ray', 'cf-request-id', 'cf-visitor', 'cdn-loop',
}

CONDITIONAL_HEADERS = {'if-modified-since', 'if-none-match'}

EXCLUDED_REQUEST_HEADERS = HOP_BY_HOP_HEADERS | CLIENT_IP_HEADERS | {
    'host', 'content-length', 'cookie',
}

EXCLUDED_RESPONSE_HEADERS = HOP_BY_HOP_HEADERS | {
    'set-cookie', 'content-security-policy', 'content-security-policy-report-only',
    'clear-site-data', 'strict-transport-security', 'content-encoding',
}

CORS_HEADERS = {
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Expose-Headers': '*',
}

PREFLIGHT_HEADERS = {
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Methods': 'GET,POST,PUT,PATCH,HEAD,DELETE,OPTIONS',
    'Access-Control-Max-Age': '1728000',
}


def build_outbound_request(inbound, target, config) -> OutboundRequest:
    excluded = EXCLUDED_REQUEST_HEADERS
    if config.strip_conditional:
        excluded = excluded | CONDITIONAL_HEADERS
    body = inbound.body or None
    if body is None:
        excluded = excluded | {'content-type'}

    headers = {}
    for key, value in inbound.headers.items():
        if key.lower() in excluded or key.lower() in ('referer', 'accept-encoding'):
            continue
        # requests takes a flat mapping; repeated headers are folded
        headers[key] = f'{headers[key]}, {value}' if key in headers else value

    headers['Host'] = target.netloc
    headers['Referer'] = f'{target.origin}/'
    headers['Accept-Encoding'] = 'identity'
    return OutboundRequest(inbound.method, target, headers, body)


def sanitize_response_headers(headers, keep_length=True) -> Headers:
    """Copy of upstream ``headers`` that is safe to send to the client."""
    encoded = 'content-encoding' in {k.lower() for k in headers.keys()}
    sanitized = Headers()
    for key, value in headers.items():
        name = key.lower()
        if name in EXCLUDED_RESPONSE_HEADERS:
            continue
        # the client receives decoded bytes, so an encoded length no longer applies
        if name == 'content-length' and (encoded or not keep_length):
            continue
        sanitized.add(key, value)
    for key, value in CORS_HEADERS.items():
        sanitized.set(key, value)
    return sanitized
