import requests
from flask import Flask, Response, abort, redirect, request, send_from_directory

from ghproxy.allowlist import AllowlistGuard
from ghproxy.config import ProxyConfig
from ghproxy.errors import DisallowedTargetError, ProxyError
from ghproxy.forwarder import Forwarder
from ghproxy.headers import CORS_HEADERS, PREFLIGHT_HEADERS, build_outbound_request
from ghproxy.messages import ProxyRequest
from ghproxy.resolver import UrlResolver, cdn_mirror_url, is_raw_content, proxy_path
from ghproxy.rewriter import BodyRewriter
from ghproxy.streaming import finalize

PROXY_METHODS = ['GET', 'HEAD', 'POST', 'PUT', 'DELETE', 'PATCH', 'OPTIONS']


def create_app(config=None, session=None):
    config = config or ProxyConfig.from_env()

    app = Flask(__name__)
    # keep "//" in embedded URLs such as /https://github.com/...
    app.url_map.merge_slashes = False
    app.config['MAX_CONTENT_LENGTH'] = config.max_content_length
    app.config['PROXY'] = config

    resolver = UrlResolver(config)
    guard = AllowlistGuard.from_config(config)
    forwarder = Forwarder(guard, config, session=session or requests)

    def prefix():
        return request.script_root + '/'

    # CORS preflight is answered here and never forwarded
    @app.before_request
    def preflight():
        if request.method == 'OPTIONS' and 'Access-Control-Request-Headers' in request.headers:
            return Response(status=204, headers=PREFLIGHT_HEADERS)

    @app.route('/')
    def index():
        if 'q' in request.args:
            target = resolver.resolve(request.args['q'].strip())
            return redirect(proxy_path(target, prefix()), 301)
        return send_from_directory(app.static_folder, 'index.html')

    @app.route('/robots.txt')
    def robots():
        return Response("User-agent: *\r\nDisallow: /", mimetype='text/plain')

    @app.route('/favicon.ico')
    def favicon():
        return '', 204

    @app.route('/healthz')
    def health_check():
        return 'OK', 200

    @app.route('/<path:path>', methods=PROXY_METHODS)
    def proxy(path):
        inbound = ProxyRequest.from_flask(request, path)
        target = resolver.resolve(inbound.path, inbound.query)
        if not guard.is_allowed(target):
            if _looks_like_asset(path):
                abort(404)
            raise DisallowedTargetError(target.host)

        if config.cdn_redirect and is_raw_content(target):
            response = redirect(cdn_mirror_url(target), 302)
            response.headers.update(CORS_HEADERS)
            return response

        outbound = build_outbound_request(inbound, target, config)
        upstream = forwarder.forward(outbound, prefix=prefix())

        rewriter = None
        if config.rewrite_bodies:
            rewriter = BodyRewriter.for_proxy(request.host, prefix())
        return finalize(upstream, rewriter, config.chunk_size, inbound.method)

    @app.errorhandler(ProxyError)
    def proxy_error(e):
        log = app.logger.error if e.status >= 500 else app.logger.warning
        log(f"Proxy error for {request.method} {request.path}: {e.message}")
        return Response(e.message, status=e.status, mimetype='text/plain', headers=CORS_HEADERS)

    @app.errorhandler(404)
    def not_found(e):
        return send_from_directory(app.static_folder, '404.html'), 404

    return app


def _looks_like_asset(path):
    """A lone ``name.ext`` segment, as browsers request for icons and manifests."""
    path = path.strip('/')
    return '.' in path and '/' not in path and ':' not in path
