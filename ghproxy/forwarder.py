from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from urllib.parse import urljoin

import requests
from werkzeug.datastructures import Headers

from ghproxy.errors import (
    DisallowedTargetError, ResolutionError, TooManyRedirectsError,
    UpstreamNetworkError, UpstreamTimeoutError)
from ghproxy.messages import UpstreamResponse
from ghproxy.resolver import ResolvedTarget, parse_target, proxy_path

logger = logging.getLogger(__name__)

REDIRECT_STATUSES = {301, 302, 303, 307, 308}

# Methods safe to resend after the upstream answered with a 5xx
IDEMPOTENT_METHODS = {'GET', 'HEAD', 'OPTIONS', 'PUT', 'DELETE'}


@dataclass(frozen=True)
class ForwardAttempt:
    target: ResolvedTarget
    hops: int = 0


class Forwarder:
    """Issues outbound requests and resolves upstream redirects.

    Redirects to allowed hosts are handed back to the client with a
    proxy-relative ``Location``; redirects to hosts that may only be followed
    (CDN mirrors, asset storage) are fetched here. Either way no more than
    ``max_redirects`` hops are taken.
    """

    def __init__(self, guard, config, session=requests):
        self.guard = guard
        self.session = session
        self.max_redirects = config.max_redirects
        self.retries = config.retries
        self.retry_delay = config.retry_delay
        self.timeout = config.timeout

    def forward(self, outbound, hops=0, prefix='/') -> UpstreamResponse:
        attempt = ForwardAttempt(outbound.target, hops)
        if not self.guard.is_allowed(attempt.target):
            raise DisallowedTargetError(attempt.target.host)

        resp = self._fetch_with_retry(outbound)
        while True:
            location = resp.headers.get('Location')
            if resp.status_code not in REDIRECT_STATUSES or not location:
                return self._upstream(resp, attempt.target)

            if attempt.hops >= self.max_redirects:
                resp.close()
                raise TooManyRedirectsError(attempt.hops)
            attempt = ForwardAttempt(self._redirect_target(attempt.target, location, resp), attempt.hops + 1)

            if self.guard.is_allowed(attempt.target):
                logger.debug("Rewriting redirect to %s", attempt.target.url)
                upstream = self._upstream(resp, attempt.target)
                upstream.headers.set('Location', proxy_path(attempt.target, prefix))
                return upstream

            if not self.guard.can_follow(attempt.target):
                resp.close()
                logger.warning("Refusing redirect to %s", attempt.target.url)
                raise DisallowedTargetError(attempt.target.host)

            logger.info("Following redirect %d to %s", attempt.hops, attempt.target.url)
            outbound = outbound.retarget(attempt.target, resp.status_code)
            resp.close()
            resp = self._fetch(outbound)

    def _redirect_target(self, current, location, resp):
        try:
            return parse_target(urljoin(current.url, location))
        except ResolutionError as e:
            resp.close()
            raise UpstreamNetworkError(f"Upstream sent an invalid redirect: {e.message}") from e

    def _upstream(self, resp, target):
        return UpstreamResponse(resp.status_code, Headers(list(resp.headers.items())), target, resp)

    def _fetch(self, outbound):
        try:
            return self.session.request(
                method=outbound.method,
                url=outbound.url,
                headers=outbound.headers,
                data=outbound.body,
                stream=True,
                timeout=self.timeout,
                allow_redirects=False,
            )
        except requests.exceptions.Timeout as e:
            raise UpstreamTimeoutError(f"Upstream timed out: {outbound.target.host}") from e
        except requests.exceptions.RequestException as e:
            raise UpstreamNetworkError(f"Upstream request failed: {e}") from e

    def _fetch_with_retry(self, outbound):
        """Fetch the initial target, retrying network failures.

        5xx responses are retried only for idempotent methods; for the rest the
        first answer is returned as it is.
        """
        attempts = self.retries + 1
        for attempt in range(1, attempts + 1):
            try:
                resp = self._fetch(outbound)
            except UpstreamNetworkError as e:
                if attempt == attempts:
                    raise
                logger.warning("Attempt %d/%d for %s failed: %s", attempt, attempts, outbound.url, e)
            else:
                if resp.status_code < 500 or outbound.method not in IDEMPOTENT_METHODS:
                    return resp
                if attempt == attempts:
                    resp.close()
                    raise UpstreamNetworkError(
                        f"Upstream returned {resp.status_code} after {attempts} attempts")
                logger.warning("Attempt %d/%d for %s returned %d",
                               attempt, attempts, outbound.url, resp.status_code)
                resp.close()
            time.sleep(self.retry_delay)
