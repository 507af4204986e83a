from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

from ghproxy.allowlist import AllowlistRule, parse_rules
from ghproxy.errors import ConfigError

DEFAULT_HOST = 'github.com'
RAW_HOST = 'raw.githubusercontent.com'
CDN_MIRROR_HOST = 'cdn.jsdelivr.net'

# Hosts the proxy forwards to when no allowlist is configured
KNOWN_UPSTREAM_HOSTS = (
    'github.com',
    'raw.githubusercontent.com',
    'gist.githubusercontent.com',
    'codeload.github.com',
    'avatars.githubusercontent.com',
    'github.githubassets.com',
    'objects.githubusercontent.com',
    'release-assets.githubusercontent.com',
    'github.io',
    '*.github.io',
)

# Only ever reached by following an upstream redirect
MIRROR_HOSTS = (CDN_MIRROR_HOST,)

# Prefix token -> upstream host; None means the next path segment names the host
DEFAULT_ROUTES = {
    'raw': RAW_HOST,
    'gist': 'gist.githubusercontent.com',
    'avatar': 'avatars.githubusercontent.com',
    'io': None,
}


def _env_flag(env, name, default):
    value = env.get(name)
    if value is None or value.strip() == '':
        return default
    value = value.strip().lower()
    if value in ('1', 'true', 'yes', 'on'):
        return True
    if value in ('0', 'false', 'no', 'off'):
        return False
    raise ConfigError(f"{name} must be a boolean, got {value!r}")


def _env_number(env, name, default, kind=int, minimum=0):
    value = env.get(name)
    if value is None or value.strip() == '':
        return default
    try:
        number = kind(value)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {value!r}") from None
    if number < minimum:
        raise ConfigError(f"{name} must be >= {minimum}, got {number}")
    return number


@dataclass(frozen=True)
class ProxyConfig:
    allowlist: Tuple[AllowlistRule, ...] = ()
    known_hosts: Tuple[str, ...] = KNOWN_UPSTREAM_HOSTS
    follow_hosts: Tuple[str, ...] = KNOWN_UPSTREAM_HOSTS + MIRROR_HOSTS
    routes: Mapping[str, Optional[str]] = field(default_factory=lambda: MappingProxyType(dict(DEFAULT_ROUTES)))
    default_host: str = DEFAULT_HOST
    cdn_redirect: bool = False
    blob_to_raw: bool = False
    rewrite_bodies: bool = True
    strip_conditional: bool = True
    max_redirects: int = 8
    retries: int = 3
    retry_delay: float = 1.0
    timeout: float = 300
    chunk_size: int = 8192
    max_content_length: int = 1024 * 1024 * 2048

    def with_options(self, **changes) -> 'ProxyConfig':
        return replace(self, **changes)

    @classmethod
    def from_env(cls, env=None) -> 'ProxyConfig':
        """Build the process-wide configuration from ``GHPROXY_*`` variables."""
        env = os.environ if env is None else env
        defaults = cls()
        return cls(
            allowlist=parse_rules(env.get('GHPROXY_ALLOWLIST', '')),
            cdn_redirect=_env_flag(env, 'GHPROXY_CDN_REDIRECT', defaults.cdn_redirect),
            blob_to_raw=_env_flag(env, 'GHPROXY_BLOB_TO_RAW', defaults.blob_to_raw),
            rewrite_bodies=_env_flag(env, 'GHPROXY_REWRITE_BODIES', defaults.rewrite_bodies),
            strip_conditional=_env_flag(env, 'GHPROXY_STRIP_CONDITIONAL', defaults.strip_conditional),
            max_redirects=_env_number(env, 'GHPROXY_MAX_REDIRECTS', defaults.max_redirects),
            retries=_env_number(env, 'GHPROXY_RETRIES', defaults.retries),
            retry_delay=_env_number(env, 'GHPROXY_RETRY_DELAY', defaults.retry_delay, float),
            timeout=_env_number(env, 'GHPROXY_TIMEOUT', defaults.timeout, float, minimum=1),
            max_content_length=_env_number(
                env, 'GHPROXY_MAX_CONTENT_LENGTH', defaults.max_content_length),
        )
