from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

from ghproxy.errors import ConfigError

_HOST_PATTERN = re.compile(r'^(\*\.)?[a-z0-9]([a-z0-9-]*[a-z0-9])?(\.[a-z0-9]([a-z0-9-]*[a-z0-9])?)*$')


def host_matches(pattern, host):
    """``*.example.com`` matches subdomains only; anything else is an exact match."""
    host = (host or '').lower().rstrip('.')
    if pattern.startswith('*.'):
        return host.endswith(pattern[1:]) and len(host) > len(pattern) - 1
    return host == pattern


@dataclass(frozen=True)
class AllowlistRule:
    host: str
    path: Optional[re.Pattern] = None

    def matches(self, target) -> bool:
        if not host_matches(self.host, target.host):
            return False
        return self.path is None or self.path.search(target.path) is not None


def parse_rule(entry) -> AllowlistRule:
    host, sep, path = entry.partition('=')
    host = host.strip().lower()
    if not _HOST_PATTERN.match(host):
        raise ConfigError(f"Invalid allowlist host: {host!r}")
    if not sep:
        return AllowlistRule(host)
    try:
        return AllowlistRule(host, re.compile(path))
    except re.error as e:
        raise ConfigError(f"Invalid allowlist path pattern {path!r}: {e}") from None


def parse_rules(text) -> Tuple[AllowlistRule, ...]:
    """Parse ``host`` / ``host=path-regex`` entries separated by commas or whitespace."""
    entries = [e for e in re.split(r'[\s,]+', text or '') if e]
    return tuple(parse_rule(e) for e in entries)


class AllowlistGuard:
    """Decides which upstream targets the proxy may forward to.

    ``rules`` is the configured allowlist; when empty the guard falls back to
    ``default_hosts``. ``follow_hosts`` are hosts that are never exposed as
    proxy targets but may be fetched when an allowed upstream redirects there.
    """

    def __init__(self, rules: Iterable[AllowlistRule], default_hosts=(), follow_hosts=()):
        rules = tuple(rules)
        if not rules:
            rules = tuple(AllowlistRule(h) for h in default_hosts)
        self.rules = rules
        self.follow_hosts = tuple(follow_hosts)

    @classmethod
    def from_config(cls, config):
        return cls(config.allowlist, config.known_hosts, config.follow_hosts)

    def is_allowed(self, target) -> bool:
        return any(rule.matches(target) for rule in self.rules)

    def can_follow(self, target) -> bool:
        return any(host_matches(h, target.host) for h in self.follow_hosts)
