"""URL pattern derivation and matching for manual lookup.

Patterns are host + path with ``*`` wildcards, e.g.
``*.myworkdayjobs.com/*/careers/job/NYC/apply``. Matching is segment-wise:
the host is split on ``.`` and the path on ``/`` and the token lists are
compared one by one. A wildcard token matches exactly one token, except a
leading host wildcard, which stands for the whole subdomain (one or more
labels) so that a pattern derived from ``a.b.example.com`` still matches it.
"""

from __future__ import annotations

import ipaddress
import re
from typing import List, Tuple
from urllib.parse import urlsplit

WILDCARD = "*"

_SCHEME = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://")
_UUID_SEGMENT = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-", re.I)
_NUMERIC_SEGMENT = re.compile(r"^\d+$")
_LOCALE_SEGMENT = re.compile(r"^[a-z]{2}(-[A-Z]{2})?$")


def _is_variable_segment(segment: str) -> bool:
    return bool(
        _UUID_SEGMENT.match(segment)
        or _NUMERIC_SEGMENT.match(segment)
        or _LOCALE_SEGMENT.match(segment)
    )


def _is_ip_address(host: str) -> bool:
    try:
        ipaddress.ip_address(host)
    except ValueError:
        return False
    return True


def url_to_pattern(url: str) -> str:
    """Generalise a concrete URL into a reusable pattern.

    Hosts with three or more labels keep their last two behind ``*.``;
    UUID, numeric and locale path segments become ``*``. IP hosts are kept
    as they are (IPv6 in brackets) and ports are dropped. Strings that do
    not parse as absolute URLs are returned unchanged.
    """
    parts = urlsplit(url)
    host = (parts.hostname or "").lower()
    if not parts.scheme or not host:
        return url

    if _is_ip_address(host):
        if ":" in host:
            host = f"[{host}]"
    else:
        labels = host.split(".")
        if len(labels) >= 3:
            host = WILDCARD + "." + ".".join(labels[-2:])

    segments = [
        WILDCARD if _is_variable_segment(seg) else seg
        for seg in parts.path.split("/")
        if seg
    ]
    return "/".join([host] + segments)


def _host_labels(host: str) -> List[str]:
    if host.startswith("["):
        # IPv6 literal: one label, port after the closing bracket
        return [host[1:].split("]", 1)[0]]
    if ":" in host and host != WILDCARD:
        host = host.split(":", 1)[0]
    return [label for label in host.split(".") if label]


def _tokenize(value: str) -> Tuple[List[str], List[str]]:
    """Split a URL or pattern into (host labels, path segments)."""
    rest = _SCHEME.sub("", value.strip())
    rest = re.split(r"[?#]", rest, maxsplit=1)[0]
    host, _, path = rest.partition("/")
    labels = _host_labels(host.split("@")[-1].lower())
    segments = [seg for seg in path.split("/") if seg]
    return labels, segments


def _match_tokens(pattern: List[str], actual: List[str]) -> bool:
    if len(pattern) != len(actual):
        return False
    return all(p == WILDCARD or p == a for p, a in zip(pattern, actual))


def _match_host(pattern: List[str], actual: List[str]) -> bool:
    if pattern and pattern[0] == WILDCARD and len(pattern) > 1:
        fixed = pattern[1:]
        if len(actual) <= len(fixed):
            return False
        return _match_tokens(fixed, actual[len(actual) - len(fixed):])
    return _match_tokens(pattern, actual)


def url_matches_pattern(url: str, pattern: str) -> bool:
    """Return True when ``url`` matches ``pattern``.

    Scheme, query and fragment are ignored and trailing slashes are
    normalised away. A bare ``*`` pattern matches every URL.
    """
    if pattern.strip() == WILDCARD:
        return True
    pattern_host, pattern_path = _tokenize(pattern)
    url_host, url_path = _tokenize(url)
    return _match_host(pattern_host, url_host) and _match_tokens(pattern_path, url_path)
