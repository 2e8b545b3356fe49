"""Process-wide cookie store shared by every fetch of a run."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Tuple, Union

from yarl import URL

logger = logging.getLogger(__name__)

CookieKey = Tuple[str, str, str]

_KEPT_ATTRIBUTES = {"expires", "max-age", "httponly", "samesite"}


@dataclass(frozen=True)
class CookieEntry:
    """A single stored cookie, addressed by (name, domain, path)."""

    name: str
    value: str
    domain: str
    path: str
    host_only: bool = True
    secure: bool = False
    attributes: Mapping[str, str] = field(default_factory=dict, compare=False)

    @property
    def key(self) -> CookieKey:
        return (self.name, self.domain, self.path)

    def pair(self) -> str:
        return f"{self.name}={self.value}"


def default_path(request_path: str) -> str:
    """RFC 6265 default-path: the directory portion of the request path."""

    if not request_path or not request_path.startswith("/"):
        return "/"
    if request_path.count("/") == 1:
        return "/"
    return request_path[: request_path.rfind("/")]


def path_matches(request_path: str, cookie_path: str) -> bool:
    request_path = request_path or "/"
    if request_path == cookie_path:
        return True
    if not request_path.startswith(cookie_path):
        return False
    return cookie_path.endswith("/") or request_path[len(cookie_path)] == "/"


def domain_matches(host: str, domain: str) -> bool:
    if host == domain:
        return True
    # IP literals never domain-match a parent
    if host.replace(".", "").isdigit() or ":" in host:
        return False
    return host.endswith("." + domain)


class CookieStore:
    """Thread-safe cookie jar consulted before and updated after each fetch.

    Entries are keyed by ``(name, domain, path)``; a later ``record`` for the
    same key replaces the value but keeps the original insertion position.
    Expiry attributes are kept on the entry but not enforced.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: Dict[CookieKey, CookieEntry] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def record(self, set_cookie_values: Union[str, Iterable[str]], url: URL) -> None:
        """Store every cookie carried by ``Set-Cookie`` values received from ``url``."""

        if isinstance(set_cookie_values, str):
            set_cookie_values = [set_cookie_values]
        host = (url.host or "").lower()
        parsed: List[CookieEntry] = []
        for raw in set_cookie_values:
            entry = self._parse(raw, host, url.path or "/")
            if entry is not None:
                parsed.append(entry)
        if not parsed:
            return
        with self._lock:
            for entry in parsed:
                self._entries[entry.key] = entry

    def cookies_for(self, url: URL) -> List[CookieEntry]:
        """Return cookies to send to ``url``, most specific path first."""

        host = (url.host or "").lower()
        path = url.path or "/"
        secure_channel = url.scheme == "https"
        with self._lock:
            candidates = list(self._entries.values())
        matches = []
        for entry in candidates:
            if entry.secure and not secure_channel:
                continue
            if entry.host_only:
                if host != entry.domain:
                    continue
            elif not domain_matches(host, entry.domain):
                continue
            if not path_matches(path, entry.path):
                continue
            matches.append(entry)
        # sorted() is stable, so equal paths keep insertion order
        return sorted(matches, key=lambda entry: len(entry.path), reverse=True)

    def header_value(self, url: URL) -> Optional[str]:
        """Return the ``Cookie`` header for ``url`` or None when nothing matches."""

        entries = self.cookies_for(url)
        if not entries:
            return None
        return "; ".join(entry.pair() for entry in entries)

    def _parse(self, raw: str, host: str, request_path: str) -> Optional[CookieEntry]:
        pair, _, attribute_text = raw.partition(";")
        name, sep, value = pair.partition("=")
        name, value = name.strip(), value.strip()
        if not sep or not name:
            logger.warning("Ignoring malformed Set-Cookie %r", raw)
            return None

        domain_attr = ""
        path_attr = ""
        secure = False
        attributes: Dict[str, str] = {}
        for item in attribute_text.split(";"):
            attr_name, _, attr_value = item.partition("=")
            attr_name, attr_value = attr_name.strip().lower(), attr_value.strip()
            if attr_name == "domain":
                domain_attr = attr_value.lstrip(".").lower()
            elif attr_name == "path":
                path_attr = attr_value
            elif attr_name == "secure":
                secure = True
            elif attr_name in _KEPT_ATTRIBUTES:
                attributes[attr_name] = attr_value or "true"
            # unknown attributes (Priority, Partitioned, ...) are ignored

        if domain_attr:
            if not domain_matches(host, domain_attr):
                logger.debug("Rejecting cookie %s for domain %s from host %s", name, domain_attr, host)
                return None
            domain, host_only = domain_attr, False
        else:
            domain, host_only = host, True
        path = path_attr if path_attr.startswith("/") else default_path(request_path)
        return CookieEntry(
            name=name,
            value=value,
            domain=domain,
            path=path,
            host_only=host_only,
            secure=secure,
            attributes=attributes,
        )


__all__ = [
    "CookieEntry",
    "CookieStore",
    "default_path",
    "path_matches",
    "domain_matches",
]
