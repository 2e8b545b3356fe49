"""Immutable request descriptors and the builder that produces them."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Iterable, List, Mapping, Optional, Tuple, Union
from urllib.parse import urlencode

from multidict import CIMultiDict, CIMultiDictProxy
from yarl import URL

from .fetch_config import (
    DEFAULT_HEADERS,
    FORM_ACCEPT,
    FORM_URLENCODED,
    HDR_ACCEPT,
    HDR_CONTENT_TYPE,
    HDR_ORIGIN,
    HDR_REFERER,
)
from .url_utils import URLLike, parse_absolute, resolve

logger = logging.getLogger(__name__)

HeaderItems = Union[Mapping[str, str], Iterable[Tuple[str, str]]]

_SKIPPED_INPUT_TYPES = {"submit", "button", "image", "reset", "file"}


def _frozen_headers(items: Optional[HeaderItems] = None) -> CIMultiDictProxy:
    return CIMultiDictProxy(CIMultiDict(items or ()))


@dataclass(frozen=True)
class RequestDescriptor:
    """Everything needed to send one request. Never mutated once built."""

    url: URL
    method: str = "GET"
    headers: CIMultiDictProxy = field(default_factory=_frozen_headers)
    body: Optional[bytes] = None
    allow_redirect: bool = True

    def with_headers(self, overrides: HeaderItems) -> "RequestDescriptor":
        """Return a copy whose headers have ``overrides`` layered on top."""

        merged = CIMultiDict(self.headers)
        items = overrides.items() if isinstance(overrides, Mapping) else overrides
        for name, value in items:
            merged[name] = value
        return replace(self, headers=CIMultiDictProxy(merged))


class RequestBuilder:
    """Build requests from a constant default header table.

    Every ``build`` starts from a fresh copy of the defaults, so concurrent
    requests never share a header map.
    """

    def __init__(self, default_headers: HeaderItems = DEFAULT_HEADERS) -> None:
        items = default_headers.items() if isinstance(default_headers, Mapping) else default_headers
        self._defaults: Tuple[Tuple[str, str], ...] = tuple((str(k), str(v)) for k, v in items)

    @property
    def default_headers(self) -> CIMultiDictProxy:
        return _frozen_headers(self._defaults)

    def build(
        self,
        target: URLLike,
        referer: Optional[URLLike] = None,
        *,
        method: str = "GET",
        headers: Optional[HeaderItems] = None,
        body: Optional[Union[bytes, str]] = None,
        allow_redirect: bool = True,
    ) -> RequestDescriptor:
        merged = CIMultiDict(self._defaults)
        if referer is None:
            url = parse_absolute(target)
        else:
            referer_url = parse_absolute(referer)
            url = resolve(referer_url, target)
            merged[HDR_REFERER] = str(referer_url.with_fragment(None))
        if headers:
            items = headers.items() if isinstance(headers, Mapping) else headers
            for name, value in items:
                merged[name] = value
        if isinstance(body, str):
            body = body.encode("utf-8")
        return RequestDescriptor(
            url=url,
            method=method.upper(),
            headers=CIMultiDictProxy(merged),
            body=body,
            allow_redirect=allow_redirect,
        )


DEFAULT_BUILDER = RequestBuilder()


def build_request(target: URLLike, referer: Optional[URLLike] = None, **kwargs: Any) -> RequestDescriptor:
    """Shortcut for :meth:`RequestBuilder.build` with the default header table."""

    return DEFAULT_BUILDER.build(target, referer, **kwargs)


def serialize_form(form: Any) -> List[Tuple[str, str]]:
    """Return the successful controls of a parsed ``<form>`` in document order."""

    fields: List[Tuple[str, str]] = []
    for control in form.find_all(["input", "select", "textarea"]):
        name = control.get("name")
        if not name or control.has_attr("disabled"):
            continue
        if control.name == "input":
            kind = (control.get("type") or "text").strip().lower()
            if kind in _SKIPPED_INPUT_TYPES:
                continue
            if kind in {"checkbox", "radio"}:
                if control.has_attr("checked"):
                    fields.append((name, control.get("value", "on")))
                continue
            fields.append((name, control.get("value", "")))
        elif control.name == "select":
            options = control.find_all("option")
            selected = [option for option in options if option.has_attr("selected")]
            if not selected and options and not control.has_attr("multiple"):
                selected = options[:1]
            for option in selected:
                value = option.get("value")
                fields.append((name, value if value is not None else option.get_text(strip=True)))
        else:
            fields.append((name, control.get_text()))
    return fields


def build_form_request(
    page_url: URLLike,
    form: Any,
    values: Optional[Mapping[str, str]] = None,
    builder: Optional[RequestBuilder] = None,
) -> RequestDescriptor:
    """Build the request a browser would send when ``form`` is submitted.

    ``values`` replace the values of fields the form already has; names the
    form does not declare are ignored.
    """

    builder = builder or DEFAULT_BUILDER
    page = parse_absolute(page_url)
    values = values or {}
    fields = [(name, str(values[name]) if name in values else value) for name, value in serialize_form(form)]
    unknown = sorted(set(values) - {name for name, _ in fields})
    if unknown:
        logger.debug("Form has no fields named %s; ignoring", ", ".join(unknown))

    action = resolve(page, form.get("action") or "")
    method = (form.get("method") or "GET").strip().upper()
    if method == "GET":
        target = action.with_fragment(None).with_query(fields)
        return builder.build(target, page, method="GET", headers={HDR_ACCEPT: FORM_ACCEPT})

    headers = {
        HDR_CONTENT_TYPE: FORM_URLENCODED,
        HDR_ACCEPT: FORM_ACCEPT,
        HDR_ORIGIN: str(action.origin()),
    }
    return builder.build(action, page, method=method, headers=headers, body=urlencode(fields))


__all__ = [
    "RequestDescriptor",
    "RequestBuilder",
    "DEFAULT_BUILDER",
    "build_request",
    "serialize_form",
    "build_form_request",
]
