"""Scraper defaults (start page, selectors, headers, pool size, paths).

Centralizes static defaults so the traversal and request builder have no
embedded magic strings. Callers can pass their own ScrapeConfig or header
table to override any of them.
"""

from __future__ import annotations

from pathlib import Path

# Traversal
DEFAULT_START_URL = "https://rpsc.energy.gov/handbooks?items_per_page=All"
DEFAULT_PAGE_SELECTOR = "a.handbook"
DEFAULT_CONTENT_SELECTOR = "a.print-pdf"

# Paths (project-relative; directories must already exist)
DEFAULT_DATA_DIR = Path("../data")
DEFAULT_CONTENT_SUFFIX = ".pdf"

# Transport
DEFAULT_POOL_SIZE = 5
MAX_REDIRECTS = 5
CHUNK_SIZE = 64 * 1024

# Headers
HDR_ACCEPT = "Accept"
HDR_ACCEPT_ENCODING = "Accept-Encoding"
HDR_CONTENT_ENCODING = "Content-Encoding"
HDR_CONTENT_TYPE = "Content-Type"
HDR_COOKIE = "Cookie"
HDR_HOST = "Host"
HDR_LOCATION = "Location"
HDR_ORIGIN = "Origin"
HDR_REFERER = "Referer"
HDR_SET_COOKIE = "Set-Cookie"

USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_12_1) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/55.0.2883.95 Safari/537.36"
)

DEFAULT_HEADERS = (
    (HDR_ACCEPT, "*/*"),
    ("Cache-Control", "no-cache"),
    (HDR_ACCEPT_ENCODING, "gzip"),
    ("Connection", "keep-alive"),
    ("User-Agent", USER_AGENT),
)

FORM_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8"
FORM_URLENCODED = "application/x-www-form-urlencoded"

REDIRECT_STATUS = 302
