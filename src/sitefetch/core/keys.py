"""Shared index-entry keys to avoid magic strings across sitefetch modules."""

from __future__ import annotations

# Index entry keys
K_URL = "url"
K_REFERER = "referer"
K_LOCAL_PATH = "local_path"
K_ERROR = "error"
K_STAGE = "stage"

# Stage values
STAGE_CONTENT = "content"
STAGE_PAGE = "page"
STAGE_INDEX = "index"
