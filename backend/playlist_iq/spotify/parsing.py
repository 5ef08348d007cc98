from __future__ import annotations

import re

PLAYLIST_URL_RE = re.compile(
    r"https?://(?:open|play)\.spotify\.com/(?:intl-[a-z]{2}/)?playlist/(?P<id>[A-Za-z0-9]+)",
    re.IGNORECASE,
)
PLAYLIST_URI_RE = re.compile(r"spotify:playlist:(?P<id>[A-Za-z0-9]+)$", re.IGNORECASE)


def parse_playlist_id(value: str) -> str:
    value = (value or "").strip()
    m = PLAYLIST_URI_RE.match(value) or PLAYLIST_URL_RE.search(value)
    if not m:
        raise ValueError("unsupported spotify playlist url")
    return m.group("id")
