from __future__ import annotations

import re

VIDEO_ID_LENGTH = 11

_ID = r"([A-Za-z0-9_-]{11})(?![A-Za-z0-9_-])"
_HOST = r"(?:https?://)?(?:(?:www|m|music)\.)?"

# Order matters: the first pattern that matches wins.
VIDEO_ID_PATTERNS = (
    re.compile(_HOST + r"youtube\.com/watch\?(?:[^#\s]*&)?v=" + _ID),
    re.compile(_HOST + r"youtu\.be/" + _ID),
    re.compile(_HOST + r"youtube(?:-nocookie)?\.com/embed/" + _ID),
    re.compile(_HOST + r"youtube\.com/shorts/" + _ID),
)
_VALID_ID = re.compile(r"^[A-Za-z0-9_-]{11}$")


def is_valid_video_id(value: str) -> bool:
    return bool(_VALID_ID.match(value))


def extract_video_id(url: str) -> str | None:
    """Return the 11-character video id for a watch, short-link, embed or shorts URL."""
    candidate = url.strip()
    if len(candidate) < VIDEO_ID_LENGTH:
        return None
    for pattern in VIDEO_ID_PATTERNS:
        match = pattern.match(candidate)
        if match:
            video_id = match.group(1)
            return video_id if is_valid_video_id(video_id) else None
    return None


def watch_url(video_id: str) -> str:
    return f"https://www.youtube.com/watch?v={video_id}"
